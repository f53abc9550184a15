from pathlib import Path
from typing import Annotated

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Load env values for components that read os.environ directly (e.g., provider SDKs).
_project_root = Path(__file__).resolve().parents[1]
load_dotenv(_project_root / ".env", override=False)


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"

    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_POOL_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    # Local runs and tests create tables on startup; deployed databases use `alembic upgrade head`.
    DB_CREATE_ALL: bool = False

    BACKEND_CORS_ORIGINS: Annotated[list[str], NoDecode] = ["http://localhost:5173"]

    # Bearer tokens are verified against a JWKS endpoint (RS256) or a shared HS256 secret.
    AUTH_JWKS_URL: str | None = None
    AUTH_JWT_SECRET: str | None = None
    AUTH_JWT_ISSUER: str | None = None
    AUTH_AUDIENCE: Annotated[list[str], NoDecode] = ["authenticated"]

    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = None
    ANTHROPIC_API_KEY: str | None = None
    GEMINI_API_KEY: str | None = None
    LLM_DEFAULT_MODEL: str = "gpt-4o-mini"
    OPENAI_DEFAULT_MODEL: str = "gpt-4o-mini"
    ANTHROPIC_DEFAULT_MODEL: str = "claude-3-5-sonnet-latest"
    LLM_REQUEST_TIMEOUT: int = 90
    LLM_REQUEST_RETRIES: int = 2
    LLM_MAX_OUTPUT_TOKENS: int = 8000

    FREE_MONTHLY_GENERATION_CAP: int = 25
    PREMIUM_MONTHLY_GENERATION_CAP: int = 1000

    EXTRACTION_MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
    EXTRACTION_MAX_CHARS: int = 60000
    URL_FETCH_TIMEOUT_SECONDS: float = 15.0
    URL_FETCH_MAX_BYTES: int = 5 * 1024 * 1024
    URL_FETCH_MAX_REDIRECTS: int = 5

    DEFAULT_WORKSPACE_NAME: str = "My Brand"
    IMPORTED_WORKSPACE_NAME: str = "Imported Brand"

    STRIPE_SECRET_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None
    STRIPE_PRICE_ID: str | None = None
    CHECKOUT_DEFAULT_RETURN_URL: str = "http://localhost:5173"

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def split_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("AUTH_AUDIENCE", mode="before")
    @classmethod
    def split_audience(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return [aud.strip() for aud in value.split(",") if aud.strip()]
        return value

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
