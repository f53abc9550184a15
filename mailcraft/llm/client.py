from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import anthropic
import google.generativeai as genai
import openai
from anthropic import Anthropic
from google.api_core import exceptions as google_exceptions
from openai import OpenAI

from mailcraft.config import settings
from mailcraft.db.enums import ApiKeyProviderEnum


class LLMClientConfigError(Exception):
    pass


class LLMAuthenticationError(LLMClientConfigError):
    def __init__(self, provider: str) -> None:
        super().__init__(f"The API key was rejected by {provider}.")
        self.provider = provider


class LLMRateLimitError(RuntimeError):
    def __init__(self, provider: str) -> None:
        super().__init__(f"{provider} rate limit reached")
        self.provider = provider


logger = logging.getLogger(__name__)


@dataclass
class LLMGenerationParams:
    model: Optional[str] = None
    max_tokens: Optional[int] = None
    temperature: float = 0.4
    json_output: bool = False


class LLMClient:
    """
    Lightweight wrapper for LLM calls used by the context and campaign services.
    Routes to the appropriate provider client based on the requested model.
    """

    def __init__(
        self,
        default_model: Optional[str] = None,
        api_keys: Optional[dict[str, str]] = None,
    ) -> None:
        self.default_model = default_model or settings.LLM_DEFAULT_MODEL
        self._api_keys = dict(api_keys or {})
        self._gemini_configured = False
        self._anthropic_client: Optional[Anthropic] = None
        self._openai_client: Optional[OpenAI] = None

    def generate_text(self, prompt: str, params: Optional[LLMGenerationParams] = None) -> str:
        model = params.model if params and params.model else self.default_model
        if self._is_openai_model(model):
            return self._generate_with_openai(prompt, model, params)
        if model.startswith("claude"):
            return self._generate_with_anthropic(prompt, model, params)
        return self._generate_with_gemini(prompt, model, params)

    def _is_openai_model(self, model: str) -> bool:
        lower = model.lower()
        prefixes = ("gpt-", "chatgpt-", "o1", "o3", "o4")
        return any(lower.startswith(prefix) for prefix in prefixes)

    def _api_key(self, provider: str, configured: Optional[str]) -> str:
        api_key = self._api_keys.get(provider) or configured
        if not api_key:
            raise LLMClientConfigError(f"{provider.upper()}_API_KEY not configured")
        return api_key

    def _generate_with_openai(self, prompt: str, model: str, params: Optional[LLMGenerationParams]) -> str:
        if not self._openai_client:
            client_kwargs: dict[str, Any] = {
                "api_key": self._api_key("openai", settings.OPENAI_API_KEY),
                "timeout": float(settings.LLM_REQUEST_TIMEOUT),
                "max_retries": settings.LLM_REQUEST_RETRIES,
            }
            if settings.OPENAI_BASE_URL:
                client_kwargs["base_url"] = settings.OPENAI_BASE_URL
            self._openai_client = OpenAI(**client_kwargs)

        completion_kwargs: dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
        }
        if params and params.temperature is not None:
            completion_kwargs["temperature"] = params.temperature
        if params and params.max_tokens:
            completion_kwargs["max_tokens"] = params.max_tokens
        if params and params.json_output:
            completion_kwargs["response_format"] = {"type": "json_object"}

        try:
            completion = self._openai_client.chat.completions.create(**completion_kwargs)
        except openai.RateLimitError as exc:
            logger.warning("OpenAI rate limit", extra={"model": model})
            raise LLMRateLimitError("openai") from exc
        except openai.AuthenticationError as exc:
            raise LLMAuthenticationError("openai") from exc
        except Exception:
            logger.exception("OpenAI chat completion failed", extra={"model": model})
            raise

        text = None
        if completion and completion.choices:
            text = getattr(completion.choices[0].message, "content", None)
        if text:
            return text

        raise RuntimeError(f"OpenAI chat completion returned no content for model {model}")

    def _generate_with_anthropic(self, prompt: str, model: str, params: Optional[LLMGenerationParams]) -> str:
        if not self._anthropic_client:
            self._anthropic_client = Anthropic(
                api_key=self._api_key("anthropic", settings.ANTHROPIC_API_KEY),
                timeout=float(settings.LLM_REQUEST_TIMEOUT),
                max_retries=settings.LLM_REQUEST_RETRIES,
            )

        max_tokens = params.max_tokens if params and params.max_tokens else settings.LLM_MAX_OUTPUT_TOKENS
        temperature = params.temperature if params else 0.4

        try:
            response = self._anthropic_client.messages.create(
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.RateLimitError as exc:
            logger.warning("Anthropic rate limit", extra={"model": model})
            raise LLMRateLimitError("anthropic") from exc
        except anthropic.AuthenticationError as exc:
            raise LLMAuthenticationError("anthropic") from exc
        except Exception:
            logger.exception("Anthropic generation failed", extra={"model": model})
            raise

        text_parts = [content.text for content in response.content if getattr(content, "text", None)]
        if text_parts:
            return "".join(text_parts)

        raise RuntimeError(f"Anthropic returned no content for model {model}")

    def _generate_with_gemini(self, prompt: str, model: str, params: Optional[LLMGenerationParams]) -> str:
        if not self._gemini_configured:
            genai.configure(api_key=self._api_key("gemini", settings.GEMINI_API_KEY))
            self._gemini_configured = True

        generation_config: dict[str, Any] = {
            "temperature": params.temperature if params else 0.4,
        }
        if params and params.max_tokens:
            generation_config["max_output_tokens"] = params.max_tokens
        if params and params.json_output:
            generation_config["response_mime_type"] = "application/json"

        model_name = model if model.startswith("models/") else f"models/{model}"
        model_client = genai.GenerativeModel(model_name=model_name, generation_config=generation_config)
        try:
            result = model_client.generate_content(
                prompt, request_options={"timeout": settings.LLM_REQUEST_TIMEOUT}
            )
            text = None
            if result and getattr(result, "candidates", None):
                first = result.candidates[0]
                if first and first.content and getattr(first.content, "parts", None):
                    parts = first.content.parts
                    if parts and getattr(parts[0], "text", None):
                        text = parts[0].text
            if not text and hasattr(result, "text"):
                text = result.text
        except google_exceptions.ResourceExhausted as exc:
            logger.warning("Gemini rate limit", extra={"model": model})
            raise LLMRateLimitError("gemini") from exc
        except Exception:
            logger.exception("Gemini generation failed", extra={"model": model})
            raise

        if text:
            return text

        raise RuntimeError(f"Gemini returned no content for model {model}")


def build_llm_client(
    provider: Optional[ApiKeyProviderEnum] = None,
    api_key: Optional[str] = None,
) -> LLMClient:
    """Client for an owner: their own provider key when they have one, else the platform keys."""
    if api_key and provider == ApiKeyProviderEnum.openai:
        return LLMClient(default_model=settings.OPENAI_DEFAULT_MODEL, api_keys={"openai": api_key})
    if api_key and provider == ApiKeyProviderEnum.anthropic:
        return LLMClient(default_model=settings.ANTHROPIC_DEFAULT_MODEL, api_keys={"anthropic": api_key})
    return LLMClient()
