import os
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_mailcraft.db")
os.environ.setdefault("AUTH_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("AUTH_AUDIENCE", "authenticated")
os.environ.setdefault("FREE_MONTHLY_GENERATION_CAP", "3")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("STRIPE_PRICE_ID", "price_test_123")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import delete

from mailcraft.auth import dependencies as auth_dependencies
from mailcraft.db.base import SessionLocal, init_db
from mailcraft.db.deps import get_session
from mailcraft.db.models import Account, Campaign, ProcessedStripeEvent, Workspace
from mailcraft.main import app
from mailcraft.routers import campaigns as campaigns_router
from mailcraft.routers import context as context_router

TEST_USER_ID = "user-1"
TEST_ANONYMOUS_ID = "anon-browser-0001"


def _clear_tables(session) -> None:
    session.execute(delete(Campaign))
    session.execute(delete(Workspace))
    session.execute(delete(ProcessedStripeEvent))
    session.execute(delete(Account))
    session.commit()


@pytest.fixture()
def db_session():
    init_db()
    session = SessionLocal()
    _clear_tables(session)
    try:
        yield session
    finally:
        session.rollback()
        _clear_tables(session)
        session.close()


@pytest.fixture()
def fake_auth(monkeypatch):
    # Bearer tokens in tests are the subject itself.
    def _verify(token: str) -> dict:
        return {"sub": token, "email": f"{token}@example.com", "aud": "authenticated"}

    monkeypatch.setattr(auth_dependencies, "verify_access_token", _verify)


@pytest.fixture()
def user_headers(fake_auth) -> dict[str, str]:
    return {"Authorization": f"Bearer {TEST_USER_ID}"}


@pytest.fixture()
def anon_headers() -> dict[str, str]:
    return {"X-Anonymous-Id": TEST_ANONYMOUS_ID}


class FakeLLM:
    def __init__(self) -> None:
        self.replies: list = []
        self.prompts: list[str] = []

    def generate_text(self, prompt, params=None):
        self.prompts.append(prompt)
        if not self.replies:
            raise AssertionError("FakeLLM has no reply queued")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture()
def fake_llm(monkeypatch):
    llm = FakeLLM()
    built_with: list[tuple] = []

    def _build(provider=None, api_key=None):
        built_with.append((provider, api_key))
        return llm

    llm.built_with = built_with
    monkeypatch.setattr(context_router, "build_llm_client", _build)
    monkeypatch.setattr(campaigns_router, "build_llm_client", _build)
    return llm


@pytest.fixture()
def api_client(db_session):
    def get_session_override():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_session] = get_session_override
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def profile_payload() -> dict:
    return {
        "brand": {
            "name": "Acme Analytics",
            "tagline": "Numbers you can trust",
            "mission": "Make reporting painless for small teams",
            "voice_characteristics": ["Friendly", "Direct"],
            "tone_scale": {"formal_casual": 7, "serious_humorous": 4, "respectful_irreverent": 3},
            "dos": ["Use plain language"],
            "donts": ["Overpromise"],
            "vocabulary": {"preferred": ["insight"], "avoid": ["synergy"]},
        },
        "audience": {
            "job_titles": ["Founder", "Ops Lead"],
            "industries": ["SaaS"],
            "pain_points": ["Manual spreadsheets"],
            "goals": ["Save time"],
        },
        "offer": {
            "product_name": "Acme Reports",
            "one_liner": "Automated weekly reports",
            "usp": "Setup in five minutes",
            "features_benefits": [{"feature": "Auto sync", "benefit": "No copy paste", "outcome": "Hours saved"}],
        },
    }
