import pytest

from mailcraft.db.repositories.accounts import AccountsRepository
from mailcraft.services import workspaces as workspaces_service

ANONYMOUS_ID = "anon-browser-0001"


def _anonymous_work(api_client, anon_headers, profile_payload):
    api_client.post("/api/context/save-processed", json=profile_payload, headers=anon_headers)
    response = api_client.put(
        "/api/campaigns/anon-campaign",
        json={"name": "Anon draft", "goal": "welcome", "emails": [{"id": "e1", "subject": "Hi", "body": "Hello"}]},
        headers=anon_headers,
    )
    assert response.status_code == 200


def test_merge_moves_anonymous_work_into_an_empty_account(
    api_client, db_session, anon_headers, user_headers, profile_payload
):
    _anonymous_work(api_client, anon_headers, profile_payload)

    response = api_client.post(
        "/api/session/merge-anonymous", json={"anonymous_id": ANONYMOUS_ID}, headers=user_headers
    )
    assert response.status_code == 200
    result = response.json()
    assert result["created_workspace"] is False
    assert result["profile_applied"] is True
    assert result["campaigns_imported"] == 1
    assert result["campaigns_skipped"] == 0

    assert api_client.get("/api/context", headers=user_headers).json()["brand"]["name"] == "Acme Analytics"
    campaign = api_client.get("/api/campaigns/anon-campaign", headers=user_headers).json()
    assert campaign["workspaceId"] == result["workspace_id"]
    assert campaign["emails"][0]["subject"] == "Hi"
    assert AccountsRepository(db_session).get(f"anon:{ANONYMOUS_ID}") is None


def test_failed_merge_keeps_anonymous_work(api_client, db_session, anon_headers, profile_payload, monkeypatch):
    _anonymous_work(api_client, anon_headers, profile_payload)
    account = AccountsRepository(db_session).get_or_create("user-1", is_anonymous=False)

    def failing_merge(*args, **kwargs):
        raise RuntimeError("write failed")

    monkeypatch.setattr(workspaces_service, "_merge_into_account", failing_merge)
    with pytest.raises(RuntimeError):
        workspaces_service.merge_anonymous_state(db_session, account, f"anon:{ANONYMOUS_ID}")

    assert AccountsRepository(db_session).get(f"anon:{ANONYMOUS_ID}") is not None
    campaigns = api_client.get("/api/campaigns/", headers=anon_headers).json()
    assert [campaign["id"] for campaign in campaigns] == ["anon-campaign"]
    context = api_client.get("/api/context", headers=anon_headers)
    assert context.status_code == 200
    assert context.json()["brand"]["name"] == "Acme Analytics"


def test_merge_never_overwrites_an_existing_profile(api_client, anon_headers, user_headers, profile_payload):
    user_profile = {"brand": {"name": "Signed In Co"}, "audience": {"job_titles": ["CEO"]}}
    api_client.post("/api/context/save-processed", json=user_profile, headers=user_headers)
    _anonymous_work(api_client, anon_headers, profile_payload)

    result = api_client.post(
        "/api/session/merge-anonymous", json={"anonymous_id": ANONYMOUS_ID}, headers=user_headers
    ).json()
    assert result["created_workspace"] is True

    workspaces = api_client.get("/api/workspaces/", headers=user_headers).json()
    names = {item["name"]: item for item in workspaces}
    assert set(names) == {"My Brand", "Acme Analytics"}
    assert names["Acme Analytics"]["id"] == result["workspace_id"]

    default_context = api_client.get(
        f"/api/context?workspace_id={names['My Brand']['id']}", headers=user_headers
    ).json()
    assert default_context["brand"]["name"] == "Signed In Co"
    assert api_client.get("/api/context", headers=user_headers).json()["brand"]["name"] == "Acme Analytics"


def test_merge_of_unknown_anonymous_owner_is_a_no_op(api_client, user_headers):
    response = api_client.post(
        "/api/session/merge-anonymous", json={"anonymous_id": "never-seen-123"}, headers=user_headers
    )
    assert response.status_code == 200
    assert response.json()["profile_applied"] is False
    assert response.json()["campaigns_imported"] == 0


def test_merge_requires_sign_in(api_client, anon_headers):
    response = api_client.post(
        "/api/session/merge-anonymous", json={"anonymous_id": ANONYMOUS_ID}, headers=anon_headers
    )
    assert response.status_code == 403


def test_import_local_state_accepts_old_profile_shape(api_client, anon_headers, user_headers):
    api_client.put("/api/campaigns/taken-id", json={"name": "Someone else's"}, headers=anon_headers)

    payload = {
        "context": {
            "brand": {"name": "Local Co", "voice": "Warm, Playful", "keywords": "cozy, handmade"},
            "audience": {"description": "Crafters", "painPoints": ["Cheap materials"], "desires": ["Quality"]},
            "offer": {"name": "Yarn Box", "pitch": "Monthly yarn", "details": "Hand dyed"},
        },
        "campaigns": [
            {
                "id": "local-1",
                "name": "",
                "goal": "welcome",
                "status": "archived",
                "emails": [{"id": "e1", "day_offset": "Day 2", "subject_line": "Hello"}, "junk"],
            },
            {"name": "No id"},
            {"id": "taken-id", "name": "Collides"},
        ],
    }
    response = api_client.post("/api/session/import-local", json=payload, headers=user_headers)
    assert response.status_code == 200
    assert response.json()["campaigns_imported"] == 1
    assert response.json()["campaigns_skipped"] == 2

    context = api_client.get("/api/context", headers=user_headers).json()
    assert context["brand"]["voiceCharacteristics"] == ["Warm", "Playful"]
    assert context["brand"]["keywords"] == ["cozy", "handmade"]
    assert context["audience"]["goals"] == ["Quality"]
    assert context["offer"]["usp"] == "Hand dyed"

    campaign = api_client.get("/api/campaigns/local-1", headers=user_headers).json()
    assert campaign["name"] == "Untitled Campaign"
    assert campaign["status"] == "draft"
    assert len(campaign["emails"]) == 1
    assert campaign["emails"][0]["dayOffset"] == 2


def test_import_local_state_without_profile(api_client, user_headers):
    response = api_client.post("/api/session/import-local", json={"campaigns": []}, headers=user_headers)
    assert response.status_code == 200
    assert response.json()["profile_applied"] is False
    assert response.json()["created_workspace"] is False
