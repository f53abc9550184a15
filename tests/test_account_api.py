def test_account_is_created_lazily(api_client, user_headers):
    response = api_client.get("/api/account", headers=user_headers)
    assert response.status_code == 200
    account = response.json()
    assert account["id"] == "user-1"
    assert account["email"] == "user-1@example.com"
    assert account["is_anonymous"] is False
    assert account["subscription_status"] == "free"
    assert account["is_premium"] is False
    assert account["own_api_key_masked"] is None
    assert account["usage"]["used"] == 0
    assert account["usage"]["cap"] == 3


def test_anonymous_account(api_client, anon_headers):
    account = api_client.get("/api/account", headers=anon_headers).json()
    assert account["id"] == "anon:anon-browser-0001"
    assert account["is_anonymous"] is True


def test_own_api_key_is_stored_and_masked(api_client, user_headers):
    response = api_client.put(
        "/api/account/api-key",
        json={"provider": "openai", "api_key": "sk-proj-abcdefghijkl"},
        headers=user_headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["own_api_provider"] == "openai"
    assert body["own_api_key_masked"] == "sk-...ijkl"
    assert "sk-proj-abcdefghijkl" not in response.text
    assert body["usage"]["has_own_api_key"] is True

    response = api_client.delete("/api/account/api-key", headers=user_headers)
    assert response.json()["own_api_provider"] is None
    assert response.json()["usage"]["has_own_api_key"] is False


def test_api_key_validation(api_client, user_headers):
    response = api_client.put(
        "/api/account/api-key", json={"provider": "mistral", "api_key": "abcdefghijkl"}, headers=user_headers
    )
    assert response.status_code == 422
    response = api_client.put(
        "/api/account/api-key", json={"provider": "openai", "api_key": "short"}, headers=user_headers
    )
    assert response.status_code == 422


def test_health(api_client):
    assert api_client.get("/health").json() == {"ok": True}
