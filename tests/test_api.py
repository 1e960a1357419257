"""
Tests for the Session Authentication API endpoints.
"""
import datetime

from fastapi import status

from session_auth.config import JWT_INVALID_TOKEN_CODE, JWT_REFRESH_TOKEN_CODE


def login(client, username="alice"):
    response = client.post("/auth/login", json={"username": username})
    assert response.status_code == status.HTTP_200_OK
    return response.headers["token"]


def test_health_check(client):
    """Test the health endpoint."""
    response = client.get("/health")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "ok"


def test_login_success(client, alice, cache):
    """Test successful login."""
    response = client.post("/auth/login", json={"username": "alice"})

    # Verify response
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["code"] == 200
    assert data["success"] is True
    token = response.headers["token"]
    assert data["data"]["token"] == token
    user = data["data"]["user"]
    assert user["username"] == "alice"
    assert user["roles"] == ["admin"]
    assert user["client_ip"] == "testclient"
    assert "effective_salt" not in user
    assert "salt" not in user

    # Verify the session was registered
    assert cache.exists(token)


def test_login_unknown_user(client):
    """Test login for a user the directory does not know."""
    response = client.post("/auth/login", json={"username": "nobody"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    data = response.json()
    assert data["success"] is False
    assert data["code"] == 4000
    assert "token" not in response.headers


def test_login_validation_error(client):
    """Test login with an invalid body."""
    response = client.post("/auth/login", json={"username": ""})
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    response = client.post("/auth/login", json={})
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_roles_with_token_header(client, alice):
    """Test an authenticated request carrying the token header."""
    token = login(client)

    response = client.get("/auth/roles", headers={"token": token})

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["data"] == ["admin"]
    assert "token" not in response.headers


def test_token_from_query_and_bearer(client, alice):
    """Test the alternative places a token may be presented."""
    token = login(client)

    response = client.get("/auth/roles", params={"token": token})
    assert response.status_code == status.HTTP_200_OK

    response = client.get("/auth/roles", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == status.HTTP_200_OK


def test_request_without_token(client):
    """Test that authenticated endpoints require a token."""
    response = client.get("/auth/roles")

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["detail"] == "Not authenticated"


def test_request_with_garbage_token(client, alice):
    """Test that malformed tokens are rejected as unauthenticated."""
    response = client.get("/auth/roles", headers={"token": "invalid.token"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_request_with_forged_token_for_unknown_user(client, alice, signer):
    """Test that a token signed by someone else is unauthenticated, not revoked."""
    login(client)
    forged = signer.mint("mallory", "attacker-key", datetime.timedelta(hours=1))

    response = client.get("/auth/roles", headers={"token": forged})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_request_with_expired_token(client, alice, clock):
    """Test that expired tokens are rejected as unauthenticated."""
    token = login(client)
    clock.advance(3601)

    response = client.get("/auth/session", headers={"token": token})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["detail"] == "Token has expired"


def test_current_session(client, alice):
    """Test reading the public view of the current session."""
    token = login(client)

    response = client.get("/auth/session", headers={"token": token})

    assert response.status_code == status.HTTP_200_OK
    data = response.json()["data"]
    assert data["username"] == "alice"
    assert "effective_salt" not in data


def test_transparent_refresh(client, alice, cache, refresh_window_reached):
    """Test that a token close to expiry is rotated on a normal request."""
    old_token = login(client)
    refresh_window_reached()

    response = client.get("/auth/session", headers={"token": old_token})

    # Verify the refreshed status and header
    assert response.status_code == JWT_REFRESH_TOKEN_CODE
    new_token = response.headers["token"]
    assert new_token != old_token
    assert response.json()["data"]["username"] == "alice"
    assert not cache.exists(old_token)
    assert cache.exists(new_token)

    # The old token is now refused with the invalid token status
    response = client.get("/auth/session", headers={"token": old_token})
    assert response.status_code == JWT_INVALID_TOKEN_CODE

    # The new token works without another rotation
    response = client.get("/auth/session", headers={"token": new_token})
    assert response.status_code == status.HTTP_200_OK


def test_logout(client, alice, cache):
    """Test logging out revokes the token."""
    token = login(client)

    response = client.post("/auth/logout", headers={"token": token})

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["success"] is True
    assert not cache.exists(token)

    response = client.get("/auth/roles", headers={"token": token})
    assert response.status_code == JWT_INVALID_TOKEN_CODE


def test_logout_twice(client, alice):
    """Test that logout is idempotent."""
    token = login(client)

    first = client.post("/auth/logout", headers={"token": token})
    second = client.post("/auth/logout", headers={"token": token})
    anonymous = client.post("/auth/logout")

    assert first.status_code == status.HTTP_200_OK
    assert second.status_code == status.HTTP_200_OK
    assert anonymous.status_code == status.HTTP_200_OK


def test_logout_all(client, alice):
    """Test revoking every session of the current user."""
    first = login(client)
    second = login(client)

    response = client.post("/auth/logout/all", headers={"token": first})

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["data"]["sessions_revoked"] == 2
    for token in (first, second):
        response = client.get("/auth/roles", headers={"token": token})
        assert response.status_code == JWT_INVALID_TOKEN_CODE


def test_logout_all_requires_token(client):
    """Test that logging out everywhere needs an authenticated session."""
    response = client.post("/auth/logout/all")

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
