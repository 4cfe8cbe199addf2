"""
Comprehensive security tests for authentication module.

Tests cover:
- Password strength validation (strong passwords, weak passwords, missing complexity)
- JWT security (missing secret key)
- Token expiration handling
- Account deletion and returning-user detection
"""
import pytest
from unittest.mock import patch

from auth_utils import create_jwt
from config.settings import settings
from tests.conftest import STRONG_PASSWORD, create_expired_jwt


def test_strong_password_success(client):
    """
    Test Strong Password Success: Verify a signup request succeeds with a strong,
    12+ character password containing all required complexity rules.
    """
    response = client.post(
        "/api/auth/signup",
        json={
            "email": "test_strong@example.com",
            "password": STRONG_PASSWORD
        }
    )

    assert response.status_code == 200
    response_data = response.json()
    assert response_data["ok"] is True
    assert "user_id" in response_data
    assert response_data["token_type"] == "bearer"

    # Should have auth_token cookie
    assert "auth_token" in response.cookies


def test_signup_rejects_duplicate_email(client):
    payload = {"email": "dupe@example.com", "password": STRONG_PASSWORD}
    assert client.post("/api/auth/signup", json=payload).status_code == 200

    response = client.post("/api/auth/signup", json={"email": "DUPE@example.com", "password": STRONG_PASSWORD})

    assert response.status_code == 400
    assert "already registered" in response.json()["detail"]


def test_signup_rejects_invalid_email(client):
    response = client.post("/api/auth/signup", json={"email": "not-an-email", "password": STRONG_PASSWORD})

    assert response.status_code == 400


def test_weak_password_rejection_min_length(client):
    """
    Test Weak Password Rejection (Min Length): Verify signup is rejected (HTTP 400)
    if the password is less than 12 characters.
    """
    response = client.post(
        "/api/auth/signup",
        json={
            "email": "test_short@example.com",
            "password": "ShortPass1!"
        }
    )

    assert response.status_code == 400
    response_data = response.json()
    assert "12 characters" in response_data["detail"].lower()


@pytest.mark.parametrize("password,missing_type", [
    ("lowercasepass123!", "uppercase"),
    ("NOLOWERCASE123!", "lowercase"),
    ("NoDigitsSpecial!", "digit"),
    ("NoSpecialChars123", "special"),
])
def test_weak_password_rejection_missing_complexity(client, password, missing_type):
    """
    Test Weak Password Rejection (Missing Complexity): Verify signup is rejected (HTTP 400)
    if the password is 12+ characters but lacks complexity.
    """
    response = client.post(
        "/api/auth/signup",
        json={
            "email": f"test_{missing_type}@example.com",
            "password": password
        }
    )

    assert response.status_code == 400, f"Password '{password}' should be rejected for missing {missing_type}"
    assert missing_type in response.json()["detail"].lower()


def test_jwt_security_missing_key():
    """
    Test JWT Security (Missing Key): Confirm create_jwt() raises a ValueError
    if settings.jwt_secret_key is set to None or an empty string.
    """
    with patch('auth_utils.settings.jwt_secret_key', None):
        with pytest.raises(ValueError, match="JWT_SECRET_KEY is not set"):
            create_jwt("test_user_id")

    with patch('auth_utils.settings.jwt_secret_key', ""):
        with pytest.raises(ValueError, match="JWT_SECRET_KEY is not set"):
            create_jwt("test_user_id")


def test_authentication_failure_expired_token(client):
    """
    Test Authentication Failure (Expired Token): an endpoint protected by
    get_current_user returns HTTP 401 when given an expired JWT token.
    """
    if not settings.jwt_secret_key:
        pytest.skip("JWT_SECRET_KEY not set - cannot test expired token")

    signup_response = client.post(
        "/api/auth/signup",
        json={
            "email": "test_expired@example.com",
            "password": STRONG_PASSWORD
        }
    )
    assert signup_response.status_code == 200
    user_id = signup_response.json()["user_id"]

    expired_token = create_expired_jwt(user_id, expired_seconds_ago=1)

    # Using cookie
    response = client.get("/api/auth/me", cookies={"auth_token": expired_token})
    assert response.status_code == 401
    assert "expired" in response.json()["detail"].lower() or "invalid" in response.json()["detail"].lower()

    # Using Authorization header
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {expired_token}"})
    assert response.status_code == 401


def test_missing_token_is_rejected(client):
    response = client.post("/api/access/verify")

    assert response.status_code == 401
    assert response.json()["detail"] == "Authorization required"


def test_login_and_me(client):
    client.post("/api/auth/signup", json={"email": "me@example.com", "password": STRONG_PASSWORD})

    login = client.post("/api/auth/login", json={"email": "me@example.com", "password": STRONG_PASSWORD})
    assert login.status_code == 200
    token = login.json()["access_token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "me@example.com"
    assert me.json()["access_control"]["access_type"] == "free_trial"


def test_login_with_wrong_password(client):
    client.post("/api/auth/signup", json={"email": "wrong@example.com", "password": STRONG_PASSWORD})

    response = client.post("/api/auth/login", json={"email": "wrong@example.com", "password": "Nope12345678!"})

    assert response.status_code == 401


def test_deleted_account_returns_without_trial(client):
    signup = client.post("/api/auth/signup", json={"email": "twice@example.com", "password": STRONG_PASSWORD})
    token = signup.json()["access_token"]

    deleted = client.delete("/api/auth/account", headers={"Authorization": f"Bearer {token}"})
    assert deleted.status_code == 200

    again = client.post("/api/auth/signup", json={"email": "twice@example.com", "password": STRONG_PASSWORD})
    token = again.json()["access_token"]
    verdict = client.post("/api/access/verify", headers={"Authorization": f"Bearer {token}"}).json()["data"]["access_control"]

    assert verdict["is_returning_user"] is True
    assert verdict["protection_level"] == "expired"
    assert verdict["can_create_tool_account"] is False
