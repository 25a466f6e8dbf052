import pytest
from fastapi import status

from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)


def test_password_hashing():
    """Test password hashing and verification."""
    hashed = hash_password("TestPass123!")

    assert verify_password("TestPass123!", hashed) is True
    assert verify_password("WrongPassword", hashed) is False


def test_decode_valid_access_token():
    """Test decoding a valid access token."""
    token = create_access_token("123")
    payload = decode_token(token, "access")

    assert payload["sub"] == "123"
    assert payload["type"] == "access"


def test_decode_valid_refresh_token():
    """Test decoding a valid refresh token."""
    token = create_refresh_token("123")
    payload = decode_token(token, "refresh")

    assert payload["sub"] == "123"
    assert payload["type"] == "refresh"


def test_decode_invalid_token_type():
    """Test decoding a token with wrong expected type."""
    token = create_access_token("123")

    with pytest.raises(ValueError):
        decode_token(token, "refresh")


def test_decode_invalid_token():
    """Test decoding an invalid token."""
    with pytest.raises(ValueError):
        decode_token("invalid.token.string", "access")


def test_login_and_me(client, patient):
    """Login returns a token pair that authenticates /auth/me."""
    r = client.post(
        "/api/v1/auth/login", json={"email": "paciente@example.com", "password": "TestPass123!"}
    )
    assert r.status_code == status.HTTP_200_OK
    tokens = r.json()
    assert tokens["token_type"] == "bearer"

    me = client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"}
    )
    assert me.status_code == status.HTTP_200_OK
    assert me.json()["id"] == patient.id
    assert me.json()["role"] == "patient"
    assert me.json()["professional_id"] is None


def test_login_wrong_password(client, patient):
    r = client.post(
        "/api/v1/auth/login", json={"email": "paciente@example.com", "password": "nope"}
    )
    assert r.status_code == status.HTTP_401_UNAUTHORIZED


def test_refresh_issues_new_pair(client, patient):
    refresh = create_refresh_token(str(patient.id))
    r = client.post("/api/v1/auth/refresh", headers={"Authorization": f"Bearer {refresh}"})
    assert r.status_code == status.HTTP_200_OK
    assert decode_token(r.json()["access_token"], "access")["sub"] == str(patient.id)


def test_protected_route_requires_token(client, professional):
    r = client.get(f"/api/v1/professionals/{professional.id}/availability")
    assert r.status_code == status.HTTP_401_UNAUTHORIZED


def test_access_token_carries_role_hint():
    payload = decode_token(create_access_token("7", role="patient"), "access")
    assert payload["role"] == "patient"
    assert payload["sub"] == "7"
