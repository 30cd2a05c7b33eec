import pytest

from homecare.core.security import get_password_hash, issue_actor_token, read_actor_token, verify_password


def test_password_hash_and_verify():
    plain = "StrongPass123"
    hashed = get_password_hash(plain)

    assert hashed != plain
    assert verify_password(plain, hashed) is True
    assert verify_password("WrongPass123", hashed) is False


def test_actor_token_round_trip_carries_role():
    token = issue_actor_token(user_id=7, role="provider", email="nurse@example.com")

    claims = read_actor_token(token)

    assert claims.user_id == 7
    assert claims.role == "provider"
    assert claims.email == "nurse@example.com"


def test_tampered_token_is_rejected():
    token = issue_actor_token(user_id=7, role="customer", email="c@example.com")

    with pytest.raises(ValueError):
        read_actor_token(token[:-2] + "xx")
