"""Tests for token signing and password hashing."""

from datetime import timedelta
from types import SimpleNamespace

import pytest
from jose import jwt

from portal.core.config import settings
from portal.core.exceptions import InvalidToken, TokenExpired
from portal.core.security import (
    create_access_token,
    create_reset_token,
    decode_access_token,
    decode_access_token_for_refresh,
    decode_reset_token,
    get_password_hash,
    subject_id,
    verify_password,
)


def _user(**overrides):
    data = {
        "id": 7,
        "email": "someone@example.com",
        "role": "local_manager",
        "cities": [SimpleNamespace(id=3), SimpleNamespace(id=5)],
    }
    data.update(overrides)
    return SimpleNamespace(**data)


def test_password_hash_roundtrip():
    hashed = get_password_hash("s3cret")
    assert hashed != "s3cret"
    assert verify_password("s3cret", hashed)
    assert not verify_password("wrong", hashed)


def test_verify_password_rejects_missing_or_garbage_hash():
    assert not verify_password("anything", None)
    assert not verify_password("anything", "")
    assert not verify_password("anything", "not-a-bcrypt-hash")


def test_access_token_carries_subject_role_and_cities():
    payload = decode_access_token(create_access_token(_user()))
    assert payload["sub"] == "7"
    assert payload["role"] == "local_manager"
    assert payload["cities"] == [3, 5]
    assert payload["type"] == "access"
    assert subject_id(payload) == 7


def test_expired_access_token_raises_token_expired():
    token = create_access_token(_user(), expires_delta=timedelta(seconds=-10))
    with pytest.raises(TokenExpired) as exc_info:
        decode_access_token(token)
    assert exc_info.value.message == "Session expired"
    # TokenExpired is still an InvalidToken
    assert isinstance(exc_info.value, InvalidToken)


def test_refresh_decode_ignores_expiry_but_not_signature():
    token = create_access_token(_user(), expires_delta=timedelta(seconds=-10))
    assert decode_access_token_for_refresh(token)["sub"] == "7"

    forged = jwt.encode({"sub": "7", "type": "access"}, "another-secret", algorithm="HS256")
    with pytest.raises(InvalidToken):
        decode_access_token_for_refresh(forged)


def test_reset_token_is_not_an_access_token():
    token, _expires = create_reset_token(_user())
    assert decode_reset_token(token)["sub"] == "7"
    with pytest.raises(InvalidToken):
        decode_access_token(token)


def test_access_token_is_not_a_reset_token():
    with pytest.raises(InvalidToken):
        decode_reset_token(create_access_token(_user()))


def test_malformed_token_is_invalid():
    with pytest.raises(InvalidToken):
        decode_access_token("not.a.token")


def test_token_without_subject_is_invalid():
    token = jwt.encode({"type": "access"}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    with pytest.raises(InvalidToken):
        decode_access_token(token)


def test_subject_id_rejects_non_numeric_subject():
    with pytest.raises(InvalidToken):
        subject_id({"sub": "abc"})
