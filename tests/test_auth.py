from datetime import timedelta

import pytest

from auth import (
    BCRYPT_MAX_BYTES, hash_password, verify_password, encode_member_id,
    new_refresh_token, is_expired, utc_now
)
from mailer import render
from models import Member


def test_verify_password_rejects_overlong_candidate():
    hashed = hash_password("a" * BCRYPT_MAX_BYTES)
    assert verify_password("a" * BCRYPT_MAX_BYTES, hashed)
    assert not verify_password("a" * (BCRYPT_MAX_BYTES + 1), hashed)
    assert not verify_password("선" * 30, hashed)


def test_hash_password_rejects_overlong_password():
    with pytest.raises(ValueError):
        hash_password("선" * 25)


def test_anonymized_values_fit_their_columns():
    suffix = encode_member_id(2 ** 63 - 1)
    columns = Member.__table__.c
    assert columns.email.type.length >= 254 + len(suffix)
    assert columns.username.type.length >= 20 + len(suffix)


def test_refresh_token_expiry():
    token = new_refresh_token(1)
    assert token.expires_at.tzinfo is None
    assert not is_expired(token)

    token.expires_at = utc_now().replace(tzinfo=None) - timedelta(seconds=1)
    assert is_expired(token)


def test_render_escapes_variables():
    body = render("recovery", {"username": "<b>ana</b>", "tempPassword": "a1b2c3d4e5"})
    assert "&lt;b&gt;ana&lt;/b&gt;" in body
    assert "<b>ana</b>" not in body
    assert "a1b2c3d4e5" in body
