from datetime import datetime, timedelta, timezone

import jwt
import pytest
from passlib.hash import bcrypt

from backend.app.core.security import (
    decode_session,
    encode_session,
    generate_api_token,
    get_password_hash,
    issue_csrf_token,
    password_needs_rehash,
    validate_csrf_token,
    verify_password,
)
from backend.app.core.session import SessionContext
from backend.app.core.settings import get_settings

NOW = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)


def test_password_hashing_not_plain():
    plain = "password123"
    hashed = get_password_hash(plain)
    assert hashed and hashed != plain
    assert hashed.startswith("$2")


def test_verify_password():
    hashed = get_password_hash("secret")
    assert verify_password("secret", hashed)
    assert not verify_password("wrong", hashed)


def test_verify_password_rejects_unknown_hash_formats():
    assert not verify_password("secret", "")
    assert not verify_password("secret", "plain-text-password")


def test_current_hashes_do_not_need_rehash():
    assert not password_needs_rehash(get_password_hash("secret"))


def test_hashes_with_another_cost_need_rehash():
    cost = get_settings().password_hash_cost
    other = bcrypt.using(rounds=cost + 1).hash("secret")
    assert verify_password("secret", other)
    assert password_needs_rehash(other)


def test_session_payload_round_trip():
    token = encode_session({"user_id": 3, "theme": "dark"})
    assert decode_session(token) == {"user_id": 3, "theme": "dark"}


def test_tampered_session_is_rejected():
    forged = jwt.encode({"user_id": 1}, "not-the-secret", algorithm="HS256")
    with pytest.raises(ValueError):
        decode_session(forged)
    with pytest.raises(ValueError):
        decode_session("garbage")


def test_csrf_token_is_reused_until_expiry():
    session = SessionContext()
    first = issue_csrf_token(session, now=NOW, lifetime=3600)
    assert len(first) == 64
    assert issue_csrf_token(session, now=NOW + timedelta(minutes=30), lifetime=3600) == first
    renewed = issue_csrf_token(session, now=NOW + timedelta(hours=1), lifetime=3600)
    assert renewed != first
    assert session.csrf_token_time == int((NOW + timedelta(hours=1)).timestamp())


def test_csrf_validates_matching_token():
    session = SessionContext()
    token = issue_csrf_token(session, now=NOW, lifetime=3600)
    assert validate_csrf_token(session, token, now=NOW + timedelta(minutes=59), lifetime=3600)


def test_csrf_rejects_token_never_issued():
    assert not validate_csrf_token(SessionContext(), "a" * 64, now=NOW, lifetime=3600)


def test_csrf_rejects_mismatch_and_missing():
    session = SessionContext()
    issue_csrf_token(session, now=NOW, lifetime=3600)
    assert not validate_csrf_token(session, "b" * 64, now=NOW, lifetime=3600)
    assert not validate_csrf_token(session, None, now=NOW, lifetime=3600)
    assert not validate_csrf_token(session, "", now=NOW, lifetime=3600)


def test_csrf_rejects_expired_token():
    session = SessionContext()
    token = issue_csrf_token(session, now=NOW, lifetime=3600)
    assert not validate_csrf_token(session, token, now=NOW + timedelta(hours=1), lifetime=3600)


def test_csrf_uses_configured_lifetime_by_default():
    session = SessionContext()
    token = issue_csrf_token(session, now=NOW)
    lifetime = get_settings().csrf_token_lifetime
    assert validate_csrf_token(session, token, now=NOW + timedelta(seconds=lifetime - 1))
    assert not validate_csrf_token(session, token, now=NOW + timedelta(seconds=lifetime))


def test_generate_api_token_expiry():
    token, expires_at = generate_api_token(now=NOW, lifetime=60)
    assert len(token) == 64
    assert expires_at == NOW + timedelta(seconds=60)
    assert generate_api_token(now=NOW, lifetime=60)[0] != token
