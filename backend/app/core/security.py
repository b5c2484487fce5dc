"""Security utilities for Flopy CRM: password hashing, signed session payloads,
CSRF tokens and remember-me tokens.

Session payloads are signed with HS256 and validated with consistent error
handling. CSRF and remember-me tokens are random hex strings; CSRF tokens
carry an issue timestamp checked only after a constant-time equality check.
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext

from backend.app.core.settings import get_settings
from backend.app.core.time import utc_now

logger = logging.getLogger(__name__)

_hash_cost = get_settings().password_hash_cost

# Pinning min and max to the cost makes any other cost count as outdated
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=_hash_cost,
    bcrypt__min_rounds=_hash_cost,
    bcrypt__max_rounds=_hash_cost,
)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Stored value is not a recognised hash
        return False


def password_needs_rehash(hashed_password: str) -> bool:
    return pwd_context.needs_update(hashed_password)


def encode_session(payload: Dict[str, Any]) -> str:
    settings = get_settings()
    return jwt.encode(payload, settings.SECRET_KEY, algorithm="HS256")


def decode_session(token: str) -> Dict[str, Any]:
    settings = get_settings()
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=["HS256"])
    except jwt.ExpiredSignatureError as exc:
        raise ValueError("Expired token") from exc
    except jwt.InvalidTokenError as exc:
        raise ValueError("Invalid token") from exc


def _timestamp(now: Optional[datetime]) -> int:
    return int((now or utc_now()).timestamp())


def issue_csrf_token(session, now: Optional[datetime] = None, lifetime: Optional[int] = None) -> str:
    """Return the session's CSRF token, minting a new one when absent or expired."""
    lifetime = lifetime if lifetime is not None else get_settings().csrf_token_lifetime
    now_ts = _timestamp(now)
    issued_at = session.csrf_token_time
    if not session.csrf_token or issued_at is None or now_ts - issued_at >= lifetime:
        session.csrf_token = secrets.token_hex(32)
        session.csrf_token_time = now_ts
    return session.csrf_token


def validate_csrf_token(
    session,
    token: Optional[str],
    now: Optional[datetime] = None,
    lifetime: Optional[int] = None,
) -> bool:
    lifetime = lifetime if lifetime is not None else get_settings().csrf_token_lifetime
    if not token or not session.csrf_token or session.csrf_token_time is None:
        return False
    if not secrets.compare_digest(str(token).encode(), session.csrf_token.encode()):
        return False
    return _timestamp(now) - session.csrf_token_time < lifetime


def generate_api_token(now: Optional[datetime] = None, lifetime: Optional[int] = None) -> tuple[str, datetime]:
    """Return a new remember-me token and its expiry."""
    lifetime = lifetime if lifetime is not None else get_settings().api_key_lifetime
    expires_at = (now or utc_now()) + timedelta(seconds=lifetime)
    return secrets.token_hex(32), expires_at
