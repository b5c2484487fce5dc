"""Explicit per-request session state, carried between requests in a signed cookie."""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from backend.app.core.security import decode_session, encode_session
from backend.app.core.time import utc_now

logger = logging.getLogger(__name__)

SESSION_EXPIRED_MESSAGE = "Your session has expired. Please login again."


@dataclass
class SessionContext:
    user_id: Optional[int] = None
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    user_role: Optional[int] = None
    theme: str = "light"
    csrf_token: Optional[str] = None
    csrf_token_time: Optional[int] = None
    last_activity: Optional[int] = None
    flashes: Dict[str, Dict[str, str]] = field(default_factory=dict)

    @classmethod
    def from_cookie(cls, token: Optional[str]) -> "SessionContext":
        if not token:
            return cls()
        try:
            payload = decode_session(token)
        except ValueError:
            logger.info("Discarding session cookie that failed verification")
            return cls()
        known = {name: payload[name] for name in cls.__dataclass_fields__ if name in payload}
        return cls(**known)

    def to_cookie(self) -> str:
        return encode_session(asdict(self))

    @property
    def is_logged_in(self) -> bool:
        return self.user_id is not None

    def flash(self, name: str, message: str, css_class: str = "alert alert-success") -> None:
        """Queue a one-time message unless one with the same name is already waiting."""
        if name not in self.flashes:
            self.flashes[name] = {"message": message, "class": css_class}

    def set_flash(self, name: str, message: str, css_class: str = "alert alert-success") -> None:
        self.flashes[name] = {"message": message, "class": css_class}

    def pop_flashes(self) -> Dict[str, Dict[str, str]]:
        flashes = self.flashes
        self.flashes = {}
        return flashes

    def set_user(self, user: Dict[str, Any], now: Optional[datetime] = None) -> None:
        self.user_id = user["id"]
        self.user_email = user["email"]
        self.user_name = user["name"]
        self.user_role = user["role_id"]
        self.theme = user.get("theme") or self.theme
        self.last_activity = int((now or utc_now()).timestamp())

    def clear_user(self) -> None:
        self.user_id = None
        self.user_email = None
        self.user_name = None
        self.user_role = None
        self.last_activity = None

    def check_timeout(self, timeout: int, now: Optional[datetime] = None) -> bool:
        """Log the user out after `timeout` idle seconds; otherwise refresh activity."""
        now_ts = int((now or utc_now()).timestamp())
        if self.is_logged_in and self.last_activity is not None and now_ts - self.last_activity > timeout:
            logger.info("Session for user %s timed out", self.user_id)
            self.clear_user()
            self.flash("session_expired", SESSION_EXPIRED_MESSAGE, "alert alert-warning")
            return True
        if self.is_logged_in:
            self.last_activity = now_ts
        return False
