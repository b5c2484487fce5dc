"""CRUD operations for users, roles and remember-me tokens."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from backend.app.core.security import (
    generate_api_token,
    get_password_hash,
    password_needs_rehash,
    verify_password,
)
from backend.app.core.time import utc_now
from backend.app.crud.query import bind_limit
from backend.app.db.gateway import Database, ParamType

logger = logging.getLogger(__name__)

USER_STATUSES = ("active", "inactive", "suspended")
THEMES = ("light", "dark")

_SELECT = "SELECT u.*, r.name AS role_name FROM users u LEFT JOIN roles r ON u.role_id = r.id "


class CRUDUser:
    def create(self, db: Database, *, name: str, email: str, password: str, role_id: int = 2) -> int:
        """Register a user; `password` is the plain text and is hashed here."""
        db.prepare(
            "INSERT INTO users (name, email, password, role_id) VALUES (:name, :email, :password, :role_id)"
        )
        db.bind("name", name)
        db.bind("email", email)
        db.bind("password", get_password_hash(password))
        db.bind("role_id", role_id, ParamType.INT)
        db.execute()
        return db.last_insert_id()

    def get_by_email(self, db: Database, *, email: str) -> Optional[Dict[str, Any]]:
        db.prepare(f"{_SELECT}WHERE u.email = :email")
        db.bind("email", email)
        return db.fetch_one()

    def get(self, db: Database, *, user_id: int) -> Optional[Dict[str, Any]]:
        db.prepare(f"{_SELECT}WHERE u.id = :id")
        db.bind("id", user_id, ParamType.INT)
        return db.fetch_one()

    def authenticate(self, db: Database, *, email: str, password: str) -> Optional[Dict[str, Any]]:
        """Return the active user matching the credentials, upgrading the hash when needed."""
        user = self.get_by_email(db, email=email)
        if not user or user["status"] != "active":
            return None
        if not verify_password(password, user["password"]):
            return None
        self.record_login(db, user=user, password=password)
        return user

    def record_login(self, db: Database, *, user: Dict[str, Any], password: str) -> None:
        """Stamp last_login and re-hash the verified `password` when the stored cost is outdated."""
        self.update_last_login(db, user_id=user["id"])
        if password_needs_rehash(user["password"]):
            self.update_password(db, user_id=user["id"], password=password)

    def update_last_login(self, db: Database, *, user_id: int) -> None:
        db.prepare("UPDATE users SET last_login = :now WHERE id = :id")
        db.bind("now", utc_now())
        db.bind("id", user_id, ParamType.INT)
        db.execute()

    def update_password(self, db: Database, *, user_id: int, password: str) -> bool:
        db.prepare("UPDATE users SET password = :password, updated_at = :now WHERE id = :id")
        db.bind("password", get_password_hash(password))
        db.bind("now", utc_now())
        db.bind("id", user_id, ParamType.INT)
        db.execute()
        return db.row_count() > 0

    def update_profile(self, db: Database, *, user_id: int, data: Dict[str, Any]) -> bool:
        db.prepare(
            "UPDATE users SET name = :name, email = :email, phone = :phone, position = :position, "
            "theme = :theme, updated_at = :now WHERE id = :id"
        )
        db.bind("name", data["name"])
        db.bind("email", data["email"])
        db.bind("phone", data.get("phone"))
        db.bind("position", data.get("position"))
        db.bind("theme", data.get("theme") or "light")
        db.bind("now", utc_now())
        db.bind("id", user_id, ParamType.INT)
        db.execute()
        return db.row_count() > 0

    def update_theme(self, db: Database, *, user_id: int, theme: str) -> bool:
        db.prepare("UPDATE users SET theme = :theme, updated_at = :now WHERE id = :id")
        db.bind("theme", theme)
        db.bind("now", utc_now())
        db.bind("id", user_id, ParamType.INT)
        db.execute()
        return db.row_count() > 0

    def update_profile_image(self, db: Database, *, user_id: int, image: str) -> bool:
        db.prepare("UPDATE users SET profile_image = :image, updated_at = :now WHERE id = :id")
        db.bind("image", image)
        db.bind("now", utc_now())
        db.bind("id", user_id, ParamType.INT)
        db.execute()
        return db.row_count() > 0

    def get_multi(self, db: Database, *, limit: int = 10, offset: int = 0) -> List[Dict[str, Any]]:
        db.prepare(f"{_SELECT}ORDER BY u.name ASC, u.id ASC LIMIT :limit OFFSET :offset")
        bind_limit(db, limit, offset)
        users = db.fetch_all()
        for user in users:
            user.pop("password", None)
            user.pop("api_token", None)
        return users

    def count(self, db: Database) -> int:
        db.prepare("SELECT COUNT(*) AS total FROM users")
        return int(db.fetch_value(0))

    def get_agents(self, db: Database, *, role_ids: tuple = (1, 2)) -> List[Dict[str, Any]]:
        """Active users that can own contacts and deals."""
        db.prepare(
            "SELECT id, name, email FROM users WHERE status = 'active' "
            "AND role_id IN (:first_role, :second_role) ORDER BY name ASC, id ASC"
        )
        db.bind("first_role", role_ids[0], ParamType.INT)
        db.bind("second_role", role_ids[1], ParamType.INT)
        return db.fetch_all()

    def delete(self, db: Database, *, user_id: int) -> bool:
        db.prepare("DELETE FROM users WHERE id = :id")
        db.bind("id", user_id, ParamType.INT)
        db.execute()
        return db.row_count() > 0

    def update_status(self, db: Database, *, user_id: int, status: str) -> bool:
        db.prepare("UPDATE users SET status = :status, updated_at = :now WHERE id = :id")
        db.bind("status", status)
        db.bind("now", utc_now())
        db.bind("id", user_id, ParamType.INT)
        db.execute()
        return db.row_count() > 0

    def generate_api_token(self, db: Database, *, user_id: int, now: Optional[datetime] = None) -> str:
        token, expires_at = generate_api_token(now)
        db.prepare("UPDATE users SET api_token = :token, api_token_expiry = :expiry WHERE id = :id")
        db.bind("token", token)
        db.bind("expiry", expires_at)
        db.bind("id", user_id, ParamType.INT)
        db.execute()
        return token

    def verify_api_token(self, db: Database, *, token: str, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
        """The active user holding an unexpired `token`; no session is required."""
        if not token:
            return None
        db.prepare(f"{_SELECT}WHERE u.api_token = :token AND u.api_token_expiry > :now AND u.status = 'active'")
        db.bind("token", token)
        db.bind("now", now or utc_now())
        return db.fetch_one()

    def clear_api_token(self, db: Database, *, user_id: int) -> None:
        db.prepare("UPDATE users SET api_token = NULL, api_token_expiry = NULL WHERE id = :id")
        db.bind("id", user_id, ParamType.INT)
        db.execute()

    def get_roles(self, db: Database) -> List[Dict[str, Any]]:
        db.prepare("SELECT id, name, description FROM roles ORDER BY id")
        return db.fetch_all()


user_crud = CRUDUser()
