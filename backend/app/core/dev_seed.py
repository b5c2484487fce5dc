import logging
import os

from sqlalchemy.orm import Session

from backend.app.core.security import get_password_hash
from backend.app.core.settings import get_settings
from backend.app.models.user import User

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_NAME = "Admin User"
DEFAULT_ADMIN_EMAIL = "admin@flopy.com"
DEFAULT_ADMIN_PASSWORD = "admin123"


def ensure_default_admin(db: Session) -> None:
    """
    Create the default admin account for local development if it does not exist.
    Skips execution when running under pytest to avoid altering test expectations.
    """
    if os.getenv("PYTEST_CURRENT_TEST"):
        return

    existing = db.query(User).filter(User.email == DEFAULT_ADMIN_EMAIL).first()
    if existing:
        return

    db.add(
        User(
            name=DEFAULT_ADMIN_NAME,
            email=DEFAULT_ADMIN_EMAIL,
            password=get_password_hash(DEFAULT_ADMIN_PASSWORD),
            role_id=get_settings().role_admin,
            status="active",
        )
    )
    db.commit()
    logger.info("Created default admin user %s", DEFAULT_ADMIN_EMAIL)
