"""Schema creation and reference data seeding."""

import logging

from sqlalchemy.orm import Session

from backend.app.db.base import Base
from backend.app.db.session import engine
from backend.app.models.role import Role
from backend.app.models.setting import Setting

logger = logging.getLogger(__name__)

DEFAULT_ROLES = [
    (1, "Admin", "Administrator with full access"),
    (2, "Agent", "Sales agent with limited access"),
    (3, "Client", "Client with minimal access"),
]

DEFAULT_SETTINGS = [
    ("company_name", "Flopy CRM", "general"),
    ("company_email", "info@flopy.com", "general"),
    ("company_phone", "+1234567890", "general"),
    ("company_address", "123 Main St, City, Country", "general"),
    ("default_currency", "USD", "general"),
    ("date_format", "Y-m-d", "general"),
    ("time_format", "H:i", "general"),
    ("items_per_page", "10", "general"),
    ("allow_registration", "1", "security"),
    ("default_lead_status", "new", "contacts"),
    ("default_lead_source", "website", "contacts"),
]


def seed_reference_data(db: Session) -> None:
    created = False
    for role_id, name, description in DEFAULT_ROLES:
        if db.get(Role, role_id) is None:
            db.add(Role(id=role_id, name=name, description=description))
            created = True
    for key, value, group in DEFAULT_SETTINGS:
        existing = db.query(Setting).filter(Setting.setting_key == key).first()
        if existing is None:
            db.add(Setting(setting_key=key, setting_value=value, setting_group=group))
            created = True
    if created:
        db.commit()
        logger.info("Seeded roles and default settings")


def init_db(db: Session) -> None:
    Base.metadata.create_all(bind=engine)
    seed_reference_data(db)
