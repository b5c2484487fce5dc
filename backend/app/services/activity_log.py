"""Activity logging for user actions."""

import logging
from typing import Optional

from backend.app.crud.crud_activity_log import activity_log_crud
from backend.app.db.gateway import Database

logger = logging.getLogger(__name__)


def log_activity(
    db: Database,
    *,
    user_id: Optional[int],
    action: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    description: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> int:
    logger.info("user=%s action=%s %s=%s", user_id, action, entity_type, entity_id)
    return activity_log_crud.create(
        db,
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        description=description,
        ip_address=ip_address,
        user_agent=user_agent,
    )
