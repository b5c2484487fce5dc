"""Turns due event reminder offsets into reminder rows."""

import logging
from datetime import datetime
from typing import List, Optional

from backend.app.crud.crud_event import event_crud

logger = logging.getLogger(__name__)


def generate_event_reminders(db, *, now: Optional[datetime] = None, user_id: Optional[int] = None) -> List[int]:
    """Create one reminder per event whose reminder time has arrived; returns the new reminder ids."""
    created = []
    for event in event_crud.get_needing_reminders(db, now=now):
        if user_id is not None and event["user_id"] != user_id:
            continue
        created.append(event_crud.create_reminder(db, event=event))
    if created:
        logger.info("Created %s event reminders", len(created))
    return created
