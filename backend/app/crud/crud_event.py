"""CRUD and calendar queries for events. Writes are scoped to the owning user."""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from backend.app.core.time import parse_db_datetime, utc_now
from backend.app.crud.crud_reminder import reminder_crud
from backend.app.crud.query import bind_limit
from backend.app.db.gateway import Database, ParamType

logger = logging.getLogger(__name__)

EVENT_FIELDS = [
    "title",
    "description",
    "start_time",
    "end_time",
    "all_day",
    "location",
    "color",
    "contact_id",
    "reminder",
]
DEFAULT_COLOR = "#4F46E5"

_SELECT = (
    "SELECT e.*, c.first_name AS contact_first_name, c.last_name AS contact_last_name "
    "FROM events e LEFT JOIN contacts c ON e.contact_id = c.id "
)


def _with_contact_name(row: Dict[str, Any]) -> Dict[str, Any]:
    first = row.pop("contact_first_name", None)
    last = row.pop("contact_last_name", None)
    row["contact_name"] = f"{first} {last}".strip() if first is not None else None
    row["all_day"] = bool(row.get("all_day"))
    return row


class CRUDEvent:
    def get_multi(self, db: Database, *, user_id: int, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        """Events of the user overlapping [start, end]."""
        db.prepare(
            f"{_SELECT}WHERE e.user_id = :user_id AND ("
            "(e.start_time BETWEEN :start AND :end) "
            "OR (e.end_time BETWEEN :start AND :end) "
            "OR (e.start_time <= :start AND e.end_time >= :end)"
            ") ORDER BY e.start_time ASC, e.id ASC"
        )
        db.bind("user_id", user_id, ParamType.INT)
        db.bind("start", start)
        db.bind("end", end)
        return [_with_contact_name(row) for row in db.fetch_all()]

    def get(self, db: Database, *, event_id: int, user_id: Optional[int] = None) -> Optional[Dict[str, Any]]:
        sql = f"{_SELECT}WHERE e.id = :id"
        if user_id is not None:
            sql += " AND e.user_id = :user_id"
        db.prepare(sql)
        db.bind("id", event_id, ParamType.INT)
        if user_id is not None:
            db.bind("user_id", user_id, ParamType.INT)
        row = db.fetch_one()
        return _with_contact_name(row) if row else None

    def create(self, db: Database, *, data: Mapping[str, Any], user_id: int) -> int:
        values = {field: data[field] for field in EVENT_FIELDS if field in data}
        values["all_day"] = bool(values.get("all_day", False))
        values["color"] = values.get("color") or DEFAULT_COLOR
        columns = list(values) + ["user_id"]
        db.prepare(
            f"INSERT INTO events ({', '.join(columns)}) VALUES ({', '.join(':' + column for column in columns)})"
        )
        db.bind_all(values)
        db.bind("user_id", user_id, ParamType.INT)
        db.execute()
        return db.last_insert_id()

    def update(self, db: Database, *, event_id: int, user_id: int, data: Mapping[str, Any]) -> bool:
        values = {field: data[field] for field in EVENT_FIELDS if field in data}
        if "all_day" in values:
            values["all_day"] = bool(values["all_day"])
        values["updated_at"] = utc_now()
        assignments = ", ".join(f"{column} = :{column}" for column in values)
        db.prepare(f"UPDATE events SET {assignments} WHERE id = :id AND user_id = :user_id")
        db.bind_all(values)
        db.bind("id", event_id, ParamType.INT)
        db.bind("user_id", user_id, ParamType.INT)
        db.execute()
        return db.row_count() > 0

    def move(self, db: Database, *, event_id: int, user_id: int, start: datetime, end: Optional[datetime]) -> bool:
        return self.update(db, event_id=event_id, user_id=user_id, data={"start_time": start, "end_time": end})

    def delete(self, db: Database, *, event_id: int, user_id: int) -> bool:
        try:
            with db.transaction():
                db.prepare("DELETE FROM events WHERE id = :id AND user_id = :user_id")
                db.bind("id", event_id, ParamType.INT)
                db.bind("user_id", user_id, ParamType.INT)
                db.execute()
                deleted = db.row_count() > 0
                if deleted:
                    reminder_crud.delete_related(db, related_type="event", related_ids=[event_id])
        except SQLAlchemyError:
            logger.exception("Failed to delete event %s", event_id)
            return False
        return deleted

    def get_upcoming(
        self, db: Database, *, user_id: int, limit: int = 5, now: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        db.prepare(
            f"{_SELECT}WHERE e.user_id = :user_id AND e.start_time >= :now "
            "ORDER BY e.start_time ASC, e.id ASC LIMIT :limit OFFSET :offset"
        )
        db.bind("user_id", user_id, ParamType.INT)
        db.bind("now", now or utc_now())
        bind_limit(db, limit, 0)
        return [_with_contact_name(row) for row in db.fetch_all()]

    def get_for_contact(
        self, db: Database, *, contact_id: int, limit: Optional[int] = 10, offset: int = 0
    ) -> List[Dict[str, Any]]:
        sql = f"{_SELECT}WHERE e.contact_id = :contact_id ORDER BY e.start_time DESC, e.id DESC"
        if limit is not None:
            sql += " LIMIT :limit OFFSET :offset"
        db.prepare(sql)
        db.bind("contact_id", contact_id, ParamType.INT)
        if limit is not None:
            bind_limit(db, limit, offset)
        return [_with_contact_name(row) for row in db.fetch_all()]

    def count_for_contact(self, db: Database, *, contact_id: int) -> int:
        db.prepare("SELECT COUNT(*) AS total FROM events WHERE contact_id = :contact_id")
        db.bind("contact_id", contact_id, ParamType.INT)
        return int(db.fetch_value(0))

    def get_needing_reminders(self, db: Database, *, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Future events whose reminder offset has been reached and that have no live reminder yet."""
        now = now or utc_now()
        db.prepare(
            f"{_SELECT}WHERE e.reminder IS NOT NULL AND e.start_time > :now "
            "AND NOT EXISTS (SELECT 1 FROM reminders r WHERE r.related_type = 'event' "
            "AND r.related_id = e.id AND r.status <> 'dismissed') "
            "ORDER BY e.start_time ASC, e.id ASC"
        )
        db.bind("now", now)
        naive_now = parse_db_datetime(now)
        due = []
        for row in db.fetch_all():
            start = parse_db_datetime(row["start_time"])
            if start - timedelta(minutes=int(row["reminder"])) <= naive_now:
                due.append(_with_contact_name(row))
        return due

    def create_reminder(self, db: Database, *, event: Mapping[str, Any]) -> int:
        description = f"You have an upcoming event: {event['title']}"
        if event.get("location"):
            description += f" at {event['location']}"
        return reminder_crud.create(
            db,
            data={
                "title": f"Event Reminder: {event['title']}",
                "description": description,
                "due_date": parse_db_datetime(event["start_time"]),
                "priority": "medium",
                "related_type": "event",
                "related_id": event["id"],
            },
            user_id=event["user_id"],
        )

    def count_by_weekday(
        self, db: Database, *, user_id: int, weeks: int = 4, now: Optional[datetime] = None
    ) -> Dict[int, int]:
        """Events started in the last `weeks` weeks per weekday, keyed 1..7 with 1 = Sunday."""
        counts = {day: 0 for day in range(1, 8)}
        now = now or utc_now()
        weekday_expr = db.weekday_of("start_time")
        db.prepare(
            f"SELECT {weekday_expr} AS weekday, COUNT(*) AS count FROM events "
            "WHERE user_id = :user_id AND start_time BETWEEN :since AND :now "
            f"GROUP BY {weekday_expr}"
        )
        db.bind("user_id", user_id, ParamType.INT)
        db.bind("since", now - timedelta(weeks=weeks))
        db.bind("now", now)
        for row in db.fetch_all():
            counts[int(row["weekday"])] = int(row["count"])
        return counts


event_crud = CRUDEvent()
