"""CRUD and activity queries for contact interactions."""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from backend.app.core.time import utc_now
from backend.app.crud.crud_reminder import reminder_crud
from backend.app.crud.query import bind_limit, normalize_direction, normalize_sort, order_clause
from backend.app.db.gateway import Database, ParamType

logger = logging.getLogger(__name__)

INTERACTION_TYPES = ("call", "email", "meeting", "task", "note", "other")
INTERACTION_STATUSES = ("planned", "completed", "canceled")
INTERACTION_FIELDS = ["contact_id", "type", "subject", "description", "date", "duration", "status", "outcome"]

SORTABLE_FIELDS = {
    "date": "i.date",
    "type": "i.type",
    "status": "i.status",
    "subject": "i.subject",
    "created_at": "i.created_at",
}
DEFAULT_SORT = "date"

PERIOD_DAYS = {"week": 7, "month": 30, "quarter": 90, "year": 365}

_SELECT = (
    "SELECT i.*, u.name AS created_by_name, c.first_name AS contact_first_name, "
    "c.last_name AS contact_last_name FROM interactions i "
    "JOIN contacts c ON i.contact_id = c.id "
    "LEFT JOIN users u ON i.created_by = u.id "
)


def _with_contact_name(row: Dict[str, Any]) -> Dict[str, Any]:
    first = row.pop("contact_first_name", None)
    last = row.pop("contact_last_name", None)
    row["contact_name"] = f"{first} {last}".strip() if first is not None else None
    return row


class CRUDInteraction:
    def get_for_contact(
        self,
        db: Database,
        *,
        contact_id: int,
        limit: Optional[int] = 10,
        offset: int = 0,
        sort_by: Optional[str] = DEFAULT_SORT,
        direction: Optional[str] = "DESC",
    ) -> List[Dict[str, Any]]:
        sort_column = normalize_sort(sort_by, SORTABLE_FIELDS, DEFAULT_SORT)
        sql = (
            f"{_SELECT}WHERE i.contact_id = :contact_id "
            f"{order_clause(sort_column, normalize_direction(direction), 'i.id')}"
        )
        if limit is not None:
            sql += " LIMIT :limit OFFSET :offset"
        db.prepare(sql)
        db.bind("contact_id", contact_id, ParamType.INT)
        if limit is not None:
            bind_limit(db, limit, offset)
        return [_with_contact_name(row) for row in db.fetch_all()]

    def count_for_contact(self, db: Database, *, contact_id: int) -> int:
        db.prepare("SELECT COUNT(*) AS total FROM interactions i WHERE i.contact_id = :contact_id")
        db.bind("contact_id", contact_id, ParamType.INT)
        return int(db.fetch_value(0))

    def get(self, db: Database, *, interaction_id: int) -> Optional[Dict[str, Any]]:
        db.prepare(f"{_SELECT}WHERE i.id = :id")
        db.bind("id", interaction_id, ParamType.INT)
        row = db.fetch_one()
        return _with_contact_name(row) if row else None

    def create(self, db: Database, *, data: Mapping[str, Any], created_by: int) -> int:
        values = {field: data[field] for field in INTERACTION_FIELDS if field in data}
        values["status"] = values.get("status") or "planned"
        columns = list(values) + ["created_by"]
        db.prepare(
            f"INSERT INTO interactions ({', '.join(columns)}) "
            f"VALUES ({', '.join(':' + column for column in columns)})"
        )
        db.bind_all(values)
        db.bind("created_by", created_by, ParamType.INT)
        db.execute()
        return db.last_insert_id()

    def update(self, db: Database, *, interaction_id: int, data: Mapping[str, Any]) -> bool:
        values = {field: data[field] for field in INTERACTION_FIELDS if field in data and field != "contact_id"}
        values["updated_at"] = utc_now()
        assignments = ", ".join(f"{column} = :{column}" for column in values)
        db.prepare(f"UPDATE interactions SET {assignments} WHERE id = :id")
        db.bind_all(values)
        db.bind("id", interaction_id, ParamType.INT)
        db.execute()
        return db.row_count() > 0

    def update_status(self, db: Database, *, interaction_id: int, status: str, outcome: Optional[str] = None) -> bool:
        return self.update(db, interaction_id=interaction_id, data={"status": status, "outcome": outcome})

    def delete(self, db: Database, *, interaction_id: int) -> bool:
        try:
            with db.transaction():
                reminder_crud.delete_related(db, related_type="interaction", related_ids=[interaction_id])
                db.prepare("DELETE FROM interactions WHERE id = :id")
                db.bind("id", interaction_id, ParamType.INT)
                db.execute()
                deleted = db.row_count() > 0
        except SQLAlchemyError:
            logger.exception("Failed to delete interaction %s", interaction_id)
            return False
        return deleted

    def get_calendar(self, db: Database, *, user_id: int, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        """Non-canceled interactions in [start, end] on contacts owned or created by the user."""
        db.prepare(
            f"{_SELECT}WHERE i.date BETWEEN :start AND :end AND i.status <> 'canceled' "
            "AND (c.owner_id = :user_id OR i.created_by = :user_id) ORDER BY i.date ASC, i.id ASC"
        )
        db.bind("start", start)
        db.bind("end", end)
        db.bind("user_id", user_id, ParamType.INT)
        return [_with_contact_name(row) for row in db.fetch_all()]

    def get_upcoming(
        self, db: Database, *, user_id: int, limit: int = 5, now: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        db.prepare(
            f"{_SELECT}WHERE i.status = 'planned' AND i.date >= :now "
            "AND (i.created_by = :user_id OR c.owner_id = :user_id) "
            "ORDER BY i.date ASC, i.id ASC LIMIT :limit OFFSET :offset"
        )
        db.bind("now", now or utc_now())
        db.bind("user_id", user_id, ParamType.INT)
        bind_limit(db, limit, 0)
        return [_with_contact_name(row) for row in db.fetch_all()]

    def get_recent_completed(self, db: Database, *, user_id: int, limit: int = 5) -> List[Dict[str, Any]]:
        db.prepare(
            f"{_SELECT}WHERE i.status = 'completed' "
            "AND (i.created_by = :user_id OR c.owner_id = :user_id) "
            "ORDER BY i.date DESC, i.id DESC LIMIT :limit OFFSET :offset"
        )
        db.bind("user_id", user_id, ParamType.INT)
        bind_limit(db, limit, 0)
        return [_with_contact_name(row) for row in db.fetch_all()]

    def count_by_type(
        self, db: Database, *, user_id: Optional[int] = None, period: Optional[str] = None, now: Optional[datetime] = None
    ) -> Dict[str, int]:
        counts = {interaction_type: 0 for interaction_type in INTERACTION_TYPES}
        sql = "SELECT type, COUNT(*) AS count FROM interactions WHERE 1=1"
        if user_id is not None:
            sql += " AND created_by = :user_id"
        if period in PERIOD_DAYS:
            sql += " AND date >= :since"
        db.prepare(sql + " GROUP BY type")
        if user_id is not None:
            db.bind("user_id", user_id, ParamType.INT)
        if period in PERIOD_DAYS:
            db.bind("since", (now or utc_now()) - timedelta(days=PERIOD_DAYS[period]))
        for row in db.fetch_all():
            if row["type"] in counts:
                counts[row["type"]] = int(row["count"])
        return counts

    def count_by_status(self, db: Database, *, user_id: Optional[int] = None) -> Dict[str, int]:
        counts = {status: 0 for status in INTERACTION_STATUSES}
        sql = "SELECT status, COUNT(*) AS count FROM interactions"
        if user_id is not None:
            sql += " WHERE created_by = :user_id"
        db.prepare(sql + " GROUP BY status")
        if user_id is not None:
            db.bind("user_id", user_id, ParamType.INT)
        for row in db.fetch_all():
            if row["status"] in counts:
                counts[row["status"]] = int(row["count"])
        return counts

    def count_by_month(self, db: Database, *, year: int, user_id: Optional[int] = None) -> Dict[int, int]:
        """Interactions per calendar month of `year`, keyed 1..12."""
        counts = {month: 0 for month in range(1, 13)}
        month_expr = db.month_of("date")
        sql = f"SELECT {month_expr} AS month, COUNT(*) AS count FROM interactions WHERE {db.year_of('date')} = :year"
        if user_id is not None:
            sql += " AND created_by = :user_id"
        db.prepare(sql + f" GROUP BY {month_expr}")
        db.bind("year", year, ParamType.INT)
        if user_id is not None:
            db.bind("user_id", user_id, ParamType.INT)
        for row in db.fetch_all():
            counts[int(row["month"])] = int(row["count"])
        return counts


interaction_crud = CRUDInteraction()
