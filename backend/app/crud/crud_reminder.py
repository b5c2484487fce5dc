"""CRUD operations for reminders.

`related_type`/`related_id` is a weak reference: reads tolerate a missing
target (`related_name` is None) and deletes of contacts, deals,
interactions and events remove the reminders that point at them.
"""

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from backend.app.core.time import utc_now
from backend.app.crud.query import FilterBuilder, bind_limit
from backend.app.db.gateway import Database, ParamType

REMINDER_STATUSES = ("pending", "completed", "dismissed")
REMINDER_PRIORITIES = ("low", "medium", "high")
RELATED_TYPES = ("contact", "deal", "interaction", "event", "task")

REMINDER_FIELDS = ["title", "description", "due_date", "priority", "status", "related_type", "related_id"]

_RELATED_SELECT = (
    "SELECT r.*, c.first_name AS related_first_name, c.last_name AS related_last_name, "
    "d.title AS related_deal_title, i.subject AS related_interaction_subject, "
    "e.title AS related_event_title "
    "FROM reminders r "
    "LEFT JOIN contacts c ON r.related_type = 'contact' AND r.related_id = c.id "
    "LEFT JOIN deals d ON r.related_type = 'deal' AND r.related_id = d.id "
    "LEFT JOIN interactions i ON r.related_type = 'interaction' AND r.related_id = i.id "
    "LEFT JOIN events e ON r.related_type = 'event' AND r.related_id = e.id "
)

_PRIORITY_RANK = "CASE r.priority WHEN 'high' THEN 3 WHEN 'medium' THEN 2 ELSE 1 END"


def _resolve_related_name(row: Dict[str, Any]) -> Dict[str, Any]:
    first = row.pop("related_first_name", None)
    last = row.pop("related_last_name", None)
    deal_title = row.pop("related_deal_title", None)
    subject = row.pop("related_interaction_subject", None)
    event_title = row.pop("related_event_title", None)
    related_type = row.get("related_type")
    if related_type == "contact" and first is not None:
        row["related_name"] = f"{first} {last}".strip()
    elif related_type == "deal":
        row["related_name"] = deal_title
    elif related_type == "interaction":
        row["related_name"] = subject
    elif related_type == "event":
        row["related_name"] = event_title
    else:
        row["related_name"] = None
    return row


class CRUDReminder:
    def _filters(self, user_id: int, status: Optional[str]) -> FilterBuilder:
        builder = FilterBuilder()
        builder.add_typed("r.user_id = :user_id", "user_id", user_id, ParamType.INT)
        if status and status != "all":
            builder.add("r.status = :status", status=status)
        return builder

    def get_multi(
        self,
        db: Database,
        *,
        user_id: int,
        status: Optional[str] = "all",
        limit: Optional[int] = 10,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        builder = self._filters(user_id, status)
        sql = f"{_RELATED_SELECT}WHERE {builder.where} ORDER BY r.due_date ASC, {_PRIORITY_RANK} DESC, r.id ASC"
        if limit is not None:
            sql += " LIMIT :limit OFFSET :offset"
        db.prepare(sql)
        builder.bind(db)
        if limit is not None:
            bind_limit(db, limit, offset)
        return [_resolve_related_name(row) for row in db.fetch_all()]

    def count(self, db: Database, *, user_id: int, status: Optional[str] = "all") -> int:
        builder = self._filters(user_id, status)
        db.prepare(f"SELECT COUNT(*) AS total FROM reminders r WHERE {builder.where}")
        builder.bind(db)
        return int(db.fetch_value(0))

    def get(self, db: Database, *, reminder_id: int, user_id: Optional[int] = None) -> Optional[Dict[str, Any]]:
        sql = f"{_RELATED_SELECT}WHERE r.id = :id"
        if user_id is not None:
            sql += " AND r.user_id = :user_id"
        db.prepare(sql)
        db.bind("id", reminder_id, ParamType.INT)
        if user_id is not None:
            db.bind("user_id", user_id, ParamType.INT)
        row = db.fetch_one()
        return _resolve_related_name(row) if row else None

    def create(self, db: Database, *, data: Mapping[str, Any], user_id: int) -> int:
        values = {
            "title": data["title"],
            "description": data.get("description"),
            "due_date": data["due_date"],
            "priority": data.get("priority") or "medium",
            "status": data.get("status") or "pending",
            "related_type": data.get("related_type"),
            "related_id": data.get("related_id"),
        }
        db.prepare(
            "INSERT INTO reminders (title, description, due_date, priority, status, user_id, related_type, related_id) "
            "VALUES (:title, :description, :due_date, :priority, :status, :user_id, :related_type, :related_id)"
        )
        db.bind_all(values)
        db.bind("user_id", user_id, ParamType.INT)
        db.execute()
        return db.last_insert_id()

    def update(self, db: Database, *, reminder_id: int, user_id: int, data: Mapping[str, Any]) -> bool:
        columns = [field for field in REMINDER_FIELDS if field in data]
        assignments = ", ".join(f"{field} = :{field}" for field in columns + ["updated_at"])
        db.prepare(f"UPDATE reminders SET {assignments} WHERE id = :id AND user_id = :user_id")
        for field in columns:
            db.bind(field, data[field])
        db.bind("updated_at", utc_now())
        db.bind("id", reminder_id, ParamType.INT)
        db.bind("user_id", user_id, ParamType.INT)
        db.execute()
        return db.row_count() > 0

    def delete(self, db: Database, *, reminder_id: int, user_id: int) -> bool:
        db.prepare("DELETE FROM reminders WHERE id = :id AND user_id = :user_id")
        db.bind("id", reminder_id, ParamType.INT)
        db.bind("user_id", user_id, ParamType.INT)
        db.execute()
        return db.row_count() > 0

    def update_status(self, db: Database, *, reminder_id: int, user_id: int, status: str) -> bool:
        return self.update(db, reminder_id=reminder_id, user_id=user_id, data={"status": status})

    def _pending_window(self, db: Database, *, user_id: int, clause: str, now: datetime, limit: Optional[int]):
        sql = (
            f"{_RELATED_SELECT}WHERE r.user_id = :user_id AND r.status = 'pending' AND {clause} "
            f"ORDER BY r.due_date ASC, {_PRIORITY_RANK} DESC, r.id ASC"
        )
        if limit is not None:
            sql += " LIMIT :limit OFFSET :offset"
        db.prepare(sql)
        db.bind("user_id", user_id, ParamType.INT)
        db.bind("now", now)
        if limit is not None:
            bind_limit(db, limit, 0)
        return [_resolve_related_name(row) for row in db.fetch_all()]

    def get_due(self, db: Database, *, user_id: int, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        return self._pending_window(db, user_id=user_id, clause="r.due_date <= :now", now=now or utc_now(), limit=None)

    def get_upcoming(
        self, db: Database, *, user_id: int, limit: int = 5, now: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        return self._pending_window(db, user_id=user_id, clause="r.due_date > :now", now=now or utc_now(), limit=limit)

    def get_overdue(self, db: Database, *, user_id: int, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        return self._pending_window(db, user_id=user_id, clause="r.due_date < :now", now=now or utc_now(), limit=None)

    def get_related(self, db: Database, *, related_type: str, related_id: int) -> List[Dict[str, Any]]:
        db.prepare(
            f"{_RELATED_SELECT}WHERE r.related_type = :related_type AND r.related_id = :related_id "
            "ORDER BY r.due_date ASC, r.id ASC"
        )
        db.bind("related_type", related_type)
        db.bind("related_id", related_id, ParamType.INT)
        return [_resolve_related_name(row) for row in db.fetch_all()]

    def delete_related(self, db: Database, *, related_type: str, related_ids: Sequence[int]) -> int:
        if not related_ids:
            return 0
        builder = FilterBuilder().add("related_type = :related_type", related_type=related_type)
        builder.add_in("related_id IN ({placeholders})", "related", list(related_ids))
        db.prepare(f"DELETE FROM reminders WHERE {builder.where}")
        builder.bind(db)
        db.execute()
        return db.row_count()

    def delete_for_contact(self, db: Database, *, contact_id: int) -> None:
        """Remove reminders for a contact and for the interactions and deals it owns."""
        for related_type, child_sql in (
            ("interaction", "SELECT id FROM interactions WHERE contact_id = :contact_id"),
            ("deal", "SELECT id FROM deals WHERE contact_id = :contact_id"),
        ):
            db.prepare(
                f"DELETE FROM reminders WHERE related_type = :related_type AND related_id IN ({child_sql})"
            )
            db.bind("related_type", related_type)
            db.bind("contact_id", contact_id, ParamType.INT)
            db.execute()
        self.delete_related(db, related_type="contact", related_ids=[contact_id])

    def exists_active_for(self, db: Database, *, related_type: str, related_id: int) -> bool:
        db.prepare(
            "SELECT COUNT(*) AS total FROM reminders "
            "WHERE related_type = :related_type AND related_id = :related_id AND status <> 'dismissed'"
        )
        db.bind("related_type", related_type)
        db.bind("related_id", related_id, ParamType.INT)
        return int(db.fetch_value(0)) > 0

    def count_by_status(self, db: Database, *, user_id: int) -> Dict[str, int]:
        counts = {status: 0 for status in REMINDER_STATUSES}
        db.prepare("SELECT status, COUNT(*) AS count FROM reminders WHERE user_id = :user_id GROUP BY status")
        db.bind("user_id", user_id, ParamType.INT)
        for row in db.fetch_all():
            if row["status"] in counts:
                counts[row["status"]] = int(row["count"])
        return counts


reminder_crud = CRUDReminder()
