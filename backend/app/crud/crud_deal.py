"""CRUD, pipeline and revenue queries for deals."""

import logging
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from backend.app.core.time import parse_date, utc_now
from backend.app.crud.crud_reminder import reminder_crud
from backend.app.crud.query import (
    FilterBuilder,
    bind_limit,
    clean_filters,
    normalize_direction,
    normalize_sort,
    order_clause,
)
from backend.app.db.gateway import Database, ParamType

logger = logging.getLogger(__name__)

DEAL_STAGES = ("lead", "qualified", "proposal", "negotiation", "closed-won", "closed-lost")
CLOSED_STAGES = ("closed-won", "closed-lost")
STAGE_PROBABILITY = {
    "lead": 10,
    "qualified": 30,
    "proposal": 50,
    "negotiation": 80,
    "closed-won": 100,
    "closed-lost": 0,
}
DEFAULT_PROBABILITY = 10

DEAL_FIELDS = [
    "contact_id",
    "title",
    "description",
    "amount",
    "currency",
    "stage",
    "probability",
    "expected_close_date",
    "owner_id",
]

SORTABLE_FIELDS = {
    "title": "d.title",
    "amount": "d.amount",
    "stage": "d.stage",
    "probability": "d.probability",
    "expected_close_date": "d.expected_close_date",
    "created_at": "d.created_at",
}
DEFAULT_SORT = "created_at"

WON_PERIODS = ("today", "this_week", "this_month", "this_quarter", "this_year")

CENTS = Decimal("0.01")


def probability_for_stage(stage: Optional[str]) -> int:
    return STAGE_PROBABILITY.get(stage or "", DEFAULT_PROBABILITY)


def to_money(value: Any) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(CENTS)


def period_range(period: str, today: date) -> Tuple[date, date]:
    """Inclusive date range for a named period; weeks start on Sunday."""
    if period == "today":
        return today, today
    if period == "this_week":
        start = today - timedelta(days=(today.weekday() + 1) % 7)
        return start, start + timedelta(days=6)
    if period == "this_month":
        start = today.replace(day=1)
        next_month = (start + timedelta(days=32)).replace(day=1)
        return start, next_month - timedelta(days=1)
    if period == "this_quarter":
        first_month = 3 * ((today.month - 1) // 3) + 1
        start = today.replace(month=first_month, day=1)
        next_quarter = (start + timedelta(days=95)).replace(day=1)
        return start, next_quarter - timedelta(days=1)
    if period == "this_year":
        return today.replace(month=1, day=1), today.replace(month=12, day=31)
    raise ValueError(f"Unknown period: {period}")


def _as_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        return None


def _with_contact_name(row: Dict[str, Any]) -> Dict[str, Any]:
    first = row.pop("contact_first_name", None)
    last = row.pop("contact_last_name", None)
    row["contact_name"] = f"{first} {last}".strip() if first is not None else None
    return row


class CRUDDeal:
    def _filters(self, filters: Optional[Mapping[str, Any]]) -> FilterBuilder:
        """Order: search, stage, owner_id, contact_id, min_amount, max_amount, close date range."""
        filters = clean_filters(filters)
        builder = FilterBuilder()
        if "search" in filters:
            builder.add(
                "(d.title LIKE :search OR c.first_name LIKE :search OR c.last_name LIKE :search)",
                search=f"%{str(filters['search']).strip()}%",
            )
        if "stage" in filters:
            builder.add("d.stage = :stage", stage=filters["stage"])
        if "owner_id" in filters:
            builder.add_typed("d.owner_id = :owner_id", "owner_id", filters["owner_id"], ParamType.INT)
        if "contact_id" in filters:
            builder.add_typed("d.contact_id = :contact_id", "contact_id", filters["contact_id"], ParamType.INT)
        min_amount = _as_decimal(filters.get("min_amount"))
        if min_amount is not None:
            builder.add("d.amount >= :min_amount", min_amount=min_amount)
        max_amount = _as_decimal(filters.get("max_amount"))
        if max_amount is not None:
            builder.add("d.amount <= :max_amount", max_amount=max_amount)
        if "expected_close_date_start" in filters:
            builder.add("d.expected_close_date >= :close_start", close_start=filters["expected_close_date_start"])
        if "expected_close_date_end" in filters:
            builder.add("d.expected_close_date <= :close_end", close_end=filters["expected_close_date_end"])
        return builder

    def get_multi(
        self,
        db: Database,
        *,
        filters: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = 10,
        offset: int = 0,
        sort_by: Optional[str] = DEFAULT_SORT,
        direction: Optional[str] = "DESC",
    ) -> List[Dict[str, Any]]:
        builder = self._filters(filters)
        sort_column = normalize_sort(sort_by, SORTABLE_FIELDS, DEFAULT_SORT)
        sql = (
            "SELECT d.*, c.first_name AS contact_first_name, c.last_name AS contact_last_name, "
            "u.name AS owner_name FROM deals d "
            "JOIN contacts c ON d.contact_id = c.id "
            "LEFT JOIN users u ON d.owner_id = u.id "
            f"WHERE {builder.where} "
            f"{order_clause(sort_column, normalize_direction(direction), 'd.id')}"
        )
        if limit is not None:
            sql += " LIMIT :limit OFFSET :offset"
        db.prepare(sql)
        builder.bind(db)
        if limit is not None:
            bind_limit(db, limit, offset)
        return [_with_contact_name(row) for row in db.fetch_all()]

    def count(self, db: Database, *, filters: Optional[Mapping[str, Any]] = None) -> int:
        builder = self._filters(filters)
        db.prepare(
            "SELECT COUNT(*) AS total FROM deals d JOIN contacts c ON d.contact_id = c.id "
            f"WHERE {builder.where}"
        )
        builder.bind(db)
        return int(db.fetch_value(0))

    def get(self, db: Database, *, deal_id: int) -> Optional[Dict[str, Any]]:
        db.prepare(
            "SELECT d.*, c.first_name AS contact_first_name, c.last_name AS contact_last_name, "
            "u.name AS owner_name FROM deals d "
            "JOIN contacts c ON d.contact_id = c.id "
            "LEFT JOIN users u ON d.owner_id = u.id "
            "WHERE d.id = :id"
        )
        db.bind("id", deal_id, ParamType.INT)
        row = db.fetch_one()
        return _with_contact_name(row) if row else None

    def _values(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        values = {field: data[field] for field in DEAL_FIELDS if field in data}
        if values.get("probability") is None and "stage" in values:
            values["probability"] = probability_for_stage(values["stage"])
        if "amount" in values and values["amount"] is not None:
            values["amount"] = to_money(values["amount"])
        return values

    def create(self, db: Database, *, data: Mapping[str, Any], created_by: int) -> int:
        values = self._values(data)
        values.setdefault("stage", "lead")
        values.setdefault("probability", probability_for_stage(values["stage"]))
        values["currency"] = values.get("currency") or "USD"
        if values["stage"] in CLOSED_STAGES:
            values["actual_close_date"] = utc_now().date()
        columns = list(values) + ["created_by"]
        db.prepare(
            f"INSERT INTO deals ({', '.join(columns)}) VALUES ({', '.join(':' + column for column in columns)})"
        )
        db.bind_all(values)
        db.bind("created_by", created_by, ParamType.INT)
        db.execute()
        return db.last_insert_id()

    def update(self, db: Database, *, deal_id: int, data: Mapping[str, Any]) -> bool:
        values = self._values(data)
        if "stage" in values:
            db.prepare("SELECT stage FROM deals WHERE id = :id")
            db.bind("id", deal_id, ParamType.INT)
            if db.fetch_value() != values["stage"]:
                values["actual_close_date"] = utc_now().date() if values["stage"] in CLOSED_STAGES else None
        values["updated_at"] = utc_now()
        assignments = ", ".join(f"{column} = :{column}" for column in values)
        db.prepare(f"UPDATE deals SET {assignments} WHERE id = :id")
        db.bind_all(values)
        db.bind("id", deal_id, ParamType.INT)
        db.execute()
        return db.row_count() > 0

    def update_stage(self, db: Database, *, deal_id: int, stage: str, today: Optional[date] = None) -> bool:
        """Move a deal to `stage`, resetting its probability and close date."""
        closed_on = (today or utc_now().date()) if stage in CLOSED_STAGES else None
        db.prepare(
            "UPDATE deals SET stage = :stage, probability = :probability, "
            "actual_close_date = :closed_on, updated_at = :now WHERE id = :id"
        )
        db.bind("stage", stage)
        db.bind("probability", probability_for_stage(stage), ParamType.INT)
        db.bind("closed_on", closed_on)
        db.bind("now", utc_now())
        db.bind("id", deal_id, ParamType.INT)
        db.execute()
        return db.row_count() > 0

    def delete(self, db: Database, *, deal_id: int) -> bool:
        try:
            with db.transaction():
                reminder_crud.delete_related(db, related_type="deal", related_ids=[deal_id])
                db.prepare("DELETE FROM deals WHERE id = :id")
                db.bind("id", deal_id, ParamType.INT)
                db.execute()
                deleted = db.row_count() > 0
        except SQLAlchemyError:
            logger.exception("Failed to delete deal %s", deal_id)
            return False
        return deleted

    def get_for_contact(
        self, db: Database, *, contact_id: int, limit: Optional[int] = 10, offset: int = 0
    ) -> List[Dict[str, Any]]:
        return self.get_multi(db, filters={"contact_id": contact_id}, limit=limit, offset=offset)

    def count_for_contact(self, db: Database, *, contact_id: int) -> int:
        return self.count(db, filters={"contact_id": contact_id})

    def get_pipeline(self, db: Database, *, owner_id: Optional[int] = None) -> Dict[str, List[Dict[str, Any]]]:
        """Every deal grouped under its stage; all six stages are present."""
        pipeline: Dict[str, List[Dict[str, Any]]] = {stage: [] for stage in DEAL_STAGES}
        deals = self.get_multi(
            db, filters={"owner_id": owner_id}, limit=None, sort_by="expected_close_date", direction="ASC"
        )
        for deal in deals:
            pipeline.setdefault(deal["stage"], []).append(deal)
        return pipeline

    def sum_by_stage(self, db: Database, *, filters: Optional[Mapping[str, Any]] = None) -> Dict[str, Dict[str, Any]]:
        filters = clean_filters(filters)
        builder = FilterBuilder()
        if "owner_id" in filters:
            builder.add_typed("owner_id = :owner_id", "owner_id", filters["owner_id"], ParamType.INT)
        if "start_date" in filters:
            builder.add("expected_close_date >= :start_date", start_date=filters["start_date"])
        if "end_date" in filters:
            builder.add("expected_close_date <= :end_date", end_date=filters["end_date"])
        db.prepare(
            "SELECT stage, COALESCE(SUM(amount), 0) AS total_value, COUNT(*) AS count "
            f"FROM deals WHERE {builder.where} GROUP BY stage"
        )
        builder.bind(db)
        totals = {stage: {"total_value": Decimal("0.00"), "count": 0} for stage in DEAL_STAGES}
        for row in db.fetch_all():
            if row["stage"] in totals:
                totals[row["stage"]] = {"total_value": to_money(row["total_value"]), "count": int(row["count"])}
        return totals

    def get_forecast(
        self,
        db: Database,
        *,
        owner_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Decimal:
        """Weighted pipeline value: sum(amount * probability / 100) over open deals.

        `start_date` and `end_date` bound the expected close date.
        """
        builder = FilterBuilder().add("stage NOT IN ('closed-won', 'closed-lost')")
        if owner_id is not None:
            builder.add_typed("owner_id = :owner_id", "owner_id", owner_id, ParamType.INT)
        if start_date is not None:
            builder.add("expected_close_date >= :start_date", start_date=start_date)
        if end_date is not None:
            builder.add("expected_close_date <= :end_date", end_date=end_date)
        db.prepare(f"SELECT SUM(amount * probability / 100.0) AS forecast FROM deals WHERE {builder.where}")
        builder.bind(db)
        return to_money(db.fetch_value(0))

    def get_won_value(
        self,
        db: Database,
        *,
        period: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        owner_id: Optional[int] = None,
        today: Optional[date] = None,
    ) -> Decimal:
        builder = FilterBuilder().add("stage = 'closed-won'")
        if period:
            start_date, end_date = period_range(period, today or utc_now().date())
        if start_date:
            builder.add("actual_close_date >= :start_date", start_date=parse_date(start_date))
        if end_date:
            builder.add("actual_close_date <= :end_date", end_date=parse_date(end_date))
        if owner_id is not None:
            builder.add_typed("owner_id = :owner_id", "owner_id", owner_id, ParamType.INT)
        db.prepare(f"SELECT SUM(amount) AS total FROM deals WHERE {builder.where}")
        builder.bind(db)
        return to_money(db.fetch_value(0))


deal_crud = CRUDDeal()
