"""Prepared-statement gateway over a single SQLAlchemy connection.

Every statement goes through `text()` with typed bind parameters, so caller
values never reach the SQL text. Outside `begin()`/`transaction()` each
statement commits on its own.
"""

import enum
import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import Boolean, Integer, String, bindparam, text
from sqlalchemy.engine import Connection
from sqlalchemy.sql.sqltypes import NullType

from backend.app.core.time import to_db_datetime

logger = logging.getLogger(__name__)


class ParamType(str, enum.Enum):
    INT = "int"
    BOOL = "bool"
    NULL = "null"
    STR = "str"


_SQL_TYPES = {
    ParamType.INT: Integer,
    ParamType.BOOL: Boolean,
    ParamType.NULL: NullType,
    ParamType.STR: String,
}

# Range of a signed 64-bit column; drivers refuse to bind anything outside it
SQL_INT_MIN = -(2 ** 63)
SQL_INT_MAX = 2 ** 63 - 1


def parse_int(value: Any) -> Optional[int]:
    """`value` as an int that can be bound, or None when it is not one."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(str(value).strip())
    except ValueError:
        return None
    if not SQL_INT_MIN <= number <= SQL_INT_MAX:
        return None
    return number


def infer_param_type(value: Any) -> ParamType:
    # bool is a subclass of int, so it must be checked first
    if isinstance(value, bool):
        return ParamType.BOOL
    if isinstance(value, int):
        return ParamType.INT
    if value is None:
        return ParamType.NULL
    return ParamType.STR


def _coerce(value: Any, param_type: ParamType) -> Any:
    if value is None:
        return None
    if param_type is ParamType.INT:
        return int(value)
    if param_type is ParamType.BOOL:
        return bool(value)
    if param_type is ParamType.STR and not isinstance(value, str):
        if isinstance(value, datetime):
            return to_db_datetime(value)
        if isinstance(value, date):
            return value.isoformat()
        return str(value)
    return value


class Database:
    def __init__(self, connection: Connection):
        self.connection = connection
        self._sql: Optional[str] = None
        self._params: Dict[str, Any] = {}
        self._types: Dict[str, ParamType] = {}
        self._rows: List[Dict[str, Any]] = []
        self._row_count = 0
        self._last_insert_id: Optional[int] = None
        self._transaction = None

    @property
    def dialect_name(self) -> str:
        return self.connection.dialect.name

    @property
    def in_transaction(self) -> bool:
        return self._transaction is not None

    def prepare(self, sql: str) -> None:
        self._sql = sql
        self._params = {}
        self._types = {}

    def bind(self, name: str, value: Any, type_hint: Optional[ParamType] = None) -> None:
        key = name.lstrip(":")
        param_type = type_hint or infer_param_type(value)
        self._params[key] = _coerce(value, param_type)
        self._types[key] = param_type

    def bind_all(self, params: Dict[str, Any]) -> None:
        for name, value in params.items():
            self.bind(name, value)

    def bound_type(self, name: str) -> Optional[ParamType]:
        return self._types.get(name.lstrip(":"))

    def execute(self) -> bool:
        if self._sql is None:
            raise RuntimeError("execute() called before prepare()")
        statement = text(self._sql).bindparams(
            *[
                bindparam(key, value, type_=_SQL_TYPES[self._types[key]]())
                for key, value in self._params.items()
            ]
        )
        try:
            result = self.connection.execute(statement)
        except Exception:
            if self._transaction is None and self.connection.in_transaction():
                self.connection.rollback()
            raise
        self._rows = [dict(row._mapping) for row in result] if result.returns_rows else []
        self._row_count = len(self._rows) if result.returns_rows else result.rowcount
        self._last_insert_id = getattr(result, "lastrowid", None)
        if self._transaction is None:
            self.connection.commit()
        return True

    def fetch_all(self) -> List[Dict[str, Any]]:
        self.execute()
        return self._rows

    def fetch_one(self) -> Optional[Dict[str, Any]]:
        self.execute()
        return self._rows[0] if self._rows else None

    def fetch_value(self, default: Any = None) -> Any:
        row = self.fetch_one()
        if not row:
            return default
        value = next(iter(row.values()))
        return default if value is None else value

    def row_count(self) -> int:
        return self._row_count

    def last_insert_id(self) -> Optional[int]:
        # psycopg reports an OID rather than the new key, so ask the sequence
        if self.dialect_name == "postgresql":
            return self.connection.execute(text("SELECT lastval()")).scalar()
        return self._last_insert_id

    def begin(self) -> None:
        if self._transaction is not None:
            raise RuntimeError("A transaction is already active")
        if self.connection.in_transaction():
            self.connection.commit()
        self._transaction = self.connection.begin()

    def commit(self) -> None:
        if self._transaction is None:
            return
        transaction, self._transaction = self._transaction, None
        transaction.commit()

    def rollback(self) -> None:
        if self._transaction is None:
            return
        transaction, self._transaction = self._transaction, None
        transaction.rollback()

    @contextmanager
    def transaction(self) -> Iterator["Database"]:
        """Run a block atomically; joins the outer transaction when one is active."""
        if self._transaction is not None:
            yield self
            return
        self.begin()
        try:
            yield self
        except BaseException:
            self.rollback()
            raise
        else:
            self.commit()

    def month_of(self, column: str) -> str:
        if self.dialect_name == "sqlite":
            return f"CAST(strftime('%m', {column}) AS INTEGER)"
        if self.dialect_name == "postgresql":
            return f"CAST(EXTRACT(MONTH FROM {column}) AS INTEGER)"
        return f"MONTH({column})"

    def year_of(self, column: str) -> str:
        if self.dialect_name == "sqlite":
            return f"CAST(strftime('%Y', {column}) AS INTEGER)"
        if self.dialect_name == "postgresql":
            return f"CAST(EXTRACT(YEAR FROM {column}) AS INTEGER)"
        return f"YEAR({column})"

    def weekday_of(self, column: str) -> str:
        """Day of week as 1..7 with 1 = Sunday."""
        if self.dialect_name == "sqlite":
            return f"(CAST(strftime('%w', {column}) AS INTEGER) + 1)"
        if self.dialect_name == "postgresql":
            return f"(CAST(EXTRACT(DOW FROM {column}) AS INTEGER) + 1)"
        return f"DAYOFWEEK({column})"

    def close(self) -> None:
        if self._transaction is not None:
            logger.warning("Closing gateway with an open transaction; rolling back")
            self.rollback()
        self.connection.close()
