"""Filter, sort and pagination helpers shared by every list query.

A `FilterBuilder` starts from `1=1` and AND-appends one predicate per
non-empty filter, in the order the caller adds them. Sort columns are only
ever taken from an allow-list; direction is always `ASC` or `DESC`.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from backend.app.db.gateway import SQL_INT_MAX, Database, ParamType, parse_int


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, set, frozenset)):
        return len(value) == 0
    return False


def clean_filters(filters: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Drop absent and empty filter values so they impose no constraint."""
    if not filters:
        return {}
    return {key: value for key, value in filters.items() if not is_blank(value)}


def parse_id_list(values: Iterable[Any]) -> List[int]:
    """Integers from a sequence of ids, skipping anything that is not a bindable number."""
    ids: List[int] = []
    for value in values:
        number = parse_int(value)
        if number is not None:
            ids.append(number)
    return ids


class FilterBuilder:
    def __init__(self):
        self.clauses: List[str] = ["1=1"]
        self.params: Dict[str, Any] = {}
        self.types: Dict[str, ParamType] = {}

    def add(self, clause: str, **params: Any) -> "FilterBuilder":
        self.clauses.append(clause)
        self.params.update(params)
        return self

    def add_typed(self, clause: str, name: str, value: Any, type_hint: ParamType) -> "FilterBuilder":
        self.clauses.append(clause)
        self.params[name] = value
        self.types[name] = type_hint
        return self

    def add_in(self, template: str, prefix: str, values: Sequence[Any]) -> "FilterBuilder":
        """Append `template` with `{placeholders}` expanded to `:prefix0, :prefix1, ...`."""
        names = [f"{prefix}{index}" for index in range(len(values))]
        self.clauses.append(template.format(placeholders=", ".join(f":{name}" for name in names)))
        self.params.update(dict(zip(names, values)))
        return self

    @property
    def where(self) -> str:
        return " AND ".join(self.clauses)

    def bind(self, db: Database) -> None:
        for name, value in self.params.items():
            db.bind(name, value, self.types.get(name))


def normalize_sort(sort_by: Optional[str], allowed: Mapping[str, str], default: str) -> str:
    """Column expression for `sort_by`, or for `default` when not allow-listed."""
    key = (sort_by or "").strip()
    if key not in allowed:
        key = default
    return allowed[key]


def normalize_direction(direction: Optional[str]) -> str:
    return "ASC" if (direction or "").strip().upper() == "ASC" else "DESC"


def order_clause(sort_column: str, direction: str, tie_breaker: str) -> str:
    return f"ORDER BY {sort_column} {direction}, {tie_breaker} {direction}"


def normalize_page(page: Any) -> int:
    value = parse_int(page)
    return value if value is not None and value >= 1 else 1


def page_offset(page: Any, limit: int) -> int:
    return min((normalize_page(page) - 1) * limit, SQL_INT_MAX)


def bind_limit(db: Database, limit: int, offset: int) -> None:
    db.bind("limit", limit, ParamType.INT)
    db.bind("offset", offset, ParamType.INT)


@dataclass
class Pagination:
    page: int
    per_page: int
    total: int

    @property
    def total_pages(self) -> int:
        if self.per_page <= 0:
            return 0
        return math.ceil(self.total / self.per_page)

    @property
    def offset(self) -> int:
        return page_offset(self.page, self.per_page)

    def as_dict(self) -> Dict[str, int]:
        return {
            "current_page": self.page,
            "per_page": self.per_page,
            "total": self.total,
            "total_pages": self.total_pages,
        }
