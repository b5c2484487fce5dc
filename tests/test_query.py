from backend.app.crud.query import (
    FilterBuilder,
    Pagination,
    clean_filters,
    normalize_direction,
    normalize_page,
    normalize_sort,
    order_clause,
    page_offset,
    parse_id_list,
)
from backend.app.db.gateway import ParamType

ALLOWED = {"name": "c.name", "created_at": "c.created_at"}


def test_clean_filters_drops_empty_values():
    filters = {"search": "  ", "owner_id": None, "tags": [], "lead_status": "new", "score": 0}
    assert clean_filters(filters) == {"lead_status": "new", "score": 0}


def test_parse_id_list_skips_non_numeric():
    assert parse_id_list(["1", " 2 ", "x", None, 3]) == [1, 2, 3]
    assert parse_id_list(["99999999999999999999", "7"]) == [7]


def test_filter_builder_starts_with_tautology():
    assert FilterBuilder().where == "1=1"


def test_filter_builder_appends_in_order():
    builder = FilterBuilder()
    builder.add("c.name LIKE :search", search="%a%")
    builder.add_typed("c.owner_id = :owner_id", "owner_id", "4", ParamType.INT)
    builder.add_in("c.id IN ({placeholders})", "tag", [5, 6])
    assert builder.where == "1=1 AND c.name LIKE :search AND c.owner_id = :owner_id AND c.id IN (:tag0, :tag1)"
    assert builder.params == {"search": "%a%", "owner_id": "4", "tag0": 5, "tag1": 6}
    assert builder.types == {"owner_id": ParamType.INT}


def test_normalize_sort_uses_allow_list():
    assert normalize_sort("name", ALLOWED, "created_at") == "c.name"
    assert normalize_sort("name; DROP TABLE contacts", ALLOWED, "created_at") == "c.created_at"
    assert normalize_sort(None, ALLOWED, "created_at") == "c.created_at"


def test_normalize_direction():
    assert normalize_direction("asc") == "ASC"
    assert normalize_direction("DESC") == "DESC"
    assert normalize_direction("sideways") == "DESC"
    assert normalize_direction(None) == "DESC"


def test_order_clause_adds_tie_breaker():
    assert order_clause("c.name", "ASC", "c.id") == "ORDER BY c.name ASC, c.id ASC"


def test_page_offset():
    assert page_offset(1, 10) == 0
    assert page_offset(3, 10) == 20
    assert page_offset(0, 10) == 0
    assert page_offset("abc", 10) == 0
    assert normalize_page("-4") == 1
    assert normalize_page("99999999999999999999") == 1
    assert page_offset(2 ** 63 - 1, 10) == 2 ** 63 - 1


def test_pagination_totals():
    pagination = Pagination(page=2, per_page=10, total=21)
    assert pagination.total_pages == 3
    assert pagination.offset == 10
    assert pagination.as_dict() == {"current_page": 2, "per_page": 10, "total": 21, "total_pages": 3}
    assert Pagination(page=1, per_page=10, total=0).total_pages == 0
