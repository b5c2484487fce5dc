"""Time utilities for UTC datetimes and the string forms stored in the database."""

from datetime import UTC, date, datetime

DB_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime for defaults and onupdate hooks."""
    return datetime.now(UTC)


def to_db_datetime(value: datetime) -> str:
    """Render a datetime as naive UTC text, the form every timestamp column holds."""
    if value.tzinfo is not None:
        value = value.astimezone(UTC).replace(tzinfo=None)
    return value.strftime(DB_DATETIME_FORMAT)


def parse_db_datetime(value) -> datetime | None:
    """Parse a timestamp read back from the database into a naive UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(UTC).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text_value = str(value).replace("T", " ")
    try:
        return datetime.strptime(text_value[:19], DB_DATETIME_FORMAT)
    except ValueError:
        return datetime.strptime(text_value[:10], "%Y-%m-%d")


def parse_date(value) -> date | None:
    """Parse a user-supplied YYYY-MM-DD string, returning None when it is not a date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip()[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


def parse_datetime_input(value) -> datetime | None:
    """Parse a form datetime (`YYYY-MM-DDTHH:MM`, with or without seconds, or a bare date)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text_value = str(value).strip().replace("T", " ")
    for fmt in (DB_DATETIME_FORMAT, "%Y-%m-%d %H:%M", "%Y-%m-%d"):
        try:
            return datetime.strptime(text_value, fmt)
        except ValueError:
            continue
    return None
