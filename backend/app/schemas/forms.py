"""Shared helpers for validating submitted HTML forms with pydantic models.

Form models raise `ValueError` with the user-facing message; `validate_form`
turns a `ValidationError` into `{"<field>_error": message}` entries that are
rendered next to the redisplayed form.
"""

from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple, Type, TypeVar

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ValidationError

from backend.app.core.time import parse_date, parse_datetime_input
from backend.app.db.gateway import parse_int

FormT = TypeVar("FormT", bound=BaseModel)


def validate_form(form_cls: Type[FormT], data: Dict[str, Any]) -> Tuple[Optional[FormT], Dict[str, str]]:
    try:
        return form_cls.model_validate(data), {}
    except ValidationError as exc:
        return None, form_errors(exc)


def form_errors(exc: ValidationError) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    for error in exc.errors():
        field = str(error["loc"][0]) if error["loc"] else "form"
        key = f"{field}_error"
        if key in errors:
            continue
        cause = (error.get("ctx") or {}).get("error")
        errors[key] = str(cause) if cause else error["msg"]
    return errors


def blank_to_none(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


def require_text(value: Any, message: str) -> str:
    value = blank_to_none(value)
    if value is None:
        raise ValueError(message)
    return str(value).strip()


def optional_text(value: Any) -> Optional[str]:
    value = blank_to_none(value)
    return None if value is None else str(value).strip()


def normalize_email(value: Any, message: str = "Please enter a valid email") -> Optional[str]:
    value = optional_text(value)
    if value is None:
        return None
    try:
        return validate_email(value, check_deliverability=False).normalized
    except EmailNotValidError as exc:
        raise ValueError(message) from exc


def optional_int(value: Any, message: str) -> Optional[int]:
    value = blank_to_none(value)
    if value is None:
        return None
    number = parse_int(value)
    if number is None:
        raise ValueError(message)
    return number


def optional_date(value: Any, message: str) -> Optional[date]:
    value = blank_to_none(value)
    if value is None:
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValueError(message)
    return parsed


def required_datetime(value: Any, message: str) -> datetime:
    parsed = parse_datetime_input(blank_to_none(value))
    if parsed is None:
        raise ValueError(message)
    return parsed


def checkbox(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in {"1", "on", "true", "yes"}
