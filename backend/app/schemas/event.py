"""Calendar event form schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator

from backend.app.core.time import parse_datetime_input
from backend.app.schemas.forms import checkbox, optional_int, optional_text, require_text, required_datetime


class EventForm(BaseModel):
    title: str = ""
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    all_day: bool = False
    location: Optional[str] = None
    color: str = "#4F46E5"
    contact_id: Optional[int] = None
    reminder: Optional[int] = None

    model_config = ConfigDict(validate_default=True)

    @field_validator("title", mode="before")
    @classmethod
    def check_title(cls, v):
        return require_text(v, "Please enter event title")

    @field_validator("start_time", mode="before")
    @classmethod
    def check_start(cls, v):
        return required_datetime(v, "Please enter a valid start date")

    @field_validator("end_time", mode="before")
    @classmethod
    def check_end(cls, v, info: ValidationInfo):
        if optional_text(v) is None:
            return None
        end = parse_datetime_input(v)
        if end is None:
            raise ValueError("Please enter a valid end date")
        start = info.data.get("start_time")
        if start is not None and end < start:
            raise ValueError("End date must be after start date")
        return end

    @field_validator("all_day", mode="before")
    @classmethod
    def check_all_day(cls, v):
        return checkbox(v)

    @field_validator("description", "location", mode="before")
    @classmethod
    def strip_optional(cls, v):
        return optional_text(v)

    @field_validator("color", mode="before")
    @classmethod
    def default_color(cls, v):
        return optional_text(v) or "#4F46E5"

    @field_validator("contact_id", mode="before")
    @classmethod
    def check_contact(cls, v):
        return optional_int(v, "Please select a valid contact")

    @field_validator("reminder", mode="before")
    @classmethod
    def check_reminder(cls, v):
        minutes = optional_int(v, "Reminder must be a number of minutes")
        if minutes is not None and minutes < 0:
            raise ValueError("Reminder must be a number of minutes")
        return minutes
