"""Reminder form schemas."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from backend.app.schemas.forms import optional_int, optional_text, require_text, required_datetime

ReminderPriority = Literal["low", "medium", "high"]
ReminderStatus = Literal["pending", "completed", "dismissed"]
RelatedType = Literal["contact", "deal", "interaction", "event", "task"]


class ReminderForm(BaseModel):
    title: str = ""
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    priority: str = "medium"
    related_type: Optional[str] = None
    related_id: Optional[int] = None

    model_config = ConfigDict(validate_default=True)

    @field_validator("title", mode="before")
    @classmethod
    def check_title(cls, v):
        return require_text(v, "Please enter reminder title")

    @field_validator("description", mode="before")
    @classmethod
    def strip_description(cls, v):
        return optional_text(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def check_due_date(cls, v):
        return required_datetime(v, "Please enter a valid due date")

    @field_validator("priority", mode="before")
    @classmethod
    def check_priority(cls, v):
        value = optional_text(v) or "medium"
        if value not in ReminderPriority.__args__:
            raise ValueError("Please select a valid priority")
        return value

    @field_validator("related_type", mode="before")
    @classmethod
    def check_related_type(cls, v):
        value = optional_text(v)
        if value is not None and value not in RelatedType.__args__:
            raise ValueError("Please select a valid related item")
        return value

    @field_validator("related_id", mode="before")
    @classmethod
    def check_related_id(cls, v):
        return optional_int(v, "Please select a valid related item")
