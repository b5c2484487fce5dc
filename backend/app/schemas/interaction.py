from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from backend.app.schemas.forms import optional_int, optional_text, require_text, required_datetime

InteractionType = Literal["call", "email", "meeting", "task", "note", "other"]
InteractionStatus = Literal["planned", "completed", "canceled"]


class InteractionForm(BaseModel):
    type: str = ""
    subject: str = ""
    description: Optional[str] = None
    date: Optional[datetime] = None
    duration: Optional[int] = None
    status: str = "planned"
    outcome: Optional[str] = None

    model_config = ConfigDict(validate_default=True)

    @field_validator("type", mode="before")
    @classmethod
    def check_type(cls, v):
        value = optional_text(v)
        if value not in InteractionType.__args__:
            raise ValueError("Please select interaction type")
        return value

    @field_validator("subject", mode="before")
    @classmethod
    def check_subject(cls, v):
        return require_text(v, "Please enter subject")

    @field_validator("date", mode="before")
    @classmethod
    def check_date(cls, v):
        return required_datetime(v, "Please enter a valid date")

    @field_validator("duration", mode="before")
    @classmethod
    def check_duration(cls, v):
        duration = optional_int(v, "Duration must be a number of minutes")
        if duration is not None and duration < 0:
            raise ValueError("Duration must be a number of minutes")
        return duration

    @field_validator("status", mode="before")
    @classmethod
    def check_status(cls, v):
        value = optional_text(v) or "planned"
        if value not in InteractionStatus.__args__:
            raise ValueError("Please select a valid status")
        return value

    @field_validator("description", "outcome", mode="before")
    @classmethod
    def strip_optional(cls, v):
        return optional_text(v)


class InteractionStatusForm(BaseModel):
    status: str = ""
    outcome: Optional[str] = None

    model_config = ConfigDict(validate_default=True)

    @field_validator("status", mode="before")
    @classmethod
    def check_status(cls, v):
        value = optional_text(v)
        if value not in InteractionStatus.__args__:
            raise ValueError("Please select a valid status")
        return value

    @field_validator("outcome", mode="before")
    @classmethod
    def strip_outcome(cls, v):
        return optional_text(v)
