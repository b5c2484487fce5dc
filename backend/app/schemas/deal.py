"""Deal form schemas."""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from backend.app.schemas.forms import optional_date, optional_int, optional_text, require_text

DealStage = Literal["lead", "qualified", "proposal", "negotiation", "closed-won", "closed-lost"]


class DealForm(BaseModel):
    title: str = ""
    contact_id: Optional[int] = None
    description: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: str = "USD"
    stage: str = "lead"
    probability: Optional[int] = None
    expected_close_date: Optional[date] = None
    owner_id: Optional[int] = None

    model_config = ConfigDict(validate_default=True)

    @field_validator("title", mode="before")
    @classmethod
    def check_title(cls, v):
        return require_text(v, "Please enter deal title")

    @field_validator("contact_id", mode="before")
    @classmethod
    def check_contact(cls, v):
        contact_id = optional_int(v, "Please select a contact")
        if contact_id is None:
            raise ValueError("Please select a contact")
        return contact_id

    @field_validator("description", mode="before")
    @classmethod
    def strip_description(cls, v):
        return optional_text(v)

    @field_validator("amount", mode="before")
    @classmethod
    def check_amount(cls, v):
        text_value = optional_text(v)
        if text_value is None:
            return None
        try:
            amount = Decimal(text_value)
        except InvalidOperation as exc:
            raise ValueError("Please enter a valid amount") from exc
        if not amount.is_finite() or amount < 0:
            raise ValueError("Please enter a valid amount")
        return amount

    @field_validator("currency", mode="before")
    @classmethod
    def default_currency(cls, v):
        return (optional_text(v) or "USD").upper()[:3]

    @field_validator("stage", mode="before")
    @classmethod
    def check_stage(cls, v):
        stage = optional_text(v) or "lead"
        if stage not in DealStage.__args__:
            raise ValueError("Please select a valid stage")
        return stage

    @field_validator("probability", mode="before")
    @classmethod
    def check_probability(cls, v):
        probability = optional_int(v, "Probability must be a number")
        if probability is not None and not 0 <= probability <= 100:
            raise ValueError("Probability must be between 0 and 100")
        return probability

    @field_validator("expected_close_date", mode="before")
    @classmethod
    def check_close_date(cls, v):
        return optional_date(v, "Please enter a valid date")

    @field_validator("owner_id", mode="before")
    @classmethod
    def check_owner(cls, v):
        return optional_int(v, "Please select a valid owner")
