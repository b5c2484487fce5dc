"""Contact form schemas."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from backend.app.schemas.forms import normalize_email, optional_int, optional_text, require_text


class ContactForm(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    mobile: Optional[str] = None
    company: Optional[str] = None
    position: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = None
    lead_source: Optional[str] = None
    lead_status: Optional[str] = "new"
    lead_score: int = 0
    notes: Optional[str] = None
    owner_id: Optional[int] = None
    tags: Optional[List[int]] = None

    model_config = ConfigDict(validate_default=True)

    @field_validator("first_name", mode="before")
    @classmethod
    def check_first_name(cls, v):
        return require_text(v, "Please enter first name")

    @field_validator("last_name", mode="before")
    @classmethod
    def check_last_name(cls, v):
        return require_text(v, "Please enter last name")

    @field_validator("email", mode="before")
    @classmethod
    def check_email(cls, v):
        return normalize_email(v)

    @field_validator(
        "phone", "mobile", "company", "position", "website", "address", "city", "state", "zip", "country",
        "lead_source", "notes",
        mode="before",
    )
    @classmethod
    def strip_optional(cls, v):
        return optional_text(v)

    @field_validator("lead_status", mode="before")
    @classmethod
    def default_status(cls, v):
        return optional_text(v) or "new"

    @field_validator("lead_score", mode="before")
    @classmethod
    def check_lead_score(cls, v):
        score = optional_int(v, "Lead score must be a number")
        if score is None:
            return 0
        if not 0 <= score <= 100:
            raise ValueError("Lead score must be between 0 and 100")
        return score

    @field_validator("owner_id", mode="before")
    @classmethod
    def check_owner(cls, v):
        return optional_int(v, "Please select a valid owner")

    @field_validator("tags", mode="before")
    @classmethod
    def check_tags(cls, v):
        if v is None:
            return None
        values = v if isinstance(v, (list, tuple)) else [v]
        tag_ids = []
        for value in values:
            tag_id = optional_int(value, "Please select valid tags")
            if tag_id is not None:
                tag_ids.append(tag_id)
        return tag_ids


class TagForm(BaseModel):
    name: str = ""
    color: str = "#6B7280"

    model_config = ConfigDict(validate_default=True)

    @field_validator("name", mode="before")
    @classmethod
    def check_name(cls, v):
        return require_text(v, "Please enter tag name")

    @field_validator("color", mode="before")
    @classmethod
    def check_color(cls, v):
        color = optional_text(v) or "#6B7280"
        if len(color) != 7 or not color.startswith("#"):
            raise ValueError("Please enter a valid color")
        try:
            int(color[1:], 16)
        except ValueError as exc:
            raise ValueError("Please enter a valid color") from exc
        return color
