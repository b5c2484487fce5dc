"""User account form schemas for registration, login and profile updates."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator

from backend.app.core.settings import get_settings
from backend.app.schemas.forms import checkbox, normalize_email, optional_text, require_text

Theme = Literal["light", "dark"]
UserStatus = Literal["active", "inactive", "suspended"]


def _check_new_password(value) -> str:
    password = value if isinstance(value, str) else ""
    if password == "":
        raise ValueError("Please enter password")
    min_length = get_settings().min_password_length
    if len(password) < min_length:
        raise ValueError(f"Password must be at least {min_length} characters")
    return password


def _check_required_email(value) -> str:
    email = normalize_email(require_text(value, "Please enter email"))
    return email


class RegisterForm(BaseModel):
    name: str = ""
    email: str = ""
    password: str = ""
    confirm_password: str = ""

    model_config = ConfigDict(validate_default=True)

    @field_validator("name", mode="before")
    @classmethod
    def check_name(cls, v):
        return require_text(v, "Please enter name")

    @field_validator("email", mode="before")
    @classmethod
    def check_email(cls, v):
        return _check_required_email(v)

    @field_validator("password", mode="before")
    @classmethod
    def check_password(cls, v):
        return _check_new_password(v)

    @field_validator("confirm_password", mode="before")
    @classmethod
    def check_confirm(cls, v, info: ValidationInfo):
        if not v:
            raise ValueError("Please confirm password")
        if "password" in info.data and v != info.data["password"]:
            raise ValueError("Passwords do not match")
        return v


class LoginForm(BaseModel):
    email: str = ""
    password: str = ""
    remember_me: bool = False

    model_config = ConfigDict(validate_default=True)

    @field_validator("email", mode="before")
    @classmethod
    def check_email(cls, v):
        return require_text(v, "Please enter email")

    @field_validator("password", mode="before")
    @classmethod
    def check_password(cls, v):
        if not v:
            raise ValueError("Please enter password")
        return v

    @field_validator("remember_me", mode="before")
    @classmethod
    def check_remember(cls, v):
        return checkbox(v)


class ProfileForm(BaseModel):
    name: str = ""
    email: str = ""
    phone: Optional[str] = None
    position: Optional[str] = None
    theme: str = "light"
    current_password: Optional[str] = None
    new_password: Optional[str] = None
    confirm_password: Optional[str] = None

    model_config = ConfigDict(validate_default=True)

    @field_validator("name", mode="before")
    @classmethod
    def check_name(cls, v):
        return require_text(v, "Please enter name")

    @field_validator("email", mode="before")
    @classmethod
    def check_email(cls, v):
        return _check_required_email(v)

    @field_validator("phone", "position", mode="before")
    @classmethod
    def strip_optional(cls, v):
        return optional_text(v)

    @field_validator("theme", mode="before")
    @classmethod
    def check_theme(cls, v):
        theme = optional_text(v) or "light"
        if theme not in Theme.__args__:
            raise ValueError("Please select a valid theme")
        return theme

    @field_validator("current_password", mode="before")
    @classmethod
    def blank_current(cls, v):
        return v or None

    @field_validator("new_password", mode="before")
    @classmethod
    def check_new_password(cls, v):
        if not v:
            return None
        return _check_new_password(v)

    @field_validator("confirm_password", mode="before")
    @classmethod
    def check_confirm(cls, v, info: ValidationInfo):
        new_password = info.data.get("new_password")
        if new_password and v != new_password:
            raise ValueError("Passwords do not match")
        return v or None

    @property
    def changes_password(self) -> bool:
        return bool(self.new_password)
