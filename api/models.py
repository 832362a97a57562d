"""
api/models.py -- Request DTOs and response models for the user directory.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

HTML forms arrive as strings; the models coerce them (e.g. "42" -> 42 for
age) and reject bad input with a ValidationError that web/routes.py turns
into an inline form error via first_error_message().
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from auth.passwords import MAX_PASSWORD_BYTES

# Deliberately loose: one "@" with something on each side. Deliverability is
# not this application's problem.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+$"


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return _strip(value)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterForm(BaseModel):
    """Body of POST /register."""

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    age: int = Field(ge=0, le=150)
    password: str = Field(min_length=1)

    @field_validator("name", "email", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        """bcrypt refuses inputs over 72 bytes; say so instead of failing at hash time."""
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"must be at most {MAX_PASSWORD_BYTES} bytes")
        return value


class LoginForm(BaseModel):
    """Body of POST /login.

    No length or format checks: every attempt reaches the lockout machine.
    """

    email: str
    password: str

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value):
        return _strip(value)


class ProfileUpdateForm(BaseModel):
    """Body of POST /users/update/{id}. Blank or missing fields mean "leave unchanged"."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = Field(default=None, min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    age: Optional[int] = Field(default=None, ge=0, le=150)

    @field_validator("name", "email", "age", mode="before")
    @classmethod
    def blank_means_unchanged(cls, value):
        return _blank_to_none(value)


class ListParams(BaseModel):
    """Query string of GET /."""

    model_config = ConfigDict(populate_by_name=True)

    search: Optional[str] = None
    sort_by: Optional[str] = Field(default=None, alias="sortBy")
    order: Optional[str] = None


def first_error_message(exc: ValidationError) -> str:
    """Render the first validation error as "field: message" for display in a form."""
    err = exc.errors()[0]
    field = ".".join(str(part) for part in err.get("loc", ())) or "input"
    return f"{field}: {err.get('msg', 'invalid value')}"


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error code plus the message shown to the user."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str


class HealthResponse(BaseModel):
    """Response for GET /health."""

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
