"""
Request payload validation.

Runs before any network call, so malformed input never spends rate-limit
budget or upstream quota.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from shared.errors import ValidationError

MAX_ENTRY_LENGTH = 4000


class ReflectionRequest(BaseModel):
    """Body of the completion endpoint."""

    entry: str = Field(..., min_length=1, max_length=MAX_ENTRY_LENGTH)
    tone: Optional[str] = None

    @field_validator("entry")
    @classmethod
    def entry_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("entry must not be blank")
        return value


class EntryUpdateRequest(BaseModel):
    """Body of the entry edit endpoint. Text is stored trimmed."""

    entry: str = Field(..., max_length=MAX_ENTRY_LENGTH)

    @field_validator("entry", mode="before")
    @classmethod
    def strip_entry(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("entry")
    @classmethod
    def entry_not_blank(cls, value: str) -> str:
        if not value:
            raise ValueError("entry must not be blank")
        return value


def _validate(model, raw_body: Any, message: str):
    if not isinstance(raw_body, dict):
        raise ValidationError(message)
    try:
        return model.model_validate(raw_body, strict=True)
    except PydanticValidationError as exc:
        # Field names only; schema internals stay server-side.
        fields = sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")})
        raise ValidationError(message, details={"fields": fields}) from None


def validate_reflection_request(raw_body: Any) -> ReflectionRequest:
    return _validate(ReflectionRequest, raw_body, "Invalid request")


def validate_entry_update(raw_body: Any) -> EntryUpdateRequest:
    return _validate(EntryUpdateRequest, raw_body, "Missing entry")
