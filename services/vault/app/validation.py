from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from services.vault.app.errors import ValidationError
from services.vault.app.schemas import PasswordFields


_REQUIRED_MESSAGES = {
    "title": "Title is required",
    "password": "Password is required",
}
_IMMUTABLE_FIELDS = frozenset({"id", "createdAt", "updatedAt", "created_at", "updated_at"})


def _first_error(exc: PydanticValidationError) -> ValidationError:
    err = exc.errors()[0]
    loc = err.get("loc") or ("__root__",)
    field = str(loc[0])
    if err.get("type") in ("string_too_short", "missing") and field in _REQUIRED_MESSAGES:
        return ValidationError(field, _REQUIRED_MESSAGES[field])
    return ValidationError(field, err.get("msg", "invalid value"))


def validate_new_record(data: Mapping[str, Any] | PasswordFields) -> PasswordFields:
    """
    Check the shape of an incoming record before anything is encrypted or written.

    title and password must be non-empty; username, website and notes may be
    empty and default to "" when absent. Raises ValidationError naming the
    first offending field.
    """
    if isinstance(data, PasswordFields):
        data = data.model_dump()
    try:
        return PasswordFields.model_validate(dict(data))
    except PydanticValidationError as e:
        raise _first_error(e) from None


def validate_record_id(record_id: Any) -> str:
    if not isinstance(record_id, str) or not record_id:
        raise ValidationError("id", "id is required")
    return record_id


def validate_record_update(record_id: Any, data: Mapping[str, Any] | PasswordFields) -> PasswordFields:
    validate_record_id(record_id)
    if isinstance(data, Mapping):
        # Callers may pass a whole record back; id and timestamps are not replaceable.
        data = {k: v for k, v in data.items() if k not in _IMMUTABLE_FIELDS}
    return validate_new_record(data)
