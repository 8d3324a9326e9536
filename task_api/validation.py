"""
Validation rules for task input.

Every validator is a pure function: it takes the raw mapping supplied by a
client and returns a ``ValidationResult`` holding either the normalized
pydantic model or the complete, ordered list of field errors. Nothing here
raises for bad input.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .schemas import (
    MAX_PAGE_SIZE,
    SEARCH_MAX_LENGTH,
    SORTABLE_FIELDS,
    TITLE_MAX_LENGTH,
    FieldError,
    TaskCreate,
    TaskListQuery,
    TaskStatus,
    TaskUpdate,
)

M = TypeVar("M", bound=BaseModel)

BODY_FIELD = "body"

_LABELS = {
    "title": "Title",
    "description": "Description",
    "due_date": "Due date",
    "status": "Status",
    "page": "Page",
    "limit": "Limit",
    "sortBy": "Sort field",
    "sortOrder": "Sort order",
    "search": "Search",
    "due_date_start": "Due date start",
    "due_date_end": "Due date end",
}

_STATUS_MESSAGE = "Status must be one of: " + ", ".join(s.value for s in TaskStatus)

_FIXED_MESSAGES = {
    ("title", "string_too_long"): f"Title cannot be longer than {TITLE_MAX_LENGTH} characters",
    ("search", "string_too_long"): f"Search cannot be longer than {SEARCH_MAX_LENGTH} characters",
    ("sortBy", "literal_error"): "Sort field must be one of [" + ", ".join(SORTABLE_FIELDS) + "]",
    ("sortOrder", "literal_error"): "Sort order must be either ASC or DESC",
    ("limit", "less_than_equal"): f"Limit cannot exceed {MAX_PAGE_SIZE}",
}

_DATE_ERRORS = {"datetime_parsing", "datetime_type", "datetime_from_date_parsing", "datetime_object_invalid"}
_INT_ERRORS = {"int_parsing", "int_type", "int_from_float"}


@dataclass(frozen=True)
class ValidationResult(Generic[M]):
    value: Optional[M] = None
    errors: List[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _field_name(loc: tuple) -> str:
    parts = [str(part) for part in loc if part != "__root__"]
    return ".".join(parts) if parts else BODY_FIELD


def _message(name: str, error: dict) -> str:
    kind = error["type"]
    label = _LABELS.get(name, name)

    if (name, kind) in _FIXED_MESSAGES:
        return _FIXED_MESSAGES[(name, kind)]
    if kind in ("missing", "string_too_short"):
        return f"{label} is required"
    if kind == "string_type":
        return f"{label} must be a string"
    if kind == "extra_forbidden":
        return f'"{name}" is not allowed'
    if kind == "enum":
        return _STATUS_MESSAGE
    if kind in _DATE_ERRORS:
        return f"{label} must be a valid date"
    if kind in _INT_ERRORS:
        return f"{label} must be an integer"
    if kind == "greater_than_equal":
        return f"{label} must be at least {error['ctx']['ge']}"
    if kind in ("model_type", "dict_type"):
        return "Request body must be a JSON object"
    return error["msg"]


def field_errors(exc: ValidationError) -> List[FieldError]:
    errors = []
    for error in exc.errors():
        name = _field_name(error["loc"])
        errors.append(FieldError(field=name, message=_message(name, error)))
    return errors


def _validate(model: Type[M], data: Any, now: Optional[datetime] = None) -> ValidationResult[M]:
    try:
        value = model.model_validate(data, context={"now": now})
    except ValidationError as exc:
        return ValidationResult(errors=field_errors(exc))
    return ValidationResult(value=value)


def validate_create(data: Mapping[str, Any], now: Optional[datetime] = None) -> ValidationResult[TaskCreate]:
    return _validate(TaskCreate, data, now)


def validate_update(data: Mapping[str, Any], now: Optional[datetime] = None) -> ValidationResult[TaskUpdate]:
    return _validate(TaskUpdate, data, now)


def validate_list_query(params: Optional[Mapping[str, Any]] = None) -> ValidationResult[TaskListQuery]:
    """Normalize list parameters, applying defaults for anything left out.

    Unknown parameters are ignored. Empty strings count as "not supplied" so
    that ``?status=&search=`` behaves like an unfiltered request.
    """
    cleaned = {k: v for k, v in (params or {}).items() if v is not None and v != ""}
    return _validate(TaskListQuery, cleaned)
