import enum
from datetime import datetime, timezone
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator
from pydantic_core import PydanticCustomError

TITLE_MAX_LENGTH = 100
SEARCH_MAX_LENGTH = 100
MAX_PAGE_SIZE = 100

SORTABLE_FIELDS = ("title", "due_date", "status", "created_at")


class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _now_from(info: ValidationInfo) -> datetime:
    context = info.context or {}
    return as_utc(context.get("now") or datetime.now(timezone.utc))


def _require_future(value: datetime, info: ValidationInfo) -> datetime:
    value = as_utc(value)
    if value <= _now_from(info):
        raise PydanticCustomError("date_min", "Due date must be in the future")
    return value


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=TITLE_MAX_LENGTH)
    description: str = Field(min_length=1)
    due_date: datetime
    status: TaskStatus

    class Config:
        extra = "forbid"
        str_strip_whitespace = True

    @field_validator("due_date")
    @classmethod
    def due_date_in_future(cls, value: datetime, info: ValidationInfo) -> datetime:
        return _require_future(value, info)


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = Field(default=None, min_length=1)
    due_date: Optional[datetime] = None
    status: Optional[TaskStatus] = None

    class Config:
        extra = "forbid"
        str_strip_whitespace = True

    @model_validator(mode="before")
    @classmethod
    def at_least_one_field(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data:
            raise PydanticCustomError("object_min", "At least one field is required for update")
        return data

    @field_validator("*", mode="before")
    @classmethod
    def reject_null(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            label = info.field_name.replace("_", " ").capitalize()
            raise PydanticCustomError("null", "{label} cannot be null", {"label": label})
        return value

    @field_validator("due_date")
    @classmethod
    def due_date_in_future(cls, value: datetime, info: ValidationInfo) -> datetime:
        return _require_future(value, info)

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class TaskListQuery(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=MAX_PAGE_SIZE)
    sort_by: Literal["title", "due_date", "status", "created_at"] = Field(
        default="created_at", alias="sortBy"
    )
    sort_order: Literal["ASC", "DESC"] = Field(default="DESC", alias="sortOrder")
    status: Optional[TaskStatus] = None
    search: Optional[str] = Field(default=None, max_length=SEARCH_MAX_LENGTH)
    due_date_start: Optional[datetime] = None
    due_date_end: Optional[datetime] = None

    class Config:
        extra = "ignore"
        populate_by_name = True
        str_strip_whitespace = True

    @field_validator("due_date_start")
    @classmethod
    def normalize_start(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None

    @field_validator("due_date_end")
    @classmethod
    def end_after_start(cls, value: Optional[datetime], info: ValidationInfo) -> Optional[datetime]:
        if value is None:
            return None
        value = as_utc(value)
        start = info.data.get("due_date_start")
        if start is not None and value < start:
            raise PydanticCustomError(
                "date_min", "Due date end must be after or equal to due date start"
            )
        return value

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class FieldError(BaseModel):
    field: str
    message: str


class TaskOut(BaseModel):
    task_id: int
    title: str
    description: str
    due_date: datetime
    status: TaskStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


class TaskResponse(BaseModel):
    success: bool = True
    data: TaskOut


class TaskListResponse(BaseModel):
    success: bool = True
    data: List[TaskOut]
    meta: PageMeta


class ErrorResponse(BaseModel):
    status: int
    success: bool = False
    message: str
    errors: Optional[List[FieldError]] = None
    timestamp: datetime
    path: str
    requestId: Optional[str] = None
