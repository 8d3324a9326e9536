from dataclasses import dataclass, field
from typing import Generic, List, TypeVar, Union

from .errors import InvalidInputError, NotFoundError
from .schemas import FieldError

T = TypeVar("T")


@dataclass(frozen=True)
class NotFound:
    task_id: int

    @property
    def message(self) -> str:
        return f"Task with ID {self.task_id} not found"

    def to_exception(self) -> NotFoundError:
        return NotFoundError(self.message)


@dataclass(frozen=True)
class InvalidInput:
    message: str = "Validation failed"
    errors: List[FieldError] = field(default_factory=list)

    def to_exception(self) -> InvalidInputError:
        return InvalidInputError(self.message, errors=self.errors)


TaskError = Union[NotFound, InvalidInput]


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok = True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: TaskError
    ok = False

    def unwrap(self):
        raise self.error.to_exception()


Result = Union[Ok[T], Err]
