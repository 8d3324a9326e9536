import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional

from sqlalchemy import asc, desc, func, or_, select
from sqlalchemy.orm import Session

from . import models
from .database import Database, get_session
from .result import Err, InvalidInput, NotFound, Ok, Result
from .schemas import TaskListQuery
from .validation import validate_create, validate_list_query, validate_update

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_SORT_COLUMNS = {
    "title": models.Task.title,
    "due_date": models.Task.due_date,
    "status": models.Task.status,
    "created_at": models.Task.created_at,
}


@dataclass(frozen=True)
class TaskPage:
    tasks: List[models.Task]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _filters(query: TaskListQuery) -> list:
    conditions = []
    if query.status is not None:
        conditions.append(models.Task.status == query.status)

    start, end = query.due_date_start, query.due_date_end
    if start is not None and end is not None:
        conditions.append(models.Task.due_date.between(start, end))
    elif start is not None:
        conditions.append(models.Task.due_date >= start)
    elif end is not None:
        conditions.append(models.Task.due_date <= end)

    if query.search:
        pattern = f"%{_escape_like(query.search)}%"
        conditions.append(
            or_(
                models.Task.title.like(pattern, escape="\\"),
                models.Task.description.like(pattern, escape="\\"),
            )
        )
    return conditions


class TaskStore:
    """Sole owner of the ``tasks`` table.

    Every method takes an optional ``session``; pass one to run inside a
    caller's transaction. Without it the store opens (and closes) its own
    session and never commits, so writes should go through a transaction.
    """

    def __init__(self, database: Database, clock: Clock = models.utcnow):
        self._database = database
        self._clock = clock

    def create(self, data: Mapping[str, Any], session: Optional[Session] = None) -> Result:
        logger.debug("Creating new task", extra={"title": data.get("title") if isinstance(data, Mapping) else None})
        now = self._clock()
        checked = validate_create(data, now=now)
        if not checked.ok:
            logger.debug("Rejected task data", extra={"errors": [e.model_dump() for e in checked.errors]})
            return Err(InvalidInput("Validation failed", checked.errors))

        with get_session(self._database, session) as db:
            task = models.Task(**checked.value.model_dump(), created_at=now, updated_at=now)
            db.add(task)
            db.flush()
            db.refresh(task)
            return Ok(task)

    def find_by_id(self, task_id: int, session: Optional[Session] = None) -> Result:
        logger.debug("Fetching task by ID", extra={"task_id": task_id})
        with get_session(self._database, session) as db:
            task = db.get(models.Task, task_id)
            if task is None:
                return Err(NotFound(task_id))
            return Ok(task)

    def find_many(self, params: Optional[Mapping[str, Any]] = None, session: Optional[Session] = None) -> Result:
        checked = validate_list_query(params)
        if not checked.ok:
            return Err(InvalidInput("Invalid query parameters", checked.errors))
        query = checked.value

        conditions = _filters(query)
        column = _SORT_COLUMNS[query.sort_by]
        direction = asc if query.sort_order == "ASC" else desc

        logger.debug(
            "Fetching tasks from database",
            extra={
                "page": query.page,
                "limit": query.limit,
                "offset": query.offset,
                "sort_by": query.sort_by,
                "sort_order": query.sort_order,
            },
        )

        with get_session(self._database, session) as db:
            total = db.scalar(select(func.count()).select_from(models.Task).where(*conditions)) or 0
            # nothing past the last page; huge offsets never reach the driver
            if query.offset >= total:
                return Ok(TaskPage(tasks=[], total=total, page=query.page, limit=query.limit))
            rows = db.scalars(
                select(models.Task)
                .where(*conditions)
                .order_by(direction(column), direction(models.Task.task_id))
                .limit(query.limit)
                .offset(query.offset)
            ).all()

        return Ok(TaskPage(tasks=list(rows), total=total, page=query.page, limit=query.limit))

    def update(self, task_id: int, data: Mapping[str, Any], session: Optional[Session] = None) -> Result:
        logger.debug("Updating task", extra={"task_id": task_id})
        now = self._clock()
        checked = validate_update(data, now=now)
        if not checked.ok:
            return Err(InvalidInput("Validation failed", checked.errors))

        with get_session(self._database, session) as db:
            task = db.get(models.Task, task_id)
            if task is None:
                return Err(NotFound(task_id))

            for field, value in checked.value.changes().items():
                setattr(task, field, value)
            task.updated_at = now
            db.flush()
            db.refresh(task)
            return Ok(task)

    def delete(self, task_id: int, session: Optional[Session] = None) -> Result:
        logger.debug("Deleting task", extra={"task_id": task_id})
        with get_session(self._database, session) as db:
            task = db.get(models.Task, task_id)
            if task is None:
                return Err(NotFound(task_id))
            db.delete(task)
            db.flush()
            return Ok(None)
