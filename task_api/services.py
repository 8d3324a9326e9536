"""
Task operations: the transaction boundary around the store.

Mutations run in one transaction each. An ``Ok`` result commits, an ``Err``
result or an exception rolls back. Exceptions raised while the work runs
surface as ``InvalidInput`` results, except typed API errors, which
propagate after the rollback.
"""
import logging
from typing import Any, Callable, Mapping, Optional

from sqlalchemy.orm import Session

from .crud import Clock, TaskStore
from .database import Database
from .errors import ApiError
from .models import utcnow
from .result import Err, InvalidInput, Result

logger = logging.getLogger(__name__)


class TaskOperations:
    def __init__(self, database: Database, store: TaskStore):
        self._database = database
        self._store = store

    def _in_transaction(self, action: str, work: Callable[[Session], Result], **log_fields) -> Result:
        session = self._database.session()
        try:
            result = work(session)
            if result.ok:
                session.commit()
            else:
                session.rollback()
                logger.info("Failed to %s task", action, extra={**log_fields, "reason": result.error.message})
            return result
        except ApiError:
            session.rollback()
            raise
        except Exception:
            session.rollback()
            logger.exception("Failed to %s task", action, extra=log_fields)
            return Err(InvalidInput("Invalid task data"))
        finally:
            session.close()

    def create_task(self, data: Mapping[str, Any]) -> Result:
        logger.info("Creating new task", extra={"title": data.get("title") if isinstance(data, Mapping) else None})
        return self._in_transaction("create", lambda s: self._store.create(data, session=s))

    def get_tasks(self, params: Optional[Mapping[str, Any]] = None) -> Result:
        logger.info("Getting tasks with filters", extra={"filters": dict(params or {})})
        return self._store.find_many(params)

    def get_task(self, task_id: int) -> Result:
        logger.info("Getting task by ID", extra={"task_id": task_id})
        return self._store.find_by_id(task_id)

    def update_task(self, task_id: int, data: Mapping[str, Any]) -> Result:
        logger.info("Updating task", extra={"task_id": task_id})
        return self._in_transaction(
            "update", lambda s: self._store.update(task_id, data, session=s), task_id=task_id
        )

    def delete_task(self, task_id: int) -> Result:
        logger.info("Deleting task", extra={"task_id": task_id})
        return self._in_transaction(
            "delete", lambda s: self._store.delete(task_id, session=s), task_id=task_id
        )


def build_task_store(database: Database, clock: Clock = utcnow) -> TaskStore:
    return TaskStore(database, clock=clock)


def build_task_operations(
    database: Database, clock: Clock = utcnow, store: Optional[TaskStore] = None
) -> TaskOperations:
    return TaskOperations(database, store or build_task_store(database, clock))
