import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from .config import Settings
from .database import Database
from .errors import InvalidInputError, register_error_handlers
from .middleware import RequestLoggingMiddleware
from .migrations import run_migrations
from .schemas import ErrorResponse, PageMeta, TaskListResponse, TaskOut, TaskResponse
from .services import TaskOperations, build_task_operations

logger = logging.getLogger(__name__)

LIST_PARAMS = ("sortBy", "sortOrder", "status", "search", "due_date_start", "due_date_end")
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
# task_id is a signed 64-bit column
MAX_TASK_ID = 2 ** 63

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def get_operations(request: Request) -> TaskOperations:
    return request.app.state.operations


def parse_task_id(raw: str) -> int:
    try:
        task_id = int(raw)
    except (TypeError, ValueError):
        raise InvalidInputError("Invalid task ID") from None
    if not -MAX_TASK_ID <= task_id < MAX_TASK_ID:
        raise InvalidInputError("Invalid task ID")
    return task_id


def _lenient_int(raw: Optional[str], default: int) -> int:
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


router = APIRouter(prefix="/api/tasks", tags=["tasks"], responses=ERROR_RESPONSES)


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task(
    payload: Dict[str, Any] = Body(...),
    operations: TaskOperations = Depends(get_operations),
):
    task = operations.create_task(payload).unwrap()
    return TaskResponse(data=TaskOut.model_validate(task))


@router.get("", response_model=TaskListResponse)
def list_tasks(request: Request, operations: TaskOperations = Depends(get_operations)):
    query = request.query_params
    params: Dict[str, Any] = {
        "page": _lenient_int(query.get("page"), DEFAULT_PAGE),
        "limit": _lenient_int(query.get("limit"), DEFAULT_LIMIT),
    }
    params.update({name: query[name] for name in LIST_PARAMS if name in query})

    page = operations.get_tasks(params).unwrap()
    return TaskListResponse(
        data=[TaskOut.model_validate(task) for task in page.tasks],
        meta=PageMeta(total=page.total, page=page.page, limit=page.limit, pages=page.pages),
    )


@router.get("/{task_id}", response_model=TaskResponse)
def get_task(task_id: str, operations: TaskOperations = Depends(get_operations)):
    task = operations.get_task(parse_task_id(task_id)).unwrap()
    return TaskResponse(data=TaskOut.model_validate(task))


@router.put("/{task_id}", response_model=TaskResponse)
def update_task(
    task_id: str,
    payload: Dict[str, Any] = Body(...),
    operations: TaskOperations = Depends(get_operations),
):
    task = operations.update_task(parse_task_id(task_id), payload).unwrap()
    return TaskResponse(data=TaskOut.model_validate(task))


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(task_id: str, operations: TaskOperations = Depends(get_operations)):
    operations.delete_task(parse_task_id(task_id)).unwrap()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    operations: Optional[TaskOperations] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    database = database or Database.from_settings(settings)
    operations = operations or build_task_operations(database)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database.connect()
        if settings.run_migrations:
            run_migrations(database)
        logger.info("Task API ready", extra={"env": settings.env})
        yield
        database.dispose()

    app = FastAPI(title="Task Manager API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.operations = operations

    app.add_middleware(GZipMiddleware, minimum_size=1024)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    register_error_handlers(app)

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    app.include_router(router)
    return app
