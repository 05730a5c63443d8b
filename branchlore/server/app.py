"""HTTP JSON API over the branch repository manager.

Every response uses one envelope:
    {"success": bool, "data": ..., "error": {"code", "message", "details"} | null}
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Tuple, Type

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from branchlore.__version__ import __version__
from branchlore.core.branch_repository import BranchRepositoryManager
from branchlore.exceptions import (
    BranchExistsError,
    BranchloreError,
    BranchNotFoundError,
    BranchProtectedError,
    InvalidBranchNameError,
    MergeCheckoutError,
    NoCommitsError,
    NotInitializedError,
    QueryError,
    RepositoryIOError,
    WorktreeCreationError,
)
from branchlore.services.branch_status_service import BranchStatusService
from branchlore.services.database_service import DatabaseService
from branchlore.services.storage_service import FileSystem
from branchlore.utils.logging import get_logger

logger = get_logger(__name__)

# Checked in order, so subclasses come before their bases
ERROR_STATUS: List[Tuple[Type[BranchloreError], int, str]] = [
    (BranchNotFoundError, 404, "BRANCH_NOT_FOUND"),
    (BranchExistsError, 409, "BRANCH_EXISTS"),
    (BranchProtectedError, 403, "BRANCH_PROTECTED"),
    (InvalidBranchNameError, 400, "INVALID_BRANCH_NAME"),
    (QueryError, 400, "QUERY_ERROR"),
    (MergeCheckoutError, 409, "MERGE_CHECKOUT_FAILED"),
    (NotInitializedError, 503, "NOT_INITIALIZED"),
    (WorktreeCreationError, 500, "WORKTREE_ERROR"),
    (NoCommitsError, 500, "NO_COMMITS"),
    (RepositoryIOError, 500, "REPOSITORY_ERROR"),
]


# -- Request / response models --------------------------------------------------


class ErrorInfo(BaseModel):
    code: str
    message: str
    details: Optional[Any] = None


class APIResponse(BaseModel):
    success: bool
    data: Optional[Any] = None
    error: Optional[ErrorInfo] = None


class CreateBranchRequest(BaseModel):
    name: str = Field(..., min_length=1, description="Name of the new branch")


class QueryRequest(BaseModel):
    branch: str = Field(..., min_length=1)
    sql: str = Field(..., min_length=1)


class CommitRequest(BaseModel):
    branch: str = Field(..., min_length=1)
    message: Optional[str] = None


class MergeRequest(BaseModel):
    source: str = Field(..., min_length=1)
    target: str = Field(..., min_length=1)


def ok(data: Any = None) -> Dict[str, Any]:
    return {"success": True, "data": data, "error": None}


def error_response(status_code: int, code: str, message: str, details: Any = None) -> JSONResponse:
    body = APIResponse(success=False, error=ErrorInfo(code=code, message=message, details=details))
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def classify_error(exc: BranchloreError) -> Tuple[int, str]:
    for exc_type, status_code, code in ERROR_STATUS:
        if isinstance(exc, exc_type):
            return status_code, code
    return 500, "INTERNAL_ERROR"


# -- Application ------------------------------------------------------------------


def create_app(
    manager: BranchRepositoryManager,
    database_service: Optional[DatabaseService] = None,
    status_service: Optional[BranchStatusService] = None,
    storage: Optional[FileSystem] = None,
    initialize: bool = False,
) -> FastAPI:
    """Build the API around an existing manager.

    Args:
        manager: Branch repository manager (initialized, or initialized at startup)
        database_service: SQL access; built from the manager when omitted
        status_service: Branch status reporting; built from the manager when omitted
        storage: Filesystem helper; built from the manager's config when omitted
        initialize: Run ``manager.init()`` when the server starts
    """
    storage = storage or FileSystem(manager.config)
    database_service = database_service or DatabaseService(manager, storage=storage)
    status_service = status_service or BranchStatusService(manager, storage)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if initialize:
            try:
                await run_in_threadpool(manager.init)
                logger.info(f"Repository ready at {manager.repo_root}")
            except BranchloreError as e:
                # Keep serving; /health reports "starting" until init succeeds
                logger.error(f"Repository initialization failed: {e}")
        yield
        database_service.close()

    app = FastAPI(title="branchlore API", version=__version__, lifespan=lifespan)
    app.state.manager = manager
    app.state.database_service = database_service
    app.state.status_service = status_service

    @app.exception_handler(BranchloreError)
    async def handle_branchlore_error(request: Request, exc: BranchloreError):
        status_code, code = classify_error(exc)
        details = exc.result.to_dict() if isinstance(exc, MergeCheckoutError) else None
        if isinstance(exc, NoCommitsError):
            logger.critical(str(exc))
        elif status_code >= 500:
            logger.error(f"{request.method} {request.url.path}: {exc}")
        else:
            logger.debug(f"{request.method} {request.url.path}: {exc}")
        return error_response(status_code, code, str(exc), details)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return error_response(400, "INVALID_REQUEST", "Request validation failed", exc.errors())

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, "HTTP_ERROR", str(exc.detail))

    @app.get("/health")
    def health():
        try:
            revision = manager.current_revision()
        except NotInitializedError:
            return JSONResponse(
                status_code=503,
                content={
                    "success": False,
                    "data": {"status": "starting", "state": manager.state.value},
                    "error": {"code": "NOT_INITIALIZED", "message": "Repository is not initialized", "details": None},
                },
            )
        return ok({"status": "healthy", "revision": revision})

    @app.get("/api/branches")
    def list_branches():
        return ok([branch.to_dict() for branch in manager.list_branches()])

    @app.post("/api/branches")
    def create_branch(request: CreateBranchRequest):
        branch = manager.create_branch(request.name)
        logger.info(f"Created branch {branch.name}")
        return ok(branch.to_dict())

    @app.get("/api/branches/{name:path}")
    def get_branch(name: str):
        return ok(status_service.get_branch_status(name).to_dict())

    @app.delete("/api/branches/{name:path}")
    def delete_branch(name: str):
        manager.delete_branch(name)
        logger.info(f"Deleted branch {name}")
        return ok({"deleted": name})

    @app.post("/api/query")
    def query(request: QueryRequest):
        return ok(database_service.query(request.branch, request.sql).to_dict())

    @app.post("/api/commit")
    def commit(request: CommitRequest):
        return ok(manager.commit_branch(request.branch, request.message).to_dict())

    @app.post("/api/merge")
    def merge(request: MergeRequest):
        result = manager.merge(request.source, request.target)
        if not result.success:
            logger.info(f"Merge of {request.source} into {request.target} failed: {result.conflicts}")
        return ok(result.to_dict())

    @app.get("/api/status")
    def status():
        return ok(status_service.repository_summary())

    return app
