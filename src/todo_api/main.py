import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .dao import ToDoItemDAO
from .exceptions import DataAccessError, StoreConnectionError
from .provisioning import provision
from .routers import todos as todos_router
from .settings import get_settings
from .stores import get_store

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {"name": "todos", "description": "CRUD operations for to-do items."},
]

# Read at import for middleware setup; the lifespan reads its own copy
_settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Own the store connection and the DAO for the lifetime of the app.
    Settings are read once here so provisioning and requests use the same
    collections. The memory backend starts empty, so it is provisioned on
    startup. Only the package logger level is set; handlers belong to the
    server running the app.
    """
    settings = get_settings()
    logging.getLogger("todo_api").setLevel(settings.log_level)
    store = get_store(settings)
    await store.connect()
    if settings.persistence_backend == "memory":
        await provision(store, settings.todo_collection, settings.sequences_collection)
    app.state.settings = settings
    app.state.store = store
    app.state.dao = ToDoItemDAO(
        store,
        collection=settings.todo_collection,
        sequences=settings.sequences_collection,
    )
    try:
        yield
    finally:
        await store.disconnect()


app = FastAPI(
    title="ToDo Backend",
    description="Backend API service for a to-do list stored in a document database.",
    version="0.1.0",
    openapi_tags=openapi_tags,
    lifespan=lifespan,
)

# Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
allow_all = (_settings.cors_allow_origins == ["*"]) or (len(_settings.cors_allow_origins) == 0)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all else _settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def jsonable_errors(exc: RequestValidationError) -> list:
    # ValueErrors raised in validators sit in 'ctx' and are not JSON serializable
    errors = []
    for err in exc.errors():
        err = dict(err)
        if "ctx" in err:
            err["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        errors.append(err)
    return errors


# Global exception handlers for consistent JSON on validation errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return a consistent JSON structure for request validation errors.

    Response format:
        {
            "error": "ValidationError",
            "detail": [... pydantic/fastapi error details ...],
            "message": "Request validation failed"
        }
    """
    return JSONResponse(
        status_code=422,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "detail": jsonable_errors(exc),
        },
    )


@app.exception_handler(DataAccessError)
async def data_access_exception_handler(request: Request, exc: DataAccessError) -> JSONResponse:
    """
    Log data layer failures and return them as JSON.

    StoreConnectionError maps to 503, every other DataAccessError to 500.
    """
    if isinstance(exc, StoreConnectionError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse(
        status_code=code,
        content={"error": type(exc).__name__, "message": str(exc)},
    )


# PUBLIC_INTERFACE
@app.get("/", summary="Health Check", tags=["health"])
def health_check(request: Request):
    """
    Health check endpoint.

    Returns:
        A JSON object indicating service health.
    """
    return {"message": "Healthy", "backend": request.app.state.settings.persistence_backend}


# Include routers
app.include_router(todos_router.router)
