import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..config.global_config_loader import get_global_config
from ..core.errors import BenchmarkAbortedError, SqlPeekError
from ..tracking.query_tracker import QueryTracker
from .state import app_state


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle"""
    # Startup
    logging.info("Starting sqlpeek API")

    # Keep a config injected by run_server() or a test
    config = app_state.get("global_config") or get_global_config()
    app_state["global_config"] = config
    app_state.setdefault("tracker", QueryTracker())

    logging.info(f"Default database type: {config.defaults.database_type}")

    yield

    # Shutdown
    tracker = app_state.get("tracker")
    if tracker and tracker.active_count:
        logging.warning(f"Shutting down with {tracker.active_count} queries still running")
    logging.info("Shutting down sqlpeek API")


app = FastAPI(
    title="sqlpeek API",
    description="SQL synthesis, execution and benchmarking for PostgreSQL, MySQL, SQL Server and SQLite",
    version=__version__,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SqlPeekError)
async def sqlpeek_error_handler(request: Request, exc: SqlPeekError):
    # A failed benchmark run is a database failure, not a bad request
    status_code = 500 if isinstance(exc, BenchmarkAbortedError) else 400
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        location = '.'.join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    logging.debug(f"Rejected request to {request.url.path}: {messages}")
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": f"Invalid request payload: {'; '.join(messages)}"}
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": str(exc.detail)})


# Include routers (imported here to avoid circular import)
from .routers import db, ddl
app.include_router(ddl.router)
app.include_router(db.router)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    tracker = app_state.get("tracker")
    return {
        "status": "healthy",
        "service": "sqlpeek-api",
        "version": __version__,
        "activeQueries": tracker.active_count if tracker else 0
    }


def run_server(host: str = None, port: int = None, log_level: str = None):
    """Run the API server with uvicorn, falling back to the global config"""
    config = app_state.get("global_config") or get_global_config()
    app_state["global_config"] = config

    host = host or config.server.host
    port = port or config.server.port
    log_level = (log_level or config.logging.level).lower()

    logging.info(f"Starting API server on {host}:{port}")

    uvicorn.run(
        "sqlpeek.api.main:app",
        host=host,
        port=port,
        reload=False,
        log_level=log_level
    )
