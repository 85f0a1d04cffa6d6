"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import Database
from app.errors import StorageError
from app.routers import dashboard, reports, time_entries, users


logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)-8s - %(message)s'
)
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events."""
    # Startup
    database = Database(
        settings.mongodb_url,
        settings.mongodb_db_name,
        timeout_ms=settings.mongodb_timeout_ms,
    )
    await database.connect()
    app.state.database = database
    yield
    # Shutdown
    await database.disconnect()


app = FastAPI(
    title="Timesheet API",
    description="Time tracking backend: time entries, timers and dashboards",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(time_entries.router)
app.include_router(dashboard.router)
app.include_router(reports.router)
app.include_router(users.router)


def _field_errors(errors) -> list[dict]:
    """Flatten pydantic error locations into field names."""
    details = []
    for error in errors:
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        details.append({
            "field": ".".join(location) or None,
            "message": error.get("msg", "Invalid value"),
        })
    return details


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Serve malformed input as 400 with field-level errors."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder({"detail": _field_errors(exc.errors())}),
    )


@app.exception_handler(StorageError)
async def storage_exception_handler(request: Request, exc: StorageError):
    """Serve storage failures without leaking driver details."""
    log.error("Storage error on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


@app.get("/")
async def root():
    """Root endpoint - service banner."""
    return {"status": "ok", "message": "Timesheet API"}


@app.get("/health")
async def health(request: Request):
    """Health check endpoint; reports 503 when MongoDB is unreachable."""
    database = getattr(request.app.state, "database", None)
    if database is None or not await database.ping():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "database": "unreachable"},
        )
    return {"status": "healthy", "database": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.api_host, port=settings.api_port, reload=settings.debug)
