"""Team Agenda Web Application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from agenda.core.config import settings
from agenda.core.database import create_db_and_tables
from agenda.core.errors import (
    AgendaError,
    DuplicateParticipationError,
    LocationConflictError,
    NotFoundError,
    StoreError,
    UnauthorizedTransitionError,
    ValidationError,
)
from agenda.realtime.bridge import LiveSyncBridge
from agenda.routes import appointments, notifications, participation
from agenda.routes.deps import get_store

# Configure logging
log_dir = settings.log_dir
log_dir.mkdir(parents=True, exist_ok=True)
log_file = log_dir / "latest.log"

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    filename=str(log_file),
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle."""
    # Startup
    logger.info("Starting Team Agenda application")
    await create_db_and_tables()
    app.state.bridge = LiveSyncBridge(get_store())
    yield
    # Shutdown
    await app.state.bridge.close()
    logger.info("Team Agenda application shut down")


app = FastAPI(
    title=settings.app_name,
    description="Shared team calendar with invitations, join requests and a live notification center",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS for external access
origins = (
    ["*"]
    if settings.allowed_origins == "*"
    else [o.strip() for o in settings.allowed_origins.split(",")]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Looked up along the exception MRO, so subclasses share their family status
ERROR_STATUS = {
    ValidationError: 400,
    UnauthorizedTransitionError: 403,
    NotFoundError: 404,
    DuplicateParticipationError: 409,
    StoreError: 502,
}


def status_for(exc: AgendaError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in ERROR_STATUS:
            return ERROR_STATUS[error_type]
    return 500


@app.exception_handler(AgendaError)
async def agenda_error_handler(request: Request, exc: AgendaError):
    """Translate domain errors into JSON responses."""
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    content = {"detail": exc.message, "error": type(exc).__name__}
    if isinstance(exc, LocationConflictError):
        content["conflict"] = {"title": exc.conflicting_title, "start": exc.start, "end": exc.end}
    return JSONResponse(status_code=status_code, content=content)


# Include routers
app.include_router(appointments.router)
app.include_router(participation.router)
app.include_router(notifications.router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "app": settings.app_name}
