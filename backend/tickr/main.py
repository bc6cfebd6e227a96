"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tickr import __version__
from tickr.api.v1.api import api_router
from tickr.api.v1.endpoints import auth as auth_endpoints
from tickr.config import settings
from tickr.connectors.errors import InvalidURLError, JiraAPIError
from tickr.connectors.jira_client import JiraClient
from tickr.database import SessionLocal, init_db
from tickr.logging_config import configure_logging
from tickr.scheduler import create_scheduler, shutdown_scheduler, start_scheduler
from tickr.services.credentials import CredentialNotFoundError, CredentialStore
from tickr.services.coordinator import SyncCoordinator
from tickr.services.session_store import SessionStore
from tickr.services.timer_manager import AccountNotFoundError, NoActiveTimerError, SessionManager

configure_logging(settings.log_level)

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()

    # Timer state is owned by one session used only from the event loop.
    db = SessionLocal()
    scheduler = create_scheduler()
    jira_client = getattr(app.state, "jira_client", None) or JiraClient()
    credentials = CredentialStore(db)
    timer_manager = SessionManager(
        store=SessionStore(db),
        client=jira_client,
        credentials=credentials,
        scheduler=scheduler,
    )
    coordinator = SyncCoordinator(db, jira_client, credentials, timer_manager)
    coordinator.load_initial_account()

    app.state.jira_client = jira_client
    app.state.timer_manager = timer_manager
    app.state.coordinator = coordinator

    start_scheduler(scheduler)
    log.info(f"Tickr {__version__} started with {len(timer_manager.active_timers)} running timer(s)")
    try:
        yield
    finally:
        timer_manager.close()
        shutdown_scheduler(scheduler)
        db.close()
        log.info("Tickr shut down")


app = FastAPI(
    title="Tickr",
    description="Track time against Jira issues and log it as worklogs",
    version=__version__,
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


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__
    }


@app.get("/")
async def root():
    return {
        "message": "Tickr Jira Time Tracking API",
        "version": __version__,
        "docs": "/docs"
    }


app.include_router(auth_endpoints.router, tags=["auth"])
app.include_router(api_router, prefix=settings.api_v1_str)


@app.exception_handler(NoActiveTimerError)
@app.exception_handler(AccountNotFoundError)
async def not_found_handler(request: Request, exc: LookupError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(CredentialNotFoundError)
async def credential_handler(request: Request, exc: CredentialNotFoundError):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "No API token stored for this account. Re-enter it in the account settings."},
    )


@app.exception_handler(JiraAPIError)
async def jira_error_handler(request: Request, exc: JiraAPIError):
    code = status.HTTP_400_BAD_REQUEST if isinstance(exc, InvalidURLError) else status.HTTP_502_BAD_GATEWAY
    return JSONResponse(status_code=code, content={"detail": str(exc), "kind": exc.kind})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    log.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn_level = "debug" if settings.log_level.upper() == "VERBOSE" else settings.log_level.lower()
    uvicorn.run(app, host="127.0.0.1", port=8000, log_level=uvicorn_level)
