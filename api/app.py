"""Main FastAPI application."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.database import init_db
from api.dependencies import drop_services
from api.routes import attempts
from api.services.cleanup_service import schedule_session_cleanup
from core.logging_setup import setup_console_logging

setup_console_logging()

app = FastAPI(title="Answer Sync API")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# Startup events
@app.on_event("startup")
def startup_events() -> None:
    """Initialize database and schedule cleanup tasks on startup."""
    init_db()
    schedule_session_cleanup(on_expired=drop_services)


@app.get("/api/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


# Include routers
app.include_router(attempts.router)
