"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the repository, state store and services, registers routers, and
loads the first snapshot on startup.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from residence.controllers.occupancy_controller import router as occupancy_router
from residence.controllers.room_controller import router as room_router
from residence.repository.data_repository import DataRepository
from residence.services.allocation_service import AllocationEngine
from residence.services.query_service import OccupancyQueryService
from residence.services.reconciliation_service import ReconciliationService
from residence.services.state_service import AllocationStateStore
from residence.utils.config import Settings, get_settings
from residence.utils.logger import get_logger


logger = get_logger(__name__)

DEMO_ROOMS = (
    ("101", 1, 2),
    ("102", 1, 3),
    ("201", 2, 2),
    ("301", 3, 4),
)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every dependency lives on app.state so it is traceable from this function.
    """
    settings = settings or get_settings()

    # --- Repository (single SQLite connection factory) ---
    repository = DataRepository(settings)

    # --- Snapshot + services ---
    state_store = AllocationStateStore(repository=repository, settings=settings)
    allocation_engine = AllocationEngine(
        state=state_store,
        repository=repository,
        settings=settings,
    )
    query_service = OccupancyQueryService(state=state_store)
    reconciliation_service = ReconciliationService(
        state=state_store,
        repository=repository,
        settings=settings,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app, settings)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Routers ---
    app.include_router(room_router)
    app.include_router(occupancy_router)

    # --- Inject services into app.state for dependency resolution ---
    app.state.repository = repository
    app.state.state_store = state_store
    app.state.allocation_engine = allocation_engine
    app.state.query_service = query_service
    app.state.reconciliation_service = reconciliation_service

    return app


def _startup(app: FastAPI, settings: Settings) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Order matters:
      1. Schema must exist before seeding.
      2. Demo guests and rooms are seeded only into an empty database.
      3. The snapshot is loaded last so the first request sees stored state.
    """
    repository: DataRepository = app.state.repository
    state_store: AllocationStateStore = app.state.state_store
    allocation_engine: AllocationEngine = app.state.allocation_engine

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if settings.seed_demo_data:
        logger.info("Startup: seeding demo guests and rooms (skipped if not empty)")
        repository.seed_demo_guests()
        state_store.refresh()
        if not state_store.rooms:
            for room_number, floor, bed_count in DEMO_ROOMS:
                allocation_engine.create_room(room_number, floor, bed_count)

    logger.info("Startup: loading allocation snapshot")
    state_store.refresh()

    logger.info("Startup complete | %s room(s) loaded", len(state_store.rooms))


# Module-level app object for uvicorn
app = create_app()
