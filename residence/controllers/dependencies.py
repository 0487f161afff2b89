"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request, status

from residence.services.allocation_service import AllocationEngine
from residence.services.query_service import OccupancyQueryService
from residence.services.reconciliation_service import ReconciliationService
from residence.services.state_service import AllocationStateStore


def _require(request: Request, attribute: str, label: str) -> Any:
    service = getattr(request.app.state, attribute, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} is not initialized",
        )
    return service


def get_state_store(request: Request) -> AllocationStateStore:
    return _require(request, "state_store", "Allocation state store")


def get_allocation_engine(request: Request) -> AllocationEngine:
    return _require(request, "allocation_engine", "Allocation engine")


def get_query_service(request: Request) -> OccupancyQueryService:
    service = getattr(request.app.state, "query_service", None)
    if service is None:
        service = OccupancyQueryService(state=get_state_store(request))
        request.app.state.query_service = service
    return service


def get_reconciliation_service(request: Request) -> ReconciliationService:
    return _require(request, "reconciliation_service", "Reconciliation service")
