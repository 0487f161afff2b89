"""Controller layer for read-only occupancy projections and maintenance."""

from __future__ import annotations

from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from residence.controllers.dependencies import (
    get_query_service,
    get_reconciliation_service,
    get_state_store,
)
from residence.controllers.room_controller import BedResponse, bed_response, raise_http_error
from residence.services.query_service import OccupancyQueryService
from residence.services.reconciliation_service import ReconciliationService
from residence.services.state_service import AllocationStateStore


router = APIRouter(tags=["occupancy"])


class RoomOccupancyResponse(BaseModel):
    room_id: str
    room_number: str
    floor: int
    bed_count: int = Field(ge=0)
    active_beds: int = Field(ge=0)
    occupied_beds: int = Field(ge=0)
    available_beds: int = Field(ge=0)
    occupancy_rate: float = Field(ge=0.0, le=1.0)


class FloorSummaryResponse(BaseModel):
    floor: int
    total_rooms: int = Field(ge=0)
    active_beds: int = Field(ge=0)
    occupied_beds: int = Field(ge=0)
    available_beds: int = Field(ge=0)


class OccupancyResponse(BaseModel):
    rooms: list[RoomOccupancyResponse]
    floors: list[FloorSummaryResponse]


class AllocatedGuestsResponse(BaseModel):
    guest_ids: list[str]


class ReconciliationResponse(BaseModel):
    repair_count: int = Field(ge=0)
    provisioned_beds: list[tuple[str, int]]
    removed_beds: list[str]
    raised_bed_counts: list[tuple[str, int]]
    vacated_inactive_beds: list[str]
    vacated_duplicate_beds: list[str]
    rewritten_guest_rooms: list[str]
    cleared_guest_rooms: list[str]


class StatusResponse(BaseModel):
    loading: bool
    error: Optional[str] = None
    last_refreshed_at: Optional[str] = None
    room_count: int = Field(ge=0)


@router.get("/beds/available", response_model=list[BedResponse], status_code=status.HTTP_200_OK)
async def list_available_beds(
    query_service: OccupancyQueryService = Depends(get_query_service),
) -> list[BedResponse]:
    return [bed_response(bed) for bed in query_service.available_beds()]


@router.get(
    "/guests/allocated",
    response_model=AllocatedGuestsResponse,
    status_code=status.HTTP_200_OK,
)
async def list_allocated_guests(
    exclude_bed_id: Optional[str] = Query(default=None),
    query_service: OccupancyQueryService = Depends(get_query_service),
) -> AllocatedGuestsResponse:
    """Guest ids seated on some bed other than `exclude_bed_id`."""
    guest_ids = query_service.allocated_guest_ids(exclude_bed_id=exclude_bed_id)
    return AllocatedGuestsResponse(guest_ids=sorted(guest_ids))


@router.get("/occupancy", response_model=OccupancyResponse, status_code=status.HTTP_200_OK)
async def get_occupancy(
    query_service: OccupancyQueryService = Depends(get_query_service),
) -> OccupancyResponse:
    return OccupancyResponse(
        rooms=[
            RoomOccupancyResponse(**asdict(item))
            for item in query_service.occupancy()
        ],
        floors=[
            FloorSummaryResponse(**asdict(item))
            for item in query_service.floor_summaries()
        ],
    )


@router.get("/occupancy/report.csv", status_code=status.HTTP_200_OK)
async def export_occupancy_report(
    query_service: OccupancyQueryService = Depends(get_query_service),
) -> Response:
    return Response(
        content=query_service.occupancy_report_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="occupancy.csv"'},
    )


@router.post("/reconcile", response_model=ReconciliationResponse, status_code=status.HTTP_200_OK)
async def reconcile(
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> ReconciliationResponse:
    try:
        report = service.reconcile()
    except Exception as exc:
        raise_http_error(exc, "reconcile allocations")
    return ReconciliationResponse(
        repair_count=report.repair_count,
        provisioned_beds=report.provisioned_beds,
        removed_beds=report.removed_beds,
        raised_bed_counts=report.raised_bed_counts,
        vacated_inactive_beds=report.vacated_inactive_beds,
        vacated_duplicate_beds=report.vacated_duplicate_beds,
        rewritten_guest_rooms=report.rewritten_guest_rooms,
        cleared_guest_rooms=report.cleared_guest_rooms,
    )


@router.get("/status", response_model=StatusResponse, status_code=status.HTTP_200_OK)
async def get_status(
    state: AllocationStateStore = Depends(get_state_store),
) -> StatusResponse:
    return StatusResponse(
        loading=state.loading,
        error=state.error,
        last_refreshed_at=state.last_refreshed_at,
        room_count=len(state.rooms),
    )
