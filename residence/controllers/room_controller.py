"""HTTP controller layer for room and bed allocation commands."""

from __future__ import annotations

from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from residence.controllers.dependencies import get_allocation_engine, get_query_service
from residence.domain.errors import (
    ConflictError,
    LoadError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from residence.domain.models import Bed, GuestProfile, Room
from residence.services.allocation_service import AllocationEngine
from residence.services.query_service import OccupancyQueryService
from residence.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["rooms"])


class GuestResponse(BaseModel):
    guest_id: str
    full_name: str
    document: str
    status: str
    room_number: str


class DeactivationResponse(BaseModel):
    reason: str
    deactivated_at: Optional[str] = None
    deactivated_by: Optional[str] = None


class BedResponse(BaseModel):
    bed_id: str
    room_id: str
    bed_number: int = Field(gt=0)
    status: str
    guest_id: Optional[str] = None
    notes: str = ""
    deactivation: Optional[DeactivationResponse] = None
    guest: Optional[GuestResponse] = None


class RoomResponse(BaseModel):
    room_id: str
    room_number: str
    floor: int
    bed_count: int = Field(ge=0)
    notes: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    beds: list[BedResponse]


class RoomCreateRequest(BaseModel):
    room_number: str = Field(min_length=1)
    floor: int
    bed_count: int
    notes: str = ""


class RoomUpdateRequest(BaseModel):
    room_number: Optional[str] = None
    floor: Optional[int] = None
    bed_count: Optional[int] = None
    notes: Optional[str] = None


class OccupantRequest(BaseModel):
    guest_id: Optional[str] = None


class BedStatusRequest(BaseModel):
    status: str = Field(min_length=1)
    reason: Optional[str] = None
    actor: Optional[str] = None


class BedNotesRequest(BaseModel):
    notes: str


def _guest_response(guest: Optional[GuestProfile]) -> Optional[GuestResponse]:
    if guest is None:
        return None
    return GuestResponse(
        guest_id=guest.guest_id,
        full_name=guest.full_name,
        document=guest.document,
        status=guest.status,
        room_number=guest.room_number,
    )


def bed_response(bed: Bed) -> BedResponse:
    deactivation = bed.deactivation
    return BedResponse(
        bed_id=bed.bed_id,
        room_id=bed.room_id,
        bed_number=bed.bed_number,
        status=bed.status.value,
        guest_id=bed.guest_id,
        notes=bed.notes,
        deactivation=(
            DeactivationResponse(
                reason=deactivation.reason,
                deactivated_at=deactivation.deactivated_at,
                deactivated_by=deactivation.deactivated_by,
            )
            if deactivation is not None
            else None
        ),
        guest=_guest_response(bed.guest),
    )


def room_response(room: Room) -> RoomResponse:
    return RoomResponse(
        room_id=room.room_id,
        room_number=room.room_number,
        floor=room.floor,
        bed_count=room.bed_count,
        notes=room.notes,
        created_at=room.created_at,
        updated_at=room.updated_at,
        beds=[bed_response(bed) for bed in room.beds],
    )


def raise_http_error(exc: Exception, action: str) -> NoReturn:
    """Translate allocation error kinds into HTTP responses."""
    if isinstance(exc, ValidationError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    if isinstance(exc, NotFoundError):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    if isinstance(exc, (LoadError, StoreError)):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    logger.exception("Unexpected failure while trying to %s", action)
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    ) from exc


@router.get("/rooms", response_model=list[RoomResponse], status_code=status.HTTP_200_OK)
async def list_rooms(
    floor: Optional[int] = Query(default=None),
    query_service: OccupancyQueryService = Depends(get_query_service),
) -> list[RoomResponse]:
    rooms = query_service.rooms if floor is None else query_service.rooms_by_floor(floor)
    return [room_response(room) for room in rooms]


@router.post("/rooms", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    payload: RoomCreateRequest,
    engine: AllocationEngine = Depends(get_allocation_engine),
) -> RoomResponse:
    try:
        room = engine.create_room(
            room_number=payload.room_number,
            floor=payload.floor,
            bed_count=payload.bed_count,
            notes=payload.notes,
        )
    except Exception as exc:
        raise_http_error(exc, "create room")
    if room is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Room was created but is missing from the reloaded snapshot",
        )
    return room_response(room)


@router.patch("/rooms/{room_id}", response_model=RoomResponse, status_code=status.HTTP_200_OK)
async def update_room(
    room_id: str,
    payload: RoomUpdateRequest,
    engine: AllocationEngine = Depends(get_allocation_engine),
) -> RoomResponse:
    try:
        room = engine.update_room(
            room_id,
            room_number=payload.room_number,
            floor=payload.floor,
            bed_count=payload.bed_count,
            notes=payload.notes,
        )
    except Exception as exc:
        raise_http_error(exc, "update room")
    if room is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Room {room_id} not found",
        )
    return room_response(room)


@router.delete("/rooms/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_room(
    room_id: str,
    engine: AllocationEngine = Depends(get_allocation_engine),
) -> None:
    try:
        engine.delete_room(room_id)
    except Exception as exc:
        raise_http_error(exc, "delete room")


@router.put("/beds/{bed_id}/occupant", response_model=BedResponse, status_code=status.HTTP_200_OK)
async def allocate_bed(
    bed_id: str,
    payload: OccupantRequest,
    engine: AllocationEngine = Depends(get_allocation_engine),
) -> BedResponse:
    try:
        bed = engine.allocate_guest_to_bed(bed_id, payload.guest_id)
    except Exception as exc:
        raise_http_error(exc, "allocate bed")
    if bed is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Bed {bed_id} not found",
        )
    return bed_response(bed)


@router.put("/beds/{bed_id}/status", response_model=BedResponse, status_code=status.HTTP_200_OK)
async def update_bed_status(
    bed_id: str,
    payload: BedStatusRequest,
    engine: AllocationEngine = Depends(get_allocation_engine),
) -> BedResponse:
    try:
        bed = engine.update_bed_status(
            bed_id,
            payload.status,
            reason=payload.reason,
            actor=payload.actor,
        )
    except Exception as exc:
        raise_http_error(exc, "update bed status")
    if bed is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Bed {bed_id} not found",
        )
    return bed_response(bed)


@router.patch("/beds/{bed_id}", response_model=BedResponse, status_code=status.HTTP_200_OK)
async def update_bed_notes(
    bed_id: str,
    payload: BedNotesRequest,
    engine: AllocationEngine = Depends(get_allocation_engine),
) -> BedResponse:
    try:
        bed = engine.update_bed_notes(bed_id, payload.notes)
    except Exception as exc:
        raise_http_error(exc, "update bed notes")
    if bed is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Bed {bed_id} not found",
        )
    return bed_response(bed)
