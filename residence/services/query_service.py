"""Read-only projections over the allocation snapshot."""

from __future__ import annotations

from typing import Iterable, Optional, Protocol, Sequence, TypeVar

import pandas as pd

from residence.domain.models import Bed, FloorSummary, Room, RoomOccupancy
from residence.services.state_service import AllocationStateStore


class _GuestLike(Protocol):
    @property
    def guest_id(self) -> str: ...

    @property
    def status(self) -> str: ...


GuestT = TypeVar("GuestT", bound=_GuestLike)

ACTIVE_GUEST_STATUS = "Active"

_REPORT_COLUMNS = [
    "floor",
    "room_number",
    "bed_count",
    "active_beds",
    "occupied_beds",
    "available_beds",
    "occupancy_rate",
]


def rooms_by_floor(rooms: Sequence[Room], floor: int) -> list[Room]:
    return [room for room in rooms if room.floor == floor]


def available_beds(rooms: Sequence[Room]) -> list[Bed]:
    """Active, vacant beds across every room, in snapshot order."""
    return [
        bed
        for room in rooms
        for bed in room.beds
        if bed.is_active and not bed.is_occupied
    ]


def room_occupancy(room: Room) -> RoomOccupancy:
    """Occupancy counts over Active beds only; Inactive beds add no capacity."""
    active = [bed for bed in room.beds if bed.is_active]
    occupied = sum(1 for bed in active if bed.is_occupied)
    rate = occupied / len(active) if active else 0.0
    return RoomOccupancy(
        room_id=room.room_id,
        room_number=room.room_number,
        floor=room.floor,
        bed_count=room.bed_count,
        active_beds=len(active),
        occupied_beds=occupied,
        available_beds=len(active) - occupied,
        occupancy_rate=float(rate),
    )


def floor_summary(rooms: Sequence[Room], floor: int) -> FloorSummary:
    stats = [room_occupancy(room) for room in rooms_by_floor(rooms, floor)]
    active = sum(item.active_beds for item in stats)
    occupied = sum(item.occupied_beds for item in stats)
    return FloorSummary(
        floor=floor,
        total_rooms=len(stats),
        active_beds=active,
        occupied_beds=occupied,
        available_beds=active - occupied,
    )


def allocated_guest_ids(
    rooms: Sequence[Room],
    exclude_bed_id: Optional[str] = None,
) -> set[str]:
    """Guests already seated, ignoring the bed currently being edited."""
    return {
        bed.guest_id
        for room in rooms
        for bed in room.beds
        if bed.guest_id is not None and bed.bed_id != exclude_bed_id
    }


def eligible_guests(
    rooms: Sequence[Room],
    guests: Iterable[GuestT],
    bed_id: Optional[str] = None,
) -> list[GuestT]:
    """Active guests that can be offered for `bed_id`.

    Guests seated elsewhere are left out; the bed's own occupant stays listed.
    """
    taken = allocated_guest_ids(rooms, exclude_bed_id=bed_id)
    return [
        guest
        for guest in guests
        if guest.status == ACTIVE_GUEST_STATUS and guest.guest_id not in taken
    ]


class OccupancyQueryService:
    """Binds the projections to the live state store."""

    def __init__(self, state: AllocationStateStore) -> None:
        self._state = state

    @property
    def rooms(self) -> tuple[Room, ...]:
        return self._state.rooms

    def rooms_by_floor(self, floor: int) -> list[Room]:
        return rooms_by_floor(self.rooms, floor)

    def available_beds(self) -> list[Bed]:
        return available_beds(self.rooms)

    def room_occupancy(self, room: Room) -> RoomOccupancy:
        return room_occupancy(room)

    def occupancy(self) -> list[RoomOccupancy]:
        return [room_occupancy(room) for room in self.rooms]

    def floor_summary(self, floor: int) -> FloorSummary:
        return floor_summary(self.rooms, floor)

    def floor_summaries(self) -> list[FloorSummary]:
        floors = sorted({room.floor for room in self.rooms})
        return [floor_summary(self.rooms, floor) for floor in floors]

    def allocated_guest_ids(self, exclude_bed_id: Optional[str] = None) -> set[str]:
        return allocated_guest_ids(self.rooms, exclude_bed_id=exclude_bed_id)

    def eligible_guests(
        self,
        guests: Iterable[GuestT],
        bed_id: Optional[str] = None,
    ) -> list[GuestT]:
        return eligible_guests(self.rooms, guests, bed_id=bed_id)

    def occupancy_report(self) -> pd.DataFrame:
        """Per-room occupancy table with a trailing TOTAL row per floor."""
        frame = pd.DataFrame(
            [
                {
                    "floor": item.floor,
                    "room_number": item.room_number,
                    "bed_count": item.bed_count,
                    "active_beds": item.active_beds,
                    "occupied_beds": item.occupied_beds,
                    "available_beds": item.available_beds,
                    "occupancy_rate": item.occupancy_rate,
                }
                for item in self.occupancy()
            ],
            columns=_REPORT_COLUMNS,
        )
        if frame.empty:
            return frame

        totals = (
            frame.groupby("floor", as_index=False)[
                ["bed_count", "active_beds", "occupied_beds", "available_beds"]
            ]
            .sum()
        )
        totals["room_number"] = "TOTAL"
        totals["occupancy_rate"] = (
            totals["occupied_beds"]
            .div(totals["active_beds"].where(totals["active_beds"] > 0))
            .fillna(0.0)
        )
        frame["_order"] = 0
        totals["_order"] = 1
        report = (
            pd.concat([frame, totals[frame.columns]], ignore_index=True)
            .sort_values(["floor", "_order"], kind="stable")
            .drop(columns="_order")
            .reset_index(drop=True)
        )
        report["occupancy_rate"] = report["occupancy_rate"].astype(float).round(4)
        return report

    def occupancy_report_csv(self) -> str:
        return self.occupancy_report().to_csv(index=False)
