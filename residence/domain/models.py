"""Domain models for the room, bed and occupant snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class BedStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


@dataclass(frozen=True)
class GuestProfile:
    """Occupant profile joined onto a bed; owned by the guest module."""

    guest_id: str
    full_name: str
    document: str
    status: str
    room_number: str


@dataclass(frozen=True)
class Deactivation:
    reason: str
    deactivated_at: Optional[str]
    deactivated_by: Optional[str]


@dataclass(frozen=True)
class Bed:
    bed_id: str
    room_id: str
    bed_number: int
    status: BedStatus
    guest_id: Optional[str] = None
    notes: str = ""
    deactivation_reason: Optional[str] = None
    deactivated_at: Optional[str] = None
    deactivated_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    guest: Optional[GuestProfile] = None

    @property
    def is_active(self) -> bool:
        return self.status is BedStatus.ACTIVE

    @property
    def is_occupied(self) -> bool:
        return self.guest_id is not None

    @property
    def deactivation(self) -> Optional[Deactivation]:
        """Deactivation metadata, reported only while the bed is Inactive.

        The audit columns survive reactivation on the stored record and are
        overwritten by the next deactivation.
        """
        if self.is_active or not self.deactivation_reason:
            return None
        return Deactivation(
            reason=self.deactivation_reason,
            deactivated_at=self.deactivated_at,
            deactivated_by=self.deactivated_by,
        )


@dataclass(frozen=True)
class Room:
    room_id: str
    room_number: str
    floor: int
    bed_count: int
    notes: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    beds: tuple[Bed, ...] = field(default_factory=tuple)

    @property
    def occupied_beds(self) -> tuple[Bed, ...]:
        return tuple(bed for bed in self.beds if bed.is_occupied)


@dataclass(frozen=True)
class RoomOccupancy:
    room_id: str
    room_number: str
    floor: int
    bed_count: int
    active_beds: int
    occupied_beds: int
    available_beds: int
    occupancy_rate: float


@dataclass(frozen=True)
class FloorSummary:
    floor: int
    total_rooms: int
    active_beds: int
    occupied_beds: int
    available_beds: int


@dataclass(frozen=True)
class ReconciliationReport:
    provisioned_beds: list[tuple[str, int]] = field(default_factory=list)
    removed_beds: list[str] = field(default_factory=list)
    raised_bed_counts: list[tuple[str, int]] = field(default_factory=list)
    vacated_inactive_beds: list[str] = field(default_factory=list)
    vacated_duplicate_beds: list[str] = field(default_factory=list)
    rewritten_guest_rooms: list[str] = field(default_factory=list)
    cleared_guest_rooms: list[str] = field(default_factory=list)

    @property
    def repair_count(self) -> int:
        return (
            len(self.provisioned_beds)
            + len(self.removed_beds)
            + len(self.raised_bed_counts)
            + len(self.vacated_inactive_beds)
            + len(self.vacated_duplicate_beds)
            + len(self.rewritten_guest_rooms)
            + len(self.cleared_guest_rooms)
        )
