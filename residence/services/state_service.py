"""In-memory snapshot of rooms, their beds and each bed's occupant."""

from __future__ import annotations

from collections import defaultdict
from threading import RLock
from typing import Any, Optional

from residence.domain.errors import LoadError
from residence.domain.models import Bed, BedStatus, GuestProfile, Room
from residence.repository.data_repository import (
    ROOMS,
    DataRepository,
    RepositoryError,
    utc_now,
)
from residence.utils.config import Settings, get_settings
from residence.utils.logger import get_logger


logger = get_logger(__name__)


def _bed_sort_key(bed: Bed) -> tuple[int, int]:
    return (0 if bed.is_active else 1, bed.bed_number)


def _room_sort_key(room: Room) -> tuple[int, str]:
    return (room.floor, room.room_number)


def _build_guest(row: dict[str, Any]) -> Optional[GuestProfile]:
    if row.get("guest_profile_id") is None:
        return None
    return GuestProfile(
        guest_id=str(row["guest_profile_id"]),
        full_name=str(row["guest_full_name"]),
        document=str(row["guest_document"] or ""),
        status=str(row["guest_status"]),
        room_number=str(row["guest_room_number"] or ""),
    )


def _build_bed(row: dict[str, Any]) -> Bed:
    return Bed(
        bed_id=str(row["id"]),
        room_id=str(row["room_id"]),
        bed_number=int(row["bed_number"]),
        status=BedStatus(row["status"]),
        guest_id=row["guest_id"],
        notes=str(row["notes"] or ""),
        deactivation_reason=row["deactivation_reason"],
        deactivated_at=row["deactivated_at"],
        deactivated_by=row["deactivated_by"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        guest=_build_guest(row),
    )


def build_snapshot(
    room_rows: list[dict[str, Any]],
    bed_rows: list[dict[str, Any]],
) -> tuple[Room, ...]:
    """Join bed rows under their rooms and apply the display ordering."""
    beds_by_room: dict[str, list[Bed]] = defaultdict(list)
    for row in bed_rows:
        bed = _build_bed(row)
        beds_by_room[bed.room_id].append(bed)

    rooms = [
        Room(
            room_id=str(row["id"]),
            room_number=str(row["room_number"]),
            floor=int(row["floor"]),
            bed_count=int(row["bed_count"]),
            notes=str(row["notes"] or ""),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            beds=tuple(sorted(beds_by_room.get(str(row["id"]), []), key=_bed_sort_key)),
        )
        for row in room_rows
    ]
    return tuple(sorted(rooms, key=_room_sort_key))


class AllocationStateStore:
    """Holds the single authoritative snapshot; only refresh() replaces it."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._lock = RLock()
        self._rooms: tuple[Room, ...] = ()
        self._loading = False
        self._error: Optional[str] = None
        self._last_refreshed_at: Optional[str] = None

    @property
    def rooms(self) -> tuple[Room, ...]:
        with self._lock:
            return self._rooms

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def last_refreshed_at(self) -> Optional[str]:
        return self._last_refreshed_at

    def record_error(self, message: str) -> None:
        self._error = message

    def clear_error(self) -> None:
        self._error = None

    def refresh(self) -> tuple[Room, ...]:
        """Reload rooms and beds and swap the snapshot in one step.

        On failure the previous snapshot stays in place and LoadError is raised.
        """
        self._loading = True
        try:
            room_rows = self._repository.select(
                ROOMS,
                order_by=(("floor", True), ("room_number", True)),
            )
            bed_rows = self._repository.select_beds_with_guests()
            snapshot = build_snapshot(room_rows, bed_rows)
        except RepositoryError as exc:
            self._error = f"Failed to load rooms: {exc}"
            logger.warning("Snapshot refresh failed | error=%s", exc)
            raise LoadError(self._error) from exc
        finally:
            self._loading = False

        with self._lock:
            self._rooms = snapshot
            self._last_refreshed_at = utc_now()
        logger.debug(
            "Snapshot refreshed | rooms=%s | beds=%s",
            len(snapshot),
            sum(len(room.beds) for room in snapshot),
        )
        return snapshot

    def find_room(self, room_id: str) -> Optional[Room]:
        return next((room for room in self.rooms if room.room_id == room_id), None)

    def find_bed(self, bed_id: str) -> Optional[Bed]:
        for room in self.rooms:
            for bed in room.beds:
                if bed.bed_id == bed_id:
                    return bed
        return None
