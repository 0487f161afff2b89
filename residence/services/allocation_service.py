"""Allocation engine: validated room, bed and occupancy mutations."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Optional

from residence.domain.constraints import (
    RoomConstraints,
    parse_bed_status,
    validate_bed_count,
    validate_deactivation_reason,
    validate_floor,
    validate_room_constraints,
    validate_room_number,
)
from residence.domain.errors import (
    AllocationError,
    BedReductionError,
    ConflictError,
    NotFoundError,
    StoreError,
)
from residence.domain.models import Bed, BedStatus, Room
from residence.repository.data_repository import (
    BEDS,
    GUESTS,
    ROOMS,
    DataRepository,
    RepositoryError,
    utc_now,
)
from residence.services.state_service import AllocationStateStore
from residence.utils.config import Settings, get_settings
from residence.utils.logger import get_logger


logger = get_logger(__name__)


def new_bed_row(room_id: str, bed_number: int) -> dict[str, Any]:
    return {
        "room_id": room_id,
        "bed_number": bed_number,
        "status": BedStatus.ACTIVE.value,
        "guest_id": None,
        "notes": "",
    }


class AllocationEngine:
    """Runs every state-changing operation and refreshes the snapshot after it.

    Each operation is a short sequence of store calls. There is no transaction
    across them: if a later call fails, the earlier writes stay and the error
    is raised (see ReconciliationService for the repair pass).
    """

    def __init__(
        self,
        state: AllocationStateStore,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._state = state
        self._constraints = RoomConstraints(
            floors=self._settings.room_floors,
            min_beds=self._settings.room_min_beds,
            max_beds=self._settings.room_max_beds,
        )
        validate_room_constraints(self._constraints)

    @property
    def state(self) -> AllocationStateStore:
        return self._state

    @contextmanager
    def _operation(self, name: str) -> Iterator[None]:
        self._state.clear_error()
        try:
            yield
        except RepositoryError as exc:
            message = f"{name} failed: {exc}"
            self._state.record_error(message)
            logger.warning("Store call failed | operation=%s | error=%s", name, exc)
            raise StoreError(message) from exc
        except AllocationError as exc:
            self._state.record_error(str(exc))
            logger.warning(
                "Operation rejected | operation=%s | kind=%s | error=%s",
                name,
                type(exc).__name__,
                exc,
            )
            raise

    def _load_one(self, table: str, row_id: str, label: str) -> dict[str, Any]:
        rows = self._repository.select(table, eq={"id": row_id})
        if not rows:
            raise NotFoundError(f"{label} {row_id} not found")
        return rows[0]

    def _load_room(self, room_id: str) -> dict[str, Any]:
        return self._load_one(ROOMS, room_id, "Room")

    def _load_bed(self, bed_id: str) -> dict[str, Any]:
        return self._load_one(BEDS, bed_id, "Bed")

    def _load_guest(self, guest_id: str) -> dict[str, Any]:
        return self._load_one(GUESTS, guest_id, "Guest")

    def _set_guest_room_number(self, guest_id: str, room_number: str) -> None:
        self._repository.update(GUESTS, guest_id, {"room_number": room_number})

    def create_room(
        self,
        room_number: str,
        floor: int,
        bed_count: int,
        notes: str = "",
    ) -> Optional[Room]:
        with self._operation("create_room"):
            room_number = validate_room_number(room_number)
            validate_floor(floor, self._constraints)
            validate_bed_count(bed_count, self._constraints)

            room_row = self._repository.insert(
                ROOMS,
                [
                    {
                        "room_number": room_number,
                        "floor": floor,
                        "bed_count": bed_count,
                        "notes": notes or "",
                    }
                ],
            )[0]
            room_id = str(room_row["id"])
            self._repository.insert(
                BEDS,
                [new_bed_row(room_id, number) for number in range(1, bed_count + 1)],
            )
            logger.info(
                "Room created | room_id=%s | room_number=%s | floor=%s | beds=%s",
                room_id,
                room_number,
                floor,
                bed_count,
            )
            self._state.refresh()
            return self._state.find_room(room_id)

    def update_room(
        self,
        room_id: str,
        *,
        room_number: Optional[str] = None,
        floor: Optional[int] = None,
        bed_count: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Optional[Room]:
        """Apply a partial room update.

        All checks run before the first write, so a rejected update leaves the
        room and its beds untouched.
        """
        with self._operation("update_room"):
            room = self._load_room(room_id)
            updates: dict[str, Any] = {}

            if room_number is not None:
                room_number = validate_room_number(room_number)
                if room_number != room["room_number"]:
                    updates["room_number"] = room_number
            if floor is not None:
                validate_floor(floor, self._constraints)
                if floor != room["floor"]:
                    updates["floor"] = floor
            if notes is not None and notes != room["notes"]:
                updates["notes"] = notes

            beds_to_add: list[int] = []
            beds_to_remove: list[str] = []
            if bed_count is not None:
                validate_bed_count(bed_count, self._constraints)
                beds = self._repository.select(
                    BEDS,
                    eq={"room_id": room_id},
                    order_by=(("bed_number", True),),
                )
                blocking = [
                    bed for bed in beds
                    if bed["bed_number"] > bed_count and bed["guest_id"] is not None
                ]
                if blocking:
                    raise BedReductionError(
                        "occupied beds exceed requested reduction: bed(s) "
                        + ", ".join(str(bed["bed_number"]) for bed in blocking)
                        + " must be vacated first"
                    )
                existing_numbers = {int(bed["bed_number"]) for bed in beds}
                beds_to_add = [
                    number
                    for number in range(1, bed_count + 1)
                    if number not in existing_numbers
                ]
                beds_to_remove = [
                    str(bed["id"]) for bed in beds if bed["bed_number"] > bed_count
                ]
                if bed_count != room["bed_count"]:
                    updates["bed_count"] = bed_count

            if updates:
                self._repository.update(ROOMS, room_id, updates)

            if "room_number" in updates:
                occupied = self._repository.select(
                    BEDS,
                    eq={"room_id": room_id},
                    not_null=("guest_id",),
                )
                for bed in occupied:
                    self._set_guest_room_number(str(bed["guest_id"]), updates["room_number"])
                logger.info(
                    "Room number cascaded | room_id=%s | room_number=%s | occupants=%s",
                    room_id,
                    updates["room_number"],
                    len(occupied),
                )

            if beds_to_add:
                self._repository.insert(
                    BEDS,
                    [new_bed_row(room_id, number) for number in beds_to_add],
                )
            if beds_to_remove:
                self._repository.delete(BEDS, beds_to_remove)

            logger.info(
                "Room updated | room_id=%s | fields=%s | beds_added=%s | beds_removed=%s",
                room_id,
                sorted(updates),
                len(beds_to_add),
                len(beds_to_remove),
            )
            self._state.refresh()
            return self._state.find_room(room_id)

    def delete_room(self, room_id: str) -> None:
        with self._operation("delete_room"):
            self._load_room(room_id)
            occupied = self._repository.select(
                BEDS,
                eq={"room_id": room_id},
                not_null=("guest_id",),
            )
            if occupied:
                raise ConflictError(
                    f"Room {room_id} has {len(occupied)} occupied bed(s) and cannot be deleted"
                )

            if not self._repository.supports_cascade:
                owned = self._repository.select(BEDS, eq={"room_id": room_id})
                self._repository.delete(BEDS, [str(bed["id"]) for bed in owned])
            self._repository.delete(ROOMS, [room_id])
            logger.info("Room deleted | room_id=%s", room_id)
            self._state.refresh()

    def allocate_guest_to_bed(
        self,
        bed_id: str,
        guest_id: Optional[str],
    ) -> Optional[Bed]:
        """Seat `guest_id` on the bed, or vacate it when `guest_id` is None.

        A guest already seated on another bed is moved: that bed is vacated
        before the new seat is written, so a guest never holds two beds.
        """
        with self._operation("allocate_guest_to_bed"):
            bed = self._load_bed(bed_id)
            room = self._load_room(str(bed["room_id"]))
            previous_guest_id = bed["guest_id"]

            if guest_id is not None:
                guest = self._load_guest(guest_id)
                if previous_guest_id == guest_id:
                    if guest["room_number"] != room["room_number"]:
                        self._set_guest_room_number(guest_id, room["room_number"])
                    self._state.refresh()
                    return self._state.find_bed(bed_id)
                if bed["status"] == BedStatus.INACTIVE.value:
                    raise ConflictError(f"Bed {bed_id} is inactive and cannot be allocated")

                for other in self._repository.select(BEDS, eq={"guest_id": guest_id}):
                    if other["id"] == bed_id:
                        continue
                    self._repository.update(BEDS, str(other["id"]), {"guest_id": None})
                    logger.info(
                        "Guest moved off previous bed | guest_id=%s | bed_id=%s",
                        guest_id,
                        other["id"],
                    )
            elif previous_guest_id is None:
                self._state.refresh()
                return self._state.find_bed(bed_id)

            if previous_guest_id is not None:
                self._set_guest_room_number(str(previous_guest_id), "")
            self._repository.update(BEDS, bed_id, {"guest_id": guest_id})
            if guest_id is not None:
                self._set_guest_room_number(guest_id, room["room_number"])

            logger.info(
                "Bed allocation changed | bed_id=%s | room_number=%s | previous=%s | current=%s",
                bed_id,
                room["room_number"],
                previous_guest_id,
                guest_id,
            )
            self._state.refresh()
            return self._state.find_bed(bed_id)

    def update_bed_status(
        self,
        bed_id: str,
        status: str | BedStatus,
        reason: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> Optional[Bed]:
        with self._operation("update_bed_status"):
            target = parse_bed_status(status)
            bed = self._load_bed(bed_id)
            current = BedStatus(bed["status"])
            if target is current:
                self._state.refresh()
                return self._state.find_bed(bed_id)

            if target is BedStatus.INACTIVE:
                cleaned_reason = validate_deactivation_reason(reason)
                if bed["guest_id"] is not None:
                    raise ConflictError(
                        f"Bed {bed_id} is occupied; vacate it before deactivating"
                    )
                self._repository.update(
                    BEDS,
                    bed_id,
                    {
                        "status": target.value,
                        "deactivation_reason": cleaned_reason,
                        "deactivated_at": utc_now(),
                        "deactivated_by": actor,
                    },
                )
            else:
                self._repository.update(BEDS, bed_id, {"status": target.value})

            logger.info(
                "Bed status changed | bed_id=%s | from=%s | to=%s | actor=%s",
                bed_id,
                current.value,
                target.value,
                actor,
            )
            self._state.refresh()
            return self._state.find_bed(bed_id)

    def update_bed_notes(self, bed_id: str, notes: str) -> Optional[Bed]:
        with self._operation("update_bed_notes"):
            self._load_bed(bed_id)
            self._repository.update(BEDS, bed_id, {"notes": notes})
            self._state.refresh()
            return self._state.find_bed(bed_id)
