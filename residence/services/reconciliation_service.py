"""Repair pass for drift left behind by partially failed multi-step writes."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Optional

from residence.domain.errors import StoreError
from residence.domain.models import BedStatus, ReconciliationReport
from residence.repository.data_repository import (
    BEDS,
    GUESTS,
    ROOMS,
    DataRepository,
    RepositoryError,
)
from residence.services.allocation_service import new_bed_row
from residence.services.state_service import AllocationStateStore
from residence.utils.config import Settings, get_settings
from residence.utils.logger import get_logger


logger = get_logger(__name__)


class ReconciliationService:
    """Brings the stored bed sets and guest room numbers back in line.

    Checks, in order:
      1. beds missing from 1..bed_count are provisioned;
      2. beds beyond bed_count are removed when vacant, otherwise bed_count is
         raised to cover the highest occupied bed;
      3. inactive beds holding a guest are vacated;
      4. a guest referenced by several beds keeps the first bed in
         (floor, room number, bed number) order and the others are vacated;
      5. each guest's denormalized room number is rewritten from its bed, or
         cleared when the guest holds no bed.
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

    def reconcile(self) -> ReconciliationReport:
        self._state.clear_error()
        report = ReconciliationReport()
        try:
            rooms = self._repository.select(
                ROOMS,
                order_by=(("floor", True), ("room_number", True)),
            )
            beds = self._repository.select(
                BEDS,
                order_by=(("room_id", True), ("bed_number", True)),
            )
            beds_by_room: dict[str, list[dict[str, Any]]] = defaultdict(list)
            for bed in beds:
                beds_by_room[str(bed["room_id"])].append(bed)

            self._repair_bed_sets(rooms, beds_by_room, report)
            self._repair_inactive_occupants(rooms, beds_by_room, report)
            self._repair_duplicate_occupants(rooms, beds_by_room, report)
            self._repair_guest_room_numbers(rooms, report)
        except RepositoryError as exc:
            self._state.record_error(f"reconcile failed: {exc}")
            logger.warning("Reconciliation aborted | error=%s", exc)
            raise StoreError(f"reconcile failed: {exc}") from exc

        logger.info(
            "Reconciliation completed | repairs=%s | provisioned=%s | removed=%s | "
            "raised=%s | inactive=%s | vacated=%s | rewritten=%s | cleared=%s",
            report.repair_count,
            len(report.provisioned_beds),
            len(report.removed_beds),
            len(report.raised_bed_counts),
            len(report.vacated_inactive_beds),
            len(report.vacated_duplicate_beds),
            len(report.rewritten_guest_rooms),
            len(report.cleared_guest_rooms),
        )
        self._state.refresh()
        return report

    def _repair_bed_sets(
        self,
        rooms: list[dict[str, Any]],
        beds_by_room: dict[str, list[dict[str, Any]]],
        report: ReconciliationReport,
    ) -> None:
        for room in rooms:
            room_id = str(room["id"])
            declared = int(room["bed_count"])
            owned = beds_by_room.get(room_id, [])

            beyond = [bed for bed in owned if bed["bed_number"] > declared]
            occupied_beyond = [bed for bed in beyond if bed["guest_id"] is not None]
            if occupied_beyond:
                declared = max(int(bed["bed_number"]) for bed in occupied_beyond)
                self._repository.update(ROOMS, room_id, {"bed_count": declared})
                report.raised_bed_counts.append((room_id, declared))
                beyond = [bed for bed in owned if bed["bed_number"] > declared]

            vacant_beyond = [str(bed["id"]) for bed in beyond if bed["guest_id"] is None]
            if vacant_beyond:
                self._repository.delete(BEDS, vacant_beyond)
                report.removed_beds.extend(vacant_beyond)

            present = {int(bed["bed_number"]) for bed in owned}
            missing = [number for number in range(1, declared + 1) if number not in present]
            if missing:
                self._repository.insert(
                    BEDS,
                    [new_bed_row(room_id, number) for number in missing],
                )
                report.provisioned_beds.extend((room_id, number) for number in missing)

            remaining = [
                bed for bed in owned
                if bed["bed_number"] <= declared and str(bed["id"]) not in vacant_beyond
            ]
            beds_by_room[room_id] = remaining

    def _repair_inactive_occupants(
        self,
        rooms: list[dict[str, Any]],
        beds_by_room: dict[str, list[dict[str, Any]]],
        report: ReconciliationReport,
    ) -> None:
        for room in rooms:
            for bed in beds_by_room.get(str(room["id"]), []):
                if bed["status"] != BedStatus.INACTIVE.value or bed["guest_id"] is None:
                    continue
                self._repository.update(BEDS, str(bed["id"]), {"guest_id": None})
                logger.info(
                    "Inactive bed vacated | bed_id=%s | guest_id=%s",
                    bed["id"],
                    bed["guest_id"],
                )
                bed["guest_id"] = None
                report.vacated_inactive_beds.append(str(bed["id"]))

    def _repair_duplicate_occupants(
        self,
        rooms: list[dict[str, Any]],
        beds_by_room: dict[str, list[dict[str, Any]]],
        report: ReconciliationReport,
    ) -> None:
        seen: set[str] = set()
        for room in rooms:
            room_beds = beds_by_room.get(str(room["id"]), [])
            for bed in sorted(room_beds, key=lambda item: int(item["bed_number"])):
                guest_id = bed["guest_id"]
                if guest_id is None:
                    continue
                if guest_id in seen:
                    self._repository.update(BEDS, str(bed["id"]), {"guest_id": None})
                    bed["guest_id"] = None
                    report.vacated_duplicate_beds.append(str(bed["id"]))
                    continue
                seen.add(guest_id)

    def _repair_guest_room_numbers(
        self,
        rooms: list[dict[str, Any]],
        report: ReconciliationReport,
    ) -> None:
        room_number_by_id = {str(room["id"]): str(room["room_number"]) for room in rooms}
        expected: dict[str, str] = {}
        for bed in self._repository.select(BEDS, not_null=("guest_id",)):
            room_number = room_number_by_id.get(str(bed["room_id"]))
            if room_number is not None:
                expected[str(bed["guest_id"])] = room_number

        for guest in self._repository.select(GUESTS):
            guest_id = str(guest["id"])
            current = str(guest["room_number"] or "")
            target = expected.get(guest_id, "")
            if current == target:
                continue
            self._repository.update(GUESTS, guest_id, {"room_number": target})
            if target:
                report.rewritten_guest_rooms.append(guest_id)
            else:
                report.cleared_guest_rooms.append(guest_id)
