"""Tests for the read-only occupancy projections."""

from __future__ import annotations

from dataclasses import dataclass
from types import SimpleNamespace

import pytest

from residence.domain.models import Bed, BedStatus, Room
from residence.services.query_service import (
    OccupancyQueryService,
    allocated_guest_ids,
    available_beds,
    eligible_guests,
    floor_summary,
    room_occupancy,
    rooms_by_floor,
)


@dataclass(frozen=True)
class _Guest:
    guest_id: str
    status: str


def _bed(bed_id: str, room_id: str, number: int, guest_id=None, active=True) -> Bed:
    return Bed(
        bed_id=bed_id,
        room_id=room_id,
        bed_number=number,
        status=BedStatus.ACTIVE if active else BedStatus.INACTIVE,
        guest_id=guest_id,
    )


def _sample_rooms() -> tuple[Room, ...]:
    return (
        Room(
            room_id="r101",
            room_number="101",
            floor=1,
            bed_count=2,
            beds=(
                _bed("b1", "r101", 1, guest_id="g1"),
                _bed("b2", "r101", 2),
            ),
        ),
        Room(
            room_id="r102",
            room_number="102",
            floor=1,
            bed_count=2,
            beds=(
                _bed("b3", "r102", 1),
                _bed("b4", "r102", 2, active=False),
            ),
        ),
        Room(
            room_id="r201",
            room_number="201",
            floor=2,
            bed_count=1,
            beds=(_bed("b5", "r201", 1, guest_id="g2"),),
        ),
    )


def test_rooms_by_floor_filters_rooms():
    rooms = _sample_rooms()

    assert [room.room_number for room in rooms_by_floor(rooms, 1)] == ["101", "102"]
    assert rooms_by_floor(rooms, 3) == []


def test_available_beds_are_active_and_vacant():
    assert [bed.bed_id for bed in available_beds(_sample_rooms())] == ["b2", "b3"]


def test_room_occupancy_ignores_inactive_beds():
    stats = room_occupancy(_sample_rooms()[1])

    assert stats.bed_count == 2
    assert stats.active_beds == 1
    assert stats.occupied_beds == 0
    assert stats.available_beds == 1
    assert stats.occupancy_rate == 0.0


def test_room_occupancy_rate_for_room_without_active_beds():
    room = Room(
        room_id="r",
        room_number="999",
        floor=1,
        bed_count=1,
        beds=(_bed("b", "r", 1, active=False),),
    )

    assert room_occupancy(room).occupancy_rate == 0.0


def test_floor_summary_totals_active_beds():
    summary = floor_summary(_sample_rooms(), 1)

    assert summary.total_rooms == 2
    assert summary.active_beds == 3
    assert summary.occupied_beds == 1
    assert summary.available_beds == 2


def test_allocated_guest_ids_excludes_edited_bed():
    rooms = _sample_rooms()

    assert allocated_guest_ids(rooms) == {"g1", "g2"}
    assert allocated_guest_ids(rooms, exclude_bed_id="b1") == {"g2"}


def test_eligible_guests_keeps_current_occupant_and_skips_inactive():
    guests = [
        _Guest("g1", "Active"),
        _Guest("g2", "Active"),
        _Guest("g3", "Active"),
        _Guest("g4", "Inactive"),
    ]

    eligible = eligible_guests(_sample_rooms(), guests, bed_id="b1")

    assert [guest.guest_id for guest in eligible] == ["g1", "g3"]


def test_occupancy_report_appends_floor_totals():
    service = OccupancyQueryService(state=SimpleNamespace(rooms=_sample_rooms()))

    report = service.occupancy_report()

    assert list(report["room_number"]) == ["101", "102", "TOTAL", "201", "TOTAL"]
    floor_one_total = report.iloc[2]
    assert floor_one_total["active_beds"] == 3
    assert floor_one_total["occupied_beds"] == 1
    assert floor_one_total["occupancy_rate"] == pytest.approx(1 / 3, abs=1e-4)
    assert report.iloc[4]["occupancy_rate"] == pytest.approx(1.0)


def test_occupancy_report_csv_has_header_for_empty_snapshot():
    service = OccupancyQueryService(state=SimpleNamespace(rooms=()))

    csv_text = service.occupancy_report_csv()

    assert csv_text.splitlines()[0] == (
        "floor,room_number,bed_count,active_beds,occupied_beds,available_beds,occupancy_rate"
    )
    assert service.floor_summaries() == []
