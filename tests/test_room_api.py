from __future__ import annotations

from dataclasses import replace

from fastapi import FastAPI
from fastapi.testclient import TestClient

from residence.controllers.occupancy_controller import router as occupancy_router
from residence.controllers.room_controller import router as room_router
from residence.repository.data_repository import DataRepository
from residence.services.allocation_service import AllocationEngine
from residence.services.query_service import OccupancyQueryService
from residence.services.reconciliation_service import ReconciliationService
from residence.services.state_service import AllocationStateStore
from residence.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str):
    get_settings.cache_clear()
    base = get_settings()
    return replace(base, database_path=tmp_path / filename)


def _build_test_app(tmp_path) -> tuple[FastAPI, DataRepository]:
    settings = _build_test_settings(tmp_path, "room_api.db")
    repository = DataRepository(settings)
    repository.initialize_database()

    state_store = AllocationStateStore(repository=repository, settings=settings)
    state_store.refresh()

    app = FastAPI()
    app.include_router(room_router)
    app.include_router(occupancy_router)
    app.state.repository = repository
    app.state.state_store = state_store
    app.state.allocation_engine = AllocationEngine(
        state=state_store,
        repository=repository,
        settings=settings,
    )
    app.state.query_service = OccupancyQueryService(state=state_store)
    app.state.reconciliation_service = ReconciliationService(
        state=state_store,
        repository=repository,
        settings=settings,
    )
    return app, repository


def _bed_id(room_payload: dict, bed_number: int) -> str:
    return next(
        bed["bed_id"] for bed in room_payload["beds"] if bed["bed_number"] == bed_number
    )


def test_room_allocation_end_to_end_flow(tmp_path):
    app, repository = _build_test_app(tmp_path)
    g1 = repository.create_guest("G1")
    g2 = repository.create_guest("G2")
    client = TestClient(app)

    create_response = client.post(
        "/rooms",
        json={"room_number": "101", "floor": 1, "bed_count": 2},
    )
    assert create_response.status_code == 201
    room = create_response.json()
    assert [bed["bed_number"] for bed in room["beds"]] == [1, 2]
    bed1 = _bed_id(room, 1)
    bed2 = _bed_id(room, 2)

    allocate_response = client.put(f"/beds/{bed2}/occupant", json={"guest_id": g1})
    assert allocate_response.status_code == 200
    assert allocate_response.json()["guest"]["room_number"] == "101"

    shrink_response = client.patch(f"/rooms/{room['room_id']}", json={"bed_count": 1})
    assert shrink_response.status_code == 400
    assert "occupied beds exceed requested reduction" in shrink_response.json()["detail"]

    no_reason_response = client.put(f"/beds/{bed1}/status", json={"status": "Inactive"})
    assert no_reason_response.status_code == 400

    deactivate_response = client.put(
        f"/beds/{bed1}/status",
        json={"status": "Inactive", "reason": "broken frame", "actor": "maintenance"},
    )
    assert deactivate_response.status_code == 200
    assert deactivate_response.json()["deactivation"]["reason"] == "broken frame"

    assert client.get("/beds/available").json() == []

    occupancy = client.get("/occupancy").json()
    assert occupancy["rooms"][0]["active_beds"] == 1
    assert occupancy["rooms"][0]["occupied_beds"] == 1
    assert occupancy["rooms"][0]["occupancy_rate"] == 1.0
    assert occupancy["floors"] == [
        {
            "floor": 1,
            "total_rooms": 1,
            "active_beds": 1,
            "occupied_beds": 1,
            "available_beds": 0,
        }
    ]

    inactive_allocation = client.put(f"/beds/{bed1}/occupant", json={"guest_id": g2})
    assert inactive_allocation.status_code == 409

    assert client.delete(f"/rooms/{room['room_id']}").status_code == 409

    assert client.get("/guests/allocated").json() == {"guest_ids": [g1]}
    assert client.get(
        "/guests/allocated",
        params={"exclude_bed_id": bed2},
    ).json() == {"guest_ids": []}

    clear_response = client.put(f"/beds/{bed2}/occupant", json={"guest_id": None})
    assert clear_response.status_code == 200
    assert clear_response.json()["guest"] is None

    assert client.delete(f"/rooms/{room['room_id']}").status_code == 204
    assert client.get("/rooms").json() == []

    status_payload = client.get("/status").json()
    assert status_payload["error"] is None
    assert status_payload["room_count"] == 0


def test_rooms_filtered_by_floor_and_validation_errors(tmp_path):
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)

    assert client.post(
        "/rooms",
        json={"room_number": "101", "floor": 1, "bed_count": 1},
    ).status_code == 201
    assert client.post(
        "/rooms",
        json={"room_number": "201", "floor": 2, "bed_count": 3, "notes": "corner"},
    ).status_code == 201

    too_many = client.post(
        "/rooms",
        json={"room_number": "301", "floor": 3, "bed_count": 11},
    )
    assert too_many.status_code == 400
    assert client.get("/status").json()["error"] is not None

    floor_two = client.get("/rooms", params={"floor": 2}).json()
    assert [room["room_number"] for room in floor_two] == ["201"]
    assert floor_two[0]["notes"] == "corner"


def test_unknown_references_return_not_found(tmp_path):
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)

    assert client.put("/beds/missing/occupant", json={"guest_id": None}).status_code == 404
    assert client.patch("/rooms/missing", json={"notes": "x"}).status_code == 404
    assert client.delete("/rooms/missing").status_code == 404
    assert client.patch("/beds/missing", json={"notes": "x"}).status_code == 404


def test_report_export_and_reconcile(tmp_path):
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)
    room = client.post(
        "/rooms",
        json={"room_number": "101", "floor": 1, "bed_count": 2},
    ).json()

    notes_response = client.patch(
        f"/beds/{_bed_id(room, 1)}",
        json={"notes": "near the window"},
    )
    assert notes_response.status_code == 200
    assert notes_response.json()["notes"] == "near the window"

    report_response = client.get("/occupancy/report.csv")
    assert report_response.status_code == 200
    assert report_response.headers["content-type"].startswith("text/csv")
    lines = report_response.text.strip().splitlines()
    assert lines[0].startswith("floor,room_number")
    assert len(lines) == 3

    reconcile_response = client.post("/reconcile")
    assert reconcile_response.status_code == 200
    assert reconcile_response.json()["repair_count"] == 0
