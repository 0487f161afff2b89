#!/usr/bin/env python3
"""Validate local environment readiness for the allocation service."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from residence.repository.data_repository import DataRepository
from residence.services.allocation_service import AllocationEngine
from residence.services.query_service import OccupancyQueryService
from residence.services.reconciliation_service import ReconciliationService
from residence.services.state_service import AllocationStateStore
from residence.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="residence-env-")

    # CHECK 1: Python version >= 3.10
    if sys.version_info >= (3, 10):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.10",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable
    package_names = ["fastapi", "uvicorn", "pydantic", "pandas", "httpx", "pytest"]
    import_errors: list[str] = []
    for module_name in package_names:
        try:
            importlib.import_module(module_name)
        except ImportError as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        validation_settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "residence_validation.db",
        )
        repository = DataRepository(validation_settings)
        state = AllocationStateStore(repository=repository, settings=validation_settings)
        engine = AllocationEngine(state=state, repository=repository, settings=validation_settings)

        # CHECK 3: Database initialization
        try:
            repository.initialize_database()
            ok, line = _print_result("Database initialization", True)
        except Exception as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4: Room provisioning and allocation round trip
        try:
            guest_id = repository.create_guest("Validation Guest")
            room = engine.create_room("999", validation_settings.room_floors[0], 2)
            if room is None or len(room.beds) != 2:
                raise RuntimeError("room was not provisioned with 2 beds")
            engine.allocate_guest_to_bed(room.beds[0].bed_id, guest_id)
            available = OccupancyQueryService(state).available_beds()
            if len(available) != 1:
                raise RuntimeError(f"expected 1 available bed, got {len(available)}")
            ok, line = _print_result("Allocation round trip", True)
        except Exception as exc:
            ok, line = _print_result("Allocation round trip", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5: Reconciliation pass on a consistent store
        try:
            report = ReconciliationService(
                state=state,
                repository=repository,
                settings=validation_settings,
            ).reconcile()
            if report.repair_count:
                raise RuntimeError(f"expected no repairs, got {report.repair_count}")
            ok, line = _print_result("Reconciliation pass", True)
        except Exception as exc:
            ok, line = _print_result("Reconciliation pass", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Residence Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
