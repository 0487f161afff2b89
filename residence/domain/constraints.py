"""Domain-level validation rules for room and bed mutations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from residence.domain.errors import ValidationError
from residence.domain.models import BedStatus


@dataclass(frozen=True)
class RoomConstraints:
    floors: tuple[int, ...]
    min_beds: int
    max_beds: int


def validate_room_constraints(constraints: RoomConstraints) -> None:
    if not constraints.floors:
        raise ValueError("at least one floor must be configured")
    if constraints.min_beds <= 0:
        raise ValueError("min_beds must be > 0")
    if constraints.max_beds < constraints.min_beds:
        raise ValueError("max_beds must be >= min_beds")


def validate_room_number(room_number: str) -> str:
    cleaned = room_number.strip()
    if not cleaned:
        raise ValidationError("room_number must not be empty")
    return cleaned


def validate_floor(floor: int, constraints: RoomConstraints) -> None:
    if floor not in constraints.floors:
        raise ValidationError(
            f"floor must be one of {', '.join(str(item) for item in constraints.floors)}"
        )


def validate_bed_count(bed_count: int, constraints: RoomConstraints) -> None:
    if not constraints.min_beds <= bed_count <= constraints.max_beds:
        raise ValidationError(
            f"bed_count must be between {constraints.min_beds} and {constraints.max_beds}"
        )


def parse_bed_status(value: str | BedStatus) -> BedStatus:
    try:
        return BedStatus(value)
    except ValueError as exc:
        raise ValidationError(
            f"status must be one of {', '.join(item.value for item in BedStatus)}"
        ) from exc


def validate_deactivation_reason(reason: Optional[str]) -> str:
    cleaned = (reason or "").strip()
    if not cleaned:
        raise ValidationError("a reason is required to deactivate a bed")
    return cleaned
