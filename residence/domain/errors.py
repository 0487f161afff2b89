"""Error kinds surfaced by the allocation layer."""

from __future__ import annotations


class AllocationError(Exception):
    """Base class for every failure reported by the allocation layer."""


class ValidationError(AllocationError):
    """Raised when caller-supplied input is invalid."""


class ConflictError(AllocationError):
    """Raised when an operation would violate an occupancy invariant."""


class NotFoundError(AllocationError):
    """Raised when a referenced room, bed or guest does not exist."""


class LoadError(AllocationError):
    """Raised when reading the store during refresh fails."""


class StoreError(AllocationError):
    """Raised when an underlying store write fails."""


class BedReductionError(ValidationError, ConflictError):
    """Raised when shrinking a room would drop occupied beds."""
