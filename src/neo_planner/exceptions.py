"""
Exception hierarchy for the NEO planner.

Binary-format problems are fatal to a planning run. Lookup and orbit
problems are recovered locally by the scanner and only mark a single
sample as not visible.
"""

from typing import Optional


class NeoPlannerError(Exception):
    """Base class for all planner errors."""


class FormatError(NeoPlannerError):
    """Malformed DAF/SPK content (header, byte order, record geometry)."""

    def __init__(self, message: str, offset: Optional[int] = None) -> None:
        self.offset = offset
        if offset is not None:
            message = f"{message} (byte offset {offset})"
        super().__init__(message)


class EphemerisLookupError(NeoPlannerError):
    """No segment covers the requested body pair at the requested epoch."""

    def __init__(self, target: int, center: int, et_seconds: float) -> None:
        self.target = target
        self.center = center
        self.et_seconds = et_seconds
        super().__init__(
            f"No SPK segment for target={target} center={center} at ET={et_seconds}"
        )


class UnsupportedOrbitError(NeoPlannerError):
    """Orbit elements the propagator cannot handle."""


class KernelAcquisitionError(NeoPlannerError):
    """The ephemeris kernel could not be downloaded or verified."""

    def __init__(
        self, message: str, expected: Optional[str] = None, actual: Optional[str] = None
    ) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(message)


class CatalogError(NeoPlannerError):
    """The NEO catalog service failed or returned unusable data."""
