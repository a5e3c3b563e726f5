"""
Ephemeris facade over a DAF/SPK kernel.

The planner only depends on the Ephemeris protocol, so any object with a
compatible ``position`` method (a test double, a composite provider) can
stand in for the kernel-backed implementation.
"""

import logging
from pathlib import Path
from typing import BinaryIO, Optional, Protocol, Tuple, Union

from ..constants import EARTH_ID, EMB_ID, SSB_ID, SUN_ID
from ..exceptions import EphemerisLookupError
from ..vector import Vector3
from .chebyshev import Type2Evaluator
from .daf import KernelIndex, SegmentDescriptor, read_kernel_index

logger = logging.getLogger(__name__)


class Ephemeris(Protocol):
    """Position of ``target`` relative to ``center`` at ET seconds past J2000 (TDB)."""

    def position(self, target: int, center: int, et_seconds: float) -> Vector3:
        ...


def position_via(
    ephemeris: Ephemeris, target: int, via: int, center: int, et_seconds: float
) -> Vector3:
    """Two-hop query: target wrt via, plus via wrt center."""
    return ephemeris.position(target, via, et_seconds) + ephemeris.position(via, center, et_seconds)


def earth_relative_to_barycenter(ephemeris: Ephemeris, et_seconds: float) -> Vector3:
    """Earth wrt the solar-system barycenter, through the Earth-Moon barycenter."""
    return position_via(ephemeris, EARTH_ID, EMB_ID, SSB_ID, et_seconds)


def earth_relative_to_sun(ephemeris: Ephemeris, et_seconds: float) -> Vector3:
    """Heliocentric Earth in the inertial equatorial frame (km)."""
    sun_ssb = ephemeris.position(SUN_ID, SSB_ID, et_seconds)
    return earth_relative_to_barycenter(ephemeris, et_seconds) - sun_ssb


class SpkEphemeris:
    """
    Ephemeris backed by an SPK kernel with type 2 segments (e.g. DE442s).

    The kernel index is read once at construction. Use as a context manager
    or call close() to release the file handle.
    """

    def __init__(self, source: BinaryIO, owns_source: bool = False) -> None:
        """
        Args:
            source: Seekable binary kernel source
            owns_source: Close ``source`` when this object is closed
        """
        self._source = source
        self._owns_source = owns_source
        self._closed = False
        try:
            self.index: KernelIndex = read_kernel_index(source)
        except Exception:
            self.close()
            raise
        self._evaluator = Type2Evaluator(source, self.index.byte_order)

    @classmethod
    def open(cls, path: Union[str, Path]) -> "SpkEphemeris":
        """Open a kernel file; the returned ephemeris owns the handle."""
        kernel_path = Path(path)
        if not kernel_path.exists():
            raise FileNotFoundError(f"Kernel file not found: {kernel_path}")
        handle = open(kernel_path, "rb")
        ephemeris = cls(handle, owns_source=True)
        logger.info(f"Opened SPK kernel {kernel_path} ({len(ephemeris.index)} segments)")
        return ephemeris

    def position(self, target: int, center: int, et_seconds: float) -> Vector3:
        """
        Position of target relative to center (km).

        Raises:
            EphemerisLookupError: If no type 2 / J2000 segment covers the query
        """
        segment = self.index.find_segment(target, center, et_seconds)
        if segment is None:
            raise EphemerisLookupError(target, center, et_seconds)
        return self._evaluator.evaluate(segment, et_seconds)

    def position_via(self, target: int, via: int, center: int, et_seconds: float) -> Vector3:
        return position_via(self, target, via, center, et_seconds)

    def earth_relative_to_barycenter(self, et_seconds: float) -> Vector3:
        return earth_relative_to_barycenter(self, et_seconds)

    def earth_relative_to_sun(self, et_seconds: float) -> Vector3:
        return earth_relative_to_sun(self, et_seconds)

    def coverage(self, target: int, center: int) -> Optional[Tuple[float, float]]:
        """Earliest start and latest end over evaluable segments for a body pair."""
        segments = [s for s in self.index.find_segments(target, center) if s.is_evaluable()]
        if not segments:
            return None
        return (
            min(s.start_epoch for s in segments),
            max(s.end_epoch for s in segments),
        )

    def segments(self) -> Tuple[SegmentDescriptor, ...]:
        return self.index.segments

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_source:
            self._source.close()

    def __enter__(self) -> "SpkEphemeris":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"SpkEphemeris(segments={len(self.index)}, format={self.index.file_format})"
