"""
SPK type 2 (Chebyshev, position only) segment evaluation.

Segment data layout, in 8-byte words starting at the descriptor's start
address:

    N records of RSIZE words each:
        MID, RADIUS, X[0..n-1], Y[0..n-1], Z[0..n-1]     n = (RSIZE - 2) / 3
    trailer (last four words of the segment):
        INIT, INTLEN, RSIZE, N
"""

import logging
import math
from dataclasses import dataclass
from typing import BinaryIO, Dict, Sequence

import numpy as np

from ..constants import DAF_WORD_BYTES, SPK_CHEBYSHEV_POSITION_TYPE
from ..exceptions import FormatError
from ..vector import Vector3
from .daf import SegmentDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Type2Directory:
    """Trailer of a type 2 segment."""

    init: float
    interval_length: float
    record_size: int
    record_count: int

    @property
    def coefficient_count(self) -> int:
        return (self.record_size - 2) // 3


def chebyshev_series(coefficients: Sequence[float], tau: float) -> float:
    """
    Evaluate sum(c[k] * T_k(tau)) with the three-term recurrence.

    T0 = 1, T1 = tau, Tk = 2 tau T(k-1) - T(k-2).

    Args:
        coefficients: c[0..n-1]
        tau: Normalized time, nominally in [-1, 1]

    Returns:
        Series value; 0.0 for no coefficients, c[0] for one
    """
    n = len(coefficients)
    if n == 0:
        return 0.0
    if n == 1:
        return float(coefficients[0])

    t_km2 = 1.0
    t_km1 = tau
    total = coefficients[0] * t_km2 + coefficients[1] * t_km1
    for k in range(2, n):
        t_k = 2.0 * tau * t_km1 - t_km2
        total += coefficients[k] * t_k
        t_km2, t_km1 = t_km1, t_k
    return float(total)


class Type2Evaluator:
    """Evaluates type 2 segments read from a seekable binary source."""

    def __init__(self, source: BinaryIO, byte_order: str) -> None:
        """
        Args:
            source: Seekable kernel byte source (not closed here)
            byte_order: struct prefix, '<' or '>'
        """
        self.source = source
        self.byte_order = byte_order
        self._dtype = np.dtype(f"{byte_order}f8")
        self._directories: Dict[SegmentDescriptor, Type2Directory] = {}

    def read_directory(self, segment: SegmentDescriptor) -> Type2Directory:
        """
        Read (and cache) the four-word trailer of a segment.

        Raises:
            FormatError: If a trailer word is not finite or RSIZE, N are out of range
        """
        cached = self._directories.get(segment)
        if cached is not None:
            return cached

        init, interval, rsize_raw, count_raw = self._read_words(segment.data_end_address - 3, 4)
        trailer_offset = (segment.data_end_address - 4) * DAF_WORD_BYTES
        if not (math.isfinite(init) and math.isfinite(rsize_raw) and math.isfinite(count_raw)):
            raise FormatError(
                f"Non-finite type 2 trailer INIT={init} RSIZE={rsize_raw} N={count_raw}",
                offset=trailer_offset,
            )
        record_size = int(rsize_raw)
        record_count = int(count_raw)

        if record_size <= 2:
            raise FormatError(f"Bad type 2 record size RSIZE={record_size}", offset=trailer_offset)
        if record_count <= 0:
            raise FormatError(f"Bad type 2 record count N={record_count}", offset=trailer_offset)
        if not (math.isfinite(interval) and interval > 0.0):
            raise FormatError(f"Bad type 2 interval length INTLEN={interval}", offset=trailer_offset)

        directory = Type2Directory(
            init=init,
            interval_length=interval,
            record_size=record_size,
            record_count=record_count,
        )
        self._directories[segment] = directory
        return directory

    def evaluate(self, segment: SegmentDescriptor, et_seconds: float) -> Vector3:
        """
        Position (km) of the segment's target relative to its center.

        Epochs outside the nominal range use the nearest boundary record.

        Args:
            segment: Type 2 segment descriptor
            et_seconds: Seconds past J2000 (TDB)

        Returns:
            Position vector in kilometers

        Raises:
            FormatError: For a non-type-2 segment or invalid record geometry
        """
        if segment.segment_type != SPK_CHEBYSHEV_POSITION_TYPE:
            raise FormatError(
                f"Unsupported SPK type {segment.segment_type}; expected {SPK_CHEBYSHEV_POSITION_TYPE}"
            )

        directory = self.read_directory(segment)

        if (directory.record_size - 2) % 3 != 0:
            raise FormatError(
                f"Type 2 record size {directory.record_size} does not hold three equal "
                f"coefficient blocks",
                offset=(segment.data_end_address - 2) * DAF_WORD_BYTES,
            )
        n_coeff = directory.coefficient_count

        index = math.floor((et_seconds - directory.init) / directory.interval_length)
        index = min(max(index, 0), directory.record_count - 1)

        record_address = segment.data_start_address + index * directory.record_size
        record = self._read_words(record_address, directory.record_size)

        mid, radius = record[0], record[1]
        tau = (et_seconds - mid) / radius

        x = chebyshev_series(record[2:2 + n_coeff], tau)
        y = chebyshev_series(record[2 + n_coeff:2 + 2 * n_coeff], tau)
        z = chebyshev_series(record[2 + 2 * n_coeff:2 + 3 * n_coeff], tau)
        return Vector3(x, y, z)

    def _read_words(self, word_address: int, count: int) -> np.ndarray:
        """Read ``count`` float64 words starting at a 1-based word address."""
        offset = (word_address - 1) * DAF_WORD_BYTES
        if word_address < 1:
            raise FormatError(f"Invalid word address {word_address}", offset=offset)
        self.source.seek(offset)
        data = self.source.read(count * DAF_WORD_BYTES)
        if len(data) != count * DAF_WORD_BYTES:
            raise FormatError(
                f"Truncated segment data: expected {count * DAF_WORD_BYTES} bytes, got {len(data)}",
                offset=offset,
            )
        return np.frombuffer(data, dtype=self._dtype).astype(float)
