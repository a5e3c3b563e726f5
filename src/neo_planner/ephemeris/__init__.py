"""
Planetary ephemeris support: DAF/SPK reading, type 2 evaluation and kernel
acquisition.
"""

from .acquisition import KernelStore, ensure_kernel, md5_of, parse_checksum_manifest
from .chebyshev import Type2Evaluator, chebyshev_series
from .daf import KernelIndex, SegmentDescriptor, read_kernel_index
from .kernel import (
    Ephemeris,
    SpkEphemeris,
    earth_relative_to_barycenter,
    earth_relative_to_sun,
    position_via,
)

__all__ = [
    "Ephemeris",
    "KernelIndex",
    "KernelStore",
    "SegmentDescriptor",
    "SpkEphemeris",
    "Type2Evaluator",
    "chebyshev_series",
    "earth_relative_to_barycenter",
    "earth_relative_to_sun",
    "ensure_kernel",
    "md5_of",
    "parse_checksum_manifest",
    "position_via",
    "read_kernel_index",
]
