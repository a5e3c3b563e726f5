"""
Pytest configuration and shared fixtures.

This file is automatically loaded by pytest and provides:
- Custom markers for test categorization
- A synthetic DAF/SPK kernel builder (both byte orders)
- Shared observer, orbit and target fixtures
"""

import io
import logging
import struct
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import pytest
from _pytest.config import Config
from _pytest.python import Function

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


# =============================================================================
# COLLECTION HOOKS
# =============================================================================


def pytest_collection_modifyitems(config: Config, items: List[Function]) -> None:
    """Auto-mark tests under tests/integration."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


def pytest_configure(config: Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line("markers", "integration: marks integration tests")


@pytest.fixture(autouse=True)
def isolated_root_logger():
    """setup_logging() replaces root handlers and level; restore them after each test."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in root.handlers[:]:
        if type(handler) in (logging.StreamHandler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


# =============================================================================
# SYNTHETIC SPK KERNELS
# =============================================================================

RECORD_BYTES = 1024
WORD_BYTES = 8
AU_KM = 149_597_870.7

# Coverage wide enough for any test epoch (roughly 1683..2316)
COVERAGE_HALF_SPAN = 1.0e10

Record = Tuple[float, float, Sequence[float], Sequence[float], Sequence[float]]


@dataclass
class SegmentSpec:
    """One type 2 segment for the kernel builder."""

    target: int
    center: int
    records: List[Record]
    init: float
    interval_length: float
    start_et: float
    end_et: float
    frame: int = 1
    segment_type: int = 2
    trailer_override: Optional[Tuple[float, float, float, float]] = None

    def data_words(self) -> List[float]:
        words: List[float] = []
        for mid, radius, xs, ys, zs in self.records:
            words.extend([mid, radius, *xs, *ys, *zs])
        if self.trailer_override is not None:
            words.extend(self.trailer_override)
        else:
            n_coeff = len(self.records[0][2])
            words.extend([self.init, self.interval_length, 2 + 3 * n_coeff, len(self.records)])
        return words


def constant_segment(target: int, center: int, position: Tuple[float, float, float],
                     **kwargs) -> SegmentSpec:
    """Single-record segment holding a fixed position over the whole coverage."""
    x, y, z = position
    return SegmentSpec(
        target=target,
        center=center,
        records=[(0.0, COVERAGE_HALF_SPAN, [x], [y], [z])],
        init=-COVERAGE_HALF_SPAN,
        interval_length=2 * COVERAGE_HALF_SPAN,
        start_et=-COVERAGE_HALF_SPAN,
        end_et=COVERAGE_HALF_SPAN,
        **kwargs,
    )


@dataclass
class KernelBuilder:
    """Assembles DAF/SPK bytes: file record, one summary record, then data."""

    byte_order: str = "<"
    segments: List[SegmentSpec] = field(default_factory=list)
    id_word: bytes = b"DAF/SPK "
    locfmt: Optional[bytes] = None
    nd: int = 2
    ni: int = 6
    summary_count_override: Optional[float] = None

    def add(self, segment: SegmentSpec) -> "KernelBuilder":
        self.segments.append(segment)
        return self

    def build(self) -> bytes:
        order = self.byte_order
        locfmt = self.locfmt or (b"LTL-IEEE" if order == "<" else b"BIG-IEEE")

        data = bytearray()
        summaries = bytearray()
        next_word = 2 * (RECORD_BYTES // WORD_BYTES) + 1
        for seg in self.segments:
            words = seg.data_words()
            start = next_word
            end = start + len(words) - 1
            data += struct.pack(f"{order}{len(words)}d", *words)
            summaries += struct.pack(f"{order}2d", seg.start_et, seg.end_et)
            summaries += struct.pack(
                f"{order}6i", seg.target, seg.center, seg.frame, seg.segment_type, start, end
            )
            next_word = end + 1

        file_record = bytearray(RECORD_BYTES)
        file_record[0:8] = self.id_word
        struct.pack_into(f"{order}2i", file_record, 8, self.nd, self.ni)
        file_record[16:76] = b"synthetic test kernel".ljust(60)
        struct.pack_into(f"{order}3i", file_record, 76, 2, 2, next_word)
        file_record[88:96] = locfmt

        count = self.summary_count_override
        if count is None:
            count = float(len(self.segments))
        summary_record = bytearray(RECORD_BYTES)
        struct.pack_into(f"{order}3d", summary_record, 0, 0.0, 0.0, count)
        summary_record[24:24 + len(summaries)] = summaries

        return bytes(file_record + summary_record + data)

    def stream(self) -> io.BytesIO:
        return io.BytesIO(self.build())


def planetary_builder(byte_order: str = "<") -> KernelBuilder:
    """
    Minimal planetary kernel: Sun at the barycenter, Earth-Moon barycenter
    1 AU along +X, Earth 4670 km from the EMB.
    """
    builder = KernelBuilder(byte_order=byte_order)
    builder.add(constant_segment(10, 0, (0.0, 0.0, 0.0)))
    builder.add(constant_segment(3, 0, (AU_KM, 0.0, 0.0)))
    builder.add(constant_segment(399, 3, (-4670.0, 0.0, 0.0)))
    return builder


@pytest.fixture(params=["<", ">"], ids=["little-endian", "big-endian"])
def byte_order(request) -> str:
    """Both DAF binary formats."""
    return request.param


@pytest.fixture
def planetary_kernel_bytes(byte_order: str) -> bytes:
    return planetary_builder(byte_order).build()


@pytest.fixture
def planetary_kernel_file(tmp_path: Path) -> Path:
    """Little-endian planetary kernel written to disk."""
    path = tmp_path / "test_planets.bsp"
    path.write_bytes(planetary_builder("<").build())
    return path


# =============================================================================
# DOMAIN FIXTURES
# =============================================================================


@pytest.fixture
def start_time() -> datetime:
    return datetime(2026, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def equator_observer():
    """Observer on the equator at the prime meridian."""
    from neo_planner.targets import Observer

    return Observer(latitude_deg=0.0, longitude_deg=0.0, elevation_m=0.0, time_zone_id="UTC")


@pytest.fixture
def la_observer():
    """Observer in Los Angeles."""
    from neo_planner.targets import Observer

    return Observer(
        latitude_deg=34.05,
        longitude_deg=-118.25,
        elevation_m=100.0,
        time_zone_id="America/Los_Angeles",
    )


@pytest.fixture
def opposition_elements(start_time: datetime):
    """Circular 2 AU orbit at opposition for the planetary test kernel."""
    from neo_planner.orbit import OrbitElements
    from neo_planner.timescales import jd_tdb

    return OrbitElements(
        epoch_jd=jd_tdb(start_time),
        eccentricity=0.0,
        semi_major_axis_au=2.0,
        inclination_deg=0.0,
        ascending_node_deg=0.0,
        arg_periapsis_deg=0.0,
        mean_anomaly_deg=0.0,
    )


@pytest.fixture
def hyperbolic_elements(start_time: datetime):
    from neo_planner.orbit import OrbitElements
    from neo_planner.timescales import jd_tdb

    return OrbitElements(
        epoch_jd=jd_tdb(start_time),
        eccentricity=1.2,
        semi_major_axis_au=-3.0,
        inclination_deg=10.0,
        ascending_node_deg=20.0,
        arg_periapsis_deg=30.0,
        mean_anomaly_deg=0.0,
        mean_motion_deg_per_day=0.2,
    )


@pytest.fixture
def sample_neo_elements():
    """Apophis-like elements (NeoWs epoch 2461000.5)."""
    from neo_planner.orbit import OrbitElements

    return OrbitElements(
        epoch_jd=2461000.5,
        eccentricity=0.1911,
        semi_major_axis_au=0.9224,
        inclination_deg=3.339,
        ascending_node_deg=203.96,
        arg_periapsis_deg=126.6,
        mean_anomaly_deg=142.2,
        mean_motion_deg_per_day=1.1126,
    )


@pytest.fixture
def opposition_target(opposition_elements):
    from neo_planner.targets import NeoTarget

    return NeoTarget(id="1001", name="Opposition Rock", elements=opposition_elements)


@pytest.fixture
def hyperbolic_target(hyperbolic_elements):
    from neo_planner.targets import NeoTarget

    return NeoTarget(id="1002", name="Interstellar Visitor", elements=hyperbolic_elements)
