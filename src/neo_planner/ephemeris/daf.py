"""
NAIF DAF/SPK binary reader.

This module reads the file record and the linked list of summary records of
a DAF file and turns the SPK segment summaries into an in-memory index. It
does not touch segment data; see chebyshev.py for evaluation.

File record layout (first 1024 bytes):
    0   ID word, 8 ASCII chars ("DAF/SPK ")
    8   ND   (int32)  number of double components per summary
    12  NI   (int32)  number of integer components per summary
    76  FWARD (int32) first summary record (1-based)
    80  BWARD (int32) last summary record
    84  FREE  (int32) first free word address
    88  LOCFMT, 8 ASCII chars ("LTL-IEEE" or "BIG-IEEE")
"""

import logging
import math
import struct
from dataclasses import dataclass, field
from typing import BinaryIO, List, Optional, Set, Tuple

from ..constants import (
    DAF_BIG_ENDIAN_TAG,
    DAF_LITTLE_ENDIAN_TAG,
    DAF_MAGIC,
    DAF_RECORD_BYTES,
    DAF_WORD_BYTES,
    J2000_FRAME_ID,
    SPK_CHEBYSHEV_POSITION_TYPE,
)
from ..exceptions import FormatError

logger = logging.getLogger(__name__)

# struct byte-order prefixes keyed by the LOCFMT tag
BYTE_ORDERS = {
    DAF_LITTLE_ENDIAN_TAG: "<",
    DAF_BIG_ENDIAN_TAG: ">",
}

_LOCFMT_OFFSET = 88
_SUMMARY_CONTROL_BYTES = 3 * DAF_WORD_BYTES


@dataclass(frozen=True)
class SegmentDescriptor:
    """One SPK segment summary."""

    start_epoch: float
    end_epoch: float
    target_id: int
    center_id: int
    frame_id: int
    segment_type: int
    data_start_address: int
    data_end_address: int

    def covers(self, et_seconds: float) -> bool:
        return self.start_epoch <= et_seconds <= self.end_epoch

    def is_evaluable(self) -> bool:
        """True for J2000 Chebyshev position segments, the only kind evaluated here."""
        return (
            self.segment_type == SPK_CHEBYSHEV_POSITION_TYPE
            and self.frame_id == J2000_FRAME_ID
        )

    def matches(self, target: int, center: int, et_seconds: float) -> bool:
        return (
            self.target_id == target
            and self.center_id == center
            and self.is_evaluable()
            and self.covers(et_seconds)
        )


@dataclass(frozen=True)
class KernelIndex:
    """Segment summaries of one kernel file, in file order."""

    file_format: str
    nd: int
    ni: int
    segments: Tuple[SegmentDescriptor, ...] = field(default_factory=tuple)

    @property
    def byte_order(self) -> str:
        """struct prefix ('<' or '>') for this file."""
        return BYTE_ORDERS[self.file_format]

    def find_segments(self, target: int, center: int) -> List[SegmentDescriptor]:
        return [s for s in self.segments if s.target_id == target and s.center_id == center]

    def find_segment(
        self, target: int, center: int, et_seconds: float
    ) -> Optional[SegmentDescriptor]:
        """First segment in file order that can answer the query, or None."""
        for segment in self.segments:
            if segment.matches(target, center, et_seconds):
                return segment
        return None

    def bodies(self) -> Set[Tuple[int, int]]:
        return {(s.target_id, s.center_id) for s in self.segments}

    def __len__(self) -> int:
        return len(self.segments)


class DafReader:
    """
    Reads a KernelIndex from a seekable binary source.

    The source is not closed by the reader.
    """

    def __init__(self, source: BinaryIO) -> None:
        self.source = source

    def read_index(self) -> KernelIndex:
        """
        Parse the file record and every summary record.

        Returns:
            KernelIndex with all segment descriptors

        Raises:
            FormatError: If the header or any summary record is malformed
        """
        file_record = self._read_record(1)

        id_word = _ascii(file_record, 0, 8)
        if not id_word.startswith(DAF_MAGIC):
            raise FormatError(
                f"Not a DAF file: expected ID word starting with '{DAF_MAGIC}', got '{id_word}'",
                offset=0,
            )

        file_format = _ascii(file_record, _LOCFMT_OFFSET, 8)
        if file_format not in BYTE_ORDERS:
            raise FormatError(
                f"Unsupported DAF binary format: expected one of "
                f"{sorted(BYTE_ORDERS)}, got '{file_format}'",
                offset=_LOCFMT_OFFSET,
            )
        order = BYTE_ORDERS[file_format]

        nd, ni = struct.unpack_from(f"{order}2i", file_record, 8)
        fward, bward, free = struct.unpack_from(f"{order}3i", file_record, 76)
        if nd < 2 or ni < 6:
            raise FormatError(
                f"Not an SPK-shaped DAF: expected ND>=2 and NI>=6, got ND={nd} NI={ni}",
                offset=8,
            )

        logger.debug(
            f"DAF header: id={id_word!r} format={file_format} ND={nd} NI={ni} "
            f"FWARD={fward} BWARD={bward} FREE={free}"
        )

        segments = self._read_summaries(order, nd, ni, fward)
        logger.info(f"Read {len(segments)} SPK segment summaries ({file_format})")
        return KernelIndex(file_format=file_format, nd=nd, ni=ni, segments=tuple(segments))

    def _read_summaries(
        self, order: str, nd: int, ni: int, first_record: int
    ) -> List[SegmentDescriptor]:
        packed_words = (ni + 1) // 2
        summary_bytes = (nd + packed_words) * DAF_WORD_BYTES

        segments: List[SegmentDescriptor] = []
        visited: Set[int] = set()
        record_number = first_record

        while record_number != 0:
            record_offset = (record_number - 1) * DAF_RECORD_BYTES
            if record_number < 0 or record_number in visited:
                raise FormatError(
                    f"Invalid summary record pointer {record_number}", offset=record_offset
                )
            visited.add(record_number)

            record = self._read_record(record_number)
            next_record, _previous, count = struct.unpack_from(f"{order}3d", record, 0)
            if not (math.isfinite(next_record) and math.isfinite(count)):
                raise FormatError(
                    f"Non-finite summary control words next={next_record} count={count}",
                    offset=record_offset,
                )
            n_summaries = int(count)

            if n_summaries < 0 or _SUMMARY_CONTROL_BYTES + n_summaries * summary_bytes > DAF_RECORD_BYTES:
                raise FormatError(
                    f"Summary count {n_summaries} does not fit in a record", offset=record_offset
                )

            offset = _SUMMARY_CONTROL_BYTES
            for _ in range(n_summaries):
                segments.append(
                    self._parse_summary(record, offset, order, nd, ni, record_offset)
                )
                offset += summary_bytes

            record_number = int(next_record)

        return segments

    @staticmethod
    def _parse_summary(
        record: bytes, offset: int, order: str, nd: int, ni: int, record_offset: int
    ) -> SegmentDescriptor:
        start_et, end_et = struct.unpack_from(f"{order}2d", record, offset)
        # two int32 per word, in file byte order: high word first for big
        # endian, low word first for little endian
        ints = struct.unpack_from(f"{order}{ni}i", record, offset + nd * DAF_WORD_BYTES)
        target, center, frame, seg_type, start_addr, end_addr = ints[:6]

        if not (math.isfinite(start_et) and math.isfinite(end_et)) or start_et > end_et:
            raise FormatError(
                f"Segment {target}->{center} has invalid time range [{start_et}, {end_et}]",
                offset=record_offset + offset,
            )

        return SegmentDescriptor(
            start_epoch=start_et,
            end_epoch=end_et,
            target_id=target,
            center_id=center,
            frame_id=frame,
            segment_type=seg_type,
            data_start_address=start_addr,
            data_end_address=end_addr,
        )

    def _read_record(self, record_number: int) -> bytes:
        offset = (record_number - 1) * DAF_RECORD_BYTES
        self.source.seek(offset)
        data = self.source.read(DAF_RECORD_BYTES)
        if len(data) != DAF_RECORD_BYTES:
            raise FormatError(
                f"Truncated DAF record {record_number}: expected {DAF_RECORD_BYTES} bytes, "
                f"got {len(data)}",
                offset=offset,
            )
        return data


def read_kernel_index(source: BinaryIO) -> KernelIndex:
    """Convenience wrapper around DafReader."""
    return DafReader(source).read_index()


def _ascii(data: bytes, start: int, length: int) -> str:
    return data[start:start + length].decode("ascii", errors="replace").strip()
