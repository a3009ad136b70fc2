# cvsection/writer.py
from __future__ import annotations

import enum
import weakref
from collections import deque
from typing import Any, Deque, Iterable, List, Optional, Sequence, Tuple

from .config import WriterConfig
from .core import PointCloud, RawPoint, Record, lookup, point_bit_size
from .errors import WriteError, WriterStateError
from .headers import SECTION_HEADER_SIZE, SectionHeader
from .io import StoragePort
from .packet import FramedPacket, frame_packet, max_payload_bytes
from .utils import get_logger

log = get_logger("writer")

# storage object -> guid of the session currently writing to it
_active_sessions: "weakref.WeakKeyDictionary[Any, str]" = weakref.WeakKeyDictionary()


class WriterState(enum.Enum):
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"
    FAILED = "failed"


class SectionWriter:
    """
    Streams points into one compressed vector section.

    Opening the writer stores a placeholder section header at the current
    (4-byte aligned) storage position. Points are queued and written as
    data packets of at most `max_points_per_packet` points; finalize()
    flushes the rest, seeks back once to rewrite the header with the final
    section length, and appends a PointCloud record to `pointclouds`.

    Any error leaves the writer in FAILED state; it must not be used again.
    Only one writer may be open on a storage object at a time.
    """

    def __init__(
        self,
        storage: StoragePort,
        pointclouds: List[PointCloud],
        guid: str,
        prototype: Sequence[Record],
        config: Optional[WriterConfig] = None,
    ):
        self._config = config or WriterConfig()
        self._storage = storage
        self._pointclouds = pointclouds
        self._guid = guid
        self._prototype: Tuple[Record, ...] = tuple(prototype)
        self._queue: Deque[RawPoint] = deque()
        self._point_count = 0
        self._packet_count = 0

        bits = point_bit_size(self._prototype)
        budget = min(self._config.packet_budget_bytes, max_payload_bytes(len(self._prototype)))
        budget_bits = budget * 8
        # zero-bit prototypes produce empty bytestreams; cap them like 1-bit points
        self._max_points_per_packet = max(1, budget_bits // bits) if bits else max(1, budget_bits)

        owner = _active_sessions.get(storage)
        if owner is not None:
            raise WriterStateError(
                f"Storage already has an open section writer (guid={owner!r})"
            )
        _active_sessions[storage] = guid
        self._state = WriterState.OPEN

        try:
            self._io(storage.align, "Failed to align writer before section header")
            self._section_offset = self._io(storage.physical_position, "Failed to get section start offset")
            self._header = SectionHeader(
                section_length=SECTION_HEADER_SIZE,
                data_offset=self._section_offset + SECTION_HEADER_SIZE,
            )
            self._io(lambda: storage.write_all(bytes(self._header)),
                     "Failed to write section header placeholder")
        except Exception:
            self._fail()
            raise

        log.info(
            f"Opened section guid={guid} at offset {self._section_offset}: "
            f"{len(self._prototype)} records, {bits} bits/point, "
            f"{self._max_points_per_packet} points/packet"
        )

    # --- read-only view ---

    @property
    def state(self) -> WriterState:
        return self._state

    @property
    def guid(self) -> str:
        return self._guid

    @property
    def prototype(self) -> Tuple[Record, ...]:
        return self._prototype

    @property
    def point_count(self) -> int:
        return self._point_count

    @property
    def packet_count(self) -> int:
        return self._packet_count

    @property
    def section_offset(self) -> int:
        return self._section_offset

    @property
    def section_length(self) -> int:
        return self._header.section_length

    @property
    def max_points_per_packet(self) -> int:
        return self._max_points_per_packet

    # --- public API ---

    def enqueue(self, point: RawPoint) -> None:
        """Add a point; writes a data packet whenever a full packet is queued."""
        self._require_open("enqueue")
        try:
            for r in self._prototype:
                lookup(point, r.name)
            self._queue.append(point)
            self._point_count += 1
            if len(self._queue) >= self._max_points_per_packet:
                self._write_packet()
        except Exception:
            self._fail()
            raise

    def extend(self, points: Iterable[RawPoint]) -> int:
        n = 0
        for p in points:
            self.enqueue(p)
            n += 1
        return n

    def finalize(self) -> PointCloud:
        """Flush queued points, backpatch the section header and emit the PointCloud record."""
        self._require_open("finalize")
        self._state = WriterState.CLOSING
        storage = self._storage
        try:
            flushes = 0
            while self._queue:
                self._write_packet()
                flushes += 1
            if flushes > 1:
                log.warning(
                    f"Section guid={self._guid}: finalize needed {flushes} packet flushes; "
                    f"the pending queue exceeded one packet ({self._max_points_per_packet} points)"
                )

            # the final length is known only now; rewrite the header in place
            end_offset = self._io(storage.physical_position, "Failed to get section end offset")
            self._io(lambda: storage.physical_seek(self._section_offset),
                     "Failed to seek to section start for final update")
            self._io(lambda: storage.write_all(bytes(self._header)),
                     "Failed to write final section header")
            self._io(lambda: storage.physical_seek(end_offset),
                     "Failed to seek behind finalized section")
        except Exception:
            self._fail()
            raise

        pc = PointCloud(
            guid=self._guid,
            records=self._point_count,
            file_offset=self._section_offset,
            prototype=self._prototype,
        )
        self._pointclouds.append(pc)
        self._state = WriterState.CLOSED
        self._release()
        log.info(
            f"Finalized section guid={self._guid}: {self._point_count} points, "
            f"{self._packet_count} packets, {self._header.section_length} bytes"
        )
        return pc

    # --- internals ---

    def _write_packet(self) -> Optional[FramedPacket]:
        packet = frame_packet(self._queue, self._prototype, self._max_points_per_packet)
        if packet is None:
            return None
        self._io(lambda: self._storage.write_all(packet.payload),
                 "Cannot write data packet")
        self._io(self._storage.align,
                 "Failed to align writer on next 4-byte offset after writing data packet")
        self._header.section_length += packet.packet_length
        self._packet_count += 1
        log.debug(
            f"Packet {self._packet_count}: {packet.point_count} points, "
            f"{packet.packet_length} bytes, bytestreams={list(packet.sizes)}"
        )
        return packet

    @staticmethod
    def _io(fn, what: str):
        try:
            return fn()
        except OSError as e:
            if isinstance(e, WriteError):
                raise
            raise WriteError(f"{what}: {e}") from e

    def _require_open(self, op: str) -> None:
        if self._state is not WriterState.OPEN:
            raise WriterStateError(f"Cannot {op}: section writer is {self._state.value}")

    def _fail(self) -> None:
        self._state = WriterState.FAILED
        self._queue.clear()
        self._release()

    def _release(self) -> None:
        if _active_sessions.get(self._storage) == self._guid:
            del _active_sessions[self._storage]
