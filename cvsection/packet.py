# cvsection/packet.py
from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Deque, List, Optional, Sequence, Tuple

from .bitpack import ByteStreamBuffer
from .core import RawPoint, Record, lookup
from .errors import InternalError
from .headers import (
    DATA_PACKET_HEADER_SIZE,
    MAX_PACKET_LENGTH,
    PACKET_ALIGNMENT,
    DataPacketHeader,
)


@dataclass(frozen=True)
class FramedPacket:
    point_count: int
    packet_length: int          # includes header, size table and padding
    sizes: Tuple[int, ...]      # bytestream sizes in prototype order
    payload: bytes              # complete packet image, len(payload) == packet_length


def padded_length(n: int) -> int:
    rem = n % PACKET_ALIGNMENT
    return n if rem == 0 else n + PACKET_ALIGNMENT - rem


def max_payload_bytes(field_count: int) -> int:
    """
    Largest bit-packed payload that always fits one packet: the ceiling minus
    the header, the size table, one partial byte per bytestream and the
    alignment padding.
    """
    overhead = DATA_PACKET_HEADER_SIZE + 3 * field_count + (PACKET_ALIGNMENT - 1)
    return max(0, MAX_PACKET_LENGTH - overhead)


def frame_packet(queue: Deque[RawPoint], prototype: Sequence[Record], capacity: int) -> Optional[FramedPacket]:
    """
    Pop up to `capacity` points from the front of `queue` and serialize them
    into one data packet.

    Returns None when the queue is empty. Encoding errors (MissingField,
    EncodingError) propagate before any packet bytes exist; the caller only
    sees a FramedPacket once every bytestream is resolved.
    """
    if not queue:
        return None
    if capacity <= 0:
        raise InternalError(f"Invalid packet capacity {capacity}")
    count = min(capacity, len(queue))

    buffers = [ByteStreamBuffer() for _ in prototype]
    for _ in range(count):
        try:
            p = queue.popleft()
        except IndexError:
            raise InternalError("Failed to get next point for writing") from None
        for r, buf in zip(prototype, buffers):
            r.data_type.write(lookup(p, r.name), buf)

    streams: List[bytes] = [buf.drain() for buf in buffers]
    sizes = tuple(len(s) for s in streams)
    for r, size in zip(prototype, sizes):
        if size > 0xFFFF:
            raise InternalError(f"Bytestream of record '{r.name}' too large for one packet: {size} bytes")

    unpadded = DATA_PACKET_HEADER_SIZE + 2 * len(prototype) + sum(sizes)
    packet_length = padded_length(unpadded)
    if packet_length > MAX_PACKET_LENGTH:
        raise InternalError(f"Invalid data packet length: {packet_length} > {MAX_PACKET_LENGTH}")

    header = DataPacketHeader.build(packet_length, len(prototype))
    payload = b"".join([
        bytes(header),
        struct.pack(f"<{len(sizes)}H", *sizes),
        *streams,
        b"\x00" * (packet_length - unpadded),
    ])
    return FramedPacket(point_count=count, packet_length=packet_length, sizes=sizes, payload=payload)
