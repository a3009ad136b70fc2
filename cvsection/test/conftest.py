# cvsection/test/conftest.py
from __future__ import annotations

import io
import struct
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

import pytest

from cvsection.core import Record
from cvsection.datatypes import Float, Integer, ScaledInteger
from cvsection.headers import (
    DATA_PACKET_HEADER_SIZE,
    SECTION_HEADER_SIZE,
    DataPacketHeader,
    SectionHeader,
)
from cvsection.io import StreamStorage
from cvsection.utils import shutdown


@dataclass
class DecodedPacket:
    offset: int
    header: DataPacketHeader
    sizes: Tuple[int, ...]
    streams: List[bytes]
    raw: bytes


def read_section(data: bytes, offset: int = 0) -> Tuple[SectionHeader, List[DecodedPacket]]:
    """Parse a section header and every data packet it covers."""
    hdr = SectionHeader(data[offset:offset + SECTION_HEADER_SIZE])
    end = offset + hdr.section_length
    pos = hdr.data_offset
    packets = []
    while pos < end:
        ph = DataPacketHeader(data[pos:pos + DATA_PACKET_HEADER_SIZE])
        n = ph.bytestream_count
        sizes = struct.unpack_from(f"<{n}H", data, pos + DATA_PACKET_HEADER_SIZE)
        p = pos + DATA_PACKET_HEADER_SIZE + 2 * n
        streams = []
        for s in sizes:
            streams.append(data[p:p + s])
            p += s
        packets.append(DecodedPacket(pos, ph, tuple(sizes), streams, data[pos:pos + ph.packet_length]))
        pos += ph.packet_length
    assert pos == end, "packets do not end exactly at the section end"
    return hdr, packets


def unpack_bits(stream: bytes, bits: int, count: int) -> List[int]:
    if bits == 0:
        return [0] * count
    mask = (1 << bits) - 1
    width = (bits + 7) // 8 + 1
    out = []
    for i in range(count):
        start = i * bits
        chunk = stream[start // 8:start // 8 + width]
        out.append((int.from_bytes(chunk, "little") >> (start % 8)) & mask)
    return out


def decode_raw(data_type, raw: int):
    if isinstance(data_type, (Integer, ScaledInteger)):
        return raw + data_type.minimum
    if isinstance(data_type, Float):
        if data_type.precision == "single":
            return struct.unpack("<f", raw.to_bytes(4, "little"))[0]
        return struct.unpack("<d", raw.to_bytes(8, "little"))[0]
    raise TypeError(data_type)


def decode_points(data: bytes, prototype: Sequence[Record], total: int, capacity: int,
                  offset: int = 0) -> List[Dict[str, object]]:
    """Decode all points of a section; every packet but the last holds `capacity` points."""
    _, packets = read_section(data, offset)
    points: List[Dict[str, object]] = []
    remaining = total
    for pk in packets:
        count = min(capacity, remaining)
        columns = [
            [decode_raw(r.data_type, v) for v in unpack_bits(s, r.data_type.bit_size, count)]
            for r, s in zip(prototype, pk.streams)
        ]
        for i in range(count):
            points.append({r.name: col[i] for r, col in zip(prototype, columns)})
        remaining -= count
    assert remaining == 0
    return points


@pytest.fixture
def buf():
    return io.BytesIO()


@pytest.fixture
def storage(buf):
    return StreamStorage(buf)


@pytest.fixture
def logging_shutdown():
    yield
    shutdown()
