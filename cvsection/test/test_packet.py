import struct
from collections import deque

import pytest

from cvsection.core import Record
from cvsection.datatypes import Float, Integer
from cvsection.errors import EncodingError, InternalError, MissingField
from cvsection.headers import DataPacketHeader
from cvsection.packet import frame_packet, max_payload_bytes, padded_length

PROTO = [Record("a", Integer(0, 7)), Record("b", Integer(0, 255))]


def test_empty_queue_is_noop():
    assert frame_packet(deque(), PROTO, 10) is None


def test_padded_length():
    assert [padded_length(n) for n in (8, 9, 10, 11, 12)] == [8, 12, 12, 12, 12]


def test_packet_layout():
    q = deque({"a": i, "b": 200 + i} for i in range(5))
    pk = frame_packet(q, PROTO, 10)
    assert pk.point_count == 5
    assert not q
    # 5 x 3 bits -> 2 bytes, 5 x 8 bits -> 5 bytes
    assert pk.sizes == (2, 5)
    assert pk.packet_length == 20           # 6 + 4 + 7 = 17 -> 20
    assert len(pk.payload) == pk.packet_length
    hdr = DataPacketHeader(pk.payload[:6])
    assert hdr.packet_length == 20
    assert hdr.bytestream_count == 2
    assert struct.unpack_from("<2H", pk.payload, 6) == (2, 5)
    assert pk.payload[10 + 2:10 + 7] == bytes([200, 201, 202, 203, 204])
    assert pk.payload[17:] == b"\x00\x00\x00"


def test_takes_at_most_capacity_in_fifo_order():
    q = deque({"a": i % 8, "b": i} for i in range(7))
    pk = frame_packet(q, PROTO, 4)
    assert pk.point_count == 4
    assert [p["b"] for p in q] == [4, 5, 6]
    assert pk.payload[6 + 4 + pk.sizes[0]:][:4] == bytes([0, 1, 2, 3])


def test_missing_field_raises_before_any_packet():
    q = deque([{"a": 1, "b": 2}, {"a": 1}])
    with pytest.raises(MissingField) as ei:
        frame_packet(q, PROTO, 10)
    assert ei.value.field == "b"
    assert "b" in str(ei.value)


def test_encoding_error_propagates():
    with pytest.raises(EncodingError):
        frame_packet(deque([{"a": 9, "b": 0}]), PROTO, 10)


def test_oversized_packet_is_internal_error():
    proto = [Record("x", Float("single"))]
    q = deque({"x": 1.0} for _ in range(20000))
    with pytest.raises(InternalError):
        frame_packet(q, proto, 20000)


def test_zero_capacity_is_internal_error():
    with pytest.raises(InternalError):
        frame_packet(deque([{"a": 0, "b": 0}]), PROTO, 0)


@pytest.mark.parametrize("nfields", [1, 2, 7])
def test_max_payload_always_fits(nfields):
    # 1-bit fields at the capacity the writer would use
    proto = [Record(f"f{i}", Integer(0, 1)) for i in range(nfields)]
    cap = max_payload_bytes(nfields) * 8 // nfields
    q = deque({f"f{i}": 1 for i in range(nfields)} for _ in range(cap))
    pk = frame_packet(q, proto, cap)
    assert pk.packet_length <= 65535
    assert pk.packet_length % 4 == 0
