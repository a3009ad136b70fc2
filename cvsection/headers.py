# cvsection/headers.py
"""
Fixed-size binary records of a compressed vector section, little-endian.

SectionHeader (32 bytes)
  section_id u8 (=1), 7 reserved bytes, section_length u64,
  data_offset u64, index_offset u64

DataPacketHeader (6 bytes)
  packet_type u8 (=1), packet_flags u8 (bit 0: compressor restart),
  length_minus_one u16, bytestream_count u16
"""
from __future__ import annotations

import dpkt

SECTION_ID_COMPRESSED_VECTOR = 1
DATA_PACKET_TYPE = 1
PACKET_FLAG_RESTART = 0x01

MAX_PACKET_LENGTH = 0xFFFF
PACKET_ALIGNMENT = 4


class SectionHeader(dpkt.Packet):
    __byte_order__ = "<"
    __hdr__ = (
        ("section_id", "B", SECTION_ID_COMPRESSED_VECTOR),
        ("reserved", "7s", b"\x00" * 7),
        ("section_length", "Q", 0),
        ("data_offset", "Q", 0),
        ("index_offset", "Q", 0),
    )


class DataPacketHeader(dpkt.Packet):
    __byte_order__ = "<"
    __hdr__ = (
        ("packet_type", "B", DATA_PACKET_TYPE),
        ("packet_flags", "B", 0),
        ("length_minus_one", "H", 0),
        ("bytestream_count", "H", 0),
    )

    @property
    def packet_length(self) -> int:
        return self.length_minus_one + 1

    @property
    def restart(self) -> bool:
        return bool(self.packet_flags & PACKET_FLAG_RESTART)

    @classmethod
    def build(cls, packet_length: int, bytestream_count: int, restart: bool = False) -> "DataPacketHeader":
        if not (1 <= packet_length <= MAX_PACKET_LENGTH):
            raise ValueError(f"packet_length {packet_length} outside 1..{MAX_PACKET_LENGTH}")
        if not (0 <= bytestream_count <= 0xFFFF):
            raise ValueError(f"bytestream_count {bytestream_count} does not fit 16 bits")
        return cls(
            packet_flags=PACKET_FLAG_RESTART if restart else 0,
            length_minus_one=packet_length - 1,
            bytestream_count=bytestream_count,
        )


SECTION_HEADER_SIZE = SectionHeader.__hdr_len__        # 32
DATA_PACKET_HEADER_SIZE = DataPacketHeader.__hdr_len__  # 6
