# cvsection/bitpack.py
from __future__ import annotations


class ByteStreamBuffer:
    """
    Bit-packed output for one field of one data packet.

    Values are appended least-significant bit first into a little-endian
    bitstream, so a value may start in the middle of a byte and span several
    bytes. Full bytes are moved to `_data` as soon as they are complete;
    at most 7 bits wait in the accumulator.

    A buffer lives for exactly one packet: the framer writes the packet's
    points into it and calls drain() once.
    """

    def __init__(self) -> None:
        self._data = bytearray()
        self._acc = 0    # pending bits, LSB = oldest
        self._bits = 0   # number of pending bits (0..7 between writes)

    @property
    def bit_count(self) -> int:
        """Total number of bits written and not yet drained."""
        return len(self._data) * 8 + self._bits

    def write(self, raw: int, bit_count: int) -> None:
        """Append the low `bit_count` bits of the non-negative int `raw`."""
        if bit_count < 0:
            raise ValueError("bit_count must be >= 0")
        if raw < 0:
            raise ValueError("raw value must be >= 0")
        if bit_count == 0:
            return
        self._acc |= (raw & ((1 << bit_count) - 1)) << self._bits
        self._bits += bit_count
        if self._bits >= 8:
            full = self._bits // 8
            self._data += (self._acc & ((1 << (full * 8)) - 1)).to_bytes(full, "little")
            self._acc >>= full * 8
            self._bits -= full * 8

    def completed_byte_count(self) -> int:
        """Number of fully populated bytes; a trailing partial byte is not counted."""
        return len(self._data)

    def drain(self) -> bytes:
        """Return all written data, zero-padding a partial last byte, and empty the buffer."""
        out = bytes(self._data)
        if self._bits:
            out += bytes([self._acc & 0xFF])
        self._data = bytearray()
        self._acc = 0
        self._bits = 0
        return out
