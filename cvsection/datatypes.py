# cvsection/datatypes.py
"""
Record data types: how many bits a value takes and how it is turned into bits.

- Integer        raw int in [minimum, maximum], stored as value - minimum
- ScaledInteger  raw int in [minimum, maximum]; floats are mapped via (v - offset) / scale
- Float          IEEE-754 single or double precision bit pattern

Every write() appends to a ByteStreamBuffer and raises EncodingError for
values that cannot be represented.
"""
from __future__ import annotations

import math
import numbers
import struct
from dataclasses import dataclass
from typing import Any, Optional

from .bitpack import ByteStreamBuffer
from .errors import EncodingError


def _range_bits(minimum: int, maximum: int) -> int:
    # ceil(log2(maximum - minimum + 1)); zero bits for a constant
    return (maximum - minimum).bit_length()


def _check_int(value: Any, kind: str) -> int:
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise EncodingError(f"{kind} value must be an integer, got {type(value).__name__}")
    return int(value)


@dataclass(frozen=True)
class Integer:
    minimum: int
    maximum: int

    def __post_init__(self) -> None:
        if self.maximum < self.minimum:
            raise ValueError("Integer maximum must be >= minimum")

    @property
    def bit_size(self) -> int:
        return _range_bits(self.minimum, self.maximum)

    def write(self, value: Any, buffer: ByteStreamBuffer) -> None:
        v = _check_int(value, "Integer")
        if not (self.minimum <= v <= self.maximum):
            raise EncodingError(f"Integer value {v} outside [{self.minimum}, {self.maximum}]")
        buffer.write(v - self.minimum, self.bit_size)


@dataclass(frozen=True)
class ScaledInteger:
    minimum: int
    maximum: int
    scale: float = 1.0
    offset: float = 0.0

    def __post_init__(self) -> None:
        if self.maximum < self.minimum:
            raise ValueError("ScaledInteger maximum must be >= minimum")
        if self.scale == 0:
            raise ValueError("ScaledInteger scale must not be zero")

    @property
    def bit_size(self) -> int:
        return _range_bits(self.minimum, self.maximum)

    def to_raw(self, value: Any) -> int:
        if isinstance(value, bool):
            raise EncodingError("ScaledInteger value must be numeric, got bool")
        if isinstance(value, numbers.Integral):
            return int(value)
        if isinstance(value, numbers.Real):
            scaled = (float(value) - self.offset) / self.scale
            if not math.isfinite(scaled):
                raise EncodingError(f"ScaledInteger cannot represent {value!r}")
            return int(round(scaled))
        raise EncodingError(f"ScaledInteger value must be numeric, got {type(value).__name__}")

    def write(self, value: Any, buffer: ByteStreamBuffer) -> None:
        raw = self.to_raw(value)
        if not (self.minimum <= raw <= self.maximum):
            raise EncodingError(
                f"ScaledInteger raw value {raw} outside [{self.minimum}, {self.maximum}]"
            )
        buffer.write(raw - self.minimum, self.bit_size)


@dataclass(frozen=True)
class Float:
    precision: str = "double"
    minimum: Optional[float] = None
    maximum: Optional[float] = None

    def __post_init__(self) -> None:
        if self.precision not in ("single", "double"):
            raise ValueError(f"Unknown float precision: {self.precision!r}")

    @property
    def bit_size(self) -> int:
        return 32 if self.precision == "single" else 64

    def write(self, value: Any, buffer: ByteStreamBuffer) -> None:
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            raise EncodingError(f"Float value must be numeric, got {type(value).__name__}")
        v = float(value)
        if self.minimum is not None and v < self.minimum:
            raise EncodingError(f"Float value {v} below minimum {self.minimum}")
        if self.maximum is not None and v > self.maximum:
            raise EncodingError(f"Float value {v} above maximum {self.maximum}")
        fmt = "<f" if self.precision == "single" else "<d"
        try:
            packed = struct.pack(fmt, v)
        except (OverflowError, struct.error) as e:
            raise EncodingError(f"Float value {v} does not fit {self.precision} precision") from e
        buffer.write(int.from_bytes(packed, "little"), self.bit_size)
