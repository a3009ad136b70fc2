# cvsection/core.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence, Tuple

from .errors import MissingField

# A point is any mapping from record name to raw value; extra keys are ignored.
RawPoint = Mapping[str, Any]


@dataclass(frozen=True)
class Record:
    """One named field of the prototype."""
    name: str
    data_type: Any  # Integer | ScaledInteger | Float


@dataclass(frozen=True)
class PointCloud:
    """
    Metadata of a finalized section, handed back to the caller for
    manifest generation once the whole file is written.
    """
    guid: str
    records: int          # number of points in the section
    file_offset: int      # physical offset of the section header
    prototype: Tuple[Record, ...]


def point_bit_size(prototype: Sequence[Record]) -> int:
    return sum(r.data_type.bit_size for r in prototype)


def lookup(point: RawPoint, name: str) -> Any:
    try:
        return point[name]
    except KeyError:
        raise MissingField(name) from None
