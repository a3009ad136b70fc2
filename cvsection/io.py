# cvsection/io.py
from __future__ import annotations

import os
from typing import BinaryIO, Protocol, Union

from .headers import PACKET_ALIGNMENT


class StoragePort(Protocol):
    """
    Sequential byte sink with seek-back support, as seen by the section writer.
    Offsets are physical file offsets. All methods raise OSError on failure.
    """

    def physical_position(self) -> int: ...

    def physical_seek(self, offset: int) -> None: ...

    def write_all(self, data: bytes) -> None: ...

    def align(self) -> None:
        """Pad with zero bytes up to the next 4-byte boundary."""
        ...


class StreamStorage:
    """StoragePort over a seekable binary file object (no page framing)."""

    def __init__(self, fileobj: BinaryIO, owns: bool = False):
        self._f = fileobj
        self._owns = owns

    @classmethod
    def open(cls, path: Union[str, os.PathLike]) -> "StreamStorage":
        return cls(open(path, "w+b"), owns=True)

    def physical_position(self) -> int:
        return self._f.tell()

    def physical_seek(self, offset: int) -> None:
        if offset < 0:
            raise OSError(f"Invalid negative offset {offset}")
        self._f.seek(offset)

    def write_all(self, data: bytes) -> None:
        n = self._f.write(data)
        if n is not None and n != len(data):
            raise OSError(f"Short write: {n} of {len(data)} bytes")

    def align(self) -> None:
        rem = self._f.tell() % PACKET_ALIGNMENT
        if rem:
            self.write_all(b"\x00" * (PACKET_ALIGNMENT - rem))

    def flush(self) -> None:
        self._f.flush()

    def close(self) -> None:
        self.flush()
        if self._owns:
            self._f.close()
