# cvsection/errors.py
from __future__ import annotations


class CVSectionError(Exception):
    """Base class for everything raised while writing a compressed vector section."""


class MissingField(CVSectionError, KeyError):
    """A point has no value for one of the prototype fields."""

    def __init__(self, field: str):
        super().__init__(field)
        self.field = field

    def __str__(self) -> str:
        return f"Point is missing record with name '{self.field}'"


class EncodingError(CVSectionError, ValueError):
    """A value cannot be represented by its record data type."""


class InternalError(CVSectionError, RuntimeError):
    """Invariant violation that is not caused by caller data (e.g. packet too long)."""


class WriteError(CVSectionError, OSError):
    """Storage failure, annotated with the step that failed."""


class WriterStateError(CVSectionError, RuntimeError):
    """Writer used after finalize/failure, or a second session opened on the same storage."""
