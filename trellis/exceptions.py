"""Exceptions for the trellis package.

Data-level conditions (unknown attributes, incompatible payloads, broken
reference paths) are never raised; they are logged or reported as ``None``.
The exceptions below signal programming errors.
"""


class TrellisError(Exception):
    """Base exception for all trellis errors."""

    pass


class InvalidReferenceError(TrellisError, ValueError):
    """Reference path could not be parsed."""

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Invalid reference path: {reference!r}")


class DefinitionError(TrellisError, TypeError):
    """Record or collection type is declared incorrectly."""

    pass


class SerializationError(TrellisError):
    """Failed to serialize or deserialize a value."""

    pass
