"""Records and their attribute pipeline."""

from .attributes import Attribute, GenericAttribute, OwnedAttribute, RecordAttribute, to_attribute
from .core import Record, begin, set_attribute
from .transaction import RecordTransaction

__all__ = [
    "Record",
    "RecordTransaction",
    "begin",
    "set_attribute",
    "Attribute",
    "GenericAttribute",
    "OwnedAttribute",
    "RecordAttribute",
    "to_attribute",
]
