"""Attributes referring to records owned elsewhere in the tree."""

from typing import Any, Callable, Optional

from .collection import Collection
from .exceptions import DefinitionError
from .record import GenericAttribute, Record
from .traversable import CompiledReference

MasterResolver = Callable[[Record], Optional[Collection]]


def _parse_master(master: Any) -> MasterResolver:
    if isinstance(master, str):
        return CompiledReference(master).resolve
    if isinstance(master, Collection):
        return lambda root: master
    if isinstance(master, type):
        # A class is callable but is not a resolver
        raise DefinitionError(f"Master collection must be an instance or a reference path, got class {master.__name__}")
    if callable(master):
        return master
    raise DefinitionError(f"Master collection must be a reference path, collection or callable, got {master!r}")


class RecordRefAttribute(GenericAttribute):
    """Reference to a record of a master collection, by id.

    Holds the id until the attribute is read, then swaps in the record
    found in the master collection. Changes of the referenced record are
    not changes of the referring record, and referenced records are never
    validated as children.
    """

    def __init__(self, master: Any):
        super().__init__(None)
        self.master = _parse_master(master)

    def get(self, value: Any, key: str, record: Record) -> Any:
        if value is None or isinstance(value, Record):
            return value

        collection = self.master(record)
        if collection is None or not len(collection):
            return None

        # Resolve silently; a reference lookup is not an update
        resolved = collection.get(value)
        record.attributes[key] = resolved
        if resolved is not None:
            self.handle_change(resolved, None, record)
        return resolved

    def is_changed(self, a: Any, b: Any) -> bool:
        return _ref_id(a) != _ref_id(b)

    def clone(self, value: Any) -> Any:
        return _ref_id(value)

    def to_json(self, value: Any, key: str) -> Any:
        return _ref_id(value)

    def parse(self, value: Any, key: str) -> Any:
        return value


def _ref_id(value: Any) -> Any:
    if isinstance(value, Record) and value.id is not None:
        return value.id
    return value


def from_(master: Any) -> RecordRefAttribute:
    """Declare an attribute referring by id to a record of a master collection.

    Args:
        master: Reference path to the collection (e.g., "~users",
            "^.members"), the collection itself, or a callable taking the
            referring record and returning the collection

    Example:
        class Task(Record):
            attributes = {"title": "", "assignee": from_("~users")}

        task.set({"assignee": 7})
        task.assignee  # the User with id 7 in store.users
    """
    return RecordRefAttribute(master)
