"""Attribute specifications: the per-attribute update pipeline.

Every declared attribute of a record type is backed by one Attribute
instance shared by all records of that type. The transaction engine only
talks to attributes through the methods of the Attribute base class.
"""

import copy
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional, Sequence, Type

from ..serialization import from_json_compatible, to_json_compatible
from ..transactions import TransactionOptions, Transactional

if TYPE_CHECKING:
    from .core import Record

logger = logging.getLogger(__name__)

Transform = Callable[[Any, TransactionOptions, Any, "Record"], Any]
ChangeHandler = Callable[[Any, Any, "Record"], None]
GetHook = Callable[[Any, str, "Record"], Any]


class Attribute(ABC):
    """Update pipeline of a single attribute.

    Subclasses define how raw values are cast, compared, deep-updated,
    wired, copied, serialized and validated.
    """

    name: Optional[str] = None

    @abstractmethod
    def transform(self, next: Any, options: TransactionOptions, prev: Any, record: "Record") -> Any:
        """Cast an incoming value to the stored value."""
        pass

    @abstractmethod
    def is_changed(self, a: Any, b: Any) -> bool:
        pass

    def can_be_updated(self, prev: Any, next: Any) -> bool:
        """Return True if next should be merged into prev rather than replace it."""
        return False

    def handle_change(self, next: Any, prev: Any, record: "Record") -> None:
        """Side effects of an assignment, run right after it happens."""
        pass

    @abstractmethod
    def clone(self, value: Any) -> Any:
        pass

    @abstractmethod
    def create(self) -> Any:
        """Return a fresh default value."""
        pass

    def get(self, value: Any, key: str, record: "Record") -> Any:
        """Read hook applied to the stored value."""
        return value

    def to_json(self, value: Any, key: str) -> Any:
        return to_json_compatible(value)

    def parse(self, value: Any, key: str) -> Any:
        return from_json_compatible(value)

    def validate(self, record: "Record", value: Any, key: str) -> Any:
        """Return a validation error for value, or None if valid."""
        return None

    @property
    def serializable(self) -> bool:
        return True


class GenericAttribute(Attribute):
    """Attribute holding a plain value, replaced on every update.

    Args:
        value: Default value, deep-copied for every new record
        transforms: Extra casts applied in order after the built-in one
        change_handlers: Called as handler(next, prev, record) after assignment
        get_hooks: Called as hook(value, key, record) on read, in order
        serialize: If False, the attribute is left out of to_json()

    Example:
        class User(Record):
            attributes = {
                "name": GenericAttribute("", transforms=[lambda v, o, p, r: v.strip()]),
                "age": 0,
            }
    """

    def __init__(
        self,
        value: Any = None,
        transforms: Sequence[Transform] = (),
        change_handlers: Sequence[ChangeHandler] = (),
        get_hooks: Sequence[GetHook] = (),
        serialize: bool = True,
    ):
        self.value = value
        self.transforms = list(transforms)
        self.change_handlers = list(change_handlers)
        self.get_hooks = list(get_hooks)
        self._serialize = serialize

    def convert(self, next: Any, options: TransactionOptions, prev: Any, record: "Record") -> Any:
        """Built-in cast. Plain attributes store values as given."""
        return next

    def transform(self, next: Any, options: TransactionOptions, prev: Any, record: "Record") -> Any:
        value = self.convert(next, options, prev, record)
        for transform in self.transforms:
            value = transform(value, options, prev, record)
        return value

    def is_changed(self, a: Any, b: Any) -> bool:
        return a is not b and a != b

    def handle_change(self, next: Any, prev: Any, record: "Record") -> None:
        for handler in self.change_handlers:
            handler(next, prev, record)

    def clone(self, value: Any) -> Any:
        return copy.deepcopy(value)

    def create(self) -> Any:
        return copy.deepcopy(self.value)

    def get(self, value: Any, key: str, record: "Record") -> Any:
        for hook in self.get_hooks:
            value = hook(value, key, record)
        return value

    @property
    def serializable(self) -> bool:
        return self._serialize

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class OwnedAttribute(GenericAttribute):
    """Attribute holding a record or collection owned by the record.

    Raw payloads are turned into instances of type. On assignment the new
    value is adopted (its owner set to the record under this attribute's
    name) and the previous value is released. A value that already has
    another owner is kept as a shared reference; its changes will not be
    reported to this record.
    """

    def __init__(self, type: Type[Transactional], **kwargs: Any):
        super().__init__(None, **kwargs)
        self.type = type

    def convert(self, next: Any, options: TransactionOptions, prev: Any, record: "Record") -> Any:
        if next is None or isinstance(next, self.type):
            return next
        return self.type(next, options)

    def is_changed(self, a: Any, b: Any) -> bool:
        return a is not b

    def handle_change(self, next: Any, prev: Any, record: "Record") -> None:
        if prev is not None and prev._owner is record:
            prev._set_owner(None)

        if next is not None:
            if next._owner is None:
                next._set_owner(record, self.name)
            elif next._owner is not record:
                logger.warning(
                    "[Ownership] %s.%s: %s already has an owner and is held as a shared reference",
                    type(record).__name__,
                    self.name,
                    next.cid,
                )

        super().handle_change(next, prev, record)

    def clone(self, value: Any) -> Any:
        return value.clone() if value is not None else None

    def create(self) -> Any:
        return self.type()

    def to_json(self, value: Any, key: str) -> Any:
        return value.to_json() if value is not None else None

    def parse(self, value: Any, key: str) -> Any:
        return value

    def validate(self, record: "Record", value: Any, key: str) -> Any:
        return value.validation_error if value is not None else None


class RecordAttribute(OwnedAttribute):
    """Owned record attribute supporting deep updates.

    Assigning a mapping to an attribute that already holds a record
    updates that record in place instead of replacing it.
    """

    def can_be_updated(self, prev: Any, next: Any) -> bool:
        return prev is not None and isinstance(next, Mapping)


def to_attribute(name: str, declaration: Any) -> Attribute:
    """Build the attribute spec for a class-body declaration.

    Args:
        name: Attribute name
        declaration: An Attribute instance, a record or collection class,
            or a literal default value

    Returns:
        The Attribute backing the declaration
    """
    if isinstance(declaration, Attribute):
        attribute = declaration
    elif isinstance(declaration, type) and issubclass(declaration, Transactional):
        attribute = declaration._attribute(declaration)
    else:
        attribute = GenericAttribute(declaration)

    attribute.name = name
    return attribute


def each_attribute(record: Any, values: Mapping) -> Iterable:
    """Yield (key, value, spec) for keys of values declared on record's type.

    Unknown keys are logged and skipped.
    """
    specs = record._attributes
    for key, value in values.items():
        spec = specs.get(key)
        if spec is not None:
            yield key, value, spec
        else:
            logger.warning(
                "[Unknown Attribute] %s: unknown attribute %r is ignored",
                type(record).__name__,
                key,
            )
