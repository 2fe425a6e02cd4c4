"""Record: a transactional node with a fixed set of named attributes."""

import logging
from collections.abc import Mapping, MutableMapping
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional

from ..exceptions import DefinitionError
from ..transactions import (
    DEFAULT_OPTIONS,
    Transactional,
    TransactionOptions,
    begin as _begin,
    close,
    commit,
    owner_key_of,
)
from ..traversable import resolve_reference
from ..validation import ValidationError
from .attributes import Attribute, RecordAttribute, each_attribute, to_attribute
from .transaction import RecordTransaction

logger = logging.getLogger(__name__)


class Record(Transactional):
    """A node of the object tree with declared attributes.

    Attributes are declared once per type in the ``attributes`` class
    mapping. Values may be literal defaults, record or collection classes,
    or Attribute instances. Every declared attribute gets a property
    accessor on the class; writes through it are single-attribute
    transactions.

    Example:
        class Address(Record):
            attributes = {"city": "", "zip": ""}

        class User(Record):
            attributes = {"id": None, "name": "", "address": Address}

        user = User({"name": "Ann"})
        user.on("change:address", lambda record, value, options: ...)

        # Deep update: the Address instance is kept and updated in place
        user.set({"address": {"city": "Oslo"}})

        # Several writes, one notification cycle
        with user.batch():
            user.name = "Anna"
            user.address.zip = "0150"
    """

    _attribute = RecordAttribute

    # Attribute specs by name, built from the class declarations
    _attributes: Dict[str, Attribute] = {}

    # Name of the attribute exposed as the record id
    id_attribute: str = "id"

    attributes: Dict[str, Any]
    _previous_attributes: Dict[str, Any]

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)

        declared = cls.__dict__.get("attributes")
        specs = dict(cls._attributes)

        if declared is not None:
            if not isinstance(declared, Mapping):
                raise DefinitionError(
                    f"{cls.__name__}.attributes must be a mapping, got {type(declared).__name__}"
                )
            # The declaration is replaced by per-instance attribute values
            del cls.attributes

            for name, declaration in declared.items():
                if name.startswith("_") or name in ("attributes", "cid"):
                    raise DefinitionError(f"{cls.__name__}: invalid attribute name {name!r}")
                # Redeclared attributes keep the accessor of the base class
                inherited = name in specs
                specs[name] = to_attribute(name, declaration)

                if not hasattr(cls, name):
                    setattr(cls, name, _accessor(name))
                elif not inherited and name != cls.id_attribute:
                    raise DefinitionError(
                        f"{cls.__name__}: attribute {name!r} collides with an existing member"
                    )

        cls._attributes = specs

    def __init__(self, values: Any = None, options: Optional[TransactionOptions] = None):
        super().__init__()
        options = options or DEFAULT_OPTIONS

        if options.parse:
            values = self.parse(values)

        if values is None:
            values = {}
        elif not isinstance(values, Mapping):
            logger.error(
                "[Type Error] %s: constructor values rejected (%r), incompatible type",
                type(self).__name__,
                values,
            )
            values = {}

        attributes = self._clone_attributes(values) if options.clone else self.defaults(values)

        for key, spec in self._attributes.items():
            value = attributes[key] = spec.transform(attributes[key], options, None, self)
            spec.handle_change(value, None, self)

        self.attributes = attributes
        self._previous_attributes = dict(attributes)

        self.initialize(values, options)

    def initialize(self, values: Mapping, options: TransactionOptions) -> None:
        """Hook for subclasses, called at the end of construction."""
        pass

    def defaults(self, values: Optional[Mapping] = None) -> Dict[str, Any]:
        """Return a full attribute mapping, taking given values over defaults."""
        given = {key: value for key, value, _ in each_attribute(self, values or {})}
        return {
            key: given[key] if key in given else spec.create()
            for key, spec in self._attributes.items()
        }

    def _clone_attributes(self, values: Mapping) -> Dict[str, Any]:
        return {
            key: spec.clone(values[key]) if key in values else spec.create()
            for key, spec in self._attributes.items()
        }

    def clone(self) -> "Record":
        """Return a deep copy of the record, without an owner."""
        return type(self)(self.attributes, TransactionOptions(clone=True))

    # Identity

    @property
    def id(self) -> Any:
        return self.attributes.get(self.id_attribute)

    @id.setter
    def id(self, value: Any) -> None:
        set_attribute(self, self.id_attribute, value)

    # Traversable

    def get(self, key: str) -> Any:
        """Return the value of attribute key, or None if it is not declared."""
        spec = self._attributes.get(key)
        if spec is None:
            return None
        return spec.get(self.attributes[key], key, self)

    # Updates

    def set(self, values: Optional[Mapping], options: Optional[TransactionOptions] = None) -> "Record":
        """Update several attributes in one transaction.

        Mappings assigned to attributes holding records are merged into
        those records. Notifications fire once the update is complete,
        then the change is reported to the owner.

        Args:
            values: Attribute names to new values
            options: Transaction options

        Returns:
            self
        """
        if values is not None:
            options = options or DEFAULT_OPTIONS
            transaction = self.create_transaction(values, options)
            if transaction is not None:
                transaction.commit(options)

        return self

    def create_transaction(
        self,
        values: Any,
        options: Optional[TransactionOptions] = None,
    ) -> Optional[RecordTransaction]:
        """Apply values to the record and return the uncommitted transaction.

        Attributes are assigned immediately and their change handlers run
        at assignment time; only notifications wait for the commit.

        If a transform or change handler raises, the scopes opened by this
        call are closed without notifying and the exception propagates.
        Values assigned before the failure are kept.

        Returns:
            The transaction, or None if nothing changed (in which case a
            scope opened by this call is already closed)
        """
        options = options or DEFAULT_OPTIONS
        is_root = begin(self)
        changes = []
        nested = []
        attributes = self.attributes

        try:
            if options.parse:
                values = self.parse(values)

            if isinstance(values, Mapping):
                merge = not options.reset

                for key, value, spec in each_attribute(self, values):
                    prev = attributes[key]

                    if merge and spec.can_be_updated(prev, value):
                        transaction = prev.create_transaction(value, options)
                        if transaction is not None:
                            nested.append(transaction)
                            changes.append(key)
                        continue

                    next_value = spec.transform(value, options, prev, self)

                    if spec.is_changed(next_value, prev):
                        attributes[key] = next_value
                        changes.append(key)
                        spec.handle_change(next_value, prev, self)
            else:
                logger.error(
                    "[Type Error] %s: update rejected (%r), incompatible type",
                    type(self).__name__,
                    values,
                )
        except Exception:
            for transaction in nested:
                transaction.abort()
            if is_root:
                close(self)
            raise

        if nested or changes:
            return RecordTransaction(self, is_root, nested, changes)

        if is_root:
            commit(self, options)
        return None

    @contextmanager
    def batch(self, options: Optional[TransactionOptions] = None) -> Iterator["Record"]:
        """Context manager grouping updates into one transaction.

        Changes made inside the block, to this record or its descendants,
        are notified once when the outermost block exits. Exiting through an
        exception still closes the transaction; there is no rollback.

        Example:
            with user.batch():
                user.name = "Ann"
                user.set({"age": 42})
        """
        options = options or DEFAULT_OPTIONS
        is_root = begin(self)
        try:
            yield self
        finally:
            if is_root:
                commit(self, options)

    def transaction(self, fun: Callable[["Record"], None], options: Optional[TransactionOptions] = None) -> None:
        """Run fun(self) inside one transaction."""
        with self.batch(options):
            fun(self)

    def deep_set(self, reference: str, value: Any, options: Optional[TransactionOptions] = None) -> "Record":
        """Assign value at a reference path relative to this record.

        Nothing happens if the path is broken or ends in a container that
        cannot be assigned by key (e.g., a collection).

        Example:
            user.deep_set("address.city", "Oslo")
        """

        def assign(obj: Any, key: str) -> None:
            if isinstance(obj, Record):
                obj.set({key: value}, options)
            elif isinstance(obj, MutableMapping):
                obj[key] = value
            else:
                logger.error(
                    "[Type Error] %s: cannot assign %r on %s, incompatible container",
                    type(self).__name__,
                    key,
                    type(obj).__name__,
                )

        with self.batch(options):
            resolve_reference(self, reference, assign)

        return self

    def force_attribute_change(self, key: str, options: Optional[TransactionOptions] = None) -> None:
        """Mark attribute key as changed without assigning it."""
        options = options or DEFAULT_OPTIONS
        is_root = begin(self)

        if not options.silent:
            self._mark_changed(key, options)

        if is_root:
            commit(self, options)

    def _on_children_change(self, child: Transactional, options: TransactionOptions) -> None:
        self.force_attribute_change(owner_key_of(child), options)

    # Change tracking

    def previous(self, key: str) -> Any:
        """Return the value key had before the current or last transaction."""
        return self._previous_attributes.get(key)

    @property
    def changed(self) -> Dict[str, Any]:
        """Attributes whose values differ from the previous snapshot."""
        prev = self._previous_attributes
        return {
            key: value
            for key, value in self.attributes.items()
            if self._attributes[key].is_changed(value, prev.get(key))
        }

    def has_changed(self, key: Optional[str] = None) -> bool:
        if key is None:
            return bool(self.changed)
        return self._attributes[key].is_changed(self.attributes[key], self._previous_attributes.get(key))

    def _notify_change_attr(self, key: str, options: TransactionOptions) -> None:
        self.trigger("change:" + key, self, self.attributes.get(key), options)

    def _notify_change(self, options: TransactionOptions) -> None:
        self.trigger("change", self, options)

    # Serialization

    def to_json(self) -> Dict[str, Any]:
        json: Dict[str, Any] = {}
        for key, spec in self._attributes.items():
            value = self.attributes[key]
            if spec.serializable and value is not None:
                json[key] = spec.to_json(value, key)
        return json

    def parse(self, data: Any) -> Any:
        """Convert raw data (e.g., decoded JSON) to attribute values."""
        if not isinstance(data, Mapping):
            return data
        specs = self._attributes
        return {
            key: specs[key].parse(value, key) if key in specs else value
            for key, value in data.items()
        }

    # Validation

    def validate(self) -> Any:
        """Local validation rule. Return an error, or None if valid."""
        return None

    def _validate_nested(self, errors: Dict[str, Any]) -> int:
        count = 0
        for key, spec in self._attributes.items():
            error = spec.validate(self, self.attributes[key], key)
            if error:
                errors[key] = error
                count += 1
        return count

    @property
    def validation_error(self) -> Optional[ValidationError]:
        """Error tree of this record and its descendants, or None if valid."""
        error = ValidationError(self)
        return error if error.length else None

    def is_valid(self, key: Optional[str] = None) -> bool:
        error = self.validation_error
        if error is None:
            return True
        return key is not None and key not in error.nested

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.cid}, {self.attributes!r})"


def begin(record: Record) -> bool:
    """Open a scope on record, snapshotting its attributes if this call opened it."""
    if _begin(record):
        record._previous_attributes = dict(record.attributes)
        return True
    return False


def set_attribute(record: Record, name: str, value: Any) -> None:
    """Single-attribute update used by property setters.

    Raises:
        KeyError: If name is not a declared attribute
    """
    spec = record._attributes[name]
    options = DEFAULT_OPTIONS
    attributes = record.attributes
    is_root = begin(record)

    try:
        prev = attributes[name]

        if spec.can_be_updated(prev, value):
            transaction = prev.create_transaction(value, options)
            if transaction is not None:
                transaction.commit(options, True)
                record._mark_changed(name, options)
        else:
            next_value = spec.transform(value, options, prev, record)

            if spec.is_changed(next_value, prev):
                attributes[name] = next_value
                spec.handle_change(next_value, prev, record)
                record._mark_changed(name, options)
    except Exception:
        if is_root:
            close(record)
        raise

    if is_root:
        commit(record, options)


def _accessor(name: str) -> property:
    def fget(self: Record) -> Any:
        return self.get(name)

    def fset(self: Record, value: Any) -> None:
        set_attribute(self, name, value)

    return property(fget, fset, doc=f"Attribute {name!r}.")
