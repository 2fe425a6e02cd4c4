"""Transactional node base and the scope protocol shared by records and collections.

A scope is opened with begin() and closed with commit(). Opening is
reentrant: only the outermost caller gets True from begin() and is
responsible for the matching commit(). Closing a scope fires the node's
pending notifications and then reports the change to the logical owner,
which continues the same protocol one level up.
"""

import itertools
import weakref
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

from .events import Events
from .traversable import Traversable

_cid_counter = itertools.count()


@dataclass(frozen=True)
class TransactionOptions:
    """Options accepted by update calls.

    Attributes:
        silent: Suppress all notifications for the transaction
        reset: Disable deep merges; every key is replaced
        parse: Run input through the type's parse() first
        clone: Construct from deep copies rather than defaults (construction only)
    """

    silent: bool = False
    reset: bool = False
    parse: bool = False
    clone: bool = False


DEFAULT_OPTIONS = TransactionOptions()


class Transaction(ABC):
    """One commit cycle of a node."""

    object: "Transactional"
    is_root: bool

    @abstractmethod
    def commit(self, options: Optional[TransactionOptions] = None, is_nested: bool = False) -> None:
        """Deliver the notifications of the transaction."""
        pass

    @abstractmethod
    def abort(self) -> None:
        """Close the scopes this transaction opened without notifying."""
        pass


class Transactional(Events, Traversable):
    """Base class of every node in the ownership tree.

    Holds the transaction flags, the client id and the back reference to
    the owner. The owner is stored as a weak reference; a node never keeps
    its owner alive.
    """

    # Client id prefix
    cid_prefix: str = "c"

    # Store used by nodes without an owner
    _default_store: Optional["Transactional"] = None

    def __init__(self) -> None:
        self.cid: str = f"{self.cid_prefix}{next(_cid_counter)}"
        self._transaction = False
        self._is_dirty = False
        self._owner_ref: Optional[weakref.ref] = None
        self._owner_key: Optional[str] = None
        self._pending: Dict[str, TransactionOptions] = {}

    # Ownership

    @property
    def _owner(self) -> Optional["Transactional"]:
        return self._owner_ref() if self._owner_ref is not None else None

    def _set_owner(self, owner: Optional["Transactional"], key: Optional[str] = None) -> None:
        self._owner_ref = weakref.ref(owner) if owner is not None else None
        self._owner_key = key if owner is not None else None

    def get_owner(self) -> Optional["Transactional"]:
        """Return the logical owner, skipping the collection holding this node.

        A node held under a key belongs to its owner directly. A node held
        anonymously is a collection member, and collections are never
        members of collections, so the logical owner is one level up.
        """
        owner = self._owner
        if self._owner_key is not None or owner is None:
            return owner
        return owner._owner

    def get_store(self) -> Optional["Transactional"]:
        owner = self._owner
        if owner is not None:
            return owner.get_store()
        return self._default_store

    # Notification hooks

    def _mark_changed(self, key: str, options: TransactionOptions) -> None:
        self._is_dirty = True
        if not options.silent and key not in self._pending:
            self._pending[key] = options

    def _flush_changes(self, options: TransactionOptions) -> None:
        pending = self._pending
        while pending:
            key = next(iter(pending))
            self._notify_change_attr(key, pending.pop(key))

    def _notify_change_attr(self, key: str, options: TransactionOptions) -> None:
        pass

    def _notify_change(self, options: TransactionOptions) -> None:
        pass

    def _on_children_change(self, child: "Transactional", options: TransactionOptions) -> None:
        pass


def begin(obj: Transactional) -> bool:
    """Open a scope on obj.

    Returns:
        True if this call opened the scope, False if one was already open
    """
    if obj._transaction:
        return False
    obj._transaction = True
    return True


def close(obj: Transactional) -> None:
    """Close the scope opened on obj, dropping queued notifications."""
    obj._is_dirty = False
    obj._pending.clear()
    obj._transaction = False


def owner_key_of(node: Transactional) -> Optional[str]:
    """Return the key under which node's changes are reported to its logical owner."""
    if node._owner_key is not None:
        return node._owner_key
    collection = node._owner
    return collection._owner_key if collection is not None else None


def commit(obj: Transactional, options: TransactionOptions = DEFAULT_OPTIONS, is_nested: bool = False) -> None:
    """Close the scope opened on obj.

    Fires the queued per-key notifications and the node-level change
    notification (repeated while handlers keep the node dirty), then
    reports the change to the logical owner unless the scope was closed
    as part of the owner's own transaction.

    If a listener raises, the scope is still closed and the exception
    propagates; the change is not reported to the owner.
    """
    was_dirty = obj._is_dirty

    try:
        if not options.silent:
            while obj._is_dirty:
                obj._is_dirty = False
                obj._flush_changes(options)
                obj._notify_change(options)
    finally:
        close(obj)

    if was_dirty and not is_nested:
        owner = obj.get_owner()
        if owner is not None:
            owner._on_children_change(obj, options)
