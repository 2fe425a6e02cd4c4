"""Store: the root of an object tree, reached from any node with ``~``."""

from typing import Optional

from .record import Record
from .transactions import Transactional


class Store(Record):
    """A record acting as the root of reference resolution.

    Every node under a store reports it from get_store(), so references
    like ``"~users"`` resolve against the store's attributes.

    Example:
        class AppStore(Store):
            attributes = {"users": Users, "roles": Roles}

        store = AppStore()
        set_default_store(store)
    """

    def get_store(self) -> "Store":
        return self


def set_default_store(store: Optional[Store]) -> None:
    """Install the store returned by get_store() for nodes without an owner."""
    Transactional._default_store = store


def get_default_store() -> Optional[Store]:
    return Transactional._default_store
