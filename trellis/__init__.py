"""
Trellis - In-memory reactive object-graph store.

Records hold named attributes and own nested records and collections.
Updates are transactional: a multi-attribute update, including updates
merged into nested records, is applied in full and then notified once,
after which the change propagates up the ownership chain to the root.

Quick Start:
    from trellis import Record, Collection, Store, from_, set_default_store

    class User(Record):
        attributes = {"id": None, "name": ""}

    class Users(Collection):
        model = User

    class Task(Record):
        attributes = {"title": "", "assignee": from_("~users")}

    class AppStore(Store):
        attributes = {"users": Users}

    store = AppStore({"users": [{"id": 1, "name": "Ann"}]})
    set_default_store(store)

    task = Task({"title": "Write docs", "assignee": 1})
    task.assignee.name  # "Ann"

Submodules:
    trellis.traversable - Reference paths (~, ^, a.b.c)
    trellis.transactions - Transaction scopes and ownership
    trellis.record - Records and attribute specs
    trellis.validation - Validation error trees
"""

from .collection import Collection
from .events import Events
from .exceptions import DefinitionError, InvalidReferenceError, SerializationError, TrellisError
from .record import (
    Attribute,
    GenericAttribute,
    OwnedAttribute,
    Record,
    RecordAttribute,
    RecordTransaction,
)
from .relations import RecordRefAttribute, from_
from .serialization import dumps, loads
from .store import Store, get_default_store, set_default_store
from .transactions import Transaction, TransactionOptions, Transactional
from .traversable import CompiledReference, Traversable, reference_to_object, resolve_reference
from .validation import ValidationError

__all__ = [
    # Core
    "Record",
    "Collection",
    "Store",
    "set_default_store",
    "get_default_store",
    # Transactions
    "Transaction",
    "TransactionOptions",
    "Transactional",
    "RecordTransaction",
    # Attributes
    "Attribute",
    "GenericAttribute",
    "OwnedAttribute",
    "RecordAttribute",
    "RecordRefAttribute",
    "from_",
    # References
    "Traversable",
    "CompiledReference",
    "resolve_reference",
    "reference_to_object",
    # Validation
    "ValidationError",
    # Events
    "Events",
    # Serialization
    "dumps",
    "loads",
    # Exceptions
    "TrellisError",
    "InvalidReferenceError",
    "DefinitionError",
    "SerializationError",
]

__version__ = "0.1.0"
