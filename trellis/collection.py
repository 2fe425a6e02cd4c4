"""Collection: an ordered list of records held anonymously."""

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Dict, Iterator, List, Optional, Type

from .record import OwnedAttribute, Record
from .transactions import DEFAULT_OPTIONS, TransactionOptions, Transactional
from .validation import ValidationError

logger = logging.getLogger(__name__)


class Collection(Transactional):
    """Ordered records of one type.

    Members are owned without a key, so a member's changes are reported
    to the record that owns the collection, under the collection's
    attribute name.

    Example:
        class User(Record):
            attributes = {"id": None, "name": ""}

        class Users(Collection):
            model = User

        users = Users([{"id": 1, "name": "Ann"}, {"id": 2, "name": "Bob"}])
        users.get(2).name  # "Bob"
    """

    _attribute = OwnedAttribute

    model: Type[Record] = Record

    def __init__(self, records: Any = None, options: Optional[TransactionOptions] = None):
        super().__init__()
        self.models: List[Record] = []

        if records is not None:
            self.add(records, options)

    def add(self, records: Any, options: Optional[TransactionOptions] = None) -> List[Record]:
        """Append records, building them from raw values where needed.

        Returns:
            The records added
        """
        options = options or DEFAULT_OPTIONS

        if isinstance(records, (Mapping, Record)):
            records = [records]
        elif not isinstance(records, Iterable) or isinstance(records, str):
            logger.error(
                "[Type Error] %s: add rejected (%r), incompatible type",
                type(self).__name__,
                records,
            )
            return []

        added = []
        for item in records:
            record = item if isinstance(item, self.model) else self.model(item, options)
            if record._owner is None:
                record._set_owner(self)
            self.models.append(record)
            added.append(record)

        return added

    def remove(self, id_or_cid: Any) -> Optional[Record]:
        """Remove a record and release it.

        Returns:
            The removed record, or None if not found
        """
        record = self.get(id_or_cid)
        if record is None:
            return None

        self.models.remove(record)
        if record._owner is self:
            record._set_owner(None)
        return record

    def get(self, id_or_cid: Any) -> Optional[Record]:
        """Return the member with the given id or cid, or None."""
        if id_or_cid is None:
            return None

        if isinstance(id_or_cid, Record):
            return id_or_cid if id_or_cid in self.models else None

        for record in self.models:
            if record.cid == id_or_cid or (record.id is not None and record.id == id_or_cid):
                return record
        return None

    @property
    def length(self) -> int:
        return len(self.models)

    def __len__(self) -> int:
        return len(self.models)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.models)

    def __getitem__(self, index: int) -> Record:
        return self.models[index]

    # Serialization

    def to_json(self) -> List[Dict[str, Any]]:
        return [record.to_json() for record in self.models]

    def clone(self) -> "Collection":
        return type(self)([record.clone() for record in self.models])

    # Validation

    def validate(self) -> Any:
        return None

    def _validate_nested(self, errors: Dict[str, Any]) -> int:
        count = 0
        for record in self.models:
            error = record.validation_error
            if error:
                errors[record.cid] = error
                count += 1
        return count

    @property
    def validation_error(self) -> Optional[ValidationError]:
        error = ValidationError(self)
        return error if error.length else None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.cid}, length={len(self.models)})"
