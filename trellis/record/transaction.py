"""Transaction of a single record."""

from typing import TYPE_CHECKING, List, Optional

from ..transactions import DEFAULT_OPTIONS, Transaction, TransactionOptions, close, commit

if TYPE_CHECKING:
    from .core import Record


class RecordTransaction(Transaction):
    """Changes made to one record by one update call.

    Attribute values are already assigned when the transaction is created;
    committing it only delivers notifications. Nested transactions belong
    to records that were deep-updated through one of this record's
    attributes.

    Attributes:
        object: The updated record
        is_root: True if the update call opened the record's scope
        nested: Transactions of deep-updated child records, in update order
        changes: Names of changed attributes, in update order
    """

    def __init__(
        self,
        object: "Record",
        is_root: bool,
        nested: List[Transaction],
        changes: List[str],
    ):
        self.object = object
        self.is_root = is_root
        self.nested = nested
        self.changes = changes
        object._is_dirty = True

    def commit(self, options: Optional[TransactionOptions] = None, is_nested: bool = False) -> None:
        """Commit nested transactions, queue change notifications, close the scope if root.

        Args:
            options: Transaction options
            is_nested: True when committed as part of the owner's transaction,
                in which case the change is not reported to the owner
        """
        options = options or DEFAULT_OPTIONS
        record = self.object

        try:
            for transaction in self.nested:
                transaction.commit(options, True)
        except Exception:
            self.abort()
            raise

        if not options.silent:
            for key in self.changes:
                record._mark_changed(key, options)

        if self.is_root:
            commit(record, options, is_nested)

    def abort(self) -> None:
        """Close the scopes opened by this transaction and its nested ones.

        Values stay assigned; only the pending notifications are dropped.
        """
        for transaction in self.nested:
            transaction.abort()

        if self.is_root:
            close(self.object)

    def __repr__(self) -> str:
        return (
            f"RecordTransaction({self.object.cid}, is_root={self.is_root}, "
            f"changes={self.changes!r}, nested={len(self.nested)})"
        )
