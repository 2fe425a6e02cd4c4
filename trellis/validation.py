"""Validation error trees."""

from typing import Any, Callable, Dict, Optional


class ValidationError:
    """Errors of an object and its nested objects.

    Built by asking the object to collect the errors of its children
    first, then running its own validate() rule. The object is invalid if
    either produced anything.

    Attributes:
        nested: Child key to that child's error (a ValidationError for
            records and collections, any value for attribute-level errors)
        error: Result of the object's own validate(), or None
        length: Number of nested errors plus one if error is set
    """

    def __init__(self, obj: Any):
        self.nested: Dict[str, Any] = {}
        self.length: int = obj._validate_nested(self.nested)
        self.error: Any = obj.validate()

        if self.error:
            self.length += 1

    def __len__(self) -> int:
        return self.length

    def each(self, iteratee: Callable[[Any, Optional[str]], None]) -> None:
        """Call iteratee(value, key) for the local error (key None) and each nested entry."""
        if self.error:
            iteratee(self.error, None)

        for key, value in self.nested.items():
            iteratee(value, key)

    def each_error(self, iteratee: Callable[[Any, Optional[str], Any], None], obj: Any) -> None:
        """Call iteratee(error, key, owner) for every leaf error in the tree.

        Nested error trees are walked recursively; obj.get(key) supplies the
        child object each subtree belongs to.
        """

        def visit(value: Any, key: Optional[str]) -> None:
            if isinstance(value, ValidationError):
                value.each_error(iteratee, obj.get(key))
            else:
                iteratee(value, key, obj)

        self.each(visit)

    def __repr__(self) -> str:
        return f"ValidationError(length={self.length}, error={self.error!r}, nested={list(self.nested)})"
