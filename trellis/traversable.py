"""Reference paths over the ownership graph.

A reference is a short path relative to some root node:

    ~         the store the root belongs to
    ^         the logical owner of the current node
    name      keyed lookup through ``get(name)``
    .         separator between keyed segments

Examples: ``"~users"``, ``"^.department.manager"``, ``"items.first"``.

Two ways to evaluate the same grammar:

    # Interpretive: walk to the container, hand it to an action
    resolve_reference(record, "^.settings.theme", lambda obj, key: obj.get(key))

    # Compiled once, evaluated many times
    users = CompiledReference("~users")
    users.resolve(record)
"""

import re
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple

from .exceptions import InvalidReferenceError

STORE = "~"
OWNER = "^"

_REFERENCE_TOKEN = re.compile(r"~|\^|[^.]+")

Step = Callable[[Any], Any]


class Traversable(ABC):
    """Navigation primitives required by reference resolution."""

    @abstractmethod
    def get_store(self) -> Optional["Traversable"]:
        """Return the store this node belongs to."""
        pass

    @abstractmethod
    def get_owner(self) -> Optional["Traversable"]:
        """Return the logical owner of this node."""
        pass

    @abstractmethod
    def get(self, key: str) -> Any:
        """Return the value held under key."""
        pass

    def deep_get(self, reference: str) -> Any:
        """Read the value at a reference path relative to this node.

        Returns None if any object along the path is missing.
        """
        return resolve_reference(self, reference, _navigate)


def tokenize(reference: str) -> List[str]:
    """Split a reference into navigation tokens.

    Raises:
        InvalidReferenceError: If the reference contains no tokens
    """
    tokens = _REFERENCE_TOKEN.findall(reference or "")
    if not tokens:
        raise InvalidReferenceError(reference)
    return tokens


def _navigate(obj: Any, token: str) -> Any:
    if token == STORE:
        return obj.get_store()
    if token == OWNER:
        return obj.get_owner()
    return obj.get(token)


def _step(token: str) -> Step:
    if token == STORE:
        return lambda obj: obj.get_store()
    if token == OWNER:
        return lambda obj: obj.get_owner()
    return lambda obj: obj.get(token)


def resolve_reference(
    root: Any,
    reference: str,
    action: Callable[[Any, str], Any],
) -> Any:
    """Walk to the container of the last path segment and apply an action.

    All segments but the last are navigated. If any of them yields None the
    walk stops and None is returned; the action is never invoked on a
    broken path.

    Args:
        root: Node the path is relative to
        reference: Reference path (e.g., "^.items.first")
        action: Called as action(container, last_segment)

    Returns:
        The action's result, or None if the path is broken
    """
    path = tokenize(reference)
    obj = root

    for token in path[:-1]:
        obj = _navigate(obj, token)
        if obj is None:
            return None

    return action(obj, path[-1])


class CompiledReference:
    """A reference path parsed once into a reusable resolver.

    Attributes:
        resolve: Function from a root node to the referenced value, or None
            if the chain breaks
        tail: Last path segment when compiled with split_tail, else None
        local: True if no navigation steps remain, in which case resolve
            returns the root itself

    Example:
        ref = CompiledReference("~users")
        users = ref.resolve(record)

        ref = CompiledReference("^.settings.theme", split_tail=True)
        container = ref.resolve(record)   # record.get_owner().get("settings")
        ref.tail                          # "theme"
    """

    def __init__(self, reference: str, split_tail: bool = False):
        path = tokenize(reference)

        self.reference = reference
        self.tail: Optional[str] = path.pop() if split_tail else None
        self.local: bool = not path
        self._steps: Tuple[Step, ...] = tuple(_step(token) for token in path)

    def resolve(self, root: Any) -> Any:
        obj = root
        for step in self._steps:
            obj = step(obj)
            if obj is None:
                return None
        return obj

    def __repr__(self) -> str:
        return f"CompiledReference({self.reference!r}, tail={self.tail!r})"


def reference_to_object(reference: str, value: Any) -> Dict[str, Any]:
    """Build a nested update payload from a dotted path.

    Example:
        reference_to_object("a.b.c", 0)  # {"a": {"b": {"c": 0}}}
    """
    path = reference.split(".")
    root: Dict[str, Any] = {}
    current = root

    for key in path[:-1]:
        current[key] = {}
        current = current[key]

    current[path[-1]] = value
    return root
