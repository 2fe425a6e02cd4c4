"""JSON conversion for attribute values and records."""

import json
from datetime import datetime
from typing import Any, Type, TypeVar

from .exceptions import SerializationError
from .transactions import TransactionOptions

T = TypeVar("T")


def to_json_compatible(value: Any) -> Any:
    """Convert a plain attribute value to JSON-compatible format.

    Raises:
        SerializationError: If the value has no JSON representation
    """
    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, datetime):
        return {"__datetime__": value.isoformat()}
    if isinstance(value, (list, tuple)):
        return [to_json_compatible(v) for v in value]
    if isinstance(value, dict):
        return {k: to_json_compatible(v) for k, v in value.items()}
    # Records and collections serialize themselves
    to_json = getattr(value, "to_json", None)
    if callable(to_json):
        return to_json()
    raise SerializationError(f"Cannot serialize type: {type(value)}")


def from_json_compatible(value: Any) -> Any:
    """Convert a value from JSON-compatible format."""
    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, list):
        return [from_json_compatible(v) for v in value]
    if isinstance(value, dict):
        if "__datetime__" in value:
            return datetime.fromisoformat(value["__datetime__"])
        return {k: from_json_compatible(v) for k, v in value.items()}
    return value


def dumps(obj: Any) -> str:
    """Serialize a record or collection to a JSON string."""
    return json.dumps(obj.to_json(), indent=2)


def loads(cls: Type[T], json_str: str) -> T:
    """Build a record or collection of type cls from a JSON string.

    The decoded data goes through the type's parse step.
    """
    data = json.loads(json_str)
    return cls(data, TransactionOptions(parse=True))
