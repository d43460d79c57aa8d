"""
Serialization Utilities

Converts domain objects (dataclasses, enums, datetimes, frozensets) into
plain JSON-compatible structures for logging, events and API payloads.
"""

import datetime
import json
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any, Dict, List


def serialize(obj: Any) -> Any:
    """
    Serialize an object to plain Python data.

    Args:
        obj: The object to serialize

    Returns:
        JSON-compatible representation of the object
    """
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj

    if isinstance(obj, (datetime.datetime, datetime.date)):
        return obj.isoformat()

    if isinstance(obj, Enum):
        return obj.value

    if isinstance(obj, (list, tuple)):
        return [serialize(item) for item in obj]

    # Sets have no order; sort so payloads are stable
    if isinstance(obj, (set, frozenset)):
        return sorted(serialize(item) for item in obj)

    if isinstance(obj, dict):
        return {key: serialize(value) for key, value in obj.items()}

    if hasattr(obj, 'to_dict') and callable(getattr(obj, 'to_dict')):
        return serialize(obj.to_dict())

    if is_dataclass(obj):
        return serialize(asdict(obj))

    return str(obj)


def to_json(obj: Any, pretty: bool = False) -> str:
    """
    Serialize an object to a JSON string.

    Args:
        obj: The object to serialize
        pretty: Whether to format the JSON with indentation

    Returns:
        JSON string representation
    """
    indent = 2 if pretty else None
    return json.dumps(serialize(obj), indent=indent, ensure_ascii=False)


class SerializableMixin:
    """
    Mixin that provides dictionary serialization to a domain class.

    Classes using this mixin list the attribute names (fields or properties)
    to export in `__serializable_fields__`.
    """

    __serializable_fields__: List[str] = []

    def to_dict(self) -> Dict[str, Any]:
        """Convert the object to a dictionary."""
        return {
            name: serialize(getattr(self, name))
            for name in self.__serializable_fields__
            if hasattr(self, name)
        }

    def to_json(self, pretty: bool = False) -> str:
        """Convert the object to a JSON string."""
        return to_json(self.to_dict(), pretty)
