"""JSON wire serialization helpers.

Handles conversion between Python snake_case and the camelCase JSON the
mobile app and REST API speak.
"""

import re
from typing import Any

from pydantic import BaseModel


def to_camel(string: str) -> str:
    """Convert snake_case to camelCase."""
    components = string.split("_")
    return components[0] + "".join(x.title() for x in components[1:])


def to_snake(string: str) -> str:
    """Convert camelCase to snake_case."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", string).lower()


def model_to_wire(model: BaseModel, exclude: set[str] | None = None) -> dict[str, Any]:
    """Convert a pydantic model to a JSON-ready camelCase dict.

    - Converts field names from snake_case to camelCase
    - Converts datetimes to ISO strings and enums to their values
    - Leaves keys of free-form maps (app labels) untouched
    """
    data = model.model_dump(mode="json", exclude=exclude)
    return _convert_keys_to_camel(data)


def _convert_keys_to_camel(data: dict[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in data.items():
        camel_key = to_camel(key)
        if isinstance(value, dict) and key not in _OPAQUE_MAPS:
            result[camel_key] = _convert_keys_to_camel(value)
        else:
            result[camel_key] = value
    return result


def wire_to_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Convert a camelCase wire document to a snake_case dict for pydantic parsing."""
    return _convert_keys_to_snake(data)


def _convert_keys_to_snake(data: dict[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in data.items():
        snake_key = to_snake(key)
        if isinstance(value, dict) and snake_key not in _OPAQUE_MAPS:
            result[snake_key] = _convert_keys_to_snake(value)
        else:
            result[snake_key] = value
    return result


# Maps keyed by app display name ("YouTube", "Twitter/X"), never re-cased.
_OPAQUE_MAPS = frozenset({"app_usage", "per_app", "app_totals"})
