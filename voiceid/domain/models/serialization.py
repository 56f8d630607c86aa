"""JSON-ready camelCase views of domain dataclasses."""

from typing import Any

from pydantic import TypeAdapter
from pydantic.alias_generators import to_camel


def _camelize(value: Any) -> Any:
    if isinstance(value, dict):
        return {to_camel(k) if isinstance(k, str) else k: _camelize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_camelize(v) for v in value]
    return value


def to_camel_dict(value: Any) -> dict[str, Any]:
    """Dump a dataclass to JSON-compatible data with camelCase keys."""
    return _camelize(TypeAdapter(type(value)).dump_python(value, mode="json"))
