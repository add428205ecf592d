from __future__ import annotations

import json
from collections.abc import Mapping, Sequence

JSONValue = dict[str, "JSONValue"] | list["JSONValue"] | str | int | float | bool | None

# Accepts TypedDict records through Mapping.
_Dumpable = str | int | float | bool | None | Mapping[str, object] | Sequence[object]


class InvalidJsonError(ValueError):
    """Text is not valid JSON."""


class JSONTypeError(TypeError):
    """Valid JSON of the wrong shape."""


def dump_json_str(value: _Dumpable, *, compact: bool = True) -> str:
    """Serialize to JSON text on a single line."""
    separators = (",", ":") if compact else (", ", ": ")
    return json.dumps(value, separators=separators, ensure_ascii=False)


def load_json_str(raw: str) -> JSONValue:
    try:
        value: JSONValue = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidJsonError(f"Invalid JSON: {exc.msg} at line {exc.lineno}") from exc
    return value


def narrow_json_to_dict(value: JSONValue) -> dict[str, JSONValue]:
    if not isinstance(value, dict):
        raise JSONTypeError(f"Expected JSON object, got {type(value).__name__}")
    return value


def optional_str(data: dict[str, JSONValue], key: str) -> str | None:
    """Return data[key] when it is a string, else None."""
    value = data.get(key)
    return value if isinstance(value, str) else None


def optional_int(data: dict[str, JSONValue], key: str) -> int | None:
    """Return data[key] as int when it is a JSON number, else None.

    JSON has a single number type, so whole floats such as ``200.0`` are accepted.
    Booleans are rejected even though ``bool`` subclasses ``int``.
    """
    value = data.get(key)
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return None


__all__ = [
    "InvalidJsonError",
    "JSONTypeError",
    "JSONValue",
    "dump_json_str",
    "load_json_str",
    "narrow_json_to_dict",
    "optional_int",
    "optional_str",
]
