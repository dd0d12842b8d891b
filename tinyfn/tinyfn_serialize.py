from __future__ import annotations

import dataclasses
import json
from typing import Any

import yaml

from tinyfn.tinyfn_datatypes import BigInt, Node
from tinyfn.tinyfn_lexer import Token
from tinyfn.tinyfn_location import Location, Source


# --------------------------
# Helpers
# --------------------------

def _loc(location: Location) -> str:
    return f"{location.line}:{location.column}-{location.end_line}:{location.end_column}"


def _value(value: Any) -> Any:
    # BigInt and floats like inf/nan have no faithful YAML/JSON scalar.
    if isinstance(value, BigInt):
        return str(int(value))
    if isinstance(value, float) and (value != value or value in (float("inf"), float("-inf"))):
        return repr(value)
    return value


def to_builtin(obj: Any) -> Any:
    """Converts tokens, locations and AST nodes into plain dicts and lists."""
    if isinstance(obj, (list, tuple)):
        return [to_builtin(x) for x in obj]
    if isinstance(obj, Token):
        return {
            "kind": obj.kind,
            "value": _value(obj.value),
            "text": obj.text,
            "loc": _loc(obj.location),
        }
    if isinstance(obj, Location):
        return _loc(obj)
    if isinstance(obj, Node):
        out = {"type": type(obj).__name__}
        for f in dataclasses.fields(obj):
            if f.name == "location":
                continue
            out[f.name] = to_builtin(getattr(obj, f.name))
        out["loc"] = _loc(obj.location)
        return out
    if isinstance(obj, Source):
        return obj.name
    return _value(obj)


# --------------------------
# Public API
# --------------------------

def serialize(obj: Any, fmt: str = "yaml") -> str:
    """Dumps tokens or an AST as YAML or JSON text."""
    built = to_builtin(obj)
    fmt = fmt.lower()
    if fmt == "json":
        return json.dumps(built, indent=2, ensure_ascii=False)
    if fmt in ("yaml", "yml"):
        return yaml.safe_dump(built, sort_keys=False, allow_unicode=True)
    raise ValueError(f"Unsupported format: {fmt}")
