"""
dcard Canonical JSON Encoding

Ensures that structurally identical cards produce identical byte
representations, whatever the key order they were written or parsed in.
"""

import json
import math
import re
from typing import Any, Dict, List, Union

JSONValue = Union[None, bool, int, float, str, List[Any], Dict[str, Any]]

# Integral floats beyond this magnitude keep their float form
_MAX_SAFE_INTEGER = 2 ** 53 - 1

_LONE_SURROGATE = re.compile('[\ud800-\udfff]')


def canonicalize(obj: Any) -> bytes:
    """
    Convert a card (or any JSON value) to canonical JSON bytes.

    Rules:
    - Object keys sorted lexicographically, recursively
    - Arrays preserve order
    - No whitespace between tokens (compact form)
    - UTF-8 encoding, no ASCII escaping
    - Integral floats written as integers (1.0 -> 1)
    - Unpaired surrogates escaped as \\uXXXX (JSON.stringify behavior)

    Returns:
        UTF-8 encoded bytes of canonical JSON

    Raises:
        ValueError: if the value holds something JSON cannot represent
    """
    canonical = canonicalize_value(obj)
    text = json.dumps(
        canonical,
        separators=(',', ':'),
        ensure_ascii=False,
        allow_nan=False,
    )
    return _escape_lone_surrogates(text).encode('utf-8')


def canonicalize_str(obj: Any) -> str:
    """Return canonical JSON as string."""
    return canonicalize(obj).decode('utf-8')


def canonicalize_value(value: Any) -> JSONValue:
    """
    Recursively canonicalize a value without serializing it.

    Idempotent: canonicalize_value(canonicalize_value(x)) == canonicalize_value(x).
    """
    if value is None:
        return None
    elif isinstance(value, bool):
        return value
    elif isinstance(value, int):
        return value
    elif isinstance(value, float):
        return _canonicalize_number(value)
    elif isinstance(value, str):
        return value
    elif isinstance(value, dict):
        return _canonicalize_object(value)
    elif isinstance(value, (list, tuple)):
        return _canonicalize_array(value)
    else:
        raise ValueError(f"Cannot canonicalize type: {type(value)}")


def _escape_lone_surrogates(text: str) -> str:
    """Join valid surrogate pairs, then escape whatever surrogates remain."""
    if not _LONE_SURROGATE.search(text):
        return text
    text = text.encode('utf-16-le', 'surrogatepass').decode('utf-16-le', 'surrogatepass')
    return _LONE_SURROGATE.sub(lambda m: '\\u%04x' % ord(m.group()), text)


def _canonicalize_number(value: float) -> Union[int, float]:
    if not math.isfinite(value):
        raise ValueError(f"Cannot canonicalize non-finite number: {value}")
    if value.is_integer() and abs(value) <= _MAX_SAFE_INTEGER:
        return int(value)
    return value


def _canonicalize_object(obj: Dict[str, Any]) -> Dict[str, Any]:
    """Canonicalize an object by sorting keys lexicographically."""
    for key in obj:
        if not isinstance(key, str):
            raise ValueError(f"Object keys must be strings, got {type(key)}")
    return {k: canonicalize_value(obj[k]) for k in sorted(obj)}


def _canonicalize_array(arr: Union[List, tuple]) -> List:
    """Canonicalize an array, preserving order."""
    return [canonicalize_value(item) for item in arr]
