"""Parameter encoding for the Moodle web service.

Moodle expects compound parameter names with literal square brackets
(``courseids[0]=7``, ``members[0][userid]=3``). A generic query encoder
escapes the brackets and Moodle rejects the request, so parameters are
encoded by hand: keys are sent verbatim, values are percent-encoded and the
pairs are joined with ``&``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from urllib.parse import quote, unquote

# Characters encodeURIComponent leaves alone besides letters and digits
_VALUE_SAFE = "-_.!~*'()"


def flatten_parameters(params: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """
    Flatten nested mappings and lists into bracket notation.

    {"members": [{"groupid": 1, "userid": 2}]} becomes
    {"members[0][groupid]": 1, "members[0][userid]": 2}.
    Keys that already carry brackets are kept as they are.
    """
    flat: dict[str, Any] = {}
    for key, value in params.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(flatten_parameters(value, name))
        elif isinstance(value, (list, tuple)):
            flat.update(flatten_parameters(dict(enumerate(value)), name))
        else:
            flat[name] = value
    return flat


def encode_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        value = int(value)
    return quote(str(value), safe=_VALUE_SAFE)


def encode_parameters(params: Mapping[str, Any] | None) -> str:
    """Encode parameters as ``key=value&key=value`` with unescaped keys."""
    if not params:
        return ""
    flat = flatten_parameters(params)
    return "&".join(f"{key}={encode_value(value)}" for key, value in flat.items())


def decode_parameters(encoded: str) -> list[tuple[str, str]]:
    """Reference decoder for encode_parameters()."""
    pairs: list[tuple[str, str]] = []
    if not encoded:
        return pairs
    for part in encoded.split("&"):
        key, _, value = part.partition("=")
        pairs.append((key, unquote(value)))
    return pairs
