"""Pagination cursors: opaque snapshots of a result sort key.

A cursor encodes the sort key of the last row a page returned. Resuming
from it selects rows strictly greater than that key, so rows appended
later never shift earlier positions. Cursors carry no server-side state.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any

type SortKey = tuple[Any, ...]


def encode_cursor(key: SortKey) -> str:
    """Encode *key* as a url-safe token."""
    raw = json.dumps(list(key), separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_cursor(token: str) -> SortKey:
    """Decode a token produced by :func:`encode_cursor`.

    Raises:
        ValueError: If *token* is not a valid cursor.
    """
    padded = token + "=" * (-len(token) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        value = json.loads(raw)
    except (binascii.Error, UnicodeError, json.JSONDecodeError) as exc:
        msg = f"Malformed cursor: {token!r}"
        raise ValueError(msg) from exc
    if not isinstance(value, list):
        msg = f"Malformed cursor: {token!r}"
        raise ValueError(msg)
    return _to_tuple(value)


def _to_tuple(value: list[Any]) -> SortKey:
    return tuple(_to_tuple(v) if isinstance(v, list) else v for v in value)
