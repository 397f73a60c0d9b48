"""Tests for opaque pagination cursors."""

from __future__ import annotations

import base64

import pytest

from dossierctl.domain.cursor import decode_cursor, encode_cursor


class TestCursor:
    def test_decodes_to_tuples(self) -> None:
        key = (("a", 1, "s"), "2024-01-01T00:00:00.000000+00:00", "alice", ("b", 0, ""))
        assert decode_cursor(encode_cursor(key)) == key

    def test_token_is_url_safe_without_padding(self) -> None:
        token = encode_cursor((("doc?/+", 0, ""), "", "", ("x", 0, "")))
        assert "=" not in token
        assert "+" not in token
        assert "/" not in token

    def test_garbage_rejected(self) -> None:
        with pytest.raises(ValueError, match="Malformed cursor"):
            decode_cursor("!!not-a-cursor!!")

    def test_non_list_payload_rejected(self) -> None:
        token = base64.urlsafe_b64encode(b'{"a": 1}').decode().rstrip("=")
        with pytest.raises(ValueError, match="Malformed cursor"):
            decode_cursor(token)
