"""Tests for telemetry primitives: Span, trace_span, @traced."""

from __future__ import annotations

import time
from collections.abc import Generator

import pytest

from dossierctl.services.result import ServiceResult
from dossierctl.services.telemetry import (
    Span,
    _current_span,
    disable_telemetry,
    enable_telemetry,
    get_current_span,
    trace_span,
    traced,
)


@pytest.fixture(autouse=True)
def _reset_telemetry_state() -> Generator[None]:
    """Ensure clean telemetry state for every test."""
    disable_telemetry()
    yield
    disable_telemetry()
    _current_span.set(None)


# ── Span ─────────────────────────────────────────────────────────────


class TestSpan:
    def test_duration_before_end_is_zero(self) -> None:
        assert Span(name="test").duration_ms == 0.0

    def test_duration_after_end(self) -> None:
        span = Span(name="test")
        time.sleep(0.005)
        span.end()
        assert span.duration_ms > 0

    def test_to_dict_minimal(self) -> None:
        span = Span(name="root")
        span.end()
        d = span.to_dict()
        assert d["name"] == "root"
        assert "children" not in d
        assert "annotations" not in d

    def test_to_dict_nested(self) -> None:
        root = Span(name="root")
        child = Span(name="child")
        child.annotate("matches", 4)
        root.children.append(child)
        d = root.to_dict()
        assert d["children"][0]["annotations"] == {"matches": 4}


# ── trace_span ───────────────────────────────────────────────────────


class TestTraceSpan:
    def test_disabled_yields_none(self) -> None:
        with trace_span("evaluate") as span:
            assert span is None

    def test_enabled_without_parent_yields_none(self) -> None:
        enable_telemetry()
        with trace_span("evaluate") as span:
            assert span is None

    def test_nests_under_current(self) -> None:
        enable_telemetry()
        root = Span(name="root")
        _current_span.set(root)
        with trace_span("evaluate") as span:
            assert span is not None
            assert get_current_span() is span
        assert root.children == [span]
        assert get_current_span() is root


# ── @traced ──────────────────────────────────────────────────────────


@traced
def _operation(ok: bool = True) -> ServiceResult:
    with trace_span("inner") as span:
        if span:
            span.annotate("k", "v")
    return ServiceResult(ok=ok, op="demo", meta={"graph_version": 1})


class TestTraced:
    def test_disabled_leaves_meta_alone(self) -> None:
        result = _operation()
        assert result.meta == {"graph_version": 1}

    def test_enabled_attaches_span_tree(self) -> None:
        enable_telemetry()
        result = _operation()
        assert result.meta is not None
        assert result.meta["graph_version"] == 1
        tree = result.meta["telemetry"]
        assert tree["name"] == "_operation"
        assert tree["children"][0]["name"] == "inner"
        assert tree["children"][0]["annotations"] == {"k": "v"}

    def test_failed_result_still_traced(self) -> None:
        enable_telemetry()
        result = _operation(ok=False)
        assert result.meta is not None
        assert "telemetry" in result.meta

    def test_current_span_restored(self) -> None:
        enable_telemetry()
        _operation()
        assert _current_span.get() is None

    def test_nested_traced_call_becomes_child(self) -> None:
        @traced
        def outer() -> ServiceResult:
            inner = _operation()
            assert inner.meta == {"graph_version": 1}
            return ServiceResult(ok=True, op="outer")

        enable_telemetry()
        result = outer()
        assert result.meta is not None
        tree = result.meta["telemetry"]
        assert [child["name"] for child in tree["children"]] == ["_operation"]
        assert tree["children"][0]["children"][0]["name"] == "inner"

    def test_exception_still_closes_span(self) -> None:
        @traced
        def broken() -> ServiceResult:
            raise RuntimeError("boom")

        enable_telemetry()
        with pytest.raises(RuntimeError):
            broken()
        assert _current_span.get() is None
