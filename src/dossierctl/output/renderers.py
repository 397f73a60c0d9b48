"""Human-readable rendering of ServiceResults, one renderer per ``op``.

Renderers draw into a :class:`BufferedConsole`. Ops missing from
``_OP_RENDERERS`` get the generic key/value listing. ``render_quiet``
serves ``--quiet``: far-side node ids for label rows, otherwise a scalar.
"""

from __future__ import annotations

import json as _json
from typing import TYPE_CHECKING, Any

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from dossierctl.output.console import create_console, style_for_coref

if TYPE_CHECKING:
    from rich.console import Console

    from dossierctl.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Styled text for *result*; plain when the console is not a terminal."""
    console = create_console()
    draw = _OP_RENDERERS.get(result.op, _render_generic) if result.ok else _render_error
    draw(result, console, verbose=verbose)

    return console.text().rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Bare output for ``--quiet``: far nodes, a scalar value, or a status word."""
    if not result.ok:
        reason = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op}: {reason}"

    items = result.data.get("items")
    if isinstance(items, list) and items:
        return "\n".join(node for node in map(_far_node, items) if node)

    if result.op == "get_feature_value":
        value = result.data.get("value")
        return "" if value is None else str(value)

    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────

# (threshold_ms, style), checked from slowest down.
_DURATION_STYLES = ((1000.0, "bold red"), (100.0, "yellow"))
_NODE_KEYS = frozenset({"content_id", "source", "target"})


def _node(content_id: Any, subtopic_id: Any) -> str:
    if not content_id:
        return ""
    return f"{content_id}#{subtopic_id}" if subtopic_id else str(content_id)


def _far_node(item: Any) -> str:
    if not isinstance(item, dict):
        return ""
    return _node(item.get("content_id2"), item.get("subtopic_id2"))


def _value_style(key: str) -> str:
    if key in _NODE_KEYS or key.endswith("_id"):
        return "dossier.node"
    if key.endswith("_path"):
        return "dossier.path"
    return ""


def _status_line(console: Console, result: ServiceResult) -> None:
    console.print(Text.assemble(("OK", "dossier.ok"), "  ", (result.op, "dossier.op")))


def _field(console: Console, key: str, value: Any) -> None:
    console.print(
        Text.assemble((f"  {key}: ", "dossier.key"), (str(value), _value_style(key)))
    )


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Meta block shown under ``--verbose``; telemetry becomes an indented tree."""
    if not result.meta:
        return

    console.print()
    console.print(Text("  meta:", style="dim"))
    for key, value in result.meta.items():
        if key == "telemetry":
            _render_span(console, value, depth=1)
        else:
            console.print(Text(f"    {key}: {value}"))


def _render_span(console: Console, span: dict[str, Any], depth: int) -> None:
    duration = float(span.get("duration_ms", 0.0))
    style = next((s for limit, s in _DURATION_STYLES if duration > limit), "dim")

    line = Text.assemble(
        " " * (4 * depth),
        (f"{duration:>8.2f}ms", style),
        "  ",
        str(span.get("name", "?")),
    )
    notes = span.get("annotations") or {}
    if notes:
        line.append("  (" + ", ".join(f"{k}={v}" for k, v in notes.items()) + ")")
    console.print(line)

    for child in span.get("children", []):
        _render_span(console, child, depth + 1)


def _label_table(
    items: list[dict[str, Any]],
    *,
    extra_columns: list[str] | None = None,
    verbose: bool = False,
) -> Table:
    """Build a Rich Table for label-shaped rows."""
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("From", style="dossier.node", no_wrap=True)
    table.add_column("To", style="dossier.node", no_wrap=True)
    table.add_column("Coref")
    table.add_column("Annotator", style="dossier.annotator")
    table.add_column("Created", style="dim")
    for col in extra_columns or []:
        table.add_column(col.replace("_", " ").title())
    if verbose:
        table.add_column("Inferred")

    for item in items:
        coref = str(item.get("coref_value", ""))
        row: list[Any] = [
            _node(item.get("content_id1"), item.get("subtopic_id1")),
            _node(item.get("content_id2"), item.get("subtopic_id2")),
            Text(coref, style=style_for_coref(coref)),
            str(item.get("annotator_id") or ""),
            str(item.get("created_at") or ""),
        ]
        for col in extra_columns or []:
            row.append(str(item.get(col, "")))
        if verbose:
            row.append("yes" if item.get("inferred") else "")
        table.add_row(*row)

    return table


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    console.print(
        Text.assemble(
            ("ERROR", "dossier.error"),
            "  ",
            (result.op, "dossier.op"),
            ": ",
            err.message if err else "Unknown error",
        )
    )
    if not (verbose and err and err.detail):
        return
    console.print(Text("  detail:", style="dim"))
    for key, value in err.detail.items():
        console.print(Text(f"    {key}: {value}"))


# ── Label renderers ───────────────────────────────────────────────────


def _render_append(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render append_label / append_labels results."""
    _status_line(console, result)
    _field(console, "count", result.data.get("count", 0))
    contradictions = result.data.get("contradictions", [])
    if contradictions:
        _field(console, "contradictions", len(contradictions))
    if verbose:
        _render_meta(console, result)


def _render_label_rows(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render labels_touching and query_labels results as a table."""
    d = result.data
    items = d.get("items", [])
    anchor = _node(d.get("content_id"), d.get("subtopic_id"))
    heading = f"[bold]{d['which']}[/bold] " if "which" in d else ""
    console.print(f"{heading}[dossier.node]{anchor}[/dossier.node]")

    if items:
        console.print(_label_table(items, verbose=verbose))
    console.print(f"\n{d.get('count', len(items))} labels")

    if d.get("has_more") and d.get("cursor"):
        console.print(f"next cursor: [dim]{d['cursor']}[/dim]")
    if verbose:
        _render_meta(console, result)


# ── Feature renderers ─────────────────────────────────────────────────


def _render_features(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render a feature collection as a panel."""
    d = result.data
    lines: list[str] = []
    for name, value in sorted(d.get("features", {}).items()):
        if isinstance(value, dict):
            ranked = sorted(value.items(), key=lambda kv: (-kv[1], kv[0]))
            counts = ", ".join(f"{k}={w:g}" for k, w in ranked)
            lines.append(f"{name}: {{{counts}}}")
        else:
            lines.append(f"{name}: {value}")

    title = str(d.get("content_id", "?"))
    body = "\n".join(lines) or "(empty)"
    console.print(Panel(body, title=title, border_style="dim", expand=False))


# ── Graph renderers ───────────────────────────────────────────────────


def _render_contradictions(
    result: ServiceResult, console: Console, *, verbose: bool = False
) -> None:
    """Render recorded contradictions with their reasons."""
    items = result.data.get("items", [])
    if not items:
        console.print("[dossier.ok]OK[/dossier.ok]  No contradictions recorded.")
        return

    console.print(_label_table(items, extra_columns=["reason"]))
    console.print(f"\n{result.data.get('count', len(items))} contradictions")


def _render_path(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render a shortest positive path as a chain."""
    nodes = result.data.get("nodes", [])
    length = result.data.get("length", 0)

    if not nodes:
        console.print("No path found.")
        return

    console.print(" → ".join(f"[dossier.node]{n}[/dossier.node]" for n in nodes))
    if verbose:
        for step in result.data.get("steps", []):
            label = step.get("label", {})
            console.print(
                f"  {step.get('from')} → {step.get('to')}  "
                f"by [dossier.annotator]{label.get('annotator_id', '?')}[/dossier.annotator] "
                f"({step.get('support', 1)} labels)"
            )
    console.print(f"\nPath length: {length}")


def _render_graph_stats(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render check / rebuild results."""
    _status_line(console, result)
    for key in ("labels", "nodes", "classes", "positive_edges", "contradictions", "version"):
        if key in result.data:
            _field(console, key, result.data[key])
    if verbose:
        _render_meta(console, result)


# ── Upgrade renderers ────────────────────────────────────────────────


def _render_upgrade(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render upgrade/migration results."""
    _status_line(console, result)
    d = result.data
    for key in ("applied_count", "pending_count", "current", "head", "backup_path", "message"):
        if key in d:
            _field(console, key, d[key])
    if verbose and d.get("pending"):
        console.print()
        for p in d["pending"]:
            console.print(f"  {p['revision']}: {p['description']}")


# ── Generic fallback ──────────────────────────────────────────────────


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        if isinstance(value, (dict, list)):
            _field(console, key, _json.dumps(value, separators=(",", ":")))
        else:
            _field(console, key, value)
    if verbose:
        _render_meta(console, result)


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Any] = {
    # Labels
    "append_label": _render_append,
    "append_labels": _render_append,
    "labels_touching": _render_label_rows,
    "query_labels": _render_label_rows,
    # Features
    "put_features": _render_features,
    "get_features": _render_features,
    "random_features": _render_features,
    # Graph
    "contradictions": _render_contradictions,
    "path": _render_path,
    "check": _render_graph_stats,
    "rebuild": _render_graph_stats,
    # Upgrade
    "upgrade": _render_upgrade,
}
