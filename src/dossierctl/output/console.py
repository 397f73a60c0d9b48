"""In-memory Rich console used by every renderer.

Renderers draw into a :class:`BufferedConsole` and return its text, so
formatting stays a pure ``ServiceResult -> str`` step and the command
layer alone decides which stream the text lands on.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

DEFAULT_WIDTH = 120

DOSSIER_THEME = Theme(
    {
        "dossier.ok": "bold green",
        "dossier.error": "bold red",
        "dossier.warning": "bold yellow",
        "dossier.op": "bold cyan",
        "dossier.key": "dim",
        "dossier.node": "bold blue",
        "dossier.annotator": "magenta",
        "dossier.path": "dim",
        "dossier.coref.positive": "green",
        "dossier.coref.negative": "red",
    }
)


class BufferedConsole(Console):
    """A themed Console whose output is kept in memory."""

    def __init__(self, *, no_color: bool = False, width: int = DEFAULT_WIDTH) -> None:
        self._sink = StringIO()
        super().__init__(
            file=self._sink,
            theme=DOSSIER_THEME,
            no_color=no_color,
            highlight=False,
            width=width,
        )

    def text(self) -> str:
        return self._sink.getvalue()


def create_console(*, no_color: bool = False, width: int | None = None) -> BufferedConsole:
    return BufferedConsole(no_color=no_color, width=width or DEFAULT_WIDTH)


def style_for_coref(coref_value: str) -> str:
    """Theme style for a ``positive``/``negative`` cell; empty for anything else."""
    style = f"dossier.coref.{coref_value}"
    return style if style in DOSSIER_THEME.styles else ""
