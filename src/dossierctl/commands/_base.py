"""Click building blocks shared by the command modules.

``DossierCommand``/``DossierGroup`` take an ``examples=`` block that is
printed by ``--examples`` instead of being folded into ``--help``.
``NODE`` parses ``content_id[#subtopic_id]`` arguments into domain nodes.
"""

from __future__ import annotations

from typing import Any

import click

from dossierctl.domain.nodes import Node, Subtopic, WholeItem, parse_node


def _print_examples(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    if not value or ctx.resilient_parsing:
        return
    examples = getattr(ctx.command, "examples", None) or "  (none)"
    click.echo(f"Examples for '{ctx.command_path}':\n\n{examples}")
    ctx.exit(0)


class _ExamplesMixin:
    """Adds the ``examples`` keyword and the eager ``--examples`` flag."""

    params: list[click.Parameter]

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.examples = examples
        if examples:
            self.params.append(
                click.Option(
                    ["--examples"],
                    is_flag=True,
                    expose_value=False,
                    is_eager=True,
                    callback=_print_examples,
                    help="Show usage examples and exit.",
                )
            )


class DossierCommand(_ExamplesMixin, click.Command):
    pass


class DossierGroup(_ExamplesMixin, click.Group):
    """Group whose ``@group.command()`` subcommands are DossierCommands."""

    command_class = DossierCommand


class NodeParam(click.ParamType):
    """``content_id`` for a whole item, ``content_id#subtopic_id`` for a subtopic."""

    name = "node"

    def convert(
        self, value: Any, param: click.Parameter | None, ctx: click.Context | None
    ) -> Node:
        if isinstance(value, (WholeItem, Subtopic)):
            return value
        try:
            return parse_node(str(value))
        except ValueError as exc:
            self.fail(str(exc), param, ctx)


NODE = NodeParam()
