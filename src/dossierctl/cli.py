"""``dossierctl`` entry point: global options, settings resolution, subcommands."""

from __future__ import annotations

from pathlib import Path

import click

from dossierctl import __version__
from dossierctl.commands import register_commands
from dossierctl.commands._context import AppContext
from dossierctl.config.settings import DossierSettings


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="dossierctl")
@click.option("--json", "json_output", is_flag=True, help="Print results as JSON envelopes.")
@click.option("-q", "--quiet", is_flag=True, help="Print bare values only (node ids, scalars).")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging plus timing spans in output.")
@click.option("--log-json", is_flag=True, help="Emit log lines on stderr as JSON.")
@click.option(
    "-c",
    "--config",
    "config_path",
    default=None,
    help="Use this dossier.toml instead of searching upwards for one.",
)
@click.option(
    "--data-root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding .dossier/ (default: config dir, nearest store, or cwd).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    quiet: bool,
    verbose: bool,
    log_json: bool,
    config_path: str | None,
    data_root: Path | None,
) -> None:
    """Record coreference labels between items and query what they imply."""
    settings = DossierSettings.from_cli(
        config_path=config_path,
        data_root=data_root,
        json_output=json_output,
        quiet=quiet,
        verbose=verbose,
        log_json=log_json,
    )
    app = AppContext(settings)
    ctx.obj = app
    ctx.call_on_close(app.close)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)
