"""Per-invocation state handed to every subcommand as ``ctx.obj``.

The root group builds one :class:`AppContext` from the resolved settings.
Commands reach the store through it and hand their ``ServiceResult`` back
to :meth:`AppContext.emit`, which owns stream routing and the exit code.
"""

from __future__ import annotations

from functools import cached_property
from typing import TYPE_CHECKING

import click

from dossierctl.output.formatters import OutputSettings, format_result

if TYPE_CHECKING:
    from dossierctl.config.settings import DossierSettings
    from dossierctl.infrastructure.store import Store
    from dossierctl.services.result import ServiceResult


class AppContext:
    """Settings, a lazily opened store and result emission for one command run.

    Nothing touches the database until :attr:`store` is first read, so
    ``--help``, ``--version`` and argument errors never create a store.
    """

    def __init__(self, settings: DossierSettings) -> None:
        from dossierctl.config.logging import configure_logging
        from dossierctl.services.telemetry import disable_telemetry, enable_telemetry

        self.settings = settings
        self._store: Store | None = None

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)
        if settings.verbose:
            enable_telemetry()
        else:
            disable_telemetry()

    @property
    def store(self) -> Store:
        if self._store is None:
            from dossierctl.infrastructure.store import Store

            self._store = Store(self.settings)
        return self._store

    @cached_property
    def output(self) -> OutputSettings:
        return OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )

    def emit(self, result: ServiceResult) -> None:
        """Print *result*; exit with status 1 when it is a failure.

        Successful output goes to stdout. Failures, and the warnings of a
        successful result outside JSON mode, go to stderr so piped stdout
        only ever carries data.
        """
        rendered = format_result(result, settings=self.output)
        if not result.ok:
            click.echo(rendered, err=True)
            raise SystemExit(1)

        click.echo(rendered)
        if self.output.json_output:
            return
        for warning in result.warnings:
            click.echo(f"WARNING: {warning}", err=True)

    def close(self) -> None:
        """Release the store's connections, if one was opened."""
        if self._store is not None:
            self._store.close()
            self._store = None
