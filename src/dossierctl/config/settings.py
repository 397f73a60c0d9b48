"""DossierSettings: one frozen object built from flags, env and dossier.toml.

Sources, strongest first:
  1. keyword arguments (the CLI passes its flags here)
  2. ``DOSSIER_*`` environment variables, ``__`` for nested keys
  3. the ``dossier.toml`` in effect
  4. defaults on the section models in :mod:`dossierctl.config.models`
"""

from __future__ import annotations

import tomllib
from contextvars import ContextVar
from pathlib import Path
from typing import Any

import click
from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    TomlConfigSettingsSource,
)

from dossierctl.config.discovery import find_config, find_store_root
from dossierctl.config.models import GraphConfig, QueryConfig, StoreConfig

# File the TOML source should read while from_cli() constructs an instance.
_active_toml: ContextVar[Path | None] = ContextVar("_active_toml", default=None)


def _toml_source(settings_cls: type[BaseSettings], path: Path) -> TomlConfigSettingsSource:
    try:
        return TomlConfigSettingsSource(settings_cls, toml_file=path)
    except tomllib.TOMLDecodeError as exc:
        raise click.ClickException(f"Invalid TOML in {path}: {exc}") from exc


class DossierSettings(BaseSettings):
    """Resolved configuration for one dossierctl run.

    Attributes:
        data_root: Directory holding the ``.dossier/`` store.
        config_path: The TOML file in effect, or None.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "DOSSIER_",
        "env_nested_delimiter": "__",
    }

    data_root: Path = Field(default_factory=Path.cwd)
    config_path: Path | None = None

    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    log_json: bool = False

    store: StoreConfig = Field(default_factory=StoreConfig)
    query: QueryConfig = Field(default_factory=QueryConfig)
    graph: GraphConfig = Field(default_factory=GraphConfig)

    @property
    def db_path(self) -> Path:
        """Location of the SQLite label store."""
        return self.data_root / self.store.dirname / self.store.filename

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        toml_path = _active_toml.get()
        if toml_path is None:
            return (init_settings, env_settings)
        return (init_settings, env_settings, _toml_source(settings_cls, toml_path))

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | None = None,
        data_root: Path | None = None,
        **cli_flags: Any,
    ) -> DossierSettings:
        """Construct settings from a CLI invocation.

        The data root is, in order: the explicit *data_root*, the directory
        of the config file in effect, the nearest ancestor already holding a
        ``.dossier/`` store, and finally the working directory. CLI flags
        override everything else.
        """
        if config_path:
            explicit = Path(config_path)
            toml_path = explicit if explicit.is_file() else None
        else:
            toml_path = find_config(data_root)

        if data_root is None:
            if toml_path is not None:
                data_root = toml_path.parent
            else:
                data_root = find_store_root() or Path.cwd()

        token = _active_toml.set(toml_path)
        try:
            return cls(data_root=data_root, config_path=toml_path, **cli_flags)
        finally:
            _active_toml.reset(token)
