"""Shared helpers for CLI commands."""

import click

from scriptflow.catalog import NodeCatalog, build_default_catalog
from scriptflow.core.exceptions import ScriptflowError
from scriptflow.core.settings import ScriptflowSettings, SettingsManager


def load_settings() -> ScriptflowSettings:
    return SettingsManager().load()


def load_catalog(settings: ScriptflowSettings) -> NodeCatalog:
    """Build the default catalog plus any configured connector directories."""
    try:
        return build_default_catalog(settings.catalog.extra_dirs)
    except ScriptflowError as e:
        raise click.ClickException(str(e)) from e
