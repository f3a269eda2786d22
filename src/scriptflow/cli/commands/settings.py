"""Settings CLI commands."""

import json

import click

from scriptflow.core.settings import ScriptflowSettings, SettingsManager


@click.group(name="settings")
def settings() -> None:
    """Manage scriptflow settings."""
    pass


@settings.command()
def init() -> None:
    """Write a settings file with default values."""
    manager = SettingsManager()

    if manager.settings_path.exists() and not click.confirm(
        f"Settings file already exists at {manager.settings_path}. Overwrite?"
    ):
        return

    manager.save(ScriptflowSettings())
    click.echo(f"Created settings file at {manager.settings_path}")


@settings.command()
def show() -> None:
    """Show current settings, including environment overrides."""
    manager = SettingsManager()
    current = manager.load()

    click.echo(f"Settings file: {manager.settings_path}")
    click.echo(json.dumps(current.model_dump(), indent=2))


@settings.command(name="set")
@click.argument("key")
@click.argument("value")
def set_setting(key: str, value: str) -> None:
    """Set one setting, e.g. ``scriptflow settings set llm.model gpt-4o``.

    List settings such as ``catalog.extra_dirs`` take comma-separated values.
    """
    manager = SettingsManager()
    try:
        updated = manager.set_value(key, value)
    except KeyError as e:
        raise click.ClickException(e.args[0]) from e
    except ValueError as e:
        raise click.ClickException(f"Invalid value for {key}: {e}") from e

    section_name, _, field_name = key.partition(".")
    stored = getattr(getattr(updated, section_name), field_name)
    click.echo(f"{key} = {json.dumps(stored)}")
