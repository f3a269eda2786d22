"""Catalog CLI commands: browse the node types graphs can use."""

import json
from typing import Optional

import click

from scriptflow.catalog.node_type import CATEGORIES, NodeType
from scriptflow.cli.context import load_catalog, load_settings
from scriptflow.core.exceptions import NodeTypeNotFoundError


@click.group(name="catalog")
def catalog() -> None:
    """Browse the node catalog."""
    pass


def _summary_line(node_type: NodeType, width: int) -> str:
    return f"  {node_type.id:<{width}}  {node_type.name}"


@catalog.command(name="list")
@click.option("--category", type=click.Choice(CATEGORIES), help="Only show one category.")
@click.option("--json", "as_json", is_flag=True, help="Output capabilities as JSON.")
def list_types(category: Optional[str], as_json: bool) -> None:
    """List node types grouped by category."""
    node_catalog = load_catalog(load_settings())

    if as_json:
        click.echo(json.dumps(node_catalog.capabilities().to_document(), indent=2, sort_keys=True))
        return

    types = node_catalog.list_types(category)
    width = max((len(t.id) for t in types), default=0)
    for group in CATEGORIES:
        members = [t for t in types if t.category == group]
        if not members:
            continue
        click.echo(f"{group.capitalize()}s:")
        for node_type in members:
            click.echo(_summary_line(node_type, width))
        click.echo()
    click.echo(f"{len(types)} node types")


@catalog.command()
@click.argument("query", nargs=-1, required=True)
def search(query: tuple[str, ...]) -> None:
    """Search node types by keyword (all keywords must match)."""
    node_catalog = load_catalog(load_settings())
    results = node_catalog.search(" ".join(query))
    if not results:
        click.echo(f"No node types match '{' '.join(query)}'")
        return
    width = max(len(type_id) for type_id, _, _ in results)
    for type_id, node_type, score in results:
        click.echo(f"  {type_id:<{width}}  {score:>3}  {node_type.name}")


@catalog.command()
@click.argument("type_id")
def show(type_id: str) -> None:
    """Show the parameters and scopes of one node type."""
    node_catalog = load_catalog(load_settings())
    try:
        node_type = node_catalog.lookup(type_id)
    except NodeTypeNotFoundError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"{node_type.id}: {node_type.name}")
    if node_type.description:
        click.echo(f"  {node_type.description}")
    click.echo(f"Category: {node_type.category}")
    click.echo(f"App: {node_type.app}")

    schema = node_type.params_schema
    click.echo("Params:")
    if not schema.properties:
        click.echo("  (none)")
    for name, spec in sorted(schema.properties.items()):
        marker = "*" if name in schema.required else " "
        kind = spec.type or "any"
        line = f"  {marker} {name}: {kind}"
        if spec.enum is not None:
            line += f" one of {', '.join(str(v) for v in spec.enum)}"
        if spec.description:
            line += f"  ({spec.description})"
        click.echo(line)

    click.echo("Scopes:")
    for scope in node_type.required_scopes or ["(none)"]:
        click.echo(f"  {scope}")
