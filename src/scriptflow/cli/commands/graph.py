"""Graph commands: validate and compile graph documents."""

import json
from datetime import datetime
from pathlib import Path
from typing import Optional

import click

from scriptflow.catalog.catalog import NodeCatalog
from scriptflow.cli.context import load_catalog, load_settings
from scriptflow.compiler import compile_graph
from scriptflow.compiler.compiler import CompilationResult
from scriptflow.core.diagnostics import errors_only, format_diagnostics, warnings_only
from scriptflow.core.exceptions import ScriptflowError
from scriptflow.core.graph_model import NodeGraph
from scriptflow.core.graph_schema import load_graph_document
from scriptflow.core.graph_validator import GraphValidator
from scriptflow.core.settings import CompilerSettings


def read_graph(path: Path) -> NodeGraph:
    try:
        return load_graph_document(path)
    except ScriptflowError as e:
        raise click.ClickException(str(e)) from e


def write_project(
    graph: NodeGraph,
    catalog: NodeCatalog,
    output_dir: Path,
    settings: CompilerSettings,
    generated_at: Optional[datetime] = None,
) -> CompilationResult:
    """Compile a graph and write the project files, echoing what was written."""
    try:
        result = compile_graph(graph, catalog, generated_at=generated_at, settings=settings)
    except ScriptflowError as e:
        raise click.ClickException(str(e)) from e

    written = result.write_files(output_dir)
    click.echo(f"Wrote {len(written)} files to {output_dir}")
    for path in written:
        click.echo(f"  {path.name}")
    for warning in result.warnings:
        click.echo(f"warning: {warning.node_id}: {warning.message}", err=True)
    if result.secrets:
        click.echo(f"Script properties to set: {', '.join(result.secrets)}")
    return result


def _parse_timestamp(ctx: click.Context, param: click.Parameter, value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise click.BadParameter(f"'{value}' is not an ISO 8601 timestamp") from None


@click.command(name="validate")
@click.argument("graph_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output diagnostics as JSON.")
@click.pass_context
def validate_command(ctx: click.Context, graph_file: Path, as_json: bool) -> None:
    """Validate a graph document against the node catalog.

    Exits with status 1 when the graph has errors.
    """
    catalog = load_catalog(load_settings())
    graph = read_graph(graph_file)
    diagnostics = GraphValidator.validate(graph, catalog)
    errors = errors_only(diagnostics)

    if as_json:
        payload = {
            "valid": not errors,
            "errors": [d.model_dump() for d in errors],
            "warnings": [d.model_dump() for d in warnings_only(diagnostics)],
        }
        click.echo(json.dumps(payload, indent=2))
    elif diagnostics:
        click.echo(format_diagnostics(diagnostics))
    if not as_json and not errors:
        click.echo(f"Graph '{graph.name or graph.id or graph_file.name}' is valid")

    if errors:
        ctx.exit(1)


@click.command(name="compile")
@click.argument("graph_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output-dir",
    "-o",
    required=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for the generated Apps Script project.",
)
@click.option(
    "--generated-at",
    callback=_parse_timestamp,
    help="ISO 8601 timestamp to embed instead of the current time.",
)
@click.option("--force", is_flag=True, help="Compile even when validation reports non-structural errors.")
def compile_command(graph_file: Path, output_dir: Path, generated_at: Optional[datetime], force: bool) -> None:
    """Compile a graph document into an Apps Script project."""
    settings = load_settings()
    catalog = load_catalog(settings)
    graph = read_graph(graph_file)

    errors = errors_only(GraphValidator.validate(graph, catalog))
    if errors and not force:
        click.echo(format_diagnostics(errors), err=True)
        raise click.ClickException("Graph has validation errors; fix them or pass --force")

    write_project(graph.with_derived(catalog), catalog, output_dir, settings.compiler, generated_at)
