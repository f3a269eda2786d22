"""Command line entry point for scriptflow."""

import json
from pathlib import Path
from typing import Optional

import click

from scriptflow.cli.catalog import catalog
from scriptflow.cli.commands.graph import compile_command, validate_command, write_project
from scriptflow.cli.commands.settings import settings
from scriptflow.cli.context import load_catalog, load_settings
from scriptflow.cli.logging_config import configure_logging
from scriptflow.core.diagnostics import format_diagnostics
from scriptflow.planning import ClarifyResult, OrchestrationResult, Orchestrator


def _parse_answers(ctx: click.Context, param: click.Parameter, value: tuple[str, ...]) -> dict[str, str]:
    answers: dict[str, str] = {}
    for item in value:
        key, sep, answer = item.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"'{item}' must look like key=value")
        answers[key.strip()] = answer.strip()
    return answers


def _echo_tool_failures(result: ClarifyResult | OrchestrationResult) -> None:
    for failure in result.tool_failures:
        click.echo(f"warning: {failure.phase} fell back ({failure.category}): {failure.message}", err=True)
        if failure.user_action:
            click.echo(f"  {failure.user_action}", err=True)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show progress logs.")
@click.version_option(package_name="scriptflow")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """scriptflow - turn automation requests into Google Apps Script projects."""
    configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("goal")
@click.option("--json", "as_json", is_flag=True, help="Output questions as JSON.")
def clarify(goal: str, as_json: bool) -> None:
    """List the questions to answer before planning GOAL."""
    config = load_settings()
    orchestrator = Orchestrator(load_catalog(config), settings=config)
    result = orchestrator.clarify(goal)
    _echo_tool_failures(result)

    if as_json:
        click.echo(json.dumps(result.model_dump(by_alias=True, exclude_none=True), indent=2))
        return

    for number, question in enumerate(result.questions, 1):
        click.echo(f"{number}. [{question.id}] {question.text}")
        for choice in question.choices or []:
            click.echo(f"     - {choice}")
    click.echo()
    click.echo("Answer with: scriptflow plan GOAL -a <id>=<answer> ...")


@cli.command()
@click.argument("goal")
@click.option("--answer", "-a", "answers", multiple=True, callback=_parse_answers, help="Answer as key=value.")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the graph document here instead of stdout.",
)
@click.option(
    "--compile-to",
    type=click.Path(file_okay=False, path_type=Path),
    help="Also compile a clean graph into this directory.",
)
@click.pass_context
def plan(
    ctx: click.Context,
    goal: str,
    answers: dict[str, str],
    output: Optional[Path],
    compile_to: Optional[Path],
) -> None:
    """Plan, validate and fix a graph for GOAL.

    Exits with status 1 when the fix budget runs out before the graph is clean.
    """
    config = load_settings()
    node_catalog = load_catalog(config)
    result = Orchestrator(node_catalog, settings=config).plan(goal, answers)
    _echo_tool_failures(result)

    document = json.dumps(result.graph.to_document(), indent=2)
    if output:
        output.write_text(document + "\n", encoding="utf-8")
        click.echo(f"Graph written to {output}", err=True)
    else:
        click.echo(document)

    if result.rationale:
        click.echo(f"Rationale: {result.rationale}", err=True)
    if result.warnings:
        click.echo(format_diagnostics(result.warnings), err=True)

    if not result.is_clean:
        click.echo(
            f"Graph still has {len(result.errors)} errors after {result.fix_attempts} fix attempts:",
            err=True,
        )
        click.echo(format_diagnostics(result.errors), err=True)
        if compile_to:
            click.echo("Skipping compilation of an invalid graph", err=True)
        ctx.exit(1)

    if compile_to:
        write_project(result.graph, node_catalog, compile_to, config.compiler)


cli.add_command(catalog)
cli.add_command(validate_command)
cli.add_command(compile_command)
cli.add_command(settings)


def cli_main() -> None:
    """Console script entry point."""
    cli(obj={})
