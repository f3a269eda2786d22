"""Project-level artifacts: the manifest and the README."""

import json
from typing import Any

from scriptflow import __version__
from scriptflow.core.graph_model import NodeGraph

OAUTH2_LIBRARY = {
    "userSymbol": "OAuth2",
    "libraryId": "1B7FSrk5Zi6L1rSxxTDgDEUsPzlukDsi4KGuTMorsTQHhGBzBkMun4iDF",
    "version": "43",
}


def comment_text(text: str) -> str:
    """Make arbitrary text safe inside a /* */ or // comment."""
    return " ".join(str(text).replace("*/", "* /").split())


def display_name(graph: NodeGraph) -> str:
    return graph.name or graph.id or "Untitled workflow"


def build_manifest(
    scopes: list[str],
    *,
    time_zone: str,
    runtime_version: str = "V8",
    needs_oauth_library: bool = False,
    webhook: bool = False,
) -> str:
    """Render ``appsscript.json``."""
    manifest: dict[str, Any] = {
        "timeZone": time_zone,
        "dependencies": {"libraries": [OAUTH2_LIBRARY]} if needs_oauth_library else {},
        "exceptionLogging": "STACKDRIVER",
        "runtimeVersion": runtime_version,
        "oauthScopes": sorted(scopes),
    }
    if webhook:
        manifest["webapp"] = {"access": "ANYONE_ANONYMOUS", "executeAs": "USER_DEPLOYING"}
    return json.dumps(manifest, indent=2) + "\n"


def build_readme(
    graph: NodeGraph,
    *,
    steps: list[tuple[str, str, str]],
    scopes: list[str],
    secrets: list[str],
    stubs: list[str],
    webhook: bool,
    has_triggers: bool,
    generated_at: str,
) -> str:
    """Render ``README.md`` for the generated project.

    Args:
        graph: The compiled graph
        steps: ``(node_id, display name, type id)`` in execution order
        scopes: OAuth scopes in the manifest
        secrets: Script properties the user must set
        stubs: Node ids compiled to stubs
        webhook: Whether the project exposes web app entry points
        has_triggers: Whether ``installTriggers`` installs anything
        generated_at: Timestamp string embedded in the file
    """
    lines = [f"# {display_name(graph)}", ""]
    description = graph.metadata.get("description")
    if description:
        lines += [str(description), ""]
    source = f"graph `{graph.id}`" if graph.id else "an unnamed graph"
    lines += [f"Generated by scriptflow {__version__} at {generated_at} from {source} (version {graph.version}).", ""]

    lines += ["## Steps", ""]
    for index, (node_id, name, type_id) in enumerate(steps, start=1):
        lines.append(f"{index}. `{node_id}`: {name} (`{type_id}`)")
    lines.append("")

    lines += ["## Setup", ""]
    setup = ["Create an Apps Script project and copy in every `.gs` file and `appsscript.json`."]
    if secrets:
        setup.append("Add these Script properties under Project Settings > Script properties:")
    if has_triggers:
        setup.append("Run `installTriggers` once from the editor to authorize the script and install its triggers.")
    else:
        setup.append("Run `executeWorkflow` from the editor to authorize and run the script.")
    if webhook:
        setup.append("Deploy > New deployment > Web app, then send requests to the deployment URL.")
    for index, item in enumerate(setup, start=1):
        lines.append(f"{index}. {item}")
        if secrets and item.startswith("Add these Script properties"):
            lines.extend(f"   - `{name}`" for name in secrets)
    lines.append("")

    lines += ["## OAuth scopes", ""]
    if scopes:
        lines.extend(f"- `{scope}`" for scope in scopes)
    else:
        lines.append("None.")
    lines.append("")

    if stubs:
        lines += ["## Steps to finish by hand", ""]
        lines += [f"- `{node_id}` was generated as a stub; search main.gs for `STUB`." for node_id in stubs]
        lines.append("")

    return "\n".join(lines)
