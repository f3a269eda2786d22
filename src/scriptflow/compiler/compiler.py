"""Compile a validated node graph into an Apps Script project.

The output is a fixed, ordered set of files:

- ``main.gs``: ``executeWorkflow`` plus one step function per node, trigger
  installation and, for webhook graphs, the web app entry points
- ``storage.gs``, ``http.gs``, ``oauth.gs``: static runtime helpers
- ``appsscript.json``: the manifest with the graph's OAuth scopes
- ``README.md``: setup instructions

Compiling the same graph twice produces identical files apart from the
generation timestamp in the ``main.gs`` header and the README.
"""

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from scriptflow import __version__
from scriptflow.catalog.catalog import NodeCatalog
from scriptflow.compiler.artifacts import build_manifest, build_readme, comment_text, display_name
from scriptflow.compiler.emitters import HELPERS, TRIGGER_HANDLER, EmitContext, StepCode, emit_node
from scriptflow.compiler.placeholders import js_literal
from scriptflow.compiler.runtime_files import HTTP_GS, OAUTH_GS, STORAGE_GS
from scriptflow.core.diagnostics import errors_only
from scriptflow.core.exceptions import CompilationError
from scriptflow.core.graph_data_flow import build_execution_order, extract_references
from scriptflow.core.graph_model import NodeGraph, collect_secrets, compute_scopes
from scriptflow.core.graph_validator import GraphValidator
from scriptflow.core.settings import CompilerSettings

logger = logging.getLogger(__name__)

ENTRY_POINT = "main.gs"
FILE_ORDER = ("main.gs", "storage.gs", "http.gs", "oauth.gs", "appsscript.json", "README.md")

_INDENT = "  "


class CompilerWarning(BaseModel):
    """Non-fatal compilation finding, such as a node compiled to a stub."""

    node_id: str
    message: str
    kind: Literal["CompilationStub"] = "CompilationStub"


class CompilationResult(BaseModel):
    """Generated project files and what the compiler learned on the way."""

    files: dict[str, str]
    entry_point: str = ENTRY_POINT
    warnings: list[CompilerWarning] = Field(default_factory=list)
    scopes: list[str] = Field(default_factory=list)
    secrets: list[str] = Field(default_factory=list)
    execution_order: list[str] = Field(default_factory=list)
    generated_at: str = ""

    def write_files(self, directory: Union[str, Path]) -> list[Path]:
        """Write every file into a directory, creating it if needed."""
        target = Path(directory)
        target.mkdir(parents=True, exist_ok=True)
        written = []
        for name, content in self.files.items():
            path = target / name
            path.write_text(content, encoding="utf-8")
            written.append(path)
        logger.info(f"Wrote {len(written)} files to {target}")
        return written


def _function_name(position: int, node_id: str) -> str:
    return f"step{position}_{re.sub(r'[^A-Za-z0-9_]', '_', node_id)}_"


def _indent(lines: list[str], depth: int = 1) -> list[str]:
    prefix = _INDENT * depth
    return [f"{prefix}{line}" if line else line for line in lines]


def compile_graph(
    graph: NodeGraph,
    catalog: NodeCatalog,
    *,
    generated_at: Optional[datetime] = None,
    settings: Optional[CompilerSettings] = None,
) -> CompilationResult:
    """Compile a graph into Apps Script project files.

    Only structural problems stop compilation. Unknown node types and
    operations without a code generator are emitted as stubs and reported
    as warnings.

    Args:
        graph: Graph to compile
        catalog: Catalog the graph's node types come from
        generated_at: Timestamp to embed; defaults to now (UTC)
        settings: Compiler settings; defaults to ``CompilerSettings()``

    Returns:
        The generated files in their fixed order

    Raises:
        CompilationError: If the graph has structural errors
        CatalogNotInitializedError: If the catalog is empty
    """
    catalog.require_initialized()
    settings = settings or CompilerSettings()

    structural = errors_only(GraphValidator.validate_structure(graph))
    if structural:
        raise CompilationError("Graph is structurally invalid; refusing to compile", structural)

    timestamp = (generated_at or datetime.now(timezone.utc)).isoformat(timespec="seconds")
    order = build_execution_order(graph)
    nodes_by_id = {node.id: node for node in graph.nodes}

    steps: list[tuple[str, str, StepCode]] = []
    warnings: list[CompilerWarning] = []
    for position, node_id in enumerate(order, start=1):
        node = nodes_by_id[node_id]
        node_type = catalog.get(node.type)
        code = emit_node(EmitContext(node=node, node_type=node_type, time_zone=settings.time_zone))
        if code.stub:
            warnings.append(
                CompilerWarning(node_id=node_id, message=f"No code generator for '{node.type}'; emitted a stub")
            )
        steps.append((node_id, _function_name(position, node_id), code))

    scopes = compute_scopes(graph, catalog)
    secrets = _collect_all_secrets(graph, catalog)
    webhook = any(code.webhook for _, _, code in steps)
    has_triggers = any(code.trigger_setup and not code.webhook for _, _, code in steps)
    used_types = [catalog.get(node.type) for node in graph.nodes]
    needs_oauth = any(t is not None and t.auth == "oauth2" for t in used_types)

    files = {
        "main.gs": _render_main(graph, steps, webhook, timestamp),
        "storage.gs": STORAGE_GS,
        "http.gs": HTTP_GS,
        "oauth.gs": OAUTH_GS,
        "appsscript.json": build_manifest(
            scopes,
            time_zone=settings.time_zone,
            runtime_version=settings.runtime_version,
            needs_oauth_library=needs_oauth,
            webhook=webhook,
        ),
        "README.md": build_readme(
            graph,
            steps=[(node_id, _step_name(graph, catalog, node_id), nodes_by_id[node_id].type) for node_id in order],
            scopes=scopes,
            secrets=secrets,
            stubs=[w.node_id for w in warnings],
            webhook=webhook,
            has_triggers=has_triggers,
            generated_at=timestamp,
        ),
    }

    logger.info(f"Compiled '{display_name(graph)}': {len(order)} steps, {len(warnings)} stubs")
    return CompilationResult(
        files={name: files[name] for name in FILE_ORDER},
        warnings=warnings,
        scopes=scopes,
        secrets=secrets,
        execution_order=order,
        generated_at=timestamp,
    )


def _step_name(graph: NodeGraph, catalog: NodeCatalog, node_id: str) -> str:
    node = graph.node(node_id)
    if node is None:
        return node_id
    if node.label:
        return comment_text(node.label)
    node_type = catalog.get(node.type)
    return node_type.name if node_type is not None else node.type


def _collect_all_secrets(graph: NodeGraph, catalog: NodeCatalog) -> list[str]:
    """Secrets referenced by node params plus those baked into connector request templates."""
    names = set(collect_secrets(graph))
    for node in graph.nodes:
        node_type = catalog.get(node.type)
        if node_type is None or node_type.request is None:
            continue
        for ref in extract_references(node_type.request.model_dump()):
            if ref.is_secret and ref.secret_name:
                names.add(ref.secret_name)
    return sorted(names)


def _render_main(graph: NodeGraph, steps: list[tuple[str, str, StepCode]], webhook: bool, timestamp: str) -> str:
    name = display_name(graph)
    lines = [
        "/**",
        f" * {comment_text(name)}",
        " *",
        f" * Generated by scriptflow {__version__} at {timestamp}.",
        f" * Graph: {comment_text(graph.id or 'unnamed')} (version {graph.version})",
        " * Regenerate from the graph instead of editing this file.",
        " */",
        "",
        f"const WORKFLOW_NAME = {js_literal(name)};",
        "",
        "/**",
        " * Runs every step in dependency order. Installed triggers and the web",
        " * app entry points call this function.",
        " */",
        f"function {TRIGGER_HANDLER}(event) {{",
        "  const state = newExecutionState_(event);",
        "  Logger.log('Starting ' + WORKFLOW_NAME);",
        "  try {",
    ]
    for node_id, function_name, code in steps:
        node_js = js_literal(node_id)
        lines.append(f"    setOutput_(state, {node_js}, {function_name}(state));")
        if code.halts:
            lines += [
                f"    if (isHalted_(state, {node_js})) {{",
                f"      Logger.log('Stopped at {node_id}: ' + state.outputs[{node_js}].reason);",
                "      return state.outputs;",
                "    }",
            ]
    lines += [
        "  } catch (error) {",
        "    Logger.log('Workflow failed: ' + error);",
        "    throw error;",
        "  }",
        "  Logger.log('Finished ' + WORKFLOW_NAME);",
        "  return state.outputs;",
        "}",
    ]

    for node_id, function_name, code in steps:
        node = graph.node(node_id)
        label = comment_text(node.label) if node is not None and node.label else ""
        type_id = node.type if node is not None else ""
        lines += ["", "/**", f" * {node_id}: {label or type_id} ({type_id})"]
        if node is not None and node.note:
            lines.append(f" * {comment_text(node.note)}")
        lines += [" */", f"function {function_name}(state) {{"]
        lines += _indent(code.body)
        lines.append("}")

    lines += _render_trigger_management(steps)
    if webhook:
        lines += _render_web_app()

    helper_names = sorted({name for _, _, code in steps for name in code.helpers})
    for helper in helper_names:
        lines += ["", HELPERS[helper]]

    return "\n".join(lines) + "\n"


def _render_trigger_management(steps: list[tuple[str, str, StepCode]]) -> list[str]:
    setup = [line for _, _, code in steps for line in code.trigger_setup]
    lines = [
        "",
        "/**",
        " * Removes this project's triggers and installs the ones the workflow needs.",
        " * Run once from the editor after copying the project.",
        " */",
        "function installTriggers() {",
        "  deleteTriggers_();",
    ]
    lines += _indent(setup)
    lines += [
        "  Logger.log('Triggers installed for ' + WORKFLOW_NAME);",
        "}",
        "",
        "function deleteTriggers_() {",
        "  ScriptApp.getProjectTriggers().forEach(function (trigger) {",
        f"    if (trigger.getHandlerFunction() === '{TRIGGER_HANDLER}') {{",
        "      ScriptApp.deleteTrigger(trigger);",
        "    }",
        "  });",
        "}",
    ]
    return lines


def _render_web_app() -> list[str]:
    return [
        "",
        "function doPost(e) {",
        "  return handleWebRequest_('POST', e);",
        "}",
        "",
        "function doGet(e) {",
        "  return handleWebRequest_('GET', e);",
        "}",
        "",
        "function handleWebRequest_(method, e) {",
        "  let body = null;",
        "  if (e && e.postData && e.postData.contents) {",
        "    try {",
        "      body = JSON.parse(e.postData.contents);",
        "    } catch (parseError) {",
        "      body = e.postData.contents;",
        "    }",
        "  }",
        "  let result;",
        "  try {",
        f"    const outputs = {TRIGGER_HANDLER}({{ method: method, query: (e && e.parameter) || {{}}, body: body }});",
        "    result = { success: true, outputs: outputs };",
        "  } catch (error) {",
        "    result = { success: false, error: String(error) };",
        "  }",
        "  return ContentService.createTextOutput(JSON.stringify(result)).setMimeType(ContentService.MimeType.JSON);",
        "}",
    ]
