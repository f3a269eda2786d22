"""Translate param values, including ``{{...}}`` placeholders, into JavaScript.

- a whole-value placeholder becomes a runtime lookup:
  ``{{n1.messages}}`` → ``getOutput_(state, "n1", "messages")``
- a string with embedded placeholders becomes a concatenation:
  ``"Hi {{n1.name}}"`` → ``"Hi " + toText_(getOutput_(state, "n1", "name"))``
- ``{{secrets.API_KEY}}`` → ``getSecret_("API_KEY")``
- everything else becomes a JSON literal
"""

import json
from typing import Any, Callable, Optional

from scriptflow.core.graph_data_flow import PLACEHOLDER_PATTERN, Reference

RefResolver = Callable[[Reference], str]


def js_literal(value: Any) -> str:
    """JSON is valid JavaScript for literals; ASCII escaping keeps U+2028 safe."""
    return json.dumps(value, ensure_ascii=True)


def output_ref(ref: Reference) -> str:
    """Default resolver: node outputs from execution state, secrets from script properties."""
    if ref.is_secret:
        return f"getSecret_({js_literal(ref.secret_name)})"
    return f"getOutput_(state, {js_literal(ref.root)}, {js_literal(ref.field_path.lstrip('.'))})"


def _string_to_js(value: str, resolve: RefResolver) -> str:
    stripped = value.strip()
    whole = PLACEHOLDER_PATTERN.fullmatch(stripped)
    if whole:
        return resolve(Reference(whole.group(1), whole.group(2), whole.group(0)))

    parts = []
    position = 0
    for match in PLACEHOLDER_PATTERN.finditer(value):
        if match.start() > position:
            parts.append(js_literal(value[position : match.start()]))
        ref = Reference(match.group(1), match.group(2), match.group(0))
        parts.append(f"toText_({resolve(ref)})")
        position = match.end()
    if not parts:
        return js_literal(value)
    if position < len(value):
        parts.append(js_literal(value[position:]))
    # Keep the result a string even when it starts with a lookup
    if not parts[0].startswith('"'):
        parts.insert(0, '""')
    return " + ".join(parts)


def to_js(value: Any, resolve: Optional[RefResolver] = None) -> str:
    """Convert a param value to a JavaScript expression.

    Args:
        value: Param value, possibly nested, possibly containing placeholders
        resolve: How to turn each placeholder into an expression; defaults to
            ``output_ref``

    Returns:
        JavaScript source for an expression producing the value at runtime
    """
    resolve = resolve or output_ref
    if isinstance(value, str):
        return _string_to_js(value, resolve)
    if isinstance(value, list):
        return "[" + ", ".join(to_js(item, resolve) for item in value) + "]"
    if isinstance(value, dict):
        items = ", ".join(f"{js_literal(str(key))}: {to_js(item, resolve)}" for key, item in value.items())
        return "{" + items + "}"
    return js_literal(value)


def template_resolver(param_exprs: dict[str, str]) -> RefResolver:
    """Resolver for connector request templates.

    In a request template ``{{channel}}`` names a param of the node, not an
    upstream node; missing params resolve to ``null``.
    """

    def resolve(ref: Reference) -> str:
        if ref.is_secret:
            return output_ref(ref)
        expr = param_exprs.get(ref.root, "null")
        path = ref.field_path.lstrip(".")
        if path:
            return f"getNestedValue_({expr}, {js_literal(path)})"
        return expr

    return resolve
