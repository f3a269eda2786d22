"""Load markdown prompt templates and fill in their ``{{variable}}`` slots.

Only bare ``{{word}}`` slots are template variables. Graph placeholders such
as ``{{n1.messages}}`` contain a dot and pass through untouched, so prompts
can show them as examples.
"""

import re
from functools import lru_cache
from pathlib import Path
from typing import Any

PROMPT_DIR = Path(__file__).parent

_VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}")


@lru_cache(maxsize=None)
def load_prompt(prompt_name: str) -> str:
    """Load a prompt from ``<prompt_name>.md`` in this package.

    YAML frontmatter and a leading ``#`` title line are dropped.

    Raises:
        FileNotFoundError: If the prompt file doesn't exist
    """
    prompt_file = PROMPT_DIR / f"{prompt_name}.md"
    if not prompt_file.exists():
        raise FileNotFoundError(f"Prompt file not found: {prompt_file}")

    content = prompt_file.read_text(encoding="utf-8")

    if content.startswith("---\n"):
        parts = content.split("\n---\n", 1)
        if len(parts) == 2:
            content = parts[1]

    lines = content.lstrip("\n").split("\n")
    if lines and lines[0].startswith("#"):
        content = "\n".join(lines[1:])

    return content.strip()


def extract_variables(prompt_template: str) -> set[str]:
    return set(_VARIABLE_PATTERN.findall(prompt_template))


def format_prompt(prompt_template: str, variables: dict[str, Any]) -> str:
    """Fill a template, requiring an exact match between slots and values.

    Substitution is a single pass, so values that happen to contain
    ``{{word}}`` are not expanded again.

    Raises:
        ValueError: If values are provided for slots the template lacks
        KeyError: If template slots have no value
    """
    template_variables = extract_variables(prompt_template)
    provided = set(variables)

    unused = provided - template_variables
    if unused:
        raise ValueError(
            f"Variables provided but not in template: {sorted(unused)}. "
            f"Template expects: {sorted(template_variables)}"
        )
    missing = template_variables - provided
    if missing:
        raise KeyError(f"Missing required variables: {sorted(missing)}")

    return _VARIABLE_PATTERN.sub(lambda m: str(variables[m.group(1)]), prompt_template)


def render_prompt(prompt_name: str, **variables: Any) -> str:
    """Load and fill a prompt in one step."""
    return format_prompt(load_prompt(prompt_name), variables)
