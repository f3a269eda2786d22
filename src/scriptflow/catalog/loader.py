"""Load connector descriptor files into node types.

A descriptor describes one third-party application and its operations:

```yaml
app: slack
name: Slack
auth: oauth2
operations:
  - operation: post_message
    category: action
    name: Post message
    params_schema:
      required: [channel, text]
      properties:
        channel: {type: string}
        text: {type: string}
    request:
      method: POST
      url: https://slack.com/api/chat.postMessage
      body: {channel: "{{channel}}", text: "{{text}}"}
```

Each operation becomes a ``NodeType`` with id ``<category>.<app>.<operation>``
unless it sets ``id`` explicitly. Invalid files are logged and skipped.
"""

import json
import logging
from pathlib import Path
from typing import Any, Union

import yaml
from jsonschema import Draft7Validator
from pydantic import ValidationError as PydanticValidationError

from scriptflow.catalog.node_type import CATEGORIES, NodeType

logger = logging.getLogger(__name__)

DESCRIPTOR_SUFFIXES = (".json", ".yaml", ".yml")

DESCRIPTOR_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["app", "operations"],
    "properties": {
        "app": {"type": "string", "pattern": "^[a-z0-9_-]+$"},
        "name": {"type": "string"},
        "auth": {"type": "string"},
        "scopes": {"type": "array", "items": {"type": "string"}},
        "operations": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["operation", "category"],
                "properties": {
                    "id": {"type": "string"},
                    "operation": {"type": "string", "pattern": "^[a-z0-9_.-]+$"},
                    "category": {"enum": list(CATEGORIES)},
                    "name": {"type": "string"},
                    "description": {"type": "string"},
                    "params_schema": {"type": "object"},
                    "required_scopes": {"type": "array", "items": {"type": "string"}},
                    "request": {
                        "type": "object",
                        "required": ["url"],
                        "properties": {
                            "method": {"type": "string"},
                            "url": {"type": "string"},
                            "headers": {"type": "object"},
                        },
                    },
                    "complexity": {"type": "string"},
                },
            },
        },
    },
}

_descriptor_validator = Draft7Validator(DESCRIPTOR_SCHEMA)


class DescriptorError(ValueError):
    """A descriptor file could not be turned into node types."""

    pass


def _read_descriptor(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


def descriptor_to_node_types(descriptor: dict[str, Any]) -> list[NodeType]:
    """Convert one validated descriptor dict into node types.

    Raises:
        DescriptorError: If the descriptor does not match ``DESCRIPTOR_SCHEMA``
            or an operation fails model validation
    """
    errors = list(_descriptor_validator.iter_errors(descriptor))
    if errors:
        raise DescriptorError(errors[0].message)

    app = descriptor["app"]
    app_name = descriptor.get("name", app)
    # App-wide scopes apply to every operation, e.g. script.external_request
    shared_scopes = descriptor.get("scopes", [])

    node_types = []
    for op in descriptor["operations"]:
        category = op["category"]
        type_id = op.get("id") or f"{category}.{app}.{op['operation']}"
        try:
            node_types.append(
                NodeType(
                    id=type_id,
                    name=op.get("name") or f"{app_name}: {op['operation']}",
                    description=op.get("description", ""),
                    category=category,
                    app=app,
                    params_schema=op.get("params_schema", {}),
                    required_scopes=list(shared_scopes) + list(op.get("required_scopes", [])),
                    request=op.get("request"),
                    auth=descriptor.get("auth"),
                    complexity=op.get("complexity", "Simple"),
                )
            )
        except PydanticValidationError as e:
            raise DescriptorError(f"Operation '{type_id}': {e}") from e
    return node_types


def load_descriptor_file(path: Union[str, Path]) -> list[NodeType]:
    """Load node types from a single descriptor file.

    Raises:
        DescriptorError: If the file cannot be parsed or is invalid
    """
    path = Path(path)
    try:
        descriptor = _read_descriptor(path)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise DescriptorError(f"Cannot read {path.name}: {e}") from e
    if not isinstance(descriptor, dict):
        raise DescriptorError(f"{path.name} does not contain a mapping")
    return descriptor_to_node_types(descriptor)


def load_descriptor_dir(directory: Union[str, Path]) -> list[NodeType]:
    """Load every descriptor in a directory, skipping invalid files.

    Args:
        directory: Directory containing ``*.json``/``*.yaml``/``*.yml`` files

    Returns:
        Node types from all valid files, sorted by id
    """
    directory = Path(directory)
    if not directory.is_dir():
        logger.warning(f"Connector directory does not exist: {directory}")
        return []

    node_types: list[NodeType] = []
    for path in sorted(directory.iterdir()):
        if path.suffix not in DESCRIPTOR_SUFFIXES or not path.is_file():
            continue
        try:
            loaded = load_descriptor_file(path)
        except DescriptorError as e:
            logger.warning(f"Skipping connector descriptor {path}: {e}")
            continue
        logger.debug(f"Loaded {len(loaded)} node types from {path.name}")
        node_types.extend(loaded)

    return sorted(node_types, key=lambda t: t.id)
