"""Node catalog: built-in node types, connector descriptors and lookup."""

from .builtin import BUILTIN_NODE_TYPES, build_default_catalog
from .catalog import NodeCatalog
from .loader import DescriptorError, load_descriptor_dir, load_descriptor_file
from .node_type import Capabilities, NodeType, ParamsSchema, ParamSpec, RequestTemplate

__all__ = [
    "BUILTIN_NODE_TYPES",
    "Capabilities",
    "DescriptorError",
    "NodeCatalog",
    "NodeType",
    "ParamSpec",
    "ParamsSchema",
    "RequestTemplate",
    "build_default_catalog",
    "load_descriptor_dir",
    "load_descriptor_file",
]
