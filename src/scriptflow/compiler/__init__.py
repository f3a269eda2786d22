"""Code generator: node graphs to Apps Script projects."""

from .compiler import ENTRY_POINT, FILE_ORDER, CompilationResult, CompilerWarning, compile_graph
from .emitters import EMITTERS

__all__ = [
    "EMITTERS",
    "ENTRY_POINT",
    "FILE_ORDER",
    "CompilationResult",
    "CompilerWarning",
    "compile_graph",
]
