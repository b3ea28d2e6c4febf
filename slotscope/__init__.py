"""
slotscope: storage slot layout and call graph analysis of Solidity
contracts from solc compact-JSON ASTs.
"""

__version__ = "0.1.0"

from .config import AnalysisOptions
from .errors import (
    SlotscopeError,
    UnknownTypeError,
    LayoutError,
    ArtifactError,
    AnalysisError,
)
from .core import ASTReader, read_source_units, StorageLayout, CallGraphNode, CallType
from .analysis import ContractAnalyzer, ContractReport, RunResult, process_slots
from .artifacts import AstCache

__all__ = [
    "__version__",
    "AnalysisOptions",
    "SlotscopeError",
    "UnknownTypeError",
    "LayoutError",
    "ArtifactError",
    "AnalysisError",
    "ASTReader",
    "read_source_units",
    "StorageLayout",
    "CallGraphNode",
    "CallType",
    "ContractAnalyzer",
    "ContractReport",
    "RunResult",
    "process_slots",
    "AstCache",
]
