"""
Core data types: the typed compiler AST, storage layout and call graph.
"""

from .nodes import (
    Node,
    SourceUnit,
    ContractDefinition,
    FunctionDefinition,
    ModifierDefinition,
    VariableDeclaration,
    StructDefinition,
    FunctionCall,
    FunctionCallOptions,
    MemberAccess,
    Identifier,
    unwrap_call_options,
)
from .reader import ASTReader, read_source_units
from .layout import Member, MemberParent, Constant, StorageLayout, slot_key, slot_index
from .call_graph import (
    CallType,
    LowLevelKind,
    CallClassification,
    CallGraphNode,
    count_nodes,
    count_external_calls,
    collect_internal_functions,
)

__all__ = [
    "Node",
    "SourceUnit",
    "ContractDefinition",
    "FunctionDefinition",
    "ModifierDefinition",
    "VariableDeclaration",
    "StructDefinition",
    "FunctionCall",
    "FunctionCallOptions",
    "MemberAccess",
    "Identifier",
    "unwrap_call_options",
    "ASTReader",
    "read_source_units",
    "Member",
    "MemberParent",
    "Constant",
    "StorageLayout",
    "slot_key",
    "slot_index",
    "CallType",
    "LowLevelKind",
    "CallClassification",
    "CallGraphNode",
    "count_nodes",
    "count_external_calls",
    "collect_internal_functions",
]
