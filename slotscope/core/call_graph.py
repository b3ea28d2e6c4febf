"""
Call graph data types and tree metrics.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from .nodes import FunctionDefinition, ModifierDefinition, Node


class CallType(str, Enum):
    INTERNAL = "internal"
    HIGH_LEVEL = "high-level"
    LOW_LEVEL = "low-level"

    @property
    def is_external(self) -> bool:
        return self is not CallType.INTERNAL


class LowLevelKind(str, Enum):
    CALL = "call"
    STATICCALL = "staticcall"
    DELEGATECALL = "delegatecall"
    SEND = "send"
    TRANSFER = "transfer"


@dataclass(frozen=True)
class CallClassification:
    """Risk category of one call site."""

    call_type: CallType
    low_level_kind: Optional[LowLevelKind] = None

    @classmethod
    def internal(cls) -> "CallClassification":
        return cls(CallType.INTERNAL)


@dataclass(frozen=True)
class CallGraphNode:
    """
    One node of a call tree.

    Attributes:
        declaration: The called function or modifier; None for low-level call
            sites and for references the compiler output could not resolve
        name: Display name of the target
        call_type: Risk category of the edge leading to this node
        low_level_kind: Sub-kind when call_type is LOW_LEVEL
        children: Direct callees, in first-reference order
        recursive: True when expansion stopped because the target is already
            being expanded further up the same path
    """

    declaration: Optional[Node]
    name: str
    call_type: CallType = CallType.INTERNAL
    low_level_kind: Optional[LowLevelKind] = None
    children: Tuple["CallGraphNode", ...] = field(default_factory=tuple)
    recursive: bool = False

    @property
    def contract_name(self) -> str:
        if isinstance(self.declaration, (FunctionDefinition, ModifierDefinition)):
            contract = self.declaration.contract
            return contract.name if contract else ""
        return ""

    @property
    def source_path(self) -> str:
        return self.declaration.absolute_path if self.declaration is not None else ""

    @property
    def kind(self) -> str:
        if isinstance(self.declaration, FunctionDefinition):
            return self.declaration.kind
        if isinstance(self.declaration, ModifierDefinition):
            return "modifier"
        if self.low_level_kind is not None:
            return "low-level"
        return "unresolved"

    @property
    def is_static(self) -> bool:
        """Target is a pure/view function."""
        return isinstance(self.declaration, FunctionDefinition) and self.declaration.is_static

    def iter_nodes(self) -> Iterator["CallGraphNode"]:
        stack: List[CallGraphNode] = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind,
            "contract": self.contract_name,
            "call_type": self.call_type.value,
            "low_level_kind": self.low_level_kind.value if self.low_level_kind else None,
            "source_path": self.source_path,
            "recursive": self.recursive,
            "children": [child.to_dict() for child in self.children],
        }


def count_nodes(root: CallGraphNode) -> int:
    """Total nodes of a tree, the root included."""
    return sum(1 for _ in root.iter_nodes())


def count_external_calls(root: CallGraphNode) -> int:
    return sum(1 for n in root.iter_nodes() if n.call_type.is_external)


def count_mutating_external_calls(root: CallGraphNode) -> int:
    """External calls whose target may change state (not pure/view)."""
    return sum(1 for n in root.iter_nodes() if n.call_type.is_external and not n.is_static)


def count_static_external_calls(root: CallGraphNode) -> int:
    """External calls to pure/view targets."""
    return sum(1 for n in root.iter_nodes() if n.call_type.is_external and n.is_static)


def collect_internal_functions(roots: List[CallGraphNode]) -> Dict[str, Set[str]]:
    """
    Map each internally called function to the root functions that reach it.

    Args:
        roots: Root call trees of one contract

    Returns:
        Internal function display name -> names of the roots reaching it
    """
    callers: Dict[str, Set[str]] = {}
    for root in roots:
        for child in root.children:
            for node in child.iter_nodes():
                if node.call_type is CallType.INTERNAL and isinstance(
                    node.declaration, FunctionDefinition
                ):
                    callers.setdefault(node.name, set()).add(root.name)
    return callers
