"""
Call tree construction for functions and modifiers.

Every reference from a body to another function or modifier becomes a child
node. Dedup is local: a target appears at most once among the direct
children of one parent, but may appear again under other parents.

Recursion is bounded by the current expansion path: a target that is already
being expanded by an ancestor is emitted as a leaf flagged ``recursive``
instead of being expanded again, so mutually recursive functions terminate.
"""

from typing import FrozenSet, Iterable, List, Optional, Set

import structlog

from ..config import DEFAULT_IGNORE_PREFIXES
from ..core.call_graph import CallClassification, CallGraphNode, CallType
from ..core.nodes import (
    CallableDefinition,
    FunctionCall,
    FunctionDefinition,
    ModifierDefinition,
    Node,
)
from ..errors import AnalysisError
from .call_classifier import CallClassifier

logger = structlog.get_logger()


class CallTreeBuilder:
    """
    Builds call trees rooted at a function or modifier.

    Attributes:
        classifier: Call classifier applied to call-expression edges
        include_deps: Expand targets whose source path is ignored
        ignore_prefixes: Source path prefixes treated as dependencies
        include_low_level: Also emit low-level call sites as leaves
    """

    def __init__(
        self,
        classifier: Optional[CallClassifier] = None,
        include_deps: bool = False,
        ignore_prefixes: Iterable[str] = DEFAULT_IGNORE_PREFIXES,
        include_low_level: bool = False,
    ) -> None:
        self.classifier = classifier or CallClassifier()
        self.include_deps = include_deps
        self.ignore_prefixes = tuple(ignore_prefixes)
        self.include_low_level = include_low_level

    def build(self, root: CallableDefinition) -> CallGraphNode:
        """
        Build the call tree of one root.

        Args:
            root: Function or modifier to start from

        Returns:
            Root node with call type INTERNAL and its expanded children

        Raises:
            AnalysisError: If root is not a function or modifier
        """
        if not isinstance(root, (FunctionDefinition, ModifierDefinition)):
            raise AnalysisError(f"Cannot build a call tree from {root!r}")
        children = self.children_of(root, frozenset({id(root)}))
        return CallGraphNode(
            declaration=root,
            name=root.display_name,
            children=tuple(children),
        )

    def children_of(
        self, definition: CallableDefinition, ancestors: FrozenSet[int]
    ) -> List[CallGraphNode]:
        """
        Direct callees of a definition, each expanded recursively.

        Args:
            definition: Function or modifier whose body is walked
            ancestors: Ids of the definitions on the current expansion path
        """
        result: List[CallGraphNode] = []
        seen: Set[int] = set()
        unresolved: Set[str] = set()

        for node in definition.walk():
            if node is definition:
                continue

            if isinstance(node, FunctionCall):
                low_level = self.classifier.low_level_kind(node)
                if low_level is not None:
                    if self.include_low_level:
                        result.append(
                            CallGraphNode(
                                declaration=None,
                                name=low_level.value,
                                call_type=CallType.LOW_LEVEL,
                                low_level_kind=low_level,
                            )
                        )
                    continue

            target = node.referenced_declaration
            if target is None:
                name = self._unresolved_name(node)
                if name and name not in unresolved:
                    unresolved.add(name)
                    logger.debug(
                        "Unresolved call reference", name=name, src=node.src
                    )
                    result.append(CallGraphNode(declaration=None, name=name))
                continue

            if target is definition or not isinstance(
                target, (FunctionDefinition, ModifierDefinition)
            ):
                continue
            if id(target) in seen:
                continue
            seen.add(id(target))

            classification = (
                self.classifier.classify(node)
                if isinstance(node, FunctionCall)
                else CallClassification.internal()
            )
            recursive = id(target) in ancestors
            if recursive or self._is_dependency(target):
                children: List[CallGraphNode] = []
            else:
                children = self.children_of(target, ancestors | {id(target)})

            result.append(
                CallGraphNode(
                    declaration=target,
                    name=target.display_name,
                    call_type=classification.call_type,
                    low_level_kind=classification.low_level_kind,
                    children=tuple(children),
                    recursive=recursive,
                )
            )
        return result

    def _is_dependency(self, target: Node) -> bool:
        if self.include_deps:
            return False
        path = target.absolute_path
        return any(path.startswith(prefix) for prefix in self.ignore_prefixes)

    @staticmethod
    def _unresolved_name(node: Node) -> Optional[str]:
        """Name of a call whose callee references a declaration missing from the AST."""
        if not isinstance(node, FunctionCall) or node.kind != "functionCall":
            return None
        callee = node.callee
        if callee is None or callee.reference_id is None:
            return None
        return getattr(callee, "member_name", None) or getattr(callee, "name", None)
