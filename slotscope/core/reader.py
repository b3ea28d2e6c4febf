"""
Reader for solc compact-JSON ASTs.

Builds :mod:`slotscope.core.nodes` trees from compiler output and resolves
cross references across all source units of one compilation.
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple, cast

import structlog

from ..errors import ArtifactError
from .nodes import CHILD_ORDER, NODE_TYPES, Node, SourceUnit

logger = structlog.get_logger()


def _is_node(value: Any) -> bool:
    return isinstance(value, dict) and "nodeType" in value


class ASTReader:
    """
    Converts compiler JSON output into typed source units.

    Supported inputs:
    - Foundry build-info: ``{"input": {"sources": ...}, "output": {"sources": {path: {"ast": ...}}}}``
    - solc / crytic-compile output: ``{"sources": {path: {"AST": ...}}}``
    - A bare mapping of ``{path: ast}``
    """

    def __init__(self) -> None:
        self.index: Dict[int, Node] = {}

    def read(self, compiler_output: Mapping[str, Any]) -> List[SourceUnit]:
        """
        Read every source unit of a compilation.

        Args:
            compiler_output: Parsed compiler JSON in one of the supported shapes

        Returns:
            Source units in artifact order, with references resolved

        Raises:
            ArtifactError: If the input is not a recognizable compiler output
        """
        if not isinstance(compiler_output, Mapping):
            raise ArtifactError("Compiler output must be a JSON object")

        self.index = {}
        entries, contents = self._extract_entries(compiler_output)

        units: List[SourceUnit] = []
        for path, ast in entries:
            if not _is_node(ast) or ast.get("nodeType") != "SourceUnit":
                raise ArtifactError(f"AST for '{path}' is not a SourceUnit")
            unit = cast(SourceUnit, self._build(ast, None))
            unit.content = contents.get(path) or contents.get(unit.absolute_path) or ""
            units.append(unit)

        for node in self.index.values():
            node.resolve(self.index)

        logger.debug("AST read", source_units=len(units), nodes=len(self.index))
        return units

    def _extract_entries(
        self, compiler_output: Mapping[str, Any]
    ) -> Tuple[List[Tuple[str, Dict[str, Any]]], Dict[str, str]]:
        contents: Dict[str, str] = {}
        input_sources = (compiler_output.get("input") or {}).get("sources") or {}
        for path, value in input_sources.items():
            if isinstance(value, dict) and isinstance(value.get("content"), str):
                contents[path] = value["content"]

        if isinstance(compiler_output.get("output"), Mapping):
            sources = compiler_output["output"].get("sources") or {}
        elif isinstance(compiler_output.get("sources"), Mapping):
            sources = compiler_output["sources"]
        else:
            sources = compiler_output

        entries: List[Tuple[str, Dict[str, Any]]] = []
        for path, value in sources.items():
            if _is_node(value):
                entries.append((path, value))
            elif isinstance(value, Mapping):
                ast = value.get("ast") or value.get("AST")
                if ast is None:
                    logger.debug("Source entry without AST skipped", path=path)
                    continue
                entries.append((path, ast))
        if not entries and sources:
            raise ArtifactError("No ASTs found in compiler output")
        return entries, contents

    def _build(self, raw: Dict[str, Any], parent: Optional[Node]) -> Node:
        cls = NODE_TYPES.get(raw.get("nodeType", ""), Node)
        node = cls(raw, parent)
        if node.id is not None:
            self.index[node.id] = node

        order = CHILD_ORDER.get(node.node_type, ())
        keys = [k for k in order if k in raw] + [k for k in raw if k not in order]
        for key in keys:
            value = raw[key]
            if _is_node(value):
                child = self._build(value, node)
                node.fields[key] = child
                node.children.append(child)
            elif isinstance(value, list) and any(_is_node(v) for v in value):
                built = [self._build(v, node) for v in value if _is_node(v)]
                node.fields[key] = built
                node.children.extend(built)
        return node


def read_source_units(compiler_output: Mapping[str, Any]) -> List[SourceUnit]:
    """Convenience wrapper around :class:`ASTReader`."""
    return ASTReader().read(compiler_output)
