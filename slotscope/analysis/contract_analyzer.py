"""
Per-contract orchestration of slot layout and call graph analysis.

For each contract the analyzer selects the root functions (implemented,
public or external, and unless ``include_all`` is set not pure/view),
builds one call tree per root, computes the storage layout and gathers the
declared elements of the inheritance chain. A batch run keeps going when a
single contract fails and reports which contracts succeeded, were skipped
(no eligible roots) or failed.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import structlog

from ..artifacts import select_source_unit
from ..config import AnalysisOptions
from ..core.call_graph import (
    CallGraphNode,
    collect_internal_functions,
    count_external_calls,
    count_mutating_external_calls,
    count_nodes,
    count_static_external_calls,
)
from ..core.layout import StorageLayout
from ..core.nodes import ContractDefinition, FunctionDefinition, Node, SourceUnit
from ..errors import LayoutError, UnknownTypeError
from .call_classifier import CallClassifier
from .call_tree import CallTreeBuilder
from .definitions import get_definitions, signature_key
from .slot_packer import process_slots
from .type_sizes import TypeSizeResolver

logger = structlog.get_logger()

ROOT_VISIBILITIES = ("public", "external")


@dataclass
class ContractElements:
    """Declarations of a contract and its bases, most-base first."""

    events: List[Node] = field(default_factory=list)
    structs: List[Node] = field(default_factory=list)
    errors: List[Node] = field(default_factory=list)
    enums: List[Node] = field(default_factory=list)
    user_defined_value_types: List[Node] = field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        return {
            "events": len(self.events),
            "structs": len(self.structs),
            "errors": len(self.errors),
            "enums": len(self.enums),
            "udts": len(self.user_defined_value_types),
        }

    def to_dict(self) -> Dict[str, Any]:
        def describe(nodes: List[Node]) -> List[Dict[str, str]]:
            return [
                {
                    "name": getattr(n, "name", ""),
                    "source": n.source_text,
                    "absolute_path": n.absolute_path,
                }
                for n in nodes
            ]

        return {
            "events": describe(self.events),
            "structs": describe(self.structs),
            "errors": describe(self.errors),
            "enums": describe(self.enums),
            "user_defined_value_types": describe(self.user_defined_value_types),
        }


@dataclass
class CallStats:
    total_nodes: int = 0
    external_calls: int = 0
    mutating_external_calls: int = 0
    static_external_calls: int = 0

    @classmethod
    def of(cls, roots: Sequence[CallGraphNode]) -> "CallStats":
        return cls(
            total_nodes=sum(count_nodes(r) for r in roots),
            external_calls=sum(count_external_calls(r) for r in roots),
            mutating_external_calls=sum(count_mutating_external_calls(r) for r in roots),
            static_external_calls=sum(count_static_external_calls(r) for r in roots),
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "total_nodes": self.total_nodes,
            "external_calls": self.external_calls,
            "mutating_external_calls": self.mutating_external_calls,
            "static_external_calls": self.static_external_calls,
        }


@dataclass
class ContractReport:
    """
    Analysis result of one contract.

    Attributes:
        name: Contract name
        source_path: Absolute path of the declaring source unit
        roots: One call tree per root function
        layout: Storage layout, None when packing failed
        layout_error: Diagnostic that prevented packing
        elements: Declared events, structs, errors, enums and value types
    """

    name: str
    source_path: str
    roots: List[CallGraphNode] = field(default_factory=list)
    layout: Optional[StorageLayout] = None
    layout_error: Optional[Dict[str, Any]] = None
    elements: ContractElements = field(default_factory=ContractElements)

    @property
    def stats(self) -> CallStats:
        return CallStats.of(self.roots)

    @property
    def internal_functions(self) -> Dict[str, Set[str]]:
        return collect_internal_functions(self.roots)

    def root_stats(self) -> Dict[str, CallStats]:
        return {root.name: CallStats.of([root]) for root in self.roots}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "source_path": self.source_path,
            "functions": [
                {
                    "name": root.name,
                    "state_mutability": getattr(root.declaration, "state_mutability", None),
                    "stats": CallStats.of([root]).to_dict(),
                    "call_tree": root.to_dict(),
                }
                for root in self.roots
            ],
            "storage": self.layout.to_dict() if self.layout is not None else None,
            "storage_error": self.layout_error,
            "elements": self.elements.to_dict(),
            "element_summary": self.elements.counts(),
            "internal_functions": {
                name: sorted(callers) for name, callers in self.internal_functions.items()
            },
            "stats": self.stats.to_dict(),
        }


@dataclass
class RunSummary:
    succeeded: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": list(self.succeeded),
            "skipped": list(self.skipped),
            "failed": [{"name": name, "error": error} for name, error in self.failed],
        }


@dataclass
class RunResult:
    summary: RunSummary = field(default_factory=RunSummary)
    reports: List[ContractReport] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "contracts": [report.to_dict() for report in self.reports],
        }


class ContractAnalyzer:
    """
    Analyzes contracts of already-read source units.

    The analyzer holds configuration only; analyses of different contracts
    share no mutable state and may run concurrently.
    """

    def __init__(
        self,
        options: Optional[AnalysisOptions] = None,
        resolver: Optional[TypeSizeResolver] = None,
    ) -> None:
        self.options = options or AnalysisOptions()
        self.resolver = resolver or TypeSizeResolver()
        self.builder = CallTreeBuilder(
            classifier=CallClassifier(no_static=self.options.no_static),
            include_deps=self.options.include_deps,
            ignore_prefixes=self.options.ignore_prefixes,
            include_low_level=self.options.include_low_level,
        )

    def select_roots(self, contract: ContractDefinition) -> List[FunctionDefinition]:
        """
        Root functions of a contract's call graph.

        Functions are visited most-derived contract first; a function whose
        signature (name, parameter types, visibility, mutability) was already
        taken by a more derived contract is dropped. Constructors of base
        contracts are not roots.
        """
        roots: List[FunctionDefinition] = []
        seen = set()
        for base in contract.linearized_base_contracts:
            for fn in base.functions:
                if not fn.implemented or fn.visibility not in ROOT_VISIBILITIES:
                    continue
                if not self.options.include_all and fn.is_static:
                    continue
                if fn.kind == "constructor" and base is not contract:
                    continue
                key = signature_key(fn)
                if key in seen:
                    continue
                seen.add(key)
                roots.append(fn)
        return roots

    def build_call_trees(self, contract: ContractDefinition) -> List[CallGraphNode]:
        return [self.builder.build(fn) for fn in self.select_roots(contract)]

    @staticmethod
    def collect_elements(contract: ContractDefinition) -> ContractElements:
        return ContractElements(
            events=get_definitions(contract, lambda c: c.events),
            structs=get_definitions(contract, lambda c: c.structs),
            errors=get_definitions(contract, lambda c: c.errors),
            enums=get_definitions(contract, lambda c: c.enums),
            user_defined_value_types=get_definitions(
                contract, lambda c: c.user_defined_value_types
            ),
        )

    def analyze_contract(self, contract: ContractDefinition) -> ContractReport:
        """
        Analyze one contract.

        A layout diagnostic (unknown type, unresolvable struct) does not fail
        the contract: the layout is recorded as failed and the call graph is
        still produced.
        """
        report = ContractReport(
            name=contract.name,
            source_path=contract.absolute_path,
            roots=self.build_call_trees(contract),
            elements=self.collect_elements(contract),
        )
        try:
            report.layout = process_slots(contract, self.resolver)
        except UnknownTypeError as e:
            logger.warning(
                "Storage layout skipped", contract=contract.name, type=e.type_string, member=e.member
            )
            report.layout_error = e.to_dict()
        except LayoutError as e:
            logger.warning("Storage layout skipped", contract=contract.name, error=str(e))
            report.layout_error = {"kind": "LayoutError", "message": str(e)}
        return report

    def eligible_contracts(self, units: Sequence[SourceUnit]) -> List[ContractDefinition]:
        """Deployable contracts outside ignored paths."""
        contracts = []
        for unit in units:
            if self.options.is_ignored(unit.absolute_path):
                continue
            for contract in unit.contracts:
                if contract.kind != "contract" or contract.abstract:
                    continue
                if not contract.fully_implemented:
                    continue
                contracts.append(contract)
        return contracts

    def analyze_source_units(self, units: Sequence[SourceUnit]) -> RunResult:
        """
        Analyze every eligible contract of a compilation.

        Args:
            units: Source units from :class:`slotscope.core.reader.ASTReader`

        Returns:
            RunResult with the run summary and the reports of succeeded contracts
        """
        contracts = self.eligible_contracts(units)
        logger.info("Analyzing contracts", total=len(contracts), workers=self.options.workers)
        return self._run(contracts)

    def analyze_file(
        self, units: Sequence[SourceUnit], file_path: str, root: Optional[str] = None
    ) -> RunResult:
        """
        Analyze every contract (kind ``contract``) declared in one source file.

        Raises:
            ArtifactError: If no source unit matches ``file_path``
        """
        unit = select_source_unit(units, file_path, root)
        contracts = [c for c in unit.contracts if c.kind == "contract"]
        logger.info("Analyzing file", path=unit.absolute_path, contracts=len(contracts))
        return self._run(contracts)

    def _run(self, contracts: Sequence[ContractDefinition]) -> RunResult:
        if self.options.workers > 1 and len(contracts) > 1:
            with ThreadPoolExecutor(max_workers=self.options.workers) as pool:
                outcomes = list(pool.map(self._safe_analyze, contracts))
        else:
            outcomes = [self._safe_analyze(c) for c in contracts]

        result = RunResult()
        for contract, (report, error) in zip(contracts, outcomes):
            if error is not None:
                result.summary.failed.append((contract.name, error))
            elif not report.roots:
                result.summary.skipped.append(contract.name)
            else:
                result.summary.succeeded.append(contract.name)
                result.reports.append(report)

        logger.info(
            "Analysis finished",
            succeeded=len(result.summary.succeeded),
            skipped=len(result.summary.skipped),
            failed=len(result.summary.failed),
        )
        return result

    def _safe_analyze(
        self, contract: ContractDefinition
    ) -> Tuple[Optional[ContractReport], Optional[str]]:
        try:
            return self.analyze_contract(contract), None
        except Exception as e:
            logger.exception("Contract analysis failed", contract=contract.name)
            return None, str(e) or type(e).__name__
