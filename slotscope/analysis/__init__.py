"""
Analyses over the typed AST: type sizing, slot packing, call
classification, call tree construction and per-contract orchestration.
"""

from .type_sizes import TypeSizeResolver, get_byte_size, normalize_type
from .slot_packer import SlotPacker, MemberCollector, process_slots
from .call_classifier import CallClassifier, get_call_type
from .call_tree import CallTreeBuilder
from .contract_analyzer import (
    ContractAnalyzer,
    ContractReport,
    CallStats,
    RunSummary,
    RunResult,
)

__all__ = [
    "TypeSizeResolver",
    "get_byte_size",
    "normalize_type",
    "SlotPacker",
    "MemberCollector",
    "process_slots",
    "CallClassifier",
    "get_call_type",
    "CallTreeBuilder",
    "ContractAnalyzer",
    "ContractReport",
    "CallStats",
    "RunSummary",
    "RunResult",
]
