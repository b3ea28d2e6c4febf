"""
Risk classification of call expressions.

A call is LOW_LEVEL when it invokes one of the address builtins
(``call``, ``staticcall``, ``delegatecall``, ``send``, ``transfer``),
HIGH_LEVEL when it invokes a function through a contract or address
receiver, and INTERNAL otherwise. Calls through a library type are internal
unless the library function has return values and itself makes an external
call; such forwarding helpers are reported as high-level.

The classification is advisory: it drives coloring and aggregate counts.
"""

from typing import Dict, FrozenSet, Optional

from ..core.call_graph import CallClassification, CallType, LowLevelKind
from ..core.nodes import FunctionCall, FunctionDefinition, MemberAccess, unwrap_call_options
from .type_sizes import normalize_type

LOW_LEVEL_MEMBERS: Dict[str, LowLevelKind] = {kind.value: kind for kind in LowLevelKind}
ADDRESS_TYPES = ("address", "address payable")
LIBRARY_TYPE_PREFIX = "type(library "


class CallClassifier:
    """
    Classifies FunctionCall nodes.

    Args:
        no_static: Do not report calls to pure/view/constant functions as
            high-level
    """

    def __init__(self, no_static: bool = False) -> None:
        self.no_static = no_static

    def classify(
        self, call: FunctionCall, no_static: Optional[bool] = None
    ) -> CallClassification:
        """
        Classify one call expression.

        Args:
            call: The call expression
            no_static: Overrides the classifier default for this call

        Returns:
            CallClassification with the call type and low-level sub-kind
        """
        if no_static is None:
            no_static = self.no_static
        kind = self.low_level_kind(call)
        if kind is not None:
            return CallClassification(CallType.LOW_LEVEL, kind)
        if self._is_high_level(call, no_static, frozenset()):
            return CallClassification(CallType.HIGH_LEVEL)
        return CallClassification.internal()

    @staticmethod
    def low_level_kind(call: FunctionCall) -> Optional[LowLevelKind]:
        """Sub-kind of a low-level call, or None for any other call."""
        callee = unwrap_call_options(call.expression)
        if not isinstance(callee, MemberAccess):
            return None
        kind = LOW_LEVEL_MEMBERS.get(callee.member_name)
        if kind is None:
            return None
        # A resolved declaration means a user function that happens to share the name
        if callee.reference_id is not None:
            return None
        return kind

    def _is_high_level(
        self, call: FunctionCall, no_static: bool, visiting: FrozenSet[int]
    ) -> bool:
        callee = unwrap_call_options(call.expression)
        if not isinstance(callee, MemberAccess):
            return False
        target = callee.referenced_declaration
        if not isinstance(target, FunctionDefinition):
            return False
        if no_static and target.is_static:
            return False

        receiver = callee.expression
        receiver_type = (receiver.type_string if receiver is not None else None) or ""
        if receiver_type.startswith(LIBRARY_TYPE_PREFIX):
            return self._library_forwards(target, no_static, visiting)
        return (
            receiver_type.startswith("contract ")
            or normalize_type(receiver_type) in ADDRESS_TYPES
        )

    def _library_forwards(
        self, target: FunctionDefinition, no_static: bool, visiting: FrozenSet[int]
    ) -> bool:
        """A library function with return values that makes an external call."""
        if not target.return_parameters or id(target) in visiting:
            return False
        visiting = visiting | {id(target)}
        for inner in target.descendants_of_type(FunctionCall):
            if self.low_level_kind(inner) is not None:
                return True
            if self._is_high_level(inner, no_static, visiting):
                return True
        return False


def get_call_type(call: FunctionCall, no_static: bool = False) -> CallType:
    return CallClassifier(no_static).classify(call).call_type
