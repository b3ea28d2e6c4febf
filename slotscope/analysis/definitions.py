"""
Helpers for declarations spread across an inheritance chain.
"""

from typing import Callable, List, Tuple, TypeVar

from ..core.nodes import ContractDefinition, FunctionDefinition, Node

T = TypeVar("T", bound=Node)


def get_definitions(
    contract: ContractDefinition,
    getter: Callable[[ContractDefinition], List[T]],
    include_self: bool = True,
) -> List[T]:
    """
    Collect declarations of one kind over the linearized base contracts.

    Args:
        contract: The most derived contract
        getter: Returns the declarations a single contract declares itself,
            e.g. ``lambda c: c.state_variables``
        include_self: Include the contract's own declarations

    Returns:
        Declarations ordered most-base first, each declaration once
    """
    seen = set()
    result: List[T] = []
    for base in reversed(contract.linearized_base_contracts):
        if base is contract and not include_self:
            continue
        for definition in getter(base):
            if id(definition) in seen:
                continue
            seen.add(id(definition))
            result.append(definition)
    return result


def signature_key(fn: FunctionDefinition) -> Tuple[str, str, str, str]:
    """
    Identity of a function across an inheritance chain.

    Name (or kind, for constructors, fallback and receive), parameter types,
    visibility and state mutability.
    """
    params = ",".join(p.type_string or "" for p in fn.parameters)
    return (fn.name or fn.kind, params, fn.visibility, fn.state_mutability)
