"""
Storage slot packing for contract state variables.

State variables are collected over the linearized inheritance chain
(most-base first), struct variables are flattened into their fields, and the
resulting member stream is packed greedily into 32-byte slots in declaration
order.
"""

from dataclasses import replace
from typing import FrozenSet, List, Optional, Sequence, Tuple

import structlog

from ..config import LARGE_ARRAY_SLOTS, SLOT_SIZE
from ..core.layout import Constant, Member, MemberParent, StorageLayout, slot_key
from ..core.nodes import (
    ContractDefinition,
    StructDefinition,
    UserDefinedTypeName,
    UserDefinedValueTypeDefinition,
    VariableDeclaration,
)
from ..errors import LayoutError
from .definitions import get_definitions
from .type_sizes import TypeSizeResolver, is_array, is_struct, static_array_length

logger = structlog.get_logger()

SlotGroup = List[Member]


class SlotPacker:
    """
    Packs members into 32-byte slots.

    The packer is stateless: it never mutates the members it is given, so
    packing the same list twice yields identical results.
    """

    def __init__(self, resolver: Optional[TypeSizeResolver] = None) -> None:
        self.resolver = resolver or TypeSizeResolver()

    def pack(self, members: Sequence[Member]) -> List[SlotGroup]:
        """
        Greedily group members into slots, preserving order.

        A member that does not fit in the remaining bytes of the current slot
        starts a new slot at offset 0. A member carrying ``children`` has its
        children packed on their own first; each resulting group is then
        appended to the current slot when it fits, or starts a new one.

        Args:
            members: Members in declaration order

        Returns:
            Slot groups; offsets are set on the returned member copies

        Raises:
            LayoutError: If a member has no valid size
        """
        slots: List[SlotGroup] = []
        current: SlotGroup = []
        current_size = 0

        for member in members:
            if member.children:
                for group in self.pack(member.children):
                    group_size = sum(m.size for m in group)
                    if current_size + group_size > SLOT_SIZE:
                        if current:
                            slots.append(current)
                        current = list(group)
                        current_size = group_size
                    else:
                        current.extend(
                            replace(m, offset=m.offset + current_size) for m in group
                        )
                        current_size += group_size
                continue

            self._check_size(member)
            if current_size + member.size > SLOT_SIZE:
                if current:
                    slots.append(current)
                current = [replace(member, offset=0)]
                current_size = member.size
            else:
                current.append(replace(member, offset=current_size))
                current_size += member.size

        if current:
            slots.append(current)
        return slots

    def assign_keys(self, groups: Sequence[SlotGroup]) -> StorageLayout:
        """
        Number slot groups sequentially from slot 0.

        A group made of a single fixed-size array member occupies one slot
        per element. All of those slots share one member list, which must not
        be mutated. Every other group takes exactly one slot.
        """
        layout = StorageLayout()
        counter = 0
        for group in groups:
            length = static_array_length(group[0].type) if len(group) == 1 else None
            if length:
                if length > LARGE_ARRAY_SLOTS:
                    logger.warning(
                        "Large fixed array expanded", member=group[0].name, slots=length
                    )
                shared = list(group)
                for i in range(length):
                    layout.slots[slot_key(counter + i)] = shared
                counter += length
            else:
                layout.slots[slot_key(counter)] = list(group)
                counter += 1
        return layout

    def layout(self, members: Sequence[Member]) -> StorageLayout:
        return self.assign_keys(self.pack(members))

    @staticmethod
    def _check_size(member: Member) -> None:
        if not isinstance(member.size, int) or not 1 <= member.size <= SLOT_SIZE:
            raise LayoutError(
                f"Member '{member.name}' ({member.type}) has invalid size {member.size!r}"
            )


class MemberCollector:
    """Turns state variable declarations into packable members."""

    def __init__(
        self,
        resolver: Optional[TypeSizeResolver] = None,
        flatten_structs: bool = True,
    ) -> None:
        """
        Args:
            resolver: Type size resolver
            flatten_structs: Emit struct fields inline in the member stream.
                When False a struct becomes one member whose ``children`` are
                packed as independent slot groups.
        """
        self.resolver = resolver or TypeSizeResolver()
        self.flatten_structs = flatten_structs

    def collect(
        self, contract: ContractDefinition
    ) -> Tuple[List[Member], List[Constant]]:
        """
        Collect storage members and constants of a contract.

        Returns:
            (members in storage order, constants and immutables)

        Raises:
            UnknownTypeError: If a variable's type cannot be sized
            LayoutError: If a struct contains itself by value
        """
        variables = get_definitions(contract, lambda c: c.state_variables)
        members: List[Member] = []
        constants: List[Constant] = []
        for var in variables:
            if var.is_storage_free:
                constants.append(
                    Constant(
                        name=var.name,
                        type=var.type_string or "",
                        visibility=var.visibility,
                        mutability=var.mutability,
                        constant=var.constant,
                        source=var.source_text,
                        absolute_path=var.absolute_path,
                    )
                )
            else:
                members.extend(self.members_of(var))
        return members, constants

    def members_of(
        self,
        var: VariableDeclaration,
        parent: Optional[MemberParent] = None,
        path: FrozenSet[int] = frozenset(),
    ) -> List[Member]:
        type_string = var.type_string or ""
        struct = self._struct_definition(var) if is_struct(type_string) else None
        if struct is None:
            return [self._scalar(var, parent)]

        if id(struct) in path:
            raise LayoutError(f"Struct '{struct.canonical_name}' contains itself by value")
        # fields keep the outermost state variable as their parent
        provenance = parent or MemberParent(type=type_string, name=var.name)
        fields: List[Member] = []
        for field_decl in struct.members:
            fields.extend(self.members_of(field_decl, provenance, path | {id(struct)}))

        if self.flatten_structs:
            return fields
        return [
            Member(
                name=var.name,
                type=type_string,
                size=SLOT_SIZE,
                visibility=var.visibility,
                mutability=var.mutability,
                constant=var.constant,
                absolute_path=var.absolute_path,
                parent=parent,
                children=tuple(fields),
            )
        ]

    def _scalar(self, var: VariableDeclaration, parent: Optional[MemberParent]) -> Member:
        type_string = var.type_string or ""
        return Member(
            name=var.name,
            type=type_string,
            size=self.resolver.resolve(self._sizing_type(var), var.name),
            visibility=var.visibility,
            mutability=var.mutability,
            constant=var.constant,
            absolute_path=var.absolute_path,
            parent=parent,
        )

    @staticmethod
    def _struct_definition(var: VariableDeclaration) -> Optional[StructDefinition]:
        type_name = var.type_name
        if isinstance(type_name, UserDefinedTypeName):
            ref = type_name.referenced_declaration
            if isinstance(ref, StructDefinition):
                return ref
        raise LayoutError(
            f"Cannot resolve struct definition of '{var.name}' ({var.type_string})"
        )

    @staticmethod
    def _sizing_type(var: VariableDeclaration) -> str:
        """Type string to size; user-defined value types size as their underlying type."""
        type_string = var.type_string or ""
        type_name = var.type_name
        if not is_array(type_string) and isinstance(type_name, UserDefinedTypeName):
            ref = type_name.referenced_declaration
            if isinstance(ref, UserDefinedValueTypeDefinition) and ref.underlying_type:
                underlying = ref.underlying_type
                return underlying.type_string or getattr(underlying, "name", "") or type_string
        return type_string


def process_slots(
    contract: ContractDefinition,
    resolver: Optional[TypeSizeResolver] = None,
    flatten_structs: bool = True,
) -> StorageLayout:
    """
    Compute the storage layout of a contract.

    Args:
        contract: The contract to lay out
        resolver: Type size resolver shared by collection and packing
        flatten_structs: See :class:`MemberCollector`

    Returns:
        StorageLayout with slots and constants

    Raises:
        UnknownTypeError: If any state variable cannot be sized; nothing is
            packed in that case
    """
    resolver = resolver or TypeSizeResolver()
    members, constants = MemberCollector(resolver, flatten_structs).collect(contract)
    layout = SlotPacker(resolver).layout(members)
    layout.constants = constants
    logger.debug(
        "Storage layout computed",
        contract=contract.name,
        members=len(members),
        slots=len(layout.slots),
        constants=len(constants),
    )
    return layout
