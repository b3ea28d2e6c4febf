"""
Storage layout data types.

A layout maps slot keys (64 hex digit, 0x-prefixed, big-endian slot index)
to the ordered members packed into that slot, plus the constants and
immutables that never occupy storage.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from eth_utils import add_0x_prefix, to_int

from ..config import SLOT_SIZE


def slot_key(index: int) -> str:
    """Format a slot index as a zero-padded 32-byte hex key."""
    if index < 0:
        raise ValueError(f"Slot index must be non-negative, got {index}")
    return add_0x_prefix(format(index, "064x"))


def slot_index(key: str) -> int:
    """Parse a slot key back into its integer index."""
    return to_int(hexstr=key)


@dataclass(frozen=True)
class MemberParent:
    """Provenance of a member flattened out of a struct variable."""

    type: str
    name: str


@dataclass(frozen=True)
class Member:
    """
    A storage member: a state variable, or a field flattened from a struct.

    Attributes:
        name: Variable or struct field name
        type: Compiler type string
        size: Width in bytes (1..32)
        offset: Byte offset within its slot, assigned by the packer
        parent: Struct variable the member was flattened out of
        children: Pre-built sub-members packed as their own slot groups
    """

    name: str
    type: str
    size: int
    visibility: str = "internal"
    mutability: str = "mutable"
    constant: bool = False
    absolute_path: str = ""
    offset: int = 0
    parent: Optional[MemberParent] = None
    children: Optional[Tuple["Member", ...]] = None

    @property
    def end(self) -> int:
        return self.offset + self.size

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "name": self.name,
            "type": self.type,
            "size": self.size,
            "offset": self.offset,
            "visibility": self.visibility,
            "mutability": self.mutability,
            "constant": self.constant,
            "absolute_path": self.absolute_path,
        }
        if self.parent is not None:
            result["parent"] = {"type": self.parent.type, "name": self.parent.name}
        return result


@dataclass(frozen=True)
class Constant:
    """A constant or immutable state variable; excluded from slots."""

    name: str
    type: str
    visibility: str
    mutability: str
    constant: bool
    source: str = ""
    absolute_path: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "visibility": self.visibility,
            "mutability": self.mutability,
            "constant": self.constant,
            "source": self.source,
            "absolute_path": self.absolute_path,
        }


@dataclass
class StorageLayout:
    """
    Slot layout of one contract.

    Attributes:
        slots: Slot key -> members, in ascending slot order
        constants: Constants and immutables, in declaration order
    """

    slots: Dict[str, List[Member]] = field(default_factory=dict)
    constants: List[Constant] = field(default_factory=list)

    def members_at(self, index: int) -> List[Member]:
        return self.slots.get(slot_key(index), [])

    def used_bytes(self, key: str) -> int:
        return sum(m.size for m in self.slots.get(key, []))

    def find(self, name: str) -> List[Tuple[str, Member]]:
        """All (slot key, member) pairs for a member name."""
        return [
            (key, member)
            for key, members in self.slots.items()
            for member in members
            if member.name == name
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slots": {
                key: [m.to_dict() for m in members]
                for key, members in self.slots.items()
            },
            "constants": [c.to_dict() for c in self.constants],
        }

    def __str__(self) -> str:
        result = ["Storage Layout:", "----------------"]
        for key, members in self.slots.items():
            result.append(f"Slot {slot_index(key)} ({self.used_bytes(key)}/{SLOT_SIZE} bytes)")
            for m in members:
                origin = f" <- {m.parent.name}" if m.parent else ""
                result.append(
                    f"  {m.name} ({m.type}) [offset: {m.offset}, size: {m.size}]{origin}"
                )
        for c in self.constants:
            result.append(f"Constant {c.name} ({c.type}, {c.mutability})")
        return "\n".join(result)
