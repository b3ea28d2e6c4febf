"""
Storage byte widths of compiler type strings.

Dynamic values (mappings, dynamic arrays, ``bytes``, ``string``) are sized
as their 32-byte slot pointer. Structs are never sized here; the slot packer
flattens them into their fields.
"""

import re
from typing import Optional

from ..config import SLOT_SIZE
from ..errors import LayoutError, UnknownTypeError

# Data location qualifiers appended to type strings of expressions
LOCATION_SUFFIXES = (
    " storage ref",
    " storage pointer",
    " storage",
    " memory",
    " calldata",
    " pointer",
    " ref",
)

_BYTES_RE = re.compile(r"^bytes(\d+)$")
_INT_RE = re.compile(r"^u?int(\d*)$")
_FIXED_RE = re.compile(r"^u?fixed(?:(\d+)x(\d+))?$")
_DIM_RE = re.compile(r"\[(\d*)\]$")


def normalize_type(type_string: str) -> str:
    """Strip data location qualifiers from a type string."""
    result = type_string.strip()
    stripped = True
    while stripped:
        stripped = False
        for suffix in LOCATION_SUFFIXES:
            if result.endswith(suffix):
                result = result[: -len(suffix)].rstrip()
                stripped = True
    return result


def is_array(type_string: str) -> bool:
    t = normalize_type(type_string)
    return not t.startswith("mapping(") and t.endswith("]")


def is_struct(type_string: str) -> bool:
    t = normalize_type(type_string)
    return t.startswith("struct ") and not is_array(t)


def static_array_length(type_string: str) -> Optional[int]:
    """
    Number of elements of a fixed-size array type.

    Consecutive static dimensions from the outermost inwards are multiplied:
    ``uint256[3][2]`` -> 6, ``uint256[][3]`` -> 3.

    Returns:
        The element count, or None if the type is not a fixed-size array
    """
    t = normalize_type(type_string)
    if t.startswith("mapping("):
        return None
    length = None
    while True:
        match = _DIM_RE.search(t)
        if not match or not match.group(1):
            break
        length = (length or 1) * int(match.group(1))
        t = t[: match.start()]
    return length


class TypeSizeResolver:
    """Maps compiler type strings to storage byte widths (1..32)."""

    def resolve(self, type_string: str, member: Optional[str] = None) -> int:
        """
        Resolve the byte width of a type.

        Args:
            type_string: Compiler type string, e.g. ``uint128`` or ``contract IERC20``
            member: Name of the variable being sized, carried into diagnostics

        Returns:
            Width in bytes

        Raises:
            UnknownTypeError: If the type string cannot be sized
            LayoutError: If asked to size a struct directly
        """
        if not type_string:
            raise UnknownTypeError(type_string or "", member)
        t = normalize_type(type_string)

        if t.startswith("mapping(") or t.endswith("]"):
            return SLOT_SIZE
        if t == "bool":
            return 1
        if t in ("address", "address payable") or t.startswith("contract "):
            return 20
        if t.startswith("enum "):
            return 1
        if t in ("string", "bytes"):
            return SLOT_SIZE
        if t.startswith("struct "):
            raise LayoutError(f"Struct type '{t}' must be flattened before packing")
        if t.startswith("function ") or t.startswith("function("):
            # External function pointers hold address + selector
            return 24 if " external" in t else 8

        match = _BYTES_RE.match(t)
        if match:
            width = int(match.group(1))
            if 1 <= width <= SLOT_SIZE:
                return width
            raise UnknownTypeError(type_string, member)

        match = _INT_RE.match(t)
        if match:
            bits = int(match.group(1)) if match.group(1) else 256
            if bits % 8 == 0 and 8 <= bits <= 256:
                return bits // 8
            raise UnknownTypeError(type_string, member)

        match = _FIXED_RE.match(t)
        if match:
            bits = int(match.group(1)) if match.group(1) else 128
            if bits % 8 == 0 and 8 <= bits <= 256:
                return bits // 8
            raise UnknownTypeError(type_string, member)

        raise UnknownTypeError(type_string, member)


def get_byte_size(type_string: str) -> int:
    """Module-level shortcut for :meth:`TypeSizeResolver.resolve`."""
    return TypeSizeResolver().resolve(type_string)
