"""
Exception hierarchy for slotscope.
"""

from typing import Optional


class SlotscopeError(Exception):
    """Base class for all slotscope errors."""


class UnknownTypeError(SlotscopeError):
    """
    Raised when a type string cannot be mapped to a storage byte width.

    Attributes:
        type_string: The offending compiler type string
        member: Name of the variable being sized, if known
    """

    def __init__(self, type_string: str, member: Optional[str] = None) -> None:
        self.type_string = type_string
        self.member = member
        where = f" (member '{member}')" if member else ""
        super().__init__(f"UnknownType: cannot size '{type_string}'{where}")

    def to_dict(self):
        return {
            "kind": "UnknownType",
            "type": self.type_string,
            "member": self.member,
            "message": str(self),
        }


class LayoutError(SlotscopeError):
    """Raised when a member list cannot be packed into storage slots."""


class ArtifactError(SlotscopeError):
    """Raised for unreadable or malformed compiler artifacts."""


class AnalysisError(SlotscopeError):
    """Raised when a contract cannot be analyzed."""
