"""
Typed view over the solc compact-JSON AST.

Every JSON object carrying a ``nodeType`` becomes a Node. The node kinds the
analyses inspect get their own class with typed accessors; every other kind
is a plain Node that still exposes its children so traversal reaches nested
expressions. References (``referencedDeclaration``,
``linearizedBaseContracts``) are resolved to node objects by
:class:`slotscope.core.reader.ASTReader`.
"""

from typing import Any, Dict, Iterator, List, Optional, Type, TypeVar, Union

N = TypeVar("N", bound="Node")

# Child traversal order for kinds whose JSON keys are emitted alphabetically
CHILD_ORDER: Dict[str, tuple] = {
    "ContractDefinition": ("baseContracts", "nodes"),
    "FunctionDefinition": (
        "documentation",
        "overrides",
        "parameters",
        "returnParameters",
        "modifiers",
        "body",
    ),
    "ModifierDefinition": ("documentation", "parameters", "body"),
    "ModifierInvocation": ("modifierName", "arguments"),
    "FunctionCall": ("expression", "arguments"),
    "FunctionCallOptions": ("expression", "options"),
    "MemberAccess": ("expression",),
    "IndexAccess": ("baseExpression", "indexExpression"),
    "IfStatement": ("condition", "trueBody", "falseBody"),
    "Conditional": ("condition", "trueExpression", "falseExpression"),
    "ForStatement": (
        "initializationExpression",
        "condition",
        "loopExpression",
        "body",
    ),
    "WhileStatement": ("condition", "body"),
    "DoWhileStatement": ("body", "condition"),
    "TryStatement": ("externalCall", "clauses"),
    "VariableDeclarationStatement": ("declarations", "initialValue"),
    "VariableDeclaration": ("typeName", "value"),
    "Assignment": ("leftHandSide", "rightHandSide"),
    "BinaryOperation": ("leftExpression", "rightExpression"),
    "EmitStatement": ("eventCall",),
    "RevertStatement": ("errorCall",),
}

# Member names of the pre-0.7 call option shapes: x.f.value(v)(...), x.f.gas(g)(...)
LEGACY_OPTION_MEMBERS = ("value", "gas")


class Node:
    """
    A node of the compiler AST.

    Attributes:
        id: Compiler-assigned node id
        node_type: The JSON ``nodeType``
        src: Source location ``start:length:fileIndex``
        parent: Enclosing node, None for a SourceUnit
        children: Child nodes in traversal order
        fields: Child nodes by JSON key (a Node or a list of Nodes)
        raw: The JSON object the node was built from
    """

    def __init__(self, raw: Dict[str, Any], parent: Optional["Node"] = None) -> None:
        self.raw = raw
        self.id: Optional[int] = raw.get("id")
        self.node_type: str = raw.get("nodeType", "")
        self.src: str = raw.get("src", "")
        self.parent = parent
        self.children: List["Node"] = []
        self.fields: Dict[str, Union["Node", List["Node"]]] = {}
        self._referenced: Optional["Node"] = None

    def __repr__(self) -> str:
        name = getattr(self, "name", None)
        label = f" {name}" if name else ""
        return f"<{self.node_type}{label} #{self.id}>"

    def resolve(self, index: Dict[int, "Node"]) -> None:
        """Resolve id references against the reader's node index."""
        ref = self.raw.get("referencedDeclaration")
        if isinstance(ref, int):
            self._referenced = index.get(ref)

    @property
    def referenced_declaration(self) -> Optional["Node"]:
        return self._referenced

    @property
    def reference_id(self) -> Optional[int]:
        """Id of a user declaration this node refers to; builtins use negative ids."""
        ref = self.raw.get("referencedDeclaration")
        return ref if isinstance(ref, int) and ref >= 0 else None

    @property
    def type_string(self) -> Optional[str]:
        descriptions = self.raw.get("typeDescriptions") or {}
        return descriptions.get("typeString")

    def field(self, key: str) -> Optional["Node"]:
        value = self.fields.get(key)
        return value if isinstance(value, Node) else None

    def field_list(self, key: str) -> List["Node"]:
        value = self.fields.get(key)
        if isinstance(value, list):
            return value
        return [value] if isinstance(value, Node) else []

    def walk(self) -> Iterator["Node"]:
        """Yield this node and all descendants in pre-order."""
        stack: List[Node] = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def descendants_of_type(self, cls: Type[N]) -> List[N]:
        return [n for n in self.walk() if n is not self and isinstance(n, cls)]

    def closest_parent(self, cls: Type[N]) -> Optional[N]:
        node = self.parent
        while node is not None:
            if isinstance(node, cls):
                return node
            node = node.parent
        return None

    @property
    def source_unit(self) -> Optional["SourceUnit"]:
        if isinstance(self, SourceUnit):
            return self
        return self.closest_parent(SourceUnit)

    @property
    def absolute_path(self) -> str:
        unit = self.source_unit
        return unit.absolute_path if unit else ""

    @property
    def source_text(self) -> str:
        """Original source text of this node, or '' when content is unavailable."""
        unit = self.source_unit
        if unit is None or not unit.content or not self.src:
            return ""
        try:
            start, length = (int(part) for part in self.src.split(":")[:2])
        except ValueError:
            return ""
        data = unit.content.encode("utf-8")
        return data[start:start + length].decode("utf-8", errors="replace")


class SourceUnit(Node):
    def __init__(self, raw: Dict[str, Any], parent: Optional[Node] = None) -> None:
        super().__init__(raw, parent)
        self.content: str = ""

    @property
    def absolute_path(self) -> str:
        return self.raw.get("absolutePath", "")

    @property
    def contracts(self) -> List["ContractDefinition"]:
        return [n for n in self.field_list("nodes") if isinstance(n, ContractDefinition)]


class ContractDefinition(Node):
    def __init__(self, raw: Dict[str, Any], parent: Optional[Node] = None) -> None:
        super().__init__(raw, parent)
        self.linearized_base_contracts: List["ContractDefinition"] = []

    def resolve(self, index: Dict[int, Node]) -> None:
        super().resolve(index)
        # Unresolvable bases are dropped; the contract itself is always first
        bases = [index.get(i) for i in self.raw.get("linearizedBaseContracts", [])]
        self.linearized_base_contracts = [
            b for b in bases if isinstance(b, ContractDefinition)
        ] or [self]

    @property
    def name(self) -> str:
        return self.raw.get("name", "")

    @property
    def kind(self) -> str:
        return self.raw.get("contractKind", "contract")

    @property
    def abstract(self) -> bool:
        return bool(self.raw.get("abstract", False))

    @property
    def fully_implemented(self) -> bool:
        return bool(self.raw.get("fullyImplemented", True))

    def _members(self, cls: Type[N]) -> List[N]:
        return [n for n in self.field_list("nodes") if isinstance(n, cls)]

    @property
    def state_variables(self) -> List["VariableDeclaration"]:
        return self._members(VariableDeclaration)

    @property
    def functions(self) -> List["FunctionDefinition"]:
        return self._members(FunctionDefinition)

    @property
    def modifiers(self) -> List["ModifierDefinition"]:
        return self._members(ModifierDefinition)

    @property
    def events(self) -> List["EventDefinition"]:
        return self._members(EventDefinition)

    @property
    def structs(self) -> List["StructDefinition"]:
        return self._members(StructDefinition)

    @property
    def errors(self) -> List["ErrorDefinition"]:
        return self._members(ErrorDefinition)

    @property
    def enums(self) -> List["EnumDefinition"]:
        return self._members(EnumDefinition)

    @property
    def user_defined_value_types(self) -> List["UserDefinedValueTypeDefinition"]:
        return self._members(UserDefinedValueTypeDefinition)


class ParameterList(Node):
    @property
    def parameters(self) -> List["VariableDeclaration"]:
        return [n for n in self.field_list("parameters") if isinstance(n, VariableDeclaration)]


class FunctionDefinition(Node):
    @property
    def name(self) -> str:
        return self.raw.get("name", "")

    @property
    def kind(self) -> str:
        if "kind" in self.raw:
            return self.raw["kind"]
        return "constructor" if self.raw.get("isConstructor") else "function"

    @property
    def visibility(self) -> str:
        return self.raw.get("visibility", "")

    @property
    def state_mutability(self) -> str:
        return self.raw.get("stateMutability", "nonpayable")

    @property
    def implemented(self) -> bool:
        return bool(self.raw.get("implemented", self.body is not None))

    @property
    def body(self) -> Optional[Node]:
        return self.field("body")

    @property
    def parameters(self) -> List["VariableDeclaration"]:
        params = self.field("parameters")
        return params.parameters if isinstance(params, ParameterList) else []

    @property
    def return_parameters(self) -> List["VariableDeclaration"]:
        params = self.field("returnParameters")
        return params.parameters if isinstance(params, ParameterList) else []

    @property
    def is_static(self) -> bool:
        return self.state_mutability in ("pure", "view", "constant")

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        if self.kind in ("constructor", "fallback", "receive"):
            return self.kind
        return "Unknown"

    @property
    def contract(self) -> Optional[ContractDefinition]:
        return self.closest_parent(ContractDefinition)


class ModifierDefinition(Node):
    @property
    def name(self) -> str:
        return self.raw.get("name", "")

    @property
    def visibility(self) -> str:
        return self.raw.get("visibility", "internal")

    @property
    def body(self) -> Optional[Node]:
        return self.field("body")

    @property
    def display_name(self) -> str:
        return self.name

    @property
    def contract(self) -> Optional[ContractDefinition]:
        return self.closest_parent(ContractDefinition)


class ModifierInvocation(Node):
    @property
    def modifier_name(self) -> Optional[Node]:
        return self.field("modifierName")


class VariableDeclaration(Node):
    @property
    def name(self) -> str:
        return self.raw.get("name", "")

    @property
    def visibility(self) -> str:
        return self.raw.get("visibility", "internal")

    @property
    def mutability(self) -> str:
        if "mutability" in self.raw:
            return self.raw["mutability"]
        return "constant" if self.raw.get("constant") else "mutable"

    @property
    def constant(self) -> bool:
        return bool(self.raw.get("constant", False))

    @property
    def state_variable(self) -> bool:
        return bool(self.raw.get("stateVariable", False))

    @property
    def is_storage_free(self) -> bool:
        """Constants and immutables never occupy a storage slot."""
        return self.constant or self.mutability in ("constant", "immutable")

    @property
    def type_name(self) -> Optional[Node]:
        return self.field("typeName")


class StructDefinition(Node):
    @property
    def name(self) -> str:
        return self.raw.get("name", "")

    @property
    def canonical_name(self) -> str:
        return self.raw.get("canonicalName", self.name)

    @property
    def members(self) -> List[VariableDeclaration]:
        return [n for n in self.field_list("members") if isinstance(n, VariableDeclaration)]


class EnumDefinition(Node):
    @property
    def name(self) -> str:
        return self.raw.get("name", "")


class EventDefinition(Node):
    @property
    def name(self) -> str:
        return self.raw.get("name", "")


class ErrorDefinition(Node):
    @property
    def name(self) -> str:
        return self.raw.get("name", "")


class UserDefinedValueTypeDefinition(Node):
    @property
    def name(self) -> str:
        return self.raw.get("name", "")

    @property
    def underlying_type(self) -> Optional[Node]:
        return self.field("underlyingType")


class ElementaryTypeName(Node):
    @property
    def name(self) -> str:
        return self.raw.get("name", "")


class UserDefinedTypeName(Node):
    @property
    def name(self) -> str:
        path = self.field("pathNode")
        if isinstance(path, IdentifierPath):
            return path.name
        return self.raw.get("name", "")


class IdentifierPath(Node):
    @property
    def name(self) -> str:
        return self.raw.get("name", "")


class Identifier(Node):
    @property
    def name(self) -> str:
        return self.raw.get("name", "")


class MemberAccess(Node):
    @property
    def member_name(self) -> str:
        return self.raw.get("memberName", "")

    @property
    def expression(self) -> Optional[Node]:
        return self.field("expression")


class FunctionCallOptions(Node):
    @property
    def expression(self) -> Optional[Node]:
        return self.field("expression")

    @property
    def option_names(self) -> List[str]:
        return list(self.raw.get("names", []))


class FunctionCall(Node):
    @property
    def kind(self) -> str:
        return self.raw.get("kind", "functionCall")

    @property
    def expression(self) -> Optional[Node]:
        return self.field("expression")

    @property
    def arguments(self) -> List[Node]:
        return self.field_list("arguments")

    @property
    def callee(self) -> Optional[Node]:
        return unwrap_call_options(self.expression)

    @property
    def referenced_declaration(self) -> Optional[Node]:
        callee = self.callee
        return callee.referenced_declaration if callee is not None else None


def unwrap_call_options(expr: Optional[Node]) -> Optional[Node]:
    """
    Strip call-option wrappers from a callee expression.

    Handles ``x.f{value: v, gas: g}`` (FunctionCallOptions) and the legacy
    ``x.f.value(v)`` / ``x.f.gas(g)`` call shapes, in any nesting.

    Args:
        expr: The ``expression`` of a FunctionCall

    Returns:
        The innermost MemberAccess, Identifier or IdentifierPath naming the
        call target, or None for any other callee shape
    """
    if isinstance(expr, FunctionCallOptions):
        return unwrap_call_options(expr.expression)
    if isinstance(expr, FunctionCall):
        inner = expr.expression
        if (
            isinstance(inner, MemberAccess)
            and inner.member_name in LEGACY_OPTION_MEMBERS
            and inner.referenced_declaration is None
        ):
            return unwrap_call_options(inner.expression)
        return None
    if isinstance(expr, (MemberAccess, Identifier, IdentifierPath)):
        return expr
    return None


NODE_TYPES: Dict[str, Type[Node]] = {
    cls.__name__: cls
    for cls in (
        SourceUnit,
        ContractDefinition,
        ParameterList,
        FunctionDefinition,
        ModifierDefinition,
        ModifierInvocation,
        VariableDeclaration,
        StructDefinition,
        EnumDefinition,
        EventDefinition,
        ErrorDefinition,
        UserDefinedValueTypeDefinition,
        ElementaryTypeName,
        UserDefinedTypeName,
        IdentifierPath,
        Identifier,
        MemberAccess,
        FunctionCallOptions,
        FunctionCall,
    )
}

CallableDefinition = Union[FunctionDefinition, ModifierDefinition]
