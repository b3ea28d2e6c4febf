import pytest
from typing import Any, Dict, List, Optional, Sequence

from slotscope.core.reader import ASTReader


class AstBuilder:
    """Builds solc compact-JSON AST dictionaries with unique node ids."""

    def __init__(self):
        self._next_id = 1

    def next_id(self) -> int:
        node_id = self._next_id
        self._next_id += 1
        return node_id

    def _node(self, node_type: str, node_id: Optional[int] = None, **fields) -> Dict[str, Any]:
        node = {
            "nodeType": node_type,
            "id": node_id if node_id is not None else self.next_id(),
            "src": fields.pop("src", "0:0:0"),
        }
        node.update(fields)
        return node

    # --- Declarations ---

    def source_unit(self, path: str, nodes: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
        return self._node("SourceUnit", absolutePath=path, nodes=list(nodes))

    def contract(
        self,
        name: str,
        nodes: Sequence[Dict[str, Any]] = (),
        kind: str = "contract",
        abstract: bool = False,
        bases: Sequence[Dict[str, Any]] = (),
        fully_implemented: bool = True,
        node_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """``bases`` are the linearized bases after the contract itself, most derived first."""
        node_id = node_id if node_id is not None else self.next_id()
        return self._node(
            "ContractDefinition",
            node_id,
            name=name,
            contractKind=kind,
            abstract=abstract,
            fullyImplemented=fully_implemented,
            linearizedBaseContracts=[node_id] + [b["id"] for b in bases],
            baseContracts=[],
            nodes=list(nodes),
        )

    def elementary(self, type_string: str) -> Dict[str, Any]:
        return self._node(
            "ElementaryTypeName",
            name=type_string,
            typeDescriptions={"typeString": type_string},
        )

    def user_type(self, declaration: Dict[str, Any], type_string: str) -> Dict[str, Any]:
        return self._node(
            "UserDefinedTypeName",
            referencedDeclaration=declaration["id"],
            pathNode=self._node(
                "IdentifierPath",
                name=declaration.get("name", ""),
                referencedDeclaration=declaration["id"],
            ),
            typeDescriptions={"typeString": type_string},
        )

    def variable(
        self,
        name: str,
        type_string: str,
        type_name: Optional[Dict[str, Any]] = None,
        state: bool = True,
        mutability: str = "mutable",
        constant: bool = False,
        visibility: str = "internal",
        src: str = "0:0:0",
    ) -> Dict[str, Any]:
        return self._node(
            "VariableDeclaration",
            name=name,
            src=src,
            stateVariable=state,
            mutability=mutability,
            constant=constant,
            visibility=visibility,
            storageLocation="default",
            typeName=type_name or self.elementary(type_string),
            typeDescriptions={"typeString": type_string},
        )

    def struct(
        self,
        name: str,
        members: Sequence[Dict[str, Any]],
        contract_name: str = "C",
        node_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        return self._node(
            "StructDefinition",
            node_id,
            name=name,
            canonicalName=f"{contract_name}.{name}",
            members=list(members),
        )

    def struct_variable(
        self, name: str, struct: Dict[str, Any], state: bool = True
    ) -> Dict[str, Any]:
        type_string = f"struct {struct['canonicalName']}"
        return self.variable(
            name,
            type_string,
            type_name=self.user_type(struct, type_string),
            state=state,
        )

    def field(self, name: str, type_string: str) -> Dict[str, Any]:
        return self.variable(name, type_string, state=False)

    def value_type(self, name: str, underlying: str) -> Dict[str, Any]:
        return self._node(
            "UserDefinedValueTypeDefinition",
            name=name,
            underlyingType=self.elementary(underlying),
        )

    def named(self, node_type: str, name: str, src: str = "0:0:0") -> Dict[str, Any]:
        return self._node(node_type, name=name, src=src)

    def parameters(self, params: Sequence[Dict[str, Any]] = ()) -> Dict[str, Any]:
        return self._node("ParameterList", parameters=list(params))

    def function(
        self,
        name: str,
        statements: Sequence[Dict[str, Any]] = (),
        visibility: str = "public",
        mutability: str = "nonpayable",
        kind: str = "function",
        params: Sequence[str] = (),
        returns: Sequence[str] = (),
        implemented: bool = True,
        modifiers: Sequence[Dict[str, Any]] = (),
        node_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        node = self._node(
            "FunctionDefinition",
            node_id,
            name=name,
            kind=kind,
            visibility=visibility,
            stateMutability=mutability,
            implemented=implemented,
            parameters=self.parameters(
                [self.variable(f"p{i}", t, state=False) for i, t in enumerate(params)]
            ),
            returnParameters=self.parameters(
                [self.variable("", t, state=False) for t in returns]
            ),
            modifiers=list(modifiers),
        )
        if implemented:
            node["body"] = self.block(statements)
        return node

    def modifier(self, name: str, statements: Sequence[Dict[str, Any]] = ()) -> Dict[str, Any]:
        return self._node(
            "ModifierDefinition",
            name=name,
            visibility="internal",
            parameters=self.parameters(),
            body=self.block(list(statements) + [self._node("PlaceholderStatement")]),
        )

    def invoke_modifier(self, modifier: Dict[str, Any]) -> Dict[str, Any]:
        return self._node(
            "ModifierInvocation",
            modifierName=self._node(
                "IdentifierPath",
                name=modifier["name"],
                referencedDeclaration=modifier["id"],
            ),
        )

    # --- Statements and expressions ---

    def block(self, statements: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
        return self._node("Block", statements=list(statements))

    def stmt(self, expression: Dict[str, Any]) -> Dict[str, Any]:
        return self._node("ExpressionStatement", expression=expression)

    def identifier(
        self, name: str, ref: Optional[int] = None, type_string: Optional[str] = None
    ) -> Dict[str, Any]:
        node = self._node("Identifier", name=name)
        if ref is not None:
            node["referencedDeclaration"] = ref
        if type_string is not None:
            node["typeDescriptions"] = {"typeString": type_string}
        return node

    def member(
        self,
        expression: Dict[str, Any],
        member_name: str,
        ref: Optional[int] = None,
        type_string: Optional[str] = None,
    ) -> Dict[str, Any]:
        node = self._node("MemberAccess", expression=expression, memberName=member_name)
        if ref is not None:
            node["referencedDeclaration"] = ref
        if type_string is not None:
            node["typeDescriptions"] = {"typeString": type_string}
        return node

    def literal(self, value: str = "0") -> Dict[str, Any]:
        return self._node("Literal", kind="number", value=value)

    def call(
        self,
        expression: Dict[str, Any],
        arguments: Sequence[Dict[str, Any]] = (),
        kind: str = "functionCall",
        type_string: Optional[str] = None,
    ) -> Dict[str, Any]:
        node = self._node(
            "FunctionCall", expression=expression, arguments=list(arguments), kind=kind
        )
        if type_string is not None:
            node["typeDescriptions"] = {"typeString": type_string}
        return node

    def call_options(self, expression: Dict[str, Any], names: Sequence[str]) -> Dict[str, Any]:
        return self._node(
            "FunctionCallOptions",
            expression=expression,
            names=list(names),
            options=[self.literal("1") for _ in names],
        )

    def internal_call(self, target: Dict[str, Any]) -> Dict[str, Any]:
        """``target();`` as an expression statement."""
        return self.stmt(self.call(self.identifier(target["name"], ref=target["id"])))

    def external_call(
        self, receiver_type: str, target: Dict[str, Any], receiver: str = "token"
    ) -> Dict[str, Any]:
        """``receiver.target();`` through a receiver of the given type."""
        return self.stmt(
            self.call(
                self.member(
                    self.identifier(receiver, type_string=receiver_type),
                    target["name"],
                    ref=target["id"],
                )
            )
        )

    def low_level_call(self, member_name: str = "call", options: Sequence[str] = ()) -> Dict[str, Any]:
        """``to.<member>{options}("")`` on an address receiver."""
        callee = self.member(
            self.identifier("to", type_string="address payable"), member_name, ref=None
        )
        if options:
            callee = self.call_options(callee, options)
        return self.stmt(self.call(callee, [self.literal()]))

    # --- Compiler output shapes ---

    @staticmethod
    def build_info(
        units: Sequence[Dict[str, Any]], contents: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        contents = contents or {}
        return {
            "input": {
                "language": "Solidity",
                "sources": {
                    u["absolutePath"]: {"content": contents.get(u["absolutePath"], "")}
                    for u in units
                },
            },
            "output": {
                "sources": {
                    u["absolutePath"]: {"id": i, "ast": u} for i, u in enumerate(units)
                }
            },
        }


@pytest.fixture
def ast():
    return AstBuilder()


@pytest.fixture
def read_units():
    """Read AST dictionaries through the real reader."""

    def _read(units: List[Dict[str, Any]], contents: Optional[Dict[str, str]] = None):
        return ASTReader().read(AstBuilder.build_info(units, contents))

    return _read


@pytest.fixture
def read_contract(read_units):
    """Read one source unit and return the named contract."""

    def _read(unit: Dict[str, Any], name: str, contents: Optional[Dict[str, str]] = None):
        for source_unit in read_units([unit], contents):
            for contract in source_unit.contracts:
                if contract.name == name:
                    return contract
        raise KeyError(name)

    return _read
