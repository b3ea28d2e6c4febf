import pytest

from slotscope.core.nodes import (
    ContractDefinition,
    FunctionCall,
    FunctionCallOptions,
    FunctionDefinition,
    Identifier,
    MemberAccess,
    Node,
    SourceUnit,
    unwrap_call_options,
)
from slotscope.core.reader import ASTReader, read_source_units
from slotscope.errors import ArtifactError


@pytest.fixture
def simple_unit(ast):
    helper = ast.function("helper", visibility="internal")
    run = ast.function("run", [ast.internal_call(helper)])
    return ast.source_unit("src/C.sol", [ast.contract("C", [helper, run])])


def test_reads_foundry_build_info(ast, simple_unit):
    units = ASTReader().read(ast.build_info([simple_unit]))

    assert len(units) == 1
    unit = units[0]
    assert isinstance(unit, SourceUnit)
    assert unit.absolute_path == "src/C.sol"
    contract = unit.contracts[0]
    assert isinstance(contract, ContractDefinition)
    assert [f.name for f in contract.functions] == ["helper", "run"]


def test_reads_solc_standard_output(simple_unit):
    output = {"sources": {"src/C.sol": {"id": 0, "AST": simple_unit}}}
    units = read_source_units(output)
    assert units[0].contracts[0].name == "C"


def test_reads_bare_mapping(simple_unit):
    units = read_source_units({"src/C.sol": simple_unit})
    assert units[0].absolute_path == "src/C.sol"


@pytest.mark.parametrize(
    "output",
    [
        [],
        {"sources": {"src/C.sol": {"id": 0}}},
        {"src/C.sol": {"nodeType": "ContractDefinition", "id": 1}},
    ],
)
def test_malformed_output_raises(output):
    with pytest.raises(ArtifactError):
        ASTReader().read(output)


def test_references_are_resolved(ast, simple_unit):
    contract = read_source_units(ast.build_info([simple_unit]))[0].contracts[0]
    helper, run = contract.functions

    call = run.descendants_of_type(FunctionCall)[0]
    assert call.referenced_declaration is helper
    assert call.callee.reference_id == helper.id


def test_cross_unit_bases_are_resolved(ast):
    base = ast.contract("Base", [ast.variable("x", "uint256")])
    child = ast.contract("Child", bases=[base])
    units = read_source_units(ast.build_info([
        ast.source_unit("src/Base.sol", [base]),
        ast.source_unit("src/Child.sol", [child]),
    ]))
    child_def = units[1].contracts[0]

    assert [c.name for c in child_def.linearized_base_contracts] == ["Child", "Base"]
    assert child_def.linearized_base_contracts[1].absolute_path == "src/Base.sol"


def test_missing_bases_fall_back_to_self(ast):
    contract = ast.contract("C")
    contract["linearizedBaseContracts"] = [contract["id"], 424242]
    units = read_source_units(ast.build_info([ast.source_unit("src/C.sol", [contract])]))
    c = units[0].contracts[0]

    assert c.linearized_base_contracts == [c]


def test_parent_links_and_walk_order(ast, simple_unit):
    unit = read_source_units(ast.build_info([simple_unit]))[0]
    run = unit.contracts[0].functions[1]
    call = run.descendants_of_type(FunctionCall)[0]

    assert call.closest_parent(FunctionDefinition) is run
    assert call.source_unit is unit
    assert run.contract.name == "C"

    # a call expression is visited before its callee
    walked = [n for n in run.walk() if isinstance(n, (FunctionCall, Identifier))]
    assert isinstance(walked[0], FunctionCall)
    assert isinstance(walked[1], Identifier)


def test_unknown_node_types_keep_children(ast):
    inner_call = ast.call(ast.identifier("f"))
    unchecked = {"nodeType": "UncheckedBlock", "id": ast.next_id(), "src": "0:0:0",
                 "statements": [ast.stmt(inner_call)]}
    fn = ast.function("run", [unchecked])
    units = read_source_units(ast.build_info([ast.source_unit("src/C.sol", [ast.contract("C", [fn])])]))
    run = units[0].contracts[0].functions[0]

    block = run.body.children[0]
    assert type(block) is Node
    assert block.node_type == "UncheckedBlock"
    assert len(run.descendants_of_type(FunctionCall)) == 1


def test_source_text_uses_byte_offsets(ast):
    content = "// é\ncontract C {}"
    start = len("// é\n".encode("utf-8"))
    contract = ast.contract("C")
    contract["src"] = f"{start}:{len('contract C {}')}:0"
    unit = ast.source_unit("src/C.sol", [contract])
    units = read_source_units(ast.build_info([unit], {"src/C.sol": content}))

    assert units[0].contracts[0].source_text == "contract C {}"


def test_source_text_without_content_is_empty(ast, simple_unit):
    unit = read_source_units({"src/C.sol": simple_unit})[0]
    assert unit.contracts[0].source_text == ""


def test_unwrap_call_options(ast):
    target = ast.member(ast.identifier("to", type_string="address"), "call")
    with_options = ast.call(ast.call_options(target, ["value", "gas"]), [ast.literal()])
    fn = ast.function("run", [ast.stmt(with_options)])
    units = read_source_units({"src/C.sol": ast.source_unit("src/C.sol", [ast.contract("C", [fn])])})
    call = units[0].contracts[0].functions[0].descendants_of_type(FunctionCall)[0]

    assert isinstance(call.expression, FunctionCallOptions)
    assert call.expression.option_names == ["value", "gas"]
    callee = unwrap_call_options(call.expression)
    assert isinstance(callee, MemberAccess)
    assert callee.member_name == "call"
    assert unwrap_call_options(None) is None
