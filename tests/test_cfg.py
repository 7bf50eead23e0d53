"""
Tests for CFG construction and structural validation.
"""

import pytest

from livescan.intermediate_representation.cfg import StructuralError, build_cfg
from livescan.intermediate_representation.ir import BasicBlock, Function, Instruction
from livescan.parsing.parser import parse_module


def br(*targets):
    return Instruction("br", operands=targets, targets=targets)


def test_edges_follow_terminators():
    func = Function(
        "f",
        (
            BasicBlock("a", (br("b", "c"),)),
            BasicBlock("b", (br("c"),)),
            BasicBlock("c", (Instruction("ret"),)),
        ),
    )
    cfg = build_cfg(func)
    assert cfg.entry == 0
    assert cfg.successors(0) == [1, 2]
    assert cfg.predecessors(2) == [0, 1]
    assert cfg.exits == [2]
    assert cfg.node_id("b") == 1


def test_duplicate_targets_give_a_single_edge():
    func = Function(
        "f",
        (
            BasicBlock("a", (br("b", "b"),)),
            BasicBlock("b", (Instruction("unreachable"),)),
        ),
    )
    cfg = build_cfg(func)
    assert cfg.successors(0) == [1]
    assert cfg.predecessors(1) == [0]


def test_self_loop_edge():
    cfg = build_cfg(Function("f", (BasicBlock("l", (br("l"),)),)))
    assert cfg.successors(0) == [0]
    assert cfg.predecessors(0) == [0]


def test_add_edge_rejects_unknown_nodes():
    cfg = build_cfg(Function("f", (BasicBlock("a", (Instruction("ret"),)),)))
    with pytest.raises(KeyError):
        cfg.add_edge(0, 7)


@pytest.mark.parametrize(
    "blocks, message",
    [
        ((BasicBlock("a"),), "is empty"),
        ((BasicBlock("a", (Instruction("add", ("x",), "y"),)),), "does not end with a terminator"),
        (
            (BasicBlock("a", (Instruction("ret"), Instruction("ret"))),),
            "in the middle of block",
        ),
        ((BasicBlock("a", (br("nowhere"),)),), "unknown block 'nowhere'"),
        (
            (BasicBlock("a", (Instruction("ret"),)), BasicBlock("a", (Instruction("ret"),))),
            "duplicate block name",
        ),
    ],
)
def test_malformed_functions_are_rejected(blocks, message):
    with pytest.raises(StructuralError, match=message) as excinfo:
        build_cfg(Function("bad", blocks))
    assert excinfo.value.function == "bad"


def test_exception_handling_terminators_end_blocks():
    func = parse_module(
        "define void @f() personality ptr @p {\n"
        "entry:\n"
        "  invoke void @g() to label %done unwind label %dispatch\n"
        "dispatch:\n"
        "  %cs = catchswitch within none [label %handler] unwind to caller\n"
        "handler:\n"
        "  %tok = catchpad within %cs [ptr null]\n"
        "  catchret from %tok to label %done\n"
        "done:\n"
        "  ret void\n"
        "}\n"
    ).by_name()["f"]
    cfg = build_cfg(func)
    names = [node.name for node in cfg]
    assert names == ["entry", "dispatch", "handler", "done"]
    assert [cfg.nodes[s].name for s in cfg.successors(1)] == ["handler"]
    assert [cfg.nodes[s].name for s in cfg.successors(2)] == ["done"]
    assert cfg.exits == [3]
