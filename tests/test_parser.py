"""
Tests for the textual IR parser.
"""

from pathlib import Path

import pytest

from livescan.intermediate_representation.ir import Category
from livescan.parsing.parser import IRParseError, parse_file, parse_instruction, parse_module, resolve_value

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.mark.parametrize(
    "token, expected",
    [
        ("%x", "x"),
        ("@printf", "printf"),
        ("%.str", ".str"),
        ('%"a b"', "a b"),
        ("%0", None),
        ("%12", None),
        ("42", None),
        ("undef", None),
        ("null", None),
        ('%""', None),
    ],
)
def test_resolve_value(token, expected):
    assert resolve_value(token) == expected


def test_store_operands_and_category():
    instr = parse_instruction("store i32 %v, ptr %p, align 4")
    assert instr.opcode == "store"
    assert instr.category is Category.STORE
    assert instr.operands == ("v", "p")
    assert instr.result is None


def test_load_skips_leading_type():
    assert parse_instruction("%r = load i32, ptr %p, align 4").operands == ("p",)
    assert parse_instruction("%r = load i32* %p").operands == ("p",)


def test_numbered_result_is_unnamed():
    instr = parse_instruction("%3 = add nsw i32 %a, %2")
    assert instr.result is None
    assert instr.operands == ("a", None)


def test_conditional_branch():
    instr = parse_instruction("br i1 %c, label %then, label %else, !llvm.loop !7")
    assert instr.category is Category.BRANCH
    assert instr.is_terminator
    assert instr.operands == ("c", "then", "else")
    assert instr.targets == ("then", "else")


def test_branch_to_numbered_label():
    instr = parse_instruction("br label %5")
    assert instr.operands == (None,)
    assert instr.targets == ("5",)


def test_call_puts_callee_last():
    instr = parse_instruction("%r = tail call i32 (ptr, ...) @printf(ptr noundef @.str, i32 %x)")
    assert instr.opcode == "call"
    assert instr.operands == (".str", "x", "printf")
    assert instr.result == "r"


def test_invoke_has_two_targets():
    instr = parse_instruction("invoke void @f(i32 %a) to label %ok unwind label %lpad")
    assert instr.is_terminator
    assert instr.targets == ("ok", "lpad")
    assert instr.operands == ("a", "ok", "lpad", "f")


def test_phi_takes_incoming_values_only():
    instr = parse_instruction("%r = phi i32 [ %x, %first ], [ 0, %other ]")
    assert instr.operands == ("x", None)


def test_cast_and_gep():
    assert parse_instruction("%w = sext i32 %n to i64").operands == ("n",)
    gep = parse_instruction("%e = getelementptr inbounds [4 x i32], ptr %arr, i64 0, i64 %i")
    assert gep.operands == ("arr", None, "i")


def test_ret_forms():
    assert parse_instruction("ret void").operands == ()
    assert parse_instruction("ret i32 %x, !dbg !3").operands == ("x",)


def test_fixture_module_structure():
    module = parse_file(FIXTURES / "loop.ll")
    names = [func.name for func in module]
    assert names == ["sum", "printf"]
    sum_fn, printf_fn = module.functions
    assert printf_fn.is_declaration
    assert [block.name for block in sum_fn] == ["entry", "cond", "body", "done"]
    assert sum_fn.blocks[1].successor_names == ("body", "done")
    assert sum_fn.blocks[0].instructions[0].line == 9
    assert {"n", "i", "acc", "printf", ".str"} <= sum_fn.variables()
    assert "" not in sum_fn.variables()


def test_multiline_switch_is_joined():
    module = parse_file(FIXTURES / "switch.ll")
    entry = module.by_name()["pick"].blocks[0]
    (switch,) = entry.instructions
    assert switch.opcode == "switch"
    assert switch.targets == ("other", "first", "second")
    assert switch.operands == ("sel", "other", None, "first", None, "second")


def test_unlabelled_first_block_is_entry():
    module = parse_module("define void @f() {\n  ret void\n}\n")
    assert module.functions[0].blocks[0].name == "entry"


def test_comments_are_ignored():
    module = parse_module(
        "; leading comment\n"
        "define void @f() { ; trailing\n"
        "start:        ; preds = none\n"
        "  ret void    ; done\n"
        "}\n"
    )
    (func,) = module.functions
    assert func.blocks[0].name == "start"


@pytest.mark.parametrize(
    "source, line",
    [
        ("define void @f() {\nentry:\n  ret void\n", 1),
        ("define void @f()\n", 1),
        ("define void @f() {\nentry:\n  br i1 %c, label %a\n}\n", 3),
        ("define void @f() {\nentry:\n  %x = call i32 %y\n}\n", 3),
        ("define void @f() {\ndefine void @g() {\n}\n", 2),
    ],
)
def test_parse_errors_carry_line_numbers(source, line):
    with pytest.raises(IRParseError) as excinfo:
        parse_module(source)
    assert excinfo.value.line == line
    assert f"line {line}" in str(excinfo.value)


def test_quoted_names_with_spaces():
    instr = parse_instruction('%"sum total" = add i32 %"my var", 1')
    assert instr.result == "sum total"
    assert instr.operands == ("my var", None)
    store = parse_instruction('store i32 %"my var", ptr %"the slot", align 4')
    assert store.operands == ("my var", "the slot")


def test_quoted_labels_with_spaces():
    instr = parse_instruction('br i1 %c, label %"then block", label %"else block"')
    assert instr.targets == ("then block", "else block")
    switch = parse_instruction('switch i32 %v, label %"no match" [ i32 0, label %"case zero" ]')
    assert switch.targets == ("no match", "case zero")
    module = parse_module(
        "define void @f() {\n"
        "entry:\n"
        '  br label %"next block"\n'
        '"next block":\n'
        "  ret void\n"
        "}\n"
    )
    (func,) = module.functions
    assert [block.name for block in func] == ["entry", "next block"]
    assert func.blocks[0].successor_names == ("next block",)


def test_atomic_accesses_keep_pointer_operand():
    store = parse_instruction("store atomic i32 %v, ptr %p seq_cst, align 4")
    assert store.operands == ("v", "p")
    load = parse_instruction("%r = load atomic i32, ptr %p acquire, align 4")
    assert load.operands == ("p",)
    scoped = parse_instruction('store atomic i32 %v, ptr %p syncscope("agent") release, align 4')
    assert scoped.operands == ("v", "p")


def test_exception_handling_terminators():
    catchret = parse_instruction("catchret from %tok to label %cont")
    assert catchret.is_terminator
    assert catchret.targets == ("cont",)
    assert catchret.operands == ("tok", "cont")
    cleanup = parse_instruction("cleanupret from %pad unwind label %next")
    assert cleanup.targets == ("next",)
    to_caller = parse_instruction("cleanupret from %pad unwind to caller")
    assert to_caller.targets == ()
    assert to_caller.operands == ("pad",)
    switch = parse_instruction("%cs = catchswitch within none [label %h1, label %h2] unwind to caller")
    assert switch.result == "cs"
    assert switch.targets == ("h1", "h2")


def test_callbr_with_inline_asm():
    instr = parse_instruction('callbr void asm "", "r,!i"(i32 %x) to label %normal [label %indirect]')
    assert instr.is_terminator
    assert instr.targets == ("normal", "indirect")
    assert instr.operands == ("x", "normal", "indirect", None)
