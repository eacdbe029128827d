import pytest

from src.isa_xform.ast import Expr, Imm, Instruction, Mem, Reg
from src.isa_xform.loader import load_by_name, load_from_document
from src.isa_xform.parser import parse
from src.isa_xform.pseudo import expand, substitute

RV32I = load_by_name("rv32i")
ZX16 = load_by_name("zx16")

def _expand(src, isa):
    nodes, diags = parse(src, isa)
    assert diags == []
    return expand(nodes, isa)

@pytest.mark.parametrize("template,bindings,expected", [
    ("ADDI rd, rd, imm", {"rd": "a0", "imm": "5"}, "ADDI a0, a0, 5"),
    ("LW rd, 0(rs)", {"rs": "x2", "rd": "x1"}, "LW x1, 0(x2)"),
    # 'rs' no debe tocar 'rs2'
    ("ADD rd, rs2, rs", {"rs": "x5", "rd": "x1"}, "ADD x1, rs2, x5"),
    ("RET", {}, "RET"),
    ("JR x1", {"rd": "x3"}, "JR x1"),
])
def test_substitute(template, bindings, expected):
    assert substitute(template, bindings) == expected

def test_rv32i_expansions():
    src = "nop\nmv a0, a1\nneg a2, a3\nnot a4, a5\nli t0, 100\nret\njr t1\nadd x1, x2, x3"
    out, diags = _expand(src, RV32I)
    assert diags == []
    assert [n.mnemonic for n in out] == ["ADDI", "ADDI", "SUB", "XORI", "ADDI", "JALR", "JALR", "add"]
    assert [n.expanded_from for n in out] == ["NOP", "MV", "NEG", "NOT", "LI", "RET", "JR", None]

    mv = out[1]
    assert mv.operands == (Reg("x10", 10), Reg("x11", 11), Imm(0))
    assert mv.line == 2
    assert out[6].operands == (Reg("x0", 0), Mem(Reg("x6", 6), Imm(0)))

def test_multi_line_expansion_keeps_source_line():
    out, diags = _expand("  PUSH s0\n  POP a0", ZX16)
    assert diags == []
    assert [(n.mnemonic, n.line) for n in out] == [("ADDI", 1), ("SW", 1), ("LW", 2), ("ADDI", 2)]
    assert out[1].operands == (Reg("x3", 3), Mem(Reg("x2", 2), Imm(0)))
    assert all(n.col == 3 for n in out)

def test_li16_splits_constant():
    out, _ = _expand("LI16 x1, 0x1234", ZX16)
    lui, addi = out
    assert lui.operand_texts == ("x1", "(0x1234 + 0x40) & 0xFF80")
    assert lui.operands[1].expression.evaluate({}) == 0x1200
    assert addi.operands[1].expression.evaluate({}) == 0x34

def test_compound_operands_are_parenthesized():
    out, _ = _expand("LI16 a0, BASE+4", ZX16)
    assert out[0].operand_texts[1] == "((BASE+4) + 0x40) & 0xFF80"
    e = out[0].operands[1]
    assert isinstance(e, Expr) and e.names == ("BASE",)
    assert e.expression.evaluate({"BASE": 0x0FFC}) == 0x1000

def test_real_instruction_wins_over_pseudo(minimal_doc):
    minimal_doc["pseudo_instructions"] = [{"mnemonic": "ADD", "syntax": "ADD rd, rs",
                                           "expansion": "ADD rd, rd, rs"}]
    isa = load_from_document(minimal_doc)
    out, diags = _expand("ADD x1, x2\nADD x1, x2, x3", isa)
    assert diags == []
    assert out[0].operands == (Reg("x1", 1), Reg("x1", 1), Reg("x2", 2))
    assert out[0].expanded_from == "ADD"
    assert out[1].expanded_from is None

def test_wrong_operand_count_is_left_alone():
    out, diags = _expand("NOP x1\nRET x1, x2", ZX16)
    assert diags == []
    assert [n.mnemonic for n in out] == ["NOP", "RET"]

def test_malformed_nodes_are_not_expanded():
    nodes, diags = parse("mv a0, 4(foo)", RV32I)
    assert len(diags) == 1
    out, more = expand(nodes, RV32I)
    assert more == [] and out == nodes

def test_expansion_errors_point_at_the_pseudo():
    out, diags = _expand("  jr 5", RV32I)
    assert len(diags) == 1
    assert diags[0].message.endswith("(expansión de jr)")
    assert diags[0].line == 1 and diags[0].col == 3
    assert isinstance(out[0], Instruction) and out[0].malformed
