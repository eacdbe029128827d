from src.isa_xform.ast import Comment, Directive, Expr, Imm, Instruction, Label, Mem, Reg, Sym
from src.isa_xform.loader import load_by_name
from src.isa_xform.parser import parse, parse_operand

RV32I = load_by_name("rv32i")
SIMPLE = load_by_name("simple_risc")
ZX16 = load_by_name("zx16")

def _kinds(nodes):
    return [type(n).__name__ for n in nodes]

def test_parse_basic_rv32i():
    src = """
    .text
start:
    addi a0, x0, 5     # decimal
    lw   t0, 8(a0)
    jalr x0, (ra)
loop: addi t0, t0, -1 ; fin
    """
    nodes, diags = parse(src, RV32I)
    assert diags == []
    assert _kinds(nodes) == ["Directive", "Label", "Instruction", "Instruction", "Instruction",
                             "Label", "Instruction"]

    addi = nodes[2]
    assert addi.mnemonic == "addi"   # se conserva tal cual
    assert addi.operands == (Reg("x10", 10), Reg("x0", 0), Imm(5))
    assert addi.line == 4 and addi.col == 5

    assert nodes[3].operands[1] == Mem(base=Reg("x10", 10), offset=Imm(8))
    assert nodes[4].operands[1] == Mem(base=Reg("x1", 1), offset=Imm(0))
    assert nodes[5] == Label(name="loop", line=7, col=1)
    assert nodes[6].operands[2] == Imm(-1)

def test_several_labels_on_one_line():
    nodes, diags = parse("a: b:   nop", RV32I)
    assert diags == []
    assert [n.name for n in nodes if isinstance(n, Label)] == ["a", "b"]
    assert nodes[2].mnemonic == "nop" and nodes[2].operands == ()

def test_symbols_and_expressions():
    nodes, _ = parse("addi a0, a0, CONST+1\naddi a1, a1, foo\nlw t0, buf+4(sp)", RV32I)
    e = nodes[0].operands[2]
    assert isinstance(e, Expr) and e.names == ("CONST",)
    assert nodes[1].operands[2] == Sym("foo")
    mem = nodes[2].operands[1]
    assert mem.base == Reg("x2", 2) and mem.offset.names == ("buf",)

def test_invalid_operand_marks_node():
    line = "addi x1, x0, 4(foo)"
    nodes, diags = parse(line, RV32I)
    assert len(diags) == 1
    d = diags[0]
    assert d.kind == "parse" and d.line == 1
    assert d.message == "Operando inválido: '4(foo)'"
    assert d.col == line.index("4(foo)") + 1
    # el nodo se conserva para mantener su hueco en el layout
    assert nodes[0].malformed and nodes[0].operand_texts == ("x1", "x0", "4(foo)")

def test_unknown_directive():
    nodes, diags = parse(".foo 1\n.word 2", RV32I)
    assert [d.message for d in diags] == ["Directiva desconocida: '.foo'"]
    assert nodes == [Directive(name=".word", args=("2",), line=2, col=1)]

def test_equ_both_spellings():
    nodes, diags = parse(".equ CONST, 0x10\n.equ N 4\n.equ 9X, 1\n.equ SOLO", RV32I)
    assert nodes[0].args == ("CONST", "0x10")
    assert nodes[1].args == ("N", "4")
    assert len(nodes) == 2
    assert len(diags) == 2

def test_string_arguments_keep_commas():
    nodes, diags = parse('.asciz "a, b"  # texto', RV32I)
    assert diags == []
    assert nodes[0].args == ('"a, b"',)

def test_keep_comments():
    nodes, _ = parse("nop # hola\n; sólo comentario", RV32I, keep_comments=True)
    assert nodes[0] == Comment(text="hola", line=1, col=7)
    assert isinstance(nodes[1], Instruction)
    assert nodes[2].text == "sólo comentario"

def test_simple_risc_prefix_and_case():
    nodes, diags = parse("ADDI r1, ZERO, #-3 ; comentario\nLW R2, #4(sp)", SIMPLE)
    assert diags == []
    assert nodes[0].operands == (Reg("R1", 1), Reg("R0", 0), Imm(-3))
    assert nodes[1].operands[1] == Mem(base=Reg("R7", 7), offset=Imm(4))

def test_zx16_comments_and_aliases():
    nodes, diags = parse("LW a0, 2(sp)   # carga\nSW a1, -2(sp)", ZX16)
    assert diags == []
    assert nodes[0].operands == (Reg("x6", 6), Mem(Reg("x2", 2), Imm(2)))
    assert nodes[1].operands == (Reg("x7", 7), Mem(Reg("x2", 2), Imm(-2)))

def test_parse_operand_directly():
    assert parse_operand("'A'", RV32I) == Imm(65)
    assert parse_operand("0b1010", RV32I) == Imm(10)
    assert parse_operand("(sp)", RV32I) == Mem(Reg("x2", 2), Imm(0))
