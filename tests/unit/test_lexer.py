import pytest

from src.isa_xform.lexer import (
    comment_text, split_label, split_mnemonic_operands, split_operands, strip_comment,
)

@pytest.mark.parametrize("line,expected", [
    ("add x1, x2, x3   # comentario", "add x1, x2, x3"),
    ("mv a0, a1 ; al final", "mv a0, a1"),
    ("   # línea completa", ""),
    ('.ascii "a;b#c" ; resto', '.ascii "a;b#c"'),
    ("li x1, ';'  # punto y coma literal", "li x1, ';'"),
    ("li x1, '\\''  ; comilla escapada", "li x1, '\\''"),
    ("", ""),
])
def test_strip_comment(line, expected):
    assert strip_comment(line) == expected

def test_strip_comment_with_custom_markers():
    assert strip_comment("add r1 // c ; no", ("//",)) == "add r1"
    assert strip_comment("add r1 # sin marcador", ("//",)) == "add r1 # sin marcador"

def test_comment_text():
    assert comment_text("add x1 # hola mundo") == "hola mundo"
    assert comment_text("   ; sólo comentario") == "sólo comentario"
    assert comment_text("add x1") is None

@pytest.mark.parametrize("line,label,rest", [
    ("loop: add x1, x2, x3", "loop", "add x1, x2, x3"),
    ("_start:   ", "_start", ""),
    (".L1: nop", ".L1", "nop"),
    ("  sangrado: nop", None, "  sangrado: nop"),
    ("sin_etiqueta : nop", None, "sin_etiqueta : nop"),
    ("nop", None, "nop"),
])
def test_split_label(line, label, rest):
    assert split_label(line) == (label, rest)

def test_split_label_custom_suffix():
    assert split_label("main> nop", ">") == ("main", "nop")
    assert split_label("main: nop", ">") == (None, "main: nop")

@pytest.mark.parametrize("line,mn,ops", [
    ("ADD x1, x2, x3", "ADD", "x1, x2, x3"),
    ("ret", "ret", ""),
    ("  Lw\tt0, 8(sp)  ", "Lw", "t0, 8(sp)"),
    ("   ", "", ""),
])
def test_split_mnemonic_operands(line, mn, ops):
    # el mnemónico se conserva tal cual; la ISA decide si distingue mayúsculas
    assert split_mnemonic_operands(line) == (mn, ops)

@pytest.mark.parametrize("text,parts", [
    ("x1,x2,x3", ["x1", "x2", "x3"]),
    (" x1 , x2 , x3 ", ["x1", "x2", "x3"]),
    ("t0, 4(sp)", ["t0", "4(sp)"]),
    ('"a,b", 3', ['"a,b"', "3"]),
    ("(a + 1) & 3, x1", ["(a + 1) & 3", "x1"]),
    ("',', 1", ["','", "1"]),
    ("x1,,x2", ["x1", "", "x2"]),
    ("x1,", ["x1", ""]),
    ("", []),
])
def test_split_operands(text, parts):
    assert split_operands(text) == parts
