import pytest

from src.isa_xform.loader import load_by_name, load_from_document
from src.isa_xform.parser import parse_operand
from src.isa_xform.regs import initial_register_file, is_reg, lookup_reg, reg_name

ZX16 = load_by_name("zx16")
RV32I = load_by_name("rv32i")

@pytest.mark.parametrize("token,canon", [
    ("x0", "x0"),
    ("t0", "x0"),
    ("ra", "x1"),
    ("sp", "x2"),
    ("a0", "x6"),
    ("A1", "x7"),   # ZX16 no distingue mayúsculas
])
def test_zx16_aliases(token, canon):
    assert lookup_reg(token, ZX16).name == canon
    assert parse_operand(token, ZX16).name == canon

@pytest.mark.parametrize("token,num", [
    ("zero", 0), ("ra", 1), ("sp", 2), ("fp", 8), ("s0", 8),
    ("a0", 10), ("a7", 17), ("t6", 31), ("x31", 31),
])
def test_rv32i_numbers(token, num):
    assert lookup_reg(token, RV32I).index == num
    assert parse_operand(token, RV32I).index == num

@pytest.mark.parametrize("bad", ["x8", "x32", "r1", "", "a8"])
def test_invalid_registers(bad):
    isa = RV32I if bad in ("x32", "a8") else ZX16
    assert not is_reg(bad, isa)
    with pytest.raises(ValueError):
        lookup_reg(bad, isa)

def test_special_registers_have_no_index(minimal_doc):
    minimal_doc["registers"]["special"] = ["PC"]
    isa = load_from_document(minimal_doc)
    pc = lookup_reg("PC", isa)
    assert pc.kind == "special" and pc.index is None

def test_reg_name_by_index():
    assert reg_name(6, ZX16) == "x6"
    assert reg_name(8, ZX16) is None

def test_initial_register_file_honours_hardwired():
    isa = load_by_name("simple_risc")
    regs = initial_register_file(isa)
    assert list(regs)[:2] == ["R0", "R1"]
    assert set(regs.values()) == {0}
    assert len(initial_register_file(RV32I)) == 32
