import pytest

from src.isa_xform.expr import ExprError, UnresolvedSymbol, compile_expr, is_expression
from src.isa_xform.isa import AssemblySyntax

SYNTAX = AssemblySyntax()

@pytest.mark.parametrize("text,value", [
    ("1 + 2 * 3", 7),
    ("(1 + 2) * 3", 9),
    ("1 << 4", 16),
    ("0x100 >> 4", 16),
    ("0xF0 | 0x0F", 0xFF),
    ("0xFF & ~0x0F", 0xF0),
    ("6 ^ 3", 5),
    ("-7 / 2", -3),      # división truncada hacia cero
    ("-7 % 2", -1),
    ("'A' + 1", 66),
    ("-(3)", -3),
])
def test_constant_expressions(text, value):
    assert compile_expr(text, SYNTAX).evaluate({}) == value

def test_symbols_in_order_with_repetition():
    e = compile_expr("end - start + end", SYNTAX)
    assert e.names == ("end", "start", "end")
    assert e.evaluate({"start": 0x20, "end": 0x30}) == 0x40

def test_split_constant_for_lui_addi():
    hi = compile_expr("(imm + 0x40) & 0xFF80", SYNTAX)
    lo = compile_expr("((imm + 0x40) & 0x7F) - 0x40", SYNTAX)
    for v in (0x1234, 0x0040, 0xFFC0, 0x003F):
        env = {"imm": v}
        assert (hi.evaluate(env) + lo.evaluate(env)) & 0xFFFF == v
        assert -64 <= lo.evaluate(env) <= 63

def test_unresolved_symbol_names_it():
    e = compile_expr("buf + 4", SYNTAX)
    with pytest.raises(UnresolvedSymbol) as exc:
        e.evaluate({})
    assert exc.value.name == "buf"
    assert "símbolo no definido: 'buf'" in str(exc.value)

@pytest.mark.parametrize("text", ["", "1 +", "foo(1)", "2 @ 3", "a ** 2"])
def test_malformed_expressions(text):
    with pytest.raises(ExprError):
        compile_expr(text, SYNTAX)

def test_arithmetic_errors_at_evaluation():
    with pytest.raises(ExprError):
        compile_expr("4 / zero", SYNTAX).evaluate({"zero": 0})
    with pytest.raises(ExprError):
        compile_expr("1 << n", SYNTAX).evaluate({"n": -1})

def test_immediate_prefix_inside_expressions():
    syntax = AssemblySyntax(immediate_prefix="#")
    assert compile_expr("#4 + #0x10", syntax).evaluate({}) == 20

@pytest.mark.parametrize("text,expected", [
    ("a+1", True),
    ("-1", True),
    ("label", False),
    ("0x10", False),
])
def test_is_expression(text, expected):
    assert is_expression(text) is expected

def test_width_limits():
    with pytest.raises(ExprError) as exc:
        compile_expr("1 << 20000", SYNTAX).evaluate({})
    assert str(exc.value) == "desplazamiento de 20000 bits (máximo 128)"
    # los productos encadenados tampoco crecen sin límite
    with pytest.raises(ExprError):
        compile_expr("big * big * big", SYNTAX).evaluate({"big": 1 << 60})
    with pytest.raises(ExprError):
        compile_expr("0x" + "f" * 40 + " + 1", SYNTAX)
    assert compile_expr("1 << 100", SYNTAX).evaluate({}) == 2 ** 100

def test_overlong_decimal_is_not_a_number():
    assert SYNTAX.parse_number("9" * 5000) is None
