'''
expresiones en operandos: números en los formatos de la ISA, símbolos y
aritmética entera (+ - * / % << >> & | ^ ~ y paréntesis)
'''

from __future__ import annotations
import ast
import operator
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Tuple

from .isa import AssemblySyntax
from .utils import value_text

TOKEN_RE = re.compile(
    r"\s*(?:(?P<char>'(?:\\.|[^\\'])')|(?P<op><<|>>|[-+*/%&|^~()])|(?P<word>[A-Za-z0-9_.$#@]+))"
)
SYMBOL_RE = re.compile(r"^[A-Za-z_.$][A-Za-z0-9_.$]*$")

# ancho máximo de literales, desplazamientos y resultados intermedios
MAX_BITS = 128


class ExprError(ValueError):
    pass


class UnresolvedSymbol(ExprError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"símbolo no definido: '{name}'")


def _trunc_div(a: int, b: int) -> int:
    if b == 0:
        raise ExprError("división por cero")
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q

def _trunc_mod(a: int, b: int) -> int:
    if b == 0:
        raise ExprError("división por cero")
    return a - b * _trunc_div(a, b)

def _shift_left(a: int, b: int) -> int:
    if b < 0:
        raise ExprError("desplazamiento negativo")
    if b > MAX_BITS:
        raise ExprError(f"desplazamiento de {value_text(b)} bits (máximo {MAX_BITS})")
    return a << b

def _shift_right(a: int, b: int) -> int:
    if b < 0:
        raise ExprError("desplazamiento negativo")
    return a >> b

_BINOPS: Dict[type, Callable[[int, int], int]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: _trunc_div,
    ast.Mod: _trunc_mod,
    ast.LShift: _shift_left,
    ast.RShift: _shift_right,
    ast.BitAnd: operator.and_,
    ast.BitOr: operator.or_,
    ast.BitXor: operator.xor,
}

_UNOPS: Dict[type, Callable[[int], int]] = {
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
    ast.Invert: operator.invert,
}


@dataclass(frozen=True)
class Expression:
    """Expresión compilada. `names` son los símbolos en orden de aparición (con repetición)."""
    text: str
    tree: ast.Expression
    names: Tuple[str, ...]
    _slots: Tuple[str, ...]

    def evaluate(self, symbols: Mapping[str, int]) -> int:
        env = {}
        for slot, name in zip(self._slots, self.names):
            if name not in symbols:
                raise UnresolvedSymbol(name)
            env[slot] = symbols[name]
        return _eval(self.tree.body, env)

    def __str__(self) -> str:
        return self.text


def _bounded(v: int) -> int:
    if v.bit_length() > MAX_BITS:
        raise ExprError(f"resultado de más de {MAX_BITS} bits")
    return v

def _eval(node: ast.AST, env: Mapping[str, int]) -> int:
    if isinstance(node, ast.Constant) and isinstance(node.value, int) and not isinstance(node.value, bool):
        return node.value
    if isinstance(node, ast.Name):
        return _bounded(env[node.id])
    if isinstance(node, ast.BinOp) and type(node.op) in _BINOPS:
        return _bounded(_BINOPS[type(node.op)](_eval(node.left, env), _eval(node.right, env)))
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNOPS:
        return _bounded(_UNOPS[type(node.op)](_eval(node.operand, env)))
    raise ExprError(f"construcción no admitida en expresión: {type(node).__name__}")


def compile_expr(text: str, syntax: AssemblySyntax) -> Expression:
    """Traduce la expresión a un árbol `ast` restringido. Lanza ExprError si no es válida."""
    pieces: List[str] = []
    names: List[str] = []
    slots: List[str] = []
    pos = 0
    s = text.strip()
    if not s:
        raise ExprError("expresión vacía")
    while pos < len(s):
        m = TOKEN_RE.match(s, pos)
        if not m or m.end() == pos:
            raise ExprError(f"carácter inesperado en expresión: {s[pos:].strip()[:1]!r}")
        pos = m.end()
        if m.group("char"):
            v = syntax.parse_number(m.group("char"))
            if v is None:
                raise ExprError(f"literal de carácter inválido: {m.group('char')}")
            pieces.append(str(v))
        elif m.group("op"):
            pieces.append(m.group("op"))
        else:
            word = m.group("word")
            v = syntax.parse_number(word)
            if v is not None:
                if v.bit_length() > MAX_BITS:
                    raise ExprError(f"literal de más de {MAX_BITS} bits en expresión")
                pieces.append(str(v))
            elif SYMBOL_RE.match(word):
                slot = f"_s{len(slots)}"
                slots.append(slot)
                names.append(word)
                pieces.append(slot)
            else:
                raise ExprError(f"término inválido en expresión: {word!r}")
    try:
        tree = ast.parse(" ".join(pieces), mode="eval")
    except SyntaxError as ex:
        raise ExprError(f"expresión mal formada: {text.strip()!r}") from ex
    # valida la forma ahora para que evaluate sólo falle por símbolos o aritmética
    _check(tree.body)
    return Expression(text=text.strip(), tree=tree, names=tuple(names), _slots=tuple(slots))


def _check(node: ast.AST) -> None:
    if isinstance(node, ast.Constant) and isinstance(node.value, int):
        return
    if isinstance(node, ast.Name):
        return
    if isinstance(node, ast.BinOp) and type(node.op) in _BINOPS:
        _check(node.left)
        _check(node.right)
        return
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNOPS:
        _check(node.operand)
        return
    raise ExprError(f"construcción no admitida en expresión: {type(node).__name__}")


def is_expression(text: str) -> bool:
    """True si el texto contiene algún operador (no es un número ni un símbolo sueltos)."""
    return any(m.group("op") for m in TOKEN_RE.finditer(text.strip()))
