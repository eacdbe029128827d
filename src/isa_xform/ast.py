'''
dataclases de AST (Instruction, Label, Directive, Comment, operandos)
'''

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from .expr import Expression

# ---- Nodos a nivel de fuente (AST/IR) ----

@dataclass(frozen=True)
class Label:
    """Etiqueta en el código fuente (p.ej., 'loop:')."""
    name: str
    line: int
    col: int = 1

@dataclass(frozen=True)
class Directive:
    """Directiva del ensamblador (p.ej., .text, .word, .equ) con sus argumentos en crudo."""
    name: str
    args: Tuple[str, ...]
    line: int
    col: int = 1

@dataclass(frozen=True)
class Instruction:
    """Instrucción con mnemónico y operandos tipados.

    `operand_texts` conserva el texto original de cada operando (la expansión de
    pseudo-instrucciones sustituye sobre él). `malformed` marca nodos con algún
    operando ilegible: conservan su hueco en el layout pero no se codifican.
    """
    mnemonic: str
    operands: Tuple['Operand', ...]
    line: int
    col: int = 1
    operand_texts: Tuple[str, ...] = ()
    malformed: bool = False
    expanded_from: Optional[str] = None

@dataclass(frozen=True)
class Comment:
    text: str
    line: int
    col: int = 1

Node = Union[Label, Directive, Instruction, Comment]

# ---- Operandos ----

@dataclass(frozen=True)
class Reg:
    """Registro con su nombre canónico y su índice (None en registros especiales)."""
    name: str
    index: Optional[int]

@dataclass(frozen=True)
class Imm:
    """Inmediato numérico literal."""
    value: int

@dataclass(frozen=True)
class Sym:
    """Símbolo (etiqueta o constante) referenciado por una instrucción."""
    name: str

@dataclass(frozen=True)
class Expr:
    """Expresión aritmética sobre números y símbolos."""
    expression: Expression

    @property
    def names(self) -> Tuple[str, ...]:
        return self.expression.names

@dataclass(frozen=True)
class Mem:
    """Dirección base+desplazamiento: offset(base)."""
    base: Reg
    offset: Union[Imm, Sym, Expr]

Value = Union[Imm, Sym, Expr]
Operand = Union[Reg, Imm, Sym, Expr, Mem]

def symbol_names(op: Operand) -> Tuple[str, ...]:
    """Nombres de símbolo referenciados por el operando (con repetición)."""
    if isinstance(op, Sym):
        return (op.name,)
    if isinstance(op, Expr):
        return op.names
    if isinstance(op, Mem):
        return symbol_names(op.offset)
    return ()
