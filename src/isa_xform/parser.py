from __future__ import annotations
import logging
import re
from typing import List, Optional, Tuple

from .lexer import (
    strip_comment,
    comment_text,
    split_label,
    split_mnemonic_operands,
    split_operands,
)
from .ast import Label, Directive, Instruction, Comment, Node, Reg, Imm, Sym, Expr, Mem, Operand, Value
from .expr import ExprError, compile_expr
from .isa import ISA
from .errors import ParseError
from .regs import is_reg, lookup_reg
from .diagnostics import Diagnostic

logger = logging.getLogger(__name__)

SYMBOL_RE = re.compile(r"^[A-Za-z_.$][A-Za-z0-9_.$]*$")
MEM_RE    = re.compile(r"^(?P<off>.*?)\(\s*(?P<base>[^()]+?)\s*\)$")

def _parse_value(token: str, isa: ISA) -> Value:
    t = token.strip()
    n = isa.syntax.parse_number(t)
    if n is not None:
        return Imm(n)
    if SYMBOL_RE.match(t):
        return Sym(t)
    try:
        return Expr(compile_expr(t, isa.syntax))
    except ExprError as ex:
        raise ValueError(f"Inmediato/símbolo inválido: '{token}' ({ex})") from ex

def _parse_reg(token: str, isa: ISA) -> Optional[Reg]:
    if not is_reg(token, isa):
        return None
    r = lookup_reg(token, isa)
    return Reg(name=r.name, index=r.index)

def parse_operand(token: str, isa: ISA) -> Operand:
    """Registro, memoria off(base), número, símbolo o expresión. Lanza ValueError."""
    t = token.strip()
    if not t:
        raise ValueError("Operando vacío")
    reg = _parse_reg(t, isa)
    if reg is not None:
        return reg
    m = MEM_RE.match(t)
    if m:
        base = _parse_reg(m.group("base"), isa)
        if base is not None:
            off_raw = m.group("off").strip()
            off: Value = Imm(0) if off_raw in ("", "+") else _parse_value(off_raw, isa)
            return Mem(base=base, offset=off)
    return _parse_value(t, isa)

def _col_of(raw: str, token: str) -> int:
    i = raw.find(token)
    return i + 1 if i >= 0 else 1

def parse_instruction(core: str, isa: ISA, lineno: int, *, raw: Optional[str] = None,
                      filename: Optional[str] = None) -> Tuple[Optional[Instruction], List[Diagnostic]]:
    """Convierte 'MNEMONIC op, op' en un nodo Instruction (aunque algún operando falle)."""
    diags: List[Diagnostic] = []
    mnemonic, op_str = split_mnemonic_operands(core)
    if not mnemonic:
        return None, diags
    raw = raw if raw is not None else core
    texts = tuple(split_operands(op_str))
    operands: List[Operand] = []
    malformed = False
    for tok in texts:
        try:
            operands.append(parse_operand(tok, isa))
        except ValueError as ex:
            malformed = True
            diags.append(ParseError(f"Operando inválido: '{tok}'", line=lineno,
                                    col=_col_of(raw, tok) if tok else None, file=filename,
                                    hint=str(ex)).diagnostic)
    node = Instruction(mnemonic=mnemonic, operands=tuple(operands), line=lineno,
                       col=_col_of(raw, mnemonic), operand_texts=texts, malformed=malformed)
    return node, diags

def _parse_directive(core: str, isa: ISA, lineno: int, raw: str,
                     filename: Optional[str]) -> Tuple[Optional[Directive], List[Diagnostic]]:
    parts = core.split(None, 1)
    dname = parts[0].lower()
    rest = parts[1].strip() if len(parts) > 1 else ""
    col = _col_of(raw.lower(), dname)
    d = isa.directive(dname)
    if d is None:
        known = ", ".join(sorted(isa.directives)) or "ninguna"
        return None, [ParseError(f"Directiva desconocida: '{parts[0]}'", line=lineno, col=col,
                                 file=filename, hint=f"directivas de la ISA: {known}").diagnostic]
    args = tuple(split_operands(rest))
    if d.action == "constant":
        # .equ NAME, VALUE  o  .equ NAME VALUE
        if len(args) == 1 and len(args[0].split(None, 1)) == 2:
            args = tuple(args[0].split(None, 1))
        if len(args) != 2 or not args[1]:
            return None, [ParseError(f"{dname} requiere nombre y valor", line=lineno, col=col,
                                     file=filename).diagnostic]
        if not SYMBOL_RE.match(args[0]):
            return None, [ParseError(f"Nombre de {dname} inválido: '{args[0]}'", line=lineno, col=col,
                                     file=filename).diagnostic]
    elif d.action == "section" and dname == ".section" and len(args) != 1:
        return None, [ParseError(".section requiere un nombre de sección", line=lineno, col=col,
                                 file=filename).diagnostic]
    elif any(a == "" for a in args):
        return None, [ParseError(f"Argumento vacío en {dname}", line=lineno, col=col,
                                 file=filename).diagnostic]
    return Directive(name=dname, args=args, line=lineno, col=col), []

def parse(text: str, isa: ISA, *, filename: Optional[str] = None,
          keep_comments: bool = False) -> Tuple[List[Node], List[Diagnostic]]:
    """
    Devuelve (nodes, diagnostics) donde nodes es una lista de:
      - Label(name, line, col)
      - Directive(name, args, line, col)
      - Instruction(mnemonic, operands, line, col, ...)
      - Comment(text, line) sólo con keep_comments=True

    Reglas (según la sintaxis de la ISA):
      - Comentarios: cualquiera de los marcadores declarados hasta fin de línea,
        salvo dentro de cadenas o literales de carácter.
      - Etiquetas: 'name<sufijo>' al inicio de línea; admite varias y texto a continuación.
      - Directivas: token con el prefijo de directiva que esté en la lista de la ISA.
      - Instrucciones: resto (mnemónico + operandos separados por comas). El mnemónico
        no se valida aquí; un operando ilegible deja el nodo marcado como malformed.
    """
    syntax = isa.syntax
    nodes: List[Node] = []
    diags: List[Diagnostic] = []

    for lineno, raw in enumerate(text.splitlines(), start=1):
        core = strip_comment(raw, syntax.comment_chars)
        if keep_comments:
            c = comment_text(raw, syntax.comment_chars)
            if c is not None:
                nodes.append(Comment(text=c, line=lineno, col=_col_of(raw, c) if c else 1))
        if not core:
            continue

        # 'label:' (una o varias) y 'label: <resto>'
        while True:
            label, rest = split_label(core, syntax.label_suffix)
            if not label:
                break
            nodes.append(Label(name=label, line=lineno, col=_col_of(raw, label)))
            core = rest
        if not core:
            continue

        if core.startswith(syntax.directive_prefix):
            node, ds = _parse_directive(core, isa, lineno, raw, filename)
        else:
            node, ds = parse_instruction(core, isa, lineno, raw=raw, filename=filename)
        diags.extend(ds)
        if node is not None:
            nodes.append(node)

    logger.debug("parse: %d nodos, %d diagnósticos", len(nodes), len(diags))
    return nodes, diags
