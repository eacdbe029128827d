from __future__ import annotations
import logging
import re
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from .ast import Instruction, Node
from .diagnostics import Diagnostic
from .expr import is_expression
from .isa import ISA, PseudoDef
from .parser import parse_instruction

logger = logging.getLogger(__name__)

_IDENT = r"[A-Za-z0-9_.$]"

def substitute(template: str, bindings: Dict[str, str]) -> str:
    """Sustituye los parámetros en los operandos de una línea de la plantilla."""
    parts = template.strip().split(None, 1)
    if len(parts) == 1 or not bindings:
        return template.strip()
    names = sorted(bindings, key=len, reverse=True)
    rx = re.compile(r"(?<!" + _IDENT + r")(" + "|".join(map(re.escape, names)) + r")(?!" + _IDENT + r")")
    ops = rx.sub(lambda m: bindings[m.group(1)], parts[1])
    return f"{parts[0]} {ops}"

def _bind(pseudo: PseudoDef, node: Instruction, isa: ISA) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for name, text in zip(pseudo.params, node.operand_texts):
        t = text.strip()
        # operandos compuestos entre paréntesis para no alterar la precedencia
        if is_expression(t) and isa.syntax.parse_number(t) is None:
            t = f"({t})"
        out[name] = t
    return out

def expand_one(node: Instruction, pseudo: PseudoDef, isa: ISA, *,
               filename: Optional[str] = None) -> Tuple[List[Instruction], List[Diagnostic]]:
    bindings = _bind(pseudo, node, isa)
    out: List[Instruction] = []
    diags: List[Diagnostic] = []
    for template in pseudo.expansion:
        line = substitute(template, bindings)
        ins, ds = parse_instruction(line, isa, node.line, raw=line, filename=filename)
        # las columnas de la expansión no existen en el fuente: se usan las del pseudo
        diags.extend(replace(d, message=f"{d.message} (expansión de {node.mnemonic})", col=node.col)
                     for d in ds)
        if ins is not None:
            out.append(Instruction(mnemonic=ins.mnemonic, operands=ins.operands, line=node.line,
                                   col=node.col, operand_texts=ins.operand_texts,
                                   malformed=ins.malformed, expanded_from=pseudo.mnemonic))
    return out, diags

def expand(nodes: List[Node], isa: ISA, *,
           filename: Optional[str] = None) -> Tuple[List[Node], List[Diagnostic]]:
    """Sustituye cada pseudo-instrucción por sus instrucciones reales antes de asignar direcciones.

    Un pseudo sólo se aplica si ninguna instrucción real con el mismo mnemónico
    acepta ese número de operandos; los nodos malformados se dejan tal cual.
    """
    out: List[Node] = []
    diags: List[Diagnostic] = []
    n_expanded = 0
    for n in nodes:
        if not isinstance(n, Instruction) or n.malformed:
            out.append(n)
            continue
        pseudo = isa.pseudo_for(n.mnemonic, len(n.operands))
        if pseudo is None:
            out.append(n)
            continue
        ins, ds = expand_one(n, pseudo, isa, filename=filename)
        out.extend(ins)
        diags.extend(ds)
        n_expanded += 1
    if n_expanded:
        logger.debug("pseudo: %d pseudo-instrucciones expandidas", n_expanded)
    return out, diags
