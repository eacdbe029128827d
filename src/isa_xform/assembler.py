from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Tuple

from .ast import Node
from .diagnostics import Diagnostic, errors_of, warnings_of
from .encoding import Encoded, encode
from .isa import ISA
from .parser import parse
from .pseudo import expand
from .resolver import SymbolTable, resolve

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class SectionImage:
    name: str
    base: int
    data: bytes

    @property
    def end(self) -> int:
        return self.base + len(self.data)

@dataclass(frozen=True)
class AssembledResult:
    """Resultado de un ensamblado. `machine_code` es siempre la imagen plana en bytes
    desde la base de la primera sección hasta el final de la última (huecos a cero)."""
    machine_code: bytes
    base_address: int
    sections: Mapping[str, SectionImage]
    symbols: SymbolTable
    words: Tuple[Encoded, ...]
    diagnostics: Tuple[Diagnostic, ...]
    nodes: Tuple[Node, ...] = field(default=(), repr=False)

    @property
    def errors(self) -> List[Diagnostic]:
        return errors_of(self.diagnostics)

    @property
    def warnings(self) -> List[Diagnostic]:
        return warnings_of(self.diagnostics)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def text(self) -> Optional[SectionImage]:
        return self.sections.get("text")

def _flat_image(images: List[SectionImage]) -> Tuple[int, bytes]:
    if not images:
        return 0, b""
    start = min(s.base for s in images)
    end = max(s.end for s in images)
    out = bytearray(end - start)
    for s in images:
        out[s.base - start:s.end - start] = s.data
    return start, bytes(out)

def assemble_nodes(nodes: List[Node], isa: ISA, *, filename: Optional[str] = None,
                   diagnostics: Optional[List[Diagnostic]] = None) -> AssembledResult:
    """Expande pseudos, resuelve (pasadas 1 y 2) y codifica una lista de nodos ya parseados."""
    diags: List[Diagnostic] = list(diagnostics or [])
    nodes_e, diags_pseudo = expand(nodes, isa, filename=filename)
    diags += diags_pseudo
    res = resolve(nodes_e, isa, filename=filename)
    diags += res.diagnostics
    if not res.emittable:
        # símbolos duplicados: no se emite ningún byte
        logger.info("ensamblado abortado: símbolos duplicados")
        return AssembledResult(machine_code=b"", base_address=isa.code_start, sections={},
                               symbols=res.symbols, words=(), diagnostics=tuple(diags),
                               nodes=tuple(nodes_e))
    enc = encode(res, isa, filename=filename)
    diags += enc.diagnostics
    images = [SectionImage(s.name, s.base, enc.sections[s.name]) for s in res.sections]
    base, flat = _flat_image(images)
    result = AssembledResult(
        machine_code=flat,
        base_address=base if images else isa.code_start,
        sections={s.name: s for s in images},
        symbols=res.symbols,
        words=tuple(enc.words),
        diagnostics=tuple(diags),
        nodes=tuple(nodes_e),
    )
    logger.info("ensamblado: %d bytes desde 0x%x, %d errores, %d advertencias",
                len(flat), result.base_address, len(result.errors), len(result.warnings))
    return result

def assemble_text(text: str, isa: ISA, *, filename: Optional[str] = None) -> AssembledResult:
    """Parsea y ensambla `text` contra la ISA. Nunca lanza por errores del fuente:
    los acumula en `diagnostics` junto a los bytes de lo que sí se pudo codificar."""
    nodes, diags_parse = parse(text, isa, filename=filename)
    return assemble_nodes(nodes, isa, filename=filename, diagnostics=diags_parse)
