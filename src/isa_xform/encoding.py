from __future__ import annotations
import difflib
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .diagnostics import Diagnostic, warning
from .errors import EncodingError
from .isa import ISA, Field
from .resolver import ResolveResult, ResolvedInstruction, ResolvedData
from .utils import fits_either, mask, to_hex, value_text, word_to_bytes

logger = logging.getLogger(__name__)

# ---------------- Resultados de codificación ----------------

@dataclass(frozen=True)
class Encoded:
    word: int     # palabra de instruction_size bits
    pc: int       # dirección de esta instrucción
    line: int
    col: int
    mnemonic: str

@dataclass(frozen=True)
class EncodeResult:
    sections: Dict[str, bytes]
    words: List[Encoded]
    diagnostics: List[Diagnostic]

# ---------------- Empaquetado de campos ----------------

def _range_text(f: Field) -> str:
    if f.type == "register" or f.type == "address":
        return "sin signo"
    return "con signo" if f.signed else "con o sin signo"

def encode_field(f: Field, value: int, *, mnemonic: str, line: int, col: int,
                 filename: Optional[str], diags: List[Diagnostic]) -> int:
    """Bits crudos del operando.

    Un índice de registro que no cabe es un error (EncodingError); un inmediato,
    dirección u offset que no cabe se trunca a sus N bits bajos con una advertencia.
    """
    if f.type == "register":
        if not f.fits(value):
            raise EncodingError(f"Índice de registro {value_text(value)} no cabe en el campo '{f.name}' "
                                f"({f.width} bits) de {mnemonic}", line=line, col=col, file=filename)
        return f.encode_value(value)
    raw = f.encode_value(value)
    if not f.fits(value):
        diags.append(warning(
            f"El valor {value_text(value)} no cabe en el campo '{f.name}' de {mnemonic} "
            f"({f.width} bits {_range_text(f)}); se trunca a {to_hex(raw, f.width)}",
            line=line, col=col, file=filename, kind="encoding",
            hint="revise el rango del inmediato o la distancia del salto"))
    if f.shift and value & mask(f.shift):
        diags.append(warning(
            f"El valor {value_text(value)} del campo '{f.name}' de {mnemonic} "
            f"no es múltiplo de {1 << f.shift}; se descartan los {f.shift} bits bajos",
            line=line, col=col, file=filename, kind="encoding"))
    return raw

def _unmatched(item: ResolvedInstruction, isa: ISA, filename: Optional[str]) -> EncodingError:
    node = item.node
    defs = isa.instructions_for(node.mnemonic)
    if defs:
        expected = " | ".join(d.syntax for d in defs)
        return EncodingError(f"Operandos no válidos para '{node.mnemonic}'", line=node.line,
                             col=node.col, file=filename, hint=f"sintaxis esperada: {expected}")
    if isa.is_pseudo(node.mnemonic):
        forms = " | ".join(p.syntax for p in isa.pseudo_instructions
                           if isa.syntax.key(p.mnemonic) == isa.syntax.key(node.mnemonic))
        return EncodingError(f"Número de operandos incorrecto para la pseudo-instrucción '{node.mnemonic}'",
                             line=node.line, col=node.col, file=filename, hint=f"sintaxis: {forms}")
    known = [d.mnemonic for d in isa.instructions] + [p.mnemonic for p in isa.pseudo_instructions]
    close = difflib.get_close_matches(node.mnemonic, known, n=1)
    if not close and isa.syntax.case_sensitive:
        close = [m for m in known if m.lower() == node.mnemonic.lower()][:1]
    hint = f"¿quiso decir '{close[0]}'?" if close else None
    return EncodingError(f"Instrucción desconocida: '{node.mnemonic}'", line=node.line, col=node.col,
                         file=filename, hint=hint)

def encode_instruction(item: ResolvedInstruction, isa: ISA, *, filename: Optional[str] = None,
                       diags: Optional[List[Diagnostic]] = None) -> int:
    """Palabra de la instrucción resuelta. Lanza EncodingError si no se puede codificar."""
    diags = diags if diags is not None else []
    d = item.definition
    if d is None:
        raise _unmatched(item, isa, filename)
    word = 0
    local: List[Diagnostic] = []
    for f in d.fields:
        if f.is_literal:
            word = f.insert(word, f.value or 0)
            continue
        raw = encode_field(f, item.values[f.name], mnemonic=d.mnemonic, line=item.node.line,
                           col=item.node.col, filename=filename, diags=local)
        word = f.insert(word, raw)
    diags.extend(local)
    return word

def _encode_data(item: ResolvedData, isa: ISA, filename: Optional[str],
                 diags: List[Diagnostic]) -> bytes:
    if item.item_size == 0:
        return item.payload
    bits = item.item_size * 8
    out = bytearray()
    for v in item.values:
        if not fits_either(v, bits):
            diags.append(warning(f"El valor {value_text(v)} no cabe en {item.item_size} bytes ({item.node.name}); "
                                 f"se trunca a {to_hex(v, bits)}", line=item.node.line, col=item.node.col,
                                 file=filename, kind="encoding"))
        out += word_to_bytes(v, item.item_size, isa.endianness)
    return bytes(out)

def encode(resolved: ResolveResult, isa: ISA, *, filename: Optional[str] = None) -> EncodeResult:
    """Codifica instrucciones y datos en la imagen de cada sección.

    Las instrucciones que fallan conservan su hueco relleno de ceros para no mover
    las direcciones posteriores; el error queda en `diagnostics`.
    """
    diags: List[Diagnostic] = []
    words: List[Encoded] = []
    images: Dict[str, bytearray] = {s.name: bytearray(s.size) for s in resolved.sections}
    bases = {s.name: s.base for s in resolved.sections}

    for item in resolved.items:
        image = images.get(item.section)
        if image is None:
            continue
        off = item.address - bases[item.section]
        if isinstance(item, ResolvedInstruction):
            if item.node.malformed:
                continue
            try:
                word = encode_instruction(item, isa, filename=filename, diags=diags)
            except EncodingError as ex:
                diags.append(ex.diagnostic)
                continue
            image[off:off + item.size] = word_to_bytes(word, item.size, isa.endianness)
            words.append(Encoded(word=word, pc=item.address, line=item.node.line, col=item.node.col,
                                 mnemonic=item.definition.mnemonic if item.definition else item.node.mnemonic))
            logger.debug("0x%x: %s -> %s", item.address, item.node.mnemonic, to_hex(word, isa.instruction_size))
        else:
            data = _encode_data(item, isa, filename, diags)
            image[off:off + len(data)] = data

    logger.info("codificación: %d instrucciones, %d secciones, %d diagnósticos",
                len(words), len(images), len(diags))
    return EncodeResult(sections={k: bytes(v) for k, v in images.items()}, words=words, diagnostics=diags)
