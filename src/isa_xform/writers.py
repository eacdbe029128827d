from __future__ import annotations
from typing import Iterable, List, Optional

from .disassembler import DisassembledResult
from .encoding import Encoded
from .isa import ISA
from .utils import to_bin, to_hex

def to_hex_lines(words: Iterable[Encoded], isa: ISA) -> List[str]:
    return [to_hex(w.word, isa.instruction_size) for w in words]

def to_bin_lines(words: Iterable[Encoded], isa: ISA) -> List[str]:
    return [to_bin(w.word, isa.instruction_size) for w in words]

def _write_lines(lines: List[str], path: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        for line in lines:
            f.write(line + "\n")

def write_hex(words: Iterable[Encoded], isa: ISA, path: str) -> None:
    _write_lines(to_hex_lines(words, isa), path)

def write_bin(words: Iterable[Encoded], isa: ISA, path: str) -> None:
    _write_lines(to_bin_lines(words, isa), path)

def write_image(data: bytes, path: str) -> None:
    """Imagen binaria cruda, sin cabecera."""
    with open(path, "wb") as f:
        f.write(data)

def render_listing(result: DisassembledResult, isa: ISA, *, title: Optional[str] = None) -> str:
    """Listado de texto: cabecera con la ISA, una línea `ADDR: HEX  MNEMÓNICO ops ; comentario`
    por registro y un pie con el recuento."""
    lines = [
        f"; {title or 'desensamblado'}",
        f"; ISA: {isa.name} {isa.version} ({isa.instruction_size} bits, {isa.endianness} endian)",
        f"; base: 0x{result.base_address:04x}",
        "",
    ]
    width = max((len(r.hex) for r in result.instructions), default=0)
    for r in result.instructions:
        line = f"0x{r.address:04x}: {r.hex:<{width}}  {r.text}"
        if r.comment:
            line += f"  ; {r.comment}"
        lines.append(line)
    lines.append("")
    lines.append(f"; {len(result.instructions)} registros, {len(result.errors)} errores")
    return "\n".join(lines) + "\n"
