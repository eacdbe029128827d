'''
decodificación de palabras contra las codificaciones de la ISA, listado por
registros y reconstrucción opcional de pseudo-instrucciones
'''

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Dict, List, Literal, Mapping, Optional, Sequence, Tuple

from .ast import Instruction, Operand, Reg, Imm, Sym, Expr, Mem
from .diagnostics import Diagnostic, errors_of
from .errors import DecodeError
from .isa import ISA, Field, InstructionDef, PseudoDef
from .lexer import split_mnemonic_operands, split_operands
from .parser import MEM_RE, parse_operand
from .pseudo import substitute
from .utils import bytes_to_word, hex_digits, to_hex

logger = logging.getLogger(__name__)

OperandKind = Literal["reg", "imm", "mem"]

@dataclass(frozen=True)
class DecodedOperand:
    kind: OperandKind
    text: str
    value: int                        # índice de registro, número o desplazamiento (mem)
    bits: int                         # ancho efectivo del campo (width + shift)
    register: Optional[str] = None    # nombre canónico (reg, o base de mem)
    field_type: Optional[str] = None
    target: Optional[int] = None      # destino absoluto de un offset

@dataclass(frozen=True)
class DecodedInstruction:
    address: int
    word: int
    size: int
    definition: InstructionDef
    values: Mapping[str, int]
    operands: Tuple[DecodedOperand, ...]

    @property
    def mnemonic(self) -> str:
        return self.definition.mnemonic

    @property
    def operand_texts(self) -> Tuple[str, ...]:
        return tuple(o.text for o in self.operands)

    @property
    def comment(self) -> Optional[str]:
        targets = [f"-> 0x{o.target:04x}" for o in self.operands if o.target is not None]
        return "; ".join(targets) if targets else None

    @property
    def text(self) -> str:
        ops = ", ".join(self.operand_texts)
        return f"{self.mnemonic} {ops}" if ops else self.mnemonic

@dataclass(frozen=True)
class DisassembledRecord:
    address: int
    size: int
    hex: str
    mnemonic: str
    operands: Tuple[str, ...]
    comment: Optional[str] = None
    decoded: Tuple[DecodedInstruction, ...] = ()   # vacío en .word/.byte; varias si es pseudo

    @property
    def is_pseudo(self) -> bool:
        return len(self.decoded) > 1 or (len(self.decoded) == 1 and
                                         self.decoded[0].mnemonic != self.mnemonic)

    @property
    def text(self) -> str:
        ops = ", ".join(self.operands)
        return f"{self.mnemonic} {ops}" if ops else self.mnemonic

    def to_dict(self) -> Dict[str, object]:
        return {
            "address": self.address,
            "hex": self.hex,
            "mnemonic": self.mnemonic,
            "operands": list(self.operands),
            "comment": self.comment,
        }

@dataclass(frozen=True)
class DisassembledResult:
    instructions: List[DisassembledRecord]
    diagnostics: List[Diagnostic]
    base_address: int

    @property
    def errors(self) -> List[Diagnostic]:
        return errors_of(self.diagnostics)

# ---------------- Decodificación de una palabra ----------------

class _Unrenderable(Exception):
    pass

def _addr_text(v: int, isa: ISA) -> str:
    digits = max(4, hex_digits((isa.address_space_size - 1).bit_length()))
    return f"0x{v:0{digits}x}"

def _operand(f: Field, raw: int, isa: ISA, address: int) -> DecodedOperand:
    v = f.decode_value(raw)
    bits = f.width + f.shift
    if f.type == "register":
        r = isa.register_by_index(v)
        if r is None:
            raise _Unrenderable(f"registro {v} no declarado")
        return DecodedOperand("reg", r.name, v, bits, register=r.name, field_type=f.type)
    if f.type == "address":
        return DecodedOperand("imm", _addr_text(v, isa), v, bits, field_type=f.type)
    if f.type == "offset":
        return DecodedOperand("imm", str(v), v, bits, field_type=f.type, target=address + v)
    return DecodedOperand("imm", str(v), v, bits, field_type=f.type)

def _decode_with(d: InstructionDef, word: int, isa: ISA, address: int) -> DecodedInstruction:
    values: Dict[str, int] = {}
    rendered: Dict[str, DecodedOperand] = {}
    for f in d.fields:
        if f.is_literal:
            continue
        op = _operand(f, f.extract(word), isa, address)
        values[f.name] = op.value
        rendered[f.name] = op
    ops: List[DecodedOperand] = []
    for spec in d.operands:
        if not spec.is_memory:
            ops.append(rendered[spec.name])
            continue
        base = rendered[spec.base]  # type: ignore[index]
        if spec.name:
            off = rendered[spec.name]
            ops.append(DecodedOperand("mem", f"{off.text}({base.text})", off.value, off.bits,
                                      register=base.register, field_type=off.field_type))
        else:
            ops.append(DecodedOperand("mem", f"({base.text})", 0, 0, register=base.register))
    return DecodedInstruction(address=address, word=word, size=isa.instruction_bytes,
                              definition=d, values=values, operands=tuple(ops))

def decode_word(word: int, isa: ISA, address: int = 0) -> DecodedInstruction:
    """Decodifica una palabra. Gana la coincidencia con más bits fijos; a igualdad, la
    declarada antes. Lanza DecodeError si ninguna codificación coincide."""
    for d in isa.decode_order:
        if not d.matches(word):
            continue
        try:
            return _decode_with(d, word, isa, address)
        except _Unrenderable as ex:
            logger.debug("0x%x: %s descartada (%s)", address, d.mnemonic, ex)
    raise DecodeError(f"0x{address:04x}: ninguna instrucción coincide con {to_hex(word, isa.instruction_size)}",
                      address=address, word=word, hint="se emite como .word")

# ---------------- Reconstrucción de pseudo-instrucciones ----------------

@dataclass(frozen=True)
class _Template:
    pseudo: PseudoDef
    lines: Tuple[Instruction, ...]
    marks: Mapping[str, str]    # marcador -> parámetro

def _template_operand(tok: str, isa: ISA, marks: Mapping[str, str]) -> Operand:
    t = tok.strip()
    if t in marks:
        return Sym(t)
    m = MEM_RE.match(t)
    if m and m.group("base").strip() in marks:
        off_raw = m.group("off").strip()
        off = Imm(0) if not off_raw else parse_operand(off_raw, isa)
        if isinstance(off, (Reg, Mem)):
            raise ValueError(t)
        return Mem(base=Reg(name=m.group("base").strip(), index=None), offset=off)
    return parse_operand(t, isa)

def _templates(isa: ISA) -> List[_Template]:
    out: List[_Template] = []
    for p in isa.pseudo_instructions:
        params = {name: f"__p{i}" for i, name in enumerate(p.params)}
        marks = {v: k for k, v in params.items()}
        lines: List[Instruction] = []
        try:
            for t in p.expansion:
                mn, ops = split_mnemonic_operands(substitute(t, params))
                operands = tuple(_template_operand(o, isa, marks) for o in split_operands(ops))
                if any(isinstance(o, Expr) or (isinstance(o, Mem) and isinstance(o.offset, Expr))
                       for o in operands):
                    raise ValueError("plantilla con expresión")
                lines.append(Instruction(mnemonic=mn, operands=operands, line=0))
        except ValueError:
            continue
        out.append(_Template(p, tuple(lines), marks))
    # las expansiones más largas primero; a igualdad, orden de declaración
    return sorted(out, key=lambda t: -len(t.lines))

def _same_number(a: int, b: int, bits: int) -> bool:
    # iguales módulo el ancho del campo: -1 y 0x7F coinciden en 7 bits
    if bits <= 0:
        return a == b
    return (a - b) % (1 << bits) == 0

def _match_operand(top: Operand, dop: DecodedOperand, marks: Mapping[str, str],
                   binds: Dict[str, str]) -> bool:
    def bind(mark: str, text: str) -> bool:
        name = marks[mark]
        if name in binds:
            return binds[name] == text
        binds[name] = text
        return True

    if isinstance(top, Sym):
        return top.name in marks and dop.kind != "mem" and bind(top.name, dop.text)
    if isinstance(top, Reg):
        return dop.kind == "reg" and dop.register == top.name
    if isinstance(top, Imm):
        return dop.kind == "imm" and _same_number(top.value, dop.value, dop.bits)
    if isinstance(top, Mem):
        if dop.kind != "mem":
            return False
        if top.base.name in marks:
            if not bind(top.base.name, dop.register or ""):
                return False
        elif top.base.name != dop.register:
            return False
        off = top.offset
        if isinstance(off, Sym):
            return off.name in marks and bind(off.name, str(dop.value))
        return isinstance(off, Imm) and _same_number(off.value, dop.value, dop.bits)
    return False

def _match(t: _Template, window: Sequence[DecodedInstruction], isa: ISA) -> Optional[Dict[str, str]]:
    binds: Dict[str, str] = {}
    for tline, dec in zip(t.lines, window):
        if isa.syntax.key(tline.mnemonic) != isa.syntax.key(dec.mnemonic):
            return None
        if len(tline.operands) != len(dec.operands):
            return None
        for top, dop in zip(tline.operands, dec.operands):
            if not _match_operand(top, dop, t.marks, binds):
                return None
    if any(p not in binds for p in t.pseudo.params):
        return None
    return binds

def reconstruct(records: List[DisassembledRecord], isa: ISA) -> List[DisassembledRecord]:
    """Colapsa secuencias consecutivas que coinciden con la expansión de un pseudo."""
    templates = _templates(isa)
    if not templates:
        return list(records)
    out: List[DisassembledRecord] = []
    i = 0
    while i < len(records):
        hit = None
        for t in templates:
            k = len(t.lines)
            window = records[i:i + k]
            if len(window) < k or any(len(r.decoded) != 1 or r.is_pseudo for r in window):
                continue
            binds = _match(t, [r.decoded[0] for r in window], isa)
            if binds is not None:
                hit = (t, window, binds)
                break
        if hit is None:
            out.append(records[i])
            i += 1
            continue
        t, window, binds = hit
        comments = [r.comment for r in window if r.comment]
        out.append(DisassembledRecord(
            address=window[0].address,
            size=sum(r.size for r in window),
            hex=" ".join(r.hex for r in window),
            mnemonic=t.pseudo.mnemonic,
            operands=tuple(binds[p] for p in t.pseudo.params),
            comment="; ".join(comments) if comments else None,
            decoded=tuple(r.decoded[0] for r in window),
        ))
        i += len(window)
    return out

# ---------------- Desensamblado de un flujo de bytes ----------------

def _record(dec: DecodedInstruction, isa: ISA) -> DisassembledRecord:
    return DisassembledRecord(address=dec.address, size=dec.size,
                              hex=to_hex(dec.word, isa.instruction_size, prefix=False),
                              mnemonic=dec.mnemonic, operands=dec.operand_texts,
                              comment=dec.comment, decoded=(dec,))

def disassemble(data: bytes, isa: ISA, *, reconstruct_pseudo: bool = False,
                base_address: Optional[int] = None) -> DisassembledResult:
    """Un registro por palabra de instruction_size bits. Una palabra sin coincidencia
    produce un registro '.word' y un único DecodeError; se sigue con la siguiente."""
    base = isa.code_start if base_address is None else base_address
    n = isa.instruction_bytes
    records: List[DisassembledRecord] = []
    diags: List[Diagnostic] = []
    full = len(data) - len(data) % n
    for off in range(0, full, n):
        addr = base + off
        word = bytes_to_word(bytes(data[off:off + n]), isa.endianness)
        try:
            dec = decode_word(word, isa, addr)
        except DecodeError as ex:
            diags.append(ex.diagnostic)
            records.append(DisassembledRecord(address=addr, size=n,
                                              hex=to_hex(word, isa.instruction_size, prefix=False),
                                              mnemonic=".word",
                                              operands=(to_hex(word, isa.instruction_size),)))
            continue
        records.append(_record(dec, isa))
    if full < len(data):
        tail = bytes(data[full:])
        addr = base + full
        diags.append(DecodeError(f"0x{addr:04x}: {len(tail)} byte(s) sobrantes, no forman una instrucción "
                                 f"de {n} bytes", address=addr, hint="se emiten como .byte").diagnostic)
        records.append(DisassembledRecord(address=addr, size=len(tail), hex=tail.hex(), mnemonic=".byte",
                                          operands=tuple(f"0x{b:02x}" for b in tail)))
    if reconstruct_pseudo:
        records = reconstruct(records, isa)
    logger.info("desensamblado: %d registros desde 0x%x, %d errores", len(records), base, len(diags))
    return DisassembledResult(instructions=records, diagnostics=diags, base_address=base)
