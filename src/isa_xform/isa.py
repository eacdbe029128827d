'''
modelo inmutable de una ISA (registros, campos de codificación, instrucciones,
directivas, pseudo-instrucciones, sintaxis)
'''

from __future__ import annotations
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from .utils import (
    mask, sign_extend, is_signed_nbit, is_unsigned_nbit, fits_either,
)

# Tipos de operando reconocidos en los campos de codificación
OPERAND_TYPES = ("register", "immediate", "signed_immediate", "address", "offset")
SIGNED_TYPES = frozenset({"signed_immediate", "offset"})

# Alias aceptados en los documentos
TYPE_ALIASES = {
    "reg": "register",
    "imm": "immediate",
    "unsigned_immediate": "immediate",
    "simm": "signed_immediate",
    "signed_imm": "signed_immediate",
    "addr": "address",
    "label": "address",
    "pcrel": "offset",
    "relative": "offset",
}

def normalize_type(name: str) -> str:
    t = name.strip().lower().replace("-", "_")
    return TYPE_ALIASES.get(t, t)


@dataclass(frozen=True)
class Register:
    """Registro declarado. `index` es la posición en general_purpose (None en especiales)."""
    name: str
    index: Optional[int]
    size: int
    aliases: Tuple[str, ...] = ()
    kind: str = "general"          # 'general' | 'special'
    description: str = ""
    hardwired: Optional[int] = None

    @property
    def names(self) -> Tuple[str, ...]:
        return (self.name,) + self.aliases


@dataclass(frozen=True)
class Field:
    """Campo de bits [hi:lo] con valor literal (opcode/funct) u operando tipado."""
    name: str
    hi: int
    lo: int
    value: Optional[int] = None
    type: Optional[str] = None
    shift: int = 0

    @property
    def width(self) -> int:
        return self.hi - self.lo + 1

    @property
    def is_literal(self) -> bool:
        return self.value is not None

    @property
    def signed(self) -> bool:
        return self.type in SIGNED_TYPES

    @property
    def bit_mask(self) -> int:
        return mask(self.width) << self.lo

    def extract(self, word: int) -> int:
        return (word >> self.lo) & mask(self.width)

    def insert(self, word: int, raw: int) -> int:
        return (word & ~self.bit_mask) | ((raw & mask(self.width)) << self.lo)

    def fits(self, value: int) -> bool:
        """Indica si `value` cabe en el campo sin truncar."""
        stored = value >> self.shift
        if self.type == "register":
            return is_unsigned_nbit(value, self.width)
        if self.type == "immediate":
            return fits_either(stored, self.width)
        if self.type == "address":
            return is_unsigned_nbit(stored, self.width)
        return is_signed_nbit(stored, self.width)

    def encode_value(self, value: int) -> int:
        """Bits crudos del campo (los bits bajos del valor, complemento a dos)."""
        return (value >> self.shift) & mask(self.width)

    def decode_value(self, raw: int) -> int:
        v = sign_extend(raw, self.width) if self.signed else raw
        return v << self.shift


@dataclass(frozen=True)
class OperandSpec:
    """Operando de la plantilla de sintaxis: 'rd' o forma memoria 'offset(rs)'."""
    name: str
    base: Optional[str] = None

    @property
    def is_memory(self) -> bool:
        return self.base is not None

    @property
    def field_names(self) -> Tuple[str, ...]:
        # '(rs)' sin nombre de desplazamiento: offset implícito 0
        return tuple(n for n in (self.name, self.base) if n)

    def __str__(self) -> str:
        return f"{self.name}({self.base})" if self.base else self.name


MEM_SPEC_RE = re.compile(r"^(?P<off>[A-Za-z_][A-Za-z0-9_]*)?\s*\(\s*(?P<base>[A-Za-z_][A-Za-z0-9_]*)\s*\)$")
NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

def parse_syntax(syntax: str) -> Tuple[str, Tuple[OperandSpec, ...]]:
    """'LW rd, offset(rs)' -> ('LW', (rd, offset(rs))). Lanza ValueError si está mal formada."""
    s = syntax.strip()
    if not s:
        raise ValueError("sintaxis vacía")
    parts = s.split(None, 1)
    mnemonic = parts[0]
    specs: List[OperandSpec] = []
    if len(parts) > 1 and parts[1].strip():
        for tok in parts[1].split(","):
            t = tok.strip()
            m = MEM_SPEC_RE.match(t)
            if m:
                specs.append(OperandSpec(name=m.group("off") or "", base=m.group("base")))
            elif NAME_RE.match(t):
                specs.append(OperandSpec(name=t))
            else:
                raise ValueError(f"operando de sintaxis inválido: {t!r}")
    return mnemonic, tuple(specs)


@dataclass(frozen=True)
class InstructionDef:
    """Una variante de codificación de una instrucción."""
    mnemonic: str
    syntax: str
    operands: Tuple[OperandSpec, ...]
    fields: Tuple[Field, ...]
    index: int
    fixed_mask: int
    fixed_value: int
    description: str = ""
    semantics: Optional[str] = None

    @property
    def constrained_bits(self) -> int:
        return bin(self.fixed_mask).count("1")

    @property
    def semantics_key(self) -> str:
        return (self.semantics or self.mnemonic).lower()

    def field(self, name: str) -> Optional[Field]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def matches(self, word: int) -> bool:
        return (word & self.fixed_mask) == self.fixed_value


@dataclass(frozen=True)
class DirectiveDef:
    name: str
    action: str
    size: Optional[int] = None      # bytes por elemento (acción 'data')
    description: str = ""


@dataclass(frozen=True)
class PseudoDef:
    mnemonic: str
    syntax: str
    params: Tuple[str, ...]
    expansion: Tuple[str, ...]
    description: str = ""


@dataclass(frozen=True)
class EcallService:
    number: int
    name: str
    description: str = ""
    register: Optional[str] = None


CHAR_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0", "\\": "\\", "'": "'", '"': '"'}
DEC_RE = re.compile(r"^\d+$")
HEX_RE = re.compile(r"^[0-9a-fA-F]+$")

@dataclass(frozen=True)
class AssemblySyntax:
    comment_chars: Tuple[str, ...] = (";", "#")
    label_suffix: str = ":"
    register_prefix: str = ""
    immediate_prefix: str = ""
    hex_prefix: str = "0x"
    binary_prefix: str = "0b"
    case_sensitive: bool = True
    directive_prefix: str = "."

    def key(self, name: str) -> str:
        return name if self.case_sensitive else name.casefold()

    def parse_number(self, token: str) -> Optional[int]:
        """Entero literal (decimal, hex, binario, octal o carácter) o None si no lo es."""
        t = token.strip()
        if self.immediate_prefix and t.startswith(self.immediate_prefix):
            t = t[len(self.immediate_prefix):].strip()
        if len(t) >= 3 and t[0] == "'" and t[-1] == "'":
            inner = t[1:-1]
            if len(inner) == 1:
                return ord(inner)
            if len(inner) == 2 and inner[0] == "\\" and inner[1] in CHAR_ESCAPES:
                return ord(CHAR_ESCAPES[inner[1]])
            return None
        sign = 1
        if t[:1] in ("+", "-"):
            sign = -1 if t[0] == "-" else 1
            t = t[1:].strip()
        if not t:
            return None
        low = t.lower()
        for prefix, base in ((self.hex_prefix, 16), (self.binary_prefix, 2),
                             ("0x", 16), ("0b", 2), ("0o", 8)):
            if prefix and low.startswith(prefix.lower()):
                digits = t[len(prefix):].replace("_", "")
                try:
                    return sign * int(digits, base)
                except ValueError:
                    return None
        if DEC_RE.match(t):
            try:
                return sign * int(t, 10)
            except ValueError:
                # más dígitos de los que Python convierte desde decimal
                return None
        return None


@dataclass(frozen=True)
class ISA:
    """Definición de ISA ya validada. Inmutable tras la carga."""
    name: str
    version: str
    word_size: int
    instruction_size: int
    endianness: str
    address_space_size: int
    code_start: int
    registers: Tuple[Register, ...]
    instructions: Tuple[InstructionDef, ...]
    directives: Mapping[str, DirectiveDef]
    pseudo_instructions: Tuple[PseudoDef, ...]
    syntax: AssemblySyntax
    constants: Mapping[str, int]
    ecall_services: Mapping[int, EcallService]
    data_start: Optional[int] = None
    description: str = ""
    service_register: Optional[str] = None

    _by_mnemonic: Mapping[str, Tuple[InstructionDef, ...]] = field(init=False, repr=False, compare=False)
    _pseudo_by_mnemonic: Mapping[str, Tuple[PseudoDef, ...]] = field(init=False, repr=False, compare=False)
    _by_register: Mapping[str, Register] = field(init=False, repr=False, compare=False)
    _by_index: Mapping[int, Register] = field(init=False, repr=False, compare=False)
    _decode_order: Tuple[InstructionDef, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        key = self.syntax.key
        by_m: Dict[str, List[InstructionDef]] = {}
        for ins in self.instructions:
            by_m.setdefault(key(ins.mnemonic), []).append(ins)
        by_p: Dict[str, List[PseudoDef]] = {}
        for p in self.pseudo_instructions:
            by_p.setdefault(key(p.mnemonic), []).append(p)
        regs: Dict[str, Register] = {}
        idx: Dict[int, Register] = {}
        for r in self.registers:
            for n in r.names:
                regs[key(n)] = r
            if r.index is not None:
                idx[r.index] = r
        # más bits fijos primero; a igualdad, orden de declaración
        order = tuple(sorted(self.instructions, key=lambda i: (-i.constrained_bits, i.index)))
        object.__setattr__(self, "_by_mnemonic", MappingProxyType({k: tuple(v) for k, v in by_m.items()}))
        object.__setattr__(self, "_pseudo_by_mnemonic", MappingProxyType({k: tuple(v) for k, v in by_p.items()}))
        object.__setattr__(self, "_by_register", MappingProxyType(regs))
        object.__setattr__(self, "_by_index", MappingProxyType(idx))
        object.__setattr__(self, "_decode_order", order)

    # ---- tamaños ----

    @property
    def instruction_bytes(self) -> int:
        return self.instruction_size // 8

    @property
    def word_bytes(self) -> int:
        return self.word_size // 8

    # ---- búsquedas ----

    def instructions_for(self, mnemonic: str) -> Tuple[InstructionDef, ...]:
        return self._by_mnemonic.get(self.syntax.key(mnemonic), ())

    def is_instruction(self, mnemonic: str) -> bool:
        return self.syntax.key(mnemonic) in self._by_mnemonic

    def pseudo_for(self, mnemonic: str, n_operands: int) -> Optional[PseudoDef]:
        """Pseudo aplicable si ninguna instrucción real homónima acepta ese número de operandos."""
        if any(len(i.operands) == n_operands for i in self.instructions_for(mnemonic)):
            return None
        for p in self._pseudo_by_mnemonic.get(self.syntax.key(mnemonic), ()):
            if len(p.params) == n_operands:
                return p
        return None

    def is_pseudo(self, mnemonic: str) -> bool:
        return self.syntax.key(mnemonic) in self._pseudo_by_mnemonic

    def register(self, token: str) -> Optional[Register]:
        t = token.strip()
        prefix = self.syntax.register_prefix
        if prefix and t.startswith(prefix):
            stripped = t[len(prefix):]
            r = self._by_register.get(self.syntax.key(stripped))
            if r is not None:
                return r
        return self._by_register.get(self.syntax.key(t))

    def register_by_index(self, index: int) -> Optional[Register]:
        return self._by_index.get(index)

    def directive(self, name: str) -> Optional[DirectiveDef]:
        return self.directives.get(name.lower())

    @property
    def decode_order(self) -> Tuple[InstructionDef, ...]:
        return self._decode_order
