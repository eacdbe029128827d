'''
contexto de ejecución y semántica de instrucciones: despacho por tabla de
handlers indexada por el nombre de semántica (por defecto, el mnemónico)
'''

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Union

from .disassembler import DecodedInstruction, decode_word
from .errors import DecodeError, SimulationError
from .isa import ISA
from .regs import initial_register_file, reg_name
from .utils import bytes_to_word, mask, sign_extend, word_to_bytes

logger = logging.getLogger(__name__)

FLAG_NAMES = ("Z", "N", "C", "V")

# ---------------- Contexto ----------------

class SparseMemory:
    """Memoria direccionable por bytes de `size` posiciones. Sólo guarda los bytes
    distintos de cero; `version` cambia con cada escritura."""

    def __init__(self, size: int):
        self.size = size
        self.version = 0
        self._cells: Dict[int, int] = {}

    def in_range(self, address: int, n: int) -> bool:
        return address >= 0 and address + n <= self.size

    def read(self, address: int, n: int) -> bytes:
        get = self._cells.get
        return bytes(get(a, 0) for a in range(address, address + n))

    def write(self, address: int, data: bytes) -> None:
        cells = self._cells
        for a, b in enumerate(data, start=address):
            if b:
                cells[a] = b
            else:
                cells.pop(a, None)
        self.version += 1

    def nonzero(self) -> Dict[int, int]:
        return dict(self._cells)


@dataclass
class ExecutionContext:
    """Estado mutable de una ejecución: registros (valores sin signo), flags, memoria y pc."""
    registers: Dict[str, int]
    flags: Dict[str, bool]
    memory: SparseMemory
    pc: int
    output: List[str] = field(default_factory=list)
    steps: int = 0
    halted: bool = False

    @classmethod
    def fresh(cls, isa: ISA, *, pc: Optional[int] = None) -> "ExecutionContext":
        return cls(registers=initial_register_file(isa), flags={f: False for f in FLAG_NAMES},
                   memory=SparseMemory(isa.address_space_size), pc=isa.code_start if pc is None else pc)

    def read(self, address: int, n: int) -> bytes:
        if not self.memory.in_range(address, n):
            raise SimulationError(f"Lectura fuera de memoria: 0x{address:x} ({n} bytes)", pc=self.pc)
        return self.memory.read(address, n)

    def snapshot_memory(self) -> Dict[int, int]:
        """Bytes distintos de cero (dirección -> valor)."""
        return self.memory.nonzero()

    @property
    def output_text(self) -> str:
        return "".join(self.output)

# ---------------- Registro de handlers ----------------

Handler = Callable[["Step"], None]
HANDLERS: Dict[str, Handler] = {}

def handler(*names: str) -> Callable[[Handler], Handler]:
    """Registra la función como semántica de cada nombre dado (en minúsculas)."""
    def deco(fn: Handler) -> Handler:
        for n in names:
            HANDLERS[n.lower()] = fn
        return fn
    return deco

# ---------------- Paso en curso (cambios diferidos) ----------------

class Step:
    """Vista de una instrucción en ejecución. Las escrituras se acumulan y sólo se
    aplican al contexto si el handler termina sin lanzar."""

    def __init__(self, isa: ISA, ctx: ExecutionContext, decoded: DecodedInstruction):
        self.isa = isa
        self.ctx = ctx
        self.decoded = decoded
        self.pc = decoded.address
        self.reg_writes: Dict[str, int] = {}
        self.mem_writes: List[Tuple[int, bytes]] = []
        self.flag_writes: Dict[str, bool] = {}
        self.next_pc: Optional[int] = None
        self.output: List[str] = []
        self.halt = False

    # ---- operandos ----

    @property
    def bits(self) -> int:
        return self.isa.word_size

    def has(self, name: str) -> bool:
        return name in self.decoded.values

    def _reg_field_name(self, name: str) -> str:
        idx = self.decoded.values[name]
        canonical = reg_name(idx, self.isa)
        if canonical is None:
            raise SimulationError(f"Registro {idx} no declarado", pc=self.pc)
        return canonical

    def reg(self, name: str) -> int:
        """Valor (sin signo) del registro codificado en el campo `name`."""
        return self.ctx.registers[self._reg_field_name(name)]

    def register_fields(self) -> List[str]:
        return [f.name for f in self.decoded.definition.fields if f.type == "register"]

    def imm(self) -> int:
        """Primer operando no registro (inmediato, dirección u offset)."""
        for f in self.decoded.definition.fields:
            if not f.is_literal and f.type != "register":
                return self.decoded.values[f.name]
        raise SimulationError(f"{self.decoded.mnemonic} no tiene operando inmediato", pc=self.pc)

    def has_imm(self) -> bool:
        return any(not f.is_literal and f.type != "register" for f in self.decoded.definition.fields)

    def src1(self) -> int:
        """rs1 si existe; en formatos de dos operandos, el propio rd."""
        return self.reg("rs1") if self.has("rs1") else self.reg("rd")

    def src2(self) -> int:
        """rs2 si existe; si no, el inmediato; si tampoco, 0 (comparaciones con cero)."""
        if self.has("rs2"):
            return self.reg("rs2")
        if self.has_imm():
            return self.imm() & mask(self.bits)
        return 0

    def mem_address(self) -> int:
        for spec in self.decoded.definition.operands:
            if spec.is_memory:
                off = self.decoded.values[spec.name] if spec.name else 0
                return (self.reg(spec.base) + off) & mask(self.bits)  # type: ignore[arg-type]
        raise SimulationError(f"{self.decoded.mnemonic} no tiene operando de memoria", pc=self.pc)

    # ---- efectos ----

    def write(self, name: str, value: int) -> None:
        canonical = self._reg_field_name(name)
        r = self.isa.register(canonical)
        if r is not None and r.hardwired is not None:
            return
        size = r.size if r is not None else self.bits
        self.reg_writes[canonical] = value & mask(size)

    def load(self, address: int, n: int, *, signed: bool = False) -> int:
        v = bytes_to_word(self.ctx.read(address, n), self.isa.endianness)
        return sign_extend(v, n * 8) & mask(self.bits) if signed else v

    def store(self, address: int, n: int, value: int) -> None:
        if not self.ctx.memory.in_range(address, n):
            raise SimulationError(f"Escritura fuera de memoria: 0x{address:x} ({n} bytes)", pc=self.pc)
        self.mem_writes.append((address, word_to_bytes(value, n, self.isa.endianness)))

    def jump(self, target: int) -> None:
        if not 0 <= target < self.isa.address_space_size:
            raise SimulationError(f"Salto fuera del espacio de direcciones: 0x{target:x}", pc=self.pc)
        self.next_pc = target

    def set_flags(self, result: int, *, carry: bool = False, overflow: bool = False) -> None:
        r = result & mask(self.bits)
        self.flag_writes.update(Z=r == 0, N=bool(r >> (self.bits - 1)), C=carry, V=overflow)

    def signed(self, v: int) -> int:
        return sign_extend(v, self.bits)

    def commit(self) -> None:
        ctx = self.ctx
        ctx.registers.update(self.reg_writes)
        for address, data in self.mem_writes:
            ctx.memory.write(address, data)
        ctx.flags.update(self.flag_writes)
        ctx.output.extend(self.output)
        ctx.pc = self.next_pc if self.next_pc is not None else self.pc + self.decoded.size
        ctx.steps += 1
        if self.halt:
            ctx.halted = True

# ---------------- Semántica ----------------

@handler("add", "addi")
def _add(s: Step) -> None:
    a, b = s.src1(), s.src2()
    m = mask(s.bits)
    r = a + b
    sa, sb, sr = s.signed(a), s.signed(b), s.signed(r & m)
    s.write("rd", r)
    s.set_flags(r, carry=r > m, overflow=(sa >= 0) == (sb >= 0) and (sr >= 0) != (sa >= 0))

@handler("sub")
def _sub(s: Step) -> None:
    a, b = s.src1(), s.src2()
    r = a - b
    sa, sb, sr = s.signed(a), s.signed(b), s.signed(r & mask(s.bits))
    s.write("rd", r)
    # C = préstamo
    s.set_flags(r, carry=a < b, overflow=(sa >= 0) != (sb >= 0) and (sr >= 0) != (sa >= 0))

def _logic(op: Callable[[int, int], int]) -> Handler:
    def run(s: Step) -> None:
        r = op(s.src1(), s.src2()) & mask(s.bits)
        s.write("rd", r)
        s.set_flags(r)
    return run

handler("and", "andi")(_logic(lambda a, b: a & b))
handler("or", "ori")(_logic(lambda a, b: a | b))
handler("xor", "xori")(_logic(lambda a, b: a ^ b))

def _shamt(s: Step) -> int:
    return s.src2() % s.bits

@handler("sll", "slli")
def _sll(s: Step) -> None:
    r = (s.src1() << _shamt(s)) & mask(s.bits)
    s.write("rd", r)
    s.set_flags(r)

@handler("srl", "srli")
def _srl(s: Step) -> None:
    r = s.src1() >> _shamt(s)
    s.write("rd", r)
    s.set_flags(r)

@handler("sra", "srai")
def _sra(s: Step) -> None:
    r = (s.signed(s.src1()) >> _shamt(s)) & mask(s.bits)
    s.write("rd", r)
    s.set_flags(r)

@handler("slt", "slti")
def _slt(s: Step) -> None:
    b = s.imm() if not s.has("rs2") and s.has_imm() else s.signed(s.src2())
    s.write("rd", int(s.signed(s.src1()) < b))

@handler("sltu", "sltiu")
def _sltu(s: Step) -> None:
    s.write("rd", int(s.src1() < s.src2()))

@handler("mv")
def _mv(s: Step) -> None:
    src = next((n for n in ("rs1", "rs2", "rs") if s.has(n)), None)
    if src is None:
        raise SimulationError("MV sin registro fuente", pc=s.pc)
    s.write("rd", s.reg(src))

@handler("li", "lui")
def _li(s: Step) -> None:
    s.write("rd", s.imm())

@handler("auipc")
def _auipc(s: Step) -> None:
    s.write("rd", s.pc + s.imm())

def _load(n_bytes: Optional[int], signed: bool) -> Handler:
    def run(s: Step) -> None:
        n = n_bytes or s.isa.word_bytes
        s.write("rd", s.load(s.mem_address(), n, signed=signed and n * 8 < s.bits))
    return run

handler("lb")(_load(1, True))
handler("lbu")(_load(1, False))
handler("lh")(_load(2, True))
handler("lhu")(_load(2, False))
handler("lw")(_load(None, True))

def _store(n_bytes: Optional[int]) -> Handler:
    def run(s: Step) -> None:
        n = n_bytes or s.isa.word_bytes
        s.store(s.mem_address(), n, s.reg("rs2"))
    return run

handler("sb")(_store(1))
handler("sh")(_store(2))
handler("sw")(_store(None))

def _branch(cond: Callable[[Step, int, int], bool]) -> Handler:
    def run(s: Step) -> None:
        if cond(s, s.reg("rs1"), s.reg("rs2") if s.has("rs2") else 0):
            s.jump(s.pc + s.imm())
    return run

handler("beq")(_branch(lambda s, a, b: a == b))
handler("bne")(_branch(lambda s, a, b: a != b))
handler("blt")(_branch(lambda s, a, b: s.signed(a) < s.signed(b)))
handler("bge")(_branch(lambda s, a, b: s.signed(a) >= s.signed(b)))
handler("bltu")(_branch(lambda s, a, b: a < b))
handler("bgeu")(_branch(lambda s, a, b: a >= b))

@handler("j")
def _j(s: Step) -> None:
    s.jump(s.pc + s.imm())

@handler("j_abs", "jmp")
def _j_abs(s: Step) -> None:
    s.jump(s.imm())

@handler("jal")
def _jal(s: Step) -> None:
    s.jump(s.pc + s.imm())
    s.write("rd", s.pc + s.decoded.size)

@handler("jr")
def _jr(s: Step) -> None:
    regs = s.register_fields()
    s.jump(s.reg(regs[0]))

@handler("jalr")
def _jalr(s: Step) -> None:
    base = "rs1" if s.has("rs1") else "rs2"
    off = s.imm() if s.has_imm() else 0
    s.jump((s.reg(base) + off) & mask(s.bits) & ~1)
    s.write("rd", s.pc + s.decoded.size)

@handler("nop")
def _nop(s: Step) -> None:
    pass

@handler("halt", "hlt", "ebreak")
def _halt(s: Step) -> None:
    s.halt = True
    s.next_pc = s.pc

@handler("ecall", "syscall", "trap")
def _ecall(s: Step) -> None:
    isa = s.isa
    if s.has_imm():
        number = s.imm()
    elif isa.service_register is not None:
        number = s.ctx.registers[isa.register(isa.service_register).name]  # type: ignore[union-attr]
    else:
        raise SimulationError("ECALL sin número de servicio", pc=s.pc)
    service = isa.ecall_services.get(number)
    if service is None:
        raise SimulationError(f"Servicio ecall desconocido: {number}", pc=s.pc)
    arg = 0
    if service.register is not None:
        arg = s.ctx.registers[isa.register(service.register).name]  # type: ignore[union-attr]
    name = service.name.lower()
    if name == "print_int":
        s.output.append(str(s.signed(arg)))
    elif name == "print_char":
        s.output.append(chr(arg & 0xFF))
    elif name == "print_string":
        out = bytearray()
        addr = arg
        while True:
            b = s.ctx.read(addr, 1)[0]
            if b == 0:
                break
            out.append(b)
            addr += 1
        s.output.append(out.decode("utf-8", errors="replace"))
    elif name in ("exit", "halt"):
        s.halt = True
        s.next_pc = s.pc
    else:
        raise SimulationError(f"Servicio ecall no soportado por el simulador: {service.name}", pc=s.pc)

# ---------------- Ejecutor ----------------

class InstructionExecutor:
    """Despacha instrucciones decodificadas a HANDLERS por nombre de semántica."""

    def __init__(self, isa: ISA, handlers: Optional[Dict[str, Handler]] = None):
        self.isa = isa
        self.handlers = dict(HANDLERS if handlers is None else handlers)

    def _key_of(self, what: Union[int, DecodedInstruction, str]) -> Optional[str]:
        if isinstance(what, DecodedInstruction):
            return what.definition.semantics_key
        if isinstance(what, int):
            try:
                return decode_word(what, self.isa).definition.semantics_key
            except DecodeError:
                return None
        defs = self.isa.instructions_for(what)
        return defs[0].semantics_key if defs else what.lower()

    def has_implementation(self, what: Union[int, DecodedInstruction, str]) -> bool:
        """Acepta una palabra cruda, una instrucción decodificada o un mnemónico."""
        key = self._key_of(what)
        return key is not None and key in self.handlers

    def fetch(self, ctx: ExecutionContext) -> DecodedInstruction:
        n = self.isa.instruction_bytes
        try:
            word = bytes_to_word(ctx.read(ctx.pc, n), self.isa.endianness)
            return decode_word(word, self.isa, ctx.pc)
        except DecodeError as ex:
            raise SimulationError(f"No se puede decodificar la instrucción en pc=0x{ctx.pc:x}",
                                  pc=ctx.pc, hint=ex.diagnostic.message) from ex

    def execute_instruction(self, decoded: DecodedInstruction, ctx: ExecutionContext) -> ExecutionContext:
        """Ejecuta una instrucción. Si lanza SimulationError el contexto queda intacto."""
        key = decoded.definition.semantics_key
        fn = self.handlers.get(key)
        if fn is None:
            raise SimulationError(f"Instrucción sin implementación: {decoded.mnemonic} (semántica '{key}')",
                                  pc=decoded.address)
        step = Step(self.isa, ctx, decoded)
        fn(step)
        step.commit()
        logger.debug("paso %d: 0x%x %s -> pc=0x%x", ctx.steps, decoded.address, decoded.text, ctx.pc)
        return ctx
