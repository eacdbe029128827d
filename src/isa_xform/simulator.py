'''
bucle de simulación sobre el ejecutor: carga la imagen ensamblada, avanza paso a
paso y registra el estado tras cada instrucción
'''

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from .assembler import AssembledResult, assemble_text
from .diagnostics import Diagnostic
from .errors import SimulationError
from .executor import ExecutionContext, InstructionExecutor
from .isa import ISA

logger = logging.getLogger(__name__)

class HaltReason(str, Enum):
    END_OF_CODE = "end_of_code"
    STEP_LIMIT = "step_limit"
    ERROR = "error"
    HALT = "halt"
    ASSEMBLY_ERROR = "assembly_error"

@dataclass(frozen=True)
class StepState:
    step: int
    pc: int
    registers: Mapping[str, int]
    flags: Mapping[str, bool]
    memory: Mapping[int, int]       # sólo bytes distintos de cero
    output: str = ""

    def to_dict(self) -> Dict[str, object]:
        return {
            "step": self.step,
            "pc": self.pc,
            "registers": dict(self.registers),
            "flags": dict(self.flags),
            "memory": {f"0x{a:04x}": v for a, v in sorted(self.memory.items())},
            "output": self.output,
        }

@dataclass(frozen=True)
class SimulationResult:
    states: Tuple[StepState, ...]
    halt_reason: Optional[HaltReason]
    error: Optional[Diagnostic] = None
    assembled: Optional[AssembledResult] = field(default=None, repr=False)

    @property
    def halted(self) -> bool:
        return self.halt_reason is not None

    @property
    def final(self) -> StepState:
        return self.states[-1]

def capture(ctx: ExecutionContext, previous: Optional[StepState] = None,
            memory_version: Optional[int] = None) -> StepState:
    """Instantánea del contexto. Si la memoria no cambió desde `previous`, comparte su copia."""
    if previous is not None and memory_version == ctx.memory.version:
        memory = previous.memory
    else:
        memory = MappingProxyType(ctx.snapshot_memory())
    return StepState(step=ctx.steps, pc=ctx.pc, registers=dict(ctx.registers), flags=dict(ctx.flags),
                     memory=memory, output=ctx.output_text)

class Simulator:
    """Simulación interactiva. El llamador conserva el objeto entre llamadas a `step`/`run`;
    el estado no se guarda en ningún otro sitio."""

    def __init__(self, isa: ISA, assembled: AssembledResult):
        self.isa = isa
        self.assembled = assembled
        self.executor = InstructionExecutor(isa)
        self.reset()

    def reset(self) -> None:
        isa = self.isa
        self.ctx = ExecutionContext.fresh(isa)
        for s in self.assembled.sections.values():
            self.ctx.memory.write(s.base, s.data)
        text = self.assembled.text
        self.code_range: Tuple[int, int] = (text.base, text.end) if text else (isa.code_start, isa.code_start)
        self.ctx.pc = self.code_range[0]
        self.halt_reason: Optional[HaltReason] = None
        self.error: Optional[Diagnostic] = None
        self.history: List[StepState] = [capture(self.ctx)]

    @property
    def state(self) -> StepState:
        return self.history[-1]

    def _in_code(self) -> bool:
        lo, hi = self.code_range
        return lo <= self.ctx.pc < hi

    def step(self) -> StepState:
        """Ejecuta una instrucción. Si la simulación ya terminó, no hace nada."""
        if self.halt_reason is not None:
            return self.state
        if not self._in_code():
            self.halt_reason = HaltReason.END_OF_CODE
            return self.state
        version = self.ctx.memory.version
        try:
            decoded = self.executor.fetch(self.ctx)
            self.executor.execute_instruction(decoded, self.ctx)
        except SimulationError as ex:
            self.halt_reason = HaltReason.ERROR
            self.error = ex.diagnostic
            logger.info("simulación detenida en pc=0x%x: %s", self.ctx.pc, ex)
            return self.state
        st = capture(self.ctx, self.state, version)
        self.history.append(st)
        if self.ctx.halted:
            self.halt_reason = HaltReason.HALT
        elif not self._in_code():
            self.halt_reason = HaltReason.END_OF_CODE
        return st

    def run(self, max_steps: int) -> SimulationResult:
        """Ejecuta hasta `max_steps` instrucciones más o hasta que la simulación se detenga.
        Agotar el presupuesto no impide seguir llamando a `run` o `step`."""
        for _ in range(max(0, max_steps)):
            if self.halt_reason is not None:
                break
            self.step()
        return self.result(self.halt_reason or HaltReason.STEP_LIMIT)

    def result(self, halt_reason: Optional[HaltReason] = None) -> SimulationResult:
        return SimulationResult(states=tuple(self.history), halt_reason=halt_reason or self.halt_reason,
                                error=self.error, assembled=self.assembled)

def simulate(isa: ISA, source: str, steps: int = 1, *, filename: Optional[str] = None) -> SimulationResult:
    """Ensambla `source` y ejecuta hasta `steps` pasos desde un contexto nuevo.

    Cada llamada repite la ejecución desde el principio; para avanzar de forma
    incremental, conserve un `Simulator`.
    """
    assembled = assemble_text(source, isa, filename=filename)
    if not assembled.success:
        logger.info("simulación cancelada: %d errores de ensamblado", len(assembled.errors))
        ctx = ExecutionContext.fresh(isa)
        return SimulationResult(states=(capture(ctx),), halt_reason=HaltReason.ASSEMBLY_ERROR,
                                error=assembled.errors[0], assembled=assembled)
    sim = Simulator(isa, assembled)
    result = sim.run(steps)
    logger.info("simulación: %d pasos, motivo %s", len(result.states) - 1, result.halt_reason)
    return result
