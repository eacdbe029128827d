'''
jerarquía de excepciones del motor (esquema, parseo, resolución, codificación,
decodificación y simulación)
'''

from __future__ import annotations
from typing import List, Optional, Sequence, Tuple

from .diagnostics import Diagnostic, Stage, error


class XformError(Exception):
    """Base de todos los errores del motor."""


class SchemaError(XformError):
    """Documento ISA mal formado o inconsistente. Es fatal: no se construye la ISA.

    `path` indica el campo ofensivo (p.ej. ``instructions[2].encoding.fields[1].bits``)
    y `errors` conserva todos los problemas encontrados en la validación.
    """

    def __init__(self, path: str, reason: str, *,
                 errors: Optional[Sequence[Tuple[str, str]]] = None):
        self.path = path
        self.reason = reason
        self.errors: List[Tuple[str, str]] = list(errors) if errors else [(path, reason)]
        super().__init__(f"{path}: {reason}")

    def messages(self) -> List[str]:
        return [f"{p}: {r}" for p, r in self.errors]


class StageError(XformError):
    """Error ligado a una línea de código fuente; se acumula como Diagnostic."""

    stage: Stage = "parse"

    def __init__(self, message: str, *, line: int | None = None, col: int | None = None,
                 file: str | None = None, hint: str | None = None):
        self.diagnostic: Diagnostic = error(message, line=line, col=col, file=file,
                                            hint=hint, kind=self.stage)
        super().__init__(str(self.diagnostic))


class ParseError(StageError):
    stage = "parse"


class ResolutionError(StageError):
    stage = "resolution"


class EncodingError(StageError):
    stage = "encoding"


class DecodeError(StageError):
    stage = "decode"

    def __init__(self, message: str, *, address: int | None = None, word: int | None = None,
                 hint: str | None = None):
        self.address = address
        self.word = word
        super().__init__(message, hint=hint)


class SimulationError(StageError):
    stage = "simulation"

    def __init__(self, message: str, *, pc: int | None = None, hint: str | None = None):
        self.pc = pc
        super().__init__(message, hint=hint)
