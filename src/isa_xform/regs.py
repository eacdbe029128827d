'''
búsqueda de registros por nombre/alias/prefijo sobre el banco declarado en la ISA
'''

from __future__ import annotations
from typing import Dict, Optional

from .isa import ISA, Register


def is_reg(token: str, isa: ISA) -> bool:
    """Indica si el token nombra un registro de la ISA (nombre, alias o con prefijo)."""
    return isa.register(token) is not None

def lookup_reg(token: str, isa: ISA) -> Register:
    """Devuelve el registro o lanza ValueError."""
    r = isa.register(token)
    if r is None:
        raise ValueError(f"Registro inválido: {token}")
    return r

def reg_name(index: int, isa: ISA) -> Optional[str]:
    r = isa.register_by_index(index)
    return r.name if r is not None else None

def initial_register_file(isa: ISA) -> Dict[str, int]:
    """Banco de registros inicial: cero salvo los cableados a una constante."""
    out: Dict[str, int] = {}
    for r in isa.registers:
        out[r.name] = (r.hardwired or 0) & ((1 << r.size) - 1)
    return out
