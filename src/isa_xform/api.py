'''
fachada de diccionarios sobre el motor: validate, assemble, disassemble, simulate.
Los errores del fuente se devuelven como cadenas; sólo un documento ISA inválido
corta la operación antes de empezar
'''

from __future__ import annotations
import logging
import re
from typing import Any, Dict, List, Sequence, Union

from .assembler import assemble_text
from .disassembler import disassemble as _disassemble
from .errors import SchemaError
from .isa import ISA
from .loader import resolve_isa, validate_document
from .simulator import simulate as _simulate
from .writers import render_listing

logger = logging.getLogger(__name__)

MachineCode = Union[bytes, bytearray, memoryview, str, Sequence[int]]

def _schema_failure(ex: SchemaError, **empty: Any) -> Dict[str, Any]:
    logger.info("documento ISA inválido: %s", ex)
    out: Dict[str, Any] = dict(empty)
    out["errors"] = [f"ISA inválida: {m}" for m in ex.messages()]
    return out

def as_bytes(machine_code: MachineCode) -> bytes:
    """bytes, cadena hexadecimal (se ignoran espacios y un prefijo 0x) o lista de bytes."""
    if isinstance(machine_code, (bytes, bytearray, memoryview)):
        return bytes(machine_code)
    if isinstance(machine_code, str):
        text = re.sub(r"\s+", "", machine_code)
        if text[:2].lower() == "0x":
            text = text[2:]
        return bytes.fromhex(text)
    return bytes(machine_code)

def validate(isa_document: Any) -> Dict[str, Any]:
    errors = validate_document(isa_document)
    return {"valid": not errors, "errors": errors}

def assemble(isa: Union[ISA, str, Dict[str, Any]], source: str) -> Dict[str, Any]:
    try:
        model = resolve_isa(isa)
    except SchemaError as ex:
        return _schema_failure(ex, machine_code=b"", symbol_table={}, warnings=[], success=False)
    result = assemble_text(source, model)
    return {
        "machine_code": result.machine_code,
        "base_address": result.base_address,
        "symbol_table": result.symbols.as_dict(),
        "errors": [str(d) for d in result.errors],
        "warnings": [str(d) for d in result.warnings],
        "success": result.success,
    }

def disassemble(isa: Union[ISA, str, Dict[str, Any]], machine_code: MachineCode,
                reconstruct_pseudo: bool = False, *, base_address: int | None = None) -> Dict[str, Any]:
    try:
        model = resolve_isa(isa)
    except SchemaError as ex:
        return _schema_failure(ex, instructions=[], listing="")
    try:
        data = as_bytes(machine_code)
    except (ValueError, TypeError) as ex:
        return {"instructions": [], "errors": [f"código máquina inválido: {ex}"], "listing": ""}
    result = _disassemble(data, model, reconstruct_pseudo=reconstruct_pseudo, base_address=base_address)
    return {
        "instructions": [r.to_dict() for r in result.instructions],
        "errors": [str(d) for d in result.errors],
        "listing": render_listing(result, model),
    }

def simulate(isa: Union[ISA, str, Dict[str, Any]], source: str, steps: int = 1) -> Dict[str, Any]:
    try:
        model = resolve_isa(isa)
    except SchemaError as ex:
        return _schema_failure(ex, states=[], halted=True, halt_reason="assembly_error")
    result = _simulate(model, source, steps)
    errors: List[str] = []
    if result.assembled is not None:
        errors += [str(d) for d in result.assembled.errors]
    if result.error is not None and str(result.error) not in errors:
        errors.append(str(result.error))
    return {
        "states": [s.to_dict() for s in result.states],
        "total_steps": len(result.states) - 1,
        "halted": result.halted,
        "halt_reason": result.halt_reason.value if result.halt_reason else None,
        "output": result.final.output,
        "isa_name": model.name,
        "machine_code_hex": result.assembled.machine_code.hex() if result.assembled else "",
        "errors": errors,
    }
