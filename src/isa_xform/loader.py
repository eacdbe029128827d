'''
carga y validación de documentos ISA (JSON) hacia el modelo inmutable de isa.py
'''

from __future__ import annotations
import copy
import json
import logging
import re
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import SchemaError
from .isa import (
    ISA, AssemblySyntax, DirectiveDef, EcallService, Field, InstructionDef,
    OperandSpec, PseudoDef, Register, OPERAND_TYPES, normalize_type, parse_syntax,
)
from .utils import mask, parse_bit_range, parse_literal

logger = logging.getLogger(__name__)

DEFAULT_ADDRESS_SPACE = 0x10000

DIRECTIVE_ACTIONS = frozenset({
    "section", "origin", "align", "align_pow2", "data", "string", "string_z",
    "space", "constant", "global", "external", "ignore",
})

# nombre -> (acción, bytes por elemento). None en 'data' = tamaño de palabra
KNOWN_DIRECTIVES: Dict[str, Tuple[str, Optional[int]]] = {
    ".text": ("section", None), ".data": ("section", None), ".section": ("section", None),
    ".org": ("origin", None),
    ".align": ("align", None), ".balign": ("align", None), ".p2align": ("align_pow2", None),
    ".byte": ("data", 1), ".half": ("data", 2), ".short": ("data", 2), ".2byte": ("data", 2),
    ".4byte": ("data", 4), ".word": ("data", None), ".dword": ("data", None),
    ".ascii": ("string", None), ".asciz": ("string_z", None), ".string": ("string_z", None),
    ".space": ("space", None), ".skip": ("space", None), ".zero": ("space", None),
    ".equ": ("constant", None), ".set": ("constant", None),
    ".global": ("global", None), ".globl": ("global", None), ".extern": ("external", None),
    ".type": ("ignore", None), ".size": ("ignore", None), ".end": ("ignore", None),
}

DEFAULT_DIRECTIVES = (
    ".text", ".data", ".section", ".org", ".align", ".byte", ".half", ".word",
    ".ascii", ".asciz", ".string", ".space", ".equ", ".set", ".global", ".globl", ".extern",
)

MNEMONIC_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")
REGISTER_NAME_RE = re.compile(r"^[^\s,()]+$")
SYMBOL_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")


class _DocumentChecker:
    """Recorre el documento acumulando (ruta, motivo) y construye las piezas válidas."""

    def __init__(self, doc: Mapping[str, Any]):
        self.doc = doc
        self.problems: List[Tuple[str, str]] = []

    def fail(self, path: str, reason: str) -> None:
        self.problems.append((path, reason))

    # ---- primitivas ----

    def _int(self, path: str, value: Any, *, minimum: Optional[int] = None) -> Optional[int]:
        if isinstance(value, bool):
            self.fail(path, "se esperaba un entero")
            return None
        if isinstance(value, str):
            try:
                value = int(value.strip(), 0)
            except ValueError:
                self.fail(path, f"se esperaba un entero, no {value!r}")
                return None
        if not isinstance(value, int):
            self.fail(path, "se esperaba un entero")
            return None
        if minimum is not None and value < minimum:
            self.fail(path, f"debe ser >= {minimum}")
            return None
        return value

    def _str(self, path: str, value: Any, *, required: bool = True) -> Optional[str]:
        if value is None and not required:
            return None
        if not isinstance(value, str) or not value.strip():
            self.fail(path, "se esperaba una cadena no vacía")
            return None
        return value.strip()

    def _size(self, path: str, value: Any) -> Optional[int]:
        n = self._int(path, value, minimum=1)
        if n is not None and n % 8 != 0:
            self.fail(path, f"{n} bits no es múltiplo de 8")
            return None
        return n

    # ---- secciones del documento ----

    def header(self) -> Tuple[Optional[str], Optional[int], Optional[int], Optional[str]]:
        doc = self.doc
        name = self._str("name", doc.get("name")) if "name" in doc else None
        if "name" not in doc:
            self.fail("name", "campo obligatorio ausente")
        word_size = None
        if "word_size" not in doc:
            self.fail("word_size", "campo obligatorio ausente")
        else:
            word_size = self._size("word_size", doc["word_size"])
        instruction_size = word_size
        if "instruction_size" in doc:
            instruction_size = self._size("instruction_size", doc["instruction_size"])
        endianness = doc.get("endianness", "little")
        if not isinstance(endianness, str) or endianness.lower() not in ("little", "big"):
            self.fail("endianness", f"debe ser 'little' o 'big', no {endianness!r}")
            endianness = None
        else:
            endianness = endianness.lower()
        return name, word_size, instruction_size, endianness

    def address_space(self) -> Tuple[int, int, Optional[int]]:
        raw = self.doc.get("address_space", {})
        if not isinstance(raw, Mapping):
            self.fail("address_space", "se esperaba un objeto")
            return DEFAULT_ADDRESS_SPACE, 0, None
        size = self._int("address_space.size", raw.get("size", DEFAULT_ADDRESS_SPACE), minimum=1)
        size = size or DEFAULT_ADDRESS_SPACE
        code = self._int("address_space.default_code_start", raw.get("default_code_start", 0), minimum=0)
        code = 0 if code is None else code
        if code >= size:
            self.fail("address_space.default_code_start", f"0x{code:x} fuera del espacio de direcciones")
        data = None
        if raw.get("default_data_start") is not None:
            data = self._int("address_space.default_data_start", raw["default_data_start"], minimum=0)
            if data is not None and data >= size:
                self.fail("address_space.default_data_start", f"0x{data:x} fuera del espacio de direcciones")
        return size, code, data

    def assembly_syntax(self) -> AssemblySyntax:
        raw = self.doc.get("assembly_syntax", {})
        if not isinstance(raw, Mapping):
            self.fail("assembly_syntax", "se esperaba un objeto")
            return AssemblySyntax()
        defaults = AssemblySyntax()
        comments = raw.get("comment_chars", raw.get("comment_char", defaults.comment_chars))
        if isinstance(comments, str):
            comments = (comments,)
        if (not isinstance(comments, (list, tuple)) or not comments
                or not all(isinstance(c, str) and c for c in comments)):
            self.fail("assembly_syntax.comment_char", "se esperaba una cadena o lista de cadenas no vacías")
            comments = defaults.comment_chars
        opts: Dict[str, Any] = {"comment_chars": tuple(comments)}
        for key in ("label_suffix", "register_prefix", "immediate_prefix", "hex_prefix", "binary_prefix"):
            if key in raw:
                val = raw[key]
                if not isinstance(val, str) or (key == "label_suffix" and not val):
                    self.fail(f"assembly_syntax.{key}", "se esperaba una cadena")
                    continue
                opts[key] = val
        if "case_sensitive" in raw:
            if not isinstance(raw["case_sensitive"], bool):
                self.fail("assembly_syntax.case_sensitive", "se esperaba true/false")
            else:
                opts["case_sensitive"] = raw["case_sensitive"]
        return AssemblySyntax(**opts)

    def registers(self, syntax: AssemblySyntax, word_size: int) -> Tuple[Register, ...]:
        raw = self.doc.get("registers")
        if not isinstance(raw, Mapping):
            self.fail("registers", "campo obligatorio ausente o no es un objeto")
            return ()
        gp = raw.get("general_purpose")
        if not isinstance(gp, list) or not gp:
            self.fail("registers.general_purpose", "se esperaba una lista no vacía")
            gp = []
        special = raw.get("special", [])
        if not isinstance(special, list):
            self.fail("registers.special", "se esperaba una lista")
            special = []

        out: List[Register] = []
        seen: Dict[str, str] = {}
        for group, entries, kind in (("general_purpose", gp, "general"), ("special", special, "special")):
            for i, entry in enumerate(entries):
                path = f"registers.{group}[{i}]"
                aliases: Tuple[str, ...] = ()
                size, desc, hardwired = word_size, "", None
                if isinstance(entry, str):
                    name = entry.strip()
                elif isinstance(entry, Mapping):
                    name = self._str(f"{path}.name", entry.get("name"))
                    if name is None:
                        continue
                    if "size" in entry:
                        size = self._int(f"{path}.size", entry["size"], minimum=1) or word_size
                    al = entry.get("alias", entry.get("aliases", []))
                    if isinstance(al, str):
                        al = [al]
                    if not isinstance(al, list) or not all(isinstance(a, str) and a for a in al):
                        self.fail(f"{path}.alias", "se esperaba una lista de nombres")
                        al = []
                    aliases = tuple(a.strip() for a in al)
                    desc = str(entry.get("description", ""))
                    if entry.get("hardwired") is not None:
                        hardwired = self._int(f"{path}.hardwired", entry["hardwired"], minimum=0)
                else:
                    self.fail(path, "se esperaba un nombre o un objeto registro")
                    continue
                for n in (name,) + aliases:
                    if not REGISTER_NAME_RE.match(n):
                        self.fail(path, f"nombre de registro inválido: {n!r}")
                        continue
                    k = syntax.key(n)
                    if k in seen:
                        self.fail(path, f"nombre de registro duplicado '{n}' (ya usado en {seen[k]})")
                    else:
                        seen[k] = path
                out.append(Register(name=name, index=i if kind == "general" else None, size=size,
                                    aliases=aliases, kind=kind, description=desc, hardwired=hardwired))
        return tuple(out)

    def _field(self, path: str, raw: Any, instruction_size: int) -> Optional[Field]:
        if not isinstance(raw, Mapping):
            self.fail(path, "se esperaba un objeto campo")
            return None
        name = self._str(f"{path}.name", raw.get("name"))
        try:
            hi, lo = parse_bit_range(raw.get("bits"))
        except (TypeError, ValueError) as ex:
            self.fail(f"{path}.bits", str(ex))
            return None
        if hi >= instruction_size:
            self.fail(f"{path}.bits", f"bit {hi} fuera del ancho de instrucción ({instruction_size})")
            return None
        has_value = raw.get("value") is not None
        has_type = raw.get("type") is not None
        if has_value == has_type:
            self.fail(path, "un campo debe tener exactamente uno de 'value' o 'type'")
            return None
        width = hi - lo + 1
        if has_value:
            try:
                value = parse_literal(raw["value"])
            except ValueError as ex:
                self.fail(f"{path}.value", str(ex))
                return None
            if value > mask(width):
                self.fail(f"{path}.value", f"el literal {raw['value']!r} no cabe en {width} bits")
                return None
            return Field(name=name or "", hi=hi, lo=lo, value=value)
        ftype = normalize_type(str(raw["type"]))
        if ftype not in OPERAND_TYPES:
            self.fail(f"{path}.type", f"tipo de operando desconocido: {raw['type']!r}"
                                      f" (válidos: {', '.join(OPERAND_TYPES)})")
            return None
        shift = self._int(f"{path}.shift", raw.get("shift", 0), minimum=0) or 0
        if shift and ftype == "register":
            self.fail(f"{path}.shift", "los campos de registro no admiten 'shift'")
        return Field(name=name or "", hi=hi, lo=lo, type=ftype, shift=shift)

    def _check_tiling(self, path: str, fields: Sequence[Field], instruction_size: int) -> None:
        owner: Dict[int, str] = {}
        reported = set()
        for f in fields:
            for b in range(f.lo, f.hi + 1):
                prev = owner.get(b)
                if prev is not None:
                    if (prev, f.name) not in reported:
                        reported.add((prev, f.name))
                        self.fail(path, f"los campos '{prev}' y '{f.name}' se solapan en el bit {b}")
                else:
                    owner[b] = f.name
        b = instruction_size - 1
        while b >= 0:
            if b in owner:
                b -= 1
                continue
            hi = b
            while b >= 0 and b not in owner:
                b -= 1
            lo = b + 1
            self.fail(path, f"los campos no cubren los bits {hi}:{lo}" if hi != lo
                      else f"los campos no cubren el bit {hi}")

    def instructions(self, syntax: AssemblySyntax, instruction_size: int) -> Tuple[InstructionDef, ...]:
        raw = self.doc.get("instructions")
        if not isinstance(raw, list) or not raw:
            self.fail("instructions", "se esperaba una lista no vacía")
            return ()
        out: List[InstructionDef] = []
        for i, entry in enumerate(raw):
            path = f"instructions[{i}]"
            if not isinstance(entry, Mapping):
                self.fail(path, "se esperaba un objeto instrucción")
                continue
            mnemonic = self._str(f"{path}.mnemonic", entry.get("mnemonic"))
            if mnemonic is None:
                continue
            if not MNEMONIC_RE.match(mnemonic):
                self.fail(f"{path}.mnemonic", f"mnemónico inválido: {mnemonic!r}")
                continue
            enc = entry.get("encoding")
            raw_fields = enc.get("fields") if isinstance(enc, Mapping) else None
            if not isinstance(raw_fields, list) or not raw_fields:
                self.fail(f"{path}.encoding.fields", "se esperaba una lista no vacía de campos")
                continue
            n_before = len(self.problems)
            fields: List[Field] = []
            names = set()
            for j, rf in enumerate(raw_fields):
                f = self._field(f"{path}.encoding.fields[{j}]", rf, instruction_size)
                if f is None:
                    continue
                if f.name in names:
                    self.fail(f"{path}.encoding.fields[{j}].name", f"campo duplicado '{f.name}'")
                    continue
                names.add(f.name)
                fields.append(f)
            if len(self.problems) != n_before:
                continue
            self._check_tiling(f"{path}.encoding.fields", fields, instruction_size)

            operand_fields = {f.name: f for f in fields if not f.is_literal}
            syntax_text = entry.get("syntax")
            if syntax_text is None:
                specs = tuple(OperandSpec(name=n) for n in operand_fields)
                syntax_text = mnemonic + (" " + ", ".join(operand_fields) if operand_fields else "")
            else:
                try:
                    syn_mn, specs = parse_syntax(str(syntax_text))
                except ValueError as ex:
                    self.fail(f"{path}.syntax", str(ex))
                    continue
                if syntax.key(syn_mn) != syntax.key(mnemonic):
                    self.fail(f"{path}.syntax", f"la sintaxis empieza por '{syn_mn}', no por '{mnemonic}'")
                    continue
            used: Dict[str, int] = {}
            for spec in specs:
                for fname in spec.field_names:
                    used[fname] = used.get(fname, 0) + 1
                    f = operand_fields.get(fname)
                    if f is None:
                        self.fail(f"{path}.syntax", f"el operando '{fname}' no corresponde a ningún campo de operando")
                    elif spec.base == fname and f.type != "register":
                        self.fail(f"{path}.syntax", f"la base '{fname}' de '{spec}' debe ser un campo de registro")
            for fname in operand_fields:
                n = used.get(fname, 0)
                if n == 0:
                    self.fail(f"{path}.encoding.fields", f"el campo de operando '{fname}' no aparece en la sintaxis")
                elif n > 1:
                    self.fail(f"{path}.syntax", f"el operando '{fname}' aparece {n} veces")

            fixed_mask = 0
            fixed_value = 0
            for f in fields:
                if f.is_literal:
                    fixed_mask |= f.bit_mask
                    fixed_value |= (f.value or 0) << f.lo
            semantics = entry.get("semantics")
            if semantics is not None and not isinstance(semantics, str):
                self.fail(f"{path}.semantics", "se esperaba una cadena")
                semantics = None
            out.append(InstructionDef(
                mnemonic=mnemonic, syntax=str(syntax_text).strip(), operands=tuple(specs),
                fields=tuple(fields), index=i, fixed_mask=fixed_mask, fixed_value=fixed_value,
                description=str(entry.get("description", "")), semantics=semantics,
            ))
        return tuple(out)

    def directives(self, word_size: int) -> Mapping[str, DirectiveDef]:
        word_bytes = max(1, word_size // 8)
        raw = self.doc.get("directives")
        if raw is None:
            raw = list(DEFAULT_DIRECTIVES)
        if not isinstance(raw, list):
            self.fail("directives", "se esperaba una lista")
            return MappingProxyType({})
        out: Dict[str, DirectiveDef] = {}
        for i, entry in enumerate(raw):
            path = f"directives[{i}]"
            if isinstance(entry, str):
                entry = {"name": entry}
            if not isinstance(entry, Mapping):
                self.fail(path, "se esperaba un nombre o un objeto directiva")
                continue
            name = self._str(f"{path}.name", entry.get("name"))
            if name is None:
                continue
            name = name.lower()
            if not name.startswith(".") or len(name) < 2:
                self.fail(f"{path}.name", f"las directivas empiezan por '.': {name!r}")
                continue
            known_action, known_size = KNOWN_DIRECTIVES.get(name, (None, None))
            action = entry.get("action", known_action)
            if action is None:
                self.fail(f"{path}.action", f"directiva '{name}' sin acción conocida; declare 'action'")
                continue
            action = str(action).lower()
            if action not in DIRECTIVE_ACTIONS:
                self.fail(f"{path}.action", f"acción desconocida: {action!r}")
                continue
            size = None
            if action == "data":
                if entry.get("size") is not None:
                    size = self._int(f"{path}.size", entry["size"], minimum=1)
                elif known_size is not None:
                    size = known_size
                elif name == ".dword":
                    size = 2 * word_bytes
                else:
                    size = word_bytes
            if name in out:
                self.fail(f"{path}.name", f"directiva duplicada '{name}'")
                continue
            out[name] = DirectiveDef(name=name, action=action, size=size,
                                     description=str(entry.get("description", "")))
        return MappingProxyType(out)

    def pseudo_instructions(self, syntax: AssemblySyntax,
                            instructions: Sequence[InstructionDef]) -> Tuple[PseudoDef, ...]:
        raw = self.doc.get("pseudo_instructions", [])
        if not isinstance(raw, list):
            self.fail("pseudo_instructions", "se esperaba una lista")
            return ()
        real = {syntax.key(i.mnemonic) for i in instructions}
        out: List[PseudoDef] = []
        seen = set()
        for i, entry in enumerate(raw):
            path = f"pseudo_instructions[{i}]"
            if not isinstance(entry, Mapping):
                self.fail(path, "se esperaba un objeto pseudo-instrucción")
                continue
            mnemonic = self._str(f"{path}.mnemonic", entry.get("mnemonic"))
            if mnemonic is None:
                continue
            syntax_text = str(entry.get("syntax") or mnemonic)
            try:
                syn_mn, specs = parse_syntax(syntax_text)
            except ValueError as ex:
                self.fail(f"{path}.syntax", str(ex))
                continue
            if syntax.key(syn_mn) != syntax.key(mnemonic):
                self.fail(f"{path}.syntax", f"la sintaxis empieza por '{syn_mn}', no por '{mnemonic}'")
                continue
            if any(s.is_memory for s in specs):
                self.fail(f"{path}.syntax", "las pseudo-instrucciones sólo admiten parámetros simples")
                continue
            params = tuple(s.name for s in specs)
            if len(set(params)) != len(params):
                self.fail(f"{path}.syntax", "parámetros repetidos")
                continue
            expansion = entry.get("expansion")
            if isinstance(expansion, str):
                lines = [ln.strip() for ln in expansion.splitlines() if ln.strip()]
            elif isinstance(expansion, list) and all(isinstance(x, str) for x in expansion):
                lines = [x.strip() for x in expansion if x.strip()]
            else:
                self.fail(f"{path}.expansion", "se esperaba una cadena o lista de cadenas")
                continue
            if not lines:
                self.fail(f"{path}.expansion", "la expansión está vacía")
                continue
            bad = [ln.split(None, 1)[0] for ln in lines if syntax.key(ln.split(None, 1)[0]) not in real]
            if bad:
                self.fail(f"{path}.expansion", f"la expansión usa '{bad[0]}', que no es una instrucción real")
                continue
            key = (syntax.key(mnemonic), len(params))
            if key in seen:
                self.fail(path, f"pseudo-instrucción duplicada '{mnemonic}' con {len(params)} operandos")
                continue
            seen.add(key)
            out.append(PseudoDef(mnemonic=mnemonic, syntax=syntax_text.strip(), params=params,
                                 expansion=tuple(lines), description=str(entry.get("description", ""))))
        return tuple(out)

    def constants(self) -> Mapping[str, int]:
        raw = self.doc.get("constants", {})
        if not isinstance(raw, Mapping):
            self.fail("constants", "se esperaba un objeto")
            return MappingProxyType({})
        out: Dict[str, int] = {}
        for name, val in raw.items():
            path = f"constants.{name}"
            if not isinstance(name, str) or not SYMBOL_RE.match(name):
                self.fail(path, f"nombre de constante inválido: {name!r}")
                continue
            if isinstance(val, Mapping):
                val = val.get("value")
            v = self._int(path, val)
            if v is not None:
                out[name] = v
        return MappingProxyType(out)

    def ecall_services(self, registers: Sequence[Register],
                       syntax: AssemblySyntax) -> Mapping[int, EcallService]:
        raw = self.doc.get("ecall_services", {})
        if not isinstance(raw, Mapping):
            self.fail("ecall_services", "se esperaba un objeto")
            return MappingProxyType({})
        reg_names = {syntax.key(n) for r in registers for n in r.names}
        out: Dict[int, EcallService] = {}
        for key, val in raw.items():
            path = f"ecall_services.{key}"
            number = self._int(path, key, minimum=0)
            if number is None:
                continue
            if isinstance(val, str):
                val = {"name": val}
            if not isinstance(val, Mapping):
                self.fail(path, "se esperaba un objeto servicio")
                continue
            name = self._str(f"{path}.name", val.get("name"))
            if name is None:
                continue
            reg = val.get("register")
            if reg is not None and syntax.key(str(reg)) not in reg_names:
                self.fail(f"{path}.register", f"registro desconocido: {reg!r}")
                continue
            out[number] = EcallService(number=number, name=name,
                                       description=str(val.get("description", "")),
                                       register=reg)
        return MappingProxyType(out)

    def service_register(self, registers: Sequence[Register], syntax: AssemblySyntax) -> Optional[str]:
        raw = self.doc.get("service_register")
        if raw is None:
            return None
        if not isinstance(raw, str) or not any(syntax.key(raw) == syntax.key(n) for r in registers for n in r.names):
            self.fail("service_register", f"registro desconocido: {raw!r}")
            return None
        return raw

    # ---- ensamblado final ----

    def build(self) -> ISA:
        name, word_size, instruction_size, endianness = self.header()
        size, code_start, data_start = self.address_space()
        syntax = self.assembly_syntax()
        registers = self.registers(syntax, word_size or 8)
        instructions = self.instructions(syntax, instruction_size) if instruction_size else ()
        directives = self.directives(word_size or 8)
        pseudos = self.pseudo_instructions(syntax, instructions)
        constants = self.constants()
        services = self.ecall_services(registers, syntax)
        service_register = self.service_register(registers, syntax)
        if self.problems:
            path, reason = self.problems[0]
            raise SchemaError(path, reason, errors=self.problems)
        if name is None or word_size is None or instruction_size is None or endianness is None:
            raise SchemaError("$", "cabecera incompleta (name, word_size, endianness)")
        return ISA(
            name=name, version=str(self.doc.get("version", "1.0")),
            description=str(self.doc.get("description", "")),
            word_size=word_size, instruction_size=instruction_size, endianness=endianness,
            address_space_size=size, code_start=code_start, data_start=data_start,
            registers=registers, instructions=instructions, directives=directives,
            pseudo_instructions=pseudos, syntax=syntax, constants=constants,
            ecall_services=services,
            service_register=service_register,
        )


def load_from_document(doc: Mapping[str, Any]) -> ISA:
    """Valida `doc` y devuelve la ISA; lanza SchemaError (sin construir nada) si no es válido."""
    if not isinstance(doc, Mapping):
        raise SchemaError("$", "el documento ISA debe ser un objeto")
    isa = _DocumentChecker(doc).build()
    logger.debug("ISA '%s' v%s cargada: %d instrucciones, %d registros, %d pseudo",
                 isa.name, isa.version, len(isa.instructions), len(isa.registers),
                 len(isa.pseudo_instructions))
    return isa

def validate_document(doc: Any) -> List[str]:
    """Lista de problemas del documento ('ruta: motivo'); vacía si es válido."""
    try:
        load_from_document(doc)
    except SchemaError as ex:
        return ex.messages()
    return []

def load_from_file(path: str) -> ISA:
    with open(path, "r", encoding="utf-8") as f:
        try:
            doc = json.load(f)
        except json.JSONDecodeError as ex:
            raise SchemaError("$", f"JSON inválido: {ex}") from ex
    return load_from_document(doc)

def load_by_name(name: str) -> ISA:
    """Carga una ISA incluida por nombre (sin distinguir mayúsculas), por la misma validación."""
    from .builtin import BUILTIN_DOCUMENTS
    doc = BUILTIN_DOCUMENTS.get(name.strip().lower())
    if doc is None:
        raise SchemaError("$", f"ISA incluida desconocida: {name!r} "
                               f"(disponibles: {', '.join(sorted(BUILTIN_DOCUMENTS))})")
    return load_from_document(copy.deepcopy(doc))

def resolve_isa(isa: Any) -> ISA:
    """Acepta un ISA ya cargado, un documento o el nombre de una ISA incluida."""
    if isinstance(isa, ISA):
        return isa
    if isinstance(isa, str):
        return load_by_name(isa)
    return load_from_document(isa)


class ISALoader:
    """Fachada orientada a objetos sobre las funciones de carga."""

    def load_isa(self, name: str) -> ISA:
        return load_by_name(name)

    def load_isa_from_file(self, path: str) -> ISA:
        return load_from_file(path)

    def load_isa_from_document(self, doc: Mapping[str, Any]) -> ISA:
        return load_from_document(doc)

    def list_available_isas(self) -> List[str]:
        from .builtin import BUILTIN_DOCUMENTS
        return sorted(BUILTIN_DOCUMENTS)
