'''
tabla de símbolos, layout de secciones (pasada 1) y sustitución de operandos
simbólicos (pasada 2)
'''

from __future__ import annotations
import difflib
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Literal, Mapping, Optional, Tuple, Union

from .ast import (
    Label, Directive, Instruction, Comment, Node, Reg, Imm, Sym, Expr, Mem, Value, symbol_names,
)
from .diagnostics import Diagnostic
from .errors import ParseError, ResolutionError
from .expr import Expression, ExprError, UnresolvedSymbol, compile_expr
from .isa import ISA, DirectiveDef, InstructionDef
from .utils import align_up, value_text

logger = logging.getLogger(__name__)

SymbolKind = Literal["code", "data", "constant", "external"]
ADDRESS_KINDS = ("code", "data")

# ---------- Tabla de símbolos ----------

@dataclass
class Symbol:
    name: str
    value: Optional[int]
    kind: SymbolKind
    line: Optional[int] = None        # None: constante predefinida por la ISA
    section: Optional[str] = None
    exported: bool = False

class SymbolTable:
    """Nombres únicos -> Symbol, con las líneas que referencian cada nombre."""

    def __init__(self) -> None:
        self._symbols: Dict[str, Symbol] = {}
        self.references: Dict[str, List[int]] = {}

    def define(self, sym: Symbol) -> Optional[Symbol]:
        """Registra el símbolo. Si el nombre ya existe devuelve el previo y no lo reemplaza."""
        prev = self._symbols.get(sym.name)
        if prev is not None:
            return prev
        self._symbols[sym.name] = sym
        return None

    def get(self, name: str) -> Optional[Symbol]:
        return self._symbols.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._symbols

    def __iter__(self) -> Iterator[str]:
        return iter(self._symbols)

    def __len__(self) -> int:
        return len(self._symbols)

    def symbols(self) -> List[Symbol]:
        return list(self._symbols.values())

    def add_reference(self, name: str, line: int) -> None:
        self.references.setdefault(name, []).append(line)

    def values(self) -> Dict[str, int]:
        return {n: s.value for n, s in self._symbols.items() if s.value is not None}

    def as_dict(self, *, include_predefined: bool = False) -> Dict[str, Dict[str, object]]:
        """{nombre: {"address", "kind"}} de los símbolos definidos en el fuente."""
        return {
            n: {"address": s.value, "kind": s.kind}
            for n, s in self._symbols.items()
            if include_predefined or s.line is not None
        }

# ---------- Resultados ----------

@dataclass(frozen=True)
class Section:
    name: str
    base: int
    size: int

    @property
    def end(self) -> int:
        return self.base + self.size

@dataclass(frozen=True)
class ResolvedInstruction:
    """Instrucción con dirección y variante elegidas; `values` va de campo de operando a entero."""
    node: Instruction
    section: str
    address: int
    size: int
    definition: Optional[InstructionDef]
    values: Mapping[str, int] = field(default_factory=dict)

@dataclass(frozen=True)
class ResolvedData:
    """Directiva que emite bytes: `values` de `item_size` bytes cada uno o `payload` literal."""
    node: Directive
    section: str
    address: int
    size: int
    item_size: int = 0
    values: Tuple[int, ...] = ()
    payload: bytes = b""

ResolvedItem = Union[ResolvedInstruction, ResolvedData]

@dataclass(frozen=True)
class ResolveResult:
    items: List[ResolvedItem]
    symbols: SymbolTable
    sections: List[Section]
    diagnostics: List[Diagnostic]
    emittable: bool = True

# ---------- Helpers ----------

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0", "\\": "\\", '"': '"', "'": "'"}
_HEX_ESC_RE = re.compile(r"[0-9a-fA-F]{2}")

def is_string_literal(tok: str) -> bool:
    t = tok.strip()
    return len(t) >= 2 and t[0] == '"' and t[-1] == '"'

def decode_string(tok: str) -> bytes:
    """
    Convierte '"..."' a bytes UTF-8. Soporta escapes: \\n, \\t, \\r, \\0, \\\\, \\", \\xNN.
    """
    t = tok.strip()
    if not is_string_literal(t):
        raise ValueError(f"se esperaba una cadena entre comillas: {tok}")
    inner = t[1:-1]
    out: List[str] = []
    i = 0
    while i < len(inner):
        ch = inner[i]
        if ch == "\\" and i + 1 < len(inner):
            nxt = inner[i + 1]
            if nxt == "x" and _HEX_ESC_RE.match(inner, i + 2):
                out.append(chr(int(inner[i + 2:i + 4], 16)))
                i += 4
                continue
            if nxt in _ESCAPES:
                out.append(_ESCAPES[nxt])
                i += 2
                continue
            raise ValueError(f"secuencia de escape desconocida: \\{nxt}")
        out.append(ch)
        i += 1
    return "".join(out).encode("utf-8")

@dataclass
class _SectionState:
    name: str
    order: int
    base: Optional[int] = None       # fija: text, data con default_data_start, o tras .org
    lc: int = 0
    align: int = 1

    def address(self) -> int:
        return (self.base or 0) + self.lc

@dataclass
class _Slot:
    node: Union[Instruction, Directive]
    section: _SectionState
    offset: int
    size: int
    payload: Optional[bytes] = None

    @property
    def address(self) -> int:
        return (self.section.base or 0) + self.offset

# ---------- Resolución ----------

class _Resolver:

    def __init__(self, isa: ISA, filename: Optional[str]):
        self.isa = isa
        self.filename = filename
        self.table = SymbolTable()
        self.diags: List[Diagnostic] = []
        self.sections: Dict[str, _SectionState] = {}
        self.slots: List[_Slot] = []
        self.labels: List[Tuple[Symbol, _SectionState, int]] = []
        self.constants: List[Tuple[Symbol, Expression, Directive]] = []
        self.globals: List[Tuple[str, Directive]] = []
        self.duplicates = False
        for name, value in isa.constants.items():
            self.table.define(Symbol(name=name, value=value, kind="constant"))

    # ---- diagnósticos ----

    def _err(self, exc_type, message: str, node: Node, hint: Optional[str] = None) -> None:
        self.diags.append(exc_type(message, line=node.line, col=node.col, file=self.filename,
                                   hint=hint).diagnostic)

    def _suggest(self, name: str) -> Optional[str]:
        close = difflib.get_close_matches(name, list(self.table), n=1)
        return f"¿quiso decir '{close[0]}'?" if close else None

    # ---- pasada 1 ----

    def _section(self, name: str) -> _SectionState:
        sec = self.sections.get(name)
        if sec is None:
            base = None
            if name == "text":
                base = self.isa.code_start
            elif name == "data":
                base = self.isa.data_start
            sec = _SectionState(name=name, order=len(self.sections), base=base)
            self.sections[name] = sec
        return sec

    def _define(self, sym: Symbol, node: Node) -> bool:
        prev = self.table.define(sym)
        if prev is None:
            return True
        self.duplicates = True
        if prev.line is None:
            self._err(ResolutionError, f"'{sym.name}' ya está definido como constante de la ISA", node)
        else:
            self._err(ResolutionError,
                      f"símbolo duplicado '{sym.name}' (definido en las líneas {prev.line} y {node.line})",
                      node, hint="renombre una de las dos definiciones")
        return False

    def _const_env(self) -> Dict[str, int]:
        return {s.name: s.value for s in self.table.symbols()
                if s.kind == "constant" and s.value is not None}

    def _const_arg(self, node: Directive, index: int, default: Optional[int] = None) -> int:
        """Argumento que debe conocerse durante el layout (números y constantes ya definidas)."""
        if index >= len(node.args):
            if default is not None:
                return default
            raise ParseError(f"{node.name} requiere un argumento", line=node.line, col=node.col,
                             file=self.filename)
        text = node.args[index]
        try:
            return compile_expr(text, self.isa.syntax).evaluate(self._const_env())
        except UnresolvedSymbol as ex:
            raise ResolutionError(f"el argumento de {node.name} debe ser constante en este punto: '{text}'",
                                  line=node.line, col=node.col, file=self.filename,
                                  hint=f"'{ex.name}' no es una constante definida antes") from ex
        except ExprError as ex:
            raise ParseError(f"argumento inválido en {node.name}: '{text}'", line=node.line,
                             col=node.col, file=self.filename, hint=str(ex)) from ex

    def _layout_directive(self, node: Directive, d: DirectiveDef, cur: _SectionState) -> Tuple[int, Optional[bytes]]:
        action = d.action
        if action == "data":
            count = 0
            for a in node.args:
                count += len(decode_string(a)) if is_string_literal(a) else 1
            return count * (d.size or self.isa.word_bytes), None
        if action in ("string", "string_z"):
            if not node.args:
                raise ParseError(f"{node.name} requiere al menos una cadena", line=node.line,
                                 col=node.col, file=self.filename)
            out = b""
            for a in node.args:
                if not is_string_literal(a):
                    raise ParseError(f"{node.name} requiere cadenas entre comillas: {a}",
                                     line=node.line, col=node.col, file=self.filename)
                out += decode_string(a) + (b"\0" if action == "string_z" else b"")
            return len(out), out
        if action == "space":
            n = self._const_arg(node, 0)
            fill = self._const_arg(node, 1, default=0)
            if n < 0:
                raise ParseError(f"{node.name} con tamaño negativo", line=node.line, col=node.col,
                                 file=self.filename)
            if n > self.isa.address_space_size:
                raise ParseError(f"{node.name} excede el espacio de direcciones: {value_text(n)}",
                                 line=node.line, col=node.col, file=self.filename)
            return n, bytes([fill & 0xFF]) * n
        if action in ("align", "align_pow2"):
            n = self._const_arg(node, 0)
            if action == "align_pow2":
                if not 0 <= n < 32:
                    raise ParseError(f"{node.name} fuera de rango: {value_text(n)}", line=node.line,
                                     col=node.col, file=self.filename)
                n = 1 << n
            if n <= 0:
                raise ParseError(f"{node.name} requiere una alineación positiva", line=node.line,
                                 col=node.col, file=self.filename)
            if n > self.isa.address_space_size:
                raise ParseError(f"{node.name} excede el espacio de direcciones: {value_text(n)}",
                                 line=node.line, col=node.col, file=self.filename)
            cur.align = max(cur.align, n)
            here = cur.address()
            pad = align_up(here, n) - here
            return pad, bytes(pad)
        if action == "origin":
            target = self._const_arg(node, 0)
            if not 0 <= target <= self.isa.address_space_size:
                raise ResolutionError(f".org fuera del espacio de direcciones: {value_text(target)}",
                                      line=node.line, col=node.col, file=self.filename)
            if cur.base is None:
                if cur.lc:
                    raise ResolutionError(f".org en la sección '{cur.name}' sin dirección base fija",
                                          line=node.line, col=node.col, file=self.filename,
                                          hint="use .org antes de emitir datos en la sección")
                cur.base = target
                return 0, b""
            here = cur.address()
            if target < here:
                raise ResolutionError(f".org no puede retroceder (0x{target:x} < 0x{here:x})",
                                      line=node.line, col=node.col, file=self.filename)
            return target - here, bytes(target - here)
        return 0, None

    def _layout(self, nodes: List[Node]) -> None:
        isa = self.isa
        cur = self._section("text")
        for n in nodes:
            if isinstance(n, Comment):
                continue
            if isinstance(n, Label):
                kind: SymbolKind = "code" if cur.name == "text" else "data"
                sym = Symbol(name=n.name, value=None, kind=kind, line=n.line, section=cur.name)
                if self._define(sym, n):
                    self.labels.append((sym, cur, cur.lc))
                continue
            if isinstance(n, Instruction):
                self.slots.append(_Slot(n, cur, cur.lc, isa.instruction_bytes))
                cur.lc += isa.instruction_bytes
                continue
            d = isa.directive(n.name)
            if d is None:
                self._err(ParseError, f"Directiva desconocida: '{n.name}'", n)
                continue
            if d.action == "section":
                name = n.args[0] if (n.name == ".section" and n.args) else n.name
                cur = self._section(name.lstrip("."))
            elif d.action == "constant":
                self._layout_constant(n)
            elif d.action == "global":
                self.globals.extend((a, n) for a in n.args)
            elif d.action == "external":
                for a in n.args:
                    self._define(Symbol(name=a, value=None, kind="external", line=n.line), n)
            elif d.action != "ignore":
                try:
                    size, payload = self._layout_directive(n, d, cur)
                except (ParseError, ResolutionError) as ex:
                    self.diags.append(ex.diagnostic)
                    continue
                except ValueError as ex:
                    self._err(ParseError, f"argumento inválido en {n.name}", n, hint=str(ex))
                    continue
                self.slots.append(_Slot(n, cur, cur.lc, size, payload))
                cur.lc += size

    def _layout_constant(self, n: Directive) -> None:
        name, text = n.args[0], n.args[1]
        try:
            expr = compile_expr(text, self.isa.syntax)
        except ExprError as ex:
            self._err(ParseError, f"valor inválido en {n.name}: '{text}'", n, hint=str(ex))
            return
        value: Optional[int] = None
        try:
            # valor provisional para .space/.align; el definitivo se calcula tras el layout
            value = expr.evaluate(self._const_env())
        except ExprError:
            pass
        sym = Symbol(name=name, value=value, kind="constant", line=n.line)
        if self._define(sym, n):
            self.constants.append((sym, expr, n))

    def _place_sections(self) -> List[Section]:
        isa = self.isa
        fixed = [s for s in self.sections.values() if s.base is not None]
        cursor = max((s.base + s.lc for s in fixed), default=isa.code_start)
        for sec in sorted(self.sections.values(), key=lambda s: s.order):
            if sec.base is None:
                sec.base = align_up(cursor, max(isa.word_bytes, sec.align))
                cursor = sec.base + sec.lc
        placed = sorted((Section(s.name, s.base or 0, s.lc) for s in self.sections.values() if s.lc),
                        key=lambda s: (s.base, s.name))
        for a, b in zip(placed, placed[1:]):
            if a.end > b.base:
                self.diags.append(ResolutionError(
                    f"las secciones '{a.name}' [0x{a.base:x}, 0x{a.end:x}) y '{b.name}' "
                    f"[0x{b.base:x}, 0x{b.end:x}) se solapan", file=self.filename).diagnostic)
        for s in placed:
            if s.end > isa.address_space_size:
                self.diags.append(ResolutionError(
                    f"la sección '{s.name}' termina en 0x{s.end:x}, fuera del espacio de direcciones "
                    f"(0x{isa.address_space_size:x})", file=self.filename).diagnostic)
        for s in placed:
            logger.debug("sección %s: base=0x%x tamaño=%d", s.name, s.base, s.size)
        return placed

    def _finish_symbols(self) -> None:
        for sym, sec, offset in self.labels:
            sym.value = (sec.base or 0) + offset
            logger.debug("etiqueta %s = 0x%x (%s)", sym.name, sym.value, sec.name)
        # .equ en orden de dependencias
        pending = list(self.constants)
        for sym, _, _ in pending:
            sym.value = None
        while pending:
            env = self.table.values()
            progress = False
            rest = []
            for sym, expr, n in pending:
                if all(name in env for name in expr.names):
                    try:
                        sym.value = expr.evaluate(env)
                    except ExprError as ex:
                        self._err(ResolutionError, f"no se puede evaluar {n.name} {sym.name}", n, hint=str(ex))
                        sym.value = 0
                    progress = True
                else:
                    rest.append((sym, expr, n))
            pending = rest
            if not progress:
                break
        pending_names = {sym.name for sym, _, _ in pending}
        for sym, expr, n in pending:
            for name in expr.names:
                if name in pending_names:
                    self._err(ResolutionError, f"definición circular de '{sym.name}' (vía '{name}')", n)
                    break
                if self.table.get(name) is None:
                    self._err(ResolutionError, f"símbolo no definido: '{name}'", n, hint=self._suggest(name))
            sym.value = 0
        for name, n in self.globals:
            sym = self.table.get(name)
            if sym is None:
                self._err(ResolutionError, f"símbolo global '{name}' no definido", n)
            else:
                sym.exported = True

    # ---- pasada 2 ----

    def _check_refs(self, names, node: Node) -> None:
        for name in names:
            self.table.add_reference(name, node.line)
            sym = self.table.get(name)
            if sym is None:
                self._err(ResolutionError, f"símbolo no definido: '{name}'", node, hint=self._suggest(name))
            elif sym.kind == "external":
                self._err(ResolutionError, f"símbolo externo '{name}' sin definición en este programa", node,
                          hint="el ensamblador no enlaza con otros módulos")

    def _evaluate(self, op: Value, node: Node) -> Tuple[int, bool]:
        """(valor, es_dirección). Los símbolos ausentes ya se reportaron: valen 0.

        Un operando es una dirección si sus símbolos de código o datos suman peso +1
        (`loop`, `loop + 4`); una diferencia como `fin - inicio` es un desplazamiento.
        """
        if isinstance(op, Imm):
            return op.value, False
        names = (op.name,) if isinstance(op, Sym) else op.names
        syms = [self.table.get(n) for n in names]
        addresses = {n for n, s in zip(names, syms) if s is not None and s.kind in ADDRESS_KINDS}
        if any(s is None or s.value is None for s in syms):
            return 0, bool(addresses)
        if isinstance(op, Sym):
            return syms[0].value, bool(addresses)  # type: ignore[union-attr]
        values = self.table.values()
        try:
            value = op.expression.evaluate(values)
        except ExprError as ex:
            self._err(ResolutionError, f"no se puede evaluar '{op.expression}'", node, hint=str(ex))
            return 0, bool(addresses)
        if not addresses:
            return value, False
        shifted = dict(values)
        for n in addresses:
            shifted[n] += 1
        try:
            return value, op.expression.evaluate(shifted) - value == 1
        except ExprError:
            return value, False

    def _bind(self, d: InstructionDef, node: Instruction, pc: int,
              evaluated: Dict[int, Tuple[int, bool]]) -> Optional[Dict[str, int]]:
        """Valores por campo si la forma de los operandos encaja con la variante; None si no."""
        if len(d.operands) != len(node.operands):
            return None
        values: Dict[str, int] = {}

        def number(i: int, fname: str) -> int:
            v, rel = evaluated[i]
            f = d.field(fname)
            if f is not None and f.type == "offset" and rel:
                return v - pc
            return v

        for i, (spec, op) in enumerate(zip(d.operands, node.operands)):
            if spec.is_memory:
                if not isinstance(op, Mem) or op.base.index is None:
                    return None
                values[spec.base] = op.base.index  # type: ignore[index]
                if spec.name:
                    values[spec.name] = number(i, spec.name)
                elif not (isinstance(op.offset, Imm) and op.offset.value == 0):
                    return None
                continue
            f = d.field(spec.name)
            if f is None:
                return None
            if f.type == "register":
                if not isinstance(op, Reg) or op.index is None:
                    return None
                values[spec.name] = op.index
            else:
                if isinstance(op, (Reg, Mem)):
                    return None
                values[spec.name] = number(i, spec.name)
        return values

    def _resolve_instruction(self, slot: _Slot, node: Instruction) -> ResolvedInstruction:
        pc = slot.address
        base = dict(node=node, section=slot.section.name, address=pc, size=slot.size)
        if node.malformed:
            return ResolvedInstruction(definition=None, **base)
        evaluated: Dict[int, Tuple[int, bool]] = {}
        for i, op in enumerate(node.operands):
            self._check_refs(symbol_names(op), node)
            value_op = op.offset if isinstance(op, Mem) else op
            if not isinstance(value_op, Reg):
                evaluated[i] = self._evaluate(value_op, node)
        chosen = None
        fallback = None
        for d in self.isa.instructions_for(node.mnemonic):
            values = self._bind(d, node, pc, evaluated)
            if values is None:
                continue
            if all(d.field(k).fits(v) for k, v in values.items()):  # type: ignore[union-attr]
                chosen = (d, values)
                break
            if fallback is None:
                fallback = (d, values)
        chosen = chosen or fallback
        if chosen is None:
            return ResolvedInstruction(definition=None, **base)
        return ResolvedInstruction(definition=chosen[0], values=chosen[1], **base)

    def _resolve_data(self, slot: _Slot, node: Directive) -> ResolvedData:
        base = dict(node=node, section=slot.section.name, address=slot.address, size=slot.size)
        if slot.payload is not None:
            return ResolvedData(payload=slot.payload, **base)
        d = self.isa.directive(node.name)
        item = (d.size if d and d.size else self.isa.word_bytes)
        values: List[int] = []
        for a in node.args:
            if is_string_literal(a):
                values.extend(decode_string(a))
                continue
            try:
                expr = compile_expr(a, self.isa.syntax)
            except ExprError as ex:
                self._err(ParseError, f"argumento inválido en {node.name}: '{a}'", node, hint=str(ex))
                values.append(0)
                continue
            self._check_refs(expr.names, node)
            try:
                values.append(expr.evaluate(self.table.values()))
            except UnresolvedSymbol:
                values.append(0)
            except ExprError as ex:
                self._err(ResolutionError, f"no se puede evaluar '{a}'", node, hint=str(ex))
                values.append(0)
        return ResolvedData(item_size=item, values=tuple(values), **base)

    def run(self, nodes: List[Node]) -> ResolveResult:
        self._layout(nodes)
        sections = self._place_sections()
        self._finish_symbols()
        items: List[ResolvedItem] = []
        for slot in self.slots:
            if isinstance(slot.node, Instruction):
                items.append(self._resolve_instruction(slot, slot.node))
            elif isinstance(slot.node, Directive):
                items.append(self._resolve_data(slot, slot.node))
        logger.info("resolución: %d elementos, %d símbolos, %d secciones, %d diagnósticos",
                    len(items), len(self.table), len(sections), len(self.diags))
        return ResolveResult(items=items, symbols=self.table, sections=sections,
                             diagnostics=self.diags, emittable=not self.duplicates)


def resolve(nodes: List[Node], isa: ISA, *, filename: Optional[str] = None) -> ResolveResult:
    """Asigna direcciones (pasada 1) y resuelve los operandos simbólicos (pasada 2).

    Los errores no se lanzan: se acumulan en `diagnostics`, uno por cada aparición
    de un símbolo no definido. Las etiquetas duplicadas dejan `emittable=False`.
    """
    return _Resolver(isa, filename).run(nodes)
