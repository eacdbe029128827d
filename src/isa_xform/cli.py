from __future__ import annotations
import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from .assembler import assemble_text
from .disassembler import disassemble
from .errors import SchemaError
from .isa import ISA
from .loader import load_by_name, load_from_file, validate_document
from .simulator import HaltReason, simulate
from .writers import render_listing, write_bin, write_hex, write_image

def _load_isa(isa_arg: str) -> ISA:
    # ruta a un JSON o nombre de una ISA incluida
    if os.path.exists(isa_arg) or isa_arg.endswith(".json"):
        return load_from_file(isa_arg)
    return load_by_name(isa_arg)

def _read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()

def _cmd_validate(args: argparse.Namespace) -> int:
    try:
        doc = json.loads(_read_text(args.isa))
    except Exception as ex:
        print(f"ERROR: no pude leer {args.isa}: {ex}", file=sys.stderr)
        return 2
    errors = validate_document(doc)
    for e in errors:
        print(f"ERROR: {e}", file=sys.stderr)
    if errors:
        return 1
    print(f"OK: {args.isa} es un documento ISA válido")
    return 0

def _cmd_assemble(args: argparse.Namespace, isa: ISA) -> int:
    try:
        text = _read_text(args.source)
    except Exception as ex:
        print(f"ERROR: no pude leer {args.source}: {ex}", file=sys.stderr)
        return 2

    result = assemble_text(text, isa, filename=args.source)
    for d in result.diagnostics:
        print(d, file=sys.stderr)
    if not result.success:
        return 1

    try:
        write_image(result.machine_code, args.out)
        if args.hex:
            write_hex(result.words, isa, args.hex)
        if args.bin_text:
            write_bin(result.words, isa, args.bin_text)
    except Exception as ex:
        print(f"ERROR al escribir salidas: {ex}", file=sys.stderr)
        return 3

    print(f"OK: {len(result.words)} instrucciones, {len(result.machine_code)} bytes "
          f"desde 0x{result.base_address:04x} → {args.out}")
    return 0

def _cmd_disassemble(args: argparse.Namespace, isa: ISA) -> int:
    try:
        with open(args.binary, "rb") as f:
            data = f.read()
    except Exception as ex:
        print(f"ERROR: no pude leer {args.binary}: {ex}", file=sys.stderr)
        return 2

    result = disassemble(data, isa, reconstruct_pseudo=args.reconstruct_pseudo,
                         base_address=args.base)
    for d in result.diagnostics:
        print(d, file=sys.stderr)
    listing = render_listing(result, isa, title=os.path.basename(args.binary))
    if args.output:
        try:
            with open(args.output, "w", encoding="utf-8") as f:
                f.write(listing)
        except Exception as ex:
            print(f"ERROR al escribir salidas: {ex}", file=sys.stderr)
            return 3
    else:
        sys.stdout.write(listing)
    # las palabras no decodificables no impiden el listado
    return 1 if result.errors else 0

def _cmd_simulate(args: argparse.Namespace, isa: ISA) -> int:
    try:
        text = _read_text(args.source)
    except Exception as ex:
        print(f"ERROR: no pude leer {args.source}: {ex}", file=sys.stderr)
        return 2

    result = simulate(isa, text, args.steps, filename=args.source)
    if result.assembled is not None:
        for d in result.assembled.diagnostics:
            print(d, file=sys.stderr)
    if result.error is not None and result.halt_reason is HaltReason.ERROR:
        print(result.error, file=sys.stderr)

    final = result.final
    if final.output:
        sys.stdout.write(final.output + ("" if final.output.endswith("\n") else "\n"))
    regs = "  ".join(f"{name}=0x{value:x}" for name, value in final.registers.items() if value)
    flags = "".join(name if on else "-" for name, on in final.flags.items())
    reason = result.halt_reason.value if result.halt_reason else "-"
    print(f"pasos: {final.step}  pc=0x{final.pc:04x}  flags={flags}  motivo: {reason}")
    if regs:
        print(regs)
    return 1 if result.halt_reason in (HaltReason.ERROR, HaltReason.ASSEMBLY_ERROR) else 0

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="isa-xform",
                                 description="Ensamblador, desensamblador y simulador dirigidos por un documento ISA")
    ap.add_argument("-v", "--verbose", action="count", default=0, help="más detalle en el log (-v, -vv)")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("validate", help="valida un documento ISA JSON")
    p.add_argument("isa", help="archivo JSON con la ISA")

    p = sub.add_parser("assemble", help="ensambla un fuente a binario crudo")
    p.add_argument("isa", help="archivo JSON o nombre de ISA incluida (zx16, simple_risc, rv32i)")
    p.add_argument("source", help="archivo .s/.asm de entrada")
    p.add_argument("out", help="imagen binaria de salida")
    p.add_argument("--hex", help="además, palabras en hexadecimal (una por línea)")
    p.add_argument("--bin-text", dest="bin_text", help="además, palabras en binario ASCII")

    p = sub.add_parser("disassemble", help="desensambla una imagen binaria")
    p.add_argument("isa", help="archivo JSON o nombre de ISA incluida")
    p.add_argument("binary", help="imagen binaria de entrada")
    p.add_argument("-o", "--output", help="archivo del listado (por defecto, salida estándar)")
    p.add_argument("--base", type=lambda s: int(s, 0), default=None,
                   help="dirección de carga (por defecto, code_start de la ISA)")
    p.add_argument("--reconstruct-pseudo", dest="reconstruct_pseudo", action="store_true",
                   help="reagrupa secuencias en pseudo-instrucciones")

    p = sub.add_parser("simulate", help="ensambla y ejecuta un fuente")
    p.add_argument("isa", help="archivo JSON o nombre de ISA incluida")
    p.add_argument("source", help="archivo .s/.asm de entrada")
    p.add_argument("--steps", type=int, default=1000, help="máximo de instrucciones a ejecutar")
    return ap

def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    level = logging.WARNING if args.verbose == 0 else logging.INFO if args.verbose == 1 else logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    if args.command == "validate":
        return _cmd_validate(args)

    try:
        isa = _load_isa(args.isa)
    except OSError as ex:
        print(f"ERROR: no pude leer {args.isa}: {ex}", file=sys.stderr)
        return 2
    except SchemaError as ex:
        for m in ex.messages():
            print(f"ERROR: ISA inválida: {m}", file=sys.stderr)
        return 1

    if args.command == "assemble":
        return _cmd_assemble(args, isa)
    if args.command == "disassemble":
        return _cmd_disassemble(args, isa)
    return _cmd_simulate(args, isa)

if __name__ == "__main__":
    raise SystemExit(main())
