'''
ISAs incluidas (ZX16, SIMPLE_RISC y un subconjunto de RV32I) como documentos JSON
de solo lectura; se cargan por la misma validación que un documento externo
'''

from __future__ import annotations
import copy
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional


def _lit(name: str, bits: str, value: str) -> Dict[str, Any]:
    return {"name": name, "bits": bits, "value": value}

def _op(name: str, bits: str, type_: str, shift: int = 0) -> Dict[str, Any]:
    d: Dict[str, Any] = {"name": name, "bits": bits, "type": type_}
    if shift:
        d["shift"] = shift
    return d

def _ins(mnemonic: str, syntax: str, fields: List[Dict[str, Any]], description: str = "",
         semantics: Optional[str] = None) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "mnemonic": mnemonic,
        "syntax": syntax,
        "description": description,
        "encoding": {"fields": fields},
    }
    if semantics:
        d["semantics"] = semantics
    return d


# ----------------------------------------------------------------------------
# ZX16: 16 bits, 8 registros, formatos de dos operandos (rd también es fuente)
# ----------------------------------------------------------------------------

def _zx16_r(mn: str, funct4: str, funct3: str, desc: str, *, syntax: Optional[str] = None,
            rs2: bool = True, semantics: Optional[str] = None) -> Dict[str, Any]:
    return _ins(mn, syntax or f"{mn} rd, rs2", [
        _lit("funct4", "15:12", funct4),
        _op("rs2", "11:9", "register") if rs2 else _lit("zero", "11:9", "000"),
        _op("rd", "8:6", "register"),
        _lit("funct3", "5:3", funct3),
        _lit("opcode", "2:0", "000"),
    ], desc, semantics)

def _zx16_i(mn: str, funct3: str, imm_type: str, desc: str, *,
            semantics: Optional[str] = None) -> Dict[str, Any]:
    return _ins(mn, f"{mn} rd, imm", [
        _op("imm", "15:9", imm_type),
        _op("rd", "8:6", "register"),
        _lit("funct3", "5:3", funct3),
        _lit("opcode", "2:0", "001"),
    ], desc, semantics)

def _zx16_shift(mn: str, kind: str, desc: str) -> Dict[str, Any]:
    return _ins(mn, f"{mn} rd, imm", [
        _lit("shift_type", "15:13", kind),
        _op("imm", "12:9", "immediate"),
        _op("rd", "8:6", "register"),
        _lit("funct3", "5:3", "011"),
        _lit("opcode", "2:0", "001"),
    ], desc)

def _zx16_b(mn: str, funct3: str, desc: str, *, rs2: bool = True,
            semantics: Optional[str] = None) -> Dict[str, Any]:
    syntax = f"{mn} rs1, rs2, offset" if rs2 else f"{mn} rs1, offset"
    return _ins(mn, syntax, [
        _op("offset", "15:12", "offset", shift=1),
        _op("rs2", "11:9", "register") if rs2 else _lit("zero", "11:9", "000"),
        _op("rs1", "8:6", "register"),
        _lit("funct3", "5:3", funct3),
        _lit("opcode", "2:0", "010"),
    ], desc, semantics)

def _zx16_store(mn: str, funct3: str, desc: str) -> Dict[str, Any]:
    return _ins(mn, f"{mn} rs2, imm(rs1)", [
        _op("imm", "15:12", "signed_immediate"),
        _op("rs2", "11:9", "register"),
        _op("rs1", "8:6", "register"),
        _lit("funct3", "5:3", funct3),
        _lit("opcode", "2:0", "011"),
    ], desc)

def _zx16_load(mn: str, funct3: str, desc: str) -> Dict[str, Any]:
    return _ins(mn, f"{mn} rd, imm(rs2)", [
        _op("imm", "15:12", "signed_immediate"),
        _op("rs2", "11:9", "register"),
        _op("rd", "8:6", "register"),
        _lit("funct3", "5:3", funct3),
        _lit("opcode", "2:0", "100"),
    ], desc)


ZX16: Dict[str, Any] = {
    "name": "ZX16",
    "version": "1.0",
    "description": "RISC de 16 bits con 8 registros y formatos de dos operandos",
    "word_size": 16,
    "instruction_size": 16,
    "endianness": "little",
    "address_space": {"size": 65536, "default_code_start": 32},
    "registers": {
        "general_purpose": [
            {"name": "x0", "size": 16, "alias": ["t0"], "description": "temporal"},
            {"name": "x1", "size": 16, "alias": ["ra"], "description": "dirección de retorno"},
            {"name": "x2", "size": 16, "alias": ["sp"], "description": "puntero de pila"},
            {"name": "x3", "size": 16, "alias": ["s0"], "description": "preservado"},
            {"name": "x4", "size": 16, "alias": ["s1"], "description": "preservado"},
            {"name": "x5", "size": 16, "alias": ["t1"], "description": "temporal"},
            {"name": "x6", "size": 16, "alias": ["a0"], "description": "argumento / resultado"},
            {"name": "x7", "size": 16, "alias": ["a1"], "description": "argumento"},
        ],
        "special": [],
    },
    "instructions": [
        _zx16_r("ADD", "0000", "000", "rd = rd + rs2"),
        _zx16_r("SUB", "0001", "000", "rd = rd - rs2"),
        _zx16_r("SLT", "0010", "001", "rd = (rd < rs2) con signo"),
        _zx16_r("SLTU", "0011", "010", "rd = (rd < rs2) sin signo"),
        _zx16_r("SLL", "0100", "011", "rd = rd << rs2[3:0]"),
        _zx16_r("SRL", "0101", "100", "rd = rd >> rs2[3:0] lógico"),
        _zx16_r("SRA", "0110", "100", "rd = rd >> rs2[3:0] aritmético"),
        _zx16_r("OR", "0111", "101", "rd = rd | rs2"),
        _zx16_r("AND", "1000", "110", "rd = rd & rs2"),
        _zx16_r("XOR", "1001", "111", "rd = rd ^ rs2"),
        _zx16_r("MV", "1010", "000", "rd = rs2"),
        _zx16_r("JR", "1011", "000", "pc = rd", syntax="JR rd", rs2=False),
        _zx16_r("JALR", "1100", "000", "rd = pc + 2; pc = rs2"),
        _zx16_i("ADDI", "000", "signed_immediate", "rd = rd + imm"),
        _zx16_i("SLTI", "001", "signed_immediate", "rd = (rd < imm) con signo"),
        _zx16_i("SLTUI", "010", "immediate", "rd = (rd < imm) sin signo", semantics="sltiu"),
        _zx16_i("ORI", "100", "immediate", "rd = rd | imm"),
        _zx16_i("ANDI", "101", "immediate", "rd = rd & imm"),
        _zx16_i("XORI", "110", "immediate", "rd = rd ^ imm"),
        _zx16_i("LI", "111", "signed_immediate", "rd = imm"),
        _zx16_shift("SLLI", "001", "rd = rd << imm"),
        _zx16_shift("SRLI", "010", "rd = rd >> imm lógico"),
        _zx16_shift("SRAI", "100", "rd = rd >> imm aritmético"),
        _zx16_b("BEQ", "000", "si rs1 == rs2: pc += offset"),
        _zx16_b("BNE", "001", "si rs1 != rs2: pc += offset"),
        _zx16_b("BZ", "010", "si rs1 == 0: pc += offset", rs2=False, semantics="beq"),
        _zx16_b("BNZ", "011", "si rs1 != 0: pc += offset", rs2=False, semantics="bne"),
        _zx16_b("BLT", "100", "si rs1 < rs2 con signo: pc += offset"),
        _zx16_b("BGE", "101", "si rs1 >= rs2 con signo: pc += offset"),
        _zx16_b("BLTU", "110", "si rs1 < rs2 sin signo: pc += offset"),
        _zx16_b("BGEU", "111", "si rs1 >= rs2 sin signo: pc += offset"),
        _zx16_store("SB", "000", "mem8[rs1 + imm] = rs2"),
        _zx16_store("SW", "001", "mem16[rs1 + imm] = rs2"),
        _zx16_load("LB", "000", "rd = sext(mem8[rs2 + imm])"),
        _zx16_load("LW", "001", "rd = mem16[rs2 + imm]"),
        _zx16_load("LBU", "100", "rd = zext(mem8[rs2 + imm])"),
        _ins("J", "J offset", [
            _lit("link", "15", "0"),
            _op("offset", "14:6", "offset", shift=1),
            _lit("zero", "5:3", "000"),
            _lit("opcode", "2:0", "101"),
        ], "pc += offset"),
        _ins("JAL", "JAL rd, offset", [
            _lit("link", "15", "1"),
            _op("offset", "14:6", "offset", shift=1),
            _op("rd", "5:3", "register"),
            _lit("opcode", "2:0", "101"),
        ], "rd = pc + 2; pc += offset"),
        _ins("LUI", "LUI rd, imm", [
            _lit("flag", "15", "0"),
            _op("imm", "14:6", "immediate", shift=7),
            _op("rd", "5:3", "register"),
            _lit("opcode", "2:0", "110"),
        ], "rd = imm (imm múltiplo de 128)"),
        _ins("AUIPC", "AUIPC rd, imm", [
            _lit("flag", "15", "1"),
            _op("imm", "14:6", "immediate", shift=7),
            _op("rd", "5:3", "register"),
            _lit("opcode", "2:0", "110"),
        ], "rd = pc + imm (imm múltiplo de 128)"),
        _ins("ECALL", "ECALL svc", [
            _op("svc", "15:6", "immediate"),
            _lit("zero", "5:3", "000"),
            _lit("opcode", "2:0", "111"),
        ], "llamada al servicio svc"),
    ],
    "directives": [
        ".text", ".data", ".section", ".org", ".align", ".byte", ".half", ".word",
        ".ascii", ".asciz", ".string", ".space", ".equ", ".set", ".global", ".globl",
        ".extern",
    ],
    "pseudo_instructions": [
        {"mnemonic": "NOP", "syntax": "NOP", "expansion": "ADDI x0, 0"},
        {"mnemonic": "CLR", "syntax": "CLR rd", "expansion": "XOR rd, rd"},
        {"mnemonic": "NEG", "syntax": "NEG rd", "expansion": ["XORI rd, -1", "ADDI rd, 1"]},
        {"mnemonic": "NOT", "syntax": "NOT rd", "expansion": "XORI rd, -1"},
        {"mnemonic": "INC", "syntax": "INC rd", "expansion": "ADDI rd, 1"},
        {"mnemonic": "DEC", "syntax": "DEC rd", "expansion": "ADDI rd, -1"},
        {"mnemonic": "CALL", "syntax": "CALL offset", "expansion": "JAL x1, offset"},
        {"mnemonic": "RET", "syntax": "RET", "expansion": "JR x1"},
        {"mnemonic": "PUSH", "syntax": "PUSH rd", "expansion": ["ADDI x2, -2", "SW rd, 0(x2)"]},
        {"mnemonic": "POP", "syntax": "POP rd", "expansion": ["LW rd, 0(x2)", "ADDI x2, 2"]},
        {"mnemonic": "LI16", "syntax": "LI16 rd, imm",
         "description": "carga un valor de 16 bits con LUI + ADDI",
         "expansion": ["LUI rd, (imm + 0x40) & 0xFF80",
                       "ADDI rd, ((imm + 0x40) & 0x7F) - 0x40"]},
    ],
    "assembly_syntax": {
        "comment_char": "#",
        "label_suffix": ":",
        "register_prefix": "",
        "immediate_prefix": "",
        "hex_prefix": "0x",
        "binary_prefix": "0b",
        "case_sensitive": False,
    },
    "constants": {"STACK_TOP": 0xEFFE, "MMIO_BASE": 0xF000},
    "ecall_services": {
        "0": {"name": "print_int", "description": "imprime a0 como entero con signo", "register": "a0"},
        "1": {"name": "print_char", "description": "imprime el carácter de a0", "register": "a0"},
        "2": {"name": "print_string", "description": "imprime la cadena terminada en 0 apuntada por a0",
              "register": "a0"},
        "1023": {"name": "exit", "description": "detiene el programa"},
    },
}


# ----------------------------------------------------------------------------
# SIMPLE_RISC: 16 bits big-endian, tres operandos, R0 cableado a 0
# ----------------------------------------------------------------------------

def _simple_r(mn: str, funct: str, desc: str) -> Dict[str, Any]:
    return _ins(mn, f"{mn} rd, rs1, rs2", [
        _lit("opcode", "15:12", "0000"),
        _op("rd", "11:9", "register"),
        _op("rs1", "8:6", "register"),
        _op("rs2", "5:3", "register"),
        _lit("funct", "2:0", funct),
    ], desc)

def _simple_branch(mn: str, opcode: str, desc: str) -> Dict[str, Any]:
    return _ins(mn, f"{mn} rs1, rs2, offset", [
        _lit("opcode", "15:12", opcode),
        _op("rs1", "11:9", "register"),
        _op("rs2", "8:6", "register"),
        _op("offset", "5:0", "offset", shift=1),
    ], desc)


SIMPLE_RISC: Dict[str, Any] = {
    "name": "SIMPLE_RISC",
    "version": "1.0",
    "description": "RISC didáctico de 16 bits con formato de tres operandos",
    "word_size": 16,
    "instruction_size": 16,
    "endianness": "big",
    "address_space": {"size": 65536, "default_code_start": 0, "default_data_start": 4096},
    "registers": {
        "general_purpose": [
            {"name": "R0", "size": 16, "alias": ["zero"], "hardwired": 0},
            "R1", "R2", "R3", "R4", "R5", "R6",
            {"name": "R7", "size": 16, "alias": ["sp"]},
        ],
        "special": [],
    },
    "instructions": [
        _simple_r("ADD", "000", "rd = rs1 + rs2"),
        _simple_r("SUB", "001", "rd = rs1 - rs2"),
        _simple_r("AND", "010", "rd = rs1 & rs2"),
        _simple_r("OR", "011", "rd = rs1 | rs2"),
        _simple_r("XOR", "100", "rd = rs1 ^ rs2"),
        _simple_r("SLT", "101", "rd = (rs1 < rs2) con signo"),
        _simple_r("SLL", "110", "rd = rs1 << rs2"),
        _simple_r("SRL", "111", "rd = rs1 >> rs2"),
        _ins("ADDI", "ADDI rd, rs1, imm", [
            _lit("opcode", "15:12", "0001"),
            _op("rd", "11:9", "register"),
            _op("rs1", "8:6", "register"),
            _op("imm", "5:0", "signed_immediate"),
        ], "rd = rs1 + imm"),
        _ins("LI", "LI rd, imm", [
            _lit("opcode", "15:12", "0010"),
            _op("rd", "11:9", "register"),
            _op("imm", "8:0", "signed_immediate"),
        ], "rd = imm"),
        _ins("LW", "LW rd, imm(rs1)", [
            _lit("opcode", "15:12", "0011"),
            _op("rd", "11:9", "register"),
            _op("rs1", "8:6", "register"),
            _op("imm", "5:0", "signed_immediate"),
        ], "rd = mem16[rs1 + imm]"),
        _ins("SW", "SW rs2, imm(rs1)", [
            _lit("opcode", "15:12", "0100"),
            _op("rs2", "11:9", "register"),
            _op("rs1", "8:6", "register"),
            _op("imm", "5:0", "signed_immediate"),
        ], "mem16[rs1 + imm] = rs2"),
        _simple_branch("BEQ", "0101", "si rs1 == rs2: pc += offset"),
        _simple_branch("BNE", "0110", "si rs1 != rs2: pc += offset"),
        _ins("JMP", "JMP target", [
            _lit("opcode", "15:12", "0111"),
            _op("target", "11:0", "address", shift=1),
        ], "pc = target", semantics="j_abs"),
        _ins("JAL", "JAL rd, offset", [
            _lit("opcode", "15:12", "1000"),
            _op("rd", "11:9", "register"),
            _op("offset", "8:0", "offset", shift=1),
        ], "rd = pc + 2; pc += offset"),
        _ins("JR", "JR rs1", [
            _lit("opcode", "15:12", "1001"),
            _op("rs1", "11:9", "register"),
            _lit("zero", "8:0", "000000000"),
        ], "pc = rs1"),
        _ins("ECALL", "ECALL svc", [
            _lit("opcode", "15:12", "1110"),
            _op("svc", "11:0", "immediate"),
        ], "llamada al servicio svc"),
        _ins("HALT", "HALT", [
            _lit("opcode", "15:12", "1111"),
            _lit("zero", "11:0", "000000000000"),
        ], "detiene la ejecución"),
    ],
    "pseudo_instructions": [
        {"mnemonic": "NOP", "syntax": "NOP", "expansion": "ADD R0, R0, R0"},
        {"mnemonic": "MOV", "syntax": "MOV rd, rs", "expansion": "ADD rd, rs, R0"},
        {"mnemonic": "CLR", "syntax": "CLR rd", "expansion": "XOR rd, rd, rd"},
        {"mnemonic": "B", "syntax": "B offset", "expansion": "BEQ R0, R0, offset"},
    ],
    "assembly_syntax": {
        "comment_char": ";",
        "immediate_prefix": "#",
        "case_sensitive": False,
    },
    "ecall_services": {
        "1": {"name": "print_int", "register": "R1"},
        "2": {"name": "print_char", "register": "R1"},
        "10": {"name": "exit"},
    },
}


# ----------------------------------------------------------------------------
# RV32I (subconjunto): formatos R, I, U y cargas; sin inmediatos partidos (S/B/J)
# ----------------------------------------------------------------------------

RV32_ABI = (
    "zero", "ra", "sp", "gp", "tp", "t0", "t1", "t2", "s0", "s1",
    "a0", "a1", "a2", "a3", "a4", "a5", "a6", "a7",
    "s2", "s3", "s4", "s5", "s6", "s7", "s8", "s9", "s10", "s11",
    "t3", "t4", "t5", "t6",
)

def _rv_regs() -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for i, abi in enumerate(RV32_ABI):
        r: Dict[str, Any] = {"name": f"x{i}", "size": 32, "alias": [abi]}
        if i == 0:
            r["hardwired"] = 0
        if i == 8:
            r["alias"] = ["s0", "fp"]
        out.append(r)
    return out

def _rv_r(mn: str, funct7: str, funct3: str) -> Dict[str, Any]:
    return _ins(mn, f"{mn} rd, rs1, rs2", [
        _lit("funct7", "31:25", funct7),
        _op("rs2", "24:20", "register"),
        _op("rs1", "19:15", "register"),
        _lit("funct3", "14:12", funct3),
        _op("rd", "11:7", "register"),
        _lit("opcode", "6:0", "0110011"),
    ])

def _rv_i(mn: str, funct3: str, opcode: str = "0010011", *, memory: bool = False,
          semantics: Optional[str] = None) -> Dict[str, Any]:
    syntax = f"{mn} rd, imm(rs1)" if memory else f"{mn} rd, rs1, imm"
    return _ins(mn, syntax, [
        _op("imm", "31:20", "signed_immediate"),
        _op("rs1", "19:15", "register"),
        _lit("funct3", "14:12", funct3),
        _op("rd", "11:7", "register"),
        _lit("opcode", "6:0", opcode),
    ], semantics=semantics)

def _rv_shift(mn: str, funct7: str, funct3: str) -> Dict[str, Any]:
    return _ins(mn, f"{mn} rd, rs1, imm", [
        _lit("funct7", "31:25", funct7),
        _op("imm", "24:20", "immediate"),
        _op("rs1", "19:15", "register"),
        _lit("funct3", "14:12", funct3),
        _op("rd", "11:7", "register"),
        _lit("opcode", "6:0", "0010011"),
    ])

def _rv_u(mn: str, opcode: str) -> Dict[str, Any]:
    return _ins(mn, f"{mn} rd, imm", [
        _op("imm", "31:12", "immediate", shift=12),
        _op("rd", "11:7", "register"),
        _lit("opcode", "6:0", opcode),
    ])

def _rv_system(mn: str, funct12: str, semantics: str) -> Dict[str, Any]:
    return _ins(mn, mn, [
        _lit("funct12", "31:20", funct12),
        _lit("rs1", "19:15", "00000"),
        _lit("funct3", "14:12", "000"),
        _lit("rd", "11:7", "00000"),
        _lit("opcode", "6:0", "1110011"),
    ], semantics=semantics)


RV32I: Dict[str, Any] = {
    "name": "RV32I",
    "version": "2.1-subset",
    "description": "Subconjunto de RV32I sin formatos de inmediato partido",
    "word_size": 32,
    "instruction_size": 32,
    "endianness": "little",
    "address_space": {"size": 65536, "default_code_start": 0, "default_data_start": 8192},
    "registers": {"general_purpose": _rv_regs(), "special": []},
    "instructions": [
        _rv_r("ADD", "0000000", "000"),
        _rv_r("SUB", "0100000", "000"),
        _rv_r("SLL", "0000000", "001"),
        _rv_r("SLT", "0000000", "010"),
        _rv_r("SLTU", "0000000", "011"),
        _rv_r("XOR", "0000000", "100"),
        _rv_r("SRL", "0000000", "101"),
        _rv_r("SRA", "0100000", "101"),
        _rv_r("OR", "0000000", "110"),
        _rv_r("AND", "0000000", "111"),
        _rv_i("ADDI", "000"),
        _rv_i("SLTI", "010"),
        _rv_i("SLTIU", "011"),
        _rv_i("XORI", "100"),
        _rv_i("ORI", "110"),
        _rv_i("ANDI", "111"),
        _rv_shift("SLLI", "0000000", "001"),
        _rv_shift("SRLI", "0000000", "101"),
        _rv_shift("SRAI", "0100000", "101"),
        _rv_i("LB", "000", "0000011", memory=True),
        _rv_i("LH", "001", "0000011", memory=True),
        _rv_i("LW", "010", "0000011", memory=True),
        _rv_i("LBU", "100", "0000011", memory=True),
        _rv_i("LHU", "101", "0000011", memory=True),
        _rv_i("JALR", "000", "1100111", memory=True),
        _rv_u("LUI", "0110111"),
        _rv_u("AUIPC", "0010111"),
        _rv_system("ECALL", "000000000000", "ecall"),
        _rv_system("EBREAK", "000000000001", "halt"),
    ],
    "pseudo_instructions": [
        {"mnemonic": "NOP", "syntax": "NOP", "expansion": "ADDI x0, x0, 0"},
        {"mnemonic": "MV", "syntax": "MV rd, rs", "expansion": "ADDI rd, rs, 0"},
        {"mnemonic": "NOT", "syntax": "NOT rd, rs", "expansion": "XORI rd, rs, -1"},
        {"mnemonic": "NEG", "syntax": "NEG rd, rs", "expansion": "SUB rd, x0, rs"},
        {"mnemonic": "LI", "syntax": "LI rd, imm", "expansion": "ADDI rd, x0, imm"},
        {"mnemonic": "RET", "syntax": "RET", "expansion": "JALR x0, 0(x1)"},
        {"mnemonic": "JR", "syntax": "JR rs", "expansion": "JALR x0, 0(rs)"},
    ],
    "assembly_syntax": {"comment_chars": ["#", ";"], "case_sensitive": False},
    "service_register": "a7",
    "ecall_services": {
        "1": {"name": "print_int", "register": "a0"},
        "4": {"name": "print_string", "register": "a0"},
        "10": {"name": "exit"},
        "11": {"name": "print_char", "register": "a0"},
    },
}


def _freeze(docs: Mapping[str, Dict[str, Any]]) -> Mapping[str, Dict[str, Any]]:
    return MappingProxyType({k.lower(): v for k, v in docs.items()})

# Tabla inmutable; load_by_name copia el documento antes de validarlo
BUILTIN_DOCUMENTS: Mapping[str, Dict[str, Any]] = _freeze({
    "zx16": ZX16,
    "simple_risc": SIMPLE_RISC,
    "rv32i": RV32I,
})

def builtin_document(name: str) -> Dict[str, Any]:
    """Copia profunda del documento incluido (para editarlo o validarlo aparte)."""
    doc = BUILTIN_DOCUMENTS.get(name.strip().lower())
    if doc is None:
        raise KeyError(name)
    return copy.deepcopy(doc)
