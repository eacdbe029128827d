import copy

import pytest

from src.isa_xform.loader import load_from_document

# ISA mínima: 8 registros, palabras de 16 bits, ADD de tres operandos y LI
MINIMAL_DOC = {
    "name": "MINI",
    "version": "1.0",
    "word_size": 16,
    "instruction_size": 16,
    "endianness": "little",
    "address_space": {"size": 4096, "default_code_start": 0},
    "registers": {"general_purpose": ["x0", "x1", "x2", "x3", "x4", "x5", "x6", "x7"]},
    "instructions": [
        {
            "mnemonic": "ADD",
            "syntax": "ADD rd, rs1, rs2",
            "encoding": {"fields": [
                {"name": "opcode", "bits": "15:12", "value": "0000"},
                {"name": "rd", "bits": "11:9", "type": "register"},
                {"name": "rs1", "bits": "8:6", "type": "register"},
                {"name": "rs2", "bits": "5:3", "type": "register"},
                {"name": "funct", "bits": "2:0", "value": "000"},
            ]},
        },
        {
            "mnemonic": "LI",
            "syntax": "LI rd, imm",
            "encoding": {"fields": [
                {"name": "opcode", "bits": "15:12", "value": "0001"},
                {"name": "rd", "bits": "11:9", "type": "register"},
                {"name": "imm", "bits": "8:0", "type": "signed_immediate"},
            ]},
        },
    ],
}


@pytest.fixture
def minimal_doc():
    return copy.deepcopy(MINIMAL_DOC)


@pytest.fixture
def minimal_isa():
    return load_from_document(copy.deepcopy(MINIMAL_DOC))
