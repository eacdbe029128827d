import pytest

from src.isa_xform import api
from src.isa_xform.loader import load_by_name

# --- validate ---

def test_validate_builtin_document():
    from src.isa_xform.builtin import builtin_document
    assert api.validate(builtin_document("zx16")) == {"valid": True, "errors": []}

def test_validate_reports_every_problem(minimal_doc):
    del minimal_doc["word_size"]
    minimal_doc["endianness"] = "middle"
    out = api.validate(minimal_doc)
    assert out["valid"] is False
    assert "word_size: campo obligatorio ausente" in out["errors"]
    assert any(e.startswith("endianness:") for e in out["errors"])

# --- assemble ---

def test_assemble_by_name():
    out = api.assemble("zx16", "start: LI x1, 5")
    assert out["success"] and out["errors"] == []
    assert out["machine_code"] == b"\x79\x0a"
    assert out["base_address"] == 32
    assert out["symbol_table"] == {"start": {"address": 32, "kind": "code"}}

def test_assemble_accepts_model_and_document(minimal_doc, minimal_isa):
    a = api.assemble(minimal_isa, "ADD x1, x2, x3")
    b = api.assemble(minimal_doc, "ADD x1, x2, x3")
    assert a == b
    assert a["machine_code"] == b"\x98\x02"

def test_assemble_errors_are_strings(minimal_isa):
    out = api.assemble(minimal_isa, "ADD x1, x2\nFOO x1")
    assert not out["success"]
    assert len(out["errors"]) == 2
    assert all(isinstance(e, str) for e in out["errors"])
    assert any(e.startswith("2:") and "FOO" in e for e in out["errors"])

def test_assemble_with_invalid_isa(minimal_doc):
    del minimal_doc["word_size"]
    out = api.assemble(minimal_doc, "ADD x1, x2, x3")
    assert out["success"] is False and out["machine_code"] == b""
    assert out["errors"] == ["ISA inválida: word_size: campo obligatorio ausente"]

def test_assemble_unknown_isa_name():
    out = api.assemble("x86", "NOP")
    assert not out["success"]
    assert out["errors"][0].startswith("ISA inválida:")

# --- disassemble ---

LI_RECORD = {"address": 32, "hex": "0a79", "mnemonic": "LI", "operands": ["x1", "5"], "comment": None}

@pytest.mark.parametrize("code", [b"\x79\x0a", "79 0a", "0x790a", [0x79, 0x0A], bytearray(b"\x79\x0a")])
def test_disassemble_input_forms(code):
    out = api.disassemble("zx16", code)
    assert out["errors"] == []
    assert out["instructions"] == [LI_RECORD]
    assert "0x0020: 0a79  LI x1, 5" in out["listing"]

def test_disassemble_bad_hex():
    out = api.disassemble("zx16", "0xZZ")
    assert out["instructions"] == []
    assert out["errors"][0].startswith("código máquina inválido")

def test_disassemble_base_address_and_pseudo():
    zx16 = load_by_name("zx16")
    code = api.assemble(zx16, "RET")["machine_code"]
    plain = api.disassemble(zx16, code, base_address=0x100)
    assert plain["instructions"][0]["address"] == 0x100
    assert plain["instructions"][0]["mnemonic"] == "JR"
    grouped = api.disassemble(zx16, code, reconstruct_pseudo=True)
    assert grouped["instructions"][0]["mnemonic"] == "RET"

def test_disassemble_undecodable_word(minimal_isa):
    out = api.disassemble(minimal_isa, b"\x00\xf0")
    assert out["instructions"][0]["mnemonic"] == ".word"
    assert len(out["errors"]) == 1

# --- simulate ---

def test_simulate_dictionary(minimal_doc):
    out = api.simulate(minimal_doc, "LI x1, 5\nADD x1, x1, x1", steps=10)
    assert out["isa_name"] == "MINI"
    assert out["total_steps"] == 2 and len(out["states"]) == 3
    assert out["states"][-1]["registers"]["x1"] == 10
    assert out["halted"] and out["halt_reason"] == "end_of_code"
    assert out["errors"] == []
    assert out["machine_code_hex"] == "05124802"

def test_simulate_step_limit_is_not_a_halt(minimal_isa):
    out = api.simulate(minimal_isa, "LI x1, 5\nADD x1, x1, x1", steps=1)
    assert out["halt_reason"] == "step_limit"
    assert out["total_steps"] == 1

def test_simulate_with_output():
    out = api.simulate("zx16", "LI a0, 7\nECALL 0\nECALL 1023\nLI a0, 1", steps=50)
    assert out["output"] == "7"
    assert out["halt_reason"] == "halt"
    assert out["total_steps"] == 3

def test_simulate_assembly_error(minimal_isa):
    out = api.simulate(minimal_isa, "FOO", steps=10)
    assert out["halt_reason"] == "assembly_error"
    assert len(out["states"]) == 1 and out["total_steps"] == 0
    assert len(out["errors"]) == 1
