import pytest

from src.isa_xform.disassembler import decode_word
from src.isa_xform.errors import SimulationError
from src.isa_xform.executor import HANDLERS, ExecutionContext, InstructionExecutor, handler
from src.isa_xform.loader import load_by_name, load_from_document
from src.isa_xform.simulator import simulate

ZX16 = load_by_name("zx16")
RV32I = load_by_name("rv32i")

FROB = {
    "mnemonic": "FROB",
    "syntax": "FROB rd",
    "encoding": {"fields": [
        {"name": "opcode", "bits": "15:12", "value": "0010"},
        {"name": "rd", "bits": "11:9", "type": "register"},
        {"name": "zero", "bits": "8:0", "value": "000000000"},
    ]},
}

def _final(src, isa, steps=100):
    res = simulate(isa, src, steps)
    assert res.assembled.success, [str(d) for d in res.assembled.errors]
    return res, res.final

# --- registro de semánticas ---

def test_has_implementation(minimal_isa):
    ex = InstructionExecutor(minimal_isa)
    assert ex.has_implementation("ADD")
    assert ex.has_implementation(0x0298)
    assert ex.has_implementation(decode_word(0x1205, minimal_isa))
    assert not ex.has_implementation(0xF000)   # no decodifica
    assert not ex.has_implementation("FOO")

def test_semantics_key_routes_to_handler():
    ex = InstructionExecutor(ZX16)
    # BZ/BNZ reutilizan beq/bne
    assert ex.has_implementation("BZ") and ex.has_implementation("bnz")

def test_custom_handler_table(minimal_doc):
    minimal_doc["instructions"].append(FROB)
    isa = load_from_document(minimal_doc)

    def frob(s):
        s.write("rd", 0x1234)

    ex = InstructionExecutor(isa, {**HANDLERS, "frob": frob})
    ctx = ExecutionContext.fresh(isa)
    ex.execute_instruction(decode_word(0x2200, isa), ctx)
    assert ctx.registers["x1"] == 0x1234
    assert ctx.pc == 2 and ctx.steps == 1
    # la tabla global no cambia
    assert "frob" not in HANDLERS

def test_handler_decorator_registers_lowercase():
    @handler("PRUEBA_X")
    def _noop(s):
        pass
    try:
        assert HANDLERS["prueba_x"] is _noop
    finally:
        del HANDLERS["prueba_x"]

def test_failed_step_leaves_context_untouched(minimal_doc):
    minimal_doc["instructions"].append(FROB)
    isa = load_from_document(minimal_doc)
    ex = InstructionExecutor(isa)
    ctx = ExecutionContext.fresh(isa)
    with pytest.raises(SimulationError) as exc:
        ex.execute_instruction(decode_word(0x2200, isa), ctx)
    assert "FROB" in str(exc.value)
    assert ctx.pc == 0 and ctx.steps == 0

def test_fetch_outside_memory(minimal_isa):
    ex = InstructionExecutor(minimal_isa)
    ctx = ExecutionContext.fresh(minimal_isa, pc=4095)
    with pytest.raises(SimulationError):
        ex.fetch(ctx)

# --- aritmética y flags ---

def test_add_sets_zero_and_carry():
    _, st = _final("LI x1, -1\nADDI x1, 1", ZX16)
    assert st.registers["x1"] == 0
    assert st.flags == {"Z": True, "N": False, "C": True, "V": False}

def test_sub_borrow_and_negative():
    _, st = _final("LI x1, 1\nLI x2, 2\nSUB x1, x2", ZX16)
    assert st.registers["x1"] == 0xFFFF
    assert st.flags["N"] and st.flags["C"] and not st.flags["V"]

def test_signed_overflow_rv32i():
    _, st = _final("lui x1, 0x80000000\naddi x1, x1, -1\naddi x1, x1, 1", RV32I)
    assert st.registers["x1"] == 0x80000000
    assert st.flags == {"Z": False, "N": True, "C": False, "V": True}

@pytest.mark.parametrize("src,reg,value", [
    ("LI x1, -1\nLI x2, 1\nSLT x1, x2", "x1", 1),
    ("LI x1, -1\nLI x2, 1\nSLTU x1, x2", "x1", 0),
    ("LI x1, -8\nSRAI x1, 1", "x1", 0xFFFC),
    ("LI x1, -8\nSRLI x1, 1", "x1", 0x7FFC),
    ("LI x1, 3\nSLLI x1, 4", "x1", 48),
    ("LI x1, 12\nANDI x1, 10", "x1", 8),
    ("LI x1, 12\nXORI x1, 10", "x1", 6),
    ("LI x2, 9\nMV x1, x2", "x1", 9),
    ("LUI x1, 0x1200\nADDI x1, 0x34", "x1", 0x1234),
])
def test_zx16_alu(src, reg, value):
    _, st = _final(src, ZX16)
    assert st.registers[reg] == value

def test_hardwired_register_ignores_writes():
    isa = load_by_name("simple_risc")
    _, st = _final("ADDI R1, R0, 5\nADDI R0, R1, 1\nADD R2, R0, R1", isa)
    assert st.registers["R0"] == 0
    assert st.registers["R2"] == 5

# --- memoria ---

def test_loads_and_stores():
    src = "LI x3, 60\nLI x1, -5\nSW x1, 0(x3)\nLB x4, 0(x3)\nLBU x5, 0(x3)\nLW x6, 0(x3)"
    _, st = _final(src, ZX16)
    assert st.memory[60] == 0xFB and st.memory[61] == 0xFF
    assert st.registers["x4"] == 0xFFFB
    assert st.registers["x5"] == 0xFB
    assert st.registers["x6"] == 0xFFFB

def test_memory_fault_stops_with_error():
    res = simulate(ZX16, "LI x1, -1\nLW x2, 0(x1)", 10)
    assert res.halt_reason == "error"
    assert res.error.message == "Lectura fuera de memoria: 0xffff (2 bytes)"
    assert len(res.states) == 2
    assert res.final.registers["x1"] == 0xFFFF

# --- control de flujo ---

def test_countdown_loop():
    src = "LI x1, 3\nLI x2, 0\nloop:\nADDI x2, 2\nADDI x1, -1\nBNZ x1, loop"
    res, st = _final(src, ZX16)
    assert st.registers["x2"] == 6
    assert st.step == 11
    assert res.halt_reason == "end_of_code"

def test_call_and_return():
    src = "CALL func\nECALL 1023\nfunc:\nLI a0, 7\nRET"
    res, st = _final(src, ZX16)
    assert res.halt_reason == "halt"
    assert st.registers["x6"] == 7
    assert st.registers["x1"] == 34
    assert st.step == 4 and st.pc == 34

def test_absolute_jump():
    isa = load_by_name("simple_risc")
    res, st = _final("JMP end\nLI R1, 1\nend: LI R2, 2\nHALT", isa)
    assert st.registers["R1"] == 0 and st.registers["R2"] == 2
    assert res.halt_reason == "halt"

# --- servicios ---

def test_zx16_print_services():
    res, st = _final("LI a0, 42\nECALL 0\nLI a0, 33\nECALL 1\nLI a0, -3\nECALL 0\nECALL 1023", ZX16)
    assert st.output == "42!-3"
    assert res.halt_reason == "halt"

def test_zx16_print_string_from_data():
    src = '.data\nmsg: .asciz "hola"\n.text\nLI16 a0, msg\nECALL 2\nECALL 1023'
    res, st = _final(src, ZX16)
    assert st.registers["x6"] == 40
    assert st.output == "hola"

def test_rv32i_service_register():
    res, st = _final("li a7, 1\nli a0, 99\necall\nli a7, 11\nli a0, 33\necall\nli a7, 10\necall", RV32I)
    assert st.output == "99!"
    assert res.halt_reason == "halt"

def test_unknown_service():
    res = simulate(ZX16, "ECALL 5", 10)
    assert res.halt_reason == "error"
    assert res.error.message == "Servicio ecall desconocido: 5"

def test_ebreak_halts():
    res, st = _final("addi a0, x0, 1\nebreak\naddi a0, x0, 2", RV32I)
    assert res.halt_reason == "halt"
    assert st.registers["x10"] == 1 and st.pc == 4
