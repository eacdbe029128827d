from src.isa_xform.assembler import assemble_text
from src.isa_xform.loader import load_from_document
from src.isa_xform.simulator import HaltReason, Simulator, simulate

SRC = "LI x1, 5\nADD x1, x1, x1"

FROB = {
    "mnemonic": "FROB",
    "syntax": "FROB rd",
    "encoding": {"fields": [
        {"name": "opcode", "bits": "15:12", "value": "0010"},
        {"name": "rd", "bits": "11:9", "type": "register"},
        {"name": "zero", "bits": "8:0", "value": "000000000"},
    ]},
}

def test_states_per_step(minimal_isa):
    res = simulate(minimal_isa, SRC, steps=2)
    assert len(res.states) == 3
    # states[0] es el estado inicial
    assert res.states[0].registers["x1"] == 0 and res.states[0].pc == 0
    assert res.states[1].registers["x1"] == 5
    assert res.states[2].registers["x1"] == 10
    assert [s.step for s in res.states] == [0, 1, 2]
    assert res.halt_reason is HaltReason.END_OF_CODE and res.halted

def test_step_budget(minimal_isa):
    res = simulate(minimal_isa, SRC, steps=1)
    assert res.halt_reason is HaltReason.STEP_LIMIT
    assert len(res.states) == 2

def test_zero_steps(minimal_isa):
    res = simulate(minimal_isa, SRC, steps=0)
    assert len(res.states) == 1
    assert res.halt_reason is HaltReason.STEP_LIMIT

def test_assembly_error(minimal_isa):
    res = simulate(minimal_isa, "FOO x1", steps=5)
    assert res.halt_reason is HaltReason.ASSEMBLY_ERROR
    assert len(res.states) == 1
    assert "FOO" in res.error.message

def test_unimplemented_instruction_keeps_previous_state(minimal_doc):
    minimal_doc["instructions"].append(FROB)
    isa = load_from_document(minimal_doc)
    res = simulate(isa, "LI x1, 5\nFROB x1\nADD x1, x1, x1", steps=10)
    assert res.halt_reason is HaltReason.ERROR
    assert len(res.states) == 2
    assert res.final.registers["x1"] == 5
    assert "FROB" in res.error.message and res.error.kind == "simulation"

def test_interactive_continuation(minimal_isa):
    sim = Simulator(minimal_isa, assemble_text(SRC, minimal_isa))
    first = sim.run(1)
    assert first.halt_reason is HaltReason.STEP_LIMIT
    # agotar el presupuesto no detiene la simulación
    assert sim.halt_reason is None
    st = sim.step()
    assert st.registers["x1"] == 10
    assert sim.halt_reason is HaltReason.END_OF_CODE
    # una vez terminada, step no avanza
    assert sim.step() is st
    assert len(sim.result().states) == 3

    sim.reset()
    assert sim.state.registers["x1"] == 0 and sim.state.pc == 0
    assert sim.halt_reason is None

def test_empty_program_ends_immediately(minimal_isa):
    res = simulate(minimal_isa, "; nada", steps=5)
    assert res.halt_reason is HaltReason.END_OF_CODE
    assert len(res.states) == 1

def test_state_to_dict(minimal_isa):
    res = simulate(minimal_isa, ".data\n.byte 7\n.text\n" + SRC, steps=5)
    d = res.final.to_dict()
    assert d["step"] == 2 and d["pc"] == 4
    assert d["registers"]["x1"] == 10
    assert d["flags"] == {"Z": False, "N": False, "C": False, "V": False}
    assert d["memory"]["0x0004"] == 7
    assert d["output"] == ""

def test_large_address_space_is_not_allocated(minimal_doc):
    # 4 GiB de espacio: la memoria sólo guarda los bytes escritos
    minimal_doc["address_space"] = {"size": 1 << 32, "default_code_start": 0}
    isa = load_from_document(minimal_doc)
    sim = Simulator(isa, assemble_text(SRC, isa))
    assert sim.ctx.memory.size == 1 << 32
    res = sim.run(10)
    assert res.halt_reason is HaltReason.END_OF_CODE
    assert res.final.registers["x1"] == 10
    assert dict(res.final.memory) == {0: 0x05, 1: 0x12, 2: 0x48, 3: 0x02}

def test_unchanged_memory_is_shared_between_states(minimal_isa):
    res = simulate(minimal_isa, SRC, steps=5)
    first, *rest = res.states
    assert all(s.memory is first.memory for s in rest)

def test_long_loop_keeps_one_snapshot_per_store():
    from src.isa_xform.loader import load_by_name
    zx16 = load_by_name("zx16")
    res = simulate(zx16, "loop: J loop", steps=2000)
    assert res.halt_reason is HaltReason.STEP_LIMIT
    assert len(res.states) == 2001
    assert len({id(s.memory) for s in res.states}) == 1
