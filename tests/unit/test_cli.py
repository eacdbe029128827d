import json

from src.isa_xform.cli import main

def _write(path, text):
    path.write_text(text, encoding="utf-8")
    return str(path)

def test_assemble_writes_image_and_hex(tmp_path, capsys):
    src = _write(tmp_path / "prog.s", "start: LI x1, 5\nADD x1, x1\n")
    out = tmp_path / "prog.bin"
    hexf = tmp_path / "prog.hex"
    rc = main(["assemble", "zx16", src, str(out), "--hex", str(hexf)])
    assert rc == 0
    assert out.read_bytes() == b"\x79\x0a\x40\x02"
    assert hexf.read_text(encoding="utf-8") == "0x0a79\n0x0240\n"
    assert "OK: 2 instrucciones, 4 bytes desde 0x0020" in capsys.readouterr().out

def test_assemble_missing_source(tmp_path, capsys):
    rc = main(["assemble", "zx16", str(tmp_path / "nada.s"), str(tmp_path / "o.bin")])
    assert rc == 2
    assert "no pude leer" in capsys.readouterr().err

def test_assemble_with_errors(tmp_path, capsys):
    src = _write(tmp_path / "bad.s", "ADD x1\nJ nowhere\n")
    out = tmp_path / "bad.bin"
    rc = main(["assemble", "zx16", src, str(out)])
    assert rc == 1
    assert not out.exists()
    err = capsys.readouterr().err
    assert "bad.s:1" in err and "bad.s:2" in err

def test_assemble_with_json_isa(tmp_path, minimal_doc):
    isa = _write(tmp_path / "mini.json", json.dumps(minimal_doc))
    src = _write(tmp_path / "p.s", "ADD x1, x2, x3")
    out = tmp_path / "p.bin"
    assert main(["assemble", isa, src, str(out)]) == 0
    assert out.read_bytes() == b"\x98\x02"

def test_invalid_isa_file(tmp_path, minimal_doc, capsys):
    del minimal_doc["word_size"]
    isa = _write(tmp_path / "mini.json", json.dumps(minimal_doc))
    src = _write(tmp_path / "p.s", "ADD x1, x2, x3")
    assert main(["assemble", isa, src, str(tmp_path / "p.bin")]) == 1
    assert "ISA inválida: word_size" in capsys.readouterr().err

def test_disassemble_to_listing(tmp_path):
    binary = tmp_path / "prog.bin"
    binary.write_bytes(b"\x79\x0a")
    listing = tmp_path / "prog.lst"
    rc = main(["disassemble", "zx16", str(binary), "-o", str(listing)])
    assert rc == 0
    text = listing.read_text(encoding="utf-8")
    assert text.startswith("; prog.bin\n; ISA: ZX16")
    assert "0x0020: 0a79  LI x1, 5" in text

def test_disassemble_to_stdout_with_base(tmp_path, capsys):
    binary = tmp_path / "prog.bin"
    binary.write_bytes(b"\x79\x0a")
    assert main(["disassemble", "zx16", str(binary), "--base", "0x100"]) == 0
    assert "0x0100: 0a79  LI x1, 5" in capsys.readouterr().out

def test_validate_command(tmp_path, minimal_doc, capsys):
    good = _write(tmp_path / "mini.json", json.dumps(minimal_doc))
    assert main(["validate", good]) == 0
    assert "es un documento ISA válido" in capsys.readouterr().out

    bad = _write(tmp_path / "bad.json", "{ roto")
    assert main(["validate", bad]) == 2

    minimal_doc["endianness"] = "middle"
    wrong = _write(tmp_path / "wrong.json", json.dumps(minimal_doc))
    assert main(["validate", wrong]) == 1
    assert "endianness" in capsys.readouterr().err

def test_simulate_command(tmp_path, capsys):
    src = _write(tmp_path / "p.s", "LI a0, 9\nECALL 0\nECALL 1023\n")
    assert main(["simulate", "zx16", src]) == 0
    out = capsys.readouterr().out
    assert out.splitlines()[0] == "9"
    assert "motivo: halt" in out
    assert "pasos: 3" in out
