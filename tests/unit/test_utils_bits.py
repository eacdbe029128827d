import pytest

from src.isa_xform.utils import (
    mask, sign_extend, is_unsigned_nbit, is_signed_nbit, fits_either, align_up,
    to_bin, to_hex, parse_bit_range, parse_literal, word_to_bytes, bytes_to_word,
)

def test_formats_follow_width():
    assert to_bin(1, 16) == "0" * 15 + "1"
    assert to_hex(0x1234, 32) == "0x00001234"
    assert to_hex(-1, 16, prefix=False) == "ffff"
    assert to_hex(0x298, 16) == "0x0298"

def test_sign_extend():
    # 8-bit: 0x80 => -128
    assert sign_extend(0x80, 8) == -128
    # 8-bit: 0x7F => 127
    assert sign_extend(0x7F, 8) == 127
    assert sign_extend(0x1FF, 9) == -1

def test_nbit_checks():
    assert is_unsigned_nbit(4095, 12)
    assert not is_unsigned_nbit(4096, 12)
    assert is_signed_nbit(2047, 12)
    assert is_signed_nbit(-2048, 12)
    assert not is_signed_nbit(2048, 12)
    assert not is_signed_nbit(-2049, 12)
    # 7 bits: -64..127 entra con o sin signo
    assert fits_either(127, 7) and fits_either(-64, 7)
    assert not fits_either(128, 7) and not fits_either(-65, 7)

@pytest.mark.parametrize("spec,expected", [
    ("15:12", (15, 12)),
    ("7", (7, 7)),
    (0, (0, 0)),
    (" 31 : 20 ", (31, 20)),
])
def test_parse_bit_range(spec, expected):
    assert parse_bit_range(spec) == expected

@pytest.mark.parametrize("bad", ["3:5", "a:b", "", -1, True])
def test_parse_bit_range_rejects(bad):
    with pytest.raises(ValueError):
        parse_bit_range(bad)

@pytest.mark.parametrize("raw,value", [
    ("0010", 2),
    ("0x1F", 31),
    ("0b11", 3),
    (5, 5),
    ("1111_0000", 0xF0),
])
def test_parse_literal(raw, value):
    assert parse_literal(raw) == value

def test_parse_literal_rejects_decimal_strings():
    # '12' no es binario ni tiene prefijo
    with pytest.raises(ValueError):
        parse_literal("12")

def test_mask_align_and_bytes():
    assert mask(4) == 0xF
    assert align_up(5, 4) == 8
    assert align_up(8, 4) == 8
    assert word_to_bytes(0x0298, 2, "little") == b"\x98\x02"
    assert word_to_bytes(0x0298, 2, "big") == b"\x02\x98"
    assert word_to_bytes(-1, 2, "little") == b"\xff\xff"
    assert bytes_to_word(b"\x98\x02", "little") == 0x0298
