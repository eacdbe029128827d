'''
 bit-twiddling (máscaras, sign_extend, rangos de bits, literales, serialización)
'''

from __future__ import annotations
import re
from typing import Tuple, Union

BIT_RANGE_RE = re.compile(r"^\s*(\d+)\s*(?::\s*(\d+)\s*)?$")
BIN_DIGITS_RE = re.compile(r"^[01]+$")

def mask(bits: int) -> int:
    """Máscara de `bits` unos."""
    if bits < 0:
        raise ValueError("bits no puede ser negativo")
    return (1 << bits) - 1

def to_unsigned(x: int, bits: int) -> int:
    """Fuerza el valor al rango sin signo de `bits` bits (complemento a dos)."""
    return x & mask(bits)

def sign_extend(x: int, bits: int) -> int:
    """Extiende el signo de x, asumiendo que cabe en 'bits' bits (complemento a dos)."""
    if bits <= 0:
        raise ValueError("bits debe ser positivo")
    m = mask(bits)
    x &= m
    sign_bit = 1 << (bits - 1)
    return (x ^ sign_bit) - sign_bit

def is_unsigned_nbit(x: int, n: int) -> bool:
    """Devuelve True si x está en [0, 2^n) (sin signo de n bits)."""
    if n <= 0:
        raise ValueError("n debe ser positivo")
    return 0 <= x < (1 << n)

def is_signed_nbit(x: int, n: int) -> bool:
    """Devuelve True si x está en [-(2^(n-1)), 2^(n-1)-1] (con signo de n bits)."""
    if n <= 0:
        raise ValueError("n debe ser positivo")
    lo = -(1 << (n - 1))
    hi = (1 << (n - 1)) - 1
    return lo <= x <= hi

def fits_either(x: int, n: int) -> bool:
    """True si x cabe en n bits interpretado con o sin signo."""
    return is_signed_nbit(x, n) or is_unsigned_nbit(x, n)

def align_up(x: int, a: int) -> int:
    if a <= 0:
        raise ValueError("alignment must be positive")
    return ((x + a - 1) // a) * a

def hex_digits(bits: int) -> int:
    return max(1, (bits + 3) // 4)

def to_hex(x: int, bits: int, *, prefix: bool = True) -> str:
    """Representación hexadecimal de `bits` bits, con o sin prefijo 0x."""
    s = format(to_unsigned(x, bits), f"0{hex_digits(bits)}x")
    return ("0x" + s) if prefix else s

def to_bin(x: int, bits: int) -> str:
    """Representación binaria de `bits` bits (cadena)."""
    return format(to_unsigned(x, bits), f"0{bits}b")

def parse_bit_range(spec: Union[str, int]) -> Tuple[int, int]:
    """Convierte '15:12' (o '7', o 7) en (hi, lo) inclusivos."""
    if isinstance(spec, bool):
        raise ValueError("rango de bits inválido")
    if isinstance(spec, int):
        if spec < 0:
            raise ValueError("rango de bits inválido")
        return spec, spec
    m = BIT_RANGE_RE.match(str(spec))
    if not m:
        raise ValueError(f"rango de bits inválido: {spec!r}")
    hi = int(m.group(1))
    lo = int(m.group(2)) if m.group(2) is not None else hi
    if hi < lo:
        raise ValueError(f"rango de bits invertido: {spec!r} (se espera hi:lo)")
    return hi, lo

def parse_literal(value: Union[str, int]) -> int:
    """Valor literal de un campo: '0010' es binario, '0x1F'/'0b1'/'0o7' con prefijo, o int."""
    if isinstance(value, bool):
        raise ValueError("valor literal inválido")
    if isinstance(value, int):
        if value < 0:
            raise ValueError("el valor literal no puede ser negativo")
        return value
    s = str(value).strip().replace("_", "")
    if BIN_DIGITS_RE.match(s):
        return int(s, 2)
    if s[:2].lower() in ("0x", "0b", "0o"):
        return int(s, 0)
    raise ValueError(f"valor literal inválido: {value!r}")

def word_to_bytes(word: int, nbytes: int, endianness: str) -> bytes:
    return to_unsigned(word, nbytes * 8).to_bytes(nbytes, "big" if endianness == "big" else "little")

def bytes_to_word(data: bytes, endianness: str) -> int:
    return int.from_bytes(data, "big" if endianness == "big" else "little")

def value_text(x: int, *, max_bits: int = 64) -> str:
    """Entero para mensajes; los más anchos que `max_bits` se resumen por su tamaño."""
    if x.bit_length() <= max_bits:
        return str(x)
    return f"<entero de {x.bit_length()} bits>"
