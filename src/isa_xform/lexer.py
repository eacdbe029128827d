from __future__ import annotations
import re
from typing import List, Optional, Sequence, Tuple

def strip_comment(line: str, comment_chars: Sequence[str] = (";", "#")) -> str:
    """Quita el comentario (el primer marcador fuera de comillas) y recorta espacios."""
    quote: Optional[str] = None
    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in ('"', "'"):
            # 'x' es literal de carácter sólo si cierra dos posiciones después
            if ch == '"' or _closes_char_literal(line, i):
                quote = ch
        else:
            for marker in comment_chars:
                if line.startswith(marker, i):
                    return line[:i].strip()
        i += 1
    return line.strip()

def _closes_char_literal(line: str, i: int) -> bool:
    if line[i + 1:i + 2] == "\\":
        return line[i + 3:i + 4] == "'"
    return line[i + 2:i + 3] == "'"

def comment_text(line: str, comment_chars: Sequence[str] = (";", "#")) -> Optional[str]:
    """Texto del comentario de la línea (sin el marcador), o None si no lo hay."""
    code = strip_comment(line, comment_chars)
    rest = line.strip()[len(code):].strip()
    for marker in comment_chars:
        if rest.startswith(marker):
            return rest[len(marker):].strip()
    return None

def label_re(suffix: str = ":") -> "re.Pattern[str]":
    return re.compile(r"^([A-Za-z_.$][A-Za-z0-9_.$]*)" + re.escape(suffix) + r"\s*(.*)$")

LABEL_RE = label_re(":")

def split_label(line: str, suffix: str = ":") -> Tuple[Optional[str], str]:
    """Return (label, rest) if line has 'label:', else (None, line)."""
    m = (LABEL_RE if suffix == ":" else label_re(suffix)).match(line)
    if not m:
        return None, line
    return m.group(1), m.group(2).strip()

def split_mnemonic_operands(line: str) -> Tuple[str, str]:
    s = line.strip()
    if not s:
        return "", ""
    parts = s.split(None, 1)
    if len(parts) == 1:
        return parts[0], ""
    return parts[0], parts[1].strip()

def split_operands(op_str: str) -> List[str]:
    """Separa por comas de nivel superior (fuera de paréntesis y de comillas)."""
    if not op_str:
        return []
    out: List[str] = []
    cur: List[str] = []
    depth = 0
    quote: Optional[str] = None
    i = 0
    while i < len(op_str):
        ch = op_str[i]
        if quote:
            cur.append(ch)
            if ch == "\\" and i + 1 < len(op_str):
                cur.append(op_str[i + 1])
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in ('"', "'"):
            quote = ch
            cur.append(ch)
        elif ch == '(':
            depth += 1
            cur.append(ch)
        elif ch == ')':
            depth = max(0, depth - 1)
            cur.append(ch)
        elif ch == ',' and depth == 0:
            out.append(''.join(cur).strip())
            cur = []
        else:
            cur.append(ch)
        i += 1
    s = ''.join(cur).strip()
    if s or out:
        out.append(s)
    return out
