"""
CHIP-8 Assembler
=================
Translates assembly text into a raw big-endian program image.

Supports:
  - Labels (terminated with ':', on their own line)
  - Every instruction of the interpreter, in the usual Cowgod syntax
    (``LD V1, 0x2A``, ``DRW V0, V1, 5``, ``LD [I], V3`` ...)
  - Immediate literals (decimal, hex with 0x prefix, binary with 0b)
  - Comments (';' to end of line)
  - .org, .db, .dw directives (.dw is big-endian, like instructions)

Usage:
  from asm import assemble, disassemble
  program = assemble(source_text)
  for addr, word, text in disassemble(program):
      ...
"""

from __future__ import annotations

from chip8 import PROGRAM_BASE, decode

# ---------------------------------------------------------------------------
#  Encoding tables
# ---------------------------------------------------------------------------

# Vx, Vy register-register ops: mnemonic -> 0x8XYN low nibble
ALU_SUB = {
    "or": 0x1, "and": 0x2, "xor": 0x3, "sub": 0x5,
    "shr": 0x6, "subn": 0x7, "shl": 0xE,
}

# Vx-only ops whose second operand is a fixed keyword: (first, second) -> base
FX_FORMS = {
    ("vx", "dt"):  0xF007,
    ("vx", "k"):   0xF00A,
    ("dt", "vx"):  0xF015,
    ("st", "vx"):  0xF018,
    ("f", "vx"):   0xF029,
    ("b", "vx"):   0xF033,
    ("[i]", "vx"): 0xF055,
    ("vx", "[i]"): 0xF065,
}

# ---------------------------------------------------------------------------
#  Parser helpers
# ---------------------------------------------------------------------------

def _parse_reg(tok: str) -> int:
    """Parse 'V0'-'VF' (either case). Returns register index."""
    tok = tok.strip().lower()
    if len(tok) == 2 and tok[0] == "v" and tok[1] in "0123456789abcdef":
        return int(tok[1], 16)
    raise ValueError(f"Invalid register: {tok!r}")

def _is_reg(tok: str) -> bool:
    try:
        _parse_reg(tok)
    except ValueError:
        return False
    return True

def _parse_imm(tok: str) -> int:
    """Parse an immediate value (decimal, 0x hex or 0b binary)."""
    tok = tok.strip()
    if tok.startswith("0x") or tok.startswith("0X"):
        return int(tok, 16)
    if tok.startswith("-"):
        return int(tok, 10)
    return int(tok, 0)

def _split_ops(rest: str) -> list[str]:
    """Split operand string by comma, trimming whitespace."""
    return [s.strip() for s in rest.split(",") if s.strip()]

def _split_mnemonic(text: str) -> tuple[str, str]:
    """Split 'MNEM operands' -> (mnem, operands_str)."""
    parts = text.split(None, 1)
    if len(parts) == 1:
        return parts[0], ""
    return parts[0], parts[1]

# ---------------------------------------------------------------------------
#  Assembler
# ---------------------------------------------------------------------------

class AsmError(Exception):
    def __init__(self, line: int, msg: str):
        self.line = line
        super().__init__(f"Line {line}: {msg}")


def _directive_size(lower: str, text: str) -> int | None:
    if lower.startswith(".db"):
        return len(_split_ops(text[3:]))
    if lower.startswith(".dw"):
        return 2 * len(_split_ops(text[3:]))
    return None


def assemble(source: str, base_addr: int = PROGRAM_BASE,
             listing: bool = False) -> bytearray:
    """
    Two-pass assembler.
    Pass 1: collect labels and addresses.
    Pass 2: emit bytes with resolved addresses.
    The image starts at base_addr; .org pads forward with zeros.
    If listing=True, print an address/hex/source listing to stdout.
    """
    cleaned: list[tuple[int, str]] = []
    for i, raw in enumerate(source.split("\n"), 1):
        stripped = raw.split(";", 1)[0].strip()
        if stripped:
            cleaned.append((i, stripped))

    # ---- Pass 1: label collection and size computation ----
    labels: dict[str, int] = {}
    sized: list[tuple[int, str]] = []
    pc = base_addr

    for lineno, text in cleaned:
        if text.endswith(":"):
            lbl = text[:-1].strip()
            if lbl in labels:
                raise AsmError(lineno, f"Duplicate label: {lbl}")
            labels[lbl] = pc
            continue

        lower = text.lower()
        if lower.startswith(".org"):
            target = _parse_imm(text[4:])
            if target < pc:
                raise AsmError(lineno, f".org {target:#x} moves backwards "
                                       f"(already at {pc:#x})")
            pc = target
            sized.append((lineno, text))
            continue
        size = _directive_size(lower, text)
        if size is None:
            size = 2
        pc += size
        sized.append((lineno, text))

    # ---- Pass 2: emit bytes ----
    code = bytearray()
    pc = base_addr
    listing_lines = []  # (addr, hex_bytes, source_text)

    for lineno, text in sized:
        start_pc = pc
        lower = text.lower()

        if lower.startswith(".org"):
            target = _parse_imm(text[4:])
            code.extend(bytes(target - pc))
            pc = target
            if listing:
                listing_lines.append((start_pc, "", f".org {target:#x}"))
            continue

        if lower.startswith(".db"):
            emitted = bytearray(
                _resolve(lineno, tok, labels, 8) for tok in _split_ops(text[3:]))
        elif lower.startswith(".dw"):
            emitted = bytearray()
            for tok in _split_ops(text[3:]):
                emitted.extend(_resolve(lineno, tok, labels, 16).to_bytes(2, "big"))
        else:
            emitted = _emit_instruction(lineno, text, labels).to_bytes(2, "big")

        if listing:
            hexstr = " ".join(f"{b:02X}" for b in emitted[:8])
            if len(emitted) > 8:
                hexstr += " ..."
            listing_lines.append((start_pc, hexstr, text))
        code.extend(emitted)
        pc += len(emitted)

    if listing:
        addr_labels: dict[int, list[str]] = {}
        for lbl, addr in labels.items():
            addr_labels.setdefault(addr, []).append(lbl)
        for addr, hexstr, src in listing_lines:
            for lbl in addr_labels.pop(addr, []):
                print(f"                    {lbl}:")
            print(f"  {addr:03X}  {hexstr:<24s}  {src}")
        for addr in sorted(addr_labels):
            for lbl in addr_labels[addr]:
                print(f"                    {lbl}:")

    return code


# ---------------------------------------------------------------------------
#  Instruction emission (pass 2)
# ---------------------------------------------------------------------------

def _resolve(lineno: int, tok: str, labels: dict[str, int], bits: int) -> int:
    """Resolve a token that is either an immediate or a label reference."""
    tok = tok.strip()
    if tok in labels:
        val = labels[tok]
    else:
        try:
            val = _parse_imm(tok)
        except ValueError:
            raise AsmError(lineno, f"Unknown label or bad literal: {tok!r}") from None
    if not 0 <= val < (1 << bits):
        # Allow negative bytes as two's complement
        if bits == 8 and -128 <= val < 0:
            return val & 0xFF
        raise AsmError(lineno, f"Value {val} does not fit in {bits} bits")
    return val


def _operand_kind(tok: str) -> str:
    low = tok.strip().lower()
    if _is_reg(low):
        return "vx"
    return low


def _emit_instruction(lineno: int, text: str, labels: dict[str, int]) -> int:
    """Encode one instruction as a 16-bit word."""
    mnem, rest = _split_mnemonic(text)
    m = mnem.lower()
    ops = _split_ops(rest)

    def reg(k: int) -> int:
        try:
            return _parse_reg(ops[k])
        except (ValueError, IndexError):
            raise AsmError(lineno, f"{mnem}: operand {k + 1} must be a register") from None

    def want(count: int):
        if len(ops) != count:
            raise AsmError(lineno, f"{mnem}: expected {count} operand(s), got {len(ops)}")

    if m == "cls":
        want(0)
        return 0x00E0
    if m == "ret":
        want(0)
        return 0x00EE

    if m == "jp":
        if len(ops) == 2:
            if reg(0) != 0:
                raise AsmError(lineno, "JP with offset only takes V0")
            return 0xB000 | _resolve(lineno, ops[1], labels, 12)
        want(1)
        return 0x1000 | _resolve(lineno, ops[0], labels, 12)
    if m == "call":
        want(1)
        return 0x2000 | _resolve(lineno, ops[0], labels, 12)

    if m in ("se", "sne"):
        want(2)
        x = reg(0)
        if _is_reg(ops[1]):
            return (0x5000 if m == "se" else 0x9000) | (x << 8) | (reg(1) << 4)
        return (0x3000 if m == "se" else 0x4000) | (x << 8) | _resolve(lineno, ops[1], labels, 8)

    if m in ALU_SUB:
        if m in ("shr", "shl") and len(ops) == 1:
            return 0x8000 | (reg(0) << 8) | ALU_SUB[m]
        want(2)
        return 0x8000 | (reg(0) << 8) | (reg(1) << 4) | ALU_SUB[m]

    if m == "rnd":
        want(2)
        return 0xC000 | (reg(0) << 8) | _resolve(lineno, ops[1], labels, 8)
    if m == "drw":
        want(3)
        return 0xD000 | (reg(0) << 8) | (reg(1) << 4) | _resolve(lineno, ops[2], labels, 4)
    if m == "skp":
        want(1)
        return 0xE09E | (reg(0) << 8)
    if m == "sknp":
        want(1)
        return 0xE0A1 | (reg(0) << 8)

    if m == "add":
        want(2)
        if ops[0].lower() == "i":
            return 0xF01E | (reg(1) << 8)
        x = reg(0)
        if _is_reg(ops[1]):
            return 0x8004 | (x << 8) | (reg(1) << 4)
        return 0x7000 | (x << 8) | _resolve(lineno, ops[1], labels, 8)

    if m == "ld":
        want(2)
        a, b = _operand_kind(ops[0]), _operand_kind(ops[1])
        if a == "i":
            return 0xA000 | _resolve(lineno, ops[1], labels, 12)
        form = FX_FORMS.get((a, b))
        if form is not None:
            x = reg(0) if a == "vx" else reg(1)
            return form | (x << 8)
        if a == "vx" and b == "vx":
            return 0x8000 | (reg(0) << 8) | (reg(1) << 4)
        if a == "vx":
            return 0x6000 | (reg(0) << 8) | _resolve(lineno, ops[1], labels, 8)
        raise AsmError(lineno, f"Unsupported LD form: {rest}")

    raise AsmError(lineno, f"Unknown mnemonic: {mnem!r}")


# ---------------------------------------------------------------------------
#  Disassembler
# ---------------------------------------------------------------------------

def disassemble(data: bytes | bytearray,
                base_addr: int = PROGRAM_BASE) -> list[tuple[int, int, str]]:
    """Decode a program image into (addr, word, text) triples.

    Words that match no encoding come out as ``.dw`` so the text
    assembles back to the same bytes; a trailing odd byte is a ``.db``.
    """
    out = []
    for off in range(0, len(data) - 1, 2):
        word = (data[off] << 8) | data[off + 1]
        out.append((base_addr + off, word, str(decode(word))))
    if len(data) % 2:
        last = data[-1]
        out.append((base_addr + len(data) - 1, last, f".db 0x{last:02X}"))
    return out
