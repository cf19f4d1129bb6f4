"""
Assembler / Disassembler Test Suite
====================================
Encodings for every mnemonic, labels and directives, error reporting,
and disassemble -> assemble round-trip on a small program.
Run with:  python -m pytest test_asm.py
"""

import pytest

from asm import assemble, disassemble, AsmError


def words(code: bytes) -> list[int]:
    return [(code[i] << 8) | code[i + 1] for i in range(0, len(code), 2)]


# =========================================================================
#  Encodings
# =========================================================================

@pytest.mark.parametrize("source, word", [
    ("CLS",             0x00E0),
    ("RET",             0x00EE),
    ("JP 0x345",        0x1345),
    ("CALL 0x345",      0x2345),
    ("SE V3, 0x12",     0x3312),
    ("SNE V3, 0x12",    0x4312),
    ("SE V3, V4",       0x5340),
    ("SNE V3, V4",      0x9340),
    ("LD V3, 0x12",     0x6312),
    ("ADD V3, 0x12",    0x7312),
    ("LD V3, V4",       0x8340),
    ("OR V3, V4",       0x8341),
    ("AND V3, V4",      0x8342),
    ("XOR V3, V4",      0x8343),
    ("ADD V3, V4",      0x8344),
    ("SUB V3, V4",      0x8345),
    ("SHR V3, V4",      0x8346),
    ("SHR V3",          0x8306),
    ("SUBN V3, V4",     0x8347),
    ("SHL V3, V4",      0x834E),
    ("SHL V3",          0x830E),
    ("LD I, 0x345",     0xA345),
    ("JP V0, 0x345",    0xB345),
    ("RND V3, 0x0F",    0xC30F),
    ("DRW V3, V4, 5",   0xD345),
    ("SKP V3",          0xE39E),
    ("SKNP V3",         0xE3A1),
    ("LD V3, DT",       0xF307),
    ("LD V3, K",        0xF30A),
    ("LD DT, V3",       0xF315),
    ("LD ST, V3",       0xF318),
    ("ADD I, V3",       0xF31E),
    ("LD F, V3",        0xF329),
    ("LD B, V3",        0xF333),
    ("LD [I], V3",      0xF355),
    ("LD V3, [I]",      0xF365),
])
def test_encoding(source, word):
    assert words(assemble(source)) == [word]


def test_case_and_comments():
    code = assemble("""
        ld va, 0b1010   ; binary literal
        drw vA, Vb, 0xF
    """)
    assert words(code) == [0x6A0A, 0xDABF]


def test_negative_byte():
    assert words(assemble("ADD V0, -1")) == [0x70FF]


# =========================================================================
#  Labels and directives
# =========================================================================

def test_forward_and_backward_labels():
    code = assemble("""
    top:
        JP end
        CLS
    end:
        CALL top
    """)
    assert words(code) == [0x1204, 0x00E0, 0x2200]


def test_label_as_index():
    code = assemble("""
        LD I, sprite
        DRW V0, V0, 1
    sprite:
        .db 0x80
    """)
    assert code == bytearray([0xA2, 0x04, 0xD0, 0x01, 0x80])


def test_base_address():
    code = assemble("""
    here:
        JP here
    """, base_addr=0x300)
    assert words(code) == [0x1300]


def test_org_pads_with_zeros():
    code = assemble("""
        CLS
        .org 0x206
    target:
        JP target
    """)
    assert code == bytearray([0x00, 0xE0, 0, 0, 0, 0, 0x12, 0x06])


def test_db_dw():
    code = assemble("""
        .db 1, 0x02, 0b11
        .dw 0xABCD
    """)
    assert code == bytearray([1, 2, 3, 0xAB, 0xCD])


def test_listing(capsys):
    assemble("""
    start:
        CLS
        JP start
    """, listing=True)
    out = capsys.readouterr().out
    assert "start:" in out
    assert "200  00 E0" in out
    assert "202  12 00" in out


# =========================================================================
#  Errors
# =========================================================================

@pytest.mark.parametrize("source, fragment", [
    ("FOO V0",              "Unknown mnemonic"),
    ("LD V0, 256",          "does not fit"),
    ("JP 0x1000",           "does not fit"),
    ("DRW V0, V1, 16",      "does not fit"),
    ("JP nowhere",          "Unknown label"),
    ("CLS V0",              "expected 0"),
    ("ADD V0",              "expected 2"),
    ("SKP 5",               "must be a register"),
    ("JP V1, 0x300",        "only takes V0"),
    ("LD DT, 5",            "Unsupported LD form"),
    ("LD 5, V0",            "Unsupported LD form"),
    ("CLS\n.org 0x200",     "moves backwards"),
    ("a:\na:\nCLS",         "Duplicate label"),
])
def test_errors(source, fragment):
    with pytest.raises(AsmError, match=fragment):
        assemble(source)


def test_error_line_number():
    with pytest.raises(AsmError) as excinfo:
        assemble("CLS\n\n; comment\nBOGUS")
    assert excinfo.value.line == 4
    assert str(excinfo.value).startswith("Line 4:")


# =========================================================================
#  Disassembler
# =========================================================================

def test_disassemble_addresses():
    listing = disassemble(bytes([0x00, 0xE0, 0x12, 0x00]))
    assert listing == [(0x200, 0x00E0, "CLS"), (0x202, 0x1200, "JP 0x200")]


def test_disassemble_unknown_and_odd_tail():
    listing = disassemble(bytes([0x01, 0x23, 0x7F]), base_addr=0x300)
    assert listing == [(0x300, 0x0123, ".dw 0x0123"), (0x302, 0x7F, ".db 0x7F")]


def test_round_trip():
    source = """
        CLS
        LD V1, 0x10
        LD I, 0x300
    loop:
        DRW V0, V1, 5
        SHR V2
        SHL V3, V4
        LD [I], V3
        LD V3, [I]
        JP V0, 0x300
        SKNP VE
        .dw 0x5121
        LD VF, K
        CALL loop
        .db 0xAA
    """
    image = assemble(source)
    text = "\n".join(t for _, _, t in disassemble(image))
    assert assemble(text) == image
