"""
CHIP-8 Interpreter Core
========================
A step-driven interpreter for the CHIP-8 virtual machine.

Every instruction is fetched as a big-endian 16-bit word from memory and
decoded into one value of a closed set of instruction variants (``Op``).
Execution is a dispatch from that variant to a handler; the handler
returns the next PC (or ``None`` for the usual PC+2).

The core never sleeps, never spins and performs no I/O.  An external
driver calls ``cycle()`` to run one instruction and ``tick_timers()`` at
its own (conventionally 60 Hz) cadence; see system.py.
"""

from __future__ import annotations
import enum
import random
from dataclasses import dataclass
from typing import Callable, Optional

from devices import Framebuffer, Keypad, TimerUnit

# ---------------------------------------------------------------------------
#  Constants
# ---------------------------------------------------------------------------

MEM_SIZE      = 0x1000   # 4 KiB
FONT_BASE     = 0x000
PROGRAM_BASE  = 0x200
NUM_REGS      = 16
STACK_DEPTH   = 16
GLYPH_SIZE    = 5
FLAG_REG      = 0xF

# Hex digit glyphs 0-F, 5 rows each, high nibble = 4 pixel columns
FONT_SET = bytes([
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
])

# ---------------------------------------------------------------------------
#  Errors
# ---------------------------------------------------------------------------

class Chip8Error(Exception):
    """Base for all interpreter faults."""
    pass

class LoadError(Chip8Error):
    pass

class MemoryFault(Chip8Error):
    def __init__(self, addr: int, message: str = ""):
        self.addr = addr
        super().__init__(message or f"Memory fault @ {addr:#06x}")

class StackOverflow(Chip8Error):
    pass

class StackUnderflow(Chip8Error):
    pass

class InvalidOpcode(Chip8Error):
    def __init__(self, pc: int, word: int):
        self.pc = pc
        self.word = word
        super().__init__(f"Invalid opcode {word:#06x} @ {pc:#05x}")


# ---------------------------------------------------------------------------
#  Memory
# ---------------------------------------------------------------------------

class Memory:
    """Flat 4 KiB byte store.  Every access is bounds-checked."""

    def __init__(self, size: int = MEM_SIZE):
        self.size = size
        self.data = bytearray(size)

    def _check(self, addr: int, length: int = 1):
        if addr < 0 or addr + length > self.size:
            bad = addr if addr < 0 or addr >= self.size else self.size
            raise MemoryFault(bad)

    def read_byte(self, addr: int) -> int:
        self._check(addr)
        return self.data[addr]

    def write_byte(self, addr: int, value: int):
        self._check(addr)
        self.data[addr] = value & 0xFF

    def read_word(self, addr: int) -> int:
        """Big-endian 16-bit read."""
        self._check(addr, 2)
        return (self.data[addr] << 8) | self.data[addr + 1]

    def read_block(self, addr: int, length: int) -> bytes:
        self._check(addr, length)
        return bytes(self.data[addr:addr + length])

    def write_block(self, addr: int, data) -> None:
        """Write a run of bytes.  The whole range is checked first."""
        self._check(addr, len(data))
        for i, b in enumerate(data):
            self.data[addr + i] = b & 0xFF

    def load_font_set(self):
        self.data[FONT_BASE:FONT_BASE + len(FONT_SET)] = FONT_SET

    def load_program(self, program: bytes | bytearray, base: int = PROGRAM_BASE):
        if base < 0 or base + len(program) > self.size:
            raise LoadError(
                f"Program of {len(program)} bytes does not fit at {base:#05x} "
                f"({self.size - base} bytes available)")
        self.data[base:base + len(program)] = program


# ---------------------------------------------------------------------------
#  Register file and call stack
# ---------------------------------------------------------------------------

class Registers:
    def __init__(self):
        self.v: list[int] = [0] * NUM_REGS
        self.i: int = 0
        self.pc: int = PROGRAM_BASE
        self.stack: list[int] = [0] * STACK_DEPTH
        self.sp: int = 0

    def set_v(self, x: int, value: int):
        self.v[x] = value & 0xFF

    def push(self, addr: int):
        if self.sp == STACK_DEPTH:
            raise StackOverflow(f"Call stack full ({STACK_DEPTH} entries)")
        self.stack[self.sp] = addr & 0xFFFF
        self.sp += 1

    def pop(self) -> int:
        if self.sp == 0:
            raise StackUnderflow("Return with empty call stack")
        self.sp -= 1
        return self.stack[self.sp]


# ---------------------------------------------------------------------------
#  Decoder
# ---------------------------------------------------------------------------

class Op(enum.Enum):
    CLS       = "CLS"
    RET       = "RET"
    JP        = "JP"
    CALL      = "CALL"
    SE_BYTE   = "SE Vx, NN"
    SNE_BYTE  = "SNE Vx, NN"
    SE_REG    = "SE Vx, Vy"
    SNE_REG   = "SNE Vx, Vy"
    LD_BYTE   = "LD Vx, NN"
    ADD_BYTE  = "ADD Vx, NN"
    LD_REG    = "LD Vx, Vy"
    OR        = "OR"
    AND       = "AND"
    XOR       = "XOR"
    ADD_REG   = "ADD Vx, Vy"
    SUB       = "SUB"
    SHR       = "SHR"
    SUBN      = "SUBN"
    SHL       = "SHL"
    LD_I      = "LD I, addr"
    JP_V0     = "JP V0, addr"
    RND       = "RND"
    DRW       = "DRW"
    SKP       = "SKP"
    SKNP      = "SKNP"
    LD_VX_DT  = "LD Vx, DT"
    LD_VX_K   = "LD Vx, K"
    LD_DT_VX  = "LD DT, Vx"
    LD_ST_VX  = "LD ST, Vx"
    ADD_I     = "ADD I, Vx"
    LD_F      = "LD F, Vx"
    LD_B      = "LD B, Vx"
    LD_MEM_VX = "LD [I], Vx"
    LD_VX_MEM = "LD Vx, [I]"
    UNKNOWN   = "Unknown"


# 0x8XYN arithmetic/logic group, selected by N
_ALU_OPS = {
    0x0: Op.LD_REG, 0x1: Op.OR,   0x2: Op.AND,  0x3: Op.XOR,
    0x4: Op.ADD_REG, 0x5: Op.SUB, 0x6: Op.SHR,  0x7: Op.SUBN,
    0xE: Op.SHL,
}

# 0xEXNN key group, selected by NN
_KEY_OPS = {0x9E: Op.SKP, 0xA1: Op.SKNP}

# 0xFXNN misc group, selected by NN
_MISC_OPS = {
    0x07: Op.LD_VX_DT, 0x0A: Op.LD_VX_K,  0x15: Op.LD_DT_VX,
    0x18: Op.LD_ST_VX, 0x1E: Op.ADD_I,    0x29: Op.LD_F,
    0x33: Op.LD_B,     0x55: Op.LD_MEM_VX, 0x65: Op.LD_VX_MEM,
}

# Variants that choose their own next PC and change no state before it is
# checked; every other variant falls through to PC + 2, checked up front.
_FLOW_OPS = frozenset({
    Op.JP, Op.CALL, Op.RET, Op.JP_V0,
    Op.SE_BYTE, Op.SNE_BYTE, Op.SE_REG, Op.SNE_REG,
    Op.SKP, Op.SKNP, Op.LD_VX_K,
})

# Text form of each variant, used by __str__ and the disassembler
_FORMATS = {
    Op.CLS:       "CLS",
    Op.RET:       "RET",
    Op.JP:        "JP 0x{nnn:03X}",
    Op.CALL:      "CALL 0x{nnn:03X}",
    Op.SE_BYTE:   "SE V{x:X}, 0x{nn:02X}",
    Op.SNE_BYTE:  "SNE V{x:X}, 0x{nn:02X}",
    Op.SE_REG:    "SE V{x:X}, V{y:X}",
    Op.SNE_REG:   "SNE V{x:X}, V{y:X}",
    Op.LD_BYTE:   "LD V{x:X}, 0x{nn:02X}",
    Op.ADD_BYTE:  "ADD V{x:X}, 0x{nn:02X}",
    Op.LD_REG:    "LD V{x:X}, V{y:X}",
    Op.OR:        "OR V{x:X}, V{y:X}",
    Op.AND:       "AND V{x:X}, V{y:X}",
    Op.XOR:       "XOR V{x:X}, V{y:X}",
    Op.ADD_REG:   "ADD V{x:X}, V{y:X}",
    Op.SUB:       "SUB V{x:X}, V{y:X}",
    Op.SHR:       "SHR V{x:X}, V{y:X}",
    Op.SUBN:      "SUBN V{x:X}, V{y:X}",
    Op.SHL:       "SHL V{x:X}, V{y:X}",
    Op.LD_I:      "LD I, 0x{nnn:03X}",
    Op.JP_V0:     "JP V0, 0x{nnn:03X}",
    Op.RND:       "RND V{x:X}, 0x{nn:02X}",
    Op.DRW:       "DRW V{x:X}, V{y:X}, {n}",
    Op.SKP:       "SKP V{x:X}",
    Op.SKNP:      "SKNP V{x:X}",
    Op.LD_VX_DT:  "LD V{x:X}, DT",
    Op.LD_VX_K:   "LD V{x:X}, K",
    Op.LD_DT_VX:  "LD DT, V{x:X}",
    Op.LD_ST_VX:  "LD ST, V{x:X}",
    Op.ADD_I:     "ADD I, V{x:X}",
    Op.LD_F:      "LD F, V{x:X}",
    Op.LD_B:      "LD B, V{x:X}",
    Op.LD_MEM_VX: "LD [I], V{x:X}",
    Op.LD_VX_MEM: "LD V{x:X}, [I]",
    Op.UNKNOWN:   ".dw 0x{word:04X}",
}


@dataclass(frozen=True)
class Instruction:
    """One decoded word: the variant plus its raw operand fields."""
    op: Op
    word: int

    @property
    def x(self) -> int:
        return (self.word >> 8) & 0xF

    @property
    def y(self) -> int:
        return (self.word >> 4) & 0xF

    @property
    def n(self) -> int:
        return self.word & 0xF

    @property
    def nn(self) -> int:
        return self.word & 0xFF

    @property
    def nnn(self) -> int:
        return self.word & 0xFFF

    def __str__(self) -> str:
        if self.op in (Op.SHR, Op.SHL) and self.y == 0:
            return f"{self.op.value} V{self.x:X}"
        return _FORMATS[self.op].format(x=self.x, y=self.y, n=self.n,
                                        nn=self.nn, nnn=self.nnn,
                                        word=self.word)


def decode(word: int) -> Instruction:
    """Map a 16-bit word to exactly one instruction variant."""
    word &= 0xFFFF
    f = word >> 12       # family
    n = word & 0xF
    nn = word & 0xFF

    if   f == 0x0:
        if word == 0x00E0:   op = Op.CLS
        elif word == 0x00EE: op = Op.RET
        else:                op = Op.UNKNOWN
    elif f == 0x1: op = Op.JP
    elif f == 0x2: op = Op.CALL
    elif f == 0x3: op = Op.SE_BYTE
    elif f == 0x4: op = Op.SNE_BYTE
    elif f == 0x5: op = Op.SE_REG if n == 0 else Op.UNKNOWN
    elif f == 0x6: op = Op.LD_BYTE
    elif f == 0x7: op = Op.ADD_BYTE
    elif f == 0x8: op = _ALU_OPS.get(n, Op.UNKNOWN)
    elif f == 0x9: op = Op.SNE_REG if n == 0 else Op.UNKNOWN
    elif f == 0xA: op = Op.LD_I
    elif f == 0xB: op = Op.JP_V0
    elif f == 0xC: op = Op.RND
    elif f == 0xD: op = Op.DRW
    elif f == 0xE: op = _KEY_OPS.get(nn, Op.UNKNOWN)
    else:          op = _MISC_OPS.get(nn, Op.UNKNOWN)
    return Instruction(op, word)


@dataclass(frozen=True)
class StepRecord:
    """Passed to ``Chip8.on_trace`` after every executed instruction."""
    pc: int
    word: int
    instruction: Instruction
    next_pc: int

    def __str__(self) -> str:
        return (f"{self.pc:03X}: {self.word:04X}  "
                f"{str(self.instruction):<20s} -> {self.next_pc:03X}")


# ---------------------------------------------------------------------------
#  Interpreter
# ---------------------------------------------------------------------------

class Chip8:
    """CHIP-8 machine: memory, registers, devices and the execution engine.

    Quirks:
      shift_vy    SHR/SHL take their source from V[Y] (COSMAC behaviour)
                  instead of V[X].
      index_wrap  ADD I, Vx wraps I at 12 bits; when False, I is a full
                  16-bit register and out-of-range access faults.
    """

    def __init__(self, rng: Optional[random.Random] = None,
                 shift_vy: bool = False, index_wrap: bool = True):
        self.mem = Memory()
        self.regs = Registers()
        self.timers = TimerUnit()
        self.keypad = Keypad()
        self.fb = Framebuffer()
        self.rng = rng if rng is not None else random.Random()

        self.shift_vy = shift_vy
        self.index_wrap = index_wrap

        # Wait-for-key state machine: Running <-> WaitingForKey(target)
        self.waiting_for_key: bool = False
        self.wait_target: int = 0

        self.instr_count: int = 0
        self.last_instruction: Optional[Instruction] = None

        # Callbacks
        self.on_trace: Optional[Callable[[StepRecord], None]] = None

        self._dispatch = self._build_dispatch()
        self.load_font_set()

    # -- Property shortcuts --

    @property
    def pc(self) -> int:
        return self.regs.pc

    @property
    def v(self) -> list[int]:
        return self.regs.v

    @property
    def i(self) -> int:
        return self.regs.i

    # -- Loading --

    def load_font_set(self):
        self.mem.load_font_set()

    def load_program(self, program: bytes | bytearray, base: int = PROGRAM_BASE):
        self.mem.load_program(program, base)

    # -- External collaborators --

    def tick_timers(self):
        """One 60 Hz tick.  Independent of instruction throughput."""
        self.timers.tick()

    def is_sound_active(self) -> bool:
        return self.timers.is_sound_active()

    def set_key_down(self, code: int):
        self.keypad.set_key_down(code)

    def set_key_up(self, code: int):
        self.keypad.set_key_up(code)

    # =====================================================================
    #  CYCLE: fetch / decode / execute
    # =====================================================================

    def cycle(self) -> Optional[Instruction]:
        """Execute one instruction and return it.

        Returns None while waiting for a key, including the call that
        resolves the wait.  Raises InvalidOpcode without touching any
        state when the word at PC matches no encoding; the caller decides
        whether to stop or to call skip_invalid().
        """
        if self.waiting_for_key:
            if self.keypad.pending is None:
                return None
            self._check_pc(self.regs.pc + 2)
            self.regs.v[self.wait_target] = self.keypad.take_press()
            self.waiting_for_key = False
            self.regs.pc += 2
            return None

        pc = self.regs.pc
        word = self.mem.read_word(pc)
        ins = decode(word)
        if ins.op is Op.UNKNOWN:
            raise InvalidOpcode(pc, word)
        if ins.op not in _FLOW_OPS:
            self._check_pc(pc + 2)

        next_pc = self._dispatch[ins.op](ins)
        self._goto(pc + 2 if next_pc is None else next_pc)

        self.instr_count += 1
        self.last_instruction = ins
        if self.on_trace is not None:
            self.on_trace(StepRecord(pc, word, ins, self.regs.pc))
        return ins

    def skip_invalid(self):
        """Lenient recovery: step over the word that raised InvalidOpcode."""
        self._goto(self.regs.pc + 2)

    @staticmethod
    def _check_pc(addr: int):
        if addr >= MEM_SIZE:
            raise MemoryFault(addr, f"PC out of range: {addr:#06x}")

    def _goto(self, addr: int):
        self._check_pc(addr)
        self.regs.pc = addr

    def _index_add(self, value: int) -> int:
        if self.index_wrap:
            return (self.regs.i + value) & 0xFFF
        return (self.regs.i + value) & 0xFFFF

    # =====================================================================
    #  Instruction handlers
    # =====================================================================
    # Each handler returns the next PC, or None for PC + 2.

    def _build_dispatch(self) -> dict:
        return {
            Op.CLS:       self._op_cls,
            Op.RET:       self._op_ret,
            Op.JP:        self._op_jp,
            Op.CALL:      self._op_call,
            Op.SE_BYTE:   self._op_se_byte,
            Op.SNE_BYTE:  self._op_sne_byte,
            Op.SE_REG:    self._op_se_reg,
            Op.SNE_REG:   self._op_sne_reg,
            Op.LD_BYTE:   self._op_ld_byte,
            Op.ADD_BYTE:  self._op_add_byte,
            Op.LD_REG:    self._op_ld_reg,
            Op.OR:        self._op_or,
            Op.AND:       self._op_and,
            Op.XOR:       self._op_xor,
            Op.ADD_REG:   self._op_add_reg,
            Op.SUB:       self._op_sub,
            Op.SHR:       self._op_shr,
            Op.SUBN:      self._op_subn,
            Op.SHL:       self._op_shl,
            Op.LD_I:      self._op_ld_i,
            Op.JP_V0:     self._op_jp_v0,
            Op.RND:       self._op_rnd,
            Op.DRW:       self._op_drw,
            Op.SKP:       self._op_skp,
            Op.SKNP:      self._op_sknp,
            Op.LD_VX_DT:  self._op_ld_vx_dt,
            Op.LD_VX_K:   self._op_ld_vx_k,
            Op.LD_DT_VX:  self._op_ld_dt_vx,
            Op.LD_ST_VX:  self._op_ld_st_vx,
            Op.ADD_I:     self._op_add_i,
            Op.LD_F:      self._op_ld_f,
            Op.LD_B:      self._op_ld_b,
            Op.LD_MEM_VX: self._op_ld_mem_vx,
            Op.LD_VX_MEM: self._op_ld_vx_mem,
        }

    def _skip_if(self, cond: bool) -> int:
        return self.regs.pc + (4 if cond else 2)

    # -- 0x0 --
    def _op_cls(self, ins: Instruction):
        self.fb.clear()

    def _op_ret(self, ins: Instruction):
        # The stack holds the address of the CALL itself
        if self.regs.sp:
            self._check_pc(self.regs.stack[self.regs.sp - 1] + 2)
        return self.regs.pop() + 2

    # -- 0x1 / 0x2 --
    def _op_jp(self, ins: Instruction):
        return ins.nnn

    def _op_call(self, ins: Instruction):
        self.regs.push(self.regs.pc)
        return ins.nnn

    # -- 0x3 / 0x4 / 0x5 / 0x9: skips --
    def _op_se_byte(self, ins: Instruction):
        return self._skip_if(self.regs.v[ins.x] == ins.nn)

    def _op_sne_byte(self, ins: Instruction):
        return self._skip_if(self.regs.v[ins.x] != ins.nn)

    def _op_se_reg(self, ins: Instruction):
        return self._skip_if(self.regs.v[ins.x] == self.regs.v[ins.y])

    def _op_sne_reg(self, ins: Instruction):
        return self._skip_if(self.regs.v[ins.x] != self.regs.v[ins.y])

    # -- 0x6 / 0x7 --
    def _op_ld_byte(self, ins: Instruction):
        self.regs.v[ins.x] = ins.nn

    def _op_add_byte(self, ins: Instruction):
        # No carry flag
        self.regs.set_v(ins.x, self.regs.v[ins.x] + ins.nn)

    # -- 0x8: ALU --
    # Result is written before VF so that VF wins when X == F.
    def _op_ld_reg(self, ins: Instruction):
        self.regs.v[ins.x] = self.regs.v[ins.y]

    def _op_or(self, ins: Instruction):
        self.regs.v[ins.x] |= self.regs.v[ins.y]

    def _op_and(self, ins: Instruction):
        self.regs.v[ins.x] &= self.regs.v[ins.y]

    def _op_xor(self, ins: Instruction):
        self.regs.v[ins.x] ^= self.regs.v[ins.y]

    def _op_add_reg(self, ins: Instruction):
        total = self.regs.v[ins.x] + self.regs.v[ins.y]
        self.regs.set_v(ins.x, total)
        self.regs.v[FLAG_REG] = 1 if total > 0xFF else 0

    def _op_sub(self, ins: Instruction):
        a, b = self.regs.v[ins.x], self.regs.v[ins.y]
        self.regs.set_v(ins.x, a - b)
        self.regs.v[FLAG_REG] = 1 if a >= b else 0   # 1 = no borrow

    def _op_subn(self, ins: Instruction):
        a, b = self.regs.v[ins.x], self.regs.v[ins.y]
        self.regs.set_v(ins.x, b - a)
        self.regs.v[FLAG_REG] = 1 if b >= a else 0

    def _op_shr(self, ins: Instruction):
        src = self.regs.v[ins.y if self.shift_vy else ins.x]
        self.regs.v[ins.x] = src >> 1
        self.regs.v[FLAG_REG] = src & 0x1

    def _op_shl(self, ins: Instruction):
        src = self.regs.v[ins.y if self.shift_vy else ins.x]
        self.regs.set_v(ins.x, src << 1)
        self.regs.v[FLAG_REG] = (src >> 7) & 0x1

    # -- 0xA / 0xB / 0xC --
    def _op_ld_i(self, ins: Instruction):
        self.regs.i = ins.nnn

    def _op_jp_v0(self, ins: Instruction):
        return ins.nnn + self.regs.v[0]

    def _op_rnd(self, ins: Instruction):
        self.regs.v[ins.x] = self.rng.randrange(256) & ins.nn

    # -- 0xD: draw --
    def _op_drw(self, ins: Instruction):
        rows = self.mem.read_block(self.regs.i, ins.n)
        collided = self.fb.draw_sprite(self.regs.v[ins.x],
                                       self.regs.v[ins.y], rows)
        self.regs.v[FLAG_REG] = 1 if collided else 0

    # -- 0xE: keys --
    def _op_skp(self, ins: Instruction):
        return self._skip_if(self.keypad.is_down(self.regs.v[ins.x] & 0xF))

    def _op_sknp(self, ins: Instruction):
        return self._skip_if(not self.keypad.is_down(self.regs.v[ins.x] & 0xF))

    # -- 0xF: misc --
    def _op_ld_vx_dt(self, ins: Instruction):
        self.regs.v[ins.x] = self.timers.delay

    def _op_ld_vx_k(self, ins: Instruction):
        self.waiting_for_key = True
        self.wait_target = ins.x
        self.keypad.arm()
        return self.regs.pc   # PC advances when the wait resolves

    def _op_ld_dt_vx(self, ins: Instruction):
        self.timers.delay = self.regs.v[ins.x]

    def _op_ld_st_vx(self, ins: Instruction):
        self.timers.sound = self.regs.v[ins.x]

    def _op_add_i(self, ins: Instruction):
        self.regs.i = self._index_add(self.regs.v[ins.x])

    def _op_ld_f(self, ins: Instruction):
        self.regs.i = FONT_BASE + (self.regs.v[ins.x] & 0xF) * GLYPH_SIZE

    def _op_ld_b(self, ins: Instruction):
        val = self.regs.v[ins.x]
        self.mem.write_block(self.regs.i, (val // 100, (val // 10) % 10, val % 10))

    def _op_ld_mem_vx(self, ins: Instruction):
        self.mem.write_block(self.regs.i, self.regs.v[:ins.x + 1])

    def _op_ld_vx_mem(self, ins: Instruction):
        data = self.mem.read_block(self.regs.i, ins.x + 1)
        self.regs.v[:ins.x + 1] = list(data)

    # -- Debug / introspection --

    def dump_regs(self) -> str:
        lines = []
        for row in range(0, NUM_REGS, 4):
            lines.append("  " + "  ".join(
                f"V{r:X} = {self.regs.v[r]:#04x}" for r in range(row, row + 4)))
        lines.append(f"  PC = {self.regs.pc:#05x}  I = {self.regs.i:#05x}  "
                     f"SP = {self.regs.sp}")
        if self.regs.sp:
            stack = " ".join(f"{a:03X}" for a in self.regs.stack[:self.regs.sp])
            lines.append(f"  STACK = [{stack}]")
        lines.append(f"  DT = {self.timers.delay}  ST = {self.timers.sound}  "
                     f"WAIT = {'V%X' % self.wait_target if self.waiting_for_key else '-'}")
        return "\n".join(lines)
