"""
CHIP-8 System Driver
=====================
Wires together:
  - the Chip8 interpreter core (chip8.py)
  - program loading from a host file
  - the invalid-opcode policy (strict: stop, lenient: skip and record)
  - frame pacing: ``cpu_hz // timer_hz`` instructions, then one timer tick

The interpreter and the 60 Hz timers are stepped independently; this
module is the only place that decides how many instructions run per
timer tick.
"""

from __future__ import annotations
import random
from typing import Optional, TYPE_CHECKING

from chip8 import Chip8, Instruction, InvalidOpcode, LoadError, PROGRAM_BASE

if TYPE_CHECKING:
    from display import Chip8Display, HeadlessDisplay

DEFAULT_CPU_HZ   = 600
DEFAULT_TIMER_HZ = 60


class Chip8System:
    """One machine instance plus the loop that drives it."""

    def __init__(self, cpu_hz: int = DEFAULT_CPU_HZ,
                 timer_hz: int = DEFAULT_TIMER_HZ,
                 strict: bool = True,
                 seed: Optional[int] = None,
                 shift_vy: bool = False,
                 index_wrap: bool = True):
        if cpu_hz < 1 or timer_hz < 1:
            raise ValueError("cpu_hz and timer_hz must be positive")
        self.cpu_hz = cpu_hz
        self.timer_hz = timer_hz
        self.strict = strict
        self.cpu = Chip8(rng=random.Random(seed), shift_vy=shift_vy,
                         index_wrap=index_wrap)

        # (pc, word) for every invalid opcode skipped in lenient mode
        self.invalid_opcodes: list[tuple[int, int]] = []
        self.frame_count: int = 0
        self.program_size: int = 0

    @property
    def cycles_per_frame(self) -> int:
        return max(1, self.cpu_hz // self.timer_hz)

    # -----------------------------------------------------------------
    #  Loading
    # -----------------------------------------------------------------

    def load_program(self, data: bytes | bytearray, base: int = PROGRAM_BASE):
        self.cpu.load_program(data, base)
        self.program_size = len(data)

    def load_program_file(self, path: str, base: int = PROGRAM_BASE):
        """Load a raw program image.  Raises LoadError on any failure."""
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise LoadError(f"Cannot read '{path}': {e.strerror or e}") from e
        self.load_program(data, base)

    # -----------------------------------------------------------------
    #  Execution
    # -----------------------------------------------------------------

    def step(self) -> Optional[Instruction]:
        """Run one cycle with the invalid-opcode policy applied."""
        try:
            return self.cpu.cycle()
        except InvalidOpcode as e:
            if self.strict:
                raise
            self.invalid_opcodes.append((e.pc, e.word))
            self.cpu.skip_invalid()
            return None

    def tick_timers(self):
        self.cpu.tick_timers()

    def run_frame(self) -> int:
        """One timer period: a batch of cycles, then exactly one tick.

        Returns the number of instructions actually executed.
        """
        executed = 0
        for _ in range(self.cycles_per_frame):
            if self.step() is not None:
                executed += 1
        self.tick_timers()
        self.frame_count += 1
        return executed

    def run(self, display: "Chip8Display | HeadlessDisplay",
            max_frames: Optional[int] = None) -> int:
        """Drive the machine against a display until it quits.

        Returns the number of frames run.
        """
        frames = 0
        display.open()
        try:
            while max_frames is None or frames < max_frames:
                if not display.pump(self.cpu):
                    break
                self.run_frame()
                display.present(self.cpu.fb, self.cpu.is_sound_active())
                display.tick()
                frames += 1
        finally:
            display.close()
        return frames

    # -----------------------------------------------------------------
    #  Convenience
    # -----------------------------------------------------------------

    def dump_state(self) -> str:
        lines = ["=== Registers ===", self.cpu.dump_regs()]
        last = self.cpu.last_instruction
        lines.append(f"  Instructions: {self.cpu.instr_count}  "
                     f"Frames: {self.frame_count}  "
                     f"Last: {last if last is not None else '-'}")
        if self.invalid_opcodes:
            skipped = ", ".join(f"{w:04X}@{pc:03X}"
                                for pc, w in self.invalid_opcodes[-8:])
            lines.append(f"  Skipped invalid: {len(self.invalid_opcodes)} "
                         f"(last: {skipped})")
        return "\n".join(lines)
