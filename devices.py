"""
CHIP-8 Peripheral / Device Layer
=================================
The machine state that the interpreter drives but does not own the
timing of:

  TimerUnit    delay and sound down-counters, ticked externally at 60 Hz
  Keypad       16-key input latch, written by the host input collaborator
  Framebuffer  64x32 monochrome pixel grid plus a dirty flag

None of these perform I/O.  The display/input front-end (display.py)
reads the framebuffer and writes the keypad; the driver (system.py)
ticks the timers.
"""

from __future__ import annotations
from typing import Optional

NUM_KEYS  = 16
FB_WIDTH  = 64
FB_HEIGHT = 32


# ---------------------------------------------------------------------------
#  Timer unit
# ---------------------------------------------------------------------------

class TimerUnit:
    """Two independent 8-bit down-counters, clamped at zero."""

    def __init__(self):
        self._delay: int = 0
        self._sound: int = 0
        self.tick_count: int = 0

    @property
    def delay(self) -> int:
        return self._delay

    @delay.setter
    def delay(self, value: int):
        self._delay = value & 0xFF

    @property
    def sound(self) -> int:
        return self._sound

    @sound.setter
    def sound(self, value: int):
        self._sound = value & 0xFF

    def tick(self):
        if self._delay > 0:
            self._delay -= 1
        if self._sound > 0:
            self._sound -= 1
        self.tick_count += 1

    def is_sound_active(self) -> bool:
        return self._sound > 0


# ---------------------------------------------------------------------------
#  Keypad
# ---------------------------------------------------------------------------
# Hex keypad layout:
#   1 2 3 C
#   4 5 6 D
#   7 8 9 E
#   A 0 B F

class Keypad:
    """16 key states plus a one-shot latch for the wait-for-key instruction.

    ``arm()`` starts listening; the first ``set_key_down`` after that is
    latched and handed out once by ``take_press()``.  Keys already held
    when the latch is armed do not count.
    """

    def __init__(self):
        self.keys: list[bool] = [False] * NUM_KEYS
        self._armed: bool = False
        self._press: Optional[int] = None

    @staticmethod
    def _check(code: int):
        if not 0 <= code < NUM_KEYS:
            raise ValueError(f"Key code out of range: {code!r}")

    def set_key_down(self, code: int):
        self._check(code)
        self.keys[code] = True
        if self._armed and self._press is None:
            self._press = code

    def set_key_up(self, code: int):
        self._check(code)
        self.keys[code] = False

    def is_down(self, code: int) -> bool:
        return self.keys[code]

    def arm(self):
        self._armed = True
        self._press = None

    def take_press(self) -> Optional[int]:
        code = self._press
        if code is not None:
            self._armed = False
            self._press = None
        return code

    @property
    def armed(self) -> bool:
        return self._armed

    @property
    def pending(self) -> Optional[int]:
        """Latched key code not yet taken, or None."""
        return self._press


# ---------------------------------------------------------------------------
#  Framebuffer
# ---------------------------------------------------------------------------

class Framebuffer:
    """64x32 one-byte-per-pixel grid, row-major, values 0 or 1.

    ``dirty`` is set by every clear/draw and cleared by the renderer
    once it has consumed a frame.
    """

    def __init__(self, width: int = FB_WIDTH, height: int = FB_HEIGHT):
        self.width = width
        self.height = height
        self.pixels = bytearray(width * height)
        self.dirty: bool = False

    def clear(self):
        self.pixels = bytearray(self.width * self.height)
        self.dirty = True

    def draw_sprite(self, x: int, y: int, rows: bytes) -> bool:
        """XOR an 8-pixel-wide sprite at (x, y), wrapping on both axes.

        Returns True if any lit pixel was turned off.
        """
        collided = False
        w, h = self.width, self.height
        for row, bits in enumerate(rows):
            base = ((y + row) % h) * w
            for col in range(8):
                if bits & (0x80 >> col):
                    idx = base + (x + col) % w
                    if self.pixels[idx]:
                        collided = True
                    self.pixels[idx] ^= 1
        self.dirty = True
        return collided

    def pixel(self, x: int, y: int) -> int:
        return self.pixels[y * self.width + x]

    def snapshot(self) -> bytes:
        return bytes(self.pixels)

    def consume(self) -> bytes:
        """Snapshot for the renderer; clears the dirty flag."""
        data = self.snapshot()
        self.dirty = False
        return data

    def as_text(self, on: str = "#", off: str = ".") -> str:
        lines = []
        for y in range(self.height):
            row = self.pixels[y * self.width:(y + 1) * self.width]
            lines.append("".join(on if p else off for p in row))
        return "\n".join(lines)
