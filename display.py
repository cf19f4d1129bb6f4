"""
CHIP-8 Display / Input Front-end
=================================
Renders the 64x32 framebuffer in a pygame window and forwards host key
events to the machine's keypad.

Everything runs on the caller's thread: ``Chip8System.run()`` calls
``pump()`` (input), then runs a frame of instructions, then ``present()``
(output) and ``tick()`` (pacing).  No other thread touches the machine.

Usage (programmatic):
    from display import Chip8Display
    from system import Chip8System
    sys_emu = Chip8System()
    sys_emu.load_program_file("pong.ch8")
    sys_emu.run(Chip8Display(scale=10))

Usage (CLI):
    python cli.py pong.ch8 --scale 12
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

from devices import FB_WIDTH, FB_HEIGHT

if TYPE_CHECKING:
    from chip8 import Chip8
    from devices import Framebuffer

# Host keys for the hex keypad:
#   1 2 3 C        1 2 3 4
#   4 5 6 D   <-   Q W E R
#   7 8 9 E        A S D F
#   A 0 B F        Z X C V
KEY_LAYOUT = {
    "1": 0x1, "2": 0x2, "3": 0x3, "4": 0xC,
    "q": 0x4, "w": 0x5, "e": 0x6, "r": 0xD,
    "a": 0x7, "s": 0x8, "d": 0x9, "f": 0xE,
    "z": 0xA, "x": 0x0, "c": 0xB, "v": 0xF,
}

PIXEL_ON  = (255, 255, 255)
PIXEL_OFF = (0, 0, 0)
SOUND_ON  = (255, 170, 0)   # border colour while the sound timer runs


def build_keymap(pygame) -> dict[int, int]:
    """pygame key constant -> CHIP-8 key code."""
    return {getattr(pygame, f"K_{name}"): code
            for name, code in KEY_LAYOUT.items()}


def frame_to_rgb(pixels: bytes, fg=PIXEL_ON, bg=PIXEL_OFF):
    """Framebuffer bytes -> (width, height, 3) uint8 array for surfarray."""
    import numpy as np

    grid = np.frombuffer(pixels, dtype=np.uint8).reshape(FB_HEIGHT, FB_WIDTH)
    lit = grid.T.astype(bool)[..., np.newaxis]
    return np.where(lit, np.array(fg, dtype=np.uint8),
                    np.array(bg, dtype=np.uint8)).astype(np.uint8)


class Chip8Display:
    """pygame window sized ``64*scale`` x ``32*scale``."""

    BORDER = 4

    def __init__(self, scale: int = 10, fps: int = 60, title: str = "CHIP-8"):
        self.scale = scale
        self.fps = fps
        self.title = title
        self.frames_drawn: int = 0
        self._screen = None
        self._clock = None
        self._keymap: dict[int, int] = {}
        self._pg = None

    def open(self):
        import pygame

        self._pg = pygame
        pygame.init()
        pygame.display.set_caption(self.title)
        b = self.BORDER
        self._screen = pygame.display.set_mode(
            (FB_WIDTH * self.scale + 2 * b, FB_HEIGHT * self.scale + 2 * b))
        self._clock = pygame.time.Clock()
        self._keymap = build_keymap(pygame)
        self._screen.fill(PIXEL_OFF)
        pygame.display.flip()

    def close(self):
        if self._pg is not None:
            self._pg.quit()
            self._pg = None
            self._screen = None

    def pump(self, machine: "Chip8") -> bool:
        """Forward pending host events.  False means the user asked to quit."""
        pygame = self._pg
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                return False
            if event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    return False
                code = self._keymap.get(event.key)
                if code is not None:
                    machine.set_key_down(code)
            elif event.type == pygame.KEYUP:
                code = self._keymap.get(event.key)
                if code is not None:
                    machine.set_key_up(code)
        return True

    def present(self, fb: "Framebuffer", sound_active: bool = False) -> bool:
        """Redraw if the framebuffer changed.  Returns True if it drew."""
        pygame = self._pg
        b = self.BORDER
        w, h = self._screen.get_size()
        border = SOUND_ON if sound_active else PIXEL_OFF
        pygame.draw.rect(self._screen, border, (0, 0, w, h), b)
        if not fb.dirty:
            pygame.display.flip()
            return False

        surface = pygame.surfarray.make_surface(frame_to_rgb(fb.consume()))
        scaled = pygame.transform.scale(
            surface, (FB_WIDTH * self.scale, FB_HEIGHT * self.scale))
        self._screen.blit(scaled, (b, b))
        pygame.display.flip()
        self.frames_drawn += 1
        return True

    def tick(self):
        self._clock.tick(self.fps)


class HeadlessDisplay:
    """No-op display for testing and batch runs; records frames.

    Key events queued with ``press()``/``release()`` are delivered on the
    next ``pump()``; ``quit_after`` stops the run after that many pumps.
    """

    def __init__(self, quit_after: int | None = None):
        self.snapshots: list[bytes] = []
        self.sound_frames: int = 0
        self.quit_after = quit_after
        self.pumps: int = 0
        self.opened = False
        self._events: deque[tuple[bool, int]] = deque()

    def open(self):
        self.opened = True

    def close(self):
        self.opened = False

    def press(self, code: int):
        self._events.append((True, code))

    def release(self, code: int):
        self._events.append((False, code))

    def pump(self, machine: "Chip8") -> bool:
        if self.quit_after is not None and self.pumps >= self.quit_after:
            return False
        self.pumps += 1
        while self._events:
            down, code = self._events.popleft()
            if down:
                machine.set_key_down(code)
            else:
                machine.set_key_up(code)
        return True

    def present(self, fb: "Framebuffer", sound_active: bool = False) -> bool:
        if sound_active:
            self.sound_frames += 1
        if not fb.dirty:
            return False
        self.snapshots.append(fb.consume())
        return True

    def tick(self):
        pass

    @property
    def last_frame(self) -> bytes | None:
        return self.snapshots[-1] if self.snapshots else None
