#!/usr/bin/env python3
"""
CHIP-8 Command-Line Runner
===========================
Loads one program image and runs it in a pygame window (or headless).

Usage:
  python cli.py PROGRAM [--hz N] [--scale N] [--lenient] [--seed N]
                [--shift-vy] [--no-index-wrap] [--trace]
                [--headless [--frames N]] [--disassemble]

Exit status:
  0  normal exit (window closed / frame limit reached)
  1  load error or fatal machine fault
  2  usage error
"""

from __future__ import annotations
import argparse
import sys
from typing import Optional

from asm import disassemble
from chip8 import Chip8Error, LoadError, PROGRAM_BASE, StepRecord
from system import Chip8System, DEFAULT_CPU_HZ, DEFAULT_TIMER_HZ

HEADLESS_FRAMES = 600   # 10 s at 60 Hz


def _print_trace(record: StepRecord):
    print(f"[trace] {record}", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chip8",
        description="CHIP-8 interpreter")
    parser.add_argument("program",
                        help="Raw CHIP-8 program image, loaded at 0x200")
    parser.add_argument("--hz", type=int, default=DEFAULT_CPU_HZ, metavar="N",
                        help=f"Instructions per second (default: {DEFAULT_CPU_HZ})")
    parser.add_argument("--scale", type=int, default=10, metavar="N",
                        help="Pixel scale factor for the window (default: 10)")
    parser.add_argument("--lenient", action="store_true",
                        help="Skip invalid opcodes instead of stopping")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for the RND instruction")
    parser.add_argument("--shift-vy", action="store_true",
                        help="SHR/SHL shift VY into VX (COSMAC quirk)")
    parser.add_argument("--no-index-wrap", action="store_true",
                        help="Keep I 16-bit on ADD I, Vx instead of wrapping at 0xFFF")
    parser.add_argument("--trace", action="store_true",
                        help="Print every executed instruction to stderr")
    parser.add_argument("--headless", action="store_true",
                        help="Run without a window")
    parser.add_argument("--frames", type=int, default=None, metavar="N",
                        help="Stop after N frames (default: run until closed, "
                             f"{HEADLESS_FRAMES} when headless)")
    parser.add_argument("--disassemble", action="store_true",
                        help="Print a disassembly of PROGRAM and exit")
    return parser


def main(argv: Optional[list[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.hz < 1:
        parser.error(f"--hz must be a positive integer (got {args.hz})")
    if args.scale < 1:
        parser.error(f"--scale must be a positive integer (got {args.scale})")

    sys_emu = Chip8System(
        cpu_hz=args.hz,
        timer_hz=DEFAULT_TIMER_HZ,
        strict=not args.lenient,
        seed=args.seed,
        shift_vy=args.shift_vy,
        index_wrap=not args.no_index_wrap,
    )

    try:
        sys_emu.load_program_file(args.program)
    except LoadError as e:
        print(f"[chip8] load error: {e}", file=sys.stderr)
        sys.exit(1)

    # ---- Disassemble-only mode ----------------------------------------
    if args.disassemble:
        image = sys_emu.cpu.mem.read_block(PROGRAM_BASE, sys_emu.program_size)
        for addr, word, text in disassemble(image):
            print(f"  {addr:03X}  {word:04X}  {text}")
        return

    if args.trace:
        sys_emu.cpu.on_trace = _print_trace

    max_frames = args.frames
    if args.headless:
        from display import HeadlessDisplay
        display = HeadlessDisplay()
        if max_frames is None:
            max_frames = HEADLESS_FRAMES
    else:
        try:
            from display import Chip8Display
            import pygame  # noqa: F401
        except ImportError as e:
            print(f"[display] pygame not available: {e}", file=sys.stderr)
            print("[display] Install with: pip install pygame  "
                  "(or use --headless)", file=sys.stderr)
            sys.exit(1)
        display = Chip8Display(scale=args.scale)

    try:
        frames = sys_emu.run(display, max_frames=max_frames)
    except Chip8Error as e:
        print(f"[chip8] fatal: {e}", file=sys.stderr)
        print(sys_emu.dump_state(), file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return

    if args.headless:
        print(f"[chip8] {frames} frames, {sys_emu.cpu.instr_count} instructions")
        if sys_emu.invalid_opcodes:
            print(f"[chip8] skipped {len(sys_emu.invalid_opcodes)} invalid opcode(s)")


if __name__ == "__main__":
    main()
