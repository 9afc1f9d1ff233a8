# CHIP-8 EMULATOR ENTRY POINT
# the CPU core lives in cpu.py/memory.py and runs on its own thread (loop.py),
# this module is the presentation/input side: window, keyboard and ROM file


import argparse
import sys
import threading
from pathlib import Path

import os
os.environ["PYGAME_HIDE_SUPPORT_PROMPT"] = "no welcome message"   # this env var disable pygame's welcome message when imported
import pygame
from pygame.locals import (
    K_0, K_1, K_2, K_3,
    K_4, K_5, K_6, K_7,
    K_8, K_9, K_a, K_b,
    K_c, K_d, K_e, K_f,
)

from cpu import Chip8
from loop import Interpreter
from memory import Keypad
from static import SCALE, SCREEN_HEIGHT, SCREEN_WIDTH


# ******************** STATIC SECTION
KEY_MAPPINGS = {
    K_0: 0x0,
    K_1: 0x1,
    K_2: 0x2,
    K_3: 0x3,
    K_4: 0x4,
    K_5: 0x5,
    K_6: 0x6,
    K_7: 0x7,
    K_8: 0x8,
    K_9: 0x9,
    K_a: 0xA,
    K_b: 0xB,
    K_c: 0xC,
    K_d: 0xD,
    K_e: 0xE,
    K_f: 0xF,
}

FPS = 60
BLACK = pygame.Color(0, 0, 0, 255)
WHITE = pygame.Color(255, 255, 255, 255)


# ******************** UTILITIES SECTION
def get_args():
    parser = argparse.ArgumentParser(description="CHIP-8 emulator")
    parser.add_argument("-f", "--file", required=True, help="input rom file")
    parser.add_argument("-s", "--scale", type=int, default=SCALE, help="size in screen pixels of a CHIP-8 pixel")
    parser.add_argument("--legacy-quirks", action="store_true",
                        help="FX33 stores nothing and FX65 loads every byte into Vx")
    return parser.parse_args()


# ******************** I/O SECTION
class Screen:
    """render listener: keeps the last frame pushed by the interpreter and blits it on the main thread"""
    def __init__(self, w=SCREEN_WIDTH, h=SCREEN_HEIGHT, s=SCALE, bg_color=BLACK, fg_color=WHITE):
        self.background = bg_color
        self.foreground = fg_color
        self.surface = pygame.display.set_mode((w * s, h * s))
        self.surface.fill(self.background)
        self._lock = threading.Lock()
        self._frame = None

    def on_render(self, pixels, width, height, scale):
        """called from the interpreter thread, only copies the buffer"""
        with self._lock:
            self._frame = (bytes(pixels), width, height, scale)

    def refresh(self):
        with self._lock:
            frame, self._frame = self._frame, None
        if frame is None:
            return
        pixels, width, height, scale = frame
        self.surface.fill(self.background)
        for y in range(height):
            for x in range(width):
                if pixels[y * width + x]:
                    pygame.draw.rect(self.surface, self.foreground, (x * scale, y * scale, scale, scale))
        pygame.display.flip()


def poll_keys(keypad):
    """translate the pygame event queue into the input latch, return False when the user wants to quit"""
    for event in pygame.event.get():
        if event.type == pygame.QUIT:
            return False
        if event.type == pygame.KEYDOWN:
            if event.key == pygame.K_ESCAPE:
                return False
            if event.key in KEY_MAPPINGS:
                keypad[KEY_MAPPINGS[event.key]] = 1
        elif event.type == pygame.KEYUP and event.key in KEY_MAPPINGS:
            keypad[KEY_MAPPINGS[event.key]] = 0
    return True


# ******************** ENTRY POINT SECTION
def main():
    args = get_args()
    rom_path = Path(args.file)
    print("CHIP-8 emulator is starting")
    # pygame initialization
    pygame.init()
    pygame.display.set_caption(f"CHIP-8 - {rom_path.name}")
    clock = pygame.time.Clock()
    # IO
    keypad = Keypad()
    screen = Screen(s=args.scale)
    # CPU
    chip = Chip8(keypad, legacy_quirks=args.legacy_quirks)
    try:
        chip.load_rom(rom_path.read_bytes())
    except (OSError, ValueError) as err:
        pygame.quit()
        sys.exit(f"Cannot load the ROM at path {rom_path}: {err}")
    print(f"Loaded ROM: {rom_path}")
    interpreter = Interpreter(chip, scale=args.scale)
    interpreter.add_render_listener(screen.on_render)
    interpreter.start()
    # presentation loop
    try:
        while interpreter.running:
            clock.tick(FPS)
            if not poll_keys(keypad):
                break
            screen.refresh()
    finally:
        interpreter.stop()
        interpreter.join()
        pygame.quit()
    if chip.fault is not None:
        sys.exit(f"********** THE EMULATOR CRASHED WITH THE FOLLOWING STATE\n{chip}")


if __name__ == "__main__":
    main()
