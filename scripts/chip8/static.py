# CHIP-8 INFO
# https://chip-8.github.io/extensions/#chip-8
#
# COWGOD'S TECHNICAL REFERENCE
# http://devernay.free.fr/hacks/chip8/C8TECH10.HTM


import os
from functools import wraps


# ******************** STATIC SECTION
C8_FONTS = [0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
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
            0xF0, 0x80, 0xF0, 0x80, 0x80]  # F

FONT_GLYPH_SIZE = 5             # bytes per glyph, one byte per row
MEMORY_SIZE = 4096
FONTSET_START_ADDRESS = 0x50
ROM_START_ADDRESS = 0x200
STACK_DEPTH = 24
REGISTERS_COUNT = 16
KEYS_COUNT = 16
SCREEN_WIDTH = 64
SCREEN_HEIGHT = 32
PIXEL_ON = 0xFF
PIXEL_OFF = 0x00
SCALE = 10
TICK_SECONDS = 0.016            # one instruction every ~16ms, roughly 60 steps per second
DEBUG = True if int(os.getenv('DEBUG', 0)) >= 1 else False


# ******************** UTILITIES SECTION
def asm(msg):
    """decorator to print out the ASM of the instruction being executed"""
    def decorator(fn):
        @wraps(fn)
        def wrapper_fn(*args, **kwargs):
            mem_addr = args[0].pc       # args[0] equals self of the decorated method
            vals = fn(*args, **kwargs)  # use the locals() values of each decorated function in the print
            vals['mem_addr'] = mem_addr
            if DEBUG: print(msg.format(**vals))
        return wrapper_fn
    return decorator
