from static import (
    C8_FONTS, FONTSET_START_ADDRESS, FONT_GLYPH_SIZE, KEYS_COUNT,
    MEMORY_SIZE, PIXEL_OFF, PIXEL_ON, ROM_START_ADDRESS, SCREEN_HEIGHT,
    SCREEN_WIDTH, STACK_DEPTH,
)


# ******************** MEMORY SECTION
# ********** WRAPS A BYTEARRAY TO REPRESENT THE MAIN MEMORY WITH A FIXED SIZE OF 4KB
class Memory:
    def __init__(self):
        self.inner = bytearray(MEMORY_SIZE)
        self.load_fonts()

    def __setitem__(self, key, value):
        self.inner[key] = value

    def __getitem__(self, index):
        if isinstance(index, int) and not 0 <= index < MEMORY_SIZE:
            raise IndexError(f"Memory address 0x{index:04x} is outside of the 4KB address space")
        return self.inner[index]

    def __len__(self):
        return len(self.inner)

    def load_fonts(self):
        self.inner[FONTSET_START_ADDRESS:FONTSET_START_ADDRESS+len(C8_FONTS)] = bytes(C8_FONTS)

    def load_rom(self, rom):
        """copy the ROM bytes verbatim starting at the program entry point"""
        rom = bytes(rom)
        available = MEMORY_SIZE - ROM_START_ADDRESS
        if len(rom) > available:
            raise ValueError(f"The ROM is {len(rom)} bytes long but only {available} bytes are available")
        self.inner[ROM_START_ADDRESS:ROM_START_ADDRESS+len(rom)] = rom
        return len(rom)

    def check_range(self, address, length):
        """raise IndexError unless address..address+length-1 is inside the address space"""
        if not (0 <= address and address + length <= MEMORY_SIZE):
            raise IndexError(f"Memory range 0x{address:04x}+{length} is outside of the 4KB address space")

    def read_word(self, address):
        """big endian fetch of the two bytes at address and address+1"""
        return self[address] << 8 | self[address + 1]

    @staticmethod
    def glyph_address(digit):
        return FONTSET_START_ADDRESS + digit * FONT_GLYPH_SIZE


# ********** WRAPS A LIST TO REPRESENT A STACK WITH A LIMITED SIZE OF 24 ADDRESSES
class Stack:
    def __init__(self, depth=STACK_DEPTH):
        self.addr_list = [0] * depth
        self.depth = depth
        self.sp = 0

    def __len__(self):
        return self.sp

    def __str__(self):
        return str([f"0x{addr:04x}" for addr in self.addr_list[:self.sp]])

    def append(self, address):
        if self.sp >= self.depth:
            raise IndexError(f"The CHIP-8 stack can contain at most {self.depth} addresses. Limit exceeded")
        self.addr_list[self.sp] = address
        self.sp += 1

    def pop(self):
        if self.sp == 0:
            raise IndexError("Tried to return from a subroutine with an empty stack")
        self.sp -= 1
        address = self.addr_list[self.sp]
        self.addr_list[self.sp] = 0
        return address


# ******************** I/O SECTION
class Framebuffer:
    """
    monochrome display, one byte per pixel (0x00 OFF, 0xFF ON)
    only the CPU writes to it, render listeners get a read-only view
    """
    def __init__(self, w=SCREEN_WIDTH, h=SCREEN_HEIGHT):
        self.w, self.h = w, h
        self.buffer = bytearray(w * h)

    def read_pixel(self, x, y):
        """return 1 if pixel is ON, return 0 if pixel is OFF"""
        return 1 if self.buffer[self._index(x, y)] == PIXEL_ON else 0

    def write_pixel(self, x, y, on):
        """overwrite a pixel and return True if an ON pixel has been turned OFF"""
        idx = self._index(x, y)
        erased = self.buffer[idx] == PIXEL_ON and not on
        self.buffer[idx] = PIXEL_ON if on else PIXEL_OFF
        return erased

    def clear(self):
        self.buffer[:] = bytes(len(self.buffer))

    def view(self):
        return memoryview(self.buffer).toreadonly()

    def _index(self, x, y):
        if not (0 <= x < self.w and 0 <= y < self.h):
            raise IndexError(f"Pixel ({x}, {y}) is outside of the {self.w}x{self.h} display")
        return y * self.w + x


class Keypad:
    """
    input latch for the 16 hex keys, every slot is either 0 (released) or 1 (pressed)
    the input collaborator writes it at any time, the CPU only reads it once per step
    """
    def __init__(self):
        self.slots = bytearray(KEYS_COUNT)

    def __getitem__(self, key):
        return self.slots[key] == 1

    def __setitem__(self, key, value):
        self.slots[key] = 1 if value else 0

    def __str__(self):
        return "".join(f"{k:X}" for k in range(KEYS_COUNT) if self[k]) or "-"
