import random
import sys
from enum import Enum

from memory import Framebuffer, Keypad, Memory, Stack
from static import REGISTERS_COUNT, ROM_START_ADDRESS, asm


class MachineState(Enum):
    RUNNING = "running"
    STOPPED = "stopped"


class UnimplementedOpcode(NotImplementedError):
    def __init__(self, opcode):
        super().__init__(f"The opcode ({opcode:#06x}) is not implemented")
        self.opcode = opcode


# ******************** CPU SECTION
class Chip8:
    def __init__(self, keypad=None, legacy_quirks=False):
        self.mem = Memory()
        self.keypad = keypad if keypad is not None else Keypad()
        # legacy FX33/FX65: FX33 computes the digits but stores nothing, FX65 loads every byte into Vx
        self.legacy_quirks = legacy_quirks
        self.instructions = {
            0x00E0: self._clear_screen,
            0x00EE: self._return,
            0x1000: self._jump,
            0x2000: self._call_addr,
            0x3000: self._skip_if_eq,
            0x4000: self._skip_if_not_eq,
            0x6000: self._set_vk,
            0x7000: self._add_to_vk,
            0x8000: self._set_vx_to_vy,
            0x8002: self._set_vx_and_vy,
            0x8004: self._add_vx_vy,
            0x8005: self._sub_vx_vy,
            0xA000: self._set_idx,
            0xC000: self._random_byte_and,
            0xD000: self._to_screen,
            0xE09E: self._skip_if_pressed,
            0xE0A1: self._skip_if_not_pressed,
            0xF007: self._set_vx_dt,
            0xF015: self._set_dt_vx,
            0xF018: self._set_st,
            0xF01E: self._add_to_idx,
            0xF029: self._select_char,
            0xF033: self._bcd_repr,
            0xF065: self._load_vregs,
        }
        self.reset()

    def reset(self):
        """bring the CPU back to its power-on state, the loaded program stays in memory"""
        self.mem.load_fonts()
        self.stack = Stack()
        self.screen = Framebuffer()
        self.v_regs = bytearray(REGISTERS_COUNT)
        self.pc = ROM_START_ADDRESS
        self.idx = 0    # address register, where the sprites reside in memory
        self.dt = 0     # delay timer, active when non-zero
        self.st = 0     # sound timer, active when non-zero
        self.draw = False
        self.state = MachineState.STOPPED
        self.fault = None

    def __str__(self):
        registers = f"PC_REGISTER:0x{self.pc:04x} | IDX_REGISTER:0x{self.idx:04x} | VARIABLE_REGISTERS:{list(self.v_regs)}"
        stack = f"STACK:{self.stack} | SP:{self.stack.sp}"
        timers = f"DELAY_TIMER:{self.dt} | SOUND_TIMER:{self.st}"
        flags = f"STATE:{self.state.name} | DRAW:{self.draw} | KEYS:{self.keypad}"
        return f"{registers}\n{stack}\n{timers}\n{flags}"

    def load_rom(self, rom):
        return self.mem.load_rom(rom)

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: CLS")
    def _clear_screen(self, opcode):
        self.screen.clear()
        self.draw = True
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: RET -> 0x{address:04x}")
    def _return(self, opcode):
        """return from a subroutine, the stack holds the address of the CALL itself"""
        address = self.stack.pop() + 0x2
        self.pc = address
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: JP 0x{address:04x}")
    def _jump(self, opcode):
        address = opcode & 0x0FFF
        self.pc = address
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: CALL 0x{address:04x}")
    def _call_addr(self, opcode):
        address = opcode & 0x0FFF
        self.stack.append(self.pc)
        self.pc = address
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SE V{x:X}, {comparison_value}")
    def _skip_if_eq(self, opcode):
        x = (opcode & 0x0F00) >> 8
        comparison_value = opcode & 0x00FF
        if self.v_regs[x] == comparison_value:
            self._skip_next_instruction()
        else:
            self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SNE V{x:X}, {comparison_value}")
    def _skip_if_not_eq(self, opcode):
        x = (opcode & 0x0F00) >> 8
        comparison_value = opcode & 0x00FF
        if self.v_regs[x] != comparison_value:
            self._skip_next_instruction()
        else:
            self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD V{x:X}, {value}")
    def _set_vk(self, opcode):
        """set the value of one of the 16 variable registers, Vx"""
        x, value = (opcode & 0x0F00) >> 8, opcode & 0x00FF
        self.v_regs[x] = value
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: ADD V{x:X}, {value}")
    def _add_to_vk(self, opcode):
        """add to the value already present in one of the variable registers, VF is left alone"""
        x, value = (opcode & 0x0F00) >> 8, opcode & 0x00FF
        self.v_regs[x] = (self.v_regs[x] + value) & 0xFF    # keep only the lowest 8 bits from the result and store them in Vx
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD V{x:X}, V{y:X}")
    def _set_vx_to_vy(self, opcode):
        """set the value of Vx equal to that of Vy"""
        x, y = (opcode & 0x0F00) >> 8, (opcode & 0x00F0) >> 4
        self.v_regs[x] = self.v_regs[y]
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: AND V{x:X}, V{y:X}")
    def _set_vx_and_vy(self, opcode):
        """set the value of Vx to Vx AND Vy"""
        x, y = (opcode & 0x0F00) >> 8, (opcode & 0x00F0) >> 4
        self.v_regs[x] &= self.v_regs[y]
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: ADD V{x:X}, V{y:X}")
    def _add_vx_vy(self, opcode):
        """set the value of Vx to Vx + Vy, VF = carry"""
        x, y = (opcode & 0x0F00) >> 8, (opcode & 0x00F0) >> 4
        sum = self.v_regs[x] + self.v_regs[y]
        self.v_regs[0xF] = 1 if sum > 0xFF else 0
        self.v_regs[x] = sum & 0xFF     # Vx goes last, with x == F the sum overwrites the carry
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SUB V{x:X}, V{y:X}")
    def _sub_vx_vy(self, opcode):
        """set the value of Vx to Vx - Vy, VF = NOT borrow"""
        x, y = (opcode & 0x0F00) >> 8, (opcode & 0x00F0) >> 4
        vx, vy = self.v_regs[x], self.v_regs[y]
        self.v_regs[0xF] = 0 if vx < vy else 1
        self.v_regs[x] = (vx - vy) & 0xFF
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD I, 0x{value:04x}")
    def _set_idx(self, opcode):
        """set the value of the I register"""
        value = opcode & 0x0FFF
        self.idx = value
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: RND V{x:X}, 0x{kk:02x}")
    def _random_byte_and(self, opcode):
        x, kk = (opcode & 0x0F00) >> 8, opcode & 0x00FF
        rnd = random.randint(0, 255)
        self.v_regs[x] = rnd & kk
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: DRW V{x:X}, V{y:X}, {n_bytes}")
    def _to_screen(self, opcode):
        """
        display n-byte sprite starting at memory location I at (Vx, Vy)
        sprite bits overwrite the screen (no XOR) and nothing wraps around the edges,
        VF is raised to 1 when an ON pixel gets turned OFF but it's never reset to 0 here
        """
        x, y = (opcode & 0x0F00) >> 8, (opcode & 0x00F0) >> 4
        x_origin, y_origin = self.v_regs[x], self.v_regs[y]
        n_bytes = opcode & 0x000F
        for row in range(n_bytes):
            sprite_byte = self.mem[self.idx + row]
            for col in range(8):
                bit = (sprite_byte >> (7 - col)) & 0x1
                if self.screen.write_pixel(x_origin + col, y_origin + row, bit):
                    self.v_regs[0xF] = 1
        self.draw = True
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SKP V{x:X}")
    def _skip_if_pressed(self, opcode):
        """skip the following instruction if the key corresponding to the hex value stored in Vx is pressed"""
        x = (opcode & 0x0F00) >> 8
        key = self.v_regs[x]
        if self.keypad[key]:
            self._skip_next_instruction()
        else:
            self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: SKNP V{x:X}")
    def _skip_if_not_pressed(self, opcode):
        """skip the following instruction if the key corresponding to the hex value stored in Vx is NOT pressed"""
        x = (opcode & 0x0F00) >> 8
        key = self.v_regs[x]
        if not self.keypad[key]:
            self._skip_next_instruction()
        else:
            self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD V{x:X}, DT")
    def _set_vx_dt(self, opcode):
        """set Vx = DT (delay timer) value"""
        x = (opcode & 0x0F00) >> 8
        self.v_regs[x] = self.dt
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD DT, V{x:X}")
    def _set_dt_vx(self, opcode):
        """set DT (delay timer) = Vx"""
        x = (opcode & 0x0F00) >> 8
        self.dt = self.v_regs[x]
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD ST, V{register:X}")
    def _set_st(self, opcode):
        """set ST = Vx"""
        register = (opcode & 0x0F00) >> 8
        self.st = self.v_regs[register]
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: ADD I, V{register:X}")
    def _add_to_idx(self, opcode):
        """set I = I + Vx"""
        register = (opcode & 0x0F00) >> 8
        self.idx = (self.idx + self.v_regs[register]) & 0xFFFF
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD F, V{register:X}")
    def _select_char(self, opcode):
        """set I to location of sprite for digit Vx"""
        register = (opcode & 0x0F00) >> 8
        self.idx = Memory.glyph_address(self.v_regs[register])
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD B, V{x:X} -> {hundreds} {tens} {ones}")
    def _bcd_repr(self, opcode):
        """takes the decimal value of Vx and the hundreds digit in memory at I, the tens digit at I+1, the ones digit at I+2"""
        x = (opcode & 0x0F00) >> 8
        ones = self.v_regs[x] % 10
        tens = self.v_regs[x] // 10 % 10
        hundreds = self.v_regs[x] // 100
        if not self.legacy_quirks:
            self.mem.check_range(self.idx, 3)
            self.mem[self.idx], self.mem[self.idx+1], self.mem[self.idx+2] = hundreds, tens, ones
        self._goto_next_instruction()
        return locals()

    @asm("mem_addr: 0x{mem_addr:04x}    instruction: LD V{x:X}, [I]")
    def _load_vregs(self, opcode):
        """read registers V0 through Vx (included) from memory starting at location I, I ends up at I+x+1"""
        x = (opcode & 0x0F00) >> 8
        self.mem.check_range(self.idx, x + 1)
        for i in range(x + 1):
            target = x if self.legacy_quirks else i
            self.v_regs[target] = self.mem[self.idx]
            self.idx += 1
        self._goto_next_instruction()
        return locals()

    def _goto_next_instruction(self):
        self.pc += 0x2

    def _skip_next_instruction(self):
        self.pc += 0x4

    def decode(self, opcode):
        """decode opcodes using masks and return respective function"""
        # the masks are tried from the most to the least specific one,
        # the first one that produces a known instruction wins
        masks = {
            0xFFFF: [0x00E0, 0x00EE],
            0xF0FF: [0xE09E, 0xE0A1, 0xF007, 0xF015, 0xF018, 0xF01E, 0xF029, 0xF033, 0xF065],
            0xF00F: [0x8000, 0x8002, 0x8004, 0x8005],
            0xF000: [0x1000, 0x2000, 0x3000, 0x4000, 0x6000, 0x7000, 0xA000, 0xC000, 0xD000],
        }
        for m, ops in masks.items():
            if (opcode & m) in ops:
                return self.instructions[opcode & m]
        raise UnimplementedOpcode(opcode)

    def halt(self, reason):
        """a failing step is fatal: report it and stop the machine"""
        self.fault = reason
        self.state = MachineState.STOPPED
        print(f"********** THE EMULATOR HALTED: {reason}", file=sys.stderr)

    def cycle(self):
        """
        emulate one machine step: fetch, decode, execute, then update the timers
        return False if the step failed and the machine has been stopped
        """
        self.draw = False
        try:
            # fetch (each instruction is two bytes long, high byte first)
            opcode = self.mem.read_word(self.pc)
            # decode + execute
            instruction = self.decode(opcode)
            instruction(opcode)
        except (NotImplementedError, IndexError) as err:
            self.halt(err)
            return False
        # delay/sound timers (dt/st) tick once per executed instruction
        if self.dt > 0:
            self.dt -= 1
        if self.st > 0:
            self.st -= 1
        return True
