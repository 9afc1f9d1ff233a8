import io
import threading
import time
import unittest
from contextlib import redirect_stderr

from cpu import Chip8, MachineState
from loop import Interpreter


class TestStep(unittest.TestCase):
    def setUp(self):
        self.chip = Chip8()
        self.interpreter = Interpreter(self.chip, scale=4)
        self.frames = []
        self.interpreter.add_render_listener(lambda *frame: self.frames.append(frame))

    def test_render_only_after_draw(self):
        # V0 = 0, I = glyph 0, DRW V0, V0, 5, JP 0x206
        self.chip.load_rom(b"\x60\x00\xF0\x29\xD0\x05\x12\x06")
        self.interpreter.step()
        self.interpreter.step()
        self.assertEqual(self.frames, [])
        self.interpreter.step()
        self.assertEqual(len(self.frames), 1)
        pixels, width, height, scale = self.frames[0]
        self.assertEqual((width, height, scale), (64, 32, 4))
        self.assertEqual(pixels[0], 0xFF)
        self.assertTrue(pixels.readonly)
        self.interpreter.step()
        self.assertEqual(len(self.frames), 1)

    def test_render_after_clear(self):
        self.chip.load_rom(b"\x00\xE0")
        self.interpreter.step()
        self.assertEqual(len(self.frames), 1)


class TestLifecycle(unittest.TestCase):
    def setUp(self):
        self.chip = Chip8()
        self.interpreter = Interpreter(self.chip, tick=0.001)

    def test_start_stop(self):
        # infinite loop: JP 0x200
        self.chip.load_rom(b"\x12\x00")
        self.interpreter.start()
        self.assertTrue(self.interpreter.running)
        self.assertIs(self.chip.state, MachineState.RUNNING)
        self.interpreter.stop()
        self.interpreter.join(timeout=2)
        self.assertFalse(self.interpreter.running)
        self.assertIs(self.chip.state, MachineState.STOPPED)
        self.assertEqual(self.chip.pc, 0x200)
        self.assertIsNone(self.chip.fault)

    def test_restart_resumes(self):
        # V0 += 1, JP 0x200
        self.chip.load_rom(b"\x70\x01\x12\x00")
        self.interpreter.start()
        self.interpreter.stop()
        self.interpreter.join(timeout=2)
        self.interpreter.start()
        self.interpreter.stop()
        self.interpreter.join(timeout=2)
        self.assertIn(self.chip.pc, (0x200, 0x202))
        self.assertIsNone(self.chip.fault)
        self.assertIs(self.chip.state, MachineState.STOPPED)

    def test_start_right_after_stop(self):
        self.chip.load_rom(b"\x12\x00")
        self.interpreter.start()
        self.interpreter.stop()
        self.interpreter.start()
        time.sleep(0.05)
        self.assertTrue(self.interpreter.running)
        self.assertIs(self.chip.state, MachineState.RUNNING)
        self.interpreter.stop()
        self.interpreter.join(timeout=2)
        self.assertIs(self.chip.state, MachineState.STOPPED)

    def test_start_clears_previous_fault(self):
        self.chip.load_rom(b"\x5A\xB0")
        with redirect_stderr(io.StringIO()):
            self.interpreter.start()
            self.interpreter.join(timeout=2)
        self.assertIsNotNone(self.chip.fault)
        self.chip.load_rom(b"\x12\x00")
        self.interpreter.start()
        self.assertIsNone(self.chip.fault)
        self.interpreter.stop()
        self.interpreter.join(timeout=2)
        self.assertIsNone(self.chip.fault)

    def test_fault_stops_loop(self):
        halted = threading.Event()
        self.interpreter.add_halt_listener(lambda chip: halted.set())
        self.chip.load_rom(b"\x60\x05\x5A\xB0")
        with redirect_stderr(io.StringIO()):
            self.interpreter.start()
            self.assertTrue(halted.wait(timeout=2))
            self.interpreter.join(timeout=2)
        self.assertFalse(self.interpreter.running)
        self.assertIs(self.chip.state, MachineState.STOPPED)
        self.assertEqual(self.chip.v_regs[0], 5)
        self.assertEqual(self.chip.pc, 0x202)


if __name__ == "__main__":
    unittest.main()
