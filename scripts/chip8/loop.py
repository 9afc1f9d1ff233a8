import threading

from cpu import MachineState
from static import DEBUG, SCALE, TICK_SECONDS


# ******************** EMULATION LOOP SECTION
class Interpreter:
    """
    drives a Chip8 on a dedicated worker thread, one instruction per tick

    stopping is cooperative: stop() raises a flag that the worker checks at the
    top of its next tick, a step that already started always runs to its end
    render listeners are called from the worker thread right after every step
    that touched the framebuffer and receive (pixels, width, height, scale),
    pixels being a read-only view over the live framebuffer
    """
    def __init__(self, chip, scale=SCALE, tick=TICK_SECONDS):
        self.chip = chip
        self.scale = scale
        self.tick = tick
        self.render_listeners = []
        self.halt_listeners = []
        self._stop_requested = threading.Event()
        self._thread = None

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    def add_render_listener(self, fn):
        self.render_listeners.append(fn)

    def add_halt_listener(self, fn):
        """fn(chip) is called once the worker gives up because the machine faulted"""
        self.halt_listeners.append(fn)

    def start(self):
        """begin ticking from the current machine state, a pending stop is waited for first"""
        if self.running:
            if not self._stop_requested.is_set():
                return
            self._thread.join()
        self._stop_requested.clear()
        self.chip.state = MachineState.RUNNING
        self.chip.fault = None
        self._thread = threading.Thread(target=self._run, name="chip8-interpreter", daemon=True)
        self._thread.start()

    def stop(self):
        """ask the worker to halt at its next tick boundary"""
        self._stop_requested.set()

    def join(self, timeout=None):
        if self._thread is not None:
            self._thread.join(timeout)

    def step(self):
        """run exactly one tick worth of work, return False once the machine is stopped"""
        ok = self.chip.cycle()
        if ok and self.chip.draw:
            self._render()
        return ok

    def _run(self):
        while not self._stop_requested.is_set():
            if not self.step():
                for fn in self.halt_listeners:
                    fn(self.chip)
                break
            self._stop_requested.wait(self.tick)     # pacing, returns early when a stop is requested
        self.chip.state = MachineState.STOPPED
        if DEBUG: print(f"Interpreter stopped\n{self.chip}")

    def _render(self):
        screen = self.chip.screen
        pixels = screen.view()
        for fn in self.render_listeners:
            fn(pixels, screen.w, screen.h, self.scale)
