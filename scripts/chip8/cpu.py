import random
import time
from collections import namedtuple
from functools import wraps

from devices import (
    DEBUG, FONT_START_ADDRESS, GLYPH_SIZE, ROM_START_ADDRESS,
    Framebuffer, Keypad, Memory, Timers, advance,
)
from errors import Chip8Error, InvalidGlyphError, StackOverflowError, StackUnderflowError
from opcodes import (
    AddImmediate, AddIndex, AddRegister, AndRegister, Call, ClearScreen, Draw,
    GetDelay, Jump, JumpOffset, LoadRegisters, OrRegister, Return, ReverseSubRegister,
    SetDelay, SetImmediate, SetIndex, SetIndexToGlyph, SetRegister, SetSound, ShiftLeft,
    ShiftRight, SkipIfEqual, SkipIfNotEqual, SkipIfNotPressed, SkipIfPressed,
    SkipIfRegistersEqual, SkipIfRegistersNotEqual, StoreBCD, StoreRandom, StoreRegisters,
    SubRegister, SysCall, WaitKeyPress, XorRegister, decode, fetch,
)


VF = 0xF
REGISTERS = 16
STACK_SIZE = 16


# ******************** UTILITIES SECTION
def print_trace(pc, mnemonic):
    print(f"mem_addr: 0x{pc:04x}    instruction: {mnemonic}")

def asm(fn):
    """decorator to send the ASM of the instruction being executed to the trace sink"""
    @wraps(fn)
    def wrapper_fn(self, ins, s):
        if self.trace is not None:
            self.trace(s.pc, str(ins))
        return fn(self, ins, s)
    return wrapper_fn


# ******************** CONFIGURATION SECTION
# COMPATIBILITY QUIRKS TABLE
# https://games.gulrak.net/cadmium/chip8-opcode-table.html#quirk6
#   legacy_shift         SHR/SHL shift Vy into Vx instead of shifting Vx in place (quirk 2)
#   logic_resets_vf      OR/AND/XOR set VF to 0 (quirk 1)
#   memory_increments_i  LD [I], Vx and LD Vx, [I] leave I pointing after the last register (quirk 6)
Quirks = namedtuple('Quirks', 'legacy_shift logic_resets_vf memory_increments_i',
                    defaults=(False, False, False))


# ******************** MACHINE STATE SECTION
class State(namedtuple('State', 'pc idx v_regs sp stack halted')):
    """
    registers, call stack and halted flag of the machine
    every instruction returns a new State instead of changing this one
    the stack pointer indexes the last pushed address, 0 means the stack is empty
    """
    __slots__ = ()

    @classmethod
    def initial(cls, pc=ROM_START_ADDRESS):
        return cls(pc=pc, idx=0, v_regs=(0,) * REGISTERS, sp=0, stack=(0,) * STACK_SIZE, halted=False)

    def get(self, register):
        return self.v_regs[register]

    def set(self, *writes):
        """return a copy with the (register, value) writes applied in order, the last write to a register wins"""
        v_regs = list(self.v_regs)
        for register, value in writes:
            v_regs[register] = value & 0xFF
        return self._replace(v_regs=tuple(v_regs))

    def next(self):
        return self._replace(pc=self.pc + 0x2)

    def skip_if(self, condition):
        return self._replace(pc=self.pc + (0x4 if condition else 0x2))

    def __str__(self):
        registers = f"PC_REGISTER:0x{self.pc:04x} | IDX_REGISTER:0x{self.idx:04x} | VARIABLE_REGISTERS:{list(self.v_regs)}"
        stack = f"STACK_POINTER:{self.sp} | STACK:{[hex(a) for a in self.stack[1:self.sp+1]]}"
        return f"{registers}\n{stack}\nHALTED: {self.halted}"


# ******************** CPU SECTION
class Chip8:
    def __init__(self, screen=None, keypad=None, quirks=Quirks(), rng=None, clock=time.monotonic_ns, trace=None):
        self.mem = Memory()
        self.screen = screen if screen is not None else Framebuffer()
        self.keypad = keypad if keypad is not None else Keypad()
        self.quirks = quirks
        self.rng = rng if rng is not None else random.Random()
        self.clock = clock
        self.trace = trace if trace is not None else (print_trace if DEBUG else None)
        self.state = State.initial()
        self.timers = Timers(delay=0, sound=0, last_update=clock())
        self.presses = []       # keys pressed since the previous cycle
        # the shift convention is chosen once, here, not on every shift
        if quirks.legacy_shift:
            self._shift_source = lambda ins, s: s.get(ins.y)
        else:
            self._shift_source = lambda ins, s: s.get(ins.x)
        self.instructions = {
            SysCall: self._sys,
            ClearScreen: self._clear_screen,
            Return: self._return,
            Jump: self._jump,
            Call: self._call_addr,
            SkipIfEqual: self._skip_if_eq,
            SkipIfNotEqual: self._skip_if_not_eq,
            SkipIfRegistersEqual: self._skip_if_eq_regs,
            SetImmediate: self._set_vk,
            AddImmediate: self._add_to_vk,
            SetRegister: self._set_vx_to_vy,
            OrRegister: self._set_vx_or_vy,
            AndRegister: self._set_vx_and_vy,
            XorRegister: self._set_vx_xor_vy,
            AddRegister: self._add_vx_vy,
            SubRegister: self._sub_vx_vy,
            ShiftRight: self._shr,
            ReverseSubRegister: self._subn_vx_vy,
            ShiftLeft: self._shl,
            SkipIfRegistersNotEqual: self._skip_if_not_eq_regs,
            SetIndex: self._set_idx,
            JumpOffset: self._jump_plus,
            StoreRandom: self._random_byte_and,
            Draw: self._to_screen,
            SkipIfPressed: self._skip_if_pressed,
            SkipIfNotPressed: self._skip_if_not_pressed,
            GetDelay: self._set_vx_dt,
            WaitKeyPress: self._wait_keypress,
            SetDelay: self._set_dt_vx,
            SetSound: self._set_st,
            AddIndex: self._add_to_idx,
            SetIndexToGlyph: self._select_char,
            StoreBCD: self._bcd_repr,
            StoreRegisters: self._store_vregs,
            LoadRegisters: self._load_vregs,
        }

    def __str__(self):
        timers = f"DELAY_TIMER:{self.timers.delay} | SOUND_TIMER:{self.timers.sound} | SOUND: {'ON' if self.timers.sound_active else 'OFF'}"
        return f"{self.state}\n{timers}\nQUIRKS: {self.quirks}"

    def load(self, rom):
        self.mem.load(rom)

    def load_rom(self, path):
        return self.mem.load_rom(path)

    # ********** CONTROL FLOW
    @asm
    def _sys(self, ins, s):
        """jump to a machine code routine, ignored by modern interpreters"""
        return s.next()

    @asm
    def _clear_screen(self, ins, s):
        self.screen.clear()
        return s.next()

    @asm
    def _return(self, ins, s):
        """return from a subroutine"""
        if s.sp == 0:
            raise StackUnderflowError("Return with an empty call stack")
        return s._replace(pc=s.stack[s.sp], sp=s.sp - 1)

    @asm
    def _jump(self, ins, s):
        return s._replace(pc=ins.nnn)

    @asm
    def _call_addr(self, ins, s):
        if s.sp >= STACK_SIZE - 1:
            raise StackOverflowError(f"The CHIP-8 stack can contain at most {STACK_SIZE - 1} return addresses. Limit exceeded")
        stack = list(s.stack)
        stack[s.sp + 1] = s.pc + 0x2
        return s._replace(pc=ins.nnn, sp=s.sp + 1, stack=tuple(stack))

    @asm
    def _jump_plus(self, ins, s):
        return s._replace(pc=ins.nnn + s.get(0x0))

    @asm
    def _skip_if_eq(self, ins, s):
        return s.skip_if(s.get(ins.x) == ins.kk)

    @asm
    def _skip_if_not_eq(self, ins, s):
        return s.skip_if(s.get(ins.x) != ins.kk)

    @asm
    def _skip_if_eq_regs(self, ins, s):
        return s.skip_if(s.get(ins.x) == s.get(ins.y))

    @asm
    def _skip_if_not_eq_regs(self, ins, s):
        return s.skip_if(s.get(ins.x) != s.get(ins.y))

    # ********** REGISTERS
    @asm
    def _set_vk(self, ins, s):
        """set the value of one of the 16 variable registers, Vx"""
        return s.set((ins.x, ins.kk)).next()

    @asm
    def _add_to_vk(self, ins, s):
        """add to the value already present in Vx, VF is left untouched"""
        return s.set((ins.x, s.get(ins.x) + ins.kk)).next()

    @asm
    def _set_vx_to_vy(self, ins, s):
        return s.set((ins.x, s.get(ins.y))).next()

    def _logic(self, s, x, value):
        if self.quirks.logic_resets_vf:
            return s.set((x, value), (VF, 0)).next()
        return s.set((x, value)).next()

    @asm
    def _set_vx_or_vy(self, ins, s):
        return self._logic(s, ins.x, s.get(ins.x) | s.get(ins.y))

    @asm
    def _set_vx_and_vy(self, ins, s):
        return self._logic(s, ins.x, s.get(ins.x) & s.get(ins.y))

    @asm
    def _set_vx_xor_vy(self, ins, s):
        return self._logic(s, ins.x, s.get(ins.x) ^ s.get(ins.y))

    # flag after value: when x is VF the flag is what remains in VF
    @asm
    def _add_vx_vy(self, ins, s):
        """set Vx = Vx + Vy, VF = carry"""
        total = s.get(ins.x) + s.get(ins.y)
        return s.set((ins.x, total), (VF, 1 if total > 0xFF else 0)).next()

    @asm
    def _sub_vx_vy(self, ins, s):
        """set Vx = Vx - Vy, VF = NOT borrow"""
        vx, vy = s.get(ins.x), s.get(ins.y)
        return s.set((ins.x, vx - vy), (VF, 1 if vx > vy else 0)).next()

    @asm
    def _subn_vx_vy(self, ins, s):
        """set Vx = Vy - Vx, VF = NOT borrow"""
        vx, vy = s.get(ins.x), s.get(ins.y)
        return s.set((ins.x, vy - vx), (VF, 1 if vy > vx else 0)).next()

    @asm
    def _shr(self, ins, s):
        """set Vx = source SHR 1, VF = shifted out bit"""
        value = self._shift_source(ins, s)
        return s.set((ins.x, value >> 1), (VF, value & 0x1)).next()

    @asm
    def _shl(self, ins, s):
        """set Vx = source SHL 1, VF = shifted out bit"""
        value = self._shift_source(ins, s)
        return s.set((ins.x, value << 1), (VF, (value & 0x80) >> 7)).next()

    @asm
    def _random_byte_and(self, ins, s):
        return s.set((ins.x, self.rng.randint(0, 255) & ins.kk)).next()

    # ********** INDEX REGISTER AND MEMORY
    @asm
    def _set_idx(self, ins, s):
        return s._replace(idx=ins.nnn).next()

    @asm
    def _add_to_idx(self, ins, s):
        """set I = I + Vx"""
        return s._replace(idx=(s.idx + s.get(ins.x)) & 0xFFFF).next()

    @asm
    def _select_char(self, ins, s):
        """set I to location of sprite for digit Vx"""
        digit = s.get(ins.x)
        if digit > 0xF:
            raise InvalidGlyphError(f"There is no font glyph for 0x{digit:02x}")
        return s._replace(idx=FONT_START_ADDRESS + digit * GLYPH_SIZE).next()

    @asm
    def _bcd_repr(self, ins, s):
        """store the hundreds digit of Vx at I, the tens digit at I+1, the ones digit at I+2"""
        value = s.get(ins.x)
        self.mem.write(s.idx, [value // 100, value // 10 % 10, value % 10])
        return s.next()

    @asm
    def _store_vregs(self, ins, s):
        """store registers V0 through Vx (included) in memory starting at location I"""
        self.mem.write(s.idx, s.v_regs[:ins.x+1])
        if self.quirks.memory_increments_i:
            s = s._replace(idx=s.idx + ins.x + 1)
        return s.next()

    @asm
    def _load_vregs(self, ins, s):
        """read registers V0 through Vx (included) from memory starting at location I"""
        values = self.mem.read(s.idx, ins.x + 1)
        s = s.set(*enumerate(values))
        if self.quirks.memory_increments_i:
            s = s._replace(idx=s.idx + ins.x + 1)
        return s.next()

    # ********** DISPLAY
    @asm
    def _to_screen(self, ins, s):
        """display n-byte sprite starting at memory location I at (Vx, Vy), set VF = collision"""
        x, y = s.get(ins.x) % self.screen.w, s.get(ins.y) % self.screen.h
        collision = False
        # each sprite byte is a row, rows go down and wrap around the bottom edge
        for row, sprite_byte in enumerate(self.mem.read(s.idx, ins.n)):
            if self.screen.xor_row(x, y + row, sprite_byte):
                collision = True
        return s.set((VF, 1 if collision else 0)).next()

    # ********** TIMERS
    @asm
    def _set_vx_dt(self, ins, s):
        """set Vx = DT (delay timer) value"""
        return s.set((ins.x, self.timers.delay)).next()

    @asm
    def _set_dt_vx(self, ins, s):
        """set DT (delay timer) = Vx"""
        self.timers = self.timers._replace(delay=s.get(ins.x))
        return s.next()

    @asm
    def _set_st(self, ins, s):
        """set ST (sound timer) = Vx"""
        self.timers = self.timers._replace(sound=s.get(ins.x))
        return s.next()

    # ********** INPUT
    @asm
    def _skip_if_pressed(self, ins, s):
        """skip the following instruction if the key corresponding to the hex value stored in Vx is pressed"""
        return s.skip_if(self.keypad[s.get(ins.x) & 0xF])

    @asm
    def _skip_if_not_pressed(self, ins, s):
        """skip the following instruction if the key corresponding to the hex value stored in Vx is NOT pressed"""
        return s.skip_if(not self.keypad[s.get(ins.x) & 0xF])

    @asm
    def _wait_keypress(self, ins, s):
        """wait for a key press and store its value in Vx"""
        if not self.presses:
            return s    # stay on the same instruction, the next cycle looks again
        return s.set((ins.x, self.presses[0])).next()

    # ********** DRIVER
    def execute(self, ins, s):
        """apply a decoded instruction to the state s and return the next state"""
        return self.instructions[type(ins)](ins, s)

    def cycle(self):
        """
        emulate one machine cycle: update timers, fetch opcode, decode opcode, execute opcode
        return True when the timers ticked during this cycle, a halted machine does nothing and returns False
        """
        if self.state.halted:
            return False
        timers = advance(self.timers, self.clock())
        ticked = timers is not self.timers
        self.timers = timers
        self.presses = self.keypad.take()
        s = self.state
        opcode = None
        try:
            opcode = fetch(self.mem, s.pc)
            self.state = self.execute(decode(opcode, s.pc), s)
        except Chip8Error as err:
            if err.pc is None:
                err.pc = s.pc
            if err.opcode is None:
                err.opcode = opcode
            self.state = s._replace(halted=True)
            raise
        return ticked

    def run(self, on_tick=None):
        """cycle until halted, on_tick is called every time the timers tick"""
        while not self.state.halted:
            if self.cycle() and on_tick is not None:
                on_tick()

    def stop(self):
        self.state = self.state._replace(halted=True)
