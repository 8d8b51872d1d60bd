import os
from collections import namedtuple

from errors import AddressError, RomTooLargeError
from opcodes import MEMORY_SIZE


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

FONT_START_ADDRESS = 0x000
GLYPH_SIZE = 5
ROM_START_ADDRESS = 0x200
MAX_ROM_SIZE = MEMORY_SIZE - ROM_START_ADDRESS
DEBUG = True if int(os.getenv('DEBUG', 0)) >= 1 else False
SCREEN_HEIGHT = 32
SCREEN_WIDTH = 64
KEYS = 16
TIMER_PERIOD = 16_600_000     # nanoseconds, ~60Hz


# ******************** MEMORY SECTION
# ********** WRAPS A LIST TO REPRESENT THE MAIN MEMORY WITH A LIMITED SIZE OF 4KB
class Memory:
    def __init__(self):
        self.inner = [0] * MEMORY_SIZE
        self.inner[FONT_START_ADDRESS:FONT_START_ADDRESS+len(C8_FONTS)] = C8_FONTS

    def __len__(self):
        return len(self.inner)

    def __setitem__(self, key, value):
        self.inner[key] = value

    def __getitem__(self, index):
        return self.inner[index]

    def check_range(self, address, length):
        """raise if [address, address+length) does not fit in the address space"""
        if address < 0 or address + length > MEMORY_SIZE:
            raise AddressError(f"Access of {length} bytes at 0x{address:04x} is outside of the address space")

    def read(self, address, length):
        self.check_range(address, length)
        return self.inner[address:address+length]

    def write(self, address, values):
        values = list(values)
        self.check_range(address, len(values))
        self.inner[address:address+len(values)] = values

    def load(self, rom):
        """copy the program bytes at 0x200, raise an exception if they don't fit"""
        if len(rom) > MAX_ROM_SIZE:
            raise RomTooLargeError(f"The ROM is {len(rom)} bytes long but at most {MAX_ROM_SIZE} bytes fit in memory")
        self.inner[ROM_START_ADDRESS:ROM_START_ADDRESS+len(rom)] = list(rom)

    def load_rom(self, path):
        """load ROM file from user specified path"""
        with open(path, mode='rb') as f:
            rom = f.read()
        self.load(rom)
        if DEBUG: print(f"The ROM at path {path} has been loaded successfully ({len(rom)} bytes)")
        return len(rom)


# ******************** FRAMEBUFFER SECTION
class Framebuffer:
    """64x32 monochrome pixels, sprites are XORed onto it"""
    def __init__(self, w=SCREEN_WIDTH, h=SCREEN_HEIGHT):
        self.w, self.h = w, h
        self.buffer = [0] * h * w
        self.dirty = False      # set whenever a pixel changes, cleared by whoever renders it

    def read_pixel(self, x, y):
        """return 1 if pixel is ON, return 0 if pixel is OFF"""
        return self.buffer[y * self.w + x]

    def write_pixel(self, x, y, color):
        self.buffer[y * self.w + x] = color
        self.dirty = True

    def xor_row(self, x, y, sprite_byte):
        """
        XOR an 8 pixel sprite row at (x, y) wrapping around the edges
        return True if any pixel was turned OFF (collision)
        """
        collision = False
        y = y % self.h
        for j in range(8):
            bit = (sprite_byte >> (7 - j)) & 0x1
            if not bit:
                continue
            x_coordinate = (x + j) % self.w
            pixel_state = self.read_pixel(x_coordinate, y)
            if pixel_state == 1:
                collision = True
            self.write_pixel(x_coordinate, y, pixel_state ^ bit)
        return collision

    def clear(self):
        self.buffer = [0] * self.h * self.w
        self.dirty = True


# ******************** INPUT SECTION
class Keypad:
    """
    16 keys keypad shared between the host (writer) and the interpreter (reader)
    keeps both the level of every key and the queue of presses not yet taken by the interpreter
    """
    def __init__(self):
        self.down = [False] * KEYS
        self.pressed_keys = []

    def __getitem__(self, key):
        """is key currently down"""
        return self.down[key]

    def __setitem__(self, key, value):
        if value and not self.down[key]:
            self.pressed_keys.append(key)
        self.down[key] = bool(value)

    def press(self, key):
        self[key] = True

    def release(self, key):
        self[key] = False

    def take(self):
        """hand over the presses queued so far, oldest first, and start a new queue"""
        pressed, self.pressed_keys = self.pressed_keys, []
        return pressed


# ******************** TIMERS SECTION
class Timers(namedtuple('Timers', 'delay sound last_update')):
    """delay and sound 8 bit counters, both count down to 0 at ~60Hz"""
    __slots__ = ()

    @property
    def sound_active(self):
        return self.sound > 0


def advance(timers, now):
    """
    decrement both timers by one if at least TIMER_PERIOD nanoseconds passed since the last decrement
    now and last_update are integer readings of a monotonic nanoseconds clock
    """
    if now - timers.last_update < TIMER_PERIOD:
        return timers
    return Timers(
        delay=max(timers.delay - 1, 0),
        sound=max(timers.sound - 1, 0),
        last_update=now,
    )
