import unittest
from devices import (
    C8_FONTS, MAX_ROM_SIZE, ROM_START_ADDRESS, TIMER_PERIOD,
    Framebuffer, Keypad, Memory, Timers, advance,
)
from errors import AddressError, RomTooLargeError


class TestMemory(unittest.TestCase):
    def test_fonts(self):
        mem = Memory()
        self.assertEqual(len(mem), 4096)
        self.assertEqual(mem[0:80], C8_FONTS)
        self.assertEqual(mem[5:10], [0x20, 0x60, 0x20, 0x20, 0x70])

    def test_load(self):
        mem = Memory()
        mem.load(b"\x60\x05\x70\x03")
        self.assertEqual(mem[ROM_START_ADDRESS:ROM_START_ADDRESS+4], [0x60, 0x05, 0x70, 0x03])

    def test_load_biggest_rom(self):
        mem = Memory()
        mem.load(b"\xAA" * MAX_ROM_SIZE)
        self.assertEqual(mem[4095], 0xAA)
        self.assertEqual(len(mem), 4096)

    def test_load_too_big(self):
        with self.assertRaises(RomTooLargeError):
            Memory().load(b"\x00" * (MAX_ROM_SIZE + 1))

    def test_out_of_bounds(self):
        mem = Memory()
        mem.write(4093, [1, 2, 3])
        self.assertEqual(mem.read(4093, 3), [1, 2, 3])
        with self.assertRaises(AddressError):
            mem.write(4094, [1, 2, 3])
        with self.assertRaises(AddressError):
            mem.read(4095, 2)


class TestFramebuffer(unittest.TestCase):
    def test_xor(self):
        fb = Framebuffer()
        self.assertFalse(fb.xor_row(0, 0, 0b10100000))
        self.assertEqual([fb.read_pixel(x, 0) for x in range(4)], [1, 0, 1, 0])
        self.assertTrue(fb.dirty)
        self.assertTrue(fb.xor_row(0, 0, 0b11000000))
        self.assertEqual([fb.read_pixel(x, 0) for x in range(4)], [0, 1, 1, 0])

    def test_wrap_around(self):
        fb = Framebuffer()
        fb.xor_row(60, 32 + 31, 0xFF)
        self.assertEqual([fb.read_pixel(x, 31) for x in (59, 60, 63, 0, 3, 4)], [0, 1, 1, 1, 1, 0])

    def test_clear(self):
        fb = Framebuffer()
        fb.xor_row(10, 10, 0xFF)
        fb.dirty = False
        fb.clear()
        self.assertEqual(sum(fb.buffer), 0)
        self.assertTrue(fb.dirty)


class TestKeypad(unittest.TestCase):
    def test_level(self):
        k = Keypad()
        self.assertFalse(k[0x5])
        k.press(0x5)
        self.assertTrue(k[0x5])
        k.release(0x5)
        self.assertFalse(k[0x5])

    def test_presses_are_transitions(self):
        k = Keypad()
        k.press(0x1)
        k.press(0x1)    # key repeat while held
        k.press(0xA)
        self.assertEqual(k.take(), [0x1, 0xA])
        self.assertEqual(k.take(), [])
        self.assertTrue(k[0x1])


class TestTimers(unittest.TestCase):
    def test_too_early(self):
        t = Timers(delay=5, sound=3, last_update=0)
        self.assertIs(advance(t, TIMER_PERIOD // 2), t)
        self.assertIs(advance(t, TIMER_PERIOD - 1), t)

    def test_tick(self):
        t = Timers(delay=5, sound=0, last_update=0)
        self.assertEqual(advance(t, 16_600_000),
                         Timers(delay=4, sound=0, last_update=16_600_000))

    def test_exact_period_from_any_origin(self):
        for origin in range(0, 2_000_000_000, 1_000_000):
            t = Timers(delay=5, sound=5, last_update=origin)
            t = advance(t, origin + TIMER_PERIOD)
            self.assertEqual((t.delay, t.sound), (4, 4))

    def test_one_step_per_tick(self):
        t = Timers(delay=5, sound=1, last_update=0)
        self.assertTrue(t.sound_active)
        t = advance(t, 10_000_000_000)
        self.assertEqual((t.delay, t.sound), (4, 0))
        self.assertFalse(t.sound_active)

    def test_floor(self):
        t = Timers(delay=0, sound=0, last_update=0)
        t = advance(t, 1_000_000_000)
        self.assertEqual((t.delay, t.sound, t.last_update), (0, 0, 1_000_000_000))


if __name__ == "__main__":
    unittest.main()
