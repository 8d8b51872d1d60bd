import unittest
from errors import AddressError, InvalidOpcodeError
from opcodes import (
    AddImmediate, AddRegister, Call, ClearScreen, Draw, Jump, LoadRegisters, Return,
    SetIndex, ShiftLeft, SkipIfEqual, SkipIfPressed, SkipIfRegistersEqual, StoreBCD,
    StoreRegisters, SysCall, WaitKeyPress, decode, disassemble, fetch,
)


class TestDecoding(unittest.TestCase):
    def test_no_operands(self):
        self.assertEqual(decode(0x00E0),
                         ClearScreen())
        self.assertEqual(decode(0x00EE),
                         Return())

    def test_address(self):
        self.assertEqual(decode(0x0123),
                         SysCall(0x123))
        self.assertEqual(decode(0x1ABC),
                         Jump(0xABC))
        self.assertEqual(decode(0x2300),
                         Call(0x300))
        self.assertEqual(decode(0xA2F0),
                         SetIndex(0x2F0))

    def test_register_and_constant(self):
        self.assertEqual(decode(0x3A42),
                         SkipIfEqual(x=0xA, kk=0x42))
        self.assertEqual(decode(0x7003),
                         AddImmediate(x=0x0, kk=0x03))

    def test_two_registers(self):
        self.assertEqual(decode(0x5AB0),
                         SkipIfRegistersEqual(x=0xA, y=0xB))
        self.assertEqual(decode(0x8AB4),
                         AddRegister(x=0xA, y=0xB))
        self.assertEqual(decode(0x8ABE),
                         ShiftLeft(x=0xA, y=0xB))

    def test_draw(self):
        self.assertEqual(decode(0xD125),
                         Draw(x=1, y=2, n=5))

    def test_single_register(self):
        self.assertEqual(decode(0xE39E),
                         SkipIfPressed(3))
        self.assertEqual(decode(0xF50A),
                         WaitKeyPress(5))
        self.assertEqual(decode(0xF233),
                         StoreBCD(2))
        self.assertEqual(decode(0xFA55),
                         StoreRegisters(0xA))
        self.assertEqual(decode(0xF365),
                         LoadRegisters(3))

    def test_deterministic(self):
        for opcode in (0x00E0, 0x2300, 0x8AB4, 0xD125, 0xF365):
            self.assertEqual(decode(opcode), decode(opcode))

    def test_kinds_are_distinct(self):
        self.assertNotEqual(ClearScreen(), Return())
        self.assertNotEqual(Jump(0x300), Call(0x300))

    def test_invalid(self):
        for opcode in (0x5AB1, 0x8AB8, 0x8ABF, 0x9AB1, 0xE3A2, 0xE39F, 0xF000, 0xF3FF, 0xFFFF):
            with self.assertRaises(InvalidOpcodeError) as ctx:
                decode(opcode, 0x204)
            self.assertEqual(ctx.exception.opcode, opcode)
            self.assertEqual(ctx.exception.pc, 0x204)

    def test_whole_opcode_space(self):
        valid = 0
        for opcode in range(0x10000):
            try:
                decode(opcode)
                valid += 1
            except InvalidOpcodeError:
                pass
        # 11 single-nibble families, 5xy0/9xy0, 9 ALU ops, 2 key ops, 9 Fx ops
        self.assertEqual(valid, 11 * 4096 + 2 * 256 + 9 * 256 + 2 * 16 + 9 * 16)


class TestMnemonics(unittest.TestCase):
    def test_str(self):
        self.assertEqual(str(ClearScreen()), "CLS")
        self.assertEqual(str(Jump(0x300)), "JP 0x300")
        self.assertEqual(str(AddImmediate(0, 3)), "ADD V0, 0x03")
        self.assertEqual(str(Draw(1, 2, 5)), "DRW V1, V2, 5")
        self.assertEqual(str(StoreRegisters(0xA)), "LD [I], VA")
        self.assertEqual(str(decode(0xB210)), "JP V0, 0x210")
        self.assertEqual(str(decode(0x8126)), "SHR V1, V2")


class TestFetch(unittest.TestCase):
    def test_big_endian(self):
        mem = [0] * 4096
        mem[0x200], mem[0x201] = 0x60, 0x05
        self.assertEqual(fetch(mem, 0x200), 0x6005)

    def test_out_of_bounds(self):
        mem = [0] * 4096
        self.assertEqual(fetch(mem, 4094), 0)
        with self.assertRaises(AddressError):
            fetch(mem, 4095)

    def test_disassemble(self):
        mem = [0] * 4096
        mem[0x200:0x206] = [0x60, 0x05, 0x70, 0x03, 0xFF, 0xFF]
        self.assertEqual(list(disassemble(mem, 0x200, 0x206)),
                         [(0x200, "LD V0, 0x05"), (0x202, "ADD V0, 0x03"), (0x204, "DW 0xffff")])


if __name__ == "__main__":
    unittest.main()
