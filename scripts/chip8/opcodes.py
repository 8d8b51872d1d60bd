# OPCODE TABLE
# http://devernay.free.fr/hacks/chip8/C8TECH10.HTM#3.1
#
# every instruction word is made of 4 nibbles (a, b, c, d), the operands are:
#   x   = b             register index
#   y   = c             register index
#   kk  = (c<<4)|d      8 bit constant
#   nnn = (b<<8)|(c<<4)|d  12 bit address
#   n   = d             4 bit constant (sprite height)

from collections import namedtuple

from errors import AddressError, InvalidOpcodeError


MEMORY_SIZE = 4096
LAST_FETCH_ADDRESS = MEMORY_SIZE - 2

OPERANDS = {
    'x': lambda opcode: (opcode & 0x0F00) >> 8,
    'y': lambda opcode: (opcode & 0x00F0) >> 4,
    'kk': lambda opcode: opcode & 0x00FF,
    'nnn': lambda opcode: opcode & 0x0FFF,
    'n': lambda opcode: opcode & 0x000F,
}


# ******************** INSTRUCTIONS SECTION
class Instruction(tuple):
    """
    base class of the decoded instructions
    each concrete instruction is also a namedtuple holding only the operands its opcode encodes,
    two instructions are equal only when they are of the same kind and have the same operands
    """
    __slots__ = ()
    asm = ""

    def __str__(self):
        return self.asm.format(**self._asdict())

    def __eq__(self, other):
        return type(self) is type(other) and tuple.__eq__(self, other)

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash((type(self).__name__, tuple(self)))


def _instruction(name, fields, asm):
    return type(name, (Instruction, namedtuple(name, fields)), {'__slots__': (), 'asm': asm})


SysCall = _instruction('SysCall', 'nnn', 'SYS 0x{nnn:03x}')
ClearScreen = _instruction('ClearScreen', '', 'CLS')
Return = _instruction('Return', '', 'RET')
Jump = _instruction('Jump', 'nnn', 'JP 0x{nnn:03x}')
Call = _instruction('Call', 'nnn', 'CALL 0x{nnn:03x}')
SkipIfEqual = _instruction('SkipIfEqual', 'x kk', 'SE V{x:X}, 0x{kk:02x}')
SkipIfNotEqual = _instruction('SkipIfNotEqual', 'x kk', 'SNE V{x:X}, 0x{kk:02x}')
SkipIfRegistersEqual = _instruction('SkipIfRegistersEqual', 'x y', 'SE V{x:X}, V{y:X}')
SetImmediate = _instruction('SetImmediate', 'x kk', 'LD V{x:X}, 0x{kk:02x}')
AddImmediate = _instruction('AddImmediate', 'x kk', 'ADD V{x:X}, 0x{kk:02x}')
SetRegister = _instruction('SetRegister', 'x y', 'LD V{x:X}, V{y:X}')
OrRegister = _instruction('OrRegister', 'x y', 'OR V{x:X}, V{y:X}')
AndRegister = _instruction('AndRegister', 'x y', 'AND V{x:X}, V{y:X}')
XorRegister = _instruction('XorRegister', 'x y', 'XOR V{x:X}, V{y:X}')
AddRegister = _instruction('AddRegister', 'x y', 'ADD V{x:X}, V{y:X}')
SubRegister = _instruction('SubRegister', 'x y', 'SUB V{x:X}, V{y:X}')
ShiftRight = _instruction('ShiftRight', 'x y', 'SHR V{x:X}, V{y:X}')
ReverseSubRegister = _instruction('ReverseSubRegister', 'x y', 'SUBN V{x:X}, V{y:X}')
ShiftLeft = _instruction('ShiftLeft', 'x y', 'SHL V{x:X}, V{y:X}')
SkipIfRegistersNotEqual = _instruction('SkipIfRegistersNotEqual', 'x y', 'SNE V{x:X}, V{y:X}')
SetIndex = _instruction('SetIndex', 'nnn', 'LD I, 0x{nnn:03x}')
JumpOffset = _instruction('JumpOffset', 'nnn', 'JP V0, 0x{nnn:03x}')
StoreRandom = _instruction('StoreRandom', 'x kk', 'RND V{x:X}, 0x{kk:02x}')
Draw = _instruction('Draw', 'x y n', 'DRW V{x:X}, V{y:X}, {n}')
SkipIfPressed = _instruction('SkipIfPressed', 'x', 'SKP V{x:X}')
SkipIfNotPressed = _instruction('SkipIfNotPressed', 'x', 'SKNP V{x:X}')
GetDelay = _instruction('GetDelay', 'x', 'LD V{x:X}, DT')
WaitKeyPress = _instruction('WaitKeyPress', 'x', 'LD V{x:X}, K')
SetDelay = _instruction('SetDelay', 'x', 'LD DT, V{x:X}')
SetSound = _instruction('SetSound', 'x', 'LD ST, V{x:X}')
AddIndex = _instruction('AddIndex', 'x', 'ADD I, V{x:X}')
SetIndexToGlyph = _instruction('SetIndexToGlyph', 'x', 'LD F, V{x:X}')
StoreBCD = _instruction('StoreBCD', 'x', 'LD B, V{x:X}')
StoreRegisters = _instruction('StoreRegisters', 'x', 'LD [I], V{x:X}')
LoadRegisters = _instruction('LoadRegisters', 'x', 'LD V{x:X}, [I]')


# ******************** DECODING SECTION
# WATCH OUT: masks order is important!!!
# 00E0/00EE must be tried before the catch-all 0nnn
MASKS = {
    0xFFFF: {
        0x00E0: ClearScreen,
        0x00EE: Return,
    },
    0xF0FF: {
        0xE09E: SkipIfPressed,
        0xE0A1: SkipIfNotPressed,
        0xF007: GetDelay,
        0xF00A: WaitKeyPress,
        0xF015: SetDelay,
        0xF018: SetSound,
        0xF01E: AddIndex,
        0xF029: SetIndexToGlyph,
        0xF033: StoreBCD,
        0xF055: StoreRegisters,
        0xF065: LoadRegisters,
    },
    0xF00F: {
        0x5000: SkipIfRegistersEqual,
        0x8000: SetRegister,
        0x8001: OrRegister,
        0x8002: AndRegister,
        0x8003: XorRegister,
        0x8004: AddRegister,
        0x8005: SubRegister,
        0x8006: ShiftRight,
        0x8007: ReverseSubRegister,
        0x800E: ShiftLeft,
        0x9000: SkipIfRegistersNotEqual,
    },
    0xF000: {
        0x0000: SysCall,
        0x1000: Jump,
        0x2000: Call,
        0x3000: SkipIfEqual,
        0x4000: SkipIfNotEqual,
        0x6000: SetImmediate,
        0x7000: AddImmediate,
        0xA000: SetIndex,
        0xB000: JumpOffset,
        0xC000: StoreRandom,
        0xD000: Draw,
    },
}


def fetch(memory, pc):
    """read the big-endian instruction word at pc"""
    if not 0 <= pc <= LAST_FETCH_ADDRESS:
        raise AddressError("Program counter outside of the address space", pc=pc)
    return memory[pc] << 8 | memory[pc + 1]


def decode(opcode, pc=None):
    """decode opcodes using masks and return the respective instruction"""
    for mask, ops in MASKS.items():
        kind = ops.get(opcode & mask)
        if kind is not None:
            return kind(*[OPERANDS[field](opcode) for field in kind._fields])
    raise InvalidOpcodeError("Unknown opcode", pc=pc, opcode=opcode)


def disassemble(memory, start=0x200, end=None):
    """yield (address, mnemonic) for every instruction word in [start, end)"""
    end = len(memory) if end is None else end
    for addr in range(start, min(end, LAST_FETCH_ADDRESS + 1), 2):
        opcode = fetch(memory, addr)
        try:
            text = str(decode(opcode, addr))
        except InvalidOpcodeError:
            text = f"DW 0x{opcode:04x}"     # data mixed with code
        yield addr, text
