# ******************** FAULTS SECTION
# every fault is fatal: the machine halts and nothing is retried


class Chip8Error(Exception):
    """base class for every fault raised by the interpreter"""
    def __init__(self, msg, pc=None, opcode=None):
        super().__init__(msg)
        self.msg = msg
        self.pc = pc
        self.opcode = opcode

    def __str__(self):
        where = ""
        if self.pc is not None:
            where += f" at 0x{self.pc:03x}"
        if self.opcode is not None:
            where += f" (opcode: 0x{self.opcode:04x})"
        return f"{self.msg}{where}"


class InvalidOpcodeError(Chip8Error):
    pass


class StackOverflowError(Chip8Error):
    pass


class StackUnderflowError(Chip8Error):
    pass


class InvalidGlyphError(Chip8Error):
    pass


class AddressError(Chip8Error):
    """access outside of the 4KB address space"""
    pass


class RomTooLargeError(Chip8Error):
    pass
