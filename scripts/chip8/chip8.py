# CHIP-8 INFO
# https://chip-8.github.io/extensions/#chip-8
# https://chip-8.github.io/links/
#
# COMPATIBILITY QUIRKS TABLE
# https://games.gulrak.net/cadmium/chip8-opcode-table.html#quirk6
#
# MASTERING CHIP-8
# https://github.com/mattmikolay/chip-8/wiki/Mastering-CHIP%E2%80%908
#
# TEST SUITE
# https://github.com/Timendus/chip8-test-suite


import argparse
import sys

import os
os.environ["PYGAME_HIDE_SUPPORT_PROMPT"] = "no welcome message"   # this env var disable pygame's welcome message when imported
import pygame
from pygame.locals import (
    K_0, K_1, K_2, K_3,
    K_4, K_5, K_6, K_7,
    K_8, K_9, K_a, K_b,
    K_c, K_d, K_e, K_f,
)

from cpu import Chip8, Quirks
from devices import Framebuffer, Keypad, Memory
from errors import Chip8Error
from opcodes import disassemble


# ******************** STATIC SECTION
KEY_MAPPINGS = {
    K_0: 0x0,
    K_1: 0x1,
    K_2: 0x2,
    K_3: 0x3,
    K_4: 0x4,
    K_5: 0x5,
    K_6: 0x6,
    K_7: 0x7,
    K_8: 0x8,
    K_9: 0x9,
    K_a: 0xA,
    K_b: 0xB,
    K_c: 0xC,
    K_d: 0xD,
    K_e: 0xE,
    K_f: 0xF,
}

SCALE = 15
BLUE = pygame.Color(80,69,155,255)
LIGHT_BLUE = pygame.Color(136,126,203,255)


# ******************** ARGUMENTS SECTION
def get_args(argv=None):
    parser = argparse.ArgumentParser(description="CHIP-8 interpreter")
    parser.add_argument("-f", "--file", required=True, help="input rom file")
    parser.add_argument("--scale", type=int, default=SCALE, help="size in window pixels of a CHIP-8 pixel")
    parser.add_argument("--legacy-shift", action="store_true", help="SHR/SHL shift Vy into Vx (COSMAC VIP behavior)")
    parser.add_argument("--logic-resets-vf", action="store_true", help="OR/AND/XOR set VF to 0")
    parser.add_argument("--memory-increments-i", action="store_true", help="LD [I], Vx and LD Vx, [I] increment I")
    parser.add_argument("--disasm", action="store_true", help="print the disassembly of the rom and exit")
    return parser.parse_args(argv)

def get_quirks(args):
    return Quirks(
        legacy_shift=args.legacy_shift,
        logic_resets_vf=args.logic_resets_vf,
        memory_increments_i=args.memory_increments_i,
    )


# ******************** I/O SECTION
class Screen:
    """draws a Framebuffer on a pygame window"""
    def __init__(self, framebuffer, s=SCALE, bg_color=BLUE, fg_color=LIGHT_BLUE):
        self.framebuffer = framebuffer
        self.scale = s
        self.background = bg_color
        self.foreground = fg_color
        self.surface = pygame.display.set_mode(
            (framebuffer.w * self.scale, framebuffer.h * self.scale),
        )
        self.surface.fill(self.background)

    def refresh(self):
        """redraw every pixel, only when the framebuffer changed since the last refresh"""
        if not self.framebuffer.dirty:
            return
        self.surface.fill(self.background)
        fb = self.framebuffer
        for y in range(fb.h):
            for x in range(fb.w):
                if fb.read_pixel(x, y):
                    pygame.draw.rect(
                        self.surface,
                        self.foreground,
                        (x * self.scale, y * self.scale, self.scale, self.scale)
                    )
        fb.dirty = False
        pygame.display.flip()


def handle_events(chip):
    """process user input, loop through the event queue"""
    for event in pygame.event.get():
        if event.type == pygame.KEYDOWN:
            if event.key == pygame.K_ESCAPE:
                chip.stop()
            elif event.key in KEY_MAPPINGS:
                chip.keypad.press(KEY_MAPPINGS[event.key])
        elif event.type == pygame.KEYUP:
            if event.key in KEY_MAPPINGS:
                chip.keypad.release(KEY_MAPPINGS[event.key])
        elif event.type == pygame.QUIT:
            chip.stop()


def print_disassembly(path):
    mem = Memory()
    size = mem.load_rom(path)
    for addr, text in disassemble(mem, 0x200, 0x200 + size):
        print(f"0x{addr:04x}    {text}")


# ******************** ENTRY POINT SECTION
def main(argv=None):
    args = get_args(argv)
    if args.disasm:
        try:
            print_disassembly(args.file)
        except Chip8Error as err:
            sys.exit(f"********** THE ROM COULD NOT BE LOADED: {err}")
        return
    # pygame initialization
    pygame.init()
    pygame.display.set_caption(args.file.split('/')[-1])
    # IO
    fb = Framebuffer()
    screen = Screen(fb, s=args.scale)
    k = Keypad()
    # CPU
    chip = Chip8(fb, k, quirks=get_quirks(args))
    try:
        chip.load_rom(args.file)
        # the window is refreshed and the input polled at the timers cadence (60Hz),
        # instructions run as fast as they can in between
        def on_tick():
            handle_events(chip)
            screen.refresh()
        chip.run(on_tick)
    except Chip8Error as err:
        sys.exit(f"********** THE EMULATOR CRASHED WITH THE FOLLOWING STATE\n{err}\n{chip}")
    finally:
        pygame.quit()


if __name__ == "__main__":
    main()
