import pytest

from znes.cartridge import Cartridge, Mirroring
from znes.ppu_memory import LoopyRegister, PPUMemory, flip_byte

CHR_DATA = bytes((i * 5 + 1) & 0xFF for i in range(8 * 1024))


def make_memory(flags6=0, with_chr=True):
    chr_pages = 1 if with_chr else 0
    header = b"NES\x1a" + bytes([1, chr_pages, flags6, 0]) + bytes(8)
    rom = header + bytes(16 * 1024) + (CHR_DATA if with_chr else b"")
    cart = Cartridge.from_bytes(rom)
    return PPUMemory(cart), cart


def test_flip_byte_example():
    assert flip_byte(0b11100000) == 0b00000111


def test_flip_byte_is_involution():
    for value in range(256):
        assert flip_byte(flip_byte(value)) == value


def test_flip_byte_single_bits():
    for bit in range(8):
        assert flip_byte(1 << bit) == 1 << (7 - bit)


def test_loopy_round_trip():
    reg = LoopyRegister()
    for raw in list(range(0, 0x10000, 0x0123)) + [0xFFFF]:
        reg.value = raw
        assert reg.value == raw


def test_loopy_fields_from_full_value():
    reg = LoopyRegister()
    reg.value = 0xFFFF
    assert (reg.x, reg.y, reg.nametable_x, reg.nametable_y, reg.fine_y, reg.unused) == (31, 31, 1, 1, 7, 1)


def test_loopy_value_wraps_to_sixteen_bits():
    reg = LoopyRegister()
    reg.value = 0x10005
    assert reg.value == 0x0005


def test_loopy_fields_compose():
    reg = LoopyRegister(x=3, y=4, nametable_x=1)
    copy = LoopyRegister()
    copy.value = reg.value
    assert copy == reg


def test_pattern_reads_come_from_cartridge():
    memory, _ = make_memory()
    for addr in (0x0000, 0x0123, 0x1FFF):
        assert memory.read(addr) == CHR_DATA[addr]


def test_pattern_write_to_chr_ram():
    memory, cart = make_memory(with_chr=False)
    memory.write(0x0456, 0x5A)
    assert memory.read(0x0456) == 0x5A
    assert cart.chr_rom[0x0456] == 0x5A


def test_vertical_mirroring():
    memory, _ = make_memory(flags6=0x01)
    memory.write(0x2005, 0x11)
    memory.write(0x2405, 0x22)
    assert memory.read(0x2805) == 0x11
    assert memory.read(0x2C05) == 0x22
    assert memory.read(0x2005) == 0x11


def test_horizontal_mirroring():
    memory, _ = make_memory(flags6=0x00)
    memory.write(0x2005, 0x11)
    memory.write(0x2805, 0x22)
    assert memory.read(0x2405) == 0x11
    assert memory.read(0x2C05) == 0x22
    assert memory.read(0x2005) == 0x11


def test_nametable_region_repeats_at_0x3000():
    memory, _ = make_memory()
    memory.write(0x2123, 0x44)
    assert memory.read(0x3123) == 0x44


def test_one_screen_mirroring_is_unmapped():
    memory, cart = make_memory()
    cart.mirror = Mirroring.ONESCREEN_LO
    memory.write(0x2000, 0x33)
    assert memory.read(0x2000) == 0
    assert not any(memory.nametables[0])


@pytest.mark.parametrize("offset", [0x00, 0x04, 0x08, 0x0C])
def test_palette_background_mirrors(offset):
    memory, _ = make_memory()
    memory.write(0x3F10 + offset, 0x21)
    assert memory.read(0x3F00 + offset) == 0x21


def test_palette_grayscale_mask():
    memory, _ = make_memory()
    memory.write(0x3F01, 0x3F)
    assert memory.read(0x3F01) == 0x3F
    assert memory.read(0x3F01, grayscale=True) == 0x30


def test_palette_read_masks_to_six_bits():
    memory, _ = make_memory()
    memory.write(0x3F02, 0xFF)
    assert memory.read(0x3F02) == 0x3F
    assert memory.palette[2] == 0xFF


def test_palette_repeats_every_32_bytes():
    memory, _ = make_memory()
    memory.write(0x3F03, 0x15)
    assert memory.read(0x3F23) == memory.read(0x3F03)
    assert memory.read(0x3FE3) == 0x15


def test_address_masked_to_fourteen_bits():
    memory, _ = make_memory()
    memory.write(0x3F03, 0x16)
    assert memory.read(0x7F03) == 0x16


def test_reset_clears_ram():
    memory, _ = make_memory(flags6=0x01)
    memory.write(0x2001, 0x11)
    memory.write(0x3F01, 0x12)
    memory.reset()
    assert memory.read(0x2001) == 0
    assert memory.read(0x3F01) == 0


def test_missing_cartridge():
    memory = PPUMemory()
    with pytest.raises(RuntimeError):
        memory.read(0x0000)
    assert memory.read(0x3F00) == 0