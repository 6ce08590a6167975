import pytest

from znes.cartridge import Cartridge, CartridgeError, INesHeader, Mirroring
from znes.mappers import Mapper000, Mapper002

PRG_PAGE = 16 * 1024
CHR_PAGE = 8 * 1024


def header_bytes(prg_pages=1, chr_pages=1, flags6=0, flags7=0, magic=b"NES\x1a"):
    return magic + bytes([prg_pages, chr_pages, flags6, flags7, 0, 0, 0]) + bytes(5)


def pattern(size, seed=0):
    return bytes((i * 7 + seed) & 0xFF for i in range(size))


def build_rom(prg_pages=1, chr_pages=1, flags6=0, flags7=0, trainer=b"", extra=b""):
    prg = pattern(prg_pages * PRG_PAGE, seed=1)
    chr_data = pattern(chr_pages * CHR_PAGE, seed=3)
    rom = header_bytes(prg_pages, chr_pages, flags6, flags7) + trainer + prg + chr_data + extra
    return rom, prg, chr_data


def test_header_parse_fields():
    header = INesHeader.parse(header_bytes(prg_pages=2, chr_pages=1, flags6=0x21, flags7=0x00))
    assert header.magic == b"NES\x1a"
    assert header.prg_rom_pages == 2
    assert header.chr_rom_pages == 1
    assert header.mapper1 == 0x21
    assert header.mirroring is Mirroring.VERTICAL
    assert header.ines_version == 1


def test_header_mapper_id_combines_nibbles():
    assert INesHeader.parse(header_bytes(flags6=0x30, flags7=0x40)).mapper_id == 0x43


def test_header_too_short():
    with pytest.raises(CartridgeError):
        INesHeader.parse(b"NES\x1a\x01")


def test_bad_magic():
    rom = header_bytes(magic=b"NEZ\x1a") + bytes(PRG_PAGE + CHR_PAGE)
    with pytest.raises(CartridgeError):
        Cartridge.from_bytes(rom)


def test_loads_prg_and_chr():
    rom, prg, chr_data = build_rom()
    cart = Cartridge.from_bytes(rom)
    assert cart.info.prg_rom_size == len(prg)
    assert cart.info.chr_rom_size == len(chr_data)
    assert bytes(cart.prg_rom) == prg
    assert bytes(cart.chr_rom) == chr_data
    assert isinstance(cart.mapper, Mapper000)


def test_cpu_read_mirrors_single_page():
    rom, prg, _ = build_rom()
    cart = Cartridge.from_bytes(rom)
    for offset in (0, 0x10, 0x3FFF):
        assert cart.cpu_read(0x8000 + offset) == prg[offset]
        assert cart.cpu_read(0xC000 + offset) == prg[offset]


def test_ppu_read_returns_chr():
    rom, _, chr_data = build_rom()
    cart = Cartridge.from_bytes(rom)
    for addr in (0x0000, 0x0FFF, 0x1FFF):
        assert cart.ppu_read(addr) == chr_data[addr]


def test_nrom_cpu_write_stores_into_prg():
    rom, _, _ = build_rom()
    cart = Cartridge.from_bytes(rom)
    cart.cpu_write(0x8001, 0x77)
    assert cart.cpu_read(0x8001) == 0x77


@pytest.mark.parametrize("flags6, expected", [(0x00, Mirroring.HORIZONTAL), (0x01, Mirroring.VERTICAL)])
def test_mirroring(flags6, expected):
    rom, _, _ = build_rom(flags6=flags6)
    assert Cartridge.from_bytes(rom).mirror is expected


def test_trainer_is_skipped():
    rom, prg, _ = build_rom(flags6=0x04, trainer=bytes([0xAA]) * 512)
    cart = Cartridge.from_bytes(rom)
    assert cart.cpu_read(0x8000) == prg[0]
    assert bytes(cart.prg_rom) == prg


def test_ines2_rejected():
    rom, _, _ = build_rom(flags7=0x08)
    with pytest.raises(CartridgeError):
        Cartridge.from_bytes(rom)


def test_truncated_prg():
    rom = header_bytes(prg_pages=2) + bytes(PRG_PAGE)
    with pytest.raises(CartridgeError):
        Cartridge.from_bytes(rom)


def test_truncated_chr():
    rom = header_bytes(prg_pages=1, chr_pages=1) + bytes(PRG_PAGE) + bytes(100)
    with pytest.raises(CartridgeError):
        Cartridge.from_bytes(rom)


def test_unsupported_mapper():
    rom, _, _ = build_rom(flags6=0x10)
    with pytest.raises(CartridgeError):
        Cartridge.from_bytes(rom)


def test_trailing_data_warns():
    rom, prg, _ = build_rom(extra=b"\x00\x01")
    with pytest.warns(RuntimeWarning):
        cart = Cartridge.from_bytes(rom)
    assert bytes(cart.prg_rom) == prg


def test_uxrom_bank_switching():
    rom, prg, _ = build_rom(prg_pages=4, flags6=0x20)
    cart = Cartridge.from_bytes(rom)
    assert cart.info.mapper == 2
    assert isinstance(cart.mapper, Mapper002)
    cart.cpu_write(0x8000, 1)
    assert cart.cpu_read(0x8000) == prg[PRG_PAGE]
    assert cart.cpu_read(0xC000) == prg[3 * PRG_PAGE]
    assert bytes(cart.prg_rom) == prg


def test_chr_ram_when_no_chr_pages():
    rom, _, _ = build_rom(chr_pages=0)
    cart = Cartridge.from_bytes(rom)
    assert len(cart.chr_rom) == 8 * 1024
    cart.ppu_write(0x0456, 0x5A)
    assert cart.ppu_read(0x0456) == 0x5A


def test_from_file(tmp_path):
    rom, prg, chr_data = build_rom()
    path = tmp_path / "game.nes"
    path.write_bytes(rom)
    cart = Cartridge.from_file(path)
    assert bytes(cart.prg_rom) == prg
    assert bytes(cart.chr_rom) == chr_data


def test_from_missing_file(tmp_path):
    with pytest.raises(CartridgeError):
        Cartridge.from_file(tmp_path / "missing.nes")