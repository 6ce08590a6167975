"""Cartridge mappers that translate CPU and PPU addresses into ROM offsets."""

from __future__ import annotations

from typing import Optional

PRG_BANK_SIZE = 0x4000


class Mapper:
    """Fixed mapping: PRG ROM sits at 0x8000-0xFFFF and CHR is addressed directly.

    A 16 KiB PRG ROM is mirrored into both halves of the CPU window.

    ``map_*_read`` returns an offset into the ROM, or ``None`` when nothing
    answers at that address. ``map_*_write`` returns the offset to store
    into, or ``None`` when the mapper consumed the write itself.
    """

    def __init__(self, prg_rom_pages: int) -> None:
        self.prg_rom_pages = prg_rom_pages

    def _prg_mask(self) -> int:
        return 0x7FFF if self.prg_rom_pages > 1 else 0x3FFF

    def map_cpu_read(self, addr: int) -> Optional[int]:
        return addr & self._prg_mask()

    def map_cpu_write(self, addr: int, data: int) -> Optional[int]:
        return addr & self._prg_mask()

    def map_ppu_read(self, addr: int) -> Optional[int]:
        return addr

    def map_ppu_write(self, addr: int, data: int) -> Optional[int]:
        return addr


class Mapper000(Mapper):
    """NROM: no bank switching."""

    mapper_id = 0


class Mapper002(Mapper):
    """UxROM: switchable 16 KiB bank at 0x8000, last bank fixed at 0xC000."""

    mapper_id = 2
    bank_select = 0

    def map_cpu_read(self, addr: int) -> Optional[int]:
        if 0x8000 <= addr <= 0xBFFF:
            return self.bank_select * PRG_BANK_SIZE + (addr & 0x3FFF)
        if 0xC000 <= addr <= 0xFFFF:
            return (self.prg_rom_pages - 1) * PRG_BANK_SIZE + (addr & 0x3FFF)
        return None

    def map_cpu_write(self, addr: int, data: int) -> Optional[int]:
        self.bank_select = data & 0x0F
        return None


_MAPPERS: dict[int, type[Mapper]] = {
    Mapper000.mapper_id: Mapper000,
    Mapper002.mapper_id: Mapper002,
}


def create_mapper(mapper_id: int, prg_rom_pages: int) -> Mapper:
    """Build the mapper for an iNES mapper number.

    Raises ValueError for mapper numbers that are not supported.
    """
    try:
        mapper_cls = _MAPPERS[mapper_id]
    except KeyError:
        raise ValueError(f"mapper {mapper_id} is not supported") from None
    return mapper_cls(prg_rom_pages)