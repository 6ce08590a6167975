"""PPU address space: pattern tables, nametables and palette RAM."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from znes.cartridge import Cartridge, Mirroring

NAMETABLE_SIZE = 1024
PALETTE_SIZE = 32


def flip_byte(value: int) -> int:
    """Reverse the bit order of a byte."""
    return int(f"{value & 0xFF:08b}"[::-1], 2)


@dataclass
class LoopyRegister:
    """The PPU's internal 15-bit VRAM address, split into its scroll fields."""

    x: int = 0
    y: int = 0
    nametable_x: int = 0
    nametable_y: int = 0
    fine_y: int = 0
    unused: int = 0

    @property
    def value(self) -> int:
        return (
            (self.x & 0x1F)
            | (self.y & 0x1F) << 5
            | (self.nametable_x & 0x01) << 10
            | (self.nametable_y & 0x01) << 11
            | (self.fine_y & 0x07) << 12
            | (self.unused & 0x01) << 15
        )

    @value.setter
    def value(self, raw: int) -> None:
        raw &= 0xFFFF
        self.x = raw & 0x1F
        self.y = (raw >> 5) & 0x1F
        self.nametable_x = (raw >> 10) & 0x01
        self.nametable_y = (raw >> 11) & 0x01
        self.fine_y = (raw >> 12) & 0x07
        self.unused = (raw >> 15) & 0x01


class PPUMemory:
    """Memory seen from the PPU bus, with nametable and palette mirroring."""

    def __init__(self, cartridge: Optional[Cartridge] = None) -> None:
        self.cartridge = cartridge
        self.nametables = [bytearray(NAMETABLE_SIZE), bytearray(NAMETABLE_SIZE)]
        self.palette = bytearray(PALETTE_SIZE)

    def reset(self) -> None:
        """Clear nametables and palette RAM."""
        for table in self.nametables:
            table[:] = bytes(NAMETABLE_SIZE)
        self.palette[:] = bytes(PALETTE_SIZE)

    def _require_cartridge(self) -> Cartridge:
        if self.cartridge is None:
            raise RuntimeError("no cartridge inserted")
        return self.cartridge

    def _nametable_index(self, addr: int) -> Optional[int]:
        mirror = self._require_cartridge().mirror
        if mirror is Mirroring.VERTICAL:
            return (addr >> 10) & 0x01
        if mirror is Mirroring.HORIZONTAL:
            return (addr >> 11) & 0x01
        return None

    @staticmethod
    def _palette_index(addr: int) -> int:
        addr &= 0x1F
        if addr & 0x13 == 0x10:
            addr &= 0x0F
        return addr

    def read(self, addr: int, grayscale: bool = False) -> int:
        addr &= 0x3FFF
        if addr <= 0x1FFF:
            return self._require_cartridge().ppu_read(addr)
        if addr <= 0x3EFF:
            addr &= 0x0FFF
            table = self._nametable_index(addr)
            if table is None:
                return 0
            return self.nametables[table][addr & 0x03FF]
        return self.palette[self._palette_index(addr)] & (0x30 if grayscale else 0x3F)

    def write(self, addr: int, data: int) -> None:
        addr &= 0x3FFF
        data &= 0xFF
        if addr <= 0x1FFF:
            self._require_cartridge().ppu_write(addr, data)
        elif addr <= 0x3EFF:
            addr &= 0x0FFF
            table = self._nametable_index(addr)
            if table is not None:
                self.nametables[table][addr & 0x03FF] = data
        else:
            self.palette[self._palette_index(addr)] = data