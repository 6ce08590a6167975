"""iNES cartridge loading and memory access."""

from __future__ import annotations

import enum
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from znes.mappers import Mapper, create_mapper

HEADER_SIZE = 16
TRAINER_SIZE = 512
PRG_PAGE_SIZE = 16 * 1024
CHR_PAGE_SIZE = 8 * 1024
NES_MAGIC = b"NES\x1a"


class Mirroring(enum.Enum):
    HORIZONTAL = 0
    VERTICAL = 1
    ONESCREEN_LO = 2
    ONESCREEN_HI = 3


class CartridgeError(ValueError):
    """The ROM image cannot be loaded."""


@dataclass(frozen=True)
class INesHeader:
    magic: bytes
    prg_rom_pages: int
    chr_rom_pages: int
    mapper1: int
    mapper2: int
    prg_ram_pages: int
    tv_system1: int
    tv_system2: int
    unused: bytes

    @classmethod
    def parse(cls, data: bytes) -> "INesHeader":
        """Parse the 16-byte header at the start of ``data``."""
        if len(data) < HEADER_SIZE:
            raise CartridgeError("failed to read ROM header")
        magic = bytes(data[:4])
        if magic != NES_MAGIC:
            raise CartridgeError("not a NES ROM")
        return cls(magic, *data[4:11], bytes(data[11:HEADER_SIZE]))

    @property
    def has_trainer(self) -> bool:
        return bool(self.mapper1 & 0x04)

    @property
    def mirroring(self) -> Mirroring:
        return Mirroring.VERTICAL if self.mapper1 & 0x01 else Mirroring.HORIZONTAL

    @property
    def mapper_id(self) -> int:
        return (self.mapper2 & 0xF0) | (self.mapper1 >> 4)

    @property
    def ines_version(self) -> int:
        return 2 if (self.mapper2 & 0x0C) == 0x08 else 1


@dataclass(frozen=True)
class CartridgeInfo:
    prg_rom_pages: int
    chr_rom_pages: int
    prg_rom_size: int
    chr_rom_size: int
    mapper: int


@dataclass
class Cartridge:
    info: CartridgeInfo
    mapper: Mapper
    prg_rom: bytearray
    chr_rom: bytearray
    mirror: Mirroring

    @classmethod
    def from_bytes(cls, data: bytes) -> "Cartridge":
        """Load a cartridge from an iNES image."""
        header = INesHeader.parse(data)
        offset = HEADER_SIZE + (TRAINER_SIZE if header.has_trainer else 0)

        if header.ines_version == 2:
            raise CartridgeError("iNES 2.0 headers are not supported")

        prg_size = header.prg_rom_pages * PRG_PAGE_SIZE
        prg_rom = bytearray(data[offset:offset + prg_size])
        if len(prg_rom) != prg_size:
            raise CartridgeError(
                f"failed to read PRG data: expected {prg_size} bytes but only got {len(prg_rom)}"
            )
        offset += prg_size

        chr_size = header.chr_rom_pages * CHR_PAGE_SIZE
        chr_rom = bytearray(data[offset:offset + chr_size])
        if len(chr_rom) != chr_size:
            raise CartridgeError(
                f"failed to read CHR data: expected {chr_size} bytes but only got {len(chr_rom)}"
            )
        offset += chr_size
        if chr_size == 0:
            chr_rom = bytearray(CHR_PAGE_SIZE)

        if offset < len(data):
            warnings.warn("read everything but file still has data", RuntimeWarning, stacklevel=2)

        info = CartridgeInfo(
            prg_rom_pages=header.prg_rom_pages,
            chr_rom_pages=header.chr_rom_pages,
            prg_rom_size=prg_size,
            chr_rom_size=chr_size,
            mapper=header.mapper_id,
        )
        try:
            mapper = create_mapper(header.mapper_id, header.prg_rom_pages)
        except ValueError as exc:
            raise CartridgeError(f"mapper {header.mapper_id} is not implemented") from exc

        return cls(info=info, mapper=mapper, prg_rom=prg_rom, chr_rom=chr_rom, mirror=header.mirroring)

    @classmethod
    def from_file(cls, path: Union[str, os.PathLike]) -> "Cartridge":
        """Load a cartridge from an iNES file on disk."""
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            raise CartridgeError(f"error opening {path}") from exc
        return cls.from_bytes(data)

    def cpu_read(self, addr: int) -> int:
        offset = self.mapper.map_cpu_read(addr)
        if offset is None:
            return 0
        return self.prg_rom[offset]

    def cpu_write(self, addr: int, data: int) -> None:
        offset = self.mapper.map_cpu_write(addr, data)
        if offset is not None:
            self.prg_rom[offset] = data & 0xFF

    def ppu_read(self, addr: int) -> int:
        offset = self.mapper.map_ppu_read(addr)
        if offset is None:
            return 0
        return self.chr_rom[offset]

    def ppu_write(self, addr: int, data: int) -> None:
        offset = self.mapper.map_ppu_write(addr, data)
        if offset is not None:
            self.chr_rom[offset] = data & 0xFF