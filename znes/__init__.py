"""NES emulation components: iNES cartridges, mappers, PPU and APU."""

__version__ = "0.1.0"