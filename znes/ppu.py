"""Picture processing unit: background and sprite rendering for one NES screen."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Optional

from znes.cartridge import Cartridge
from znes.ppu_memory import LoopyRegister, PPUMemory, flip_byte

Color = tuple[int, int, int]

SCREEN_WIDTH = 256
SCREEN_HEIGHT = 240
PATTERN_TABLE_SIZE = 128
OAM_SIZE = 256
MAX_SPRITES = 8

STATUS_VERTICAL_BLANK = 0x80
STATUS_SPRITE_ZERO_HIT = 0x40
STATUS_SPRITE_OVERFLOW = 0x20

MASK_EMPHASIZE_BLUE = 0x80
MASK_EMPHASIZE_GREEN = 0x40
MASK_EMPHASIZE_RED = 0x20
MASK_ENABLE_SPRITE = 0x10
MASK_ENABLE_BACKGROUND = 0x08
MASK_SHOW_SPRITE_LEFT = 0x04
MASK_SHOW_BACKGROUND_LEFT = 0x02
MASK_GRAYSCALE = 0x01

CONTROL_NAMETABLE_X = 0x01
CONTROL_NAMETABLE_Y = 0x02
CONTROL_INCREMENT_MODE = 0x04
CONTROL_PATTERN_SPRITE = 0x08
CONTROL_PATTERN_BACKGROUND = 0x10
CONTROL_SPRITE_SIZE = 0x20
CONTROL_ENABLE_NMI = 0x80

NTSC_PALETTE: tuple[Color, ...] = (
    (84, 84, 84), (0, 30, 116), (8, 16, 144), (48, 0, 136),
    (68, 0, 100), (92, 0, 48), (84, 4, 0), (60, 24, 0),
    (32, 42, 0), (8, 58, 0), (0, 64, 0), (0, 60, 0),
    (0, 50, 60), (0, 0, 0), (0, 0, 0), (0, 0, 0),
    (152, 150, 152), (8, 76, 196), (48, 50, 236), (92, 30, 228),
    (136, 20, 176), (160, 20, 100), (152, 34, 32), (120, 60, 0),
    (84, 90, 0), (40, 114, 0), (8, 124, 0), (0, 118, 40),
    (0, 102, 120), (0, 0, 0), (0, 0, 0), (0, 0, 0),
    (236, 238, 236), (76, 154, 236), (120, 124, 236), (176, 98, 236),
    (228, 84, 236), (236, 88, 180), (236, 106, 100), (212, 136, 32),
    (160, 170, 0), (116, 196, 0), (76, 208, 32), (56, 204, 108),
    (56, 180, 204), (60, 60, 60), (0, 0, 0), (0, 0, 0),
    (236, 238, 236), (168, 204, 236), (188, 188, 236), (212, 178, 236),
    (236, 174, 236), (236, 174, 212), (236, 180, 176), (228, 196, 144),
    (204, 210, 120), (180, 222, 120), (168, 226, 144), (152, 226, 180),
    (160, 214, 228), (160, 162, 160), (0, 0, 0), (0, 0, 0),
)


@dataclass
class _Sprite:
    y: int = 0xFF
    id: int = 0xFF
    attribute: int = 0xFF
    x: int = 0xFF


class PPU:
    """Scanline/cycle driven PPU that renders palette indices into ``screen``.

    ``screen`` holds one row of palette indices per scanline. ``oam`` is the
    256-byte object attribute memory (64 sprites of y, tile, attribute, x).
    """

    def __init__(self) -> None:
        self.memory = PPUMemory()
        self.oam = bytearray(OAM_SIZE)
        self.screen = [bytearray(SCREEN_WIDTH) for _ in range(SCREEN_HEIGHT)]
        self.sprite_data = [_Sprite() for _ in range(MAX_SPRITES)]
        self.sprite_count = 0
        self.sprite_lo = [0] * MAX_SPRITES
        self.sprite_hi = [0] * MAX_SPRITES
        self.odd_frame = False
        self.reset()

    @property
    def cartridge(self) -> Optional[Cartridge]:
        return self.memory.cartridge

    @cartridge.setter
    def cartridge(self, cartridge: Optional[Cartridge]) -> None:
        self.memory.cartridge = cartridge

    def reset(self) -> None:
        """Return registers and rendering state to power-on values."""
        self.nmi = False
        self.frame_complete = False
        self.fine_x = 0
        self.address_latch = 0
        self.data_buffer = 0
        self.scanline = 0
        self.cycle = 0
        self.next_tile_id = 0
        self.next_tile_attrib = 0
        self.next_tile_lsb = 0
        self.next_tile_msb = 0
        self.pattern_lo = 0
        self.pattern_hi = 0
        self.attrib_lo = 0
        self.attrib_hi = 0
        self.status = 0
        self.mask = 0
        self.control = 0
        self.vram_addr = LoopyRegister()
        self.temp_vram_addr = LoopyRegister()
        self.oam_addr = 0
        self.can_zero_hit = False
        self.sprite_zero_rendering = False
        self.memory.reset()

    # -- PPU bus ----------------------------------------------------------

    def read(self, addr: int) -> int:
        """Read from the PPU address space."""
        return self.memory.read(addr, grayscale=bool(self.mask & MASK_GRAYSCALE))

    def write(self, addr: int, data: int) -> None:
        """Write to the PPU address space."""
        self.memory.write(addr, data)

    # -- CPU-facing registers ---------------------------------------------

    def read_debug(self, addr: int) -> int:
        """Peek at control, mask or status without side effects."""
        if addr == 0x0000:
            return self.control
        if addr == 0x0001:
            return self.mask
        if addr == 0x0002:
            return self.status
        return 0x00

    def cpu_read(self, addr: int) -> int:
        """Read one of the eight registers at 0x2000-0x2007 (given as 0-7)."""
        data = 0x00
        if addr == 0x0002:
            data = (self.status & 0xE0) | (self.data_buffer & 0x1F)
            self.status &= ~STATUS_VERTICAL_BLANK & 0xFF
            self.address_latch = 0
        elif addr == 0x0004:
            data = self.oam[self.oam_addr]
        elif addr == 0x0007:
            data = self.data_buffer
            self.data_buffer = self.read(self.vram_addr.value)
            if self.vram_addr.value >= 0x3F00:
                data = self.data_buffer
            self._increment_vram_addr()
        return data

    def cpu_write(self, addr: int, data: int) -> None:
        """Write one of the eight registers at 0x2000-0x2007 (given as 0-7)."""
        data &= 0xFF
        if addr == 0x0000:
            self.control = data
            self.temp_vram_addr.nametable_x = data & CONTROL_NAMETABLE_X
            # Stored in a one-bit field, so only bit 0 of the masked value survives.
            self.temp_vram_addr.nametable_y = (data & CONTROL_NAMETABLE_Y) & 0x01
        elif addr == 0x0001:
            self.mask = data
        elif addr == 0x0003:
            self.oam_addr = data
        elif addr == 0x0004:
            self.oam[self.oam_addr] = data
        elif addr == 0x0005:
            if self.address_latch == 0:
                self.fine_x = data & 0x07
                self.temp_vram_addr.x = data >> 3
                self.address_latch = 1
            else:
                self.temp_vram_addr.fine_y = data & 0x07
                self.temp_vram_addr.y = data >> 3
                self.address_latch = 0
        elif addr == 0x0006:
            if self.address_latch == 0:
                self.temp_vram_addr.value = ((data & 0x3F) << 8) | (self.temp_vram_addr.value & 0x00FF)
                self.address_latch = 1
            else:
                self.temp_vram_addr.value = (self.temp_vram_addr.value & 0xFF00) | data
                self.vram_addr.value = self.temp_vram_addr.value
                self.address_latch = 0
        elif addr == 0x0007:
            self.write(self.vram_addr.value, data)
            self._increment_vram_addr()

    def _increment_vram_addr(self) -> None:
        step = 32 if self.control & CONTROL_INCREMENT_MODE else 1
        self.vram_addr.value = (self.vram_addr.value + step) & 0xFFFF

    # -- colours ----------------------------------------------------------

    def color_index_from_palette_ram(self, palette: int, pixel: int) -> int:
        """System palette index of ``pixel`` drawn with ``palette``."""
        return self.read(0x3F00 + (palette << 2) + pixel) & 0x3F

    def color_from_palette_ram(self, palette: int, pixel: int) -> Color:
        """RGB colour of ``pixel`` drawn with ``palette``."""
        return NTSC_PALETTE[self.color_index_from_palette_ram(palette, pixel)]

    def pattern_table(self, index: int, palette: int) -> list[list[Color]]:
        """Render pattern table ``index`` (0 or 1) as 128 rows of 128 colours."""
        colors = [self.color_from_palette_ram(palette, pixel) for pixel in range(4)]
        image = [[colors[0]] * PATTERN_TABLE_SIZE for _ in range(PATTERN_TABLE_SIZE)]
        base = index * 0x1000
        for tile_y in range(16):
            for tile_x in range(16):
                offset = base + tile_y * 256 + tile_x * 16
                for row in range(8):
                    lsb = self.read(offset + row)
                    msb = self.read(offset + row + 8)
                    line = image[tile_y * 8 + row]
                    for col in range(8):
                        bit = 7 - col
                        pixel = ((msb >> bit) & 0x01) << 1 | ((lsb >> bit) & 0x01)
                        line[tile_x * 8 + col] = colors[pixel]
        return image

    def screen_pixels(self) -> list[list[Color]]:
        """The rendered screen as 240 rows of 256 RGB colours."""
        return [[NTSC_PALETTE[index] for index in row] for row in self.screen]

    # -- rendering helpers ------------------------------------------------

    def _rendering_enabled(self) -> bool:
        return bool(self.mask & (MASK_ENABLE_BACKGROUND | MASK_ENABLE_SPRITE))

    def _scroll_x(self) -> None:
        if not self._rendering_enabled():
            return
        if self.vram_addr.x == 31:
            self.vram_addr.x = 0
            self.vram_addr.nametable_x ^= 1
        else:
            self.vram_addr.x += 1

    def _scroll_y(self) -> None:
        if not self._rendering_enabled():
            return
        if self.vram_addr.fine_y < 7:
            self.vram_addr.fine_y += 1
            return
        self.vram_addr.fine_y = 0
        if self.vram_addr.y == 29:
            self.vram_addr.y = 0
            self.vram_addr.nametable_y ^= 1
        elif self.vram_addr.y == 31:
            self.vram_addr.y = 0
        else:
            self.vram_addr.y += 1

    def _transfer_x(self) -> None:
        if self._rendering_enabled():
            self.vram_addr.nametable_x = self.temp_vram_addr.nametable_x
            self.vram_addr.x = self.temp_vram_addr.x

    def _transfer_y(self) -> None:
        if self._rendering_enabled():
            self.vram_addr.fine_y = self.temp_vram_addr.fine_y
            self.vram_addr.nametable_y = self.temp_vram_addr.nametable_y
            self.vram_addr.y = self.temp_vram_addr.y

    def _load_shifters(self) -> None:
        self.pattern_lo = (self.pattern_lo & 0xFF00) | self.next_tile_lsb
        self.pattern_hi = (self.pattern_hi & 0xFF00) | self.next_tile_msb
        self.attrib_lo = (self.attrib_lo & 0xFF00) | (0xFF if self.next_tile_attrib & 0x01 else 0x00)
        self.attrib_hi = (self.attrib_hi & 0xFF00) | (0xFF if self.next_tile_attrib & 0x02 else 0x00)

    def _shift(self) -> None:
        if self.mask & MASK_ENABLE_BACKGROUND:
            self.pattern_lo = (self.pattern_lo << 1) & 0xFFFF
            self.pattern_hi = (self.pattern_hi << 1) & 0xFFFF
            self.attrib_lo = (self.attrib_lo << 1) & 0xFFFF
            self.attrib_hi = (self.attrib_hi << 1) & 0xFFFF
        if self.mask & MASK_ENABLE_SPRITE and 1 <= self.cycle < 258:
            for i, sprite in enumerate(self.sprite_data[:self.sprite_count]):
                if sprite.x > 0:
                    sprite.x -= 1
                else:
                    self.sprite_lo[i] = (self.sprite_lo[i] << 1) & 0xFF
                    self.sprite_hi[i] = (self.sprite_hi[i] << 1) & 0xFF

    def _fetch_name_table_byte(self) -> None:
        self.next_tile_id = self.read(0x2000 | (self.vram_addr.value & 0x0FFF))

    def _background_fetch(self) -> None:
        step = (self.cycle - 1) % 8
        if step == 0:
            self._load_shifters()
            self._fetch_name_table_byte()
        elif step == 2:
            v = self.vram_addr
            attrib = self.read(
                0x23C0 | (v.nametable_y << 11) | (v.nametable_x << 10) | ((v.y >> 2) << 3) | (v.x >> 2)
            )
            if v.y & 0x02:
                attrib >>= 4
            if v.x & 0x02:
                attrib >>= 2
            self.next_tile_attrib = attrib & 0x03
        elif step in (4, 6):
            base = ((self.control & CONTROL_PATTERN_BACKGROUND) << 8) + (self.next_tile_id << 4)
            value = self.read(base + self.vram_addr.fine_y + (8 if step == 6 else 0))
            if step == 4:
                self.next_tile_lsb = value
            else:
                self.next_tile_msb = value
        elif step == 7:
            self._scroll_x()

    def _visible_line(self) -> None:
        if self.scanline == 0 and self.cycle == 0:
            self.cycle = 1

        if self.scanline == -1 and self.cycle == 1:
            self.status &= ~(STATUS_VERTICAL_BLANK | STATUS_SPRITE_OVERFLOW | STATUS_SPRITE_ZERO_HIT) & 0xFF
            self.sprite_lo = [0] * MAX_SPRITES
            self.sprite_hi = [0] * MAX_SPRITES

        if 2 <= self.cycle < 258 or 321 <= self.cycle < 338:
            self._shift()
            self._background_fetch()

        if self.cycle == 256:
            self._scroll_y()

        if self.cycle == 257:
            self._load_shifters()
            self._transfer_x()

        if self.cycle in (338, 340):
            self._fetch_name_table_byte()

        if self.scanline == -1 and 280 <= self.cycle < 305:
            self._transfer_y()

    def _evaluate_sprites(self) -> None:
        self.sprite_data = [_Sprite() for _ in range(MAX_SPRITES)]
        self.sprite_count = 0
        self.sprite_lo = [0] * MAX_SPRITES
        self.sprite_hi = [0] * MAX_SPRITES
        self.can_zero_hit = False

        height = 16 if self.control & CONTROL_SPRITE_SIZE else 8
        for index, (y, tile, attribute, x) in enumerate(struct.iter_unpack("4B", self.oam)):
            if self.sprite_count >= MAX_SPRITES:
                break
            if 0 <= self.scanline - y < height:
                if index == 0:
                    self.can_zero_hit = True
                self.sprite_data[self.sprite_count] = _Sprite(y, tile, attribute, x)
                self.sprite_count += 1

        # At most eight sprites are ever kept, so the overflow flag stays clear.
        self.status &= ~STATUS_SPRITE_OVERFLOW & 0xFF

    def _fetch_sprite_patterns(self) -> None:
        for i, sprite in enumerate(self.sprite_data[:self.sprite_count]):
            y_position = (self.scanline - sprite.y) & 0xFFFF
            flipped_vertically = bool(sprite.attribute & 0x80)

            if not self.control & CONTROL_SPRITE_SIZE:
                table = (self.control & CONTROL_PATTERN_SPRITE) << 12
                row = ((7 - y_position) & 0xFFFF) if flipped_vertically else y_position
                addr_lo = table | (sprite.id << 4) | row
            else:
                bank = (sprite.id & 0x01) << 12
                row_within_tile = y_position & 0x07
                top = sprite.id & 0xFE
                if flipped_vertically:
                    row_offset = 7 - row_within_tile
                    tile = top + 1 if y_position < 8 else top
                else:
                    row_offset = row_within_tile
                    tile = top if y_position < 8 else top + 1
                addr_lo = bank | (tile << 4) | row_offset

            addr_lo &= 0xFFFF
            bits_lo = self.read(addr_lo)
            bits_hi = self.read((addr_lo + 8) & 0xFFFF)
            if sprite.attribute & 0x40:
                bits_lo = flip_byte(bits_lo)
                bits_hi = flip_byte(bits_hi)
            self.sprite_lo[i] = bits_lo
            self.sprite_hi[i] = bits_hi

    def _compose_pixel(self) -> tuple[int, int]:
        bg_pixel = bg_palette = 0
        if self.mask & MASK_ENABLE_BACKGROUND:
            bit = 0x8000 >> self.fine_x
            bg_pixel = (2 if self.pattern_hi & bit else 0) | (1 if self.pattern_lo & bit else 0)
            bg_palette = (2 if self.attrib_hi & bit else 0) | (1 if self.attrib_lo & bit else 0)

        fg_pixel = fg_palette = 0
        fg_priority = False
        if self.mask & MASK_ENABLE_SPRITE:
            self.sprite_zero_rendering = False
            for i, sprite in enumerate(self.sprite_data[:self.sprite_count]):
                if sprite.x != 0:
                    continue
                pixel = ((self.sprite_hi[i] & 0x80) >> 6) | ((self.sprite_lo[i] & 0x80) >> 7)
                if pixel == 0:
                    continue
                fg_pixel = pixel
                fg_palette = (sprite.attribute & 0x03) + 0x04
                fg_priority = (sprite.attribute & 0x20) == 0
                if i == 0:
                    self.sprite_zero_rendering = True
                break

        if bg_pixel == 0 and fg_pixel == 0:
            return 0, 0
        if bg_pixel == 0:
            return fg_pixel, fg_palette
        if fg_pixel == 0:
            return bg_pixel, bg_palette

        result = (fg_pixel, fg_palette) if fg_priority else (bg_pixel, bg_palette)
        if self.can_zero_hit and self.sprite_zero_rendering and self._rendering_enabled():
            show_left = self.mask & (MASK_SHOW_BACKGROUND_LEFT | MASK_SHOW_SPRITE_LEFT)
            min_visible_cycle = 1 if show_left else 9
            if min_visible_cycle <= self.cycle < 258:
                self.status |= STATUS_SPRITE_ZERO_HIT
        return result

    def clock(self) -> None:
        """Advance the PPU by one dot."""
        if -1 <= self.scanline < 240:
            self._visible_line()

        if self.cycle == 257 and self.scanline >= 0:
            self._evaluate_sprites()

        if self.cycle == 340:
            self._fetch_sprite_patterns()

        if self.scanline == 241 and self.cycle == 1:
            self.status |= STATUS_VERTICAL_BLANK
            if self.control & CONTROL_ENABLE_NMI:
                self.nmi = True

        pixel, palette = self._compose_pixel()
        if 0 <= self.scanline < SCREEN_HEIGHT and 0 <= self.cycle < SCREEN_WIDTH:
            self.screen[self.scanline][self.cycle] = self.color_index_from_palette_ram(palette, pixel)

        self.cycle += 1
        if self.cycle >= 341:
            self.cycle = 0
            self.scanline += 1
            if self.scanline >= 261:
                self.scanline = -1
                self.frame_complete = True