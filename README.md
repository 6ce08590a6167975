# znes

Building blocks for emulating the Nintendo Entertainment System, in pure
Python with no dependencies outside the standard library:

- `znes.cartridge`: loading of iNES ROM images.
- `znes.mappers`: mapper 0 (NROM) and mapper 2 (UxROM).
- `znes.ppu_memory`: the PPU address space with nametable and palette
  mirroring.
- `znes.ppu`: the picture processing unit, rendering background and sprites
  into a 256x240 screen of palette indices.
- `znes.apu`: the two pulse channels and the noise channel of the audio unit.
- `znes.ringbuffer`: a fixed-size queue of 16-bit audio samples.

## Installing

```
pip install .
```

## Cartridges

```python
from znes.cartridge import Cartridge, CartridgeError

cart = Cartridge.from_file("game.nes")   # or Cartridge.from_bytes(data)
print(cart.info.mapper, cart.info.prg_rom_pages, cart.mirror)

value = cart.cpu_read(0xFFFC)            # PRG ROM through the mapper
tile_row = cart.ppu_read(0x0000)         # CHR ROM through the mapper
```

`CartridgeError` (a `ValueError`) is raised when the file cannot be opened,
the header is short or lacks the `NES\x1a` magic, the header is iNES 2.0,
the PRG or CHR data is truncated, or the mapper is not 0 or 2. Data left
over after the CHR ROM produces a `RuntimeWarning`. A cartridge with no CHR
ROM gets 8 KiB of writable CHR memory.

`INesHeader.parse` exposes the raw header fields together with
`has_trainer`, `mirroring`, `mapper_id` and `ines_version`.
`create_mapper(mapper_id, prg_rom_pages)` builds a `Mapper000` or
`Mapper002`, and raises `ValueError` for any other number. With mapper 2,
any CPU write selects the 16 KiB bank seen at `0x8000`; the last bank stays
at `0xC000`.

## Picture processing unit

```python
from znes.ppu import PPU

ppu = PPU()
ppu.cartridge = cart
ppu.cpu_write(0x0001, 0x1E)      # PPUMASK: show background and sprites
while not ppu.frame_complete:
    ppu.clock()                  # one dot
pixels = ppu.screen_pixels()     # 240 rows of 256 (r, g, b) tuples
```

`cpu_write` and `cpu_read` take the register number 0-7 (the CPU's
`0x2000`-`0x2007`), `read` and `write` address the PPU's own bus, and
`read_debug` returns control, mask or status without side effects. `oam`
is the 256-byte sprite memory. When NMI is enabled in the control register
the PPU sets `nmi` at the start of vertical blank. `pattern_table(index,
palette)` renders a pattern table as 128 rows of 128 colours, and
`color_from_palette_ram` / `color_index_from_palette_ram` look up palette
RAM. Clocking needs a cartridge to be inserted; without one the PPU raises
`RuntimeError`.

## Audio processing unit

```python
from znes.apu import APU

apu = APU()
apu.cpu_write(0x4015, 0x01)      # enable pulse 1
apu.cpu_write(0x4000, 0xBF)
apu.cpu_write(0x4002, 0xFD)
apu.cpu_write(0x4003, 0x08)
for _ in range(10_000):
    apu.clock()
sample = apu.get_sample()
```

`cpu_read(0x4015)` reports which length counters are still running. The
sequencer, length counter, envelope, oscillator and sweep units are
available on their own as `Sequencer`, `LengthCounter`, `Envelope`,
`Oscillator` and `Sweeper`.

## Ring buffer

`RingBuffer(capacity)` holds signed 16-bit samples; `put` drops the oldest
sample once full and `get` raises `IndexError` when empty.

## What the package does not do

There is no 6502 CPU, no system bus tying the parts together (CPU memory
map, sprite DMA, controllers), no disassembler, and no window, keyboard
input, audio output or command to run a game. The triangle and DMC audio
channels are not emulated, only mappers 0 and 2 are supported, and iNES 2.0
headers are rejected.

## Tests

```
pip install .[test]
pytest
```