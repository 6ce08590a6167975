import pytest

from znes.mappers import Mapper000, Mapper002, create_mapper


def test_nrom_single_page_mirrors_upper_half():
    mapper = Mapper000(1)
    for offset in (0x0000, 0x0123, 0x3FFF):
        assert mapper.map_cpu_read(0x8000 + offset) == mapper.map_cpu_read(0xC000 + offset)
        assert mapper.map_cpu_read(0x8000 + offset) == offset


def test_nrom_two_pages_uses_whole_window():
    mapper = Mapper000(2)
    assert mapper.map_cpu_read(0x8000) == 0
    assert mapper.map_cpu_read(0xC000) == 0x4000
    assert mapper.map_cpu_read(0xFFFF) == 0x7FFF


def test_nrom_write_maps_like_read():
    mapper = Mapper000(2)
    for addr in (0x8000, 0x9ABC, 0xFFFE):
        assert mapper.map_cpu_write(addr, 0x12) == mapper.map_cpu_read(addr)


@pytest.mark.parametrize("mapper_cls", [Mapper000, Mapper002])
def test_ppu_mapping_is_direct(mapper_cls):
    mapper = mapper_cls(4)
    for addr in (0x0000, 0x0FFF, 0x1FFF):
        assert mapper.map_ppu_read(addr) == addr
        assert mapper.map_ppu_write(addr, 0xAB) == addr


@pytest.mark.parametrize("bank", range(4))
def test_uxrom_switches_lower_bank(bank):
    mapper = Mapper002(4)
    assert mapper.map_cpu_write(0x8000, bank) is None
    assert mapper.map_cpu_read(0x8000) == bank * 0x4000
    assert mapper.map_cpu_read(0xBFFF) == bank * 0x4000 + 0x3FFF


def test_uxrom_upper_bank_is_fixed_to_last():
    mapper = Mapper002(8)
    fixed = mapper.map_cpu_read(0xC000)
    mapper.map_cpu_write(0x8000, 3)
    assert mapper.map_cpu_read(0xC000) == fixed
    assert fixed == 7 * 0x4000


def test_uxrom_bank_select_uses_low_nibble():
    mapper = Mapper002(16)
    mapper.map_cpu_write(0xFFFF, 0x13)
    low = mapper.map_cpu_read(0x8000)
    mapper.map_cpu_write(0xFFFF, 0x03)
    assert mapper.map_cpu_read(0x8000) == low


def test_uxrom_below_rom_window_is_unmapped():
    assert Mapper002(2).map_cpu_read(0x6000) is None


def test_uxrom_banks_are_per_instance():
    first = Mapper002(4)
    second = Mapper002(4)
    first.map_cpu_write(0x8000, 2)
    assert second.map_cpu_read(0x8000) == 0


def test_create_mapper_known_ids():
    nrom = create_mapper(0, 1)
    uxrom = create_mapper(2, 4)
    assert isinstance(nrom, Mapper000) and nrom.prg_rom_pages == 1
    assert isinstance(uxrom, Mapper002) and uxrom.prg_rom_pages == 4


def test_create_mapper_unknown_id():
    with pytest.raises(ValueError):
        create_mapper(5, 1)