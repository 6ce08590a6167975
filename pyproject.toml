[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "znes"
version = "0.1.0"
description = "NES emulation components: iNES cartridges, mappers, PPU, APU and an audio sample buffer"
requires-python = ">=3.10"
keywords = ["nes", "emulator", "famicom", "ines", "ppu", "apu"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: System :: Emulators",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = []

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["znes"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
