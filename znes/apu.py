"""Audio processing unit: two pulse channels and a noise channel."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable

CPU_CLOCK_HZ = 1789773.0
SILENT_VISUAL = 2047
WAVE_TABLE_SIZE = 32

LENGTH_TABLE = (
    10, 254, 20, 2, 40, 4, 80, 6, 160, 8, 60, 10, 14, 12, 26, 14,
    12, 16, 24, 18, 48, 20, 96, 22, 192, 24, 72, 26, 16, 28, 32, 30,
)

# (sequencer pattern, duty cycle) for each value of the duty bits.
DUTY_SETTINGS = (
    (0b01000000, 0.125),
    (0b01100000, 0.250),
    (0b01111000, 0.500),
    (0b10011111, 0.750),
)

NOISE_PERIODS = (0, 4, 8, 16, 32, 64, 96, 128, 160, 202, 254, 380, 508, 1016, 2034, 4068)


def _pulse_wave(high_steps: int) -> tuple[float, ...]:
    return tuple(1.0 if step < high_steps else 0.0 for step in range(WAVE_TABLE_SIZE))


PULSE_WAVES = (_pulse_wave(1), _pulse_wave(2), _pulse_wave(16), _pulse_wave(24))


def right_shift(sequence: int) -> int:
    """Rotate the low 8 bits of a pulse sequence one step to the right."""
    return ((sequence & 0x0001) << 7) | ((sequence & 0x00FE) >> 1)


def noise_step(sequence: int) -> int:
    """Advance the 15-bit noise shift register by one step."""
    feedback = (sequence & 0x0001) ^ ((sequence & 0x0002) >> 1)
    return (feedback << 14) | ((sequence & 0x7FFF) >> 1)


@dataclass
class Sequencer:
    sequence: int = 0
    new_sequence: int = 0
    timer: int = 0
    reload: int = 0
    output: int = 0

    def clock(self, enable: bool, func: Callable[[int], int]) -> int:
        """Count the timer down; when it underflows, reload and step the sequence."""
        if enable:
            self.timer = (self.timer - 1) & 0xFFFF
            if self.timer == 0xFFFF:
                self.timer = self.reload
                self.sequence = func(self.sequence) & 0xFFFFFFFF
                self.output = self.sequence & 0x01
        return self.output


@dataclass
class LengthCounter:
    counter: int = 0

    def clock(self, enable: bool, halt: bool) -> int:
        """Clear when disabled, otherwise count down unless halted."""
        if not enable:
            self.counter = 0
        elif self.counter > 0 and not halt:
            self.counter -= 1
        return self.counter


@dataclass
class Envelope:
    start: bool = False
    disable: bool = False
    divider_count: int = 0
    volume: int = 0
    output: int = 0
    decay_count: int = 0

    def clock(self, loop: bool) -> None:
        """Advance the envelope by one quarter frame."""
        if self.start:
            self.start = False
            self.decay_count = 15
            self.divider_count = self.volume
        elif self.divider_count == 0:
            self.divider_count = self.volume
            if self.decay_count == 0:
                if loop:
                    self.decay_count = 15
            else:
                self.decay_count -= 1
        else:
            self.divider_count -= 1

        self.output = self.volume if self.disable else self.decay_count


@dataclass
class Oscillator:
    frequency: float = 0.0
    dutycycle: float = 0.0
    amplitude: float = 1.0
    harmonics: float = 8.0

    def sample(self, t: float) -> float:
        """Value of the pulse wave at time ``t`` seconds."""
        position = math.fmod(t * self.frequency, 1.0) * WAVE_TABLE_SIZE
        index = int(position)
        if self.dutycycle <= 0.125:
            duty_type = 0
        elif self.dutycycle <= 0.25:
            duty_type = 1
        elif self.dutycycle <= 0.5:
            duty_type = 2
        else:
            duty_type = 3
        return PULSE_WAVES[duty_type][index] * self.amplitude


@dataclass
class Sweeper:
    enabled: bool = False
    down: bool = False
    reload: bool = False
    shift: int = 0
    timer: int = 0
    period: int = 0
    change: int = 0
    mute: bool = False

    def track(self, target: int) -> None:
        """Recompute the pending change and mute state from the channel period."""
        if self.enabled:
            self.change = (target >> self.shift) & 0xFFFF
            self.mute = target < 8 or target > 0x7FF

    def clock(self, target: int, channel: int) -> int:
        """Advance the sweep unit by one half frame and return the new period."""
        if self.timer == 0 and self.enabled and self.shift > 0 and not self.mute:
            if target >= 8 and self.change < 0x07FF:
                if self.down:
                    target = (target - (self.change - int(channel))) & 0xFFFF
                else:
                    target = (target + self.change) & 0xFFFF

        if self.enabled:
            if self.timer == 0 or self.reload:
                self.timer = self.period
                self.reload = False
            else:
                self.timer = (self.timer - 1) & 0xFF
            self.mute = target < 8 or target > 0x7FF

        return target


@dataclass
class _PulseChannel:
    sweep_offset: int
    enable: bool = False
    halt: bool = False
    sample: float = 0.0
    output: float = 0.0
    seq: Sequencer = field(default_factory=Sequencer)
    osc: Oscillator = field(default_factory=Oscillator)
    env: Envelope = field(default_factory=Envelope)
    lc: LengthCounter = field(default_factory=LengthCounter)
    sweep: Sweeper = field(default_factory=Sweeper)
    visual: int = 0

    def write(self, register: int, data: int) -> None:
        if register == 0:
            self.seq.new_sequence, self.osc.dutycycle = DUTY_SETTINGS[(data & 0xC0) >> 6]
            self.seq.sequence = self.seq.new_sequence
            self.halt = bool(data & 0x20)
            self.env.volume = data & 0x0F
            self.env.disable = bool(data & 0x10)
        elif register == 1:
            self.sweep.enabled = bool(data & 0x80)
            self.sweep.period = (data & 0x70) >> 4
            self.sweep.down = bool(data & 0x08)
            self.sweep.shift = data & 0x07
            self.sweep.reload = True
        elif register == 2:
            self.seq.reload = (self.seq.reload & 0xFF00) | data
        else:
            self.seq.reload = ((data & 0x07) << 8) | (self.seq.reload & 0x00FF)
            self.seq.timer = self.seq.reload
            self.seq.sequence = self.seq.new_sequence
            self.lc.counter = LENGTH_TABLE[(data & 0xF8) >> 3]
            self.env.start = True


@dataclass
class _NoiseChannel:
    enable: bool = False
    halt: bool = False
    env: Envelope = field(default_factory=Envelope)
    lc: LengthCounter = field(default_factory=LengthCounter)
    seq: Sequencer = field(default_factory=lambda: Sequencer(sequence=0xDBDB))
    sample: float = 0.0
    output: float = 0.0
    visual: int = 0


class APU:
    """Register interface, frame sequencing and mixing of the audio channels."""

    def __init__(self) -> None:
        self.frame_clock_counter = 0
        self.clock_counter = 0
        self.use_raw_mode = False
        self.global_time = 0.0
        self.pulse1 = _PulseChannel(sweep_offset=0)
        self.pulse2 = _PulseChannel(sweep_offset=1)
        self.noise = _NoiseChannel()
        self.triangle_visual = 0

    @property
    def _pulses(self) -> tuple[_PulseChannel, _PulseChannel]:
        return (self.pulse1, self.pulse2)

    def cpu_write(self, addr: int, data: int) -> None:
        """Handle a CPU write to an APU register."""
        data &= 0xFF
        if 0x4000 <= addr <= 0x4007:
            channel = self.pulse1 if addr < 0x4004 else self.pulse2
            channel.write(addr & 0x03, data)
        elif addr == 0x400C:
            self.noise.env.volume = data & 0x0F
            self.noise.env.disable = bool(data & 0x10)
            self.noise.halt = bool(data & 0x20)
        elif addr == 0x400E:
            self.noise.seq.reload = NOISE_PERIODS[data & 0x0F]
        elif addr == 0x4015:
            self.pulse1.enable = bool(data & 0x01)
            self.pulse2.enable = bool(data & 0x02)
            self.noise.enable = bool(data & 0x04)
        elif addr == 0x400F:
            self.pulse1.env.start = True
            self.pulse2.env.start = True
            self.noise.env.start = True
            self.noise.lc.counter = LENGTH_TABLE[(data & 0xF8) >> 3]

    def cpu_read(self, addr: int) -> int:
        """Handle a CPU read; only the status register answers."""
        data = 0x00
        if addr == 0x4015:
            if self.pulse1.lc.counter > 0:
                data |= 0x01
            if self.pulse2.lc.counter > 0:
                data |= 0x02
            if self.noise.lc.counter > 0:
                data |= 0x04
        return data

    def _clock_pulse(self, pulse: _PulseChannel) -> None:
        if self.use_raw_mode:
            pulse.seq.clock(pulse.enable, right_shift)
            pulse.sample = float(pulse.seq.output)
            return
        pulse.osc.frequency = CPU_CLOCK_HZ / (16.0 * (pulse.seq.reload + 1))
        pulse.osc.amplitude = (pulse.env.output - 1) / 16.0
        pulse.sample = pulse.osc.sample(self.global_time)
        if (
            pulse.lc.counter > 0
            and pulse.seq.timer >= 8
            and not pulse.sweep.mute
            and pulse.env.output > 2
        ):
            pulse.output += (pulse.sample - pulse.output) * 0.5
        else:
            pulse.output = 0.0

    def clock(self) -> None:
        """Advance the APU by one system clock."""
        self.global_time += 0.3333333333 / CPU_CLOCK_HZ

        if self.clock_counter % 6 == 0:
            self.frame_clock_counter += 1
            quarter = self.frame_clock_counter in (3729, 7457, 11186, 14916)
            half = self.frame_clock_counter in (7457, 14916)
            if self.frame_clock_counter == 14916:
                self.frame_clock_counter = 0

            if quarter:
                for pulse in self._pulses:
                    pulse.env.clock(pulse.halt)
                self.noise.env.clock(self.noise.halt)

            if half:
                for pulse in self._pulses:
                    pulse.lc.clock(pulse.enable, pulse.halt)
                self.noise.lc.clock(self.noise.enable, self.noise.halt)
                for pulse in self._pulses:
                    pulse.seq.reload = pulse.sweep.clock(pulse.seq.reload, pulse.sweep_offset)

            for pulse in self._pulses:
                self._clock_pulse(pulse)

            noise = self.noise
            noise.seq.clock(noise.enable, noise_step)
            if noise.lc.counter > 0 and noise.seq.timer >= 8:
                noise.output = noise.seq.output * ((noise.env.output - 1) / 16.0)

            for pulse in self._pulses:
                if not pulse.enable:
                    pulse.output = 0.0
            if not noise.enable:
                noise.output = 0.0

        for pulse in self._pulses:
            pulse.sweep.track(pulse.seq.reload)

        for pulse in self._pulses:
            audible = pulse.enable and pulse.env.output > 1 and not pulse.sweep.mute
            pulse.visual = pulse.seq.reload if audible else SILENT_VISUAL
        noise_audible = self.noise.enable and self.noise.env.output > 1
        self.noise.visual = self.noise.seq.reload if noise_audible else SILENT_VISUAL

        self.clock_counter = (self.clock_counter + 1) & 0xFFFFFFFF

    def get_sample(self) -> float:
        """Current mixed output sample, scaled for 16-bit audio."""
        if self.use_raw_mode:
            return 32000.0 * (
                (self.pulse1.sample - 0.5) * 0.5 + (self.pulse2.sample - 0.5) * 0.5
            )
        return 32000.0 * (
            (self.pulse1.output - 0.8) * 0.1
            + (self.pulse2.output - 0.8) * 0.1
            + (2.0 * (self.noise.output - 0.5)) * 0.1
        )