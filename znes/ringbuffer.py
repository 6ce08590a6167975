"""Fixed-size sample queue between the emulator and the audio callback."""

from __future__ import annotations

from collections import deque


def _to_int16(value: float) -> int:
    return ((int(value) + 0x8000) & 0xFFFF) - 0x8000


class RingBuffer:
    """Queue of signed 16-bit samples that drops the oldest when full."""

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._samples: deque[int] = deque(maxlen=capacity)

    def put(self, value: float) -> None:
        """Append a sample, overwriting the oldest one when full."""
        self._samples.append(_to_int16(value))

    def get(self) -> int:
        """Remove and return the oldest sample; IndexError when empty."""
        try:
            return self._samples.popleft()
        except IndexError:
            raise IndexError("ring buffer is empty") from None

    def is_full(self) -> bool:
        return len(self._samples) == self._samples.maxlen

    def is_empty(self) -> bool:
        return not self._samples

    def capacity(self) -> int:
        return self._samples.maxlen or 0

    def __len__(self) -> int:
        return len(self._samples)