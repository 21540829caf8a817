"""Circular predelay buffer for the dry signal path."""

import numpy as np

from sndcomp.exceptions import AllocationError


def wrap_index(index: int, length: int) -> int:
    """Advance-and-wrap helper: the index after ``index`` in a ring of ``length``."""
    index += 1
    return 0 if index >= length else index


def predelay_length(sample_rate: int, predelay: float) -> int:
    """
    Ring length for a predelay in seconds.

    Truncates like an integer cast and never returns less than 1, so a zero
    predelay still gives a well-defined (zero-delay) ring.
    """
    return max(1, int(sample_rate * predelay))


class PredelayBuffer:
    """
    Stereo ring buffer.

    The read cursor starts one slot ahead of the write cursor, so after a
    write the read returns the oldest stored frame: the dry signal comes out
    ``length - 1`` samples late.

    Usage:
        ring = PredelayBuffer(264)
        ring.write(left, right)
        left_d, right_d = ring.read()
    """

    def __init__(self, length: int):
        if length < 1:
            raise ValueError(f"Predelay buffer length must be at least 1, got {length}")
        try:
            self._left = np.zeros(length, dtype=np.float64)
            self._right = np.zeros(length, dtype=np.float64)
        except MemoryError as exc:
            raise AllocationError(f"Cannot allocate predelay buffer of {length} samples") from exc
        self.length = length
        self.write_pos = 0
        self.read_pos = 1 % length

    @property
    def delay(self) -> int:
        return self.length - 1

    def write(self, left: float, right: float) -> None:
        """Store a frame and advance the write cursor."""
        self._left[self.write_pos] = left
        self._right[self.write_pos] = right
        self.write_pos = wrap_index(self.write_pos, self.length)

    def read(self):
        """Return the frame at the read cursor and advance it."""
        pos = self.read_pos
        self.read_pos = wrap_index(pos, self.length)
        return float(self._left[pos]), float(self._right[pos])

