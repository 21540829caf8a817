"""
Gain-reduction metering.

The meter is a side channel only: it reads the gain the compressor applies
and never feeds back into the signal path.
"""
import math
from typing import Callable, List, Optional

METER_FALLOFF_SEC = 0.325

MeterCallback = Callable[[float], None]


class GainMeter:
    """Peak-hold style meter: drops instantly, recovers with a ~325 ms falloff."""

    def __init__(self, sample_rate: int, falloff_sec: float = METER_FALLOFF_SEC):
        self.release = 1.0 - math.exp(-1.0 / (sample_rate * falloff_sec))
        self.value_db = 1.0

    def update(self, gain_db: float) -> float:
        if gain_db < self.value_db:
            self.value_db = gain_db
        else:
            self.value_db += (gain_db - self.value_db) * self.release
        return self.value_db


class GainMeterLog:
    """
    Meter observer that records every reading it receives.

    Pass an instance as the ``meter`` argument of ``compress``.
    """

    def __init__(self):
        self.readings: List[float] = []

    def __call__(self, gain_db: float) -> None:
        self.readings.append(gain_db)

    def __len__(self) -> int:
        return len(self.readings)

    @property
    def last_db(self) -> Optional[float]:
        return self.readings[-1] if self.readings else None

    @property
    def min_db(self) -> Optional[float]:
        return min(self.readings) if self.readings else None
