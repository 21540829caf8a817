"""
Adaptive (program-dependent) release curve.

A cubic y = a*x^3 + b*x^2 + c*x + d through the points (0, y1), (1, y2),
(2, y3), (3, y4) where y_i = release_samples * releasezone_i. The engine
evaluates it at x in [0, 3] (how far the gain is from its target) to get a
release time in samples.
"""
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class ReleaseCurve:
    a: float
    b: float
    c: float
    d: float

    @classmethod
    def fit(cls, release_samples: float, zones: Sequence[float]) -> 'ReleaseCurve':
        """
        Solve the cubic through the four release zones in closed form.

        Args:
            release_samples: Release time in samples
            zones: Four release zones, nominally increasing within [0, 1]
        """
        if len(zones) != 4:
            raise ValueError(f"Expected 4 release zones, got {len(zones)}")
        y1, y2, y3, y4 = (release_samples * zone for zone in zones)
        return cls(
            a=(-y1 + 3.0 * y2 - 3.0 * y3 + y4) / 6.0,
            b=y1 - 2.5 * y2 + 2.0 * y3 - 0.5 * y4,
            c=(-11.0 * y1 + 18.0 * y2 - 9.0 * y3 + 2.0 * y4) / 6.0,
            d=y1,
        )

    def __call__(self, x: float) -> float:
        x2 = x * x
        return self.a * x2 * x + self.b * x2 + self.c * x + self.d
