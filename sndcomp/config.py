"""
Configuration dataclasses for compressor settings.
"""
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Dict, Tuple, Union


@dataclass(frozen=True)
class CompressorParams:
    """
    Human-facing compressor parameters.

    Levels are in dB, times in seconds. Recommended ranges are noted per
    field; the compressor itself does not enforce them (see
    ``sndcomp.validation.validate_params`` for an opt-in check).
    """
    threshold: float = -24.0     # [-100, 0] dB
    knee: float = 30.0           # [0, 40] dB
    ratio: float = 12.0          # [1, 20]
    attack: float = 0.003        # [0, 1] seconds
    release: float = 0.250       # [0, 1] seconds
    predelay: float = 0.006      # seconds
    releasezone1: float = 0.090  # release zones range from 0 to 1, increasing
    releasezone2: float = 0.160
    releasezone3: float = 0.420
    releasezone4: float = 0.980
    postgain: float = 0.0        # dB
    wet: float = 1.0             # [0, 1]

    @property
    def release_zones(self) -> Tuple[float, float, float, float]:
        return (self.releasezone1, self.releasezone2, self.releasezone3, self.releasezone4)

    @property
    def dry(self) -> float:
        return 1.0 - self.wet

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> 'CompressorParams':
        """
        Create CompressorParams from a settings dictionary.

        Keys match the field names; missing keys keep their defaults.
        A ``release_zones`` list of four values may be given instead of the
        individual ``releasezone1..4`` keys.
        """
        values = {}
        for field in fields(cls):
            if field.name in settings and settings[field.name] is not None:
                values[field.name] = float(settings[field.name])

        zones = settings.get("release_zones")
        if zones is not None:
            zones = list(zones)
            if len(zones) != 4:
                raise ValueError(f"release_zones must have 4 entries, got {len(zones)}")
            for i, zone in enumerate(zones, start=1):
                values[f"releasezone{i}"] = float(zone)

        return cls(**values)

    def to_dict(self) -> Dict[str, float]:
        return {field.name: getattr(self, field.name) for field in fields(self)}


DEFAULT_PARAMS = CompressorParams()


def default_params(**overrides: float) -> CompressorParams:
    """
    Return the default parameter set, optionally with some fields replaced.

    Example:
        params = default_params(ratio=4.0, wet=0.5)
    """
    return replace(DEFAULT_PARAMS, **overrides)


class MeterMode(Enum):
    """How often the gain meter observer is notified."""
    CHUNK = "chunk"
    SAMPLE = "sample"
    OFF = "off"

    @classmethod
    def from_string(cls, mode_str: Union[str, None]) -> 'MeterMode':
        """
        Convert string to MeterMode, defaulting to CHUNK if None or invalid.
        """
        if mode_str is None:
            return cls.CHUNK

        mode_str_lower = mode_str.lower().strip()
        for mode in cls:
            if mode.value == mode_str_lower:
                return mode

        return cls.CHUNK
