import math
from typing import List

from sndcomp.config import CompressorParams
from sndcomp.exceptions import ValidationError
from sndcomp.utils.logger import get_logger

logger = get_logger(__name__)


# Recommended ranges; values outside them only produce warnings
RECOMMENDED_RANGES = {
    "threshold": (-100.0, 0.0),
    "knee": (0.0, 40.0),
    "ratio": (1.0, 20.0),
    "attack": (0.0, 1.0),
    "release": (0.0, 1.0),
}


def validate_params(params: CompressorParams) -> List[str]:
    """
    Opt-in check of compressor parameters before calling ``compress``.

    The compressor never validates on its own; out-of-range values simply
    propagate as inf/NaN. Call this from the caller side when that is not
    acceptable.

    Returns:
        List of warnings for values outside the recommended ranges

    Raises:
        ValidationError: for values that make the output undefined
    """
    errors = []
    warnings = []

    for name, value in params.to_dict().items():
        if not math.isfinite(value):
            errors.append(f"'{name}' must be finite, got {value}")

    if errors:
        raise ValidationError(
            "Validation Failed : \n" + "\n".join(errors)
        )

    # Hard errors

    if params.ratio <= 0:
        errors.append(f"ratio must be positive, got {params.ratio}")
    if params.knee < 0:
        errors.append(f"knee must not be negative, got {params.knee}")
    if params.attack < 0:
        errors.append(f"attack must not be negative, got {params.attack}")
    if params.release <= 0:
        errors.append(f"release must be positive, got {params.release}")
    if params.predelay < 0:
        errors.append(f"predelay must not be negative, got {params.predelay}")
    if not 0.0 <= params.wet <= 1.0:
        errors.append(f"wet must be within [0, 1], got {params.wet}")

    if errors:
        raise ValidationError(
            "Validation Failed : \n" + "\n".join(errors)
        )

    # Soft range checks

    for name, (low, high) in RECOMMENDED_RANGES.items():
        value = getattr(params, name)
        if value < low or value > high:
            warnings.append(
                f"{name}={value} is outside the recommended range [{low}, {high}]"
            )

    zones = params.release_zones
    if any(later <= earlier for earlier, later in zip(zones, zones[1:])):
        warnings.append(f"release zones should be increasing, got {zones}")
    if any(zone < 0.0 or zone > 1.0 for zone in zones):
        warnings.append(f"release zones should lie within [0, 1], got {zones}")

    for warning in warnings:
        logger.warning(warning)

    return warnings
