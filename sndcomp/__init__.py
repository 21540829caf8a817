"""
sndcomp: soft-knee dynamics compressor with adaptive release.
"""
from .config import DEFAULT_PARAMS, CompressorParams, MeterMode, default_params
from .dsp.compressor import CompressorEngine, compress, compress_audiosegment
from .dsp.meter import GainMeterLog
from .exceptions import AllocationError, DSPError, SndCompError, ValidationError
from .sound import Sound
from .validation import validate_params

__version__ = "0.1.0"

__all__ = [
    'DEFAULT_PARAMS',
    'CompressorParams',
    'MeterMode',
    'default_params',
    'CompressorEngine',
    'compress',
    'compress_audiosegment',
    'GainMeterLog',
    'AllocationError',
    'DSPError',
    'SndCompError',
    'ValidationError',
    'Sound',
    'validate_params',
]
