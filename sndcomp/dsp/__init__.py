# DSP Module exports
from sndcomp.dsp.compressor import (
    SAMPLES_PER_CHUNK,
    CompressorEngine,
    EnvelopeMode,
    EnvelopeState,
    ResolvedParams,
    calibrate_master_gain,
    compress,
    compress_audiosegment,
    resolve_params,
)
from sndcomp.dsp.knee import CompressionCurve, KneeSolution, knee_curve, knee_slope, solve_knee
from sndcomp.dsp.meter import GainMeter, GainMeterLog
from sndcomp.dsp.release_curve import ReleaseCurve
