"""
Soft-knee dynamics compressor with adaptive release and predelay.

The input is walked in chunks of SAMPLES_PER_CHUNK. At the start of every
chunk an envelope rate is chosen (attack or program-dependent release) from
the detector state left by the previous chunk; then every sample in the
chunk updates the detector, moves the compressor gain by that rate and
scales the predelayed dry signal.

Processing order per call:
1. Resolve parameters into sample-domain constants
2. Solve the knee curve (sndcomp.dsp.knee)
3. Calibrate the master gain at full scale
4. Fit the adaptive release curve (sndcomp.dsp.release_curve)
5. Run the envelope/gain engine over every whole chunk
"""
import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

from pydub import AudioSegment

from sndcomp.config import DEFAULT_PARAMS, CompressorParams, MeterMode
from sndcomp.dsp.delay import PredelayBuffer, predelay_length
from sndcomp.dsp.gain import clamp, db2lin, ieee_div, lin2db
from sndcomp.dsp.knee import CompressionCurve
from sndcomp.dsp.meter import GainMeter, MeterCallback
from sndcomp.dsp.release_curve import ReleaseCurve
from sndcomp.exceptions import AllocationError
from sndcomp.sound import Sound
from sndcomp.utils.logger import get_logger, log_performance

logger = get_logger(__name__)

SAMPLES_PER_CHUNK = 32
SATURATING_RELEASE_SEC = 0.0025
MASTER_GAIN_EXPONENT = 0.6
RELEASE_SPACING_DB = 5.0
SILENCE_FLOOR = 0.0001

# Substitute for a +inf or NaN gain difference in the attack branch
ATTACK_GREMLIN_DB = 1.0

_ANG90 = math.pi * 0.5
_ANG90_INV = 2.0 / math.pi


@dataclass(frozen=True)
class ResolvedParams:
    """Sample-domain constants derived once per call."""
    sample_rate: int
    linear_threshold: float
    slope: float
    attack_samples: float
    attack_samples_inv: float
    release_samples: float
    sat_release_samples_inv: float
    dry: float
    wet: float
    predelay_samples: int


def resolve_params(params: CompressorParams, sample_rate: int) -> ResolvedParams:
    """
    Convert dB/seconds/ratio parameters into linear and per-sample constants.

    No range checking is done: a zero ratio or attack produces inf here and
    propagates through the render.
    """
    attack_samples = sample_rate * params.attack
    return ResolvedParams(
        sample_rate=sample_rate,
        linear_threshold=db2lin(params.threshold),
        slope=ieee_div(1.0, params.ratio),
        attack_samples=attack_samples,
        attack_samples_inv=ieee_div(1.0, attack_samples),
        release_samples=sample_rate * params.release,
        sat_release_samples_inv=1.0 / (sample_rate * SATURATING_RELEASE_SEC),
        dry=1.0 - params.wet,
        wet=params.wet,
        predelay_samples=predelay_length(sample_rate, params.predelay),
    )


def calibrate_master_gain(curve: CompressionCurve, postgain: float) -> float:
    """
    Output gain that partly restores the level lost at full scale.

    The 0.6 exponent is an empirical loudness compensation.
    """
    full_level = curve(1.0)
    return db2lin(postgain) * math.pow(ieee_div(1.0, full_level), MASTER_GAIN_EXPONENT)


class EnvelopeMode(Enum):
    ATTACK = "attack"
    RELEASE = "release"


@dataclass
class EnvelopeState:
    """Running state carried from sample to sample and chunk to chunk."""
    detector_avg: float = 0.0
    comp_gain: float = 1.0
    max_comp_diff_db: Optional[float] = None
    scaled_desired_gain: float = 0.0
    envelope_rate: float = 1.0
    mode: EnvelopeMode = EnvelopeMode.RELEASE


class CompressorEngine:
    """
    Stateful compressor kernel for one buffer.

    Holds the derived constants, the predelay ring and the running envelope
    state. ``compress`` drives it chunk by chunk; callers that need to watch
    the detector or gain between chunks can drive it directly:

        with CompressorEngine(params, 44100) as engine:
            out_l, out_r = engine.process_chunk(left[:32], right[:32])
            print(engine.state.comp_gain)
    """

    def __init__(
        self,
        params: CompressorParams,
        sample_rate: int,
        meter: Optional[MeterCallback] = None,
        meter_mode: MeterMode = MeterMode.CHUNK,
    ):
        self.params = params
        self.resolved = resolve_params(params, sample_rate)
        self.curve = CompressionCurve(params.threshold, params.knee, params.ratio)
        self.master_gain = calibrate_master_gain(self.curve, params.postgain)
        self.release_curve = ReleaseCurve.fit(self.resolved.release_samples, params.release_zones)
        self.state = EnvelopeState()
        self.meter = GainMeter(sample_rate)
        self.meter_callback = meter
        self.meter_mode = meter_mode if meter is not None else MeterMode.OFF
        self.delay: Optional[PredelayBuffer] = PredelayBuffer(self.resolved.predelay_samples)

        logger.debug(
            f"Compressor resolved: rate={sample_rate}Hz, {self.curve}, "
            f"master_gain={self.master_gain:.4f}, predelay={self.resolved.predelay_samples} samples, "
            f"release_curve={self.release_curve}"
        )

    def __enter__(self) -> 'CompressorEngine':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Release the predelay ring."""
        self.delay = None

    @property
    def mode(self) -> EnvelopeMode:
        return self.state.mode

    def update_envelope_rate(self) -> float:
        """
        Choose the envelope rate for the next chunk.

        Compares the current gain with the gain the detector asks for. When
        the gain is below target the chunk releases along the adaptive curve;
        otherwise it attacks, remembering the largest correction seen since
        the last release.
        """
        state = self.state
        desired_gain = state.detector_avg
        scaled_desired_gain = math.asin(desired_gain) * _ANG90_INV
        # On the first chunk the detector is 0 and this is lin2db(1/0) = +inf
        comp_diff_db = lin2db(ieee_div(state.comp_gain, scaled_desired_gain))

        if comp_diff_db < 0.0:
            state.max_comp_diff_db = None
            # -inf clamps to -12 dB, the fastest release
            x = (clamp(comp_diff_db, -12.0, 0.0) + 12.0) * 0.25
            release_samples = self.release_curve(x)
            envelope_rate = db2lin(ieee_div(RELEASE_SPACING_DB, release_samples))
        else:
            # Keep the sticky maximum finite
            if not math.isfinite(comp_diff_db):
                comp_diff_db = ATTACK_GREMLIN_DB
            if state.max_comp_diff_db is None or state.max_comp_diff_db < comp_diff_db:
                state.max_comp_diff_db = comp_diff_db
            attenuate = state.max_comp_diff_db
            if attenuate < 0.5:
                attenuate = 0.5
            envelope_rate = 1.0 - math.pow(0.25 / attenuate, self.resolved.attack_samples_inv)

        state.scaled_desired_gain = scaled_desired_gain
        state.envelope_rate = envelope_rate
        state.mode = EnvelopeMode.ATTACK if envelope_rate < 1.0 else EnvelopeMode.RELEASE
        return envelope_rate

    def process_chunk(self, left: Sequence[float], right: Sequence[float]) -> Tuple[List[float], List[float]]:
        """
        Compress one chunk of samples.

        Args:
            left: Left channel samples (normally SAMPLES_PER_CHUNK of them)
            right: Right channel samples, same length as ``left``

        Returns:
            (left, right) lists of output samples
        """
        if self.delay is None:
            raise RuntimeError("CompressorEngine is closed")

        enveloperate = self.update_envelope_rate()
        attacking = enveloperate < 1.0

        state = self.state
        resolved = self.resolved
        curve = self.curve
        delay = self.delay
        meter = self.meter
        callback = self.meter_callback if self.meter_mode == MeterMode.SAMPLE else None

        detector_avg = state.detector_avg
        comp_gain = state.comp_gain
        scaled_desired_gain = state.scaled_desired_gain
        sat_inv = resolved.sat_release_samples_inv
        dry = resolved.dry
        wet_gain = resolved.wet * self.master_gain

        out_left = []
        out_right = []
        for in_l, in_r in zip(left, right):
            delay.write(in_l, in_r)

            # Linked sidechain: peak of both channels of the undelayed input
            input_max = max(abs(in_l), abs(in_r))
            if input_max < SILENCE_FLOOR:
                attenuation = 1.0
            else:
                attenuation = curve(input_max) / input_max

            if attenuation > detector_avg:
                attenuation_db = -lin2db(attenuation)
                if attenuation_db < 2.0:
                    attenuation_db = 2.0
                rate = db2lin(attenuation_db * sat_inv) - 1.0
            else:
                rate = 1.0

            detector_avg += (attenuation - detector_avg) * rate
            if detector_avg > 1.0:
                detector_avg = 1.0

            if attacking:
                comp_gain += (scaled_desired_gain - comp_gain) * enveloperate
            else:
                comp_gain *= enveloperate
                if comp_gain > 1.0:
                    comp_gain = 1.0

            premix_gain = math.sin(_ANG90 * comp_gain)
            gain = dry + wet_gain * premix_gain

            meter_db = meter.update(lin2db(premix_gain))
            if callback is not None:
                callback(meter_db)

            delayed_l, delayed_r = delay.read()
            out_left.append(delayed_l * gain)
            out_right.append(delayed_r * gain)

        state.detector_avg = detector_avg
        state.comp_gain = comp_gain

        if self.meter_mode == MeterMode.CHUNK:
            self.meter_callback(meter.value_db)

        return out_left, out_right


@log_performance
def compress(
    sound: Sound,
    params: CompressorParams = DEFAULT_PARAMS,
    meter: Optional[MeterCallback] = None,
    meter_mode: Union[MeterMode, str] = MeterMode.CHUNK,
) -> Sound:
    """
    Compress a stereo sound.

    Only whole chunks of SAMPLES_PER_CHUNK samples are processed; a trailing
    partial chunk is dropped, so the output holds
    ``(sound.size // 32) * 32`` samples at the input sample rate.

    Args:
        sound: Input sound (left untouched)
        params: Compressor parameters
        meter: Optional callable receiving the gain meter value in dB
        meter_mode: When to call ``meter``: per chunk, per sample, or never

    Returns:
        Newly allocated compressed Sound

    Raises:
        AllocationError: if the predelay ring or the output cannot be allocated
    """
    if isinstance(meter_mode, str):
        meter_mode = MeterMode.from_string(meter_mode)

    chunks = sound.size // SAMPLES_PER_CHUNK
    out_size = chunks * SAMPLES_PER_CHUNK
    if out_size < sound.size:
        logger.debug(f"Dropping {sound.size - out_size} trailing samples (partial chunk)")

    try:
        engine = CompressorEngine(params, sound.sample_rate, meter=meter, meter_mode=meter_mode)
    except AllocationError as exc:
        logger.error(f"Compressor setup failed: {exc}")
        raise

    with engine:
        try:
            output = Sound.new(sound.sample_rate, out_size)
        except AllocationError as exc:
            logger.error(f"Compressor output allocation failed: {exc}")
            raise

        left = sound.left[:out_size].tolist()
        right = sound.right[:out_size].tolist()
        for pos in range(0, out_size, SAMPLES_PER_CHUNK):
            end = pos + SAMPLES_PER_CHUNK
            out_left, out_right = engine.process_chunk(left[pos:end], right[pos:end])
            output.samples[pos:end, 0] = out_left
            output.samples[pos:end, 1] = out_right

    return output


def compress_audiosegment(
    audio: AudioSegment,
    params: CompressorParams = DEFAULT_PARAMS,
    meter: Optional[MeterCallback] = None,
    meter_mode: Union[MeterMode, str] = MeterMode.CHUNK,
) -> AudioSegment:
    """
    Compress an AudioSegment.

    This is DSP-only: AudioSegment -> AudioSegment. Mono input is processed
    as dual-mono and folded back to mono; sample width and rate are kept.
    """
    sound = Sound.from_audiosegment(audio)
    compressed = compress(sound, params, meter=meter, meter_mode=meter_mode)
    return compressed.to_audiosegment(sample_width=audio.sample_width, channels=audio.channels)
