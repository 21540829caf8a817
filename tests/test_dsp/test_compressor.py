"""
Tests for the compressor transform and its envelope engine.
"""
import math

import numpy as np
import pyloudnorm as pyln
import pytest
from scipy import signal

from sndcomp import Sound, compress, default_params
from sndcomp.config import DEFAULT_PARAMS, MeterMode
from sndcomp.dsp.compressor import (
    SAMPLES_PER_CHUNK,
    CompressorEngine,
    EnvelopeMode,
    calibrate_master_gain,
    resolve_params,
)
from sndcomp.dsp.gain import db2lin
from sndcomp.dsp.knee import CompressionCurve
from sndcomp.dsp.meter import GainMeterLog
from sndcomp.exceptions import AllocationError

SR = 44100


def make_noise(num_samples: int, seed: int = 1) -> Sound:
    rng = np.random.default_rng(seed)
    return Sound.from_array(rng.uniform(-1.0, 1.0, (num_samples, 2)), SR)


def make_square_tone(num_samples: int, freq_hz: float = 100.0, amplitude: float = 1.0) -> Sound:
    t = np.arange(num_samples) / SR
    tone = amplitude * signal.square(2 * np.pi * freq_hz * t)
    return Sound.from_array(tone, SR)


def steady_level(sound: Sound, tail: int = 4096) -> float:
    return float(np.mean(np.abs(sound.samples[-tail:])))


def test_output_length_is_whole_chunks():
    """Output length is 32 * floor(n / 32) for any n."""
    for n in (0, 1, 31, 32, 33, 63, 64, 100, 1000):
        out = compress(make_noise(n), DEFAULT_PARAMS)
        assert len(out) == (n // SAMPLES_PER_CHUNK) * SAMPLES_PER_CHUNK, f"wrong length for n={n}"
        assert out.sample_rate == SR
        assert out.samples.shape[1] == 2
    print("✓ Output length follows the chunk law")


def test_truncation_drops_partial_chunk():
    out = compress(make_noise(50), DEFAULT_PARAMS)
    assert len(out) == 32, "50 samples in should give 32 samples out"


def test_silence_stays_silent():
    sound = Sound.new(SR, 64)
    engine = CompressorEngine(DEFAULT_PARAMS, SR)
    assert engine.resolved.predelay_samples == 264

    out = compress(sound, DEFAULT_PARAMS)
    assert len(out) == 64
    assert np.all(out.samples == 0.0)
    assert math.isfinite(engine.master_gain)
    print("✓ Silence in, silence out")


def test_input_is_not_modified():
    sound = make_noise(256)
    before = sound.samples.copy()
    compress(sound, DEFAULT_PARAMS)
    assert np.array_equal(sound.samples, before)


def test_dry_mix_is_pure_delay():
    """With wet=0 the output is the input delayed by the predelay ring."""
    sound = make_noise(1024, seed=7)
    params = default_params(wet=0.0)
    delay = resolve_params(params, SR).predelay_samples - 1
    assert delay == 263

    out = compress(sound, params)
    assert np.array_equal(out.samples[delay:], sound.samples[:len(out) - delay])
    assert np.all(out.samples[:delay] == 0.0)
    print(f"✓ Bypass mix equals input delayed by {delay} samples")


def test_zero_predelay_is_not_delayed():
    sound = make_noise(128, seed=3)
    out = compress(sound, default_params(wet=0.0, predelay=0.0))
    assert np.array_equal(out.samples, sound.samples)


def test_detector_and_gain_stay_bounded():
    """Detector stays in [0, 1] and gain in (0, 1] for full-range input."""
    sound = make_noise(SR // 2, seed=11)
    left = sound.left.tolist()
    right = sound.right.tolist()

    with CompressorEngine(DEFAULT_PARAMS, SR) as engine:
        for pos in range(0, len(sound) - SAMPLES_PER_CHUNK + 1, SAMPLES_PER_CHUNK):
            engine.process_chunk(left[pos:pos + SAMPLES_PER_CHUNK], right[pos:pos + SAMPLES_PER_CHUNK])
            state = engine.state
            assert 0.0 <= state.detector_avg <= 1.0, f"detector out of range at {pos}"
            assert 0.0 < state.comp_gain <= 1.0, f"gain out of range at {pos}"
    print("✓ Detector and gain stay within bounds")


def test_first_chunk_attacks_from_zero_detector():
    """The first chunk sees a zero detector and starts in attack mode."""
    engine = CompressorEngine(DEFAULT_PARAMS, SR)
    rate = engine.update_envelope_rate()
    assert engine.mode == EnvelopeMode.ATTACK
    assert engine.state.max_comp_diff_db == 1.0
    assert 0.0 < rate < 1.0
    assert engine.state.scaled_desired_gain == 0.0


def test_release_resets_attack_memory():
    engine = CompressorEngine(DEFAULT_PARAMS, SR)
    engine.state.max_comp_diff_db = 6.0
    engine.state.detector_avg = 1.0
    engine.state.comp_gain = 0.5
    rate = engine.update_envelope_rate()
    assert engine.mode == EnvelopeMode.RELEASE
    assert engine.state.max_comp_diff_db is None
    assert rate > 1.0


def test_zero_gain_takes_fastest_release():
    """A -inf gain difference clamps to the bottom of the release curve."""
    engine = CompressorEngine(DEFAULT_PARAMS, SR)
    engine.state.comp_gain = 0.0
    engine.state.detector_avg = 0.5
    rate = engine.update_envelope_rate()

    assert engine.mode == EnvelopeMode.RELEASE
    expected = db2lin(5.0 / engine.release_curve(0.0))
    assert math.isclose(rate, expected, rel_tol=1e-12), f"expected {expected}, got {rate}"
    print("✓ Zero gain releases along the fastest zone")


def test_attack_memory_is_sticky():
    engine = CompressorEngine(DEFAULT_PARAMS, SR)
    engine.state.detector_avg = 0.5
    engine.state.comp_gain = 1.0
    engine.update_envelope_rate()
    first = engine.state.max_comp_diff_db

    engine.state.comp_gain = 0.5
    engine.update_envelope_rate()
    assert engine.mode == EnvelopeMode.ATTACK
    assert engine.state.max_comp_diff_db == first, "smaller corrections keep the maximum"


def test_full_scale_tone_is_compressed():
    """Full-scale input comes out quieter, more so for a higher ratio."""
    tone = make_square_tone(SR)

    out_default = compress(tone, DEFAULT_PARAMS)
    out_gentle = compress(tone, default_params(ratio=4.0))
    out_strict = compress(tone, default_params(ratio=20.0))

    level_default = steady_level(out_default)
    level_gentle = steady_level(out_gentle)
    level_strict = steady_level(out_strict)

    assert level_default < 1.0
    assert level_strict < level_gentle, "higher ratio should reduce more"

    # Steady state: premix gain tracks curve(1), scaled by the master gain
    expected = CompressionCurve(-24.0, 30.0, 12.0)(1.0) ** 0.4
    assert abs(level_default - expected) < 0.02
    print(f"✓ Steady level {level_default:.3f} (4:1 {level_gentle:.3f}, 20:1 {level_strict:.3f})")


def test_compression_lowers_loudness():
    tone = make_square_tone(SR, freq_hz=220.0)
    out = compress(tone, DEFAULT_PARAMS)

    meter = pyln.Meter(SR)
    loudness_in = meter.integrated_loudness(tone.samples[:len(out)].astype(np.float64))
    loudness_out = meter.integrated_loudness(out.samples.astype(np.float64))
    assert loudness_out < loudness_in - 1.0


def test_quiet_signal_only_gets_master_gain():
    """Below threshold the gain settles at the master gain."""
    tone = make_square_tone(2 * SR, amplitude=db2lin(-40.0))
    out = compress(tone, DEFAULT_PARAMS)
    engine = CompressorEngine(DEFAULT_PARAMS, SR)
    expected = db2lin(-40.0) * engine.master_gain
    assert abs(steady_level(out) - expected) < expected * 0.01


def test_postgain_scales_output():
    tone = make_square_tone(4096)
    base = steady_level(compress(tone, DEFAULT_PARAMS))
    boosted = steady_level(compress(tone, default_params(postgain=6.0)))
    assert abs(boosted / base - db2lin(6.0)) < 1e-3


def test_compress_is_deterministic():
    sound = make_noise(2048, seed=5)
    a = compress(sound, DEFAULT_PARAMS)
    b = compress(sound, DEFAULT_PARAMS)
    assert np.array_equal(a.samples, b.samples)


def test_meter_modes():
    sound = make_noise(32 * 10)

    per_chunk = GainMeterLog()
    compress(sound, DEFAULT_PARAMS, meter=per_chunk)
    assert len(per_chunk) == 10

    per_sample = GainMeterLog()
    compress(sound, DEFAULT_PARAMS, meter=per_sample, meter_mode="sample")
    assert len(per_sample) == 320
    assert per_sample.readings[31::32] == per_chunk.readings, "chunk readings are the last sample's"

    silent = GainMeterLog()
    compress(sound, DEFAULT_PARAMS, meter=silent, meter_mode=MeterMode.OFF)
    assert len(silent) == 0
    print("✓ Meter can report per chunk, per sample, or not at all")


def test_meter_does_not_change_output():
    sound = make_noise(1024)
    with_meter = compress(sound, DEFAULT_PARAMS, meter=GainMeterLog(), meter_mode=MeterMode.SAMPLE)
    without = compress(sound, DEFAULT_PARAMS)
    assert np.array_equal(with_meter.samples, without.samples)


def test_meter_reports_gain_reduction():
    log = GainMeterLog()
    compress(make_square_tone(8192), DEFAULT_PARAMS, meter=log)
    assert log.last_db < 0.0


def test_resolved_constants():
    resolved = resolve_params(DEFAULT_PARAMS, SR)
    assert abs(resolved.linear_threshold - db2lin(-24.0)) < 1e-12
    assert abs(resolved.slope - 1.0 / 12.0) < 1e-12
    assert abs(resolved.attack_samples - 132.3) < 1e-9
    assert abs(resolved.release_samples - 11025.0) < 1e-9
    assert abs(resolved.sat_release_samples_inv - 1.0 / 110.25) < 1e-12
    assert resolved.dry == 0.0


def test_master_gain_calibration():
    curve = CompressionCurve(-24.0, 30.0, 12.0)
    full_level = curve(1.0)
    assert 0.0 < full_level < 1.0
    master = calibrate_master_gain(curve, 0.0)
    assert abs(master - full_level ** -0.6) < 1e-12
    assert abs(calibrate_master_gain(curve, 6.0) / master - db2lin(6.0)) < 1e-12


def test_out_of_range_params_do_not_raise():
    """Invalid parameters are not validated; they propagate numerically."""
    out = compress(make_noise(64), default_params(attack=0.0, release=0.0, ratio=0.0))
    assert len(out) == 64


def test_output_allocation_failure(monkeypatch):
    closed = []
    original_close = CompressorEngine.close

    def tracking_close(self):
        closed.append(True)
        original_close(self)

    def failing_new(cls, sample_rate, size):
        raise AllocationError("no memory")

    monkeypatch.setattr(CompressorEngine, "close", tracking_close)
    monkeypatch.setattr(Sound, "new", classmethod(failing_new))

    with pytest.raises(AllocationError):
        compress(make_noise(64), DEFAULT_PARAMS)
    assert closed, "predelay ring should be released on failure"


def test_predelay_allocation_failure(monkeypatch):
    import sndcomp.dsp.delay as delay_module

    sound = make_noise(64)

    def failing_zeros(*args, **kwargs):
        raise MemoryError

    monkeypatch.setattr(delay_module.np, "zeros", failing_zeros)
    with pytest.raises(AllocationError):
        compress(sound, DEFAULT_PARAMS)


def test_closed_engine_refuses_work():
    engine = CompressorEngine(DEFAULT_PARAMS, SR)
    engine.close()
    with pytest.raises(RuntimeError):
        engine.process_chunk([0.0] * 32, [0.0] * 32)


if __name__ == "__main__":
    test_output_length_is_whole_chunks()
    test_truncation_drops_partial_chunk()
    test_silence_stays_silent()
    test_dry_mix_is_pure_delay()
    test_detector_and_gain_stay_bounded()
    test_full_scale_tone_is_compressed()
    test_meter_modes()
