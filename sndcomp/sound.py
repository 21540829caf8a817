"""
Stereo sound buffer used as input and output of the compressor.
"""
from dataclasses import dataclass

import numpy as np
from pydub import AudioSegment

from sndcomp.exceptions import AllocationError


_INT_DTYPES = {1: np.int8, 2: np.int16, 4: np.int32}


@dataclass(eq=False)
class Sound:
    """
    A finite stereo buffer.

    ``samples`` is a float32 array of shape (size, 2); column 0 is the left
    channel, column 1 the right. Amplitudes are nominally in [-1, 1].
    """
    sample_rate: int
    samples: np.ndarray

    def __post_init__(self):
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.samples.ndim != 2 or self.samples.shape[1] != 2:
            raise ValueError(f"samples must have shape (n, 2), got {self.samples.shape}")

    @classmethod
    def new(cls, sample_rate: int, size: int) -> 'Sound':
        """Allocate a silent sound of ``size`` stereo samples."""
        try:
            samples = np.zeros((size, 2), dtype=np.float32)
        except MemoryError as exc:
            raise AllocationError(f"Cannot allocate sound of {size} samples") from exc
        return cls(sample_rate=sample_rate, samples=samples)

    @classmethod
    def from_array(cls, samples: np.ndarray, sample_rate: int) -> 'Sound':
        """
        Wrap a numpy array as a Sound.

        Mono input of shape (n,) or (n, 1) is duplicated to both channels.
        """
        samples = np.asarray(samples, dtype=np.float32)
        if samples.ndim == 1:
            samples = np.column_stack((samples, samples))
        elif samples.ndim == 2 and samples.shape[1] == 1:
            samples = np.repeat(samples, 2, axis=1)
        elif samples.ndim != 2 or samples.shape[1] != 2:
            raise ValueError(f"Only mono or stereo audio is supported, got shape {samples.shape}")
        return cls(sample_rate=sample_rate, samples=np.ascontiguousarray(samples))

    @classmethod
    def from_audiosegment(cls, audio: AudioSegment) -> 'Sound':
        """
        Convert an AudioSegment to a Sound with samples normalized to [-1, 1].
        """
        if audio is None:
            raise ValueError("Cannot convert to Sound: audio is None")
        if audio.channels > 2:
            raise ValueError(f"Only mono or stereo audio is supported, got {audio.channels} channels")

        samples = np.array(audio.get_array_of_samples(), dtype=np.float32)
        if audio.channels > 1:
            samples = samples.reshape((-1, audio.channels))

        max_val = float(2 ** (8 * audio.sample_width - 1))
        return cls.from_array(samples / max_val, audio.frame_rate)

    def to_audiosegment(self, sample_width: int = 2, channels: int = 2) -> AudioSegment:
        """
        Convert back to an AudioSegment.

        Args:
            sample_width: Bytes per sample (1, 2, or 4)
            channels: 2 for stereo, 1 to fold down to the left/right average
        """
        samples = np.clip(self.samples.astype(np.float64), -1.0, 1.0)
        if channels == 1:
            samples = samples.mean(axis=1)
        else:
            samples = samples.flatten()

        dtype = _INT_DTYPES.get(sample_width, np.int16)
        max_val = 2 ** (8 * sample_width - 1) - 1
        # float32 rounds 2**31 - 1 up to 2**31, which wraps on the int32 cast
        samples_int = np.clip(samples * max_val, -max_val - 1, max_val).astype(dtype)

        return AudioSegment(
            data=samples_int.tobytes(),
            sample_width=sample_width,
            frame_rate=self.sample_rate,
            channels=channels
        )

    @property
    def size(self) -> int:
        return int(self.samples.shape[0])

    @property
    def left(self) -> np.ndarray:
        return self.samples[:, 0]

    @property
    def right(self) -> np.ndarray:
        return self.samples[:, 1]

    def __len__(self) -> int:
        return self.size
