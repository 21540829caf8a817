"""
Custom exception classes for sndcomp.
"""


class SndCompError(Exception):
    """Base exception for all sndcomp errors."""
    pass


class DSPError(SndCompError):
    """Raised when DSP (Digital Signal Processing) operations fail."""
    pass


class AllocationError(DSPError):
    """Raised when the predelay buffer or the output sound cannot be allocated."""
    pass


class ValidationError(SndCompError):
    """Raised when compressor parameter validation fails."""
    pass


__all__ = ['SndCompError', 'DSPError', 'AllocationError', 'ValidationError']
