"""
Scalar gain helpers shared by the compressor stages.

All helpers follow IEEE float semantics instead of raising: dividing by
zero yields a signed infinity (or NaN for 0/0), and the log of zero is -inf.
Out-of-range parameters therefore propagate as inf/NaN through the
pipeline rather than aborting the render.
"""
import math

INF = float("inf")
NAN = float("nan")


def db2lin(db: float) -> float:
    """Decibels to linear amplitude: 10^(db/20)."""
    try:
        return math.pow(10.0, 0.05 * db)
    except OverflowError:
        return INF


def lin2db(lin: float) -> float:
    """Linear amplitude to decibels: 20*log10(lin)."""
    if lin > 0.0:
        return 20.0 * math.log10(lin)
    if lin == 0.0:
        return -INF
    return NAN


def ieee_div(num: float, den: float) -> float:
    """num / den, returning inf/NaN where Python would raise ZeroDivisionError."""
    try:
        return num / den
    except ZeroDivisionError:
        if num == 0.0 or math.isnan(num):
            return NAN
        return math.copysign(INF, num) * math.copysign(1.0, den)


def clamp(value: float, low: float, high: float) -> float:
    return low if value < low else (high if value > high else value)


def safe_exp(x: float) -> float:
    """e^x, saturating to inf instead of raising OverflowError."""
    try:
        return math.exp(x)
    except OverflowError:
        return INF
