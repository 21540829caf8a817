"""
Soft-knee compression curve.

Within the knee the curve follows

    knee_curve(x) = T + (1 - e^(-k(x - T))) / k

which starts at the threshold T with slope 1 and bends down toward the
macro slope 1/ratio. The shape constant k is searched so the slope at the
top of the knee matches 1/ratio; above the knee the curve continues as a
straight line in dB.
"""
import math
from dataclasses import dataclass

from sndcomp.dsp.gain import db2lin, ieee_div, lin2db, safe_exp

KNEE_SEARCH_MIN_K = 0.1
KNEE_SEARCH_MAX_K = 10000.0
KNEE_SEARCH_ITERATIONS = 15
KNEE_INITIAL_K = 5.0


def knee_curve(x: float, k: float, linear_threshold: float) -> float:
    return linear_threshold + (1.0 - safe_exp(-k * (x - linear_threshold))) / k


def knee_slope(x: float, k: float, linear_threshold: float) -> float:
    return ieee_div(
        k * x,
        (k * linear_threshold + 1.0) * safe_exp(k * (x - linear_threshold)) - 1.0
    )


@dataclass(frozen=True)
class KneeSolution:
    k: float
    knee_db_offset: float
    linear_threshold_knee: float


def solve_knee(threshold: float, knee: float, linear_threshold: float, slope: float) -> KneeSolution:
    """
    Find the knee shape constant k by log-space bisection.

    Always runs exactly KNEE_SEARCH_ITERATIONS refinements starting from
    KNEE_INITIAL_K.

    Args:
        threshold: Threshold in dB
        knee: Knee width in dB (> 0)
        linear_threshold: Threshold as linear amplitude
        slope: Target slope above the knee (1 / ratio)

    Returns:
        KneeSolution with k, the curve level in dB at the top of the knee and
        the top of the knee as linear amplitude
    """
    x_knee = db2lin(threshold + knee)
    min_k = KNEE_SEARCH_MIN_K
    max_k = KNEE_SEARCH_MAX_K
    k = KNEE_INITIAL_K
    for _ in range(KNEE_SEARCH_ITERATIONS):
        if knee_slope(x_knee, k, linear_threshold) < slope:
            max_k = k
        else:
            min_k = k
        k = math.sqrt(min_k * max_k)

    return KneeSolution(
        k=k,
        knee_db_offset=lin2db(knee_curve(x_knee, k, linear_threshold)),
        linear_threshold_knee=x_knee,
    )


class CompressionCurve:
    """
    Composite static curve: identity below the threshold, soft knee, then
    dB-linear at 1/ratio. With ``knee <= 0`` it is a hard-threshold curve.
    """

    def __init__(self, threshold: float, knee: float, ratio: float):
        self.threshold = threshold
        self.knee = knee
        self.slope = ieee_div(1.0, ratio)
        self.linear_threshold = db2lin(threshold)

        if knee > 0.0:
            solution = solve_knee(threshold, knee, self.linear_threshold, self.slope)
        else:
            solution = KneeSolution(k=KNEE_INITIAL_K, knee_db_offset=0.0, linear_threshold_knee=0.0)
        self.k = solution.k
        self.knee_db_offset = solution.knee_db_offset
        self.linear_threshold_knee = solution.linear_threshold_knee

    def __call__(self, x: float) -> float:
        if x < self.linear_threshold:
            return x
        if self.knee <= 0.0:
            return db2lin(self.threshold + self.slope * (lin2db(x) - self.threshold))
        if x < self.linear_threshold_knee:
            return knee_curve(x, self.k, self.linear_threshold)
        return db2lin(self.knee_db_offset + self.slope * (lin2db(x) - self.threshold - self.knee))

    def __repr__(self) -> str:
        return (
            f"CompressionCurve(threshold={self.threshold}, knee={self.knee}, "
            f"slope={self.slope:.4f}, k={self.k:.4f})"
        )
