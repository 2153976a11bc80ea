"""Dense vector helpers used by the trust-region solver."""

from __future__ import annotations

import math
from collections.abc import Sequence


def dnrm2(x: Sequence[float]) -> float:
    """Euclidean norm, computed with scaling to avoid overflow."""
    if not x:
        return 0.0
    if len(x) == 1:
        return abs(x[0])
    scale = 0.0
    ssq = 1.0
    for value in reversed(x):
        if value != 0.0:
            absxi = abs(value)
            if scale < absxi:
                temp = scale / absxi
                ssq = ssq * (temp * temp) + 1.0
                scale = absxi
            else:
                temp = absxi / scale
                ssq += temp * temp
    return scale * math.sqrt(ssq)


def ddot(x: Sequence[float], y: Sequence[float]) -> float:
    """Dot product of two vectors of equal length."""
    return math.fsum(a * b for a, b in zip(x, y, strict=True)) if x or y else 0.0


def daxpy(alpha: float, x: Sequence[float], y: Sequence[float]) -> list[float]:
    """Return ``alpha * x + y`` as a new list."""
    if len(x) != len(y):
        raise ValueError("vectors differ in length")
    if alpha == 0.0:
        return list(y)
    return [b + alpha * a for a, b in zip(x, y)]


def dscal(alpha: float, x: Sequence[float]) -> list[float]:
    """Return ``alpha * x`` as a new list."""
    return [alpha * a for a in x]