"""Primal objectives for L2-regularised linear models, minimised by Tron."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

from sparselinear.tron import Objective
from sparselinear.types import FeatureRow, Problem


def _row_dot(v: Sequence[float], row: FeatureRow) -> float:
    """Inner product of a dense vector with one sparse row."""
    return sum(v[index - 1] * value for index, value in row)


def _xtv(n: int, rows: Iterable[FeatureRow], coeffs: Iterable[float]) -> list[float]:
    """Return ``X^T v`` for the given rows and per-row coefficients."""
    out = [0.0] * n
    for row, coeff in zip(rows, coeffs):
        for index, value in row:
            out[index - 1] += coeff * value
    return out


def _sigmoid(t: float) -> float:
    try:
        return 1.0 / (1.0 + math.exp(-t))
    except OverflowError:
        return 0.0


def _check_costs(problem: Problem, C: Sequence[float]) -> list[float]:
    costs = list(C)
    if len(costs) != problem.l:
        raise ValueError("one cost per instance is required")
    return costs


class LogisticObjective(Objective):
    """L2-regularised logistic regression: 0.5|w|^2 + sum C_i log(1+exp(-y_i w.x_i))."""

    def __init__(self, problem: Problem, C: Sequence[float]) -> None:
        self.problem = problem
        self.C = _check_costs(problem, C)
        self._z = [0.0] * problem.l
        self._D = [0.0] * problem.l

    def nr_variable(self) -> int:
        return self.problem.n

    def fun(self, w: Sequence[float]) -> float:
        self._z = [_row_dot(w, row) for row in self.problem.x]
        f = sum(v * v for v in w) / 2.0
        for c, y, z in zip(self.C, self.problem.y, self._z):
            yz = y * z
            if yz >= 0:
                f += c * math.log(1 + math.exp(-yz))
            else:
                f += c * (-yz + math.log(1 + math.exp(yz)))
        return f

    def grad(self, w: Sequence[float]) -> list[float]:
        coeffs = []
        self._D = []
        for c, y, z in zip(self.C, self.problem.y, self._z):
            sig = _sigmoid(y * z)
            self._D.append(sig * (1 - sig))
            coeffs.append(c * (sig - 1) * y)
        g = _xtv(self.problem.n, self.problem.x, coeffs)
        return [wi + gi for wi, gi in zip(w, g)]

    def hv(self, s: Sequence[float]) -> list[float]:
        wa = [
            c * d * _row_dot(s, row)
            for c, d, row in zip(self.C, self._D, self.problem.x)
        ]
        hs = _xtv(self.problem.n, self.problem.x, wa)
        return [si + hi for si, hi in zip(s, hs)]


class L2SvcObjective(Objective):
    """L2-regularised squared hinge loss: 0.5|w|^2 + sum C_i max(0, 1-y_i w.x_i)^2."""

    def __init__(self, problem: Problem, C: Sequence[float]) -> None:
        self.problem = problem
        self.C = _check_costs(problem, C)
        self._z = [0.0] * problem.l
        self._active: list[int] = []

    def nr_variable(self) -> int:
        return self.problem.n

    def _sub_xtv(self, coeffs: Sequence[float]) -> list[float]:
        rows = (self.problem.x[i] for i in self._active)
        return _xtv(self.problem.n, rows, coeffs)

    def fun(self, w: Sequence[float]) -> float:
        self._z = [y * _row_dot(w, row) for y, row in zip(self.problem.y, self.problem.x)]
        f = sum(v * v for v in w) / 2.0
        for c, z in zip(self.C, self._z):
            d = 1 - z
            if d > 0:
                f += c * d * d
        return f

    def grad(self, w: Sequence[float]) -> list[float]:
        self._active = []
        coeffs = []
        for i, (c, y, z) in enumerate(zip(self.C, self.problem.y, self._z)):
            if z < 1:
                coeffs.append(c * y * (z - 1))
                self._active.append(i)
        g = self._sub_xtv(coeffs)
        return [wi + 2 * gi for wi, gi in zip(w, g)]

    def hv(self, s: Sequence[float]) -> list[float]:
        wa = [self.C[i] * _row_dot(s, self.problem.x[i]) for i in self._active]
        hs = self._sub_xtv(wa)
        return [si + 2 * hi for si, hi in zip(s, hs)]


class L2SvrObjective(L2SvcObjective):
    """L2-regularised squared epsilon-insensitive loss for regression."""

    def __init__(self, problem: Problem, C: Sequence[float], p: float) -> None:
        super().__init__(problem, C)
        self.p = p

    def fun(self, w: Sequence[float]) -> float:
        self._z = [_row_dot(w, row) for row in self.problem.x]
        f = sum(v * v for v in w) / 2
        p = self.p
        for c, y, z in zip(self.C, self.problem.y, self._z):
            d = z - y
            if d < -p:
                f += c * (d + p) * (d + p)
            elif d > p:
                f += c * (d - p) * (d - p)
        return f

    def grad(self, w: Sequence[float]) -> list[float]:
        self._active = []
        coeffs = []
        p = self.p
        for i, (c, y, z) in enumerate(zip(self.C, self.problem.y, self._z)):
            d = z - y
            if d < -p:
                coeffs.append(c * (d + p))
                self._active.append(i)
            elif d > p:
                coeffs.append(c * (d - p))
                self._active.append(i)
        g = self._sub_xtv(coeffs)
        return [wi + 2 * gi for wi, gi in zip(w, g)]