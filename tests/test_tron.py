import math

import pytest

from sparselinear.tron import Objective, Tron


class Quadratic(Objective):
    """f(w) = 0.5 * sum(a_i w_i^2) - sum(b_i w_i) with a diagonal Hessian."""

    def __init__(self, a, b):
        self.a = a
        self.b = b
        self.hv_calls = 0

    def fun(self, w):
        return sum(0.5 * ai * wi * wi - bi * wi for ai, bi, wi in zip(self.a, self.b, w))

    def grad(self, w):
        return [ai * wi - bi for ai, bi, wi in zip(self.a, self.b, w)]

    def hv(self, s):
        self.hv_calls += 1
        return [ai * si for ai, si in zip(self.a, s)]

    def nr_variable(self):
        return len(self.a)


class Smooth(Objective):
    """f(w) = sum(log(cosh(w_i - c_i))) + 0.5 * |w|^2, strictly convex."""

    def __init__(self, c):
        self.c = c
        self.w = None

    def fun(self, w):
        return sum(math.log(math.cosh(wi - ci)) for wi, ci in zip(w, self.c)) + 0.5 * sum(
            wi * wi for wi in w
        )

    def grad(self, w):
        self.w = list(w)
        return [math.tanh(wi - ci) + wi for wi, ci in zip(w, self.c)]

    def hv(self, s):
        return [
            (1.0 - math.tanh(wi - ci) ** 2 + 1.0) * si
            for wi, ci, si in zip(self.w, self.c, s)
        ]

    def nr_variable(self):
        return len(self.c)


def _quiet(_text):
    pass


def test_quadratic_minimum_is_found():
    obj = Quadratic([2.0, 4.0], [2.0, 8.0])
    w = Tron(obj, eps=1e-10, printer=_quiet).solve()
    assert w == pytest.approx([1.0, 2.0], abs=1e-6)


def test_gradient_vanishes_at_solution():
    obj = Smooth([3.0, -2.0, 0.5, 10.0])
    w = Tron(obj, eps=1e-8, printer=_quiet).solve()
    g = obj.grad(w)
    assert Tron.norm_inf(g) < 1e-6


def test_solution_decreases_objective():
    obj = Smooth([1.0, -4.0, 2.0])
    start = obj.fun([0.0, 0.0, 0.0])
    w = Tron(obj, eps=1e-3, printer=_quiet).solve()
    assert obj.fun(w) < start


def test_zero_gradient_stops_immediately():
    obj = Quadratic([1.0, 1.0, 1.0], [0.0, 0.0, 0.0])
    lines = []
    w = Tron(obj, printer=lines.append).solve()
    assert w == [0.0, 0.0, 0.0]
    assert obj.hv_calls == 0
    assert lines == []


def test_zero_max_iter_returns_start():
    obj = Quadratic([1.0, 3.0], [1.0, 1.0])
    w = Tron(obj, max_iter=0, printer=_quiet).solve()
    assert w == [0.0, 0.0]


def test_progress_lines_are_reported():
    obj = Smooth([5.0, -5.0])
    lines = []
    Tron(obj, eps=1e-4, printer=lines.append).solve()
    iter_lines = [line for line in lines if line.startswith("iter")]
    assert iter_lines
    assert iter_lines[0].startswith("iter  1 act ")
    assert all(line.endswith("\n") for line in lines)


def test_looser_tolerance_uses_no_more_iterations():
    loose, tight = [], []
    Tron(Smooth([4.0, -3.0, 2.0]), eps=1e-1, printer=loose.append).solve()
    Tron(Smooth([4.0, -3.0, 2.0]), eps=1e-8, printer=tight.append).solve()
    count = lambda lines: sum(1 for line in lines if line.startswith("iter"))  # noqa: E731
    assert count(loose) <= count(tight)


def test_norm_inf_picks_largest_magnitude():
    assert Tron.norm_inf([1.0, -7.0, 3.0]) == 7.0
    assert Tron.norm_inf([-2.5]) == 2.5


def test_norm_inf_empty_raises():
    with pytest.raises(ValueError):
        Tron.norm_inf([])


def test_objective_is_abstract():
    with pytest.raises(TypeError):
        Objective()