import random

import pytest

from sparselinear.mcsvm import CrammerSingerSolver
from sparselinear.types import Problem


def _problem():
    rows = []
    labels = []
    centres = [(2.0, 0.0), (0.0, 2.0), (-2.0, -2.0)]
    offsets = [(0.0, 0.0), (0.3, -0.2), (-0.2, 0.3)]
    for cls, (cx, cy) in enumerate(centres):
        for ox, oy in offsets:
            rows.append([(1, cx + ox), (2, cy + oy), (3, 1.0)])
            labels.append(float(cls))
    return Problem(n=3, y=labels, x=rows)


def _scores(w, row, nr_class):
    return [
        sum(w[(i - 1) * nr_class + m] * v for i, v in row) for m in range(nr_class)
    ]


def _solve(problem, **kwargs):
    out = []
    solver = CrammerSingerSolver(
        problem, 3, [10.0, 10.0, 10.0], rng=random.Random(3), printer=out.append, **kwargs
    )
    return solver.solve(), "".join(out)


def test_training_points_are_classified_correctly():
    problem = _problem()
    w, _ = _solve(problem)
    assert len(w) == problem.n * 3
    for y, row in zip(problem.y, problem.x):
        scores = _scores(w, row, 3)
        assert scores.index(max(scores)) == int(y)


def test_weights_sum_to_zero_across_classes():
    problem = _problem()
    w, _ = _solve(problem)
    for feat in range(problem.n):
        assert sum(w[feat * 3 : feat * 3 + 3]) == pytest.approx(0.0, abs=1e-9)


def test_same_seed_gives_same_result():
    problem = _problem()
    w1, _ = _solve(problem)
    w2, _ = _solve(problem)
    assert w1 == w2


def test_progress_output_reports_finish():
    _, text = _solve(_problem())
    assert "optimization finished, #iter = " in text
    assert "Objective value = " in text
    assert "nSV = " in text


def test_iteration_limit_warns():
    _, text = _solve(_problem(), max_iter=1, eps=1e-9)
    assert "WARNING: reaching max number of iterations" in text


def test_instances_without_features_leave_weights_zero():
    problem = Problem(n=2, y=[0.0, 1.0, 2.0], x=[[], [], []])
    w, _ = _solve(problem)
    assert w == [0.0] * 6


def test_too_few_costs_rejected():
    with pytest.raises(ValueError):
        CrammerSingerSolver(_problem(), 3, [1.0, 1.0])