"""Dual coordinate descent solvers for L2-regularised linear models."""

from __future__ import annotations

import math
import random
from collections.abc import Callable

from sparselinear.types import Parameter, Problem, SolverType, print_stdout

Printer = Callable[[str], None]


def _shuffle_prefix(index: list[int], size: int, rng: random.Random) -> None:
    """Randomly permute the first ``size`` entries of ``index`` in place."""
    for i in range(size):
        j = i + rng.randrange(size - i)
        index[i], index[j] = index[j], index[i]


def _half_inverse(c: float) -> float:
    return 0.5 / c if c != 0 else math.inf


def _signs(problem: Problem) -> list[int]:
    return [1 if y > 0 else -1 for y in problem.y]


def _row_dot(w: list[float], row) -> float:
    return sum(w[index - 1] * value for index, value in row)


def _add_row(w: list[float], row, scale: float) -> None:
    for index, value in row:
        w[index - 1] += scale * value


def solve_l2r_l1l2_svc(
    problem: Problem,
    eps: float,
    cp: float,
    cn: float,
    solver_type: SolverType,
    rng: random.Random | None = None,
    printer: Printer | None = None,
) -> list[float]:
    """Dual coordinate descent for L1- or L2-loss SVM classification.

    Labels greater than zero are positive, all others negative. Returns ``w``.
    """
    rng = rng if rng is not None else random.Random()
    info = printer if printer is not None else print_stdout
    l = problem.l
    max_iter = 1000

    if solver_type == SolverType.L2R_L1LOSS_SVC_DUAL:
        diag = {-1: 0.0, 1: 0.0}
        upper_bound = {-1: cn, 1: cp}
    else:
        diag = {-1: _half_inverse(cn), 1: _half_inverse(cp)}
        upper_bound = {-1: math.inf, 1: math.inf}

    y = _signs(problem)
    alpha = [0.0] * l
    w = [0.0] * problem.n
    QD = [diag[yi] + sum(v * v for _, v in row) for yi, row in zip(y, problem.x)]
    index = list(range(l))
    active_size = l

    pg_max_old = math.inf
    pg_min_old = -math.inf
    it = 0
    while it < max_iter:
        pg_max_new = -math.inf
        pg_min_new = math.inf
        _shuffle_prefix(index, active_size, rng)

        s = 0
        while s < active_size:
            i = index[s]
            yi = y[i]
            row = problem.x[i]
            G = _row_dot(w, row) * yi - 1
            C = upper_bound[yi]
            G += alpha[i] * diag[yi]

            PG = 0.0
            if alpha[i] == 0:
                if G > pg_max_old:
                    active_size -= 1
                    index[s], index[active_size] = index[active_size], index[s]
                    continue
                if G < 0:
                    PG = G
            elif alpha[i] == C:
                if G < pg_min_old:
                    active_size -= 1
                    index[s], index[active_size] = index[active_size], index[s]
                    continue
                if G > 0:
                    PG = G
            else:
                PG = G

            pg_max_new = max(pg_max_new, PG)
            pg_min_new = min(pg_min_new, PG)

            if abs(PG) > 1.0e-12:
                alpha_old = alpha[i]
                alpha[i] = min(max(alpha[i] - G / QD[i], 0.0), C)
                _add_row(w, row, (alpha[i] - alpha_old) * yi)
            s += 1

        it += 1
        if it % 10 == 0:
            info(".")

        if pg_max_new - pg_min_new <= eps:
            if active_size == l:
                break
            active_size = l
            info("*")
            pg_max_old = math.inf
            pg_min_old = -math.inf
            continue
        pg_max_old = pg_max_new if pg_max_new > 0 else math.inf
        pg_min_old = pg_min_new if pg_min_new < 0 else -math.inf

    info("\noptimization finished, #iter = %d\n" % it)
    if it >= max_iter:
        info(
            "\nWARNING: reaching max number of iterations\n"
            "Using -s 2 may be faster (also see FAQ)\n\n"
        )

    v = sum(x * x for x in w)
    n_sv = 0
    for a, yi in zip(alpha, y):
        v += a * (a * diag[yi] - 2)
        if a > 0:
            n_sv += 1
    info("Objective value = %f\n" % (v / 2))
    info("nSV = %d\n" % n_sv)
    return w


def solve_l2r_l1l2_svr(
    problem: Problem,
    param: Parameter,
    solver_type: SolverType,
    rng: random.Random | None = None,
    printer: Printer | None = None,
) -> list[float]:
    """Dual coordinate descent for L1- or L2-loss support vector regression."""
    rng = rng if rng is not None else random.Random()
    info = printer if printer is not None else print_stdout
    l = problem.l
    C = param.C
    p = param.p
    eps = param.eps
    max_iter = 1000

    if solver_type == SolverType.L2R_L1LOSS_SVR_DUAL:
        lam = 0.0
        upper_bound = C
    else:
        lam = _half_inverse(C)
        upper_bound = math.inf

    y = problem.y
    beta = [0.0] * l
    w = [0.0] * problem.n
    QD = [sum(v * v for _, v in row) for row in problem.x]
    index = list(range(l))
    active_size = l

    g_max_old = math.inf
    g_norm1_init = 0.0
    it = 0
    while it < max_iter:
        g_max_new = 0.0
        g_norm1_new = 0.0
        _shuffle_prefix(index, active_size, rng)

        s = 0
        while s < active_size:
            i = index[s]
            row = problem.x[i]
            G = -y[i] + lam * beta[i] + _row_dot(w, row)
            H = QD[i] + lam

            Gp = G + p
            Gn = G - p
            violation = 0.0
            if beta[i] == 0:
                if Gp < 0:
                    violation = -Gp
                elif Gn > 0:
                    violation = Gn
                elif Gp > g_max_old and Gn < -g_max_old:
                    active_size -= 1
                    index[s], index[active_size] = index[active_size], index[s]
                    continue
            elif beta[i] >= upper_bound:
                if Gp > 0:
                    violation = Gp
                elif Gp < -g_max_old:
                    active_size -= 1
                    index[s], index[active_size] = index[active_size], index[s]
                    continue
            elif beta[i] <= -upper_bound:
                if Gn < 0:
                    violation = -Gn
                elif Gn > g_max_old:
                    active_size -= 1
                    index[s], index[active_size] = index[active_size], index[s]
                    continue
            elif beta[i] > 0:
                violation = abs(Gp)
            else:
                violation = abs(Gn)

            g_max_new = max(g_max_new, violation)
            g_norm1_new += violation

            if Gp < H * beta[i]:
                d = -Gp / H
            elif Gn > H * beta[i]:
                d = -Gn / H
            else:
                d = -beta[i]

            if abs(d) >= 1.0e-12:
                beta_old = beta[i]
                beta[i] = min(max(beta[i] + d, -upper_bound), upper_bound)
                d = beta[i] - beta_old
                if d != 0:
                    _add_row(w, row, d)
            s += 1

        if it == 0:
            g_norm1_init = g_norm1_new
        it += 1
        if it % 10 == 0:
            info(".")

        if g_norm1_new <= eps * g_norm1_init:
            if active_size == l:
                break
            active_size = l
            info("*")
            g_max_old = math.inf
            continue

        g_max_old = g_max_new

    info("\noptimization finished, #iter = %d\n" % it)
    if it >= max_iter:
        info(
            "\nWARNING: reaching max number of iterations\n"
            "Using -s 11 may be faster\n\n"
        )

    v = 0.5 * sum(x * x for x in w)
    n_sv = 0
    for b, yi in zip(beta, y):
        v += p * abs(b) - yi * b + 0.5 * lam * b * b
        if b != 0:
            n_sv += 1
    info("Objective value = %f\n" % v)
    info("nSV = %d\n" % n_sv)
    return w


def solve_l2r_lr_dual(
    problem: Problem,
    eps: float,
    cp: float,
    cn: float,
    rng: random.Random | None = None,
    printer: Printer | None = None,
) -> list[float]:
    """Dual coordinate descent for L2-regularised logistic regression."""
    rng = rng if rng is not None else random.Random()
    info = printer if printer is not None else print_stdout
    l = problem.l
    max_iter = 1000
    max_inner_iter = 100
    innereps = 1e-2
    innereps_min = min(1e-8, eps)
    eta = 0.1
    upper_bound = {-1: cn, 1: cp}

    y = _signs(problem)
    # Each instance keeps the pair (alpha, C - alpha).
    alpha: list[list[float]] = []
    for yi in y:
        a = min(0.001 * upper_bound[yi], 1e-8)
        alpha.append([a, upper_bound[yi] - a])

    w = [0.0] * problem.n
    xTx = []
    for yi, pair, row in zip(y, alpha, problem.x):
        xTx.append(sum(v * v for _, v in row))
        _add_row(w, row, yi * pair[0])
    index = list(range(l))

    it = 0
    while it < max_iter:
        _shuffle_prefix(index, l, rng)
        newton_iter = 0
        g_max = 0.0
        for i in index:
            yi = y[i]
            C = upper_bound[yi]
            row = problem.x[i]
            a = xTx[i]
            b = _row_dot(w, row) * yi
            pair = alpha[i]

            ind1, ind2, sign = 0, 1, 1
            if 0.5 * a * (pair[1] - pair[0]) + b < 0:
                ind1, ind2, sign = 1, 0, -1

            alpha_old = pair[ind1]
            z = alpha_old
            if C - z < 0.5 * C:
                z = 0.1 * z
            gp = a * (z - alpha_old) + sign * b + math.log(z / (C - z))
            g_max = max(g_max, abs(gp))

            inner_iter = 0
            while inner_iter <= max_inner_iter:
                if abs(gp) < innereps:
                    break
                gpp = a + C / (C - z) / z
                tmpz = z - gp / gpp
                if tmpz <= 0:
                    z *= eta
                else:
                    z = tmpz
                gp = a * (z - alpha_old) + sign * b + math.log(z / (C - z))
                newton_iter += 1
                inner_iter += 1

            if inner_iter > 0:
                pair[ind1] = z
                pair[ind2] = C - z
                _add_row(w, row, sign * (z - alpha_old) * yi)

        it += 1
        if it % 10 == 0:
            info(".")

        if g_max < eps:
            break

        if newton_iter <= l // 10:
            innereps = max(innereps_min, 0.1 * innereps)

    info("\noptimization finished, #iter = %d\n" % it)
    if it >= max_iter:
        info(
            "\nWARNING: reaching max number of iterations\n"
            "Using -s 0 may be faster (also see FAQ)\n\n"
        )

    v = 0.5 * sum(x * x for x in w)
    for yi, (a0, a1) in zip(y, alpha):
        c = upper_bound[yi]
        v += a0 * math.log(a0) + a1 * math.log(a1) - c * math.log(c)
    info("Objective value = %f\n" % v)
    return w