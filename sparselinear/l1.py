"""Coordinate descent solvers for L1-regularised linear classification.

Both solvers work on the data in column format, as produced by
:func:`transpose`: row ``j`` of the column problem lists the instances in
which feature ``j + 1`` is non-zero, as ``(instance, value)`` pairs with
1-based instance numbers.
"""

from __future__ import annotations

import math
import random
from collections.abc import Callable

from sparselinear.types import Problem, print_stdout

Printer = Callable[[str], None]

_MAX_ITER = 1000
_MAX_NUM_LINESEARCH = 20
_SIGMA = 0.01


def transpose(problem: Problem) -> Problem:
    """Return the problem with its feature matrix stored column by column.

    The result has ``problem.n`` rows, one per feature; each holds
    ``(instance, value)`` pairs with 1-based, increasing instance numbers.
    Labels and bias are copied unchanged.
    """
    columns: list[list[tuple[int, float]]] = [[] for _ in range(problem.n)]
    for instance, row in enumerate(problem.x, start=1):
        for index, value in row:
            columns[index - 1].append((instance, value))
    return Problem(n=problem.n, y=list(problem.y), x=columns, bias=problem.bias)


def _shuffle_prefix(index: list[int], size: int, rng: random.Random) -> None:
    """Randomly permute the first ``size`` entries of ``index`` in place."""
    for j in range(size):
        i = j + rng.randrange(size - j)
        index[i], index[j] = index[j], index[i]


def _signs(problem: Problem) -> list[int]:
    return [1 if y > 0 else -1 for y in problem.y]


def _per_instance(value: float, l: int) -> float:
    """``value / l`` with an empty problem treated as an infinite threshold."""
    return value / l if l else math.inf


def _exp(t: float) -> float:
    try:
        return math.exp(t)
    except OverflowError:
        return math.inf


def _zero_based(prob_col: Problem) -> list[list[tuple[int, float]]]:
    return [[(instance - 1, value) for instance, value in col] for col in prob_col.x]


def solve_l1r_l2_svc(
    prob_col: Problem,
    eps: float,
    cp: float,
    cn: float,
    rng: random.Random | None = None,
    printer: Printer | None = None,
) -> list[float]:
    """Minimise ``sum |w_j| + C sum max(0, 1 - y_i w.x_i)^2``.

    ``prob_col`` must be in column format. Labels greater than zero are
    positive, all others negative. Returns ``w``.
    """
    rng = rng if rng is not None else random.Random()
    info = printer if printer is not None else print_stdout
    l = prob_col.l
    w_size = prob_col.n
    y = _signs(prob_col)
    C = {-1: cn, 1: cp}

    # Each column value is stored already multiplied by its instance's label.
    cols = [[(i, value * y[i]) for i, value in col] for col in _zero_based(prob_col)]

    w = [0.0] * w_size
    b = [1.0] * l  # b = 1 - y w.x
    xj_sq = [sum(C[y[i]] * v * v for i, v in col) for col in cols]
    index = list(range(w_size))
    active_size = w_size

    g_max_old = math.inf
    g_norm1_init = 0.0
    it = 0
    while it < _MAX_ITER:
        g_max_new = 0.0
        g_norm1_new = 0.0
        _shuffle_prefix(index, active_size, rng)

        s = 0
        while s < active_size:
            j = index[s]
            col = cols[j]
            g_loss = 0.0
            H = 0.0
            for i, val in col:
                if b[i] > 0:
                    tmp = C[y[i]] * val
                    g_loss -= tmp * b[i]
                    H += tmp * val
            g_loss *= 2
            G = g_loss
            H = max(2 * H, 1e-12)

            Gp = G + 1
            Gn = G - 1
            violation = 0.0
            if w[j] == 0:
                threshold = _per_instance(g_max_old, l)
                if Gp < 0:
                    violation = -Gp
                elif Gn > 0:
                    violation = Gn
                elif Gp > threshold and Gn < -threshold:
                    active_size -= 1
                    index[s], index[active_size] = index[active_size], index[s]
                    continue
            elif w[j] > 0:
                violation = abs(Gp)
            else:
                violation = abs(Gn)

            g_max_new = max(g_max_new, violation)
            g_norm1_new += violation

            if Gp < H * w[j]:
                d = -Gp / H
            elif Gn > H * w[j]:
                d = -Gn / H
            else:
                d = -w[j]

            if abs(d) < 1.0e-12:
                s += 1
                continue

            delta = abs(w[j] + d) - abs(w[j]) + G * d
            d_old = 0.0
            loss_old = 0.0
            num_linesearch = 0
            while num_linesearch < _MAX_NUM_LINESEARCH:
                d_diff = d_old - d
                cond = abs(w[j] + d) - abs(w[j]) - _SIGMA * delta

                appxcond = xj_sq[j] * d * d + g_loss * d + cond
                if appxcond <= 0:
                    for i, val in col:
                        b[i] += d_diff * val
                    break

                if num_linesearch == 0:
                    loss_old = 0.0
                    loss_new = 0.0
                    for i, val in col:
                        if b[i] > 0:
                            loss_old += C[y[i]] * b[i] * b[i]
                        b_new = b[i] + d_diff * val
                        b[i] = b_new
                        if b_new > 0:
                            loss_new += C[y[i]] * b_new * b_new
                else:
                    loss_new = 0.0
                    for i, val in col:
                        b_new = b[i] + d_diff * val
                        b[i] = b_new
                        if b_new > 0:
                            loss_new += C[y[i]] * b_new * b_new

                cond = cond + loss_new - loss_old
                if cond <= 0:
                    break
                d_old = d
                d *= 0.5
                delta *= 0.5
                num_linesearch += 1

            w[j] += d

            if num_linesearch >= _MAX_NUM_LINESEARCH:
                info("#")
                b = [1.0] * l
                for wj, cj in zip(w, cols):
                    if wj == 0:
                        continue
                    for i, val in cj:
                        b[i] -= wj * val
            s += 1

        if it == 0:
            g_norm1_init = g_norm1_new
        it += 1
        if it % 10 == 0:
            info(".")

        if g_norm1_new <= eps * g_norm1_init:
            if active_size == w_size:
                break
            active_size = w_size
            info("*")
            g_max_old = math.inf
            continue

        g_max_old = g_max_new

    info("\noptimization finished, #iter = %d\n" % it)
    if it >= _MAX_ITER:
        info("\nWARNING: reaching max number of iterations\n")

    v = 0.0
    nnz = 0
    for wj in w:
        if wj != 0:
            v += abs(wj)
            nnz += 1
    for bi, yi in zip(b, y):
        if bi > 0:
            v += C[yi] * bi * bi

    info("Objective value = %f\n" % v)
    info("#nonzeros/#features = %d/%d\n" % (nnz, w_size))
    return w


def solve_l1r_lr(
    prob_col: Problem,
    eps: float,
    cp: float,
    cn: float,
    rng: random.Random | None = None,
    printer: Printer | None = None,
) -> list[float]:
    """Minimise ``sum |w_j| + C sum log(1 + exp(-y_i w.x_i))``.

    Uses a Newton method whose quadratic sub-problems are solved by
    coordinate descent. ``prob_col`` must be in column format. Returns ``w``.
    """
    rng = rng if rng is not None else random.Random()
    info = printer if printer is not None else print_stdout
    l = prob_col.l
    w_size = prob_col.n
    y = _signs(prob_col)
    C = {-1: cn, 1: cp}
    cols = _zero_based(prob_col)

    max_newton_iter = 100
    nu = 1e-12
    inner_eps = 1.0

    w = [0.0] * w_size
    wpd = list(w)
    index = list(range(w_size))
    w_norm = sum(abs(wj) for wj in w)
    xjneg_sum = [sum(C[y[i]] * v for i, v in col if y[i] == -1) for col in cols]
    Hdiag = [0.0] * w_size
    Grad = [0.0] * w_size

    def linear_terms() -> list[float]:
        out = [0.0] * l
        for wj, col in zip(w, cols):
            if wj == 0:
                continue
            for i, val in col:
                out[i] += wj * val
        return out

    exp_wTx = [_exp(t) for t in linear_terms()]
    tau = [0.0] * l
    D = [0.0] * l

    def update_curvature() -> None:
        for i, e in enumerate(exp_wTx):
            c = C[y[i]]
            tau_tmp = 1 / (1 + e)
            tau[i] = c * tau_tmp
            D[i] = c * e * tau_tmp * tau_tmp if math.isfinite(e) else 0.0

    update_curvature()

    g_max_old = math.inf
    g_norm1_init = 0.0
    newton_iter = 0
    while newton_iter < max_newton_iter:
        g_max_new = 0.0
        g_norm1_new = 0.0
        active_size = w_size

        s = 0
        while s < active_size:
            j = index[s]
            col = cols[j]
            Hdiag[j] = nu + sum(val * val * D[i] for i, val in col)
            Grad[j] = -sum(val * tau[i] for i, val in col) + xjneg_sum[j]

            Gp = Grad[j] + 1
            Gn = Grad[j] - 1
            violation = 0.0
            if w[j] == 0:
                threshold = _per_instance(g_max_old, l)
                if Gp < 0:
                    violation = -Gp
                elif Gn > 0:
                    violation = Gn
                elif Gp > threshold and Gn < -threshold:
                    active_size -= 1
                    index[s], index[active_size] = index[active_size], index[s]
                    continue
            elif w[j] > 0:
                violation = abs(Gp)
            else:
                violation = abs(Gn)

            g_max_new = max(g_max_new, violation)
            g_norm1_new += violation
            s += 1

        if newton_iter == 0:
            g_norm1_init = g_norm1_new

        if g_norm1_new <= eps * g_norm1_init:
            break

        it = 0
        qp_g_max_old = math.inf
        qp_active_size = active_size
        xTd = [0.0] * l

        while it < _MAX_ITER:
            qp_g_max_new = 0.0
            qp_g_norm1_new = 0.0
            _shuffle_prefix(index, qp_active_size, rng)

            s = 0
            while s < qp_active_size:
                j = index[s]
                col = cols[j]
                H = Hdiag[j]
                G = Grad[j] + (wpd[j] - w[j]) * nu
                G += sum(val * D[i] * xTd[i] for i, val in col)

                Gp = G + 1
                Gn = G - 1
                violation = 0.0
                if wpd[j] == 0:
                    threshold = _per_instance(qp_g_max_old, l)
                    if Gp < 0:
                        violation = -Gp
                    elif Gn > 0:
                        violation = Gn
                    elif Gp > threshold and Gn < -threshold:
                        qp_active_size -= 1
                        index[s], index[qp_active_size] = index[qp_active_size], index[s]
                        continue
                elif wpd[j] > 0:
                    violation = abs(Gp)
                else:
                    violation = abs(Gn)

                qp_g_max_new = max(qp_g_max_new, violation)
                qp_g_norm1_new += violation

                if Gp < H * wpd[j]:
                    z = -Gp / H
                elif Gn > H * wpd[j]:
                    z = -Gn / H
                else:
                    z = -wpd[j]

                if abs(z) < 1.0e-12:
                    s += 1
                    continue
                z = min(max(z, -10.0), 10.0)

                wpd[j] += z
                for i, val in col:
                    xTd[i] += val * z
                s += 1

            it += 1

            if qp_g_norm1_new <= inner_eps * g_norm1_init:
                if qp_active_size == active_size:
                    break
                qp_active_size = active_size
                qp_g_max_old = math.inf
                continue

            qp_g_max_old = qp_g_max_new

        if it >= _MAX_ITER:
            info("WARNING: reaching max number of inner iterations\n")

        delta = sum(g * (p - q) for g, p, q in zip(Grad, wpd, w))
        w_norm_new = sum(abs(p) for p in wpd if p != 0)
        delta += w_norm_new - w_norm

        negsum_xTd = sum(C[y[i]] * t for i, t in enumerate(xTd) if y[i] == -1)

        num_linesearch = 0
        while num_linesearch < _MAX_NUM_LINESEARCH:
            cond = w_norm_new - w_norm + negsum_xTd - _SIGMA * delta

            exp_wTx_new = []
            for i, t in enumerate(xTd):
                exp_xTd = _exp(t)
                e_new = exp_wTx[i] * exp_xTd
                exp_wTx_new.append(e_new)
                cond += C[y[i]] * math.log((1 + e_new) / (exp_xTd + e_new))

            if cond <= 0:
                w_norm = w_norm_new
                w = list(wpd)
                exp_wTx = exp_wTx_new
                update_curvature()
                break

            wpd = [(p + q) * 0.5 for p, q in zip(w, wpd)]
            w_norm_new = sum(abs(p) for p in wpd if p != 0)
            delta *= 0.5
            negsum_xTd *= 0.5
            xTd = [t * 0.5 for t in xTd]
            num_linesearch += 1

        if num_linesearch >= _MAX_NUM_LINESEARCH:
            exp_wTx = [_exp(t) for t in linear_terms()]

        if it == 1:
            inner_eps *= 0.25

        newton_iter += 1
        g_max_old = g_max_new

        info("iter %3d  #CD cycles %d\n" % (newton_iter, it))

    info("=========================\n")
    info("optimization finished, #iter = %d\n" % newton_iter)
    if newton_iter >= max_newton_iter:
        info("WARNING: reaching max number of iterations\n")

    v = 0.0
    nnz = 0
    for wj in w:
        if wj != 0:
            v += abs(wj)
            nnz += 1
    for yi, e in zip(y, exp_wTx):
        if yi == 1:
            v += C[yi] * math.log(1 + 1 / e)
        else:
            v += C[yi] * math.log(1 + e)

    info("Objective value = %f\n" % v)
    info("#nonzeros/#features = %d/%d\n" % (nnz, w_size))
    return w