"""Crammer and Singer multi-class SVM solved by dual coordinate descent."""

from __future__ import annotations

import math
import random
from collections.abc import Callable, Sequence

from sparselinear.types import Problem, print_stdout


class CrammerSingerSolver:
    """Dual coordinate descent for the Crammer-Singer multi-class SVM.

    The labels of ``problem`` must be class indices ``0 .. nr_class-1``;
    ``weighted_C`` holds the cost of each class. ``solve`` returns ``w``
    stored feature-major: ``w[feature * nr_class + class]``.
    """

    def __init__(
        self,
        problem: Problem,
        nr_class: int,
        weighted_C: Sequence[float],
        eps: float = 0.1,
        max_iter: int = 100000,
        rng: random.Random | None = None,
        printer: Callable[[str], None] | None = None,
    ) -> None:
        if len(weighted_C) < nr_class:
            raise ValueError("one cost per class is required")
        self.problem = problem
        self.nr_class = nr_class
        self.C = list(weighted_C)
        self.eps = eps
        self.max_iter = max_iter
        self.rng = rng if rng is not None else random.Random()
        self.printer = printer if printer is not None else print_stdout
        self._G = [0.0] * nr_class
        self._B = [0.0] * nr_class

    def _solve_sub_problem(
        self, a_i: float, yi: int, c_yi: float, active_i: int
    ) -> list[float]:
        B = self._B
        D = B[:active_i]
        if yi < active_i:
            D[yi] += a_i * c_yi
        D.sort(reverse=True)

        beta = D[0] - a_i * c_yi
        r = 1
        while r < active_i and beta < r * D[r]:
            beta += D[r]
            r += 1
        beta /= r

        return [
            min(c_yi, (beta - B[m]) / a_i) if m == yi else min(0.0, (beta - B[m]) / a_i)
            for m in range(active_i)
        ]

    def _be_shrunk(self, i: int, m: int, yi: int, alpha_i: float, min_g: float) -> bool:
        bound = self.C[int(self.problem.y[i])] if m == yi else 0.0
        return alpha_i == bound and self._G[m] < min_g

    def solve(self) -> list[float]:
        """Run the solver and return the weight vector."""
        prob = self.problem
        l = prob.l
        n = prob.n
        nr_class = self.nr_class
        C = self.C
        G = self._G
        B = self._B
        info = self.printer

        alpha = [[0.0] * nr_class for _ in range(l)]
        alpha_index = [list(range(nr_class)) for _ in range(l)]
        w = [0.0] * (n * nr_class)
        QD = [sum(v * v for _, v in row) for row in prob.x]
        active_size_i = [nr_class] * l
        y_index = [int(y) for y in prob.y]
        index = list(range(l))
        active_size = l
        eps_shrink = max(10.0 * self.eps, 1.0)
        start_from_all = True

        it = 0
        while it < self.max_iter:
            stopping = -math.inf
            for i in range(active_size):
                j = i + self.rng.randrange(active_size - i)
                index[i], index[j] = index[j], index[i]

            s = 0
            while s < active_size:
                i = index[s]
                a_i = QD[i]
                alpha_i = alpha[i]
                aidx = alpha_index[i]
                ci = C[int(prob.y[i])]

                if a_i > 0:
                    size = active_size_i[i]
                    for m in range(size):
                        G[m] = 1.0
                    if y_index[i] < size:
                        G[y_index[i]] = 0.0

                    for feat, val in prob.x[i]:
                        base = (feat - 1) * nr_class
                        for m in range(size):
                            G[m] += w[base + aidx[m]] * val

                    min_g = math.inf
                    max_g = -math.inf
                    for m in range(size):
                        if alpha_i[aidx[m]] < 0 and G[m] < min_g:
                            min_g = G[m]
                        if G[m] > max_g:
                            max_g = G[m]
                    if y_index[i] < size:
                        if alpha_i[int(prob.y[i])] < ci and G[y_index[i]] < min_g:
                            min_g = G[y_index[i]]

                    m = 0
                    while m < active_size_i[i]:
                        if self._be_shrunk(i, m, y_index[i], alpha_i[aidx[m]], min_g):
                            active_size_i[i] -= 1
                            while active_size_i[i] > m:
                                k = active_size_i[i]
                                if not self._be_shrunk(
                                    i, k, y_index[i], alpha_i[aidx[k]], min_g
                                ):
                                    aidx[m], aidx[k] = aidx[k], aidx[m]
                                    G[m], G[k] = G[k], G[m]
                                    if y_index[i] == k:
                                        y_index[i] = m
                                    elif y_index[i] == m:
                                        y_index[i] = k
                                    break
                                active_size_i[i] -= 1
                        m += 1

                    if active_size_i[i] <= 1:
                        active_size -= 1
                        index[s], index[active_size] = index[active_size], index[s]
                        continue

                    if max_g - min_g <= 1e-12:
                        s += 1
                        continue
                    stopping = max(max_g - min_g, stopping)

                    size = active_size_i[i]
                    for m in range(size):
                        B[m] = G[m] - a_i * alpha_i[aidx[m]]

                    alpha_new = self._solve_sub_problem(a_i, y_index[i], ci, size)
                    changes = []
                    for m in range(size):
                        d = alpha_new[m] - alpha_i[aidx[m]]
                        alpha_i[aidx[m]] = alpha_new[m]
                        if abs(d) >= 1e-12:
                            changes.append((aidx[m], d))

                    for feat, val in prob.x[i]:
                        base = (feat - 1) * nr_class
                        for cls, d in changes:
                            w[base + cls] += d * val
                s += 1

            it += 1
            if it % 10 == 0:
                info(".")

            if stopping < eps_shrink:
                if stopping < self.eps and start_from_all:
                    break
                active_size = l
                active_size_i = [nr_class] * l
                info("*")
                eps_shrink = max(eps_shrink / 2, self.eps)
                start_from_all = True
            else:
                start_from_all = False

        info("\noptimization finished, #iter = %d\n" % it)
        if it >= self.max_iter:
            info("\nWARNING: reaching max number of iterations\n")

        v = 0.5 * sum(x * x for x in w)
        n_sv = 0
        for row in alpha:
            for a in row:
                v += a
                if abs(a) > 0:
                    n_sv += 1
        for row, y in zip(alpha, prob.y):
            v -= row[int(y)]
        info("Objective value = %f\n" % v)
        info("nSV = %d\n" % n_sv)

        return w