"""Trust-region Newton method for unconstrained smooth minimisation."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence

from sparselinear.blas import daxpy, ddot, dnrm2, dscal
from sparselinear.types import print_stdout

_ETA0, _ETA1, _ETA2 = 1e-4, 0.25, 0.75
_SIGMA1, _SIGMA2, _SIGMA3 = 0.25, 0.5, 4.0


class Objective(ABC):
    """A twice-differentiable function to minimise.

    The solver calls ``fun`` before ``grad`` at the same point, and ``hv``
    only after ``grad``, so implementations may cache work between them.
    """

    @abstractmethod
    def fun(self, w: Sequence[float]) -> float:
        """Function value at ``w``."""

    @abstractmethod
    def grad(self, w: Sequence[float]) -> list[float]:
        """Gradient at ``w``."""

    @abstractmethod
    def hv(self, s: Sequence[float]) -> list[float]:
        """Hessian (at the last gradient point) times ``s``."""

    @abstractmethod
    def nr_variable(self) -> int:
        """Number of variables."""


class Tron:
    """Trust-region Newton solver driven by conjugate gradient steps."""

    def __init__(
        self,
        objective: Objective,
        eps: float = 0.1,
        max_iter: int = 1000,
        printer: Callable[[str], None] | None = None,
    ) -> None:
        self.objective = objective
        self.eps = eps
        self.max_iter = max_iter
        self.printer = printer if printer is not None else print_stdout

    def _info(self, text: str) -> None:
        self.printer(text)

    def solve(self) -> list[float]:
        """Minimise the objective starting from zero; return the solution."""
        obj = self.objective
        n = obj.nr_variable()
        w = [0.0] * n

        f = obj.fun(w)
        g = obj.grad(w)
        delta = dnrm2(g)
        gnorm1 = delta
        gnorm = gnorm1
        search = not gnorm <= self.eps * gnorm1

        iteration = 1
        while iteration <= self.max_iter and search:
            cg_iter, s, r = self._trcg(delta, g)

            w_new = daxpy(1.0, s, w)
            gs = ddot(g, s)
            prered = -0.5 * (gs - ddot(s, r))
            fnew = obj.fun(w_new)
            actred = f - fnew

            snorm = dnrm2(s)
            if iteration == 1:
                delta = min(delta, snorm)

            if fnew - f - gs <= 0:
                alpha = _SIGMA3
            else:
                alpha = max(_SIGMA1, -0.5 * (gs / (fnew - f - gs)))

            if actred < _ETA0 * prered:
                delta = min(max(alpha, _SIGMA1) * snorm, _SIGMA2 * delta)
            elif actred < _ETA1 * prered:
                delta = max(_SIGMA1 * delta, min(alpha * snorm, _SIGMA2 * delta))
            elif actred < _ETA2 * prered:
                delta = max(_SIGMA1 * delta, min(alpha * snorm, _SIGMA3 * delta))
            else:
                delta = max(delta, min(alpha * snorm, _SIGMA3 * delta))

            self._info(
                "iter %2d act %5.3e pre %5.3e delta %5.3e f %5.3e |g| %5.3e CG %3d\n"
                % (iteration, actred, prered, delta, f, gnorm, cg_iter)
            )

            if actred > _ETA0 * prered:
                iteration += 1
                w = w_new
                f = fnew
                g = obj.grad(w)
                gnorm = dnrm2(g)
                if gnorm <= self.eps * gnorm1:
                    break
            if f < -1.0e32:
                self._info("WARNING: f < -1.0e+32\n")
                break
            if abs(actred) <= 0 and prered <= 0:
                self._info("WARNING: actred and prered <= 0\n")
                break
            if abs(actred) <= 1.0e-12 * abs(f) and abs(prered) <= 1.0e-12 * abs(f):
                self._info("WARNING: actred and prered too small\n")
                break

        return w

    def _trcg(
        self, delta: float, g: Sequence[float]
    ) -> tuple[int, list[float], list[float]]:
        """Approximately solve the trust-region subproblem.

        Returns the number of CG iterations, the step and the residual.
        """
        s = [0.0] * len(g)
        r = [-v for v in g]
        d = list(r)
        cgtol = 0.1 * dnrm2(g)

        cg_iter = 0
        r_t_r = ddot(r, r)
        while dnrm2(r) > cgtol:
            cg_iter += 1
            hd = self.objective.hv(d)

            alpha = r_t_r / ddot(d, hd)
            s = daxpy(alpha, d, s)
            if dnrm2(s) > delta:
                self._info("cg reaches trust region boundary\n")
                s = daxpy(-alpha, d, s)

                std = ddot(s, d)
                sts = ddot(s, s)
                dtd = ddot(d, d)
                dsq = delta * delta
                rad = math.sqrt(std * std + dtd * (dsq - sts))
                if std >= 0:
                    alpha = (dsq - sts) / (std + rad)
                else:
                    alpha = (rad - std) / dtd
                s = daxpy(alpha, d, s)
                r = daxpy(-alpha, hd, r)
                break
            r = daxpy(-alpha, hd, r)
            rnew_t_rnew = ddot(r, r)
            beta = rnew_t_rnew / r_t_r
            d = daxpy(1.0, r, dscal(beta, d))
            r_t_r = rnew_t_rnew

        return cg_iter, s, r

    @staticmethod
    def norm_inf(x: Sequence[float]) -> float:
        """Largest absolute value in ``x``."""
        if not x:
            raise ValueError("norm of an empty vector")
        return max(abs(v) for v in x)