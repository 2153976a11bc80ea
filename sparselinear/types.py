"""Core data types: problems, training parameters and trained models."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from enum import IntEnum

FeatureRow = list[tuple[int, float]]


class SolverType(IntEnum):
    """Training algorithms, numbered as in the model file format."""

    L2R_LR = 0
    L2R_L2LOSS_SVC_DUAL = 1
    L2R_L2LOSS_SVC = 2
    L2R_L1LOSS_SVC_DUAL = 3
    MCSVM_CS = 4
    L1R_L2LOSS_SVC = 5
    L1R_LR = 6
    L2R_LR_DUAL = 7
    L2R_L2LOSS_SVR = 11
    L2R_L2LOSS_SVR_DUAL = 12
    L2R_L1LOSS_SVR_DUAL = 13


class ModelFormatError(ValueError):
    """Raised when a model file cannot be understood."""


class ParameterError(ValueError):
    """Raised when training parameters are invalid."""


@dataclass
class Problem:
    """A training set.

    Each row of ``x`` is a list of ``(index, value)`` pairs with 1-based,
    strictly increasing indices. ``n`` is the number of features, including
    the bias feature when ``bias >= 0``.
    """

    n: int
    y: list[float]
    x: list[FeatureRow]
    bias: float = -1.0

    @property
    def l(self) -> int:  # noqa: E743
        """Number of instances."""
        return len(self.y)


@dataclass
class Parameter:
    """Training parameters."""

    solver_type: SolverType = SolverType.L2R_L2LOSS_SVC_DUAL
    eps: float = 0.1
    C: float = 1.0
    weight_label: list[int] = field(default_factory=list)
    weight: list[float] = field(default_factory=list)
    p: float = 0.1


@dataclass
class Model:
    """A trained linear model.

    ``w`` is stored feature-major: the weight of feature ``i`` (0-based) for
    decision function ``j`` is ``w[i * nr_w + j]``.
    """

    param: Parameter
    nr_class: int
    nr_feature: int
    w: list[float]
    label: list[int] | None = None
    bias: float = -1.0

    @property
    def nr_w(self) -> int:
        """Number of decision functions stored in ``w``."""
        if self.nr_class == 2 and self.param.solver_type != SolverType.MCSVM_CS:
            return 1
        return self.nr_class

    @property
    def w_size(self) -> int:
        """Number of weight rows, counting the bias feature if present."""
        return self.nr_feature + 1 if self.bias >= 0 else self.nr_feature


def print_stdout(text: str) -> None:
    """Write progress text to standard output and flush it."""
    sys.stdout.write(text)
    sys.stdout.flush()