"""Training, prediction and model files for sparse linear classifiers and regressors."""

from __future__ import annotations

import math
import random
import sys
from collections.abc import Callable, Sequence
from dataclasses import replace
from itertools import accumulate, pairwise
from os import PathLike

from sparselinear.dual import solve_l2r_l1l2_svc, solve_l2r_l1l2_svr, solve_l2r_lr_dual
from sparselinear.l1 import solve_l1r_l2_svc, solve_l1r_lr, transpose
from sparselinear.mcsvm import CrammerSingerSolver
from sparselinear.objectives import L2SvcObjective, L2SvrObjective, LogisticObjective
from sparselinear.tron import Tron
from sparselinear.types import (
    FeatureRow,
    Model,
    ModelFormatError,
    Parameter,
    ParameterError,
    Problem,
    SolverType,
    print_stdout,
)

Printer = Callable[[str], None]

_REGRESSION = frozenset(
    {
        SolverType.L2R_L2LOSS_SVR,
        SolverType.L2R_L1LOSS_SVR_DUAL,
        SolverType.L2R_L2LOSS_SVR_DUAL,
    }
)
_PROBABILISTIC = frozenset({SolverType.L2R_LR, SolverType.L2R_LR_DUAL, SolverType.L1R_LR})


class _Output:
    """Where solver progress text goes unless a caller says otherwise."""

    def __init__(self) -> None:
        self.printer: Printer = print_stdout


_output = _Output()


def set_print_string_function(func: Printer | None) -> None:
    """Send progress text to ``func``; ``None`` restores standard output."""
    _output.printer = func if func is not None else print_stdout


def _resolve(rng: random.Random | None, printer: Printer | None) -> tuple[random.Random, Printer]:
    return (
        rng if rng is not None else random.Random(),
        printer if printer is not None else _output.printer,
    )


def _solver_type(value: int) -> SolverType:
    try:
        return SolverType(value)
    except ValueError:
        raise ParameterError("unknown solver type") from None


def group_classes(problem: Problem) -> tuple[list[int], list[int], list[int], list[int]]:
    """Group instances by class.

    Returns ``(label, start, count, perm)``: the labels in order of first
    appearance, where each class begins in the grouped order, how many
    instances each class has, and the original index of each grouped instance.
    """
    label: list[int] = []
    count: list[int] = []
    position: dict[int, int] = {}
    data_label: list[int] = []
    for y in problem.y:
        this_label = int(y)
        j = position.get(this_label)
        if j is None:
            j = len(label)
            position[this_label] = j
            label.append(this_label)
            count.append(0)
        count[j] += 1
        data_label.append(j)

    start = list(accumulate(count[:-1], initial=0)) if count else []
    perm = sorted(range(problem.l), key=data_label.__getitem__)
    return label, start, count, perm


def train_one(
    problem: Problem,
    param: Parameter,
    cp: float,
    cn: float,
    rng: random.Random | None = None,
    printer: Printer | None = None,
) -> list[float]:
    """Train one decision function; labels above zero count as positive."""
    rng, info = _resolve(rng, printer)
    solver = _solver_type(param.solver_type)
    eps = param.eps
    l = problem.l
    pos = sum(1 for y in problem.y if y > 0)
    neg = l - pos
    primal_solver_tol = eps * max(min(pos, neg), 1) / l if l else eps

    if solver in (SolverType.L2R_LR, SolverType.L2R_L2LOSS_SVC):
        costs = [cp if y > 0 else cn for y in problem.y]
        objective_cls = LogisticObjective if solver == SolverType.L2R_LR else L2SvcObjective
        return Tron(objective_cls(problem, costs), primal_solver_tol, printer=info).solve()
    if solver in (SolverType.L2R_L2LOSS_SVC_DUAL, SolverType.L2R_L1LOSS_SVC_DUAL):
        return solve_l2r_l1l2_svc(problem, eps, cp, cn, solver, rng, info)
    if solver == SolverType.L1R_L2LOSS_SVC:
        return solve_l1r_l2_svc(transpose(problem), primal_solver_tol, cp, cn, rng, info)
    if solver == SolverType.L1R_LR:
        return solve_l1r_lr(transpose(problem), primal_solver_tol, cp, cn, rng, info)
    if solver == SolverType.L2R_LR_DUAL:
        return solve_l2r_lr_dual(problem, eps, cp, cn, rng, info)
    if solver == SolverType.L2R_L2LOSS_SVR:
        objective = L2SvrObjective(problem, [param.C] * l, param.p)
        return Tron(objective, param.eps, printer=info).solve()
    if solver in (SolverType.L2R_L1LOSS_SVR_DUAL, SolverType.L2R_L2LOSS_SVR_DUAL):
        return solve_l2r_l1l2_svr(problem, param, solver, rng, info)
    raise ParameterError("unknown solver type")


def train(
    problem: Problem,
    param: Parameter,
    rng: random.Random | None = None,
    printer: Printer | None = None,
) -> Model:
    """Train a model on ``problem``."""
    rng, info = _resolve(rng, printer)
    solver = _solver_type(param.solver_type)
    n = problem.n
    nr_feature = n - 1 if problem.bias >= 0 else n
    model_param = replace(
        param,
        solver_type=solver,
        weight_label=list(param.weight_label),
        weight=list(param.weight),
    )

    if solver in _REGRESSION:
        w = train_one(problem, param, 0.0, 0.0, rng, info)
        return Model(model_param, 2, nr_feature, w, None, problem.bias)

    if problem.l == 0:
        raise ValueError("cannot train on an empty problem")

    label, start, count, perm = group_classes(problem)
    nr_class = len(label)

    weighted_C = [param.C] * nr_class
    for weight_label, weight in zip(param.weight_label, param.weight):
        if weight_label in label:
            weighted_C[label.index(weight_label)] *= weight
        else:
            sys.stderr.write(
                "WARNING: class label %d specified in weight is not found\n" % weight_label
            )

    sub_x = [problem.x[i] for i in perm]
    l = problem.l

    def sub_problem(y: list[float]) -> Problem:
        return Problem(n=n, y=y, x=sub_x, bias=problem.bias)

    if solver == SolverType.MCSVM_CS:
        sub_y = [float(cls) for cls, cnt in enumerate(count) for _ in range(cnt)]
        solver_obj = CrammerSingerSolver(
            sub_problem(sub_y), nr_class, weighted_C, param.eps, rng=rng, printer=info
        )
        w = solver_obj.solve()
    elif nr_class == 2:
        e0 = start[0] + count[0]
        sub_y = [1.0] * e0 + [-1.0] * (l - e0)
        w = train_one(sub_problem(sub_y), param, weighted_C[0], weighted_C[1], rng, info)
    else:
        w = [0.0] * (n * nr_class)
        for cls, (si, cnt) in enumerate(zip(start, count)):
            ei = si + cnt
            sub_y = [-1.0] * si + [1.0] * cnt + [-1.0] * (l - ei)
            w_cls = train_one(sub_problem(sub_y), param, weighted_C[cls], param.C, rng, info)
            w[cls::nr_class] = w_cls

    return Model(model_param, nr_class, nr_feature, w, list(label), problem.bias)


def cross_validation(
    problem: Problem,
    param: Parameter,
    nr_fold: int,
    rng: random.Random | None = None,
    printer: Printer | None = None,
) -> list[float]:
    """Predict every instance with a model trained on the other folds."""
    if nr_fold < 1:
        raise ValueError("the number of folds must be positive")
    rng, info = _resolve(rng, printer)
    l = problem.l
    perm = list(range(l))
    for i in range(l):
        j = i + rng.randrange(l - i)
        perm[i], perm[j] = perm[j], perm[i]
    fold_start = [i * l // nr_fold for i in range(nr_fold + 1)]

    target = [0.0] * l
    for begin, end in pairwise(fold_start):
        train_idx = perm[:begin] + perm[end:]
        subprob = Problem(
            n=problem.n,
            y=[problem.y[i] for i in train_idx],
            x=[problem.x[i] for i in train_idx],
            bias=problem.bias,
        )
        submodel = train(subprob, param, rng, info)
        for i in perm[begin:end]:
            target[i] = predict(submodel, problem.x[i])
    return target


def predict_values(model: Model, x: FeatureRow) -> tuple[float, list[float]]:
    """Return the predicted label (or value) and the decision values."""
    n = model.w_size
    nr_w = model.nr_w
    w = model.w
    dec_values = [0.0] * nr_w
    for idx, value in x:
        # Test data may have more features than the model was trained on.
        if 1 <= idx <= n:
            base = (idx - 1) * nr_w
            for i in range(nr_w):
                dec_values[i] += w[base + i] * value

    solver = SolverType(model.param.solver_type)
    if model.nr_class == 2:
        if solver in _REGRESSION:
            return dec_values[0], dec_values
        if model.label is None:
            raise ValueError("model has no labels")
        chosen = model.label[0] if dec_values[0] > 0 else model.label[1]
        return float(chosen), dec_values

    if model.label is None:
        raise ValueError("model has no labels")
    best = max(range(model.nr_class), key=dec_values.__getitem__)
    return float(model.label[best]), dec_values


def predict(model: Model, x: FeatureRow) -> float:
    """Return the predicted label (or value) for one instance."""
    return predict_values(model, x)[0]


def _sigmoid(t: float) -> float:
    try:
        return 1.0 / (1.0 + math.exp(-t))
    except OverflowError:
        return 0.0


def predict_probability(model: Model, x: FeatureRow) -> tuple[float, list[float]]:
    """Return the predicted label and one probability estimate per class."""
    if not check_probability_model(model):
        raise ValueError("probability estimates need a logistic regression model")
    nr_class = model.nr_class
    nr_w = 1 if nr_class == 2 else nr_class
    label, dec_values = predict_values(model, x)
    probs = [_sigmoid(v) for v in dec_values[:nr_w]]
    if nr_class == 2:
        return label, [probs[0], 1.0 - probs[0]]
    total = sum(probs)
    return label, [p / total for p in probs]


def save_model(path: str | PathLike[str], model: Model) -> None:
    """Write ``model`` to ``path`` in the text model format."""
    nr_w = model.nr_w
    lines = [
        "solver_type %s\n" % SolverType(model.param.solver_type).name,
        "nr_class %d\n" % model.nr_class,
    ]
    if model.label is not None:
        lines.append("label" + "".join(" %d" % lab for lab in model.label) + "\n")
    lines.append("nr_feature %d\n" % model.nr_feature)
    lines.append("bias %.16g\n" % model.bias)
    lines.append("w\n")
    for i in range(model.w_size):
        row = model.w[i * nr_w : (i + 1) * nr_w]
        lines.append("".join("%.16g " % v for v in row) + "\n")
    with open(path, "w", encoding="ascii", newline="\n") as fp:
        fp.writelines(lines)


def _take(tokens, what: str) -> str:
    try:
        return next(tokens)
    except StopIteration:
        raise ModelFormatError("model file ends while reading %s" % what) from None


def _number(kind, tokens, what: str):
    token = _take(tokens, what)
    try:
        return kind(token)
    except ValueError:
        raise ModelFormatError("bad %s in model file: [%s]" % (what, token)) from None


def load_model(path: str | PathLike[str]) -> Model:
    """Read a model written by :func:`save_model`."""
    with open(path, encoding="ascii") as fp:
        tokens = iter(fp.read().split())

    param = Parameter()
    nr_class: int | None = None
    nr_feature: int | None = None
    bias = -1.0
    label: list[int] | None = None

    while True:
        cmd = _take(tokens, "the header")
        if cmd == "solver_type":
            name = _take(tokens, "solver_type")
            try:
                param.solver_type = SolverType[name]
            except KeyError:
                raise ModelFormatError("unknown solver type.") from None
        elif cmd == "nr_class":
            nr_class = _number(int, tokens, "nr_class")
        elif cmd == "nr_feature":
            nr_feature = _number(int, tokens, "nr_feature")
        elif cmd == "bias":
            bias = _number(float, tokens, "bias")
        elif cmd == "w":
            break
        elif cmd == "label":
            if nr_class is None:
                raise ModelFormatError("label given before nr_class")
            label = [_number(int, tokens, "label") for _ in range(nr_class)]
        else:
            raise ModelFormatError("unknown text in model file: [%s]" % cmd)

    if nr_class is None or nr_feature is None:
        raise ModelFormatError("model file lacks nr_class or nr_feature")

    model = Model(param=param, nr_class=nr_class, nr_feature=nr_feature, w=[], label=label, bias=bias)
    model.w = [_number(float, tokens, "w") for _ in range(model.w_size * model.nr_w)]
    return model


def check_parameter(problem: Problem, param: Parameter) -> None:
    """Raise :class:`ParameterError` if ``param`` cannot be used for training."""
    if param.eps <= 0:
        raise ParameterError("eps <= 0")
    if param.C <= 0:
        raise ParameterError("C <= 0")
    if param.p < 0:
        raise ParameterError("p < 0")
    _solver_type(param.solver_type)


def check_probability_model(model: Model) -> bool:
    """Whether the model can produce probability estimates."""
    return model.param.solver_type in _PROBABILISTIC


__all__ = [
    "check_parameter",
    "check_probability_model",
    "cross_validation",
    "group_classes",
    "load_model",
    "predict",
    "predict_probability",
    "predict_values",
    "save_model",
    "set_print_string_function",
    "train",
    "train_one",
]


def _rows(points: Sequence[Sequence[float]]) -> list[FeatureRow]:
    return [[(i + 1, v) for i, v in enumerate(p) if v != 0] for p in points]