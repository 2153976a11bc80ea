"""Command-line training of linear models from files in the sparse text format."""

from __future__ import annotations

import math
import re
import sys
from collections.abc import Sequence
from dataclasses import dataclass, field

from sparselinear.linear import (
    check_parameter,
    cross_validation,
    save_model,
    set_print_string_function,
    train,
)
from sparselinear.types import FeatureRow, Parameter, ParameterError, Problem, SolverType

USAGE = (
    "Usage: train [options] training_set_file [model_file]\n"
    "options:\n"
    "-s type : set type of solver (default 1)\n"
    "  for multi-class classification\n"
    "\t 0 -- L2-regularized logistic regression (primal)\n"
    "\t 1 -- L2-regularized L2-loss support vector classification (dual)\n"
    "\t 2 -- L2-regularized L2-loss support vector classification (primal)\n"
    "\t 3 -- L2-regularized L1-loss support vector classification (dual)\n"
    "\t 4 -- support vector classification by Crammer and Singer\n"
    "\t 5 -- L1-regularized L2-loss support vector classification\n"
    "\t 6 -- L1-regularized logistic regression\n"
    "\t 7 -- L2-regularized logistic regression (dual)\n"
    "  for regression\n"
    "\t11 -- L2-regularized L2-loss support vector regression (primal)\n"
    "\t12 -- L2-regularized L2-loss support vector regression (dual)\n"
    "\t13 -- L2-regularized L1-loss support vector regression (dual)\n"
    "-c cost : set the parameter C (default 1)\n"
    "-p epsilon : set the epsilon in loss function of SVR (default 0.1)\n"
    "-e epsilon : set tolerance of termination criterion\n"
    "\t-s 0 and 2\n"
    "\t\t|f'(w)|_2 <= eps*min(pos,neg)/l*|f'(w0)|_2,\n"
    "\t\twhere f is the primal function and pos/neg are # of\n"
    "\t\tpositive/negative data (default 0.01)\n"
    "\t-s 11\n"
    "\t\t|f'(w)|_2 <= eps*|f'(w0)|_2 (default 0.001)\n"
    "\t-s 1, 3, 4, and 7\n"
    "\t\tDual maximal violation <= eps; similar to libsvm (default 0.1)\n"
    "\t-s 5 and 6\n"
    "\t\t|f'(w)|_1 <= eps*min(pos,neg)/l*|f'(w0)|_1,\n"
    "\t\twhere f is the primal function (default 0.01)\n"
    "\t-s 12 and 13\n"
    "\t\t|f'(alpha)|_1 <= eps |f'(alpha0)|,\n"
    "\t\twhere f is the dual function (default 0.1)\n"
    "-B bias : if bias >= 0, instance x becomes [x; bias]; if < 0, no bias term added (default -1)\n"
    "-wi weight: weights adjust the parameter C of different classes (see README for details)\n"
    "-v n: n-fold cross validation mode\n"
    "-q : quiet mode (no outputs)\n"
)

_REGRESSION = frozenset(
    {
        SolverType.L2R_L2LOSS_SVR,
        SolverType.L2R_L1LOSS_SVR_DUAL,
        SolverType.L2R_L2LOSS_SVR_DUAL,
    }
)

_INT_PREFIX = re.compile(r"\s*[+-]?\d+")
_FLOAT_PREFIX = re.compile(
    r"\s*[+-]?(?:infinity|inf|nan|\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)",
    re.IGNORECASE,
)
_INDEX = re.compile(r"[+-]?\d+")


class UsageError(Exception):
    """Raised when the command line cannot be understood."""


class InputFormatError(ValueError):
    """Raised when a line of a training file is malformed."""

    def __init__(self, line_num: int) -> None:
        super().__init__("Wrong input format at line %d" % line_num)
        self.line_num = line_num


@dataclass
class Options:
    """Everything the command line specifies."""

    input_file: str
    model_file: str
    param: Parameter = field(default_factory=Parameter)
    bias: float = -1.0
    nr_fold: int | None = None
    quiet: bool = False


@dataclass
class CrossValidationResult:
    """Scores from cross validation: accuracy, or error and correlation."""

    accuracy: float | None = None
    mean_squared_error: float | None = None
    squared_correlation: float | None = None


def _atoi(text: str) -> int:
    match = _INT_PREFIX.match(text)
    return int(match.group()) if match else 0


def _atof(text: str) -> float:
    match = _FLOAT_PREFIX.match(text)
    return float(match.group()) if match else 0.0


def _strict_float(token: str) -> float:
    if "_" in token:
        raise ValueError(token)
    try:
        return float(token)
    except ValueError:
        if "0x" in token.lower():
            return float.fromhex(token)
        raise


def _solver_value(value: int) -> SolverType | int:
    try:
        return SolverType(value)
    except ValueError:
        return value


def default_eps(solver_type: int) -> float:
    """Stopping tolerance used when none is given; infinite for unknown solvers."""
    try:
        solver = SolverType(solver_type)
    except ValueError:
        return math.inf
    if solver in (SolverType.L2R_LR, SolverType.L2R_L2LOSS_SVC):
        return 0.01
    if solver == SolverType.L2R_L2LOSS_SVR:
        return 0.001
    if solver in (SolverType.L1R_L2LOSS_SVC, SolverType.L1R_LR):
        return 0.01
    return 0.1


def parse_command_line(argv: Sequence[str]) -> Options:
    """Parse the arguments after the program name."""
    args = list(argv)
    param = Parameter(solver_type=SolverType.L2R_L2LOSS_SVC_DUAL, C=1.0, eps=math.inf, p=0.1)
    bias = -1.0
    nr_fold: int | None = None
    quiet = False

    i = 0
    while i < len(args):
        option = args[i]
        if not option.startswith("-"):
            break
        i += 1
        if i >= len(args):
            raise UsageError("")
        value = args[i]
        letter = option[1:2]
        if letter == "s":
            param.solver_type = _solver_value(_atoi(value))
        elif letter == "c":
            param.C = _atof(value)
        elif letter == "p":
            param.p = _atof(value)
        elif letter == "e":
            param.eps = _atof(value)
        elif letter == "B":
            bias = _atof(value)
        elif letter == "w":
            param.weight_label.append(_atoi(option[2:]))
            param.weight.append(_atof(value))
        elif letter == "v":
            nr_fold = _atoi(value)
            if nr_fold < 2:
                raise UsageError("n-fold cross validation: n must >= 2")
        elif letter == "q":
            quiet = True
            i -= 1
        else:
            raise UsageError("unknown option: -%s" % letter)
        i += 1

    if i >= len(args):
        raise UsageError("")

    input_file = args[i]
    if i < len(args) - 1:
        model_file = args[i + 1]
    else:
        model_file = input_file.rsplit("/", 1)[-1] + ".model"

    if param.eps == math.inf:
        param.eps = default_eps(param.solver_type)

    return Options(
        input_file=input_file,
        model_file=model_file,
        param=param,
        bias=bias,
        nr_fold=nr_fold,
        quiet=quiet,
    )


def _parse_line(line: str, line_num: int) -> tuple[float, FeatureRow]:
    tokens = line.split()
    if not tokens:
        raise InputFormatError(line_num)
    try:
        label = _strict_float(tokens[0])
    except ValueError:
        raise InputFormatError(line_num) from None

    row: FeatureRow = []
    last_index = 0
    for token in tokens[1:]:
        idx_text, colon, val_text = token.partition(":")
        if not colon or not _INDEX.fullmatch(idx_text):
            raise InputFormatError(line_num)
        index = int(idx_text)
        if index <= last_index:
            raise InputFormatError(line_num)
        try:
            value = _strict_float(val_text)
        except ValueError:
            raise InputFormatError(line_num) from None
        row.append((index, value))
        last_index = index
    return label, row


def read_problem(path: str, bias: float) -> Problem:
    """Read a training set in the sparse ``label index:value ...`` format."""
    y: list[float] = []
    x: list[FeatureRow] = []
    max_index = 0
    with open(path, encoding="utf-8", errors="replace") as fp:
        for line_num, line in enumerate(fp, start=1):
            label, row = _parse_line(line, line_num)
            if row:
                max_index = max(max_index, row[-1][0])
            y.append(label)
            x.append(row)

    if bias >= 0:
        n = max_index + 1
        for row in x:
            row.append((n, bias))
    else:
        n = max_index
    return Problem(n=n, y=y, x=x, bias=bias)


def _ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return math.nan if numerator == 0 or math.isnan(numerator) else math.copysign(math.inf, numerator)
    return numerator / denominator


def do_cross_validation(problem: Problem, param: Parameter, nr_fold: int) -> CrossValidationResult:
    """Run cross validation, print its scores and return them."""
    target = cross_validation(problem, param, nr_fold)
    l = problem.l
    if param.solver_type in _REGRESSION:
        total_error = sumv = sumy = sumvv = sumyy = sumvy = 0.0
        for y, v in zip(problem.y, target):
            total_error += (v - y) * (v - y)
            sumv += v
            sumy += y
            sumvv += v * v
            sumyy += y * y
            sumvy += v * y
        mse = _ratio(total_error, l)
        cov = l * sumvy - sumv * sumy
        scc = _ratio(cov * cov, (l * sumvv - sumv * sumv) * (l * sumyy - sumy * sumy))
        sys.stdout.write("Cross Validation Mean squared error = %g\n" % mse)
        sys.stdout.write("Cross Validation Squared correlation coefficient = %g\n" % scc)
        return CrossValidationResult(mean_squared_error=mse, squared_correlation=scc)

    total_correct = sum(1 for t, y in zip(target, problem.y) if t == y)
    accuracy = _ratio(100.0 * total_correct, l)
    sys.stdout.write("Cross Validation Accuracy = %g%%\n" % accuracy)
    return CrossValidationResult(accuracy=accuracy)


def _print_null(text: str) -> None:
    """Discard progress text."""


def main(argv: Sequence[str] | None = None) -> int:
    """Train a model from a data file, or cross-validate; return the exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        options = parse_command_line(args)
    except UsageError as exc:
        if str(exc):
            sys.stderr.write("%s\n" % exc)
        sys.stdout.write(USAGE)
        return 1

    try:
        problem = read_problem(options.input_file, options.bias)
    except InputFormatError as exc:
        sys.stderr.write("%s\n" % exc)
        return 1
    except OSError:
        sys.stderr.write("can't open input file %s\n" % options.input_file)
        return 1

    try:
        check_parameter(problem, options.param)
    except ParameterError as exc:
        sys.stderr.write("ERROR: %s\n" % exc)
        return 1

    set_print_string_function(_print_null if options.quiet else None)
    try:
        if options.nr_fold is not None:
            do_cross_validation(problem, options.param, options.nr_fold)
        else:
            model = train(problem, options.param)
            try:
                save_model(options.model_file, model)
            except OSError:
                sys.stderr.write("can't save model to file %s\n" % options.model_file)
                return 1
    finally:
        set_print_string_function(None)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())