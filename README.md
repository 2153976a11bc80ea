# sparselinear

Linear classifiers and regressors for sparse data sets, written in pure
Python with no third-party dependencies.

Available solvers (`sparselinear.types.SolverType`):

| value | name | solver |
|------:|------|--------|
| 0  | `L2R_LR` | L2-regularized logistic regression (primal) |
| 1  | `L2R_L2LOSS_SVC_DUAL` | L2-regularized L2-loss support vector classification (dual, default) |
| 2  | `L2R_L2LOSS_SVC` | L2-regularized L2-loss support vector classification (primal) |
| 3  | `L2R_L1LOSS_SVC_DUAL` | L2-regularized L1-loss support vector classification (dual) |
| 4  | `MCSVM_CS` | multi-class support vector classification by Crammer and Singer |
| 5  | `L1R_L2LOSS_SVC` | L1-regularized L2-loss support vector classification |
| 6  | `L1R_LR` | L1-regularized logistic regression |
| 7  | `L2R_LR_DUAL` | L2-regularized logistic regression (dual) |
| 11 | `L2R_L2LOSS_SVR` | L2-regularized L2-loss support vector regression (primal) |
| 12 | `L2R_L2LOSS_SVR_DUAL` | L2-regularized L2-loss support vector regression (dual) |
| 13 | `L2R_L1LOSS_SVR_DUAL` | L2-regularized L1-loss support vector regression (dual) |

Multi-class problems are handled one-vs-rest, except by solver 4.

## Installation

```
pip install .
```

## Command line

Training data is read in the sparse text format: one instance per line, a
label followed by `index:value` pairs with 1-based, strictly increasing
indices.

```
+1 1:0.5 3:1.2
-1 2:0.7 3:-0.4
```

Train a model and write it to `data.txt.model` in the current directory:

```
sparselinear-train data.txt
```

The same command can be run as `python -m sparselinear.cli data.txt`.

Options:

- `-s type` solver type (default 1)
- `-c cost` the parameter C (default 1)
- `-p epsilon` the epsilon in the SVR loss (default 0.1)
- `-e epsilon` tolerance of the stopping criterion; when not given it is
  0.01 for solvers 0, 2, 5 and 6, 0.001 for solver 11 and 0.1 otherwise
- `-B bias` append a bias feature with this value when `bias >= 0` (default -1)
- `-wi weight` multiply C for class label `i` by `weight`, e.g. `-w1 2`
- `-v n` n-fold cross validation (n >= 2) instead of writing a model; prints
  the accuracy, or for regression the mean squared error and squared
  correlation coefficient
- `-q` quiet mode: no progress output

An explicit model path may follow the training file:

```
sparselinear-train -s 0 -c 4 -v 5 data.txt
sparselinear-train -s 6 data.txt model.txt
```

On a malformed input line, an unreadable file, an invalid parameter or a
model that cannot be written, a message goes to standard error and the
command exits with status 1.

## Library use

```python
from sparselinear.cli import read_problem
from sparselinear.types import Parameter, SolverType
from sparselinear.linear import train, predict, predict_probability, save_model, load_model

problem = read_problem("data.txt", bias=-1)
param = Parameter(solver_type=SolverType.L2R_LR, eps=0.01, C=1.0)
model = train(problem, param)

save_model("data.model", model)
model = load_model("data.model")
label = predict(model, [(1, 0.5), (3, 1.2)])
label, probabilities = predict_probability(model, [(1, 0.5), (3, 1.2)])
```

A `Problem` can also be built directly: `Problem(n, y, x, bias)`, where each
row of `x` is a list of `(index, value)` pairs.

- `train`, `train_one` and `cross_validation` accept an optional
  `random.Random` (`rng`) for reproducible runs and an optional `printer`
  for progress text.
- `predict_values` returns the prediction together with the decision values.
- `predict_probability` works only for the logistic regression solvers
  (0, 6 and 7) and raises `ValueError` for other models.
- `check_parameter` raises `ParameterError` for invalid settings, and
  `load_model` raises `ModelFormatError` for a malformed model file.
- `set_print_string_function` replaces the default printer, which writes to
  standard output; passing `None` restores it.

The trust-region Newton solver (`sparselinear.tron.Tron`) can minimise any
`sparselinear.tron.Objective` that supplies a function value, gradient and
Hessian-vector product.

## What it does not do

- There is no command for predicting with a saved model; load it with
  `load_model` and call `predict` from Python.
- The command line does not take a random seed, so cross-validation folds
  and solver orderings differ from run to run.
- Everything runs in plain Python, so large data sets train far more slowly
  than with compiled solvers.