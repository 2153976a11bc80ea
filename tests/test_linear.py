import random

import pytest

from sparselinear.linear import (
    check_parameter,
    check_probability_model,
    cross_validation,
    group_classes,
    load_model,
    predict,
    predict_probability,
    predict_values,
    save_model,
    set_print_string_function,
    train,
    train_one,
)
from sparselinear.types import Model, ModelFormatError, Parameter, ParameterError, Problem, SolverType


def quiet(text):
    pass


def binary_problem():
    pos = [(2.0, 1.0), (1.0, 2.0), (2.0, 2.0), (3.0, 3.0)]
    neg = [(-2.0, -1.0), (-1.0, -2.0), (-2.0, -2.0), (-3.0, -3.0)]
    x = [[(1, a), (2, b), (3, 1.0)] for a, b in pos + neg]
    y = [1.0] * 4 + [-1.0] * 4
    return Problem(n=3, y=y, x=x, bias=1.0)


def multiclass_problem():
    x = []
    y = []
    for feature, lab in ((1, 10), (2, 20), (3, 30)):
        for value in (1.0, 0.8, 1.2):
            x.append([(feature, value)])
            y.append(float(lab))
    return Problem(n=3, y=y, x=x)


def test_group_classes_order_and_counts():
    problem = Problem(n=1, y=[2.0, 1.0, 2.0, 3.0, 1.0], x=[[]] * 5)
    label, start, count, perm = group_classes(problem)
    assert label == [2, 1, 3]
    assert count == [2, 2, 1]
    assert sorted(perm) == list(range(5))
    grouped = [int(problem.y[i]) for i in perm]
    assert grouped == [2, 2, 1, 1, 3]
    for lab, s, c in zip(label, start, count):
        assert grouped[s : s + c] == [lab] * c


@pytest.mark.parametrize(
    "solver",
    [
        SolverType.L2R_LR,
        SolverType.L2R_L2LOSS_SVC_DUAL,
        SolverType.L2R_L2LOSS_SVC,
        SolverType.L2R_L1LOSS_SVC_DUAL,
        SolverType.MCSVM_CS,
        SolverType.L1R_L2LOSS_SVC,
        SolverType.L1R_LR,
        SolverType.L2R_LR_DUAL,
    ],
)
def test_train_binary_separable(solver):
    problem = binary_problem()
    model = train(problem, Parameter(solver_type=solver, eps=0.01), random.Random(1), quiet)
    assert model.nr_feature == 2
    assert model.label == [1, -1]
    assert [predict(model, row) for row in problem.x] == problem.y


@pytest.mark.parametrize("solver", [SolverType.L2R_L2LOSS_SVC_DUAL, SolverType.MCSVM_CS, SolverType.L2R_LR])
def test_train_multiclass(solver):
    problem = multiclass_problem()
    model = train(problem, Parameter(solver_type=solver, eps=0.01), random.Random(2), quiet)
    assert model.label == [10, 20, 30]
    assert len(model.w) == 3 * 3
    assert [predict(model, row) for row in problem.x] == problem.y


@pytest.mark.parametrize(
    "solver",
    [SolverType.L2R_L2LOSS_SVR, SolverType.L2R_L1LOSS_SVR_DUAL, SolverType.L2R_L2LOSS_SVR_DUAL],
)
def test_train_regression(solver):
    xs = [1.0, 2.0, 3.0, 4.0, 5.0]
    problem = Problem(n=1, y=[2 * v for v in xs], x=[[(1, v)] for v in xs])
    param = Parameter(solver_type=solver, eps=0.001, C=10.0, p=0.1)
    model = train(problem, param, random.Random(3), quiet)
    assert model.label is None
    assert model.nr_class == 2
    assert predict(model, [(1, 3.0)]) == pytest.approx(6.0, abs=0.5)


def test_train_one_rejects_unknown_solver():
    with pytest.raises(ParameterError):
        train_one(binary_problem(), Parameter(solver_type=9), 1.0, 1.0, random.Random(0), quiet)


def test_weight_for_missing_label_warns(capsys):
    param = Parameter(weight_label=[9], weight=[2.0])
    model = train(binary_problem(), param, random.Random(0), quiet)
    assert "WARNING: class label 9 specified in weight is not found" in capsys.readouterr().err
    assert model.param.weight_label == [9]


def test_cross_validation_returns_labels():
    problem = binary_problem()
    target = cross_validation(problem, Parameter(), 4, random.Random(5), quiet)
    assert len(target) == problem.l
    assert set(target) <= {1.0, -1.0}


def test_predict_values_binary():
    model = Model(Parameter(solver_type=SolverType.L2R_L2LOSS_SVC_DUAL), 2, 2, [1.0, -2.0], [5, 7])
    label, dec = predict_values(model, [(1, 3.0), (4, 100.0)])
    assert label == 5
    assert dec == [3.0]
    assert predict(model, [(2, 1.0)]) == 7


def test_predict_values_multiclass_argmax():
    model = Model(Parameter(solver_type=SolverType.MCSVM_CS), 3, 1, [0.1, 0.9, 0.5], [4, 5, 6])
    label, dec = predict_values(model, [(1, 1.0)])
    assert label == 5
    assert dec == [0.1, 0.9, 0.5]


def test_predict_probability_binary_zero_weights():
    model = Model(Parameter(solver_type=SolverType.L2R_LR), 2, 1, [0.0], [1, -1])
    label, probs = predict_probability(model, [])
    assert label == -1
    assert probs == [0.5, 0.5]


def test_predict_probability_multiclass_sums_to_one():
    problem = multiclass_problem()
    model = train(problem, Parameter(solver_type=SolverType.L2R_LR, eps=0.01), random.Random(0), quiet)
    label, probs = predict_probability(model, problem.x[0])
    assert label == 10
    assert sum(probs) == pytest.approx(1.0)
    assert probs.index(max(probs)) == 0


def test_predict_probability_requires_logistic_model():
    model = Model(Parameter(solver_type=SolverType.L2R_L2LOSS_SVC_DUAL), 2, 1, [1.0], [1, -1])
    assert check_probability_model(model) is False
    with pytest.raises(ValueError):
        predict_probability(model, [(1, 1.0)])


def test_check_probability_model_true_for_logistic():
    model = Model(Parameter(solver_type=SolverType.L1R_LR), 2, 1, [1.0], [1, -1])
    assert check_probability_model(model) is True


def test_save_model_format(tmp_path):
    model = Model(Parameter(solver_type=SolverType.L2R_LR), 2, 2, [0.5, -0.25, 1.0], [1, -1], 1.0)
    path = tmp_path / "m.model"
    save_model(path, model)
    assert path.read_text() == (
        "solver_type L2R_LR\nnr_class 2\nlabel 1 -1\nnr_feature 2\nbias 1\nw\n0.5 \n-0.25 \n1 \n"
    )


def test_save_load_round_trip(tmp_path):
    problem = multiclass_problem()
    model = train(problem, Parameter(solver_type=SolverType.MCSVM_CS), random.Random(4), quiet)
    path = tmp_path / "multi.model"
    save_model(path, model)
    loaded = load_model(path)
    assert loaded.param.solver_type == SolverType.MCSVM_CS
    assert loaded.label == model.label
    assert loaded.nr_feature == model.nr_feature
    assert loaded.bias == model.bias
    assert loaded.w == pytest.approx(model.w, rel=1e-15)
    assert [predict(loaded, r) for r in problem.x] == [predict(model, r) for r in problem.x]


def test_load_model_unknown_solver(tmp_path):
    path = tmp_path / "bad.model"
    path.write_text("solver_type NOPE\nnr_class 2\n")
    with pytest.raises(ModelFormatError):
        load_model(path)


def test_load_model_unknown_text(tmp_path):
    path = tmp_path / "bad.model"
    path.write_text("bogus 1\n")
    with pytest.raises(ModelFormatError, match="bogus"):
        load_model(path)


def test_load_model_truncated_weights(tmp_path):
    path = tmp_path / "short.model"
    path.write_text("solver_type L2R_LR\nnr_class 2\nlabel 1 -1\nnr_feature 3\nbias -1\nw\n0.5 \n")
    with pytest.raises(ModelFormatError):
        load_model(path)


@pytest.mark.parametrize(
    "param, message",
    [
        (Parameter(eps=0.0), "eps <= 0"),
        (Parameter(C=-1.0), "C <= 0"),
        (Parameter(p=-0.5), "p < 0"),
        (Parameter(solver_type=8), "unknown solver type"),
    ],
)
def test_check_parameter_errors(param, message):
    with pytest.raises(ParameterError, match=message):
        check_parameter(binary_problem(), param)


def test_check_parameter_accepts_defaults():
    assert check_parameter(binary_problem(), Parameter()) is None


def test_set_print_string_function_redirects_output():
    collected = []
    problem = binary_problem()
    set_print_string_function(collected.append)
    try:
        model = train(problem, Parameter(), random.Random(0))
    finally:
        set_print_string_function(None)
    assert model.label == [1, -1]
    assert [predict(model, row) for row in problem.x] == problem.y
    assert any("optimization finished" in text for text in collected)