import pytest

from sparselinear.types import (
    Model,
    ModelFormatError,
    Parameter,
    ParameterError,
    Problem,
    SolverType,
    print_stdout,
)


def test_solver_type_numbering_matches_format():
    assert SolverType.L2R_LR == 0
    assert SolverType.L2R_LR_DUAL == 7
    assert SolverType.L2R_L2LOSS_SVR == 11
    assert SolverType.L2R_L1LOSS_SVR_DUAL == 13
    assert SolverType(12) is SolverType.L2R_L2LOSS_SVR_DUAL


def test_solver_type_gap_is_invalid():
    with pytest.raises(ValueError):
        SolverType(9)


def test_problem_length_counts_instances():
    prob = Problem(n=2, y=[1.0, -1.0, 1.0], x=[[(1, 1.0)], [(2, 1.0)], []])
    assert prob.l == 3
    assert prob.bias == -1.0


def test_parameter_defaults():
    param = Parameter()
    assert param.solver_type is SolverType.L2R_L2LOSS_SVC_DUAL
    assert param.C == 1.0
    assert param.weight_label == []
    assert param.weight == []
    other = Parameter()
    other.weight.append(2.0)
    assert param.weight == []


def test_model_nr_w_binary_and_multiclass():
    binary = Model(Parameter(), nr_class=2, nr_feature=3, w=[0.0] * 3, label=[1, -1])
    assert binary.nr_w == 1
    cs = Model(
        Parameter(solver_type=SolverType.MCSVM_CS),
        nr_class=2,
        nr_feature=3,
        w=[0.0] * 6,
        label=[1, -1],
    )
    assert cs.nr_w == 2
    multi = Model(Parameter(), nr_class=4, nr_feature=3, w=[0.0] * 12, label=[1, 2, 3, 4])
    assert multi.nr_w == 4


def test_model_w_size_with_and_without_bias():
    without = Model(Parameter(), nr_class=2, nr_feature=5, w=[0.0] * 5)
    with_bias = Model(Parameter(), nr_class=2, nr_feature=5, w=[0.0] * 6, bias=1.0)
    assert without.w_size == 5
    assert with_bias.w_size == 6


def test_errors_are_value_errors_carrying_message():
    model_error = ModelFormatError("bad header")
    param_error = ParameterError("eps <= 0")
    assert issubclass(ModelFormatError, ValueError)
    assert issubclass(ParameterError, ValueError)
    assert str(model_error) == "bad header"
    assert str(param_error) == "eps <= 0"


def test_print_stdout_writes_text(capsys):
    print_stdout("hello\n")
    assert capsys.readouterr().out == "hello\n"