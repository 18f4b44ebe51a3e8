import numpy as np
import pytest

from gradops import config, constants, dtypes, errors, graph, ops, shapes, values


@pytest.fixture
def scalar_const() -> constants.ConstantScalar:
    return constants.ConstantScalar(values.Scalar(5.0))


@pytest.fixture
def tensor_const() -> constants.ConstantTensor:
    return constants.ConstantTensor(values.Tensor(np.arange(6, dtype=np.float64).reshape(2, 3)))


def test_constant_scalar_contract(scalar_const: constants.ConstantScalar) -> None:
    assert scalar_const.type() == dtypes.ScalarType(dtypes.Dtype.FLOAT64)
    assert scalar_const.infer_shape(scalar_const.type()) == shapes.Shape(())
    assert scalar_const.returns_ptr() is False
    assert scalar_const.calls_extern() is False
    assert scalar_const.overwrite_input() == ops.NO_OVERWRITE
    assert str(scalar_const) == "const 5.0"


def test_constant_tensor_contract(tensor_const: constants.ConstantTensor) -> None:
    assert tensor_const.type() == dtypes.TensorType(dtypes.Dtype.FLOAT64, 2)
    assert tensor_const.infer_shape(tensor_const.type()) == shapes.Shape((2, 3))
    assert tensor_const.returns_ptr() is True
    assert tensor_const.calls_extern() is False
    assert tensor_const.overwrite_input() == ops.NO_OVERWRITE
    assert str(tensor_const) == "const Tensor-2 float64"


@pytest.mark.parametrize("v", [3.0, -2, True, np.float32(0.25)])
def test_constant_scalar_round_trip(v) -> None:
    value = values.Scalar(v)
    assert constants.ConstantScalar(value).do() == value


def test_constant_tensor_round_trip(tensor_const: constants.ConstantTensor) -> None:
    assert tensor_const.do() == tensor_const.value()
    assert tensor_const.do().tolist() == [[0, 1, 2], [3, 4, 5]]


def test_constants_are_not_differentiable(
    scalar_const: constants.ConstantScalar, tensor_const: constants.ConstantTensor
) -> None:
    for const in (scalar_const, tensor_const):
        node = graph.apply_op(const)
        grad = graph.constant(1.0)
        assert const.diff_wrt(0) == []
        assert const.sym_diff((), node, grad) == []


def test_constant_tensor_aliases_its_value(tensor_const: constants.ConstantTensor) -> None:
    first, second = tensor_const.do(), tensor_const.do()
    assert first.shares_memory(second)
    tensor_const.value().data[0, 0] = 42.0
    assert first.data[0, 0] == second.data[0, 0] == 42.0


def test_constant_tensor_hands_out_read_only_views(tensor_const: constants.ConstantTensor) -> None:
    result = tensor_const.do()
    with pytest.raises(ValueError):
        result.data[0, 0] = 1.0
    assert tensor_const.value().data[0, 0] == 0.0


def test_constant_scalar_returns_value_semantics(scalar_const: constants.ConstantScalar) -> None:
    result = scalar_const.do()
    assert isinstance(result, values.Scalar)
    with pytest.raises(AttributeError):
        result._v = 7.0  # type: ignore[misc]
    assert scalar_const.do() == values.Scalar(5.0)


def test_constants_reject_inputs_by_default(
    scalar_const: constants.ConstantScalar, tensor_const: constants.ConstantTensor
) -> None:
    for const in (scalar_const, tensor_const):
        with pytest.raises(errors.ArityMismatch):
            const.do(values.Scalar(1.0))


def test_constants_lenient_arity(scalar_const: constants.ConstantScalar, tensor_const: constants.ConstantTensor) -> None:
    with config.Configuration(strict_arity=False):
        assert scalar_const.do(values.Scalar(1.0)) == values.Scalar(5.0)
        assert tensor_const.do(values.Scalar(1.0)) == tensor_const.value()
    with pytest.raises(errors.ArityMismatch):
        scalar_const.do(values.Scalar(1.0))


def test_constant_capability(scalar_const: constants.ConstantScalar, tensor_const: constants.ConstantTensor) -> None:
    for const in (scalar_const, tensor_const):
        assert isinstance(const, ops.Constant)
        assert ops.arity(const) == 0
        assert not isinstance(const, ops.UnsafeDoer)
        assert not isinstance(const, ops.IncrDoer)


@pytest.mark.parametrize(
    "x, expected_type",
    [
        (2.5, constants.ConstantScalar),
        (7, constants.ConstantScalar),
        ([1, 2, 3], constants.ConstantTensor),
        (np.zeros((2, 2)), constants.ConstantTensor),
    ],
)
def test_constant_op_factory(x, expected_type) -> None:
    assert isinstance(constants.constant_op(x), expected_type)


def test_constant_op_rejects_unknown_values() -> None:
    with pytest.raises(errors.TypeMismatch):
        constants.constant_op("three")
