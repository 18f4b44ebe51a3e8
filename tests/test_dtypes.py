import numpy as np
import pytest

from gradops import dtypes, errors

a = dtypes.TypeVariable("a")
F64, I64 = dtypes.Dtype.FLOAT64, dtypes.Dtype.INT64


@pytest.mark.parametrize(
    "np_dtype, expected",
    [
        (np.float64, dtypes.Dtype.FLOAT64),
        ("float32", dtypes.Dtype.FLOAT32),
        (np.dtype("int32"), dtypes.Dtype.INT32),
        (bool, dtypes.Dtype.BOOL),
    ],
)
def test_dtype_of(np_dtype, expected):
    assert dtypes.Dtype.of(np_dtype) is expected
    assert expected.np_dtype == np.dtype(np_dtype)


def test_dtype_of_unsupported():
    with pytest.raises(errors.TypeMismatch):
        dtypes.Dtype.of(np.complex128)


def test_dtype_codes_are_stable():
    assert [d.value for d in dtypes.Dtype] == [1, 2, 3, 4, 5]


def test_function_type_str():
    assert str(dtypes.FunctionType(a, a, a)) == "a → a → a"
    assert str(dtypes.FunctionType(dtypes.TensorType(a, 2), a)) == "Tensor-2 a → a"


@pytest.mark.parametrize(
    "op_type, input_types, expected",
    [
        (dtypes.FunctionType(a, a, a), (dtypes.ScalarType(F64),) * 2, dtypes.ScalarType(F64)),
        (dtypes.FunctionType(a, a, a), (dtypes.TensorType(I64, 2),) * 2, dtypes.TensorType(I64, 2)),
        (dtypes.FunctionType(dtypes.TensorType(a, 2), a), (dtypes.TensorType(F64, 2),), dtypes.ScalarType(F64)),
        (
            dtypes.FunctionType(dtypes.TensorType(a, 3), dtypes.TensorType(a, 1)),
            (dtypes.TensorType(I64, 3),),
            dtypes.TensorType(I64, 1),
        ),
        (dtypes.FunctionType(a, dtypes.TensorType(a, 2)), (dtypes.ScalarType(F64),), dtypes.TensorType(F64, 2)),
        (dtypes.ScalarType(F64), (), dtypes.ScalarType(F64)),
    ],
)
def test_infer_type(op_type, input_types, expected):
    assert dtypes.infer_type(op_type, *input_types) == expected


@pytest.mark.parametrize(
    "op_type, input_types",
    [
        (dtypes.FunctionType(a, a, a), (dtypes.ScalarType(F64), dtypes.ScalarType(I64))),
        (dtypes.FunctionType(a, a, a), (dtypes.ScalarType(F64), dtypes.TensorType(F64, 1))),
        (dtypes.FunctionType(dtypes.TensorType(a, 2), a), (dtypes.TensorType(F64, 1),)),
        (dtypes.FunctionType(dtypes.TensorType(a, 2), a), (dtypes.ScalarType(F64),)),
    ],
)
def test_infer_type_mismatch(op_type, input_types):
    with pytest.raises(errors.TypeMismatch):
        dtypes.infer_type(op_type, *input_types)


def test_infer_type_arity():
    with pytest.raises(errors.ArityMismatch):
        dtypes.infer_type(dtypes.FunctionType(a, a, a), dtypes.ScalarType(F64))
    with pytest.raises(errors.ArityMismatch):
        dtypes.infer_type(dtypes.ScalarType(F64), dtypes.ScalarType(F64))
