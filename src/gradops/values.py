"""
Runtime values ops execute over.

`Scalar` has value semantics, `Tensor` reference semantics: a tensor
wraps its ndarray without copying, so two tensors may share storage.
"""

from __future__ import annotations

import dataclasses
from typing import Any, Protocol, Union, runtime_checkable

import numpy as np

from gradops import dtypes, errors, shapes


@runtime_checkable
class Value(Protocol):
    @property
    def dtype(self) -> dtypes.Dtype: ...

    @property
    def shape(self) -> shapes.Shape: ...

    @property
    def type(self) -> dtypes.Type: ...

    @property
    def data(self) -> Any: ...


@dataclasses.dataclass(frozen=True, slots=True, init=False)
class Scalar:
    _v: np.generic

    def __init__(self, v: Any, dtype: dtypes.Dtype | None = None) -> None:
        dtype = dtypes.Dtype.of(np.asarray(v).dtype if dtype is None else dtype)
        object.__setattr__(self, "_v", dtype.np_dtype.type(v))

    @property
    def dtype(self) -> dtypes.Dtype:
        return dtypes.Dtype.of(self._v.dtype)

    @property
    def shape(self) -> shapes.Shape:
        return shapes.SCALAR

    @property
    def type(self) -> dtypes.ScalarType:
        return dtypes.ScalarType(self.dtype)

    @property
    def data(self) -> np.generic:
        return self._v

    def item(self) -> int | float | bool:
        return self._v.item()

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Scalar) and self.dtype == other.dtype and self._v == other._v

    def __hash__(self) -> int:
        return hash((self.dtype, self.item()))

    def __repr__(self) -> str:
        return f"Scalar({self._v!r})"

    def __str__(self) -> str:
        return str(self.item())


class Tensor:
    __slots__ = ("_arr",)

    def __init__(self, arr: Any, dtype: dtypes.Dtype | None = None) -> None:
        if not isinstance(arr, np.ndarray) or (dtype is not None and arr.dtype != dtype.np_dtype):
            arr = np.asarray(arr, dtype=None if dtype is None else dtype.np_dtype)
        dtypes.Dtype.of(arr.dtype)  # reject unsupported element types early
        self._arr = arr

    @property
    def dtype(self) -> dtypes.Dtype:
        return dtypes.Dtype.of(self._arr.dtype)

    @property
    def shape(self) -> shapes.Shape:
        return shapes.Shape(tuple(self._arr.shape))

    @property
    def type(self) -> dtypes.TensorType:
        return dtypes.TensorType(self.dtype, self._arr.ndim)

    @property
    def data(self) -> np.ndarray:
        return self._arr

    def shares_memory(self, other: Tensor) -> bool:
        return np.shares_memory(self._arr, other._arr)

    def tolist(self) -> shapes.PyArrayRepr:
        return self._arr.tolist()

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, Tensor)
            and self.dtype == other.dtype
            and self.shape == other.shape
            and bool(np.array_equal(self._arr, other._arr))
        )

    __hash__ = None  # type: ignore[assignment]  # mutable

    def __repr__(self) -> str:
        return f"Tensor({self._arr.tolist()!r}, dtype={self.dtype})"

    def __str__(self) -> str:
        return np.array2string(self._arr, threshold=16)


AnyValue = Union[Scalar, Tensor]


def as_value(x: Any, /) -> AnyValue:
    """python numbers/nested lists/numpy objects → `Scalar` | `Tensor`"""
    if isinstance(x, (Scalar, Tensor)):
        return x
    if isinstance(x, np.ndarray):
        return Tensor(x)
    if isinstance(x, (int, float, bool, np.generic)):
        return Scalar(x)
    if isinstance(x, (list, tuple)):
        return Tensor(np.asarray(x))
    raise errors.TypeMismatch(f"cannot interpret {type(x).__name__} as a value")


def of_type(arr: Any, typ: dtypes.Type) -> AnyValue:
    """Wrap a kernel result so it matches the resolved type `typ`"""
    dtype = dtypes.dtype_of(typ)
    if isinstance(typ, dtypes.ScalarType):
        return Scalar(np.asarray(arr).item() if isinstance(arr, np.ndarray) else arr, dtype)
    return Tensor(np.asarray(arr, dtype=dtype.np_dtype))
