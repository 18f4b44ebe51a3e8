"""
Element types and the symbolic type terms ops are described with

    Add :: a → a → a
    Sum :: Tensor a → a
"""

from __future__ import annotations

import dataclasses
import enum
from typing import Mapping, Union

import numpy as np

from gradops import errors


class Dtype(enum.Enum):
    """Element types. The value is a stable code (used for hashing), never reorder."""

    FLOAT64 = 1
    FLOAT32 = 2
    INT64 = 3
    INT32 = 4
    BOOL = 5

    @property
    def np_dtype(self) -> np.dtype:
        return np.dtype(self.name.lower())

    def __str__(self) -> str:
        return self.name.lower()

    @classmethod
    def of(cls, dtype: np.dtype | type | str | Dtype) -> Dtype:
        if isinstance(dtype, Dtype):
            return dtype
        try:
            return cls[np.dtype(dtype).name.upper()]
        except (KeyError, TypeError) as e:
            raise errors.TypeMismatch(f"unsupported element type {dtype!r}") from e


### Type terms ###
@dataclasses.dataclass(frozen=True, slots=True)
class TypeVariable:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclasses.dataclass(frozen=True, slots=True)
class ScalarType:
    dtype: Dtype

    def __str__(self) -> str:
        return str(self.dtype)


@dataclasses.dataclass(frozen=True, slots=True)
class TensorType:
    """`dtype` may be a variable when the type is part of an op signature"""

    dtype: Dtype | TypeVariable
    ndims: int

    def __str__(self) -> str:
        return f"Tensor-{self.ndims} {self.dtype}"


@dataclasses.dataclass(frozen=True, slots=True, init=False)
class FunctionType:
    params: tuple[Type, ...]
    ret: Type

    def __init__(self, *types: Type) -> None:
        assert len(types) >= 1, "function type needs at least a return type"
        object.__setattr__(self, "params", tuple(types[:-1]))
        object.__setattr__(self, "ret", types[-1])

    def __str__(self) -> str:
        return " → ".join(map(str, (*self.params, self.ret)))


Type = Union[TypeVariable, ScalarType, TensorType, FunctionType]


### Inference ###
def infer_type(op_type: Type, *input_types: Type) -> Type:
    """
    Resolve the output type of applying something of `op_type` to `input_types`.
    A non-function type takes no inputs and is its own output type.
    """
    if not isinstance(op_type, FunctionType):
        if input_types:
            raise errors.ArityMismatch(op_type, 0, len(input_types))
        return op_type
    if len(op_type.params) != len(input_types):
        raise errors.ArityMismatch(op_type, len(op_type.params), len(input_types))
    subs: dict[TypeVariable, Type | Dtype] = {}
    for param, arg in zip(op_type.params, input_types, strict=True):
        unify(param, arg, subs)
    return substitute(op_type.ret, subs)


def unify(param: Type, arg: Type, subs: dict[TypeVariable, Type | Dtype]) -> None:
    match param, arg:
        case TypeVariable(), _:
            bound = subs.setdefault(param, arg)
            if bound != arg and not (isinstance(arg, ScalarType) and bound == arg.dtype):
                raise errors.TypeMismatch(f"{param} bound to {bound}, cannot also be {arg}")
        case TensorType(), TensorType():
            if param.ndims != arg.ndims:
                raise errors.TypeMismatch(f"expected {param}, got {arg}")
            _unify_dtype(param.dtype, arg.dtype, subs)
        case ScalarType(), ScalarType():
            _unify_dtype(param.dtype, arg.dtype, subs)
        case _:
            raise errors.TypeMismatch(f"expected {param}, got {arg}")


def _unify_dtype(param: Dtype | TypeVariable, arg: Dtype | TypeVariable, subs: dict) -> None:
    if isinstance(param, TypeVariable):
        bound = subs.setdefault(param, arg)
        # a variable may have been bound to a full type (`a`) or an element type (`Tensor a`)
        bound_dtype = bound.dtype if isinstance(bound, (ScalarType, TensorType)) else bound
        if bound_dtype != arg:
            raise errors.TypeMismatch(f"{param} bound to {bound}, cannot also be {arg}")
    elif param != arg:
        raise errors.TypeMismatch(f"expected element type {param}, got {arg}")


def substitute(typ: Type, subs: Mapping[TypeVariable, Type | Dtype]) -> Type:
    match typ:
        case TypeVariable():
            bound = subs.get(typ, typ)
            return ScalarType(bound) if isinstance(bound, Dtype) else bound
        case TensorType(dtype=TypeVariable() as var):
            bound = subs.get(var, var)
            return TensorType(bound.dtype if isinstance(bound, (ScalarType, TensorType)) else bound, typ.ndims)
        case FunctionType():
            return FunctionType(*(substitute(t, subs) for t in (*typ.params, typ.ret)))
        case _:
            return typ


def dtype_of(typ: Type) -> Dtype:
    assert isinstance(typ, (ScalarType, TensorType)), f"{typ=} has no element type"
    assert isinstance(typ.dtype, Dtype), f"{typ=} is not concrete"
    return typ.dtype
