"""
Reference arithmetic ops.

A deliberately small set: enough to build, differentiate and execute
real graphs around the constants, and to exercise every optional
capability (in-place increment, preallocated output, input overwrite,
execution-time differentiation, reduction, no-return).
"""

from __future__ import annotations

import dataclasses
import functools
from typing import Any, Callable, Sequence

import numpy as np

from gradops import dtypes, errors, graph, hashing, ops, shapes, values

a = dtypes.TypeVariable("a")


def _kernel(f: Callable[..., Any]) -> Callable[..., Any]:
    """numpy floating point errors → `ComputationError`"""

    @functools.wraps(f)
    def wrapped(*args: Any, **kwargs: Any) -> Any:
        with np.errstate(all="raise"):
            try:
                return f(*args, **kwargs)
            except FloatingPointError as e:
                raise errors.ComputationError(str(e)) from e

    return wrapped


def _out_type(op: ops.Op, inputs: Sequence[values.AnyValue]) -> dtypes.Type:
    if (n := ops.arity(op)) is not None:
        ops.check_arity(op, n, inputs)
    out_type = dtypes.infer_type(op.type(), *(v.type for v in inputs))
    if not all(v.shape == inputs[0].shape for v in inputs[1:]):
        raise errors.ShapeMismatch(f"{op}: shapes differ: {', '.join(str(v.shape) for v in inputs)}")
    return out_type


def _same_shape(*nodes: graph.Node) -> shapes.Shape:
    if not all(nodes[0].shape == n.shape for n in nodes[1:]):
        raise errors.ShapeMismatch(f"shapes differ: {', '.join(str(n.shape) for n in nodes)}")
    return nodes[0].shape


def _writable(target: values.AnyValue, out_type: dtypes.Type, out_shape: shapes.Shape) -> np.ndarray:
    if not isinstance(target, values.Tensor):
        raise errors.TypeMismatch(f"cannot write into immutable {target!r}")
    if target.type != out_type and not (isinstance(out_type, dtypes.ScalarType) and target.dtype == out_type.dtype):
        raise errors.TypeMismatch(f"target {target.type} does not hold {out_type}")
    if target.shape != out_shape:
        raise errors.ShapeMismatch(f"target {target.shape} does not hold {out_shape}")
    return target.data


class _Elemwise(ops.Op):
    """Elementwise op over same-typed, same-shaped inputs"""

    name: str
    ufunc: np.ufunc

    def type(self) -> dtypes.Type:
        return dtypes.FunctionType(*(a,) * (ops.arity(self) + 1))  # type: ignore[operator]

    def infer_shape(self, out_type: dtypes.Type, *inputs: graph.Node) -> shapes.Shape:
        ops.check_arity(self, ops.arity(self), inputs)  # type: ignore[arg-type]
        return _same_shape(*inputs)

    def diff_wrt(self, n_inputs: int) -> list[bool]:
        return [True] * n_inputs

    @_kernel
    def do(self, *inputs: values.AnyValue) -> values.AnyValue:
        out_type = _out_type(self, inputs)
        return values.of_type(self.ufunc(*(v.data for v in inputs)), out_type)

    @_kernel
    def incr_do(self, target: values.AnyValue, *inputs: values.AnyValue) -> None:
        out_type = _out_type(self, inputs)
        arr = _writable(target, out_type, inputs[0].shape)
        arr += self.ufunc(*(v.data for v in inputs))

    @_kernel
    def use_prealloc_do(self, prealloc: values.AnyValue, *inputs: values.AnyValue) -> values.AnyValue:
        out_type = _out_type(self, inputs)
        self.ufunc(*(v.data for v in inputs), out=_writable(prealloc, out_type, inputs[0].shape))
        return prealloc

    @_kernel
    def unsafe_do(self, *inputs: values.AnyValue) -> values.AnyValue:
        out_type = _out_type(self, inputs)
        if not isinstance(overwritten := inputs[self.overwrite_input()], values.Tensor):
            return values.of_type(self.ufunc(*(v.data for v in inputs)), out_type)
        self.ufunc(*(v.data for v in inputs), out=overwritten.data)
        return overwritten

    def returns_ptr(self) -> bool:
        return False

    def calls_extern(self) -> bool:
        return False

    def overwrite_input(self) -> int:
        return 0

    def write_hash(self, h: hashing.Digest) -> None:
        hashing.write_str(h, self.name)

    def __str__(self) -> str:
        return self.name

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other)

    def __hash__(self) -> int:
        return hash(type(self))


class Add(_Elemwise):
    name, ufunc = "+", np.add

    def is_binary(self) -> bool:
        return True

    def sym_diff(
        self, inputs: Sequence[graph.Node], output: graph.Node, grad: graph.Node
    ) -> list[graph.Node | None]:
        return [grad for _ in inputs]

    def do_diff(self, inputs: Sequence[graph.Node], output: graph.Node) -> None:
        delta = _grad_of(output)
        for node in inputs:
            accumulate_grad(node, delta)


class Mul(_Elemwise):
    name, ufunc = "*", np.multiply

    def is_binary(self) -> bool:
        return True

    def sym_diff(
        self, inputs: Sequence[graph.Node], output: graph.Node, grad: graph.Node
    ) -> list[graph.Node | None]:
        x, y = inputs
        return [graph.apply_op(Mul(), grad, y), graph.apply_op(Mul(), grad, x)]

    def do_diff(self, inputs: Sequence[graph.Node], output: graph.Node) -> None:
        delta = _grad_of(output)
        x, y = inputs
        accumulate_grad(x, self.do(delta, _value_of(y)))
        accumulate_grad(y, self.do(delta, _value_of(x)))


class Neg(_Elemwise):
    name, ufunc = "neg", np.negative

    def is_unary(self) -> bool:
        return True

    def sym_diff(
        self, inputs: Sequence[graph.Node], output: graph.Node, grad: graph.Node
    ) -> list[graph.Node | None]:
        return [graph.apply_op(Neg(), grad)]

    def do_diff(self, inputs: Sequence[graph.Node], output: graph.Node) -> None:
        (x,) = inputs
        accumulate_grad(x, self.do(_grad_of(output)))


### reductions & their inverse ###
def _reduced_type(ndims: int, n_axes: int) -> dtypes.Type:
    return a if ndims == n_axes else dtypes.TensorType(a, ndims - n_axes)


@dataclasses.dataclass(frozen=True, slots=True, repr=False)
class Sum(ops.Op):
    """Sum a tensor of `ndims` dimensions over `axes`"""

    axes: tuple[int, ...]
    ndims: int

    def __post_init__(self) -> None:
        if not all(0 <= ax < self.ndims for ax in self.axes) or len(set(self.axes)) != len(self.axes):
            raise errors.ShapeMismatch(f"invalid axes {self.axes} for {self.ndims} dims")
        object.__setattr__(self, "axes", tuple(sorted(self.axes)))

    @staticmethod
    def _numeric(out_type: dtypes.Type) -> None:
        if dtypes.dtype_of(out_type) is dtypes.Dtype.BOOL:
            raise errors.TypeMismatch("cannot sum booleans")

    def type(self) -> dtypes.Type:
        return dtypes.FunctionType(dtypes.TensorType(a, self.ndims), _reduced_type(self.ndims, len(self.axes)))

    def infer_shape(self, out_type: dtypes.Type, *inputs: graph.Node) -> shapes.Shape:
        ops.check_arity(self, 1, inputs)
        self._numeric(out_type)
        if inputs[0].shape.ndims != self.ndims:
            raise errors.ShapeMismatch(f"{self} expects {self.ndims} dims, got {inputs[0].shape}")
        return inputs[0].shape.dropaxes(*self.axes)

    def diff_wrt(self, n_inputs: int) -> list[bool]:
        return [True] * n_inputs

    def sym_diff(
        self, inputs: Sequence[graph.Node], output: graph.Node, grad: graph.Node
    ) -> list[graph.Node | None]:
        return [graph.apply_op(Expand(self.axes, inputs[0].shape.dims), grad)]

    @_kernel
    def do(self, *inputs: values.AnyValue) -> values.AnyValue:
        out_type = _out_type(self, inputs)
        self._numeric(out_type)
        return values.of_type(np.sum(inputs[0].data, axis=self.axes), out_type)

    def returns_ptr(self) -> bool:
        return False

    def calls_extern(self) -> bool:
        return False

    def overwrite_input(self) -> int:
        return ops.NO_OVERWRITE

    def is_unary(self) -> bool:
        return True

    def is_reduction(self) -> bool:
        return True

    def write_hash(self, h: hashing.Digest) -> None:
        hashing.write_str(h, f"sum{self.axes} of {self.ndims}")

    def __str__(self) -> str:
        return f"Σ{list(self.axes)}"


@dataclasses.dataclass(frozen=True, slots=True, repr=False)
class Expand(ops.Op):
    """Inverse of `Sum`: repeat the input along `axes` to reach `shape`"""

    axes: tuple[int, ...]
    shape: tuple[int, ...]

    def __post_init__(self) -> None:
        ndims = len(self.shape)
        if not all(0 <= ax < ndims for ax in self.axes) or len(set(self.axes)) != len(self.axes):
            raise errors.ShapeMismatch(f"invalid axes {self.axes} for {ndims} dims")
        object.__setattr__(self, "axes", tuple(sorted(self.axes)))
        object.__setattr__(self, "shape", tuple(self.shape))

    def type(self) -> dtypes.Type:
        ndims = len(self.shape)
        return dtypes.FunctionType(_reduced_type(ndims, len(self.axes)), dtypes.TensorType(a, ndims))

    def infer_shape(self, out_type: dtypes.Type, *inputs: graph.Node) -> shapes.Shape:
        ops.check_arity(self, 1, inputs)
        full = shapes.Shape(self.shape)
        if inputs[0].shape != full.dropaxes(*self.axes):
            raise errors.ShapeMismatch(f"cannot expand {inputs[0].shape} to {full} along {self.axes}")
        return full

    def diff_wrt(self, n_inputs: int) -> list[bool]:
        return [True] * n_inputs

    def sym_diff(
        self, inputs: Sequence[graph.Node], output: graph.Node, grad: graph.Node
    ) -> list[graph.Node | None]:
        return [graph.apply_op(Sum(self.axes, len(self.shape)), grad)]

    def do(self, *inputs: values.AnyValue) -> values.AnyValue:
        out_type = _out_type(self, inputs)
        if inputs[0].shape != shapes.Shape(self.shape).dropaxes(*self.axes):
            raise errors.ShapeMismatch(f"cannot expand {inputs[0].shape} to {self.shape} along {self.axes}")
        expanded = np.reshape(inputs[0].data, inputs[0].shape.insertaxes(*self.axes).dims)
        return values.of_type(np.broadcast_to(expanded, self.shape).copy(), out_type)

    def returns_ptr(self) -> bool:
        return False

    def calls_extern(self) -> bool:
        return False

    def overwrite_input(self) -> int:
        return ops.NO_OVERWRITE

    def is_unary(self) -> bool:
        return True

    def write_hash(self, h: hashing.Digest) -> None:
        hashing.write_str(h, f"expand{self.axes} to {self.shape}")

    def __str__(self) -> str:
        return f"expand{list(self.axes)}→{self.shape}"


### side effects ###
class AddAssign(ops.Op):
    """target += delta. Executed for its effect on `target` only."""

    def type(self) -> dtypes.Type:
        return dtypes.FunctionType(a, a, a)

    def infer_shape(self, out_type: dtypes.Type, *inputs: graph.Node) -> shapes.Shape:
        ops.check_arity(self, 2, inputs)
        return _same_shape(*inputs)

    def diff_wrt(self, n_inputs: int) -> list[bool]:
        return [False] * n_inputs

    def sym_diff(
        self, inputs: Sequence[graph.Node], output: graph.Node, grad: graph.Node
    ) -> list[graph.Node | None]:
        raise errors.NonDifferentiable(f"{self} has no gradient")

    def do(self, *inputs: values.AnyValue) -> values.AnyValue:
        ops.check_arity(self, 2, inputs)
        return Add().use_prealloc_do(inputs[0], *inputs)

    def returns_ptr(self) -> bool:
        return True

    def calls_extern(self) -> bool:
        return False

    def overwrite_input(self) -> int:
        return 0

    def is_binary(self) -> bool:
        return True

    def returns_nothing(self) -> bool:
        return True

    def write_hash(self, h: hashing.Digest) -> None:
        hashing.write_str(h, "+=")

    def __str__(self) -> str:
        return "+="


### execution-time gradients ###
def _grad_of(node: graph.Node) -> values.AnyValue:
    if node.grad is None:
        raise errors.NonDifferentiable(f"{node} has no gradient accumulated")
    return node.grad


def _value_of(node: graph.Node) -> values.AnyValue:
    assert node.value is not None, f"{node} was not executed"
    return node.value


def accumulate_grad(node: graph.Node, delta: values.AnyValue) -> None:
    match node.grad:
        case None:
            node.grad = values.Tensor(np.array(delta.data)) if isinstance(delta, values.Tensor) else delta
        case values.Tensor() as acc:
            Add().use_prealloc_do(acc, acc, delta)
        case acc:
            node.grad = Add().do(acc, delta)


def ones_value(like: values.AnyValue) -> values.AnyValue:
    if isinstance(like, values.Tensor):
        return values.Tensor(np.ones(like.shape.dims, dtype=like.dtype.np_dtype))
    return values.Scalar(1, like.dtype)
