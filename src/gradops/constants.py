"""
Constant ops: zero-input leaves that inject a literal value into a graph
"""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING, Sequence

from gradops import config, dtypes, hashing, ops, shapes, values

if TYPE_CHECKING:
    from gradops import graph


class _ConstantOp(ops.Op):
    """Shared zero-input behaviour. Constants carry no gradient."""

    def diff_wrt(self, n_inputs: int) -> list[bool]:
        return []

    def sym_diff(
        self, inputs: Sequence[graph.Node], output: graph.Node, grad: graph.Node
    ) -> list[graph.Node | None]:
        return []

    def calls_extern(self) -> bool:
        return False

    def overwrite_input(self) -> int:
        return ops.NO_OVERWRITE

    def is_constant(self) -> bool:
        return True

    def _check_no_inputs(self, inputs: Sequence[values.AnyValue]) -> None:
        if config.Configuration.strict_arity:
            ops.check_arity(self, 0, inputs)


@dataclasses.dataclass(frozen=True, slots=True, eq=False, repr=False)
class ConstantScalar(_ConstantOp):
    v: values.Scalar

    def type(self) -> dtypes.Type:
        return self.v.type

    def infer_shape(self, out_type: dtypes.Type, *inputs: graph.Node) -> shapes.Shape:
        return shapes.Shape.scalar()

    def do(self, *inputs: values.AnyValue) -> values.Scalar:
        self._check_no_inputs(inputs)
        return self.v  # Scalar is immutable

    def returns_ptr(self) -> bool:
        return False

    def write_hash(self, h: hashing.Digest) -> None:
        hashing.write_str(h, "const ")
        hashing.write_dtype(h, self.v.dtype)
        hashing.write_str(h, "of ")
        hashing.write_scalar(h, self.v.data)

    def value(self) -> values.Scalar:
        return self.v

    def __str__(self) -> str:
        return f"const {self.v}"


@dataclasses.dataclass(frozen=True, slots=True, eq=False, repr=False)
class ConstantTensor(_ConstantOp):
    """
    Wraps the tensor without copying it. `do` hands out read-only views of
    the same storage, so `returns_ptr()` is True.
    """

    v: values.Tensor

    def type(self) -> dtypes.Type:
        return self.v.type

    def infer_shape(self, out_type: dtypes.Type, *inputs: graph.Node) -> shapes.Shape:
        return self.v.shape

    def do(self, *inputs: values.AnyValue) -> values.Tensor:
        self._check_no_inputs(inputs)
        view = self.v.data.view()
        view.flags.writeable = False
        return values.Tensor(view)

    def returns_ptr(self) -> bool:
        return True

    def write_hash(self, h: hashing.Digest) -> None:
        hashing.write_str(h, f"const {self.type()}")
        hashing.write_array(h, self.v.data)

    def value(self) -> values.Tensor:
        return self.v

    def __str__(self) -> str:
        return f"const {self.type()}"


def constant_op(x: object, /) -> ConstantScalar | ConstantTensor:
    match value := values.as_value(x):
        case values.Scalar():
            return ConstantScalar(value)
        case values.Tensor():
            return ConstantTensor(value)
    raise AssertionError(f"unreachable {value=}")
