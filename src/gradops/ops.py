"""
The Op contract.

An `Op` is a symbolic representation of an operation. Think of it as a
function that takes zero or more inputs and returns one output. All ops
have a type signature, e.g.

    Add :: a → a → a

`Op` holds the mandatory contract. Everything optional (fixed arity,
accumulate-in-place, ...) is its own `Protocol`, checked with
`isinstance` so ops only implement what they support.
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING, Protocol, Sequence, runtime_checkable

from gradops import errors, hashing

if TYPE_CHECKING:
    from gradops import dtypes, graph, shapes, values

NO_OVERWRITE = -1


class Op(abc.ABC):
    """
    Ops are immutable once constructed. `type`, `infer_shape`, `diff_wrt`,
    `sym_diff`, `write_hash` and `hashcode` must be pure.
    """

    ### graph building ###
    @abc.abstractmethod
    def type(self) -> dtypes.Type:
        """Type of the op (not of the node) used by type inference"""

    @abc.abstractmethod
    def infer_shape(self, out_type: dtypes.Type, *inputs: graph.Node) -> shapes.Shape:
        """Output shape as a function of the input nodes' shapes. Raises `ShapeMismatch`"""

    ### differentiation ###
    @abc.abstractmethod
    def diff_wrt(self, n_inputs: int) -> list[bool]:
        """Which of the `n_inputs` inputs gradients flow to"""

    @abc.abstractmethod
    def sym_diff(
        self, inputs: Sequence[graph.Node], output: graph.Node, grad: graph.Node
    ) -> list[graph.Node | None]:
        """
        One chain rule step: given the forward inputs, the forward output and
        the gradient flowing into `output`, build the gradient of every input.
        The result is aligned with `inputs`; non differentiable inputs get `None`.
        """

    ### execution ###
    @abc.abstractmethod
    def do(self, *inputs: values.AnyValue) -> values.AnyValue:
        """Execute the op. Raises `ArityMismatch`, `TypeMismatch` or `ComputationError`"""

    ### analysis ###
    @abc.abstractmethod
    def returns_ptr(self) -> bool:
        """Whether the value `do` returns may share storage with something else"""

    @abc.abstractmethod
    def calls_extern(self) -> bool:
        """Whether `do` crosses into a native kernel (a cost hint only)"""

    @abc.abstractmethod
    def overwrite_input(self) -> int:
        """Index of the input whose storage the output overwrites, or `NO_OVERWRITE`"""

    ### identity ###
    @abc.abstractmethod
    def write_hash(self, h: hashing.Digest) -> None:
        """Write a canonical encoding of the op's kind and parameters into `h`"""

    def hashcode(self) -> int:
        return hashing.hashcode(self)

    @abc.abstractmethod
    def __str__(self) -> str: ...

    def __repr__(self) -> str:
        return f"<{self.__module__}.{self.__class__.__name__}({self})>"


### optional capabilities ###
@runtime_checkable
class UnaryOp(Protocol):
    def is_unary(self) -> bool: ...


@runtime_checkable
class BinaryOp(Protocol):
    def is_binary(self) -> bool: ...


@runtime_checkable
class NoRetOp(Protocol):
    """Executed for its side effect; the output must not feed other nodes"""

    def returns_nothing(self) -> bool: ...


@runtime_checkable
class AdOp(Protocol):
    """Computes its gradient at execution time instead of emitting a subgraph"""

    def do_diff(self, inputs: Sequence[graph.Node], output: graph.Node) -> None: ...


@runtime_checkable
class ReductionOp(Protocol):
    def is_reduction(self) -> bool: ...


@runtime_checkable
class IncrDoer(Protocol):
    """Adds the result into `target` in place"""

    def incr_do(self, target: values.AnyValue, *inputs: values.AnyValue) -> None: ...


@runtime_checkable
class UsePreallocDoer(Protocol):
    """Writes the result into the caller provided `prealloc` and returns it"""

    def use_prealloc_do(self, prealloc: values.AnyValue, *inputs: values.AnyValue) -> values.AnyValue: ...


@runtime_checkable
class UnsafeDoer(Protocol):
    """Writes the result into the storage of input `overwrite_input()`"""

    def unsafe_do(self, *inputs: values.AnyValue) -> values.AnyValue: ...


@runtime_checkable
class Constant(Protocol):
    def is_constant(self) -> bool: ...
    def value(self) -> values.AnyValue: ...


### helpers ###
def arity(op: Op) -> int | None:
    """Fixed number of inputs declared by the arity markers, if any"""
    if isinstance(op, UnaryOp) and op.is_unary():
        return 1
    if isinstance(op, BinaryOp) and op.is_binary():
        return 2
    if isinstance(op, Constant) and op.is_constant():
        return 0
    return None


def check_arity(op: Op, expected: int, got: Sequence[object]) -> None:
    if len(got) != expected:
        raise errors.ArityMismatch(op, expected, len(got))


def returns_nothing(op: Op) -> bool:
    return isinstance(op, NoRetOp) and op.returns_nothing()


def is_reduction(op: Op) -> bool:
    return isinstance(op, ReductionOp) and op.is_reduction()
