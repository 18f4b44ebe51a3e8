"""
The computational graph is built as `Node` objects.

Nodes pair an op with its input nodes. Type and shape are inferred when
the node is built, so a malformed graph is never constructed.
"""

from __future__ import annotations

import dataclasses
import hashlib
import itertools
from typing import TYPE_CHECKING, Any, Iterable, Iterator, Sequence

from gradops import config, constants, dtypes, errors, ops, shapes, values

if TYPE_CHECKING:
    from gradops import runtime

_counter = itertools.count()


@dataclasses.dataclass(eq=False, slots=True)
class Node:
    """
    Vertex and its inbound edges in the computation graph.
    op:     The op that produces this node, `None` for placeholders.
    type:   The resolved output type.
    shape:  The resolved output shape.
    grad:   Gradient accumulator, filled by execution-time differentiation.
    """

    op: ops.Op | None
    inputs: tuple[Node, ...]
    type: dtypes.Type
    shape: shapes.Shape
    name: str | None = None
    grad: values.AnyValue | None = None
    _value: values.AnyValue | None = None
    _id: int = dataclasses.field(default_factory=_counter.__next__)

    def __repr__(self) -> str:
        status = "REALIZED" if self.is_realized else "UNREALIZED"
        what = f"placeholder {self.name!r}" if self.op is None else repr(self.op)
        return f"<{self.__module__}.{self.__class__.__name__}({status} {what}, {self.type}, shape={self.shape.dims!r})>"

    def __str__(self) -> str:
        if self.name is not None:
            return self.name
        if self.op is None:
            return f"placeholder{self._id}"
        return f"{self.op}({', '.join(map(str, self.inputs))})"

    def realize(self, engine: None | runtime.Engine = None) -> values.AnyValue:
        (value,) = (config.Configuration.engine if engine is None else engine).run([self])
        return value

    @property
    def value(self) -> values.AnyValue | None:
        return self._value

    @value.setter
    def value(self, value: values.AnyValue) -> None:
        self._value = value

    @property
    def is_realized(self) -> bool:
        return self._value is not None

    @property
    def is_placeholder(self) -> bool:
        return self.op is None

    @property
    def is_computable(self) -> bool:
        """Whether the node can be evaluated without any fed value"""
        return not self.is_placeholder and all(node.is_computable for node in self.inputs)

    def diff_wrt(self) -> list[bool]:
        return [] if self.op is None else self.op.diff_wrt(len(self.inputs))


### construction ###
def apply_op(op: ops.Op, *inputs: Node, name: str | None = None) -> Node:
    if (n := ops.arity(op)) is not None:
        ops.check_arity(op, n, inputs)
    if producers := [str(node) for node in inputs if node.op is not None and ops.returns_nothing(node.op)]:
        raise errors.TypeMismatch(f"{', '.join(producers)} return nothing and cannot feed {op}")
    out_type = dtypes.infer_type(op.type(), *(node.type for node in inputs))
    shape = op.infer_shape(out_type, *inputs)
    node = Node(op, tuple(inputs), out_type, shape, name=name)
    config.Configuration.on_node_creation(node)
    return node


def constant(x: Any, /, name: str | None = None) -> Node:
    return apply_op(constants.constant_op(x), name=name)


def placeholder(dtype: dtypes.Dtype, shape: Sequence[int] = (), /, name: str | None = None) -> Node:
    """An input fed at execution time. `shape=()` gives a scalar"""
    shape_ = shapes.Shape(tuple(shape))
    typ = dtypes.ScalarType(dtype) if shape_.is_scalar else dtypes.TensorType(dtype, shape_.ndims)
    node = Node(None, (), typ, shape_, name=name)
    config.Configuration.on_node_creation(node)
    return node


### traversal ###
def topsort(outputs: Iterable[Node]) -> list[Node]:
    """Every node reachable from `outputs`, inputs before the nodes that use them"""
    marks: dict[int, bool] = {}  # id → finished
    order: list[Node] = []
    stack: list[tuple[Node, Iterator[Node]]] = []
    for out in outputs:
        if id(out) in marks:
            continue
        marks[id(out)] = False
        stack.append((out, iter(out.inputs)))
        while stack:
            node, children = stack[-1]
            for child in children:
                if id(child) not in marks:
                    marks[id(child)] = False
                    stack.append((child, iter(child.inputs)))
                    break
            else:
                stack.pop()
                marks[id(node)] = True
                order.append(node)
    return order


### structural identity ###
def node_hash(node: Node, memo: dict[int, str] | None = None) -> str:
    """
    Key identifying the computation `node` stands for: the op's hash combined
    with the keys of its inputs. Placeholders are only equal to themselves.
    """
    memo = {} if memo is None else memo
    for n in topsort([node]):
        if id(n) in memo:
            continue
        if n.op is None:
            memo[id(n)] = f"placeholder{n._id}"
            continue
        h = hashlib.blake2b(digest_size=16)
        n.op.write_hash(h)
        for inp in n.inputs:
            h.update(b"\x1f")
            h.update(memo[id(inp)].encode("ascii"))
        memo[id(n)] = h.hexdigest()
    return memo[id(node)]


def same_structure(node1: Node, node2: Node) -> bool:
    memo: dict[int, str] = {}
    return node_hash(node1, memo) == node_hash(node2, memo)


def dedupe(outputs: Sequence[Node]) -> list[Node]:
    """
    Rebuild `outputs` so that structurally identical nodes are shared.
    Returns the (possibly replaced) outputs in order.
    """
    memo: dict[int, str] = {}
    canonical: dict[str, Node] = {}
    replacement: dict[int, Node] = {}
    for node in topsort(outputs):
        key = node_hash(node, memo)
        if key not in canonical:
            new_inputs = tuple(replacement[id(inp)] for inp in node.inputs)
            if any(new is not old for new, old in zip(new_inputs, node.inputs)):
                canonical[key] = dataclasses.replace(node, inputs=new_inputs, _id=next(_counter))
            else:
                canonical[key] = node
        replacement[id(node)] = canonical[key]
    return [replacement[id(out)] for out in outputs]
