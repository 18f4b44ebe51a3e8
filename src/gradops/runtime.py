"""
Engine is the runtime that executes the computational graph
to return the `Value` each requested `Node` stands for
"""

from __future__ import annotations

import abc
import collections
import logging
from typing import Any, Mapping, Sequence

from gradops import arith, errors, graph, ops, values

logger = logging.getLogger(__name__)


class Engine(abc.ABC):
    """The runtime that executes the computational graph"""

    @abc.abstractmethod
    def run(
        self,
        outputs: Sequence[graph.Node],
        feed: Mapping[graph.Node, Any] | None = None,
        *,
        retain: bool = False,
    ) -> list[values.AnyValue]:
        """Evaluate `outputs`. With `retain`, every evaluated node keeps its value"""

    ### scheduler helpers over the optional capabilities ###
    @staticmethod
    def accumulate(target: values.AnyValue, op: ops.Op, *inputs: values.AnyValue) -> None:
        """target += op(*inputs)"""
        if isinstance(op, ops.IncrDoer):
            op.incr_do(target, *inputs)
        else:
            arith.Add().use_prealloc_do(target, target, op.do(*inputs))

    @staticmethod
    def into(prealloc: values.AnyValue, op: ops.Op, *inputs: values.AnyValue) -> values.AnyValue:
        """Evaluate `op` into the caller's buffer"""
        if isinstance(op, ops.UsePreallocDoer):
            return op.use_prealloc_do(prealloc, *inputs)
        result = op.do(*inputs)
        if not isinstance(prealloc, values.Tensor) or prealloc.type != result.type or prealloc.shape != result.shape:
            raise errors.TypeMismatch(f"{prealloc!r} cannot hold the result of {op}")
        prealloc.data[...] = result.data
        return prealloc


class SequentialEngine(Engine):
    """
    Executes the graph sequentially in topological order.

    An op that declares `overwrite_input()` runs through `unsafe_do` when the
    engine can prove the overwritten buffer is exclusively owned: it was
    freshly allocated by a non aliasing op, this node is its only consumer
    and it is not requested as an output.
    """

    def run(
        self,
        outputs: Sequence[graph.Node],
        feed: Mapping[graph.Node, Any] | None = None,
        *,
        retain: bool = False,
    ) -> list[values.AnyValue]:
        feed = {} if feed is None else feed
        order = graph.topsort(outputs)
        uses = collections.Counter(id(inp) for node in order for inp in node.inputs)
        requested = {id(node) for node in outputs}
        env: dict[int, values.AnyValue] = {}
        shared: set[int] = set()  # may alias storage owned by someone else
        feed_free: set[int] = set()  # no fed or placeholder node upstream

        for node in order:
            if node.op is not None and node not in feed and all(id(inp) in feed_free for inp in node.inputs):
                feed_free.add(id(node))
            if node in feed:
                env[id(node)] = values.as_value(feed[node])
                if env[id(node)].type != node.type:
                    raise errors.TypeMismatch(f"{node} is {node.type}, fed {env[id(node)].type}")
                shared.add(id(node))
            elif node.value is not None and id(node) in feed_free:
                env[id(node)] = node.value
                shared.add(id(node))
            elif node.op is None:
                raise errors.OpError(f"no value fed for {node}")
            else:
                args = [env[id(inp)] for inp in node.inputs]
                if not retain and self._can_overwrite(node, args, uses, requested, shared):
                    logger.debug("%s: unsafe_do over input %d", node.op, node.op.overwrite_input())
                    env[id(node)] = node.op.unsafe_do(*args)  # type: ignore[attr-defined]
                else:
                    logger.debug("%s: do", node.op)
                    env[id(node)] = node.op.do(*args)
                if node.op.returns_ptr():
                    shared.add(id(node))
            if retain or id(node) in requested:
                node.value = env[id(node)]
        return [env[id(node)] for node in outputs]

    def run_diff(self, cost: graph.Node, feed: Mapping[graph.Node, Any] | None = None) -> None:
        """
        Execute and differentiate at once through `AdOp.do_diff`, leaving the
        gradients in each node's `grad`. Every non-leaf node must be an `AdOp`.
        """
        order = graph.topsort([cost])
        if missing := [str(node.op) for node in order if node.inputs and not isinstance(node.op, ops.AdOp)]:
            raise errors.MethodNotDefined(f"no execution-time gradient for {', '.join(missing)}")
        self.run([cost], feed, retain=True)
        for node in order:
            node.grad = None
        cost.grad = arith.ones_value(cost.value)  # type: ignore[arg-type]
        for node in reversed(order):
            if node.inputs:
                node.op.do_diff(node.inputs, node)  # type: ignore[union-attr]

    @staticmethod
    def _can_overwrite(
        node: graph.Node,
        args: Sequence[values.AnyValue],
        uses: Mapping[int, int],
        requested: set[int],
        shared: set[int],
    ) -> bool:
        assert node.op is not None
        if (idx := node.op.overwrite_input()) == ops.NO_OVERWRITE or not isinstance(node.op, ops.UnsafeDoer):
            return False
        target = node.inputs[idx]
        return (
            isinstance(args[idx], values.Tensor)
            and id(target) not in shared
            and id(target) not in requested
            and uses[id(target)] == 1
        )

