"""
Reverse mode differentiation over `Node` graphs.

Walks the graph in reverse topological order and asks each op for one
chain rule step (`Op.sym_diff`), summing the contributions a node
receives from all of its consumers.
"""

from __future__ import annotations

import functools
import logging
from typing import Sequence

import numpy as np

from gradops import arith, dtypes, errors, graph, values

logger = logging.getLogger(__name__)


def differentiably_influences(outputs: Sequence[graph.Node], nodelist: Sequence[graph.Node]) -> set[int]:
    """ids of the nodes with a nonzero jacobian d(outputs)/d(node)"""
    diset = {id(node) for node in outputs}
    for node in reversed(nodelist):
        if id(node) in diset:
            diset.update(id(inp) for inp, d in zip(node.inputs, node.diff_wrt(), strict=True) if d)
    return diset


def differentiably_influenced_by(wrt: Sequence[graph.Node], nodelist: Sequence[graph.Node]) -> set[int]:
    """ids of the nodes with a nonzero jacobian d(node)/d(wrt)"""
    dibset = {id(node) for node in wrt}
    for node in nodelist:
        if any(id(inp) in dibset and d for inp, d in zip(node.inputs, node.diff_wrt(), strict=True)):
            dibset.add(id(node))
    return dibset


def ones_like(node: graph.Node) -> graph.Node:
    dtype = dtypes.dtype_of(node.type)
    if isinstance(node.type, dtypes.ScalarType):
        return graph.constant(values.Scalar(1, dtype))
    return graph.constant(values.Tensor(np.ones(node.shape.dims, dtype=dtype.np_dtype)))


def grad(cost: graph.Node, wrt: Sequence[graph.Node], grad_cost: graph.Node | None = None) -> list[graph.Node]:
    """
    Build the gradient subgraphs d(cost)/d(w) for every `w` in `wrt`.
    `grad_cost` seeds the backward pass and defaults to ones shaped like `cost`.
    """
    nodelist = graph.topsort([cost])
    dio = differentiably_influences([cost], nodelist)
    if bad := [str(w) for w in wrt if id(w) not in dio]:
        raise errors.NonDifferentiable(f"{cost} is not differentiable wrt {', '.join(bad)}")
    active = dio & differentiably_influenced_by(wrt, nodelist)

    contributions: dict[int, list[graph.Node]] = {id(cost): [ones_like(cost) if grad_cost is None else grad_cost]}
    for node in reversed(nodelist):
        if id(node) not in active or node.op is None or not (gnodes := contributions.get(id(node))):
            continue
        gnode = _sum(gnodes)
        contributions[id(node)] = [gnode]
        gparents = node.op.sym_diff(node.inputs, node, gnode)
        diffs = node.diff_wrt()
        assert len(gparents) == len(node.inputs), f"{node.op} returned {len(gparents)} grads for {len(node.inputs)} inputs"
        for parent, gparent, d in zip(node.inputs, gparents, diffs, strict=True):
            assert (gparent is not None) == d, f"{node.op}: grad is None iff not differentiable wrt input"
            if gparent is not None and id(parent) in active:
                contributions.setdefault(id(parent), []).append(gparent)
        logger.debug("pulled back through %s", node.op)
    return [_sum(contributions[id(w)]) for w in wrt]


def _sum(nodes: list[graph.Node]) -> graph.Node:
    return functools.reduce(lambda n1, n2: graph.apply_op(arith.Add(), n1, n2), nodes)
