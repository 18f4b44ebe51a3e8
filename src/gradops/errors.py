"""
Errors raised by ops and the layers built on them
"""

from __future__ import annotations


class OpError(Exception):
    """Base for everything an op (or graph construction around it) can raise"""


class ShapeMismatch(OpError, ValueError):
    """Input shapes are structurally incompatible"""


class TypeMismatch(OpError, TypeError):
    """Input (element) types do not fit the op's signature"""


class ArityMismatch(OpError, TypeError):
    """Wrong number of inputs/values"""

    def __init__(self, op: object, expected: int, got: int) -> None:
        super().__init__(f"{op} expects {expected} input(s), got {got}")
        self.expected, self.got = expected, got


class NonDifferentiable(OpError):
    """Gradient requested through a path that has none"""


class ComputationError(OpError, ArithmeticError):
    """Domain errors raised by concrete op kernels"""


class MethodNotDefined(OpError, NotImplementedError):
    """Op does not provide an optional capability"""
