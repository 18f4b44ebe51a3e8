import os

from gradops import callbacks, hashing
from gradops.config import Configuration
from gradops.constants import ConstantScalar, ConstantTensor
from gradops.dtypes import Dtype
from gradops.errors import (
    ArityMismatch,
    ComputationError,
    MethodNotDefined,
    NonDifferentiable,
    OpError,
    ShapeMismatch,
    TypeMismatch,
)
from gradops.graph import Node, apply_op, constant, placeholder
from gradops.ops import NO_OVERWRITE, Op
from gradops.runtime import Engine, SequentialEngine
from gradops.shapes import Shape
from gradops.values import Scalar, Tensor

### Default configuration ###
Configuration(engine=SequentialEngine(), strict_arity=True, digest=hashing.Fnv32a)

if bool(os.getenv(EAGER_EXECUTION_ENV_VAR := "GRADOPS_EAGER", False)):
    Configuration(callbacks.EagerExecution())

if os.getenv("GRADOPS_LOGLEVEL"):
    from gradops import logs

    Configuration(logs.NodeLogger())


__all__ = [
    "ArityMismatch",
    "ComputationError",
    "Configuration",
    "ConstantScalar",
    "ConstantTensor",
    "Dtype",
    "Engine",
    "MethodNotDefined",
    "NO_OVERWRITE",
    "Node",
    "NonDifferentiable",
    "Op",
    "OpError",
    "Scalar",
    "SequentialEngine",
    "Shape",
    "ShapeMismatch",
    "Tensor",
    "TypeMismatch",
    "apply_op",
    "constant",
    "placeholder",
]
