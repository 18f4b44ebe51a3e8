"""
Shape tracking
"""

from __future__ import annotations

import dataclasses
from typing import Iterator, Sequence

from gradops import errors

PyArrayRepr = int | float | bool | Sequence["PyArrayRepr"]


@dataclasses.dataclass(slots=True, frozen=True)
class Shape:
    dims: tuple[int, ...]

    def __post_init__(self) -> None:
        if not all(isinstance(d, int) and d >= 0 for d in self.dims):
            raise errors.ShapeMismatch(f"invalid dims {self.dims!r}")

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Shape) and self.dims == other.dims

    def __hash__(self) -> int:
        return hash(self.dims)

    def __repr__(self) -> str:
        return str(self)

    def __str__(self) -> str:
        return f"Shape({', '.join(map(str, self.dims))})"

    def __len__(self) -> int:
        return self.ndims

    def __iter__(self) -> Iterator[int]:
        return iter(self.dims)

    def insertaxes(self, *axes: int) -> Shape:
        new_axes = list(self)
        for i in sorted(axes):
            new_axes.insert(i, 1)
        return Shape(tuple(new_axes))

    def dropaxes(self, *axes: int) -> Shape:
        pos_axes = set(self.normalize_dim_ref(*axes))
        return Shape(tuple(d for i, d in enumerate(self) if i not in pos_axes))

    def normalize_dim_ref(self, *idxs: int) -> tuple[int, ...]:
        own_len = len(self)
        if not all(-own_len <= idx < own_len for idx in idxs):
            raise errors.ShapeMismatch(f"axes {idxs} out of range for {self}")
        return tuple(idx % own_len if idx < 0 else idx for idx in idxs)

    @property
    def ndims(self) -> int:
        return len(self.dims)

    @property
    def is_scalar(self) -> bool:
        return self.ndims == 0

    @classmethod
    def scalar(cls) -> Shape:
        return SCALAR


SCALAR = Shape(())
