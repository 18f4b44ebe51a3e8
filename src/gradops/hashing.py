"""
Structural hashing of ops.

Ops write a canonical encoding of themselves into a streaming digest
(anything with hashlib's `update`/`digest`), which makes op hashes stable
across runs and usable as deduplication keys.
"""

from __future__ import annotations

import struct
from typing import Callable, Protocol, Self

import numpy as np

from gradops import config, dtypes

FNV32_OFFSET = 0x811C9DC5
FNV32_PRIME = 0x01000193


class Digest(Protocol):
    def update(self, data: bytes, /) -> None: ...
    def digest(self) -> bytes: ...


class HashWriter(Protocol):
    def write_hash(self, h: Digest) -> None: ...


class Fnv32a:
    """
    32 bit FNV-1a with a hashlib-style interface.

    `update` costs one interpreter step per byte, so hashing a large tensor
    constant is slow. For big arrays `Configuration(digest=hashlib.blake2b)`
    gives the same identity guarantees at native speed.
    """

    name = "fnv32a"
    digest_size = 4

    __slots__ = ("_state",)

    def __init__(self, data: bytes = b"") -> None:
        self._state = FNV32_OFFSET
        self.update(data)

    def update(self, data: bytes, /) -> None:
        state = self._state
        for byte in data:
            state = ((state ^ byte) * FNV32_PRIME) & 0xFFFFFFFF
        self._state = state

    def digest(self) -> bytes:
        return self._state.to_bytes(4, "big")

    def hexdigest(self) -> str:
        return self.digest().hex()

    def sum32(self) -> int:
        return self._state

    def copy(self) -> Self:
        clone = type(self)()
        clone._state = self._state
        return clone


### writers ###
def write_str(h: Digest, s: str) -> None:
    h.update(s.encode("utf-8"))


def write_dtype(h: Digest, dtype: dtypes.Dtype) -> None:
    h.update(struct.pack("<B", dtype.value))


def write_scalar(h: Digest, x: np.generic) -> None:
    arr = np.asarray(x)
    h.update(arr.astype(arr.dtype.newbyteorder("<"), copy=False).tobytes())


def write_array(h: Digest, arr: np.ndarray) -> None:
    """dtype, shape then the raw little-endian C-ordered bytes"""
    arr = np.ascontiguousarray(arr)
    write_dtype(h, dtypes.Dtype.of(arr.dtype))
    h.update(struct.pack(f"<Q{arr.ndim}Q", arr.ndim, *arr.shape))
    h.update(arr.astype(arr.dtype.newbyteorder("<"), copy=False).tobytes())


def hashcode(writer: HashWriter, digest: Callable[[], Digest] | None = None) -> int:
    """Run `writer.write_hash` into a fresh digest and fold it to a uint32"""
    h = (config.Configuration.digest if digest is None else digest)()
    writer.write_hash(h)
    return int.from_bytes(h.digest()[:4], "big")
