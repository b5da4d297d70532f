# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstep — Diffusion Scheduling Engine                            ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""Shape-tagged float buffer backed by NumPy.

The scheduler only needs a handful of elementwise operations, so this
tensor carries no autograd graph and no device placement: it is a thin
wrapper around a contiguous :class:`numpy.ndarray` with a known element
count, out-of-place arithmetic and a few in-place updates.
"""
from __future__ import annotations

import numpy as np
from typing import Any, Sequence


class Tensor:
    """N-dimensional float tensor.

    Out-of-place operators (``+``, ``-``, ``*``, ``/``) always allocate a
    new tensor.  Methods with a trailing underscore mutate the buffer and
    return ``self``.
    """

    __slots__ = ('_data',)

    # ------------------------------------------------------------------ #
    #  Construction                                                      #
    # ------------------------------------------------------------------ #

    def __init__(self, data: Any, dtype: np.dtype | type | None = None):
        if isinstance(data, Tensor):
            arr = data._data.copy()
        elif isinstance(data, np.ndarray):
            arr = data
        else:
            arr = np.asarray(data, dtype=np.float32)

        if dtype is not None:
            arr = arr.astype(dtype)

        self._data: np.ndarray = arr

    @staticmethod
    def _wrap(data: np.ndarray) -> 'Tensor':
        t = Tensor.__new__(Tensor)
        t._data = data
        return t

    # ------------------------------------------------------------------ #
    #  Properties                                                        #
    # ------------------------------------------------------------------ #

    @property
    def shape(self) -> tuple:
        return self._data.shape

    @property
    def ndim(self) -> int:
        return self._data.ndim

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    # ------------------------------------------------------------------ #
    #  Basic info methods                                                 #
    # ------------------------------------------------------------------ #

    def size(self, dim: int | None = None):
        s = self.shape
        if dim is not None:
            return s[dim]
        return s

    def dim(self) -> int:
        return self.ndim

    def numel(self) -> int:
        return int(self._data.size)

    def item(self) -> float | int:
        return self._data.item()

    def __len__(self) -> int:
        return self.shape[0]

    def __repr__(self) -> str:
        return f"tensor({self._data!r})"

    def __float__(self) -> float:
        return float(self._data)

    def __reduce__(self):
        return (Tensor, (self._data,))

    # ------------------------------------------------------------------ #
    #  Arithmetic operators                                               #
    # ------------------------------------------------------------------ #

    def __add__(self, other):
        return Tensor._wrap(self._data + _unwrap(other))

    def __radd__(self, other):
        return self.__add__(other)

    def __sub__(self, other):
        return Tensor._wrap(self._data - _unwrap(other))

    def __rsub__(self, other):
        return Tensor._wrap(_unwrap(other) - self._data)

    def __mul__(self, other):
        return Tensor._wrap(self._data * _unwrap(other))

    def __rmul__(self, other):
        return self.__mul__(other)

    def __truediv__(self, other):
        return Tensor._wrap(self._data / _unwrap(other))

    def __rtruediv__(self, other):
        return Tensor._wrap(_unwrap(other) / self._data)

    def __neg__(self):
        return Tensor._wrap(-self._data)

    def __getitem__(self, key):
        if isinstance(key, Tensor):
            key = key._data
        result = self._data[key]
        if isinstance(result, np.ndarray):
            return Tensor._wrap(result)
        return Tensor._wrap(np.asarray(result))

    def __setitem__(self, key, value):
        self._data[key] = _unwrap(value)

    # ------------------------------------------------------------------ #
    #  Shape manipulation                                                 #
    # ------------------------------------------------------------------ #

    def reshape(self, *shape) -> 'Tensor':
        if len(shape) == 1 and isinstance(shape[0], (tuple, list)):
            shape = tuple(shape[0])
        return Tensor._wrap(self._data.reshape(shape))

    def view(self, *shape) -> 'Tensor':
        return self.reshape(*shape)

    def flatten(self) -> 'Tensor':
        return Tensor._wrap(self._data.reshape(-1))

    def chunk(self, chunks: int, dim: int = 0) -> tuple['Tensor', ...]:
        return tuple(Tensor._wrap(a)
                     for a in np.array_split(self._data, chunks, axis=dim))

    def numpy(self) -> np.ndarray:
        return self._data.copy()

    def tolist(self):
        return self._data.tolist()

    # ---- In-place operations ----

    def scale_(self, factor: float) -> 'Tensor':
        """Multiply every element by ``factor`` without allocating.

        Only floating-point buffers can be scaled in place; an integer
        buffer would truncate the result.
        """
        if not np.issubdtype(self._data.dtype, np.floating):
            raise TypeError(
                f"scale_ needs a floating-point tensor, got {self._data.dtype}")
        self._data *= self._data.dtype.type(factor)
        return self

    def mul_(self, other) -> 'Tensor':
        self._data *= _unwrap(other)
        return self

    def add_(self, other, alpha: float = 1.0) -> 'Tensor':
        if alpha == 1.0:
            self._data += _unwrap(other)
        else:
            self._data += alpha * _unwrap(other)
        return self

    def sub_(self, other) -> 'Tensor':
        self._data -= _unwrap(other)
        return self

    def div_(self, other) -> 'Tensor':
        self._data /= _unwrap(other)
        return self

    def copy_(self, src: 'Tensor') -> 'Tensor':
        np.copyto(self._data, _unwrap(src))
        return self

    def fill_(self, value) -> 'Tensor':
        self._data.fill(value)
        return self

    # ---- Misc ----

    def clone(self) -> 'Tensor':
        return Tensor._wrap(self._data.copy())

    def astype(self, dtype) -> 'Tensor':
        return Tensor._wrap(self._data.astype(dtype))


# ====================================================================
# Module-level factory functions
# ====================================================================

def _unwrap(x):
    if isinstance(x, Tensor):
        return x._data
    return x


def _size(size: tuple) -> tuple:
    if len(size) == 1 and isinstance(size[0], (tuple, list)):
        return tuple(size[0])
    return size


def tensor(data, dtype=None) -> Tensor:
    return Tensor(data, dtype=dtype)


def zeros(*size, dtype=None) -> Tensor:
    return Tensor._wrap(np.zeros(_size(size), dtype=dtype or np.float32))


def zeros_like(input: Tensor, dtype=None) -> Tensor:
    return Tensor._wrap(np.zeros(input.shape, dtype=dtype or input.dtype))


def ones(*size, dtype=None) -> Tensor:
    return Tensor._wrap(np.ones(_size(size), dtype=dtype or np.float32))


def full(size, fill_value, dtype=None) -> Tensor:
    if isinstance(size, (tuple, list)):
        size = tuple(size)
    else:
        size = (size,)
    return Tensor._wrap(np.full(size, fill_value, dtype=dtype or np.float32))


def empty(*size, dtype=None) -> Tensor:
    return Tensor._wrap(np.empty(_size(size), dtype=dtype or np.float32))


def randn(*size, generator: np.random.Generator | None = None,
          dtype=None) -> Tensor:
    """Standard-normal samples drawn from ``generator``.

    Without a generator the global NumPy stream (see :func:`manual_seed`)
    is used.
    """
    size = _size(size)
    dt = dtype or np.float32
    if generator is not None:
        arr = generator.standard_normal(size)
    else:
        arr = np.random.standard_normal(size)
    return Tensor._wrap(np.asarray(arr).astype(dt))


def cat(tensors: Sequence[Tensor], dim: int = 0) -> Tensor:
    return Tensor._wrap(np.concatenate([t._data for t in tensors], axis=dim))


def stack(tensors: Sequence[Tensor], dim: int = 0) -> Tensor:
    return Tensor._wrap(np.stack([t._data for t in tensors], axis=dim))


def manual_seed(seed: int) -> None:
    np.random.seed(seed)


__all__ = [
    'Tensor',
    'tensor',
    'zeros', 'zeros_like',
    'ones', 'full', 'empty',
    'randn',
    'cat', 'stack',
    'manual_seed',
]
