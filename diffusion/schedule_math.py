# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstep — Diffusion Scheduling Engine                            ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝

"""Stateless numeric helpers shared by the schedulers.

- ``linspace``     — evenly spaced float32 values, exact inclusive endpoint.
- ``arange``       — ``ceil((stop - start) / step)`` values from ``start``.
- ``interpolate``  — piecewise-linear lookup, clamped at the boundaries.
- ``find_idx``     — position of a timestep in the inference schedule.
- ``cumprod``      — running product, one left-to-right pass.
"""
from __future__ import annotations

import math
import numpy as np
from typing import Sequence, Union

from latentstep.diffusion.errors import TimestepLookupError

ArrayLike = Union[np.ndarray, Sequence[float]]


def linspace(start: float, stop: float, count: int,
             inclusive: bool = True) -> np.ndarray:
    """``count`` evenly spaced float32 values starting at ``start``.

    With ``inclusive=True`` the last element is ``stop`` exactly rather than
    ``start + (count - 1) * step``, and a single-element request returns
    ``[start]``.
    """
    if count <= 0:
        return np.zeros(0, dtype=np.float32)
    if count == 1:
        return np.array([start], dtype=np.float32)

    if inclusive:
        step = (stop - start) / (count - 1)
    else:
        step = (stop - start) / count

    out = start + np.arange(count, dtype=np.float64) * step
    if inclusive:
        out[-1] = stop
    return out.astype(np.float32)


def arange(start: float, stop: float, step: float) -> np.ndarray:
    if step == 0:
        raise ValueError("arange step must be non-zero")
    count = int(math.ceil((stop - start) / step))
    if count <= 0:
        return np.zeros(0, dtype=np.float32)
    return (start + np.arange(count, dtype=np.float64) * step).astype(np.float32)


def interpolate(x: ArrayLike, xp: ArrayLike, fp: ArrayLike) -> np.ndarray:
    """Linear interpolation of ``fp`` (sampled at ascending ``xp``) at ``x``.

    Queries left of ``xp[0]`` take ``fp[0]``, right of ``xp[-1]`` take
    ``fp[-1]``.
    """
    x = np.asarray(x, dtype=np.float64)
    xp = np.asarray(xp, dtype=np.float64)
    fp = np.asarray(fp, dtype=np.float64)
    if xp.shape != fp.shape or xp.ndim != 1 or xp.size == 0:
        raise ValueError(
            f"interpolate needs matching non-empty 1-D knots, got "
            f"{xp.shape} and {fp.shape}")

    if len(xp) == 1:
        return np.full(x.shape, fp[0], dtype=np.float32)

    # Index of the right knot of each bracketing pair, clamped into range.
    hi = np.clip(np.searchsorted(xp, x, side='right'), 1, len(xp) - 1)
    lo = hi - 1
    x_lo, x_hi = xp[lo], xp[hi]
    span = np.where(x_hi == x_lo, 1.0, x_hi - x_lo)
    frac = np.clip((x - x_lo) / span, 0.0, 1.0)
    out = fp[lo] + frac * (fp[hi] - fp[lo])
    return out.astype(np.float32)


def find_idx(array: ArrayLike, value: int) -> int:
    """First position of ``value`` in ``array``; no nearest-match fallback."""
    matches = np.flatnonzero(np.asarray(array) == value)
    if matches.size == 0:
        raise TimestepLookupError(
            f"Timestep {value!r} is not in the current inference schedule")
    return int(matches[0])


def cumprod(values: ArrayLike) -> np.ndarray:
    values = np.asarray(values, dtype=np.float32)
    out = np.empty_like(values)
    running = np.float32(1.0)
    for i, v in enumerate(values):
        running = np.float32(running * v)
        out[i] = running
    return out


__all__ = [
    'linspace',
    'arange',
    'interpolate',
    'find_idx',
    'cumprod',
]
