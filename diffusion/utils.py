# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstep — Diffusion Scheduling Engine                            ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝

"""Diffusion utilities — noise helpers, guidance, and schedule builders.

Shared helpers used across schedulers and pipelines:

- ``BetaSchedule``              — supported β curve shapes.
- ``get_beta_schedule``         — build a β curve of a given length.
- ``randn_tensor``              — generate random noise as a Tensor.
- ``classifier_free_guidance``  — blend conditioned / unconditioned noise.
"""
from __future__ import annotations

import enum
import numpy as np
from typing import Optional, Tuple, Union, Sequence

from latentstep.tensor import Tensor
from latentstep.diffusion import schedule_math
from latentstep.diffusion.errors import ScheduleConfigError


# ═════════════════════════════════════════════════════════════════════
#  Beta schedules
# ═════════════════════════════════════════════════════════════════════

class BetaSchedule(enum.Enum):
    """Shape of the training-time β curve."""
    LINEAR = 'linear'
    SCALED_LINEAR = 'scaled_linear'

    @staticmethod
    def lookup(value: Union['BetaSchedule', str]) -> 'BetaSchedule':
        if isinstance(value, BetaSchedule):
            return value
        try:
            return BetaSchedule(str(value).strip().lower())
        except ValueError:
            raise ScheduleConfigError(
                f"Unknown beta schedule: {value!r}") from None


def get_beta_schedule(
    schedule: Union[BetaSchedule, str],
    num_timesteps: int = 1000,
    beta_start: float = 0.00085,
    beta_end: float = 0.012,
) -> np.ndarray:
    """Construct a beta noise schedule.

    Args:
        schedule:       ``BetaSchedule.LINEAR`` or ``BetaSchedule.SCALED_LINEAR``
                        (or their string values).
        num_timesteps:  Number of diffusion timesteps.
        beta_start:     Starting beta value.
        beta_end:       Ending beta value.

    Returns:
        1-D float32 numpy array of length ``num_timesteps``.
    """
    schedule = BetaSchedule.lookup(schedule)
    if schedule is BetaSchedule.LINEAR:
        return schedule_math.linspace(beta_start, beta_end, num_timesteps)
    # Ramp in sqrt space, then square (Stable Diffusion's schedule).
    ramp = schedule_math.linspace(float(np.sqrt(np.float32(beta_start))),
                                  float(np.sqrt(np.float32(beta_end))),
                                  num_timesteps)
    return ramp * ramp


# ═════════════════════════════════════════════════════════════════════
#  Noise generation
# ═════════════════════════════════════════════════════════════════════

def randn_tensor(
    shape: Union[Tuple[int, ...], Sequence[int]],
    seed: Optional[int] = None,
    generator: Optional[np.random.Generator] = None,
    dtype: np.dtype = np.float32,
) -> Tensor:
    """Generate a Tensor filled with standard normal noise.

    Args:
        shape:      Shape of the output tensor.
        seed:       Seed for a fresh generator (ignored if ``generator``
                    is given).
        generator:  Generator to draw from; advanced in place.
        dtype:      NumPy dtype (default ``float32``).

    Returns:
        A Tensor with i.i.d. N(0, 1) entries.
    """
    rng = generator if generator is not None else np.random.default_rng(seed)
    data = rng.standard_normal(tuple(shape)).astype(dtype)
    return Tensor._wrap(data)


# ═════════════════════════════════════════════════════════════════════
#  Classifier-Free Guidance
# ═════════════════════════════════════════════════════════════════════

def classifier_free_guidance(
    noise_pred: Tensor,
    guidance_scale: float = 7.5,
) -> Tensor:
    """Combine a batched (uncond, cond) noise prediction.

    ``noise_pred`` holds the unconditioned (or negative-prompt) half of
    the batch first and the text-conditioned half second, as produced by
    running the model once on duplicated latents::

        guided = uncond + guidance_scale * (cond - uncond)

    Returns:
        Guided prediction with half the leading dimension.
    """
    uncond, cond = noise_pred.chunk(2, dim=0)
    guided = uncond._data + guidance_scale * (cond._data - uncond._data)
    return Tensor._wrap(guided.astype(np.float32))


# ═════════════════════════════════════════════════════════════════════
#  Exports
# ═════════════════════════════════════════════════════════════════════

__all__ = [
    'BetaSchedule',
    'get_beta_schedule',
    'randn_tensor',
    'classifier_free_guidance',
]
