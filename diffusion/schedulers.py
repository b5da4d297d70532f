# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstep — Diffusion Scheduling Engine                            ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝

"""Noise schedulers for latent diffusion sampling.

Both schedulers share one step-indexed contract (see :class:`Scheduler`):

- **EulerAncestralDiscreteScheduler** — Euler step on the probability-flow
  ODE plus fresh Gaussian noise at every step (k-diffusion's ``euler_a``).
- **LMSDiscreteScheduler** — linear multistep method over a history of
  ODE derivatives (Karras et al. 2022).

A scheduler instance is stateful and is not safe to share between
threads or generation requests; build a new one per request.
"""
from __future__ import annotations

import enum
import logging
import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass
from numpy.polynomial import Polynomial
from typing import Optional, Union

from latentstep.tensor import Tensor
from latentstep.diffusion import schedule_math
from latentstep.diffusion.errors import (
    ScheduleConfigError,
    ScheduleInvariantError,
    TimestepLookupError,
)
from latentstep.diffusion.utils import (
    BetaSchedule,
    get_beta_schedule,
    randn_tensor,
)

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════
#  Inference schedule (state value)
# ═════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, eq=False)
class InferenceSchedule:
    """Timesteps and sigmas produced by one ``set_timesteps`` call.

    ``sigmas`` has exactly one more entry than ``timesteps``: the trailing
    ``0.0`` is read as the "next" sigma on the final step.
    """

    timesteps: np.ndarray
    sigmas: np.ndarray

    def __post_init__(self):
        if len(self.sigmas) != len(self.timesteps) + 1:
            raise ScheduleInvariantError(
                f"Expected {len(self.timesteps) + 1} sigmas for "
                f"{len(self.timesteps)} timesteps, got {len(self.sigmas)}")

    def __len__(self) -> int:
        return len(self.timesteps)

    @property
    def init_noise_sigma(self) -> float:
        return float(np.max(self.sigmas))

    def step_index(self, timestep: int) -> int:
        return schedule_math.find_idx(self.timesteps, timestep)

    def sigma_pair(self, step_index: int) -> tuple[float, float]:
        """``(sigma, sigma_next)`` for ``step_index``."""
        if not 0 <= step_index < len(self.sigmas) - 1:
            raise ScheduleInvariantError(
                f"Step index {step_index} has no next sigma "
                f"(schedule holds {len(self.sigmas)} sigmas)")
        return float(self.sigmas[step_index]), float(self.sigmas[step_index + 1])


def build_inference_schedule(initial_variance: np.ndarray,
                             num_train_timesteps: int,
                             num_inference_steps: int) -> InferenceSchedule:
    """Sub-sample the training sigma curve to ``num_inference_steps`` steps.

    ``initial_variance`` is indexed from the noisiest training step down,
    so interpolating it at ascending positions yields sigmas that line up
    with the descending integer timesteps.
    """
    positions = schedule_math.linspace(0, num_train_timesteps - 1,
                                       num_inference_steps, inclusive=True)
    # Truncation toward zero may repeat a timestep at low step counts.
    timesteps = positions[::-1].astype(np.int64)

    knots = schedule_math.arange(0, len(initial_variance), 1.0)
    sigmas = schedule_math.interpolate(positions, knots, initial_variance)
    sigmas = np.append(sigmas, np.float32(0.0)).astype(np.float32)
    return InferenceSchedule(timesteps=timesteps, sigmas=sigmas)


# ═════════════════════════════════════════════════════════════════════
#  Ancestral update rule
# ═════════════════════════════════════════════════════════════════════

def _signed_sqrt(x: float) -> float:
    # Cancellation can push x slightly below zero; keep the sign.
    if x < 0:
        return -float(np.sqrt(abs(x)))
    return float(np.sqrt(x))


def ancestral_split(sigma: float, sigma_to: float) -> tuple[float, float]:
    """Split the move ``sigma -> sigma_to`` into ``(sigma_up, sigma_down)``.

    ``sigma_up`` is the std of the injected noise, ``sigma_down`` the
    target of the deterministic Euler step.
    """
    sigma_sq = sigma * sigma
    sigma_to_sq = sigma_to * sigma_to
    sigma_up = _signed_sqrt(sigma_to_sq * (sigma_sq - sigma_to_sq) / sigma_sq)
    sigma_down = _signed_sqrt(sigma_to_sq - sigma_up * sigma_up)
    return sigma_up, sigma_down


def _check_same_shape(model_output: Tensor, sample: Tensor) -> None:
    if model_output.shape != sample.shape:
        raise ValueError(
            f"model_output shape {model_output.shape} does not match "
            f"sample shape {sample.shape}")


def ancestral_step(model_output: Tensor, sample: Tensor, sigma: float,
                   sigma_to: float, noise: Tensor) -> Tensor:
    """One Euler-ancestral update; inputs are left untouched."""
    _check_same_shape(model_output, sample)
    _check_same_shape(noise, sample)
    sample_data = sample._data
    # 1. predicted x₀ from the ε-prediction
    pred_original = sample_data - sigma * model_output._data
    sigma_up, sigma_down = ancestral_split(sigma, sigma_to)

    # 2. ODE derivative and Euler step to sigma_down
    derivative = (sample_data - pred_original) / sigma
    dt = sigma_down - sigma
    prev = sample_data + derivative * dt

    # 3. fresh noise back up to sigma_to
    prev = prev + noise._data * sigma_up
    return Tensor._wrap(prev.astype(np.float32))


# ═════════════════════════════════════════════════════════════════════
#  Scheduler — shared contract
# ═════════════════════════════════════════════════════════════════════

class Scheduler(ABC):
    """Base class holding the training curves and the inference schedule.

    Lifecycle: construct → :meth:`set_timesteps` → :meth:`scale_in_place`
    and :meth:`step` once per timestep, in the order ``set_timesteps``
    returned them.  Calling ``set_timesteps`` again discards the previous
    schedule.

    Args:
        num_train_timesteps: Number of training diffusion steps T.
        beta_start:          Starting β value.
        beta_end:            Ending β value.
        beta_schedule:       ``BetaSchedule.LINEAR`` or
                             ``BetaSchedule.SCALED_LINEAR``.
    """

    def __init__(
        self,
        num_train_timesteps: int = 1000,
        beta_start: float = 0.00085,
        beta_end: float = 0.012,
        beta_schedule: Union[BetaSchedule, str] = BetaSchedule.SCALED_LINEAR,
    ):
        if (isinstance(num_train_timesteps, bool)
                or not isinstance(num_train_timesteps, (int, np.integer))
                or num_train_timesteps < 1):
            raise ScheduleConfigError(
                f"num_train_timesteps must be a positive integer, "
                f"got {num_train_timesteps!r}")
        if not 0.0 < beta_start < beta_end < 1.0:
            raise ScheduleConfigError(
                f"Expected 0 < beta_start < beta_end < 1, got "
                f"beta_start={beta_start!r}, beta_end={beta_end!r}")

        self._num_train_timesteps = int(num_train_timesteps)
        self._beta_start = float(beta_start)
        self._beta_end = float(beta_end)
        self._beta_schedule = BetaSchedule.lookup(beta_schedule)

        self.betas = get_beta_schedule(self._beta_schedule,
                                       self._num_train_timesteps,
                                       self._beta_start, self._beta_end)
        self.alphas_cumprod = schedule_math.cumprod(1.0 - self.betas)

        # sigma = sqrt((1 - ᾱ) / ᾱ), noisiest training step first
        reversed_cumprod = self.alphas_cumprod[::-1]
        self.initial_variance = np.sqrt(
            (1.0 - reversed_cumprod) / reversed_cumprod
        ).astype(np.float32)

        self._init_noise_sigma = float(np.max(self.initial_variance))
        self._schedule: Optional[InferenceSchedule] = None

    # ---- configuration ----

    @property
    def num_train_timesteps(self) -> int:
        return self._num_train_timesteps

    @property
    def beta_start(self) -> float:
        return self._beta_start

    @property
    def beta_end(self) -> float:
        return self._beta_end

    @property
    def beta_schedule(self) -> BetaSchedule:
        return self._beta_schedule

    # ---- schedule state ----

    @property
    def init_noise_sigma(self) -> float:
        """Std of the initial noise; scale starting latents by this."""
        return self._init_noise_sigma

    def get_initial_noise_sigma(self) -> float:
        return self._init_noise_sigma

    @property
    def schedule(self) -> Optional[InferenceSchedule]:
        return self._schedule

    @property
    def timesteps(self) -> Optional[np.ndarray]:
        if self._schedule is None:
            return None
        return self._schedule.timesteps

    @property
    def sigmas(self) -> Optional[np.ndarray]:
        if self._schedule is None:
            return None
        return self._schedule.sigmas

    @property
    def num_inference_steps(self) -> Optional[int]:
        if self._schedule is None:
            return None
        return len(self._schedule)

    def set_timesteps(self, num_inference_steps: int) -> np.ndarray:
        """Size the inference schedule; returns the descending timesteps.

        With ``num_inference_steps > num_train_timesteps`` truncation
        repeats timesteps.  Each repeat resolves to the first step index
        holding that value, so the loop re-runs that step instead of
        advancing, and the final sentinel sigma is never reached.  A
        warning is logged in that case.
        """
        if (isinstance(num_inference_steps, bool)
                or not isinstance(num_inference_steps, (int, np.integer))
                or num_inference_steps < 1):
            raise ScheduleConfigError(
                f"num_inference_steps must be a positive integer, "
                f"got {num_inference_steps!r}")
        if num_inference_steps > self._num_train_timesteps:
            logger.warning(
                "%d inference steps exceed %d training timesteps; "
                "repeated timesteps will re-run the same step",
                num_inference_steps, self._num_train_timesteps)

        self._schedule = build_inference_schedule(
            self.initial_variance, self._num_train_timesteps,
            int(num_inference_steps))
        self._init_noise_sigma = self._schedule.init_noise_sigma
        self._reset_state()
        logger.debug("%s: %d inference steps, init_noise_sigma=%.4f",
                     type(self).__name__, num_inference_steps,
                     self._init_noise_sigma)
        return self._schedule.timesteps.copy()

    def _reset_state(self) -> None:
        """Clear variant-specific per-schedule state."""

    def _require_schedule(self) -> InferenceSchedule:
        if self._schedule is None:
            raise TimestepLookupError(
                "No inference schedule: call set_timesteps() first")
        return self._schedule

    def step_index(self, timestep: int) -> int:
        return self._require_schedule().step_index(int(timestep))

    # ---- per-step operations ----

    def scale_in_place(self, sample: Tensor, timestep: int) -> None:
        """Divide ``sample`` by ``sqrt(sigma² + 1)`` in place."""
        schedule = self._require_schedule()
        sigma = float(schedule.sigmas[schedule.step_index(int(timestep))])
        sample.scale_(1.0 / float(np.sqrt(sigma * sigma + 1.0)))

    def scale_model_input(self, sample: Tensor, timestep: int) -> Tensor:
        """Like :meth:`scale_in_place` but returns a scaled copy."""
        scaled = sample.clone()
        self.scale_in_place(scaled, timestep)
        return scaled

    @abstractmethod
    def step(self, model_output: Tensor, timestep: int, sample: Tensor,
             order: int = 4) -> Tensor:
        """Advance ``sample`` one step; returns a newly allocated tensor."""


# ═════════════════════════════════════════════════════════════════════
#  EulerAncestralDiscreteScheduler
# ═════════════════════════════════════════════════════════════════════

class EulerAncestralDiscreteScheduler(Scheduler):
    """Euler ancestral sampler.

    Uses a fresh noise sample at each step, which injects more variability
    into the trajectory than a deterministic ODE solver.  The noise comes
    from a private generator seeded at construction, so a fixed seed and
    fixed model outputs reproduce the same samples bit for bit.

    Args:
        num_train_timesteps: Training diffusion steps.
        beta_start / beta_end: Beta range.
        beta_schedule:       Schedule type.
        seed:                Seed of the per-step noise stream.
    """

    def __init__(
        self,
        num_train_timesteps: int = 1000,
        beta_start: float = 0.00085,
        beta_end: float = 0.012,
        beta_schedule: Union[BetaSchedule, str] = BetaSchedule.SCALED_LINEAR,
        *,
        seed: int,
    ):
        super().__init__(num_train_timesteps, beta_start, beta_end,
                         beta_schedule)
        self.seed = seed
        self._rng = np.random.default_rng(seed)

    def step(self, model_output: Tensor, timestep: int, sample: Tensor,
             order: int = 4) -> Tensor:
        """Euler-ancestral step; ``order`` is ignored."""
        _check_same_shape(model_output, sample)
        schedule = self._require_schedule()
        step_idx = schedule.step_index(int(timestep))
        sigma, sigma_to = schedule.sigma_pair(step_idx)
        noise = randn_tensor(sample.shape, generator=self._rng)
        return ancestral_step(model_output, sample, sigma, sigma_to, noise)


# ═════════════════════════════════════════════════════════════════════
#  LMSDiscreteScheduler
# ═════════════════════════════════════════════════════════════════════

class LMSDiscreteScheduler(Scheduler):
    """Linear multistep scheduler for discrete sigma schedules.

    Keeps the last ``order`` ODE derivatives and integrates their Lagrange
    interpolant over each sigma interval.  Deterministic: ``seed`` is only
    accepted so both schedulers can be built the same way.
    """

    def __init__(
        self,
        num_train_timesteps: int = 1000,
        beta_start: float = 0.00085,
        beta_end: float = 0.012,
        beta_schedule: Union[BetaSchedule, str] = BetaSchedule.SCALED_LINEAR,
        *,
        seed: Optional[int] = None,
    ):
        super().__init__(num_train_timesteps, beta_start, beta_end,
                         beta_schedule)
        self.seed = seed
        self._derivatives: list[np.ndarray] = []

    def _reset_state(self) -> None:
        self._derivatives = []

    def lms_coefficient(self, order: int, step_index: int,
                        current_order: int) -> float:
        """Integral of the ``current_order``-th Lagrange basis polynomial
        through ``sigmas[t], sigmas[t-1], ...`` over ``[sigmas[t], sigmas[t+1]]``.
        """
        sigmas = self._require_schedule().sigmas.astype(np.float64)
        t = step_index
        basis = Polynomial([1.0])
        for k in range(order):
            if k == current_order:
                continue
            denom = sigmas[t - current_order] - sigmas[t - k]
            basis = basis * Polynomial([-sigmas[t - k] / denom, 1.0 / denom])
        integral = basis.integ()
        return float(integral(sigmas[t + 1]) - integral(sigmas[t]))

    def step(self, model_output: Tensor, timestep: int, sample: Tensor,
             order: int = 4) -> Tensor:
        if order < 1:
            raise ScheduleConfigError(f"LMS order must be >= 1, got {order!r}")
        _check_same_shape(model_output, sample)
        schedule = self._require_schedule()
        step_idx = schedule.step_index(int(timestep))
        sigma, _ = schedule.sigma_pair(step_idx)

        # 1. predicted x₀ and ODE derivative
        pred_original = sample._data - sigma * model_output._data
        derivative = (sample._data - pred_original) / sigma
        self._derivatives.append(derivative)
        if len(self._derivatives) > order:
            self._derivatives.pop(0)

        # 2. linear multistep coefficients
        effective_order = min(step_idx + 1, order)
        coeffs = [self.lms_coefficient(effective_order, step_idx, k)
                  for k in range(effective_order)]

        # 3. previous sample
        prev = sample._data.copy()
        for coeff, deriv in zip(coeffs, reversed(self._derivatives)):
            prev = prev + coeff * deriv
        return Tensor._wrap(prev.astype(np.float32))


# ═════════════════════════════════════════════════════════════════════
#  Registry
# ═════════════════════════════════════════════════════════════════════

class SchedulerKind(enum.Enum):
    """Scheduling algorithms available to pipelines."""
    LMS = 'lms'
    EULER_ANCESTRAL = 'euler_ancestral'

    @staticmethod
    def lookup(name: Union['SchedulerKind', str]) -> 'SchedulerKind':
        """Case-insensitive lookup by name or common alias."""
        if isinstance(name, SchedulerKind):
            return name
        key = str(name).strip().lower().replace('-', '_')
        if key in ('lms', 'lms_discrete'):
            return SchedulerKind.LMS
        if key in ('euler_ancestral', 'euler_a', 'eulera',
                   'euler_ancestral_discrete'):
            return SchedulerKind.EULER_ANCESTRAL
        raise ScheduleConfigError(f"Unknown scheduler: {name!r}")


def create_scheduler(kind: Union[SchedulerKind, str] = SchedulerKind.LMS,
                     seed: int = 0, **kwargs) -> Scheduler:
    """Build a fresh scheduler of ``kind``; extra kwargs go to its constructor."""
    kind = SchedulerKind.lookup(kind)
    if kind is SchedulerKind.EULER_ANCESTRAL:
        return EulerAncestralDiscreteScheduler(seed=seed, **kwargs)
    return LMSDiscreteScheduler(seed=seed, **kwargs)


# ═════════════════════════════════════════════════════════════════════
#  Public exports
# ═════════════════════════════════════════════════════════════════════

__all__ = [
    'InferenceSchedule',
    'build_inference_schedule',
    'ancestral_split',
    'ancestral_step',
    'Scheduler',
    'EulerAncestralDiscreteScheduler',
    'LMSDiscreteScheduler',
    'SchedulerKind',
    'create_scheduler',
]
