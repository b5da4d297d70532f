# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstep — Diffusion Scheduling Engine                            ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""latentstep.diffusion — Noise schedulers and the denoising pipeline.

Provides the Euler ancestral and LMS discrete schedulers, the schedule
math they share, and a Stable Diffusion style pipeline that drives a
scheduler against caller-supplied model collaborators.

Usage::

    from latentstep.diffusion import (
        EulerAncestralDiscreteScheduler,
        LMSDiscreteScheduler,
        SchedulerKind,
        create_scheduler,
        StableDiffusionPipeline,
        GenerationRequest,
    )
"""
from __future__ import annotations

# ── Errors ──
from .errors import (
    ScheduleConfigError,
    TimestepLookupError,
    ScheduleInvariantError,
    PipelineError,
)

# ── Schedule math ──
from . import schedule_math

# ── Schedulers ──
from .schedulers import (
    InferenceSchedule,
    build_inference_schedule,
    ancestral_split,
    ancestral_step,
    Scheduler,
    EulerAncestralDiscreteScheduler,
    LMSDiscreteScheduler,
    SchedulerKind,
    create_scheduler,
)

# ── Pipelines ──
from .pipelines import (
    TextEmbedder,
    NoisePredictor,
    LatentDecoder,
    SafetyChecker,
    ImageSize,
    GenerationRequest,
    GeneratedImage,
    DiffusionPipeline,
    StableDiffusionPipeline,
)

# ── Utilities ──
from .utils import (
    BetaSchedule,
    classifier_free_guidance,
    randn_tensor,
    get_beta_schedule,
)

__all__ = [
    # Errors
    'ScheduleConfigError',
    'TimestepLookupError',
    'ScheduleInvariantError',
    'PipelineError',
    # Schedule math
    'schedule_math',
    # Schedulers
    'InferenceSchedule',
    'build_inference_schedule',
    'ancestral_split',
    'ancestral_step',
    'Scheduler',
    'EulerAncestralDiscreteScheduler',
    'LMSDiscreteScheduler',
    'SchedulerKind',
    'create_scheduler',
    # Pipelines
    'TextEmbedder',
    'NoisePredictor',
    'LatentDecoder',
    'SafetyChecker',
    'ImageSize',
    'GenerationRequest',
    'GeneratedImage',
    'DiffusionPipeline',
    'StableDiffusionPipeline',
    # Utilities
    'BetaSchedule',
    'classifier_free_guidance',
    'randn_tensor',
    'get_beta_schedule',
]
