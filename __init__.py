# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstep — Diffusion Scheduling Engine                            ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""
Latentstep — Diffusion scheduling engine written in Python on NumPy.

Turns a number of inference steps into a timestep/sigma schedule and
advances latents one denoising step at a time.  Model inference is left
to the caller: the pipeline accepts any text embedder, noise predictor
and decoder that follow the protocols in ``latentstep.diffusion``.

Usage::

    import latentstep
    from latentstep.diffusion import EulerAncestralDiscreteScheduler

    sched = EulerAncestralDiscreteScheduler(seed=42)
    for t in sched.set_timesteps(25):
        model_input = sched.scale_model_input(latents, t)
        latents = sched.step(unet(model_input, t, emb), t, latents)
"""
from __future__ import annotations

__version__ = "0.1.0"
__author__ = "Pictofeed, LLC"

# ── Core tensor class & factory functions ──
from .tensor import (
    Tensor,
    tensor,
    zeros, zeros_like,
    ones,
    full,
    empty,
    randn,
    cat, stack,
    manual_seed,
)

# ── Sub-packages ──
from . import diffusion
from . import utils

# ── Configuration ──
from .config import (
    SchedulerConfig,
    GenerationConfig,
    LatentstepConfig,
    load_config,
)

__all__ = [
    "__version__",
    "__author__",

    # Tensor
    'Tensor', 'tensor',
    'zeros', 'zeros_like', 'ones', 'full', 'empty', 'randn',
    'cat', 'stack',
    # Utility
    'manual_seed',
    # Configuration
    'SchedulerConfig', 'GenerationConfig', 'LatentstepConfig', 'load_config',
    # Sub-packages
    'diffusion', 'utils',
]
