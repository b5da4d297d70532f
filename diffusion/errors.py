# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstep — Diffusion Scheduling Engine                            ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝

"""Exceptions raised by schedulers and pipelines.

None of these are transient: they signal a bad configuration or a caller
that is out of sync with the scheduler, so nothing retries on them.
"""
from __future__ import annotations


class ScheduleConfigError(ValueError):
    """Invalid scheduler parameters (beta range, schedule type, step count)."""


class TimestepLookupError(LookupError):
    """A timestep that is not part of the current inference schedule."""


class ScheduleInvariantError(IndexError):
    """The sigma array does not carry the trailing sentinel entry."""


class PipelineError(RuntimeError):
    """A collaborator (embedder, noise predictor, decoder) failed."""


__all__ = [
    'ScheduleConfigError',
    'TimestepLookupError',
    'ScheduleInvariantError',
    'PipelineError',
]
