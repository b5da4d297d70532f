# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstep — Diffusion Scheduling Engine                            ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""Configuration objects for schedulers and generation requests.

Config files are YAML or JSON with two optional top-level sections::

    scheduler:
      kind: euler_ancestral
      num_train_timesteps: 1000
      beta_start: 0.00085
      beta_end: 0.012
      beta_schedule: scaled_linear
    generation:
      steps: 25
      guidance: 7.5
      seed: 42
      height: 512
      width: 512
"""
from __future__ import annotations

import dataclasses
import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Type, TypeVar

import yaml

from latentstep.diffusion.errors import ScheduleConfigError
from latentstep.diffusion.pipelines import GenerationRequest, ImageSize
from latentstep.diffusion.schedulers import (
    Scheduler,
    SchedulerKind,
    create_scheduler,
)
from latentstep.diffusion.utils import BetaSchedule

_C = TypeVar('_C')


def _from_mapping(cls: Type[_C], mapping: Optional[Mapping[str, Any]]) -> _C:
    mapping = dict(mapping or {})
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = sorted(set(mapping) - known)
    if unknown:
        raise ScheduleConfigError(
            f"Unknown {cls.__name__} keys: {', '.join(unknown)}")
    return cls(**mapping)


@dataclass
class SchedulerConfig:
    kind: str = 'lms'
    num_train_timesteps: int = 1000
    beta_start: float = 0.00085
    beta_end: float = 0.012
    beta_schedule: str = 'scaled_linear'

    def __post_init__(self):
        # Normalise names; unknown ones raise here.
        self.kind = SchedulerKind.lookup(self.kind).value
        self.beta_schedule = BetaSchedule.lookup(self.beta_schedule).value

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Any]]) -> 'SchedulerConfig':
        return _from_mapping(cls, mapping)

    def scheduler_kwargs(self) -> Dict[str, Any]:
        return {
            'num_train_timesteps': self.num_train_timesteps,
            'beta_start': self.beta_start,
            'beta_end': self.beta_end,
            'beta_schedule': self.beta_schedule,
        }

    def build(self, seed: int) -> Scheduler:
        return create_scheduler(self.kind, seed=seed, **self.scheduler_kwargs())


@dataclass
class GenerationConfig:
    steps: int = 25
    guidance: float = 7.5
    seed: int = 42
    height: int = 512
    width: int = 512
    batch_size: int = 1
    negative_text: str = ''

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Any]]) -> 'GenerationConfig':
        return _from_mapping(cls, mapping)

    def to_request(self, text: str,
                   scheduler: str | SchedulerKind = SchedulerKind.LMS
                   ) -> GenerationRequest:
        return GenerationRequest(
            text=text,
            negative_text=self.negative_text,
            steps=self.steps,
            guidance=self.guidance,
            seed=self.seed,
            size=ImageSize(self.height, self.width),
            scheduler=scheduler,
            batch_size=self.batch_size,
        )


@dataclass
class LatentstepConfig:
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Any]]) -> 'LatentstepConfig':
        mapping = dict(mapping or {})
        unknown = sorted(set(mapping) - {'scheduler', 'generation'})
        if unknown:
            raise ScheduleConfigError(
                f"Unknown config sections: {', '.join(unknown)}")
        return cls(
            scheduler=SchedulerConfig.from_mapping(mapping.get('scheduler')),
            generation=GenerationConfig.from_mapping(mapping.get('generation')),
        )

    def request(self, text: str) -> GenerationRequest:
        """A request for ``text`` using the configured scheduler kind."""
        return self.generation.to_request(text, self.scheduler.kind)

    def pipeline_scheduler_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``StableDiffusionPipeline(scheduler_kwargs=...)``."""
        return self.scheduler.scheduler_kwargs()


_YAML_SUFFIXES: Tuple[str, ...] = ('.yaml', '.yml')


def load_config_file(path: str | os.PathLike) -> Dict[str, Any]:
    path = os.fspath(path)
    if path.endswith(_YAML_SUFFIXES):
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    elif path.endswith('.json'):
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    else:
        raise ScheduleConfigError(
            f"Unsupported config file type: {path!r}. Use .yaml, .yml or .json")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ScheduleConfigError(
            f"Config file {path!r} must contain a mapping at the top level")
    return data


def load_config(path: str | os.PathLike) -> LatentstepConfig:
    return LatentstepConfig.from_mapping(load_config_file(path))


__all__ = [
    'SchedulerConfig',
    'GenerationConfig',
    'LatentstepConfig',
    'load_config_file',
    'load_config',
]
