"""Pytest fixtures for testing."""
import pytest
import numpy as np

import latentstep as torch
from latentstep.diffusion import (
    EulerAncestralDiscreteScheduler,
    LMSDiscreteScheduler,
    StableDiffusionPipeline,
)


@pytest.fixture
def seed():
    """Seed used by the reference scenario."""
    return 42


@pytest.fixture
def euler(seed):
    """Euler ancestral scheduler with the SD defaults, sized to 5 steps."""
    sched = EulerAncestralDiscreteScheduler(seed=seed)
    sched.set_timesteps(5)
    return sched


@pytest.fixture
def lms():
    sched = LMSDiscreteScheduler()
    sched.set_timesteps(10)
    return sched


@pytest.fixture
def sample():
    return torch.randn(1, 4, 8, 8, generator=np.random.default_rng(0))


# ── Fake collaborators ──

class FakeTextEmbedder:
    def __init__(self):
        self.calls = []
        self.closed = False

    def _embedding(self, rows):
        return torch.zeros(rows, 77, 8)

    def embed_text(self, text, batch_size):
        self.calls.append(('text', text))
        return self._embedding(batch_size)

    def embed_text_and_uncond(self, text, batch_size):
        self.calls.append(('uncond', text))
        return self._embedding(2 * batch_size)

    def embed_text_and_negative(self, text, negative_text, batch_size):
        self.calls.append(('negative', text, negative_text))
        return self._embedding(2 * batch_size)

    def close(self):
        self.closed = True


class FakeNoisePredictor:
    """Predicts a small constant noise; records what it was given."""

    def __init__(self, fail=False):
        self.fail = fail
        self.timesteps = []
        self.batch_sizes = []

    def __call__(self, latents, timestep, text_embedding):
        if self.fail:
            raise RuntimeError("out of memory")
        self.timesteps.append(timestep)
        self.batch_sizes.append(latents.shape[0])
        return torch.full(latents.shape, 0.1)


class FakeDecoder:
    def decode(self, latents):
        return latents * 2.0


class FakeSafetyChecker:
    def __init__(self, flags):
        self.flags = flags

    def check(self, images):
        return self.flags[:images.shape[0]]


@pytest.fixture
def embedder():
    return FakeTextEmbedder()


@pytest.fixture
def unet():
    return FakeNoisePredictor()


@pytest.fixture
def pipeline(embedder, unet):
    return StableDiffusionPipeline(embedder, unet, show_progress=False)


@pytest.fixture
def failing_unet():
    return FakeNoisePredictor(fail=True)


@pytest.fixture
def decoder():
    return FakeDecoder()


@pytest.fixture
def safety_checker():
    """Flags the second image of a batch."""
    return FakeSafetyChecker([False, True, False, False])
