# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstep — Diffusion Scheduling Engine                            ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝

"""Diffusion pipelines — the denoising loop around a scheduler.

The pipeline owns no model code.  Text embedding, noise prediction,
latent decoding and content checking are supplied as collaborators that
satisfy the protocols below; the pipeline wires them to a fresh
scheduler per request.

- **DiffusionPipeline** — base class with shared logic (noise init,
  decoding, progress reporting).
- **StableDiffusionPipeline** — SD-style text-to-image loop with
  classifier-free guidance.
"""
from __future__ import annotations

import logging
import numpy as np
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Sequence, Union

from tqdm.auto import tqdm

from latentstep.tensor import Tensor, cat
from latentstep.diffusion.errors import PipelineError, ScheduleConfigError
from latentstep.diffusion.schedulers import (
    Scheduler,
    SchedulerKind,
    create_scheduler,
)
from latentstep.diffusion.utils import classifier_free_guidance, randn_tensor

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


# ═════════════════════════════════════════════════════════════════════
#  Collaborator protocols
# ═════════════════════════════════════════════════════════════════════

class TextEmbedder(Protocol):
    """Maps prompts to conditioning embeddings.

    The two-prompt variants return the unconditioned (or negative) batch
    first and the text-conditioned batch second, stacked on dim 0.
    """

    def embed_text(self, text: str, batch_size: int) -> Tensor:
        ...

    def embed_text_and_uncond(self, text: str, batch_size: int) -> Tensor:
        ...

    def embed_text_and_negative(self, text: str, negative_text: str,
                                batch_size: int) -> Tensor:
        ...


class NoisePredictor(Protocol):
    """Denoising network: predicts the noise in ``latents`` at ``timestep``."""

    def __call__(self, latents: Tensor, timestep: int,
                 text_embedding: Tensor) -> Tensor:
        ...


class LatentDecoder(Protocol):
    """Maps latents back to image space."""

    def decode(self, latents: Tensor) -> Tensor:
        ...


class SafetyChecker(Protocol):
    """Flags decoded images; ``True`` means the image must not be shown."""

    def check(self, images: Tensor) -> Sequence[bool]:
        ...


# ═════════════════════════════════════════════════════════════════════
#  Requests and results
# ═════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ImageSize:
    """Image size in pixels."""
    height: int
    width: int

    @classmethod
    def square(cls, size: int) -> 'ImageSize':
        return cls(size, size)

    def __str__(self) -> str:
        return f"[{self.height}, {self.width}]"


@dataclass
class GenerationRequest:
    """An image generation request.

    Attributes:
        text:          Prompt.
        negative_text: Prompt the image should not match (may be blank).
        steps:         Number of diffusion inference steps.
        guidance:      Classifier-free guidance scale; below 1 disables it.
        seed:          Seeds both the initial latents and ancestral noise.
        size:          Output image size.
        scheduler:     Scheduling algorithm.
        batch_size:    Number of images to generate.
    """
    text: str
    negative_text: str = ''
    steps: int = 25
    guidance: float = 7.5
    seed: int = 42
    size: ImageSize = field(default_factory=lambda: ImageSize(512, 512))
    scheduler: Union[SchedulerKind, str] = SchedulerKind.LMS
    batch_size: int = 1

    def __post_init__(self):
        self.text = self.text.strip()
        self.negative_text = self.negative_text.strip()
        self.scheduler = SchedulerKind.lookup(self.scheduler)
        if self.steps < 1:
            raise ScheduleConfigError(f"steps must be >= 1, got {self.steps!r}")
        if self.batch_size < 1:
            raise ScheduleConfigError(
                f"batch_size must be >= 1, got {self.batch_size!r}")

    @property
    def uses_guidance(self) -> bool:
        return self.guidance >= 1.0


@dataclass
class GeneratedImage:
    """One image of a batch, along with the inputs that produced it."""
    image: Tensor
    text: str
    negative_text: str
    num_inference_steps: int
    guidance_scale: float
    seed: int
    batch_id: int
    is_valid: bool = True


# ═════════════════════════════════════════════════════════════════════
#  DiffusionPipeline — base class
# ═════════════════════════════════════════════════════════════════════

class DiffusionPipeline:
    """Base class for diffusion generation pipelines.

    Provides:
    - ``prepare_latents`` — seeded starting noise scaled by the scheduler.
    - ``decode_latents`` — run the decoder on denoised latents.
    - ``progress_bar`` — tqdm wrapper around the step loop.
    - ``__call__`` — the main generation entry point (overridden by subclasses).
    """

    vae: Optional[LatentDecoder] = None
    vae_scaling_factor: float = 0.18215
    show_progress: bool = True

    def prepare_latents(
        self,
        scheduler: Scheduler,
        batch_size: int,
        num_channels: int,
        height: int,
        width: int,
        seed: int,
    ) -> Tensor:
        """Create initial noise latents, scaled by ``init_noise_sigma``."""
        shape = (batch_size, num_channels, height, width)
        # Child of ``seed``, disjoint from the scheduler's noise stream.
        child = np.random.SeedSequence(seed).spawn(1)[0]
        latents = randn_tensor(shape, generator=np.random.default_rng(child))
        return latents.scale_(scheduler.get_initial_noise_sigma())

    def decode_latents(self, latents: Tensor) -> Tensor:
        """Decode latent-space tensor through the VAE."""
        if self.vae is not None:
            z = latents * (1.0 / self.vae_scaling_factor)
            return self.vae.decode(z)
        return latents

    def progress_bar(self, iterable, desc: str = ''):
        return tqdm(iterable, desc=desc, disable=not self.show_progress)

    def __call__(self, *args, **kwargs):
        raise NotImplementedError("Subclasses must implement __call__")


# ═════════════════════════════════════════════════════════════════════
#  StableDiffusionPipeline
# ═════════════════════════════════════════════════════════════════════

class StableDiffusionPipeline(DiffusionPipeline):
    """Stable Diffusion latent-diffusion pipeline.

    1. Embed prompt (with unconditioned / negative half when guided).
    2. Initialise latent noise scaled by the scheduler's initial sigma.
    3. Iterative denoising with classifier-free guidance.
    4. Decode latents and run the optional safety checker.

    Collaborator failures surface as a single :class:`PipelineError`;
    scheduler contract errors propagate unchanged.

    Args:
        text_embedder:   Prompt → embedding collaborator.
        unet:            Noise predictor.
        vae:             Latent decoder, or None to return raw latents.
        safety_checker:  Optional content checker run on decoded images.
        latent_channels: Channels in latent space (4 for SD).
        latent_scale:    Spatial scale factor of the VAE (8 for SD).
        scheduler_kwargs: Extra keyword arguments for every scheduler built.
        show_progress:   Show a tqdm bar over the denoising steps.
    """

    def __init__(
        self,
        text_embedder: TextEmbedder,
        unet: NoisePredictor,
        vae: Optional[LatentDecoder] = None,
        safety_checker: Optional[SafetyChecker] = None,
        latent_channels: int = 4,
        latent_scale: int = 8,
        scheduler_kwargs: Optional[dict] = None,
        show_progress: bool = True,
    ):
        self.text_embedder = text_embedder
        self.unet = unet
        self.vae = vae
        self.safety_checker = safety_checker
        self.latent_channels = latent_channels
        self.latent_scale = latent_scale
        self.scheduler_kwargs = dict(scheduler_kwargs or {})
        self.show_progress = show_progress

    # ---- collaborator calls ----

    @staticmethod
    def _invoke(what: str, fn, *args):
        try:
            return fn(*args)
        except Exception as exc:
            raise PipelineError(f"{what} failed: {exc}") from exc

    def encode_prompt(self, request: GenerationRequest) -> Tensor:
        embedder = self.text_embedder
        if not request.uses_guidance:
            logger.info("Generating image for '%s', without guidance",
                        request.text)
            return self._invoke("Text embedding", embedder.embed_text,
                                request.text, request.batch_size)
        if not request.negative_text:
            logger.info("Generating image for '%s', with guidance",
                        request.text)
            return self._invoke("Text embedding",
                                embedder.embed_text_and_uncond,
                                request.text, request.batch_size)
        logger.info("Generating image for '%s', with negative text '%s'",
                    request.text, request.negative_text)
        return self._invoke("Text embedding", embedder.embed_text_and_negative,
                            request.text, request.negative_text,
                            request.batch_size)

    # ---- denoising ----

    def denoise(
        self,
        scheduler: Scheduler,
        text_embedding: Tensor,
        request: GenerationRequest,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> Tensor:
        """Run the scheduler loop and return the final latents."""
        timesteps = scheduler.set_timesteps(request.steps)
        latents = self.prepare_latents(
            scheduler,
            request.batch_size,
            self.latent_channels,
            request.size.height // self.latent_scale,
            request.size.width // self.latent_scale,
            request.seed,
        )

        guided = request.uses_guidance
        for i, t in enumerate(self.progress_bar(timesteps, desc='Denoising')):
            t = int(t)
            if guided:
                model_input = cat([latents, latents], dim=0)
            else:
                model_input = latents.clone()
            scheduler.scale_in_place(model_input, t)

            noise_pred = self._invoke("Noise prediction", self.unet,
                                      model_input, t, text_embedding)
            if guided:
                noise_pred = classifier_free_guidance(noise_pred,
                                                      request.guidance)

            latents = scheduler.step(noise_pred, t, latents)
            if progress_callback is not None:
                progress_callback(i)
        return latents

    def generate(
        self,
        request: GenerationRequest,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> List[GeneratedImage]:
        """Generate a batch of images for ``request``."""
        text_embedding = self.encode_prompt(request)
        logger.info("Generated embedding")

        scheduler = create_scheduler(request.scheduler, seed=request.seed,
                                     **self.scheduler_kwargs)
        latents = self.denoise(scheduler, text_embedding, request,
                               progress_callback)
        logger.info("Generated latents")

        if self.vae is not None:
            decoded = self._invoke("Latent decoding", self.decode_latents,
                                   latents)
        else:
            decoded = latents

        is_valid = [True] * request.batch_size
        if self.safety_checker is not None:
            checker = self.safety_checker
            flags = self._invoke("Safety check",
                                 lambda images: list(checker.check(images)),
                                 decoded)
            if len(flags) != request.batch_size:
                raise PipelineError(
                    f"Safety check returned {len(flags)} flags for "
                    f"{request.batch_size} images")
            for i, flagged in enumerate(flags):
                logger.info("Safety checker flagged image %d: %s", i,
                            bool(flagged))
                is_valid[i] = not flagged
        logger.info("Generated images")

        return [
            GeneratedImage(
                image=decoded[i],
                text=request.text,
                negative_text=request.negative_text,
                num_inference_steps=request.steps,
                guidance_scale=request.guidance,
                seed=request.seed,
                batch_id=i,
                is_valid=is_valid[i],
            )
            for i in range(request.batch_size)
        ]

    def __call__(
        self,
        prompt: str,
        negative_prompt: str = '',
        num_inference_steps: int = 25,
        guidance_scale: float = 7.5,
        height: int = 512,
        width: int = 512,
        seed: int = 42,
        scheduler: Union[SchedulerKind, str] = SchedulerKind.LMS,
        batch_size: int = 1,
        callback: Optional[ProgressCallback] = None,
    ) -> List[GeneratedImage]:
        request = GenerationRequest(
            text=prompt,
            negative_text=negative_prompt,
            steps=num_inference_steps,
            guidance=guidance_scale,
            seed=seed,
            size=ImageSize(height, width),
            scheduler=scheduler,
            batch_size=batch_size,
        )
        return self.generate(request, callback)

    # ---- lifecycle ----

    def close(self) -> None:
        """Close every collaborator that exposes ``close()``."""
        for part in (self.text_embedder, self.unet, self.vae,
                     self.safety_checker):
            close = getattr(part, 'close', None)
            if callable(close):
                self._invoke("Closing collaborator", close)

    def __enter__(self) -> 'StableDiffusionPipeline':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = [
    'TextEmbedder',
    'NoisePredictor',
    'LatentDecoder',
    'SafetyChecker',
    'ImageSize',
    'GenerationRequest',
    'GeneratedImage',
    'DiffusionPipeline',
    'StableDiffusionPipeline',
]
