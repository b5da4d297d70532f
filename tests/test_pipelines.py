"""Tests for the Stable Diffusion denoising pipeline with fake models."""
import logging

import numpy as np
import pytest

from latentstep.diffusion import (
    EulerAncestralDiscreteScheduler,
    GeneratedImage,
    GenerationRequest,
    ImageSize,
    PipelineError,
    ScheduleConfigError,
    SchedulerKind,
    StableDiffusionPipeline,
)


def test_generate_walks_the_schedule_in_order(pipeline, unet):
    seen = []
    images = pipeline('a red fox', num_inference_steps=4, height=64, width=64,
                      callback=seen.append)
    assert seen == [0, 1, 2, 3]
    assert unet.timesteps == [999, 666, 333, 0]
    assert all(type(t) is int for t in unet.timesteps)
    assert len(images) == 1
    assert isinstance(images[0], GeneratedImage)
    assert images[0].image.shape == (4, 8, 8)


def test_guided_generation_doubles_the_batch(pipeline, embedder, unet):
    pipeline('a red fox', num_inference_steps=3, height=64, width=64,
             batch_size=2)
    assert embedder.calls == [('uncond', 'a red fox')]
    assert unet.batch_sizes == [4, 4, 4]


def test_guidance_below_one_uses_text_only(pipeline, embedder, unet):
    pipeline('a red fox', num_inference_steps=2, guidance_scale=0.5,
             height=64, width=64)
    assert embedder.calls == [('text', 'a red fox')]
    assert unet.batch_sizes == [1, 1]


def test_negative_prompt_mode(pipeline, embedder, caplog):
    with caplog.at_level(logging.INFO,
                         logger='latentstep.diffusion.pipelines'):
        pipeline('a red fox', negative_prompt='  blurry ',
                 num_inference_steps=2, height=64, width=64)
    assert embedder.calls == [('negative', 'a red fox', 'blurry')]
    assert "with negative text 'blurry'" in caplog.text


def test_model_failure_is_wrapped(embedder, failing_unet):
    pipe = StableDiffusionPipeline(embedder, failing_unet,
                                   show_progress=False)
    with pytest.raises(PipelineError) as excinfo:
        pipe('a red fox', num_inference_steps=2, height=64, width=64)
    assert 'Noise prediction failed' in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_embedder_failure_is_wrapped(unet):
    class BrokenEmbedder:
        def embed_text_and_uncond(self, text, batch_size):
            raise KeyError('tokenizer vocab')

    pipe = StableDiffusionPipeline(BrokenEmbedder(), unet,
                                   show_progress=False)
    with pytest.raises(PipelineError) as excinfo:
        pipe('a red fox', num_inference_steps=2, height=64, width=64)
    assert isinstance(excinfo.value.__cause__, KeyError)
    assert unet.timesteps == []


def test_bad_scheduler_name_is_not_wrapped(pipeline):
    with pytest.raises(ScheduleConfigError):
        pipeline('a red fox', scheduler='ddim')


def test_decoder_and_safety_checker(embedder, unet, decoder, safety_checker):
    pipe = StableDiffusionPipeline(embedder, unet, vae=decoder,
                                   safety_checker=safety_checker,
                                   show_progress=False)
    images = pipe('a red fox', num_inference_steps=2, height=64, width=64,
                  batch_size=2, seed=3)
    assert [img.is_valid for img in images] == [True, False]
    assert [img.batch_id for img in images] == [0, 1]
    assert all(img.seed == 3 and img.num_inference_steps == 2
               for img in images)


def test_safety_flag_count_must_match_batch(embedder, unet, decoder):
    class OverReportingChecker:
        def check(self, images):
            return [False] * (images.shape[0] + 1)

    pipe = StableDiffusionPipeline(embedder, unet, vae=decoder,
                                   safety_checker=OverReportingChecker(),
                                   show_progress=False)
    with pytest.raises(PipelineError, match='3 flags for 2 images'):
        pipe('a red fox', num_inference_steps=2, height=64, width=64,
             batch_size=2, seed=3)


def test_decoder_receives_rescaled_latents(embedder, unet):
    class RecordingDecoder:
        def decode(self, latents):
            self.latents = latents
            return latents

    raw = StableDiffusionPipeline(embedder, unet, show_progress=False)
    expected = raw('a red fox', num_inference_steps=2, height=64,
                   width=64)[0].image.numpy()

    recorder = RecordingDecoder()
    pipe = StableDiffusionPipeline(embedder, unet, vae=recorder,
                                   show_progress=False)
    pipe('a red fox', num_inference_steps=2, height=64, width=64)
    np.testing.assert_allclose(recorder.latents.numpy()[0],
                               expected / 0.18215, rtol=1e-5)


@pytest.mark.parametrize('scheduler', ['lms', 'euler_ancestral'])
def test_generation_is_reproducible(embedder, unet, scheduler):
    def run(seed):
        pipe = StableDiffusionPipeline(embedder, unet, show_progress=False)
        return pipe('a red fox', num_inference_steps=5, height=64, width=64,
                    seed=seed, scheduler=scheduler)[0].image.numpy()

    np.testing.assert_array_equal(run(7), run(7))
    assert not np.array_equal(run(7), run(8))


def test_prepare_latents_scales_by_init_sigma(pipeline):
    sched = EulerAncestralDiscreteScheduler(seed=0)
    sched.set_timesteps(10)
    latents = pipeline.prepare_latents(sched, 1, 4, 64, 64, seed=0)
    assert latents.shape == (1, 4, 64, 64)
    assert latents.numpy().std() == pytest.approx(sched.init_noise_sigma,
                                                   rel=0.05)


def test_scheduler_kwargs_are_forwarded(embedder, unet):
    pipe = StableDiffusionPipeline(embedder, unet, show_progress=False,
                                   scheduler_kwargs={'num_train_timesteps': 100})
    pipe('a red fox', num_inference_steps=3, height=64, width=64)
    assert unet.timesteps == [99, 49, 0]


def test_context_manager_closes_collaborators(embedder, unet):
    with StableDiffusionPipeline(embedder, unet, show_progress=False) as pipe:
        assert pipe.unet is unet
    assert embedder.closed


# ── Requests ──

def test_request_normalises_fields():
    request = GenerationRequest(text='  a red fox ', scheduler='Euler-A')
    assert request.text == 'a red fox'
    assert request.scheduler is SchedulerKind.EULER_ANCESTRAL
    assert request.uses_guidance
    assert str(request.size) == '[512, 512]'


@pytest.mark.parametrize('kwargs', [{'steps': 0}, {'batch_size': 0}])
def test_request_validation(kwargs):
    with pytest.raises(ScheduleConfigError):
        GenerationRequest(text='a red fox', **kwargs)


def test_image_size_square():
    assert ImageSize.square(768) == ImageSize(768, 768)
