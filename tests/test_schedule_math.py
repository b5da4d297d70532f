"""Tests for schedule math helpers and beta schedules."""
import numpy as np
import pytest

from latentstep.diffusion import (
    BetaSchedule,
    ScheduleConfigError,
    TimestepLookupError,
    classifier_free_guidance,
    get_beta_schedule,
    randn_tensor,
    schedule_math,
)
import latentstep as torch


# ── linspace / arange ──

@pytest.mark.parametrize('count', [2, 3, 5, 7, 50, 1000])
def test_linspace_hits_both_endpoints(count):
    out = schedule_math.linspace(0.0, 999.0, count)
    assert len(out) == count
    assert out[0] == np.float32(0.0)
    assert out[-1] == np.float32(999.0)
    assert out.dtype == np.float32


def test_linspace_endpoint_is_exact_for_awkward_ranges():
    out = schedule_math.linspace(0.1, 0.7, 3)
    assert out[-1] == np.float32(0.7)


def test_linspace_single_and_empty():
    np.testing.assert_array_equal(schedule_math.linspace(3.0, 9.0, 1), [3.0])
    assert schedule_math.linspace(3.0, 9.0, 0).shape == (0,)


def test_linspace_exclusive():
    out = schedule_math.linspace(0.0, 1.0, 4, inclusive=False)
    np.testing.assert_allclose(out, [0.0, 0.25, 0.5, 0.75])


def test_arange_count_is_ceiling():
    out = schedule_math.arange(0.0, 1.0, 0.3)
    assert len(out) == 4
    np.testing.assert_allclose(out, [0.0, 0.3, 0.6, 0.9], rtol=1e-6)
    assert len(schedule_math.arange(0, 1000, 1.0)) == 1000
    assert len(schedule_math.arange(5, 5, 1.0)) == 0


def test_arange_rejects_zero_step():
    with pytest.raises(ValueError):
        schedule_math.arange(0, 1, 0)


# ── interpolate ──

def test_interpolate_between_knots():
    out = schedule_math.interpolate([0.5, 1.25], [0.0, 1.0, 2.0],
                                    [0.0, 10.0, 30.0])
    np.testing.assert_allclose(out, [5.0, 15.0])


def test_interpolate_hits_knots_exactly():
    xp = np.arange(5, dtype=np.float32)
    fp = np.array([3.0, 1.0, 4.0, 1.0, 5.0], dtype=np.float32)
    np.testing.assert_array_equal(schedule_math.interpolate(xp, xp, fp), fp)


def test_interpolate_clamps_outside_domain():
    out = schedule_math.interpolate([-5.0, 10.0], [0.0, 1.0], [2.0, 4.0])
    np.testing.assert_array_equal(out, [2.0, 4.0])


def test_interpolate_single_knot():
    out = schedule_math.interpolate([0.0, 3.0], [1.0], [7.0])
    np.testing.assert_array_equal(out, [7.0, 7.0])


def test_interpolate_rejects_mismatched_knots():
    with pytest.raises(ValueError):
        schedule_math.interpolate([0.0], [0.0, 1.0], [1.0])


# ── find_idx ──

def test_find_idx_returns_first_match():
    assert schedule_math.find_idx(np.array([999, 749, 749, 0]), 749) == 1
    assert schedule_math.find_idx(np.array([999, 749, 0]), 0) == 2


def test_find_idx_never_picks_a_neighbour():
    with pytest.raises(TimestepLookupError):
        schedule_math.find_idx(np.array([999, 749, 499]), 750)


# ── cumprod ──

def test_cumprod_matches_running_product():
    values = np.array([0.5, 0.5, 2.0, 0.1], dtype=np.float32)
    np.testing.assert_allclose(schedule_math.cumprod(values),
                               [0.5, 0.25, 0.5, 0.05], rtol=1e-6)


# ── beta schedules ──

def test_linear_betas():
    betas = get_beta_schedule('linear', 10, 0.001, 0.02)
    assert len(betas) == 10
    assert betas[0] == pytest.approx(0.001)
    assert betas[-1] == pytest.approx(0.02)
    assert np.all(np.diff(betas) > 0)


def test_scaled_linear_betas():
    betas = get_beta_schedule(BetaSchedule.SCALED_LINEAR, 1000)
    assert betas.dtype == np.float32
    assert betas[0] == pytest.approx(0.00085, rel=1e-5)
    assert betas[-1] == pytest.approx(0.012, rel=1e-5)
    # Sqrt-space ramp sits below the straight line in the middle.
    linear = get_beta_schedule(BetaSchedule.LINEAR, 1000)
    assert betas[500] < linear[500]


def test_unknown_beta_schedule():
    with pytest.raises(ScheduleConfigError):
        get_beta_schedule('cosine', 10)
    assert BetaSchedule.lookup(' Scaled_Linear ') is BetaSchedule.SCALED_LINEAR


# ── noise and guidance ──

def test_randn_tensor_seeded():
    a = randn_tensor((2, 3), seed=11)
    b = randn_tensor((2, 3), seed=11)
    np.testing.assert_array_equal(a.numpy(), b.numpy())
    assert a.shape == (2, 3) and a.dtype == np.float32


def test_classifier_free_guidance():
    noise = torch.cat([torch.zeros(1, 2), torch.ones(1, 2)])
    guided = classifier_free_guidance(noise, 7.5)
    assert guided.shape == (1, 2)
    np.testing.assert_allclose(guided.numpy(), [[7.5, 7.5]])


def test_guidance_scale_one_returns_conditioned_half():
    uncond = torch.full((1, 3), 2.0)
    cond = torch.full((1, 3), -1.0)
    guided = classifier_free_guidance(torch.cat([uncond, cond]), 1.0)
    np.testing.assert_allclose(guided.numpy(), cond.numpy())
