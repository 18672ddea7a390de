import sys
import numpy as np
import pytest

from sarcoreg.correlate.space import coherence_surface, cross_correlate_space
from sarcoreg.data.simulate import fractional_shift, gaussian_blob, shifted_pair, speckle_scene
from sarcoreg.errors import InsufficientWindowSize, InvalidDimension


if sys.version_info < (3, 8):
    pytest.skip("Requires Python 3.8+ for package code", allow_module_level=True)


def test_coherence_surface_shape_and_bounds():
    master, mask = shifted_pair((32, 32), (1, -1), seed=4)
    coher = coherence_surface(master, mask, 4, 8)
    assert coher.shape == (8, 16)
    assert np.all(np.abs(coher) <= 1.0 + 1e-12)


def test_identity_unit_coherence():
    patch = speckle_scene((32, 32), seed=9)
    est = cross_correlate_space(patch, patch, acc_l=4, acc_p=4, oversampling=1)
    assert (est.offset_line, est.offset_pixel) == (0.0, 0.0)
    assert est.peak_score == pytest.approx(1.0, abs=1e-9)


def test_identity_with_oversampling():
    patch = speckle_scene((32, 32), seed=9)
    est = cross_correlate_space(patch, patch, acc_l=4, acc_p=4, oversampling=4)
    assert abs(est.offset_line) <= 0.25
    assert abs(est.offset_pixel) <= 0.25


@pytest.mark.parametrize("shift", [(2, -1), (-3, 4), (4, 0)])
def test_integer_shift_in_search_range(shift):
    master, mask = shifted_pair((32, 32), shift, seed=5)
    est = cross_correlate_space(master, mask, acc_l=4, acc_p=4, oversampling=1)
    assert (est.offset_line, est.offset_pixel) == (float(shift[0]), float(shift[1]))


@pytest.mark.parametrize("shift", [(0.5, -0.5), (-1.5, 2.5)])
def test_subpixel_recovery(shift):
    master = gaussian_blob((64, 64), sigma=2.0, background=0.1)
    mask = fractional_shift(master, *shift)
    est = cross_correlate_space(master, mask, acc_l=8, acc_p=8, oversampling=8)
    assert abs(est.offset_line - shift[0]) <= 0.25
    assert abs(est.offset_pixel - shift[1]) <= 0.25


def test_window_too_small():
    patch = speckle_scene((8, 8), seed=0)
    with pytest.raises(InsufficientWindowSize):
        cross_correlate_space(patch, patch, acc_l=4, acc_p=4)
    # 16 - 2*4 = 8 is fine along lines, 16 - 2*8 = 0 is not along pixels
    patch = speckle_scene((16, 16), seed=0)
    with pytest.raises(InsufficientWindowSize):
        cross_correlate_space(patch, patch, acc_l=4, acc_p=8)


def test_non_power_of_two_parameters():
    patch = speckle_scene((32, 32), seed=0)
    with pytest.raises(InvalidDimension):
        cross_correlate_space(patch, patch, acc_l=3, acc_p=4)
    with pytest.raises(InvalidDimension):
        cross_correlate_space(patch, patch, acc_l=4, acc_p=4, oversampling=3)


def test_logs_subpixel_offset(caplog):
    patch = speckle_scene((16, 16), seed=2)
    with caplog.at_level("INFO", logger="sarcoreg.correlate.space"):
        cross_correlate_space(patch, patch, acc_l=2, acc_p=2, oversampling=2)
    assert any("Sub-pixel level offset" in r.getMessage() for r in caplog.records)


def test_zero_variance_mask_leaves_default_scores():
    master = speckle_scene((16, 16), seed=5)
    mask = np.full((16, 16), 2.0 + 0.0j)
    coher = coherence_surface(master, mask, 4, 4)
    assert coher.shape == (8, 8)
    assert np.all(coher == 0.0)
    for factor in (1, 4):
        est = cross_correlate_space(master, mask, acc_l=4, acc_p=4, oversampling=factor)
        # Flat surface: the first grid cell wins, i.e. the largest candidate shift
        assert (est.offset_line, est.offset_pixel) == (4.0, 4.0)
        assert est.peak_score == 0.0
        assert not est.gated(0.5).accepted
