import sys
import numpy as np
import pytest

from sarcoreg import CorrelationConfig, Correlator, OffsetEstimate, correlate
from sarcoreg.correlate import cross_correlate_fft, cross_correlate_space, normalized_cross_correlation
from sarcoreg.correlate.pipeline import stack_pairs
from sarcoreg.data.simulate import shifted_pair


if sys.version_info < (3, 8):
    pytest.skip("Requires Python 3.8+ for package code", allow_module_level=True)


def make_case(shift=(3, -2), n=32, seed=1):
    return shifted_pair((n, n), shift, seed=seed)


def test_dispatch_matches_direct_calls():
    master, mask = make_case()
    kw = dict(oversampling=4, acc_l=4, acc_p=4)
    assert correlate(master, mask, CorrelationConfig(method="ncc", **kw)) == normalized_cross_correlation(
        master, mask, 4, 4, 4
    )
    assert correlate(master, mask, CorrelationConfig(method="fft", **kw)) == cross_correlate_fft(master, mask, 4, 4, 4)
    assert correlate(master, mask, CorrelationConfig(method="space", **kw)) == cross_correlate_space(
        master, mask, 4, 4, 4
    )


def test_default_config_recovers_integer_shift():
    master, mask = make_case(shift=(5, 1), n=64)
    est = correlate(master, mask)
    assert est.offset_line == pytest.approx(5.0, abs=0.25)
    assert est.offset_pixel == pytest.approx(1.0, abs=0.25)
    assert est.accepted


def test_score_gate():
    est = OffsetEstimate(1.0, 2.0, 0.4)
    assert est.gated(None) is est
    assert not est.gated(0.5).accepted
    assert est.gated(0.4).accepted
    assert not OffsetEstimate(0.0, 0.0, float("nan")).gated(0.0).accepted

    master, mask = make_case()
    cfg = CorrelationConfig(method="fft", oversampling=1, score_threshold=1.5)
    assert not correlate(master, mask, cfg).accepted


def test_to_dict_fields():
    d = OffsetEstimate(0.5, -1.25, 0.9).to_dict()
    assert d == {"offset_line": 0.5, "offset_pixel": -1.25, "peak_score": 0.9, "accepted": True}


def test_correlate_many_keeps_order():
    shifts = [(1, 0), (0, 2), (-3, 1), (2, -2)]
    pairs = [make_case(shift=s, seed=i) for i, s in enumerate(shifts)]
    corr = Correlator(CorrelationConfig(method="ncc", oversampling=1))
    for workers in (1, 3):
        out = corr.correlate_many(pairs, workers=workers)
        assert [(e.offset_line, e.offset_pixel) for e in out] == [(float(a), float(b)) for a, b in shifts]
    assert corr(*pairs[0]) == out[0]


def test_correlate_many_logs_summary(caplog):
    corr = Correlator(CorrelationConfig(method="fft", oversampling=1))
    with caplog.at_level("INFO", logger="sarcoreg.correlate.pipeline"):
        corr.correlate_many([make_case()])
    assert any("Correlated 1 pairs" in r.getMessage() for r in caplog.records)


def test_stack_pairs():
    m = np.zeros((3, 8, 8), dtype=np.complex64)
    pairs = stack_pairs(m, m)
    assert len(pairs) == 3 and pairs[0][0].shape == (8, 8)
    assert len(stack_pairs(m[0], m[0])) == 1
    with pytest.raises(ValueError):
        stack_pairs(m, m[:2])


def test_jax_backend_agrees_on_integer_offset():
    pytest.importorskip("jax")
    master, mask = make_case()
    for method in ("ncc", "fft"):
        ref = correlate(master, mask, CorrelationConfig(method=method, oversampling=1))
        got = correlate(master, mask, CorrelationConfig(method=method, oversampling=1, fft_backend="jax"))
        assert (got.offset_line, got.offset_pixel) == (ref.offset_line, ref.offset_pixel)
        assert got.peak_score == pytest.approx(ref.peak_score, abs=1e-3)


def test_magnitude_is_float64_modulus():
    from sarcoreg.correlate import magnitude

    z = np.array([[3 + 4j, -1j], [0, 2]], dtype=np.complex64)
    m = magnitude(z)
    assert m.dtype == np.float64
    np.testing.assert_allclose(m, [[5.0, 1.0], [0.0, 2.0]])
