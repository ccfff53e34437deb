"""Tests for the offline numpy renderer."""

from __future__ import annotations

import math

import numpy as np
import pytest

from fm_matrix import (
    AudioOutput,
    Gain,
    Operator,
    Patch,
    RenderGraph,
    compile_patch,
)
from fm_matrix.simulate import SimResult, SimState, simulate

SR = 8000.0


def _sine(freq: float, n: int, sr: float = SR) -> np.ndarray:
    return np.sin(2.0 * math.pi * freq * np.arange(n) / sr)


def _single(freq: float = 200.0, gain: float = 1.0, stop: float = 0.01) -> RenderGraph:
    return RenderGraph(
        sample_rate=SR,
        duration=0.01,
        nodes=[Operator(id="op0", freq=freq, stop=stop), Gain(id="amp0", source="op0", gain=gain)],
        outputs=[AudioOutput(id="out0", source="amp0")],
    )


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------


class TestSimStateAPI:
    def test_default_sample_rate(self) -> None:
        st = SimState(_single())
        assert st.sr == SR

    def test_sample_rate_override(self) -> None:
        st = SimState(_single(), sample_rate=16000.0)
        assert st.sr == 16000.0

    def test_invalid_graph_raises(self) -> None:
        g = RenderGraph(nodes=[Gain(id="g", source="nope", gain=1.0)])
        with pytest.raises(ValueError, match="Invalid render graph"):
            SimState(g)

    def test_modulation_matrix(self, two_op_patch: Patch) -> None:
        st = SimState(compile_patch(two_op_patch, sample_rate=SR))
        np.testing.assert_array_equal(st.mod, [[0.0, 0.0], [50.0, 0.0]])

    def test_reset(self) -> None:
        r = simulate(_single(), n_samples=10)
        r.state.reset()
        assert r.state.position == 0
        assert not r.state.phase.any()


class TestSimulateAPI:
    def test_result_shape_and_dtype(self) -> None:
        r = simulate(_single())
        assert isinstance(r, SimResult)
        assert r.n_samples == 80
        assert set(r.outputs) == {"out0"}
        assert set(r.operators) == {"op0"}
        assert r.outputs["out0"].shape == (80,)
        assert r.outputs["out0"].dtype == np.float32
        assert r.mix.dtype == np.float32

    def test_explicit_n_samples(self) -> None:
        r = simulate(_single(), n_samples=12)
        assert r.mix.shape == (12,)

    def test_zero_samples(self) -> None:
        r = simulate(_single(), n_samples=0)
        assert r.mix.shape == (0,)
        assert r.outputs["out0"].shape == (0,)

    def test_negative_samples_raises(self) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            simulate(_single(), n_samples=-1)

    def test_empty_graph_is_silent(self) -> None:
        r = simulate(RenderGraph(sample_rate=SR, duration=0.01))
        assert r.outputs == {}
        np.testing.assert_array_equal(r.mix, np.zeros(80, dtype=np.float32))

    def test_no_outputs_is_silent(self) -> None:
        p = Patch.default(2)
        p.set_volume(0, 0.0)
        p.set_transfer(0, 1, 100.0)
        r = simulate(compile_patch(p, duration=0.01, sample_rate=SR))
        assert not r.mix.any()
        assert r.operators["op1"].any()


# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------


class TestFreeRunning:
    def test_sine(self) -> None:
        r = simulate(_single(200.0))
        np.testing.assert_allclose(r.operators["op0"], _sine(200.0, 80), atol=1e-5)

    def test_gain_scales_output(self) -> None:
        r = simulate(_single(200.0, gain=0.25))
        np.testing.assert_allclose(r.outputs["out0"], 0.25 * _sine(200.0, 80), atol=1e-5)

    def test_stops_after_lifetime(self) -> None:
        r = simulate(_single(200.0, stop=0.005))
        out = r.outputs["out0"]
        assert out[:40].any()
        assert not out[40:].any()

    def test_mix_sums_outputs(self) -> None:
        p = Patch.default(2)
        p.set_frequency(1, 500.0)
        p.set_volume(1, 50.0)
        r = simulate(compile_patch(p, duration=0.01, sample_rate=SR))
        expected = _sine(200.0, 80) + 0.5 * _sine(500.0, 80)
        np.testing.assert_allclose(r.mix, expected, atol=1e-5)

    def test_continuation_matches_single_run(self) -> None:
        g = _single(330.0)
        whole = simulate(g, n_samples=80)
        first = simulate(g, n_samples=30)
        second = simulate(g, n_samples=50, state=first.state)
        joined = np.concatenate([first.mix, second.mix])
        np.testing.assert_allclose(joined, whole.mix, atol=1e-4)


class TestModulated:
    def test_unmodulated_carrier_unchanged(self, two_op_patch: Patch) -> None:
        r = simulate(compile_patch(two_op_patch, duration=0.01, sample_rate=SR))
        np.testing.assert_allclose(r.mix, _sine(200.0, 80), atol=1e-5)

    def test_modulated_operator_differs(self, two_op_patch: Patch) -> None:
        r = simulate(compile_patch(two_op_patch, duration=0.01, sample_rate=SR))
        assert not np.allclose(r.operators["op1"], _sine(300.0, 80), atol=1e-3)

    def test_matches_reference_fm(self, two_op_patch: Patch) -> None:
        r = simulate(compile_patch(two_op_patch, duration=0.01, sample_rate=SR))
        phase0 = phase1 = 0.0
        expected = []
        for _ in range(80):
            s0 = math.sin(phase0)
            expected.append(math.sin(phase1))
            phase0 += 2.0 * math.pi * 200.0 / SR
            phase1 += 2.0 * math.pi * (300.0 + 50.0 * s0) / SR
        np.testing.assert_allclose(r.operators["op1"], expected, atol=1e-4)

    def test_feedback_is_bounded(self, feedback_patch: Patch) -> None:
        r = simulate(compile_patch(feedback_patch, duration=0.05, sample_rate=SR))
        assert np.isfinite(r.mix).all()
        assert np.abs(r.mix).max() <= 1.0 + 1e-6
        assert np.abs(r.mix).max() > 0.1

    def test_continuation_matches_single_run(self, feedback_patch: Patch) -> None:
        g = compile_patch(feedback_patch, duration=0.01, sample_rate=SR)
        whole = simulate(g)
        first = simulate(g, n_samples=25)
        second = simulate(g, n_samples=55, state=first.state)
        joined = np.concatenate([first.mix, second.mix])
        np.testing.assert_allclose(joined, whole.mix, atol=1e-4)
