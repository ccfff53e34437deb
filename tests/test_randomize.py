from __future__ import annotations

import math

import numpy as np
import pytest

from fm_matrix import Patch, keep_probability, log_uniform, randomize_patch
from fm_matrix.randomize import _round_half_up


class TestLogUniform:
    def test_endpoints(self) -> None:
        assert log_uniform(0.0) == 1.0
        assert log_uniform(0.5) == 100.0
        assert log_uniform(0.999999) == 10000.0

    def test_rounds_half_up(self) -> None:
        assert _round_half_up(2.5) == 3.0
        assert _round_half_up(0.5) == 1.0
        assert _round_half_up(2.4999) == 2.0

    def test_custom_max(self) -> None:
        assert log_uniform(0.5, max_frequency=100.0) == 10.0


class TestKeepProbability:
    def test_values(self) -> None:
        assert keep_probability(1) == 1.0
        assert keep_probability(4) == 0.5
        assert keep_probability(16) == 0.25


class TestRandomizePatch:
    def test_returns_same_patch(self) -> None:
        p = Patch.default(3)
        assert randomize_patch(p, np.random.default_rng(0)) is p
        assert p.operator_count == 3

    def test_seeded_is_reproducible(self) -> None:
        a = randomize_patch(Patch.default(5), np.random.default_rng(42))
        b = randomize_patch(Patch.default(5), np.random.default_rng(42))
        assert a == b

    @pytest.mark.parametrize("n", [1, 2, 4, 9])
    def test_invariants(self, n: int) -> None:
        rng = np.random.default_rng(7)
        p = Patch.default(n)
        for _ in range(50):
            randomize_patch(p, rng)
            for i in range(n):
                assert p.transfer[i][i] == 0.0
                assert 1.0 <= p.frequencies[i] <= 10000.0
                assert 0.0 <= p.volumes[i] <= 100.0
                assert float(p.frequencies[i]).is_integer()
                assert float(p.volumes[i]).is_integer()
                assert all(0.0 <= v <= 10000.0 for v in p.transfer[i])
            Patch.model_validate(p.model_dump())

    def test_single_operator_always_audible_range(self) -> None:
        # keep probability is 1 for N=1; the only zero volume is a rounded draw
        rng = np.random.default_rng(3)
        p = Patch.default(1)
        audible = 0
        for _ in range(200):
            randomize_patch(p, rng)
            audible += p.volumes[0] > 0
        assert audible >= 195

    def test_mean_audible_count_tracks_sqrt_n(self) -> None:
        rng = np.random.default_rng(1234)
        p = Patch.default(4)
        counts = []
        for _ in range(1000):
            randomize_patch(p, rng)
            counts.append(len(p.audible_operators()))
        assert np.mean(counts) == pytest.approx(2.0, abs=0.15)

    def test_transfer_sparsity(self) -> None:
        rng = np.random.default_rng(99)
        p = Patch.default(9)
        nonzero = 0
        cells = 0
        for _ in range(200):
            randomize_patch(p, rng)
            nonzero += len(p.connections())
            cells += 9 * 8
        assert nonzero / cells == pytest.approx(1.0 / 3.0, abs=0.03)

    def test_frequencies_are_log_uniform(self) -> None:
        rng = np.random.default_rng(5)
        p = Patch.default(8)
        logs = []
        for _ in range(300):
            randomize_patch(p, rng)
            logs.extend(math.log10(f) for f in p.frequencies)
        # log10 spread uniformly over [0, 4]
        assert np.mean(logs) == pytest.approx(2.0, abs=0.1)
        assert np.mean(np.array(logs) < 1.0) == pytest.approx(0.25, abs=0.04)

    def test_replaces_previous_values(self) -> None:
        p = Patch.default(2)
        p.set_transfer(0, 1, 1234.0)
        p.set_volume(0, 100.0)
        randomize_patch(p, np.random.default_rng(0))
        # Draws are independent of what was there before
        q = randomize_patch(Patch.default(2), np.random.default_rng(0))
        assert p == q

    def test_max_frequency_bounds_draws(self) -> None:
        rng = np.random.default_rng(11)
        p = Patch.default(6)
        for _ in range(50):
            randomize_patch(p, rng, max_frequency=50.0)
            assert max(p.frequencies) <= 50.0
            assert max(max(row) for row in p.transfer) <= 50.0

    @pytest.mark.parametrize("bad", [1.0, 0.5, 20000.0])
    def test_bad_max_frequency(self, bad: float) -> None:
        with pytest.raises(ValueError, match="max_frequency"):
            randomize_patch(Patch.default(2), np.random.default_rng(0), max_frequency=bad)

    def test_default_rng(self) -> None:
        p = randomize_patch(Patch.default(3))
        assert p.operator_count == 3
