from __future__ import annotations

import pytest

from fm_matrix import BlockSource, Patch, SynthConfig


class RecordingSink:
    """Audio sink that records calls instead of touching a device."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.sources: list[BlockSource] = []
        self.playing = 0

    def play(self, source: BlockSource) -> None:
        self.calls.append("play")
        self.sources.append(source)
        self.playing += 1

    def stop(self) -> None:
        self.calls.append("stop")
        self.playing = 0


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def short_config() -> SynthConfig:
    """Short, low-rate renders keep the sample loop fast."""
    return SynthConfig(duration=0.05, sample_rate=8000.0)


@pytest.fixture
def two_op_patch() -> Patch:
    """Operator 0 audible at 200 Hz, modulating silent operator 1 at 300 Hz."""
    return Patch(
        operator_count=2,
        frequencies=[200.0, 300.0],
        volumes=[100.0, 0.0],
        transfer=[[0.0, 50.0], [0.0, 0.0]],
    )


@pytest.fixture
def feedback_patch() -> Patch:
    """Two audible operators modulating each other."""
    return Patch(
        operator_count=2,
        frequencies=[220.0, 330.0],
        volumes=[50.0, 50.0],
        transfer=[[0.0, 400.0], [600.0, 0.0]],
    )
