"""Controller that a presentation layer drives, one call per user action."""

from __future__ import annotations

import logging

import numpy as np

from fm_matrix.config import SynthConfig
from fm_matrix.engine import AudioSink, Renderer, RenderState
from fm_matrix.models import RenderGraph
from fm_matrix.patch import Patch
from fm_matrix.randomize import randomize_patch

logger = logging.getLogger(__name__)


class Synth:
    """One patch plus one renderer.

    ``patch`` is never replaced, only mutated, so a UI may hold on to it
    and read it back after every call.
    """

    def __init__(
        self,
        operator_count: int = 1,
        *,
        config: SynthConfig | None = None,
        sink: AudioSink | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        self.config = config if config is not None else SynthConfig()
        self._check_count(operator_count)
        self.patch = Patch.default(operator_count)
        self.renderer = Renderer(sink=sink, config=self.config)
        self.rng = rng if rng is not None else np.random.default_rng()

    def _check_count(self, operator_count: float) -> None:
        if Patch.normalize_count(operator_count) > self.config.max_operators:
            raise ValueError(
                f"operator_count must be at most {self.config.max_operators}, got {operator_count}"
            )

    def reset_parameters(self, operator_count: float) -> None:
        self._check_count(operator_count)
        self.patch.reset(operator_count)
        logger.debug("Reset patch to %d operators", self.patch.operator_count)

    def set_frequency(self, index: int, hz: float) -> None:
        self.patch.set_frequency(index, hz)

    def set_volume(self, index: int, percent: float) -> None:
        self.patch.set_volume(index, percent)

    def set_transfer(self, source: int, sink: int, hz: float) -> None:
        self.patch.set_transfer(source, sink, hz)

    def randomise(self) -> None:
        randomize_patch(self.patch, self.rng, max_frequency=self.config.max_frequency)

    def start_render(self) -> RenderGraph:
        return self.renderer.start(self.patch)

    def stop_render(self) -> None:
        self.renderer.stop()

    @property
    def state(self) -> RenderState:
        return self.renderer.state
