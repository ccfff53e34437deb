"""Real-time playback of compiled patches, one render at a time."""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from types import ModuleType
from typing import Any, Callable, Protocol

import numpy as np

from fm_matrix.compile import compile_patch
from fm_matrix.config import SynthConfig
from fm_matrix.models import RenderGraph
from fm_matrix.patch import Patch
from fm_matrix.simulate import SimState, simulate

logger = logging.getLogger(__name__)


class RenderError(RuntimeError):
    """The audio device could not start or stop a render."""


class RenderState(Enum):
    IDLE = "idle"
    RENDERING = "rendering"


class BlockSource:
    """Renders a graph incrementally, one device block at a time.

    Nothing is rendered up front; each ``read`` advances the oscillator
    state by at most the requested number of frames.  The mix is
    hard-clipped to [-1, 1].
    """

    def __init__(self, graph: RenderGraph) -> None:
        self.graph = graph
        self.state = SimState(graph)
        self.total = int(round(graph.duration * self.state.sr))

    @property
    def sample_rate(self) -> float:
        return self.state.sr

    @property
    def remaining(self) -> int:
        return self.total - self.state.position

    def read(self, frames: int) -> np.ndarray:
        """Return the next ``min(frames, remaining)`` samples as float32."""
        n = max(0, min(int(frames), self.remaining))
        mix = simulate(self.graph, n_samples=n, state=self.state).mix
        return np.clip(mix, -1.0, 1.0)


class AudioSink(Protocol):
    def play(self, source: BlockSource) -> None: ...

    def stop(self) -> None: ...


class SoundDeviceSink:
    """Streams a BlockSource to the default output device via sounddevice.

    ``play`` opens an output stream and returns at once; the stream's
    callback pulls samples from the source and ends the stream when the
    source runs dry.
    """

    def __init__(self, blocksize: int = 512) -> None:
        self.blocksize = blocksize
        self._stream: Any = None
        self._finished = threading.Event()
        self._finished.set()

    def play(self, source: BlockSource) -> None:
        sd = self._sd()
        # A stream that ran out on its own is still open
        self.stop()

        def callback(outdata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:
            if status:
                logger.warning("Audio stream status: %s", status)
            block = source.read(frames)
            outdata[: len(block), 0] = block
            outdata[len(block) :] = 0.0
            if len(block) < frames:
                raise sd.CallbackStop

        self._finished.clear()
        try:
            stream = sd.OutputStream(
                samplerate=int(source.sample_rate),
                channels=1,
                dtype="float32",
                blocksize=self.blocksize,
                latency="high",
                callback=callback,
                finished_callback=self._finished.set,
            )
            stream.start()
        except sd.PortAudioError as e:
            self._finished.set()
            raise RenderError(f"Audio device unavailable: {e}") from e
        self._stream = stream

    def stop(self) -> None:
        if self._stream is None:
            return
        sd = self._sd()
        try:
            self._stream.abort()
            self._stream.close()
        except sd.PortAudioError as e:
            raise RenderError(f"Failed to stop audio device: {e}") from e
        self._stream = None
        self._finished.set()

    def wait(self) -> None:
        """Block until the current stream has played out."""
        self._finished.wait()

    @staticmethod
    def _sd() -> ModuleType:
        try:
            import sounddevice as sd
        except OSError as e:
            # Raised when the PortAudio library itself is missing
            raise RenderError(f"Audio backend unavailable: {e}") from e
        return sd


class NullSink:
    """Discards audio; for headless use."""

    def play(self, source: BlockSource) -> None:
        pass

    def stop(self) -> None:
        pass


class Renderer:
    """Owns the single active render.

    ``start`` compiles a snapshot of the patch, so later edits to the patch
    never reach a render already playing.  A render returns to idle once
    its duration has elapsed, or immediately when another one starts.
    """

    def __init__(
        self,
        sink: AudioSink | None = None,
        config: SynthConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.sink: AudioSink = sink if sink is not None else SoundDeviceSink()
        self.config = config if config is not None else SynthConfig()
        self._clock = clock
        self._graph: RenderGraph | None = None
        self._deadline = 0.0

    @property
    def state(self) -> RenderState:
        if self._graph is not None and self._clock() >= self._deadline:
            logger.debug("Render '%s' finished", self._graph.name)
            self._graph = None
        return RenderState.RENDERING if self._graph is not None else RenderState.IDLE

    @property
    def active_graph(self) -> RenderGraph | None:
        if self.state is RenderState.IDLE:
            return None
        return self._graph

    def start(self, patch: Patch) -> RenderGraph:
        """Tear down any running render, then play *patch* for the configured duration.

        Samples are produced by the sink as it plays, so this returns
        without rendering any audio.  Compilation errors, and a sink that
        fails to stop the running render, leave that render untouched.
        A sink that fails to play leaves the renderer idle.
        """
        graph = compile_patch(
            patch,
            duration=self.config.duration,
            sample_rate=self.config.sample_rate,
        )
        source = BlockSource(graph)

        self.stop()
        try:
            self.sink.play(source)
        except RenderError:
            logger.error("Could not start render of %d operators", len(graph.operators()))
            raise

        self._graph = graph
        self._deadline = self._clock() + graph.duration
        logger.info(
            "Rendering %d operators (%d audible, %d modulation edges) for %.2fs",
            len(graph.operators()),
            len(graph.outputs),
            len(graph.modulation_edges()),
            graph.duration,
        )
        return graph

    def stop(self) -> None:
        """Force the renderer back to idle, stopping any playing render.

        If the sink cannot stop, RenderError propagates and the render is
        still reported as running.
        """
        if self._graph is None:
            return
        logger.info("Stopping render '%s'", self._graph.name)
        self.sink.stop()
        self._graph = None
