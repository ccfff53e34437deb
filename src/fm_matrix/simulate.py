"""Offline numpy renderer for render graphs."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np

from fm_matrix.models import RenderGraph
from fm_matrix.validate import validate_graph

_TWO_PI = 2.0 * math.pi


class SimState:
    """Oscillator state carried between ``simulate`` calls.

    Holds each operator's phase (radians), its most recent output sample
    and the number of samples rendered so far.
    """

    def __init__(self, graph: RenderGraph, sample_rate: float | None = None) -> None:
        errors = validate_graph(graph)
        if errors:
            raise ValueError("Invalid render graph: " + "; ".join(errors))

        self.graph = graph
        self.sr = float(sample_rate) if sample_rate else graph.sample_rate

        ops = graph.operators()
        self.operator_ids = [op.id for op in ops]
        index = {oid: k for k, oid in enumerate(self.operator_ids)}
        n = len(ops)

        self.base_freq = np.array([op.freq for op in ops], dtype=np.float64)
        self.start = np.array([op.start for op in ops], dtype=np.float64)
        self.stop = np.array([op.stop for op in ops], dtype=np.float64)

        # mod[sink, source]: Hz of deviation per unit of source output
        self.mod = np.zeros((n, n), dtype=np.float64)
        for source, sink, gain in graph.modulation_edges():
            self.mod[index[sink], index[source]] += gain

        gain_map = {g.id: g for g in graph.gains()}
        self.output_ids = [out.id for out in graph.outputs]
        self.output_gain = np.array(
            [gain_map[out.source].gain for out in graph.outputs], dtype=np.float64
        )
        self.output_operator = np.array(
            [index[gain_map[out.source].source] for out in graph.outputs], dtype=np.intp
        )

        self.phase = np.zeros(n, dtype=np.float64)
        self.last = np.zeros(n, dtype=np.float64)
        self.position = 0

    def reset(self) -> None:
        self.phase[:] = 0.0
        self.last[:] = 0.0
        self.position = 0

    @property
    def n_operators(self) -> int:
        return len(self.operator_ids)

    def active_mask(self, n_samples: int) -> np.ndarray:
        """Return a (n_samples, n_operators) mask of scheduled lifetimes."""
        t = (self.position + np.arange(n_samples, dtype=np.float64)) / self.sr
        return (t[:, None] >= self.start[None, :]) & (t[:, None] < self.stop[None, :])


@dataclass
class SimResult:
    outputs: dict[str, np.ndarray]
    operators: dict[str, np.ndarray]
    state: SimState
    n_samples: int = 0
    _mix: np.ndarray | None = field(default=None, repr=False)

    @property
    def mix(self) -> np.ndarray:
        """Sum of all outputs (silence if nothing is audible)."""
        if self._mix is None:
            total = np.zeros(self.n_samples, dtype=np.float32)
            for arr in self.outputs.values():
                total += arr
            self._mix = total
        return self._mix


def _render_free(st: SimState, active: np.ndarray) -> np.ndarray:
    """Closed-form render for graphs without modulation edges."""
    n_samples = active.shape[0]
    steps = np.arange(n_samples, dtype=np.float64)[:, None]
    phase = st.phase[None, :] + _TWO_PI * st.base_freq[None, :] * steps / st.sr
    signals = np.where(active, np.sin(phase), 0.0)
    st.phase = np.mod(phase[-1] + _TWO_PI * st.base_freq / st.sr, _TWO_PI)
    st.last = signals[-1].copy()
    return signals


def _render_modulated(st: SimState, active: np.ndarray) -> np.ndarray:
    """Sample-by-sample render; phase at t+1 depends on every output at t."""
    n_samples = active.shape[0]
    signals = np.zeros((n_samples, st.n_operators), dtype=np.float64)
    phase = st.phase.copy()
    scale = _TWO_PI / st.sr
    for k in range(n_samples):
        cur = np.where(active[k], np.sin(phase), 0.0)
        signals[k] = cur
        inst_freq = st.base_freq + st.mod @ cur
        phase = np.mod(phase + inst_freq * scale, _TWO_PI)
    st.phase = phase
    st.last = signals[-1].copy()
    return signals


def simulate(
    graph: RenderGraph,
    n_samples: int | None = None,
    state: SimState | None = None,
) -> SimResult:
    """Render *graph* to float32 sample buffers.

    *n_samples* defaults to the graph's full duration.  Pass the ``state``
    of a previous result to continue rendering where it stopped.
    """
    st = state if state is not None else SimState(graph)
    if n_samples is None:
        n_samples = int(round(graph.duration * st.sr))
    if n_samples < 0:
        raise ValueError(f"n_samples must be non-negative, got {n_samples}")

    if n_samples == 0 or st.n_operators == 0:
        signals = np.zeros((n_samples, st.n_operators), dtype=np.float64)
    else:
        active = st.active_mask(n_samples)
        if st.mod.any():
            signals = _render_modulated(st, active)
        else:
            signals = _render_free(st, active)
    st.position += n_samples

    operators = {
        oid: signals[:, k].astype(np.float32) for k, oid in enumerate(st.operator_ids)
    }
    outputs = {
        out_id: (signals[:, st.output_operator[k]] * st.output_gain[k]).astype(np.float32)
        for k, out_id in enumerate(st.output_ids)
    }
    return SimResult(outputs=outputs, operators=operators, state=st, n_samples=n_samples)
