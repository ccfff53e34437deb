from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from fm_matrix.config import DURATION, SAMPLE_RATE

# ---------------------------------------------------------------------------
# Node types (discriminated union on "op")
# ---------------------------------------------------------------------------


class Operator(BaseModel):
    id: str
    op: Literal["operator"] = "operator"
    freq: float  # base frequency in Hz
    start: float = 0.0  # seconds
    stop: float = DURATION  # seconds, output is silent from here on
    fm: list[str] = []  # gain node IDs summed into the frequency input


class Gain(BaseModel):
    id: str
    op: Literal["gain"] = "gain"
    source: str  # operator ID
    gain: float


Node = Annotated[Union[Operator, Gain], Field(discriminator="op")]


# ---------------------------------------------------------------------------
# Output & top-level graph
# ---------------------------------------------------------------------------


class AudioOutput(BaseModel):
    id: str
    source: str  # gain node ID that feeds the mix


class RenderGraph(BaseModel):
    name: str = "patch"
    sample_rate: float = SAMPLE_RATE
    duration: float = DURATION
    nodes: list[Node] = []
    outputs: list[AudioOutput] = []

    def operators(self) -> list[Operator]:
        return [node for node in self.nodes if isinstance(node, Operator)]

    def gains(self) -> list[Gain]:
        return [node for node in self.nodes if isinstance(node, Gain)]

    def modulation_edges(self) -> list[tuple[str, str, float]]:
        """Return ``(source_operator, sink_operator, gain)`` for each fm input."""
        gain_map = {g.id: g for g in self.gains()}
        edges: list[tuple[str, str, float]] = []
        for op in self.operators():
            for gid in op.fm:
                g = gain_map.get(gid)
                if g is not None:
                    edges.append((g.source, op.id, g.gain))
        return edges
