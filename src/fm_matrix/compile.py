"""Compile a patch into a render graph."""

from __future__ import annotations

from fm_matrix.config import DURATION, SAMPLE_RATE
from fm_matrix.models import AudioOutput, Gain, Node, Operator, RenderGraph
from fm_matrix.patch import Patch
from fm_matrix.validate import validate_graph


def compile_patch(
    patch: Patch,
    *,
    duration: float = DURATION,
    sample_rate: float = SAMPLE_RATE,
    name: str = "patch",
) -> RenderGraph:
    """Build a render graph from a snapshot of *patch*.

    Every operator becomes a sine oscillator living from 0 to *duration*.
    Operators with non-zero volume are routed to the mix through a gain
    stage of ``volume / 100``; silent operators have no output path.  Each
    non-zero off-diagonal ``transfer[i][j]`` becomes a gain stage from
    operator ``i`` into operator ``j``'s frequency input.

    Raises ValueError if the resulting graph is invalid.
    """
    snap = patch.snapshot()
    n = snap.operator_count

    # 1-2. One scheduled oscillator per operator
    operators = [
        Operator(id=f"op{i}", freq=snap.frequencies[i], start=0.0, stop=duration)
        for i in range(n)
    ]
    nodes: list[Node] = list(operators)

    # 3. Output gain stages, audible operators only
    outputs: list[AudioOutput] = []
    for i in range(n):
        if snap.volumes[i] > 0.0:
            amp = Gain(id=f"amp{i}", source=operators[i].id, gain=snap.volumes[i] / 100.0)
            nodes.append(amp)
            outputs.append(AudioOutput(id=f"out{i}", source=amp.id))

    # 4. Modulation gain stages, wired once every node exists
    for source, sink, gain in snap.connections():
        fm = Gain(id=f"fm{source}_{sink}", source=operators[source].id, gain=gain)
        nodes.append(fm)
        operators[sink].fm.append(fm.id)

    graph = RenderGraph(
        name=name,
        sample_rate=sample_rate,
        duration=duration,
        nodes=nodes,
        outputs=outputs,
    )

    errors = validate_graph(graph)
    if errors:
        raise ValueError("Invalid render graph: " + "; ".join(errors))
    return graph
