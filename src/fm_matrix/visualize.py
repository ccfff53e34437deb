"""Graphviz DOT visualization for render graphs."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

from fm_matrix.models import Gain, Operator, RenderGraph


def _node_attrs(node: object) -> tuple[str, str, str]:
    """Return (shape, fillcolor, label) for a graph node."""
    if isinstance(node, Operator):
        return "box", "#e2d5f1", f"{node.id}\\nsin {node.freq:g} Hz\\n[{node.start:g}s, {node.stop:g}s)"
    if isinstance(node, Gain):
        return "box", "#fff3cd", f"{node.id}\\nx{node.gain:g}"
    return "box", "#ffffff", str(getattr(node, "id", "?"))


def graph_to_dot(graph: RenderGraph) -> str:
    """Convert a render graph to a Graphviz DOT string."""
    lines: list[str] = []
    w = lines.append

    w(f'digraph "{graph.name}" {{')
    w("    rankdir=LR;")
    w('    node [fontname="Helvetica" fontsize=10];')
    w("")

    # Mix node, present only when something is audible
    if graph.outputs:
        w('    "mix" [shape=box style="rounded,filled" fillcolor="#f8d7da" label="mix"];')

    for node in graph.nodes:
        shape, color, label = _node_attrs(node)
        w(f'    "{node.id}" [shape={shape} style=filled fillcolor="{color}" label="{label}"];')

    w("")

    # Gain inputs
    for node in graph.nodes:
        if isinstance(node, Gain):
            w(f'    "{node.source}" -> "{node.id}";')

    # Frequency-control inputs
    for node in graph.nodes:
        if isinstance(node, Operator):
            for gid in node.fm:
                w(f'    "{gid}" -> "{node.id}" [style=dashed label="freq"];')

    # Output edges: gain -> mix
    for out in graph.outputs:
        w(f'    "{out.source}" -> "mix" [label="{out.id}"];')

    w("}")
    return "\n".join(lines) + "\n"


def graph_to_dot_file(graph: RenderGraph, output_dir: str | Path) -> Path:
    """Write a DOT file for the graph to output_dir/{name}.dot.

    If the ``dot`` binary is on PATH, also renders a PDF to
    ``output_dir/{name}.pdf``.

    Returns the path to the written ``.dot`` file.
    """
    dot_src = graph_to_dot(graph)
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    dot_path = out / f"{graph.name}.dot"
    dot_path.write_text(dot_src)

    dot_bin = shutil.which("dot")
    if dot_bin is not None:
        pdf_path = out / f"{graph.name}.pdf"
        subprocess.run(
            [dot_bin, "-Tpdf", str(dot_path), "-o", str(pdf_path)],
            check=True,
        )

    return dot_path
