from __future__ import annotations

from fm_matrix.models import Gain, Operator, RenderGraph


class GraphValidationError(str):
    """A structured validation error that behaves as a plain string.

    Subclasses ``str`` so call sites can compare, join and print errors
    directly while still reading ``kind`` and ``node_id`` when needed.
    """

    kind: str
    node_id: str | None
    field_name: str | None
    severity: str  # "error" | "warning"

    def __new__(
        cls,
        kind: str,
        message: str,
        *,
        node_id: str | None = None,
        field_name: str | None = None,
        severity: str = "error",
    ) -> GraphValidationError:
        return super().__new__(cls, message)

    def __init__(
        self,
        kind: str,
        message: str,
        *,
        node_id: str | None = None,
        field_name: str | None = None,
        severity: str = "error",
    ) -> None:
        self.kind = kind
        self.node_id = node_id
        self.field_name = field_name
        self.severity = severity


def validate_graph(graph: RenderGraph) -> list[GraphValidationError]:
    """Validate a render graph and return a list of errors (empty = valid).

    Modulation cycles are legal and are not reported.
    """
    errors: list[GraphValidationError] = []

    # 1. Timing
    if graph.sample_rate <= 0.0:
        errors.append(
            GraphValidationError(
                "bad_sample_rate", f"Sample rate must be positive, got {graph.sample_rate}"
            )
        )
    if graph.duration <= 0.0:
        errors.append(
            GraphValidationError("bad_duration", f"Duration must be positive, got {graph.duration}")
        )

    # 2. Unique IDs across nodes and outputs
    seen: set[str] = set()
    for item in [*graph.nodes, *graph.outputs]:
        if item.id in seen:
            errors.append(
                GraphValidationError("duplicate_id", f"Duplicate ID: '{item.id}'", node_id=item.id)
            )
        seen.add(item.id)

    operators = {n.id: n for n in graph.nodes if isinstance(n, Operator)}
    gains = {n.id: n for n in graph.nodes if isinstance(n, Gain)}

    # 3. Operator lifetimes
    for op in operators.values():
        if op.stop <= op.start:
            errors.append(
                GraphValidationError(
                    "bad_lifetime",
                    f"Operator '{op.id}' stops at {op.stop} before starting at {op.start}",
                    node_id=op.id,
                    field_name="stop",
                )
            )

    # 4. Gain sources resolve to operators
    for g in gains.values():
        if g.source not in operators:
            errors.append(
                GraphValidationError(
                    "dangling_ref",
                    f"Gain '{g.id}' field 'source' references unknown operator '{g.source}'",
                    node_id=g.id,
                    field_name="source",
                )
            )

    # 5. Frequency inputs: known gain nodes, no self-modulation, no zero edges
    for op in operators.values():
        for gid in op.fm:
            if gid not in gains:
                kind = "bad_fm_source" if gid in operators else "dangling_ref"
                errors.append(
                    GraphValidationError(
                        kind,
                        f"Operator '{op.id}' field 'fm' references '{gid}', which is not a gain node",
                        node_id=op.id,
                        field_name="fm",
                    )
                )
                continue
            g = gains[gid]
            if g.source == op.id:
                errors.append(
                    GraphValidationError(
                        "self_modulation",
                        f"Operator '{op.id}' modulates its own frequency via '{gid}'",
                        node_id=op.id,
                        field_name="fm",
                    )
                )
            if g.gain == 0.0:
                errors.append(
                    GraphValidationError(
                        "zero_gain_edge",
                        f"Modulation edge '{gid}' into '{op.id}' has zero gain",
                        node_id=gid,
                        field_name="gain",
                    )
                )

    # 6. Outputs are fed by gain stages
    for out in graph.outputs:
        if out.source not in gains:
            errors.append(
                GraphValidationError(
                    "bad_output_source",
                    f"Output '{out.id}' source '{out.source}' does not reference a gain node",
                    node_id=out.id,
                    field_name="source",
                )
            )

    return errors
