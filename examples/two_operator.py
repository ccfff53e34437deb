"""Two-operator FM: a 200 Hz carrier modulated by a silent 300 Hz operator."""

from fm_matrix import Patch, compile_patch, graph_to_dot_file, simulate, validate_graph

patch = Patch.default(2)
patch.set_frequency(1, 300.0)
patch.set_transfer(1, 0, 150.0)

if __name__ == "__main__":
    graph = compile_patch(patch, name="two_operator")
    errors = validate_graph(graph)
    if errors:
        print("Validation errors:")
        for e in errors:
            print(f"  - {e}")
    else:
        print("Graph is valid.")
    print()
    print(graph.model_dump_json(indent=2))
    result = simulate(graph)
    print(f"\nRendered {result.n_samples} samples, peak {abs(result.mix).max():.3f}")
    dot_path = graph_to_dot_file(graph, "build")
    print(f"DOT: {dot_path}")
