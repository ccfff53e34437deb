"""Randomise an eight-operator patch and play it on the default sound device."""

import sys

import numpy as np

from fm_matrix import RenderError, SoundDeviceSink, Synth
from fm_matrix.logging_config import setup_logging

if __name__ == "__main__":
    setup_logging()
    seed = int(sys.argv[1]) if len(sys.argv) > 1 else None
    sink = SoundDeviceSink()
    synth = Synth(8, sink=sink, rng=np.random.default_rng(seed))
    synth.randomise()
    print("audible operators:", synth.patch.audible_operators())
    print("connections:", len(synth.patch.connections()))
    try:
        synth.start_render()
    except RenderError as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(1)
    sink.wait()
    sink.stop()
