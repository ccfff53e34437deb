"""Matrix FM synthesis: patch model, randomizer, graph compiler and renderer."""

from fm_matrix.compile import compile_patch
from fm_matrix.config import SynthConfig
from fm_matrix.engine import (
    AudioSink,
    BlockSource,
    NullSink,
    Renderer,
    RenderError,
    RenderState,
    SoundDeviceSink,
)
from fm_matrix.models import AudioOutput, Gain, Node, Operator, RenderGraph
from fm_matrix.patch import Patch
from fm_matrix.randomize import keep_probability, log_uniform, randomize_patch
from fm_matrix.simulate import SimResult, SimState, simulate
from fm_matrix.synth import Synth
from fm_matrix.validate import GraphValidationError, validate_graph
from fm_matrix.visualize import graph_to_dot, graph_to_dot_file

__all__ = [
    "AudioOutput",
    "AudioSink",
    "BlockSource",
    "Gain",
    "GraphValidationError",
    "Node",
    "NullSink",
    "Operator",
    "Patch",
    "RenderError",
    "RenderGraph",
    "RenderState",
    "Renderer",
    "SimResult",
    "SimState",
    "SoundDeviceSink",
    "Synth",
    "SynthConfig",
    "compile_patch",
    "graph_to_dot",
    "graph_to_dot_file",
    "keep_probability",
    "log_uniform",
    "randomize_patch",
    "simulate",
    "validate_graph",
]
