"""Command-line interface for fm-matrix."""

from __future__ import annotations

import argparse
import logging
import struct
import sys

import numpy as np
from pydantic import ValidationError

from fm_matrix.compile import compile_patch
from fm_matrix.config import SynthConfig
from fm_matrix.engine import AudioSink, NullSink, RenderError, SoundDeviceSink
from fm_matrix.logging_config import setup_logging
from fm_matrix.patch import Patch
from fm_matrix.simulate import simulate
from fm_matrix.synth import Synth
from fm_matrix.visualize import graph_to_dot, graph_to_dot_file


class _UsageError(ValueError):
    pass


def _write_wav(path: str, data: np.ndarray, sample_rate: int) -> None:
    """Write a mono float32 WAV file."""
    samples = np.asarray(data, dtype=np.float32)
    raw = samples.tobytes()
    n_channels = 1
    bits_per_sample = 32
    byte_rate = sample_rate * n_channels * bits_per_sample // 8
    block_align = n_channels * bits_per_sample // 8

    with open(path, "wb") as f:
        # RIFF header
        data_size = len(raw)
        f.write(b"RIFF")
        f.write(struct.pack("<I", 36 + data_size))
        f.write(b"WAVE")
        # fmt chunk
        f.write(b"fmt ")
        f.write(struct.pack("<I", 16))  # chunk size
        f.write(struct.pack("<H", 3))  # IEEE float
        f.write(struct.pack("<H", n_channels))
        f.write(struct.pack("<I", sample_rate))
        f.write(struct.pack("<I", byte_rate))
        f.write(struct.pack("<H", block_align))
        f.write(struct.pack("<H", bits_per_sample))
        # data chunk
        f.write(b"data")
        f.write(struct.pack("<I", data_size))
        f.write(raw)


# ---------------------------------------------------------------------------
# Patch construction from flags
# ---------------------------------------------------------------------------


def _split_assignment(spec: str, flag: str) -> tuple[str, float]:
    if "=" not in spec:
        raise _UsageError(f"invalid {flag} spec (expected KEY=VALUE): {spec}")
    key, val_str = spec.split("=", 1)
    try:
        return key, float(val_str)
    except ValueError:
        raise _UsageError(f"invalid {flag} value: {val_str}") from None


def _parse_index(text: str, flag: str) -> int:
    try:
        return int(text)
    except ValueError:
        raise _UsageError(f"invalid {flag} operator index: {text}") from None


def _config_from_args(args: argparse.Namespace) -> SynthConfig:
    overrides: dict[str, float] = {}
    if args.duration is not None:
        overrides["duration"] = args.duration
    if args.sample_rate is not None:
        overrides["sample_rate"] = args.sample_rate
    return SynthConfig(**overrides)


def _build_synth(
    args: argparse.Namespace, config: SynthConfig, sink: AudioSink | None = None
) -> Synth:
    rng = np.random.default_rng(args.seed)
    synth = Synth(
        args.operators,
        config=config,
        sink=sink if sink is not None else NullSink(),
        rng=rng,
    )
    if args.random:
        synth.randomise()
    for spec in args.freq or []:
        key, value = _split_assignment(spec, "--freq")
        synth.set_frequency(_parse_index(key, "--freq"), value)
    for spec in args.volume or []:
        key, value = _split_assignment(spec, "--volume")
        synth.set_volume(_parse_index(key, "--volume"), value)
    for spec in args.transfer or []:
        key, value = _split_assignment(spec, "--transfer")
        if ":" not in key:
            raise _UsageError(f"invalid --transfer spec (expected SRC:DST=HZ): {spec}")
        src, dst = key.split(":", 1)
        synth.set_transfer(
            _parse_index(src, "--transfer"), _parse_index(dst, "--transfer"), value
        )
    return synth


def _format_patch(patch: Patch) -> str:
    n = patch.operator_count
    header = "op  " + f"{'freq':>8}" + f"{'vol':>6}" + "".join(f"{j:>8}" for j in range(n))
    rows = [header]
    for i in range(n):
        cells = "".join(
            f"{'-':>8}" if i == j else f"{patch.transfer[i][j]:>8g}" for j in range(n)
        )
        rows.append(f"{i:<4}{patch.frequencies[i]:>8g}{patch.volumes[i]:>5g}%{cells}")
    return "\n".join(rows) + "\n"


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _cmd_show(args: argparse.Namespace) -> int:
    synth = _build_synth(args, _config_from_args(args))
    sys.stdout.write(_format_patch(synth.patch))
    return 0


def _cmd_render(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    synth = _build_synth(args, config)
    graph = compile_patch(synth.patch, duration=config.duration, sample_rate=config.sample_rate)
    mix = np.clip(simulate(graph).mix, -1.0, 1.0)
    _write_wav(args.output, mix, int(config.sample_rate))
    print(f"wrote {args.output} ({len(mix)} samples, {int(config.sample_rate)} Hz)")
    return 0


def _cmd_dot(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    synth = _build_synth(args, config)
    graph = compile_patch(synth.patch, duration=config.duration, sample_rate=config.sample_rate)
    if args.output:
        graph_to_dot_file(graph, args.output)
    else:
        sys.stdout.write(graph_to_dot(graph))
    return 0


def _cmd_play(args: argparse.Namespace) -> int:
    sink = SoundDeviceSink()
    synth = _build_synth(args, _config_from_args(args), sink=sink)
    synth.start_render()
    sink.wait()
    sink.stop()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for the fm-matrix CLI."""
    patch_opts = argparse.ArgumentParser(add_help=False)
    patch_opts.add_argument(
        "-n", "--operators", type=int, default=1, help="Number of operators (default: 1)"
    )
    patch_opts.add_argument("--random", action="store_true", help="Randomise the patch")
    patch_opts.add_argument("--seed", type=int, help="Random seed for --random")
    patch_opts.add_argument(
        "--freq", action="append", metavar="I=HZ", help="Set operator frequency (repeatable)"
    )
    patch_opts.add_argument(
        "--volume", action="append", metavar="I=PCT", help="Set operator volume (repeatable)"
    )
    patch_opts.add_argument(
        "--transfer",
        action="append",
        metavar="SRC:DST=HZ",
        help="Set modulation from SRC into DST's frequency (repeatable)",
    )
    patch_opts.add_argument("--duration", type=float, help="Render length in seconds")
    patch_opts.add_argument("--sample-rate", type=float, help="Override sample rate")
    patch_opts.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    parser = argparse.ArgumentParser(
        prog="fm-matrix",
        description="Build, inspect, render and play matrix FM synthesis patches.",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("show", parents=[patch_opts], help="Print the patch as a table")

    p_render = sub.add_parser("render", parents=[patch_opts], help="Render the patch to WAV")
    p_render.add_argument("-o", "--output", required=True, help="Output WAV file")

    p_dot = sub.add_parser("dot", parents=[patch_opts], help="Generate DOT visualization")
    p_dot.add_argument("-o", "--output", help="Output directory")

    sub.add_parser("play", parents=[patch_opts], help="Play the patch on the sound device")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help(sys.stderr)
        return 1

    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        if args.command == "show":
            return _cmd_show(args)
        elif args.command == "render":
            return _cmd_render(args)
        elif args.command == "dot":
            return _cmd_dot(args)
        elif args.command == "play":
            return _cmd_play(args)
    except FileNotFoundError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except ValidationError as e:
        print(f"error: invalid configuration: {e}", file=sys.stderr)
        return 1
    except (ValueError, IndexError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except RenderError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    return 0  # pragma: no cover


if __name__ == "__main__":
    sys.exit(main())
