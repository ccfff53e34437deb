"""Synthesis constants and runtime configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field

# Length of one render, in seconds.
DURATION = 3.0
SAMPLE_RATE = 44100.0

# Frequency and transfer-gain range in Hz.  Random draws are log-uniform
# over [MIN_FREQUENCY, MAX_FREQUENCY].
MIN_FREQUENCY = 1.0
MAX_FREQUENCY = 10000.0

MAX_VOLUME = 100.0
MAX_OPERATORS = 64

# Values assigned by a reset: operator 0 is an audible carrier, the rest are
# silent and unconnected.
DEFAULT_CARRIER_FREQUENCY = 200.0
DEFAULT_CARRIER_VOLUME = 100.0
DEFAULT_FREQUENCY = 1.0
DEFAULT_VOLUME = 0.0


class SynthConfig(BaseModel):
    duration: float = Field(default=DURATION, gt=0.0)
    sample_rate: float = Field(default=SAMPLE_RATE, gt=0.0)
    max_frequency: float = Field(default=MAX_FREQUENCY, gt=MIN_FREQUENCY, le=MAX_FREQUENCY)
    max_operators: int = Field(default=MAX_OPERATORS, ge=1, le=MAX_OPERATORS)

    @property
    def n_samples(self) -> int:
        return int(round(self.duration * self.sample_rate))
