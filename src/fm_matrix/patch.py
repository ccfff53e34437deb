"""The synthesis parameter model: operator frequencies, volumes and transfer gains."""

from __future__ import annotations

import logging
import math

from pydantic import BaseModel, model_validator

from fm_matrix.config import (
    DEFAULT_CARRIER_FREQUENCY,
    DEFAULT_CARRIER_VOLUME,
    DEFAULT_FREQUENCY,
    DEFAULT_VOLUME,
    MAX_FREQUENCY,
    MAX_OPERATORS,
    MAX_VOLUME,
    MIN_FREQUENCY,
)

logger = logging.getLogger(__name__)


def _clamp(value: float, lo: float, hi: float) -> float:
    if not math.isfinite(value):
        raise ValueError(f"Parameter value must be finite, got {value!r}")
    clamped = min(max(float(value), lo), hi)
    if clamped != value:
        logger.debug("Clamped %g to %g (range [%g, %g])", value, clamped, lo, hi)
    return clamped


class Patch(BaseModel):
    """Operator count plus the per-operator and operator-pair parameters.

    ``transfer[i][j]`` is the frequency deviation in Hz applied to operator
    ``j`` per unit of operator ``i``'s output.  The diagonal is always zero.
    """

    operator_count: int = 1
    frequencies: list[float] = [DEFAULT_CARRIER_FREQUENCY]
    volumes: list[float] = [DEFAULT_CARRIER_VOLUME]
    transfer: list[list[float]] = [[0.0]]

    @model_validator(mode="after")
    def check_invariants(self) -> Patch:
        n = self.operator_count
        if n < 1:
            raise ValueError(f"operator_count must be at least 1, got {n}")
        if len(self.frequencies) != n or len(self.volumes) != n:
            raise ValueError(
                f"Expected {n} frequencies and volumes, got "
                f"{len(self.frequencies)} and {len(self.volumes)}"
            )
        if len(self.transfer) != n or any(len(row) != n for row in self.transfer):
            raise ValueError(f"transfer must be a {n}x{n} matrix")
        for i in range(n):
            if not MIN_FREQUENCY <= self.frequencies[i] <= MAX_FREQUENCY:
                raise ValueError(f"Operator {i} frequency {self.frequencies[i]} out of range")
            if not 0.0 <= self.volumes[i] <= MAX_VOLUME:
                raise ValueError(f"Operator {i} volume {self.volumes[i]} out of range")
            if self.transfer[i][i] != 0.0:
                raise ValueError(f"Operator {i} cannot modulate itself")
            for j, value in enumerate(self.transfer[i]):
                if not 0.0 <= value <= MAX_FREQUENCY:
                    raise ValueError(f"Transfer {i}->{j} value {value} out of range")
        return self

    @classmethod
    def default(cls, operator_count: int = 1) -> Patch:
        """Return a freshly reset patch for *operator_count* operators."""
        patch = cls()
        patch.reset(operator_count)
        return patch

    # -----------------------------------------------------------------------
    # Mutation
    # -----------------------------------------------------------------------

    @staticmethod
    def normalize_count(operator_count: float) -> int:
        """Round *operator_count* half-up to a whole number of operators."""
        if not math.isfinite(operator_count):
            raise ValueError(f"operator_count must be finite, got {operator_count!r}")
        return math.floor(float(operator_count) + 0.5)

    def reset(self, operator_count: float) -> None:
        """Resize to *operator_count* operators and restore every default.

        Fractional counts are rounded half-up.  Raises ValueError (leaving
        the patch untouched) if the count is below 1 or above MAX_OPERATORS.
        """
        n = self.normalize_count(operator_count)
        if n < 1:
            raise ValueError(f"operator_count must be at least 1, got {operator_count}")
        if n > MAX_OPERATORS:
            raise ValueError(f"operator_count must be at most {MAX_OPERATORS}, got {n}")
        self.operator_count = n
        self.frequencies = [DEFAULT_CARRIER_FREQUENCY] + [DEFAULT_FREQUENCY] * (n - 1)
        self.volumes = [DEFAULT_CARRIER_VOLUME] + [DEFAULT_VOLUME] * (n - 1)
        self.transfer = [[0.0] * n for _ in range(n)]

    def set_frequency(self, index: int, hz: float) -> None:
        self._check_index(index)
        self.frequencies[index] = _clamp(hz, MIN_FREQUENCY, MAX_FREQUENCY)

    def set_volume(self, index: int, percent: float) -> None:
        self._check_index(index)
        self.volumes[index] = _clamp(percent, 0.0, MAX_VOLUME)

    def set_transfer(self, source: int, sink: int, hz: float) -> None:
        """Set how strongly *source* modulates *sink*'s frequency.

        Writes to the diagonal are ignored.
        """
        self._check_index(source)
        self._check_index(sink)
        value = _clamp(hz, 0.0, MAX_FREQUENCY)
        if source == sink:
            logger.debug("Ignoring self-modulation write on operator %d", source)
            return
        self.transfer[source][sink] = value

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.operator_count:
            raise IndexError(
                f"Operator index {index} out of range for {self.operator_count} operators"
            )

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def snapshot(self) -> Patch:
        """Return an independent deep copy."""
        return self.model_copy(deep=True)

    def audible_operators(self) -> list[int]:
        return [i for i, volume in enumerate(self.volumes) if volume > 0.0]

    def connections(self) -> list[tuple[int, int, float]]:
        """Return ``(source, sink, gain)`` for every non-zero off-diagonal entry."""
        return [
            (i, j, gain)
            for i, row in enumerate(self.transfer)
            for j, gain in enumerate(row)
            if i != j and gain != 0.0
        ]
