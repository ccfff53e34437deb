"""Random patch generation."""

from __future__ import annotations

import logging
import math

import numpy as np

from fm_matrix.config import MAX_FREQUENCY, MAX_VOLUME, MIN_FREQUENCY
from fm_matrix.patch import Patch

logger = logging.getLogger(__name__)


def _round_half_up(x: float) -> float:
    return float(math.floor(x + 0.5))


def log_uniform(u: float, max_frequency: float = MAX_FREQUENCY) -> float:
    """Map a uniform draw ``u`` in [0, 1) onto [1, max_frequency] log-uniformly."""
    return _round_half_up(10.0 ** (u * math.log10(max_frequency)))


def keep_probability(operator_count: int) -> float:
    """Chance that a volume or transfer cell is drawn non-zero.

    Scales as 1/sqrt(N) so that about sqrt(N) operators are audible whatever
    the operator count.
    """
    return 1.0 / math.sqrt(operator_count)


def randomize_patch(
    patch: Patch,
    rng: np.random.Generator | None = None,
    *,
    max_frequency: float = MAX_FREQUENCY,
) -> Patch:
    """Replace every frequency, volume and transfer gain of *patch* in place.

    The operator count is unchanged and the diagonal stays zero.  Feedback
    loops are not prevented.  Returns *patch*.
    """
    if not MIN_FREQUENCY < max_frequency <= MAX_FREQUENCY:
        raise ValueError(
            f"max_frequency must be in ({MIN_FREQUENCY}, {MAX_FREQUENCY}], got {max_frequency}"
        )
    if rng is None:
        rng = np.random.default_rng()

    n = patch.operator_count
    keep = keep_probability(n)

    for source in range(n):
        patch.frequencies[source] = log_uniform(rng.random(), max_frequency)
        if rng.random() > keep:
            patch.volumes[source] = 0.0
        else:
            patch.volumes[source] = _round_half_up(rng.random() * MAX_VOLUME)
        for sink in range(n):
            if source == sink:
                continue
            if rng.random() > keep:
                patch.transfer[source][sink] = 0.0
            else:
                patch.transfer[source][sink] = log_uniform(rng.random(), max_frequency)

    logger.debug(
        "Randomized %d operators: %d audible, %d connections",
        n,
        len(patch.audible_operators()),
        len(patch.connections()),
    )
    return patch
