"""
Configuration & Sampling Settings
=================================
This module serves as the central registry for default parameters and
numerical tolerances.

Why is this file needed?
------------------------
1. Abstraction: It prevents magic numbers (far extent, sampling distance,
   depth limit) from being scattered throughout the code.
2. Validation: Sampling parameters are checked once, here, before any mesh is
   built. Invalid values fail fast with a ``ConfigurationError``.

Exports:
    DEFAULT_FAR (float): Default half-extent of the bounding square.
    DEFAULT_MIN_SAMPLING (float): Default target edge length.
    DEFAULT_MAX_DEPTH (int): Default limit on the number of subdivision passes.
    LENGTH_TOLERANCE (float): Relative tolerance used in length comparisons.
    SamplingSettings: Validated container for the parameters above.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from clsurface.exceptions import ConfigurationError

# Global Constants
DEFAULT_FAR: float = 1.0
DEFAULT_MIN_SAMPLING: float = 0.1
DEFAULT_MAX_DEPTH: int = 10  # 4**10 faces is already ~1M quads
LENGTH_TOLERANCE: float = 1e-9


def exceeds_sampling(length: float, min_sampling: float) -> bool:
    """True if ``length`` is longer than ``min_sampling`` beyond the relative tolerance."""
    return length > min_sampling * (1.0 + LENGTH_TOLERANCE)


def required_depth(far: float, min_sampling: float) -> int:
    """
    Number of subdivision passes needed to bring the bounding square's side
    (2 * far) down to at most ``min_sampling``.

    Args:
        far: Half-extent of the bounding square.
        min_sampling: Target maximum edge length.

    Returns:
        The number of halvings required, 0 if the square is already fine enough.
    """
    side = 2.0 * far
    depth = 0
    while exceeds_sampling(side, min_sampling):
        side /= 2.0
        depth += 1
    return depth


@dataclass
class SamplingSettings:
    """Parameters controlling the bounding square and its refinement."""
    far: float = DEFAULT_FAR
    min_sampling: float = DEFAULT_MIN_SAMPLING
    max_depth: int = DEFAULT_MAX_DEPTH
    deadline: Optional[float] = None  # seconds of wall-clock time, None = unbounded

    def validate(self) -> None:
        """
        Check the settings and raise ``ConfigurationError`` on the first problem.

        NaN and infinite values are rejected along with non-positive ones.
        """
        if not _is_positive_finite(self.far):
            raise ConfigurationError(f"far must be a positive finite number, got {self.far!r}")
        if not _is_positive_finite(self.min_sampling):
            raise ConfigurationError(
                f"min_sampling must be a positive finite number, got {self.min_sampling!r}"
            )
        if isinstance(self.max_depth, bool) or not isinstance(self.max_depth, int) or self.max_depth < 0:
            raise ConfigurationError(f"max_depth must be a non-negative integer, got {self.max_depth!r}")
        if self.deadline is not None and not _is_positive_finite(self.deadline):
            raise ConfigurationError(f"deadline must be a positive number of seconds, got {self.deadline!r}")

    @property
    def required_depth(self) -> int:
        return required_depth(self.far, self.min_sampling)


def _is_positive_finite(value: float) -> bool:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(value) and value > 0.0
