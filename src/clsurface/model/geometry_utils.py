from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

import numpy as np

if TYPE_CHECKING:
    from numpy import typing as npt


def as_position(position: Sequence[float] | npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """
    Convert a 2D or 3D coordinate into a float64 array of shape (3,).

    Args:
        position: (x, y) or (x, y, z) coordinates. A missing z defaults to 0.

    Returns:
        A new array [x, y, z].
    """
    coords = np.array(position, dtype=np.float64).reshape(-1)
    if coords.shape == (2,):
        coords = np.append(coords, 0.0)
    if coords.shape != (3,):
        raise ValueError(f"Expected a 2D or 3D position, got shape {coords.shape}.")
    return coords


def midpoint(
    p: npt.NDArray[np.float64],
    q: npt.NDArray[np.float64],
) -> npt.NDArray[np.float64]:
    """Arithmetic mean of two positions."""
    return 0.5 * (np.asarray(p, dtype=np.float64) + np.asarray(q, dtype=np.float64))


def quad_center(corners: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """
    Average of the corner positions of a quad.

    Args:
        corners: Array of shape (4, 3) with the corner positions.

    Returns:
        The center position, shape (3,).
    """
    corners = np.asarray(corners, dtype=np.float64)
    if corners.shape != (4, 3):
        raise ValueError(f"Expected four 3D corners, got shape {corners.shape}.")
    return corners.mean(axis=0)


def distance(p: npt.NDArray[np.float64], q: npt.NDArray[np.float64]) -> float:
    return float(np.linalg.norm(np.asarray(q, dtype=np.float64) - np.asarray(p, dtype=np.float64)))


def side_lengths(corners: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """
    Lengths of the sides of a closed polygon, side i running from corner i to
    corner i+1 (wrapping around).
    """
    corners = np.asarray(corners, dtype=np.float64)
    return np.linalg.norm(np.roll(corners, -1, axis=0) - corners, axis=1)
