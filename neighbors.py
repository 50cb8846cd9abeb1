from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from config import K_NEIGHBORS, WEIGHT_EPSILON


@dataclass(frozen=True)
class NeighborSet:
    indices: np.ndarray
    distances: np.ndarray

    def __len__(self) -> int:
        return int(self.indices.shape[0])

    def pairs(self) -> list[tuple[int, float]]:
        return [(int(i), float(d)) for i, d in zip(self.indices, self.distances)]


def _readonly(arr: np.ndarray) -> np.ndarray:
    arr.setflags(write=False)
    return arr


def select_neighbors(distances: np.ndarray, k: int = K_NEIGHBORS) -> NeighborSet:
    """The ``k`` closest rows, ascending; ties keep their original order."""
    distances = np.asarray(distances, dtype=float).ravel()
    if distances.size == 0:
        raise ValueError("Cannot select neighbours from an empty grid.")
    if k < 1:
        raise ValueError(f"k must be positive, got {k}.")
    if np.any(np.isnan(distances)) or np.any(distances < 0):
        raise ValueError("Distances must be non-negative numbers.")
    order = np.argsort(distances, kind="mergesort")[: min(k, distances.size)]
    return NeighborSet(
        indices=_readonly(order.astype(int)),
        distances=_readonly(distances[order].copy()),
    )


def inverse_distance_weights(
    neighbors: NeighborSet, eps: float = WEIGHT_EPSILON
) -> np.ndarray:
    """Convex weights proportional to ``1 / (d + eps)``."""
    if len(neighbors) == 0:
        raise ValueError("NeighborSet is empty.")
    inv = 1.0 / (np.asarray(neighbors.distances, dtype=float) + eps)
    return _readonly(inv / inv.sum())
