"""k-nearest-neighbor graphs over sample matrices."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from joblib import Parallel, delayed
from numpy.typing import NDArray
from scipy.spatial.distance import cdist
from sklearn.utils import gen_batches

from manifoldtoolbox.config import N_JOBS
from manifoldtoolbox.exceptions import InvalidNeighborCount

logger = logging.getLogger(__name__)

# Rows of queries handled by one task, bounds the (batch, n_samples) distance block.
BATCH_SIZE = 512


@dataclass(frozen=True)
class NeighborGraph:
    """Neighbors of each query point, nearest first.

    Attributes:
        indices: (n_queries, n_neighbors) row indices into the searched samples.
        distances: (n_queries, n_neighbors) matching Euclidean distances.
    """

    indices: NDArray[np.intp]
    distances: NDArray[np.float64]

    @property
    def n_neighbors(self) -> int:
        return self.indices.shape[1]

    def __len__(self) -> int:
        return self.indices.shape[0]


def _check_neighbor_count(n_neighbors: int, n_points: int) -> None:
    if n_neighbors < 1 or n_neighbors >= n_points:
        raise InvalidNeighborCount(
            f"Expected 1 <= n_neighbors < {n_points} for {n_points} points,"
            f" got n_neighbors={n_neighbors}"
        )


def _nearest_rows(
    queries: NDArray[np.float64],
    samples: NDArray[np.float64],
    n_neighbors: int,
    self_offset: int | None,
) -> tuple[NDArray[np.intp], NDArray[np.float64]]:
    """Nearest rows of `samples` for a batch of queries.

    When `self_offset` is given, query `i` is sample `self_offset + i` and is
    excluded from its own neighbors.
    """
    distances = cdist(queries, samples, metric="euclidean")
    if self_offset is not None:
        rows = np.arange(len(queries))
        distances[rows, rows + self_offset] = np.inf

    # A stable sort keeps equal distances in ascending index order
    order = np.argsort(distances, axis=1, kind="stable")[:, :n_neighbors]

    return order, np.take_along_axis(distances, order, axis=1)


def _search(
    queries: NDArray[np.float64],
    samples: NDArray[np.float64],
    n_neighbors: int,
    exclude_self: bool,
    n_jobs: int | None,
) -> NeighborGraph:
    batches = list(gen_batches(len(queries), BATCH_SIZE))
    results = Parallel(n_jobs=n_jobs)(
        delayed(_nearest_rows)(
            queries[batch],
            samples,
            n_neighbors,
            batch.start if exclude_self else None,
        )
        for batch in batches
    )
    indices = np.vstack([batch_indices for batch_indices, _ in results])
    distances = np.vstack([batch_distances for _, batch_distances in results])

    return NeighborGraph(indices=indices, distances=distances)


def build_neighbor_graph(
    samples: NDArray[np.float64], n_neighbors: int, n_jobs: int | None = N_JOBS
) -> NeighborGraph:
    """Finds the `n_neighbors` nearest other samples of every sample.

    A sample is never its own neighbor, but an exact duplicate of it is.
    Equal distances are ordered by ascending index.

    Raises:
        InvalidNeighborCount: if `n_neighbors` is not in [1, n_samples).
    """
    _check_neighbor_count(n_neighbors, samples.shape[0])
    logger.debug(f"Building a {n_neighbors}-neighbor graph over {samples.shape[0]} samples")

    return _search(samples, samples, n_neighbors, exclude_self=True, n_jobs=n_jobs)


def query_neighbor_graph(
    queries: NDArray[np.float64],
    training_samples: NDArray[np.float64],
    n_neighbors: int,
    n_jobs: int | None = N_JOBS,
) -> NeighborGraph:
    """Finds the `n_neighbors` nearest training samples of every query.

    Raises:
        InvalidNeighborCount: if `n_neighbors` is not in [1, n_training_samples).
    """
    _check_neighbor_count(n_neighbors, training_samples.shape[0])
    logger.debug(
        f"Querying {queries.shape[0]} points against {training_samples.shape[0]}"
        f" training samples for {n_neighbors} neighbors"
    )

    return _search(queries, training_samples, n_neighbors, exclude_self=False, n_jobs=n_jobs)
