"""Local tangent spaces estimated by PCA of each neighborhood."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from joblib import Parallel, delayed
from numpy.typing import NDArray
from scipy.linalg import null_space, svd
from sklearn.utils import gen_batches

from manifoldtoolbox.config import N_JOBS
from manifoldtoolbox.exceptions import DegenerateNeighborhood, InvalidNeighborCount

from ._neighbors import NeighborGraph

logger = logging.getLogger(__name__)

BATCH_SIZE = 256


@dataclass(frozen=True)
class LocalTangentSpace:
    """Tangent plane of the manifold around one sample.

    Attributes:
        centroid: (n_features,) mean of the neighborhood.
        basis: (n_features, n_components) orthonormal tangent directions.
        coordinates: (n_neighbors, n_components) orthonormal local coordinates of
            the neighbors, orthogonal to the constant vector.
        rank: effective rank of the centered neighborhood.
    """

    centroid: NDArray[np.float64]
    basis: NDArray[np.float64]
    coordinates: NDArray[np.float64]
    rank: int

    @property
    def padded(self) -> bool:
        return self.rank < self.basis.shape[1]


def _complete_orthonormal(
    columns: NDArray[np.float64],
    n_columns: int,
    fixed: NDArray[np.float64] | None = None,
) -> NDArray[np.float64]:
    """Appends orthonormal columns to `columns` until it has `n_columns`.

    The new columns are orthogonal to `columns` and to the optional `fixed` ones.
    """
    span = columns if fixed is None else np.hstack([fixed, columns])
    complement = null_space(span.T)

    return np.hstack([columns, complement[:, : n_columns - columns.shape[1]]])


def estimate_tangent_space(
    neighborhood: NDArray[np.float64], n_components: int
) -> LocalTangentSpace:
    """Estimates the tangent space spanned by a (n_neighbors, n_features) neighborhood.

    The tangent basis holds the top right singular vectors of the centered
    neighborhood and the local coordinates its top left singular vectors. When
    the neighborhood has fewer than `n_components` independent directions,
    both are completed with an orthonormal complement, the local coordinates
    staying orthogonal to the constant vector.

    Raises:
        InvalidNeighborCount: if the neighborhood has no more rows than `n_components`.
        DegenerateNeighborhood: if all the neighbors coincide.
    """
    n_neighbors, n_features = neighborhood.shape
    if n_neighbors <= n_components:
        raise InvalidNeighborCount(
            f"A neighborhood needs more than {n_components} points, got {n_neighbors}"
        )

    centroid = neighborhood.mean(axis=0)
    left, singular_values, right_t = svd(neighborhood - centroid, full_matrices=False)

    if singular_values[0] == 0.0:
        raise DegenerateNeighborhood("All the points of the neighborhood coincide")

    threshold = singular_values[0] * max(n_neighbors, n_features) * np.finfo(np.float64).eps
    rank = int(np.count_nonzero(singular_values > threshold))
    n_kept = min(rank, n_components)

    coordinates = left[:, :n_kept]
    basis = right_t[:n_kept].T
    if n_kept < n_components:
        constant = np.full((n_neighbors, 1), 1 / np.sqrt(n_neighbors))
        coordinates = _complete_orthonormal(coordinates, n_components, fixed=constant)
        basis = _complete_orthonormal(basis, n_components)

    return LocalTangentSpace(centroid=centroid, basis=basis, coordinates=coordinates, rank=rank)


def _estimate_batch(
    samples: NDArray[np.float64],
    indices: NDArray[np.intp],
    n_components: int,
    offset: int,
) -> list[LocalTangentSpace]:
    tangent_spaces = []
    for position, neighbors in enumerate(indices):
        try:
            tangent_spaces.append(estimate_tangent_space(samples[neighbors], n_components))
        except DegenerateNeighborhood as exc:
            raise DegenerateNeighborhood(
                f"The {len(neighbors)} neighbors of sample {offset + position} coincide,"
                " remove duplicated samples or increase n_neighbors"
            ) from exc

    return tangent_spaces


def estimate_tangent_spaces(
    samples: NDArray[np.float64],
    graph: NeighborGraph,
    n_components: int,
    n_jobs: int | None = N_JOBS,
) -> list[LocalTangentSpace]:
    """Estimates the tangent space of every sample from its neighbors in `graph`."""
    batches = list(gen_batches(len(graph), BATCH_SIZE))
    results = Parallel(n_jobs=n_jobs)(
        delayed(_estimate_batch)(samples, graph.indices[batch], n_components, batch.start)
        for batch in batches
    )
    tangent_spaces = [tangent_space for batch_result in results for tangent_space in batch_result]

    if n_padded := sum(tangent_space.padded for tangent_space in tangent_spaces):
        logger.warning(
            f"{n_padded} neighborhoods have fewer than {n_components} independent directions,"
            " their tangent bases were completed with orthonormal directions"
        )

    return tangent_spaces
