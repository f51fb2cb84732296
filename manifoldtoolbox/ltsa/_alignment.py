"""Assembly of the global alignment matrix from local tangent spaces."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Self

import numpy as np
from numpy.typing import NDArray
from scipy.sparse import coo_matrix, csr_matrix

from ._neighbors import NeighborGraph
from ._tangent import LocalTangentSpace

logger = logging.getLogger(__name__)


class AlignmentMatrix:
    """Accumulator of the (n_samples, n_samples) LTSA alignment matrix.

    Every point contributes the projector onto the orthogonal complement of its
    local frame, scattered onto the block of its neighbor indices.
    Contributions are stored as coordinate triplets and summed when the
    matrix is materialized, so overlapping blocks add up and accumulators can
    be merged in any order.
    """

    def __init__(self, n_samples: int) -> None:
        self.n_samples = n_samples
        self.n_contributions = 0
        self._covered = np.zeros(n_samples, dtype=bool)
        self._rows: list[NDArray[np.intp]] = []
        self._cols: list[NDArray[np.intp]] = []
        self._values: list[NDArray[np.float64]] = []

    def add_local_alignment(
        self, neighbor_indices: NDArray[np.intp], coordinates: NDArray[np.float64]
    ) -> Self:
        """Adds `I - G G^T` on the neighbor block, with `G = [1/sqrt(k), coordinates]`.

        Args:
            neighbor_indices: (k,) global indices of the neighbors.
            coordinates: (k, n_components) orthonormal local coordinates, in the
                order of `neighbor_indices`.
        """
        n_neighbors = len(neighbor_indices)
        local_frame = np.hstack(
            [np.full((n_neighbors, 1), 1 / np.sqrt(n_neighbors)), coordinates]
        )
        projector = np.eye(n_neighbors) - local_frame @ local_frame.T

        rows, cols = np.meshgrid(neighbor_indices, neighbor_indices, indexing="ij")
        self._rows.append(rows.ravel())
        self._cols.append(cols.ravel())
        self._values.append(projector.ravel())
        self._covered[neighbor_indices] = True
        self.n_contributions += 1

        return self

    def merge(self, other: AlignmentMatrix) -> AlignmentMatrix:
        """Returns a new accumulator holding the contributions of both."""
        if other.n_samples != self.n_samples:
            raise ValueError(
                f"Can not merge alignment matrices of {self.n_samples} and"
                f" {other.n_samples} samples"
            )
        merged = AlignmentMatrix(self.n_samples)
        merged._rows = self._rows + other._rows
        merged._cols = self._cols + other._cols
        merged._values = self._values + other._values
        merged.n_contributions = self.n_contributions + other.n_contributions
        merged._covered = self._covered | other._covered

        return merged

    @property
    def covered_samples(self) -> NDArray[np.intp]:
        """Samples belonging to at least one neighborhood."""
        return np.flatnonzero(self._covered)

    @property
    def isolated_samples(self) -> NDArray[np.intp]:
        """Samples in no neighborhood, their rows and columns of the matrix are zero."""
        return np.flatnonzero(~self._covered)

    def to_sparse(self) -> csr_matrix:
        shape = (self.n_samples, self.n_samples)
        if not self._values:
            return csr_matrix(shape, dtype=np.float64)

        matrix = coo_matrix(
            (
                np.concatenate(self._values),
                (np.concatenate(self._rows), np.concatenate(self._cols)),
            ),
            shape=shape,
        ).tocsr()

        # Duplicates are summed in storage order, which may differ between (i, j) and (j, i)
        return ((matrix + matrix.T) / 2).tocsr()

    def to_dense(self) -> NDArray[np.float64]:
        return self.to_sparse().toarray()


def assemble_alignment_matrix(
    graph: NeighborGraph, tangent_spaces: Sequence[LocalTangentSpace]
) -> AlignmentMatrix:
    """Sums the local alignments of every point of the graph."""
    alignment = AlignmentMatrix(len(graph))
    for neighbor_indices, tangent_space in zip(graph.indices, tangent_spaces, strict=True):
        alignment.add_local_alignment(neighbor_indices, tangent_space.coordinates)

    logger.debug(
        f"Assembled a {alignment.n_samples}x{alignment.n_samples} alignment matrix"
        f" from {alignment.n_contributions} neighborhoods"
    )

    return alignment
