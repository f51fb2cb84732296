"""Out-of-sample extension by locally linear reconstruction weights."""

from __future__ import annotations

import logging

import numpy as np
from joblib import Parallel, delayed
from numpy.typing import NDArray
from scipy.linalg import solve
from sklearn.utils import gen_batches

from manifoldtoolbox.config import DEFAULT_REG, N_JOBS

from ._neighbors import query_neighbor_graph

logger = logging.getLogger(__name__)

BATCH_SIZE = 512


def reconstruction_weights(
    queries: NDArray[np.float64],
    training_samples: NDArray[np.float64],
    neighbor_indices: NDArray[np.intp],
    reg: float = DEFAULT_REG,
) -> NDArray[np.float64]:
    """Weights reconstructing every query from its training neighbors.

    For a query x with neighbors n_1..n_k, solves
    min ||x - sum_j w_j n_j||^2 subject to sum_j w_j = 1, through the local
    Gram matrix C = (N - x)(N - x)^T. C is singular as soon as k exceeds the
    number of features, so a ridge of `reg * trace(C)` (or `reg` when the
    trace is zero) is always added to its diagonal.

    Returns:
        (n_queries, n_neighbors) weights, each row summing to 1.
    """
    n_queries, n_neighbors = neighbor_indices.shape
    weights = np.empty((n_queries, n_neighbors), dtype=np.float64)
    ones = np.ones(n_neighbors, dtype=np.float64)

    for row, (query, neighbors) in enumerate(zip(queries, neighbor_indices, strict=True)):
        offsets = training_samples[neighbors] - query
        gram = offsets @ offsets.T
        trace = np.trace(gram)
        gram.flat[:: n_neighbors + 1] += reg * trace if trace > 0 else reg

        row_weights = solve(gram, ones, assume_a="pos")
        weights[row] = row_weights / row_weights.sum()

    return weights


def _project_batch(
    queries: NDArray[np.float64],
    training_samples: NDArray[np.float64],
    embedding: NDArray[np.float64],
    neighbor_indices: NDArray[np.intp],
    reg: float,
) -> NDArray[np.float64]:
    weights = reconstruction_weights(queries, training_samples, neighbor_indices, reg)

    return np.einsum("qk,qkm->qm", weights, embedding[neighbor_indices])


def project(
    queries: NDArray[np.float64],
    training_samples: NDArray[np.float64],
    embedding: NDArray[np.float64],
    n_neighbors: int,
    reg: float = DEFAULT_REG,
    n_jobs: int | None = N_JOBS,
) -> NDArray[np.float64]:
    """Maps new samples into a training embedding.

    Every query is reconstructed from its `n_neighbors` nearest training samples
    and lands on the same weighted combination of their embedding rows.

    Args:
        queries: (n_queries, n_features) new samples.
        training_samples: (n_samples, n_features) samples the embedding was fitted on.
        embedding: (n_samples, n_components) training embedding.

    Returns:
        (n_queries, n_components) projected samples.

    Raises:
        InvalidNeighborCount: if `n_neighbors` is not in [1, n_samples).
    """
    graph = query_neighbor_graph(queries, training_samples, n_neighbors, n_jobs=n_jobs)

    batches = list(gen_batches(len(queries), BATCH_SIZE))
    results = Parallel(n_jobs=n_jobs)(
        delayed(_project_batch)(
            queries[batch], training_samples, embedding, graph.indices[batch], reg
        )
        for batch in batches
    )
    logger.debug(f"Projected {len(queries)} samples on {embedding.shape[1]} components")

    return np.ascontiguousarray(np.vstack(results))
