"""Computational statistics for the assessment of embeddings."""
from typing import Literal

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.spatial.distance import pdist
from scipy.stats import pearsonr, spearmanr
from sklearn.utils import check_random_state

CorrelationMethod = Literal["spearman", "pearson"]


def _as_matrix(data: ArrayLike) -> np.ndarray:
    """Casts a sequence of samples to a (n_samples, n_dimensions) array."""
    data_array = np.asarray(data, dtype=np.float64)
    if data_array.ndim == 1:
        return data_array.reshape(-1, 1)
    if data_array.ndim != 2:
        raise ValueError(f"Expected a 1-D or 2-D array, got {data_array.ndim} dimensions")

    return data_array


def _distance_correlation(
    embedding: np.ndarray, reference: np.ndarray, method: CorrelationMethod
) -> float:
    embedding_distances = pdist(embedding)
    reference_distances = pdist(reference)
    if method == "spearman":
        correlation, _ = spearmanr(embedding_distances, reference_distances)
    elif method == "pearson":
        correlation, _ = pearsonr(embedding_distances, reference_distances)
    else:
        raise ValueError(f"Unknown correlation method: {method}")

    return float(correlation)


def pairwise_distance_correlation(
    embedding: ArrayLike,
    reference: ArrayLike,
    method: CorrelationMethod = "spearman",
) -> float:
    """Correlation between the pairwise distances of an embedding and of reference coordinates.

    Close to 1 when the embedding preserves the ordering (spearman) or the
    magnitude (pearson) of the reference distances.
    """
    embedding_matrix = _as_matrix(embedding)
    reference_matrix = _as_matrix(reference)
    if embedding_matrix.shape[0] != reference_matrix.shape[0]:
        raise ValueError(
            f"Embedding and reference must have the same number of samples,"
            f" got {embedding_matrix.shape[0]} and {reference_matrix.shape[0]}"
        )
    if embedding_matrix.shape[0] < 3:
        raise ValueError("At least 3 samples are needed to correlate pairwise distances")

    return _distance_correlation(embedding_matrix, reference_matrix, method)


def bootstrap_distance_correlation_ci(
    embedding: ArrayLike,
    reference: ArrayLike,
    n_boot: int = 100,
    ci: float = 0.95,
    method: CorrelationMethod = "spearman",
    random_state: int | np.random.RandomState | None = None,
) -> NDArray[np.float64]:
    """Estimates a confidence interval of the pairwise distance correlation by
    bootstrap resampling of the samples."""
    if not 0 < ci < 1:
        raise ValueError(f"Confidence level must be in (0, 1), got {ci}")
    low_end = (1 - ci) / 2
    high_end = 1 - low_end

    embedding_matrix = _as_matrix(embedding)
    reference_matrix = _as_matrix(reference)
    # Validates the inputs once before resampling
    pairwise_distance_correlation(embedding_matrix, reference_matrix, method)

    rng = check_random_state(random_state)
    n_samples = embedding_matrix.shape[0]
    boot_correlations = np.empty(n_boot)
    for i in range(n_boot):
        boot_idx = rng.randint(n_samples, size=n_samples)
        boot_correlations[i] = _distance_correlation(
            embedding_matrix[boot_idx], reference_matrix[boot_idx], method
        )

    return np.quantile(boot_correlations, [low_end, high_end])


def embedding_covariance(embedding: ArrayLike) -> NDArray[np.float64]:
    """Covariance matrix of the embedding dimensions."""
    return np.atleast_2d(np.cov(_as_matrix(embedding), rowvar=False))


def align_signs(embedding: ArrayLike, reference: ArrayLike) -> NDArray[np.float64]:
    """Flips embedding dimensions pointing away from the matching reference dimensions.

    Eigenvectors are only defined up to their sign, this makes two embeddings
    of the same data comparable.
    """
    embedding_array = np.asarray(embedding, dtype=np.float64)
    reference_array = np.asarray(reference, dtype=np.float64)
    if embedding_array.shape != reference_array.shape:
        raise ValueError(
            f"Shapes do not match: {embedding_array.shape} and {reference_array.shape}"
        )

    signs = np.sign(np.sum(embedding_array * reference_array, axis=0))
    signs = np.where(signs == 0, 1.0, signs)

    return embedding_array * signs
