"""Partial eigen-decomposition of the alignment matrix."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

import numpy as np
from numpy.typing import NDArray
from scipy.linalg import eigh, svd
from scipy.sparse import csr_matrix
from scipy.sparse.linalg import ArpackNoConvergence, eigsh
from sklearn.utils import check_random_state

from manifoldtoolbox.config import (
    ARPACK_MAX_COMPONENTS,
    ARPACK_MIN_SAMPLES,
    ARPACK_SHIFT,
    DEFAULT_ARPACK_TOL,
    DEFAULT_NULL_SPACE_TOL,
)
from manifoldtoolbox.exceptions import InsufficientSpectrum, ModelFittingFailure

from ._alignment import AlignmentMatrix

logger = logging.getLogger(__name__)

EigenSolver = Literal["auto", "dense", "arpack"]


@dataclass(frozen=True)
class EmbeddingSpectrum:
    """Bottom of the alignment matrix spectrum.

    Attributes:
        embedding: (n_samples, n_components) eigenvectors, smallest eigenvalue first.
        eigenvalues: (n_components,) matching eigenvalues.
        n_isolated: number of samples in no neighborhood, left at the origin.
    """

    embedding: NDArray[np.float64]
    eigenvalues: NDArray[np.float64]
    n_isolated: int


def select_eigen_solver(n_samples: int, n_components: int, eigen_solver: EigenSolver) -> str:
    if eigen_solver not in ("auto", "dense", "arpack"):
        raise ValueError(
            f"eigen_solver must be one of 'auto', 'dense', 'arpack', got {eigen_solver!r}"
        )
    if eigen_solver != "auto":
        return eigen_solver
    if n_samples > ARPACK_MIN_SAMPLES and n_components + 1 < ARPACK_MAX_COMPONENTS:
        return "arpack"
    return "dense"


def _count_null(eigenvalues: NDArray[np.float64], threshold: float) -> int:
    return int(np.count_nonzero(eigenvalues <= threshold))


def _dense_spectrum(
    matrix: csr_matrix, n_components: int, null_space_tol: float
) -> tuple[NDArray[np.float64], int]:
    eigenvalues, eigenvectors = eigh(matrix.toarray())
    spectral_norm = float(np.abs(eigenvalues).max())
    n_null = _count_null(eigenvalues, null_space_tol * spectral_norm)

    return eigenvectors[:, : n_components + 1], n_null


def _arpack_spectrum(
    matrix: csr_matrix,
    n_components: int,
    null_space_tol: float,
    arpack_tol: float,
    max_iter: int | None,
    random_state: int | np.random.RandomState | None,
) -> tuple[NDArray[np.float64], int]:
    n_samples = matrix.shape[0]
    v0 = check_random_state(random_state).uniform(-1, 1, n_samples)

    try:
        spectral_norm = float(
            eigsh(
                matrix, k=1, which="LA", tol=arpack_tol, maxiter=max_iter, v0=v0,
                return_eigenvectors=False,
            )[0]
        )
        sigma = -ARPACK_SHIFT * spectral_norm
        # Shift-invert factorizes the matrix
        matrix = matrix.tocsc()

        # Widen the window until it reaches past the null space, so that its
        # dimension is known
        n_requested = n_components + 1
        while True:
            eigenvalues, eigenvectors = eigsh(
                matrix, k=n_requested, sigma=sigma, which="LM", tol=arpack_tol,
                maxiter=max_iter, v0=v0,
            )
            order = np.argsort(eigenvalues)
            eigenvalues, eigenvectors = eigenvalues[order], eigenvectors[:, order]
            n_null = _count_null(eigenvalues, null_space_tol * spectral_norm)
            if n_null < n_requested or n_requested == n_samples - 1:
                break
            n_requested = min(2 * n_requested, n_samples - 1)
            logger.debug(f"Widening the ARPACK window to {n_requested} eigenpairs")

    except (ArpackNoConvergence, RuntimeError) as exc:
        raise ModelFittingFailure(
            f"ARPACK failed to find the bottom of the alignment spectrum: {exc}."
            " Increase max_iter or use eigen_solver='dense'"
        ) from exc

    return eigenvectors[:, : n_components + 1], n_null


def _project_out_constant(
    matrix: csr_matrix, eigenvectors: NDArray[np.float64], n_components: int
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Rayleigh-Ritz pairs of `matrix` on the span of `eigenvectors` orthogonal to the constant.

    The constant vector is an exact null vector of the alignment matrix. When
    the manifold is flat its coordinates are null vectors too, and any
    eigensolver returns an arbitrary basis of the whole null space, so the
    constant is removed explicitly rather than by skipping an eigenvector.
    """
    n_samples = eigenvectors.shape[0]
    constant = np.full(n_samples, 1 / np.sqrt(n_samples))
    orthogonal = eigenvectors - np.outer(constant, constant @ eigenvectors)
    basis = svd(orthogonal, full_matrices=False)[0][:, :n_components]

    ritz_values, ritz_vectors = eigh(basis.T @ (matrix @ basis))

    return ritz_values, basis @ ritz_vectors


def _flip_signs(eigenvectors: NDArray[np.float64]) -> NDArray[np.float64]:
    """Makes the largest absolute entry of every column positive."""
    max_abs_rows = np.argmax(np.abs(eigenvectors), axis=0)
    signs = np.sign(eigenvectors[max_abs_rows, np.arange(eigenvectors.shape[1])])
    signs[signs == 0] = 1.0

    return eigenvectors * signs


def solve_embedding(
    alignment: AlignmentMatrix,
    n_components: int,
    eigen_solver: EigenSolver = "auto",
    null_space_tol: float = DEFAULT_NULL_SPACE_TOL,
    arpack_tol: float = DEFAULT_ARPACK_TOL,
    max_iter: int | None = None,
    random_state: int | np.random.RandomState | None = None,
) -> EmbeddingSpectrum:
    """Extracts the `n_components` bottom non-trivial eigenvectors of the alignment matrix.

    The trivial null space of the alignment matrix is known from its structure:
    the constant vector, plus one indicator vector per sample that belongs to
    no neighborhood. Such samples are solved out of the problem and left at
    the origin, and the constant vector is projected out of the bottom
    eigenvectors of the remaining samples. Eigenvector signs are fixed so
    that the largest absolute entry of every column is positive.

    Eigenvalues up to `null_space_tol` times the spectral norm are null. When
    more than `n_components` null directions are left besides the constant,
    the embedding is not unique and the fit fails.

    Raises:
        InsufficientSpectrum: if fewer than `n_components` eigenvectors determine the embedding.
        ModelFittingFailure: if ARPACK does not converge.
    """
    covered = alignment.covered_samples
    n_isolated = alignment.n_samples - len(covered)
    if len(covered) <= n_components:
        raise InsufficientSpectrum(
            f"Only {max(len(covered) - 1, 0)} non-trivial eigenvectors exist for"
            f" n_components={n_components}, {len(covered)} samples belong to a neighborhood"
        )
    if n_isolated:
        logger.warning(
            f"{n_isolated} samples are no other sample's neighbor,"
            " they are left at the origin of the embedding"
        )

    solver = select_eigen_solver(alignment.n_samples, n_components, eigen_solver)
    if solver == "arpack" and len(covered) <= n_components + 1:
        solver = "dense"
    logger.info(
        f"Solving for {n_components} components of a {alignment.n_samples}-sample"
        f" alignment matrix with the {solver} eigensolver"
    )

    matrix = alignment.to_sparse()[covered][:, covered]
    if solver == "dense":
        eigenvectors, n_null = _dense_spectrum(matrix, n_components, null_space_tol)
    else:
        eigenvectors, n_null = _arpack_spectrum(
            matrix, n_components, null_space_tol, arpack_tol, max_iter, random_state
        )

    # The constant vector is one of the null eigenvectors
    if n_null - 1 > n_components:
        raise InsufficientSpectrum(
            f"The alignment matrix has {n_null - 1} null directions besides the constant"
            f" vector for n_components={n_components} (tolerance {null_space_tol:g}),"
            " the embedding is not unique. The neighbor graph may be disconnected,"
            " increase n_neighbors"
        )

    eigenvalues, covered_embedding = _project_out_constant(matrix, eigenvectors, n_components)
    embedding = np.zeros((alignment.n_samples, n_components), dtype=np.float64)
    embedding[covered] = covered_embedding

    return EmbeddingSpectrum(
        embedding=np.ascontiguousarray(_flip_signs(embedding)),
        eigenvalues=eigenvalues,
        n_isolated=n_isolated,
    )
