"""Scikit-learn estimator for Local Tangent Space Alignment."""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import wraps
from os import PathLike
from typing import Any, Self, TypeVar, cast

import joblib
import numpy as np
from numpy.typing import ArrayLike, NDArray
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.exceptions import NotFittedError
from sklearn.utils.validation import check_array, check_is_fitted

from manifoldtoolbox.config import DEFAULT_ARPACK_TOL, DEFAULT_NULL_SPACE_TOL, DEFAULT_REG, N_JOBS
from manifoldtoolbox.exceptions import InvalidComponentCount, InvalidNeighborCount, ModelNotFitted

from ._alignment import assemble_alignment_matrix
from ._neighbors import build_neighbor_graph
from ._projection import project
from ._solver import EigenSolver, solve_embedding
from ._tangent import estimate_tangent_spaces

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

FITTED_ATTRIBUTES = ("training_data_", "n_features_in_", "eigenvalues_", "embedding_")


class LocalTangentSpaceAlignment(TransformerMixin, BaseEstimator):
    """Local Tangent Space Alignment (Zhang & Zha, 2004).

    Each sample's neighborhood is approximated by its tangent plane, found by
    local PCA, and the local coordinates are aligned into one global
    embedding through the bottom of the spectrum of an alignment matrix.
    New samples are mapped through locally linear reconstruction weights
    against the training samples.

    Parameters
    ----------
    n_components : int, default=2
        Dimension of the embedding, in [1, n_features).
    n_neighbors : int, default=10
        Number of neighbors of each sample, in [n_components + 2, n_samples).
    eigen_solver : {"auto", "dense", "arpack"}, default="auto"
        Eigensolver of the alignment matrix. "auto" uses ARPACK on large
        inputs with few components and a dense solver otherwise.
    null_space_tol : float, default=1e-10
        Eigenvalues below `null_space_tol` times the spectral norm of the
        alignment matrix are null. Fitting fails when more than
        `n_components` null directions exist besides the constant vector, as
        the embedding is then not unique.
    arpack_tol : float, default=1e-6
        Convergence tolerance of ARPACK.
    max_iter : int, default=None
        Maximum number of ARPACK iterations.
    reg : float, default=1e-3
        Ridge of the out-of-sample reconstruction weights, relative to the
        trace of the local Gram matrix.
    n_jobs : int, default=None
        Number of joblib workers for the per-sample phases.
    random_state : int, RandomState instance or None, default=None
        Seeds the ARPACK starting vector.

    Attributes
    ----------
    embedding_ : ndarray of shape (n_samples, n_components)
        Embedding of the training samples, always two-dimensional.
    eigenvalues_ : ndarray of shape (n_components,)
        Alignment matrix eigenvalues of the embedding columns.
    training_data_ : ndarray of shape (n_samples, n_features)
        Copy of the training samples, searched by `transform`.
    n_features_in_ : int
        Number of features seen during fit.

    Notes
    -----
    A failed `fit` leaves the estimator unfitted, even when it was fitted
    before.
    """

    def __init__(
        self,
        n_components: int = 2,
        n_neighbors: int = 10,
        eigen_solver: EigenSolver = "auto",
        null_space_tol: float = DEFAULT_NULL_SPACE_TOL,
        arpack_tol: float = DEFAULT_ARPACK_TOL,
        max_iter: int | None = None,
        reg: float = DEFAULT_REG,
        n_jobs: int | None = N_JOBS,
        random_state: int | np.random.RandomState | None = None,
    ):
        self.n_components = n_components
        self.n_neighbors = n_neighbors
        self.eigen_solver = eigen_solver
        self.null_space_tol = null_space_tol
        self.arpack_tol = arpack_tol
        self.max_iter = max_iter
        self.reg = reg
        self.n_jobs = n_jobs
        self.random_state = random_state

    class Decorators:
        @staticmethod
        def _require_fitted(function: F) -> F:
            """Raises ModelNotFitted when the estimator has not been fitted."""

            @wraps(function)
            def wrapper(self: LocalTangentSpaceAlignment, *args: Any, **kwargs: Any) -> Any:
                try:
                    check_is_fitted(self, "embedding_")
                except NotFittedError as exc:
                    raise ModelNotFitted(
                        f"This {type(self).__name__} instance is not fitted yet,"
                        " call 'fit' before using it"
                    ) from exc

                return function(self, *args, **kwargs)

            return cast(F, wrapper)

        @staticmethod
        def _collapse_single_component(embedding_function: F) -> F:
            """Returns one-component embeddings as 1-D arrays."""

            @wraps(embedding_function)
            def wrapper(self: LocalTangentSpaceAlignment, *args: Any, **kwargs: Any) -> Any:
                embedding = embedding_function(self, *args, **kwargs)
                if self.n_components == 1:
                    return np.ascontiguousarray(embedding[:, 0])

                return embedding

            return cast(F, wrapper)

    @property
    @Decorators._require_fitted
    @Decorators._collapse_single_component
    def embedding(self) -> NDArray[np.float64]:
        """Embedding of the training samples, 1-D when `n_components == 1`."""
        return self.embedding_.copy()

    def _clear_fit(self) -> None:
        for attribute in FITTED_ATTRIBUTES:
            if hasattr(self, attribute):
                delattr(self, attribute)

    def _check_hyperparameters(self, n_samples: int, n_features: int) -> None:
        if not 1 <= self.n_components < n_features:
            raise InvalidComponentCount(
                f"Expected 1 <= n_components < {n_features} for {n_features} features,"
                f" got n_components={self.n_components}"
            )
        if not 1 <= self.n_neighbors < n_samples:
            raise InvalidNeighborCount(
                f"Expected 1 <= n_neighbors < {n_samples} for {n_samples} samples,"
                f" got n_neighbors={self.n_neighbors}"
            )
        # Local projectors I - G G^T vanish when a neighborhood has only n_components + 1 points
        if self.n_neighbors < self.n_components + 2:
            raise InvalidNeighborCount(
                f"n_neighbors must be at least n_components + 2 = {self.n_components + 2},"
                f" got n_neighbors={self.n_neighbors}"
            )

    def fit(self, X: ArrayLike, y: Any = None) -> Self:
        """Computes the embedding of X.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
            Training samples.
        y : Ignored

        Returns
        -------
        self : LocalTangentSpaceAlignment
            Fitted estimator.
        """
        self._clear_fit()
        samples = check_array(X, dtype=np.float64, copy=True)
        n_samples, n_features = samples.shape
        self._check_hyperparameters(n_samples, n_features)

        logger.info(
            f"Fitting LTSA with n_neighbors={self.n_neighbors} and"
            f" n_components={self.n_components} on {n_samples} samples of {n_features} features"
        )
        graph = build_neighbor_graph(samples, self.n_neighbors, n_jobs=self.n_jobs)
        tangent_spaces = estimate_tangent_spaces(
            samples, graph, self.n_components, n_jobs=self.n_jobs
        )
        alignment = assemble_alignment_matrix(graph, tangent_spaces)
        spectrum = solve_embedding(
            alignment,
            self.n_components,
            eigen_solver=self.eigen_solver,
            null_space_tol=self.null_space_tol,
            arpack_tol=self.arpack_tol,
            max_iter=self.max_iter,
            random_state=self.random_state,
        )

        self.training_data_ = samples
        self.n_features_in_ = n_features
        self.eigenvalues_ = spectrum.eigenvalues
        self.embedding_ = spectrum.embedding

        return self

    def fit_transform(self, X: ArrayLike, y: Any = None) -> NDArray[np.float64]:
        """Fits the model and returns the training embedding.

        Returns
        -------
        X_new : ndarray of shape (n_samples, n_components), or (n_samples,)
            when `n_components == 1`.
        """
        return self.fit(X).embedding

    @Decorators._require_fitted
    @Decorators._collapse_single_component
    def transform(self, X: ArrayLike) -> NDArray[np.float64]:
        """Maps new samples into the fitted embedding.

        Parameters
        ----------
        X : array-like of shape (n_queries, n_features)
            New samples.

        Returns
        -------
        X_new : ndarray of shape (n_queries, n_components), or (n_queries,)
            when `n_components == 1`.
        """
        samples = check_array(X, dtype=np.float64)
        if samples.shape[1] != self.n_features_in_:
            raise ValueError(
                f"X has {samples.shape[1]} features, but {type(self).__name__}"
                f" is expecting {self.n_features_in_} features as input"
            )

        logger.info(f"Projecting {samples.shape[0]} samples into the LTSA embedding")

        return project(
            samples,
            self.training_data_,
            self.embedding_,
            self.n_neighbors,
            reg=self.reg,
            n_jobs=self.n_jobs,
        )

    @Decorators._require_fitted
    def dump(self, path: str | PathLike[str]) -> None:
        """Saves the hyperparameters, training samples and embedding with joblib."""
        state = {
            "params": self.get_params(),
            "training_data": self.training_data_,
            "embedding": self.embedding_,
            "eigenvalues": self.eigenvalues_,
        }
        joblib.dump(state, path)
        logger.info(f"Saved fitted {type(self).__name__} to {path}")

    @classmethod
    def load(cls, path: str | PathLike[str]) -> Self:
        """Restores a fitted estimator saved with `dump`."""
        state = joblib.load(path)

        model = cls(**state["params"])
        model.training_data_ = state["training_data"]
        model.n_features_in_ = model.training_data_.shape[1]
        model.eigenvalues_ = state["eigenvalues"]
        model.embedding_ = state["embedding"]

        return model
