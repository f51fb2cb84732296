from __future__ import annotations

import logging
from abc import ABCMeta, abstractmethod
from collections.abc import Callable
from enum import Enum
from functools import wraps
from typing import Any, Self, TypeVar, cast

import numpy as np
import pandas as pd
from numpy.typing import ArrayLike, NDArray
from sklearn.preprocessing import StandardScaler

from manifoldtoolbox.base_model import BaseModel
from manifoldtoolbox.config import N_JOBS
from manifoldtoolbox.ltsa import LocalTangentSpaceAlignment

logger = logging.getLogger(__name__)


class ModelType(str, Enum):
    LTSA = "ltsa"


ID = TypeVar("ID", bound=ArrayLike | pd.DataFrame)
F = TypeVar("F", bound=Callable[..., Any])


def _to_frame(
    projected_data: NDArray[Any], projection_dimension: str, index: pd.Index | range
) -> pd.DataFrame | pd.Series:
    """Labels projected data, a one-dimensional projection becomes a Series."""
    if projected_data.ndim == 1:
        return pd.Series(projected_data, index=index, name=f"{projection_dimension} 1")

    return pd.DataFrame(
        projected_data,
        columns=[f"{projection_dimension} {i + 1}" for i in range(projected_data.shape[1])],
        index=index,
    )


def _index_of(data_matrix: Any, n_rows: int) -> pd.Index | range:
    return data_matrix.index if isinstance(data_matrix, pd.DataFrame) else range(n_rows)


class LatentSpace(BaseModel, metaclass=ABCMeta):
    latent_model_type: ModelType
    model: Any
    projection_dimension: str
    n_components: int | None = None
    standardize: bool
    standard_scaler: StandardScaler | None

    class Decorators:
        @staticmethod
        def _projected_data_to_df(data_projection_function: F) -> F:
            @wraps(data_projection_function)
            def wrapper(self: LatentSpace, data_matrix: ID, *args: Any, **kwargs: Any) -> Any:
                """Wraps the projected data in a DataFrame."""
                projected_data = data_projection_function(self, data_matrix, *args, **kwargs)

                return _to_frame(
                    projected_data,
                    self.projection_dimension,
                    _index_of(data_matrix, projected_data.shape[0]),
                )

            return cast(F, wrapper)

        @staticmethod
        def _fit_standardizer(fit_model_function: F) -> F:
            """Fit a standardizer to the data."""

            @wraps(fit_model_function)
            def wrapper(self: LatentSpace, data_matrix: ID, *args: Any, **kwargs: Any) -> Any:
                if self.standardize:
                    data_matrix = self.standard_scaler.fit_transform(data_matrix)  # type: ignore

                return fit_model_function(self, data_matrix, *args, **kwargs)

            return cast(F, wrapper)

        @staticmethod
        def _apply_standardizer(data_projection_function: F) -> F:
            """Apply a standardizer to the data."""

            @wraps(data_projection_function)
            def wrapper(self: LatentSpace, data_matrix: ID, *args: Any, **kwargs: Any) -> Any:
                if self.standardize:
                    data_matrix = self.standard_scaler.transform(data_matrix)  # type: ignore

                return data_projection_function(self, data_matrix, *args, **kwargs)

            return cast(F, wrapper)

    @abstractmethod
    def _fit(self, data_matrix: ID) -> Self: ...

    @Decorators._fit_standardizer
    def fit(self, data_matrix: ID) -> Self:
        return self._fit(data_matrix)

    @abstractmethod
    def _project_data(self, data_matrix: ID) -> NDArray[Any]: ...

    @Decorators._apply_standardizer
    @Decorators._projected_data_to_df
    def project_data(self, data_matrix: ID) -> pd.DataFrame | pd.Series:
        return self._project_data(data_matrix)

    def _fit_and_project_data(self, data_matrix: ID) -> NDArray[Any]:
        self._fit(data_matrix)

        return self._project_data(data_matrix)

    @Decorators._fit_standardizer
    @Decorators._projected_data_to_df
    def fit_and_project_data(self, data_matrix: ID) -> pd.DataFrame | pd.Series:
        """Fit a model and returns the projected data."""
        return self._fit_and_project_data(data_matrix)

    @classmethod
    @abstractmethod
    def initialize(cls, standardize: bool, n_components: int | None, **kwargs: Any) -> Self:
        # Standardized data keeps the index and columns of DataFrame inputs
        standard_scaler = StandardScaler().set_output(transform="pandas") if standardize else None
        return cls(
            n_components=n_components,
            standardize=standardize,
            standard_scaler=standard_scaler,
            **kwargs,
        )


class LTSALatentSpace(LatentSpace):
    latent_model_type: ModelType = ModelType.LTSA
    model: LocalTangentSpaceAlignment
    projection_dimension: str = "Dimension"
    n_components: int = 2
    _training_index: pd.Index | range | None = None

    @property
    def embedding(self) -> pd.DataFrame | pd.Series:
        """Embedding of the training data, labelled like `project_data` outputs."""
        embedding = self.model.embedding

        return _to_frame(embedding, self.projection_dimension, self._training_index)

    @property
    def eigenvalues(self) -> NDArray[np.float64]:
        return self.model.eigenvalues_

    def _fit(self, data_matrix: ID) -> Self:
        """Fit the model to the data_matrix."""
        self.model.fit(data_matrix)
        self._training_index = _index_of(data_matrix, self.model.embedding_.shape[0])

        return self

    def _project_data(self, data_matrix: ID) -> NDArray[Any]:
        """Projects data in the LTSA embedding."""
        return self.model.transform(data_matrix)

    def _fit_and_project_data(self, data_matrix: ID) -> NDArray[Any]:
        # The training embedding is exact, transforming the training data is not
        self._fit(data_matrix)

        return self.model.embedding

    @classmethod
    def initialize(
        cls,
        standardize: bool = False,
        n_components: int | None = 2,
        n_neighbors: int = 10,
        n_jobs: int | None = N_JOBS,
        **kwargs: Any,
    ) -> Self:
        model = LocalTangentSpaceAlignment(
            n_components=n_components, n_neighbors=n_neighbors, n_jobs=n_jobs, **kwargs
        )
        logger.debug(f"Initialized {model!r}")
        return super().initialize(
            n_components=n_components,
            standardize=standardize,
            model=model,
        )
