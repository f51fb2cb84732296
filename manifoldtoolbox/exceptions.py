"""Exceptions raised by manifoldtoolbox."""

from sklearn.exceptions import NotFittedError


class ManifoldToolboxError(Exception):
    """Base class of the package errors."""


class ModelFittingFailure(ManifoldToolboxError):
    """A model could not be fitted on the data."""


class InvalidNeighborCount(ManifoldToolboxError, ValueError):
    """The number of neighbors is out of range for the number of points."""


class InvalidComponentCount(ManifoldToolboxError, ValueError):
    """The embedding dimension is < 1 or >= the ambient dimension."""


class DegenerateNeighborhood(ModelFittingFailure):
    """A neighborhood collapses to a single point, its tangent space is undefined."""


class InsufficientSpectrum(ModelFittingFailure):
    """The alignment matrix lacks enough non-trivial eigenvectors."""


class ModelNotFitted(ManifoldToolboxError, NotFittedError):
    """The model is used before being fitted."""
