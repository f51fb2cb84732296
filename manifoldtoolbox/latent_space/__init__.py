"""Latent Space methods for the analysis for multivariate datasets."""

from manifoldtoolbox.latent_space._latent_space import (
    LatentSpace,
    LTSALatentSpace,
    ModelType,
)

__all__ = [
    "LatentSpace",
    "LTSALatentSpace",
    "ModelType",
]
