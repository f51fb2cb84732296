"""
ManifoldToolbox

A collection of methods for nonlinear dimensionality reduction.


This package is organized as follows:

Subpackages:

- :mod:`~manifoldtoolbox.ltsa`
    Local Tangent Space Alignment: neighbor graphs, local tangent spaces,
    alignment matrix, spectral embedding and out-of-sample projection.

- :mod:`~manifoldtoolbox.latent_space`
    A framework for exploring the latent dimensions of multivariate datasets.


Modules:

- :mod:`~manifoldtoolbox.comp_stats`
    Statistics assessing the quality of embeddings.

- :mod:`~manifoldtoolbox.config`
    Package-wide defaults.

- :mod:`~manifoldtoolbox.exceptions`
    Errors raised by the package.

"""

__all__ = [
    "comp_stats",
    "config",
    "exceptions",
    "latent_space",
    "ltsa",
]
