"""Local Tangent Space Alignment and its building blocks."""

from manifoldtoolbox.ltsa._alignment import AlignmentMatrix, assemble_alignment_matrix
from manifoldtoolbox.ltsa._ltsa import LocalTangentSpaceAlignment
from manifoldtoolbox.ltsa._neighbors import (
    NeighborGraph,
    build_neighbor_graph,
    query_neighbor_graph,
)
from manifoldtoolbox.ltsa._projection import project, reconstruction_weights
from manifoldtoolbox.ltsa._solver import EmbeddingSpectrum, solve_embedding
from manifoldtoolbox.ltsa._tangent import (
    LocalTangentSpace,
    estimate_tangent_space,
    estimate_tangent_spaces,
)

__all__ = [
    "AlignmentMatrix",
    "EmbeddingSpectrum",
    "LocalTangentSpace",
    "LocalTangentSpaceAlignment",
    "NeighborGraph",
    "assemble_alignment_matrix",
    "build_neighbor_graph",
    "estimate_tangent_space",
    "estimate_tangent_spaces",
    "project",
    "query_neighbor_graph",
    "reconstruction_weights",
    "solve_embedding",
]
