import numpy as np
import pytest


def make_swiss_sheet(n_samples: int, random_state: int) -> tuple[np.ndarray, np.ndarray]:
    """Samples three quarters of a swiss roll turn.

    Returns the (n_samples, 3) rolled samples and their (n_samples, 2) unrolled
    coordinates (arc length along the spiral, height).
    """
    rng = np.random.RandomState(random_state)
    t = 1.5 * np.pi * (1 + rng.rand(n_samples))
    height = 10 * rng.rand(n_samples)

    samples = np.column_stack([t * np.cos(t), height, t * np.sin(t)])
    arc_length = 0.5 * (t * np.sqrt(1 + t**2) + np.arcsinh(t))

    return samples, np.column_stack([arc_length, height])


@pytest.fixture(scope="session")
def swiss_sheet() -> tuple[np.ndarray, np.ndarray]:
    return make_swiss_sheet(200, random_state=0)


@pytest.fixture(scope="session")
def swiss_sheet_test() -> tuple[np.ndarray, np.ndarray]:
    return make_swiss_sheet(50, random_state=1)


def make_plane(
    n_samples: int, n_features: int, random_state: int
) -> tuple[np.ndarray, np.ndarray]:
    """Samples a square of side 10 lying on a random 2-D plane of R^n_features.

    Returns the (n_samples, n_features) samples and their (n_samples, 2)
    coordinates in the plane.
    """
    rng = np.random.RandomState(random_state)
    coordinates = 10 * rng.rand(n_samples, 2)
    frame = np.linalg.qr(rng.randn(n_features, 2))[0]

    return coordinates @ frame.T + rng.randn(n_features), coordinates


@pytest.fixture(scope="session")
def flat_sheet() -> tuple[np.ndarray, np.ndarray]:
    rng = np.random.RandomState(2)
    coordinates = 10 * rng.rand(200, 2)
    return np.column_stack([coordinates, np.zeros(200)]), coordinates


@pytest.fixture(scope="session")
def rotated_plane() -> tuple[np.ndarray, np.ndarray]:
    return make_plane(200, 5, random_state=3)
