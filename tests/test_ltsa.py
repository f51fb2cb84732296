import logging

import numpy as np
import pandas as pd
import pytest
from scipy.linalg import subspace_angles
from scipy.stats import zscore
from sklearn.base import clone
from sklearn.exceptions import NotFittedError

from manifoldtoolbox.comp_stats import align_signs, embedding_covariance, pairwise_distance_correlation
from manifoldtoolbox.exceptions import (
    InsufficientSpectrum,
    InvalidComponentCount,
    InvalidNeighborCount,
    ModelNotFitted,
)
from manifoldtoolbox.ltsa import LocalTangentSpaceAlignment


@pytest.fixture(scope="module")
def fitted_ltsa(swiss_sheet):
    samples, _ = swiss_sheet
    ltsa = LocalTangentSpaceAlignment(n_components=2, n_neighbors=20)
    embedding = ltsa.fit_transform(samples)
    return ltsa, embedding


class TestShapes:
    def test_multi_dimensional_embedding(self, fitted_ltsa, swiss_sheet_test):
        ltsa, embedding = fitted_ltsa
        test_samples, _ = swiss_sheet_test
        projected = ltsa.transform(test_samples)
        for result, n_rows in [(embedding, 200), (projected, 50), (ltsa.embedding, 200)]:
            assert isinstance(result, np.ndarray)
            assert result.dtype == np.float64
            assert result.flags["C_CONTIGUOUS"]
            assert result.shape == (n_rows, 2)

    def test_one_dimensional_embedding(self, swiss_sheet, swiss_sheet_test):
        samples, _ = swiss_sheet
        test_samples, _ = swiss_sheet_test
        ltsa = LocalTangentSpaceAlignment(n_components=1, n_neighbors=20)
        embedding = ltsa.fit_transform(samples)
        projected = ltsa.transform(test_samples)
        for result, n_rows in [(embedding, 200), (projected, 50), (ltsa.embedding, 200)]:
            assert result.ndim == 1
            assert result.flags["C_CONTIGUOUS"]
            assert result.shape == (n_rows,)
        assert ltsa.embedding_.shape == (200, 1)

    def test_embedding_matches_fit_transform(self, fitted_ltsa):
        ltsa, embedding = fitted_ltsa
        assert np.array_equal(ltsa.embedding, embedding)
        assert ltsa.n_components == 2
        assert ltsa.n_neighbors == 20
        assert ltsa.n_features_in_ == 3

    def test_embedding_is_a_copy(self, fitted_ltsa):
        ltsa, _ = fitted_ltsa
        ltsa.embedding[0, 0] = 1e6
        assert ltsa.embedding_[0, 0] != 1e6


class TestEmbeddingQuality:
    def test_uncorrelated_columns(self, fitted_ltsa):
        _, embedding = fitted_ltsa
        covariance = embedding_covariance(embedding)
        assert np.isclose(covariance[0, 1], 0.0, atol=1e-10)
        assert np.all(np.diag(covariance) > 0)

    def test_swiss_sheet_is_unrolled(self, fitted_ltsa, swiss_sheet):
        _, embedding = fitted_ltsa
        _, intrinsic = swiss_sheet
        assert pairwise_distance_correlation(embedding, zscore(intrinsic)) > 0.9

    def test_training_samples_are_reproduced(self, fitted_ltsa, swiss_sheet):
        ltsa, embedding = fitted_ltsa
        samples, _ = swiss_sheet
        reprojected = ltsa.transform(samples)
        assert np.linalg.norm(reprojected - embedding) / np.linalg.norm(embedding) < 1e-2

    @pytest.mark.parametrize("plane, n_neighbors", [("flat_sheet", 20), ("rotated_plane", 15)])
    def test_flat_manifold_is_recovered(self, plane, n_neighbors, request):
        samples, coordinates = request.getfixturevalue(plane)
        embedding = LocalTangentSpaceAlignment(
            n_components=2, n_neighbors=n_neighbors
        ).fit_transform(samples)
        assert pairwise_distance_correlation(embedding, zscore(coordinates)) > 0.9
        assert np.max(subspace_angles(embedding, coordinates - coordinates.mean(axis=0))) < 1e-6

    def test_new_samples_follow_the_manifold(self, fitted_ltsa, swiss_sheet_test):
        ltsa, _ = fitted_ltsa
        test_samples, test_intrinsic = swiss_sheet_test
        projected = ltsa.transform(test_samples)
        assert pairwise_distance_correlation(projected, zscore(test_intrinsic)) > 0.85

    def test_deterministic_fit(self, fitted_ltsa, swiss_sheet):
        _, embedding = fitted_ltsa
        samples, _ = swiss_sheet
        refitted = LocalTangentSpaceAlignment(n_components=2, n_neighbors=20).fit_transform(samples)
        assert np.allclose(align_signs(refitted, embedding), embedding)

    def test_arpack_solver(self, fitted_ltsa, swiss_sheet):
        _, embedding = fitted_ltsa
        samples, _ = swiss_sheet
        arpack_embedding = LocalTangentSpaceAlignment(
            n_components=2, n_neighbors=20, eigen_solver="arpack", arpack_tol=0.0, random_state=0
        ).fit_transform(samples)
        assert np.max(subspace_angles(arpack_embedding, embedding)) < 1e-4

    def test_dataframe_input(self, fitted_ltsa, swiss_sheet):
        _, embedding = fitted_ltsa
        samples, _ = swiss_sheet
        frame = pd.DataFrame(samples, columns=["x", "height", "z"])
        frame_embedding = LocalTangentSpaceAlignment(n_components=2, n_neighbors=20).fit_transform(
            frame
        )
        assert np.allclose(frame_embedding, embedding)


class TestErrors:
    samples = np.random.RandomState(0).rand(10, 3)

    @pytest.mark.parametrize("n_neighbors", [10, 11, 0])
    def test_invalid_neighbor_count(self, n_neighbors):
        with pytest.raises(InvalidNeighborCount):
            LocalTangentSpaceAlignment(n_neighbors=n_neighbors).fit(self.samples)

    def test_neighborhood_smaller_than_local_frame(self):
        with pytest.raises(InvalidNeighborCount) as excinfo:
            LocalTangentSpaceAlignment(n_components=2, n_neighbors=3).fit(self.samples)
        assert "n_neighbors must be at least n_components + 2 = 4" in str(excinfo.value)

    @pytest.mark.parametrize("n_components", [3, 4, 0])
    def test_invalid_component_count(self, n_components):
        with pytest.raises(InvalidComponentCount):
            LocalTangentSpaceAlignment(n_components=n_components, n_neighbors=5).fit(self.samples)

    def test_not_fitted(self):
        ltsa = LocalTangentSpaceAlignment()
        with pytest.raises(ModelNotFitted):
            ltsa.transform(self.samples)
        with pytest.raises(NotFittedError):
            ltsa.embedding

    def test_failed_fit_leaves_model_unfitted(self):
        ltsa = LocalTangentSpaceAlignment(n_neighbors=5, null_space_tol=1.0)
        with pytest.raises(InsufficientSpectrum):
            ltsa.fit(self.samples)
        with pytest.raises(ModelNotFitted):
            ltsa.transform(self.samples)

    def test_failed_refit_clears_previous_fit(self, swiss_sheet):
        samples, _ = swiss_sheet
        ltsa = LocalTangentSpaceAlignment(n_components=2, n_neighbors=20).fit(samples)
        ltsa.set_params(null_space_tol=1.0)
        with pytest.raises(InsufficientSpectrum):
            ltsa.fit(samples)
        assert not hasattr(ltsa, "embedding_")
        assert not hasattr(ltsa, "training_data_")
        with pytest.raises(ModelNotFitted):
            ltsa.transform(samples)

    def test_feature_count_mismatch(self, fitted_ltsa):
        ltsa, _ = fitted_ltsa
        with pytest.raises(ValueError) as excinfo:
            ltsa.transform(np.ones((2, 4)))
        assert "X has 4 features, but LocalTangentSpaceAlignment is expecting 3" in str(
            excinfo.value
        )


class TestEstimatorApi:
    def test_clone(self, fitted_ltsa):
        ltsa, _ = fitted_ltsa
        cloned = clone(ltsa)
        assert cloned.get_params() == ltsa.get_params()
        assert not hasattr(cloned, "embedding_")

    def test_dump_and_load(self, fitted_ltsa, swiss_sheet_test, tmp_path):
        ltsa, embedding = fitted_ltsa
        test_samples, _ = swiss_sheet_test
        path = tmp_path / "ltsa.joblib"
        ltsa.dump(path)

        loaded = LocalTangentSpaceAlignment.load(path)
        assert loaded.get_params() == ltsa.get_params()
        assert np.array_equal(loaded.embedding, embedding)
        assert np.allclose(loaded.transform(test_samples), ltsa.transform(test_samples))

    def test_dump_requires_fit(self, tmp_path):
        with pytest.raises(ModelNotFitted):
            LocalTangentSpaceAlignment().dump(tmp_path / "ltsa.joblib")

    def test_fit_is_logged(self, swiss_sheet, caplog):
        samples, _ = swiss_sheet
        with caplog.at_level(logging.INFO):
            LocalTangentSpaceAlignment(n_components=2, n_neighbors=20).fit(samples)
        assert (
            "Fitting LTSA with n_neighbors=20 and n_components=2 on 200 samples of 3 features"
            in caplog.text
        )
