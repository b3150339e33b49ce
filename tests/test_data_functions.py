"""Tests for the read-only DataView."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest
from pytest_check import check

from csf import ConfigurationError, DataView


@pytest.fixture
def matrix() -> np.ndarray:
    """Columns: x0, x1, treatment, censor, numerator, denominator, weight."""
    return np.array([
        [0.1, 1.0, 0.0, 1.0, 2.0, 1.0, 1.0],
        [0.2, 2.0, 1.0, 0.0, -1.0, 0.5, 2.0],
        [0.3, 3.0, 1.0, 1.0, 4.0, 2.0, 1.0],
    ])


@pytest.fixture
def view(matrix) -> DataView:
    """View with all roles except cluster."""
    return DataView(
        matrix,
        treatment_index=2,
        censor_index=3,
        numerator_index=4,
        denominator_index=5,
        weight_index=6,
    )


class TestDataViewConstruction:
    """Tests for constructing DataView objects."""

    def test_features_default_to_columns_without_role(self, view) -> None:
        """Given roles for five columns, When created, Then the two others are features."""
        with check:
            assert view.num_rows == 3
        with check:
            assert view.num_cols == 7
        with check:
            assert view.feature_indices.tolist() == [0, 1]
        with check:
            assert view.feature_names == ("x0", "x1")

    def test_instrument_defaults_to_treatment(self, view) -> None:
        """Given no instrument, When created, Then instrument uses the treatment column."""
        assert view.role_index("instrument") == 2

    def test_data_is_copied_and_read_only(self, matrix, view) -> None:
        """Given a view, When source changes or view is written, Then view is unchanged or raises."""
        matrix[0, 0] = 99.0

        with check:
            assert view.get(0, 0) == pytest.approx(0.1)
        with pytest.raises(ValueError):
            view.values[0, 0] = 1.0

    def test_from_flat(self) -> None:
        """Given a row-major buffer, When created from flat, Then cells are at the right place."""
        buffer = [1.0, 0.0, 1.0, 2.0, 1.0,
                  2.0, 1.0, 1.0, 3.0, 2.0]

        view = DataView.from_flat(buffer, 2, 5, treatment_index=1, censor_index=2,
                                  numerator_index=3, denominator_index=4)

        with check:
            assert view.get(1, 3) == 3.0
        with check:
            assert view.num_features == 1
        with check:
            assert view.causal_survival_denominator(1) == 2.0

    def test_from_flat_size_mismatch(self) -> None:
        """Given a buffer of wrong size, When created from flat, Then ConfigurationError."""
        with pytest.raises(ConfigurationError):
            DataView.from_flat([1.0, 2.0, 3.0], 2, 2)

    def test_from_dataframe(self) -> None:
        """Given a DataFrame, When created by names, Then only named columns are used."""
        data_df = pd.DataFrame({
            "age": [50.0, 60.0],
            "other": [1.0, 2.0],
            "treat": [0.0, 1.0],
            "event": [1.0, 1.0],
            "num": [0.5, 0.7],
            "den": [0.25, 0.25],
        })

        view = DataView.from_dataframe(data_df, x_name=["age"], d_name="treat", censor_name="event",
                                       numerator_name="num", denominator_name="den")

        with check:
            assert view.num_cols == 5
        with check:
            assert view.feature_names == ("age",)
        with check:
            assert view.numerators().tolist() == [0.5, 0.7]
        with check:
            assert view.treatments().tolist() == [0.0, 1.0]

    def test_from_dataframe_missing_name(self) -> None:
        """Given an unknown variable name, When created, Then ConfigurationError lists it."""
        data_df = pd.DataFrame({"a": [1.0], "b": [2.0]})

        with pytest.raises(ConfigurationError, match="zzz"):
            DataView.from_dataframe(data_df, x_name=["a"], d_name="zzz")


class TestDataViewValidation:
    """Tests for role validation."""

    def test_index_out_of_bounds(self, matrix) -> None:
        """Given a role index beyond the columns, When created, Then ConfigurationError."""
        with pytest.raises(ConfigurationError) as excinfo:
            DataView(matrix, treatment_index=7)

        assert excinfo.value.parameter == "treatment"

    def test_numerator_without_denominator(self, matrix) -> None:
        """Given only a numerator, When created, Then ConfigurationError."""
        with pytest.raises(ConfigurationError, match="together"):
            DataView(matrix, numerator_index=4)

    def test_shared_column(self, matrix) -> None:
        """Given censor and treatment on the same column, When created, Then ConfigurationError."""
        with pytest.raises(ConfigurationError, match="share"):
            DataView(matrix, treatment_index=2, censor_index=2)

    def test_instrument_may_equal_treatment(self, matrix) -> None:
        """Given instrument on the treatment column, When created, Then no error."""
        view = DataView(matrix, treatment_index=2, instrument_index=2)

        assert view.role_index("instrument") == 2

    def test_feature_with_role(self, matrix) -> None:
        """Given a feature column that is also the treatment, When created, Then ConfigurationError."""
        with pytest.raises(ConfigurationError):
            DataView(matrix, treatment_index=2, feature_indices=[0, 2])

    def test_not_two_dimensional(self) -> None:
        """Given a vector, When created, Then ConfigurationError."""
        with pytest.raises(ConfigurationError):
            DataView(np.arange(3.0))

    def test_training_roles_required(self, matrix) -> None:
        """Given no censor column, When roles are checked for training, Then ConfigurationError."""
        view = DataView(matrix, treatment_index=2, numerator_index=4, denominator_index=5)

        with pytest.raises(ConfigurationError, match="censor"):
            view.require_training_roles()


class TestDataViewAccess:
    """Tests for scalar and vectorised access."""

    def test_scalar_access(self, view) -> None:
        """Given a view, When numerator and denominator of a row are read, Then values match."""
        with check:
            assert view.causal_survival_numerator(2) == 4.0
        with check:
            assert view.causal_survival_denominator(1) == 0.5
        with check:
            assert view.get(1, 1) == 2.0

    def test_features_for_rows(self, view) -> None:
        """Given row subset, When features are read, Then only these rows and feature columns are returned."""
        features = view.features(np.array([2, 0]))

        assert features.tolist() == [[0.3, 3.0], [0.1, 1.0]]

    def test_weights_default_to_one(self, matrix) -> None:
        """Given no weight column, When weights are read, Then they are ones."""
        view = DataView(matrix, treatment_index=2)

        with check:
            assert view.weights().tolist() == [1.0, 1.0, 1.0]
        with check:
            assert view.clusters() is None

    def test_missing_role_column(self, matrix) -> None:
        """Given no numerator role, When numerators are read, Then ConfigurationError."""
        view = DataView(matrix, treatment_index=2)

        with pytest.raises(ConfigurationError):
            view.numerators()

    def test_unknown_role(self, view) -> None:
        """Given an unknown role name, When looked up, Then KeyError."""
        with pytest.raises(KeyError):
            view.role_index("outcome")
