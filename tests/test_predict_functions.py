"""Tests for prediction, variance and out-of-bag estimates."""

from __future__ import annotations

import dataclasses

import numpy as np
import pandas as pd
import pytest
from pytest_check import check

from csf import (
    ConfigurationError,
    DataView,
    ForestOptions,
    IntCfg,
    Prediction,
    point_estimate,
    predict,
    predict_oob,
    train,
)
from csf import csf_predict_functions as csf_pred


@pytest.fixture(scope="module")
def small_forest(train_view):
    """Forest of 20 trees in groups of two."""
    return train(train_view, ForestOptions(num_trees=20, ci_group_size=2, num_threads=1, random_seed=7))


def leaf_arrays(n_rows: int = 4, n_trees: int = 6, ratio: float = 1.5, seed: int = 0):
    """Leaf values with num = ratio * den for every tree."""
    rng = np.random.default_rng(seed)
    den_leaf = rng.uniform(0.5, 1.5, size=(n_rows, n_trees))
    return ratio * den_leaf, den_leaf, np.ones((n_rows, n_trees), dtype=bool)


class TestPointEstimate:
    """Tests for point_estimate."""

    @pytest.mark.parametrize(
        ("average", "expected"),
        [((2.5, 1.0), 2.5), ((-1.2, 1.0), -1.2), ((3.0, 2.0), 1.5), ((10.0, 1.0), 10.0)],
    )
    def test_ratio(self, average: tuple[float, float], expected: float) -> None:
        """Given averages, When estimated, Then numerator divided by denominator is returned."""
        assert point_estimate(average) == pytest.approx(expected)

    def test_zero_denominator(self) -> None:
        """Given denominator 0, When estimated, Then NaN."""
        assert np.isnan(point_estimate((1.0, 0.0)))

    def test_prediction_available(self) -> None:
        """Given NaN estimate, When checked, Then prediction is not available."""
        with check:
            assert Prediction(estimate=float("nan")).available is False
        with check:
            assert Prediction(estimate=0.3).available is True


class TestAggregateLeafValues:
    """Tests for aggregate_leaf_values."""

    def test_constant_ratio(self) -> None:
        """Given num = 1.5 * den in every leaf, When aggregated, Then estimate 1.5 and no variance."""
        num_leaf, den_leaf, valid = leaf_arrays()

        estimates, variances, errors, counts = csf_pred.aggregate_leaf_values(
            num_leaf, den_leaf, valid, 2, estimate_variance=True, estimate_error=True
        )

        with check:
            assert estimates == pytest.approx(np.full(4, 1.5))
        with check:
            assert variances == pytest.approx(np.zeros(4), abs=1e-12)
        with check:
            assert errors == pytest.approx(np.zeros(4), abs=1e-12)
        with check:
            assert counts.tolist() == [6, 6, 6, 6]

    def test_variance_not_requested(self) -> None:
        """Given variance and error not requested, When aggregated, Then both are None."""
        _, variances, errors, _ = csf_pred.aggregate_leaf_values(*leaf_arrays(), 2)

        with check:
            assert variances is None
        with check:
            assert errors is None

    def test_group_size_one_has_no_variance(self) -> None:
        """Given ci_group_size 1, When variance requested, Then None."""
        _, variances, _, _ = csf_pred.aggregate_leaf_values(*leaf_arrays(), 1, estimate_variance=True)

        assert variances is None

    def test_no_contributing_tree(self) -> None:
        """Given a row without valid trees, When aggregated, Then NaN with count 0."""
        num_leaf, den_leaf, valid = leaf_arrays()
        valid[1] = False

        estimates, variances, _, counts = csf_pred.aggregate_leaf_values(
            num_leaf, den_leaf, valid, 2, estimate_variance=True
        )

        with check:
            assert np.isnan(estimates[1]) and np.isnan(variances[1])
        with check:
            assert counts[1] == 0
        with check:
            assert not np.isnan(estimates[0])

    def test_zero_denominators(self) -> None:
        """Given zero denominators, When aggregated, Then estimate and variance are NaN."""
        num_leaf, _, valid = leaf_arrays()
        den_leaf = np.zeros_like(num_leaf)

        estimates, variances, _, _ = csf_pred.aggregate_leaf_values(
            num_leaf, den_leaf, valid, 2, estimate_variance=True
        )

        with check:
            assert np.all(np.isnan(estimates))
        with check:
            assert np.all(np.isnan(variances))

    def test_variance_nonnegative(self) -> None:
        """Given noisy leaf values, When aggregated, Then variances and errors are not negative."""
        rng = np.random.default_rng(3)
        num_leaf = rng.normal(size=(20, 40))
        den_leaf = rng.uniform(0.5, 1.5, size=(20, 40))
        valid = rng.uniform(size=(20, 40)) > 0.1

        _, variances, errors, _ = csf_pred.aggregate_leaf_values(
            num_leaf, den_leaf, valid, 4, estimate_variance=True, estimate_error=True
        )

        with check:
            assert np.all(variances[~np.isnan(variances)] >= 0)
        with check:
            assert np.all(errors[~np.isnan(errors)] >= 0)

    def test_incomplete_groups_ignored(self) -> None:
        """Given each group missing one tree, When variance computed, Then it is NaN."""
        num_leaf, den_leaf, valid = leaf_arrays(n_rows=1, n_trees=4)
        valid[0, [0, 2]] = False

        estimates, variances, _, _ = csf_pred.aggregate_leaf_values(
            num_leaf, den_leaf, valid, 2, estimate_variance=True
        )

        with check:
            assert estimates[0] == pytest.approx(1.5)
        with check:
            assert np.isnan(variances[0])


class TestDebiasVariance:
    """Tests for debias_variance."""

    def test_positive_naive_estimate_is_increased(self) -> None:
        """Given between variance above noise, When debiased, Then result exceeds the naive estimate."""
        assert csf_pred.debias_variance(1.0, 0.0, 10) > 1.0

    def test_negative_naive_estimate_becomes_positive(self) -> None:
        """Given noise above between variance, When debiased, Then result is positive."""
        assert csf_pred.debias_variance(0.1, 0.5, 10) > 0.0

    def test_no_variation(self) -> None:
        """Given no variation at all, When debiased, Then zero."""
        assert csf_pred.debias_variance(0.0, 0.0, 5) == 0.0


class TestPredict:
    """Tests for predict and predict_oob with a trained forest."""

    def test_all_trees_contribute(self, small_forest, train_view, test_view) -> None:
        """Given a pruned forest, When new rows are predicted, Then every tree contributes."""
        predictions = predict(small_forest, train_view, test_view, estimate_variance=True)

        with check:
            assert len(predictions) == test_view.num_rows
        with check:
            assert all(pred.num_trees == 20 for pred in predictions)
        with check:
            assert all(pred.variance is None or pred.variance >= 0 for pred in predictions)

    def test_without_variance(self, small_forest, train_view, test_view) -> None:
        """Given no variance requested, When predicted, Then variance is None."""
        predictions = predict(small_forest, train_view, test_view)

        assert all(pred.variance is None for pred in predictions)

    def test_error_estimate(self, small_forest, train_view, test_view) -> None:
        """Given error requested, When predicted, Then errors are not negative."""
        predictions = predict(small_forest, train_view, test_view, estimate_error=True)

        assert all(pred.error is None or pred.error >= 0 for pred in predictions)

    def test_constant_ratio_predicted_exactly(self, survival_data, test_view) -> None:
        """Given numerator = 1.7 * denominator on every row, When trained and predicted, Then every estimate is 1.7."""
        train_df, _, names = survival_data
        data_df = train_df.assign(**{names["numerator_name"]: 1.7 * train_df[names["denominator_name"]]})
        train_data = DataView.from_dataframe(
            data_df,
            x_name=names["x_name"],
            d_name=names["d_name"],
            censor_name=names["censor_name"],
            numerator_name=names["numerator_name"],
            denominator_name=names["denominator_name"],
        )
        forest = train(train_data, ForestOptions(num_trees=10, num_threads=1, random_seed=5))

        predictions = predict(forest, train_data, test_view, estimate_variance=True)

        with check:
            assert [pred.estimate for pred in predictions] == pytest.approx([1.7] * test_view.num_rows)
        with check:
            assert all(pred.variance is None or pred.variance == pytest.approx(0.0, abs=1e-12)
                       for pred in predictions)

    def test_feature_mismatch(self, small_forest, train_view) -> None:
        """Given test data with two features, When predicted, Then ConfigurationError."""
        with pytest.raises(ConfigurationError):
            predict(small_forest, train_view, DataView(np.ones((5, 2))))

    def test_wrong_training_data(self, small_forest, test_view) -> None:
        """Given other training data, When predicted, Then ConfigurationError."""
        with pytest.raises(ConfigurationError):
            predict(small_forest, test_view, test_view)

    def test_threads_do_not_change_predictions(self, small_forest, train_view, test_view) -> None:
        """Given 4 threads and small chunks, When predicted, Then results equal sequential ones."""
        int_cfg = IntCfg(mp_with_ray=False, trees_per_predict_chunk=3)

        sequential = predict(small_forest, train_view, test_view, True, num_threads=1)
        threaded = predict(small_forest, train_view, test_view, True, num_threads=4, int_cfg=int_cfg)

        np.testing.assert_array_equal([p.estimate for p in sequential], [p.estimate for p in threaded])

    def test_oob_uses_oob_trees_only(self, small_forest, train_view) -> None:
        """Given OOB prediction, When counted, Then each row uses the trees it is out-of-bag for."""
        oob_counts = small_forest.oob_counts()

        predictions = predict_oob(small_forest, train_view, True)

        with check:
            assert [pred.num_trees for pred in predictions] == oob_counts.tolist()
        with check:
            assert all(not pred.available for pred, cnt in zip(predictions, oob_counts) if cnt == 0)

    def test_oob_without_oob_rows(self, train_view) -> None:
        """Given sample_fraction 1, When OOB predicted, Then no prediction is available."""
        forest = train(train_view, ForestOptions(num_trees=4, sample_fraction=1.0, num_threads=1))

        predictions = predict_oob(forest, train_view)

        assert not any(pred.available for pred in predictions)

    def test_more_trees_less_monte_carlo_noise(self, train_view, test_view) -> None:
        """Given 20 and 200 trees over seeds, When predicted, Then 200 trees vary less across seeds."""
        def spread(num_trees: int) -> float:
            estimates = []
            for seed in range(4):
                options = ForestOptions(num_trees=num_trees, num_threads=1, random_seed=seed)
                forest = train(train_view, options)
                estimates.append([pred.estimate for pred in predict(forest, train_view, test_view)])
            return float(np.nanmean(np.nanstd(np.array(estimates), axis=0)))

        assert spread(200) < spread(20)


class TestPredictionsToDataFrame:
    """Tests for predictions_to_dataframe."""

    def test_columns_and_index(self) -> None:
        """Given predictions, When collected, Then columns and index are set and None becomes NaN."""
        predictions = [Prediction(estimate=0.5, variance=0.1, num_trees=4), Prediction(estimate=float("nan"))]

        results_df = csf_pred.predictions_to_dataframe(predictions, index=pd.Index([10, 11]))

        with check:
            assert list(results_df.columns) == ["estimate", "variance", "error", "num_trees", "available"]
        with check:
            assert results_df.index.tolist() == [10, 11]
        with check:
            assert np.isnan(results_df.loc[11, "variance"])
        with check:
            assert results_df["available"].tolist() == [True, False]


def test_prediction_is_frozen() -> None:
    """Given a prediction, When modified, Then FrozenInstanceError."""
    with pytest.raises(dataclasses.FrozenInstanceError):
        Prediction(estimate=1.0).estimate = 2.0  # type: ignore[misc]
