"""Shared fixtures for the causal survival forest tests."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from csf import DataView, ForestOptions, IntCfg, example_data


@pytest.fixture(scope="session")
def survival_data() -> tuple[pd.DataFrame, pd.DataFrame, dict]:
    """Small simulated training and prediction data (heterogeneous effect)."""
    return example_data(obs_train=300, obs_pred=50, no_features=3, seed=2024)


@pytest.fixture(scope="session")
def train_view(survival_data) -> DataView:
    """Data view on the simulated training data."""
    train_df, _, names = survival_data
    return DataView.from_dataframe(
        train_df,
        x_name=names["x_name"],
        d_name=names["d_name"],
        censor_name=names["censor_name"],
        numerator_name=names["numerator_name"],
        denominator_name=names["denominator_name"],
    )


@pytest.fixture(scope="session")
def test_view(survival_data) -> DataView:
    """Data view on the simulated prediction data (features only)."""
    _, pred_df, names = survival_data
    return DataView.from_dataframe(pred_df, x_name=names["x_name"])


@pytest.fixture
def small_options() -> ForestOptions:
    """Fast forest options (sequential)."""
    return ForestOptions(num_trees=20, ci_group_size=2, min_node_size=5, num_threads=1, random_seed=7)


@pytest.fixture
def thread_cfg() -> IntCfg:
    """Internal parameters using the thread pool instead of ray."""
    return IntCfg(mp_with_ray=False)


def make_step_matrix(extra_rows: int = 0) -> np.ndarray:
    """Observation matrix with an obvious split of x0 at 9.

    Columns: x0, x1, treatment, censor, numerator, denominator. Rows 0..19
    have x0 = 0..19, alternating treatment, all events, unit denominators
    and numerators 0 (x0 <= 9) or 1 (x0 >= 10). Extra rows have x0 in 0..4.
    """
    x0 = np.arange(20, dtype=float)
    rows = np.column_stack((
        x0,
        np.zeros(20),
        np.arange(20) % 2,
        np.ones(20),
        (x0 >= 10).astype(float),
        np.ones(20),
    ))
    if extra_rows:
        x_extra = np.arange(extra_rows, dtype=float) % 5
        extra = np.column_stack((
            x_extra,
            np.zeros(extra_rows),
            np.arange(extra_rows) % 2,
            np.ones(extra_rows),
            np.zeros(extra_rows),
            np.ones(extra_rows),
        ))
        rows = np.vstack((rows, extra))
    return rows


@pytest.fixture
def step_matrix() -> np.ndarray:
    """Step matrix with 10 extra rows at small x0."""
    return make_step_matrix(extra_rows=10)


@pytest.fixture
def step_view(step_matrix) -> DataView:
    """Data view on the step matrix."""
    return DataView(
        step_matrix,
        treatment_index=2,
        censor_index=3,
        numerator_index=4,
        denominator_index=5,
    )
