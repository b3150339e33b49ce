"""
Contains the functions for prediction, variance and out-of-bag estimates.

Created on Mon Oct 19 13:21:14 2026
# -*- coding: utf-8 -*-
"""
from concurrent import futures
from dataclasses import dataclass
from time import time
from typing import Any

import numpy as np
from numpy.typing import NDArray
from pandas import DataFrame
import ray
from scipy.stats import norm

from csf import csf_general_sys as csf_sys
from csf import csf_print_stats_functions as csf_ps
from csf.csf_data_functions import DataView
from csf.csf_exceptions import ConfigurationError
from csf.csf_forest_asdict_functions import CausalSurvivalTree
from csf.csf_forest_functions import Forest
from csf.csf_init_functions import GenCfg, IntCfg, quiet_gen_cfg


@dataclass(frozen=True, slots=True)
class Prediction:
    """Prediction for one row.

    estimate is NaN if no tree contributed or the average denominator is 0.
    variance is None if it was not requested, ci_group_size < 2 or no group
    of trees contributed completely. error is the Monte Carlo error of the
    estimate due to the finite number of trees (if requested).
    """

    estimate: float
    variance: float | None = None
    error: float | None = None
    num_trees: int = 0

    @property
    def available(self) -> bool:
        return not np.isnan(self.estimate)


def point_estimate(average: tuple[float, float] | NDArray[Any]) -> float:
    """Ratio of average numerator and average denominator (NaN if 0)."""
    if average[1] == 0:
        return float('nan')
    return float(average[0] / average[1])


def predict(forest: Forest,
            train_data: DataView,
            test_data: DataView,
            estimate_variance: bool = False,
            *,
            estimate_error: bool = False,
            num_threads: int | None = None,
            gen_cfg: GenCfg | None = None,
            int_cfg: IntCfg | None = None,
            ) -> list[Prediction]:
    """Predict causal survival effects for the rows of test_data.

    Parameters
    ----------
    forest : Forest. Trained forest.
    train_data : DataView. Data the forest was trained with.
    test_data : DataView. Rows to predict (same features as training).
    estimate_variance : Bool. Compute variance of estimates. Default False.
    estimate_error : Bool. Compute Monte Carlo error. Default False.
    num_threads : Int or None. Workers. None: as in forest options.
    gen_cfg, int_cfg : Output and internal parameters. None: defaults.

    Returns
    -------
    predictions : List of Prediction, one per row of test_data.
    """
    check_train_data(forest, train_data)
    if test_data.num_features != forest.num_features:
        raise ConfigurationError(
            f'Test data has {test_data.num_features} features, forest was '
            f'trained with {forest.num_features}.', parameter='test_data',
            value=test_data.num_features)
    return predict_rows(forest, test_data.features(), False,
                        estimate_variance, estimate_error, num_threads,
                        gen_cfg, int_cfg, title='Prediction')


def predict_oob(forest: Forest,
                train_data: DataView,
                estimate_variance: bool = False,
                *,
                estimate_error: bool = False,
                num_threads: int | None = None,
                gen_cfg: GenCfg | None = None,
                int_cfg: IntCfg | None = None,
                ) -> list[Prediction]:
    """Predict training rows using only trees for which the row is OOB.

    Rows that are never out-of-bag get an unavailable prediction.
    """
    check_train_data(forest, train_data)
    return predict_rows(forest, train_data.features(), True,
                        estimate_variance, estimate_error, num_threads,
                        gen_cfg, int_cfg, title='Out-of-bag prediction')


def check_train_data(forest: Forest, train_data: DataView) -> None:
    """Raise if train_data is not the data the forest was trained with."""
    if (train_data.num_rows != forest.num_samples
            or train_data.num_features != forest.num_features):
        raise ConfigurationError(
            f'Training data ({train_data.num_rows} rows, '
            f'{train_data.num_features} features) does not match forest '
            f'({forest.num_samples} rows, {forest.num_features} features).',
            parameter='train_data')


def predict_rows(forest: Forest,
                 x_dat: NDArray[np.float64],
                 oob: bool,
                 estimate_variance: bool,
                 estimate_error: bool,
                 num_threads: int | None,
                 gen_cfg: GenCfg | None,
                 int_cfg: IntCfg | None,
                 title: str = 'Prediction',
                 ) -> list[Prediction]:
    """Collect leaf values of all trees and aggregate them."""
    time_start = time()
    gen_cfg = quiet_gen_cfg() if gen_cfg is None else gen_cfg
    int_cfg = IntCfg() if int_cfg is None else int_cfg
    num_leaf, den_leaf, valid = forest_leaf_values(
        forest, x_dat, oob, num_threads, gen_cfg, int_cfg)
    estimates, variances, errors, counts = aggregate_leaf_values(
        num_leaf, den_leaf, valid, forest.ci_group_size,
        estimate_variance=estimate_variance, estimate_error=estimate_error)
    predictions = [
        Prediction(estimate=float(estimates[idx]),
                   variance=(None if variances is None
                             or np.isnan(variances[idx])
                             else float(variances[idx])),
                   error=(None if errors is None or np.isnan(errors[idx])
                          else float(errors[idx])),
                   num_trees=int(counts[idx]))
        for idx in range(x_dat.shape[0])]
    if gen_cfg.with_output:
        csf_ps.print_prediction_summary(gen_cfg, estimates, variances,
                                        title=title)
        if gen_cfg.verbose:
            csf_ps.print_timing(gen_cfg, title, ['Total time:'],
                                [time() - time_start])
    return predictions


def forest_leaf_values(forest: Forest,
                       x_dat: NDArray[np.float64],
                       oob: bool,
                       num_threads: int | None,
                       gen_cfg: GenCfg,
                       int_cfg: IntCfg,
                       ) -> tuple[NDArray[np.float64], NDArray[np.float64],
                                  NDArray[np.bool_]]:
    """Leaf means of all trees for all rows (rows x trees).

    Trees are processed in chunks (sequential, ray or thread pool). Chunks
    are stored by position, so the result does not depend on the workers.
    """
    x_dat = np.ascontiguousarray(x_dat, dtype=np.float64)
    chunk = int_cfg.trees_per_predict_chunk
    bounds = [(start, min(start + chunk, forest.num_trees))
              for start in range(0, forest.num_trees, chunk)]
    if num_threads is None:
        num_threads = forest.options.resolve_num_threads()
    maxworkers = min(num_threads, len(bounds))
    with_ray = int_cfg.mp_with_ray
    if maxworkers > 1 and with_ray:
        with_ray, maxworkers = csf_sys.init_ray_with_fallback(
            maxworkers, gen_cfg, ray_err_txt='Ray did not start in prediction.')
    results: list[tuple[NDArray, NDArray, NDArray] | None] = [
        None for _ in bounds]

    if maxworkers == 1:
        for idx, (start, end) in enumerate(bounds):
            results[idx] = tree_leaf_values(forest.trees[start:end], x_dat,
                                            oob)
    elif with_ray:
        x_dat_ref = ray.put(x_dat)
        still_running = [
            ray_tree_leaf_values.remote(forest.trees[start:end], x_dat_ref,
                                        oob, idx)
            for idx, (start, end) in enumerate(bounds)]
        while len(still_running) > 0:
            finished, still_running = ray.wait(still_running, num_returns=1)
            for idx, values in ray.get(finished):
                results[idx] = values
        if 'refs' in int_cfg.mp_ray_del:
            del x_dat_ref
        csf_sys.shutdown_ray(int_cfg)
    else:
        with futures.ThreadPoolExecutor(max_workers=maxworkers) as fpp:
            still_running = {
                fpp.submit(tree_leaf_values, forest.trees[start:end], x_dat,
                           oob): idx
                for idx, (start, end) in enumerate(bounds)}
            for frv in futures.as_completed(still_running):
                results[still_running[frv]] = frv.result()

    num_leaf = np.concatenate([res[0] for res in results], axis=1)
    den_leaf = np.concatenate([res[1] for res in results], axis=1)
    valid = np.concatenate([res[2] for res in results], axis=1)
    return num_leaf, den_leaf, valid


@ray.remote
def ray_tree_leaf_values(trees, x_dat, oob, chunk_idx):
    """Prepare function for Ray."""
    return chunk_idx, tree_leaf_values(trees, x_dat, oob)


def tree_leaf_values(trees: tuple[CausalSurvivalTree, ...],
                     x_dat: NDArray[np.float64],
                     oob: bool = False,
                     ) -> tuple[NDArray[np.float64], NDArray[np.float64],
                                NDArray[np.bool_]]:
    """Mean numerator and denominator of the leaf of every row and tree.

    Parameters
    ----------
    trees : Tuple of CausalSurvivalTree.
    x_dat : Numpy 2D array. Features of rows to predict.
    oob : Bool. Rows are training rows; only trees for which the row is
        out-of-bag contribute.

    Returns
    -------
    num_leaf, den_leaf : Numpy 2D arrays (rows x trees).
    valid : Numpy 2D boolean array. Tree contributes to row.
    """
    n_rows = x_dat.shape[0]
    num_leaf = np.zeros((n_rows, len(trees)))
    den_leaf = np.zeros((n_rows, len(trees)))
    valid = np.zeros((n_rows, len(trees)), dtype=np.bool_)
    for idx, tree in enumerate(trees):
        leaves = tree.get_leaves(x_dat)
        num_mean, den_mean, nonempty = tree.leaf_means()
        num_leaf[:, idx] = num_mean[leaves]
        den_leaf[:, idx] = den_mean[leaves]
        valid[:, idx] = nonempty[leaves]
        if oob:
            is_oob = np.zeros(n_rows, dtype=np.bool_)
            is_oob[tree.oob_samples] = True
            valid[:, idx] &= is_oob
    return num_leaf, den_leaf, valid


def aggregate_leaf_values(num_leaf: NDArray[np.float64],
                          den_leaf: NDArray[np.float64],
                          valid: NDArray[np.bool_],
                          ci_group_size: int,
                          estimate_variance: bool = False,
                          estimate_error: bool = False,
                          ) -> tuple[NDArray[np.float64],
                                     NDArray[np.float64] | None,
                                     NDArray[np.float64] | None,
                                     NDArray[np.int64]]:
    """Average leaf values over contributing trees (equal weights).

    Returns
    -------
    estimates : Numpy 1D array (NaN if not available).
    variances : Numpy 1D array or None (NaN where not available).
    errors : Numpy 1D array or None (NaN where not available).
    counts : Numpy 1D array. Number of contributing trees.
    """
    counts = valid.sum(axis=1)
    num_sum = np.where(valid, num_leaf, 0).sum(axis=1)
    den_sum = np.where(valid, den_leaf, 0).sum(axis=1)
    num_avg = np.full(counts.shape[0], np.nan)
    den_avg = np.full(counts.shape[0], np.nan)
    used = counts > 0
    num_avg[used] = num_sum[used] / counts[used]
    den_avg[used] = den_sum[used] / counts[used]
    estimates = np.full(counts.shape[0], np.nan)
    for idx in np.flatnonzero(used):
        estimates[idx] = point_estimate((num_avg[idx], den_avg[idx]))

    variances = None
    if estimate_variance and ci_group_size >= 2:
        variances = compute_variance(num_leaf, den_leaf, valid, estimates,
                                     den_avg, ci_group_size)
    errors = None
    if estimate_error:
        errors = compute_excess_error(num_sum, den_sum, num_leaf, den_leaf,
                                      valid, counts)
    return estimates, variances, errors, counts


def compute_variance(num_leaf: NDArray[np.float64],
                     den_leaf: NDArray[np.float64],
                     valid: NDArray[np.bool_],
                     estimates: NDArray[np.float64],
                     den_avg: NDArray[np.float64],
                     ci_group_size: int,
                     ) -> NDArray[np.float64]:
    """Variance of estimates from the between-group variation of trees.

    Only groups in which all trees contribute are used. The within-group
    variation measures the noise due to subsampling, which is removed from
    the between-group variation (objective Bayes debiasing). The delta
    method scales the result with the squared average denominator.
    """
    n_rows, n_trees = num_leaf.shape
    n_groups = n_trees // ci_group_size
    shape = (n_rows, n_groups, ci_group_size)
    good = valid.reshape(shape).all(axis=2)
    num_good = good.sum(axis=1)
    with np.errstate(invalid='ignore'):
        psi = (num_leaf - estimates[:, None] * den_leaf).reshape(shape)
    psi = np.where(good[:, :, None], psi, 0)
    group_mean = psi.mean(axis=2)
    variances = np.full(n_rows, np.nan)
    for idx in np.flatnonzero((num_good > 0) & ~np.isnan(estimates)):
        var_between = np.sum(group_mean[idx] ** 2) / num_good[idx]
        var_total = np.sum(psi[idx] ** 2) / (num_good[idx] * ci_group_size)
        group_noise = (var_total - var_between) / (ci_group_size - 1)
        variances[idx] = (debias_variance(var_between, group_noise,
                                          num_good[idx])
                          / den_avg[idx] ** 2)
    return variances


def debias_variance(var_between: float, group_noise: float,
                    num_good_groups: int) -> float:
    """Objective Bayes debiasing of variance estimates (always >= 0).

    The naive estimate var_between - group_noise is shrunk towards positive
    values with the expectation of a normal prior truncated at zero.
    """
    initial_estimate = var_between - group_noise
    initial_se = max(var_between, group_noise) * np.sqrt(2 / num_good_groups)
    if initial_se <= 0:
        return max(initial_estimate, 0.0)
    ratio = initial_estimate / initial_se
    mills_ratio = np.exp(norm.logpdf(ratio) - norm.logcdf(ratio))
    return float(max(initial_estimate + initial_se * mills_ratio, 0.0))


def compute_excess_error(num_sum: NDArray[np.float64],
                         den_sum: NDArray[np.float64],
                         num_leaf: NDArray[np.float64],
                         den_leaf: NDArray[np.float64],
                         valid: NDArray[np.bool_],
                         counts: NDArray[np.int64],
                         ) -> NDArray[np.float64]:
    """Leave-one-tree-out jackknife of the Monte Carlo error.

    Needs at least two contributing trees (NaN otherwise).
    """
    errors = np.full(counts.shape[0], np.nan)
    for idx in np.flatnonzero(counts >= 2):
        used = valid[idx]
        den_minus = den_sum[idx] - den_leaf[idx, used]
        if np.any(den_minus == 0):
            continue
        theta = (num_sum[idx] - num_leaf[idx, used]) / den_minus
        n_used = counts[idx]
        errors[idx] = (n_used - 1) / n_used * np.sum(
            (theta - theta.mean()) ** 2)
    return errors


def predictions_to_dataframe(predictions: list[Prediction],
                             index: Any = None) -> DataFrame:
    """Collect predictions in a DataFrame."""
    return DataFrame(
        {'estimate': [pred.estimate for pred in predictions],
         'variance': [np.nan if pred.variance is None else pred.variance
                      for pred in predictions],
         'error': [np.nan if pred.error is None else pred.error
                   for pred in predictions],
         'num_trees': [pred.num_trees for pred in predictions],
         'available': [pred.available for pred in predictions],
         }, index=index)
