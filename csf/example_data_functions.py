"""
Created on Mon Oct 19 14:02:41 2026.

Contains functions to simulate censored survival data with treatment.

# -*- coding: utf-8 -*-
"""
from typing import Any

import numpy as np
from numpy.typing import NDArray
import pandas as pd

from csf import csf_print_stats_functions as csf_ps
from csf.csf_init_functions import GenCfg


def example_data(obs_train: int = 1000,
                 obs_pred: int = 500,
                 no_features: int = 5,
                 type_of_effect: str = 'heterogeneous',
                 assignment: str = 'rct',
                 horizon: float = 2.0,
                 censoring_rate: float = 0.2,
                 no_clusters: int | None = None,
                 seed: int = 12345,
                 descr_stats: bool = False,
                 ) -> tuple[pd.DataFrame, pd.DataFrame, dict[str, Any]]:
    """
    Create example data to be used with causal survival forest estimation.

    Event times are exponential. Treatment multiplies the hazard by
    exp(-gamma(x)). The effect of interest is the difference in restricted
    mean survival time (RMST) up to the horizon. Censoring is exponential and
    independent, so censoring probabilities and the nuisance functions are
    known (oracle pseudo-outcomes).

    Parameters
    ----------
    obs_train : Integer, optional
        Number of observations for training data. The default is 1000.
    obs_pred : Integer, optional
        Number of observations for prediction data. The default is 500.
    no_features : Integer, optional
        Number of uniform features (at least 2). The default is 5.
    type_of_effect : String, optional
        'heterogeneous' (gamma depends on the second feature), 'constant'
        or 'none'. The default is 'heterogeneous'.
    assignment : String, optional
        'rct' (propensity 0.5) or 'observational' (propensity depends on
        the first feature). The default is 'rct'.
    horizon : Float, optional
        Horizon of the RMST. The default is 2.
    censoring_rate : Float, optional
        Rate of the exponential censoring time. The default is 0.2.
    no_clusters : Integer or None, optional
        Add a cluster variable with this number of clusters.
        The default is None.
    seed : Integer, optional
        Seed of numpy random number generator object. The default is 12345.
    descr_stats :  Boolean, optional
        Show descriptive statistics. The default is False.

    Returns
    -------
    train_df : DataFrame
        Features, treatment, observed time, event indicator, numerator,
        denominator, propensity, true effect (and cluster).
    pred_df : DataFrame
        Features, propensity and true effect.
    name_dict : Dictionary
        Contains the names of the variable groups.

    """
    if no_features < 2:
        raise ValueError('At least 2 features needed.')
    if type_of_effect not in ('heterogeneous', 'constant', 'none'):
        raise ValueError(f'Illegal effect type: {type_of_effect} specified. '
                         'Allowed are only "heterogeneous", "constant", and '
                         '"none".')
    if assignment not in ('rct', 'observational'):
        raise ValueError(f'Illegal assignment: {assignment} specified. '
                         'Allowed are only "rct" and "observational".')
    if horizon <= 0 or censoring_rate < 0:
        raise ValueError('Horizon must be positive, censoring rate must not '
                         'be negative.')
    name_dict = {'x_name': [f'x{i}' for i in range(no_features)],
                 'd_name': 'treat',
                 'time_name': 'time',
                 'censor_name': 'event',
                 'numerator_name': 'numerator',
                 'denominator_name': 'denominator',
                 'propensity_name': 'propensity',
                 'effect_name': 'rmst_effect',
                 'cluster_name': 'cluster',
                 }
    rng = np.random.default_rng(seed=seed)

    x_train = rng.uniform(size=(obs_train, no_features))
    x_pred = rng.uniform(size=(obs_pred, no_features))
    prop_train = propensity(x_train, assignment)
    prop_pred = propensity(x_pred, assignment)
    effect_pred = true_effect(x_pred, type_of_effect, horizon)

    d_train = rng.binomial(1, prop_train)
    hazard = base_hazard(x_train) * np.exp(-gamma(x_train, type_of_effect)
                                           * d_train)
    time_event = rng.exponential(1 / hazard)
    if censoring_rate > 0:
        time_censor = rng.exponential(1 / censoring_rate, size=obs_train)
    else:
        time_censor = np.full(obs_train, np.inf)
    numerator, denominator, time_obs, event = aipw_components(
        x_train, d_train, prop_train, time_event, time_censor, horizon,
        censoring_rate, type_of_effect)

    train_df = pd.DataFrame(x_train, columns=name_dict['x_name'])
    train_df[name_dict['d_name']] = d_train
    train_df[name_dict['time_name']] = time_obs
    train_df[name_dict['censor_name']] = event
    train_df[name_dict['numerator_name']] = numerator
    train_df[name_dict['denominator_name']] = denominator
    train_df[name_dict['propensity_name']] = prop_train
    train_df[name_dict['effect_name']] = true_effect(x_train, type_of_effect,
                                                     horizon)
    if no_clusters is not None:
        train_df[name_dict['cluster_name']] = rng.integers(
            0, no_clusters, size=obs_train)
    pred_df = pd.DataFrame(x_pred, columns=name_dict['x_name'])
    pred_df[name_dict['propensity_name']] = prop_pred
    pred_df[name_dict['effect_name']] = effect_pred

    if descr_stats:
        gen_cfg = GenCfg()
        csf_ps.print_csf(gen_cfg, '\nTraining data')
        csf_ps.print_descriptive_df(gen_cfg, train_df)
        csf_ps.print_csf(gen_cfg, '\nPrediction data')
        csf_ps.print_descriptive_df(gen_cfg, pred_df)

    return train_df, pred_df, name_dict


def propensity(x_dat: NDArray[np.floating], assignment: str
               ) -> NDArray[np.floating]:
    """Treatment probability."""
    if assignment == 'rct':
        return np.full(x_dat.shape[0], 0.5)
    return 0.25 + 0.5 * x_dat[:, 0]


def base_hazard(x_dat: NDArray[np.floating]) -> NDArray[np.floating]:
    """Hazard without treatment."""
    return 0.5 * np.exp(x_dat[:, 0])


def gamma(x_dat: NDArray[np.floating], type_of_effect: str
          ) -> NDArray[np.floating]:
    """Log hazard ratio (reduction) due to treatment."""
    match type_of_effect:
        case 'heterogeneous':
            return 1.5 * x_dat[:, 1]
        case 'constant':
            return np.full(x_dat.shape[0], 0.75)
        case _:
            return np.zeros(x_dat.shape[0])


def rmst_exponential(hazard: NDArray[np.floating], horizon: float
                     ) -> NDArray[np.floating]:
    """Restricted mean survival time of exponential durations."""
    return (1 - np.exp(-hazard * horizon)) / hazard


def true_effect(x_dat: NDArray[np.floating], type_of_effect: str,
                horizon: float) -> NDArray[np.floating]:
    """Difference of RMST with and without treatment."""
    hazard_0 = base_hazard(x_dat)
    hazard_1 = hazard_0 * np.exp(-gamma(x_dat, type_of_effect))
    return rmst_exponential(hazard_1, horizon) - rmst_exponential(hazard_0,
                                                                  horizon)


def aipw_components(x_dat: NDArray[np.floating],
                    d_dat: NDArray[np.integer],
                    prop: NDArray[np.floating],
                    time_event: NDArray[np.floating],
                    time_censor: NDArray[np.floating],
                    horizon: float,
                    censoring_rate: float,
                    type_of_effect: str,
                    ) -> tuple[NDArray[np.floating], NDArray[np.floating],
                               NDArray[np.floating], NDArray[np.floating]]:
    """Compute numerator and denominator with oracle nuisances.

    Outcomes are truncated at the horizon. Rows whose truncated time is
    observed count as events. The truncated outcome is weighted with the
    inverse probability of remaining uncensored.

    Returns
    -------
    numerator, denominator : Numpy 1D arrays.
    time_obs : Numpy 1D array. Observed time truncated at horizon.
    event : Numpy 1D array. 1 if truncated time is observed, 0 if censored.
    """
    time_obs = np.minimum(np.minimum(time_event, time_censor), horizon)
    event = (np.minimum(time_event, horizon) <= time_censor).astype(np.float64)
    surv_censor = np.exp(-censoring_rate * time_obs)
    ipcw_outcome = event * time_obs / surv_censor
    hazard_0 = base_hazard(x_dat)
    hazard_1 = hazard_0 * np.exp(-gamma(x_dat, type_of_effect))
    m_x = (prop * rmst_exponential(hazard_1, horizon)
           + (1 - prop) * rmst_exponential(hazard_0, horizon))
    d_centered = d_dat - prop
    return (d_centered * (ipcw_outcome - m_x), d_centered ** 2, time_obs,
            event)
