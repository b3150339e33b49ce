"""
Contains the class and the methods of the causal survival forest.

Created on Mon Oct 19 14:40:06 2026
# -*- coding: utf-8 -*-
"""
from time import time
from typing import Any

from pandas import DataFrame

from csf import csf_forest_add_functions as csf_fo_add
from csf import csf_forest_functions as csf_fo
from csf import csf_predict_functions as csf_pred
from csf import csf_print_stats_functions as csf_ps
from csf.csf_data_functions import DataView
from csf.csf_exceptions import ConfigurationError
from csf.csf_init_functions import (ForestOptions, GenCfg, IntCfg,
                                    quiet_gen_cfg)


class CausalSurvivalForest:
    """
    Estimation of heterogeneous causal survival effects.

    Parameters
    ----------
    var_x_name : List of strings or None, optional
        Names of features. None: all variables without another role,
        including follow-up times, propensity scores or true effects if
        they are part of the DataFrame (as in the output of example_data).
        Prediction data must then contain the same variables.
    var_d_name : String
        Name of binary (or continuous) treatment.
    var_z_name : String or None, optional
        Name of instrument. None: same as treatment.
    var_censor_name : String
        Name of event indicator (1: event observed, 0: censored).
    var_numerator_name, var_denominator_name : String
        Names of the numerator and denominator pseudo-outcomes.
    var_w_name : String or None, optional
        Name of sample weight. Default is None.
    var_cluster_name : String or None, optional
        Name of cluster identifier. Clusters are sampled as units.
        Default is None.
    cf_boot : Integer, optional
        Number of trees. Default is 2000.
    cf_ci_group_size : Integer, optional
        Trees sharing one subsample. Default is 2.
    cf_subsample_share : Float, optional
        Share of clusters (observations) used for each group. Default is 0.5.
    cf_m_split : Integer or None, optional
        Candidate features per split. Default is None.
    cf_n_min : Integer, optional
        Minimum leaf size. Default is 5.
    cf_honesty : Boolean, optional
        Default is True.
    cf_honesty_share : Float, optional
        Share of subsample used for splitting. Default is 0.5.
    cf_honesty_prune : Boolean, optional
        Prune splits with empty children. Default is True.
    cf_alpha : Float, optional
        Nominal level. Default is 0.05.
    cf_imbalance_penalty : Float, optional
        Default is 0.
    cf_samples_per_cluster : Integer or None, optional
        Default is None.
    cf_random_seed : Integer, optional
        Default is 42.
    gen_mp_parallel : Integer or None, optional
        Number of parallel processes. None: 80% of logical cores.
    gen_outfiletext, gen_outpath, gen_output_type, gen_verbose,
    gen_with_output : Output control (see GenCfg). Default: output to
        terminal only, not verbose.
    _int_mp_with_ray, _int_mp_ray_del, _int_mp_ray_shutdown,
    _int_trees_per_predict_chunk : Internal parameters (see IntCfg).

    Attributes
    ----------
    forest : Forest or None
        Trained forest.
    report : Dictionary
        Information about the last training.
    """

    def __init__(
            self,
            var_x_name: list[str] | str | None = None,
            var_d_name: str | None = None,
            var_z_name: str | None = None,
            var_censor_name: str | None = None,
            var_numerator_name: str | None = None,
            var_denominator_name: str | None = None,
            var_w_name: str | None = None,
            var_cluster_name: str | None = None,
            cf_boot: int = 2000,
            cf_ci_group_size: int = 2,
            cf_subsample_share: float = 0.5,
            cf_m_split: int | None = None,
            cf_n_min: int = 5,
            cf_honesty: bool = True,
            cf_honesty_share: float = 0.5,
            cf_honesty_prune: bool = True,
            cf_alpha: float = 0.05,
            cf_imbalance_penalty: float = 0.0,
            cf_samples_per_cluster: int | None = None,
            cf_random_seed: int = 42,
            gen_mp_parallel: int | None = None,
            gen_outfiletext: str | None = None,
            gen_outpath: str | None = None,
            gen_output_type: int | None = None,
            gen_verbose: bool | None = None,
            gen_with_output: bool | None = None,
            _int_mp_with_ray: bool | None = None,
            _int_mp_ray_del: tuple[str, ...] | None = None,
            _int_mp_ray_shutdown: bool | None = None,
            _int_trees_per_predict_chunk: int | None = None,
            ):
        if var_d_name is None or var_censor_name is None:
            raise ConfigurationError('Treatment and event indicator must be '
                                     'specified.', parameter='var_d_name')
        if var_numerator_name is None or var_denominator_name is None:
            raise ConfigurationError('Numerator and denominator must be '
                                     'specified.',
                                     parameter='var_numerator_name')
        self.var_dict = {'x_name': var_x_name,
                         'd_name': var_d_name,
                         'z_name': var_z_name,
                         'censor_name': var_censor_name,
                         'numerator_name': var_numerator_name,
                         'denominator_name': var_denominator_name,
                         'w_name': var_w_name,
                         'cluster_name': var_cluster_name,
                         }
        self.options = ForestOptions(
            num_trees=cf_boot, ci_group_size=cf_ci_group_size,
            sample_fraction=cf_subsample_share, mtry=cf_m_split,
            min_node_size=cf_n_min, honesty=cf_honesty,
            honesty_fraction=cf_honesty_share,
            honesty_prune_leaves=cf_honesty_prune, alpha=cf_alpha,
            imbalance_penalty=cf_imbalance_penalty,
            num_threads=gen_mp_parallel, random_seed=cf_random_seed,
            samples_per_cluster=cf_samples_per_cluster,
            )
        self.int_cfg = IntCfg.from_args(
            mp_with_ray=_int_mp_with_ray, mp_ray_del=_int_mp_ray_del,
            mp_ray_shutdown=_int_mp_ray_shutdown,
            trees_per_predict_chunk=_int_trees_per_predict_chunk,
            )
        self.gen_cfg = GenCfg.from_args(
            outfiletext=gen_outfiletext, outpath=gen_outpath,
            output_type=gen_output_type, verbose=gen_verbose,
            with_output=gen_with_output,
            )
        self.forest: csf_fo.Forest | None = None
        self.data_train: DataView | None = None
        self.index_train: Any = None
        self.report: dict[str, Any] = {}

    def _data_view(self, data_df: DataFrame, train: bool = True) -> DataView:
        """Select variables of DataFrame."""
        var = self.var_dict
        if train:
            return DataView.from_dataframe(
                data_df, x_name=var['x_name'], d_name=var['d_name'],
                z_name=var['z_name'], censor_name=var['censor_name'],
                numerator_name=var['numerator_name'],
                denominator_name=var['denominator_name'],
                w_name=var['w_name'], cluster_name=var['cluster_name'])
        return DataView.from_dataframe(data_df, x_name=self.forest.feature_names)

    def train(self, data_df: DataFrame) -> dict[str, Any]:
        """
        Build the causal survival forest.

        Parameters
        ----------
        data_df : DataFrame
            Training data with features, treatment, event indicator and
            pseudo-outcomes.

        Returns
        -------
        report : Dictionary
            Description of the forest.

        """
        time_start = time()
        if self.gen_cfg.with_output:
            txt = '=' * 100 + '\nCausal Survival Forest: Training\n' + '-' * 100
            csf_ps.print_csf(self.gen_cfg, txt, summary=True)
            if self.gen_cfg.verbose:
                csf_ps.print_dic(self.var_dict, 'var_dict', self.gen_cfg)
        if self.var_dict['x_name'] is None:
            used = [name for key, name in self.var_dict.items()
                    if key != 'x_name' and name is not None]
            if self.gen_cfg.with_output and self.gen_cfg.verbose:
                csf_ps.print_csf(self.gen_cfg, '\nAll variables except '
                                 f'{" ".join(used)} are used as features.')
        data = self._data_view(data_df, train=True)
        self.forest = csf_fo.train(data, self.options, gen_cfg=self.gen_cfg,
                                   int_cfg=self.int_cfg)
        self.data_train = data
        self.index_train = data_df.index
        self.report = csf_fo_add.describe_forest(self.forest, self.forest.mtry,
                                                 quiet_gen_cfg())
        oob_counts = self.forest.oob_counts()
        self.report['share_obs_with_oob'] = float((oob_counts > 0).mean())
        self.report['time_train'] = time() - time_start
        return self.report

    def predict(self, data_df: DataFrame, estimate_variance: bool = True,
                estimate_error: bool = False) -> DataFrame:
        """
        Predict effects for new data.

        Parameters
        ----------
        data_df : DataFrame
            Must contain the features used in training.
        estimate_variance : Boolean, optional
            Default is True.
        estimate_error : Boolean, optional
            Default is False.

        Returns
        -------
        results_df : DataFrame
            Estimate, variance, error, number of trees and availability.

        """
        self._check_trained()
        test_data = self._data_view(data_df, train=False)
        predictions = csf_pred.predict(
            self.forest, self.data_train, test_data, estimate_variance,
            estimate_error=estimate_error, num_threads=self.options.num_threads,
            gen_cfg=self.gen_cfg, int_cfg=self.int_cfg)
        return csf_pred.predictions_to_dataframe(predictions,
                                                 index=data_df.index)

    def predict_oob(self, estimate_variance: bool = True,
                    estimate_error: bool = False) -> DataFrame:
        """Out-of-bag predictions for the training data."""
        self._check_trained()
        predictions = csf_pred.predict_oob(
            self.forest, self.data_train, estimate_variance,
            estimate_error=estimate_error, num_threads=self.options.num_threads,
            gen_cfg=self.gen_cfg, int_cfg=self.int_cfg)
        return csf_pred.predictions_to_dataframe(predictions,
                                                 index=self.index_train)

    def _check_trained(self) -> None:
        if self.forest is None or self.data_train is None:
            raise RuntimeError('Forest must be trained before predicting.')
