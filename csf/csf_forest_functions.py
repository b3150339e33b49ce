"""
Contains functions for building the forest.

Created on Mon Oct 19 12:05:37 2026
# -*- coding: utf-8 -*-
"""
from collections import deque
from concurrent import futures
from dataclasses import dataclass
from time import time
from typing import Any

import numpy as np
from numpy.typing import NDArray
import ray

from csf import csf_forest_add_functions as csf_fo_add
from csf import csf_forest_asdict_functions as csf_fo_asdict
from csf import csf_general_sys as csf_sys
from csf import csf_print_stats_functions as csf_ps
from csf import csf_sampling_functions as csf_samp
from csf.csf_data_functions import DataView
from csf.csf_exceptions import DegenerateTreeError
from csf.csf_forest_asdict_functions import CausalSurvivalTree
from csf.csf_forest_objfct_functions import (CausalSurvivalSplittingRule,
                                             SplittingRule)
from csf.csf_init_functions import ForestOptions, GenCfg, IntCfg, quiet_gen_cfg


@dataclass(frozen=True, slots=True, eq=False)
class Forest:
    """Trained causal survival forest.

    Trees are ordered by group: trees g * ci_group_size, ...,
    (g + 1) * ci_group_size - 1 share the subsample of group g.
    """

    trees: tuple[CausalSurvivalTree, ...]
    options: ForestOptions
    num_samples: int
    num_features: int
    feature_names: tuple[str, ...]
    mtry: int
    degenerate_trees: int = 0

    @property
    def num_trees(self) -> int:
        return len(self.trees)

    @property
    def random_seed(self) -> int:
        return self.options.random_seed

    @property
    def honesty(self) -> bool:
        return self.options.honesty

    @property
    def ci_group_size(self) -> int:
        return self.options.ci_group_size

    @property
    def num_groups(self) -> int:
        return self.num_trees // self.ci_group_size

    def oob_counts(self) -> NDArray[np.int64]:
        """Number of trees for which each training row is out-of-bag."""
        counts = np.zeros(self.num_samples, dtype=np.int64)
        for tree in self.trees:
            counts[tree.oob_samples] += 1
        return counts


def train(data: DataView,
          options: ForestOptions,
          gen_cfg: GenCfg | None = None,
          int_cfg: IntCfg | None = None,
          ) -> Forest:
    """Train an honest causal survival forest.

    Parameters
    ----------
    data : DataView. Training data with treatment, censor, numerator and
        denominator roles.
    options : ForestOptions.
    gen_cfg : GenCfg or None. Output control. None: no output.
    int_cfg : IntCfg or None. Internal parameters. None: defaults.

    Returns
    -------
    forest : Forest. Immutable.

    Raises
    ------
    ConfigurationError : Invalid roles or options (before any tree is grown).
    """
    time_start = time()
    gen_cfg = quiet_gen_cfg() if gen_cfg is None else gen_cfg
    int_cfg = IntCfg() if int_cfg is None else int_cfg
    data.require_training_roles()
    mtry = options.resolve_mtry(data.num_features)
    clusters = (data.clusters() if options.sample_clusters is None
                else np.asarray(options.sample_clusters, dtype=np.int64))
    cluster_idx = csf_samp.make_cluster_index(data.num_rows, clusters)
    csf_samp.check_sample_sizes(
        data.num_rows if cluster_idx is None else cluster_idx.num_clusters,
        options.sample_fraction, options.honesty)
    if gen_cfg.with_output and gen_cfg.verbose:
        csf_ps.print_dic(options.to_dict(), 'Forest options', gen_cfg)
    splitting_rule = CausalSurvivalSplittingRule.from_data(
        data, options.min_node_size, options.imbalance_penalty, int_cfg)
    time_prep = time()

    trees, degenerate = build_forest(splitting_rule, data.num_rows, options,
                                     mtry, cluster_idx, gen_cfg, int_cfg)
    forest = Forest(trees=trees, options=options, num_samples=data.num_rows,
                    num_features=data.num_features,
                    feature_names=data.feature_names, mtry=mtry,
                    degenerate_trees=degenerate)
    time_end = time()
    if gen_cfg.with_output:
        csf_fo_add.describe_forest(forest, mtry, gen_cfg)
        if gen_cfg.verbose:
            csf_ps.print_timing(
                gen_cfg, 'Training of causal survival forest',
                ['Data preparation:', 'Forest building:', 'Total time:'],
                [time_prep - time_start, time_end - time_prep,
                 time_end - time_start])
    return forest


def build_forest(splitting_rule: SplittingRule,
                 num_rows: int,
                 options: ForestOptions,
                 mtry: int,
                 cluster_idx: csf_samp.ClusterIndex | None,
                 gen_cfg: GenCfg,
                 int_cfg: IntCfg,
                 ) -> tuple[tuple[CausalSurvivalTree, ...], int]:
    """Grow all tree groups (sequential, ray or thread pool).

    Every group gets its own child seed of the root seed. Results are stored
    by group index so that the forest does not depend on the number of
    workers.
    """
    num_groups = options.num_groups
    group_seeds = np.random.SeedSequence(options.random_seed).spawn(
        num_groups)
    maxworkers = min(options.resolve_num_threads(), num_groups)
    if maxworkers > 1:
        maxworkers = csf_sys.find_no_of_workers(maxworkers, int_cfg.sys_share,
                                                zero_tol=int_cfg.zero_tol)
    with_ray = int_cfg.mp_with_ray
    if maxworkers > 1 and with_ray:
        with_ray, maxworkers = csf_sys.init_ray_with_fallback(
            maxworkers, gen_cfg,
            ray_err_txt='Ray did not start in forest building.')
    if gen_cfg.with_output and gen_cfg.verbose:
        csf_ps.print_csf(gen_cfg, '\nNumber of parallel processes (forest): '
                         f'{maxworkers}', summary=False)
    groups: list[tuple[list[CausalSurvivalTree], int] | None] = [
        None for _ in range(num_groups)]
    show_progress = gen_cfg.with_output and gen_cfg.verbose

    if maxworkers == 1:
        for idx in range(num_groups):
            groups[idx] = build_tree_group(
                splitting_rule, num_rows, options, mtry, cluster_idx,
                group_seeds[idx])
            if show_progress:
                csf_ps.share_completed(idx + 1, num_groups)
    elif with_ray:
        rule_ref = ray.put(splitting_rule)
        still_running = [
            ray_build_tree_group.remote(rule_ref, num_rows, options, mtry,
                                        cluster_idx, group_seeds[idx], idx)
            for idx in range(num_groups)
            ]
        jdx = 0
        while len(still_running) > 0:
            finished, still_running = ray.wait(still_running, num_returns=1)
            for idx, group in ray.get(finished):
                groups[idx] = group
                jdx += 1
                if show_progress:
                    csf_ps.share_completed(jdx, num_groups)
            if jdx % 50 == 0:
                csf_sys.auto_garbage_collect(50)
        if 'refs' in int_cfg.mp_ray_del:
            del rule_ref
        csf_sys.shutdown_ray(int_cfg)
    else:
        with futures.ThreadPoolExecutor(max_workers=maxworkers) as fpp:
            still_running = {
                fpp.submit(build_tree_group, splitting_rule, num_rows,
                           options, mtry, cluster_idx, group_seeds[idx]): idx
                for idx in range(num_groups)}
            for jdx, frv in enumerate(futures.as_completed(still_running)):
                groups[still_running[frv]] = frv.result()
                if show_progress:
                    csf_ps.share_completed(jdx + 1, num_groups)

    if any(group is None for group in groups):
        raise RuntimeError('Not all tree groups were built. Bug in '
                           'multiprocessing.')
    trees = tuple(tree for group in groups for tree in group[0])
    degenerate = sum(group[1] for group in groups)
    if gen_cfg.with_output and gen_cfg.verbose and degenerate > 0:
        csf_ps.print_csf(gen_cfg, f'\n{degenerate} tree(s) without any split '
                         '(single leaf).', summary=False)
    return trees, degenerate


@ray.remote
def ray_build_tree_group(splitting_rule, num_rows, options, mtry, cluster_idx,
                         group_seed, group_idx):
    """Prepare function for Ray."""
    return group_idx, build_tree_group(splitting_rule, num_rows, options, mtry,
                                       cluster_idx, group_seed)


def build_tree_group(splitting_rule: SplittingRule,
                     num_rows: int,
                     options: ForestOptions,
                     mtry: int,
                     cluster_idx: csf_samp.ClusterIndex | None,
                     group_seed: np.random.SeedSequence,
                     ) -> tuple[list[CausalSurvivalTree], int]:
    """Build the trees of one group on a common honest subsample.

    Parameters
    ----------
    splitting_rule : SplittingRule. Holds the training arrays.
    num_rows : Int. Number of training rows.
    options : ForestOptions.
    mtry : Int. Number of candidate features per split.
    cluster_idx : ClusterIndex or None.
    group_seed : SeedSequence of the group. Spawns one stream for the sample
        and one for every tree.

    Returns
    -------
    trees : List of CausalSurvivalTree (ci_group_size elements).
    degenerate : Int. Number of trees without split.
    """
    seeds = group_seed.spawn(1 + options.ci_group_size)
    sample = csf_samp.draw_honest_sample(
        num_rows, options.sample_fraction, options.honesty,
        options.honesty_fraction, np.random.default_rng(seeds[0]),
        cluster_idx=cluster_idx,
        samples_per_cluster=options.samples_per_cluster)
    trees, degenerate = [], 0
    for seed in seeds[1:]:
        rng = np.random.default_rng(seed)
        try:
            tree_dict = build_single_tree(splitting_rule, sample.split,
                                          options.min_node_size, mtry, rng)
        except DegenerateTreeError:
            trees.append(make_degenerate_tree(splitting_rule, sample))
            degenerate += 1
            continue
        tree_dict = fill_tree_with_estimation_rows(tree_dict, splitting_rule,
                                                   sample.estimation)
        if options.honesty and options.honesty_prune_leaves:
            tree_dict = prune_empty_leaves(tree_dict)
        trees.append(finalise_tree(tree_dict, sample))
    return trees, degenerate


def build_single_tree(splitting_rule: SplittingRule,
                      indices_split: NDArray[np.intp],
                      n_min: int,
                      mtry: int,
                      rng: np.random.Generator,
                      ) -> dict:
    """Grow tree on split-set rows (nodes are processed first-in first-out).

    Parameters
    ----------
    splitting_rule : SplittingRule.
    indices_split : Numpy 1D array. Rows of the split set.
    n_min : Int. Minimum leaf size.
    mtry : Int. Number of candidate features.
    rng : Random number generator of the tree.

    Returns
    -------
    tree_dict : Dict. Tree without estimation rows.

    Raises
    ------
    DegenerateTreeError : Root cannot be split.
    """
    tree_dict = csf_fo_asdict.make_default_tree_dict(n_min, indices_split)
    leaf_info_int = tree_dict['leaf_info_int']
    x_ind_pos = np.arange(splitting_rule.x_dat.shape[1], dtype=np.intp)
    nodes_to_split = deque([0])
    while nodes_to_split:
        leaf_id = nodes_to_split.popleft()
        rows = tree_dict['split_data_list'][leaf_id]
        split, reason = next_split(splitting_rule, rows, x_ind_pos, mtry, rng)
        if split is None:
            if leaf_id == 0:
                raise DegenerateTreeError(reason, len(rows))
            leaf_info_int[leaf_id, 5] = csf_fo_asdict.TERMINAL
            continue
        left_id = tree_dict['no_of_nodes']
        if left_id + 2 > leaf_info_int.shape[0]:
            raise RuntimeError('Not enough nodes available for further '
                               f'splitting: {leaf_info_int.shape[0]=:}')
        tree_dict = update_tree(tree_dict, leaf_id, left_id, split, rows)
        nodes_to_split.extend((left_id, left_id + 1))

    return csf_fo_asdict.cut_back_empty_cells_tree(tree_dict)


def next_split(splitting_rule: SplittingRule,
               rows: NDArray[np.intp],
               x_ind_pos: NDArray[np.intp],
               mtry: int,
               rng: np.random.Generator,
               ) -> tuple[Any, str | None]:
    """Find split of node, or the reason why the node is terminal."""
    reason = splitting_rule.terminal_reason(rows)
    if reason is not None:
        return None, reason
    candidates = csf_fo_add.rnd_variable_for_split(x_ind_pos, mtry, rng)
    varying = splitting_rule.varying_features(rows, candidates)
    if varying.size == 0 and candidates.size < x_ind_pos.size:
        rest = csf_fo_add.rnd_variable_for_split(x_ind_pos, x_ind_pos.size,
                                                 rng, exclude=candidates)
        varying = splitting_rule.varying_features(rows, rest)
    if varying.size == 0:
        return None, 'features_exhausted'
    split = splitting_rule.find_best_split(rows, varying)
    if split is None:
        return None, 'no_valid_split'
    return split, None


def update_tree(tree_dict: dict, leaf_id: int, left_id: int, split: Any,
                rows: NDArray[np.intp]) -> dict:
    """Record split of node and create two active children."""
    leaf_info_int = tree_dict['leaf_info_int']
    leaf_info_float = tree_dict['leaf_info_float']
    right_id = left_id + 1
    rows_l, rows_r = rows[split.left], rows[~split.left]
    leaf_info_int[leaf_id, 2:6] = (left_id, right_id, split.feature,
                                   csf_fo_asdict.SPLIT)
    leaf_info_float[leaf_id, 1] = split.threshold
    for child, rows_child in ((left_id, rows_l), (right_id, rows_r)):
        leaf_info_int[child, 1] = leaf_id
        leaf_info_int[child, 5] = csf_fo_asdict.ACTIVE
        leaf_info_int[child, 6] = len(rows_child)
        tree_dict['split_data_list'][child] = rows_child
    tree_dict['split_data_list'][leaf_id] = None
    tree_dict['no_of_nodes'] += 2
    return tree_dict


def fill_tree_with_estimation_rows(tree_dict: dict,
                                   splitting_rule: SplittingRule,
                                   indices_est: NDArray[np.intp],
                                   ) -> dict:
    """Route estimation rows to leaves and store leaf statistics.

    Internal nodes receive the totals of their subtree.
    """
    leaf_info_int = tree_dict['leaf_info_int']
    leaf_info_float = tree_dict['leaf_info_float']
    no_nodes = leaf_info_int.shape[0]
    leaves = csf_fo_add.terminal_leaves_numba(
        leaf_info_int, leaf_info_float[:, 1],
        np.ascontiguousarray(splitting_rule.x_dat[indices_est]))
    row_stats = splitting_rule.row_statistics(indices_est)
    for col in range(3):
        leaf_info_float[:, 2 + col] = np.bincount(
            leaves, weights=row_stats[:, col], minlength=no_nodes)
    counts = np.bincount(leaves, minlength=no_nodes)
    leaf_info_int[:, 7] = counts
    order = np.argsort(leaves, kind='stable')
    tree_dict['leaf_samples'] = np.split(indices_est[order].astype(np.intp),
                                         np.cumsum(counts)[:-1])
    # Children have larger ids than their parents
    for node in range(no_nodes - 1, -1, -1):
        if leaf_info_int[node, 5] == csf_fo_asdict.SPLIT:
            left, right = leaf_info_int[node, 2], leaf_info_int[node, 3]
            leaf_info_float[node, 2:5] = (leaf_info_float[left, 2:5]
                                          + leaf_info_float[right, 2:5])
            leaf_info_int[node, 7] = (leaf_info_int[left, 7]
                                      + leaf_info_int[right, 7])
    tree_dict['split_data_list'] = None
    return tree_dict


def prune_empty_leaves(tree_dict: dict) -> dict:
    """Turn splits with an empty child into leaves (bottom-up).

    The new leaf holds all estimation rows of its subtree. Nodes below it
    become unreachable and are removed.
    """
    leaf_info_int = tree_dict['leaf_info_int']
    leaf_samples = tree_dict['leaf_samples']
    pruned = False
    for node in range(leaf_info_int.shape[0] - 1, -1, -1):
        if leaf_info_int[node, 5] != csf_fo_asdict.SPLIT:
            continue
        left, right = leaf_info_int[node, 2], leaf_info_int[node, 3]
        if leaf_info_int[left, 7] > 0 and leaf_info_int[right, 7] > 0:
            continue
        leaf_samples[node] = csf_fo_asdict.subtree_samples(
            leaf_info_int, leaf_samples, node)
        leaf_info_int[node, 2:6] = (-1, -1, -1, csf_fo_asdict.TERMINAL)
        tree_dict['leaf_info_float'][node, 1] = np.nan
        pruned = True
    if pruned:
        (tree_dict['leaf_info_int'], tree_dict['leaf_info_float'],
         tree_dict['leaf_samples']) = csf_fo_asdict.compact_tree(
             leaf_info_int, tree_dict['leaf_info_float'], leaf_samples)
    return tree_dict


def finalise_tree(tree_dict: dict, sample: csf_samp.HonestSample
                  ) -> CausalSurvivalTree:
    """Freeze tree and attach the rows used by it."""
    leaf_info_int = tree_dict['leaf_info_int']
    empty = np.empty(0, dtype=np.intp)
    leaf_samples = tuple(
        samples if leaf_info_int[node, 5] == csf_fo_asdict.TERMINAL else empty
        for node, samples in enumerate(tree_dict['leaf_samples']))
    return CausalSurvivalTree(
        leaf_info_int=leaf_info_int, leaf_info_float=tree_dict['leaf_info_float'],
        leaf_samples=leaf_samples, drawn_samples=sample.drawn,
        split_samples=sample.split, estimation_samples=sample.estimation,
        oob_samples=sample.oob)


def make_degenerate_tree(splitting_rule: SplittingRule,
                         sample: csf_samp.HonestSample
                         ) -> CausalSurvivalTree:
    """Single-leaf tree holding all estimation rows."""
    leaf_info_int, leaf_info_float, leaf_samples = (
        csf_fo_asdict.single_leaf_tree(
            sample.estimation, len(sample.split),
            splitting_rule.leaf_aggregate(sample.estimation)))
    return CausalSurvivalTree(
        leaf_info_int=leaf_info_int, leaf_info_float=leaf_info_float,
        leaf_samples=tuple(leaf_samples), drawn_samples=sample.drawn,
        split_samples=sample.split, estimation_samples=sample.estimation,
        oob_samples=sample.oob, degenerate=True)
