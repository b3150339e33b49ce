"""
Contains additional functions needed for building and describing the forest.

Created on Mon Oct 19 11:12:50 2026
# -*- coding: utf-8 -*-
"""
from typing import Any, TYPE_CHECKING

from numba import njit
import numpy as np
from numpy.typing import NDArray

from csf import csf_print_stats_functions as csf_ps

if TYPE_CHECKING:
    from csf.csf_forest_functions import Forest


def rnd_variable_for_split(x_ind_pos: NDArray[np.intp],
                           mmm: int,
                           rng: np.random.Generator,
                           exclude: NDArray[np.intp] | None = None,
                           ) -> NDArray[np.intp]:
    """Find variables used for splitting.

    Parameters
    ----------
    x_ind_pos : NDArray. Positions of all features.
    mmm : Int. Number of variables to draw.
    rng : Random number generator of the tree.
    exclude : NDArray or None. Features not to draw (already tried).

    Returns
    -------
    x_i_for_split : Sorted NDArray of feature positions.

    """
    pool = (x_ind_pos if exclude is None
            else x_ind_pos[~np.isin(x_ind_pos, exclude)])
    if mmm < pool.size:
        x_i_for_split = rng.choice(pool, mmm, replace=False)
    else:
        x_i_for_split = pool.copy()
    return np.sort(x_i_for_split).astype(np.intp)


@njit
def terminal_leaves_numba(leaf_info_int: NDArray[np.int64],
                          cut_off: NDArray[np.float64],
                          x_dat: NDArray[np.float64],
                          ) -> NDArray[np.int64]:
    """Get the terminal node of every row with a loop algorithm."""
    leaves = np.empty(x_dat.shape[0], dtype=np.int64)
    for i in range(x_dat.shape[0]):
        leaf_id = 0
        while leaf_info_int[leaf_id, 5] != 1:
            if x_dat[i, leaf_info_int[leaf_id, 4]] <= cut_off[leaf_id]:
                leaf_id = leaf_info_int[leaf_id, 2]
            else:
                leaf_id = leaf_info_int[leaf_id, 3]
        leaves[i] = leaf_id
    return leaves


def get_tree_infos(trees: tuple[Any, ...]) -> NDArray[np.floating]:
    """Obtain some basic information about estimated trees.

    Parameters
    ----------
    trees : Tuple of CausalSurvivalTree.

    Returns
    -------
    leaf_info : Numpy array. Average # of leaves, average, median, min, max
        size of leaves (estimation rows), average # of obs in leaves, average
        depth.

    """
    leaf_info_tmp = np.zeros([len(trees), 7])
    for idx, tree in enumerate(trees):
        sizes = tree.leaf_info_int[tree.leaf_ids, 7]
        leaf_info_tmp[idx, 0] = sizes.size
        leaf_info_tmp[idx, 1] = np.mean(sizes)
        leaf_info_tmp[idx, 2] = np.median(sizes)
        leaf_info_tmp[idx, 3] = np.min(sizes)
        leaf_info_tmp[idx, 4] = np.max(sizes)
        leaf_info_tmp[idx, 5] = np.sum(sizes)
        leaf_info_tmp[idx, 6] = tree_depth(tree.leaf_info_int)
    leaf_info = np.empty(7)
    list_of_ind = [0, 1, 5, 6]
    leaf_info[list_of_ind] = np.mean(leaf_info_tmp[:, list_of_ind], axis=0)
    leaf_info[2] = np.median(leaf_info_tmp[:, 2])
    leaf_info[3] = np.min(leaf_info_tmp[:, 3])
    leaf_info[4] = np.max(leaf_info_tmp[:, 4])

    return leaf_info


def tree_depth(leaf_info_int: NDArray[np.int64]) -> int:
    """Depth of tree (root only: 0). Parents precede their children."""
    depth = np.zeros(leaf_info_int.shape[0], dtype=np.int64)
    for node in range(1, leaf_info_int.shape[0]):
        depth[node] = depth[leaf_info_int[node, 1]] + 1
    return int(depth.max())


def describe_forest(forest: 'Forest',
                    mtry: int,
                    gen_cfg: Any,
                    summary: bool = True
                    ) -> dict[str, Any]:
    """Describe estimated forest by collecting information in trees."""
    options = forest.options
    txt = ('\n' + '-' * 100 + '\nParameters of estimation to build causal '
           'survival forest')
    txt += '\nFeatures used to build forest:          '
    txt += ' '.join(forest.feature_names)
    txt += f'\nNumber of trees:                        {forest.num_trees:<6}'
    txt += f'\nTrees per group (inference):            {options.ci_group_size:<6}'
    txt += '\nSplitting rule used:                    Causal survival effect'
    if options.imbalance_penalty > 0:
        txt += ('\nPenalty on unequal child sizes:         '
                f'{options.imbalance_penalty}')
    txt += '\nShare of data in subsample:             '
    txt += f'{options.sample_fraction:<6}'
    if options.honesty:
        txt += '\nShare of subsample used for splitting:  '
        txt += f'{options.honesty_fraction:<6}'
        txt += ('\nEmpty leaves pruned:                    '
                f'{options.honesty_prune_leaves}')
    else:
        txt += '\nNo honesty (same data for splitting and estimation)'
    txt += ('\nTotal number of variables available for splitting: '
            f'{forest.num_features:<4}')
    txt += f'\n# of variables (M) used for split:      {mtry:<4}'
    txt += f'\nMinimum leaf size:                      {options.min_node_size:<4}'
    txt += f'\nTrees without any split:                {forest.degenerate_trees:<4}'
    txt += '\n------------------- Estimated trees ----------------------------'
    leaf_info = get_tree_infos(forest.trees)
    txt += f'\nAverage # of leaves:                      {leaf_info[0]:4.1f}'
    txt += f'\nAverage size of leaves:                   {leaf_info[1]:4.1f}'
    txt += f'\nMedian size of leaves:                    {leaf_info[2]:4.1f}'
    txt += f'\nMin size of leaves:                       {leaf_info[3]:4.0f}'
    txt += f'\nMax size of leaves:                       {leaf_info[4]:4.0f}'
    txt += f'\nAverage # of obs in leaves (single tree): {leaf_info[5]:4.0f}'
    txt += f'\nAverage depth of trees:                   {leaf_info[6]:4.1f}'
    txt += '\n' + '-' * 100
    csf_ps.print_csf(gen_cfg, txt, summary=summary)
    report = {'n_min': options.min_node_size,
              'm_split': mtry,
              'f_share': options.sample_fraction,
              'honesty_fraction': options.honesty_fraction,
              'features': ' '.join(forest.feature_names),
              'trees': forest.num_trees,
              'trees_degenerate': forest.degenerate_trees,
              'leaves_mean': leaf_info[0],
              'obs_leaf_mean': leaf_info[1],
              'obs_leaf_med': leaf_info[2],
              'obs_leaf_min': leaf_info[3],
              'obs_leaf_max': leaf_info[4],
              'depth_mean': leaf_info[6],
              }
    return report
