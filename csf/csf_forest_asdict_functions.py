"""
Contains the functions for storing trees and cutting them back.

Created on Mon Oct 19 11:40:32 2026
# -*- coding: utf-8 -*-
"""
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from csf import csf_forest_add_functions as csf_fo_add

# leaf_info_int 0: ID of node
#               1: ID of parent (or -1 for root)
#               2: ID of left child (values <= cut-off)
#               3: ID of right child (values > cut-off)
#               4: Position of splitting feature in feature matrix
#               5: 2: Active node (to be split); 0: Already split;
#                  1: Terminal leaf; -1: Unused
#               6: Number of split-set rows in node
#               7: Number of estimation-set rows in node (subtree)
# leaf_info_float 0: ID of node
#                 1: Cut-off value of splitting feature
#                 2: Sum of weighted numerators (subtree)
#                 3: Sum of weighted denominators (subtree)
#                 4: Sum of weights (subtree)
COLS_INT, COLS_FLOAT = 8, 5
ACTIVE, SPLIT, TERMINAL, UNUSED = 2, 0, 1, -1


@dataclass(frozen=True, slots=True, eq=False)
class CausalSurvivalTree:
    """Honest causal survival tree stored as arena of nodes.

    Node arrays and row index arrays are read-only. leaf_samples[i] holds the
    estimation rows of leaf i (empty array for internal nodes).
    """

    leaf_info_int: NDArray[np.int64]
    leaf_info_float: NDArray[np.float64]
    leaf_samples: tuple[NDArray[np.intp], ...]
    drawn_samples: NDArray[np.intp]
    split_samples: NDArray[np.intp]
    estimation_samples: NDArray[np.intp]
    oob_samples: NDArray[np.intp]
    degenerate: bool = False

    def __post_init__(self) -> None:
        for array in (self.leaf_info_int, self.leaf_info_float,
                      self.drawn_samples, self.split_samples,
                      self.estimation_samples, self.oob_samples,
                      *self.leaf_samples):
            array.setflags(write=False)

    @property
    def num_nodes(self) -> int:
        return self.leaf_info_int.shape[0]

    @property
    def leaf_ids(self) -> NDArray[np.int64]:
        return np.flatnonzero(self.leaf_info_int[:, 5] == TERMINAL)

    @property
    def num_leaves(self) -> int:
        return int(np.count_nonzero(self.leaf_info_int[:, 5] == TERMINAL))

    def is_leaf(self, node: int) -> bool:
        return bool(self.leaf_info_int[node, 5] == TERMINAL)

    def get_leaves(self, x_dat: NDArray[np.float64]) -> NDArray[np.int64]:
        """Terminal node of every row of the feature matrix."""
        return csf_fo_add.terminal_leaves_numba(
            self.leaf_info_int, self.leaf_info_float[:, 1],
            np.ascontiguousarray(x_dat, dtype=np.float64))

    def leaf_means(self) -> tuple[NDArray[np.float64], NDArray[np.float64],
                                  NDArray[np.bool_]]:
        """Weighted mean numerator and denominator per node.

        Returns
        -------
        num_mean, den_mean : Numpy 1D arrays (0 where the node is empty).
        nonempty : Numpy 1D boolean array. Node has positive weight.
        """
        w_sum = self.leaf_info_float[:, 4]
        nonempty = w_sum > 0
        num_mean = np.zeros(self.num_nodes)
        den_mean = np.zeros(self.num_nodes)
        num_mean[nonempty] = self.leaf_info_float[nonempty, 2] / w_sum[nonempty]
        den_mean[nonempty] = self.leaf_info_float[nonempty, 3] / w_sum[nonempty]
        return num_mean, den_mean, nonempty


def make_default_tree_dict(n_leaf_min: int,
                           indices_split: NDArray[np.intp],
                           ) -> dict:
    """
    Define a dict containing the information of the tree during building.

    Parameters
    ----------
    n_leaf_min : Int.
        Minimum number of split-set rows per leaf.
    indices_split : Numpy 1D array.
        Rows used to find splits.

    Returns
    -------
    tree_dict : Dict. Root is the only active node.
    """
    nodes_max = max(1, 2 * int(np.ceil(len(indices_split) / n_leaf_min)))
    leaf_info_int = -np.ones((nodes_max, COLS_INT), dtype=np.int64)
    leaf_info_int[:, 0] = np.arange(nodes_max)
    leaf_info_int[0, 1] = -1
    leaf_info_int[0, 5] = ACTIVE
    leaf_info_int[0, 6] = len(indices_split)
    leaf_info_int[0, 7] = 0
    leaf_info_float = np.zeros((nodes_max, COLS_FLOAT), dtype=np.float64)
    leaf_info_float[:, 0] = np.arange(nodes_max)
    leaf_info_float[:, 1] = np.nan
    split_data_list: list[NDArray[np.intp] | None] = [None] * nodes_max
    split_data_list[0] = indices_split
    return {'leaf_info_int': leaf_info_int,
            'leaf_info_float': leaf_info_float,
            'split_data_list': split_data_list,
            'leaf_samples': None,
            'no_of_nodes': 1,
            }


def cut_back_empty_cells_tree(tree_dict: dict) -> dict:
    """Cut back arrays to the nodes actually used."""
    no_nodes = tree_dict['no_of_nodes']
    tree_dict['leaf_info_int'] = tree_dict['leaf_info_int'][:no_nodes, :]
    tree_dict['leaf_info_float'] = tree_dict['leaf_info_float'][:no_nodes, :]
    tree_dict['split_data_list'] = tree_dict['split_data_list'][:no_nodes]
    return tree_dict


def compact_tree(leaf_info_int: NDArray[np.int64],
                 leaf_info_float: NDArray[np.float64],
                 leaf_samples: list[NDArray[np.intp]],
                 ) -> tuple[NDArray[np.int64], NDArray[np.float64],
                            list[NDArray[np.intp]]]:
    """Remove nodes not reachable from the root and renumber the others.

    Node order (and hence parent id < child id) is preserved.
    """
    reachable = np.zeros(leaf_info_int.shape[0], dtype=np.bool_)
    stack = [0]
    while stack:
        node = stack.pop()
        reachable[node] = True
        if leaf_info_int[node, 5] == SPLIT:
            stack.extend((int(leaf_info_int[node, 2]),
                          int(leaf_info_int[node, 3])))
    if reachable.all():
        return leaf_info_int, leaf_info_float, leaf_samples
    keep = np.flatnonzero(reachable)
    new_id = -np.ones(leaf_info_int.shape[0] + 1, dtype=np.int64)
    new_id[keep] = np.arange(keep.size)
    info_int = leaf_info_int[keep].copy()
    info_float = leaf_info_float[keep].copy()
    info_int[:, 0] = np.arange(keep.size)
    info_float[:, 0] = np.arange(keep.size)
    for col in (1, 2, 3):   # -1 is mapped to new_id[-1] == -1
        info_int[:, col] = new_id[info_int[:, col]]
    return info_int, info_float, [leaf_samples[idx] for idx in keep]


def subtree_samples(leaf_info_int: NDArray[np.int64],
                    leaf_samples: list[NDArray[np.intp]],
                    node: int) -> NDArray[np.intp]:
    """Sorted estimation rows of all leaves below (or at) node."""
    rows, stack = [], [node]
    while stack:
        current = stack.pop()
        if leaf_info_int[current, 5] == SPLIT:
            stack.extend((int(leaf_info_int[current, 2]),
                          int(leaf_info_int[current, 3])))
        else:
            rows.append(leaf_samples[current])
    if not rows:
        return np.empty(0, dtype=np.intp)
    return np.sort(np.concatenate(rows)).astype(np.intp)


def single_leaf_tree(indices_estimation: NDArray[np.intp],
                     n_split: int,
                     aggregates: tuple[float, float, float]
                     ) -> tuple[NDArray[np.int64], NDArray[np.float64],
                                list[NDArray[np.intp]]]:
    """Node arrays of a tree that consists of its root only."""
    leaf_info_int = np.array([[0, -1, -1, -1, -1, TERMINAL, n_split,
                               len(indices_estimation)]], dtype=np.int64)
    leaf_info_float = np.array([[0, np.nan, *aggregates]], dtype=np.float64)
    return leaf_info_int, leaf_info_float, [np.asarray(indices_estimation,
                                                       dtype=np.intp)]


def trees_equal(tree_1: CausalSurvivalTree,
                tree_2: CausalSurvivalTree) -> bool:
    """Check whether two trees have identical structure and content."""
    if (tree_1.degenerate != tree_2.degenerate
            or tree_1.num_nodes != tree_2.num_nodes):
        return False
    if not (np.array_equal(tree_1.leaf_info_int, tree_2.leaf_info_int)
            and np.array_equal(tree_1.leaf_info_float, tree_2.leaf_info_float,
                               equal_nan=True)):
        return False
    for name in ('drawn_samples', 'split_samples', 'estimation_samples',
                 'oob_samples'):
        if not np.array_equal(getattr(tree_1, name), getattr(tree_2, name)):
            return False
    return all(np.array_equal(leaf_1, leaf_2) for leaf_1, leaf_2
               in zip(tree_1.leaf_samples, tree_2.leaf_samples))
