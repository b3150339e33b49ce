"""
Contains the splitting rules (objective functions) used to grow trees.

Created on Mon Oct 19 10:58:26 2026
# -*- coding: utf-8 -*-
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from csf.csf_data_functions import DataView


@dataclass(frozen=True, slots=True)
class SplitResult:
    """Best admissible split of a node."""

    feature: int        # position of feature in feature matrix
    threshold: float    # x <= threshold goes to left child
    score: float
    left: NDArray[np.bool_]   # mask over node rows


class SplittingRule(ABC):
    """Interface of splitting rules used by the tree builder.

    Implementations hold the feature matrix of all training rows in x_dat.
    """

    x_dat: NDArray[np.float64]

    @abstractmethod
    def row_statistics(self, rows: NDArray[np.intp]) -> NDArray[np.float64]:
        """Per-row contributions to leaf_aggregate (one column per sum)."""

    @abstractmethod
    def terminal_reason(self, rows: NDArray[np.intp]) -> str | None:
        """Reason why node must be a leaf (None if it may be split)."""

    @abstractmethod
    def varying_features(self, rows: NDArray[np.intp],
                         candidates: NDArray[np.intp]) -> NDArray[np.intp]:
        """Candidate features that are not constant in the node."""

    @abstractmethod
    def find_best_split(self, rows: NDArray[np.intp],
                        candidates: NDArray[np.intp]) -> SplitResult | None:
        """Best admissible split of node (None if there is none)."""

    @abstractmethod
    def leaf_aggregate(self, rows: NDArray[np.intp]
                       ) -> tuple[float, float, float]:
        """Sufficient statistics stored in a leaf."""

    def candidate_objective(self, rows: NDArray[np.intp],
                            candidates: NDArray[np.intp]) -> float:
        """Score of best split (-inf if there is none)."""
        split = self.find_best_split(rows, candidates)
        return -np.inf if split is None else split.score


class CausalSurvivalSplittingRule(SplittingRule):
    """Heterogeneity of the causal survival effect (numerator/denominator).

    Rows are relabelled at each node with the influence of the node estimate
    tau = sum(w * num) / sum(w * den). The score of a split is the weighted
    between-children variance of the relabelled outcomes minus an optional
    penalty on unequal child sizes.
    """

    __slots__ = ('x_dat', 'num', 'den', 'w_dat', 'd_dat', 'event',
                 'min_node_size', 'imbalance_penalty', 'denominator_tol',
                 'split_rel_tol')

    def __init__(self,
                 x_dat: NDArray[np.float64],
                 num: NDArray[np.float64],
                 den: NDArray[np.float64],
                 w_dat: NDArray[np.float64],
                 d_dat: NDArray[np.float64],
                 censor: NDArray[np.float64],
                 min_node_size: int,
                 imbalance_penalty: float = 0.0,
                 denominator_tol: float = 1e-10,
                 split_rel_tol: float = 1e-12,
                 ) -> None:
        self.x_dat = x_dat
        self.num = num
        self.den = den
        self.w_dat = w_dat
        self.d_dat = d_dat
        self.event = censor == 1
        self.min_node_size = min_node_size
        self.imbalance_penalty = imbalance_penalty
        self.denominator_tol = denominator_tol
        self.split_rel_tol = split_rel_tol

    @classmethod
    def from_data(cls, data: DataView, min_node_size: int,
                  imbalance_penalty: float, int_cfg: Any
                  ) -> 'CausalSurvivalSplittingRule':
        """Collect the columns needed for splitting from the data view."""
        return cls(data.features(), data.numerators(), data.denominators(),
                   data.weights(), data.treatments(), data.censors(),
                   min_node_size, imbalance_penalty=imbalance_penalty,
                   denominator_tol=int_cfg.denominator_tol,
                   split_rel_tol=int_cfg.split_rel_tol,
                   )

    def terminal_reason(self, rows: NDArray[np.intp]) -> str | None:
        if len(rows) < 2 * self.min_node_size:
            return 'min_node_size'
        d_node = self.d_dat[rows]
        if d_node.max() <= d_node.min():
            return 'no_treatment_variation'
        if np.count_nonzero(self.event[rows]) < 2:
            return 'too_few_events'
        den_sum = np.dot(self.w_dat[rows], self.den[rows])
        if abs(den_sum) <= self.denominator_tol:
            return 'zero_denominator'
        return None

    def varying_features(self, rows: NDArray[np.intp],
                         candidates: NDArray[np.intp]) -> NDArray[np.intp]:
        x_node = self.x_dat[np.ix_(rows, candidates)]
        varies = x_node.max(axis=0) > x_node.min(axis=0)
        return candidates[varies]

    def relabel(self, rows: NDArray[np.intp]) -> NDArray[np.float64] | None:
        """Pseudo-outcomes of node rows (None if denominator is ~0)."""
        return relabel_causal_survival(self.num[rows], self.den[rows],
                                       self.w_dat[rows], self.denominator_tol)

    def find_best_split(self, rows: NDArray[np.intp],
                        candidates: NDArray[np.intp]) -> SplitResult | None:
        rho = self.relabel(rows)
        if rho is None:
            return None
        w_node = self.w_dat[rows]
        rho_w = w_node * rho
        d_node, event_node = self.d_dat[rows], self.event[rows]
        best_score, best_feature, best_threshold = -np.inf, -1, np.nan
        for feature in np.sort(candidates):
            result = best_split_feature(
                self.x_dat[rows, feature], rho_w, w_node, d_node, event_node,
                self.min_node_size, self.imbalance_penalty)
            if result is not None and result[1] > best_score:
                best_threshold, best_score = result
                best_feature = int(feature)
        # Gains of the order of rounding errors are no splits
        if best_feature < 0 or best_score <= self.split_rel_tol * np.dot(
                rho_w, rho):
            return None
        left = self.x_dat[rows, best_feature] <= best_threshold
        return SplitResult(feature=best_feature, threshold=best_threshold,
                           score=float(best_score), left=left)

    def row_statistics(self, rows: NDArray[np.intp]) -> NDArray[np.float64]:
        w_rows = self.w_dat[rows]
        return np.column_stack((w_rows * self.num[rows],
                                w_rows * self.den[rows], w_rows))

    def leaf_aggregate(self, rows: NDArray[np.intp]
                       ) -> tuple[float, float, float]:
        w_leaf = self.w_dat[rows]
        return (float(np.dot(w_leaf, self.num[rows])),
                float(np.dot(w_leaf, self.den[rows])),
                float(np.sum(w_leaf)))


def relabel_causal_survival(num: NDArray[np.float64],
                            den: NDArray[np.float64],
                            w_dat: NDArray[np.float64],
                            denominator_tol: float = 1e-10
                            ) -> NDArray[np.float64] | None:
    """Compute the influence of each row on the node estimate.

    Parameters
    ----------
    num : Numpy 1D array. Numerator pseudo-outcomes of node rows.
    den : Numpy 1D array. Denominator pseudo-outcomes of node rows.
    w_dat : Numpy 1D array. Weights of node rows.
    denominator_tol : Float. Node is not relabelled if |sum(w * den)| is
        smaller or equal.

    Returns
    -------
    rho : Numpy 1D array or None. Weighted sum is zero by construction.
    """
    den_sum = np.dot(w_dat, den)
    if abs(den_sum) <= denominator_tol:
        return None
    w_sum = np.sum(w_dat)
    tau = np.dot(w_dat, num) / den_sum
    return (num - den * tau) / (den_sum / w_sum)


def best_split_feature(x_col: NDArray[np.float64],
                       rho_w: NDArray[np.float64],
                       w_dat: NDArray[np.float64],
                       d_dat: NDArray[np.float64],
                       event: NDArray[np.bool_],
                       min_node_size: int,
                       imbalance_penalty: float = 0.0,
                       ) -> tuple[float, float] | None:
    """Find best threshold of one feature.

    All distinct values except the largest are candidate thresholds. Children
    need min_node_size rows, positive weight, variation in treatment and at
    least one observed event.

    Returns
    -------
    (threshold, score) or None if no threshold is admissible.
    """
    order = np.argsort(x_col, kind='stable')
    x_sorted = x_col[order]
    boundary = np.flatnonzero(x_sorted[:-1] < x_sorted[1:])
    if boundary.size == 0:
        return None
    n_obs = x_col.shape[0]
    n_l = boundary + 1
    n_r = n_obs - n_l
    valid = (n_l >= min_node_size) & (n_r >= min_node_size)

    w_cum = np.cumsum(w_dat[order])
    w_l = w_cum[boundary]
    w_r = w_cum[-1] - w_l
    valid &= (w_l > 0) & (w_r > 0)

    ev_cum = np.cumsum(event[order])
    ev_l = ev_cum[boundary]
    valid &= (ev_l >= 1) & (ev_cum[-1] - ev_l >= 1)

    d_sorted = d_dat[order]
    pre_var = (np.maximum.accumulate(d_sorted)
               > np.minimum.accumulate(d_sorted))
    d_rev = d_sorted[::-1]
    suf_var = (np.maximum.accumulate(d_rev)
               > np.minimum.accumulate(d_rev))[::-1]
    valid &= pre_var[boundary] & suf_var[boundary + 1]
    if not valid.any():
        return None

    s_cum = np.cumsum(rho_w[order])
    s_l = s_cum[boundary]
    s_r = s_cum[-1] - s_l
    with np.errstate(divide='ignore', invalid='ignore'):
        score = s_l**2 / w_l + s_r**2 / w_r
    if imbalance_penalty > 0:
        score = score - imbalance_penalty * (n_l - n_r)**2 / n_obs
    score = np.where(valid, score, -np.inf)
    best = int(np.argmax(score))

    return float(x_sorted[boundary[best]]), float(score[best])
