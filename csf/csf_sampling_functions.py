"""
Contains the functions for drawing (honest) subsamples for tree groups.

Created on Mon Oct 19 10:31:09 2026
# -*- coding: utf-8 -*-
"""
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from csf.csf_exceptions import ConfigurationError


@dataclass(frozen=True, slots=True)
class HonestSample:
    """Row indices of one honest draw (sorted, read-only)."""

    drawn: NDArray[np.intp]       # subsample (split + estimation)
    split: NDArray[np.intp]       # rows used to find splits
    estimation: NDArray[np.intp]  # rows used for leaf statistics
    oob: NDArray[np.intp]         # rows of clusters not drawn

    def __post_init__(self) -> None:
        for array in (self.drawn, self.split, self.estimation, self.oob):
            array.setflags(write=False)


@dataclass(frozen=True, slots=True)
class ClusterIndex:
    """Rows belonging to each cluster."""

    members: tuple[NDArray[np.intp], ...]
    max_size: int

    @property
    def num_clusters(self) -> int:
        return len(self.members)


def make_cluster_index(num_rows: int,
                       clusters: NDArray[np.integer] | None = None
                       ) -> ClusterIndex | None:
    """Group rows by cluster id (None if every row is its own cluster)."""
    if clusters is None:
        return None
    clusters = np.asarray(clusters)
    if clusters.shape[0] != num_rows:
        raise ConfigurationError(
            f'{clusters.shape[0]} cluster ids for {num_rows} rows.',
            parameter='sample_clusters', value=clusters.shape[0])
    _, inverse, counts = np.unique(clusters, return_inverse=True,
                                   return_counts=True)
    order = np.argsort(inverse, kind='stable')
    members = tuple(np.split(order, np.cumsum(counts)[:-1]))
    return ClusterIndex(members=members, max_size=int(counts.max()))


def number_of_drawn_units(num_units: int, sample_fraction: float) -> int:
    """Number of clusters (or rows) drawn for one group."""
    return max(1, min(num_units, round(sample_fraction * num_units)))


def check_sample_sizes(num_units: int, sample_fraction: float,
                       honesty: bool) -> None:
    """Raise before training if the subsample cannot be split honestly."""
    n_drawn = number_of_drawn_units(num_units, sample_fraction)
    if honesty and n_drawn < 2:
        raise ConfigurationError(
            f'Subsample of {n_drawn} unit(s) cannot be split into a split '
            'set and an estimation set. Increase sample_fraction or the '
            'number of observations.', parameter='sample_fraction',
            value=sample_fraction)


def honest_split(drawn_units: NDArray[np.intp], honesty_fraction: float
                 ) -> tuple[NDArray[np.intp], NDArray[np.intp]]:
    """Split drawn units into split and estimation units (both non-empty)."""
    n_drawn = len(drawn_units)
    if n_drawn < 2:
        raise ConfigurationError('Honesty needs at least two drawn units.',
                                 parameter='honesty_fraction')
    n_split = min(max(1, round(honesty_fraction * n_drawn)), n_drawn - 1)
    return drawn_units[:n_split], drawn_units[n_split:]


def rows_of_clusters(cluster_idx: ClusterIndex,
                     units: NDArray[np.intp],
                     samples_per_cluster: int,
                     rng: np.random.Generator
                     ) -> NDArray[np.intp]:
    """Draw up to samples_per_cluster rows from each cluster (no replacement)."""
    rows = []
    for unit in units:
        member = cluster_idx.members[unit]
        if member.size > samples_per_cluster:
            member = rng.choice(member, samples_per_cluster, replace=False)
        rows.append(member)
    if not rows:
        return np.empty(0, dtype=np.intp)
    return np.sort(np.concatenate(rows)).astype(np.intp)


def draw_honest_sample(num_rows: int,
                       sample_fraction: float,
                       honesty: bool,
                       honesty_fraction: float,
                       rng: np.random.Generator,
                       cluster_idx: ClusterIndex | None = None,
                       samples_per_cluster: int | None = None,
                       ) -> HonestSample:
    """Draw subsample without replacement and split it for honesty.

    Parameters
    ----------
    num_rows : Int. Number of observations.
    sample_fraction : Float. Share of clusters (rows) drawn.
    honesty : Bool. Split the subsample into split and estimation part.
    honesty_fraction : Float. Share of drawn clusters used for splitting.
    rng : Random number generator of the group.
    cluster_idx : ClusterIndex or None. None: every row is its own cluster.
    samples_per_cluster : Int or None. Rows per drawn cluster. None: all.

    Returns
    -------
    HonestSample. Disjoint split and estimation rows if honesty is used.
    """
    num_units = num_rows if cluster_idx is None else cluster_idx.num_clusters
    n_drawn = number_of_drawn_units(num_units, sample_fraction)
    drawn_units = rng.choice(num_units, size=n_drawn, replace=False)
    if honesty:
        split_units, est_units = honest_split(drawn_units, honesty_fraction)
    else:
        split_units = est_units = drawn_units
    not_drawn = np.ones(num_units, dtype=np.bool_)
    not_drawn[drawn_units] = False
    oob_units = np.flatnonzero(not_drawn)

    if cluster_idx is None:
        split = np.sort(split_units).astype(np.intp)
        estimation = (split if not honesty
                      else np.sort(est_units).astype(np.intp))
        oob = oob_units.astype(np.intp)
    else:
        per_cluster = (cluster_idx.max_size if samples_per_cluster is None
                       else samples_per_cluster)
        split = rows_of_clusters(cluster_idx, split_units, per_cluster, rng)
        if honesty:
            estimation = rows_of_clusters(cluster_idx, est_units, per_cluster,
                                          rng)
        else:
            estimation = split
        oob = rows_of_clusters(cluster_idx, oob_units, cluster_idx.max_size,
                               rng)
    drawn = np.union1d(split, estimation).astype(np.intp)
    if not honesty:
        estimation = split.copy()

    return HonestSample(drawn=drawn, split=split.copy(),
                        estimation=estimation, oob=oob)
