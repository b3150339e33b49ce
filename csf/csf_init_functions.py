"""
Contains the functions needed for initialising the parameters of the programme.

Created on Mon Oct 19 09:44:18 2026
# -*- coding: utf-8 -*-
"""
from dataclasses import dataclass, fields
from math import ceil, sqrt
from numbers import Integral, Real
from pathlib import Path
from typing import Any

import numpy as np

from csf import csf_general_sys as csf_sys
from csf.csf_exceptions import ConfigurationError

IntLike = int | None
BoolLike = bool | None
StrLike = str | None


@dataclass(slots=True, kw_only=True)
class IntCfg:
    """Internal parameters (tolerances and parallel backend).

    Not meant to be changed by users, but exposed for testing.
    """

    zero_tol: float = 1e-15
    denominator_tol: float = 1e-10   # |sum of weighted denominators| at node
    split_rel_tol: float = 1e-12     # minimal relative gain of a split
    mp_with_ray: bool = True         # False: thread pool instead of ray
    mp_ray_del: tuple[str, ...] = ('refs',)
    mp_ray_shutdown: bool = False
    sys_share: float = 0.0
    trees_per_predict_chunk: int = 100

    @classmethod
    def from_args(cls,
                  *,
                  mp_with_ray: BoolLike = None,
                  mp_ray_del: tuple[str, ...] | str | None = None,
                  mp_ray_shutdown: BoolLike = None,
                  trees_per_predict_chunk: IntLike = None,
                  ) -> 'IntCfg':
        """Read in a flexible way."""
        match mp_ray_del:
            case None:
                ray_del: tuple[str, ...] = ('refs',)
            case str() as single:
                ray_del = (single,)
            case tuple() | list():
                ray_del = tuple(mp_ray_del)
            case _:
                raise ValueError(f'{mp_ray_del} is not a valid value for '
                                 'mp_ray_del.')
        for item in ray_del:
            if item not in ('refs', 'none'):
                raise ValueError(f'{item} is not a valid value for '
                                 'mp_ray_del. Use "refs" or "none".')
        match trees_per_predict_chunk:
            case None:
                chunk = 100
            case int() as val if val >= 1:
                chunk = val
            case _:
                raise ValueError('trees_per_predict_chunk must be a positive '
                                 'integer.')

        return cls(mp_with_ray=mp_with_ray is not False,
                   mp_ray_del=ray_del,
                   mp_ray_shutdown=mp_ray_shutdown is True,
                   trees_per_predict_chunk=chunk,
                   )


@dataclass(slots=True, kw_only=True)
class GenCfg:
    """Define the general (output) parameters."""

    with_output: bool = True
    verbose: bool = False
    outpath: Path | None = None
    outfiletext: Path | None = None
    outfilesummary: Path | None = None

    output_type: int = 0  # 0: terminal, 1: file, else both
    print_to_file: bool = False
    print_to_terminal: bool = True

    @classmethod
    def from_args(cls,
                  *,
                  outfiletext: StrLike = None,
                  outpath: Path | str | None = None,
                  output_type: IntLike = None,
                  verbose: BoolLike = None,
                  with_output: BoolLike = None,
                  output_no_new_dir: bool = False,
                  ) -> 'GenCfg':
        """Read in a flexible way."""
        with_output_b = with_output is not False
        verbose_b = verbose is True and with_output_b

        match output_type:
            case None | 0:
                output_type_i, to_file, to_terminal = 0, False, True
            case 1:
                output_type_i, to_file, to_terminal = 1, True, False
            case 2:
                output_type_i, to_file, to_terminal = 2, True, True
            case _:
                raise ValueError(f'{output_type} is not a valid output type. '
                                 'Use 0 (terminal), 1 (file), 2 (both).')
        if not with_output_b:
            to_file = to_terminal = False

        outpath_final = outfiletext_path = outfilesummary_path = None
        if to_file:
            outpath_final = csf_sys.define_outpath(outpath,
                                                   not output_no_new_dir)
            base = 'txtFileWithOutput' if outfiletext is None else outfiletext
            outfiletext_path = outpath_final / f'{base}.txt'
            outfilesummary_path = outfiletext_path.with_name(
                f'{outfiletext_path.stem}_Summary.txt'
                )
            csf_sys.delete_file_if_exists(outfiletext_path)
            csf_sys.delete_file_if_exists(outfilesummary_path)

        return cls(with_output=with_output_b,
                   verbose=verbose_b,
                   outpath=outpath_final,
                   outfiletext=outfiletext_path,
                   outfilesummary=outfilesummary_path,
                   output_type=output_type_i,
                   print_to_file=to_file,
                   print_to_terminal=to_terminal,
                   )


def quiet_gen_cfg() -> GenCfg:
    """Configuration that suppresses all output."""
    return GenCfg(with_output=False, verbose=False, print_to_terminal=False)


@dataclass(frozen=True, slots=True, kw_only=True)
class ForestOptions:
    """Options of the causal survival forest.

    Attributes
    ----------
    num_trees : Int. Number of trees. Must be a multiple of ci_group_size.
        Default is 2000.
    ci_group_size : Int. Trees per group sharing one subsample. Values >= 2
        are needed for variance estimates. Default is 2.
    sample_fraction : Float in (0, 1]. Share of clusters (or rows) drawn for
        each group. Default is 0.5.
    mtry : Int or None. Candidate features per split. None uses
        min(ceil(sqrt(p) + 20), p). Default is None.
    min_node_size : Int. Minimum number of split-set rows in a child.
        Default is 5.
    honesty : Bool. Use separate rows for splitting and for leaf estimates.
        Default is True.
    honesty_fraction : Float in (0, 1). Share of the subsample used for
        splitting. Default is 0.5.
    honesty_prune_leaves : Bool. Collapse splits whose children have no
        estimation rows. Default is True.
    alpha : Float in (0, 1). Nominal level reported together with the
        forest. Not used in splitting. Default is 0.05.
    imbalance_penalty : Float >= 0. Penalty on unequal child sizes.
        Default is 0.
    num_threads : Int or None. Workers used. None uses 80% of the logical
        cores. Default is None.
    random_seed : Int >= 0. Root seed. Default is 42.
    sample_clusters : Sequence of int or None. Cluster id per row. None uses
        the cluster column of the data (if any). Default is None.
    samples_per_cluster : Int or None. Rows drawn per drawn cluster. None
        uses the size of the largest cluster. Default is None.
    """

    num_trees: int = 2000
    ci_group_size: int = 2
    sample_fraction: float = 0.5
    mtry: int | None = None
    min_node_size: int = 5
    honesty: bool = True
    honesty_fraction: float = 0.5
    honesty_prune_leaves: bool = True
    alpha: float = 0.05
    imbalance_penalty: float = 0.0
    num_threads: int | None = None
    random_seed: int = 42
    sample_clusters: tuple[int, ...] | None = None
    samples_per_cluster: int | None = None

    def __post_init__(self) -> None:
        if self.sample_clusters is not None:
            clusters = np.asarray(self.sample_clusters)
            if clusters.ndim != 1:
                raise ConfigurationError(
                    'sample_clusters must be one-dimensional.',
                    parameter='sample_clusters')
            if clusters.size and not np.all(np.mod(clusters, 1) == 0):
                raise ConfigurationError(
                    'sample_clusters must contain integer cluster ids.',
                    parameter='sample_clusters')
            object.__setattr__(self, 'sample_clusters',
                               tuple(int(cl) for cl in clusters))
        check_positive_int(self.num_trees, 'num_trees')
        check_positive_int(self.ci_group_size, 'ci_group_size')
        check_positive_int(self.min_node_size, 'min_node_size')
        if self.mtry is not None:
            check_positive_int(self.mtry, 'mtry')
        if self.num_threads is not None:
            check_positive_int(self.num_threads, 'num_threads')
        if self.samples_per_cluster is not None:
            check_positive_int(self.samples_per_cluster,
                               'samples_per_cluster')
        if not isinstance(self.random_seed, Integral) or self.random_seed < 0:
            raise ConfigurationError('random_seed must be a non-negative '
                                     'integer.', parameter='random_seed',
                                     value=self.random_seed)
        if self.num_trees % self.ci_group_size != 0:
            raise ConfigurationError(
                f'num_trees ({self.num_trees}) must be a multiple of '
                f'ci_group_size ({self.ci_group_size}).',
                parameter='num_trees', value=self.num_trees)
        check_in_interval(self.sample_fraction, 'sample_fraction',
                          lower_open=True, upper_open=False)
        if self.honesty:
            check_in_interval(self.honesty_fraction, 'honesty_fraction',
                              lower_open=True, upper_open=True)
        check_in_interval(self.alpha, 'alpha', lower_open=True,
                          upper_open=True)
        if (not isinstance(self.imbalance_penalty, Real)
                or not np.isfinite(self.imbalance_penalty)
                or self.imbalance_penalty < 0):
            raise ConfigurationError('imbalance_penalty must be a finite '
                                     'non-negative number.',
                                     parameter='imbalance_penalty',
                                     value=self.imbalance_penalty)

    @property
    def num_groups(self) -> int:
        """Number of tree groups."""
        return self.num_trees // self.ci_group_size

    def resolve_mtry(self, num_features: int) -> int:
        """Return number of candidate features used in every split."""
        if self.mtry is None:
            return min(ceil(sqrt(num_features) + 20), num_features)
        if self.mtry > num_features:
            raise ConfigurationError(
                f'mtry ({self.mtry}) must not exceed the number of features '
                f'({num_features}).', parameter='mtry', value=self.mtry)
        return self.mtry

    def resolve_num_threads(self) -> int:
        """Return number of workers."""
        if self.num_threads is None:
            return csf_sys.default_no_of_workers()
        return self.num_threads

    def to_dict(self) -> dict[str, Any]:
        """Options as dict (for printing)."""
        options = {field.name: getattr(self, field.name)
                   for field in fields(self)}
        if self.sample_clusters is not None:
            options['sample_clusters'] = (
                f'{len(set(self.sample_clusters))} clusters')
        return options


def check_positive_int(value: Any, name: str) -> None:
    """Raise ConfigurationError if value is not an integer >= 1."""
    if isinstance(value, bool) or not isinstance(value, Integral) or value < 1:
        raise ConfigurationError(f'{name} must be a positive integer.',
                                 parameter=name, value=value)


def check_in_interval(value: Any, name: str, lower_open: bool = True,
                      upper_open: bool = True) -> None:
    """Raise ConfigurationError if value is outside of (0, 1) or (0, 1]."""
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ConfigurationError(f'{name} must be a number.', parameter=name,
                                 value=value)
    lower_ok = value > 0 if lower_open else value >= 0
    upper_ok = value < 1 if upper_open else value <= 1
    if not (lower_ok and upper_ok):
        interval = (('(' if lower_open else '[') + '0, 1'
                    + (')' if upper_open else ']'))
        raise ConfigurationError(f'{name} must be in {interval}, got {value}.',
                                 parameter=name, value=value)
