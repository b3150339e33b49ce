"""
Contains the read-only data view used for training and prediction.

Created on Mon Oct 19 10:02:55 2026
# -*- coding: utf-8 -*-
"""
from collections.abc import Sequence
from typing import Any

import numpy as np
from numpy.typing import NDArray
from pandas import DataFrame

from csf.csf_exceptions import ConfigurationError

ROLE_NAMES = ('treatment', 'instrument', 'censor', 'numerator', 'denominator',
              'weight', 'cluster')


class DataView:
    """Immutable view on an observation matrix with semantic column roles.

    The data are copied once into a read-only float64 array. Rows are
    observations. Columns with a role (treatment, instrument, censor,
    numerator, denominator, weight, cluster) are not used as features unless
    explicitly listed in feature_indices (which is not allowed).

    Parameters
    ----------
    data : 2D array-like. Observation matrix (row-major).
    treatment_index, instrument_index, censor_index, numerator_index,
    denominator_index, weight_index, cluster_index : Int or None.
        Column of each role. The instrument defaults to the treatment column.
    feature_indices : Sequence of int or None. Feature columns. None uses all
        columns without a role.
    feature_names : Sequence of str or None. Names of the feature columns.
    """

    __slots__ = ('_data', '_roles', '_feature_indices', '_feature_names')

    def __init__(self,
                 data: NDArray[Any] | Sequence[Sequence[float]],
                 *,
                 treatment_index: int | None = None,
                 instrument_index: int | None = None,
                 censor_index: int | None = None,
                 numerator_index: int | None = None,
                 denominator_index: int | None = None,
                 weight_index: int | None = None,
                 cluster_index: int | None = None,
                 feature_indices: Sequence[int] | None = None,
                 feature_names: Sequence[str] | None = None,
                 ) -> None:
        data_np = np.array(data, dtype=np.float64, order='C', copy=True)
        if data_np.ndim != 2:
            raise ConfigurationError('Data must be a 2D array, got '
                                     f'{data_np.ndim} dimension(s).',
                                     parameter='data')
        data_np.setflags(write=False)
        num_cols = data_np.shape[1]
        if instrument_index is None:
            instrument_index = treatment_index
        roles = {'treatment': treatment_index,
                 'instrument': instrument_index,
                 'censor': censor_index,
                 'numerator': numerator_index,
                 'denominator': denominator_index,
                 'weight': weight_index,
                 'cluster': cluster_index,
                 }
        check_roles(roles, num_cols)
        role_columns = {idx for idx in roles.values() if idx is not None}
        if feature_indices is None:
            features = np.array([col for col in range(num_cols)
                                 if col not in role_columns], dtype=np.intp)
        else:
            features = np.asarray(feature_indices, dtype=np.intp).reshape(-1)
            check_features(features, role_columns, num_cols)
        if features.size == 0:
            raise ConfigurationError('No feature column available.',
                                     parameter='feature_indices')
        features.setflags(write=False)
        if feature_names is None:
            names = tuple(f'x{col}' for col in features)
        else:
            names = tuple(str(name) for name in feature_names)
            if len(names) != features.size:
                raise ConfigurationError(
                    f'{len(names)} feature names for {features.size} '
                    'feature columns.', parameter='feature_names')
        self._data = data_np
        self._roles = roles
        self._feature_indices = features
        self._feature_names = names

    @classmethod
    def from_flat(cls, buffer: Sequence[float] | NDArray[Any], num_rows: int,
                  num_cols: int, **roles: Any) -> 'DataView':
        """Create view from a flat row-major buffer."""
        flat = np.asarray(buffer, dtype=np.float64).reshape(-1)
        if num_rows < 1 or num_cols < 1 or flat.size != num_rows * num_cols:
            raise ConfigurationError(
                f'Buffer of size {flat.size} does not match {num_rows} rows '
                f'and {num_cols} columns.', parameter='buffer')
        return cls(flat.reshape(num_rows, num_cols), **roles)

    @classmethod
    def from_dataframe(cls,
                       data_df: DataFrame,
                       *,
                       x_name: Sequence[str] | None = None,
                       d_name: str | None = None,
                       z_name: str | None = None,
                       censor_name: str | None = None,
                       numerator_name: str | None = None,
                       denominator_name: str | None = None,
                       w_name: str | None = None,
                       cluster_name: str | None = None,
                       ) -> 'DataView':
        """Create view from DataFrame using variable names.

        Only the named columns are kept. Without x_name, every column not
        named otherwise is a feature.
        """
        role_names = [d_name, z_name, censor_name, numerator_name,
                      denominator_name, w_name, cluster_name]
        used = [name for name in role_names if name is not None]
        if x_name is None:
            x_name = [name for name in data_df.columns if name not in used]
        x_name = [x_name] if isinstance(x_name, str) else list(x_name)
        names = list(dict.fromkeys([*x_name, *used]))
        missing = [name for name in names if name not in data_df.columns]
        if missing:
            raise ConfigurationError(f'Variables {missing} not in data.',
                                     parameter='names', value=missing)
        position = {name: idx for idx, name in enumerate(names)}

        def pos(name: str | None) -> int | None:
            return None if name is None else position[name]

        return cls(data_df[names].to_numpy(dtype=np.float64),
                   treatment_index=pos(d_name),
                   instrument_index=pos(z_name),
                   censor_index=pos(censor_name),
                   numerator_index=pos(numerator_name),
                   denominator_index=pos(denominator_name),
                   weight_index=pos(w_name),
                   cluster_index=pos(cluster_name),
                   feature_indices=[position[name] for name in x_name],
                   feature_names=x_name,
                   )

    # Scalar access
    def get(self, row: int, col: int) -> float:
        """Value of one cell."""
        return float(self._data[row, col])

    def causal_survival_numerator(self, row: int) -> float:
        """Numerator pseudo-outcome of the row."""
        return float(self._data[row, self.role_index('numerator')])

    def causal_survival_denominator(self, row: int) -> float:
        """Denominator pseudo-outcome of the row."""
        return float(self._data[row, self.role_index('denominator')])

    @property
    def num_rows(self) -> int:
        return self._data.shape[0]

    @property
    def num_cols(self) -> int:
        return self._data.shape[1]

    @property
    def num_features(self) -> int:
        return self._feature_indices.size

    @property
    def feature_indices(self) -> NDArray[np.intp]:
        return self._feature_indices

    @property
    def feature_names(self) -> tuple[str, ...]:
        return self._feature_names

    @property
    def values(self) -> NDArray[np.float64]:
        """Read-only observation matrix."""
        return self._data

    def role_index(self, role: str) -> int | None:
        """Column of a role (None if the role is not set)."""
        if role not in self._roles:
            raise KeyError(f'{role} is not a column role. Roles: '
                           f'{", ".join(ROLE_NAMES)}')
        return self._roles[role]

    def has_role(self, role: str) -> bool:
        return self.role_index(role) is not None

    def require_training_roles(self) -> None:
        """Raise if a role needed to grow a forest is missing."""
        missing = [role for role in ('treatment', 'censor', 'numerator',
                                     'denominator')
                   if not self.has_role(role)]
        if missing:
            raise ConfigurationError(
                f'Column role(s) {", ".join(missing)} needed for training.',
                parameter=missing[0])

    # Vectorised access
    def features(self, rows: NDArray[np.intp] | None = None
                 ) -> NDArray[np.float64]:
        """Feature matrix (optionally for a subset of rows)."""
        if rows is None:
            return self._data[:, self._feature_indices]
        return self._data[np.ix_(rows, self._feature_indices)]

    def _column(self, role: str, rows: NDArray[np.intp] | None = None
                ) -> NDArray[np.float64]:
        col = self.role_index(role)
        if col is None:
            raise ConfigurationError(f'No column with role {role}.',
                                     parameter=role)
        column = self._data[:, col]
        return column if rows is None else column[rows]

    def numerators(self, rows: NDArray[np.intp] | None = None
                   ) -> NDArray[np.float64]:
        return self._column('numerator', rows)

    def denominators(self, rows: NDArray[np.intp] | None = None
                     ) -> NDArray[np.float64]:
        return self._column('denominator', rows)

    def treatments(self, rows: NDArray[np.intp] | None = None
                   ) -> NDArray[np.float64]:
        return self._column('treatment', rows)

    def censors(self, rows: NDArray[np.intp] | None = None
                ) -> NDArray[np.float64]:
        return self._column('censor', rows)

    def weights(self, rows: NDArray[np.intp] | None = None
                ) -> NDArray[np.float64]:
        """Sample weights (ones without weight column)."""
        if not self.has_role('weight'):
            size = self.num_rows if rows is None else len(rows)
            return np.ones(size)
        return self._column('weight', rows)

    def clusters(self) -> NDArray[np.int64] | None:
        """Cluster ids (None without cluster column)."""
        if not self.has_role('cluster'):
            return None
        return self._column('cluster').astype(np.int64)

    def __repr__(self) -> str:
        roles = ', '.join(f'{role}={idx}' for role, idx in self._roles.items()
                          if idx is not None)
        return (f'DataView(num_rows={self.num_rows}, num_cols={self.num_cols}'
                f', features={self._feature_indices.tolist()}, {roles})')


def check_roles(roles: dict[str, int | None], num_cols: int) -> None:
    """Check bounds, pairing and uniqueness of role columns."""
    for role, idx in roles.items():
        if idx is None:
            continue
        if isinstance(idx, bool) or not isinstance(idx, (int, np.integer)):
            raise ConfigurationError(f'Index of {role} must be an integer.',
                                     parameter=role, value=idx)
        if not 0 <= idx < num_cols:
            raise ConfigurationError(
                f'Index {idx} of {role} outside of [0, {num_cols}).',
                parameter=role, value=idx)
    if (roles['numerator'] is None) != (roles['denominator'] is None):
        raise ConfigurationError('Numerator and denominator columns must be '
                                 'set together.', parameter='numerator')
    seen: dict[int, str] = {}
    for role, idx in roles.items():
        if idx is None:
            continue
        other = seen.get(idx)
        if other is not None and {other, role} != {'treatment', 'instrument'}:
            raise ConfigurationError(
                f'Roles {other} and {role} share column {idx}.',
                parameter=role, value=idx)
        seen[idx] = role


def check_features(features: NDArray[np.intp], role_columns: set[int],
                   num_cols: int) -> None:
    """Check that features are unique, in bounds and have no other role."""
    if features.size and (features.min() < 0 or features.max() >= num_cols):
        raise ConfigurationError(f'Feature indices outside of [0, {num_cols}).',
                                 parameter='feature_indices')
    if np.unique(features).size != features.size:
        raise ConfigurationError('Duplicate feature indices.',
                                 parameter='feature_indices')
    overlap = sorted(role_columns.intersection(features.tolist()))
    if overlap:
        raise ConfigurationError(f'Feature columns {overlap} also have a role.',
                                 parameter='feature_indices', value=overlap)
