"""
Contains the exceptions raised by the causal survival forest.

- ConfigurationError: Invalid column roles or forest options. Raised before
  any training work starts.
- DegenerateTreeError: The root of a tree cannot be split. Raised by the tree
  builder and recovered by the forest assembler, which stores a single-leaf
  tree instead.

Created on Mon Oct 19 09:12:40 2026
# -*- coding: utf-8 -*-
"""
from __future__ import annotations


class ConfigurationError(ValueError):
    """Raised when column roles or forest options are invalid.

    Attributes:
        parameter (str | None): Name of the offending option or role.
        value (object): Value that was rejected (None if not applicable).

    Examples:
        >>> err = ConfigurationError('mtry must not exceed the number of '
        ...                          'features.', parameter='mtry', value=7)
        >>> err.parameter
        'mtry'
    """

    parameter: str | None
    value: object

    def __init__(self,
                 message: str,
                 parameter: str | None = None,
                 value: object = None
                 ) -> None:
        super().__init__(message)
        self.parameter = parameter
        self.value = value


class DegenerateTreeError(RuntimeError):
    """Raised when no admissible split exists at the root of a tree.

    Attributes:
        reason (str): Why the root is terminal (e.g. 'min_node_size',
            'no_treatment_variation', 'too_few_events', 'no_valid_split').
        num_rows (int): Number of split-set rows at the root.
    """

    reason: str
    num_rows: int

    def __init__(self, reason: str, num_rows: int) -> None:
        super().__init__(f'Root node with {num_rows} rows cannot be split '
                         f'({reason}).')
        self.reason = reason
        self.num_rows = num_rows
