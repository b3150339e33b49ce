"""Tests for the honest sampler."""

from __future__ import annotations

import numpy as np
import pytest
from pytest_check import check

from csf import ConfigurationError
from csf import csf_sampling_functions as csf_samp


class TestDrawHonestSample:
    """Tests for draw_honest_sample without clusters."""

    def test_honest_sets_are_disjoint_and_cover_subsample(self) -> None:
        """Given honesty, When sample is drawn, Then split and estimation partition the subsample."""
        rng = np.random.default_rng(1)

        sample = csf_samp.draw_honest_sample(100, 0.5, True, 0.5, rng)

        with check:
            assert sample.drawn.size == 50
        with check:
            assert np.intersect1d(sample.split, sample.estimation).size == 0
        with check:
            assert np.array_equal(np.union1d(sample.split, sample.estimation), sample.drawn)
        with check:
            assert sample.split.size == 25

    def test_oob_is_complement(self) -> None:
        """Given a draw, When OOB rows are returned, Then they are exactly the rows not drawn."""
        rng = np.random.default_rng(2)

        sample = csf_samp.draw_honest_sample(40, 0.3, True, 0.5, rng)

        with check:
            assert np.intersect1d(sample.oob, sample.drawn).size == 0
        with check:
            assert np.array_equal(np.union1d(sample.oob, sample.drawn), np.arange(40))

    def test_without_honesty_sets_coincide(self) -> None:
        """Given honesty off, When sample is drawn, Then split and estimation rows are identical."""
        rng = np.random.default_rng(3)

        sample = csf_samp.draw_honest_sample(30, 0.5, False, 0.5, rng)

        with check:
            assert np.array_equal(sample.split, sample.estimation)
        with check:
            assert np.array_equal(sample.split, sample.drawn)

    def test_full_sample_has_no_oob(self) -> None:
        """Given sample_fraction 1, When sample is drawn, Then there are no OOB rows."""
        sample = csf_samp.draw_honest_sample(10, 1.0, True, 0.5, np.random.default_rng(4))

        assert sample.oob.size == 0

    def test_arrays_are_read_only(self) -> None:
        """Given a sample, When its rows are modified, Then ValueError."""
        sample = csf_samp.draw_honest_sample(10, 0.5, True, 0.5, np.random.default_rng(5))

        with pytest.raises(ValueError):
            sample.split[0] = 3

    def test_same_seed_same_sample(self) -> None:
        """Given two generators with the same seed, When drawing, Then samples are identical."""
        sample_1 = csf_samp.draw_honest_sample(50, 0.5, True, 0.5, np.random.default_rng(9))
        sample_2 = csf_samp.draw_honest_sample(50, 0.5, True, 0.5, np.random.default_rng(9))

        with check:
            assert np.array_equal(sample_1.split, sample_2.split)
        with check:
            assert np.array_equal(sample_1.estimation, sample_2.estimation)

    def test_single_unit_with_honesty(self) -> None:
        """Given a subsample of one row, When split honestly, Then ConfigurationError."""
        with pytest.raises(ConfigurationError):
            csf_samp.draw_honest_sample(3, 0.2, True, 0.5, np.random.default_rng(0))


class TestClusterSampling:
    """Tests for cluster sampling."""

    @pytest.fixture
    def cluster_idx(self) -> csf_samp.ClusterIndex:
        """Ten clusters of four rows each (cluster id = row // 4)."""
        return csf_samp.make_cluster_index(40, np.arange(40) // 4)

    def test_clusters_are_not_split(self, cluster_idx) -> None:
        """Given clusters, When sample is drawn, Then each cluster is in one set only."""
        sample = csf_samp.draw_honest_sample(40, 0.6, True, 0.5, np.random.default_rng(11), cluster_idx=cluster_idx)
        clusters = np.arange(40) // 4

        split_cl = set(clusters[sample.split])
        est_cl = set(clusters[sample.estimation])
        oob_cl = set(clusters[sample.oob])

        with check:
            assert not split_cl & est_cl
        with check:
            assert not oob_cl & (split_cl | est_cl)
        with check:
            assert len(split_cl | est_cl) == 6
        with check:
            assert sample.oob.size == 16

    def test_samples_per_cluster(self, cluster_idx) -> None:
        """Given samples_per_cluster 2, When sample is drawn, Then two rows per drawn cluster are used."""
        sample = csf_samp.draw_honest_sample(
            40, 0.5, True, 0.5, np.random.default_rng(12), cluster_idx=cluster_idx, samples_per_cluster=2
        )

        with check:
            assert sample.drawn.size == 10
        with check:
            assert sample.oob.size == 20

    def test_cluster_length_mismatch(self) -> None:
        """Given fewer cluster ids than rows, When indexed, Then ConfigurationError."""
        with pytest.raises(ConfigurationError):
            csf_samp.make_cluster_index(10, np.zeros(9))


class TestHelpers:
    """Tests for sample size helpers."""

    @pytest.mark.parametrize(("units", "fraction", "expected"), [(10, 0.5, 5), (10, 0.01, 1), (3, 1.0, 3)])
    def test_number_of_drawn_units(self, units: int, fraction: float, expected: int) -> None:
        """Given units and fraction, When counted, Then rounding with at least one unit applies."""
        assert csf_samp.number_of_drawn_units(units, fraction) == expected

    def test_honest_split_keeps_both_sides(self) -> None:
        """Given two units and fraction 0.9, When split, Then each side keeps one unit."""
        split, est = csf_samp.honest_split(np.array([4, 7]), 0.9)

        with check:
            assert split.tolist() == [4]
        with check:
            assert est.tolist() == [7]

    def test_check_sample_sizes(self) -> None:
        """Given a subsample of one unit and honesty, When checked, Then ConfigurationError."""
        with pytest.raises(ConfigurationError):
            csf_samp.check_sample_sizes(2, 0.5, True)
