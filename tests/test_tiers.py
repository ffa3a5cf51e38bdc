"""
Tests for quota tier merging and normalization.
"""

import pytest

from dynamic_timeout.tiers import QuotaTier, normalize_tiers, tier_from_mapping


class TestQuotaTier:
    """Tests for individual tiers."""

    def test_timeout_is_rounded(self):
        """Timeouts are kept to millisecond precision."""
        assert QuotaTier(timeout=0.30049, limit=1).timeout == 0.3

    def test_valid_tiers(self):
        assert QuotaTier(timeout=1, limit=1).is_valid
        assert QuotaTier(timeout=1, limit=-1).is_valid
        assert QuotaTier(timeout=1, capacity=0.5).is_valid

    def test_invalid_tiers(self):
        """A tier needs a positive timeout and some quota."""
        assert not QuotaTier(timeout=0, limit=1).is_valid
        assert not QuotaTier(timeout=-1, limit=1).is_valid
        assert not QuotaTier(timeout=1, limit=0).is_valid
        assert not QuotaTier(timeout=1, limit=0, capacity=0.0).is_valid

    @pytest.mark.parametrize(
        "tier",
        [
            QuotaTier(timeout=1, limit=-1),
            QuotaTier(timeout=1, capacity=1.0),
            QuotaTier(timeout=1, capacity=2.5),
            QuotaTier(timeout=1, limit=5, capacity=-0.1),
        ],
    )
    def test_no_limit(self, tier):
        assert tier.no_limit is True

    def test_limited(self):
        assert QuotaTier(timeout=1, limit=5).no_limit is False
        assert QuotaTier(timeout=1, capacity=0.99).no_limit is False

    def test_equality(self):
        assert QuotaTier(timeout=0.3, limit=1) == QuotaTier(timeout=0.3, limit=1)
        assert QuotaTier(timeout=0.3, limit=1) != QuotaTier(timeout=0.3, limit=2)
        assert QuotaTier(timeout=0.3, limit=1) != QuotaTier(timeout=0.3, limit=1, capacity=0.5)

    def test_from_mapping(self):
        tier = tier_from_mapping({"timeout": "0.5", "limit": "2", "capacity": 0.25})
        assert tier == QuotaTier(timeout=0.5, limit=2, capacity=0.25)

    def test_from_mapping_without_timeout(self):
        assert not tier_from_mapping({"limit": 2}).is_valid


class TestMerge:
    """Tests for merging tiers."""

    def test_limits_add_up(self):
        merged = QuotaTier(timeout=0.2, limit=1).merge(QuotaTier(timeout=0.3, limit=2))
        assert merged == QuotaTier(timeout=0.3, limit=3)

    def test_unlimited_wins(self):
        merged = QuotaTier(timeout=1, limit=4).merge(QuotaTier(timeout=1, limit=-5))
        assert merged.limit == -1
        assert merged.no_limit

    def test_commutative(self):
        pairs = [
            (QuotaTier(timeout=1, limit=4), QuotaTier(timeout=2, limit=-5)),
            (QuotaTier(timeout=1, limit=-1), QuotaTier(timeout=1, limit=-3)),
            (QuotaTier(timeout=1, capacity=0.2), QuotaTier(timeout=1, limit=2)),
            (QuotaTier(timeout=1, capacity=1.5), QuotaTier(timeout=1, capacity=-1)),
        ]
        for a, b in pairs:
            assert a.merge(b) == b.merge(a)

    def test_capacities_add_up(self):
        merged = QuotaTier(timeout=1, capacity=0.2).merge(QuotaTier(timeout=1, capacity=0.3))
        assert merged.capacity == pytest.approx(0.5)

    def test_absent_capacity_keeps_other(self):
        merged = QuotaTier(timeout=1, limit=2).merge(QuotaTier(timeout=1, capacity=0.3))
        assert merged.limit == 2
        assert merged.capacity == 0.3

    def test_unlimited_capacity_wins(self):
        merged = QuotaTier(timeout=1, capacity=0.2).merge(QuotaTier(timeout=1, capacity=1.0))
        assert merged.no_limit


class TestNormalize:
    """Tests for normalizing raw tier configuration."""

    def test_sorted_by_timeout(self):
        tiers = normalize_tiers([
            {"timeout": 0.3, "limit": 1},
            {"timeout": 0.1, "limit": 3},
            {"timeout": 0.2, "limit": 2},
        ])
        assert [tier.timeout for tier in tiers] == [0.1, 0.2, 0.3]

    def test_drops_invalid_entries(self):
        tiers = normalize_tiers([
            {"timeout": 0, "limit": 1},
            {"timeout": -2, "limit": 1},
            {"timeout": 1, "limit": 0},
            {"limit": 5},
            {"timeout": 2, "limit": 1},
        ])
        assert tiers == [QuotaTier(timeout=2, limit=1)]

    def test_merges_equal_timeouts(self):
        tiers = normalize_tiers([
            {"timeout": 0.2, "limit": 1},
            {"timeout": 0.3, "limit": 1},
            {"timeout": 0.2, "limit": 2},
        ])
        assert tiers == [QuotaTier(timeout=0.2, limit=3), QuotaTier(timeout=0.3, limit=1)]

    def test_never_returns_duplicate_or_non_positive_timeouts(self):
        tiers = normalize_tiers([
            {"timeout": 1, "limit": 1},
            {"timeout": 1.0001, "limit": 1},
            {"timeout": 0.0001, "limit": 1},
            QuotaTier(timeout=1, limit=-1),
        ])
        timeouts = [tier.timeout for tier in tiers]
        assert len(timeouts) == len(set(timeouts))
        assert all(timeout > 0 for timeout in timeouts)
        assert tiers == [QuotaTier(timeout=1, limit=-1)]

    def test_empty(self):
        assert normalize_tiers([]) == []

    def test_drops_malformed_entries(self):
        tiers = normalize_tiers([
            {"timeout": "abc", "limit": 1},
            {"timeout": 1, "limit": "lots"},
            {"timeout": 1, "capacity": "half"},
            {"timeout": [1], "limit": 1},
            None,
            "timeout=1",
            {"timeout": 2, "limit": 1},
        ])

        assert tiers == [QuotaTier(timeout=2, limit=1)]
