"""Unit tests for MiningRigBoost."""

from pondlens.src.MiningRigBoost import MAX_BOOST, clamp_boost, compute_boost


class TestClampBoost:
    """Test clamping into [0, 615]."""

    def test_within_range(self) -> None:
        """Values inside the range pass through."""
        assert clamp_boost(100.5) == 100.5

    def test_bounds(self) -> None:
        """Values outside the range are clamped."""
        assert clamp_boost(-900) == 0
        assert clamp_boost(10_000) == MAX_BOOST


class TestComputeBoost:
    """Test the boost formula and projections."""

    def test_upper_bound(self) -> None:
        """3690 swaps and no sessions should reach exactly 615."""
        breakdown = compute_boost(3690, 0)
        assert breakdown.boost == 615
        assert breakdown.swaps_needed_for_max == 0

    def test_lower_bound(self) -> None:
        """300 sessions and no swaps should clamp to 0."""
        breakdown = compute_boost(0, 300)
        assert breakdown.boost == 0
        assert breakdown.raw_boost == -900
        assert breakdown.sessions_until_zero == 0

    def test_mixed(self) -> None:
        """Swaps add a point per 6; sessions cost 3 each."""
        breakdown = compute_boost(600, 10)
        assert breakdown.swap_boost == 100
        assert breakdown.session_boost == -30
        assert breakdown.boost == 70

    def test_rounds_to_two_decimals(self) -> None:
        """Fractional boosts are rounded."""
        assert compute_boost(1, 0).boost == 0.17

    def test_projections(self) -> None:
        """Projections describe distance to the bounds."""
        breakdown = compute_boost(600, 10)
        # (615 + 30) * 6 = 3870 swaps needed in total
        assert breakdown.swaps_needed_for_max == 3270
        assert breakdown.sessions_until_zero == 24
        assert breakdown.sessions_until_max == 0

    def test_over_max_projection(self) -> None:
        """Sessions until the boost drops below max when above it."""
        breakdown = compute_boost(3780, 0)
        assert breakdown.boost == MAX_BOOST
        assert breakdown.raw_boost == 630
        assert breakdown.sessions_until_max == 5

    def test_to_dict_keys(self) -> None:
        """to_dict should use the response field names."""
        d = compute_boost(3690, 0).to_dict()
        assert d["miningRigBoost"] == 615
        assert set(d) == {
            "miningRigBoost",
            "rawBoost",
            "swapBoost",
            "sessionBoost",
            "swapsNeededForMaxBoost",
            "sessionsUntilMaxBoost",
            "sessionsUntilZeroBoost",
        }
