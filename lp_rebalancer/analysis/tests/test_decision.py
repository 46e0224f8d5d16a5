"""Tests for rebalance decision policies and the decision engine."""
import asyncio
import math
import pytest
from unittest.mock import AsyncMock, Mock

from lp_rebalancer.analysis.bins import compute_geometry
from lp_rebalancer.analysis.decision import (
    CostBenefitPolicy,
    DecisionEngine,
    DecisionError,
    MarketContext,
    PRESETS,
    ScoringPolicy,
    build_policy,
    get_policy,
    get_preset,
)
from lp_rebalancer.core.models import Urgency, VolumeData


class TestCostBenefitScenarios:
    """Priority scenarios on a [-20, 20] range with $10/day of fees."""

    @pytest.fixture
    def engine(self, market_data):
        return DecisionEngine(market_data, CostBenefitPolicy(rebalance_cost=0.028), timeout=1.0)

    @pytest.mark.asyncio
    async def test_out_of_range_is_critical(self, engine, make_position):
        decision = await engine.evaluate(make_position(active_bin=35))

        assert decision.urgency == Urgency.CRITICAL
        assert decision.should_rebalance is True
        assert "IMMEDIATELY" in decision.recommendation
        assert decision.current_daily_fees == 0.0
        assert decision.projected_daily_fees == pytest.approx(10.0)
        assert decision.confidence == 100

    @pytest.mark.asyncio
    async def test_near_edge_is_high(self, engine, make_position):
        decision = await engine.evaluate(make_position(active_bin=16))

        assert decision.urgency == Urgency.HIGH
        assert decision.should_rebalance is True
        assert decision.current_daily_fees == pytest.approx(10.0)
        assert decision.projected_daily_fees == pytest.approx(11.5)

    @pytest.mark.asyncio
    async def test_center_drift_twelve_is_medium(self, engine, make_position):
        decision = await engine.evaluate(make_position(active_bin=12))

        assert decision.urgency == Urgency.MEDIUM
        assert decision.should_rebalance is True

    @pytest.mark.asyncio
    async def test_center_drift_eight_is_low(self, engine, make_position):
        decision = await engine.evaluate(make_position(active_bin=8))

        assert decision.urgency == Urgency.LOW
        assert decision.should_rebalance is False
        assert decision.recommendation.startswith("HOLD")

    @pytest.mark.asyncio
    async def test_centered_is_none(self, engine, make_position):
        decision = await engine.evaluate(make_position(active_bin=0))

        assert decision.urgency == Urgency.NONE
        assert decision.should_rebalance is False

    @pytest.mark.asyncio
    async def test_break_even_math(self, engine, make_position):
        decision = await engine.evaluate(make_position(active_bin=16))

        assert decision.projected_daily_fee_delta == pytest.approx(1.5)
        assert decision.break_even_hours == pytest.approx(0.028 / 1.5 * 24)


class TestBreakEvenOverride:
    """Break-even beyond a year forces HOLD and downgrades priority."""

    @pytest.fixture
    def thin_market(self):
        source = AsyncMock()
        source.get_volume.return_value = VolumeData(
            volume_24h=1_000.0, fees_24h=0.1, total_liquidity=1_000_000.0)
        source.get_pool_info.side_effect = RuntimeError("pool API down")
        return source

    @pytest.mark.asyncio
    @pytest.mark.parametrize("active_bin", [16, 12, 8])
    async def test_slow_break_even_never_rebalances(self, thin_market, make_position, active_bin):
        engine = DecisionEngine(thin_market, CostBenefitPolicy(rebalance_cost=0.028))
        decision = await engine.evaluate(make_position(active_bin=active_bin))

        assert decision.break_even_hours > 365 * 24
        assert decision.should_rebalance is False
        assert decision.urgency == Urgency.LOW

    @pytest.mark.asyncio
    async def test_centered_stays_none(self, thin_market, make_position):
        engine = DecisionEngine(thin_market, CostBenefitPolicy(rebalance_cost=0.028))
        decision = await engine.evaluate(make_position(active_bin=0))

        assert decision.urgency == Urgency.NONE

    @pytest.mark.asyncio
    async def test_out_of_range_still_wins(self, thin_market, make_position):
        engine = DecisionEngine(thin_market, CostBenefitPolicy(rebalance_cost=1_000.0))
        decision = await engine.evaluate(make_position(active_bin=-30))

        assert decision.break_even_hours > 365 * 24
        assert decision.urgency == Urgency.CRITICAL
        assert decision.should_rebalance is True

    def test_recommendation_tiers(self):
        recommend = CostBenefitPolicy.recommend

        assert recommend(Urgency.HIGH, 10 * 24)[1:] == (
            False, "Consider rebalancing - Position approaching edge but break-even is 10 days")
        assert recommend(Urgency.MEDIUM, 10 * 24)[1] is False
        assert "Optional" in recommend(Urgency.MEDIUM, 10 * 24)[2]
        assert recommend(Urgency.MEDIUM, 20 * 24)[2].startswith("HOLD - Position shifted")
        assert recommend(Urgency.HIGH, 40 * 24) == (
            Urgency.HIGH, False,
            "HOLD recommended - Break-even is 40 days. Only rebalance if you plan to hold long-term.")
        assert "never" in recommend(Urgency.MEDIUM, math.inf)[2]


class TestDecisionEngineFallbacks:
    """Auxiliary data failures degrade, they never abort the decision."""

    @pytest.mark.asyncio
    async def test_volume_failure_falls_back_to_apr(self, make_position):
        source = AsyncMock()
        source.get_volume.side_effect = ConnectionError("volume API down")
        source.get_pool_info.return_value = Mock(apr=36.5)

        decision = await DecisionEngine(source).evaluate(make_position(active_bin=0))

        assert decision.current_daily_fees == pytest.approx(1.0)
        assert decision.volume_ratio == 1.0
        assert decision.confidence == 60

    @pytest.mark.asyncio
    async def test_timeout_is_a_fetch_failure(self, make_position):
        async def stall(pool_id):
            await asyncio.sleep(5)

        source = AsyncMock()
        source.get_volume.side_effect = stall
        source.get_pool_info.side_effect = stall

        engine = DecisionEngine(source, timeout=0.01)
        decision = await engine.evaluate(make_position(active_bin=0, pool_apr=73.0))

        assert decision.volume_ratio == 1.0
        assert decision.current_daily_fees == pytest.approx(2.0)

    @pytest.mark.asyncio
    async def test_no_market_data_source(self, make_position):
        decision = await DecisionEngine(None).evaluate(make_position(active_bin=16))

        assert decision.current_daily_fees == 0.0
        assert decision.should_rebalance is False
        assert math.isinf(decision.break_even_hours)

    @pytest.mark.asyncio
    async def test_precomputed_inputs_skip_fetch(self, market_data, fee_volume, make_position):
        engine = DecisionEngine(market_data)
        decision = await engine.evaluate(
            make_position(active_bin=0), volume_ratio=1.8, volume=fee_volume)

        market_data.get_volume.assert_not_called()
        assert decision.volume_ratio == 1.8

    @pytest.mark.asyncio
    async def test_missing_position_raises(self):
        with pytest.raises(DecisionError):
            await DecisionEngine(None).evaluate(None)

    @pytest.mark.asyncio
    async def test_inverted_range_raises(self, make_position):
        with pytest.raises(DecisionError):
            await DecisionEngine(None).evaluate(make_position(lower_bin=20, upper_bin=-20))

    @pytest.mark.asyncio
    async def test_cost_benefit_summary(self, market_data, make_position):
        engine = DecisionEngine(market_data, ScoringPolicy())
        summary = await engine.cost_benefit(make_position(active_bin=16))

        assert summary['current_daily_fees'] == pytest.approx(10.0)
        assert summary['net_daily_gain'] == pytest.approx(1.5)
        assert summary['break_even_label'] == "27m"


class TestScoringPolicy:
    """Point-scored decisions used by automation."""

    def _decide(self, policy, position, volume_ratio=1.1):
        return policy.decide(position, compute_geometry(position),
                             MarketContext(volume_ratio=volume_ratio))

    def test_centered_position_holds(self, make_position):
        decision = self._decide(ScoringPolicy(), make_position(active_bin=0))

        assert decision.urgency == Urgency.NONE
        assert decision.should_rebalance is False
        assert decision.signals['score'] == 25
        assert decision.confidence == 65

    def test_near_edge_is_medium(self, make_position):
        decision = self._decide(ScoringPolicy(), make_position(active_bin=18))

        assert decision.signals['score'] == 55
        assert decision.urgency == Urgency.MEDIUM
        assert decision.should_rebalance is True
        assert decision.break_even_hours == pytest.approx(1.92)

    def test_high_volume_near_edge_is_high(self, make_position):
        decision = self._decide(ScoringPolicy(), make_position(active_bin=18), volume_ratio=1.6)

        assert decision.signals['score'] == 70
        assert decision.urgency == Urgency.HIGH
        assert decision.confidence == 100

    def test_low_volume_penalty(self, make_position):
        decision = self._decide(ScoringPolicy(), make_position(active_bin=18), volume_ratio=0.6)

        assert decision.signals['score'] == 35
        assert decision.should_rebalance is False

    def test_urgency_override(self, make_position):
        decision = self._decide(ScoringPolicy(get_preset("aggressive")), make_position(active_bin=30))

        assert decision.urgency == Urgency.CRITICAL
        assert decision.should_rebalance is True
        assert decision.confidence == 100

    def test_out_of_range_without_override_waits_on_poor_roi(self, make_position):
        policy = ScoringPolicy(get_preset("conservative"))
        decision = self._decide(policy, make_position(active_bin=30, value_usd=10.0))

        assert decision.urgency == Urgency.CRITICAL
        assert decision.should_rebalance is False
        assert decision.current_daily_fees == 0.0
        assert "poor ROI" in decision.reason

    def test_out_of_range_without_override_executes_on_good_score(self, make_position):
        policy = ScoringPolicy(get_preset("conservative"))
        decision = self._decide(policy, make_position(active_bin=30))

        assert decision.urgency == Urgency.CRITICAL
        assert decision.should_rebalance is True


class TestPolicyRegistry:
    def test_presets(self):
        assert PRESETS["aggressive"].bins_per_side == 16
        assert PRESETS["balanced"].bins_per_side == 24
        assert PRESETS["conservative"].bins_per_side == 36
        assert PRESETS["conservative"].urgency_override is False

    def test_unknown_names(self):
        with pytest.raises(ValueError):
            get_policy("martingale")
        with pytest.raises(ValueError):
            get_preset("yolo")

    def test_build_policy_from_settings(self):
        settings = Mock(DECISION_POLICY="scoring", AUTOMATION_PRESET="aggressive",
                        rebalance_cost_usd=0.028)

        policy = build_policy(settings)
        assert isinstance(policy, ScoringPolicy)
        assert policy.preset.name == "aggressive"

        policy = build_policy(settings, "cost_benefit")
        assert isinstance(policy, CostBenefitPolicy)
        assert policy.rebalance_cost == 0.028
