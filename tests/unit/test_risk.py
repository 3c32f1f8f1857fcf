"""
test_risk.py - Unit tests for health factors and the solvency check
"""

import pytest

from dsc import (
    calculate_adjusted_collateral, calculate_health_factor,
    calculate_max_mintable, calculate_required_collateral_value,
    EngineConfig,
    PRECISION, MIN_HEALTH_FACTOR, MAX_HEALTH_FACTOR,
    RISK_STATUS_HEALTHY, RISK_STATUS_AT_RISK, RISK_STATUS_LIQUIDATABLE,
    HealthFactorBroken,
)

from tests.fakes import make_market, ONE_WETH


# =============================================================================
# PURE FUNCTIONS
# =============================================================================

class TestCalculateHealthFactor:

    def test_boundary_is_exactly_one(self):
        assert calculate_health_factor(1000 * PRECISION, 2000 * PRECISION, 50) == PRECISION

    def test_zero_debt_is_max(self):
        assert calculate_health_factor(0, 0, 50) == MAX_HEALTH_FACTOR
        assert calculate_health_factor(0, 10 ** 30, 50) == MAX_HEALTH_FACTOR

    def test_zero_collateral_with_debt(self):
        assert calculate_health_factor(1, 0, 50) == 0

    def test_rounds_down(self):
        # 2000 collateral backs 1000; 3 DSC debt -> 333.33...
        assert calculate_health_factor(3 * PRECISION, 2000 * PRECISION, 50) == 333333333333333333333

    def test_adjusted_collateral_rounds_down(self):
        assert calculate_adjusted_collateral(3, 50) == 1

    def test_health_factor_scales_with_threshold(self):
        assert calculate_health_factor(1000 * PRECISION, 2000 * PRECISION, 80) == 16 * 10 ** 17


class TestCapacity:

    def test_max_mintable_from_empty(self):
        assert calculate_max_mintable(0, 2000 * PRECISION, 50, MIN_HEALTH_FACTOR) == 1000 * PRECISION

    def test_max_mintable_never_negative(self):
        assert calculate_max_mintable(5000 * PRECISION, 2000 * PRECISION, 50, MIN_HEALTH_FACTOR) == 0

    def test_max_mintable_with_stricter_minimum(self):
        assert calculate_max_mintable(0, 2000 * PRECISION, 50, 2 * PRECISION) == 500 * PRECISION

    def test_required_collateral_value(self):
        assert calculate_required_collateral_value(1000 * PRECISION, 50, MIN_HEALTH_FACTOR) == 2000 * PRECISION
        assert calculate_required_collateral_value(0, 50, MIN_HEALTH_FACTOR) == 0

    def test_required_collateral_value_rounds_up(self):
        # 1 wei of debt at a 30% threshold needs 3.33 wei of collateral
        assert calculate_required_collateral_value(1, 30, MIN_HEALTH_FACTOR) == 4

    def test_required_value_restores_minimum(self):
        debt = 777 * PRECISION + 1
        required = calculate_required_collateral_value(debt, 50, MIN_HEALTH_FACTOR)
        assert calculate_health_factor(debt, required, 50) >= MIN_HEALTH_FACTOR
        assert calculate_health_factor(debt, required - 2, 50) < MIN_HEALTH_FACTOR


# =============================================================================
# SERVICE
# =============================================================================

class TestRiskEngine:

    def test_health_factor_without_debt_skips_oracle(self, funded_market):
        engine = funded_market.engine
        engine.deposit_collateral("alice", "WETH", ONE_WETH)
        funded_market.oracle.update_price("WETH", 0)
        assert engine.get_health_factor("alice") == MAX_HEALTH_FACTOR
        assert engine.get_health_factor("stranger") == MAX_HEALTH_FACTOR

    def test_health_factor_tracks_price(self, indebted_market):
        engine = indebted_market.engine
        assert engine.get_health_factor("alice") == PRECISION
        indebted_market.set_weth_price(1800)
        assert engine.get_health_factor("alice") == 9 * 10 ** 17

    def test_is_liquidatable_uses_strict_boundary(self, indebted_market):
        risk = indebted_market.engine.risk
        assert not risk.is_liquidatable("alice")
        indebted_market.set_weth_price(1999)
        assert risk.is_liquidatable("alice")

    def test_assert_solvent_carries_value(self, indebted_market):
        indebted_market.set_weth_price(1000)
        with pytest.raises(HealthFactorBroken) as exc_info:
            indebted_market.engine.risk.assert_solvent("alice")
        assert exc_info.value.health_factor == 5 * 10 ** 17
        assert exc_info.value.account == "alice"
        assert exc_info.value.minimum == MIN_HEALTH_FACTOR

    def test_status_bands(self, indebted_market):
        engine = indebted_market.engine
        alice = engine.get_risk_snapshot("alice")
        assert alice.status == RISK_STATUS_AT_RISK
        assert alice.debt == 1000 * PRECISION
        assert alice.collateral_value == 2000 * PRECISION
        assert alice.adjusted_collateral == 1000 * PRECISION
        assert alice.max_mintable == 0

        bob = engine.get_risk_snapshot("bob")
        assert bob.status == RISK_STATUS_HEALTHY
        assert bob.health_factor == 10 * PRECISION
        assert bob.max_mintable == 9000 * PRECISION

        indebted_market.set_weth_price(1500)
        assert engine.get_risk_snapshot("alice").status == RISK_STATUS_LIQUIDATABLE

    def test_status_without_debt(self, market):
        snapshot = market.engine.get_risk_snapshot("nobody")
        assert snapshot.health_factor == MAX_HEALTH_FACTOR
        assert snapshot.status == RISK_STATUS_HEALTHY

    def test_configured_minimum(self):
        market = make_market(config=EngineConfig(min_health_factor=2 * PRECISION))
        market.fund("alice", weth=ONE_WETH)
        market.engine.deposit_collateral("alice", "WETH", ONE_WETH)
        assert market.engine.get_max_mintable("alice") == 500 * PRECISION
        with pytest.raises(HealthFactorBroken) as exc_info:
            market.engine.mint_dsc("alice", 500 * PRECISION + 1)
        assert exc_info.value.minimum == 2 * PRECISION
        assert str(exc_info.value).endswith(f"< {2 * PRECISION}")
        market.engine.mint_dsc("alice", 500 * PRECISION)
        assert market.engine.get_health_factor("alice") == 2 * PRECISION
