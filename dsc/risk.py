"""
risk.py - Health factor and the solvency invariant

Key Formulas:
    adjusted_collateral = collateral_value * liquidation_threshold / 100
    health_factor       = adjusted_collateral * PRECISION / debt
    health_factor       = MAX_HEALTH_FACTOR                 (debt == 0)

An account is solvent while health_factor >= min_health_factor. The boundary
itself is solvent: minting exactly up to the threshold succeeds.

Health factors are never stored. Prices move between calls, so the value is
recomputed from current positions and current quotes every time.
"""

from __future__ import annotations
from dataclasses import dataclass

from .core import (
    EngineConfig,
    PRECISION, MAX_HEALTH_FACTOR, LIQUIDATION_PRECISION, AT_RISK_HEALTH_FACTOR,
    RISK_STATUS_HEALTHY, RISK_STATUS_AT_RISK, RISK_STATUS_LIQUIDATABLE,
    mul_div_down, mul_div_up,
    HealthFactorBroken,
)
from .positions import DebtLedger
from .valuation import ValuationService


@dataclass(frozen=True, slots=True)
class RiskSnapshot:
    """
    Immutable result of a risk assessment.

    All amounts are 18-decimal fixed point.
    """
    account: str
    debt: int
    collateral_value: int
    adjusted_collateral: int
    health_factor: int
    status: str  # HEALTHY, AT_RISK, LIQUIDATABLE
    max_mintable: int


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def calculate_adjusted_collateral(collateral_value: int, liquidation_threshold: int) -> int:
    """Part of collateral value that backs debt, rounded down."""
    return mul_div_down(collateral_value, liquidation_threshold, LIQUIDATION_PRECISION)


def calculate_health_factor(
    total_dsc_minted: int,
    collateral_value_in_usd: int,
    liquidation_threshold: int,
) -> int:
    """
    Health factor from explicit inputs.

    PURE FUNCTION - used for previews and stress tests with hypothetical
    debt or collateral values.

    Example:
        # $2000 of collateral at a 50% threshold backs exactly 1000 DSC
        calculate_health_factor(1000 * PRECISION, 2000 * PRECISION, 50)  # PRECISION
    """
    if total_dsc_minted == 0:
        return MAX_HEALTH_FACTOR
    adjusted = calculate_adjusted_collateral(collateral_value_in_usd, liquidation_threshold)
    return mul_div_down(adjusted, PRECISION, total_dsc_minted)


def calculate_max_mintable(
    total_dsc_minted: int,
    collateral_value_in_usd: int,
    liquidation_threshold: int,
    min_health_factor: int,
) -> int:
    """Additional DSC that can be minted without breaking min_health_factor."""
    adjusted = calculate_adjusted_collateral(collateral_value_in_usd, liquidation_threshold)
    capacity = mul_div_down(adjusted, PRECISION, min_health_factor)
    return max(0, capacity - total_dsc_minted)


def calculate_required_collateral_value(
    total_dsc_minted: int,
    liquidation_threshold: int,
    min_health_factor: int,
) -> int:
    """Smallest collateral value (rounded up) that keeps debt at min_health_factor."""
    if total_dsc_minted == 0:
        return 0
    adjusted = mul_div_up(total_dsc_minted, min_health_factor, PRECISION)
    return mul_div_up(adjusted, LIQUIDATION_PRECISION, liquidation_threshold)


# ============================================================================
# SERVICE
# ============================================================================

class RiskEngine:
    """Computes health factors and enforces the solvency invariant."""

    def __init__(self, config: EngineConfig, valuation: ValuationService, debts: DebtLedger):
        self.config = config
        self._valuation = valuation
        self._debts = debts

    def health_factor(self, account: str) -> int:
        debt = self._debts.debt(account)
        if debt == 0:
            # No debt cannot be undercollateralized; skip the oracle round trip.
            return MAX_HEALTH_FACTOR
        return calculate_health_factor(
            debt,
            self._valuation.total_collateral_value(account),
            self.config.liquidation_threshold,
        )

    def is_liquidatable(self, account: str) -> bool:
        return self.health_factor(account) < self.config.min_health_factor

    def assert_solvent(self, account: str) -> None:
        """
        Raise HealthFactorBroken if the account is below the minimum.

        Raises:
            HealthFactorBroken: carries the computed health factor
        """
        health_factor = self.health_factor(account)
        if health_factor < self.config.min_health_factor:
            raise HealthFactorBroken(
                health_factor, account, minimum=self.config.min_health_factor
            )

    def max_mintable(self, account: str) -> int:
        return calculate_max_mintable(
            self._debts.debt(account),
            self._valuation.total_collateral_value(account),
            self.config.liquidation_threshold,
            self.config.min_health_factor,
        )

    def required_collateral_value(self, account: str) -> int:
        return calculate_required_collateral_value(
            self._debts.debt(account),
            self.config.liquidation_threshold,
            self.config.min_health_factor,
        )

    def status(self, account: str) -> RiskSnapshot:
        """Full risk picture of one account."""
        debt = self._debts.debt(account)
        collateral_value = self._valuation.total_collateral_value(account)
        health_factor = calculate_health_factor(
            debt, collateral_value, self.config.liquidation_threshold
        )
        # AT_RISK band scales with the configured minimum.
        at_risk_boundary = mul_div_down(
            self.config.min_health_factor, AT_RISK_HEALTH_FACTOR, PRECISION
        )
        if health_factor < self.config.min_health_factor:
            status = RISK_STATUS_LIQUIDATABLE
        elif health_factor < at_risk_boundary:
            status = RISK_STATUS_AT_RISK
        else:
            status = RISK_STATUS_HEALTHY

        return RiskSnapshot(
            account=account,
            debt=debt,
            collateral_value=collateral_value,
            adjusted_collateral=calculate_adjusted_collateral(
                collateral_value, self.config.liquidation_threshold
            ),
            health_factor=health_factor,
            status=status,
            max_mintable=calculate_max_mintable(
                debt, collateral_value,
                self.config.liquidation_threshold, self.config.min_health_factor,
            ),
        )
