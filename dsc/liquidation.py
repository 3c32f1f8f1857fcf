"""
liquidation.py - Liquidation of undercollateralized accounts

A liquidator repays part or all of a target's DSC debt and receives the
equivalent amount of one collateral asset plus a bonus.

Protocol:
    1. health_factor(target) < min_health_factor, else HealthFactorOk
    2. 0 < debt_to_cover <= debt(target)
    3. base  = token amount worth debt_to_cover (rounded down)
       bonus = base * liquidation_bonus / 100  (rounded down)
    4. target must hold base + bonus of the asset, else InsufficientCollateral
       (no partial seizure)
    5. the ledgers are updated: base + bonus leaves the target's position and
       debt(target) -= debt_to_cover
    6. target's health factor must end strictly higher than it started
       (HealthFactorNotImproved) and the liquidator must remain solvent
    7. only then is the liquidator's DSC pulled and burned and base + bonus
       paid out to the liquidator's wallet

A liquidation can only improve the target when its collateral ratio exceeds
1 + bonus; below that every seizure removes proportionally more collateral
than debt and step 6 rejects it.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable

from .core import (
    EngineConfig,
    LIQUIDATION_PRECISION,
    mul_div_down,
    InvalidAmount, InsufficientCollateral, InsufficientDebt,
    HealthFactorOk, HealthFactorNotImproved,
)
from .positions import CollateralLedger, DebtLedger
from .risk import RiskEngine
from .valuation import ValuationService


@dataclass(frozen=True, slots=True)
class LiquidationPlan:
    """
    Immutable description of a liquidation before it is applied.

    Attributes:
        target: Undercollateralized account
        liquidator: Account repaying the debt
        asset_id: Collateral asset being seized
        debt_to_cover: DSC repaid on the target's behalf (18 decimals)
        base_collateral: Native-unit amount worth debt_to_cover
        bonus_collateral: Extra native units awarded to the liquidator
        starting_health_factor: Target's health factor before the liquidation
    """
    target: str
    liquidator: str
    asset_id: str
    debt_to_cover: int
    base_collateral: int
    bonus_collateral: int
    starting_health_factor: int

    @property
    def total_collateral(self) -> int:
        return self.base_collateral + self.bonus_collateral


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def calculate_bonus_collateral(base_collateral: int, liquidation_bonus: int) -> int:
    """Bonus paid on top of base_collateral, rounded down."""
    return mul_div_down(base_collateral, liquidation_bonus, LIQUIDATION_PRECISION)


def calculate_liquidation(
    target: str,
    liquidator: str,
    asset_id: str,
    debt_to_cover: int,
    base_collateral: int,
    liquidation_bonus: int,
    starting_health_factor: int,
) -> LiquidationPlan:
    """
    Build a LiquidationPlan from explicit inputs.

    PURE FUNCTION - no oracle or ledger access.
    """
    return LiquidationPlan(
        target=target,
        liquidator=liquidator,
        asset_id=asset_id,
        debt_to_cover=debt_to_cover,
        base_collateral=base_collateral,
        bonus_collateral=calculate_bonus_collateral(base_collateral, liquidation_bonus),
        starting_health_factor=starting_health_factor,
    )


# ============================================================================
# SERVICE
# ============================================================================

class LiquidationEngine:
    """
    Plans liquidations and checks their pre- and postconditions.

    Ledger updates and asset movement are supplied by the orchestrator through
    the record and settle callables passed to execute(). Both run inside the
    orchestrator's atomic boundary.
    """

    def __init__(
        self,
        config: EngineConfig,
        valuation: ValuationService,
        risk: RiskEngine,
        collateral: CollateralLedger,
        debts: DebtLedger,
    ):
        self.config = config
        self._valuation = valuation
        self._risk = risk
        self._collateral = collateral
        self._debts = debts

    def plan(self, liquidator: str, target: str, asset_id: str, debt_to_cover: int) -> LiquidationPlan:
        """
        Validate a liquidation request and compute the collateral to seize.

        Read-only; raises the same errors execute() would for a bad request.

        Raises:
            InvalidAmount: debt_to_cover <= 0, or liquidator == target
            HealthFactorOk: target is solvent
            InsufficientDebt: debt_to_cover exceeds the target's debt
            InsufficientCollateral: target holds less than base + bonus of asset_id
        """
        if not isinstance(debt_to_cover, int) or debt_to_cover <= 0:
            raise InvalidAmount(f"debt_to_cover must be a positive int, got {debt_to_cover}")
        if liquidator == target:
            raise InvalidAmount(f"{liquidator} cannot liquidate itself")

        starting_health_factor = self._risk.health_factor(target)
        if starting_health_factor >= self.config.min_health_factor:
            raise HealthFactorOk(
                f"{target} is solvent (health factor {starting_health_factor})"
            )

        debt = self._debts.debt(target)
        if debt_to_cover > debt:
            raise InsufficientDebt(f"{target} owes {debt} DSC, cannot cover {debt_to_cover}")

        base = self._valuation.token_amount_from_usd(asset_id, debt_to_cover)
        plan = calculate_liquidation(
            target=target,
            liquidator=liquidator,
            asset_id=asset_id,
            debt_to_cover=debt_to_cover,
            base_collateral=base,
            liquidation_bonus=self.config.liquidation_bonus,
            starting_health_factor=starting_health_factor,
        )
        if plan.total_collateral <= 0:
            raise InvalidAmount(
                f"debt_to_cover {debt_to_cover} is worth less than one unit of {asset_id}"
            )

        held = self._collateral.position(target, asset_id)
        if plan.total_collateral > held:
            raise InsufficientCollateral(
                f"{target} holds {held} {asset_id}, liquidation needs {plan.total_collateral}"
            )
        return plan

    def execute(
        self,
        plan: LiquidationPlan,
        record: Callable[[LiquidationPlan], None],
        settle: Callable[[LiquidationPlan], None],
    ) -> int:
        """
        Apply a plan and verify its postconditions.

        The postconditions are checked on the ledgers alone, between record
        and settle, so a rejected liquidation never reaches a collaborator.

        Args:
            plan: Result of plan()
            record: Debits plan.total_collateral from the target's position
                and reduces the target's debt by plan.debt_to_cover
            settle: Pulls and burns the liquidator's DSC, then pays out the
                seized collateral

        Returns:
            The target's ending health factor

        Raises:
            HealthFactorNotImproved: target did not strictly improve
            HealthFactorBroken: liquidator ended below the minimum
        """
        record(plan)

        ending_health_factor = self._risk.health_factor(plan.target)
        if ending_health_factor <= plan.starting_health_factor:
            raise HealthFactorNotImproved(plan.starting_health_factor, ending_health_factor)
        self._risk.assert_solvent(plan.liquidator)

        settle(plan)
        return ending_health_factor
