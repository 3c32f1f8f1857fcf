"""
valuation.py - Collateral valuation in 18-decimal USD

ARCHITECTURE (Pure Function Pattern):
=====================================

1. PURE CALCULATION FUNCTIONS (calculate_*):
   - Take prices and amounts explicitly as integers
   - No oracle access, no hidden state
   - Example: calculate_usd_value(normalized_price, amount, decimals) -> int

2. SERVICE (ValuationService):
   - Fetches validated prices through the OracleAdapter
   - Reads positions from the CollateralLedger
   - Never caches: every call observes the latest quote and positions

Key Formulas:
    normalized_price = price * 10**18 / 10**feed_decimals
    usd_value        = normalized_price * amount / 10**token_decimals
    token_amount     = usd_value * 10**token_decimals / normalized_price

USD values counted as collateral round down. Token amounts round down when
paid out of a position and up when they must stay locked.
"""

from __future__ import annotations
from typing import Mapping, Dict

from .core import (
    CollateralAsset,
    mul_div_down, mul_div_up,
    InvalidAmount, AssetNotAllowed,
)
from .pricing_source import OracleAdapter
from .positions import CollateralLedger


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def calculate_usd_value(normalized_price: int, amount: int, token_decimals: int) -> int:
    """
    Value of a native-unit amount in 18-decimal USD, rounded down.

    PURE FUNCTION - All inputs explicit.

    Example:
        # 1 WETH (1e18 native units) at $2000
        calculate_usd_value(2000 * 10**18, 10**18, 18)  # 2000 * 10**18
    """
    if amount < 0:
        raise InvalidAmount(f"Amount cannot be negative, got {amount}")
    if amount == 0:
        return 0
    return mul_div_down(normalized_price, amount, 10 ** token_decimals)


def calculate_token_amount(
    normalized_price: int,
    usd_value: int,
    token_decimals: int,
    round_up: bool = False,
) -> int:
    """
    Native-unit amount worth usd_value.

    PURE FUNCTION - All inputs explicit.

    Args:
        normalized_price: Price of one whole unit in 18-decimal USD (> 0)
        usd_value: 18-decimal USD amount
        token_decimals: Native precision of the asset
        round_up: Round away from zero instead of toward it
    """
    if usd_value < 0:
        raise InvalidAmount(f"USD value cannot be negative, got {usd_value}")
    if round_up:
        return mul_div_up(usd_value, 10 ** token_decimals, normalized_price)
    return mul_div_down(usd_value, 10 ** token_decimals, normalized_price)


def calculate_collateral_value(
    positions: Mapping[str, int],
    normalized_prices: Mapping[str, int],
    decimals: Mapping[str, int],
) -> int:
    """
    Total value of a set of positions.

    PURE FUNCTION - useful for valuing positions under hypothetical prices.

    Raises:
        ValueError: if a non-zero position has no price or no decimals.
    """
    total = 0
    for asset_id in sorted(positions):
        amount = positions[asset_id]
        if amount == 0:
            continue
        if asset_id not in normalized_prices:
            raise ValueError(f"Missing price for collateral asset '{asset_id}'")
        if asset_id not in decimals:
            raise ValueError(f"Missing decimals for collateral asset '{asset_id}'")
        total += calculate_usd_value(normalized_prices[asset_id], amount, decimals[asset_id])
    return total


# ============================================================================
# SERVICE
# ============================================================================

class ValuationService:
    """Converts collateral amounts to 18-decimal USD using live oracle quotes."""

    def __init__(
        self,
        registry: Mapping[str, CollateralAsset],
        adapter: OracleAdapter,
        collateral: CollateralLedger,
    ):
        self._registry = registry
        self._adapter = adapter
        self._collateral = collateral

    def _entry(self, asset_id: str) -> CollateralAsset:
        entry = self._registry.get(asset_id)
        if entry is None:
            raise AssetNotAllowed(f"Asset {asset_id} is not registered")
        return entry

    def value_of(self, asset_id: str, amount: int) -> int:
        """
        Value of amount (native units) of asset_id in 18-decimal USD.

        A zero amount is worth zero for every registered asset; the oracle is
        not consulted in that case.

        Raises:
            AssetNotAllowed: asset is not registered
            OracleUnavailable, InvalidPrice, StalePrice: quote is unusable
        """
        entry = self._entry(asset_id)
        if amount == 0:
            return 0
        price = self._adapter.normalized_price(asset_id)
        return calculate_usd_value(price, amount, entry.decimals)

    def token_amount_from_usd(self, asset_id: str, usd_value: int, round_up: bool = False) -> int:
        """Native-unit amount of asset_id worth usd_value (inverse of value_of)."""
        entry = self._entry(asset_id)
        if usd_value == 0:
            return 0
        price = self._adapter.normalized_price(asset_id)
        return calculate_token_amount(price, usd_value, entry.decimals, round_up=round_up)

    def total_collateral_value(self, account: str) -> int:
        """
        Sum of value_of over every registered asset.

        The whole registry is iterated, including assets the account does not
        hold, so cost grows with the number of registered assets.
        """
        total = 0
        for asset_id in self._registry:
            total += self.value_of(asset_id, self._collateral.position(account, asset_id))
        return total

    def breakdown(self, account: str) -> Dict[str, int]:
        """Per-asset USD value of an account's collateral."""
        return {
            asset_id: self.value_of(asset_id, self._collateral.position(account, asset_id))
            for asset_id in self._registry
        }
