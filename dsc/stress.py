"""
stress.py - Price-shock analytics for engine accounts

Answers "what if prices move" questions without touching engine state:

    health_factor_under_shocks: health factors for a grid of uniform price shocks
    liquidation_price:          price of one asset at which an account hits the minimum

Both functions read through the EngineView protocol only. Results are floats
and Decimals for reporting and plotting; enforcement always goes through the
integer risk engine and nothing here accepts or rejects an operation.
"""

from __future__ import annotations
from decimal import Decimal
from typing import Dict, Optional, Sequence, Union

import numpy as np

from .core import (
    EngineView,
    PRECISION, LIQUIDATION_PRECISION,
    to_decimal,
)
from .risk import calculate_required_collateral_value


ArrayLike = Union[Sequence[float], np.ndarray]


def _position_values(view: EngineView, account: str) -> Dict[str, int]:
    """Current 18-decimal USD value of each non-zero position."""
    values = {}
    for asset_id in view.get_collateral_tokens():
        held = view.get_collateral_balance_of_user(account, asset_id)
        if held > 0:
            values[asset_id] = view.get_value_in_usd(asset_id, held)
    return values


def health_factor_under_shocks(
    view: EngineView,
    account: str,
    shocks: ArrayLike,
    assets: Optional[Sequence[str]] = None,
) -> np.ndarray:
    """
    Health factor of an account when collateral prices are scaled by each shock.

    Args:
        view: Engine (or any EngineView) holding the account
        account: Account to analyse
        shocks: Multipliers applied to current prices (0.8 = 20% drop)
        assets: Assets the shock applies to (default: all); others keep their price

    Returns:
        float64 array, same shape as shocks, of health factors relative to the
        minimum (1.0 = exactly at the boundary). np.inf where the account has no debt.

    Example:
        hf = health_factor_under_shocks(engine, "alice", np.linspace(0.5, 1.0, 6))
    """
    shocks = np.asarray(shocks, dtype=np.float64)
    if np.any(shocks < 0):
        raise ValueError("Price shocks cannot be negative")

    debt = float(to_decimal(view.get_dsc_minted(account)))
    if debt == 0:
        return np.full(shocks.shape, np.inf)

    values = {a: float(to_decimal(v)) for a, v in _position_values(view, account).items()}
    shocked_assets = set(values) if assets is None else set(assets)
    exposed = sum(v for a, v in values.items() if a in shocked_assets)
    fixed = sum(v for a, v in values.items() if a not in shocked_assets)

    threshold = view.get_liquidation_threshold() / LIQUIDATION_PRECISION
    minimum = view.get_min_health_factor() / PRECISION
    collateral = exposed * shocks + fixed
    return collateral * threshold / debt / minimum


def liquidation_price(view: EngineView, account: str, asset_id: str) -> Optional[Decimal]:
    """
    Price of asset_id (in USD per whole unit) at which the account reaches the
    minimum health factor, holding all other prices fixed.

    Returns:
        None when the account has no debt or holds none of asset_id.
        Decimal("0") when the other collateral alone keeps the account solvent.
    """
    debt = view.get_dsc_minted(account)
    held = view.get_collateral_balance_of_user(account, asset_id)
    if debt == 0 or held == 0:
        return None

    required = calculate_required_collateral_value(
        debt, view.get_liquidation_threshold(), view.get_min_health_factor()
    )
    values = _position_values(view, account)
    other = sum(v for a, v in values.items() if a != asset_id)
    shortfall = required - other
    if shortfall <= 0:
        return Decimal("0")
    decimals = view.get_collateral_asset(asset_id).decimals
    return to_decimal(shortfall) / to_decimal(held, decimals)
