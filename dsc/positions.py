"""
positions.py - Collateral and debt bookkeeping

The two ledgers the engine keeps for its accounts:

    CollateralLedger: (account, asset) -> deposited amount in native units
    DebtLedger:       account -> minted DSC in 18-decimal fixed point

Both are plain books: they validate amounts and never let a position go
negative, but they do not move assets and do not check solvency. The
orchestrator pairs every credit/debit with the matching transfer and runs
the risk check inside one atomic boundary. Both implement the Journaled
protocol (snapshot/restore) for that boundary.
"""

from __future__ import annotations
from collections import defaultdict
from types import MappingProxyType
from typing import Dict, List, Mapping

from .core import (
    CollateralAsset,
    InvalidAmount, AssetNotAllowed, InsufficientCollateral, InsufficientDebt,
)


def _require_positive(amount: int, what: str) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise InvalidAmount(f"{what} must be an int, got {type(amount).__name__}")
    if amount <= 0:
        raise InvalidAmount(f"{what} must be positive, got {amount}")


class CollateralLedger:
    """
    Per-account, per-asset collateral positions.

    Positions are created on first credit and never deleted; a fully redeemed
    position stays at zero.
    """

    def __init__(self, registry: Mapping[str, CollateralAsset]):
        self._registry = registry
        self._positions: Dict[str, Dict[str, int]] = defaultdict(dict)
        # Running total per asset, kept alongside the positions.
        self._totals: Dict[str, int] = defaultdict(int)

    def credit(self, account: str, asset_id: str, amount: int) -> int:
        """
        Increase a position.

        Raises:
            InvalidAmount: amount is not a positive int
            AssetNotAllowed: asset is unregistered or disabled

        Returns:
            The new position
        """
        _require_positive(amount, "Collateral amount")
        entry = self._registry.get(asset_id)
        if entry is None or not entry.enabled:
            raise AssetNotAllowed(f"Asset {asset_id} is not allowed as collateral")

        new_position = self._positions[account].get(asset_id, 0) + amount
        self._positions[account][asset_id] = new_position
        self._totals[asset_id] += amount
        return new_position

    def debit(self, account: str, asset_id: str, amount: int) -> int:
        """
        Decrease a position.

        Debits are allowed for disabled assets so that holders can always exit.

        Raises:
            InvalidAmount: amount is not a positive int
            InsufficientCollateral: amount exceeds the current position

        Returns:
            The new position
        """
        _require_positive(amount, "Collateral amount")
        current = self.position(account, asset_id)
        if amount > current:
            raise InsufficientCollateral(
                f"{account} holds {current} {asset_id}, cannot debit {amount}"
            )
        self._positions[account][asset_id] = current - amount
        self._totals[asset_id] -= amount
        return current - amount

    def position(self, account: str, asset_id: str) -> int:
        """Current position (0 if the account never deposited the asset)."""
        return self._positions.get(account, {}).get(asset_id, 0)

    def positions(self, account: str) -> Mapping[str, int]:
        """Read-only view of all positions of an account."""
        return MappingProxyType(dict(self._positions.get(account, {})))

    def total(self, asset_id: str) -> int:
        """Sum of all accounts' positions in an asset."""
        return self._totals.get(asset_id, 0)

    def accounts(self) -> List[str]:
        """Accounts that ever held a position, sorted for determinism."""
        return sorted(self._positions.keys())

    def snapshot(self):
        return (
            {account: dict(held) for account, held in self._positions.items()},
            dict(self._totals),
        )

    def restore(self, snapshot) -> None:
        positions, totals = snapshot
        self._positions = defaultdict(dict, {a: dict(h) for a, h in positions.items()})
        self._totals = defaultdict(int, totals)

    def __repr__(self):
        return f"CollateralLedger({len(self._positions)} accounts, {len(self._registry)} assets)"


class DebtLedger:
    """Per-account DSC debt."""

    def __init__(self):
        self._debts: Dict[str, int] = {}

    def mint(self, account: str, amount: int) -> int:
        """Increase an account's debt; returns the new debt."""
        _require_positive(amount, "Mint amount")
        new_debt = self._debts.get(account, 0) + amount
        self._debts[account] = new_debt
        return new_debt

    def burn(self, account: str, amount: int) -> int:
        """
        Decrease an account's debt; returns the new debt.

        Raises:
            InvalidAmount: amount is not a positive int
            InsufficientDebt: amount exceeds the outstanding debt
        """
        _require_positive(amount, "Burn amount")
        current = self.debt(account)
        if amount > current:
            raise InsufficientDebt(f"{account} owes {current} DSC, cannot repay {amount}")
        self._debts[account] = current - amount
        return current - amount

    def debt(self, account: str) -> int:
        return self._debts.get(account, 0)

    def total_debt(self) -> int:
        return sum(self._debts[a] for a in sorted(self._debts))

    def debtors(self) -> List[str]:
        """Accounts with non-zero debt, sorted for determinism."""
        return sorted(a for a, d in self._debts.items() if d > 0)

    def snapshot(self):
        return dict(self._debts)

    def restore(self, snapshot) -> None:
        self._debts = dict(snapshot)

    def __repr__(self):
        return f"DebtLedger({len(self.debtors())} debtors, total={self.total_debt()})"
