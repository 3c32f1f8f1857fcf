"""
Core types and pure functions for the collateralized stablecoin engine.

This module provides the foundational data structures and protocols for the engine:
1. Constants: fixed-point precision, liquidation parameters, reserved accounts
2. Protocols: PriceOracle, AssetToken, StablecoinLedger, Journaled, EngineView
3. Immutable data structures: OracleQuote, CollateralAsset, EngineConfig, EngineEvent
4. Exceptions: DSCError and the domain-specific error types
5. Fixed-point helpers: mul_div_down, mul_div_up, to_decimal

All amounts are plain Python ints in fixed point. Collateral positions are kept
in the asset's native units; debt and USD values use 18 decimals (PRECISION).
Nothing in this module mutates engine state.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import (
    Dict, Optional, Any, Protocol, Tuple, runtime_checkable
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Fixed-point precision for USD values, DSC amounts and health factors.
PRECISION = 10 ** 18
PRECISION_DECIMALS = 18

# Health factor at which an account stops being mintable and becomes
# liquidatable. Expressed in PRECISION, i.e. exactly 1.0.
MIN_HEALTH_FACTOR = PRECISION

# Returned by the risk engine for accounts without debt.
MAX_HEALTH_FACTOR = 2 ** 256 - 1

# Percentage of collateral value that counts toward backing debt.
# 50 means a 200% overcollateralization requirement.
LIQUIDATION_THRESHOLD = 50
LIQUIDATION_PRECISION = 100

# Extra collateral (percent of the repaid amount) awarded to liquidators.
LIQUIDATION_BONUS = 10

# Native precision assumed for collateral tokens that do not declare one.
DEFAULT_TOKEN_DECIMALS = 18

# Decimals reported by the reference price feeds.
DEFAULT_FEED_DECIMALS = 8

# Reserved account that custodies deposited collateral.
ENGINE_ACCOUNT = "dsc_engine"

# Risk status constants.
RISK_STATUS_HEALTHY = "HEALTHY"
RISK_STATUS_AT_RISK = "AT_RISK"
RISK_STATUS_LIQUIDATABLE = "LIQUIDATABLE"

# Health factor below which a solvent account is reported AT_RISK (1.25).
AT_RISK_HEALTH_FACTOR = PRECISION * 125 // 100


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Opaque snapshot returned by Journaled.snapshot().
Snapshot = Any


# ============================================================================
# EXCEPTIONS
# ============================================================================

class DSCError(Exception):
    """Base exception for all engine-related errors."""
    pass


class InvalidAmount(DSCError):
    """Raised when a zero or negative quantity is supplied."""
    pass


class AssetNotAllowed(DSCError):
    """Raised when an asset is not registered or not enabled as collateral."""
    pass


class ConfigurationMismatch(DSCError):
    """Raised when the collateral token and price oracle lists do not line up."""
    pass


class ConfigurationError(DSCError):
    """Raised when an EngineConfig parameter is out of range."""
    pass


class TransferFailed(DSCError):
    """Raised when a collaborator asset transfer reports failure."""
    pass


class MintFailed(DSCError):
    """Raised when the stablecoin ledger refuses a mint."""
    pass


class BurnFailed(DSCError):
    """Raised when the stablecoin ledger refuses a burn."""
    pass


class InsufficientCollateral(DSCError):
    """Raised when a debit exceeds the account's collateral position."""
    pass


class InsufficientDebt(DSCError):
    """Raised when a repayment exceeds the account's outstanding debt."""
    pass


class HealthFactorBroken(DSCError):
    """Raised when an operation would leave an account below the minimum health factor."""

    def __init__(
        self,
        health_factor: int,
        account: Optional[str] = None,
        minimum: int = MIN_HEALTH_FACTOR,
    ):
        self.health_factor = health_factor
        self.account = account
        self.minimum = minimum
        who = f" for {account}" if account else ""
        super().__init__(
            f"Health factor broken{who}: {health_factor} < {minimum}"
        )


class HealthFactorOk(DSCError):
    """Raised when liquidation is attempted against a solvent account."""
    pass


class HealthFactorNotImproved(DSCError):
    """Raised when a liquidation would not strictly improve the target's health factor."""

    def __init__(self, before: int, after: int):
        self.before = before
        self.after = after
        super().__init__(f"Health factor not improved: {before} -> {after}")


class OracleUnavailable(DSCError):
    """Raised when no oracle is registered for an asset or it cannot quote it."""
    pass


class InvalidPrice(DSCError):
    """Raised when an oracle quote carries a non-positive price or bad decimals."""
    pass


class StalePrice(DSCError):
    """Raised when an oracle quote is older than the configured maximum age."""
    pass


class Reentrant(DSCError):
    """Raised when an entry point is invoked while another one is in progress."""
    pass


class InsufficientBalance(DSCError):
    """Raised by token collaborators when a wallet holds less than the amount moved."""
    pass


class NotOwner(DSCError):
    """Raised by the stablecoin when mint or burn is called by anyone but its owner."""
    pass


# ============================================================================
# FIXED-POINT HELPERS
# ============================================================================

def mul_div_down(a: int, b: int, denominator: int) -> int:
    """Compute a * b / denominator rounded toward zero."""
    if denominator == 0:
        raise ZeroDivisionError("mul_div_down by zero")
    return (a * b) // denominator


def mul_div_up(a: int, b: int, denominator: int) -> int:
    """Compute a * b / denominator rounded away from zero (for non-negative inputs)."""
    if denominator == 0:
        raise ZeroDivisionError("mul_div_up by zero")
    return -((-(a * b)) // denominator)


def to_decimal(amount: int, decimals: int = PRECISION_DECIMALS) -> Decimal:
    """
    Convert a fixed-point integer to a Decimal for display.

    Example:
        to_decimal(1500 * PRECISION)  # Decimal('1500')
    """
    return Decimal(amount).scaleb(-decimals)


def from_decimal(value: Any, decimals: int = PRECISION_DECIMALS) -> int:
    """
    Convert a human-readable quantity to fixed point, truncating extra digits.

    Accepts Decimal, int or str. Floats are converted through str() so that
    1.1 becomes Decimal("1.1") rather than its binary expansion.
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return int(value.scaleb(decimals))


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class PriceOracle(Protocol):
    """
    External price feed.

    Returns the latest observation for an asset. The engine never caches the
    result and validates it on every call.
    """

    def latest_quote(self, asset_id: str) -> 'OracleQuote':
        """Return the most recent quote for asset_id, or raise if none exists."""
        ...


@runtime_checkable
class AssetToken(Protocol):
    """Transfer interface of a collateral asset."""

    symbol: str

    def balance_of(self, account: str) -> int:
        ...

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        ...

    def transfer_from(self, sender: str, recipient: str, amount: int) -> bool:
        ...


@runtime_checkable
class StablecoinLedger(Protocol):
    """
    The pegged-currency ledger.

    mint and burn are owner-gated; the engine passes its own account as caller.
    """

    def mint(self, to: str, amount: int, caller: str) -> bool:
        ...

    def burn(self, amount: int, caller: str) -> bool:
        ...

    def balance_of(self, account: str) -> int:
        ...

    def transfer_from(self, sender: str, recipient: str, amount: int) -> bool:
        ...


@runtime_checkable
class Journaled(Protocol):
    """
    State holder that can take part in the engine's atomic boundary.

    snapshot() returns an opaque value; restore() puts the object back exactly
    as it was when that snapshot was taken.
    """

    def snapshot(self) -> Snapshot:
        ...

    def restore(self, snapshot: Snapshot) -> None:
        ...


@runtime_checkable
class EngineView(Protocol):
    """
    Read-only interface to engine state.

    Analytics such as the stress functions accept an EngineView to declare
    that they never mutate positions. DSCEngine satisfies it.
    """

    @property
    def current_time(self) -> datetime:
        ...

    def get_collateral_tokens(self) -> Tuple[str, ...]:
        ...

    def get_collateral_asset(self, asset_id: str) -> 'CollateralAsset':
        ...

    def get_collateral_balance_of_user(self, account: str, asset_id: str) -> int:
        ...

    def get_dsc_minted(self, account: str) -> int:
        ...

    def get_value_in_usd(self, asset_id: str, amount: int) -> int:
        ...

    def get_liquidation_threshold(self) -> int:
        ...

    def get_min_health_factor(self) -> int:
        ...


# ============================================================================
# ENUMS
# ============================================================================

class EventType(Enum):
    """Kind of effect recorded in the engine's event log."""
    COLLATERAL_DEPOSITED = "collateral_deposited"
    COLLATERAL_REDEEMED = "collateral_redeemed"
    DSC_MINTED = "dsc_minted"
    DSC_BURNED = "dsc_burned"
    LIQUIDATED = "liquidated"


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class OracleQuote:
    """
    A single price observation.

    Attributes:
        asset_id: Asset being priced.
        price: Integer price scaled by 10**decimals (e.g. 2000_00000000 for $2000 at 8 decimals).
        decimals: Number of decimals the feed reports.
        observed_at: When the price was observed.
    """
    asset_id: str
    price: int
    decimals: int
    observed_at: datetime

    def normalized_price(self) -> int:
        """Price scaled to 18 decimals (truncated for feeds with more than 18)."""
        if self.decimals <= PRECISION_DECIMALS:
            return self.price * 10 ** (PRECISION_DECIMALS - self.decimals)
        return self.price // 10 ** (self.decimals - PRECISION_DECIMALS)

    def __repr__(self) -> str:
        return f"Quote({self.asset_id}={to_decimal(self.price, self.decimals)} @ {self.observed_at})"


@dataclass(frozen=True, slots=True)
class CollateralAsset:
    """
    Registry entry for a collateral asset.

    Attributes:
        asset_id: Identifier of the asset (the token symbol).
        oracle: Price oracle quoting this asset.
        token: Transfer interface used to move the asset in and out of custody.
        decimals: Native precision of the asset.
        enabled: Whether new deposits are accepted.
    """
    asset_id: str
    oracle: PriceOracle
    token: AssetToken
    decimals: int = DEFAULT_TOKEN_DECIMALS
    enabled: bool = True

    def __post_init__(self):
        if not self.asset_id or not self.asset_id.strip():
            raise ConfigurationMismatch("Collateral asset id cannot be empty")
        if self.decimals < 0:
            raise ConfigurationMismatch(
                f"Collateral asset {self.asset_id} has negative decimals: {self.decimals}"
            )


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """
    Risk parameters of one engine instance.

    Attributes:
        liquidation_threshold: Percent of collateral value counted toward debt (0, 100].
        liquidation_bonus: Percent of extra collateral paid to liquidators [0, 100).
        min_health_factor: Solvency boundary in PRECISION.
        max_quote_age: Oracle quotes older than this are rejected (None disables the check).
    """
    liquidation_threshold: int = LIQUIDATION_THRESHOLD
    liquidation_bonus: int = LIQUIDATION_BONUS
    min_health_factor: int = MIN_HEALTH_FACTOR
    max_quote_age: Optional[timedelta] = None

    def __post_init__(self):
        if not 0 < self.liquidation_threshold <= LIQUIDATION_PRECISION:
            raise ConfigurationError(
                f"liquidation_threshold must be in (0, {LIQUIDATION_PRECISION}], "
                f"got {self.liquidation_threshold}"
            )
        if not 0 <= self.liquidation_bonus < LIQUIDATION_PRECISION:
            raise ConfigurationError(
                f"liquidation_bonus must be in [0, {LIQUIDATION_PRECISION}), "
                f"got {self.liquidation_bonus}"
            )
        if self.min_health_factor <= 0:
            raise ConfigurationError(
                f"min_health_factor must be positive, got {self.min_health_factor}"
            )
        if self.max_quote_age is not None and self.max_quote_age <= timedelta(0):
            raise ConfigurationError(
                f"max_quote_age must be positive, got {self.max_quote_age}"
            )


@dataclass(frozen=True, slots=True)
class AccountInformation:
    """Debt and collateral value of one account, both in PRECISION."""
    total_dsc_minted: int
    collateral_value_in_usd: int


@dataclass(frozen=True, slots=True)
class EngineEvent:
    """
    An applied, immutable record of an engine effect.

    Attributes:
        event_type: What happened.
        account: Account whose position changed.
        amount: Collateral (native units) or DSC amount.
        asset_id: Collateral asset involved, None for pure DSC events.
        counterparty: Other side of the effect (recipient of redeemed collateral,
                      payer of burned DSC, liquidator).
        timestamp: Engine logical time when applied.
        sequence_number: Monotonic within the engine.
        metadata: Extra details (e.g. liquidation bonus).
    """
    event_type: EventType
    account: str
    amount: int
    timestamp: datetime
    sequence_number: int
    asset_id: Optional[str] = None
    counterparty: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        asset = f" {self.asset_id}" if self.asset_id else " DSC"
        other = f" <-> {self.counterparty}" if self.counterparty else ""
        return (
            f"Event#{self.sequence_number}({self.event_type.value}: "
            f"{self.account}{other}{asset} {self.amount})"
        )
