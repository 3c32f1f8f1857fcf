"""
fakes.py - Test helpers for the DSC engine

Provides misbehaving and non-journaled collaborators, a minimal EngineView, and a market
builder so that tests can set up a working engine in one line.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Tuple, Any

from dsc import (
    DSCEngine, EngineConfig, CollateralAsset, Journaled,
    Token, Stablecoin, StaticPriceOracle,
    InsufficientBalance, NotOwner,
    PRECISION, LIQUIDATION_THRESHOLD, MIN_HEALTH_FACTOR,
    calculate_usd_value,
)


WETH_PRICE = 2000_00000000     # $2000, 8-decimal feed
WBTC_PRICE = 30000_00000000    # $30000, 8-decimal feed
ONE_WETH = 10 ** 18
ONE_WBTC = 10 ** 8


class FailingToken(Token):
    """Collateral token whose transfers report failure instead of raising."""

    def __init__(self, symbol: str = "BAD", fail_transfer_from: bool = True, fail_transfer: bool = False):
        super().__init__(symbol)
        self.fail_transfer_from = fail_transfer_from
        self.fail_transfer = fail_transfer

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        if self.fail_transfer:
            return False
        return super().transfer(sender, recipient, amount)

    def transfer_from(self, sender: str, recipient: str, amount: int) -> bool:
        if self.fail_transfer_from:
            return False
        return super().transfer_from(sender, recipient, amount)


class RefusingStablecoin(Stablecoin):
    """Stablecoin whose mint and/or burn return False."""

    def __init__(self, refuse_mint: bool = True, refuse_burn: bool = False):
        super().__init__()
        self.refuse_mint = refuse_mint
        self.refuse_burn = refuse_burn

    def mint(self, to: str, amount: int, caller: str) -> bool:
        if self.refuse_mint:
            return False
        return super().mint(to, amount, caller)

    def burn(self, amount: int, caller: str) -> bool:
        if self.refuse_burn:
            return False
        return super().burn(amount, caller)


class PlainToken:
    """
    Collateral token with only the transfer interface.

    It has no snapshot()/restore(), so the engine cannot roll it back: any
    transfer it performs during a failed operation stays performed.
    """

    def __init__(self, symbol: str, decimals: int = 18):
        self.symbol = symbol
        self.decimals = decimals
        self.balances: Dict[str, int] = {}

    def balance_of(self, account: str) -> int:
        return self.balances.get(account, 0)

    def total_supply(self) -> int:
        return sum(self.balances.values())

    def mint_to(self, account: str, amount: int) -> None:
        self.balances[account] = self.balance_of(account) + amount

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        held = self.balance_of(sender)
        if amount > held:
            raise InsufficientBalance(f"{sender} holds {held} {self.symbol}, cannot move {amount}")
        self.balances[sender] = held - amount
        self.balances[recipient] = self.balance_of(recipient) + amount
        return True

    def transfer_from(self, sender: str, recipient: str, amount: int) -> bool:
        return self.transfer(sender, recipient, amount)


class PlainStablecoin(PlainToken):
    """Owner-gated stablecoin without snapshot()/restore()."""

    def __init__(self):
        super().__init__("DSC")
        self.owner: Optional[str] = None

    def transfer_ownership(self, new_owner: str) -> None:
        self.owner = new_owner

    def mint(self, to: str, amount: int, caller: str) -> bool:
        if caller != self.owner:
            raise NotOwner(f"{caller} is not the owner of DSC")
        self.mint_to(to, amount)
        return True

    def burn(self, amount: int, caller: str) -> bool:
        if caller != self.owner:
            raise NotOwner(f"{caller} is not the owner of DSC")
        held = self.balance_of(caller)
        if amount > held:
            raise InsufficientBalance(f"{caller} holds {held} DSC, cannot burn {amount}")
        self.balances[caller] = held - amount
        return True


class FakeView:
    """
    Minimal EngineView implementation for testing the stress analytics
    without building an engine.

    Example:
        view = FakeView(
            positions={'alice': {'WETH': 10**18}},
            debts={'alice': 1000 * PRECISION},
            prices={'WETH': 2000 * PRECISION},
        )
    """

    def __init__(
        self,
        positions: Dict[str, Dict[str, int]],
        debts: Dict[str, int],
        prices: Dict[str, int],
        decimals: Optional[Dict[str, int]] = None,
        threshold: int = LIQUIDATION_THRESHOLD,
        min_health_factor: int = MIN_HEALTH_FACTOR,
        time: Optional[datetime] = None,
    ):
        self._positions = positions
        self._debts = debts
        self._prices = prices
        self._decimals = decimals or {asset: 18 for asset in prices}
        self._threshold = threshold
        self._min_health_factor = min_health_factor
        self._time = time or datetime(2025, 1, 1)

    @property
    def current_time(self) -> datetime:
        return self._time

    def get_collateral_tokens(self) -> Tuple[str, ...]:
        return tuple(self._prices)

    def get_collateral_asset(self, asset_id: str) -> CollateralAsset:
        return CollateralAsset(
            asset_id=asset_id,
            oracle=StaticPriceOracle(),
            token=Token(asset_id),
            decimals=self._decimals[asset_id],
        )

    def get_collateral_balance_of_user(self, account: str, asset_id: str) -> int:
        return self._positions.get(account, {}).get(asset_id, 0)

    def get_dsc_minted(self, account: str) -> int:
        return self._debts.get(account, 0)

    def get_value_in_usd(self, asset_id: str, amount: int) -> int:
        return calculate_usd_value(self._prices[asset_id], amount, self._decimals[asset_id])

    def get_liquidation_threshold(self) -> int:
        return self._threshold

    def get_min_health_factor(self) -> int:
        return self._min_health_factor


@dataclass
class Market:
    """An engine together with the collaborators it was built from."""
    engine: DSCEngine
    weth: Token
    wbtc: Token
    oracle: StaticPriceOracle
    dsc: Stablecoin

    def fund(self, account: str, weth: int = 0, wbtc: int = 0) -> None:
        """Give an account collateral tokens in its wallet."""
        if weth:
            self.weth.mint_to(account, weth)
        if wbtc:
            self.wbtc.mint_to(account, wbtc)

    def set_weth_price(self, dollars: int) -> None:
        self.oracle.update_price("WETH", dollars * 10 ** 8)


def make_market(
    config: Optional[EngineConfig] = None,
    dsc: Optional[Stablecoin] = None,
    initial_time: Optional[datetime] = None,
    verbose: bool = False,
    **engine_kwargs,
) -> Market:
    """Build an engine accepting WETH (18 decimals) and WBTC (8 decimals)."""
    weth = Token("WETH", "Wrapped Ether")
    wbtc = Token("WBTC", "Wrapped Bitcoin", decimals=8)
    oracle = StaticPriceOracle({"WETH": WETH_PRICE, "WBTC": WBTC_PRICE})
    dsc = dsc if dsc is not None else Stablecoin()
    engine = DSCEngine(
        [weth, wbtc], [oracle, oracle], dsc,
        config=config, initial_time=initial_time, verbose=verbose,
        **engine_kwargs,
    )
    dsc.transfer_ownership(engine.address)
    return Market(engine=engine, weth=weth, wbtc=wbtc, oracle=oracle, dsc=dsc)


def make_plain_market() -> Market:
    """Same market as make_market(), built from collaborators the engine cannot restore."""
    weth = PlainToken("WETH")
    wbtc = PlainToken("WBTC", decimals=8)
    oracle = StaticPriceOracle({"WETH": WETH_PRICE, "WBTC": WBTC_PRICE})
    dsc = PlainStablecoin()
    engine = DSCEngine([weth, wbtc], [oracle, oracle], dsc)
    dsc.transfer_ownership(engine.address)
    return Market(engine=engine, weth=weth, wbtc=wbtc, oracle=oracle, dsc=dsc)


def _book(token) -> Any:
    if isinstance(token, Journaled):
        return token.snapshot()
    return {account: amount for account, amount in token.balances.items() if amount}


def capture_state(market: Market) -> Dict[str, Any]:
    """Everything a failed operation must leave untouched."""
    engine = market.engine
    return {
        'collateral': engine.collateral.snapshot(),
        'debts': engine.debts.snapshot(),
        'events': list(engine.event_log),
        'weth': _book(market.weth),
        'wbtc': _book(market.wbtc),
        'dsc': _book(market.dsc),
    }


def to_dsc(amount: int) -> int:
    """Whole DSC to 18-decimal fixed point."""
    return amount * PRECISION
