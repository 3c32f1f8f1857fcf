"""
conftest.py - Shared pytest fixtures for DSC engine tests

Provides common fixtures used across unit, conformance and functional tests:
- Markets (engine plus its WETH/WBTC tokens, oracle and stablecoin)
- Funded and indebted accounts, also on collaborators without snapshot/restore
- Market state capture for rollback assertions
"""

import pytest
from datetime import datetime, timedelta

from dsc import EngineConfig, PRECISION

from tests.fakes import (
    Market, make_market, make_plain_market, capture_state,
    ONE_WETH, ONE_WBTC,
)


# =============================================================================
# MARKET FIXTURES
# =============================================================================

@pytest.fixture
def market() -> Market:
    """Engine with WETH at $2000 and WBTC at $30000, no accounts."""
    return make_market()


@pytest.fixture
def funded_market(market) -> Market:
    """Market where alice and bob each hold 10 WETH and 1 WBTC in their wallets."""
    for account in ("alice", "bob"):
        market.fund(account, weth=10 * ONE_WETH, wbtc=ONE_WBTC)
    return market


@pytest.fixture
def indebted_market(funded_market) -> Market:
    """
    alice: 1 WETH deposited, 1000 DSC minted (health factor exactly 1.0)
    bob:   10 WETH deposited, 1000 DSC minted (liquidator with spare capacity)
    """
    engine = funded_market.engine
    engine.deposit_collateral_and_mint_dsc("alice", "WETH", ONE_WETH, 1000 * PRECISION)
    engine.deposit_collateral_and_mint_dsc("bob", "WETH", 10 * ONE_WETH, 1000 * PRECISION)
    return funded_market


@pytest.fixture
def stale_sensitive_market() -> Market:
    """Market that rejects quotes older than three hours."""
    return make_market(
        config=EngineConfig(max_quote_age=timedelta(hours=3)),
        initial_time=datetime(1970, 1, 1),
    )


@pytest.fixture
def state_of():
    """Return the market state capture helper."""
    return capture_state


@pytest.fixture
def plain_indebted_market() -> Market:
    """
    indebted_market positions on collaborators without snapshot()/restore():
    alice 1 WETH / 1000 DSC, bob 10 WETH / 1000 DSC, both with 1 WBTC in the wallet.
    """
    market = make_plain_market()
    for account in ("alice", "bob"):
        market.fund(account, weth=10 * ONE_WETH, wbtc=ONE_WBTC)
    engine = market.engine
    engine.deposit_collateral_and_mint_dsc("alice", "WETH", ONE_WETH, 1000 * PRECISION)
    engine.deposit_collateral_and_mint_dsc("bob", "WETH", 10 * ONE_WETH, 1000 * PRECISION)
    return market
