#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the DSC Engine Step by Step

A walk through the life of one collateralized position, from the first
deposit to liquidation. Each step builds on the previous one. Press Enter
to advance.

WHAT YOU'LL LEARN:
  1-3: Foundation   - Tokens, oracles and the engine; depositing collateral
  4-5: Minting      - The health factor and the 200% collateral requirement
  6-7: Price Moves  - Stress analytics, falling prices, liquidation
  8:   Audit        - The event log and verify_invariants()

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import sys

import numpy as np

from dsc import (
    DSCEngine, Token, Stablecoin, StaticPriceOracle,
    PRECISION, DSCError,
    to_decimal,
    health_factor_under_shocks, liquidation_price,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)

    # Prices in whole dollars (fed at 8 decimals)
    weth_price: int = 2000
    crashed_weth_price: int = 1800

    # Position sizes in whole units
    alice_weth: int = 1
    alice_mint: int = 1000
    bob_weth: int = 10
    bob_mint: int = 1000
    liquidation_cover: int = 500


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def hf(engine: DSCEngine, account: str) -> str:
    """Health factor as a readable ratio."""
    value = engine.get_health_factor(account)
    if engine.get_dsc_minted(account) == 0:
        return "inf (no debt)"
    return f"{to_decimal(value):.4f}"


# ============================================================================
# PHASE 1: FOUNDATION (Steps 1-3)
# ============================================================================

def step_01_build_engine():
    """Create tokens, an oracle and the engine."""
    step_header(1, "Building the Engine",
        "See which collaborators the engine needs and who owns the stablecoin.")

    print("""
    The engine never holds balances itself. It talks to three collaborators:

    1. COLLATERAL TOKENS - WETH here, moved into and out of custody
    2. PRICE ORACLES     - one per token, queried on every valuation
    3. THE STABLECOIN    - minted and burned only by its owner, the engine
    """)

    weth = Token("WETH", "Wrapped Ether")
    oracle = StaticPriceOracle({"WETH": CONFIG.weth_price * 10 ** 8}, observed_at=CONFIG.start_time)
    dsc = Stablecoin()
    engine = DSCEngine(
        [weth], [oracle], dsc,
        initial_time=CONFIG.start_time,
        verbose=True,
    )
    dsc.transfer_ownership(engine.address)

    print(f">>> {engine!r}")
    print(f"Collateral tokens:    {engine.get_collateral_tokens()}")
    print(f"Liquidation threshold: {engine.get_liquidation_threshold()}%")
    print(f"Liquidation bonus:     {engine.get_liquidation_bonus()}%")
    print(f"Stablecoin owner:      {dsc.owner}")
    return engine, weth, oracle, dsc


def step_02_fund_wallets(weth: Token):
    """Give alice and bob WETH to work with."""
    step_header(2, "Funding Wallets",
        "Wallet balances live in the token, not in the engine.")

    weth.mint_to("alice", CONFIG.alice_weth * 10 ** 18)
    weth.mint_to("bob", CONFIG.bob_weth * 10 ** 18)
    for account in ("alice", "bob"):
        print(f"{account:6} WETH wallet: {to_decimal(weth.balance_of(account))}")


def step_03_deposit(engine: DSCEngine, weth: Token):
    """Deposit collateral and value it."""
    step_header(3, "Depositing Collateral",
        "A deposit moves tokens into custody and credits the collateral ledger.")

    engine.deposit_collateral("alice", "WETH", CONFIG.alice_weth * 10 ** 18)

    section_header("After the deposit")
    print(f"alice wallet:      {to_decimal(weth.balance_of('alice'))} WETH")
    print(f"engine custody:    {to_decimal(weth.balance_of(engine.address))} WETH")
    print(f"alice collateral:  ${to_decimal(engine.get_account_collateral_value('alice'))}")
    print(f"alice health:      {hf(engine, 'alice')}")


# ============================================================================
# PHASE 2: MINTING (Steps 4-5)
# ============================================================================

def step_04_mint_too_much(engine: DSCEngine):
    """Try to mint past the collateral requirement."""
    step_header(4, "The 200% Requirement",
        "Only half of the collateral value counts toward debt.")

    print(f"Max mintable for alice: {to_decimal(engine.get_max_mintable('alice'))} DSC\n")
    try:
        engine.mint_dsc("alice", (CONFIG.alice_mint + 1) * PRECISION)
    except DSCError as exc:
        print(f"\nRejected as expected: {type(exc).__name__}")
    print(f"alice debt is still {to_decimal(engine.get_dsc_minted('alice'))} DSC")


def step_05_mint_at_boundary(engine: DSCEngine):
    """Mint exactly up to the threshold, and let bob open a safer position."""
    step_header(5, "Minting at the Boundary",
        "A health factor of exactly 1.0 is solvent; only below 1.0 is not.")

    engine.mint_dsc("alice", CONFIG.alice_mint * PRECISION)
    engine.deposit_collateral_and_mint_dsc(
        "bob", "WETH", CONFIG.bob_weth * 10 ** 18, CONFIG.bob_mint * PRECISION
    )

    section_header("Positions")
    for account in engine.list_accounts():
        snapshot = engine.get_risk_snapshot(account)
        print(f"{account:6} debt={to_decimal(snapshot.debt):>8} DSC  "
              f"collateral=${to_decimal(snapshot.collateral_value):>10}  "
              f"health={hf(engine, account):>8}  {snapshot.status}")


# ============================================================================
# PHASE 3: PRICE MOVES (Steps 6-7)
# ============================================================================

def step_06_stress(engine: DSCEngine):
    """Look at health factors under hypothetical price drops."""
    step_header(6, "Stress Analytics",
        "Ask 'what if WETH falls' without touching engine state.")

    shocks = np.array([1.0, 0.95, 0.9, 0.75, 0.5])
    for account in ("alice", "bob"):
        factors = health_factor_under_shocks(engine, account, shocks)
        row = "  ".join(f"{s:>4.0%}:{f:6.2f}" for s, f in zip(shocks, factors))
        print(f"{account:6} {row}")
        print(f"{'':6} liquidation price: ${liquidation_price(engine, account, 'WETH')}")


def step_07_liquidation(engine: DSCEngine, oracle: StaticPriceOracle, weth: Token, dsc: Stablecoin):
    """Drop the price and liquidate alice."""
    step_header(7, "Liquidation",
        "Anyone holding DSC can repay an unhealthy account's debt and take its collateral at a bonus.")

    crash_time = CONFIG.start_time + timedelta(hours=1)
    engine.advance_time(crash_time)
    oracle.update_price("WETH", CONFIG.crashed_weth_price * 10 ** 8, observed_at=crash_time)
    print(f"WETH now ${CONFIG.crashed_weth_price}; alice health {hf(engine, 'alice')}\n")

    plan = engine.preview_liquidation("bob", "alice", "WETH", CONFIG.liquidation_cover * PRECISION)
    print(f"Preview: bob repays {CONFIG.liquidation_cover} DSC and receives "
          f"{to_decimal(plan.base_collateral)} + {to_decimal(plan.bonus_collateral)} (bonus) WETH\n")

    engine.liquidate("bob", "alice", "WETH", CONFIG.liquidation_cover * PRECISION)

    section_header("After liquidation")
    print(f"alice debt:   {to_decimal(engine.get_dsc_minted('alice'))} DSC, health {hf(engine, 'alice')}")
    print(f"bob wallet:   {to_decimal(weth.balance_of('bob'))} WETH, {to_decimal(dsc.balance_of('bob'))} DSC")


# ============================================================================
# PHASE 4: AUDIT (Step 8)
# ============================================================================

def step_08_audit(engine: DSCEngine):
    """Read the event log and verify the books."""
    step_header(8, "Audit Trail",
        "Every applied effect is an event; the books always reconcile.")

    for event in engine.event_log:
        print(f"  {event!r}")

    result = engine.verify_invariants()
    section_header("verify_invariants()")
    print(f"valid:               {result['valid']}")
    print(f"recorded collateral: {result['supplies']}")
    print(f"total debt:          {to_decimal(result['total_debt'])} DSC")
    print(f"undercollateralized: {result['undercollateralized']}")


def main():
    print("=" * 70)
    print("       DSC ENGINE TUTORIAL")
    print("=" * 70)

    engine, weth, oracle, dsc = step_01_build_engine()
    wait_for_enter()

    step_02_fund_wallets(weth)
    wait_for_enter()

    step_03_deposit(engine, weth)
    wait_for_enter()

    step_04_mint_too_much(engine)
    wait_for_enter()

    step_05_mint_at_boundary(engine)
    wait_for_enter()

    step_06_stress(engine)
    wait_for_enter()

    step_07_liquidation(engine, oracle, weth, dsc)
    wait_for_enter()

    step_08_audit(engine)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See dsc/engine.py for the public operations
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
