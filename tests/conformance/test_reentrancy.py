"""
Reentrancy Conformance Tests

INVARIANT: No mutating entry point runs while another is in progress.

    ∀ operations op1, op2 on one engine:
        op2 invoked during op1 ⟹ op2 raises Reentrant

Queries that read positions are refused the same way, so a callback never
observes a half-applied operation.

The collaborator that re-enters sees Reentrant; since it does not swallow the
error, the outer operation fails too and is rolled back.
"""

import pytest

from dsc import PRECISION, Reentrant

from tests.fakes import capture_state, ONE_WETH


REENTRANT_CALLS = [
    ("deposit_collateral", ("mallory", "WETH", 1)),
    ("deposit_collateral_and_mint_dsc", ("mallory", "WETH", 1, 1)),
    ("redeem_collateral", ("mallory", "WETH", 1)),
    ("redeem_collateral_for_dsc", ("mallory", "WETH", 1, 1)),
    ("mint_dsc", ("mallory", 1)),
    ("burn_dsc", ("mallory", 1)),
    ("liquidate", ("mallory", "alice", "WETH", PRECISION)),
]

# Queries that read positions; parameters and price conversions stay open.
GUARDED_QUERIES = [
    ("get_health_factor", ("alice",)),
    ("get_account_collateral_value", ("alice",)),
    ("get_account_information", ("alice",)),
    ("get_collateral_balance_of_user", ("alice", "WETH")),
    ("get_dsc_minted", ("alice",)),
    ("get_risk_snapshot", ("alice",)),
    ("get_max_mintable", ("alice",)),
    ("get_max_redeemable", ("alice", "WETH")),
    ("preview_liquidation", ("bob", "alice", "WETH", PRECISION)),
    ("list_accounts", ()),
    ("verify_invariants", ()),
]


def reenter_with(engine, method, args, record):
    """Token hook that calls back into the engine on every balance change."""

    def hook(sender, recipient, amount):
        try:
            getattr(engine, method)(*args)
        except Reentrant as exc:
            record.append(exc)
            raise

    return hook


class TestReentrancy:

    @pytest.mark.parametrize("method,args", REENTRANT_CALLS)
    def test_collateral_token_callback(self, funded_market, method, args):
        engine = funded_market.engine
        seen = []
        funded_market.weth.add_transfer_hook(reenter_with(engine, method, args, seen))
        before = capture_state(funded_market)

        with pytest.raises(Reentrant):
            engine.deposit_collateral("alice", "WETH", ONE_WETH)

        assert len(seen) == 1
        assert capture_state(funded_market) == before

    def test_stablecoin_callback_during_mint(self, funded_market):
        engine = funded_market.engine
        engine.deposit_collateral("alice", "WETH", ONE_WETH)
        seen = []
        funded_market.dsc.add_transfer_hook(
            reenter_with(engine, "redeem_collateral", ("alice", "WETH", ONE_WETH), seen)
        )
        before = capture_state(funded_market)

        with pytest.raises(Reentrant):
            engine.mint_dsc("alice", 1000 * PRECISION)

        assert len(seen) == 1
        assert capture_state(funded_market) == before

    def test_callback_during_liquidation(self, indebted_market):
        engine = indebted_market.engine
        indebted_market.set_weth_price(1800)
        seen = []
        indebted_market.dsc.add_transfer_hook(
            reenter_with(engine, "burn_dsc", ("bob", PRECISION), seen)
        )
        before = capture_state(indebted_market)

        with pytest.raises(Reentrant):
            engine.liquidate("bob", "alice", "WETH", 500 * PRECISION)

        assert capture_state(indebted_market) == before

    def test_guard_released_after_failure(self, funded_market):
        engine = funded_market.engine
        funded_market.weth.add_transfer_hook(
            reenter_with(engine, "mint_dsc", ("alice", 1), [])
        )
        with pytest.raises(Reentrant):
            engine.deposit_collateral("alice", "WETH", ONE_WETH)

        funded_market.weth.transfer_hooks.clear()
        engine.deposit_collateral("alice", "WETH", ONE_WETH)
        assert engine.get_collateral_balance_of_user("alice", "WETH") == ONE_WETH

    @pytest.mark.parametrize("query,args", GUARDED_QUERIES)
    def test_position_queries_are_refused_during_an_operation(self, funded_market, query, args):
        engine = funded_market.engine
        seen = []
        funded_market.weth.add_transfer_hook(reenter_with(engine, query, args, seen))
        before = capture_state(funded_market)

        with pytest.raises(Reentrant):
            engine.deposit_collateral("alice", "WETH", ONE_WETH)

        assert len(seen) == 1
        assert capture_state(funded_market) == before

    def test_parameters_and_prices_stay_readable(self, funded_market):
        engine = funded_market.engine
        observed = []
        funded_market.weth.add_transfer_hook(
            lambda s, r, a: observed.append(
                (engine.get_liquidation_threshold(), engine.get_value_in_usd("WETH", ONE_WETH))
            )
        )
        engine.deposit_collateral("alice", "WETH", ONE_WETH)
        assert observed == [(50, 2000 * PRECISION)]

    def test_queries_see_the_settled_operation(self, funded_market):
        engine = funded_market.engine
        engine.deposit_collateral("alice", "WETH", ONE_WETH)
        assert engine.get_collateral_balance_of_user("alice", "WETH") == ONE_WETH
        assert engine.list_accounts() == ["alice"]
