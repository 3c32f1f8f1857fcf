"""
engine.py - The DSC engine orchestrator

DSCEngine is the only component that mutates positions. It composes the
collateral and debt ledgers, the valuation service, the risk engine and the
liquidation engine behind a small set of public operations.

Key responsibilities:
    - Every mutating operation is atomic: ledgers, the event log and every
      Journaled collaborator are snapshotted on entry and restored if anything
      raises, so a failed call leaves no trace
    - Every mutating operation is non-reentrant: a collaborator calling back
      into the engine mid-operation gets Reentrant, including for queries
      that read positions
    - Ledger effects and checks come before any collaborator call, so a
      rejected operation never moves tokens, journaled or not
    - The solvency invariant is checked after each mint and after each
      redemption by an indebted account
    - Every applied effect is recorded in event_log
"""

from __future__ import annotations
from contextlib import contextmanager
from functools import wraps
from datetime import datetime
from types import MappingProxyType
from typing import Dict, List, Optional, Sequence, Iterable, Any, Tuple, Iterator

from .core import (
    # Types
    CollateralAsset, EngineConfig, EngineEvent, EventType, AccountInformation,
    AssetToken, PriceOracle, StablecoinLedger, Journaled,
    # Constants
    ENGINE_ACCOUNT, PRECISION, DEFAULT_TOKEN_DECIMALS,
    # Exceptions
    ConfigurationMismatch, AssetNotAllowed,
    OracleUnavailable, InvalidPrice, StalePrice,
    TransferFailed, MintFailed, BurnFailed, Reentrant,
    # Helpers
    to_decimal,
)
from .liquidation import LiquidationEngine, LiquidationPlan
from .positions import CollateralLedger, DebtLedger
from .pricing_source import OracleAdapter
from .risk import RiskEngine, RiskSnapshot, calculate_health_factor
from .valuation import ValuationService


def _settled(query):
    """Refuse a position query while an operation is half applied."""

    @wraps(query)
    def guarded(self, *args, **kwargs):
        if self._in_progress:
            raise Reentrant(f"{query.__name__} called while an operation is in progress")
        return query(self, *args, **kwargs)

    return guarded


class DSCEngine:
    """
    Collateralized stablecoin engine.

    Users deposit approved collateral, mint DSC against it and must keep their
    health factor at or above the minimum. Accounts that fall below it can be
    liquidated by anyone holding DSC.

    The first argument of every mutating operation is the acting account.

    Thread Safety:
        Not thread-safe. Each thread should drive its own engine.

    Example:
        weth = Token("WETH")
        oracle = StaticPriceOracle({"WETH": 2000_00000000})
        dsc = Stablecoin()
        engine = DSCEngine([weth], [oracle], dsc)
        dsc.transfer_ownership(engine.address)

        weth.mint_to("alice", 10**18)
        engine.deposit_collateral_and_mint_dsc("alice", "WETH", 10**18, 1000 * 10**18)
        engine.get_health_factor("alice")  # 10**18
    """

    def __init__(
        self,
        collateral_tokens: Sequence[AssetToken],
        price_oracles: Sequence[PriceOracle],
        dsc: StablecoinLedger,
        config: Optional[EngineConfig] = None,
        address: str = ENGINE_ACCOUNT,
        initial_time: Optional[datetime] = None,
        disabled_assets: Iterable[str] = (),
        verbose: bool = False,
    ):
        """
        Create an engine.

        Args:
            collateral_tokens: Accepted collateral assets; the asset id is token.symbol
            price_oracles: Oracle for each token, in the same order
            dsc: Stablecoin ledger; the engine must own it before minting
            config: Risk parameters (default: module constants)
            address: Account under which the engine custodies collateral
            initial_time: Starting logical time (default: 1970-01-01)
            disabled_assets: Registered asset ids that refuse new deposits
            verbose: Print one line per applied or rejected operation

        Raises:
            ConfigurationMismatch: lists differ in length, are empty, or repeat an asset id
        """
        collateral_tokens = list(collateral_tokens)
        price_oracles = list(price_oracles)
        if len(collateral_tokens) != len(price_oracles):
            raise ConfigurationMismatch(
                f"{len(collateral_tokens)} collateral tokens but {len(price_oracles)} price oracles"
            )
        if not collateral_tokens:
            raise ConfigurationMismatch("At least one collateral asset is required")

        disabled = set(disabled_assets)
        registry: Dict[str, CollateralAsset] = {}
        for token, oracle in zip(collateral_tokens, price_oracles):
            asset_id = token.symbol
            if asset_id in registry:
                raise ConfigurationMismatch(f"Collateral asset {asset_id} listed twice")
            registry[asset_id] = CollateralAsset(
                asset_id=asset_id,
                oracle=oracle,
                token=token,
                decimals=getattr(token, "decimals", DEFAULT_TOKEN_DECIMALS),
                enabled=asset_id not in disabled,
            )
        unknown = disabled - set(registry)
        if unknown:
            raise ConfigurationMismatch(f"Cannot disable unregistered assets: {sorted(unknown)}")

        self.config = config or EngineConfig()
        self.address = address
        self.dsc = dsc
        self.verbose = verbose
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self._registry = MappingProxyType(registry)

        self.collateral = CollateralLedger(self._registry)
        self.debts = DebtLedger()
        self.adapter = OracleAdapter(
            {asset_id: entry.oracle for asset_id, entry in registry.items()},
            clock=lambda: self._current_time,
            max_quote_age=self.config.max_quote_age,
        )
        self.valuation = ValuationService(self._registry, self.adapter, self.collateral)
        self.risk = RiskEngine(self.config, self.valuation, self.debts)
        self.liquidations = LiquidationEngine(
            self.config, self.valuation, self.risk, self.collateral, self.debts
        )

        self.event_log: List[EngineEvent] = []
        self._next_sequence: int = 0
        self._in_progress = False

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the engine."""
        return self._current_time

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the engine's logical clock.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # ATOMIC BOUNDARY
    # ========================================================================

    def _journaled(self) -> List[Journaled]:
        """Collaborators that can be restored, each listed once."""
        seen = set()
        found = []
        for candidate in [entry.token for entry in self._registry.values()] + [self.dsc]:
            if id(candidate) in seen or not isinstance(candidate, Journaled):
                continue
            seen.add(id(candidate))
            found.append(candidate)
        return found

    def _take_snapshot(self) -> Dict[str, Any]:
        return {
            'collateral': self.collateral.snapshot(),
            'debts': self.debts.snapshot(),
            'events': len(self.event_log),
            'sequence': self._next_sequence,
            'collaborators': [(c, c.snapshot()) for c in self._journaled()],
        }

    def _restore_snapshot(self, journal: Dict[str, Any]) -> None:
        self.collateral.restore(journal['collateral'])
        self.debts.restore(journal['debts'])
        del self.event_log[journal['events']:]
        self._next_sequence = journal['sequence']
        for collaborator, state in journal['collaborators']:
            collaborator.restore(state)

    @contextmanager
    def _operation(self, name: str, account: str) -> Iterator[None]:
        """
        Run one public operation: non-reentrant, all effects or none.

        Raises:
            Reentrant: another operation on this engine is in progress
        """
        if self._in_progress:
            raise Reentrant(f"{name} by {account} while another operation is in progress")
        self._in_progress = True
        journal = self._take_snapshot()
        try:
            yield
        except Exception as exc:
            self._restore_snapshot(journal)
            if self.verbose:
                print(f"✗ REJECTED: {name} by {account}: {type(exc).__name__}: {exc}")
            raise
        else:
            if self.verbose:
                print(f"✓ APPLIED: {name} by {account}")
        finally:
            self._in_progress = False

    def _emit(self, event_type: EventType, account: str, amount: int, **details) -> EngineEvent:
        event = EngineEvent(
            event_type=event_type,
            account=account,
            amount=amount,
            timestamp=self._current_time,
            sequence_number=self._next_sequence,
            **details,
        )
        self._next_sequence += 1
        self.event_log.append(event)
        if self.verbose:
            print(f"   {event!r}")
        return event

    # ========================================================================
    # INTERNAL EFFECTS (called only inside _operation)
    # ========================================================================

    def _entry(self, asset_id: str) -> CollateralAsset:
        entry = self._registry.get(asset_id)
        if entry is None:
            raise AssetNotAllowed(f"Asset {asset_id} is not registered")
        return entry

    # Operations call _record_* and every check before any _pull/_send/_issue/_retire.

    def _record_deposit(self, account: str, asset_id: str, amount: int) -> None:
        self.collateral.credit(account, asset_id, amount)
        self._emit(EventType.COLLATERAL_DEPOSITED, account, amount, asset_id=asset_id)

    def _record_redemption(self, asset_id: str, amount: int, source: str, recipient: str) -> None:
        self._entry(asset_id)
        self.collateral.debit(source, asset_id, amount)
        self._emit(
            EventType.COLLATERAL_REDEEMED, source, amount,
            asset_id=asset_id, counterparty=recipient,
        )

    def _record_mint(self, account: str, amount: int) -> None:
        self.debts.mint(account, amount)
        self._emit(EventType.DSC_MINTED, account, amount)

    def _record_burn(self, on_behalf_of: str, payer: str, amount: int) -> None:
        self.debts.burn(on_behalf_of, amount)
        self._emit(EventType.DSC_BURNED, on_behalf_of, amount, counterparty=payer)

    def _require_solvent(self, account: str) -> None:
        if self.debts.debt(account) > 0:
            self.risk.assert_solvent(account)

    def _pull_collateral(self, account: str, asset_id: str, amount: int) -> None:
        if not self._entry(asset_id).token.transfer_from(account, self.address, amount):
            raise TransferFailed(f"{asset_id} transfer from {account} failed")

    def _send_collateral(self, asset_id: str, amount: int, recipient: str) -> None:
        if not self._entry(asset_id).token.transfer(self.address, recipient, amount):
            raise TransferFailed(f"{asset_id} transfer to {recipient} failed")

    def _issue_dsc(self, account: str, amount: int) -> None:
        if not self.dsc.mint(account, amount, caller=self.address):
            raise MintFailed(f"Stablecoin refused to mint {amount} to {account}")

    def _retire_dsc(self, payer: str, amount: int) -> None:
        if not self.dsc.transfer_from(payer, self.address, amount):
            raise TransferFailed(f"DSC transfer from {payer} failed")
        if not self.dsc.burn(amount, caller=self.address):
            raise BurnFailed(f"Stablecoin refused to burn {amount}")

    # ========================================================================
    # PUBLIC OPERATIONS (mutating)
    # ========================================================================

    def deposit_collateral(self, account: str, asset_id: str, amount: int) -> None:
        """
        Deposit collateral into custody.

        Raises:
            InvalidAmount, AssetNotAllowed, TransferFailed, InsufficientBalance
        """
        with self._operation("deposit_collateral", account):
            self._record_deposit(account, asset_id, amount)
            self._pull_collateral(account, asset_id, amount)

    def deposit_collateral_and_mint_dsc(
        self,
        account: str,
        asset_id: str,
        collateral_amount: int,
        mint_amount: int,
    ) -> None:
        """Deposit then mint as one unit; a failed mint also undoes the deposit."""
        with self._operation("deposit_collateral_and_mint_dsc", account):
            self._record_deposit(account, asset_id, collateral_amount)
            self._record_mint(account, mint_amount)
            self.risk.assert_solvent(account)
            self._pull_collateral(account, asset_id, collateral_amount)
            self._issue_dsc(account, mint_amount)

    def redeem_collateral(self, account: str, asset_id: str, amount: int) -> None:
        """
        Withdraw collateral from custody back to the account.

        Raises:
            InvalidAmount, InsufficientCollateral, TransferFailed,
            HealthFactorBroken (account has debt and would end undercollateralized)
        """
        with self._operation("redeem_collateral", account):
            self._record_redemption(asset_id, amount, account, account)
            self._require_solvent(account)
            self._send_collateral(asset_id, amount, account)

    def redeem_collateral_for_dsc(
        self,
        account: str,
        asset_id: str,
        amount: int,
        burn_amount: int,
    ) -> None:
        """Burn DSC then redeem collateral as one unit."""
        with self._operation("redeem_collateral_for_dsc", account):
            self._record_burn(account, account, burn_amount)
            self._record_redemption(asset_id, amount, account, account)
            self._require_solvent(account)
            self._retire_dsc(account, burn_amount)
            self._send_collateral(asset_id, amount, account)

    def mint_dsc(self, account: str, amount: int) -> None:
        """
        Mint DSC against deposited collateral.

        Raises:
            InvalidAmount, HealthFactorBroken, MintFailed, NotOwner
        """
        with self._operation("mint_dsc", account):
            self._record_mint(account, amount)
            self.risk.assert_solvent(account)
            self._issue_dsc(account, amount)

    def burn_dsc(self, account: str, amount: int) -> None:
        """
        Repay debt by burning the account's own DSC.

        Raises:
            InvalidAmount, InsufficientDebt, InsufficientBalance, TransferFailed, BurnFailed
        """
        with self._operation("burn_dsc", account):
            self._record_burn(account, account, amount)
            self._retire_dsc(account, amount)

    def liquidate(
        self,
        liquidator: str,
        target: str,
        asset_id: str,
        debt_to_cover: int,
    ) -> LiquidationPlan:
        """
        Repay debt_to_cover of target's debt with the liquidator's DSC and
        receive the equivalent asset_id collateral plus the liquidation bonus.

        Both postconditions are checked against the ledgers before any DSC or
        collateral moves.

        Returns:
            The applied LiquidationPlan

        Raises:
            HealthFactorOk: target is solvent
            InvalidAmount, InsufficientDebt, InsufficientCollateral
            HealthFactorNotImproved: target would not end strictly healthier
            HealthFactorBroken: liquidator would end undercollateralized
        """
        with self._operation("liquidate", liquidator):
            plan = self.liquidations.plan(liquidator, target, asset_id, debt_to_cover)
            ending = self.liquidations.execute(
                plan,
                record=self._record_liquidation,
                settle=self._settle_liquidation,
            )
            self._emit(
                EventType.LIQUIDATED, target, debt_to_cover,
                asset_id=asset_id,
                counterparty=liquidator,
                metadata={
                    'base_collateral': plan.base_collateral,
                    'bonus_collateral': plan.bonus_collateral,
                    'starting_health_factor': plan.starting_health_factor,
                    'ending_health_factor': ending,
                },
            )
            return plan

    def _record_liquidation(self, plan: LiquidationPlan) -> None:
        self._record_redemption(plan.asset_id, plan.total_collateral, plan.target, plan.liquidator)
        self._record_burn(plan.target, plan.liquidator, plan.debt_to_cover)

    def _settle_liquidation(self, plan: LiquidationPlan) -> None:
        self._retire_dsc(plan.liquidator, plan.debt_to_cover)
        self._send_collateral(plan.asset_id, plan.total_collateral, plan.liquidator)

    # ========================================================================
    # QUERIES (read-only)
    # ========================================================================

    @_settled
    def get_health_factor(self, account: str) -> int:
        return self.risk.health_factor(account)

    @_settled
    def get_account_collateral_value(self, account: str) -> int:
        return self.valuation.total_collateral_value(account)

    def get_value_in_usd(self, asset_id: str, amount: int) -> int:
        return self.valuation.value_of(asset_id, amount)

    def get_token_amount_from_usd(self, asset_id: str, usd_amount: int) -> int:
        return self.valuation.token_amount_from_usd(asset_id, usd_amount)

    @_settled
    def get_account_information(self, account: str) -> AccountInformation:
        return AccountInformation(
            total_dsc_minted=self.debts.debt(account),
            collateral_value_in_usd=self.valuation.total_collateral_value(account),
        )

    @_settled
    def get_collateral_balance_of_user(self, account: str, asset_id: str) -> int:
        return self.collateral.position(account, asset_id)

    @_settled
    def get_dsc_minted(self, account: str) -> int:
        return self.debts.debt(account)

    def get_collateral_tokens(self) -> Tuple[str, ...]:
        return tuple(self._registry)

    def get_collateral_token_price_feed(self, asset_id: str) -> PriceOracle:
        return self._entry(asset_id).oracle

    def get_collateral_asset(self, asset_id: str) -> CollateralAsset:
        return self._entry(asset_id)

    def get_min_health_factor(self) -> int:
        return self.config.min_health_factor

    def get_liquidation_threshold(self) -> int:
        return self.config.liquidation_threshold

    def get_liquidation_bonus(self) -> int:
        return self.config.liquidation_bonus

    def get_precision(self) -> int:
        return PRECISION

    def calculate_health_factor(self, total_dsc_minted: int, collateral_value_in_usd: int) -> int:
        """Health factor for hypothetical debt and collateral value."""
        return calculate_health_factor(
            total_dsc_minted, collateral_value_in_usd, self.config.liquidation_threshold
        )

    @_settled
    def get_risk_snapshot(self, account: str) -> RiskSnapshot:
        return self.risk.status(account)

    @_settled
    def get_max_mintable(self, account: str) -> int:
        """Additional DSC the account can mint right now."""
        return self.risk.max_mintable(account)

    @_settled
    def get_max_redeemable(self, account: str, asset_id: str) -> int:
        """
        Largest amount of asset_id the account can redeem right now.

        The collateral that must stay locked is rounded up, so redeeming the
        returned amount never breaks the minimum health factor.
        """
        held = self.collateral.position(account, asset_id)
        if held == 0 or self.debts.debt(account) == 0:
            return held
        required = self.risk.required_collateral_value(account)
        other = self.valuation.total_collateral_value(account) - self.valuation.value_of(asset_id, held)
        shortfall = required - other
        if shortfall <= 0:
            return held
        locked = self.valuation.token_amount_from_usd(asset_id, shortfall, round_up=True)
        return max(0, held - locked)

    @_settled
    def preview_liquidation(
        self,
        liquidator: str,
        target: str,
        asset_id: str,
        debt_to_cover: int,
    ) -> LiquidationPlan:
        """Plan a liquidation without applying it."""
        return self.liquidations.plan(liquidator, target, asset_id, debt_to_cover)

    @_settled
    def list_accounts(self) -> List[str]:
        """Every account that holds collateral or debt."""
        return sorted(set(self.collateral.accounts()) | set(self.debts.debtors()))

    @_settled
    def verify_invariants(self) -> Dict[str, Any]:
        """
        Audit the engine's books against its collaborators.

        Checks:
        1. Custodial balance of each asset >= recorded collateral for that asset
        2. Recorded debt == DSC supply (when the stablecoin reports total_supply)
        3. No collateral position is negative

        Accounts that fell below the minimum health factor because prices moved
        are listed under 'undercollateralized'; they are liquidatable, not a
        bookkeeping violation. Debtors whose collateral cannot be priced (stale,
        invalid or missing quote) are listed under 'unpriced' instead.

        Returns:
            Dict with keys:
            - 'valid': bool - True if all bookkeeping checks hold
            - 'supplies': Dict[str, int] - Recorded collateral per asset
            - 'total_debt': int - Recorded DSC debt
            - 'discrepancies': List[Dict] - Details of any violation
            - 'undercollateralized': List[str] - Accounts eligible for liquidation
            - 'unpriced': Dict[str, str] - Debtor -> oracle error that hid its health factor
        """
        supplies = {}
        discrepancies = []

        for asset_id, entry in self._registry.items():
            recorded = self.collateral.total(asset_id)
            supplies[asset_id] = recorded
            custodial = entry.token.balance_of(self.address)
            if custodial < recorded:
                discrepancies.append({
                    'asset': asset_id,
                    'expected': recorded,
                    'actual': custodial,
                    'difference': recorded - custodial,
                })

        total_debt = self.debts.total_debt()
        total_supply = getattr(self.dsc, "total_supply", None)
        if callable(total_supply) and total_supply() != total_debt:
            discrepancies.append({
                'asset': 'DSC',
                'expected': total_debt,
                'actual': total_supply(),
                'difference': total_debt - total_supply(),
            })

        for account in self.collateral.accounts():
            for asset_id, amount in self.collateral.positions(account).items():
                if amount < 0:
                    discrepancies.append({
                        'account': account, 'asset': asset_id, 'actual': amount,
                        'error': 'negative collateral position',
                    })

        undercollateralized = []
        unpriced = {}
        for account in self.debts.debtors():
            try:
                if self.risk.is_liquidatable(account):
                    undercollateralized.append(account)
            except (OracleUnavailable, InvalidPrice, StalePrice) as exc:
                unpriced[account] = f"{type(exc).__name__}: {exc}"

        return {
            'valid': len(discrepancies) == 0,
            'supplies': supplies,
            'total_debt': total_debt,
            'discrepancies': discrepancies,
            'undercollateralized': undercollateralized,
            'unpriced': unpriced,
        }

    def __repr__(self):
        return (
            f"DSCEngine({len(self._registry)} assets, "
            f"{len(self.debts.debtors())} debtors, "
            f"debt={to_decimal(self.debts.total_debt())} DSC)"
        )
