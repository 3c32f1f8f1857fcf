"""
tokens.py - In-memory collateral tokens and the DSC stablecoin

Reference implementations of the engine's external collaborators. They are
balance books in the ERC20 style: integer balances per account, a total
supply, and transfers that return True on success. Callers are explicit
arguments since there is no transaction sender.

Both classes implement the Journaled protocol so that an engine can restore
them when an operation fails part-way through.
"""

from __future__ import annotations
from collections import defaultdict
from typing import Callable, Dict, List, Optional

from .core import (
    DEFAULT_TOKEN_DECIMALS,
    InvalidAmount, InsufficientBalance, NotOwner,
)


# Called after every balance change as hook(sender, recipient, amount).
TransferHook = Callable[[str, str, int], None]

# Stands for "no account" in mint/burn hooks.
ZERO_ACCOUNT = "0x0"


class Token:
    """
    Fungible token with integer balances.

    Example:
        weth = Token("WETH", "Wrapped Ether")
        weth.mint_to("alice", 10 * 10**18)
        weth.transfer("alice", "bob", 10**18)
    """

    def __init__(self, symbol: str, name: str = "", decimals: int = DEFAULT_TOKEN_DECIMALS):
        self.symbol = symbol
        self.name = name or symbol
        self.decimals = decimals
        self.balances: Dict[str, int] = defaultdict(int)
        self._total_supply = 0
        self.transfer_hooks: List[TransferHook] = []

    def balance_of(self, account: str) -> int:
        return self.balances.get(account, 0)

    def total_supply(self) -> int:
        return self._total_supply

    def add_transfer_hook(self, hook: TransferHook) -> None:
        """Register a callback run after each transfer, mint or burn."""
        self.transfer_hooks.append(hook)

    def _move(self, sender: str, recipient: str, amount: int) -> None:
        if amount < 0:
            raise InvalidAmount(f"{self.symbol} transfer amount cannot be negative: {amount}")
        held = self.balance_of(sender)
        if amount > held:
            raise InsufficientBalance(
                f"{sender} holds {held} {self.symbol}, cannot move {amount}"
            )
        self.balances[sender] = held - amount
        self.balances[recipient] += amount
        self._run_hooks(sender, recipient, amount)

    def _run_hooks(self, sender: str, recipient: str, amount: int) -> None:
        for hook in list(self.transfer_hooks):
            hook(sender, recipient, amount)

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """Move amount from sender to recipient; raises InsufficientBalance when short."""
        self._move(sender, recipient, amount)
        return True

    def transfer_from(self, sender: str, recipient: str, amount: int) -> bool:
        """Pull amount from sender into recipient on the recipient's behalf."""
        self._move(sender, recipient, amount)
        return True

    def mint_to(self, account: str, amount: int) -> None:
        """Create new tokens (faucet for tests and simulations)."""
        if amount <= 0:
            raise InvalidAmount(f"{self.symbol} mint amount must be positive: {amount}")
        self.balances[account] += amount
        self._total_supply += amount
        self._run_hooks(ZERO_ACCOUNT, account, amount)

    def snapshot(self):
        return dict(self.balances), self._total_supply

    def restore(self, snapshot) -> None:
        balances, total_supply = snapshot
        self.balances = defaultdict(int, balances)
        self._total_supply = total_supply

    def __repr__(self):
        holders = sum(1 for b in self.balances.values() if b)
        return f"Token({self.symbol}, supply={self._total_supply}, holders={holders})"


class Stablecoin(Token):
    """
    The DSC ledger: a token whose mint and burn belong to a single owner.

    The engine is the owner. burn() destroys tokens held by the caller, so the
    engine first pulls DSC from the payer with transfer_from().
    """

    def __init__(
        self,
        owner: Optional[str] = None,
        symbol: str = "DSC",
        name: str = "Decentralized Stable Coin",
    ):
        super().__init__(symbol, name, decimals=18)
        self.owner = owner

    def transfer_ownership(self, new_owner: str, caller: Optional[str] = None) -> None:
        """Hand mint/burn rights to new_owner; only the owner may do so once one is set."""
        if self.owner is not None and caller != self.owner:
            raise NotOwner(f"{caller} is not the owner of {self.symbol}")
        self.owner = new_owner

    def _only_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise NotOwner(f"{caller} is not the owner of {self.symbol}")

    def mint(self, to: str, amount: int, caller: str) -> bool:
        """Mint amount to `to`. Returns False for a zero amount."""
        self._only_owner(caller)
        if amount < 0:
            raise InvalidAmount(f"{self.symbol} mint amount cannot be negative: {amount}")
        if amount == 0:
            return False
        self.balances[to] += amount
        self._total_supply += amount
        self._run_hooks(ZERO_ACCOUNT, to, amount)
        return True

    def burn(self, amount: int, caller: str) -> bool:
        """Burn amount from the caller's own balance."""
        self._only_owner(caller)
        if amount <= 0:
            raise InvalidAmount(f"{self.symbol} burn amount must be positive: {amount}")
        held = self.balance_of(caller)
        if amount > held:
            raise InsufficientBalance(
                f"{caller} holds {held} {self.symbol}, cannot burn {amount}"
            )
        self.balances[caller] = held - amount
        self._total_supply -= amount
        self._run_hooks(caller, ZERO_ACCOUNT, amount)
        return True

    def mint_to(self, account: str, amount: int) -> None:
        raise NotOwner(f"{self.symbol} can only be minted by its owner")

    def snapshot(self):
        return dict(self.balances), self._total_supply, self.owner

    def restore(self, snapshot) -> None:
        balances, total_supply, owner = snapshot
        self.balances = defaultdict(int, balances)
        self._total_supply = total_supply
        self.owner = owner
