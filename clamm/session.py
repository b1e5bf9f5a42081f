"""Settlement session: per-currency running deltas and deferred transfers.

All pool operations happen inside a session opened by
``PoolManager.lock``. Each operation's BalanceDelta is added to the
session's running delta for the two currencies involved. The caller then
pays (``settle``) and withdraws (``take``) until every delta is back to
zero. Withdrawals are queued and executed by a TokenTransfer only after
the session closes cleanly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

import structlog

from clamm.errors import CurrencyNotSettled
from clamm.models.types import normalize_address

logger = structlog.get_logger()


class TokenTransfer(Protocol):
    """Moves currency out of the engine to a recipient."""

    def transfer(self, currency: str, recipient: str, amount: int) -> None: ...


@dataclass(frozen=True)
class Transfer:
    """A single outgoing payment."""

    currency: str
    recipient: str
    amount: int


class InMemoryTokenTransfer:
    """TokenTransfer that records payouts and per-recipient balances."""

    def __init__(self) -> None:
        self.transfers: list[Transfer] = []
        self.balances: dict[tuple[str, str], int] = {}

    def transfer(self, currency: str, recipient: str, amount: int) -> None:
        currency = normalize_address(currency)
        recipient = normalize_address(recipient)
        self.transfers.append(Transfer(currency, recipient, amount))
        key = (currency, recipient)
        self.balances[key] = self.balances.get(key, 0) + amount

    def balance_of(self, currency: str, recipient: str) -> int:
        return self.balances.get((normalize_address(currency), normalize_address(recipient)), 0)


@dataclass
class Session:
    """State of the single open session.

    ``deltas`` holds the caller's running balance per currency: negative
    means the caller still owes the engine, positive means the engine
    still owes the caller.
    """

    locker: str
    deltas: dict[str, int] = field(default_factory=dict)
    pending_transfers: list[Transfer] = field(default_factory=list)

    def account(self, currency: str, amount: int) -> None:
        """Add ``amount`` to the running delta of ``currency``."""
        if amount == 0:
            return
        currency = normalize_address(currency)
        updated = self.deltas.get(currency, 0) + amount
        if updated:
            self.deltas[currency] = updated
        else:
            self.deltas.pop(currency, None)

    def delta_of(self, currency: str) -> int:
        return self.deltas.get(normalize_address(currency), 0)

    @property
    def nonzero_delta_count(self) -> int:
        return len(self.deltas)

    def queue_transfer(self, currency: str, recipient: str, amount: int) -> None:
        self.pending_transfers.append(
            Transfer(normalize_address(currency), normalize_address(recipient), amount)
        )

    def check_settled(self) -> None:
        """Raise if any currency still carries a nonzero delta.

        Raises:
            CurrencyNotSettled: Naming the first unsettled currency
        """
        if self.deltas:
            currency, amount = next(iter(self.deltas.items()))
            logger.info(
                "session_not_settled",
                locker=self.locker,
                unsettled=len(self.deltas),
                currency=currency,
                delta=amount,
            )
            raise CurrencyNotSettled(f"Currency {currency} has unsettled delta {amount}")


__all__ = ["TokenTransfer", "Transfer", "InMemoryTokenTransfer", "Session"]
