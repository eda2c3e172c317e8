"""Simulated ledger for local runs and tests.

Holds accounts, trust lines and submitted transactions in process memory.
Transactions start unvalidated; call :meth:`InMemoryLedger.validate` (or
construct with ``auto_validate=True``) to close them with a result code.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from decimal import Decimal

from tokenops.core.errors import LedgerUnavailable
from tokenops.core.models import (
    AccountInfo,
    AccountLine,
    BalanceSheet,
    IssueParams,
    LedgerTransactionStatus,
    TrustlineParams,
    TrustlineResult,
)

from .currency import display_currency, normalize_currency

logger = logging.getLogger(__name__)


@dataclass
class _Tx:
    tx_hash: str
    kind: str
    validated: bool = False
    result: str | None = None
    ledger_index: int | None = None


@dataclass
class _Line:
    account: str
    peer: str
    currency: str
    limit: Decimal
    balance: Decimal = Decimal("0")
    authorized: bool = False
    frozen: bool = False


@dataclass
class _Account:
    address: str
    flags: int = 0
    balance: Decimal = Decimal("1000")
    sequence: int = 1
    lines: list[_Line] = field(default_factory=list)


class InMemoryLedger:
    """In-process ledger implementing :class:`ILedgerAdapter`.

    Parameters
    ----------
    issuer_address:
        Account used as the issuer for ``issue_token`` / ``create_trustline``.
    auto_validate:
        When ``True`` every submitted transaction is validated immediately
        with ``tesSUCCESS``.
    """

    def __init__(self, issuer_address: str = "rIssuer", *, auto_validate: bool = False) -> None:
        self._issuer = issuer_address
        self._auto_validate = auto_validate
        self._accounts: dict[str, _Account] = {}
        self._txs: dict[str, _Tx] = {}
        self._ledger_index = 1000
        self._available = True
        self.calls: list[str] = []

    @property
    def name(self) -> str:
        return "memory"

    # ------------------------------------------------------------------
    # Test controls
    # ------------------------------------------------------------------

    def add_account(self, address: str, *, flags: int = 0, balance: str = "1000") -> None:
        self._accounts[address] = _Account(address=address, flags=flags, balance=Decimal(balance))

    def set_flags(self, address: str, flags: int) -> None:
        self._accounts[address].flags = flags

    def add_transaction(self, tx_hash: str, *, validated: bool = False, result: str | None = None) -> None:
        """Register an externally submitted transaction."""
        self._txs[tx_hash] = _Tx(tx_hash=tx_hash, kind="external")
        if validated:
            self.validate(tx_hash, result or "tesSUCCESS")

    def validate(self, tx_hash: str, result: str = "tesSUCCESS") -> int:
        """Close *tx_hash* in the next ledger with *result*.  Returns the index."""
        self._ledger_index += 1
        tx = self._txs[tx_hash]
        tx.validated = True
        tx.result = result
        tx.ledger_index = self._ledger_index
        return self._ledger_index

    def set_available(self, available: bool) -> None:
        """Simulate the endpoint going down (every call raises)."""
        self._available = available

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_account_info(self, address: str) -> AccountInfo | None:
        self._enter("get_account_info")
        acct = self._accounts.get(address)
        if acct is None:
            return None
        return AccountInfo(
            address=acct.address,
            flags=acct.flags,
            balance=str(acct.balance),
            sequence=acct.sequence,
        )

    async def get_transaction(self, tx_id: str) -> LedgerTransactionStatus:
        self._enter("get_transaction")
        tx = self._txs.get(tx_id)
        if tx is None:
            return LedgerTransactionStatus(validated=False, message="txnNotFound")
        return LedgerTransactionStatus(
            validated=tx.validated,
            result=tx.result,
            ledger_index=tx.ledger_index,
        )

    async def get_account_lines(self, account: str, peer: str) -> list[AccountLine]:
        self._enter("get_account_lines")
        return [self._to_line(l) for l in self._lines(account) if l.peer == peer]

    async def get_balances(
        self,
        account: str,
        issuer: str | None = None,
        currency: str | None = None,
    ) -> BalanceSheet:
        self._enter("get_balances")
        acct = self._accounts.get(account)
        wanted = normalize_currency(currency) if currency else None
        lines = [
            self._to_line(l)
            for l in self._lines(account)
            if (issuer is None or l.peer == issuer)
            and (wanted is None or l.currency == wanted)
        ]
        return BalanceSheet(
            native_balance=str(acct.balance) if acct is not None else None,
            lines=lines,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def issue_token(self, params: IssueParams) -> str:
        self._enter("issue_token")
        currency = normalize_currency(params.currency_code)
        line = next(
            (
                l for l in self._lines(params.destination)
                if l.peer == self._issuer and l.currency == currency
            ),
            None,
        )
        if line is not None:
            line.balance += Decimal(params.amount)
        return self._submit("Payment", params.destination, params.amount)

    async def create_trustline(self, params: TrustlineParams) -> TrustlineResult:
        self._enter("create_trustline")
        currency = normalize_currency(params.currency_code)
        limit = Decimal(params.limit)
        holder = self._accounts.setdefault(
            params.holder_address, _Account(address=params.holder_address),
        )
        for line in holder.lines:
            if line.peer == self._issuer and line.currency == currency:
                if line.limit >= limit:
                    return TrustlineResult(already_existed=True)
                line.limit = limit
                break
        else:
            holder.lines.append(_Line(
                account=holder.address, peer=self._issuer, currency=currency, limit=limit,
            ))
        return TrustlineResult(tx_hash=self._submit("TrustSet", params.holder_address, params.limit))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _enter(self, call: str) -> None:
        self.calls.append(call)
        if not self._available:
            raise LedgerUnavailable(f"{call}: ledger unavailable")

    def _lines(self, account: str) -> list[_Line]:
        acct = self._accounts.get(account)
        return acct.lines if acct is not None else []

    def _submit(self, kind: str, *parts: str) -> str:
        seed = f"{kind}:{len(self._txs)}:{':'.join(parts)}"
        tx_hash = hashlib.sha256(seed.encode("utf-8")).hexdigest().upper()
        self._txs[tx_hash] = _Tx(tx_hash=tx_hash, kind=kind)
        if self._auto_validate:
            self.validate(tx_hash)
        logger.debug("Simulated %s submitted: %s", kind, tx_hash)
        return tx_hash

    @staticmethod
    def _to_line(line: _Line) -> AccountLine:
        return AccountLine(
            currency=display_currency(line.currency),
            currency_hex=line.currency if len(line.currency) == 40 else None,
            issuer=line.peer,
            balance=str(line.balance),
            limit=str(line.limit),
            frozen=line.frozen,
            authorized=line.authorized,
        )
