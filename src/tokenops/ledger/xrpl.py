"""XRPL adapter over the rippled JSON-RPC API.

Talks to a rippled (or Clio) HTTP endpoint with ``httpx``.  Reads use the
``validated`` ledger.  Writes use ``submit`` in sign-and-submit mode, so the
endpoint must be one the operator trusts with the signing secret (a local
node, typically).  Submission only reports the provisional engine result;
finality is established later by the issuance watcher via ``tx``.

Usage::

    async with XrplJsonRpcAdapter(settings.ledger) as ledger:
        info = await ledger.get_account_info("rIssuer...")
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from decimal import Decimal
from typing import Any

import httpx

from tokenops.core.config import LedgerConfig
from tokenops.core.errors import ConfigError, LedgerRequestError, LedgerUnavailable
from tokenops.core.models import (
    AccountInfo,
    AccountLine,
    BalanceSheet,
    IssueParams,
    LedgerTransactionStatus,
    TrustlineParams,
    TrustlineResult,
)

from .currency import (
    currency_to_hex,
    display_currency,
    is_hex_currency,
    normalize_currency,
)

logger = logging.getLogger(__name__)

_DROPS_PER_XRP = Decimal(1_000_000)

# Provisional results that mean "accepted for consensus"
_ACCEPTED_PRELIM = frozenset({"tesSUCCESS", "terQUEUED"})

_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


def drops_to_xrp(drops: str | int) -> str:
    """Convert a drops amount to a whole-XRP decimal string."""
    value = Decimal(str(drops)) / _DROPS_PER_XRP
    return format(value.normalize(), "f")


def _line_from_rpc(raw: dict[str, Any]) -> AccountLine:
    currency = raw.get("currency", "")
    return AccountLine(
        currency=display_currency(currency),
        currency_hex=currency if is_hex_currency(currency) else currency_to_hex(currency),
        issuer=raw.get("account", ""),
        balance=str(raw.get("balance", "0")),
        limit=str(raw.get("limit", "0")),
        frozen=bool(raw.get("freeze") or raw.get("freeze_peer")),
        no_ripple=bool(raw.get("no_ripple")),
        authorized=bool(raw.get("authorized") or raw.get("peer_authorized")),
    )


class XrplJsonRpcAdapter:
    """Ledger adapter for the XRP Ledger.

    Parameters
    ----------
    config:
        Endpoint, timeout, retry and issuer settings.
    client:
        Pre-built ``httpx.AsyncClient``.  When omitted the adapter creates
        (and owns) one on :meth:`open`.
    """

    def __init__(
        self,
        config: LedgerConfig,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._owns_client = client is None

    @property
    def name(self) -> str:
        return "xrpl"

    # -- Lifecycle -----------------------------------------------------------

    async def open(self) -> None:
        """Create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.timeout_seconds),
            )
            self._owns_client = True

    async def close(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> XrplJsonRpcAdapter:
        await self.open()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # -- Reads ---------------------------------------------------------------

    async def get_account_info(self, address: str) -> AccountInfo | None:
        try:
            result = await self._rpc(
                "account_info",
                {"account": address, "ledger_index": "validated"},
            )
        except LedgerRequestError as exc:
            if exc.error == "actNotFound":
                return None
            raise

        data = result.get("account_data", {})
        return AccountInfo(
            address=data.get("Account", address),
            flags=int(data.get("Flags", 0)),
            balance=drops_to_xrp(data["Balance"]) if "Balance" in data else None,
            sequence=data.get("Sequence"),
            raw=data,
        )

    async def get_transaction(self, tx_id: str) -> LedgerTransactionStatus:
        try:
            result = await self._rpc("tx", {"transaction": tx_id})
        except LedgerRequestError as exc:
            if exc.error == "txnNotFound":
                return LedgerTransactionStatus(validated=False, message=exc.error)
            raise

        meta = result.get("meta")
        engine_result = meta.get("TransactionResult") if isinstance(meta, dict) else None
        return LedgerTransactionStatus(
            validated=bool(result.get("validated")),
            result=engine_result,
            ledger_index=result.get("ledger_index"),
        )

    async def get_account_lines(self, account: str, peer: str) -> list[AccountLine]:
        lines = await self._account_lines(account, peer=peer)
        return [_line_from_rpc(line) for line in lines]

    async def get_balances(
        self,
        account: str,
        issuer: str | None = None,
        currency: str | None = None,
    ) -> BalanceSheet:
        info = await self.get_account_info(account)
        raw_lines = await self._account_lines(account, peer=issuer)

        wanted: str | None = None
        if currency:
            up = currency.upper()
            wanted = up if len(up) == 3 or is_hex_currency(up) else currency_to_hex(up)

        lines = [
            _line_from_rpc(line)
            for line in raw_lines
            if (issuer is None or line.get("account") == issuer)
            and (wanted is None or line.get("currency", "").upper() == wanted)
        ]
        return BalanceSheet(
            native_balance=info.balance if info is not None else None,
            lines=lines,
        )

    # -- Writes --------------------------------------------------------------

    async def issue_token(self, params: IssueParams) -> str:
        issuer = self._config.issuer_address
        seed = self._config.issuer_seed
        if not issuer or not seed:
            raise ConfigError(
                f"Issuer address and {self._config.issuer_seed_env} are required to issue"
            )

        currency = normalize_currency(params.currency_code)
        tx_json: dict[str, Any] = {
            "TransactionType": "Payment",
            "Account": issuer,
            "Destination": params.destination,
            "Amount": {"currency": currency, "value": params.amount, "issuer": issuer},
        }
        if params.metadata:
            memo = json.dumps(params.metadata, separators=(",", ":"), sort_keys=True)
            tx_json["Memos"] = [{"Memo": {"MemoData": memo.encode("utf-8").hex().upper()}}]

        tx_hash = await self._sign_and_submit(tx_json, seed)
        logger.info(
            "Submitted issuance payment %s: %s %s -> %s",
            tx_hash, params.amount, params.currency_code, params.destination,
        )
        return tx_hash

    async def create_trustline(self, params: TrustlineParams) -> TrustlineResult:
        issuer = self._config.issuer_address
        if not issuer:
            raise ConfigError("ledger.issuer_address is required to create trust lines")

        currency = normalize_currency(params.currency_code)
        for line in await self._account_lines(params.holder_address, peer=issuer):
            if line.get("currency") == currency and Decimal(str(line.get("limit", "0"))) >= Decimal(params.limit):
                return TrustlineResult(already_existed=True)

        tx_json = {
            "TransactionType": "TrustSet",
            "Account": params.holder_address,
            "LimitAmount": {"currency": currency, "issuer": issuer, "value": params.limit},
        }
        tx_hash = await self._sign_and_submit(tx_json, params.holder_seed)
        logger.info("Submitted TrustSet %s for %s", tx_hash, params.holder_address)
        return TrustlineResult(tx_hash=tx_hash, already_existed=False)

    # -- Internals -----------------------------------------------------------

    async def _account_lines(self, account: str, *, peer: str | None = None) -> list[dict]:
        params: dict[str, Any] = {"account": account, "ledger_index": "validated"}
        if peer:
            params["peer"] = peer

        lines: list[dict] = []
        while True:
            result = await self._rpc("account_lines", params)
            lines.extend(result.get("lines", []))
            marker = result.get("marker")
            if not marker:
                return lines
            params = {**params, "marker": marker}

    async def _sign_and_submit(self, tx_json: dict[str, Any], secret: str) -> str:
        result = await self._rpc(
            "submit",
            {"tx_json": tx_json, "secret": secret, "fee_mult_max": 1000},
            retry=False,
        )
        engine_result = result.get("engine_result", "")
        if engine_result not in _ACCEPTED_PRELIM:
            raise LedgerRequestError(engine_result or "submit_failed", result.get("engine_result_message", ""))
        return result.get("tx_json", {}).get("hash", "")

    async def _rpc(
        self,
        method: str,
        params: dict[str, Any],
        *,
        retry: bool = True,
    ) -> dict[str, Any]:
        """POST one JSON-RPC call, retrying transport errors with backoff.

        Retries on:
        - Network / timeout errors
        - 429 and 5xx responses

        Error payloads from rippled raise :class:`LedgerRequestError`
        immediately.  Submissions are never retried, since a resend after an
        ambiguous failure could double-spend a sequence number.
        """
        if self._client is None:
            await self.open()
        assert self._client is not None

        attempts = self._config.max_retries if retry else 1
        body = {"method": method, "params": [params]}

        for attempt in range(1, attempts + 1):
            try:
                resp = await self._client.post(self._config.endpoint, json=body)
            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                if attempt >= attempts:
                    raise LedgerUnavailable(
                        f"{method} failed after {attempt} attempt(s): {exc}"
                    ) from exc
                wait = self._backoff_delay(attempt)
                logger.warning(
                    "XRPL %s network error (attempt %d/%d), retrying in %.2fs: %s",
                    method, attempt, attempts, wait, exc,
                )
                await asyncio.sleep(wait)
                continue

            if resp.status_code in _RETRYABLE_STATUS:
                if attempt >= attempts:
                    raise LedgerUnavailable(
                        f"{method} failed with HTTP {resp.status_code} after {attempt} attempt(s)"
                    )
                wait = self._backoff_delay(attempt)
                logger.warning(
                    "XRPL %s HTTP %d (attempt %d/%d), retrying in %.2fs",
                    method, resp.status_code, attempt, attempts, wait,
                )
                await asyncio.sleep(wait)
                continue

            if resp.status_code != 200:
                raise LedgerRequestError(f"http_{resp.status_code}", resp.text[:200])

            try:
                result = resp.json().get("result", {})
            except ValueError as exc:
                raise LedgerRequestError("invalid_response", str(exc)) from exc

            if result.get("status") == "error" or "error" in result:
                raise LedgerRequestError(
                    str(result.get("error", "unknown")),
                    str(result.get("error_message", "")),
                )
            return result

        # Unreachable while attempts >= 1
        raise LedgerUnavailable(f"{method} failed")

    def _backoff_delay(self, attempt: int) -> float:
        """Exponential backoff with jitter."""
        base = self._config.retry_backoff_seconds * (2 ** (attempt - 1))
        return base + random.uniform(0, base * 0.25)
