"""Tests for the XRPL JSON-RPC adapter, using httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from tokenops.core.config import LedgerConfig
from tokenops.core.errors import ConfigError, LedgerRequestError, LedgerUnavailable
from tokenops.core.models import IssueParams, TrustlineParams
from tokenops.ledger.currency import currency_to_hex
from tokenops.ledger.xrpl import XrplJsonRpcAdapter, drops_to_xrp

ENDPOINT = "http://rippled.test:5005"
ISSUER = "rIssuerXXXXXXXXXXXXXXXXXXXXXXXXXX"


def _config(**kwargs) -> LedgerConfig:
    data = {
        "endpoint": ENDPOINT,
        "max_retries": 3,
        "retry_backoff_seconds": 0,
        "issuer_address": ISSUER,
        "issuer_seed_env": "TOKENOPS_TEST_ISSUER_SEED",
    }
    data.update(kwargs)
    return LedgerConfig(**data)


def _adapter(handler, **config) -> tuple[XrplJsonRpcAdapter, list[dict]]:
    """Build an adapter whose HTTP calls go to *handler*; returns the call log."""
    calls: list[dict] = []

    def recorder(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        calls.append(body)
        return handler(body)

    client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    return XrplJsonRpcAdapter(_config(**config), client=client), calls


def _ok(result: dict) -> httpx.Response:
    return httpx.Response(200, json={"result": {"status": "success", **result}})


def _err(error: str, message: str = "") -> httpx.Response:
    return httpx.Response(200, json={"result": {
        "status": "error", "error": error, "error_message": message,
    }})


class TestHelpers:
    @pytest.mark.parametrize(
        "drops,xrp",
        [("1000000", "1"), ("1500000", "1.5"), (25, "0.000025"), ("1000000000", "1000")],
    )
    def test_drops_to_xrp(self, drops, xrp):
        assert drops_to_xrp(drops) == xrp


class TestAccountInfo:
    @pytest.mark.asyncio
    async def test_parses_flags_and_balance(self):
        adapter, calls = _adapter(lambda body: _ok({"account_data": {
            "Account": ISSUER, "Flags": 65536, "Balance": "25000000", "Sequence": 7,
        }}))

        info = await adapter.get_account_info(ISSUER)

        assert info.flags == 65536
        assert info.balance == "25"
        assert info.sequence == 7
        assert calls[0]["method"] == "account_info"
        assert calls[0]["params"] == [{"account": ISSUER, "ledger_index": "validated"}]

    @pytest.mark.asyncio
    async def test_account_not_found_returns_none(self):
        adapter, _ = _adapter(lambda body: _err("actNotFound", "Account not found."))
        assert await adapter.get_account_info("rNobody") is None

    @pytest.mark.asyncio
    async def test_other_rpc_error_raises(self):
        adapter, _ = _adapter(lambda body: _err("invalidParams", "bad address"))
        with pytest.raises(LedgerRequestError) as exc_info:
            await adapter.get_account_info("garbage")
        assert exc_info.value.error == "invalidParams"


class TestTransactions:
    @pytest.mark.asyncio
    async def test_validated_success(self):
        adapter, calls = _adapter(lambda body: _ok({
            "validated": True, "ledger_index": 88, "meta": {"TransactionResult": "tesSUCCESS"},
        }))
        status = await adapter.get_transaction("ABC")
        assert status.validated is True
        assert status.result == "tesSUCCESS"
        assert status.ledger_index == 88
        assert calls[0]["params"] == [{"transaction": "ABC"}]

    @pytest.mark.asyncio
    async def test_not_yet_validated(self):
        adapter, _ = _adapter(lambda body: _ok({"validated": False}))
        status = await adapter.get_transaction("ABC")
        assert status.validated is False
        assert status.result is None

    @pytest.mark.asyncio
    async def test_txn_not_found_is_not_validated(self):
        adapter, _ = _adapter(lambda body: _err("txnNotFound"))
        status = await adapter.get_transaction("ABC")
        assert status.validated is False
        assert status.message == "txnNotFound"


class TestRetries:
    @pytest.mark.asyncio
    async def test_retries_server_errors_then_succeeds(self):
        responses = [httpx.Response(503), httpx.Response(429), _ok({"validated": False})]
        adapter, calls = _adapter(lambda body: responses.pop(0))
        status = await adapter.get_transaction("ABC")
        assert status.validated is False
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        adapter, calls = _adapter(lambda body: httpx.Response(502), max_retries=2)
        with pytest.raises(LedgerUnavailable, match="HTTP 502"):
            await adapter.get_transaction("ABC")
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_network_errors_become_unavailable(self):
        def handler(body):
            raise httpx.ConnectError("connection refused")

        adapter, calls = _adapter(handler)
        with pytest.raises(LedgerUnavailable, match="after 3 attempt"):
            await adapter.get_account_info(ISSUER)
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self):
        adapter, calls = _adapter(lambda body: httpx.Response(400, text="bad request"))
        with pytest.raises(LedgerRequestError, match="http_400"):
            await adapter.get_transaction("ABC")
        assert len(calls) == 1

    def test_backoff_grows(self):
        adapter = XrplJsonRpcAdapter(_config(retry_backoff_seconds=1.0))
        first = adapter._backoff_delay(1)
        third = adapter._backoff_delay(3)
        assert 1.0 <= first <= 1.25
        assert 4.0 <= third <= 5.0


class TestLinesAndBalances:
    LINES = [
        {"account": ISSUER, "currency": "USD", "balance": "10", "limit": "100", "authorized": True},
        {"account": ISSUER, "currency": currency_to_hex("EURT"), "balance": "5", "limit": "50"},
        {"account": "rOther", "currency": "USD", "balance": "1", "limit": "1", "freeze": True},
    ]

    @pytest.mark.asyncio
    async def test_paginates_account_lines(self):
        pages = [
            _ok({"lines": self.LINES[:1], "marker": "m1"}),
            _ok({"lines": self.LINES[1:2]}),
        ]
        adapter, calls = _adapter(lambda body: pages.pop(0))

        lines = await adapter.get_account_lines("rHolder", ISSUER)

        assert [l.currency for l in lines] == ["USD", "EURT"]
        assert lines[0].authorized is True
        assert lines[1].currency_hex == currency_to_hex("EURT")
        assert "marker" not in calls[0]["params"][0]
        assert calls[1]["params"][0]["marker"] == "m1"
        assert calls[1]["params"][0]["peer"] == ISSUER

    @pytest.mark.asyncio
    async def test_balances_filter_by_issuer_and_currency(self):
        def handler(body):
            if body["method"] == "account_info":
                return _ok({"account_data": {"Account": "rHolder", "Balance": "2000000"}})
            return _ok({"lines": self.LINES})

        adapter, _ = _adapter(handler)
        sheet = await adapter.get_balances("rHolder", issuer=ISSUER, currency="eurt")

        assert sheet.native_balance == "2"
        assert [(l.currency, l.balance) for l in sheet.lines] == [("EURT", "5")]

    @pytest.mark.asyncio
    async def test_frozen_flag(self):
        adapter, _ = _adapter(lambda body: _ok({"lines": self.LINES[2:]}))
        lines = await adapter.get_account_lines("rHolder", "rOther")
        assert lines[0].frozen is True


class TestWrites:
    @pytest.mark.asyncio
    async def test_issue_token_submits_payment(self, monkeypatch):
        monkeypatch.setenv("TOKENOPS_TEST_ISSUER_SEED", "sSecret")
        adapter, calls = _adapter(lambda body: _ok({
            "engine_result": "tesSUCCESS", "tx_json": {"hash": "HASH1"},
        }))

        tx_hash = await adapter.issue_token(IssueParams(
            currency_code="EURT", amount="100", destination="rHolder",
            metadata={"issuanceId": "iss-1"},
        ))

        assert tx_hash == "HASH1"
        params = calls[0]["params"][0]
        assert calls[0]["method"] == "submit"
        assert params["secret"] == "sSecret"
        tx = params["tx_json"]
        assert tx["TransactionType"] == "Payment"
        assert tx["Amount"] == {"currency": currency_to_hex("EURT"), "value": "100", "issuer": ISSUER}
        memo = bytes.fromhex(tx["Memos"][0]["Memo"]["MemoData"]).decode()
        assert json.loads(memo) == {"issuanceId": "iss-1"}

    @pytest.mark.asyncio
    async def test_issue_requires_seed(self, monkeypatch):
        monkeypatch.delenv("TOKENOPS_TEST_ISSUER_SEED", raising=False)
        adapter, calls = _adapter(lambda body: _ok({}))
        with pytest.raises(ConfigError):
            await adapter.issue_token(IssueParams(currency_code="USD", amount="1", destination="r"))
        assert calls == []

    @pytest.mark.asyncio
    async def test_rejected_submission_raises_and_is_not_retried(self, monkeypatch):
        monkeypatch.setenv("TOKENOPS_TEST_ISSUER_SEED", "sSecret")
        adapter, calls = _adapter(lambda body: _ok({
            "engine_result": "tecNO_AUTH", "engine_result_message": "Not authorized",
        }))
        with pytest.raises(LedgerRequestError, match="tecNO_AUTH"):
            await adapter.issue_token(IssueParams(currency_code="USD", amount="1", destination="r"))
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_submission_transport_error_not_retried(self, monkeypatch):
        monkeypatch.setenv("TOKENOPS_TEST_ISSUER_SEED", "sSecret")
        adapter, calls = _adapter(lambda body: httpx.Response(503))
        with pytest.raises(LedgerUnavailable):
            await adapter.issue_token(IssueParams(currency_code="USD", amount="1", destination="r"))
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_trustline_already_exists(self):
        adapter, calls = _adapter(lambda body: _ok({"lines": [
            {"account": ISSUER, "currency": "USD", "balance": "0", "limit": "1000"},
        ]}))
        result = await adapter.create_trustline(TrustlineParams(
            currency_code="USD", limit="500", holder_address="rHolder", holder_seed="sHolder",
        ))
        assert result.already_existed is True
        assert [c["method"] for c in calls] == ["account_lines"]

    @pytest.mark.asyncio
    async def test_trustline_created(self):
        def handler(body):
            if body["method"] == "account_lines":
                return _ok({"lines": []})
            return _ok({"engine_result": "terQUEUED", "tx_json": {"hash": "TS1"}})

        adapter, calls = _adapter(handler)
        result = await adapter.create_trustline(TrustlineParams(
            currency_code="USD", limit="500", holder_address="rHolder", holder_seed="sHolder",
        ))

        assert result.tx_hash == "TS1"
        assert result.already_existed is False
        submit = calls[1]["params"][0]
        assert submit["secret"] == "sHolder"
        assert submit["tx_json"]["LimitAmount"] == {"currency": "USD", "issuer": ISSUER, "value": "500"}
