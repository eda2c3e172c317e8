"""RequireAuth checks against the issuer's live ledger account.

Gated compliance modes rely on the issuer account having XRPL's
``lsfRequireAuth`` flag set, so that holders cannot receive tokens until
the issuer authorizes their trust line.  Authorization flows call these
checks before proceeding.

Neither check ever raises: ledger and store failures are returned in
``RequireAuthCheckResult.error`` so callers can tell "the ledger says no"
(``has_require_auth=False`` and no error) from "could not ask the ledger"
(``error`` set).
"""

from __future__ import annotations

import logging

from tokenops.core.interfaces import ILedgerAdapter, IStore
from tokenops.observability import metrics

from .models import RequireAuthCheckResult

logger = logging.getLogger(__name__)

# AccountRoot ledger flag (not the asfRequireAuth AccountSet flag, which is 2)
LSF_REQUIRE_AUTH = 0x00010000


def has_require_auth_flag(flags: int | None) -> bool:
    return bool(flags) and (flags & LSF_REQUIRE_AUTH) != 0


class RequireAuthChecker:
    """Checks whether an issuer account enforces RequireAuth."""

    def __init__(self, ledger: ILedgerAdapter, store: IStore) -> None:
        self._ledger = ledger
        self._store = store

    async def check_require_auth(self, issuer_address: str) -> RequireAuthCheckResult:
        try:
            account_info = await self._ledger.get_account_info(issuer_address)
        except Exception as exc:
            logger.error(
                "Error checking RequireAuth for %s: %s", issuer_address, exc, exc_info=True,
            )
            metrics.record_require_auth_check("error")
            return RequireAuthCheckResult(
                has_require_auth=False,
                error=str(exc) or "Failed to check RequireAuth status",
            )

        if account_info is None:
            metrics.record_require_auth_check("error")
            return RequireAuthCheckResult(
                has_require_auth=False, error="Account not found on ledger",
            )

        enabled = has_require_auth_flag(account_info.flags)
        metrics.record_require_auth_check("enabled" if enabled else "disabled")
        return RequireAuthCheckResult(has_require_auth=enabled, account_info=account_info)

    async def validate_asset_require_auth(self, asset_id: str) -> RequireAuthCheckResult:
        """Resolve the asset's issuing address and check it."""
        try:
            asset = await self._store.get_asset(asset_id)
            if asset is None:
                return RequireAuthCheckResult(has_require_auth=False, error="Asset not found")
            issuer = None
            if asset.issuing_address_id is not None:
                issuer = await self._store.get_issuing_address(asset.issuing_address_id)
        except Exception as exc:
            logger.error(
                "Error validating asset RequireAuth for %s: %s", asset_id, exc, exc_info=True,
            )
            return RequireAuthCheckResult(
                has_require_auth=False,
                error=str(exc) or "Failed to validate asset RequireAuth",
            )

        if issuer is None:
            return RequireAuthCheckResult(
                has_require_auth=False,
                error="Asset has no issuing address configured",
            )
        return await self.check_require_auth(issuer.address)


def require_auth_error_message(result: RequireAuthCheckResult) -> str:
    """User-facing explanation for a RequireAuth check result."""
    if result.has_require_auth:
        return "RequireAuth is properly configured"
    if result.error:
        return f"RequireAuth check failed: {result.error}"
    return (
        "RequireAuth is not enabled on the issuer account. Please enable "
        "RequireAuth before allowing authorization requests."
    )
