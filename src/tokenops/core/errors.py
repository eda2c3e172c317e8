"""Custom exception hierarchy for TokenOps."""


class TokenOpsError(Exception):
    """Base exception for all TokenOps errors."""


# --- Configuration ---
class ConfigError(TokenOpsError):
    """Invalid or missing configuration."""


# --- Persistence ---
class StoreError(TokenOpsError):
    """Persistent store unreachable or a write failed."""


class NotFoundError(TokenOpsError):
    """A referenced record (asset, issuer, template, issuance) does not exist."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id} not found")


# --- Ledger ---
class LedgerError(TokenOpsError):
    """Ledger communication error."""


class LedgerUnavailable(LedgerError):
    """Ledger endpoint unreachable or timed out."""


class LedgerRequestError(LedgerError):
    """Ledger answered with an error payload."""

    def __init__(self, error: str, message: str = ""):
        self.error = error
        super().__init__(f"{error}: {message}" if message else error)


# --- Policy ---
class PolicyError(TokenOpsError):
    """Policy evaluation failure."""


class ExpressionError(PolicyError):
    """Applicability expression is malformed or uses disallowed syntax."""
