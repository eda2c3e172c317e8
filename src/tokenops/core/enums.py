"""Enumerations used across the TokenOps compliance core."""

from enum import Enum


class Ledger(str, Enum):
    XRPL = "XRPL"
    ETHEREUM = "ETHEREUM"
    HEDERA = "HEDERA"

    @property
    def is_evm_family(self) -> bool:
        """Ledgers whose controls are expressed as allowlists/pause flags."""
        return self in (Ledger.ETHEREUM, Ledger.HEDERA)


class ComplianceMode(str, Enum):
    OFF = "OFF"
    RECORD_ONLY = "RECORD_ONLY"
    GATED_BEFORE = "GATED_BEFORE"  # Holder must be authorized before receiving
    GATED_AFTER = "GATED_AFTER"


class AssetClass(str, Enum):
    ART = "ART"  # Asset-referenced token
    EMT = "EMT"  # E-money token
    OTHER = "OTHER"


class IssuerStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class IssuanceStatus(str, Enum):
    PENDING = "PENDING"
    SUBMITTED = "SUBMITTED"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (IssuanceStatus.CONFIRMED, IssuanceStatus.FAILED)


NON_TERMINAL_ISSUANCE_STATUSES = (IssuanceStatus.PENDING, IssuanceStatus.SUBMITTED)


class RequirementStatus(str, Enum):
    NA = "NA"
    PENDING = "PENDING"
    REQUIRED = "REQUIRED"
    SATISFIED = "SATISFIED"
    EXCEPTION = "EXCEPTION"


class DistributionType(str, Enum):
    OFFER = "offer"
    ADMISSION = "admission"
    PRIVATE = "private"


class InvestorAudience(str, Enum):
    RETAIL = "retail"
    PROFESSIONAL = "professional"
    INSTITUTIONAL = "institutional"


class TransferType(str, Enum):
    CASP_TO_CASP = "CASP_TO_CASP"
    CASP_TO_SELF_HOSTED = "CASP_TO_SELF_HOSTED"
    SELF_HOSTED_TO_CASP = "SELF_HOSTED_TO_CASP"
    SELF_HOSTED_TO_SELF_HOSTED = "SELF_HOSTED_TO_SELF_HOSTED"


class LedgerKind(str, Enum):
    """Which ledger adapter implementation to wire at startup."""

    XRPL = "xrpl"
    MEMORY = "memory"


class JobStatus(str, Enum):
    CREATED = "created"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
