"""
notamperdata SDK

Anchors content hashes to Cardano and proves later that they were anchored.
The content itself is never stored, only a caller-computed digest.

Architecture:
  - Records are transaction metadata under one reserved label
  - Each anchoring transaction locks a fixed amount at the registry
    validator's script address and spends one funding unit (UTxO)
  - A thread-safe funding pool lets many anchors run in parallel
  - Verification scans the label and returns the earliest match

Usage:
    from notamperdata import AnchorConfig, AnchorService, ImmutableRecord

    config = AnchorConfig.from_env()
    service = AnchorService.from_config(config, signer)
    service.reconcile()

    receipt = service.anchor(ImmutableRecord(
        hash="a1b2...", subject_id="form-1", instance_id="resp-1",
        observed_at_millis=1700000000000))

    result = service.verify("a1b2...")
    assert result.matched
"""

from .anchor_types import (
    AnchorReceipt,
    Confirmation,
    ConfirmationStatus,
    FundingUnit,
    ImmutableRecord,
    LedgerPosition,
    TxState,
    UnitState,
    VerificationResult,
)
from .errors import (
    AnchorError,
    BuildError,
    ConfigurationError,
    ConfirmationTimedOut,
    ConfirmationUnknown,
    DecodeError,
    InsufficientValueError,
    NoFundsAvailable,
    RejectedByLedger,
    SchemaError,
    SubmissionError,
)
from .record_codec import RECORD_LABEL, HASH_LENGTH, encode, encode_payload, decode
from .address import AuthorizationScript, Network, derive_address
from .ledger_client import BlockfrostClient, LedgerError, MetadataEntry
from .funding_pool import FundingPool, PoolRefresh
from .tx_builder import FeeSchedule, TransactionBuilder, UnsignedTransaction
from .submission import Signer, SubmissionTracker, TrackedTransaction
from .verifier import HashVerifier
from .config import AnchorConfig
from .anchor import AnchorService

__version__ = "0.1.0"
__all__ = [
    # Types
    "AnchorReceipt", "Confirmation", "ConfirmationStatus", "FundingUnit",
    "ImmutableRecord", "LedgerPosition", "TxState", "UnitState", "VerificationResult",
    # Errors
    "AnchorError", "BuildError", "ConfigurationError", "ConfirmationTimedOut", "ConfirmationUnknown",
    "DecodeError", "InsufficientValueError", "NoFundsAvailable", "RejectedByLedger",
    "SchemaError", "SubmissionError", "LedgerError",
    # Codec
    "RECORD_LABEL", "HASH_LENGTH", "encode", "encode_payload", "decode",
    # Core
    "AuthorizationScript", "Network", "derive_address",
    "BlockfrostClient", "MetadataEntry",
    "FundingPool", "PoolRefresh",
    "FeeSchedule", "TransactionBuilder", "UnsignedTransaction",
    "Signer", "SubmissionTracker", "TrackedTransaction",
    "HashVerifier", "AnchorConfig", "AnchorService",
]
