"""
notamperdata SDK - Data Types

Records, funding units, receipts and verification results.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
import json


class UnitState(Enum):
    """Funding unit lifecycle: AVAILABLE -> ALLOCATED -> SPENT"""
    AVAILABLE = "available"
    ALLOCATED = "allocated"
    SPENT = "spent"


class TxState(Enum):
    """Anchoring transaction lifecycle"""
    BUILT = "built"
    SIGNED = "signed"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    TIMED_OUT = "timed_out"


class ConfirmationStatus(Enum):
    """
    Outcome of an anchoring transaction once submitted.

    Blockfrost refuses an invalid transaction at /tx/submit and never
    indexes it, so REJECTED comes from submit(): awaiting a transaction
    submit() rejected yields REJECTED without polling. Polling itself can
    only tell CONFIRMED from TIMED_OUT.
    """
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class ImmutableRecord:
    """
    The anchored fact. Only the digest of the content is ever stored.

    Structure:
      - hash: 64 lowercase hex chars (caller-computed digest)
      - subject_id: originating form identifier
      - instance_id: response identifier within the form
      - observed_at_millis: producer timestamp (not monotonic across producers)
      - schema_version: record schema version, e.g. "1.0"

    Validation lives in record_codec.encode(); a record is only checked
    when it is about to be written.
    """
    hash: str
    subject_id: str
    instance_id: str
    observed_at_millis: int
    schema_version: str = "1.0"

    def to_dict(self) -> dict:
        return {
            "hash": self.hash,
            "subject_id": self.subject_id,
            "instance_id": self.instance_id,
            "observed_at_millis": self.observed_at_millis,
            "schema_version": self.schema_version
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ImmutableRecord":
        return cls(
            hash=data["hash"],
            subject_id=data["subject_id"],
            instance_id=data["instance_id"],
            observed_at_millis=int(data["observed_at_millis"]),
            schema_version=data.get("schema_version", "1.0")
        )


@dataclass
class FundingUnit:
    """
    Spendable UTxO owned by the anchoring agent.

    Only pure-ADA outputs become funding units; value is in lovelace.
    """
    tx_hash: str
    output_index: int
    value: int
    state: UnitState = UnitState.AVAILABLE

    @property
    def identifier(self) -> str:
        """Cardano outpoint notation: <tx_hash>#<index>"""
        return f"{self.tx_hash}#{self.output_index}"

    def to_dict(self) -> dict:
        return {
            "identifier": self.identifier,
            "tx_hash": self.tx_hash,
            "output_index": self.output_index,
            "value": self.value,
            "state": self.state.value
        }

    @classmethod
    def from_utxo(cls, utxo: dict) -> Optional["FundingUnit"]:
        """
        Create unit from a Blockfrost UTxO entry.

        Returns None for outputs carrying native assets or a datum;
        those are never spent by the anchoring agent.
        """
        amounts = utxo.get("amount", [])
        if len(amounts) != 1 or amounts[0].get("unit") != "lovelace":
            return None
        if utxo.get("data_hash") or utxo.get("inline_datum"):
            return None
        return cls(
            tx_hash=utxo["tx_hash"],
            output_index=int(utxo["output_index"]),
            value=int(amounts[0]["quantity"])
        )


@dataclass(frozen=True, order=True)
class LedgerPosition:
    """Total order over confirmed transactions: block height, then index"""
    block_height: int
    tx_index: int
    block_time: int = 0

    def to_dict(self) -> dict:
        return {
            "block_height": self.block_height,
            "tx_index": self.tx_index,
            "block_time": self.block_time
        }

    @classmethod
    def from_tx_info(cls, info: dict) -> Optional["LedgerPosition"]:
        """Position from a Blockfrost /txs/{hash} body, None if not in a block."""
        if info.get("block_height") is None:
            return None
        return cls(
            block_height=int(info["block_height"]),
            tx_index=int(info.get("index", 0)),
            block_time=int(info.get("block_time", 0))
        )


@dataclass(frozen=True)
class Confirmation:
    """Three-way outcome of await_confirmation()"""
    status: ConfirmationStatus
    transaction_id: str
    position: Optional[LedgerPosition] = None

    @property
    def confirmed(self) -> bool:
        return self.status == ConfirmationStatus.CONFIRMED


@dataclass(frozen=True)
class AnchorReceipt:
    """Result of anchor(). confirmed_at is None until confirmation is seen."""
    transaction_id: str
    destination_address: str
    record: ImmutableRecord
    confirmed_at: Optional[LedgerPosition] = None
    fee: int = 0
    funding_unit: str = ""

    def to_dict(self) -> dict:
        return {
            "transaction_id": self.transaction_id,
            "destination_address": self.destination_address,
            "record": self.record.to_dict(),
            "confirmed_at": self.confirmed_at.to_dict() if self.confirmed_at else None,
            "fee": self.fee,
            "funding_unit": self.funding_unit
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)


@dataclass(frozen=True)
class VerificationResult:
    """
    Result of a hash lookup.

    When matched is False every other field is None.
    """
    matched: bool
    transaction_id: Optional[str] = None
    record: Optional[ImmutableRecord] = None
    ledger_position: Optional[LedgerPosition] = None

    @classmethod
    def not_found(cls) -> "VerificationResult":
        return cls(matched=False)

    def to_dict(self) -> dict:
        return {
            "matched": self.matched,
            "transaction_id": self.transaction_id,
            "record": self.record.to_dict() if self.record else None,
            "ledger_position": self.ledger_position.to_dict() if self.ledger_position else None
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)
