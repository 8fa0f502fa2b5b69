"""
notamperdata SDK - Transaction Builder

Composes the unsigned anchoring transaction:

    input   : one funding unit
    output 0: lock_amount at the script address
    output 1: change back to the agent (below min_change it goes to the fee)
    metadata: {RECORD_LABEL: record}

The record rides in transaction metadata, never in an output datum, so it
does not touch the spending conditions of any output.

Nothing but the arguments, the funding unit and the fee schedule feeds the
result: no clock, no randomness. Same inputs, same bytes.
"""

import hashlib
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .anchor_types import FundingUnit, ImmutableRecord
from .errors import BuildError, InsufficientValueError
from .record_codec import RECORD_LABEL, encode_payload

log = logging.getLogger(__name__)

# Bytes added by one vkey witness plus envelope, on top of the body
WITNESS_OVERHEAD = 200

# Fixed-point iterations for fee <-> size
MAX_FEE_PASSES = 4


@dataclass(frozen=True)
class FeeSchedule:
    """Linear fee: min_fee_a * size + min_fee_b (lovelace)"""
    min_fee_a: int = 44
    min_fee_b: int = 155381

    def fee_for(self, size: int) -> int:
        return self.min_fee_a * size + self.min_fee_b

    @classmethod
    def from_protocol_parameters(cls, params: dict) -> "FeeSchedule":
        return cls(min_fee_a=int(params["min_fee_a"]), min_fee_b=int(params["min_fee_b"]))


@dataclass(frozen=True)
class TxOutput:
    address: str
    amount: int

    def to_dict(self) -> dict:
        return {"address": self.address, "amount": self.amount}


@dataclass(frozen=True)
class UnsignedTransaction:
    """
    Unsigned anchoring transaction.

    funding_unit and change_index are bookkeeping for the caller and are
    not part of the serialized body.
    """
    inputs: Tuple[str, ...]
    outputs: Tuple[TxOutput, ...]
    fee: int
    metadata: Dict[int, Dict[str, Any]]
    funding_unit: Optional[FundingUnit] = field(default=None, compare=False)
    change_index: Optional[int] = field(default=None, compare=False)

    def to_dict(self) -> dict:
        return {
            "inputs": list(self.inputs),
            "outputs": [o.to_dict() for o in self.outputs],
            "fee": self.fee,
            # JSON object keys must be strings
            "metadata": {str(k): v for k, v in self.metadata.items()}
        }

    def serialize(self) -> bytes:
        """Canonical body bytes (sorted keys, no whitespace)."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":")).encode("utf-8")

    @property
    def body_hash(self) -> str:
        """blake2b-256 of the canonical body."""
        return hashlib.blake2b(self.serialize(), digest_size=32).hexdigest()

    @property
    def change(self) -> Optional[TxOutput]:
        if self.change_index is None:
            return None
        return self.outputs[self.change_index]


class TransactionBuilder:
    """
    Builds anchoring transactions for a fixed change address and fee schedule.

    Usage:
        builder = TransactionBuilder("addr_test1...agent", FeeSchedule())
        unit = pool.allocate(builder.required_value(5_000_000, record))
        tx = builder.build(script_address, 5_000_000, record, unit)
    """

    def __init__(self, change_address: str, fee_schedule: FeeSchedule = FeeSchedule(),
                 min_change: int = 1_000_000):
        """
        Args:
            change_address: Agent address receiving the change output
            fee_schedule: Network fee parameters
            min_change: Smallest change output the ledger accepts (min UTxO)
        """
        self.change_address = change_address
        self.fee_schedule = fee_schedule
        self.min_change = min_change

    def _assemble(self, unit: FundingUnit, destination: str, lock_amount: int,
                  metadata: dict, fee: int, with_change: bool) -> UnsignedTransaction:
        outputs = [TxOutput(destination, lock_amount)]
        change_index = None
        if with_change:
            outputs.append(TxOutput(self.change_address, unit.value - lock_amount - fee))
            change_index = 1
        return UnsignedTransaction(
            inputs=(unit.identifier,),
            outputs=tuple(outputs),
            fee=fee,
            metadata=metadata,
            funding_unit=unit,
            change_index=change_index
        )

    def _settle_fee(self, unit: FundingUnit, destination: str, lock_amount: int,
                    metadata: dict, with_change: bool) -> UnsignedTransaction:
        """Raise the fee until it covers the size of the body it is part of."""
        fee = 0
        tx = self._assemble(unit, destination, lock_amount, metadata, fee, with_change)
        for _ in range(MAX_FEE_PASSES):
            needed = self.fee_schedule.fee_for(len(tx.serialize()) + WITNESS_OVERHEAD)
            if needed <= fee:
                break
            fee = needed
            tx = self._assemble(unit, destination, lock_amount, metadata, fee, with_change)
        return tx

    def required_value(self, lock_amount: int, record: ImmutableRecord,
                       destination: str = "") -> int:
        """
        Minimum unit value for build() to succeed: lock + fee.

        Units between this and lock + fee + min_change still build, with the
        surplus going to the fee.
        """
        metadata = {RECORD_LABEL: encode_payload(record)}
        placeholder = FundingUnit("0" * 64, 0, 0)
        tx = self._settle_fee(placeholder, destination or self.change_address, lock_amount,
                              metadata, with_change=False)
        return lock_amount + tx.fee

    def build(self, destination_address: str, lock_amount: int,
              record: ImmutableRecord, unit: FundingUnit) -> UnsignedTransaction:
        """
        Build the anchoring transaction spending unit.

        Change below min_change cannot form an output of its own and is
        added to the fee instead.

        Args:
            destination_address: Script address receiving lock_amount
            lock_amount: Lovelace locked at the destination
            record: Record attached as metadata
            unit: Allocated funding unit

        Returns:
            UnsignedTransaction

        Raises:
            SchemaError: record is invalid
            BuildError: bad destination or amount
            InsufficientValueError: unit too small for lock + fee
        """
        if not destination_address:
            raise BuildError("Destination address is required")
        if lock_amount <= 0:
            raise BuildError(f"Lock amount must be positive, got {lock_amount}")

        metadata = {RECORD_LABEL: encode_payload(record)}
        tx = self._settle_fee(unit, destination_address, lock_amount, metadata, with_change=True)

        if tx.change.amount < self.min_change:
            bare = self._settle_fee(unit, destination_address, lock_amount, metadata,
                                    with_change=False)
            if unit.value < lock_amount + bare.fee:
                raise InsufficientValueError(unit.value, lock_amount + bare.fee)
            tx = self._assemble(unit, destination_address, lock_amount, metadata,
                                unit.value - lock_amount, with_change=False)

        change = tx.change.amount if tx.change else 0
        log.debug(f"Built tx {tx.body_hash[:16]}...: lock={lock_amount} fee={tx.fee} "
                  f"change={change} record={record.hash[:16]}...")
        return tx
