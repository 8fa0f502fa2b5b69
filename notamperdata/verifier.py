"""
notamperdata SDK - Verification

Answers "was this hash anchored, and where first?" from the public ledger
alone. Read-only: repeated queries against the same ledger state give the
same result.
"""

import logging
from typing import Dict, List, Optional, Tuple

from .anchor_types import ImmutableRecord, LedgerPosition, VerificationResult
from .errors import DecodeError
from .ledger_client import BlockfrostClient
from .record_codec import RECORD_LABEL, decode, is_candidate, validate_hash

log = logging.getLogger(__name__)


class HashVerifier:
    """
    Finds the earliest anchored record for a hash.

    Duplicate anchoring is not prevented on-chain. When several confirmed
    transactions carry the same hash, the one at the lowest ledger position
    (block height, then index in block) wins.

    Usage:
        verifier = HashVerifier(client)
        result = verifier.find_by_hash("a1b2...")
        if result.matched:
            print(result.transaction_id, result.ledger_position.block_height)
    """

    def __init__(self, client: BlockfrostClient, label: int = RECORD_LABEL):
        self.client = client
        self.label = label

    def _matches(self, target: str) -> List[Tuple[str, ImmutableRecord]]:
        """Decoded (tx_hash, record) pairs whose hash equals target."""
        matches = []
        seen = set()
        scanned = 0
        for entry in self.client.label_entries(self.label):
            scanned += 1
            if not is_candidate(entry.label):
                continue
            try:
                record = decode(entry.payload)
            except DecodeError as e:
                log.debug(f"Skipping unreadable record in {entry.tx_hash[:16]}...: {e}")
                continue
            if record.hash == target and entry.tx_hash not in seen:
                seen.add(entry.tx_hash)
                matches.append((entry.tx_hash, record))
        log.debug(f"Scanned {scanned} entries under label {self.label}, {len(matches)} match(es)")
        return matches

    def _position(self, tx_hash: str) -> Optional[LedgerPosition]:
        info = self.client.tx_info(tx_hash)
        return LedgerPosition.from_tx_info(info) if info else None

    def find_by_hash(self, target_hash: str) -> VerificationResult:
        """
        Look up target_hash among anchored records.

        Args:
            target_hash: 64-char hex digest (any case)

        Returns:
            VerificationResult; matched=False with no other fields if absent

        Raises:
            SchemaError: target_hash is not a 64-char hex digest
        """
        target = validate_hash(target_hash.strip().lower() if isinstance(target_hash, str)
                               else target_hash)

        best: Optional[Tuple[LedgerPosition, str, ImmutableRecord]] = None
        positions: Dict[str, Optional[LedgerPosition]] = {}
        for tx_hash, record in self._matches(target):
            positions[tx_hash] = self._position(tx_hash)
            position = positions[tx_hash]
            if position is None:
                # Known to the indexer but not in a block yet
                continue
            candidate = (position, tx_hash, record)
            if best is None or candidate[:2] < best[:2]:
                best = candidate

        if best is None:
            log.info(f"Hash {target[:16]}... not anchored")
            return VerificationResult.not_found()

        position, tx_hash, record = best
        if len(positions) > 1:
            log.info(f"Hash {target[:16]}... anchored {len(positions)} times, "
                     f"earliest at height {position.block_height}")
        return VerificationResult(
            matched=True,
            transaction_id=tx_hash,
            record=record,
            ledger_position=position
        )
