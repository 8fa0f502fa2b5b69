"""
notamperdata SDK - Anchor Service

anchor() and verify(), the two operations offered to the outside.

anchor() flow:
  1. Validate the record (SchemaError before any I/O)
  2. Allocate a funding unit from the pool
  3. Build the transaction (release unit on failure)
  4. Sign once and submit (release unit on failure; refresh pool on rejection)
  5. Wait for confirmation
       confirmed -> commit unit, adopt change output, return receipt
       timed out -> unit stays allocated, raise ConfirmationTimedOut
       query refused -> unit stays allocated, raise ConfirmationUnknown
"""

import logging
from dataclasses import replace
from typing import Optional

from .address import AuthorizationScript, derive_address
from .anchor_types import AnchorReceipt, FundingUnit, ImmutableRecord, VerificationResult
from .config import AnchorConfig
from .errors import BuildError, ConfirmationTimedOut, ConfirmationUnknown, RejectedByLedger
from .funding_pool import FundingPool, PoolRefresh
from .ledger_client import BlockfrostClient, LedgerError
from .record_codec import encode_payload
from .submission import Signer, SubmissionTracker, TrackedTransaction
from .tx_builder import FeeSchedule, TransactionBuilder
from .verifier import HashVerifier

log = logging.getLogger(__name__)


class AnchorService:
    """
    Anchors record hashes and verifies them.

    The pool is injected so several services (or threads) share one
    allocation discipline.

    Usage:
        config = AnchorConfig.from_env()
        service = AnchorService.from_config(config, signer)
        service.reconcile()

        receipt = service.anchor(ImmutableRecord(
            hash="a1b2...", subject_id="form-1", instance_id="resp-1",
            observed_at_millis=1700000000000))
        result = service.verify("a1b2...")
    """

    def __init__(self, client: BlockfrostClient,
                 pool: FundingPool,
                 builder: TransactionBuilder,
                 tracker: SubmissionTracker,
                 destination_address: str,
                 lock_amount: int = 5_000_000,
                 confirm_timeout: float = 300):
        self.client = client
        self.pool = pool
        self.builder = builder
        self.tracker = tracker
        self.destination_address = destination_address
        self.lock_amount = lock_amount
        self.confirm_timeout = confirm_timeout
        self.verifier = HashVerifier(client)

    @classmethod
    def from_config(cls, config: AnchorConfig, signer: Signer,
                    script: Optional[AuthorizationScript] = None,
                    client: Optional[BlockfrostClient] = None,
                    fee_schedule: Optional[FeeSchedule] = None) -> "AnchorService":
        """
        Wire a service from configuration.

        Fetches protocol parameters for the fee schedule unless one is given.
        The pool starts empty; call reconcile() before the first anchor().
        """
        agent_address = config.require_agent_address()
        if script is None:
            script = AuthorizationScript.from_blueprint(
                config.blueprint_path, config.validator_title)
        destination = derive_address(script, config.network)

        if client is None:
            client = BlockfrostClient(config.api_url, config.blockfrost_project_id)
        if fee_schedule is None:
            fee_schedule = FeeSchedule.from_protocol_parameters(client.protocol_parameters())

        log.info(f"Network: {config.network.name.capitalize()}")
        log.info(f"Anchoring address: {destination}")

        return cls(
            client=client,
            pool=FundingPool(client, agent_address),
            builder=TransactionBuilder(agent_address, fee_schedule),
            tracker=SubmissionTracker(client, signer),
            destination_address=destination,
            lock_amount=config.lock_lovelace,
            confirm_timeout=config.confirm_timeout
        )

    def anchor(self, record: ImmutableRecord,
               timeout: Optional[float] = None) -> AnchorReceipt:
        """
        Anchor a record and wait for confirmation.

        Args:
            record: Record to anchor
            timeout: Confirmation wait in seconds (service default if None)

        Returns:
            AnchorReceipt with confirmed_at set

        Raises:
            SchemaError: invalid record
            NoFundsAvailable / InsufficientValueError: pool cannot cover it
            SubmissionError: network kept failing
            RejectedByLedger: ledger refused the transaction
            ConfirmationTimedOut: outcome unknown, reconcile before retrying
            ConfirmationUnknown: ledger refused the confirmation query,
                outcome unknown, reconcile before retrying
        """
        encode_payload(record)
        timeout = self.confirm_timeout if timeout is None else timeout

        required = self.builder.required_value(self.lock_amount, record, self.destination_address)
        unit = self.pool.allocate(required)

        try:
            tx = self.builder.build(self.destination_address, self.lock_amount, record, unit)
        except BuildError:
            self.pool.release(unit)
            raise

        tracked = TrackedTransaction(tx)
        try:
            tx_id = self.tracker.submit(tracked)
        except RejectedByLedger:
            self.pool.release(unit)
            self._refresh_after_rejection()
            raise
        except Exception:
            # Nothing reached the ledger (SubmissionError, signer failure)
            self.pool.release(unit)
            raise

        receipt = AnchorReceipt(
            transaction_id=tx_id,
            destination_address=self.destination_address,
            record=record,
            fee=tx.fee,
            funding_unit=unit.identifier
        )

        try:
            outcome = self.tracker.await_confirmation(tracked, timeout)
        except LedgerError as e:
            log.error(f"Confirmation query for {tx_id[:16]}... failed: {e}, "
                      f"{unit.identifier[:16]}... stays allocated")
            if e.status_code in (401, 403):
                raise ConfirmationUnknown(
                    tx_id, f"ledger API refused credentials: {e.message}",
                    status_code=e.status_code, receipt=receipt) from e
            raise ConfirmationUnknown(tx_id, e.message, status_code=e.status_code,
                                      receipt=receipt) from e

        if not outcome.confirmed:
            log.warning(f"Anchor {tx_id[:16]}... unconfirmed, "
                        f"{unit.identifier[:16]}... stays allocated")
            raise ConfirmationTimedOut(tx_id, timeout, receipt)

        self.pool.commit(unit)
        change = tx.change
        if change is not None:
            self.pool.adopt(FundingUnit(tx_id, tx.change_index, change.amount))

        log.info(f"Anchored {record.hash[:16]}... in {tx_id[:16]}... "
                 f"(height {outcome.position.block_height})")
        return replace(receipt, confirmed_at=outcome.position)

    def _refresh_after_rejection(self):
        try:
            self.pool.refresh_from_ledger()
        except LedgerError as e:
            log.error(f"Pool refresh after rejection failed: {e}")

    def verify(self, target_hash: str) -> VerificationResult:
        """Earliest anchored record for target_hash (see HashVerifier)."""
        return self.verifier.find_by_hash(target_hash)

    def reconcile(self, release_stale: bool = False) -> PoolRefresh:
        """Re-sync the funding pool with the agent's holdings."""
        return self.pool.refresh_from_ledger(release_stale=release_stale)
