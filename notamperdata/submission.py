"""
notamperdata SDK - Submission & Confirmation

Signs, submits and waits for anchoring transactions.

    BUILT -> SIGNED -> SUBMITTED -> CONFIRMED | REJECTED | TIMED_OUT

Transient network failures are retried with bounded exponential backoff.
Ledger rejections are never retried: the funding unit is probably stale and
the caller has to rebuild against a refreshed pool. A timeout is not a
failure, the transaction may still land.
"""

import logging
import time
from typing import Callable, Optional, Union

from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .anchor_types import Confirmation, ConfirmationStatus, LedgerPosition, TxState
from .errors import ConfigurationError, RejectedByLedger, SubmissionError
from .ledger_client import BlockfrostClient, LedgerError
from .tx_builder import UnsignedTransaction

log = logging.getLogger(__name__)


class Signer:
    """
    Signing capability bound to the agent's keys.

    Implementations turn an UnsignedTransaction into the serialized signed
    transaction accepted by the ledger. Key handling stays on their side.
    """

    def sign(self, tx: UnsignedTransaction) -> bytes:
        raise NotImplementedError


class TrackedTransaction:
    """One built transaction moving through the submission state machine."""

    def __init__(self, tx: UnsignedTransaction):
        self.tx = tx
        self.state = TxState.BUILT
        self.signed: Optional[bytes] = None
        self.transaction_id: str = ""
        self.attempts = 0

    def __repr__(self) -> str:
        return (f"TrackedTransaction({self.tx.body_hash[:16]}..., "
                f"state={self.state.value}, id={self.transaction_id or '-'})")


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, LedgerError) and exc.transient


class SubmissionTracker:
    """
    Submission and confirmation tracker.

    Usage:
        tracker = SubmissionTracker(client, signer)
        tracked = TrackedTransaction(tx)
        tx_id = tracker.submit(tracked)
        outcome = tracker.await_confirmation(tx_id, timeout=300)
        if outcome.status == ConfirmationStatus.TIMED_OUT:
            ...reconcile, do not assume failure...
    """

    def __init__(self, client: BlockfrostClient, signer: Signer,
                 max_attempts: int = 5,
                 backoff_min: float = 1.0,
                 backoff_max: float = 30.0,
                 poll_interval: float = 5.0,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        """
        Args:
            client: Ledger client
            signer: Signing capability
            max_attempts: Submission attempt ceiling (transient errors only)
            backoff_min: First backoff delay, seconds
            backoff_max: Backoff delay cap, seconds
            poll_interval: Seconds between confirmation polls
            sleep: Sleep function (injectable for tests)
            clock: Monotonic clock (injectable for tests)
        """
        self.client = client
        self.signer = signer
        self.max_attempts = max_attempts
        self.backoff_min = backoff_min
        self.backoff_max = backoff_max
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._clock = clock

    def sign(self, tracked: TrackedTransaction) -> bytes:
        """Sign exactly once. A second call is a programming error."""
        if tracked.state != TxState.BUILT:
            raise ValueError(f"Cannot sign transaction in state {tracked.state.value}")
        tracked.signed = self.signer.sign(tracked.tx)
        tracked.state = TxState.SIGNED
        return tracked.signed

    def _send(self, tracked: TrackedTransaction) -> str:
        tracked.attempts += 1
        return self.client.submit_tx(tracked.signed)

    def submit(self, tx: Union[UnsignedTransaction, TrackedTransaction]) -> str:
        """
        Sign (if needed) and submit, retrying transient failures.

        Every retry resends the same signed bytes.

        Returns:
            Transaction id

        Raises:
            SubmissionError: transient failures outlasted max_attempts
            RejectedByLedger: ledger refused the transaction (not retried)
        """
        tracked = tx if isinstance(tx, TrackedTransaction) else TrackedTransaction(tx)
        if tracked.state == TxState.BUILT:
            self.sign(tracked)
        elif tracked.state != TxState.SIGNED:
            raise ValueError(f"Cannot submit transaction in state {tracked.state.value}")

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_min, min=self.backoff_min,
                                  max=self.backoff_max),
            retry=retry_if_exception(_is_transient),
            sleep=self._sleep,
            before_sleep=lambda rs: log.warning(
                f"Submit attempt {rs.attempt_number} failed: {rs.outcome.exception()}, retrying"),
        )

        try:
            tx_id = retrying(self._send, tracked)
        except RetryError as e:
            last = e.last_attempt.exception()
            raise SubmissionError(
                f"Submission failed after {tracked.attempts} attempts: {last}",
                attempts=tracked.attempts
            )
        except LedgerError as e:
            if e.status_code in (401, 403):
                raise ConfigurationError(f"Ledger API refused credentials: {e.message}")
            tracked.state = TxState.REJECTED
            log.error(f"Ledger rejected tx {tracked.tx.body_hash[:16]}...: {e.message}")
            raise RejectedByLedger(e.message, status_code=e.status_code)

        tracked.transaction_id = tx_id
        tracked.state = TxState.SUBMITTED
        log.info(f"Submitted tx {tx_id[:16]}... after {tracked.attempts} attempt(s)")
        return tx_id

    def await_confirmation(self, transaction: Union[str, TrackedTransaction],
                           timeout: float) -> Confirmation:
        """
        Poll until the transaction is in a block or timeout elapses.

        Args:
            transaction: Submitted transaction id, or its TrackedTransaction
                (whose state is then moved to CONFIRMED or TIMED_OUT)
            timeout: Seconds to wait

        Returns:
            Confirmation with CONFIRMED (and ledger position) or TIMED_OUT;
            REJECTED for a TrackedTransaction that submit() saw rejected

        Raises:
            LedgerError: non-transient failure of the status query
        """
        tracked = transaction if isinstance(transaction, TrackedTransaction) else None
        transaction_id = tracked.transaction_id if tracked else transaction
        if tracked and tracked.state == TxState.REJECTED:
            return Confirmation(ConfirmationStatus.REJECTED,
                                tracked.transaction_id or tracked.tx.body_hash)

        deadline = self._clock() + timeout
        while True:
            try:
                info = self.client.tx_info(transaction_id)
            except LedgerError as e:
                if not e.transient:
                    raise
                log.warning(f"Confirmation poll for {transaction_id[:16]}... failed: {e}")
                info = None

            position = LedgerPosition.from_tx_info(info) if info else None
            if position is not None:
                log.info(f"Confirmed tx {transaction_id[:16]}... at height {position.block_height}")
                if tracked:
                    tracked.state = TxState.CONFIRMED
                return Confirmation(ConfirmationStatus.CONFIRMED, transaction_id, position)

            remaining = deadline - self._clock()
            if remaining <= 0:
                log.warning(f"Tx {transaction_id[:16]}... not confirmed after {timeout}s")
                if tracked:
                    tracked.state = TxState.TIMED_OUT
                return Confirmation(ConfirmationStatus.TIMED_OUT, transaction_id)
            self._sleep(min(self.poll_interval, remaining))
