import pytest

from notamperdata.anchor_types import ConfirmationStatus, FundingUnit, TxState
from notamperdata.errors import (
    ConfigurationError,
    RejectedByLedger,
    SubmissionError,
)
from notamperdata.ledger_client import LedgerError
from notamperdata.submission import SubmissionTracker, TrackedTransaction
from notamperdata.tx_builder import TransactionBuilder
from tests.helpers.fakes import AGENT, SCRIPT, FakeLedger

LOCK = 5_000_000


@pytest.fixture
def funded(ledger):
    ledger.fund(AGENT, "f" * 64, 0, 20_000_000)
    return ledger


@pytest.fixture
def tx(record):
    return TransactionBuilder(AGENT).build(SCRIPT, LOCK, record, FundingUnit("f" * 64, 0, 20_000_000))


@pytest.fixture
def tracker(funded, signer, clock):
    return SubmissionTracker(funded, signer, max_attempts=3, sleep=clock.sleep, clock=clock)


class RefusingLedger(FakeLedger):
    def __init__(self, status_code):
        super().__init__()
        self.status_code = status_code

    def submit_tx(self, signed_tx):
        self.submit_calls += 1
        raise LedgerError(self.status_code, "refused")


class TestSign:
    def test_signs_exactly_once(self, tracker, signer, tx):
        tracked = TrackedTransaction(tx)
        tracker.sign(tracked)
        assert tracked.state == TxState.SIGNED
        with pytest.raises(ValueError):
            tracker.sign(tracked)
        assert signer.calls == 1


class TestSubmit:
    def test_submit_built_transaction(self, tracker, funded, signer, tx):
        tracked = TrackedTransaction(tx)
        tx_id = tracker.submit(tracked)

        assert tracked.state == TxState.SUBMITTED
        assert tracked.transaction_id == tx_id
        assert tracked.attempts == 1
        assert signer.calls == 1
        assert funded.tx_info(tx_id) is not None

    def test_accepts_unsigned_transaction(self, tracker, tx):
        assert len(tracker.submit(tx)) == 64

    def test_transient_failures_are_retried(self, tracker, funded, signer, clock, tx):
        funded.transient_failures = 2
        tracked = TrackedTransaction(tx)
        tracker.submit(tracked)

        assert tracked.attempts == 3
        assert funded.submit_calls == 3
        # same signed bytes every attempt
        assert signer.calls == 1
        assert len(clock.sleeps) == 2
        assert clock.sleeps[0] <= clock.sleeps[1] <= tracker.backoff_max

    def test_gives_up_after_max_attempts(self, tracker, funded, tx):
        funded.transient_failures = 10
        tracked = TrackedTransaction(tx)
        with pytest.raises(SubmissionError) as exc:
            tracker.submit(tracked)

        assert exc.value.attempts == 3
        assert exc.value.safe_to_retry
        assert funded.submit_calls == 3

    def test_rejection_is_not_retried(self, signer, clock, tx):
        ledger = RefusingLedger(400)
        tracker = SubmissionTracker(ledger, signer, sleep=clock.sleep, clock=clock)
        tracked = TrackedTransaction(tx)
        with pytest.raises(RejectedByLedger) as exc:
            tracker.submit(tracked)

        assert exc.value.status_code == 400
        assert tracked.state == TxState.REJECTED
        assert ledger.submit_calls == 1
        assert clock.sleeps == []

    def test_spent_input_is_rejected(self, tracker, funded, tx):
        del funded.utxos[AGENT]["f" * 64 + "#0"]
        with pytest.raises(RejectedByLedger):
            tracker.submit(tx)

    @pytest.mark.parametrize("status", [401, 403])
    def test_bad_credentials(self, signer, clock, tx, status):
        tracker = SubmissionTracker(RefusingLedger(status), signer, sleep=clock.sleep, clock=clock)
        with pytest.raises(ConfigurationError):
            tracker.submit(tx)

    def test_cannot_resubmit_submitted(self, tracker, tx):
        tracked = TrackedTransaction(tx)
        tracker.submit(tracked)
        with pytest.raises(ValueError):
            tracker.submit(tracked)


class TestAwaitConfirmation:
    def test_confirmed(self, tracker, funded, tx):
        tracked = TrackedTransaction(tx)
        tx_id = tracker.submit(tracked)
        outcome = tracker.await_confirmation(tracked, timeout=60)

        assert tracked.state == TxState.CONFIRMED
        assert outcome.transaction_id == tx_id
        assert outcome.status == ConfirmationStatus.CONFIRMED
        assert outcome.confirmed
        assert outcome.position.block_height == funded.height

    def test_confirms_after_polling(self, signer, clock, record):
        ledger = FakeLedger(auto_confirm=False)
        ledger.fund(AGENT, "f" * 64, 0, 20_000_000)
        tracker = SubmissionTracker(ledger, signer, poll_interval=5, sleep=clock.sleep, clock=clock)
        tx = TransactionBuilder(AGENT).build(SCRIPT, LOCK, record, FundingUnit("f" * 64, 0, 20_000_000))
        tx_id = tracker.submit(tx)

        polls = []
        original = ledger.tx_info

        def tx_info(tx_hash):
            polls.append(tx_hash)
            if len(polls) == 3:
                ledger.confirm_pending()
            return original(tx_hash)

        ledger.tx_info = tx_info
        outcome = tracker.await_confirmation(tx_id, timeout=60)

        assert outcome.confirmed
        assert clock.sleeps == [5, 5]

    def test_timed_out(self, signer, clock):
        ledger = FakeLedger(auto_confirm=False)
        tracker = SubmissionTracker(ledger, signer, poll_interval=5, sleep=clock.sleep, clock=clock)
        outcome = tracker.await_confirmation("e" * 64, timeout=12)

        assert outcome.status == ConfirmationStatus.TIMED_OUT
        assert outcome.position is None
        assert clock.now == 12
        assert clock.sleeps == [5, 5, 2]

    def test_transient_poll_errors_keep_polling(self, signer, clock):
        ledger = FakeLedger(auto_confirm=False)
        ledger.file("e" * 64, {}, block_height=150)
        calls = []
        original = ledger.tx_info

        def tx_info(tx_hash):
            calls.append(tx_hash)
            if len(calls) == 1:
                raise LedgerError(-1, "Connection failed")
            return original(tx_hash)

        ledger.tx_info = tx_info
        tracker = SubmissionTracker(ledger, signer, sleep=clock.sleep, clock=clock)
        outcome = tracker.await_confirmation("e" * 64, timeout=60)

        assert outcome.confirmed
        assert outcome.position.block_height == 150
        assert len(calls) == 2

    def test_non_transient_poll_error_raises(self, signer, clock):
        ledger = FakeLedger()

        def tx_info(tx_hash):
            raise LedgerError(400, "Invalid hash")

        ledger.tx_info = tx_info
        tracker = SubmissionTracker(ledger, signer, sleep=clock.sleep, clock=clock)
        with pytest.raises(LedgerError):
            tracker.await_confirmation("e" * 64, timeout=60)

    def test_rejected_transaction_is_not_polled(self, signer, clock, tx):
        ledger = RefusingLedger(400)
        tracker = SubmissionTracker(ledger, signer, sleep=clock.sleep, clock=clock)
        tracked = TrackedTransaction(tx)
        with pytest.raises(RejectedByLedger):
            tracker.submit(tracked)

        polls = []
        ledger.tx_info = lambda tx_hash: polls.append(tx_hash)
        outcome = tracker.await_confirmation(tracked, timeout=60)

        assert outcome.status == ConfirmationStatus.REJECTED
        assert not outcome.confirmed
        assert outcome.transaction_id == tx.body_hash
        assert polls == []
        assert clock.sleeps == []
