import pytest

from notamperdata.anchor_types import ImmutableRecord, LedgerPosition, VerificationResult
from notamperdata.errors import SchemaError
from notamperdata.record_codec import encode_payload
from notamperdata.verifier import HashVerifier
from tests.helpers.fakes import A1B2


def tx(n: int) -> str:
    return f"{n:064x}"


@pytest.fixture
def verifier(ledger):
    return HashVerifier(ledger)


class TestFindByHash:
    def test_not_anchored(self, verifier, ledger, record):
        ledger.file(tx(1), encode_payload(record), block_height=120)
        result = verifier.find_by_hash("0" * 64)
        assert result == VerificationResult.not_found()
        assert result.transaction_id is None
        assert result.record is None
        assert result.ledger_position is None

    def test_empty_ledger(self, verifier):
        assert not verifier.find_by_hash(A1B2).matched

    def test_match(self, verifier, ledger, record):
        ledger.file(tx(1), encode_payload(record), block_height=120, index=3)
        result = verifier.find_by_hash(A1B2)

        assert result.matched
        assert result.transaction_id == tx(1)
        assert result.record == record
        assert result.ledger_position == LedgerPosition(120, 3, 1700000120)

    def test_earliest_anchor_wins(self, verifier, ledger, record):
        """Later duplicates never displace the first anchoring."""
        later = ImmutableRecord(A1B2, "form-1", "resp-2", 1700000005000)
        ledger.file(tx(2), encode_payload(later), block_height=130, index=0)
        ledger.file(tx(1), encode_payload(record), block_height=120, index=5)
        ledger.file(tx(3), encode_payload(later), block_height=120, index=7)

        result = verifier.find_by_hash(A1B2)
        assert result.transaction_id == tx(1)
        assert result.record.instance_id == "resp-1"

    def test_same_block_ordered_by_index(self, verifier, ledger, record):
        ledger.file(tx(1), encode_payload(record), block_height=120, index=4)
        ledger.file(tx(2), encode_payload(record), block_height=120, index=1)
        assert verifier.find_by_hash(A1B2).transaction_id == tx(2)

    def test_idempotent(self, verifier, ledger, record):
        ledger.file(tx(1), encode_payload(record), block_height=120)
        assert verifier.find_by_hash(A1B2) == verifier.find_by_hash(A1B2)

    def test_target_case_insensitive(self, verifier, ledger, record):
        ledger.file(tx(1), encode_payload(record), block_height=120)
        assert verifier.find_by_hash(A1B2.upper()).matched

    @pytest.mark.parametrize("target", ["", "a1b2", "z" * 64, None])
    def test_invalid_target(self, verifier, target):
        with pytest.raises(SchemaError):
            verifier.find_by_hash(target)


class TestScanning:
    def test_other_labels_are_ignored(self, verifier, ledger, record):
        ledger.leak_other_labels = True
        ledger.file(tx(1), encode_payload(record), label=674, block_height=110)
        ledger.file(tx(2), encode_payload(record), block_height=120)

        result = verifier.find_by_hash(A1B2)
        assert result.transaction_id == tx(2)

    def test_only_other_labels(self, verifier, ledger, record):
        ledger.leak_other_labels = True
        ledger.file(tx(1), encode_payload(record), label=674, block_height=110)
        assert not verifier.find_by_hash(A1B2).matched

    def test_undecodable_entries_are_skipped(self, verifier, ledger, record):
        ledger.file(tx(1), "not a record", block_height=100)
        ledger.file(tx(2), {"hash": A1B2}, block_height=101)
        ledger.file(tx(3), dict(encode_payload(record), observed_at="later"), block_height=102)
        ledger.file(tx(4), encode_payload(record), block_height=130)

        assert verifier.find_by_hash(A1B2).transaction_id == tx(4)

    @pytest.mark.parametrize("observed", ["--1", "²", "١٢"])
    def test_malformed_timestamp_does_not_break_lookup(self, verifier, ledger, record, observed):
        """Anyone can file under the label; a bad entry is skipped, not fatal."""
        ledger.file(tx(1), dict(encode_payload(record), hash="0" * 64, observed_at=observed),
                    block_height=100)
        ledger.file(tx(2), dict(encode_payload(record), observed_at=observed), block_height=101)
        ledger.file(tx(3), encode_payload(record), block_height=110)

        assert verifier.find_by_hash(A1B2).transaction_id == tx(3)
        assert not verifier.find_by_hash("0" * 64).matched

    def test_unconfirmed_entries_are_skipped(self, verifier, ledger, record):
        ledger.file(tx(1), encode_payload(record))
        assert not verifier.find_by_hash(A1B2).matched

        ledger.file(tx(2), encode_payload(record), block_height=140)
        assert verifier.find_by_hash(A1B2).transaction_id == tx(2)

    def test_positions_fetched_only_for_matches(self, verifier, ledger, record):
        other = ImmutableRecord("0" * 64, "form-1", "resp-9", 1)
        for n in range(5):
            ledger.file(tx(n), encode_payload(other), block_height=100 + n)
        ledger.file(tx(9), encode_payload(record), block_height=200)

        looked_up = []
        original = ledger.tx_info

        def tx_info(tx_hash):
            looked_up.append(tx_hash)
            return original(tx_hash)

        ledger.tx_info = tx_info
        verifier.find_by_hash(A1B2)
        assert looked_up == [tx(9)]
