"""Test configuration for pytest."""

import logging

import pytest

from notamperdata.anchor_types import ImmutableRecord
from tests.helpers.fakes import A1B2, FakeClock, FakeLedger, FakeSigner


@pytest.fixture(autouse=True)
def configure_test_logging():
    """Keep test output quiet."""
    logging.getLogger().setLevel(logging.WARNING)
    logging.getLogger("notamperdata").setLevel(logging.WARNING)


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def signer():
    return FakeSigner()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def record():
    return ImmutableRecord(
        hash=A1B2,
        subject_id="form-1",
        instance_id="resp-1",
        observed_at_millis=1700000000000,
        schema_version="1.0",
    )
