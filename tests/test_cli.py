import json

import pytest

from notamperdata import cli
from notamperdata.record_codec import encode_payload
from tests.helpers.fakes import A1B2, AGENT


@pytest.fixture
def env(tmp_path, monkeypatch, ledger):
    monkeypatch.setenv("BLOCKFROST_PROJECT_ID", "previewTEST")
    monkeypatch.setenv("CARDANO_NETWORK", "Preview")
    monkeypatch.setenv("ANCHOR_AGENT_ADDRESS", AGENT)
    monkeypatch.setattr(cli, "BlockfrostClient", lambda url, project_id: ledger)
    env_file = tmp_path / ".env"
    env_file.write_text("")
    return ["--env-file", str(env_file)]


def test_verify_match(env, ledger, record, capsys):
    ledger.file("cd" * 32, encode_payload(record), block_height=120)
    assert cli.main(env + ["verify", A1B2]) == 0

    out = json.loads(capsys.readouterr().out)
    assert out["matched"] is True
    assert out["transaction_id"] == "cd" * 32
    assert out["record"]["subject_id"] == "form-1"
    assert out["ledger_position"]["block_height"] == 120


def test_verify_no_match(env, capsys):
    assert cli.main(env + ["verify", "0" * 64]) == 1
    assert json.loads(capsys.readouterr().out)["matched"] is False


def test_verify_bad_hash(env):
    assert cli.main(env + ["verify", "xyz"]) == 2


def test_holdings(env, ledger, capsys):
    ledger.fund(AGENT, "ab" * 32, 0, 7_500_000)
    assert cli.main(env + ["holdings"]) == 0
    out = capsys.readouterr().out
    assert f"{'ab' * 32}#0" in out
    assert "7.500000 ADA available" in out


def test_address(env, tmp_path, capsys):
    blueprint = tmp_path / "plutus.json"
    blueprint.write_text(json.dumps({
        "preamble": {"plutusVersion": "v2"},
        "validators": [{
            "title": "notamperdata_registry.notamperdata_registry.spend",
            "compiledCode": "49480100002221200101",
            "hash": "ab" * 28,
        }],
    }))
    assert cli.main(env + ["address", "--blueprint", str(blueprint)]) == 0
    assert capsys.readouterr().out.strip().startswith("addr_test1")


def test_address_without_blueprint(env, tmp_path):
    assert cli.main(env + ["address", "--blueprint", str(tmp_path / "missing.json")]) == 2


def test_missing_project_id(env, monkeypatch):
    monkeypatch.delenv("BLOCKFROST_PROJECT_ID")
    assert cli.main(env + ["verify", A1B2]) == 2
