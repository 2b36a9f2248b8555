"""Smoke tests for the dreamjar CLI."""

import json

import pytest
from typer.testing import CliRunner

from dreamjar.cli import app
from dreamjar.store import DreamJarStore

from test_config import ENV_VARS

runner = CliRunner()

COMMIT = "0123456789abcdef0123456789abcdef01234567"


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Isolated working directory and database for CLI runs.

    Returns:
        (invoke, db_path) where invoke runs the app against the temp database
    """
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    (tmp_path / ".git").mkdir()
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DREAMJAR_QUORUM_THRESHOLD", "2")
    monkeypatch.setenv("DREAMJAR_AUDIT_LOG", str(tmp_path / "audit.jsonl"))
    db_path = tmp_path / "dj.sqlite"

    def invoke(*args: str):
        return runner.invoke(app, ["--db", str(db_path), *args])

    return invoke, db_path


def test_init_and_version(cli_env, tmp_path):
    invoke, db_path = cli_env

    result = invoke("init", "--write-config")
    assert result.exit_code == 0
    assert db_path.exists()
    assert (tmp_path / ".dreamjar" / "config.toml").exists()

    result = invoke("version")
    assert result.exit_code == 0
    assert "DreamJar v0.1.0" in result.output


def test_wish_lifecycle(cli_env, tmp_path):
    """Test create, proof, votes and the resulting status through the CLI."""
    invoke, db_path = cli_env

    result = invoke(
        "wish", "create",
        "--creator", "alice",
        "--title", "Ship the parser",
        "--stake", "1000",
        "--deadline", "2099-01-01T00:00:00Z",
        "--method", "repository_commit",
    )
    assert result.exit_code == 0, result.output
    (wish,) = DreamJarStore(db_path).list_wishes()

    payload = json.dumps({"repository_url": "https://github.com/alice/parser", "commit_hash": COMMIT})
    result = invoke("proof", "submit", wish.wish_id, "--user", "alice", "--payload", payload)
    assert result.exit_code == 0, result.output
    assert "pending_verification" in result.output

    assert invoke("vote", "cast", wish.wish_id, "--voter", "bob", "--choice", "yes").exit_code == 0
    result = invoke("vote", "cast", wish.wish_id, "--voter", "carol", "--choice", "yes")
    assert result.exit_code == 0
    assert "approved" in result.output

    assert DreamJarStore(db_path).get_wish(wish.wish_id).status.value == "verified"

    assert invoke("audit", "tail", "--n", "10").exit_code == 0
    audit_lines = (tmp_path / "audit.jsonl").read_text().splitlines()
    assert json.loads(audit_lines[-1])["event_type"] == "verification_resolved"


def test_errors_exit_nonzero(cli_env):
    invoke, _ = cli_env

    result = invoke("wish", "show", "missing")
    assert result.exit_code == 1
    assert "NotFoundError" in result.output

    result = invoke("wish", "create", "--creator", "a", "--title", "t", "--stake", "1", "--deadline", "soon")
    assert result.exit_code == 1
    assert "invalid deadline" in result.output

    result = invoke("proof", "submit", "w", "--user", "a", "--payload", "[1, 2]")
    assert result.exit_code == 1


def test_proposal_and_treasury_commands(cli_env):
    invoke, _ = cli_env

    result = invoke(
        "proposal", "create",
        "--proposer", "alice",
        "--title", "Plant trees",
        "--amount", "500",
        "--beneficiary", "forest-fund",
    )
    assert result.exit_code == 0, result.output
    assert "#1" in result.output

    result = invoke("proposal", "vote", "1", "--voter", "bob", "--for")
    assert result.exit_code == 0, result.output
    assert "1 for / 0 against" in result.output

    result = invoke("proposal", "execute", "1", "--executor", "admin")
    assert result.exit_code == 1
    assert "StateError" in result.output

    result = invoke("treasury", "stats")
    assert result.exit_code == 0
    assert "available funds" in result.output

    assert invoke("leaderboard").exit_code == 0
    assert invoke("reconcile").exit_code == 0
