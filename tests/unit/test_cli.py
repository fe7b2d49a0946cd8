"""Test CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import patch

from typer.testing import CliRunner

from genesis import __version__
from genesis.cli import app
from genesis.store import InMemoryStore

if TYPE_CHECKING:
    from tests.conftest import RecordingStore

runner = CliRunner()


def _flat(text: str) -> str:
    """Collapse rich line wrapping so substring checks are width independent."""
    return " ".join(text.split())

SCRIPT = """\
users = collection("users", {"allow_mult": True})
users("alice", {"name": "Alice"})
link(["users", "bob"], "friend")
users("bob", {"name": "Bob"})
"""


def test_version_command() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert f"v{__version__}" in _flat(result.stdout)


def test_no_args_shows_help() -> None:
    result = runner.invoke(app, [])
    # no_args_is_help=True returns exit code 2 (not 0 like --help)
    assert result.exit_code == 2
    assert "genesis" in _flat(result.stdout)


# --- show ---


def test_show_prints_graph(write_script) -> None:
    result = runner.invoke(app, ["show", str(write_script(SCRIPT))])

    assert result.exit_code == 0
    assert "alice" in _flat(result.stdout)
    assert "1 collection(s), 2 record(s), 2 variant(s), 1 link(s)" in _flat(result.stdout)


def test_show_duplicate_payload_is_fatal(write_script) -> None:
    path = write_script('c = collection("c")\nc("k", {"a": 1})\nc("k", {"a": 2})\n')
    result = runner.invoke(app, ["show", str(path)])

    assert result.exit_code == 1
    assert "Error:" in _flat(result.stdout)
    assert "c/k" in _flat(result.stdout)


def test_show_script_runtime_error_is_fatal(write_script) -> None:
    path = write_script('users = collection("users")\nusers("a", {"x": undefined_name})\n')
    result = runner.invoke(app, ["show", str(path)])

    assert result.exit_code == 1
    assert not isinstance(result.exception, NameError)
    assert "Error:" in _flat(result.stdout)
    assert "NameError" in _flat(result.stdout)


def test_show_missing_script(tmp_path) -> None:
    result = runner.invoke(app, ["show", str(tmp_path / "nope.py")])
    assert result.exit_code == 1
    assert "File not found" in _flat(result.stdout)


# --- dry-run ---


def test_dry_run_reports_writes(write_script) -> None:
    result = runner.invoke(app, ["dry-run", str(write_script(SCRIPT))])

    assert result.exit_code == 0
    assert "Saved 2 variant(s) of 2 record(s)" in _flat(result.stdout)
    assert "configured" in _flat(result.stdout)


# --- seed ---


def test_seed_requires_arguments() -> None:
    result = runner.invoke(app, ["seed", "localhost:8098"])
    assert result.exit_code == 2


def test_seed_writes_into_store(write_script) -> None:
    store = InMemoryStore()
    with patch("genesis.cli._open_store", return_value=store) as open_store:
        result = runner.invoke(app, ["seed", "localhost:8098", str(write_script(SCRIPT))])

    assert result.exit_code == 0, result.stdout
    open_store.assert_called_once_with("http://localhost:8098")
    assert store.values("users", "alice") == [{"name": "Alice"}]
    assert store.links("users", "alice") == [[{"bucket": "users", "key": "bob", "tag": "friend"}]]
    assert store.collections == {"users": {"allow_mult": True}}


def test_seed_bad_address(write_script) -> None:
    result = runner.invoke(app, ["seed", "host:port", str(write_script(SCRIPT))])
    assert result.exit_code == 1
    assert "invalid port" in _flat(result.stdout)


def test_seed_store_failures_keep_exit_zero(write_script, store: RecordingStore) -> None:
    store.fail_get.add(("users", "alice"))
    with patch("genesis.cli._open_store", return_value=store):
        result = runner.invoke(app, ["seed", "riak:8098", str(write_script(SCRIPT))])

    assert result.exit_code == 0
    assert "1 failure(s)" in _flat(result.stdout)


def test_seed_strict_exits_nonzero_on_failure(write_script, store: RecordingStore) -> None:
    store.fail_get.add(("users", "alice"))
    with patch("genesis.cli._open_store", return_value=store):
        result = runner.invoke(app, ["seed", "--strict", "riak:8098", str(write_script(SCRIPT))])

    assert result.exit_code == 1


def test_seed_fail_fast_aborts(write_script, store: RecordingStore) -> None:
    store.fail_collections.add("users")
    with patch("genesis.cli._open_store", return_value=store):
        result = runner.invoke(
            app, ["seed", "--fail-fast", "riak:8098", str(write_script(SCRIPT))]
        )

    assert result.exit_code == 1
    assert "aborted" in _flat(result.stdout)
    assert store.saves == []


def test_seed_uses_config_file(write_script, tmp_path, store: RecordingStore) -> None:
    config = tmp_path / "genesis.yaml"
    config.write_text("strict: true\n")
    store.fail_get.add(("users", "bob"))
    with patch("genesis.cli._open_store", return_value=store):
        result = runner.invoke(
            app, ["seed", "--config", str(config), "riak:8098", str(write_script(SCRIPT))]
        )

    assert result.exit_code == 1


def test_seed_bad_config(write_script, tmp_path) -> None:
    config = tmp_path / "genesis.yaml"
    config.write_text("concurrency: 0\n")
    result = runner.invoke(
        app, ["seed", "--config", str(config), "riak:8098", str(write_script(SCRIPT))]
    )
    assert result.exit_code == 1
    assert "Error:" in _flat(result.stdout)
