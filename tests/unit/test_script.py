"""Tests for running definition scripts."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from genesis.graph import BuilderSession, DuplicatePayloadError, Link, NoActiveTargetError
from genesis.script import DefinitionScriptError, build_graph, run_definition

if TYPE_CHECKING:
    from pathlib import Path

PY_SCRIPT = """\
users = bucket("users", {"allow_mult": True})
alice = users("alice", {"name": "Alice"})
link(["users", "bob"], "friend")
users("bob", lambda p: p.update(name="Bob"))
link(alice)

col = collection("col")
col("c", {"v": 1})
sibling({"v": 2})
link(ByPair("users", "alice"), "author")
"""

YAML_DOC = """\
collections:
  users:
    properties:
      allow_mult: true
    records:
      alice:
        payload: {name: Alice}
        links:
          - {bucket: users, key: bob, tag: friend}
      bob:
        payload: {name: Bob}
        links: [[users, alice]]
  col:
    records:
      c:
        payload: {v: 1}
        siblings:
          - payload: {v: 2}
            links:
              - {collection: users, key: alice, tag: author}
"""


def _assert_example_graph(graph) -> None:
    users = graph.collections["users"]
    assert users.properties == {"allow_mult": True}
    alice = users.records["alice"]
    bob = users.records["bob"]
    assert alice.variants[0].payload == {"name": "Alice"}
    assert alice.variants[0].links == [Link("users", "bob", "friend")]
    assert bob.variants[0].payload == {"name": "Bob"}
    assert bob.variants[0].links == [Link("users", "alice")]

    c = graph.collections["col"].records["c"]
    assert [v.payload for v in c.variants] == [{"v": 1}, {"v": 2}]
    assert c.variants[0].links == []
    assert c.variants[1].links == [Link("users", "alice", "author")]


class TestPythonScripts:
    def test_builds_graph(self, write_script) -> None:
        graph = build_graph(write_script(PY_SCRIPT))
        _assert_example_graph(graph)

    def test_builder_errors_propagate(self, write_script) -> None:
        path = write_script('users = collection("users")\nusers("a", {})\nusers("a", {"x": 1})\n')
        with pytest.raises(DuplicatePayloadError):
            build_graph(path)

    def test_link_first_fails(self, write_script) -> None:
        with pytest.raises(NoActiveTargetError):
            build_graph(write_script('link(["users", "bob"])\n'))

    def test_syntax_error_is_script_error(self, write_script) -> None:
        with pytest.raises(DefinitionScriptError):
            build_graph(write_script("users = (\n"))

    def test_runtime_error_is_script_error(self, write_script) -> None:
        path = write_script('users = collection("users")\nusers("a", {"x": undefined_name})\n')
        with pytest.raises(DefinitionScriptError, match="NameError") as exc_info:
            build_graph(path)
        assert exc_info.value.path == path
        assert isinstance(exc_info.value.__cause__, NameError)

    def test_setup_callback_error_is_script_error(self, write_script) -> None:
        path = write_script('collection("users")("a", lambda p: p["missing"])\n')
        with pytest.raises(DefinitionScriptError, match="KeyError"):
            build_graph(path)

    def test_runs_into_given_session(self, write_script) -> None:
        session = BuilderSession()
        run_definition(write_script('collection("users")("alice")\n'), session)
        assert "alice" in session.graph.collections["users"].records
        assert not session.finished


class TestYamlDocuments:
    def test_builds_same_graph(self, write_script) -> None:
        graph = build_graph(write_script(YAML_DOC, "genesis.yaml"))
        _assert_example_graph(graph)

    def test_yml_suffix(self, write_script) -> None:
        graph = build_graph(write_script("collections: {}\n", "genesis.yml"))
        assert graph.collections == {}

    def test_empty_file(self, write_script) -> None:
        with pytest.raises(DefinitionScriptError, match="Empty file"):
            build_graph(write_script("", "genesis.yaml"))

    def test_invalid_yaml(self, write_script) -> None:
        with pytest.raises(DefinitionScriptError, match="invalid YAML"):
            build_graph(write_script("collections: [unclosed\n", "genesis.yaml"))

    def test_unknown_field_rejected(self, write_script) -> None:
        doc = "collections:\n  users:\n    recs: {}\n"
        with pytest.raises(DefinitionScriptError):
            build_graph(write_script(doc, "genesis.yaml"))

    def test_bad_link_pair_rejected(self, write_script) -> None:
        doc = (
            "collections:\n  users:\n    records:\n      alice:\n"
            "        links: [[users]]\n"
        )
        with pytest.raises(DefinitionScriptError):
            build_graph(write_script(doc, "genesis.yaml"))


class TestScriptFiles:
    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(DefinitionScriptError, match="File not found"):
            build_graph(tmp_path / "missing.py")

    def test_unsupported_suffix(self, write_script) -> None:
        with pytest.raises(DefinitionScriptError, match="Unsupported file type"):
            build_graph(write_script("{}", "genesis.json"))

    def test_error_carries_path(self, tmp_path: Path) -> None:
        path = tmp_path / "missing.yaml"
        with pytest.raises(DefinitionScriptError) as exc_info:
            build_graph(path)
        assert exc_info.value.path == path
