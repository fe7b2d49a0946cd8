"""Run definition scripts against a builder session.

Two formats are accepted:

- ``.py`` scripts are executed once with the session's primitives
  (``collection``, ``bucket``, ``sibling``, ``link``, ...) as globals.
- ``.yaml`` / ``.yml`` documents are validated with
  :class:`~genesis.models.DefinitionDocument` and replayed through the same
  primitives.

Declaration errors raised by the builder propagate unchanged; problems with
the file itself become :class:`DefinitionScriptError`.
"""

from __future__ import annotations

import runpy
from typing import TYPE_CHECKING

from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from genesis.graph.builder import BuilderSession
from genesis.graph.errors import DefinitionError
from genesis.models import DefinitionDocument
from genesis.observability.logging import get_logger

if TYPE_CHECKING:
    from pathlib import Path

    from genesis.graph.model import Graph

log = get_logger(__name__)

PYTHON_SUFFIXES = (".py",)
YAML_SUFFIXES = (".yaml", ".yml")


class DefinitionScriptError(Exception):
    """Raised when a definition script cannot be read or understood."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to run definition script {path}: {reason}")


def _run_python(path: Path, session: BuilderSession) -> None:
    runpy.run_path(str(path), init_globals=session.namespace(), run_name="__genesis__")


def _load_document(path: Path) -> DefinitionDocument:
    yaml = YAML(typ="safe")
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)
    except YAMLError as e:
        raise DefinitionScriptError(path, f"invalid YAML: {e}") from e

    if data is None:
        raise DefinitionScriptError(path, "Empty file")
    try:
        return DefinitionDocument.model_validate(data)
    except ValidationError as e:
        raise DefinitionScriptError(path, str(e)) from e


def apply_document(document: DefinitionDocument, session: BuilderSession) -> None:
    """Declare everything in *document* through *session*."""
    for name, collection_spec in document.collections.items():
        handle = session.collection(name, collection_spec.properties)
        for key, record_spec in collection_spec.records.items():
            handle(key, record_spec.payload)
            for link in record_spec.links:
                session.link((link.collection, link.key), link.tag)
            for sibling_spec in record_spec.siblings:
                session.sibling(sibling_spec.payload)
                for link in sibling_spec.links:
                    session.link((link.collection, link.key), link.tag)


def run_definition(path: Path, session: BuilderSession) -> None:
    """Execute the definition script at *path* against *session*.

    Raises:
        DefinitionScriptError: If the file is missing, unreadable, of an
            unsupported type, malformed (for YAML), or if a Python script
            raises anything other than a declaration error.
        DefinitionError: If the script declares the graph incorrectly.
    """
    if not path.is_file():
        raise DefinitionScriptError(path, "File not found")

    suffix = path.suffix.lower()
    log.debug("running_definition", path=str(path), format=suffix.lstrip("."))

    if suffix in PYTHON_SUFFIXES:
        try:
            _run_python(path, session)
        except DefinitionError:
            raise
        except (OSError, SyntaxError) as e:
            raise DefinitionScriptError(path, str(e)) from e
        except Exception as e:
            raise DefinitionScriptError(path, f"{type(e).__name__}: {e}") from e
    elif suffix in YAML_SUFFIXES:
        try:
            document = _load_document(path)
        except OSError as e:
            raise DefinitionScriptError(path, str(e)) from e
        apply_document(document, session)
    else:
        supported = ", ".join(PYTHON_SUFFIXES + YAML_SUFFIXES)
        raise DefinitionScriptError(path, f"Unsupported file type (expected {supported})")


def build_graph(path: Path) -> Graph:
    """Run *path* in a fresh session and return the finished graph."""
    session = BuilderSession()
    run_definition(path, session)
    graph = session.finish()
    log.info(
        "graph_built",
        path=str(path),
        collections=len(graph.collections),
        records=graph.record_count,
        variants=graph.variant_count,
        links=graph.link_count,
    )
    return graph
