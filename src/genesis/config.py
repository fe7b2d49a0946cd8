"""Loader configuration loading.

Resolution order for each setting (highest first):
1. CLI flags (applied by the caller via :meth:`LoaderConfig.override`)
2. Environment variables (``GENESIS_*``)
3. Optional YAML config file
4. Defaults
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from ruamel.yaml import YAML

from genesis.loader.loader import DEFAULT_CONCURRENCY, LoadOptions

if TYPE_CHECKING:
    from pathlib import Path

DEFAULT_CONFIG_FILE = "genesis.yaml"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


class ConfigError(Exception):
    """Raised when loader configuration cannot be loaded."""

    def __init__(self, path: Path | None, reason: str) -> None:
        self.path = path
        self.reason = reason
        where = f" at {path}" if path is not None else ""
        super().__init__(f"Invalid genesis configuration{where}: {reason}")


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _parse_timeout(value: Any) -> float | None:
    if value is None or value == "":
        return None
    timeout = float(value)
    if timeout <= 0:
        raise ValueError("timeout must be positive")
    return timeout


def _parse_concurrency(value: Any) -> int:
    concurrency = int(value)
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")
    return concurrency


@dataclass(frozen=True)
class LoaderConfig:
    """Settings for a seed run.

    Attributes:
        concurrency: Records in flight per collection.
        fail_fast: Abort after the first store failure.
        timeout: Seconds after which no new records are started.
        strict: Exit non-zero when any store call failed.
    """

    concurrency: int = DEFAULT_CONCURRENCY
    fail_fast: bool = False
    timeout: float | None = None
    strict: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LoaderConfig:
        """Create config from a dictionary, validating each value.

        Raises:
            ValueError: If a value has the wrong type or range.
            KeyError: If an unknown setting is present.
        """
        known = {"concurrency", "fail_fast", "timeout", "strict"}
        unknown = sorted(set(data) - known)
        if unknown:
            raise KeyError(f"unknown settings: {', '.join(unknown)}")

        return cls(
            concurrency=_parse_concurrency(data.get("concurrency", DEFAULT_CONCURRENCY)),
            fail_fast=_parse_bool(data.get("fail_fast", False)),
            timeout=_parse_timeout(data.get("timeout")),
            strict=_parse_bool(data.get("strict", False)),
        )

    def with_env(self, environ: dict[str, str] | None = None) -> LoaderConfig:
        """Apply ``GENESIS_*`` environment overrides.

        Raises:
            ValueError: If an environment value cannot be parsed.
        """
        env = os.environ if environ is None else environ
        updates: dict[str, Any] = {}
        if env.get("GENESIS_CONCURRENCY"):
            updates["concurrency"] = _parse_concurrency(env["GENESIS_CONCURRENCY"])
        if env.get("GENESIS_TIMEOUT"):
            updates["timeout"] = _parse_timeout(env["GENESIS_TIMEOUT"])
        if "GENESIS_FAIL_FAST" in env:
            updates["fail_fast"] = _parse_bool(env["GENESIS_FAIL_FAST"])
        return replace(self, **updates)

    def override(self, **values: Any) -> LoaderConfig:
        """Return a copy with every non-None keyword applied."""
        return replace(self, **{k: v for k, v in values.items() if v is not None})

    def load_options(self, *, verbose: bool = False) -> LoadOptions:
        return LoadOptions(
            verbose=verbose,
            concurrency=self.concurrency,
            fail_fast=self.fail_fast,
            timeout=self.timeout,
        )


def load_config(
    path: Path | None = None, environ: dict[str, str] | None = None
) -> LoaderConfig:
    """Load configuration from *path* (if given) and the environment.

    Raises:
        ConfigError: If the file is missing or any value is invalid.
    """
    data: dict[str, Any] = {}
    if path is not None:
        if not path.exists():
            raise ConfigError(path, "File not found")
        yaml = YAML(typ="safe")
        try:
            with path.open("r", encoding="utf-8") as f:
                loaded = yaml.load(f)
        except Exception as e:
            raise ConfigError(path, str(e)) from e
        if loaded is not None:
            if not isinstance(loaded, dict):
                raise ConfigError(path, "expected a mapping at the top level")
            data = dict(loaded)

    try:
        return LoaderConfig.from_dict(data).with_env(environ)
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(path, str(e)) from e
