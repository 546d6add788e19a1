"""Configuration for the quality gate.

Values are resolved once, lowest to highest precedence: built-in defaults,
the ``[gate]`` table of ``quality-gate.toml``, environment variables, then
explicit overrides from the command line.  The result is a frozen
``GateConfig`` handed to the orchestrator.
"""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

try:
    import tomllib
except ImportError:  # Python < 3.11
    import tomli as tomllib  # type: ignore[no-redef]

from scripts.lib.gate_errors import GateConfigError

ROOT = Path(__file__).resolve().parent.parent.parent

DEFAULT_CATALOG = "phase2-test-scenarios.csv"
DEFAULT_SOURCE_DIR = "src"
DEFAULT_MIN_TOTAL = 20
DEFAULT_MIN_AUTOMATED = 17
DEFAULT_MIN_LINES = 85.0
DEFAULT_CONFIG_FILE = "quality-gate.toml"
DEFAULT_COVERAGE_COMMAND: tuple[str, ...] = (
    "cargo", "llvm-cov",
    "--workspace",
    "--all-features",
    "--all-targets",
    "--summary-only",
    "--json",
)

SEARCH_STRATEGIES = ("scan", "rg")
LANGUAGES = ("rust", "python")

# environment variable -> GateConfig field
ENV_VARS = {
    "SCENARIO_CATALOG": "catalog_path",
    "SCENARIO_SOURCE_DIR": "source_dir",
    "MIN_TOTAL": "min_total",
    "MIN_AUTOMATED": "min_automated",
    "MIN_LINES": "min_lines",
    "SCENARIO_SEARCH": "search_strategy",
    "SCENARIO_LANGUAGE": "language",
    "COVERAGE_COMMAND": "coverage_command",
    "COVERAGE_TIMEOUT": "coverage_timeout",
}


@dataclass(frozen=True)
class GateConfig:
    root: Path = ROOT
    catalog_path: Path = ROOT / DEFAULT_CATALOG
    source_dir: Path = ROOT / DEFAULT_SOURCE_DIR
    min_total: int = DEFAULT_MIN_TOTAL
    min_automated: int = DEFAULT_MIN_AUTOMATED
    min_lines: float = DEFAULT_MIN_LINES
    search_strategy: str = "scan"
    language: str = "rust"
    coverage_command: tuple[str, ...] = field(default=DEFAULT_COVERAGE_COMMAND)
    coverage_timeout: float | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "root": str(self.root),
            "catalog_path": str(self.catalog_path),
            "source_dir": str(self.source_dir),
            "min_total": self.min_total,
            "min_automated": self.min_automated,
            "min_lines": self.min_lines,
            "search_strategy": self.search_strategy,
            "language": self.language,
            "coverage_command": list(self.coverage_command),
            "coverage_timeout": self.coverage_timeout,
        }


# --- Value coercion ---

def _as_count(name: str, raw: Any) -> int:
    if isinstance(raw, bool):
        raise GateConfigError(f"{name} must be an integer, got {raw!r}")
    try:
        value = int(str(raw).strip())
    except ValueError:
        raise GateConfigError(f"{name} must be an integer, got {raw!r}") from None
    if value < 0:
        raise GateConfigError(f"{name} must be >= 0, got {value}")
    return value


def _as_percentage(name: str, raw: Any) -> float:
    if isinstance(raw, bool):
        raise GateConfigError(f"{name} must be a number, got {raw!r}")
    try:
        value = float(str(raw).strip().rstrip("%"))
    except ValueError:
        raise GateConfigError(f"{name} must be a number, got {raw!r}") from None
    if not 0.0 <= value <= 100.0:
        raise GateConfigError(f"{name} must be between 0 and 100, got {value}")
    return value


def _as_timeout(name: str, raw: Any) -> float | None:
    text = str(raw).strip().lower()
    if text in ("", "0", "none"):
        return None
    try:
        value = float(text)
    except ValueError:
        raise GateConfigError(f"{name} must be a number of seconds, got {raw!r}") from None
    if value <= 0:
        return None
    return value


def _as_choice(name: str, raw: Any, choices: tuple[str, ...]) -> str:
    value = str(raw).strip().lower()
    if value not in choices:
        raise GateConfigError(f"{name} must be one of {', '.join(choices)}, got {raw!r}")
    return value


def _as_command(name: str, raw: Any) -> tuple[str, ...]:
    if isinstance(raw, (list, tuple)):
        parts = tuple(str(p) for p in raw)
    else:
        parts = tuple(shlex.split(str(raw)))
    if not parts:
        raise GateConfigError(f"{name} must not be empty")
    return parts


def _as_path(root: Path, raw: Any) -> Path:
    path = Path(str(raw).strip())
    return path if path.is_absolute() else root / path


def _coerce(root: Path, name: str, field_name: str, raw: Any) -> Any:
    if field_name in ("catalog_path", "source_dir"):
        return _as_path(root, raw)
    if field_name in ("min_total", "min_automated"):
        return _as_count(name, raw)
    if field_name == "min_lines":
        return _as_percentage(name, raw)
    if field_name == "search_strategy":
        return _as_choice(name, raw, SEARCH_STRATEGIES)
    if field_name == "language":
        return _as_choice(name, raw, LANGUAGES)
    if field_name == "coverage_command":
        return _as_command(name, raw)
    if field_name == "coverage_timeout":
        return _as_timeout(name, raw)
    raise GateConfigError(f"unknown configuration key: {name}")


# --- Loading ---

def load_toml_table(path: Path) -> dict[str, Any]:
    """Return the ``[gate]`` table of *path*, or ``{}`` when absent."""
    try:
        with open(path, "rb") as handle:
            document = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise GateConfigError(f"invalid TOML in {path}: {exc}") from exc
    table = document.get("gate", {})
    if not isinstance(table, dict):
        raise GateConfigError(f"[gate] in {path} must be a table")
    return table


def load_config(
    root: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    config_file: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> GateConfig:
    """Resolve a ``GateConfig`` from every configuration source."""
    root = (root or ROOT).resolve()
    env = os.environ if environ is None else environ
    values: dict[str, Any] = {
        "root": root,
        "catalog_path": root / DEFAULT_CATALOG,
        "source_dir": root / DEFAULT_SOURCE_DIR,
    }

    if config_file is None:
        explicit = env.get("QUALITY_GATE_CONFIG", "").strip()
        config_file = _as_path(root, explicit) if explicit else root / DEFAULT_CONFIG_FILE
        required = bool(explicit)
    else:
        required = True
    if config_file.is_file():
        for key, raw in load_toml_table(config_file).items():
            values[key] = _coerce(root, f"{config_file.name}:{key}", key, raw)
    elif required:
        raise GateConfigError(f"configuration file not found: {config_file}")

    for env_name, field_name in ENV_VARS.items():
        raw = env.get(env_name)
        if raw is None or raw.strip() == "":
            continue
        values[field_name] = _coerce(root, env_name, field_name, raw)

    for key, raw in (overrides or {}).items():
        if raw is None:
            continue
        values[key] = _coerce(root, key, key, raw)

    return GateConfig(**values)
