"""External coverage tool collaborator.

Runs the workspace test suite under a coverage tool (``cargo llvm-cov`` by
default) as one blocking subprocess and extracts a single aggregate
line-coverage percentage from its output.

Two output shapes are understood:

* llvm-cov JSON export (``--json``): ``data[0].totals.lines.percent``.
* A text summary with a ``TOTAL`` row.  llvm-cov prints region, function
  and line percentages in that order, so the third percentage is taken
  when there are at least three; otherwise the last one (coverage.py).
"""

from __future__ import annotations

import json
import logging
import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

from scripts.lib.gate_errors import CoverageMeasurementError, ExternalToolUnavailable

logger = logging.getLogger(__name__)

REMEDIATION = {
    "cargo": "Install the Rust toolchain first (https://rustup.rs).",
    "cargo-llvm-cov": "Install with:\n  cargo install cargo-llvm-cov --locked",
}

CARGO_BUILTINS = frozenset({
    "bench", "build", "check", "doc", "run", "test",
})

_TOTAL_LINE = re.compile(r"^\s*TOTAL\b(.*)$", re.MULTILINE)
_PERCENT = re.compile(r"(\d+(?:\.\d+)?)%")


@dataclass(frozen=True)
class CoverageReport:
    line_percent: float
    covered_lines: int | None
    total_lines: int | None
    command: tuple[str, ...]
    exit_code: int

    def as_dict(self) -> dict[str, Any]:
        return {
            "line_percent": round(self.line_percent, 4),
            "covered_lines": self.covered_lines,
            "total_lines": self.total_lines,
            "command": list(self.command),
            "exit_code": self.exit_code,
        }


def _required_tools(command: Sequence[str]) -> list[str]:
    tools = [command[0]]
    if Path(command[0]).name != "cargo":
        return tools
    # first argument that is neither a flag nor a +toolchain override
    subcommand = next((arg for arg in command[1:] if not arg.startswith(("-", "+"))), None)
    if subcommand and subcommand not in CARGO_BUILTINS:
        tools.append(f"cargo-{subcommand}")
    return tools


def _parse_json_summary(stdout: str) -> tuple[float, int | None, int | None] | None:
    candidates = [stdout.strip()] + [line.strip() for line in reversed(stdout.splitlines())]
    for candidate in candidates:
        if not candidate.startswith("{"):
            continue
        try:
            payload = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        try:
            lines = payload["data"][0]["totals"]["lines"]
            percent = float(lines["percent"])
        except (KeyError, IndexError, TypeError, ValueError):
            continue
        covered = lines.get("covered")
        count = lines.get("count")
        return (
            percent,
            int(covered) if isinstance(covered, int) else None,
            int(count) if isinstance(count, int) else None,
        )
    return None


def _parse_text_summary(output: str) -> float | None:
    totals = _TOTAL_LINE.findall(output)
    if not totals:
        return None
    percents = [float(p) for p in _PERCENT.findall(totals[-1])]
    if not percents:
        return None
    return percents[2] if len(percents) >= 3 else percents[-1]


def parse_coverage_output(stdout: str, stderr: str = "") -> tuple[float, int | None, int | None]:
    """Return ``(percent, covered, total)`` from coverage tool output."""
    parsed = _parse_json_summary(stdout)
    if parsed is not None:
        return parsed
    percent = _parse_text_summary(stdout)
    if percent is None:
        percent = _parse_text_summary(stderr)
    if percent is None:
        raise CoverageMeasurementError(
            "coverage tool output did not contain a line-coverage total",
            stderr=stderr.strip()[-500:],
        )
    return percent, None, None


class CoverageTool:
    def __init__(
        self,
        command: Sequence[str],
        cwd: Path,
        timeout: float | None = None,
    ) -> None:
        self.command = tuple(command)
        self.cwd = cwd
        self.timeout = timeout

    def ensure_available(self) -> None:
        for tool in _required_tools(self.command):
            if shutil.which(tool) is None:
                raise ExternalToolUnavailable(tool, REMEDIATION.get(tool, f"Install {tool}."))

    def measure(self) -> CoverageReport:
        self.ensure_available()
        logger.info(
            "running coverage: %s", " ".join(self.command),
            extra={"cwd": str(self.cwd)},
        )
        try:
            proc = subprocess.run(
                list(self.command),
                capture_output=True,
                text=True,
                cwd=self.cwd,
                timeout=self.timeout,
            )
        except FileNotFoundError as exc:
            raise ExternalToolUnavailable(
                self.command[0], REMEDIATION.get(self.command[0], "")
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise CoverageMeasurementError(
                f"coverage tool timed out after {self.timeout}s"
            ) from exc

        if proc.returncode != 0:
            raise CoverageMeasurementError(
                f"coverage tool exited with status {proc.returncode}",
                exit_code=proc.returncode,
                stderr=proc.stderr.strip()[-500:],
            )

        percent, covered, total = parse_coverage_output(proc.stdout, proc.stderr)
        return CoverageReport(
            line_percent=percent,
            covered_lines=covered,
            total_lines=total,
            command=self.command,
            exit_code=proc.returncode,
        )
