"""Error kinds raised or reported by the quality gate.

Every error carries a stable ``code`` used in reports and event logs.
Threshold and reference failures are built by the orchestrator and
recorded as problems; I/O failures are raised by the lower layers.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "QualityGateError",
    "CatalogNotFound",
    "ScenarioTotalBelowMinimum",
    "AutomatedCountBelowMinimum",
    "MissingTestReference",
    "CoverageBelowMinimum",
    "ExternalToolUnavailable",
    "CoverageMeasurementError",
    "GateConfigError",
]


class QualityGateError(Exception):
    """Base class for every gate failure."""

    code = "ERR_QUALITY_GATE"

    def __init__(self, message: str, *, remediation: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.remediation = remediation

    @property
    def kind(self) -> str:
        return type(self).__name__

    def as_dict(self) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "kind": self.kind,
            "code": self.code,
            "message": self.message,
        }
        if self.remediation:
            entry["remediation"] = self.remediation
        return entry


class CatalogNotFound(QualityGateError):
    code = "ERR_CATALOG_NOT_FOUND"

    def __init__(self, path: Any) -> None:
        super().__init__(
            f"Scenario catalog not found: {path}",
            remediation="Create the catalog or point SCENARIO_CATALOG at it.",
        )
        self.path = path


class _CountBelowMinimum(QualityGateError):
    label = "count"

    def __init__(self, actual: int, required: int) -> None:
        super().__init__(f"{self.label}: {actual} (required: >= {required})")
        self.actual = actual
        self.required = required

    def as_dict(self) -> dict[str, Any]:
        entry = super().as_dict()
        entry.update({"actual": self.actual, "required": self.required})
        return entry


class ScenarioTotalBelowMinimum(_CountBelowMinimum):
    code = "ERR_SCENARIO_TOTAL"
    label = "Total scenarios"


class AutomatedCountBelowMinimum(_CountBelowMinimum):
    code = "ERR_AUTOMATED_COUNT"
    label = "Automated scenarios"


class MissingTestReference(QualityGateError):
    """One automated scenario whose test_ref does not resolve."""

    code = "ERR_MISSING_TEST_REF"

    def __init__(self, scenario_id: str, reason: str, line: int | None = None) -> None:
        super().__init__(f"{scenario_id}:{reason}")
        self.scenario_id = scenario_id
        self.reason = reason
        self.line = line

    def as_dict(self) -> dict[str, Any]:
        entry = super().as_dict()
        entry.update({"id": self.scenario_id, "reason": self.reason, "line": self.line})
        return entry


class CoverageBelowMinimum(QualityGateError):
    code = "ERR_COVERAGE_BELOW_MINIMUM"

    def __init__(self, measured: float, required: float) -> None:
        super().__init__(
            f"Line coverage {measured:.2f}% is below the required {required:.2f}%"
        )
        self.measured = measured
        self.required = required

    def as_dict(self) -> dict[str, Any]:
        entry = super().as_dict()
        entry.update({"measured": self.measured, "required": self.required})
        return entry


class ExternalToolUnavailable(QualityGateError):
    code = "ERR_TOOL_UNAVAILABLE"

    def __init__(self, tool: str, remediation: str = "") -> None:
        super().__init__(f"{tool} not found.", remediation=remediation)
        self.tool = tool


class CoverageMeasurementError(QualityGateError):
    code = "ERR_COVERAGE_MEASUREMENT"

    def __init__(self, message: str, *, exit_code: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr

    def as_dict(self) -> dict[str, Any]:
        entry = super().as_dict()
        entry["exit_code"] = self.exit_code
        if self.stderr:
            entry["stderr"] = self.stderr
        return entry


class GateConfigError(QualityGateError):
    code = "ERR_CONFIG"
