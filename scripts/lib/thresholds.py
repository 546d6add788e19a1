"""Threshold comparisons for the scenario and coverage gates.

All comparisons are inclusive: a value equal to its minimum passes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from scripts.lib.gate_errors import (
    AutomatedCountBelowMinimum,
    CoverageBelowMinimum,
    QualityGateError,
    ScenarioTotalBelowMinimum,
)


@dataclass(frozen=True)
class ThresholdResult:
    name: str
    actual: float
    required: float
    passed: bool
    error: QualityGateError | None = None

    def as_check(self, check_id: str) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "id": check_id,
            "status": "PASS" if self.passed else "FAIL",
            "details": {"actual": self.actual, "required": self.required},
        }
        if self.error is not None:
            entry["event"] = self.error.code
            entry["details"]["message"] = self.error.message
        return entry


def evaluate_total(total: int, min_total: int) -> ThresholdResult:
    passed = total >= min_total
    return ThresholdResult(
        name="total",
        actual=total,
        required=min_total,
        passed=passed,
        error=None if passed else ScenarioTotalBelowMinimum(total, min_total),
    )


def evaluate_automated(automated: int, min_automated: int) -> ThresholdResult:
    passed = automated >= min_automated
    return ThresholdResult(
        name="automated",
        actual=automated,
        required=min_automated,
        passed=passed,
        error=None if passed else AutomatedCountBelowMinimum(automated, min_automated),
    )


def evaluate_scenario_counts(
    total: int,
    automated: int,
    min_total: int,
    min_automated: int,
) -> list[ThresholdResult]:
    """Evaluate both count thresholds; neither short-circuits the other."""
    return [
        evaluate_total(total, min_total),
        evaluate_automated(automated, min_automated),
    ]


def evaluate_coverage(percentage: float, min_lines: float) -> ThresholdResult:
    passed = percentage >= min_lines
    return ThresholdResult(
        name="line_coverage",
        actual=percentage,
        required=min_lines,
        passed=passed,
        error=None if passed else CoverageBelowMinimum(percentage, min_lines),
    )
