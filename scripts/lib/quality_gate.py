"""Quality-gate orchestrator.

Sequences the two gates and produces one verdict.  Phases advance
START, CATALOG_LOADED, SCENARIO_GATE_PASSED, COVERAGE_MEASURED, PASSED;
any phase may drop to FAILED instead, which is terminal.

Each transition has its own method so phases can be exercised on their
own.  The cheap catalog checks run first; the coverage tool, which runs
the whole test suite, is only invoked once the scenario gate has passed.
Every transition is one-way and nothing is retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from scripts.lib.coverage_tool import CoverageReport, CoverageTool
from scripts.lib.gate_config import GateConfig
from scripts.lib.gate_errors import QualityGateError
from scripts.lib.reference_verifier import DefinitionSearcher, make_searcher, verify_references
from scripts.lib.scenario_catalog import ScenarioCatalog, load_catalog
from scripts.lib.thresholds import evaluate_coverage, evaluate_scenario_counts


class GatePhase(Enum):
    START = "start"
    CATALOG_LOADED = "catalog_loaded"
    SCENARIO_GATE_PASSED = "scenario_gate_passed"
    COVERAGE_MEASURED = "coverage_measured"
    PASSED = "passed"
    FAILED = "failed"


EVENT_CATALOG_LOADED = "QG-001"
EVENT_SCENARIO_GATE_PASSED = "QG-002"
EVENT_COVERAGE_MEASURED = "QG-003"
EVENT_GATE_PASSED = "QG-004"
EVENT_GATE_FAILED = "QG-005"


@dataclass
class GateReport:
    config: GateConfig
    phase: GatePhase = GatePhase.START
    failed_at: GatePhase | None = None
    checks: list[dict[str, Any]] = field(default_factory=list)
    events: list[str] = field(default_factory=list)
    problems: list[QualityGateError] = field(default_factory=list)
    scenario_summary: dict[str, Any] | None = None
    coverage: CoverageReport | None = None
    coverage_requested: bool = True
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def verdict(self) -> str:
        return "PASS" if self.phase is GatePhase.PASSED else "FAIL"

    @property
    def passed(self) -> bool:
        return self.phase is GatePhase.PASSED

    def check(self, check_id: str) -> dict[str, Any] | None:
        return next((c for c in self.checks if c["id"] == check_id), None)

    def problem_codes(self) -> list[str]:
        return [p.code for p in self.problems]

    def as_dict(self) -> dict[str, Any]:
        failing = [c for c in self.checks if c["status"] != "PASS"]
        return {
            "gate": "scenario_quality_gate",
            "verdict": self.verdict,
            "phase": self.phase.value,
            "failed_at": self.failed_at.value if self.failed_at else None,
            "timestamp": self.timestamp,
            "config": self.config.as_dict(),
            "checks": self.checks,
            "events": self.events,
            "problems": [p.as_dict() for p in self.problems],
            "scenarios": self.scenario_summary,
            "coverage": self.coverage.as_dict() if self.coverage else None,
            "summary": {
                "total_checks": len(self.checks),
                "passing_checks": len(self.checks) - len(failing),
                "failing_checks": len(failing),
            },
        }

    def render_text(self) -> str:
        lines = ["=== Scenario Quality Gate ==="]
        lines.append(f"Scenario catalog: {self.config.catalog_path}")

        total = self.check("QG-TOTAL")
        automated = self.check("QG-AUTOMATED")
        if total is not None:
            lines.append(
                f"Total scenarios: {total['details']['actual']} "
                f"(required: >= {total['details']['required']})"
            )
        if automated is not None:
            lines.append(
                f"Automated scenarios: {automated['details']['actual']} "
                f"(required: >= {automated['details']['required']})"
            )

        coverage = self.check("QG-COVERAGE")
        if coverage is not None:
            lines.append(
                f"Line coverage: {coverage['details']['actual']:.2f}% "
                f"(required: >= {coverage['details']['required']:.2f}%)"
            )

        lines.append("")
        for c in self.checks:
            icon = "OK" if c["status"] == "PASS" else "FAIL"
            lines.append(f"  [{icon}] {c['id']}")

        missing = [p for p in self.problems if p.code == "ERR_MISSING_TEST_REF"]
        others = [p for p in self.problems if p.code != "ERR_MISSING_TEST_REF"]
        if others or missing:
            lines.append("")
        for problem in others:
            lines.append(problem.message)
            if problem.remediation:
                lines.append(problem.remediation)
        if missing:
            lines.append("Missing automated scenario test refs:")
            for problem in missing:
                lines.append(f"  - {problem.message}")

        lines.append("")
        if self.passed:
            lines.append(
                "Global coverage gate passed." if self.coverage_requested else "Scenario gate passed."
            )
        lines.append(f"Verdict: {self.verdict}")
        return "\n".join(lines)


class QualityGate:
    def __init__(
        self,
        config: GateConfig,
        searcher: DefinitionSearcher | None = None,
        coverage_tool: CoverageTool | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self.searcher = searcher
        self.coverage_tool = coverage_tool or CoverageTool(
            config.coverage_command, config.root, config.coverage_timeout,
        )
        self.logger = logger or logging.getLogger("quality_gate")

    # -- bookkeeping --

    def _advance(self, report: GateReport, phase: GatePhase, event: str) -> None:
        report.phase = phase
        report.events.append(event)
        self.logger.info("phase -> %s", phase.value, extra={"phase": phase.value, "event": event})

    def _fail(self, report: GateReport, problems: list[QualityGateError]) -> None:
        report.failed_at = report.phase
        report.phase = GatePhase.FAILED
        report.problems.extend(problems)
        report.events.append(EVENT_GATE_FAILED)
        for problem in problems:
            self.logger.error(
                "%s", problem.message,
                extra={"phase": report.failed_at.value, "event": problem.code},
            )

    # -- transitions --

    def load_catalog(self, report: GateReport) -> ScenarioCatalog | None:
        """START -> CATALOG_LOADED."""
        try:
            catalog = load_catalog(self.config.catalog_path)
        except QualityGateError as exc:
            report.checks.append({
                "id": "QG-CATALOG",
                "status": "FAIL",
                "details": {"path": str(self.config.catalog_path)},
                "event": exc.code,
            })
            self._fail(report, [exc])
            return None

        report.checks.append({
            "id": "QG-CATALOG",
            "status": "PASS",
            "details": {"path": str(self.config.catalog_path), "rows": len(catalog)},
            "event": EVENT_CATALOG_LOADED,
        })
        report.scenario_summary = catalog.summary()
        self._advance(report, GatePhase.CATALOG_LOADED, EVENT_CATALOG_LOADED)
        return catalog

    def check_scenarios(self, report: GateReport, catalog: ScenarioCatalog) -> bool:
        """CATALOG_LOADED -> SCENARIO_GATE_PASSED.

        Both count thresholds and the reference verification always run so
        the report shows every problem in this phase.  The first problem
        listed is the terminal reason: total, then automated, then refs.
        """
        problems: list[QualityGateError] = []

        total_result, automated_result = evaluate_scenario_counts(
            catalog.total_count(),
            catalog.automated_count(),
            self.config.min_total,
            self.config.min_automated,
        )
        report.checks.append(total_result.as_check("QG-TOTAL"))
        report.checks.append(automated_result.as_check("QG-AUTOMATED"))
        for result in (total_result, automated_result):
            if result.error is not None:
                problems.append(result.error)

        try:
            searcher = self.searcher or make_searcher(self.config)
            missing = verify_references(catalog.records, searcher)
        except QualityGateError as exc:
            report.checks.append({
                "id": "QG-REFS",
                "status": "FAIL",
                "details": {"error": exc.message},
                "event": exc.code,
            })
            problems.append(exc)
        else:
            refs_check: dict[str, Any] = {
                "id": "QG-REFS",
                "status": "PASS" if not missing else "FAIL",
                "details": {
                    "checked": catalog.automated_count(),
                    "missing": [{"id": m.scenario_id, "reason": m.reason, "line": m.line} for m in missing],
                },
            }
            if missing:
                refs_check["event"] = missing[0].code
            report.checks.append(refs_check)
            problems.extend(missing)

        self.logger.info(
            "scenario counts: total=%d automated=%d",
            catalog.total_count(), catalog.automated_count(),
            extra={"phase": report.phase.value},
        )
        if problems:
            self._fail(report, problems)
            return False
        self._advance(report, GatePhase.SCENARIO_GATE_PASSED, EVENT_SCENARIO_GATE_PASSED)
        return True

    def measure_coverage(self, report: GateReport) -> CoverageReport | None:
        """SCENARIO_GATE_PASSED -> COVERAGE_MEASURED (blocking)."""
        try:
            coverage = self.coverage_tool.measure()
        except QualityGateError as exc:
            report.checks.append({
                "id": "QG-COVERAGE-RUN",
                "status": "FAIL",
                "details": {"command": list(self.config.coverage_command)},
                "event": exc.code,
            })
            self._fail(report, [exc])
            return None

        report.coverage = coverage
        report.checks.append({
            "id": "QG-COVERAGE-RUN",
            "status": "PASS",
            "details": {"command": list(coverage.command), "exit_code": coverage.exit_code},
            "event": EVENT_COVERAGE_MEASURED,
        })
        self._advance(report, GatePhase.COVERAGE_MEASURED, EVENT_COVERAGE_MEASURED)
        return coverage

    def check_coverage(self, report: GateReport, coverage: CoverageReport) -> bool:
        """COVERAGE_MEASURED -> PASSED | FAILED."""
        result = evaluate_coverage(coverage.line_percent, self.config.min_lines)
        report.checks.append(result.as_check("QG-COVERAGE"))
        if result.error is not None:
            self._fail(report, [result.error])
            return False
        self._advance(report, GatePhase.PASSED, EVENT_GATE_PASSED)
        return True

    # -- driver --

    def run(self, include_coverage: bool = True) -> GateReport:
        report = GateReport(config=self.config, coverage_requested=include_coverage)
        self.logger.info(
            "quality gate start: %s", self.config.catalog_path,
            extra={"phase": report.phase.value, "coverage": include_coverage},
        )

        catalog = self.load_catalog(report)
        if catalog is None:
            return report
        if not self.check_scenarios(report, catalog):
            return report
        if not include_coverage:
            self._advance(report, GatePhase.PASSED, EVENT_GATE_PASSED)
            return report

        coverage = self.measure_coverage(report)
        if coverage is None:
            return report
        self.check_coverage(report, coverage)
        return report
