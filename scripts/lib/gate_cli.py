"""Command-line plumbing shared by the gate entry points."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import tempfile
from pathlib import Path
from typing import Any, Sequence

from scripts.lib.coverage_tool import CoverageReport
from scripts.lib.gate_config import ROOT, GateConfig, load_config
from scripts.lib.gate_errors import GateConfigError
from scripts.lib.gate_logger import configure_gate_logging
from scripts.lib.quality_gate import GateReport, QualityGate

EXIT_PASS = 0
EXIT_FAIL = 1
EXIT_CONFIG = 2


def build_parser(description: str, *, evidence: bool) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument(
        "catalog",
        nargs="?",
        help="scenario catalog CSV (default: $SCENARIO_CATALOG or phase2-test-scenarios.csv)",
    )
    parser.add_argument("--root", type=Path, default=ROOT, help="repository root")
    parser.add_argument("--source-dir", help="directory searched for test definitions")
    parser.add_argument("--config", type=Path, help="TOML file with a [gate] table")
    parser.add_argument("--json", action="store_true", help="print the report as JSON")
    parser.add_argument("--self-test", action="store_true", help="run the gate against generated fixtures")
    if evidence:
        parser.add_argument("--evidence-out", type=Path, help="also write the JSON report here")
    return parser


def write_evidence(report: GateReport, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(report.as_dict(), indent=2) + "\n", encoding="utf-8")


def run_cli(
    script_name: str,
    description: str,
    argv: Sequence[str] | None,
    *,
    include_coverage: bool,
) -> int:
    parser = build_parser(description, evidence=include_coverage)
    args = parser.parse_args(argv)
    logger = configure_gate_logging(script_name, json_mode=args.json)

    if args.self_test:
        ok, checks = self_test(include_coverage, logger)
        _report_self_test(checks, ok, args.json)
        return EXIT_PASS if ok else EXIT_FAIL

    try:
        config = load_config(
            args.root,
            config_file=args.config,
            overrides={"catalog_path": args.catalog, "source_dir": args.source_dir},
        )
    except GateConfigError as exc:
        logger.error("configuration error: %s", exc.message)
        print(f"Configuration error: {exc.message}", file=sys.stderr)
        return EXIT_CONFIG

    report = QualityGate(config, logger=logger).run(include_coverage=include_coverage)

    if getattr(args, "evidence_out", None):
        write_evidence(report, args.evidence_out)
        logger.info("evidence written to %s", args.evidence_out)

    if args.json:
        print(json.dumps(report.as_dict(), indent=2))
    else:
        print(report.render_text())

    return EXIT_PASS if report.passed else EXIT_FAIL


# ── Self-test ────────────────────────────────────────────────────────────

class _FixedCoverage:
    def __init__(self, percent: float) -> None:
        self.percent = percent

    def measure(self) -> CoverageReport:
        return CoverageReport(self.percent, None, None, ("self-test",), 0)


def _write_fixture(root: Path, *, total: int, automated: int, defined: int) -> GateConfig:
    rows = ["id,service,priority,test_type,automated,test_ref,description"]
    for i in range(1, total + 1):
        auto = i <= automated
        rows.append(f"ST-{i:03d},gate,High,Unit,{'yes' if auto else 'no'},{f'self_test_{i}' if auto else ''},fixture")
    catalog = root / "catalog.csv"
    catalog.write_text("\n".join(rows) + "\n", encoding="utf-8")
    src = root / "src"
    src.mkdir(exist_ok=True)
    body = [f"#[test]\nfn self_test_{i}() {{}}" for i in range(1, defined + 1)]
    # the next ref exists only inside a comment
    body.append(f"// fn self_test_{defined + 1}() {{}}")
    (src / "lib.rs").write_text("\n".join(body) + "\n", encoding="utf-8")
    return GateConfig(root=root, catalog_path=catalog, source_dir=src)


def self_test(
    include_coverage: bool,
    logger: logging.Logger | None = None,
) -> tuple[bool, list[dict[str, Any]]]:
    """Run the gate over generated workspaces with known verdicts."""
    logger = logger or logging.getLogger(__name__)
    cases: list[tuple[str, dict[str, int], float, str]] = [
        ("valid_catalog_passes", {"total": 20, "automated": 17, "defined": 17}, 85.0, "PASS"),
        ("short_catalog_fails", {"total": 19, "automated": 17, "defined": 17}, 85.0, "FAIL"),
        ("missing_definition_fails", {"total": 20, "automated": 17, "defined": 16}, 85.0, "FAIL"),
    ]
    if include_coverage:
        cases.append(
            ("coverage_below_minimum_fails", {"total": 20, "automated": 17, "defined": 17}, 84.0, "FAIL"),
        )

    checks: list[dict[str, Any]] = []
    for name, shape, percent, expected in cases:
        with tempfile.TemporaryDirectory() as tmp:
            config = _write_fixture(Path(tmp), **shape)
            gate = QualityGate(config, coverage_tool=_FixedCoverage(percent), logger=logger)
            verdict = gate.run(include_coverage=include_coverage).verdict
        checks.append({"check": name, "pass": verdict == expected, "verdict": verdict})
    return all(c["pass"] for c in checks), checks


def _report_self_test(checks: list[dict[str, Any]], ok: bool, as_json: bool) -> None:
    if as_json:
        print(json.dumps({"check": "self_test", "verdict": "PASS" if ok else "FAIL", "checks": checks}, indent=2))
        return
    for item in checks:
        print(f"[{'PASS' if item['pass'] else 'FAIL'}] {item['check']}")
    print(f"self_test verdict: {'PASS' if ok else 'FAIL'}")
