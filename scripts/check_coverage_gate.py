#!/usr/bin/env python3
"""
Global Coverage Gate.

Runs the scenario catalog gate first and, only if it passes, measures
workspace line coverage with the configured coverage tool
(``cargo llvm-cov --workspace --all-features --all-targets`` by default)
and requires it to reach MIN_LINES (default 85).

Usage:
    python3 scripts/check_coverage_gate.py [CATALOG] [--source-dir DIR] [--json]
                                           [--evidence-out PATH]
    python3 scripts/check_coverage_gate.py --self-test

Exit codes:
    0 = PASS (scenario gate and coverage gate)
    1 = FAIL (any stage failed; the report names every problem found)
    2 = configuration error
"""

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))
from scripts.lib import gate_cli
from scripts.lib.gate_cli import run_cli


def self_test():
    return gate_cli.self_test(include_coverage=True)


def main(argv=None) -> int:
    return run_cli(
        "check_coverage_gate",
        "Run the scenario gate, then the global line-coverage gate.",
        argv,
        include_coverage=True,
    )


if __name__ == "__main__":
    sys.exit(main())
