#!/usr/bin/env python3
"""
Scenario Catalog Gate.

Validates the scenario catalog on its own, without measuring coverage:
  - total scenarios (non-empty id): >= MIN_TOTAL (default 20)
  - automated=yes scenarios: >= MIN_AUTOMATED (default 17)
  - every automated scenario names a test_ref defined under src/

Usage:
    python3 scripts/check_scenario_catalog.py [CATALOG] [--source-dir DIR] [--json]
    python3 scripts/check_scenario_catalog.py --self-test

Exit codes:
    0 = PASS
    1 = FAIL (missing catalog, counts below minimum, or missing test refs)
    2 = configuration error
"""

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))
from scripts.lib import gate_cli
from scripts.lib.gate_cli import run_cli


def self_test():
    return gate_cli.self_test(include_coverage=False)


def main(argv=None) -> int:
    return run_cli(
        "check_scenario_catalog",
        "Validate the scenario catalog and its test references.",
        argv,
        include_coverage=False,
    )


if __name__ == "__main__":
    sys.exit(main())
