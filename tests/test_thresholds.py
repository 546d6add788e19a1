#!/usr/bin/env python3
"""Unit tests for scripts/lib/thresholds.py."""

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
from scripts.lib import thresholds
from scripts.lib.gate_errors import (
    AutomatedCountBelowMinimum,
    CoverageBelowMinimum,
    ScenarioTotalBelowMinimum,
)


class TestEvaluateTotal(unittest.TestCase):
    def test_equal_passes(self):
        result = thresholds.evaluate_total(20, 20)
        self.assertTrue(result.passed)
        self.assertIsNone(result.error)

    def test_one_below_fails(self):
        result = thresholds.evaluate_total(19, 20)
        self.assertFalse(result.passed)
        self.assertIsInstance(result.error, ScenarioTotalBelowMinimum)
        self.assertEqual(result.error.actual, 19)
        self.assertEqual(result.error.required, 20)
        self.assertEqual(result.error.message, "Total scenarios: 19 (required: >= 20)")


class TestEvaluateAutomated(unittest.TestCase):
    def test_above_passes(self):
        self.assertTrue(thresholds.evaluate_automated(18, 17).passed)

    def test_below_fails(self):
        result = thresholds.evaluate_automated(16, 17)
        self.assertFalse(result.passed)
        self.assertIsInstance(result.error, AutomatedCountBelowMinimum)
        self.assertEqual(result.error.code, "ERR_AUTOMATED_COUNT")


class TestEvaluateScenarioCounts(unittest.TestCase):
    def test_both_evaluated_when_first_fails(self):
        results = thresholds.evaluate_scenario_counts(5, 2, 20, 17)
        self.assertEqual([r.name for r in results], ["total", "automated"])
        self.assertEqual([r.passed for r in results], [False, False])

    def test_zero_minimums_always_pass(self):
        results = thresholds.evaluate_scenario_counts(0, 0, 0, 0)
        self.assertTrue(all(r.passed for r in results))


class TestEvaluateCoverage(unittest.TestCase):
    def test_exactly_minimum_passes(self):
        self.assertTrue(thresholds.evaluate_coverage(85.0, 85.0).passed)

    def test_one_unit_below_fails(self):
        result = thresholds.evaluate_coverage(84.0, 85.0)
        self.assertFalse(result.passed)
        self.assertIsInstance(result.error, CoverageBelowMinimum)
        self.assertIn("84.00%", result.error.message)
        self.assertIn("85.00%", result.error.message)

    def test_fraction_below_fails(self):
        self.assertFalse(thresholds.evaluate_coverage(84.99, 85.0).passed)

    def test_above_passes(self):
        self.assertTrue(thresholds.evaluate_coverage(92.3, 85.0).passed)


class TestAsCheck(unittest.TestCase):
    def test_passing_check_has_no_event(self):
        check = thresholds.evaluate_total(20, 20).as_check("QG-TOTAL")
        self.assertEqual(check["id"], "QG-TOTAL")
        self.assertEqual(check["status"], "PASS")
        self.assertEqual(check["details"], {"actual": 20, "required": 20})
        self.assertNotIn("event", check)

    def test_failing_check_carries_error_code(self):
        check = thresholds.evaluate_coverage(80.0, 85.0).as_check("QG-COVERAGE")
        self.assertEqual(check["status"], "FAIL")
        self.assertEqual(check["event"], "ERR_COVERAGE_BELOW_MINIMUM")
        self.assertIn("message", check["details"])


if __name__ == "__main__":
    unittest.main()
