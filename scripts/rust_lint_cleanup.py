#!/usr/bin/env python3
"""
Rust Lint Cleanup.

Runs the formatting and static-analysis passes the merge pipeline expects,
in order, stopping at the first failing step:

    cargo clean -> cargo fmt -> cargo clippy --fix -> cargo clippy
                -> cargo clippy (dead-code) -> cargo test (optional)

The clippy passes run once per ``package:bin`` target.

Environment (all optional):
    ALLOW_DIRTY=1          pass --allow-dirty to clippy --fix
    RUN_CLEAN=1            run cargo clean first
    RUN_FMT=1              run cargo fmt --all
    RUN_TESTS=0            finish with cargo test --all-targets --locked
    CLIPPY_ALL_FEATURES=0  add --all-features to clippy
    CLIPPY_ALL_TARGETS=0   add --all-targets to clippy
    RUN_DEADCODE=1         extra clippy pass with -W dead-code
    TARGETS=emd:emd        comma-separated package[:bin] list

Usage:
    python3 scripts/rust_lint_cleanup.py [--dry-run] [--json]

Exit codes:
    0 = every step passed
    1 = a step failed
    2 = cargo not installed
"""

from __future__ import annotations

import argparse
import json
import os
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))
from scripts.lib.gate_errors import ExternalToolUnavailable
from scripts.lib.gate_logger import configure_gate_logging

DEFAULT_TARGETS = "emd:emd"


@dataclass(frozen=True)
class LintOptions:
    allow_dirty: bool = True
    run_clean: bool = True
    run_fmt: bool = True
    run_tests: bool = False
    clippy_all_features: bool = False
    clippy_all_targets: bool = False
    run_deadcode: bool = True
    targets: tuple[tuple[str, str], ...] = (("emd", "emd"),)

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> "LintOptions":
        def flag(name: str, default: str) -> bool:
            return environ.get(name, default).strip() == "1"

        return cls(
            allow_dirty=flag("ALLOW_DIRTY", "1"),
            run_clean=flag("RUN_CLEAN", "1"),
            run_fmt=flag("RUN_FMT", "1"),
            run_tests=flag("RUN_TESTS", "0"),
            clippy_all_features=flag("CLIPPY_ALL_FEATURES", "0"),
            clippy_all_targets=flag("CLIPPY_ALL_TARGETS", "0"),
            run_deadcode=flag("RUN_DEADCODE", "1"),
            targets=tuple(parse_targets(environ.get("TARGETS", DEFAULT_TARGETS))),
        )


@dataclass(frozen=True)
class LintStep:
    name: str
    command: tuple[str, ...]


def parse_targets(text: str) -> list[tuple[str, str]]:
    """``"a:b, c"`` -> ``[("a", "b"), ("c", "c")]``."""
    targets = []
    for raw in text.split(","):
        target = raw.strip()
        if not target:
            continue
        if ":" in target:
            package, _, binary = target.partition(":")
        else:
            package = binary = target
        targets.append((package, binary or package))
    return targets


def build_steps(options: LintOptions) -> list[LintStep]:
    fix_flags: list[str] = []
    check_flags: list[str] = []
    if options.allow_dirty:
        fix_flags.append("--allow-dirty")
    if options.clippy_all_targets:
        fix_flags.append("--all-targets")
        check_flags.append("--all-targets")
    if options.clippy_all_features:
        fix_flags.append("--all-features")
        check_flags.append("--all-features")

    steps: list[LintStep] = []
    if options.run_clean:
        steps.append(LintStep("cargo clean", ("cargo", "clean")))
    if options.run_fmt:
        steps.append(LintStep("cargo fmt", ("cargo", "fmt", "--all")))

    for package, binary in options.targets:
        target = ("--bin", binary, "-p", package)
        label = f"{package}:{binary}"
        steps.append(LintStep(
            f"cargo clippy --fix ({label})",
            ("cargo", "clippy", "--fix", *target, *fix_flags),
        ))
        steps.append(LintStep(
            f"cargo clippy ({label})",
            ("cargo", "clippy", *target, *check_flags),
        ))
        if options.run_deadcode:
            steps.append(LintStep(
                f"cargo clippy dead-code ({label})",
                ("cargo", "clippy", *target, *check_flags, "--", "-W", "dead-code"),
            ))

    if options.run_tests:
        steps.append(LintStep("cargo test", ("cargo", "test", "--all-targets", "--locked")))
    return steps


def run_steps(
    steps: list[LintStep],
    cwd: Path,
    logger,
    runner: Callable[..., subprocess.CompletedProcess] | None = None,
) -> list[dict[str, Any]]:
    """Run *steps* in order; stop after the first non-zero exit."""
    runner = runner or subprocess.run
    results: list[dict[str, Any]] = []
    for step in steps:
        logger.info("=== %s ===", step.name, extra={"command": list(step.command)})
        proc = runner(list(step.command), cwd=cwd)
        status = "PASS" if proc.returncode == 0 else "FAIL"
        results.append({
            "id": step.name,
            "status": status,
            "details": {"command": list(step.command), "exit_code": proc.returncode},
        })
        if status == "FAIL":
            logger.error("%s failed with exit code %d", step.name, proc.returncode)
            break
    return results


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run cargo fmt/clippy cleanup passes.")
    parser.add_argument("--root", type=Path, default=ROOT, help="cargo workspace root")
    parser.add_argument("--dry-run", action="store_true", help="print the steps without running them")
    parser.add_argument("--json", action="store_true")
    args = parser.parse_args(argv)
    logger = configure_gate_logging("rust_lint_cleanup", json_mode=args.json)

    options = LintOptions.from_env(os.environ)
    steps = build_steps(options)
    logger.info(
        "rust lint cleanup start: %s",
        ",".join(f"{p}:{b}" for p, b in options.targets),
    )

    if args.dry_run:
        for step in steps:
            print(" ".join(step.command))
        return 0

    if shutil.which("cargo") is None:
        error = ExternalToolUnavailable("cargo", "Install Rust toolchain first.")
        print(f"{error.message} {error.remediation}", file=sys.stderr)
        return 2

    results = run_steps(steps, args.root, logger)
    failing = [r for r in results if r["status"] != "PASS"]
    verdict = "PASS" if not failing and len(results) == len(steps) else "FAIL"

    report = {
        "gate": "rust_lint_cleanup",
        "verdict": verdict,
        "checks": results,
        "summary": {
            "total_steps": len(steps),
            "executed_steps": len(results),
            "failing_steps": len(failing),
        },
    }
    if args.json:
        print(json.dumps(report, indent=2))
    else:
        for r in results:
            print(f"  [{'OK' if r['status'] == 'PASS' else 'FAIL'}] {r['id']}")
        print(f"\nVerdict: {verdict}")
    logger.info("rust lint cleanup done: %s", verdict)
    return 0 if verdict == "PASS" else 1


if __name__ == "__main__":
    sys.exit(main())
