"""Run the merge pipeline: optional lint cleanup, then the coverage gate.

    RUN_LINT=1 python3 run_all_checks.py [extra args for check_coverage_gate.py]
"""

import os
import subprocess
import sys

PIPELINE = [
    ("scripts/rust_lint_cleanup.py", "RUN_LINT"),
    ("scripts/check_coverage_gate.py", None),
]

failed = []
for script, toggle in PIPELINE:
    if toggle and os.environ.get(toggle, "0") != "1":
        print(f"SKIPPED: {script} ({toggle}!=1)")
        continue
    args = [sys.executable, script]
    if script.endswith("check_coverage_gate.py"):
        args.extend(sys.argv[1:])
    res = subprocess.run(args)
    if res.returncode != 0:
        print(f"FAILED: {script}")
        failed.append(script)
        break
    print(f"PASSED: {script}")

print("\n--- Summary ---")
print(f"Failed scripts: {len(failed)}")
for f in failed:
    print(f)
sys.exit(1 if failed else 0)
