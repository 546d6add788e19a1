"""Builders for throwaway catalogs, source trees and coverage tools."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from scripts.lib.coverage_tool import CoverageReport
from scripts.lib.gate_config import GateConfig
from scripts.lib.gate_logger import LIBRARY_LOGGER

HEADER = "id,service,priority,test_type,automated,test_ref,description"


def ref_name(index: int) -> str:
    return f"scenario_case_{index:02d}"


def scenario_rows(total: int = 20, automated: int = 17) -> list[str]:
    rows = []
    for i in range(1, total + 1):
        is_auto = i <= automated
        ref = ref_name(i) if is_auto else ""
        test_type = "Unit" if i % 3 else "Integration"
        rows.append(
            f"SC-{i:03d},ec2,{'High' if i % 2 else 'Medium'},{test_type},"
            f"{'yes' if is_auto else 'no'},{ref},Scenario {i}"
        )
    return rows


def write_catalog(path: Path, rows: list[str], header: str = HEADER) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(header + "\n" + "\n".join(rows) + "\n", encoding="utf-8")
    return path


def write_rust_tests(src_dir: Path, names: list[str], filename: str = "lib.rs") -> Path:
    src_dir.mkdir(parents=True, exist_ok=True)
    body = ["pub fn add(a: i32, b: i32) -> i32 {", "    a + b", "}", "", "#[cfg(test)]", "mod tests {"]
    for name in names:
        body.extend([
            "    #[test]",
            f"    fn {name}() {{",
            "        assert_eq!(super::add(1, 1), 2);",
            "    }",
        ])
    body.append("}")
    path = src_dir / filename
    path.write_text("\n".join(body) + "\n", encoding="utf-8")
    return path


def make_workspace(
    root: Path,
    *,
    total: int = 20,
    automated: int = 17,
    drop_refs: tuple[str, ...] = (),
) -> GateConfig:
    """Catalog plus a ``src`` tree defining every automated test_ref
    except those in *drop_refs*."""
    catalog = write_catalog(root / "phase2-test-scenarios.csv", scenario_rows(total, automated))
    refs = [ref_name(i) for i in range(1, automated + 1)]
    write_rust_tests(root / "src", [r for r in refs if r not in drop_refs])
    return GateConfig(root=root, catalog_path=catalog, source_dir=root / "src")


class FakeCoverageTool:
    def __init__(self, percent: float = 85.0, error: Exception | None = None) -> None:
        self.percent = percent
        self.error = error
        self.calls = 0

    def measure(self) -> CoverageReport:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return CoverageReport(
            line_percent=self.percent,
            covered_lines=None,
            total_lines=None,
            command=("fake-coverage",),
            exit_code=0,
        )


def reset_gate_loggers(*names: str) -> None:
    """Close and drop the handlers installed by ``configure_gate_logging``."""
    for name in (*names, LIBRARY_LOGGER):
        logger = logging.getLogger(name)
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()
