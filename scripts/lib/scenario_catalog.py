"""Scenario catalog store.

Reads the flat scenario catalog (``phase2-test-scenarios.csv`` by default)
into ordered ``ScenarioRecord`` rows.  Columns are positional::

    id,service,priority,test_type,automated,test_ref,description

The header row is always skipped.  Fully blank rows are ignored; rows with
an empty ``id`` are kept so they still take part in the automation checks,
but they do not count towards the scenario total.
"""

from __future__ import annotations

import csv
import logging
from collections import Counter
from dataclasses import dataclass
from io import StringIO
from pathlib import Path
from typing import Iterator

from scripts.lib.gate_errors import CatalogNotFound

logger = logging.getLogger(__name__)

COLUMNS = [
    "id",
    "service",
    "priority",
    "test_type",
    "automated",
    "test_ref",
    "description",
]

KNOWN_TEST_TYPES = {"unit", "integration", "regression", "e2e", "regression/e2e"}

AUTOMATED_FLAG = "yes"


@dataclass(frozen=True)
class ScenarioRecord:
    id: str
    service: str
    priority: str
    test_type: str
    automated_flag: str
    test_ref: str
    description: str
    line: int

    @property
    def automated(self) -> bool:
        return self.automated_flag.strip().lower() == AUTOMATED_FLAG

    @property
    def has_id(self) -> bool:
        return self.id != ""

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "service": self.service,
            "priority": self.priority,
            "test_type": self.test_type,
            "automated": self.automated,
            "test_ref": self.test_ref,
            "description": self.description,
            "line": self.line,
        }


@dataclass(frozen=True)
class ScenarioCatalog:
    path: Path
    records: tuple[ScenarioRecord, ...]

    def __iter__(self) -> Iterator[ScenarioRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def total_count(self) -> int:
        """Rows with a non-empty id."""
        return sum(1 for r in self.records if r.has_id)

    def automated_count(self) -> int:
        return sum(1 for r in self.records if r.automated)

    def automated_records(self) -> list[ScenarioRecord]:
        return [r for r in self.records if r.automated]

    def duplicate_ids(self) -> list[str]:
        counts = Counter(r.id for r in self.records if r.has_id)
        return sorted(i for i, n in counts.items() if n > 1)

    def distribution(self, field_name: str) -> dict[str, int]:
        """Count rows with an id by the literal value of *field_name*."""
        counts: Counter[str] = Counter()
        for record in self.records:
            if record.has_id:
                counts[getattr(record, field_name) or "(empty)"] += 1
        return dict(sorted(counts.items()))

    def summary(self) -> dict:
        return {
            "catalog": str(self.path),
            "rows": len(self.records),
            "total": self.total_count(),
            "automated": self.automated_count(),
            "duplicate_ids": self.duplicate_ids(),
            "by_test_type": self.distribution("test_type"),
            "by_priority": self.distribution("priority"),
            "by_service": self.distribution("service"),
        }


def _is_blank(row: list[str]) -> bool:
    return all(not cell.strip() for cell in row)


def _record_from_row(row: list[str], line: int) -> ScenarioRecord:
    cells = [cell.strip() for cell in row]
    if len(cells) < len(COLUMNS):
        cells.extend([""] * (len(COLUMNS) - len(cells)))
    # Unquoted commas in the trailing description spill into extra columns.
    description = ",".join(cells[len(COLUMNS) - 1:])
    return ScenarioRecord(
        id=cells[0],
        service=cells[1],
        priority=cells[2],
        test_type=cells[3],
        automated_flag=cells[4],
        test_ref=cells[5],
        description=description,
        line=line,
    )


def parse_catalog(text: str, path: Path) -> ScenarioCatalog:
    """Parse catalog *text*; *path* is only used for reporting."""
    reader = csv.reader(StringIO(text))
    records: list[ScenarioRecord] = []
    for index, row in enumerate(reader):
        if index == 0:
            continue  # header
        if _is_blank(row):
            continue
        record = _record_from_row(row, reader.line_num)
        if record.has_id and record.test_type and record.test_type.lower() not in KNOWN_TEST_TYPES:
            logger.warning(
                "scenario %s has unrecognised test_type %r", record.id, record.test_type,
                extra={"scenario_id": record.id, "line": record.line},
            )
        records.append(record)

    catalog = ScenarioCatalog(path=path, records=tuple(records))
    for duplicate in catalog.duplicate_ids():
        logger.warning("duplicate scenario id: %s", duplicate, extra={"scenario_id": duplicate})
    return catalog


def load_catalog(path: Path) -> ScenarioCatalog:
    """Load the catalog at *path*; raises ``CatalogNotFound`` if absent."""
    if not path.is_file():
        raise CatalogNotFound(path)
    text = path.read_text(encoding="utf-8-sig")
    return parse_catalog(text, path)
