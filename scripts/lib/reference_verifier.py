"""Reference verifier: automated scenarios must name a real test definition.

The lookup itself sits behind ``DefinitionSearcher.find_definition`` so the
matching strategy can change without touching the gate.  Two strategies
ship here:

* ``SourceTreeSearcher`` walks the source tree in-process.  Rust files are
  matched against the ``fn name(`` signature after comments (line, block
  and nested block) and string literal contents are blanked out.  Python
  files are parsed with ``ast`` and only real ``def`` / ``async def``
  names count.
* ``RipgrepSearcher`` hands the signature pattern to ``rg``.  It sees raw
  text, so a definition quoted in a comment or string still matches.
"""

from __future__ import annotations

import ast
import logging
import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from scripts.lib.gate_config import GateConfig
from scripts.lib.gate_errors import ExternalToolUnavailable, MissingTestReference
from scripts.lib.scenario_catalog import ScenarioRecord

logger = logging.getLogger(__name__)

MISSING_TEST_REF = "missing_test_ref"

SKIP_DIRS = {".git", "target", "node_modules", "__pycache__", ".venv"}


@dataclass(frozen=True)
class LanguageProfile:
    name: str
    suffixes: tuple[str, ...]
    # {name} is replaced with the escaped identifier
    signature: str
    rg_glob: str

    def pattern(self, name: str) -> re.Pattern[str]:
        return re.compile(self.signature.format(name=re.escape(name)), re.MULTILINE)

    def rg_pattern(self, name: str) -> str:
        return self.signature.format(name=re.escape(name))


LANGUAGES: dict[str, LanguageProfile] = {
    "rust": LanguageProfile(
        name="rust",
        suffixes=(".rs",),
        signature=r"\bfn\s+{name}\s*(?:<.*?>\s*)?\(",
        rg_glob="*.rs",
    ),
    "python": LanguageProfile(
        name="python",
        suffixes=(".py",),
        signature=r"^\s*(?:async\s+)?def\s+{name}\s*\(",
        rg_glob="*.py",
    ),
}


def _blank(text: str) -> str:
    """Replace everything but newlines with spaces."""
    return re.sub(r"[^\n]", " ", text)


def _raw_string_end(text: str, start: int) -> int | None:
    """If a raw string (``r"..."``, ``r#"..."#``) opens at *start*, return
    the index just past its closing delimiter."""
    i = start + 1
    hashes = 0
    while i < len(text) and text[i] == "#":
        hashes += 1
        i += 1
    if i >= len(text) or text[i] != '"':
        return None
    closing = '"' + "#" * hashes
    end = text.find(closing, i + 1)
    return len(text) if end == -1 else end + len(closing)


def strip_rust_source(text: str) -> str:
    """Blank out comments and string literal contents in Rust source.

    Line positions are preserved so offsets still map to the original
    file.  Block comments nest, as they do in Rust.
    """
    out: list[str] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        nxt = text[i + 1] if i + 1 < n else ""

        if ch == "/" and nxt == "/":
            end = text.find("\n", i)
            end = n if end == -1 else end
            out.append(_blank(text[i:end]))
            i = end
        elif ch == "/" and nxt == "*":
            depth = 0
            j = i
            while j < n:
                if text.startswith("/*", j):
                    depth += 1
                    j += 2
                elif text.startswith("*/", j):
                    depth -= 1
                    j += 2
                    if depth == 0:
                        break
                else:
                    j += 1
            out.append(_blank(text[i:j]))
            i = j
        elif ch == "r" and nxt in ('"', "#") and not (i and (text[i - 1].isalnum() or text[i - 1] == "_")):
            end = _raw_string_end(text, i)
            if end is None:
                out.append(ch)
                i += 1
            else:
                out.append(_blank(text[i:end]))
                i = end
        elif ch == '"':
            j = i + 1
            while j < n and text[j] != '"':
                j += 2 if text[j] == "\\" else 1
            j = min(j + 1, n)
            out.append('"' + _blank(text[i + 1:j - 1]) + '"')
            i = j
        elif ch == "'":
            # char literal ('x', '\n', '"'); anything else is a lifetime
            if nxt == "\\":
                end = text.find("'", i + 2)
                end = n - 1 if end == -1 else end
            elif i + 2 < n and text[i + 2] == "'":
                end = i + 2
            else:
                out.append(ch)
                i += 1
                continue
            out.append(_blank(text[i:end + 1]))
            i = end + 1
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def python_definitions(text: str) -> set[str]:
    """Names of every function and method defined in Python *text*."""
    tree = ast.parse(text)
    return {
        node.name
        for node in ast.walk(tree)
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef))
    }


class DefinitionSearcher:
    """Answers whether a callable/test definition named *name* exists."""

    def find_definition(self, name: str) -> bool:
        raise NotImplementedError


class SourceTreeSearcher(DefinitionSearcher):
    def __init__(self, source_dir: Path, language: str = "rust") -> None:
        self.source_dir = source_dir
        self.profile = LANGUAGES[language]
        self._sources: list[str] | None = None
        self._names: set[str] | None = None

    def _source_files(self) -> list[Path]:
        if not self.source_dir.is_dir():
            logger.warning(
                "source directory not found: %s", self.source_dir,
                extra={"source_dir": str(self.source_dir)},
            )
            return []
        files = []
        for path in sorted(self.source_dir.rglob("*")):
            if any(part in SKIP_DIRS for part in path.relative_to(self.source_dir).parts):
                continue
            if path.is_file() and path.suffix in self.profile.suffixes:
                files.append(path)
        return files

    def _read_sources(self) -> Iterable[tuple[Path, str]]:
        for path in self._source_files():
            try:
                yield path, path.read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                logger.warning("cannot read %s: %s", path, exc)

    def _build_index(self) -> None:
        sources: list[str] = []
        names: set[str] = set()
        files = 0
        for path, text in self._read_sources():
            files += 1
            if self.profile.name == "python":
                try:
                    names |= python_definitions(text)
                except SyntaxError as exc:
                    logger.warning(
                        "cannot parse %s: %s", path, exc.msg,
                        extra={"source_file": str(path), "line": exc.lineno},
                    )
            else:
                sources.append(strip_rust_source(text))
        self._sources = sources
        self._names = names
        logger.debug(
            "indexed %d %s files under %s", files, self.profile.name, self.source_dir,
            extra={"source_dir": str(self.source_dir)},
        )

    def find_definition(self, name: str) -> bool:
        if self._sources is None:
            self._build_index()
        if self.profile.name == "python":
            return name in self._names
        pattern = self.profile.pattern(name)
        return any(pattern.search(text) for text in self._sources)


class RipgrepSearcher(DefinitionSearcher):
    def __init__(self, source_dir: Path, language: str = "rust", rg: str | None = None) -> None:
        self.source_dir = source_dir
        self.profile = LANGUAGES[language]
        self.rg = rg or shutil.which("rg")
        if not self.rg:
            raise ExternalToolUnavailable(
                "rg",
                remediation="Install ripgrep (https://github.com/BurntSushi/ripgrep) "
                "or set SCENARIO_SEARCH=scan.",
            )

    def find_definition(self, name: str) -> bool:
        result = subprocess.run(
            [
                self.rg, "-n", "--no-messages",
                "--glob", self.profile.rg_glob,
                "-e", self.profile.rg_pattern(name),
                str(self.source_dir),
            ],
            capture_output=True,
            text=True,
        )
        # rg: 0 = match, 1 = no match, 2 = error (e.g. missing directory)
        if result.returncode == 2:
            logger.warning("rg failed for %s: %s", name, result.stderr.strip()[:200])
        return result.returncode == 0


def make_searcher(config: GateConfig) -> DefinitionSearcher:
    if config.search_strategy == "rg":
        return RipgrepSearcher(config.source_dir, config.language)
    return SourceTreeSearcher(config.source_dir, config.language)


def verify_references(
    records: Iterable[ScenarioRecord],
    searcher: DefinitionSearcher,
) -> list[MissingTestReference]:
    """Return every automated record whose test_ref does not resolve.

    All records are examined; the result keeps catalog order.
    """
    missing: list[MissingTestReference] = []
    for record in records:
        if not record.automated:
            continue
        if not record.test_ref:
            missing.append(MissingTestReference(record.id, MISSING_TEST_REF, record.line))
            continue
        if not searcher.find_definition(record.test_ref):
            missing.append(MissingTestReference(record.id, record.test_ref, record.line))
    return missing
