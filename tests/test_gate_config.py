"""Unit tests for scripts/lib/gate_config.py."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from scripts.lib import gate_config
from scripts.lib.gate_config import GateConfig, load_config
from scripts.lib.gate_errors import GateConfigError


class TestDefaults:
    def test_defaults_without_sources(self, tmp_path):
        config = load_config(tmp_path, environ={})
        assert config.root == tmp_path.resolve()
        assert config.catalog_path == tmp_path.resolve() / "phase2-test-scenarios.csv"
        assert config.source_dir == tmp_path.resolve() / "src"
        assert config.min_total == 20
        assert config.min_automated == 17
        assert config.min_lines == 85.0
        assert config.search_strategy == "scan"
        assert config.language == "rust"
        assert config.coverage_command[:2] == ("cargo", "llvm-cov")
        assert "--all-features" in config.coverage_command
        assert "--all-targets" in config.coverage_command
        assert "--workspace" in config.coverage_command
        assert config.coverage_timeout is None

    def test_dataclass_is_frozen(self):
        config = GateConfig()
        with pytest.raises(Exception):
            config.min_total = 1  # type: ignore[misc]


class TestEnvironment:
    def test_env_overrides_defaults(self, tmp_path):
        config = load_config(
            tmp_path,
            environ={
                "MIN_TOTAL": "30",
                "MIN_AUTOMATED": " 25 ",
                "MIN_LINES": "90.5",
                "SCENARIO_CATALOG": "qa/catalog.csv",
                "SCENARIO_SOURCE_DIR": "/abs/src",
                "SCENARIO_SEARCH": "RG",
                "SCENARIO_LANGUAGE": "python",
                "COVERAGE_COMMAND": "coverage report --fail-under=0",
                "COVERAGE_TIMEOUT": "600",
            },
        )
        assert config.min_total == 30
        assert config.min_automated == 25
        assert config.min_lines == 90.5
        assert config.catalog_path == tmp_path.resolve() / "qa" / "catalog.csv"
        assert config.source_dir == Path("/abs/src")
        assert config.search_strategy == "rg"
        assert config.language == "python"
        assert config.coverage_command == ("coverage", "report", "--fail-under=0")
        assert config.coverage_timeout == 600.0

    def test_blank_env_values_are_ignored(self, tmp_path):
        config = load_config(tmp_path, environ={"MIN_TOTAL": "", "MIN_LINES": "  "})
        assert config.min_total == 20
        assert config.min_lines == 85.0

    def test_percent_sign_is_accepted(self, tmp_path):
        assert load_config(tmp_path, environ={"MIN_LINES": "80%"}).min_lines == 80.0

    @pytest.mark.parametrize(
        "name, value",
        [
            ("MIN_TOTAL", "twenty"),
            ("MIN_TOTAL", "-1"),
            ("MIN_AUTOMATED", "1.5"),
            ("MIN_LINES", "abc"),
            ("MIN_LINES", "101"),
            ("SCENARIO_SEARCH", "grep"),
            ("SCENARIO_LANGUAGE", "go"),
            ("COVERAGE_TIMEOUT", "soon"),
        ],
    )
    def test_invalid_values_raise(self, tmp_path, name, value):
        with pytest.raises(GateConfigError) as excinfo:
            load_config(tmp_path, environ={name: value})
        assert name in excinfo.value.message
        assert excinfo.value.code == "ERR_CONFIG"

    def test_zero_timeout_means_unbounded(self, tmp_path):
        assert load_config(tmp_path, environ={"COVERAGE_TIMEOUT": "0"}).coverage_timeout is None


class TestTomlFile:
    def test_gate_table_is_applied(self, tmp_path):
        (tmp_path / "quality-gate.toml").write_text(
            "[gate]\n"
            "min_total = 25\n"
            "min_lines = 80\n"
            'coverage_command = ["cargo", "llvm-cov", "--json"]\n'
            'catalog_path = "docs/scenarios.csv"\n',
            encoding="utf-8",
        )
        config = load_config(tmp_path, environ={})
        assert config.min_total == 25
        assert config.min_lines == 80.0
        assert config.coverage_command == ("cargo", "llvm-cov", "--json")
        assert config.catalog_path == tmp_path.resolve() / "docs" / "scenarios.csv"

    def test_env_beats_toml_and_overrides_beat_env(self, tmp_path):
        (tmp_path / "quality-gate.toml").write_text("[gate]\nmin_total = 25\n", encoding="utf-8")
        config = load_config(tmp_path, environ={"MIN_TOTAL": "30"})
        assert config.min_total == 30
        config = load_config(
            tmp_path,
            environ={"SCENARIO_CATALOG": "env.csv"},
            overrides={"catalog_path": "cli.csv", "source_dir": None},
        )
        assert config.catalog_path == tmp_path.resolve() / "cli.csv"
        assert config.source_dir == tmp_path.resolve() / "src"

    def test_file_without_gate_table(self, tmp_path):
        (tmp_path / "quality-gate.toml").write_text("[other]\nx = 1\n", encoding="utf-8")
        assert load_config(tmp_path, environ={}).min_total == 20

    def test_malformed_toml_raises(self, tmp_path):
        (tmp_path / "quality-gate.toml").write_text("[gate\nmin_total = ", encoding="utf-8")
        with pytest.raises(GateConfigError, match="invalid TOML"):
            load_config(tmp_path, environ={})

    def test_unknown_key_raises(self, tmp_path):
        (tmp_path / "quality-gate.toml").write_text("[gate]\nmin_things = 3\n", encoding="utf-8")
        with pytest.raises(GateConfigError, match="unknown configuration key"):
            load_config(tmp_path, environ={})

    def test_explicit_config_must_exist(self, tmp_path):
        with pytest.raises(GateConfigError, match="not found"):
            load_config(tmp_path, environ={}, config_file=tmp_path / "missing.toml")
        with pytest.raises(GateConfigError, match="not found"):
            load_config(tmp_path, environ={"QUALITY_GATE_CONFIG": "missing.toml"})

    def test_config_file_from_env(self, tmp_path):
        (tmp_path / "ci.toml").write_text("[gate]\nmin_automated = 3\n", encoding="utf-8")
        config = load_config(tmp_path, environ={"QUALITY_GATE_CONFIG": "ci.toml"})
        assert config.min_automated == 3


def test_as_dict_is_json_friendly(tmp_path):
    payload = load_config(tmp_path, environ={}).as_dict()
    assert payload["min_total"] == 20
    assert isinstance(payload["coverage_command"], list)
    assert isinstance(payload["catalog_path"], str)


def test_every_env_var_maps_to_a_field():
    fields = set(GateConfig.__dataclass_fields__)
    assert set(gate_config.ENV_VARS.values()) <= fields
