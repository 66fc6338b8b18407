"""Tests for the bi-sqlguard command line."""

from __future__ import annotations

import json

import pytest

from bi_sqlguard.cli import main
from bi_sqlguard.schema import save_schema_snapshot


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ("LOG_LEVEL", "LARGE_RESULT_ROWS", "CHART_MAX_ROWS", "CHART_NULL_THRESHOLD"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SCHEMA_SNAPSHOT_PATH", str(tmp_path / "missing_snapshot.json"))


@pytest.fixture
def snapshot_file(tmp_path, shop_schema):
    path = tmp_path / "snapshot.json"
    save_schema_snapshot(path, shop_schema, "shop")
    return path


class TestConfigCheck:
    def test_prints_settings(self, capsys):
        """config-check reports the loaded values."""
        assert main(["config-check"]) == 0
        out = capsys.readouterr().out
        assert "Configuration loaded successfully:" in out
        assert "- LOG_LEVEL: WARNING" in out
        assert "- CHART_MAX_ROWS: 1000" in out

    def test_log_level_flag_overrides_environment(self, monkeypatch, capsys):
        """--log-level replaces LOG_LEVEL."""
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        assert main(["--log-level", "info", "config-check"]) == 0
        assert "- LOG_LEVEL: INFO" in capsys.readouterr().out

    def test_invalid_environment_exits_with_two(self, monkeypatch, capsys):
        """Configuration errors use exit code 2."""
        monkeypatch.setenv("LARGE_RESULT_ROWS", "zero")
        assert main(["config-check"]) == 2
        assert "Configuration error" in capsys.readouterr().err

    def test_no_command_prints_help(self, capsys):
        """Running without a subcommand shows usage."""
        assert main([]) == 0
        assert "usage: bi-sqlguard" in capsys.readouterr().out


class TestValidateSql:
    def test_safety_only_pass(self, capsys):
        """--skip-schema runs only the safety screen."""
        assert main(["validate-sql", "SELECT * FROM users", "--skip-schema"]) == 0
        out = capsys.readouterr().out
        assert "SQL validation succeeded:" in out
        assert "- schema: skipped" in out

    def test_safety_failure(self, capsys):
        """Forbidden statements fail with the error code."""
        assert main(["validate-sql", "DROP TABLE users", "--skip-schema"]) == 1
        out = capsys.readouterr().out
        assert "SQL validation failed:" in out
        assert "- safety [forbidden_operation]:" in out

    def test_schema_pass(self, capsys, snapshot_file):
        """Known tables and columns pass against a snapshot."""
        sql = "SELECT u.name, o.amount FROM users u JOIN orders o ON o.user_id = u.id"
        assert main(["validate-sql", sql, "--schema-file", str(snapshot_file)]) == 0
        assert "- schema: passed" in capsys.readouterr().out

    def test_schema_failure(self, capsys, snapshot_file):
        """Unknown columns are listed."""
        assert main(["validate-sql", "SELECT nope FROM users", "--schema-file", str(snapshot_file)]) == 1
        out = capsys.readouterr().out
        assert "- schema: Column 'nope' does not exist in any referenced table (users)." in out

    def test_schema_path_from_environment(self, monkeypatch, capsys, snapshot_file):
        """SCHEMA_SNAPSHOT_PATH is used when --schema-file is absent."""
        monkeypatch.setenv("SCHEMA_SNAPSHOT_PATH", str(snapshot_file))
        assert main(["validate-sql", "SELECT id FROM orders"]) == 0
        assert "- schema: passed" in capsys.readouterr().out

    def test_missing_snapshot(self, capsys):
        """An unreadable snapshot fails the command."""
        assert main(["validate-sql", "SELECT id FROM users"]) == 1
        assert "Schema snapshot read failed" in capsys.readouterr().err

    def test_json_output(self, capsys, snapshot_file):
        """--json prints both results."""
        code = main(
            ["validate-sql", "SELECT ghost FROM users", "--schema-file", str(snapshot_file), "--json"]
        )
        assert code == 1
        payload = json.loads(capsys.readouterr().out)
        assert payload["valid"] is False
        assert payload["safety"] == {"valid": True}
        assert payload["schema"]["invalidColumns"] == [{"column": "ghost"}]


class TestShowSchema:
    def test_lists_tables(self, capsys, snapshot_file):
        """show-schema prints metadata and columns."""
        assert main(["show-schema", "--schema-file", str(snapshot_file)]) == 0
        out = capsys.readouterr().out
        assert "- database: shop" in out
        assert "- tables: 2" in out
        assert "  - orders: id, user_id, amount" in out

    def test_missing_snapshot(self, capsys):
        """A missing file is reported on stderr."""
        assert main(["show-schema"]) == 1
        assert "does not exist" in capsys.readouterr().err


class TestCheckResult:
    def _write(self, tmp_path, payload):
        path = tmp_path / "result.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        return path

    def test_valid_result_with_chart(self, tmp_path, capsys):
        """--chart also cleans rows."""
        path = self._write(
            tmp_path,
            {
                "columns": ["name", "value"],
                "rows": [{"name": "A", "value": 1}, {"name": None, "value": None}],
            },
        )
        assert main(["check-result", str(path), "--chart"]) == 0
        out = capsys.readouterr().out
        assert "Query result check passed:" in out
        assert "Chart data check passed:" in out
        assert "- rows: 1" in out

    def test_empty_result_json(self, tmp_path, capsys):
        """Empty rows fail with JSON output."""
        path = self._write(tmp_path, {"columns": ["name"], "rows": []})
        assert main(["check-result", str(path), "--json"]) == 1
        payload = json.loads(capsys.readouterr().out)
        assert payload["valid"] is False
        assert payload["result"]["isEmpty"] is True
        assert payload["chart"] is None

    def test_invalid_json_file(self, tmp_path, capsys):
        """A broken file is reported."""
        path = tmp_path / "result.json"
        path.write_text("[1, 2", encoding="utf-8")
        assert main(["check-result", str(path)]) == 1
        assert "not valid JSON" in capsys.readouterr().err

    def test_root_must_be_object(self, tmp_path, capsys):
        """A JSON array root is refused."""
        path = self._write(tmp_path, [{"name": "A"}])
        assert main(["check-result", str(path)]) == 1
        assert "root must be a JSON object" in capsys.readouterr().err
