"""Integration tests for CLI commands."""

import json
from pathlib import Path

from typer.testing import CliRunner

from codemap import __version__
from codemap.cli import app

runner = CliRunner()


class TestIndexCommand:
    """Tests for 'codemap index'."""

    def test_index_json(self, sample_project_path: Path):
        result = runner.invoke(app, ["index", str(sample_project_path), "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["metadata"]["total_files"] == 5
        assert data["metadata"]["total_functions"] == 5
        assert sorted(f["name"] for f in data["files"]) == [
            "Profile.tsx", "crypto.js", "index.ts", "login.js", "users.js",
        ]

    def test_index_table(self, sample_project_path: Path):
        result = runner.invoke(app, ["index", str(sample_project_path)])
        assert result.exit_code == 0
        assert "Files" in result.stdout
        assert "Classes" in result.stdout

    def test_index_depth_option(self, sample_project_path: Path):
        result = runner.invoke(app, ["index", str(sample_project_path), "--depth", "0", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["files"] == []

    def test_index_nonexistent_path(self):
        result = runner.invoke(app, ["index", "/nonexistent/path"])
        assert result.exit_code != 0


class TestQueryCommands:
    """Tests for 'codemap search', 'map', 'predict' and 'deps'."""

    def test_search_json(self, sample_project_path: Path):
        result = runner.invoke(
            app, ["search", str(sample_project_path), "login user", "--threshold", "0.1", "--json"]
        )
        assert result.exit_code == 0
        names = [r["name"] for r in json.loads(result.stdout)]
        assert "loginUser" in names

    def test_search_type_filter(self, sample_project_path: Path):
        result = runner.invoke(
            app,
            ["search", str(sample_project_path), "login", "--threshold", "0.1", "--type", "files", "--json"],
        )
        assert result.exit_code == 0
        assert {r["type"] for r in json.loads(result.stdout)} <= {"file"}

    def test_map_json(self, sample_project_path: Path):
        result = runner.invoke(app, [
            "map", str(sample_project_path),
            "--title", "user login",
            "--keyword", "login",
            "--id", "t-9",
            "--json",
        ])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data
        assert data[0]["task"]["id"] == "t-9"
        assert "loginUser" in [r["code_element"]["name"] for r in data]

    def test_predict_json(self, sample_project_path: Path):
        result = runner.invoke(app, [
            "predict", str(sample_project_path),
            "--title", "user login",
            "--keyword", "login",
            "--json",
        ])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["change_impact"]["change_plan"]["impact_summary"]["risk_level"] in ("low", "medium", "high")
        assert "modification_plan" in data

    def test_deps_json(self, sample_project_path: Path, abs_path):
        login = abs_path(sample_project_path, "src", "auth", "login.js")
        result = runner.invoke(app, ["deps", str(sample_project_path), f"file:{login}", "--json"])
        assert result.exit_code == 0
        edges = {d["edge"] for d in json.loads(result.stdout)}
        assert edges <= {"imports", "requires"}
        assert {"imports", "requires"} <= edges

    def test_deps_bad_direction(self, sample_project_path: Path):
        result = runner.invoke(app, ["deps", str(sample_project_path), "file:x", "--direction", "up"])
        assert result.exit_code != 0


class TestConfigCommands:
    """Tests for 'codemap config'."""

    def test_show(self):
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert "similarity_threshold" in result.stdout

    def test_set(self, _isolated_config):
        result = runner.invoke(app, ["config", "set", "maxResults", "4"])
        assert result.exit_code == 0
        assert "max_results = 4" in result.stdout
        assert "max_results = 4" in _isolated_config.read_text(encoding="utf-8")

    def test_set_unknown_key(self):
        result = runner.invoke(app, ["config", "set", "colour", "blue"])
        assert result.exit_code == 1

    def test_set_mistyped_value(self, _isolated_config):
        result = runner.invoke(app, ["config", "set", "index_depth", "abc"])
        assert result.exit_code == 1
        assert not _isolated_config.exists()


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout
