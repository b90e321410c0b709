"""End-to-end tests of the opscribe CLI against the fixture projects."""

from __future__ import annotations

import json
import sys

import pytest

from opscribe import __version__
from opscribe.app import app, main
from opscribe.exceptions import InvalidUsageError, MissingMethodError
from opscribe.exit_codes import EXIT_INVALID_USAGE, EXIT_RESOLUTION_FAILURE


@pytest.fixture(autouse=True)
def _isolated(isolated_config):
    """Keep every CLI run away from the real user config."""
    return isolated_config


class TestRootCommand:
    def test_version(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"opscribe {__version__}" in result.output

    def test_help_lists_commands(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("projects", "endpoints", "resolve", "config"):
            assert command in result.output


class TestProjectsCommand:
    def test_json(self, cli_runner, apis_dir) -> None:
        result = cli_runner.invoke(app, ["--json", "--quiet", "projects", str(apis_dir)])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == [
            {"name": "Legacy", "rootPath": "Legacy/openapi.yml", "fileCount": "2"},
            {"name": "main@v1", "rootPath": "Main/openapi.yaml", "fileCount": "14"},
        ]

    def test_plain(self, cli_runner, apis_dir) -> None:
        result = cli_runner.invoke(app, ["--plain", "projects", str(apis_dir)])
        assert result.exit_code == 0
        lines = result.stdout.splitlines()
        assert lines[0] == "name\trootPath\tfileCount"
        assert lines[2] == "main@v1\tMain/openapi.yaml\t14"

    def test_no_projects(self, cli_runner, tmp_path) -> None:
        result = cli_runner.invoke(app, ["--json", "--quiet", "projects", str(tmp_path)])
        assert result.exit_code == 0
        assert result.stdout.strip() == ""

    def test_points_to_endpoints_command(self, cli_runner, apis_dir) -> None:
        result = cli_runner.invoke(app, ["--plain", "projects", str(apis_dir)])
        assert result.exit_code == 0
        assert "opscribe endpoints <rootPath>" in result.output

    def test_plain_flag_beats_configured_format(self, cli_runner, apis_dir) -> None:
        cli_runner.invoke(app, ["config", "set", "output.format", "json"])
        result = cli_runner.invoke(app, ["--plain", "--quiet", "projects", str(apis_dir)])
        assert result.stdout.splitlines()[0] == "name\trootPath\tfileCount"

    def test_invalid_environment_keeps_flag_format(
        self, cli_runner, apis_dir, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("OPSCRIBE_MAX_DEPTH", "deep")
        result = cli_runner.invoke(app, ["--json", "--quiet", "projects", str(apis_dir)])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)[0]["name"] == "Legacy"


class TestEndpointsCommand:
    def test_lists_endpoints(self, cli_runner, apis_dir) -> None:
        result = cli_runner.invoke(
            app, ["--json", "endpoints", "Main/openapi.yaml", "--base", str(apis_dir)]
        )
        assert result.exit_code == 0, result.output
        rows = json.loads(result.stdout)
        assert [row["apiPath"] for row in rows] == ["/users", "/orders"]
        assert rows[1]["methods"] == "GET, POST"

    def test_project_without_endpoints_warns(self, cli_runner, tmp_path) -> None:
        (tmp_path / "Empty").mkdir()
        (tmp_path / "Empty" / "openapi.yaml").write_text("openapi: 3.0.0\npaths: {}\n")
        result = cli_runner.invoke(
            app, ["--json", "endpoints", "Empty/openapi.yaml", "--base", str(tmp_path)]
        )
        assert result.exit_code == 0, result.output
        assert "No endpoints found in Empty/openapi.yaml" in result.output

    def test_base_and_remote_conflict(self, cli_runner, apis_dir) -> None:
        result = cli_runner.invoke(
            app,
            [
                "endpoints",
                "Main/openapi.yaml",
                "--base",
                str(apis_dir),
                "--remote",
                "http://docs.test/api",
            ],
        )
        assert isinstance(result.exception, InvalidUsageError)


class TestResolveCommand:
    def test_json_payload(self, cli_runner, apis_dir) -> None:
        result = cli_runner.invoke(
            app, ["--json", "resolve", "Main/openapi.yaml", "users", "get", "--base", str(apis_dir)]
        )
        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["method"] == "GET"
        assert payload["url"] == "/users"
        assert [f["name"] for f in payload["responseSchemas"][0]["fields"]] == ["id", "name"]

    def test_plain_outline(self, cli_runner, apis_dir) -> None:
        result = cli_runner.invoke(
            app, ["--plain", "resolve", "Main/openapi.yaml", "/users", "post", "--base", str(apis_dir)]
        )
        assert result.exit_code == 0, result.output
        assert "POST /users" in result.stdout

    def test_rich_output(self, cli_runner, apis_dir) -> None:
        result = cli_runner.invoke(
            app, ["resolve", "Main/openapi.yaml", "orders", "--base", str(apis_dir)]
        )
        assert result.exit_code == 0, result.output
        assert "listOrders" in result.stdout

    def test_missing_method(self, cli_runner, apis_dir) -> None:
        result = cli_runner.invoke(
            app, ["resolve", "Main/openapi.yaml", "users", "delete", "--base", str(apis_dir)]
        )
        assert isinstance(result.exception, MissingMethodError)

    def test_max_depth_flag_validated(self, cli_runner, apis_dir) -> None:
        result = cli_runner.invoke(
            app,
            ["resolve", "Main/openapi.yaml", "users", "--base", str(apis_dir), "--max-depth", "0"],
        )
        assert result.exit_code == 2


class TestConfigCommands:
    def test_show_defaults(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--json", "--quiet", "config", "show"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["resolver"]["max_depth"] == 32
        assert data["output"]["format"] == "auto"

    def test_set_then_show(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["config", "set", "resolver.max_files", "64"])
        assert result.exit_code == 0, result.output

        result = cli_runner.invoke(app, ["--json", "--quiet", "config", "show"])
        assert json.loads(result.stdout)["resolver"]["max_files"] == 64

    def test_set_output_format_applies_to_next_run(self, cli_runner, apis_dir) -> None:
        cli_runner.invoke(app, ["config", "set", "output.format", "json"])
        result = cli_runner.invoke(app, ["--quiet", "projects", str(apis_dir)])
        assert json.loads(result.stdout)[0]["name"] == "Legacy"


class TestMainEntryPoint:
    def test_opscribe_error_exit_code(
        self, apis_dir, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setattr("opscribe.app._setup_signal_handlers", lambda: None)
        monkeypatch.setattr(
            sys,
            "argv",
            ["opscribe", "resolve", "Main/openapi.yaml", "nope", "--base", str(apis_dir)],
        )
        with pytest.raises(SystemExit) as excinfo:
            main()
        assert excinfo.value.code == EXIT_RESOLUTION_FAILURE
        assert "Endpoint not found: nope" in capsys.readouterr().err

    def test_invalid_usage_exit_code(
        self, apis_dir, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr("opscribe.app._setup_signal_handlers", lambda: None)
        monkeypatch.setattr(
            sys,
            "argv",
            [
                "opscribe",
                "endpoints",
                "Main/openapi.yaml",
                "--base",
                str(apis_dir),
                "--remote",
                "http://docs.test/api",
            ],
        )
        with pytest.raises(SystemExit) as excinfo:
            main()
        assert excinfo.value.code == EXIT_INVALID_USAGE
