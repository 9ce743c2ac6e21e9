"""End-to-end tests for the plugcraft command line.

Each test invokes the real root Typer app through ``CliRunner`` inside an
isolated config directory and checks exit codes plus on-disk side effects.
"""

from __future__ import annotations

import json
import sys
import zipfile
from pathlib import Path
from typing import Callable

import pytest
from typer.testing import CliRunner

from plugcraft import __version__
from plugcraft.app import app, register_commands

register_commands()


@pytest.fixture
def runner(monkeypatch: pytest.MonkeyPatch) -> CliRunner:
    """CliRunner with colour disabled so diagnostics are printed unwrapped."""
    monkeypatch.setenv("NO_COLOR", "1")
    return CliRunner()


@pytest.fixture
def in_project(
    plugin_project: Path, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
) -> Path:
    """The sample plugin project as the working directory."""
    monkeypatch.chdir(plugin_project)
    return plugin_project


# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------


class TestRootApp:
    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"plugcraft {__version__}" in result.output

    def test_help_lists_commands(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("create", "serve", "build", "package", "validate", "config"):
            assert command in result.output

    def test_register_commands_is_idempotent(self) -> None:
        before = len(app.registered_commands)
        register_commands()
        assert len(app.registered_commands) == before


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


class TestCreate:
    def test_creates_project(self, runner: CliRunner, isolated_config: Path) -> None:
        result = runner.invoke(app, ["create", "Loyalty Points", "--template", "report"])
        assert result.exit_code == 0, result.output
        root = isolated_config / "loyalty-points"
        assert (root / "report-generator.js").is_file()
        assert "cd loyalty-points" in result.output

    def test_existing_directory_declined(self, runner: CliRunner, isolated_config: Path) -> None:
        (isolated_config / "demo").mkdir()
        result = runner.invoke(app, ["create", "Demo"], input="n\n")
        assert result.exit_code == 0
        assert "Cancelled." in result.output
        assert not (isolated_config / "demo" / "manifest.json").exists()

    def test_existing_directory_forced(self, runner: CliRunner, isolated_config: Path) -> None:
        (isolated_config / "demo").mkdir()
        result = runner.invoke(app, ["--force", "create", "Demo"])
        assert result.exit_code == 0, result.output
        assert (isolated_config / "demo" / "manifest.json").is_file()

    def test_unknown_template_is_usage_error(
        self, runner: CliRunner, isolated_config: Path
    ) -> None:
        result = runner.invoke(app, ["create", "Demo", "-t", "shop"])
        assert result.exit_code == 2
        assert "Unknown template" in result.output


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------


class TestValidate:
    def test_valid_manifest(self, runner: CliRunner, in_project: Path) -> None:
        result = runner.invoke(app, ["--json", "--quiet", "validate"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {"valid": True, "errors": [], "warnings": []}

    def test_invalid_manifest_exits_3(self, runner: CliRunner, in_project: Path) -> None:
        (in_project / "manifest.json").write_text(
            json.dumps({"name": "X", "id": "Bad Id", "version": "1.0", "entryPoint": "index.html"})
        )
        result = runner.invoke(app, ["validate"])
        assert result.exit_code == 3
        assert "id has invalid format" in result.output
        assert "version has invalid format" in result.output

    def test_warnings_do_not_fail(self, runner: CliRunner, in_project: Path) -> None:
        data = json.loads((in_project / "manifest.json").read_text())
        data["permissions"] = ["teleport"]
        (in_project / "manifest.json").write_text(json.dumps(data))
        result = runner.invoke(app, ["validate"])
        assert result.exit_code == 0
        assert "Unknown permission: teleport" in result.output

    def test_missing_manifest_exits_3(self, runner: CliRunner, isolated_config: Path) -> None:
        result = runner.invoke(app, ["validate"])
        assert result.exit_code == 3
        assert "manifest.json not found" in result.output


# ---------------------------------------------------------------------------
# build
# ---------------------------------------------------------------------------


class TestBuild:
    def test_build(self, runner: CliRunner, in_project: Path) -> None:
        result = runner.invoke(app, ["--json", "--quiet", "build", "--minify"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["minified"] is True
        assert payload["entry_point"] == "index.html"
        assert (in_project / "dist/manifest.json").is_file()

    def test_output_option(self, runner: CliRunner, in_project: Path) -> None:
        result = runner.invoke(app, ["build", "-o", "release"])
        assert result.exit_code == 0, result.output
        assert (in_project / "release/index.html").is_file()

    def test_project_config_supplies_defaults(self, runner: CliRunner, in_project: Path) -> None:
        (in_project / "plugcraft.json").write_text('{"build": {"output_dir": "www", "minify": true}}')
        result = runner.invoke(app, ["build"])
        assert result.exit_code == 0, result.output
        assert (in_project / "www/styles.css").read_text() == "body{color:red;margin:0}"

    def test_no_minify_flag_overrides_config(self, runner: CliRunner, in_project: Path) -> None:
        (in_project / "plugcraft.json").write_text('{"build": {"minify": true}}')
        result = runner.invoke(app, ["build", "--no-minify"])
        assert result.exit_code == 0, result.output
        assert (in_project / "dist/styles.css").read_bytes() == (in_project / "styles.css").read_bytes()

    def test_bundle(self, runner: CliRunner, in_project: Path) -> None:
        result = runner.invoke(app, ["build", "--bundle"])
        assert result.exit_code == 0, result.output
        assert (in_project / "dist/demo.html").is_file()

    def test_bundle_without_entry_exits_4(self, runner: CliRunner, in_project: Path) -> None:
        (in_project / "index.html").unlink()
        result = runner.invoke(app, ["build", "--bundle"])
        assert result.exit_code == 4
        assert "Entry file not found" in result.output

    def test_missing_manifest_exits_3(self, runner: CliRunner, isolated_config: Path) -> None:
        result = runner.invoke(app, ["build"])
        assert result.exit_code == 3


# ---------------------------------------------------------------------------
# package
# ---------------------------------------------------------------------------


class TestPackage:
    def test_build_then_package(self, runner: CliRunner, in_project: Path) -> None:
        assert runner.invoke(app, ["build"]).exit_code == 0
        result = runner.invoke(app, ["--json", "--quiet", "package"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["from_build"] is True
        assert payload["info"]["packageFile"] == "demo-1.0.0.webplugin"
        with zipfile.ZipFile(in_project / "demo-1.0.0.webplugin") as zf:
            assert "index.html" in zf.namelist()

    def test_package_from_source_warns(self, runner: CliRunner, in_project: Path) -> None:
        result = runner.invoke(app, ["package"])
        assert result.exit_code == 0, result.output
        assert "plugcraft build" in result.output
        assert (in_project / "demo-1.0.0.json").is_file()

    def test_missing_files_exit_6(
        self,
        runner: CliRunner,
        make_project: Callable[..., Path],
        isolated_config: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.chdir(make_project(name="empty", manifest=None))
        result = runner.invoke(app, ["package"])
        assert result.exit_code == 6
        assert "Missing required files: manifest.json" in result.output
        assert "Are you in a plugin directory?" in result.output


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


class TestConfig:
    def test_set_then_show(self, runner: CliRunner, isolated_config: Path) -> None:
        result = runner.invoke(app, ["config", "set", "serve.port", "8080"])
        assert result.exit_code == 0, result.output

        result = runner.invoke(app, ["--json", "--quiet", "config", "show"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["serve"]["port"] == 8080

    def test_set_bool(self, runner: CliRunner, isolated_config: Path) -> None:
        assert runner.invoke(app, ["config", "set", "build.minify", "yes"]).exit_code == 0
        saved = json.loads((isolated_config / "config/plugcraft/config.json").read_text())
        assert saved["build"]["minify"] is True

    @pytest.mark.parametrize(
        "key,value",
        [("serve.nope", "1"), ("nope.port", "1"), ("serve", "1"), ("serve.port", "eighty")],
    )
    def test_set_rejects_bad_input(
        self, runner: CliRunner, isolated_config: Path, key: str, value: str
    ) -> None:
        result = runner.invoke(app, ["config", "set", key, value])
        assert result.exit_code == 2

    def test_show_merges_project_and_env(
        self, runner: CliRunner, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (isolated_config / "plugcraft.json").write_text('{"serve": {"port": 4000, "host": "0.0.0.0"}}')
        monkeypatch.setenv("PLUGCRAFT_PORT", "5000")
        result = runner.invoke(app, ["--json", "--quiet", "config", "show"])
        assert result.exit_code == 0, result.output
        serve = json.loads(result.stdout)["serve"]
        assert serve == {**serve, "port": 5000, "host": "0.0.0.0"}

    def test_reset(self, runner: CliRunner, isolated_config: Path) -> None:
        runner.invoke(app, ["config", "set", "serve.port", "8080"])
        result = runner.invoke(app, ["--force", "config", "reset"])
        assert result.exit_code == 0, result.output
        saved = json.loads((isolated_config / "config/plugcraft/config.json").read_text())
        assert saved["serve"]["port"] == 3000

    def test_reset_declined(self, runner: CliRunner, isolated_config: Path) -> None:
        runner.invoke(app, ["config", "set", "serve.port", "8080"])
        result = runner.invoke(app, ["config", "reset"], input="n\n")
        assert result.exit_code == 0
        saved = json.loads((isolated_config / "config/plugcraft/config.json").read_text())
        assert saved["serve"]["port"] == 8080


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


class TestServe:
    def test_interrupt_stops_cleanly(
        self, runner: CliRunner, in_project: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        from plugcraft.server.devserver import DevServer

        def _interrupt(self: DevServer) -> None:
            raise KeyboardInterrupt

        monkeypatch.setattr(DevServer, "serve_forever", _interrupt)
        result = runner.invoke(app, ["serve", "--host", "127.0.0.1", "--port", "0"])
        assert result.exit_code == 0, result.output
        assert "Server running at: http://127.0.0.1:" in result.output
        assert "Server stopped." in result.output

    @pytest.mark.skipif(sys.platform == "win32", reason="address reuse semantics differ")
    def test_port_in_use_exits_5(
        self, runner: CliRunner, in_project: Path, quiet_output
    ) -> None:
        from plugcraft.server import start

        with start(in_project, "127.0.0.1", 0) as busy:
            result = runner.invoke(
                app, ["serve", "--host", "127.0.0.1", "--port", str(busy.port)]
            )
        assert result.exit_code == 5
        assert "already in use" in result.output

    def test_missing_manifest_exits_3(self, runner: CliRunner, isolated_config: Path) -> None:
        result = runner.invoke(app, ["serve", "--port", "0"])
        assert result.exit_code == 3


# ---------------------------------------------------------------------------
# main() entry point
# ---------------------------------------------------------------------------


class TestMain:
    @pytest.fixture(autouse=True)
    def _bare_entry_point(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("plugcraft.app._setup_signal_handlers", lambda: None)
        monkeypatch.setattr("plugcraft.app.register_commands", lambda: None)
        monkeypatch.setenv("NO_COLOR", "1")

    def test_plugcraft_error_maps_to_exit_code(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch, capsys
    ) -> None:
        from plugcraft import app as app_module
        from plugcraft.exceptions import PortInUseError

        def _raise() -> None:
            raise PortInUseError("localhost", 3000)

        monkeypatch.setattr(app_module, "app", _raise)
        with pytest.raises(SystemExit) as exc_info:
            app_module.main()
        assert exc_info.value.code == 5
        assert "--port 3001" in capsys.readouterr().err

    def test_unexpected_error_writes_crash_log(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch, capsys
    ) -> None:
        from plugcraft import app as app_module

        def _raise() -> None:
            raise RuntimeError("boom")

        monkeypatch.setattr(app_module, "app", _raise)
        with pytest.raises(SystemExit) as exc_info:
            app_module.main()
        assert exc_info.value.code == 1

        logs = list((isolated_config / "data" / "plugcraft" / "logs").glob("crash-*.log"))
        assert len(logs) == 1
        content = logs[0].read_text()
        assert f"plugcraft {__version__}" in content
        assert "RuntimeError: boom" in content
        assert "Debug log:" in capsys.readouterr().err
