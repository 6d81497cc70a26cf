"""
Tests for CLI commands — get, list, and global options.
"""

from pathlib import Path

import pytest
from click.testing import CliRunner

from binpin.adapters.toolchain import go as go_adapter
from binpin.core.services.pinning.manifest import MARKER_COMMENT
from binpin.main import cli

TOOL_PKG = "github.com/x/tool/cmd/tool"


@pytest.fixture
def project(tmp_path: Path, monkeypatch, fake_go) -> Path:
    """A project directory whose go binary is the fake toolchain."""
    root = tmp_path / "project"
    root.mkdir()
    monkeypatch.chdir(root)
    for var in ("BINPIN_MODDIR", "BINPIN_GO", "BINPIN_TIMEOUT", "GOPATH"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("GOBIN", str(fake_go.install_dir))
    monkeypatch.setenv("GOMODCACHE", str(fake_go.gomodcache))
    monkeypatch.setattr(go_adapter, "GoAdapter", lambda go_binary="go": fake_go.adapter)
    fake_go.publish("github.com/x/tool", "v1.0.0", "v1.1.0", packages=("cmd/tool",))
    return root


class TestCLIGlobal:
    """Tests for global CLI behavior."""

    def test_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "binpin" in result.output
        assert "get" in result.output
        assert "list" in result.output

    def test_version(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestGetCommand:
    """Tests for the get command."""

    def test_get_pins_tool(self, project):
        runner = CliRunner()
        result = runner.invoke(cli, ["get", f"{TOOL_PKG}@v1.0.0"])
        assert result.exit_code == 0, result.output
        assert f"{TOOL_PKG}@v1.0.0" in result.output
        assert (project / ".binpin" / "tool.mod").read_text().startswith(f"module _ {MARKER_COMMENT}")

    def test_moddir_option(self, project):
        runner = CliRunner()
        result = runner.invoke(cli, ["get", "--moddir", "deps", f"{TOOL_PKG}@v1.0.0"])
        assert result.exit_code == 0, result.output
        assert (project / "deps" / "tool.mod").is_file()

    def test_config_file_moddir(self, project):
        (project / "binpin.yml").write_text("mod_dir: tools\n")
        runner = CliRunner()
        result = runner.invoke(cli, ["get", f"{TOOL_PKG}@v1.0.0"])
        assert result.exit_code == 0, result.output
        assert (project / "tools" / "tool.mod").is_file()

    def test_uninstall(self, project):
        runner = CliRunner()
        runner.invoke(cli, ["get", f"{TOOL_PKG}@v1.0.0"])
        result = runner.invoke(cli, ["get", "tool@none"])
        assert result.exit_code == 0, result.output
        assert "Removed tool" in result.output
        assert not (project / ".binpin" / "tool.mod").exists()

    def test_error_exits_1(self, project):
        runner = CliRunner()
        result = runner.invoke(cli, ["get", "tool"])
        assert result.exit_code == 1
        assert "never installed" in result.output

    def test_error_shows_cause(self, project, fake_go):
        fake_go.adapter.set_failure("go.build", error="undefined: foo")
        runner = CliRunner()
        result = runner.invoke(cli, ["get", f"{TOOL_PKG}@v1.0.0"])
        assert result.exit_code == 1
        assert "tool.mod: getting" in result.output
        assert "undefined: foo" in result.output

    def test_update_flags_are_exclusive(self, project):
        runner = CliRunner()
        result = runner.invoke(cli, ["get", "-u", "--upatch", "tool"])
        assert result.exit_code == 1
        assert "cannot be used together" in result.output

    def test_update(self, project, fake_go):
        runner = CliRunner()
        runner.invoke(cli, ["get", f"{TOOL_PKG}@v1.0.0"])
        result = runner.invoke(cli, ["get", "-u", "tool"])
        assert result.exit_code == 0, result.output
        assert f"{TOOL_PKG}@v1.1.0" in result.output
        assert fake_go.adapter.calls("go.get")[-1].action.params["args"][0] == "-u"

    def test_rename(self, project):
        runner = CliRunner()
        runner.invoke(cli, ["get", f"{TOOL_PKG}@v1.0.0"])
        result = runner.invoke(cli, ["get", "tool", "-r", "newtool"])
        assert result.exit_code == 0, result.output
        assert (project / ".binpin" / "newtool.mod").is_file()
        assert not (project / ".binpin" / "tool.mod").exists()

    def test_bad_config(self, project):
        (project / "binpin.yml").write_text("timeout_seconds: -1\n")
        runner = CliRunner()
        result = runner.invoke(cli, ["get", f"{TOOL_PKG}@v1.0.0"])
        assert result.exit_code == 1
        assert "Invalid binpin configuration" in result.output


class TestListCommand:
    """Tests for the list command."""

    def test_list(self, project):
        runner = CliRunner()
        runner.invoke(cli, ["get", f"{TOOL_PKG}@v1.0.0,v1.1.0"])
        result = runner.invoke(cli, ["list"])
        assert result.exit_code == 0, result.output
        assert "Package @ Version" in result.output
        assert f"{TOOL_PKG}@v1.0.0" in result.output
        assert "tool-v1.1.0" in result.output

    def test_list_one_tool(self, project):
        runner = CliRunner()
        runner.invoke(cli, ["get", f"{TOOL_PKG}@v1.0.0"])
        result = runner.invoke(cli, ["list", "tool"])
        assert result.exit_code == 0
        assert len(result.output.splitlines()) == 2

    def test_list_unknown_tool(self, project):
        runner = CliRunner()
        runner.invoke(cli, ["get", f"{TOOL_PKG}@v1.0.0"])
        result = runner.invoke(cli, ["list", "nope"])
        assert result.exit_code == 1
        assert "Pinned tool nope not found" in result.output

    def test_list_without_pin_dir(self, project):
        runner = CliRunner()
        result = runner.invoke(cli, ["list"])
        assert result.exit_code == 1
        assert "does not exist" in result.output
