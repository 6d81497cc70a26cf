"""
Tests for the toolchain facade — argument building, errors and deadline.
"""

import pytest

from binpin.adapters.mock import MockAdapter
from binpin.core.errors import DeadlineExceeded, ToolchainError
from binpin.core.models.action import Receipt
from binpin.core.services.pinning.toolchain import Deadline, Toolchain, UpdatePolicy


@pytest.fixture
def mock() -> MockAdapter:
    return MockAdapter(default_output="main")


class TestToolchain:
    """Tests for building actions and handling receipts."""

    def test_get_args(self, mock, tmp_path):
        Toolchain(mock, work_dir=tmp_path).get("t.mod", UpdatePolicy.NONE, "github.com/x/y@v1.0.0")
        (call,) = mock.calls("go.get")
        assert call.action.params == {"operation": "get", "args": ["github.com/x/y@v1.0.0"]}
        assert call.modfile == "t.mod"
        assert call.working_dir == str(tmp_path)

    def test_get_with_update(self, mock):
        Toolchain(mock).get("t.mod", UpdatePolicy.UPDATE, "github.com/x/y")
        assert mock.calls("go.get")[0].action.params["args"] == ["-u", "github.com/x/y"]

    def test_package_name(self, mock):
        assert Toolchain(mock).package_name("t.mod", "github.com/x/y", ["-tags=a"]) == "main"
        assert mock.calls("go.list")[0].action.params["args"] == [
            "-tags=a", "-mod=mod", "-f={{.Name}}", "github.com/x/y",
        ]

    def test_build_env(self, mock):
        Toolchain(mock).build("t.mod", "github.com/x/y", "/bin/y-v1", ["-v"], ["CGO_ENABLED=0", "A=b=c"])
        (call,) = mock.calls("go.build")
        assert call.action.params["args"] == ["-o", "/bin/y-v1", "-v", "github.com/x/y"]
        assert call.env_overrides == {"CGO_ENABLED": "0", "A": "b=c"}

    def test_env_has_no_modfile(self, mock):
        Toolchain(mock).env("GOMODCACHE")
        assert mock.calls("go.env")[0].modfile is None

    def test_failure_raises_with_output(self, mock):
        mock.set_response("go.get", Receipt.failure(
            adapter="go", action_id="go.get", error="go: unknown revision", output="downloading",
        ))
        with pytest.raises(ToolchainError) as exc:
            Toolchain(mock).get("t.mod", UpdatePolicy.NONE, "x")
        assert "unknown revision" in str(exc.value)
        assert "downloading" in exc.value.output

    def test_timed_out_receipt(self, mock):
        mock.set_response("go.build", Receipt.failure(
            adapter="go", action_id="go.build", error="timed out", timed_out=True,
        ))
        with pytest.raises(DeadlineExceeded):
            Toolchain(mock).build("t.mod", "x", "out")


class TestDeadline:
    """Tests for the shared run deadline."""

    def test_remaining_passed_as_timeout(self, mock):
        Toolchain(mock, deadline=Deadline(60)).env("GOPATH")
        timeout = mock.calls("go.env")[0].timeout
        assert 0 < timeout <= 60

    def test_expired_deadline_stops_before_running(self, mock, monkeypatch):
        deadline = Deadline(5)
        monkeypatch.setattr(deadline, "_expires_at", 0.0)
        with pytest.raises(DeadlineExceeded, match="5s"):
            Toolchain(mock, deadline=deadline).env("GOPATH")
        assert mock.call_count == 0

    def test_no_deadline(self, mock):
        Toolchain(mock).env("GOPATH")
        assert mock.calls("go.env")[0].timeout is None
