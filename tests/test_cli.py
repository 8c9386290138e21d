"""
Tests for the envlocal command-line interface.
"""

import sys

import pytest
from click.testing import CliRunner

from envlocal.core import syncer
from envlocal.core.remote import RemoteFetchError
from envlocal.main import cli


SERVICE_YML = """\
service: svc
provider:
  name: aws
functions:
  hello:
    handler: handler.hello
  broken:
    handler: handler.broken
"""

REMOTE = {
    "svc-dev-hello": {"FOO": "bar", "MULTI": "line1\nline2", "DB_PASSWORD": "hunter2"},
}


class FakeLambdaFetcher:
    """Replaces the boto3-backed fetcher for CLI runs."""

    def __init__(self, region, client=None):
        self.region = region

    def fetch_resolved_environment(self, remote_id):
        if remote_id not in REMOTE:
            raise RemoteFetchError(remote_id, "ResourceNotFoundException")
        return dict(REMOTE[remote_id])


@pytest.fixture
def project(tmp_path, monkeypatch):
    (tmp_path / "serverless.yml").write_text(SERVICE_YML)
    monkeypatch.setattr(syncer, "LambdaEnvironmentFetcher", FakeLambdaFetcher)
    for name in ("ENVLOCAL_STAGE", "ENVLOCAL_REGION", "ENVLOCAL_PROJECT_ROOT", "ENVLOCAL_MAX_WORKERS"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


@pytest.fixture
def runner():
    return CliRunner()


class TestCapture:

    def test_capture_selected_function(self, runner, project):
        result = runner.invoke(cli, ["capture", "--project-root", str(project), "-f", "hello"])

        assert result.exit_code == 0, result.output
        path = project / ".serverless-env-local" / ".us-east-1_dev_hello"
        assert path.read_text() == "FOO=bar\nMULTI=line1\\nline2\nDB_PASSWORD=hunter2\n"

    def test_capture_reports_failures(self, runner, project):
        """One missing function fails the command but the others are written."""
        result = runner.invoke(cli, ["capture", "--project-root", str(project)])

        assert result.exit_code == 1
        assert (project / ".serverless-env-local" / ".us-east-1_dev_hello").exists()
        assert not (project / ".serverless-env-local" / ".us-east-1_dev_broken").exists()
        assert "svc-dev-broken" in result.output

    def test_capture_unknown_function(self, runner, project):
        result = runner.invoke(cli, ["capture", "--project-root", str(project), "-f", "nope"])
        assert result.exit_code == 1

    def test_missing_service_file(self, runner, tmp_path):
        result = runner.invoke(cli, ["capture", "--project-root", str(tmp_path)])
        assert result.exit_code == 1
        assert "serverless.yml" in result.output


class TestInject:

    def test_prints_exports(self, runner, project, monkeypatch):
        # Registered so monkeypatch removes whatever inject sets
        for key in ("FOO", "MULTI", "DB_PASSWORD"):
            monkeypatch.setenv(key, "before")
        runner.invoke(cli, ["capture", "--project-root", str(project), "-f", "hello"])

        result = runner.invoke(cli, ["inject", "--project-root", str(project), "-f", "hello"])

        assert result.exit_code == 0, result.output
        assert "export FOO=bar" in result.output
        assert "export MULTI='line1\nline2'" in result.output

    def test_runs_command_with_environment(self, runner, project, monkeypatch):
        """The command sees the captured variables and its status is passed through."""
        for key in ("FOO", "MULTI", "DB_PASSWORD"):
            monkeypatch.setenv(key, "before")
        runner.invoke(cli, ["capture", "--project-root", str(project), "-f", "hello"])

        check = "import os, sys; sys.exit(0 if os.environ['FOO'] == 'bar' else 3)"
        result = runner.invoke(
            cli,
            ["inject", "--project-root", str(project), "-f", "hello", "--", sys.executable, "-c", check],
        )

        assert result.exit_code == 0, result.output

    def test_command_exit_status(self, runner, project):
        result = runner.invoke(
            cli,
            ["inject", "--project-root", str(project), "-f", "hello", "--", sys.executable, "-c", "raise SystemExit(5)"],
        )
        assert result.exit_code == 5

    def test_missing_command(self, runner, project):
        result = runner.invoke(
            cli,
            ["inject", "--project-root", str(project), "-f", "hello", "--", "envlocal-no-such-command"],
        )
        assert result.exit_code == 127

    def test_skips_keys_that_are_not_shell_names(self, runner, project, monkeypatch):
        """A hand-edited key must not turn into shell code in export output."""
        for key in ("X;touch pwned", "FOO"):
            monkeypatch.setenv(key, "before")
        store_dir = project / ".serverless-env-local"
        store_dir.mkdir()
        (store_dir / ".us-east-1_dev_hello").write_text("X;touch pwned=1\nFOO=bar\n")

        result = runner.invoke(cli, ["inject", "--project-root", str(project), "-f", "hello"])

        assert result.exit_code == 0, result.output
        exports = [line for line in result.output.splitlines() if line.startswith("export ")]
        assert exports == ["export FOO=bar"]

    def test_nothing_captured(self, runner, project):
        result = runner.invoke(cli, ["inject", "--project-root", str(project), "-f", "hello"])
        assert result.exit_code == 0
        assert "export" not in result.output


class TestShowAndPath:

    def test_path(self, runner, project):
        result = runner.invoke(cli, ["path", "--project-root", str(project), "-f", "hello", "--stage", "prod"])
        assert result.exit_code == 0
        assert result.output.strip().endswith(".serverless-env-local/.us-east-1_prod_hello")

    def test_show_masks_secrets(self, runner, project):
        runner.invoke(cli, ["capture", "--project-root", str(project), "-f", "hello"])

        result = runner.invoke(cli, ["show", "--project-root", str(project), "-f", "hello"])

        assert result.exit_code == 0, result.output
        assert "FOO" in result.output
        assert "hunter2" not in result.output

    def test_show_reveal(self, runner, project):
        runner.invoke(cli, ["capture", "--project-root", str(project), "-f", "hello"])

        result = runner.invoke(cli, ["show", "--project-root", str(project), "-f", "hello", "--reveal"])

        assert result.exit_code == 0, result.output
        assert "hunter2" in result.output
        assert "line1\\nline2" in result.output

    def test_show_nothing_captured(self, runner, project):
        result = runner.invoke(cli, ["show", "--project-root", str(project), "-f", "hello"])
        assert result.exit_code == 0
        assert "No captured environment" in result.output
