"""Unit tests for BuildRunner — real subprocesses, captured per job."""

from __future__ import annotations

import queue
import sys
from pathlib import Path

import pytest

from hotforge.core.build_runner import SPAWN_FAILED_EXIT_CODE, BuildRunner
from hotforge.core.errors import BuildError
from hotforge.models.builds import BuildJob, BuildStatus
from hotforge.models.messages import BuildFinished


def _python(code: str) -> list[str]:
    return [sys.executable, "-c", code]


def _job(seq: int = 1, *paths: str) -> BuildJob:
    return BuildJob(seq=seq, trigger_paths=frozenset(Path(p) for p in paths))


class TestRun:
    def test_success_with_run_command(self, project_dir: Path):
        runner = BuildRunner(_python("print('compiled')"), project_dir, run_command=["./api"])
        result = runner.run(_job(3, "src/main.rs"))
        assert result.status == BuildStatus.SUCCEEDED
        assert result.seq == 3
        assert result.exit_code == 0
        assert result.stdout.strip() == "compiled"
        assert result.artifact.command == ("./api",)
        assert result.trigger_paths == frozenset({Path("src/main.rs")})
        assert result.duration_s >= 0

    def test_artifact_from_last_stdout_line(self, project_dir: Path):
        """Without a run command, the last stdout line names the artifact."""
        binary = project_dir / "bin" / "api"
        binary.parent.mkdir()
        binary.write_text("#!/bin/sh\n")
        runner = BuildRunner(_python("print('Compiling api'); print('bin/api')"), project_dir)
        result = runner.run(_job())
        assert result.succeeded
        assert result.artifact.path == binary
        assert result.artifact.command == (str(binary),)

    def test_success_without_artifact_is_a_failure(self, project_dir: Path):
        runner = BuildRunner(_python("print('bin/missing')"), project_dir)
        result = runner.run(_job())
        assert result.status == BuildStatus.FAILED
        assert result.exit_code == 0
        assert "no artifact" in result.diagnostics

    def test_failure_keeps_stderr_verbatim(self, project_dir: Path):
        code = (
            "import sys\n"
            "sys.stderr.write('error[E0308]: mismatched types\\n  --> src/main.rs:4:5\\n')\n"
            "sys.exit(101)\n"
        )
        runner = BuildRunner(_python(code), project_dir, run_command=["./api"])
        result = runner.run(_job(7))
        assert result.status == BuildStatus.FAILED
        assert result.exit_code == 101
        assert result.diagnostics == "error[E0308]: mismatched types\n  --> src/main.rs:4:5\n"
        assert result.artifact is None

    def test_failure_without_stderr_has_fallback_message(self, project_dir: Path):
        runner = BuildRunner(_python("raise SystemExit(2)"), project_dir, run_command=["./api"])
        result = runner.run(_job())
        assert result.diagnostics == "build exited with code 2"

    def test_same_inputs_same_classification(self, project_dir: Path):
        runner = BuildRunner(_python("raise SystemExit(1)"), project_dir, run_command=["./api"])
        first, second = runner.run(_job(1)), runner.run(_job(2))
        assert (first.status, first.exit_code) == (second.status, second.exit_code)

    def test_runs_in_project_root_with_env(self, project_dir: Path):
        code = "import os; print(os.getcwd()); print(os.environ['HF_PROFILE'])"
        runner = BuildRunner(_python(code), project_dir, env={"HF_PROFILE": "dev"}, run_command=["x"])
        lines = runner.run(_job()).stdout.splitlines()
        assert Path(lines[0]).resolve() == project_dir.resolve()
        assert lines[1] == "dev"

    def test_missing_build_tool(self, project_dir: Path):
        runner = BuildRunner(["definitely-not-a-build-tool-xyz"], project_dir)
        result = runner.run(_job())
        assert result.status == BuildStatus.FAILED
        assert result.exit_code == SPAWN_FAILED_EXIT_CODE
        assert "cannot run build command" in result.diagnostics

    def test_timeout(self, project_dir: Path):
        runner = BuildRunner(
            _python("import time; time.sleep(30)"), project_dir, timeout_s=0.5, run_command=["x"]
        )
        result = runner.run(_job())
        assert result.status == BuildStatus.TIMED_OUT
        assert result.duration_s < 10

    def test_empty_command_rejected(self, project_dir: Path):
        with pytest.raises(BuildError):
            BuildRunner([], project_dir)


class TestBackground:
    def test_submit_posts_build_finished(self, project_dir: Path):
        runner = BuildRunner(_python("pass"), project_dir, run_command=["./api"])
        channel: queue.Queue = queue.Queue()
        runner.submit(_job(5), channel.put)
        message = channel.get(timeout=10)
        assert isinstance(message, BuildFinished)
        assert message.result.seq == 5
        assert message.result.succeeded
        assert runner.in_flight is None

    def test_only_one_build_in_flight(self, project_dir: Path):
        runner = BuildRunner(_python("import time; time.sleep(30)"), project_dir, run_command=["x"])
        channel: queue.Queue = queue.Queue()
        runner.submit(_job(1), channel.put)
        try:
            assert runner.in_flight == 1
            with pytest.raises(BuildError):
                runner.submit(_job(2), channel.put)
        finally:
            runner.cancel()
            runner.join(10)

    def test_cancel_in_flight_build(self, project_dir: Path):
        runner = BuildRunner(_python("import time; time.sleep(30)"), project_dir, run_command=["x"])
        channel: queue.Queue = queue.Queue()
        runner.submit(_job(4), channel.put)
        assert runner.cancel(4) is True
        message = channel.get(timeout=10)
        assert message.result.seq == 4
        assert message.result.status == BuildStatus.CANCELLED
        assert runner.in_flight is None

    def test_cancel_other_seq_is_ignored(self, project_dir: Path):
        runner = BuildRunner(_python("import time; time.sleep(30)"), project_dir, run_command=["x"])
        channel: queue.Queue = queue.Queue()
        runner.submit(_job(1), channel.put)
        try:
            assert runner.cancel(99) is False
        finally:
            runner.cancel()
            runner.join(10)

    def test_cancel_when_idle(self, project_dir: Path):
        runner = BuildRunner(_python("pass"), project_dir)
        assert runner.cancel() is False
