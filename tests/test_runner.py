"""Tests for the synchronous runner."""

import contextlib
import os
import signal
from pathlib import Path

import pytest

from workbay.errors import SpawnFailureError
from workbay.execution import TIMEOUT_EXIT_CODE, ExecOptions, run_sync


@pytest.mark.integration
class TestRunSync:
    """Test running commands to completion."""

    @pytest.mark.asyncio
    async def test_echo(self, tmp_path):
        """Test a simple command returns its output."""
        result = await run_sync('echo "hello world"', ExecOptions(cwd=tmp_path))

        assert result.stdout == "hello world\n"
        assert result.stderr == ""
        assert result.exit_code == 0
        assert result.duration_ms > 0
        assert result.timed_out is False

    @pytest.mark.asyncio
    async def test_error_exit(self, tmp_path):
        """Test a non-zero exit is a normal result."""
        result = await run_sync("exit 1", ExecOptions(cwd=tmp_path))

        assert result.exit_code == 1
        assert result.stdout == ""
        assert result.stderr == ""
        assert result.duration_ms > 0

    @pytest.mark.asyncio
    async def test_stderr(self, tmp_path):
        """Test stderr is captured separately."""
        result = await run_sync("echo out; echo err >&2", ExecOptions(cwd=tmp_path))

        assert result.stdout == "out\n"
        assert result.stderr == "err\n"

    @pytest.mark.asyncio
    async def test_working_directory(self, tmp_path):
        """Test the command runs in the requested directory."""
        (tmp_path / "marker.txt").write_text("here")

        result = await run_sync("cat marker.txt && pwd", ExecOptions(cwd=tmp_path))

        lines = result.stdout.splitlines()
        assert lines[0] == "here"
        assert Path(lines[1]).resolve() == tmp_path.resolve()

    @pytest.mark.asyncio
    async def test_output_is_not_capped(self, tmp_path):
        """Test the runner keeps all output, even past the job buffer cap."""
        result = await run_sync("head -c 2000000 /dev/zero | tr '\\0' 'x'", ExecOptions(cwd=tmp_path))

        assert len(result.stdout) == 2_000_000
        assert result.exit_code == 0

    @pytest.mark.asyncio
    async def test_timeout(self, tmp_path):
        """Test the runner kills commands that exceed their timeout."""
        result = await run_sync("echo started; sleep 5", ExecOptions(cwd=tmp_path, timeout=0.5))

        assert result.timed_out is True
        assert result.exit_code == TIMEOUT_EXIT_CODE
        assert result.stdout == "started\n"
        assert result.duration_ms < 4000

    @pytest.mark.asyncio
    async def test_background_descendant(self, tmp_path):
        """Test the runner returns when the shell exits, not when a daemon it started closes the pipes."""
        try:
            result = await run_sync(
                "(sleep 30 & echo $! > bg.pid); echo hi",
                ExecOptions(cwd=tmp_path, timeout=10),
                drain_timeout=0.5,
            )

            assert result.exit_code == 0
            assert result.timed_out is False
            assert result.stdout == "hi\n"
            assert result.duration_ms < 3000
        finally:
            pid_file = tmp_path / "bg.pid"
            if pid_file.exists():
                with contextlib.suppress(ProcessLookupError, ValueError):
                    os.kill(int(pid_file.read_text().strip()), signal.SIGKILL)

    @pytest.mark.asyncio
    async def test_spawn_failure(self, tmp_path):
        """Test a bad working directory raises SpawnFailureError."""
        with pytest.raises(SpawnFailureError):
            await run_sync("true", ExecOptions(cwd=tmp_path / "nope"))
