"""Tests for job records, the registry and the concurrency gate."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from workbay.errors import JobNotFoundError
from workbay.execution import DEFAULT_TIMEOUT, ConcurrencyGate, ExecOptions, Job, JobRegistry, JobState


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.mark.unit
class TestJob:
    """Test job record lifecycle."""

    def test_job_creation(self):
        """Test a new job is running with empty buffers."""
        job = Job("echo hi", timeout=5.0)

        assert job.job_id is not None
        assert job.command == "echo hi"
        assert job.timeout == 5.0
        assert job.state == JobState.RUNNING
        assert job.is_running is True
        assert job.ended_at is None
        assert job.exit_code is None
        assert job.pid is None

    def test_job_ids_are_unique(self):
        """Test every job gets its own id."""
        ids = {Job("true").job_id for _ in range(100)}

        assert len(ids) == 100

    def test_attach_process(self):
        """Test attaching the spawned process exposes its pid."""
        job = Job("sleep 1")
        process = MagicMock()
        process.pid = 4242

        job.attach(process)

        assert job.pid == 4242

    def test_attach_twice_fails(self):
        """Test a job owns exactly one process."""
        job = Job("sleep 1")
        job.attach(MagicMock(pid=1))

        with pytest.raises(RuntimeError):
            job.attach(MagicMock(pid=2))

    def test_finalize_once(self):
        """Test only the first finalize call takes effect."""
        clock = FakeClock()
        job = Job("exit 2", clock=clock)
        job.attach(MagicMock(pid=1))

        clock.now += 1.5
        assert job.finalize(2) is True

        clock.now += 10
        assert job.finalize(124, timed_out=True) is False

        assert job.state == JobState.COMPLETE
        assert job.exit_code == 2
        assert job.timed_out is False
        assert job.ended_at == 1001.5
        assert job.pid is None

    def test_snapshot_running(self):
        """Test a running snapshot reports elapsed time and partial output."""
        clock = FakeClock()
        job = Job("build", clock=clock)
        job.append_stdout(b"step 1\n")
        job.append_stderr(b"warning\n")

        clock.now += 0.25
        status = job.snapshot()

        assert status.state == JobState.RUNNING
        assert status.is_running is True
        assert status.duration_ms == pytest.approx(250.0)
        assert status.stdout == "step 1\n"
        assert status.stderr == "warning\n"
        assert status.exit_code is None

    def test_snapshot_complete_duration_is_frozen(self):
        """Test a finished job's duration stops at ended_at."""
        clock = FakeClock()
        job = Job("true", clock=clock)

        clock.now += 2
        job.finalize(0)
        clock.now += 100

        status = job.snapshot()

        assert status.state == JobState.COMPLETE
        assert status.duration_ms == pytest.approx(2000.0)
        assert status.exit_code == 0

    def test_report_error_goes_to_stderr(self):
        """Test internal errors are appended to stderr."""
        job = Job("cat")

        job.report_error("OSError: broken pipe\n")

        assert job.snapshot().stderr == "OSError: broken pipe\n"

    def test_snapshot_truncation_flags(self):
        """Test snapshot reports which buffers were trimmed."""
        job = Job("yes", cap_bytes=8, keep_bytes=4)

        job.append_stdout(b"y\n" * 10)

        status = job.snapshot()
        assert status.stdout == "y\ny\n"
        assert status.stdout_truncated is True
        assert status.stderr_truncated is False

    def test_is_expired(self):
        """Test retention only applies to finished jobs."""
        clock = FakeClock()
        job = Job("true", clock=clock)

        assert job.is_expired(clock.now + 10_000, retention=3600) is False

        job.finalize(0)

        assert job.is_expired(clock.now + 3600, retention=3600) is False
        assert job.is_expired(clock.now + 3601, retention=3600) is True

    def test_to_dict(self):
        """Test status serialization."""
        job = Job("echo hi", job_id="job-123")
        job.finalize(0)

        data = job.snapshot().to_dict()

        assert data["job_id"] == "job-123"
        assert data["state"] == "complete"
        assert data["exit_code"] == 0


@pytest.mark.unit
class TestJobRegistry:
    """Test job registry."""

    def test_add_and_get(self):
        """Test registering and looking up a job."""
        registry = JobRegistry()
        job = Job("true")

        registry.add(job)

        assert registry.get(job.job_id) is job
        assert registry.find(job.job_id) is job
        assert job.job_id in registry
        assert len(registry) == 1

    def test_get_unknown_raises(self):
        """Test unknown ids raise JobNotFoundError."""
        registry = JobRegistry()

        with pytest.raises(JobNotFoundError) as exc_info:
            registry.get("missing")

        assert exc_info.value.job_id == "missing"
        assert "missing" in str(exc_info.value)
        assert registry.find("missing") is None

    def test_duplicate_id_rejected(self):
        """Test ids are never reused."""
        registry = JobRegistry()
        registry.add(Job("true", job_id="same"))

        with pytest.raises(ValueError):
            registry.add(Job("false", job_id="same"))

    def test_remove(self):
        """Test removing a job."""
        registry = JobRegistry()
        job = Job("true")
        registry.add(job)

        assert registry.remove(job.job_id) is True
        assert registry.remove(job.job_id) is False
        assert len(registry) == 0

    def test_jobs_returns_copy(self):
        """Test jobs() can be iterated while the registry changes."""
        registry = JobRegistry()
        for _ in range(3):
            registry.add(Job("true"))

        for job in registry.jobs():
            registry.remove(job.job_id)

        assert len(registry) == 0


@pytest.mark.unit
class TestConcurrencyGate:
    """Test concurrency gate."""

    def test_acquire_until_full(self):
        """Test the gate admits exactly capacity holders."""
        gate = ConcurrencyGate(2)

        assert gate.try_acquire() is True
        assert gate.try_acquire() is True
        assert gate.try_acquire() is False
        assert gate.running == 2
        assert gate.available == 0

    def test_release_frees_slot(self):
        """Test releasing lets the next caller in."""
        gate = ConcurrencyGate(1)
        gate.try_acquire()

        gate.release()

        assert gate.running == 0
        assert gate.try_acquire() is True

    def test_release_without_acquire(self):
        """Test the counter never goes negative."""
        gate = ConcurrencyGate(1)

        with pytest.raises(RuntimeError):
            gate.release()

        assert gate.running == 0

    def test_invalid_capacity(self):
        """Test capacity must be positive."""
        with pytest.raises(ValueError):
            ConcurrencyGate(0)


@pytest.mark.unit
class TestExecOptions:
    """Test option defaults and resolution."""

    def test_timeout_left_unset(self):
        """Test an omitted timeout is marked for the configured default."""
        options = ExecOptions(cwd=Path("/tmp"))

        assert options.timeout is DEFAULT_TIMEOUT
        assert options.resolve(30).timeout == 30

    def test_resolve_keeps_explicit_values(self):
        """Test explicit timeouts, including None, survive resolution."""
        assert ExecOptions(timeout=5.0).resolve(30).timeout == 5.0
        assert ExecOptions(timeout=None).resolve(30).timeout is None

    def test_resolve_fills_cwd(self):
        """Test the fallback directory applies only when none was given."""
        assert ExecOptions().resolve(30, cwd=Path("/workspace")).cwd == Path("/workspace")
        assert ExecOptions(cwd=Path("/src")).resolve(30, cwd=Path("/workspace")).cwd == Path("/src")

    def test_from_request_unbounded_wins(self):
        """Test unbounded disables the timeout even when timeout_ms is set."""
        options = ExecOptions.from_request(timeout_ms=500, unbounded=True, default_timeout=30)

        assert options.timeout is None

    def test_from_request_milliseconds(self):
        """Test timeout_ms is converted to seconds."""
        assert ExecOptions.from_request(timeout_ms=1500).timeout == 1.5
        assert ExecOptions.from_request(default_timeout=30).timeout == 30
