"""Tests for the terraform subprocess runner, using shell-script stand-ins."""
import sys
import threading
import time

import pytest

from tfdash.core.exceptions import LaunchError, StageCancelled, StageFailure, StageTimeout
from tfdash.modules.deployments.process_runner import RunContext, TerraformRunner

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses /bin/sh stub scripts")


class TestTerraformRunner:
    def test_streams_every_line_in_order(self, tmp_path, stub_terraform):
        binary = stub_terraform('''\
            echo "stage $1"
            echo "args $2 $3"
            echo ""
            echo "to stderr" >&2
            echo "done"
            ''')
        lines = []
        TerraformRunner(binary).run(tmp_path, "plan", ["-input=false", "-no-color"], log_sink=lines.extend)
        assert lines == ["stage plan", "args -input=false -no-color", "to stderr", "done"]

    def test_runs_in_workspace_directory(self, tmp_path, stub_terraform):
        binary = stub_terraform("pwd\n")
        work_dir = tmp_path / "ws"
        work_dir.mkdir()
        lines = []
        TerraformRunner(binary).run(work_dir, "init", log_sink=lines.extend)
        assert lines == [str(work_dir.resolve())]

    def test_non_zero_exit_raises_stage_failure(self, tmp_path, stub_terraform):
        binary = stub_terraform('echo "Error: boom"\nexit 3\n')
        lines = []
        with pytest.raises(StageFailure) as exc_info:
            TerraformRunner(binary).run(tmp_path, "apply", log_sink=lines.extend)
        assert exc_info.value.stage == "apply"
        assert exc_info.value.exit_code == 3
        assert lines == ["Error: boom"]

    def test_missing_binary_raises_launch_error(self, tmp_path):
        with pytest.raises(LaunchError) as exc_info:
            TerraformRunner(str(tmp_path / "no-such-terraform")).run(tmp_path, "init")
        assert exc_info.value.stage == "init"
        assert not isinstance(exc_info.value, StageFailure)

    def test_environment_overrides(self, tmp_path, stub_terraform, monkeypatch):
        monkeypatch.setenv("AMBIENT_MARKER", "kept")
        monkeypatch.setenv("AWS_REGION", "ap-south-1")
        binary = stub_terraform('echo "$AMBIENT_MARKER $AWS_REGION $TF_IN_AUTOMATION $TF_INPUT"\n')
        lines = []
        TerraformRunner(binary, env_overrides={"AWS_REGION": "eu-west-1"}).run(tmp_path, "init", log_sink=lines.extend)
        assert lines == ["kept eu-west-1 1 0"]

    def test_undecodable_bytes_are_replaced(self, tmp_path, stub_terraform):
        binary = stub_terraform('''\
            printf 'bad \\377 byte\\n'
            i=0
            while [ $i -lt 20000 ]; do
                echo "line $i"
                i=$((i + 1))
            done
            ''')
        lines = []
        TerraformRunner(binary).run(tmp_path, "plan", log_sink=lines.extend, timeout=60)
        assert lines[0] == "bad � byte"
        assert len(lines) == 20001
        assert lines[-1] == "line 19999"

    def test_failing_sink_does_not_block_the_stage(self, tmp_path, stub_terraform):
        binary = stub_terraform('''\
            i=0
            while [ $i -lt 20000 ]; do
                echo "line $i"
                i=$((i + 1))
            done
            ''')

        def sink(lines):
            raise RuntimeError("store unavailable")

        TerraformRunner(binary).run(tmp_path, "apply", log_sink=sink, timeout=60)

    def test_timeout_terminates_stage(self, tmp_path, stub_terraform):
        binary = stub_terraform('echo "starting"\nexec sleep 30\n')
        lines = []
        started = time.monotonic()
        with pytest.raises(StageTimeout):
            TerraformRunner(binary).run(tmp_path, "apply", log_sink=lines.extend, timeout=0.5)
        assert time.monotonic() - started < 10
        assert lines == ["starting"]

    def test_timeout_with_orphan_holding_pipe(self, tmp_path, stub_terraform):
        binary = stub_terraform('sleep 8 &\necho "starting"\nexec sleep 30\n')
        lines = []
        started = time.monotonic()
        with pytest.raises(StageTimeout):
            TerraformRunner(binary).run(tmp_path, "apply", log_sink=lines.extend, timeout=0.5)
        assert time.monotonic() - started < 8
        assert lines == ["starting"]

    def test_cancel_terminates_stage(self, tmp_path, stub_terraform):
        binary = stub_terraform("exec sleep 30\n")
        context = RunContext()
        timer = threading.Timer(0.3, context.cancel)
        timer.start()
        try:
            with pytest.raises(StageCancelled):
                TerraformRunner(binary).run(tmp_path, "apply", context=context)
        finally:
            timer.cancel()

    def test_cancelled_context_never_launches(self, tmp_path, stub_terraform):
        marker = tmp_path / "launched"
        binary = stub_terraform(f'touch "{marker}"\n')
        context = RunContext()
        context.cancel()
        with pytest.raises(StageCancelled):
            TerraformRunner(binary).run(tmp_path, "init", context=context)
        assert not marker.exists()


class TestRunContext:
    def test_stage_deadline_uses_earliest(self):
        now = [100.0]
        context = RunContext(timeout=50, clock=lambda: now[0])
        assert context.stage_deadline() == 150.0
        assert context.stage_deadline(10) == 110.0
        assert context.stage_deadline(80) == 150.0

    def test_no_deadline_by_default(self):
        assert RunContext().stage_deadline() is None
