import sys
import threading
import time

from mediainterface_build.builders.toolchain import (
    EXIT_CANCELLED,
    EXIT_SPAWN_FAILED,
    EXIT_TIMED_OUT,
    ToolchainInvoker,
)


def test_captures_combined_output(tmp_path):
    result = ToolchainInvoker().run(
        tmp_path, sys.executable,
        ["-c", "import sys; print('out'); print('err', file=sys.stderr)"])

    assert result.ok
    assert "out" in result.output
    assert "err" in result.output


def test_reports_exit_code(tmp_path):
    result = ToolchainInvoker().run(tmp_path, sys.executable, ["-c", "raise SystemExit(3)"])

    assert result.exit_code == 3
    assert not result.ok


def test_runs_in_working_directory(tmp_path):
    result = ToolchainInvoker().run(tmp_path, sys.executable, ["-c", "import os; print(os.getcwd())"])

    assert result.output.endswith(tmp_path.name)


def test_env_overrides_are_applied(tmp_path):
    result = ToolchainInvoker().run(
        tmp_path, sys.executable, ["-c", "import os; print(os.environ['JAVA_HOME'])"],
        env_overrides={"JAVA_HOME": "/opt/jdk"})

    assert result.output == "/opt/jdk"


def test_missing_executable_is_not_raised(tmp_path):
    result = ToolchainInvoker().run(tmp_path, "definitely-not-a-tool-xyz", ["--version"])

    assert result.exit_code == EXIT_SPAWN_FAILED


def test_timeout_kills_process(tmp_path):
    start = time.monotonic()
    result = ToolchainInvoker().run(tmp_path, sys.executable, ["-c", "import time; time.sleep(30)"],
                                    timeout=0.5)

    assert result.exit_code == EXIT_TIMED_OUT
    assert result.timed_out
    assert time.monotonic() - start < 15


def test_dry_run_does_not_execute(tmp_path, logger):
    marker = tmp_path / "marker"
    invoker = ToolchainInvoker(logger, dry_run=True)

    result = invoker.run(tmp_path, sys.executable, ["-c", f"open({str(marker)!r}, 'w')"])

    assert result.ok
    assert not marker.exists()
    assert invoker.history[0][0] == sys.executable


def test_cancel_terminates_running_process(tmp_path):
    invoker = ToolchainInvoker()
    results = []
    thread = threading.Thread(target=lambda: results.append(
        invoker.run(tmp_path, sys.executable, ["-c", "import time; time.sleep(30)"])))
    thread.start()
    time.sleep(0.5)

    invoker.cancel()
    thread.join(timeout=15)

    assert not thread.is_alive()
    assert results[0].exit_code == EXIT_CANCELLED
    assert results[0].cancelled


def test_cancelled_invoker_refuses_new_runs(tmp_path):
    invoker = ToolchainInvoker()
    invoker.cancel()

    assert invoker.run(tmp_path, sys.executable, ["-c", "pass"]).exit_code == EXIT_CANCELLED

    invoker.reset()
    assert invoker.run(tmp_path, sys.executable, ["-c", "pass"]).ok
