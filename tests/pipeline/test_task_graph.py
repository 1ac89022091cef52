import threading

import pytest

from mediainterface_build.builders.task_graph import Task, TaskGraph, TaskStatus
from mediainterface_build.errors import ConfigurationError, CyclicDependencyError


def _recorder():
    calls = []
    lock = threading.Lock()

    def make(name, result=True, exc=None):
        def action():
            with lock:
                calls.append(name)
            if exc is not None:
                raise exc
            return result
        return action

    return calls, make


def test_dependencies_run_first(logger):
    calls, make = _recorder()
    graph = TaskGraph(logger, max_workers=4)
    graph.add_task(Task("package", make("package"), depends_on={"build"}))
    graph.add_task(Task("build", make("build"), depends_on={"configure"}))
    graph.add_task(Task("configure", make("configure")))

    result = graph.run()

    assert result.success
    assert calls == ["configure", "build", "package"]
    assert graph.execution_order() == ["configure", "build", "package"]


def test_skipped_task_unblocks_dependents(logger):
    calls, make = _recorder()
    graph = TaskGraph(logger)
    graph.add_task(Task("build", make("build"), predicate=lambda: False))
    graph.add_task(Task("copy", make("copy"), depends_on={"build"}))

    result = graph.run()

    assert result.success
    assert result.status_of("build") is TaskStatus.SKIPPED
    assert result.status_of("copy") is TaskStatus.SUCCEEDED
    assert calls == ["copy"]


def test_failure_blocks_only_dependents(logger):
    calls, make = _recorder()
    graph = TaskGraph(logger, max_workers=2)
    graph.add_task(Task("configureArm64", make("configureArm64", result=False)))
    graph.add_task(Task("buildArm64", make("buildArm64"), depends_on={"configureArm64"}))
    graph.add_task(Task("copyArm64", make("copyArm64"), depends_on={"buildArm64"}))
    graph.add_task(Task("configureX64", make("configureX64")))
    graph.add_task(Task("buildX64", make("buildX64"), depends_on={"configureX64"}))

    result = graph.run()

    assert not result.success
    assert result.failed == ["configureArm64"]
    assert result.status_of("buildArm64") is TaskStatus.BLOCKED
    assert result.status_of("copyArm64") is TaskStatus.BLOCKED
    assert result.status_of("buildX64") is TaskStatus.SUCCEEDED
    assert "buildArm64" not in calls


def test_exception_marks_task_failed(logger):
    _, make = _recorder()
    graph = TaskGraph(logger)
    graph.add_task(Task("boom", make("boom", exc=RuntimeError("no toolchain"))))

    result = graph.run()

    assert result.status_of("boom") is TaskStatus.FAILED
    assert result.outcomes[0].error == "RuntimeError: no toolchain"


def test_none_result_counts_as_success(logger):
    graph = TaskGraph(logger)
    graph.add_task(Task("noop", lambda: None))

    assert graph.run().success


def test_each_task_runs_once_with_diamond(logger):
    calls, make = _recorder()
    graph = TaskGraph(logger, max_workers=4)
    graph.add_task(Task("root", make("root")))
    graph.add_task(Task("left", make("left"), depends_on={"root"}))
    graph.add_task(Task("right", make("right"), depends_on={"root"}))
    graph.add_task(Task("join", make("join"), depends_on={"left", "right"}))

    result = graph.run()

    assert result.success
    assert sorted(calls) == ["join", "left", "right", "root"]
    assert calls[0] == "root" and calls[-1] == "join"


def test_cycle_is_rejected_before_running(logger):
    calls, make = _recorder()
    graph = TaskGraph(logger)
    graph.add_task(Task("a", make("a"), depends_on={"b"}))
    graph.add_task(Task("b", make("b"), depends_on={"a"}))

    with pytest.raises(CyclicDependencyError) as exc_info:
        graph.run()

    assert exc_info.value.cycle[0] == exc_info.value.cycle[-1]
    assert calls == []


def test_unknown_dependency_is_rejected(logger):
    graph = TaskGraph(logger)
    graph.add_task(Task("a", lambda: True, depends_on={"missing"}))

    with pytest.raises(ConfigurationError):
        graph.validate()


def test_duplicate_task_is_rejected(logger):
    graph = TaskGraph(logger)
    graph.add_task(Task("a", lambda: True))

    with pytest.raises(ConfigurationError):
        graph.add_task(Task("a", lambda: True))


def test_targets_run_with_their_closure_only(logger):
    calls, make = _recorder()
    graph = TaskGraph(logger)
    graph.add_task(Task("configure", make("configure")))
    graph.add_task(Task("build", make("build"), depends_on={"configure"}))
    graph.add_task(Task("unrelated", make("unrelated")))

    result = graph.run(["build"])

    assert calls == ["configure", "build"]
    assert [o.id for o in result.outcomes] == ["configure", "build"]
    with pytest.raises(KeyError):
        result.status_of("unrelated")


def test_unknown_target_is_a_configuration_error(logger):
    graph = TaskGraph(logger)
    graph.add_task(Task("a", lambda: True))

    with pytest.raises(ConfigurationError):
        graph.run(["b"])


def test_abort_runs_hooks_once(logger):
    hooks = []
    graph = TaskGraph(logger)
    graph.add_abort_hook(lambda: hooks.append("cancel"))

    graph.abort()
    graph.abort()

    assert hooks == ["cancel"]
    assert graph.aborted


def test_abort_during_run_stops_scheduling(logger):
    calls, make = _recorder()
    graph = TaskGraph(logger)
    graph.add_task(Task("first", lambda: graph.abort()))
    graph.add_task(Task("second", make("second"), depends_on={"first"}))

    result = graph.run()

    assert result.aborted
    assert not result.success
    assert result.status_of("second") is TaskStatus.PENDING
    assert calls == []


def test_result_to_dict(logger):
    graph = TaskGraph(logger)
    graph.add_task(Task("a", lambda: True))

    data = graph.run().to_dict()

    assert data["success"] is True
    assert data["tasks"][0]["status"] == "succeeded"
