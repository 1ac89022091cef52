"""Dependency-ordered task execution with host predicates.

The same graph is registered on every host; each task carries a predicate
(usually "the host is macOS" or "the host is Windows") that is evaluated once
per run right before its action. A task whose predicate is false is
*skipped*: it produces nothing but still unblocks its dependents, which must
cope with the missing output themselves.

A failed task blocks every task that depends on it, directly or
transitively. Tasks with no dependency relation to the failure keep running.

Usage:
    graph = TaskGraph(logger, max_workers=4)
    graph.add_task(Task("configure", action=configure, predicate=is_mac))
    graph.add_task(Task("build", action=build, depends_on={"configure"}, predicate=is_mac))
    result = graph.run()
"""

import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from ..errors import ConfigurationError, CyclicDependencyError


class TaskStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"
    BLOCKED = "blocked"


TERMINAL = (TaskStatus.SUCCEEDED, TaskStatus.SKIPPED, TaskStatus.FAILED, TaskStatus.BLOCKED)
UNBLOCKING = (TaskStatus.SUCCEEDED, TaskStatus.SKIPPED)


def always() -> bool:
    return True


@dataclass
class Task:
    """A named pipeline step.

    Attributes:
        id: Unique task name
        action: Does the work; returns False (or raises) on failure
        depends_on: Ids of tasks that must finish first
        predicate: Whether the action should run on this host
        description: Human-readable summary
    """

    id: str
    action: Callable[[], Optional[bool]]
    depends_on: Set[str] = field(default_factory=set)
    predicate: Callable[[], bool] = always
    description: str = ""

    def __post_init__(self):
        self.depends_on = set(self.depends_on)


@dataclass
class TaskOutcome:
    """State of a task within one run"""

    id: str
    status: TaskStatus = TaskStatus.PENDING
    error: str = ""
    elapsed: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "error": self.error,
            "elapsed": round(self.elapsed, 3),
        }


@dataclass
class PipelineResult:
    """Outcome of a graph run, in execution order"""

    outcomes: List[TaskOutcome]
    total_elapsed: float
    aborted: bool = False

    @property
    def success(self) -> bool:
        return not self.aborted and not any(
            o.status in (TaskStatus.FAILED, TaskStatus.BLOCKED) for o in self.outcomes
        )

    def status_of(self, task_id: str) -> TaskStatus:
        for outcome in self.outcomes:
            if outcome.id == task_id:
                return outcome.status
        raise KeyError(f"Task did not take part in the run: {task_id}")

    def with_status(self, status: TaskStatus) -> List[str]:
        return [o.id for o in self.outcomes if o.status == status]

    @property
    def failed(self) -> List[str]:
        return self.with_status(TaskStatus.FAILED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "aborted": self.aborted,
            "total_elapsed": round(self.total_elapsed, 3),
            "tasks": [o.to_dict() for o in self.outcomes],
        }


class TaskGraph:
    """Holds tasks and runs them in dependency order on a worker pool"""

    def __init__(self, logger, max_workers: int = 1):
        """
        Initialize task graph

        Args:
            logger: Logger instance
            max_workers: Upper bound on concurrently running tasks
        """
        self.logger = logger
        self.max_workers = max(1, int(max_workers))
        self._tasks: Dict[str, Task] = {}
        self._abort = threading.Event()
        self._abort_hooks: List[Callable[[], None]] = []

    def add_task(self, task: Task) -> Task:
        if task.id in self._tasks:
            raise ConfigurationError(f"Duplicate task name: {task.id}")
        self._tasks[task.id] = task
        return task

    def add_abort_hook(self, hook: Callable[[], None]):
        """Register a callback run when the pipeline is aborted"""
        self._abort_hooks.append(hook)

    def get_task(self, task_id: str) -> Task:
        if task_id not in self._tasks:
            raise KeyError(f"Unknown task: {task_id}")
        return self._tasks[task_id]

    @property
    def task_ids(self) -> List[str]:
        return list(self._tasks)

    def validate(self):
        """
        Check every dependency exists and the graph is acyclic

        Raises:
            ConfigurationError: On a reference to an unknown task
            CyclicDependencyError: If the graph has a cycle
        """
        for task in self._tasks.values():
            for dep in sorted(task.depends_on):
                if dep not in self._tasks:
                    raise ConfigurationError(f"Task '{task.id}' depends on unknown task '{dep}'")

        WHITE, GRAY, BLACK = 0, 1, 2
        color = {task_id: WHITE for task_id in self._tasks}

        def dfs(task_id: str, path: List[str]):
            color[task_id] = GRAY
            path.append(task_id)
            for dep in sorted(self._tasks[task_id].depends_on):
                if color[dep] == GRAY:
                    raise CyclicDependencyError(path[path.index(dep):] + [dep])
                if color[dep] == WHITE:
                    dfs(dep, path)
            path.pop()
            color[task_id] = BLACK

        for task_id in self._tasks:
            if color[task_id] == WHITE:
                dfs(task_id, [])

    def closure(self, targets: Iterable[str]) -> List[str]:
        """Targets plus everything they depend on, in registration order"""
        selected: Set[str] = set()
        stack = list(targets)
        while stack:
            task_id = stack.pop()
            if task_id in selected:
                continue
            if task_id not in self._tasks:
                raise ConfigurationError(f"Unknown task: {task_id}")
            selected.add(task_id)
            stack.extend(self._tasks[task_id].depends_on)
        return [t for t in self._tasks if t in selected]

    def execution_order(self, targets: Optional[Iterable[str]] = None) -> List[str]:
        """A serial order consistent with the dependencies"""
        self.validate()
        selected = self.closure(targets) if targets is not None else list(self._tasks)
        order: List[str] = []
        done: Set[str] = set()
        remaining = list(selected)
        while remaining:
            for task_id in remaining:
                if self._tasks[task_id].depends_on <= done:
                    order.append(task_id)
                    done.add(task_id)
                    remaining.remove(task_id)
                    break
        return order

    def abort(self):
        """Stop scheduling new tasks and cancel running toolchains"""
        if self._abort.is_set():
            return
        self._abort.set()
        self.logger.warning("Pipeline aborted, cancelling running tasks")
        for hook in self._abort_hooks:
            hook()

    @property
    def aborted(self) -> bool:
        return self._abort.is_set()

    def _execute(self, task: Task, outcome: TaskOutcome) -> TaskOutcome:
        start = time.monotonic()
        try:
            if not task.predicate():
                outcome.status = TaskStatus.SKIPPED
                self.logger.debug(f"Skipping {task.id} (predicate false on this host)")
                return outcome

            self.logger.info(f"> {task.id}")
            result = task.action()
            if result is False:
                outcome.status = TaskStatus.FAILED
                outcome.error = f"{task.id} reported failure"
            else:
                outcome.status = TaskStatus.SUCCEEDED
        except Exception as e:
            outcome.status = TaskStatus.FAILED
            outcome.error = f"{type(e).__name__}: {e}"
        finally:
            outcome.elapsed = time.monotonic() - start

        if outcome.status == TaskStatus.FAILED:
            self.logger.error(f"Task {task.id} failed: {outcome.error}")
        return outcome

    def _block_dependents(self, failed_id: str, outcomes: Dict[str, TaskOutcome]):
        for task_id, outcome in outcomes.items():
            if outcome.status != TaskStatus.PENDING:
                continue
            if failed_id in self._tasks[task_id].depends_on:
                outcome.status = TaskStatus.BLOCKED
                outcome.error = f"dependency {failed_id} did not complete"
                self.logger.warning(f"Not running {task_id}: {outcome.error}")
                self._block_dependents(task_id, outcomes)

    def run(self, targets: Optional[Iterable[str]] = None) -> PipelineResult:
        """
        Run the graph

        Args:
            targets: Task ids to run together with their dependencies; all when None

        Returns:
            PipelineResult with one outcome per task taking part
        """
        self.validate()
        self._abort.clear()
        selected = self.closure(targets) if targets is not None else list(self._tasks)
        outcomes = {task_id: TaskOutcome(task_id) for task_id in selected}
        finished: List[str] = []
        start = time.monotonic()

        self.logger.info(f"Running {len(selected)} task{'s' if len(selected) != 1 else ''} "
                         f"with {self.max_workers} worker{'s' if self.max_workers != 1 else ''}")

        executor = ThreadPoolExecutor(max_workers=self.max_workers,
                                      thread_name_prefix="task")
        running: Dict[Future, str] = {}
        try:
            while True:
                if not self.aborted:
                    for task_id in selected:
                        outcome = outcomes[task_id]
                        if outcome.status != TaskStatus.PENDING:
                            continue
                        deps = self._tasks[task_id].depends_on
                        if all(outcomes[d].status in UNBLOCKING for d in deps):
                            outcome.status = TaskStatus.RUNNING
                            future = executor.submit(self._execute, self._tasks[task_id], outcome)
                            running[future] = task_id

                if not running:
                    break

                done, _ = wait(running, return_when=FIRST_COMPLETED)
                for future in done:
                    task_id = running.pop(future)
                    finished.append(task_id)
                    future.result()
                    if outcomes[task_id].status == TaskStatus.FAILED:
                        self._block_dependents(task_id, outcomes)
        except KeyboardInterrupt:
            self.abort()
            raise
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

        ordered = [outcomes[t] for t in finished]
        ordered += [o for t, o in outcomes.items() if t not in finished]
        result = PipelineResult(ordered, time.monotonic() - start, aborted=self.aborted)

        skipped = result.with_status(TaskStatus.SKIPPED)
        if skipped:
            self.logger.debug(f"Skipped on this host: {', '.join(skipped)}")
        if result.success:
            self.logger.success(f"Pipeline finished in {result.total_elapsed:.1f}s")
        else:
            self.logger.error(f"Pipeline failed: {', '.join(result.failed) or 'aborted'}")
        return result


__all__ = [
    "Task",
    "TaskGraph",
    "TaskStatus",
    "TaskOutcome",
    "PipelineResult",
    "always",
]
