"""
Toolchain builders, the task graph and the pipeline definition
"""

from .toolchain import ToolchainInvoker, InvocationResult
from .base_builder import ArchTarget, BaseBuilder
from .cmake_builder import CMakeBuilder
from .task_graph import Task, TaskGraph, TaskStatus, TaskOutcome, PipelineResult
from .orchestrator import BuildOrchestrator

__all__ = [
    "ToolchainInvoker",
    "InvocationResult",
    "ArchTarget",
    "BaseBuilder",
    "CMakeBuilder",
    "Task",
    "TaskGraph",
    "TaskStatus",
    "TaskOutcome",
    "PipelineResult",
    "BuildOrchestrator",
]
