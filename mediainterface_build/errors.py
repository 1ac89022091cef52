"""
Exceptions raised by the mediainterface build orchestrator
"""

from typing import Iterable, List


class BuildError(Exception):
    """Base class for build orchestrator errors"""


class ConfigurationError(BuildError):
    """Raised when the pipeline configuration is invalid.

    Configuration errors are fatal and are raised before any task runs.
    """


class UnknownPublishModuleError(ConfigurationError):
    """Raised when publish.modules names modules that are not publishable"""

    def __init__(self, unknown: Iterable[str]):
        self.unknown: List[str] = sorted(set(unknown))
        super().__init__(f"Unknown publish.modules entries: {', '.join(self.unknown)}")


class CyclicDependencyError(ConfigurationError):
    """Raised when the task graph contains a cycle"""

    def __init__(self, cycle: List[str]):
        self.cycle = list(cycle)
        super().__init__(f"Cyclic dependency detected: {' -> '.join(self.cycle)}")


__all__ = [
    "BuildError",
    "ConfigurationError",
    "UnknownPublishModuleError",
    "CyclicDependencyError",
]
