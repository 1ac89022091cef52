"""
Base builder class that toolchain builders inherit from
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .toolchain import InvocationResult, ToolchainInvoker


class ArchTarget(BaseModel):
    """One (OS, architecture) combination the pipeline builds"""
    model_config = ConfigDict(frozen=True)

    os: Literal["linux", "windows", "macos"]
    arch: str
    """Architecture name used in task names and build directories"""
    resource_arch: str
    """Architecture directory name in the resource tree"""
    project_dir: Path
    source_dir: Path
    build_dir: Path
    toolchain_args: List[str] = Field(default_factory=list)
    """Extra arguments for the configure step"""
    build_targets: List[str] = Field(default_factory=list)
    candidate_output_paths: List[Path] = Field(default_factory=list)
    """Directories the toolchain may write binaries to, in probe order"""
    env_overrides: Dict[str, str] = Field(default_factory=dict)

    @property
    def task_suffix(self) -> str:
        if self.os == "macos":
            return "Macos"
        return f"{self.os.capitalize()}{self.arch.capitalize()}"


class BaseBuilder(ABC):
    """Abstract base class for all builders"""

    def __init__(self,
                 target: ArchTarget,
                 invoker: ToolchainInvoker,
                 logger,
                 build_config: str = "Release"):
        """
        Initialize base builder

        Args:
            target: Architecture target to build
            invoker: Runs toolchain subprocesses
            logger: Logger instance
            build_config: Multi-config generator configuration
        """
        self.target = target
        self.invoker = invoker
        self.logger = logger
        self.build_config = build_config

    @property
    def name(self) -> str:
        return f"{self.target.os}-{self.target.arch}"

    def run_command(self,
                    command: str,
                    args: List[str],
                    cwd: Optional[Path] = None,
                    env: Optional[Dict[str, str]] = None) -> InvocationResult:
        """
        Run a toolchain command with logging

        Args:
            command: Executable
            args: Arguments
            cwd: Working directory (defaults to the module project dir)
            env: Environment overrides on top of the target's

        Returns:
            InvocationResult
        """
        overrides = dict(self.target.env_overrides)
        if env:
            overrides.update(env)

        result = self.invoker.run(cwd or self.target.project_dir, command, args, overrides)
        if result.ok:
            if result.output:
                self.logger.debug(f"Output: {result.output}")
        else:
            cmd_str = " ".join([command] + [str(a) for a in args])
            self.logger.error(f"[{self.name}] Command failed ({result.exit_code}): {cmd_str}")
            if result.output:
                self.logger.error(f"output:\n{result.output}")
        return result

    @abstractmethod
    def configure(self) -> bool:
        """Configure the build"""

    @abstractmethod
    def build(self) -> bool:
        """Build the native binaries"""


__all__ = ["ArchTarget", "BaseBuilder"]
