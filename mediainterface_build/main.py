#!/usr/bin/env python3
"""
Main entry point for the mediainterface build orchestrator
Supports Linux, Windows and macOS hosts
"""

import argparse
import os
import sys
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from .builders import BuildOrchestrator, PipelineResult, ToolchainInvoker
from .config import ConfigLoader
from .errors import BuildError, ConfigurationError
from .publishing import PublishPlan, PublishSelector
from .settings import BuildSettings
from .utils import Logger


class BuildSystem:
    """Main build system class"""

    SUPPORTED_PLATFORMS = ["linux", "windows", "macos"]

    def __init__(self,
                 root_dir: Optional[Path] = None,
                 platform: str = "auto",
                 arch: str = "auto",
                 properties: Optional[Mapping[str, str]] = None,
                 env: Optional[Mapping[str, str]] = None,
                 jobs: Optional[int] = None,
                 config_dir: Optional[Path] = None,
                 verbose: bool = False,
                 dry_run: bool = False,
                 log_file: Optional[str] = None,
                 logger: Optional[Logger] = None,
                 invoker: Optional[ToolchainInvoker] = None):
        """
        Initialize the build system

        Args:
            root_dir: Repository root containing the mediainterface modules
            platform: Host platform (auto, linux, windows, macos)
            arch: Host architecture (auto, x64, x86, arm64)
            properties: Build properties (publish.modules, pom.*)
            env: Environment to read CI signals from (defaults to os.environ)
            jobs: Maximum number of concurrently running tasks
            config_dir: Directory with pipeline.yaml and publishing.yaml
            verbose: Enable verbose output
            dry_run: Log toolchain commands instead of running them
            log_file: Optional log file path
            logger: Logger to use instead of creating one
            invoker: Toolchain invoker to use instead of creating one

        Raises:
            ConfigurationError: On invalid configuration or publish.modules
        """
        self.root_dir = Path(root_dir or Path.cwd())
        self.verbose = verbose
        self.dry_run = dry_run

        self.logger = logger or Logger(verbose=verbose, log_file=log_file)

        if platform != "auto" and platform not in self.SUPPORTED_PLATFORMS:
            raise ConfigurationError(f"Unsupported platform: {platform}. "
                                     f"Supported: {', '.join(self.SUPPORTED_PLATFORMS)}")

        self.config = ConfigLoader(config_dir)
        self.invoker = invoker or ToolchainInvoker(self.logger, dry_run=dry_run)

        self.settings = BuildSettings.create(
            root_dir=self.root_dir,
            config=self.config,
            invoker=self.invoker,
            logger=self.logger,
            env=env,
            properties=properties,
            host_os=None if platform == "auto" else platform,
            host_arch=None if arch == "auto" else arch,
            max_workers=jobs,
            dry_run=dry_run,
        )

        self.logger.info(f"Platform: {self.settings.host_os} ({self.settings.host_arch})")
        self.logger.info(f"Version: {self.settings.version} "
                         f"(destination: {self.settings.destination.value})")

        self.orchestrator = BuildOrchestrator(
            settings=self.settings,
            config=self.config,
            invoker=self.invoker,
            logger=self.logger,
        )

    @property
    def version(self) -> str:
        return self.settings.version

    def build(self, tasks: Optional[List[str]] = None) -> PipelineResult:
        """
        Run the pipeline

        Args:
            tasks: Tasks to run with their dependencies (None runs everything)

        Returns:
            PipelineResult
        """
        graph = self.orchestrator.create_graph()
        order = graph.execution_order(tasks)
        self.logger.debug(f"Task order: {' -> '.join(order)}")
        return graph.run(tasks)

    def publish_plan(self) -> PublishPlan:
        selector = PublishSelector(self.config)
        return selector.build_plan(self.settings.publish_modules, self.settings.version,
                                   self.settings.destination, self.settings.properties)

    def clean(self) -> List[Path]:
        """Remove native build output and staged resources"""
        self.logger.info("Cleaning build artifacts...")
        removed = self.orchestrator.clean()
        for path in removed:
            self.logger.info(f"  removed {path}")
        return removed

    def show_info(self) -> None:
        """Show build system information"""
        from . import __version__

        info = self.orchestrator.get_build_info()
        self.logger.raw(f"\nmediainterface build orchestrator v{__version__}")
        self.logger.raw("=" * 50)
        self.logger.raw(f"Host: {info['host']}")
        self.logger.raw(f"Root Directory: {self.root_dir}")
        self.logger.raw(f"Version: {info['version']}")
        self.logger.raw(f"Destination: {info['destination']}")
        self.logger.raw(f"Publish modules: {', '.join(info['publish_modules'])}")
        self.logger.raw(f"Native modules: {', '.join(self.config.get_native_modules())}")
        self.logger.raw(f"\nTargets ({len(info['targets'])}):")
        for target in info["targets"]:
            active = "[active]" if target["os"] == self.settings.host_os else "[skipped on this host]"
            self.logger.raw(f"  - {target['os']:8} {target['arch']:7} {active}")

        graph = self.orchestrator.create_graph()
        self.logger.raw(f"\nTasks ({len(graph.task_ids)}):")
        for task_id in graph.execution_order():
            self.logger.raw(f"  - {task_id:28} {graph.get_task(task_id).description}")


def parse_properties(values: Optional[List[str]]) -> Dict[str, str]:
    """Parse repeated -P key=value options"""
    properties = {}
    for value in values or []:
        if "=" not in value:
            raise ConfigurationError(f"Expected key=value for -P, got: {value}")
        key, _, val = value.partition("=")
        properties[key.strip()] = val.strip()
    return properties


def main(argv: Optional[List[str]] = None):
    """Command-line interface"""
    parser = argparse.ArgumentParser(
        prog="mediainterface-build",
        description="mediainterface build orchestrator - versioning, native builds and staging",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s build                              # Run the whole pipeline
  %(prog)s build --task copyWindowsDllX64     # Run one task and its dependencies
  %(prog)s version                            # Print the resolved version
  %(prog)s publish-plan -P publish.modules=core,linux
  %(prog)s clean                              # Remove native build output
  %(prog)s info                               # Show targets and tasks
        """
    )

    parser.add_argument(
        "command",
        choices=["build", "version", "publish-plan", "clean", "info"],
        help="Command to execute"
    )

    parser.add_argument(
        "--task",
        action="append",
        help="Task to run together with its dependencies (can be used multiple times)"
    )

    parser.add_argument(
        "-P", "--property",
        action="append",
        dest="properties",
        metavar="KEY=VALUE",
        help="Build property, e.g. publish.modules=core,linux or pom.url=..."
    )

    parser.add_argument(
        "--jobs", "-j",
        type=int,
        help="Maximum concurrently running tasks (default: MEDIAINTERFACE_MAX_JOBS or CPU count)"
    )

    parser.add_argument(
        "--platform",
        choices=["auto", "linux", "windows", "macos"],
        default="auto",
        help="Host platform (default: auto-detect)"
    )

    parser.add_argument(
        "--arch",
        choices=["auto", "x64", "x86", "arm64"],
        default="auto",
        help="Host architecture (default: auto-detect)"
    )

    parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Repository root (default: current directory)"
    )

    parser.add_argument(
        "--config-dir",
        type=Path,
        default=None,
        help="Directory containing pipeline.yaml and publishing.yaml"
    )

    parser.add_argument(
        "--log-file",
        help="Also write a debug log to this file"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log toolchain commands without running them"
    )

    args = parser.parse_args(argv)

    try:
        bs = BuildSystem(
            root_dir=args.root,
            platform=args.platform,
            arch=args.arch,
            properties=parse_properties(args.properties),
            env=os.environ,
            jobs=args.jobs,
            config_dir=args.config_dir,
            verbose=args.verbose,
            dry_run=args.dry_run,
            log_file=args.log_file,
        )
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    try:
        if args.command == "build":
            result = bs.build(args.task)
            sys.exit(0 if result.success else 1)

        elif args.command == "version":
            print(bs.version)

        elif args.command == "publish-plan":
            plan = bs.publish_plan()
            print(f"destination: {plan.destination.value}")
            print(f"task: {plan.aggregation_task}")
            print(f"modules: {', '.join(plan.modules)}")

        elif args.command == "clean":
            bs.clean()

        elif args.command == "info":
            bs.show_info()

    except KeyboardInterrupt:
        print("\nBuild interrupted by user", file=sys.stderr)
        sys.exit(130)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)
    except BuildError as e:
        bs.logger.error(f"Build system error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
