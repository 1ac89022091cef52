"""
Process-wide build settings, computed once at start-up
"""

import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from .builders.toolchain import ToolchainInvoker
from .config import ConfigLoader
from .platform import PlatformDetector
from .publishing import PublishDestination, PublishSelector, parse_module_filter
from .versioning import GitTagLocator, VersionResolver, VersionSpec


def resolve_max_workers(env: Mapping[str, str], requested: Optional[int] = None,
                        logger=None) -> int:
    """
    Worker count for the task graph

    An explicit request wins, then MEDIAINTERFACE_MAX_JOBS, then MAX_JOBS,
    then the CPU count.
    """
    if requested is not None and requested > 0:
        return requested

    env_value = env.get("MEDIAINTERFACE_MAX_JOBS") or env.get("MAX_JOBS")
    if env_value:
        try:
            jobs = int(env_value)
            if jobs > 0:
                return jobs
        except ValueError:
            pass
        if logger:
            logger.warning(f"Ignoring invalid parallel job count '{env_value}'")

    return os.cpu_count() or 1


class BuildSettings(BaseModel):
    """Immutable settings shared by every component of one pipeline run"""
    model_config = ConfigDict(frozen=True)

    root_dir: Path
    host_os: str
    host_arch: str
    version_spec: VersionSpec
    version: str
    destination: PublishDestination
    publish_modules: List[str]
    properties: Dict[str, str] = Field(default_factory=dict)
    max_workers: int = 1
    java_home: Optional[str] = None
    dry_run: bool = False

    @property
    def is_macos(self) -> bool:
        return self.host_os == "macos"

    @property
    def is_windows(self) -> bool:
        return self.host_os == "windows"

    @property
    def is_linux(self) -> bool:
        return self.host_os == "linux"

    @classmethod
    def create(cls,
               root_dir: Path,
               config: ConfigLoader,
               invoker: ToolchainInvoker,
               logger,
               env: Optional[Mapping[str, str]] = None,
               properties: Optional[Mapping[str, str]] = None,
               host_os: Optional[str] = None,
               host_arch: Optional[str] = None,
               max_workers: Optional[int] = None,
               dry_run: bool = False) -> "BuildSettings":
        """
        Resolve version, destination and publish selection

        Raises:
            UnknownPublishModuleError: If publish.modules names unknown modules
        """
        env = dict(os.environ if env is None else env)
        properties = dict(properties or {})
        root_dir = Path(root_dir).resolve()

        # Validated first so a bad filter fails before any git call
        selector = PublishSelector(config)
        modules = selector.select(parse_module_filter(properties.get("publish.modules")))

        if host_os is None or host_arch is None:
            info = PlatformDetector().detect()
            host_os = host_os or info["platform"]
            host_arch = host_arch or info["arch"]

        policy = env.get("MEDIAINTERFACE_SNAPSHOT_POLICY") or config.get_option("snapshot_suffix", "plain")
        locator = GitTagLocator(root_dir, invoker,
                                timeout=float(config.get_option("git_timeout", 10)),
                                logger=logger)
        resolver = VersionResolver(
            tag_lookup=locator.latest_tag,
            snapshot_policy=policy,
            development_version=str(config.get_option("development_version", "1.0-SNAPSHOT")),
            default_base_version=str(config.get_option("default_base_version", "0.1.0")),
        )
        spec = VersionSpec.from_environment(env)
        version = resolver.resolve(spec)

        return cls(
            root_dir=root_dir,
            host_os=host_os,
            host_arch=host_arch,
            version_spec=spec,
            version=version,
            destination=selector.resolve_destination(spec.is_tag_release),
            publish_modules=[m for m in config.get_publish_modules() if m in modules],
            properties=properties,
            max_workers=(resolve_max_workers(env, max_workers, logger)
                         if max_workers or config.get_option("parallel_native_builds", True) else 1),
            java_home=env.get("JAVA_HOME") or None,
            dry_run=dry_run,
        )


__all__ = ["BuildSettings", "resolve_max_workers"]
