"""
Release version resolution from CI environment and git tags
"""

from pathlib import Path
from typing import Callable, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from ..builders.toolchain import ToolchainInvoker
from ..errors import ConfigurationError

DEVELOPMENT_VERSION = "1.0-SNAPSHOT"
DEFAULT_BASE_VERSION = "0.1.0"
SNAPSHOT_SUFFIX = "-SNAPSHOT"
GIT_TIMEOUT = 10.0

SNAPSHOT_POLICIES = ("plain", "commit")


def _is_true(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "true"


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class VersionSpec(BaseModel):
    """Inputs that determine the project version"""
    model_config = ConfigDict(frozen=True)

    is_ci: bool = False
    """Running under continuous integration"""
    is_tag_release: bool = False
    """The current ref is a tag"""
    ref_name: Optional[str] = None
    """Branch or tag name of the current ref"""
    base_version_override: Optional[str] = None
    """Explicit snapshot base version (SNAPSHOT_BASE_VERSION)"""
    short_commit_sha: Optional[str] = None
    """Abbreviated commit hash of the build"""

    @classmethod
    def from_environment(cls, env: Mapping[str, str]) -> "VersionSpec":
        """Build a VersionSpec from CI environment variables"""
        sha = _blank_to_none(env.get("GITHUB_SHA"))
        return cls(
            is_ci=_is_true(env.get("CI")) or _is_true(env.get("GITHUB_ACTIONS")),
            is_tag_release=(env.get("GITHUB_REF_TYPE") or "").strip().lower() == "tag",
            ref_name=env.get("GITHUB_REF_NAME"),
            base_version_override=_blank_to_none(env.get("SNAPSHOT_BASE_VERSION")),
            short_commit_sha=sha[:7] if sha else None,
        )


def strip_version_decorations(version: str) -> str:
    """Remove one leading 'v' and one trailing '-SNAPSHOT'"""
    version = version.strip()
    if version.startswith("v"):
        version = version[1:]
    if version.endswith(SNAPSHOT_SUFFIX):
        version = version[:-len(SNAPSHOT_SUFFIX)]
    return version


class GitTagLocator:
    """Finds the most recent tag reachable from HEAD.

    Every failure (git missing, not a repository, no tags, timeout) yields
    None.
    """

    def __init__(self, root_dir: Path, invoker: ToolchainInvoker,
                 timeout: float = GIT_TIMEOUT, logger=None):
        self.root_dir = Path(root_dir)
        self.invoker = invoker
        self.timeout = timeout
        self.logger = logger

    def run_git(self, *args: str) -> Optional[str]:
        """Run git and return its trimmed output, or None on any failure"""
        result = self.invoker.run(self.root_dir, "git", list(args), timeout=self.timeout)
        output = result.output.strip()
        if result.exit_code != 0 or not output:
            if self.logger:
                self.logger.debug(f"git {' '.join(args)} gave no result (exit {result.exit_code})")
            return None
        return output

    def latest_tag(self) -> Optional[str]:
        return (self.run_git("describe", "--tags", "--abbrev=0", "--match", "v*")
                or self.run_git("describe", "--tags", "--abbrev=0"))

    __call__ = latest_tag


class VersionResolver:
    """Computes the version string used by every artifact"""

    def __init__(self,
                 tag_lookup: Optional[Callable[[], Optional[str]]] = None,
                 snapshot_policy: str = "plain",
                 development_version: str = DEVELOPMENT_VERSION,
                 default_base_version: str = DEFAULT_BASE_VERSION):
        """
        Initialize resolver

        Args:
            tag_lookup: Returns the latest git tag or None
            snapshot_policy: "plain" (-SNAPSHOT) or "commit" (-SNAPSHOT-<sha>)
            development_version: Version used outside CI
            default_base_version: Base used when no override or tag exists

        Raises:
            ConfigurationError: If the snapshot policy is unknown
        """
        snapshot_policy = (snapshot_policy or "plain").strip().lower()
        if snapshot_policy not in SNAPSHOT_POLICIES:
            raise ConfigurationError(f"Unknown snapshot policy: {snapshot_policy}. "
                                     f"Supported: {', '.join(SNAPSHOT_POLICIES)}")
        self.tag_lookup = tag_lookup
        self.snapshot_policy = snapshot_policy
        self.development_version = development_version
        self.default_base_version = default_base_version

    def resolve(self, spec: VersionSpec) -> str:
        if not spec.is_ci:
            return self.development_version

        ref_name = (spec.ref_name or "").strip()
        if spec.is_tag_release and ref_name:
            return ref_name[1:] if ref_name.startswith("v") else ref_name

        base = (_blank_to_none(spec.base_version_override)
                or self._lookup_tag()
                or self.default_base_version)
        return strip_version_decorations(base) + self._suffix(spec)

    def _lookup_tag(self) -> Optional[str]:
        if self.tag_lookup is None:
            return None
        return _blank_to_none(self.tag_lookup())

    def _suffix(self, spec: VersionSpec) -> str:
        if self.snapshot_policy == "commit" and spec.short_commit_sha:
            return f"{SNAPSHOT_SUFFIX}-{spec.short_commit_sha}"
        return SNAPSHOT_SUFFIX


__all__ = [
    "VersionSpec",
    "VersionResolver",
    "GitTagLocator",
    "strip_version_decorations",
    "DEVELOPMENT_VERSION",
    "DEFAULT_BASE_VERSION",
]
