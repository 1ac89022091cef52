"""
Selection of publishable modules and of the publishing destination
"""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

import yaml
from pydantic import BaseModel, ConfigDict

from ..errors import UnknownPublishModuleError

MODULE_PREFIX = "mediainterface-"


class PublishDestination(str, Enum):
    """Where the aggregated modules are sent"""
    SNAPSHOT = "snapshot"
    RELEASE = "release"


class PublishModule(BaseModel):
    """A publishable unit"""
    model_config = ConfigDict(frozen=True)

    id: str
    """Short module id, e.g. core"""
    project: str
    """Project directory name, e.g. mediainterface-core"""
    known_allowed: bool = True


class PublicationMetadata(BaseModel):
    """Per-module metadata handed verbatim to the publishing step"""
    model_config = ConfigDict(frozen=True)

    group: str
    artifact_id: str
    version: str
    name: str
    description: str
    url: str
    license_name: str
    license_url: str
    scm_url: str
    scm_connection: str
    scm_developer_connection: str
    developer_id: str
    developer_name: str


class PublishPlan(BaseModel):
    """What gets published, and where"""
    model_config = ConfigDict(frozen=True)

    version: str
    destination: PublishDestination
    aggregation_task: str
    modules: List[str]
    publications: List[PublicationMetadata]

    def write(self, path: Path) -> Path:
        """Write the plan as YAML, replacing any previous plan atomically"""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.model_dump(mode="json"), f, sort_keys=False)
        tmp.replace(path)
        return path


def parse_module_filter(value: Optional[str]) -> Set[str]:
    """
    Parse a publish.modules property

    Entries are comma separated; blanks are dropped and a leading ':' (project
    path notation) is removed.
    """
    modules = set()
    for entry in (value or "").split(","):
        entry = entry.strip()
        if entry.startswith(":"):
            entry = entry[1:]
        if entry:
            modules.add(entry)
    return modules


def select(requested: Iterable[str], known: Iterable[str]) -> Set[str]:
    """
    Validate a requested subset of publishable modules

    Args:
        requested: Module ids asked for; empty means all
        known: Every publishable module id

    Returns:
        The selected module ids

    Raises:
        UnknownPublishModuleError: listing every requested id that is not known
    """
    requested = set(requested)
    known = set(known)
    if not requested:
        return known

    unknown = requested - known
    if unknown:
        raise UnknownPublishModuleError(unknown)
    return requested


def resolve_destination(is_tag_release: bool) -> PublishDestination:
    """Release when building a tag, snapshot otherwise"""
    return PublishDestination.RELEASE if is_tag_release else PublishDestination.SNAPSHOT


class PublishSelector:
    """Builds publication metadata for the configured publishable modules"""

    def __init__(self, config: Any):
        """
        Args:
            config: ConfigLoader with the publishing configuration
        """
        self.config = config
        self.modules = {
            module_id: PublishModule(id=module_id, project=project)
            for module_id, project in config.get_publish_modules().items()
        }

    @property
    def known(self) -> Set[str]:
        return {m.id for m in self.modules.values() if m.known_allowed}

    def select(self, requested: Iterable[str]) -> Set[str]:
        """Validate a request; project names (mediainterface-core) are accepted for their id"""
        by_project = {m.project: m.id for m in self.modules.values()}
        return select({by_project.get(r, r) for r in requested}, self.known)

    def resolve_destination(self, is_tag_release: bool) -> PublishDestination:
        return resolve_destination(is_tag_release)

    def artifact_id(self, module_id: str) -> str:
        project = self.modules[module_id].project
        if project.startswith(MODULE_PREFIX):
            return project[len(MODULE_PREFIX):]
        return project

    def build_publication(self, module_id: str, version: str,
                          properties: Optional[Mapping[str, str]] = None) -> PublicationMetadata:
        """
        Metadata for one module

        Args:
            module_id: Publishable module id
            version: Resolved project version
            properties: pom.* overrides

        Returns:
            PublicationMetadata
        """
        props = dict(properties or {})
        pom: Dict[str, Any] = self.config.get_pom_defaults()
        license_cfg = pom.get("license", {})
        scm_cfg = pom.get("scm", {})
        developer_cfg = pom.get("developer", {})

        artifact_id = self.artifact_id(module_id)
        return PublicationMetadata(
            group=self.config.get_group(),
            artifact_id=artifact_id,
            version=version,
            name=f"{MODULE_PREFIX}{artifact_id}",
            description=pom.get("description", ""),
            url=props.get("pom.url") or pom.get("url", ""),
            license_name=props.get("pom.license.name") or license_cfg.get("name", ""),
            license_url=props.get("pom.license.url") or license_cfg.get("url", ""),
            scm_url=props.get("pom.scm.url") or scm_cfg.get("url", ""),
            scm_connection=scm_cfg.get("connection", ""),
            scm_developer_connection=scm_cfg.get("developer_connection", ""),
            developer_id=props.get("pom.developer.id") or developer_cfg.get("id", ""),
            developer_name=props.get("pom.developer.name") or developer_cfg.get("name", ""),
        )

    def build_plan(self, modules: Iterable[str], version: str,
                   destination: PublishDestination,
                   properties: Optional[Mapping[str, str]] = None) -> PublishPlan:
        ordered = [m for m in self.modules if m in set(modules)]
        return PublishPlan(
            version=version,
            destination=destination,
            aggregation_task=self.config.get_aggregation_task(destination.value),
            modules=ordered,
            publications=[self.build_publication(m, version, properties) for m in ordered],
        )


__all__ = [
    "PublishDestination",
    "PublishModule",
    "PublicationMetadata",
    "PublishPlan",
    "PublishSelector",
    "parse_module_filter",
    "select",
    "resolve_destination",
]
