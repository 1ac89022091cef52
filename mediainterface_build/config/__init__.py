"""
Configuration management for the build orchestrator
"""

import yaml
from pathlib import Path
from typing import Dict, List, Any, Optional

from ..errors import ConfigurationError


DEFAULT_CONFIG_DIR = Path(__file__).parent


class ConfigLoader:
    """Loads and manages the pipeline and publishing configuration"""

    def __init__(self, config_dir: Optional[Path] = None):
        """
        Initialize configuration loader

        Args:
            config_dir: Directory containing pipeline.yaml and publishing.yaml
        """
        self.config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR

        self.pipeline_config = self._load("pipeline.yaml")
        self.publishing_config = self._load("publishing.yaml")

    def _load(self, filename: str) -> Dict[str, Any]:
        path = self.config_dir / filename
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")

        with open(path, 'r', encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Expected a mapping at the top of {path}")
        return data

    def get_native_modules(self) -> List[str]:
        """Names of modules that carry native code"""
        return list(self.pipeline_config.get("modules", {}).keys())

    def get_module_config(self, name: str) -> Dict[str, Any]:
        """
        Get configuration for a native module

        Args:
            name: Module name (macos, windows)

        Returns:
            Module configuration dictionary
        """
        modules = self.pipeline_config.get("modules", {})
        if name not in modules:
            raise ConfigurationError(f"Unknown native module: {name}")
        return modules[name]

    def get_option(self, key: str, default: Any = None) -> Any:
        """
        Get a build option

        Args:
            key: Option key
            default: Default value if not found

        Returns:
            Option value
        """
        options = self.pipeline_config.get("build_options", {}) or {}
        return options.get(key, default)

    def get_publish_modules(self) -> Dict[str, str]:
        """Publishable module ids mapped to their project names"""
        return dict(self.publishing_config.get("modules", {}))

    def get_group(self) -> str:
        return self.publishing_config.get("group", "")

    def get_pom_defaults(self) -> Dict[str, Any]:
        return dict(self.publishing_config.get("pom", {}))

    def get_aggregation_task(self, destination: str) -> str:
        """
        Get the aggregation task that publishes to a destination

        Args:
            destination: "release" or "snapshot"

        Returns:
            Task name understood by the publishing collaborator
        """
        tasks = self.publishing_config.get("aggregation_tasks", {})
        if destination not in tasks:
            raise ConfigurationError(f"No aggregation task for destination: {destination}")
        return tasks[destination]


__all__ = ["ConfigLoader", "DEFAULT_CONFIG_DIR"]
