"""
mediainterface build orchestrator
Versioning, native adapter builds and resource staging for Linux, Windows and macOS
"""

__version__ = "1.0.0"
__supported_platforms__ = ["linux", "windows", "macos"]

from .main import BuildSystem

__all__ = ["BuildSystem", "__version__", "__supported_platforms__"]
