"""
Host platform detection
"""

import platform
import sys
from typing import Any, Dict


SUPPORTED_OS = ("linux", "windows", "macos")


def normalize_os(system: str) -> str:
    """Map a platform.system()/sys.platform value to linux, windows or macos"""
    system = system.lower()
    if system.startswith("win") or system.startswith("cygwin"):
        return "windows"
    if system in ("darwin", "macos", "mac", "macosx") or "mac" in system:
        return "macos"
    if system.startswith("linux"):
        return "linux"
    return system


def normalize_arch(machine: str) -> str:
    """Map a machine name to x64, x86 or arm64"""
    machine = machine.lower()
    if machine in ("aarch64", "arm64", "armv8", "armv8l"):
        return "arm64"
    if machine in ("i386", "i686", "x86"):
        return "x86"
    return "x64"


def macos_cmake_arch(arch: str) -> str:
    """Value for CMAKE_OSX_ARCHITECTURES on a host of the given arch"""
    return "arm64" if normalize_arch(arch) == "arm64" else "x86_64"


def macos_resource_arch(cmake_arch: str) -> str:
    """Resource directory name for a CMAKE_OSX_ARCHITECTURES value"""
    return "x64" if cmake_arch == "x86_64" else "arm64"


def windows_cmake_arch(arch: str) -> str:
    """Visual Studio generator platform (-A) for a Windows arch"""
    return "ARM64" if arch == "arm64" else "x64"


class PlatformDetector:
    """Detects and provides information about the current platform"""

    def detect(self) -> Dict[str, Any]:
        """
        Detect current platform and architecture

        Returns:
            Dictionary with platform information
        """
        machine = platform.machine()
        info = {
            "os": platform.system(),
            "platform": self._get_platform_name(),
            "arch": normalize_arch(machine),
            "machine": machine,
            "python_version": sys.version,
            "python_bits": 64 if sys.maxsize > 2**32 else 32,
        }

        if info["platform"] == "macos":
            info["cmake_osx_architectures"] = macos_cmake_arch(info["arch"])

        return info

    def _get_platform_name(self) -> str:
        """Get normalized platform name"""
        system = platform.system() or sys.platform
        return normalize_os(system)


__all__ = [
    "PlatformDetector",
    "SUPPORTED_OS",
    "normalize_os",
    "normalize_arch",
    "macos_cmake_arch",
    "macos_resource_arch",
    "windows_cmake_arch",
]
