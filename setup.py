"""
Minimal setup.py for the mediainterface build orchestrator

Build Requirements (for the native pipeline, not for installing this package):
- CMake >= 3.14
- Xcode command line tools on macOS hosts
- MSVC with the ARM64 and x64 toolsets on Windows hosts
- git (for snapshot base versions)

Parallel Build Support:
- Independent tasks run concurrently, one worker per CPU core by default
- Override with: mediainterface-build build --jobs N
- Or set environment: export MEDIAINTERFACE_MAX_JOBS=N (falls back to MAX_JOBS or CPU count)

Versioning:
- Outside CI every build is 1.0-SNAPSHOT
- CI tag builds use GITHUB_REF_NAME without its leading "v"
- Other CI builds use SNAPSHOT_BASE_VERSION or the latest git tag, plus -SNAPSHOT
"""

from pathlib import Path
from setuptools import setup, find_packages

# Read README for long description
readme_path = Path("README.md")
long_description = ""
if readme_path.exists():
    with open(readme_path, "r", encoding="utf-8") as f:
        long_description = f.read()

setup(
    name="mediainterface-build",
    version="1.0.0",
    author="EndlessSource",
    description="Build orchestrator for the mediainterface native adapters and publications",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["mediainterface_build", "mediainterface_build.*"]),
    package_data={
        "mediainterface_build": [
            "config/*.yaml",
        ]
    },
    include_package_data=True,
    entry_points={
        "console_scripts": [
            "mediainterface-build=mediainterface_build.main:main",
        ],
    },
    zip_safe=False,
    python_requires=">=3.10",
    install_requires=[
        "pyyaml>=6.0",
        "pydantic>=2.0",
    ],
    extras_require={
        "dev": [
            "pytest",
            "pytest-cov",
            "black",
            "flake8",
            "mypy",
        ]
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Software Development :: Build Tools",
        "Operating System :: Microsoft :: Windows",
        "Operating System :: MacOS",
        "Operating System :: POSIX :: Linux",
    ],
)
