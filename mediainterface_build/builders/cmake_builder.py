"""
CMake builder implementation
"""

import shutil

from .base_builder import BaseBuilder


class CMakeBuilder(BaseBuilder):
    """Builder for the CMake native adapters"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)

        # Resolved lazily by the OS; a missing cmake surfaces as a failed run
        self.cmake = shutil.which("cmake") or "cmake"

    def configure(self) -> bool:
        """Configure using CMake

        An existing build directory is configured in place; CMake re-uses
        its cache, so running this twice is safe.
        """
        build_dir = self.target.build_dir
        if (build_dir / "CMakeCache.txt").exists():
            self.logger.debug(f"Re-configuring existing build directory: {build_dir}")

        if not self.invoker.dry_run:
            build_dir.mkdir(parents=True, exist_ok=True)

        args = ["-S", str(self.target.source_dir), "-B", str(build_dir)]
        args.extend(self.target.toolchain_args)

        return self.run_command(self.cmake, args).ok

    def build(self) -> bool:
        """Build using CMake"""
        args = ["--build", str(self.target.build_dir)]
        if self.target.build_targets:
            args.append("--target")
            args.extend(self.target.build_targets)
        args.extend(["--config", self.build_config])

        return self.run_command(self.cmake, args).ok


__all__ = ["CMakeBuilder"]
