"""Staging of toolchain output into the packaged resource tree.

Toolchain output lands in different directories depending on the generator
(for example ``build/`` or ``build/Release/``), so a plan lists every
candidate location in order and a policy decides how present candidates
combine:

- ``union``: every present candidate is merged into the destination
- ``first_match``: only the first present candidate is used

A missing candidate is never an error here. Consumers that strictly need a
file check for it themselves (see ``utils.ResourceVerifier``).

All writes go to a temporary name next to the final path and are promoted
with ``os.replace``, so an aborted run never leaves a half-written file where
a consumer would pick it up.
"""

import fnmatch
import os
import shutil
import stat
import tempfile
import zipfile
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field

# Earliest timestamp a zip entry can carry
ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)
FILE_MODE = 0o644
EXEC_MODE = 0o755
DIR_MODE = 0o755


class StagingPolicy(str, Enum):
    UNION = "union"
    FIRST_MATCH = "first_match"


class StagingPlan(BaseModel):
    """Where to look for an artifact and where to put it"""
    model_config = ConfigDict(frozen=True)

    sources: List[Path]
    """Candidate files or directories, probed in order"""
    destination: Path
    """Destination directory, or the archive file when archive is set"""
    archive: bool = False
    """Archive the staged content into the single file at destination"""
    include: List[str] = Field(default_factory=list)
    """File name patterns to keep; empty keeps everything"""
    policy: StagingPolicy = StagingPolicy.UNION
    archive_root: Optional[str] = None
    """Directory name every archive entry is placed under"""


def _atomic_copy(src: Path, dest: Path):
    dest.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=".tmp", dir=dest.parent)
    os.close(fd)
    tmp = Path(tmp_name)
    try:
        shutil.copy2(src, tmp)
        os.replace(tmp, dest)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def _iter_files(root: Path) -> Iterator[Path]:
    # Symlinked directories (framework Versions/Current, Resources) become real copies
    for dirpath, dirnames, filenames in os.walk(root, followlinks=True):
        dirnames.sort()
        for filename in sorted(filenames):
            yield Path(dirpath) / filename


def archive_directory(source_dir: Path, archive_path: Path,
                      root_name: Optional[str] = None) -> Path:
    """
    Zip a directory deterministically

    Entries are sorted and carry fixed timestamps and permissions (the
    executable bit is preserved), so identical input gives identical bytes.

    Args:
        source_dir: Directory to archive
        archive_path: Output zip file
        root_name: Optional directory name to nest every entry under

    Returns:
        Path to the archive
    """
    source_dir = Path(source_dir)
    archive_path = Path(archive_path)
    archive_path.parent.mkdir(parents=True, exist_ok=True)
    prefix = f"{root_name.strip('/')}/" if root_name else ""

    entries: List[Tuple[str, Optional[Path]]] = []
    if prefix:
        entries.append((prefix, None))
    if source_dir.is_dir():
        for dirpath, dirnames, filenames in os.walk(source_dir, followlinks=True):
            dirnames.sort()
            rel_dir = Path(dirpath).relative_to(source_dir).as_posix()
            if rel_dir != ".":
                entries.append((f"{prefix}{rel_dir}/", None))
            for filename in sorted(filenames):
                path = Path(dirpath) / filename
                entries.append((f"{prefix}{path.relative_to(source_dir).as_posix()}", path))
    entries.sort(key=lambda e: e[0])

    fd, tmp_name = tempfile.mkstemp(prefix=f".{archive_path.name}.", suffix=".tmp",
                                    dir=archive_path.parent)
    os.close(fd)
    tmp = Path(tmp_name)
    try:
        with zipfile.ZipFile(tmp, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for name, path in entries:
                info = zipfile.ZipInfo(name, date_time=ZIP_EPOCH)
                info.create_system = 3  # unix, so external_attr is honoured
                if path is None:
                    info.external_attr = (stat.S_IFDIR | DIR_MODE) << 16 | 0x10
                    zf.writestr(info, b"")
                    continue
                executable = bool(path.stat().st_mode & stat.S_IXUSR)
                mode = EXEC_MODE if executable else FILE_MODE
                info.external_attr = (stat.S_IFREG | mode) << 16
                info.compress_type = zipfile.ZIP_DEFLATED
                zf.writestr(info, path.read_bytes())
        os.replace(tmp, archive_path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise

    return archive_path


class ArtifactStager:
    """Copies or archives whichever candidate sources exist"""

    def __init__(self, logger=None, dry_run: bool = False):
        self.logger = logger
        self.dry_run = dry_run

    def _debug(self, msg: str):
        if self.logger:
            self.logger.debug(msg)

    def _matches(self, plan: StagingPlan, rel_path: str) -> bool:
        """Match a source-relative path; a pattern without '/' only matches top-level files"""
        if not plan.include:
            return True
        depth = rel_path.count("/")
        return any(pattern.count("/") == depth and fnmatch.fnmatch(rel_path, pattern)
                   for pattern in plan.include)

    def present_sources(self, plan: StagingPlan) -> List[Path]:
        """Candidates that exist, honouring the plan's policy"""
        present = []
        for source in plan.sources:
            if not source.exists():
                self._debug(f"  Candidate not present: {source}")
                continue
            present.append(source)
            if plan.policy == StagingPolicy.FIRST_MATCH:
                break
        return present

    def _copy_into(self, plan: StagingPlan, source: Path, dest_dir: Path) -> Set[Path]:
        copied = set()
        if source.is_dir():
            for path in _iter_files(source):
                rel = path.relative_to(source)
                if not self._matches(plan, rel.as_posix()):
                    continue
                target = dest_dir / rel
                if not self.dry_run:
                    _atomic_copy(path, target)
                copied.add(target)
        elif self._matches(plan, source.name):
            target = dest_dir / source.name
            if not self.dry_run:
                _atomic_copy(source, target)
            copied.add(target)
        return copied

    def stage(self, plan: StagingPlan) -> Set[Path]:
        """
        Stage a plan

        Args:
            plan: Candidates and destination

        Returns:
            Paths written (the archive path alone when archiving)
        """
        sources = self.present_sources(plan)
        if not sources:
            self._debug(f"No candidates present for {plan.destination}")
            return set()

        if not plan.archive:
            copied: Set[Path] = set()
            for source in sources:
                self._debug(f"Staging {source} -> {plan.destination}")
                copied |= self._copy_into(plan, source, plan.destination)
            return copied

        self._debug(f"Archiving {', '.join(str(s) for s in sources)} -> {plan.destination}")
        if self.dry_run:
            return {plan.destination}

        plan.destination.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(dir=plan.destination.parent,
                                         prefix=".staging-") as scratch:
            scratch_dir = Path(scratch)
            for source in sources:
                self._copy_into(plan, source, scratch_dir)
            archive_directory(scratch_dir, plan.destination, plan.archive_root)
        return {plan.destination}


__all__ = [
    "ArtifactStager",
    "StagingPlan",
    "StagingPolicy",
    "archive_directory",
]
