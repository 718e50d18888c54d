"""DirectoryLister - live, sorted snapshot of one directory."""

from __future__ import annotations

import os

import structlog

from depot.errors import InternalError
from depot.models import BrowseResult, DirectoryRef, FileRef, ResolvedPath
from depot.utils.datetime import from_timestamp
from depot.validators.path import PathResolver

logger = structlog.get_logger()


def collation_key(name: str) -> tuple[str, str]:
    """Sort key following the host filesystem's collation.

    Ordinal on case-sensitive hosts; case-folded with an ordinal tie-break
    where ``os.path.normcase`` folds case.
    """
    return os.path.normcase(name), name


class DirectoryLister:
    """Lists the immediate children of a resolved directory.

    Symbolic links whose target leaves the sandbox are left out.
    """

    def __init__(self, resolver: PathResolver) -> None:
        self._resolver = resolver
        self._log = logger.bind(service="directory_lister")

    def list(self, directory: ResolvedPath) -> BrowseResult:
        """List ``directory`` without recursing.

        Raises:
            InternalError: the directory vanished or could not be read
        """
        directories: list[DirectoryRef] = []
        files: list[FileRef] = []

        try:
            with os.scandir(directory.absolute) as it:
                for entry in it:
                    if entry.is_symlink() and not self._resolver.contains(entry.path):
                        self._log.debug("listing.symlink_skipped", path=directory.relative, name=entry.name)
                        continue
                    try:
                        if entry.is_dir():
                            directories.append(DirectoryRef(name=entry.name))
                        elif entry.is_file():
                            stat = entry.stat()
                            files.append(
                                FileRef(
                                    name=entry.name,
                                    size=stat.st_size,
                                    modified=from_timestamp(stat.st_mtime),
                                )
                            )
                    except FileNotFoundError:
                        # Removed between enumeration and stat
                        continue
        except OSError as e:
            self._log.error(
                "listing.failed",
                path=directory.relative,
                error=type(e).__name__,
            )
            raise InternalError("browse") from e

        directories.sort(key=lambda d: collation_key(d.name))
        files.sort(key=lambda f: collation_key(f.name))

        return BrowseResult(
            path=directory.relative,
            full_path=str(directory.absolute),
            parent=directory.parent,
            directories=directories,
            files=files,
        )
