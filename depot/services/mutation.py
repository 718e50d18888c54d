"""MutationService - create folders, rename and delete sandbox entries.

Each operation is a single filesystem transition. Existence probes are only
used to pick a clear error; the outcome of a race is decided by the
primitive itself (mkdir, link, unlink, rmtree).
"""

from __future__ import annotations

import errno
import os
import shutil
import stat

import structlog

from depot.errors import ConflictError, InternalError, NotFoundError, ValidationError
from depot.models import EntryKind, ResolvedPath
from depot.validators.path import PathResolver

logger = structlog.get_logger()

DEFAULT_FOLDER_NAME = "New Folder"

# link() is unavailable or refused on these filesystems; fall back to rename()
_NO_HARDLINK_ERRNOS = {errno.EPERM, errno.EXDEV, errno.EMLINK, errno.ENOTSUP, errno.EOPNOTSUPP}


def parse_entry_kind(kind: str | None) -> EntryKind:
    try:
        return EntryKind(kind)
    except ValueError as e:
        raise ValidationError(
            "field 'type' must be one of: file, directory",
            details={"type": kind},
        ) from e


def _lstat(path: os.PathLike[str] | str) -> os.stat_result | None:
    try:
        return os.lstat(path)
    except FileNotFoundError:
        return None


def clear_readonly(root: os.PathLike[str] | str) -> None:
    """Give the owner enough permission to delete everything under ``root``.

    Walks top-down so that each directory is made readable and searchable
    before it is entered. Symbolic links are neither followed nor modified.
    """
    dir_bits = stat.S_IRUSR | stat.S_IWUSR | stat.S_IXUSR

    def _chmod_dir(path: str) -> None:
        mode = os.lstat(path).st_mode
        if stat.S_ISDIR(mode):
            os.chmod(path, stat.S_IMODE(mode) | dir_bits)

    _chmod_dir(os.fspath(root))
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames:
            _chmod_dir(os.path.join(dirpath, name))
        for name in filenames:
            path = os.path.join(dirpath, name)
            mode = os.lstat(path).st_mode
            if stat.S_ISREG(mode):
                # S_IWRITE also clears the read-only attribute on Windows
                os.chmod(path, stat.S_IMODE(mode) | stat.S_IWUSR | stat.S_IWRITE)


class MutationService:
    """Folder creation, rename and delete inside the sandbox."""

    def __init__(self, resolver: PathResolver, *, default_folder_name: str = DEFAULT_FOLDER_NAME) -> None:
        self._resolver = resolver
        self._default_folder_name = default_folder_name
        self._log = logger.bind(service="mutation")

    def create_folder(self, parent: ResolvedPath, name: str | None) -> str:
        """Create ``name`` under ``parent``; blank names get the default label.

        Returns:
            The name of the created folder

        Raises:
            ConflictError: a file or directory with that name exists
        """
        if name is None or not name.strip():
            name = self._default_folder_name
        target = self._resolver.resolve_child(parent, name)

        try:
            os.mkdir(target.absolute)
        except FileExistsError as e:
            self._log.info("mutation.mkdir.conflict", path=target.relative)
            raise ConflictError("Folder already exists", details={"name": name}) from e
        except FileNotFoundError as e:
            raise NotFoundError("Parent directory does not exist") from e
        except OSError as e:
            self._log.error("mutation.mkdir.failed", path=target.relative, error=type(e).__name__)
            raise InternalError("create_folder") from e

        self._log.info("mutation.mkdir", path=target.relative)
        return name

    def rename(self, parent: ResolvedPath, old_name: str | None, new_name: str | None) -> None:
        """Rename a file or directory within ``parent`` without replacing anything.

        Raises:
            ValidationError: either name is blank or invalid
            NotFoundError: ``old_name`` does not exist
            ConflictError: ``new_name`` already exists
        """
        if old_name is None or not old_name.strip() or new_name is None or not new_name.strip():
            raise ValidationError("Invalid names")
        source = self._resolver.resolve_child(parent, old_name, field_name="oldName")
        target = self._resolver.resolve_child(parent, new_name, field_name="newName")

        source_stat = _lstat(source.absolute)
        if source_stat is None:
            raise NotFoundError("Source does not exist", details={"name": old_name})
        if _lstat(target.absolute) is not None:
            self._log.info("mutation.rename.conflict", source=source.relative, target=target.relative)
            raise ConflictError("Target already exists", details={"name": new_name})

        try:
            if stat.S_ISDIR(source_stat.st_mode):
                self._move_directory(source, target)
            else:
                self._move_file(source, target)
        except FileExistsError as e:
            self._log.info("mutation.rename.conflict", source=source.relative, target=target.relative)
            raise ConflictError("Target already exists", details={"name": new_name}) from e
        except FileNotFoundError as e:
            raise NotFoundError("Source does not exist", details={"name": old_name}) from e
        except OSError as e:
            if e.errno in (errno.EEXIST, errno.ENOTEMPTY, errno.ENOTDIR, errno.EISDIR):
                raise ConflictError("Target already exists", details={"name": new_name}) from e
            self._log.error("mutation.rename.failed", source=source.relative, error=type(e).__name__)
            raise InternalError("rename") from e

        self._log.info("mutation.rename", source=source.relative, target=target.relative)

    def delete(self, parent: ResolvedPath, name: str | None, kind: str | EntryKind | None) -> None:
        """Delete a file, or a directory together with its whole subtree.

        Raises:
            ValidationError: ``kind`` is not file/directory, or the name is invalid
            NotFoundError: no entry of the requested kind has that name
            InternalError: removal failed midway (no rollback)
        """
        entry_kind = kind if isinstance(kind, EntryKind) else parse_entry_kind(kind)
        target = self._resolver.resolve_child(parent, name)

        entry_stat = _lstat(target.absolute)
        is_dir = entry_stat is not None and stat.S_ISDIR(entry_stat.st_mode)
        if entry_kind is EntryKind.FILE:
            if entry_stat is None or is_dir:
                raise NotFoundError("File does not exist", details={"name": name})
            self._delete_file(target)
        else:
            if not is_dir:
                raise NotFoundError("Directory does not exist", details={"name": name})
            self._delete_directory(target)

        self._log.info("mutation.delete", path=target.relative, kind=entry_kind.value)

    def _move_file(self, source: ResolvedPath, target: ResolvedPath) -> None:
        # link() fails with EEXIST instead of replacing, which rename() would not
        try:
            os.link(source.absolute, target.absolute, follow_symlinks=False)
        except (NotImplementedError, OSError) as e:
            if isinstance(e, OSError) and e.errno not in _NO_HARDLINK_ERRNOS:
                raise
            self._move_directory(source, target)
            return
        os.unlink(source.absolute)

    def _move_directory(self, source: ResolvedPath, target: ResolvedPath) -> None:
        if _lstat(target.absolute) is not None:
            raise FileExistsError(errno.EEXIST, "Target already exists")
        os.rename(source.absolute, target.absolute)

    def _delete_file(self, target: ResolvedPath) -> None:
        try:
            os.unlink(target.absolute)
        except FileNotFoundError as e:
            raise NotFoundError("File does not exist", details={"name": target.name}) from e
        except PermissionError:
            # Read-only attribute on Windows blocks unlink
            try:
                os.chmod(target.absolute, stat.S_IWRITE | stat.S_IWUSR)
                os.unlink(target.absolute)
            except OSError as e:
                self._log.error("mutation.delete.failed", path=target.relative, error=type(e).__name__)
                raise InternalError("delete") from e
        except OSError as e:
            self._log.error("mutation.delete.failed", path=target.relative, error=type(e).__name__)
            raise InternalError("delete") from e

    def _delete_directory(self, target: ResolvedPath) -> None:
        try:
            clear_readonly(target.absolute)
            shutil.rmtree(target.absolute)
        except FileNotFoundError as e:
            if not os.path.lexists(target.absolute):
                raise NotFoundError("Directory does not exist", details={"name": target.name}) from e
            self._log.error("mutation.delete.partial", path=target.relative)
            raise InternalError("delete") from e
        except OSError as e:
            self._log.error("mutation.delete.partial", path=target.relative, error=type(e).__name__)
            raise InternalError("delete") from e
