"""Sandbox path resolution.

PathResolver is the single chokepoint between client-supplied path strings
and the filesystem. Nothing else in Depot touches the filesystem with a path
that has not been through one of its ``resolve_*`` methods.

Resolution steps:
1. Take the value as already decoded by the HTTP layer; ``%`` is literal
2. Reject NUL bytes and, by policy, colons (drive/volume markers)
3. Map ``\\`` to ``/`` and drop empty segments
4. Join onto the root and canonicalize (``.``/``..`` and symlinks)
5. Accept only the root itself or a strict descendant of it
"""

from __future__ import annotations

import os
from pathlib import Path

import structlog

from depot.errors import NotFoundError, PathEscapeError, ValidationError
from depot.models import ResolvedPath

logger = structlog.get_logger()


def normalize_relative_path(raw: str | None) -> str:
    """Clean a client path without touching the filesystem.

    The value is used as received; percent escapes were already decoded once
    by the HTTP layer and any that remain are part of the name.

    Returns ``/``-separated segments with no leading, trailing or repeated
    separators. ``.`` and ``..`` segments are kept; canonicalization and the
    containment check decide whether they are acceptable.
    """
    if not raw:
        return ""
    if "\x00" in raw:
        raise ValidationError("Invalid path: null bytes not allowed")
    return "/".join(part for part in raw.replace("\\", "/").split("/") if part)


def validate_entry_name(name: str | None, *, field_name: str = "name", reject_colons: bool = True) -> str:
    """Validate a single path segment naming a child of a directory."""
    if name is None or not name.strip():
        raise ValidationError(f"field '{field_name}' must be a non-empty string")
    if "\x00" in name:
        raise ValidationError(f"invalid {field_name}: null bytes not allowed")
    if "/" in name or "\\" in name:
        raise ValidationError(f"invalid {field_name}: path separators are not allowed")
    if name in (".", ".."):
        raise ValidationError(f"invalid {field_name}: '{name}' is not allowed")
    if reject_colons and ":" in name:
        raise ValidationError(f"invalid {field_name}: ':' is not allowed")
    return name


def _is_within(root: str, candidate: str) -> bool:
    # Compare on whole segments so /srv/data2 is not inside /srv/data
    root = os.path.normcase(root)
    candidate = os.path.normcase(candidate)
    if candidate == root:
        return True
    return candidate.startswith(root.rstrip(os.sep) + os.sep)


class PathResolver:
    """Resolves client paths against one immutable sandbox root."""

    def __init__(self, root: str | os.PathLike[str], *, reject_colons: bool = True) -> None:
        resolved_root = Path(root).expanduser().resolve()
        if not resolved_root.is_dir():
            raise ValueError(f"Sandbox root is not a directory: {resolved_root}")
        self._root = resolved_root
        self._reject_colons = reject_colons
        self._log = logger.bind(component="path_resolver")

    @property
    def root(self) -> Path:
        return self._root

    @property
    def reject_colons(self) -> bool:
        return self._reject_colons

    def resolve(self, raw_path: str | None) -> ResolvedPath:
        """Resolve a client path to a canonical location inside the root.

        Raises:
            ValidationError: malformed input (NUL bytes)
            PathEscapeError: volume marker, or the canonical path leaves the root
        """
        cleaned = normalize_relative_path(raw_path)
        if self._reject_colons and ":" in cleaned:
            raise PathEscapeError("Invalid path: drive or volume markers are not allowed")
        return self._canonicalize(self._root / cleaned if cleaned else self._root)

    def resolve_child(self, parent: ResolvedPath, name: str | None, *, field_name: str = "name") -> ResolvedPath:
        """Resolve a single named entry inside an already-resolved directory.

        The returned path names the entry itself (a symlink stays a symlink)
        so mutations act on the link, not its target. Entries whose target
        escapes the root are still rejected.
        """
        name = validate_entry_name(name, field_name=field_name, reject_colons=self._reject_colons)
        self._canonicalize(parent.absolute / name)
        relative = f"{parent.relative}/{name}" if parent.relative else name
        return ResolvedPath(absolute=parent.absolute / name, relative=relative)

    def resolve_browse(self, raw_path: str | None) -> ResolvedPath:
        """Resolve a directory to list, falling back to the root on any problem."""
        try:
            resolved = self.resolve(raw_path)
        except ValidationError as e:
            self._log.debug("path.browse.fallback", reason=e.code)
            return self.root_path()
        if not resolved.absolute.is_dir():
            self._log.debug("path.browse.fallback", reason="not_a_directory")
            return self.root_path()
        return resolved

    def resolve_directory(self, raw_path: str | None) -> ResolvedPath:
        """Resolve the parent directory of a mutation; never redirects."""
        resolved = self.resolve(raw_path)
        if not resolved.absolute.is_dir():
            raise ValidationError("Invalid path")
        return resolved

    def resolve_upload_directory(self, raw_path: str | None) -> ResolvedPath:
        """Resolve an upload target directory; a missing directory is NotFound."""
        resolved = self.resolve(raw_path)
        if not resolved.absolute.is_dir():
            raise NotFoundError("Target directory does not exist")
        return resolved

    def resolve_file(self, raw_path: str | None) -> ResolvedPath:
        """Resolve a file to download; every rejection is reported as NotFound."""
        try:
            resolved = self.resolve(raw_path)
        except ValidationError as e:
            raise NotFoundError("File not found") from e
        if not resolved.absolute.is_file():
            raise NotFoundError("File not found")
        return resolved

    def contains(self, candidate: str | os.PathLike[str]) -> bool:
        """Whether ``candidate`` canonicalizes to the root or a path under it."""
        try:
            resolved = Path(candidate).resolve()
        except (OSError, RuntimeError):
            return False
        return _is_within(str(self._root), str(resolved))

    def root_path(self) -> ResolvedPath:
        return ResolvedPath(absolute=self._root, relative="")

    def _canonicalize(self, candidate: Path) -> ResolvedPath:
        try:
            resolved = candidate.resolve()
        except (OSError, RuntimeError) as e:
            # Symlink loops and similar
            raise PathEscapeError("Invalid path") from e

        if not _is_within(str(self._root), str(resolved)):
            self._log.info("path.escape_rejected")
            raise PathEscapeError("Invalid path: outside the sandbox root")

        relative = resolved.relative_to(self._root).as_posix()
        return ResolvedPath(absolute=resolved, relative="" if relative == "." else relative)
