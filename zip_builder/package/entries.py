"""Resolve directives into (archive path, source path) pairs.

Directives are walked in request order and each source is mapped to its
archive path using the root context captured by its directive:

- junk paths: base name only
- strip prefix: path relative to the prefix (sources outside it are an error)
- the directive's zip prefix, if any, is prepended

Directories (from ``-D`` or passed as a file) expand recursively in sorted
order. Blank entries from list files are skipped here, not at parse time.
"""

from __future__ import annotations

import os
import posixpath
from collections.abc import Iterator
from dataclasses import dataclass

from zip_builder.errors import EngineError
from zip_builder.logging import get_logger
from zip_builder.security.archive import check_member_name
from zip_builder.types import Directive, DirectoryGlob, PackagingRequest, RootContext

log = get_logger(__name__)


@dataclass(frozen=True)
class PathMapping:
    dest: str
    src: str
    stored: bool = False


def _to_posix(path: str) -> str:
    return path.replace(os.sep, "/") if os.sep != "/" else path


def _walk_files(directory: str) -> Iterator[str]:
    for root, dirs, files in os.walk(directory):
        dirs.sort()
        for name in sorted(files):
            yield _to_posix(os.path.join(root, name))


def _expand(directive: Directive) -> Iterator[str]:
    if isinstance(directive, DirectoryGlob):
        if not os.path.isdir(directive.dir_path):
            raise EngineError(f"directory {directive.dir_path!r} does not exist")
        yield from _walk_files(directive.dir_path)
        return

    for src in directive.sources:
        if not src.strip():
            continue
        if os.path.isdir(src):
            yield from _walk_files(src)
        elif os.path.lexists(src):
            yield _to_posix(src)
        else:
            raise EngineError(f"file {src!r} does not exist")


def archive_path(src: str, root: RootContext, zip_prefix: str = "") -> str:
    if root.junk_paths:
        rel = posixpath.basename(src)
    elif root.strip_prefix:
        prefix = _to_posix(root.strip_prefix)
        rel = posixpath.relpath(posixpath.normpath(src), posixpath.normpath(prefix))
        if rel == ".." or rel.startswith("../"):
            raise EngineError(f"path {src!r} is outside relative root {root.strip_prefix!r}")
    else:
        rel = posixpath.normpath(src)
    if zip_prefix:
        rel = posixpath.join(_to_posix(zip_prefix), rel)
    return check_member_name(rel, src)


def resolve_entries(request: PackagingRequest) -> list[PathMapping]:
    """Return file mappings in directive order, one per archive path."""
    mappings: list[PathMapping] = []
    seen: dict[str, str] = {}
    for directive in request.directives:
        for src in _expand(directive):
            dest = archive_path(src, directive.root, directive.zip_prefix)
            if dest in seen:
                if seen[dest] == src:
                    log.debug("skipping duplicate entry %s", dest)
                    continue
                raise EngineError(
                    f"destination path {dest!r} is provided by both {seen[dest]!r} and {src!r}"
                )
            seen[dest] = src
            stored = request.compression_level == 0 or dest in request.non_deflated
            mappings.append(PathMapping(dest=dest, src=src, stored=stored))
    log.info("resolved %d entries from %d directives", len(mappings), len(request.directives))
    return mappings
