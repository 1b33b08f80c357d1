"""Archive member name guards.

Rejects member names that would escape an extraction root:
- Zip Slip (../ traversal)
- Absolute paths (including Windows drive letters)
"""

from __future__ import annotations

from pathlib import PurePosixPath, PureWindowsPath

from zip_builder.errors import EngineError


def _is_within(name: str) -> bool:
    path = PurePosixPath(name)
    if path.is_absolute() or PureWindowsPath(name).drive:
        return False
    return ".." not in path.parts


def check_member_name(name: str, src: str) -> str:
    """Return *name* if it is a safe, relative member name; raise otherwise."""
    if not name or name in {".", "./"}:
        raise EngineError(f"empty archive path for source {src!r}")
    if not _is_within(name):
        raise EngineError(f"unsafe archive path {name!r} for source {src!r}")
    return name
