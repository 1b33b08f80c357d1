"""Jar emulation: entry ordering and manifest normalization."""

from __future__ import annotations

META_DIR = "META-INF/"
MANIFEST_NAME = "META-INF/MANIFEST.MF"
CREATED_BY = "zip-builder"

DEFAULT_MANIFEST = f"Manifest-Version: 1.0\nCreated-By: {CREATED_BY}\n\n"


def entry_sort_key(name: str) -> tuple[int, str]:
    """`jar` puts META-INF/ first, the manifest second, then everything by name."""
    if name == META_DIR:
        return (0, name)
    if name == MANIFEST_NAME:
        return (1, name)
    return (2, name)


def build_manifest(source: str | None = None) -> bytes:
    """Return manifest bytes with the mandatory headers and a trailing blank line.

    *source* is existing manifest text (from ``-m`` or a packaged
    MANIFEST.MF); headers it already carries are kept as-is.
    """
    if not source:
        return DEFAULT_MANIFEST.encode("utf-8")

    lines = source.replace("\r\n", "\n").rstrip("\n").split("\n")
    keys = {line.split(":", 1)[0].strip().lower() for line in lines if ":" in line}
    if "manifest-version" not in keys:
        lines.insert(0, "Manifest-Version: 1.0")
    if "created-by" not in keys:
        lines.append(f"Created-By: {CREATED_BY}")
    return ("\n".join(lines) + "\n\n").encode("utf-8")
