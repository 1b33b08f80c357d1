"""Zip archive engine.

Builds the archive described by a :class:`PackagingRequest`:
- entries in directive order (jar order with ``-jar``)
- a fixed timestamp on every entry, so identical inputs give identical bytes
- stored (uncompressed) entries for the non-deflate set and for level 0
- optional directory entries and a jar manifest

The archive is assembled in memory, then written to a staging file next to the
output and renamed into place. With ``write_if_changed`` an identical existing
output is left untouched.

The parallelism hint is carried by the request but not used here; entries are
compressed sequentially.
"""

from __future__ import annotations

import io
import os
import time
import zipfile
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from zip_builder.errors import EngineError
from zip_builder.logging import get_logger, trace
from zip_builder.package.entries import PathMapping, resolve_entries
from zip_builder.package.jar import MANIFEST_NAME, META_DIR, build_manifest, entry_sort_key
from zip_builder.types import PackagingRequest

DEFAULT_TIMESTAMP = (2008, 1, 1, 0, 0, 0)
DIR_MODE = 0o040755
MS_DOS_DIRECTORY = 0x10

log = get_logger(__name__)


@dataclass(frozen=True)
class Entry:
    name: str
    src: str | None = None
    data: bytes | None = None
    stored: bool = False

    @property
    def is_dir(self) -> bool:
        return self.name.endswith("/")


def _read_text(path: str) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise EngineError(f"{path}: {getattr(exc, 'strerror', None) or exc}") from exc


def _validate(request: PackagingRequest) -> None:
    if not request.output_path:
        raise EngineError("must specify an output path with -o")
    if not 0 <= request.compression_level <= 9:
        raise EngineError(
            f"compression level must be between 0 and 9, got {request.compression_level}"
        )
    if request.parallel_jobs < 1:
        raise EngineError(f"-parallel must be at least 1, got {request.parallel_jobs}")
    if request.manifest_path and not request.emulate_jar:
        raise EngineError("must specify -jar when specifying a manifest via -m")


def _with_manifest(request: PackagingRequest, files: list[Entry]) -> list[Entry]:
    packaged = [e for e in files if e.name == MANIFEST_NAME]
    others = [e for e in files if e.name != MANIFEST_NAME]
    if request.manifest_path:
        if packaged:
            raise EngineError(
                f"{MANIFEST_NAME} is provided by both -m {request.manifest_path!r} "
                f"and {packaged[0].src!r}"
            )
        source: str | None = _read_text(request.manifest_path)
    elif packaged and packaged[0].src:
        source = _read_text(packaged[0].src)
    else:
        source = None
    stored = request.compression_level == 0 or MANIFEST_NAME in request.non_deflated
    manifest = Entry(MANIFEST_NAME, data=build_manifest(source), stored=stored)
    return [Entry(META_DIR), manifest, *others]


def _with_directories(entries: Iterable[Entry]) -> list[Entry]:
    """Insert an entry for every parent directory before its first child."""
    out: list[Entry] = []
    seen: set[str] = set()
    for entry in entries:
        parts = entry.name.rstrip("/").split("/")[:-1]
        for i in range(1, len(parts) + 1):
            parent = "/".join(parts[:i]) + "/"
            if parent not in seen:
                seen.add(parent)
                out.append(Entry(parent))
        if entry.is_dir:
            if entry.name in seen:
                continue
            seen.add(entry.name)
        out.append(entry)
    return out


def plan_entries(request: PackagingRequest, mappings: Iterable[PathMapping]) -> list[Entry]:
    """Turn resolved mappings into the final, ordered list of archive entries."""
    entries = [Entry(m.dest, src=m.src, stored=m.stored) for m in mappings]
    if request.emulate_jar:
        entries = _with_manifest(request, entries)
    if request.add_directory_entries:
        entries = _with_directories(entries)
    if request.emulate_jar:
        entries.sort(key=lambda e: entry_sort_key(e.name))
    return entries


def _load(entry: Entry) -> tuple[bytes, int]:
    if entry.data is not None:
        return entry.data, 0o100644
    if entry.src is None:
        raise EngineError(f"entry {entry.name!r} has neither data nor a source file")
    try:
        return Path(entry.src).read_bytes(), os.stat(entry.src).st_mode
    except OSError as exc:
        raise EngineError(f"{entry.src}: {exc.strerror or exc}") from exc


def write_archive(entries: Iterable[Entry], level: int) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=level) as z:
        for entry in entries:
            zinfo = zipfile.ZipInfo(entry.name, date_time=DEFAULT_TIMESTAMP)
            if entry.is_dir:
                zinfo.external_attr = (DIR_MODE << 16) | MS_DOS_DIRECTORY
                z.writestr(zinfo, b"", compress_type=zipfile.ZIP_STORED)
                continue
            data, mode = _load(entry)
            zinfo.external_attr = (mode & 0xFFFF) << 16
            if entry.stored:
                z.writestr(zinfo, data, compress_type=zipfile.ZIP_STORED)
            else:
                z.writestr(zinfo, data, compress_type=zipfile.ZIP_DEFLATED, compresslevel=level)
    return buf.getvalue()


def _unchanged(output: Path, payload: bytes) -> bool:
    try:
        return output.is_file() and output.read_bytes() == payload
    except OSError:
        return False


def _replace_file(output: Path, payload: bytes) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)
    staging = output.with_name(f".{output.name}.tmp")
    try:
        staging.write_bytes(payload)
        os.replace(staging, output)
    except OSError as exc:
        staging.unlink(missing_ok=True)
        raise EngineError(f"{output}: {exc.strerror or exc}") from exc


class ZipEngine:
    """Default :class:`~zip_builder.package.base.ArchiveEngine` built on ``zipfile``."""

    def run(self, request: PackagingRequest) -> None:
        _validate(request)
        started = time.perf_counter()

        mappings = resolve_entries(request)
        entries = plan_entries(request, mappings)
        trace("resolve", entries=len(entries), elapsed=time.perf_counter() - started)

        log.debug("parallelism hint %d ignored; writing sequentially", request.parallel_jobs)
        try:
            payload = write_archive(entries, request.compression_level)
        except (zipfile.LargeZipFile, ValueError) as exc:
            raise EngineError(str(exc)) from exc
        trace("compress", bytes=len(payload), elapsed=time.perf_counter() - started)

        output = Path(request.output_path)
        if request.write_if_changed and _unchanged(output, payload):
            log.info("%s unchanged, not rewriting", output)
            trace("write", skipped=True, elapsed=time.perf_counter() - started)
            return
        _replace_file(output, payload)
        log.info("wrote %s (%d entries)", output, len(entries))
        trace("write", skipped=False, elapsed=time.perf_counter() - started)
