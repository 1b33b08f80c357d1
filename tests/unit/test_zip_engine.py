from __future__ import annotations

import json
import os
import zipfile
from pathlib import Path

import pytest

from zip_builder.core import build_request, dispatch
from zip_builder.errors import EngineError
from zip_builder.package.entries import archive_path
from zip_builder.package.zip import Entry, ZipEngine, write_archive
from zip_builder.types import RootContext


@pytest.fixture
def tree(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """
    src/
      a.txt
      z.txt
      sub/b.txt
      sub/deeper/c.txt
    """
    src = tmp_path / "src"
    (src / "sub" / "deeper").mkdir(parents=True)
    (src / "a.txt").write_text("alpha " * 50, encoding="utf-8")
    (src / "z.txt").write_text("zulu " * 50, encoding="utf-8")
    (src / "sub" / "b.txt").write_text("bravo " * 50, encoding="utf-8")
    (src / "sub" / "deeper" / "c.txt").write_text("charlie " * 50, encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _build(*tokens: str) -> zipfile.ZipFile:
    request = build_request(list(tokens))
    ZipEngine().run(request)
    return zipfile.ZipFile(request.output_path)


def test_strip_prefix_and_directory_glob(tree: Path) -> None:
    with _build("-o", "out.zip", "-C", "src", "-f", "src/z.txt", "-D", "src/sub") as z:
        assert z.namelist() == ["z.txt", "sub/b.txt", "sub/deeper/c.txt"]
        assert z.read("z.txt") == (tree / "src" / "z.txt").read_bytes()


def test_junk_paths_and_zip_prefix(tree: Path) -> None:
    with _build("-o", "out.zip", "-P", "lib", "-j", "-f", "src/sub/deeper/c.txt") as z:
        assert z.namelist() == ["lib/c.txt"]


def test_source_outside_strip_prefix_fails(tree: Path) -> None:
    request = build_request(["-o", "out.zip", "-C", "src/sub", "-f", "src/a.txt"])
    with pytest.raises(EngineError, match="outside relative root"):
        ZipEngine().run(request)
    assert not (tree / "out.zip").exists()


def test_list_file_entries_with_trailing_newline(tree: Path) -> None:
    (tree / "files.list").write_text("src/a.txt\nsrc/sub/b.txt\n", encoding="utf-8")
    with _build("-o", "out.zip", "-C", "src", "-l", "files.list") as z:
        assert z.namelist() == ["a.txt", "sub/b.txt"]


def test_non_deflated_and_level_zero(tree: Path) -> None:
    args = ["-C", "src", "-f", "src/a.txt", "-f", "src/z.txt", "-s", "a.txt"]
    with _build("-o", "out.zip", *args) as z:
        assert z.getinfo("a.txt").compress_type == zipfile.ZIP_STORED
        assert z.getinfo("z.txt").compress_type == zipfile.ZIP_DEFLATED

    with _build("-o", "flat.zip", "-L", "0", "-C", "src", "-D", "src") as z:
        assert {i.compress_type for i in z.infolist()} == {zipfile.ZIP_STORED}


def test_directory_entries(tree: Path) -> None:
    with _build("-o", "out.zip", "-d", "-C", "src", "-f", "src/a.txt", "-D", "src/sub") as z:
        assert z.namelist() == ["a.txt", "sub/", "sub/b.txt", "sub/deeper/", "sub/deeper/c.txt"]
        assert z.getinfo("sub/").is_dir()


def test_jar_ordering_and_default_manifest(tree: Path) -> None:
    with _build("-o", "out.jar", "-jar", "-C", "src", "-f", "src/z.txt", "-f", "src/a.txt") as z:
        assert z.namelist() == ["META-INF/", "META-INF/MANIFEST.MF", "a.txt", "z.txt"]
        manifest = z.read("META-INF/MANIFEST.MF").decode("utf-8")
        assert manifest.startswith("Manifest-Version: 1.0\n")
        assert manifest.endswith("\n\n")


def test_jar_manifest_from_flag(tree: Path) -> None:
    (tree / "MANIFEST.MF").write_text("Main-Class: com.example.Main\n", encoding="utf-8")
    with _build("-o", "out.jar", "-jar", "-m", "MANIFEST.MF", "-C", "src", "-f", "src/a.txt") as z:
        manifest = z.read("META-INF/MANIFEST.MF").decode("utf-8")
    assert "Main-Class: com.example.Main" in manifest
    assert "Manifest-Version: 1.0" in manifest
    assert "Created-By: zip-builder" in manifest


def test_manifest_requires_jar(tree: Path) -> None:
    (tree / "MANIFEST.MF").write_text("Main-Class: x\n", encoding="utf-8")
    request = build_request(["-o", "out.zip", "-m", "MANIFEST.MF"])
    with pytest.raises(EngineError, match="must specify -jar"):
        ZipEngine().run(request)


def test_output_path_and_level_are_validated(tree: Path) -> None:
    with pytest.raises(EngineError, match="output path"):
        ZipEngine().run(build_request(["-j", "-f", "src/a.txt"]))
    with pytest.raises(EngineError, match="compression level"):
        ZipEngine().run(build_request(["-o", "out.zip", "-L", "12"]))


def test_duplicate_destinations(tree: Path) -> None:
    with _build("-o", "out.zip", "-C", "src", "-f", "src/a.txt", "-f", "src/a.txt") as z:
        assert z.namelist() == ["a.txt"]

    (tree / "src" / "sub" / "a.txt").write_text("other", encoding="utf-8")
    request = build_request(["-o", "dup.zip", "-j", "-f", "src/a.txt", "-f", "src/sub/a.txt"])
    with pytest.raises(EngineError, match="provided by both"):
        ZipEngine().run(request)


def test_missing_source_fails(tree: Path) -> None:
    request = build_request(["-o", "out.zip", "-C", "src", "-f", "src/nope.txt"])
    with pytest.raises(EngineError, match="does not exist"):
        ZipEngine().run(request)


def test_output_is_deterministic_and_write_if_changed(tree: Path) -> None:
    args = ["-C", "src", "-D", "src"]
    _build("-o", "one.zip", *args).close()
    _build("-o", "two.zip", *args).close()
    assert (tree / "one.zip").read_bytes() == (tree / "two.zip").read_bytes()

    os.utime(tree / "one.zip", ns=(1_000_000_000, 1_000_000_000))
    _build("-o", "one.zip", "-write_if_changed", *args).close()
    assert (tree / "one.zip").stat().st_mtime_ns == 1_000_000_000

    _build("-o", "one.zip", *args).close()
    assert (tree / "one.zip").stat().st_mtime_ns != 1_000_000_000


def test_trace_and_cpu_profile_outputs(tree: Path) -> None:
    request = build_request(
        ["-o", "out.zip", "-trace", "trace.jsonl", "-cpuprofile", "cpu.prof"]
        + ["-C", "src", "-D", "src"]
    )
    dispatch(request, ZipEngine())

    events = [json.loads(line) for line in (tree / "trace.jsonl").read_text().splitlines()]
    assert [e["msg"] for e in events] == ["resolve", "compress", "write"]
    assert events[0]["entries"] == 4
    assert (tree / "cpu.prof").stat().st_size > 0


@pytest.mark.parametrize(
    "src, root, prefix, expected",
    [
        ("foo/bar.txt", RootContext.stripping("foo"), "", "bar.txt"),
        ("foo/bar.txt", RootContext.stripping("foo/"), "", "bar.txt"),
        ("./foo/x/y", RootContext.stripping("foo"), "p", "p/x/y"),
        ("foo/x/y", RootContext.junking(), "", "y"),
        ("foo/x/y", RootContext.stripping("."), "", "foo/x/y"),
    ],
)
def test_archive_path(src: str, root: RootContext, prefix: str, expected: str) -> None:
    assert archive_path(src, root, prefix) == expected


def test_archive_path_rejects_traversal() -> None:
    with pytest.raises(EngineError, match="unsafe archive path"):
        archive_path("foo/x", RootContext.stripping("."), "../escape")


def test_non_deflated_matches_archive_path_only(tree: Path) -> None:
    by_source = ["-P", "lib", "-C", "src", "-f", "src/a.txt", "-s", "src/a.txt"]
    with _build("-o", "src.zip", *by_source) as z:
        assert z.getinfo("lib/a.txt").compress_type == zipfile.ZIP_DEFLATED

    by_dest = ["-P", "lib", "-C", "src", "-f", "src/a.txt", "-s", "lib/a.txt"]
    with _build("-o", "dest.zip", *by_dest) as z:
        assert z.getinfo("lib/a.txt").compress_type == zipfile.ZIP_STORED


def test_entry_without_content_is_engine_error() -> None:
    with pytest.raises(EngineError, match="neither data nor a source"):
        write_archive([Entry("orphan.txt")], level=5)
