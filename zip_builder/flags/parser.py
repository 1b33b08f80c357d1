"""Left-to-right flag parsing.

Parsing is a fold over the token list: every flag has a handler that takes the
current :class:`ParseState` and the flag's value and returns the next state, or
raises a typed error. File-adding flags (``-f``, ``-l``, ``-D``) capture the
root context (``-C`` / ``-j``) and zip prefix (``-P``) that are active when
they appear, so token order matters and is never rearranged.

Accepted syntax per flag: ``-name``, ``--name``, ``-name=value`` and
``-name value``. Boolean flags take a value only through ``=``. Parsing stops at
``--`` or at the first token that is not a flag; what is left is returned as
positional residue for the caller to judge.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path

from zip_builder.errors import (
    DuplicateEntryError,
    FlagError,
    HelpRequested,
    OrderingError,
    ReadError,
)
from zip_builder.types import (
    DEFAULT_COMPRESSION_LEVEL,
    Directive,
    DirectoryGlob,
    ExplicitFile,
    ListFile,
    PackagingRequest,
    RootContext,
)

PROG = "zip-builder"
USAGE = f"usage: {PROG} -o zipfile [-m manifest] -C dir [-f|-l file]..."

_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


@dataclass(frozen=True)
class ParseState:
    root: RootContext = RootContext()
    directives: tuple[Directive, ...] = ()
    non_deflated: tuple[str, ...] = ()

    output_path: str = ""
    manifest_path: str = ""
    zip_prefix: str = ""
    compression_level: int = DEFAULT_COMPRESSION_LEVEL
    parallel_jobs: int = field(default_factory=lambda: os.cpu_count() or 1)
    add_directory_entries: bool = False
    emulate_jar: bool = False
    write_if_changed: bool = False
    cpu_profile_path: str = ""
    trace_path: str = ""

    def to_request(self) -> PackagingRequest:
        return PackagingRequest(
            directives=self.directives,
            non_deflated=frozenset(self.non_deflated),
            output_path=self.output_path,
            compression_level=self.compression_level,
            parallel_jobs=self.parallel_jobs,
            manifest_path=self.manifest_path,
            emulate_jar=self.emulate_jar,
            add_directory_entries=self.add_directory_entries,
            write_if_changed=self.write_if_changed,
            cpu_profile_path=self.cpu_profile_path,
            trace_path=self.trace_path,
        )


@dataclass(frozen=True)
class ParseResult:
    state: ParseState
    positional: tuple[str, ...] = ()


Handler = Callable[[ParseState, str], ParseState]


@dataclass(frozen=True)
class Flag:
    name: str
    handler: Handler
    usage: str
    metavar: str = ""
    is_bool: bool = False
    default: str = ""


# --- Value conversion -------------------------------------------------------


def parse_bool(name: str, value: str) -> bool:
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise FlagError(f'invalid boolean value "{value}" for -{name}')


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise FlagError(f'invalid value "{value}" for flag -{name}: parse error') from None


def _string(attr: str) -> Handler:
    def handler(state: ParseState, value: str) -> ParseState:
        return replace(state, **{attr: value})

    return handler


def _boolean(name: str, attr: str) -> Handler:
    def handler(state: ParseState, value: str) -> ParseState:
        return replace(state, **{attr: parse_bool(name, value)})

    return handler


def _integer(name: str, attr: str) -> Handler:
    def handler(state: ParseState, value: str) -> ParseState:
        return replace(state, **{attr: _parse_int(name, value)})

    return handler


# --- Root context -----------------------------------------------------------


def set_strip_prefix(state: ParseState, path: str) -> ParseState:
    return replace(state, root=RootContext.stripping(path))


def set_junk_paths(state: ParseState, value: str) -> ParseState:
    return replace(state, root=RootContext.junking(parse_bool("j", value)))


# --- Directives -------------------------------------------------------------


def _require_root(state: ParseState, flag: str) -> None:
    if not state.root.is_set:
        raise OrderingError(flag)


def add_file(state: ParseState, path: str) -> ParseState:
    _require_root(state, "-f")
    directive = ExplicitFile(path=path, root=state.root, zip_prefix=state.zip_prefix)
    return replace(state, directives=state.directives + (directive,))


def read_list_file(path: str) -> tuple[str, ...]:
    """Return every line of *path*, including a trailing empty one."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ReadError(path, exc) from exc
    return tuple(text.split("\n"))


def add_list_file(state: ParseState, path: str) -> ParseState:
    _require_root(state, "-l")
    directive = ListFile(
        manifest_path=path,
        paths=read_list_file(path),
        root=state.root,
        zip_prefix=state.zip_prefix,
    )
    return replace(state, directives=state.directives + (directive,))


def add_directory(state: ParseState, path: str) -> ParseState:
    _require_root(state, "-D")
    directive = DirectoryGlob(dir_path=path, root=state.root, zip_prefix=state.zip_prefix)
    return replace(state, directives=state.directives + (directive,))


def add_non_deflated(state: ParseState, path: str) -> ParseState:
    if path in state.non_deflated:
        raise DuplicateEntryError(path)
    return replace(state, non_deflated=state.non_deflated + (path,))


FLAGS: dict[str, Flag] = {
    f.name: f
    for f in (
        Flag("o", _string("output_path"), "file to write zip file to", "path"),
        Flag("m", _string("manifest_path"), "input jar manifest file name", "path"),
        Flag(
            "d",
            _boolean("d", "add_directory_entries"),
            "include directories in zip",
            is_bool=True,
        ),
        Flag(
            "P",
            _string("zip_prefix"),
            "path prefix within the zip at which to place files",
            "prefix",
        ),
        Flag(
            "L",
            _integer("L", "compression_level"),
            "deflate compression level (0-9)",
            "level",
            default=str(DEFAULT_COMPRESSION_LEVEL),
        ),
        Flag(
            "jar",
            _boolean("jar", "emulate_jar"),
            "modify the resultant .zip to emulate the output of 'jar'",
            is_bool=True,
        ),
        Flag(
            "write_if_changed",
            _boolean("write_if_changed", "write_if_changed"),
            "only update resultant .zip if it has changed",
            is_bool=True,
        ),
        Flag(
            "parallel",
            _integer("parallel", "parallel_jobs"),
            "number of parallel threads to use",
            "n",
            default="number of CPUs",
        ),
        Flag("cpuprofile", _string("cpu_profile_path"), "write cpu profile to file", "path"),
        Flag("trace", _string("trace_path"), "write trace to file", "path"),
        Flag("l", add_list_file, "file containing list of files to include in zip", "path"),
        Flag("D", add_directory, "directory to include in zip", "path"),
        Flag("f", add_file, "file to include in zip", "path"),
        Flag(
            "s",
            add_non_deflated,
            "file path to be stored within the zip without compression",
            "path",
        ),
        Flag(
            "C",
            set_strip_prefix,
            "path to use as relative root of files in following -f, -l, or -D arguments",
            "path",
        ),
        Flag("j", set_junk_paths, "junk paths, zip files without directory names", is_bool=True),
    )
}


def format_usage() -> str:
    lines = [USAGE]
    for name in sorted(FLAGS, key=str.lower):
        flag = FLAGS[name]
        head = f"  -{name}"
        if flag.metavar:
            head += f" {flag.metavar}"
        lines.append(head)
        text = f"    \t{flag.usage}"
        if flag.default:
            text += f" (default {flag.default})"
        lines.append(text)
    return "\n".join(lines)


def _split_flag(token: str) -> tuple[str, str | None]:
    name = token[2:] if token.startswith("--") else token[1:]
    if not name or name[0] in "-=":
        raise FlagError(f"bad flag syntax: {token}")
    if "=" in name:
        name, value = name.split("=", 1)
        return name, value
    return name, None


def parse_args(tokens: Sequence[str], state: ParseState | None = None) -> ParseResult:
    """Fold *tokens* into a :class:`ParseState`, in order."""
    state = state or ParseState()
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if len(token) < 2 or not token.startswith("-"):
            break
        if token == "--":
            i += 1
            break
        name, value = _split_flag(token)
        i += 1
        if name in {"h", "help"}:
            raise HelpRequested()
        flag = FLAGS.get(name)
        if flag is None:
            raise FlagError(f"flag provided but not defined: -{name}")
        if flag.is_bool:
            value = "true" if value is None else value
        elif value is None:
            if i >= len(tokens):
                raise FlagError(f"flag needs an argument: -{name}")
            value = tokens[i]
            i += 1
        state = flag.handler(state, value)
    return ParseResult(state=state, positional=tuple(tokens[i:]))
