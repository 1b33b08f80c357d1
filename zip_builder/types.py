"""Shared Pydantic models: root context, directives and the packaging request."""

from __future__ import annotations

import os
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

DEFAULT_COMPRESSION_LEVEL = 5


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class RootContext(FrozenModel):
    """Active root for file-adding directives.

    Attributes
    ----------
    strip_prefix: str
        Source path prefix removed before placing a file in the archive.
    junk_paths: bool
        Store files by base name only.

    At most one of the two is ever in effect; use :meth:`stripping` and
    :meth:`junking` to move between states.
    """

    strip_prefix: str = ""
    junk_paths: bool = False

    @model_validator(mode="after")
    def _exclusive(self) -> RootContext:
        if self.strip_prefix and self.junk_paths:
            raise ValueError("strip_prefix and junk_paths are mutually exclusive")
        return self

    @classmethod
    def stripping(cls, prefix: str) -> RootContext:
        return cls(strip_prefix=prefix, junk_paths=False)

    @classmethod
    def junking(cls, junk: bool = True) -> RootContext:
        return cls(strip_prefix="", junk_paths=junk)

    @property
    def is_set(self) -> bool:
        return self.strip_prefix != "" or self.junk_paths


class ExplicitFile(FrozenModel):
    kind: Literal["file"] = "file"
    path: str
    root: RootContext
    zip_prefix: str = ""

    @property
    def sources(self) -> tuple[str, ...]:
        return (self.path,)


class ListFile(FrozenModel):
    """Paths read from a list file at parse time, one per line, unfiltered."""

    kind: Literal["list"] = "list"
    manifest_path: str
    paths: tuple[str, ...]
    root: RootContext
    zip_prefix: str = ""

    @property
    def sources(self) -> tuple[str, ...]:
        return self.paths


class DirectoryGlob(FrozenModel):
    kind: Literal["dir"] = "dir"
    dir_path: str
    root: RootContext
    zip_prefix: str = ""

    @property
    def sources(self) -> tuple[str, ...]:
        # Expanded by the engine.
        return ()


Directive = Annotated[ExplicitFile | ListFile | DirectoryGlob, Field(discriminator="kind")]


class PackagingRequest(FrozenModel):
    """Everything the archive engine needs, built once per invocation."""

    directives: tuple[Directive, ...] = ()
    non_deflated: frozenset[str] = frozenset()
    output_path: str = ""
    compression_level: int = DEFAULT_COMPRESSION_LEVEL
    parallel_jobs: int = Field(default_factory=lambda: os.cpu_count() or 1)
    manifest_path: str = ""
    emulate_jar: bool = False
    add_directory_entries: bool = False
    write_if_changed: bool = False
    cpu_profile_path: str = ""
    trace_path: str = ""
