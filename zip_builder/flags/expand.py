"""Response-file expansion.

A token of the form ``@path`` is replaced, in place, by the tokens read from
*path*. Expansion is a single pass: tokens that come out of a response file are
not expanded again, even when they start with ``@``.
"""

from __future__ import annotations

import shlex
from collections.abc import Iterable
from pathlib import Path

from zip_builder.errors import ReadError

RESPONSE_FILE_MARKER = "@"


def read_resp_file(text: str) -> list[str]:
    """Split response file contents into tokens (whitespace and quote aware)."""
    return shlex.split(text, comments=False, posix=True)


def expand_args(tokens: Iterable[str]) -> list[str]:
    expanded: list[str] = []
    for token in tokens:
        if not token.startswith(RESPONSE_FILE_MARKER):
            expanded.append(token)
            continue
        path = token[len(RESPONSE_FILE_MARKER) :]
        try:
            text = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ReadError(path, exc) from exc
        try:
            expanded.extend(read_resp_file(text))
        except ValueError as exc:
            raise ReadError(path, exc) from exc
    return expanded
