"""Error taxonomy. Each error knows the exit status it maps to."""

from __future__ import annotations

from collections.abc import Sequence

EXIT_OK = 0
EXIT_RUNTIME = 1
EXIT_USAGE = 2


class ZipBuilderError(Exception):
    exit_code = EXIT_RUNTIME


class UsageError(ZipBuilderError):
    """Bad command line; the usage summary is printed alongside."""

    exit_code = EXIT_USAGE


class HelpRequested(UsageError):
    exit_code = EXIT_OK

    def __init__(self) -> None:
        super().__init__("")


class FlagError(UsageError):
    pass


class OrderingError(UsageError):
    def __init__(self, flag: str) -> None:
        self.flag = flag
        super().__init__(f"must pass -C or -j before {flag}")


class DuplicateEntryError(UsageError):
    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"File {path!r} was specified twice as a file to not deflate")


class UnexpectedArgumentsError(UsageError):
    def __init__(self, args: Sequence[str]) -> None:
        self.args_left = tuple(args)
        super().__init__(f"unexpected arguments {' '.join(args)}")


class ReadError(ZipBuilderError):
    """A response file or list file could not be read."""

    def __init__(self, path: str, reason: object) -> None:
        self.path = path
        detail = getattr(reason, "strerror", None) or str(reason)
        super().__init__(f"{path}: {detail}")


class EngineError(ZipBuilderError):
    pass
