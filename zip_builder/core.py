"""Dispatch: argv → expanded tokens → PackagingRequest → archive engine → exit status.

This is the only place errors turn into exit codes:
- usage errors (bad ordering, duplicates, stray arguments, bad flags) → 2, with usage
- read and engine errors → 1
"""

from __future__ import annotations

import cProfile
from collections.abc import Iterator, Sequence
from contextlib import ExitStack, contextmanager

from rich.console import Console

from zip_builder.errors import (
    EXIT_OK,
    EngineError,
    HelpRequested,
    UnexpectedArgumentsError,
    UsageError,
    ZipBuilderError,
)
from zip_builder.flags.expand import expand_args
from zip_builder.flags.parser import format_usage, parse_args
from zip_builder.logging import get_logger, trace_to
from zip_builder.package.base import ArchiveEngine
from zip_builder.package.zip import ZipEngine
from zip_builder.types import PackagingRequest

err_console = Console(stderr=True)
log = get_logger(__name__)


def build_request(argv: Sequence[str]) -> PackagingRequest:
    tokens = expand_args(argv)
    result = parse_args(tokens)
    if result.positional:
        raise UnexpectedArgumentsError(result.positional)
    return result.state.to_request()


@contextmanager
def _profiled(path: str) -> Iterator[None]:
    profiler = cProfile.Profile()
    profiler.enable()
    try:
        yield
    finally:
        profiler.disable()
    # Skipped when the body raised.
    try:
        profiler.dump_stats(path)
    except OSError as exc:
        raise EngineError(f"{path}: {exc.strerror or exc}") from exc


@contextmanager
def _instrumented(request: PackagingRequest) -> Iterator[None]:
    with ExitStack() as stack:
        if request.trace_path:
            try:
                stack.enter_context(trace_to(request.trace_path))
            except OSError as exc:
                raise EngineError(f"{request.trace_path}: {exc.strerror or exc}") from exc
        if request.cpu_profile_path:
            stack.enter_context(_profiled(request.cpu_profile_path))
        yield


def dispatch(request: PackagingRequest, engine: ArchiveEngine | None = None) -> None:
    engine = engine or ZipEngine()
    log.info(
        "packaging %d directives into %s", len(request.directives), request.output_path or "-"
    )
    with _instrumented(request):
        engine.run(request)


def _report(message: str, style: str | None = None) -> None:
    err_console.print(message, style=style, markup=False, highlight=False, soft_wrap=True)


def run(argv: Sequence[str], engine: ArchiveEngine | None = None) -> int:
    """Run one invocation and return its exit status."""
    try:
        dispatch(build_request(argv), engine)
    except HelpRequested:
        _report(format_usage())
        return EXIT_OK
    except UsageError as exc:
        _report(str(exc), style="red")
        _report(format_usage())
        return exc.exit_code
    except ZipBuilderError as exc:
        _report(str(exc), style="red")
        return exc.exit_code
    return EXIT_OK
