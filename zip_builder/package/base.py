"""Archive engine contract.

The dispatcher only knows this protocol: hand over a fully built
:class:`PackagingRequest`, get back nothing or an :class:`EngineError`.
"""

from __future__ import annotations

from typing import Protocol

from zip_builder.types import PackagingRequest


class ArchiveEngine(Protocol):
    def run(self, request: PackagingRequest) -> None: ...
