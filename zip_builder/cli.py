"""zip-builder CLI.

Flags are order-sensitive (``-C``/``-j`` apply to the ``-f``/``-l``/``-D`` that
follow them), so Typer hands every token through untouched and the flag fold
in :mod:`zip_builder.flags.parser` does the parsing. ``-h`` prints the flag list.
"""

from __future__ import annotations

import click
import typer
from typer.core import TyperCommand

from zip_builder.core import run

RAW_ARGS = "zip_builder.raw_args"

app = typer.Typer(add_completion=False, help="Build zip archives from ordered file directives")


class PassthroughCommand(TyperCommand):
    """Keep the argv exactly as given; Click's parser drops ``--``."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        ctx.meta[RAW_ARGS] = list(args)
        return super().parse_args(ctx, args)


@app.command(
    cls=PassthroughCommand,
    context_settings={
        "allow_extra_args": True,
        "ignore_unknown_options": True,
        "help_option_names": [],
    },
)
def main(ctx: typer.Context) -> None:
    """Usage: zip-builder -o zipfile [-m manifest] -C dir [-f|-l file]..."""
    raise typer.Exit(code=run(ctx.meta.get(RAW_ARGS, ctx.args)))


if __name__ == "__main__":
    app()
