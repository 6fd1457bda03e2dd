"""CLI command for printing the cache key of a condition.

Usage:
    repocache key shopusers id=42
    repocache key shopusers email=a@x.com tenant=acme --sort
"""

from __future__ import annotations

import typer

from repocache.cache.keys import build_key

app = typer.Typer(help="Print the cache key for a prefix and condition")


def parse_condition(pairs: list[str]) -> dict[str, str]:
    """Parse ``field=value`` arguments, keeping their order."""
    condition: dict[str, str] = {}
    for pair in pairs:
        field, sep, value = pair.partition("=")
        if not sep or not field:
            raise typer.BadParameter(f"expected field=value, got {pair!r}")
        condition[field] = value
    return condition


@app.callback(invoke_without_command=True)
def key(
    prefix: str = typer.Argument(..., help="Key namespace (app name + unique key)"),
    pairs: list[str] = typer.Argument(None, help="Condition fields as field=value"),
    sort: bool = typer.Option(
        False,
        "--sort",
        "-s",
        help="Sort fields by name before building the key",
    ),
) -> None:
    """Print the key a cached service would use for the condition."""
    condition = parse_condition(pairs or [])
    if not condition:
        typer.echo("warning: empty conditions are never cached", err=True)
    typer.echo(build_key(prefix, condition, sort_fields=sort))
