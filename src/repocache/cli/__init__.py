"""CLI commands for repocache.

Provides command-line interface using Typer:
- repocache key: Print the cache key for a condition
- repocache inspect: Show the cached entry for a condition
- repocache invalidate: Delete the cached entry for a condition

Usage:
    repocache --help
    repocache key shopusers email=a@x.com
    repocache inspect shopusers email=a@x.com
    repocache invalidate shopusers id=42
"""

import typer

from repocache.cli.cache_cmd import inspect_app, invalidate_app
from repocache.cli.key_cmd import app as key_app
from repocache.config import settings
from repocache.observability.logging import configure_logging

# Main CLI application
app = typer.Typer(
    name="repocache",
    help="repocache: cache-aside data access for entity stores",
    no_args_is_help=True,
)

# Add subcommands
app.add_typer(key_app, name="key")
app.add_typer(inspect_app, name="inspect")
app.add_typer(invalidate_app, name="invalidate")


@app.callback()
def callback(
    log_level: str = typer.Option(
        settings.log_level,
        "--log-level",
        "-l",
        help="Log level: debug, info, warning, error",
    ),
) -> None:
    """repocache: cache-aside data access for entity stores."""
    configure_logging(json_format=settings.log_json, level=log_level)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
