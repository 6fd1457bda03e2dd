"""CLI commands for looking at and dropping cached entities in Redis.

Usage:
    repocache inspect shopusers email=a@x.com
    repocache invalidate shopusers id=42
"""

from __future__ import annotations

import asyncio

import orjson
import typer
from rich.console import Console

from repocache.cache.entries import POINTER_PREFIX
from repocache.cache.keys import CacheKeyBuilder
from repocache.cache.redis import RedisKeyValueCache, close_redis, get_redis
from repocache.cli.key_cmd import parse_condition

inspect_app = typer.Typer(help="Show the cache entry stored for a condition")
invalidate_app = typer.Typer(help="Delete the cache entry stored for a condition")


@inspect_app.callback(invoke_without_command=True)
def inspect(
    prefix: str = typer.Argument(..., help="Key namespace (app name + unique key)"),
    pairs: list[str] = typer.Argument(..., help="Condition fields as field=value"),
    sort: bool = typer.Option(False, "--sort", "-s", help="Sort fields by name"),
) -> None:
    """Report whether the condition's key holds a direct entry, a pointer, or nothing.

    Pointers are followed to the entity's id key.
    """
    console = Console()
    builder = CacheKeyBuilder(prefix, sort_fields=sort)
    found = asyncio.run(_inspect(console, builder, builder.build(parse_condition(pairs))))
    if not found:
        raise typer.Exit(code=1)


async def _inspect(console: Console, builder: CacheKeyBuilder, key: str) -> bool:
    fields = builder.parse(key) or []
    console.print(
        "fields: " + ", ".join(f"{field}={value}" for field, value in fields), markup=False
    )
    try:
        cache = RedisKeyValueCache(await get_redis())
        raw = await cache.get(key)
        if raw is None:
            console.print(f"[yellow]missing[/yellow] {key}")
            return False

        ttl = await cache.ttl(key)
        if raw.startswith(POINTER_PREFIX):
            ref_id = raw[len(POINTER_PREFIX) :]
            target_key = builder.for_id(ref_id)
            console.print(f"[blue]pointer[/blue] {key} -> {ref_id} (ttl {ttl}s)")
            if await cache.get(target_key) is None:
                console.print(f"  [yellow]direct entry {target_key} is missing[/yellow]")
            else:
                console.print(f"  [green]direct entry {target_key} present[/green]")
            return True

        console.print(f"[green]direct[/green] {key} (ttl {ttl}s)")
        try:
            console.print_json(data=orjson.loads(raw))
        except orjson.JSONDecodeError:
            console.print(f"  [red]undecodable value:[/red] {raw[:200]}")
        return True
    finally:
        await close_redis()


@invalidate_app.callback(invoke_without_command=True)
def invalidate(
    prefix: str = typer.Argument(..., help="Key namespace (app name + unique key)"),
    pairs: list[str] = typer.Argument(..., help="Condition fields as field=value"),
    sort: bool = typer.Option(False, "--sort", "-s", help="Sort fields by name"),
) -> None:
    """Delete the entry stored for the condition."""
    console = Console()
    key = CacheKeyBuilder(prefix, sort_fields=sort).build(parse_condition(pairs))
    removed = asyncio.run(_invalidate(key))
    console.print(f"Deleted {removed} key(s): {key}")


async def _invalidate(key: str) -> int:
    try:
        cache = RedisKeyValueCache(await get_redis())
        return await cache.delete(key)
    finally:
        await close_redis()
