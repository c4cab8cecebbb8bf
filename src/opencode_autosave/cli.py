"""
Command-line interface for the autosave plugin.

Runs the plugin outside the host process by following the OpenCode server's
event stream, exports single sessions on demand and manages the project
configuration file.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from opencode_autosave.client import HostError, OpencodeClient
from opencode_autosave.config import CONFIG_FILENAME, AutosaveConfig, load_config
from opencode_autosave.logging import setup_logging
from opencode_autosave.plugin import setup_autosave

console = Console()

DEFAULT_URL = "http://localhost:4096"


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Save OpenCode conversations as markdown",
        prog="opencode-autosave",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output (debug logging)",
    )
    parser.add_argument("--log-file", help="Also write log records to this file")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    watch_parser = subparsers.add_parser("watch", help="Follow the event stream and autosave")
    watch_parser.add_argument("--url", default=DEFAULT_URL, help="OpenCode server URL")
    watch_parser.add_argument("-d", "--directory", default=".", help="Project directory")

    export_parser = subparsers.add_parser("export", help="Save one session now")
    export_parser.add_argument("session_id", help="Session id")
    export_parser.add_argument("--url", default=DEFAULT_URL, help="OpenCode server URL")
    export_parser.add_argument("-d", "--directory", default=".", help="Project directory")

    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_subparsers = config_parser.add_subparsers(dest="config_command", help="Config commands")

    show_parser = config_subparsers.add_parser("show", help="Show effective configuration")
    show_parser.add_argument("-d", "--directory", default=".", help="Project directory")

    init_parser = config_subparsers.add_parser("init", help="Write a default config file")
    init_parser.add_argument("-d", "--directory", default=".", help="Project directory")
    init_parser.add_argument("--force", action="store_true", help="Overwrite an existing file")

    args = parser.parse_args(argv)

    load_dotenv()

    if args.verbose:
        level = "DEBUG"
    else:
        level = "INFO" if args.command == "watch" else "WARNING"
    setup_logging(level, file=args.log_file)

    if args.command == "watch":
        try:
            asyncio.run(cmd_watch(args))
        except KeyboardInterrupt:
            console.print("[dim]Stopped.[/dim]")
    elif args.command == "export":
        asyncio.run(cmd_export(args))
    elif args.command == "config":
        cmd_config(args)
    else:
        parser.print_help()


async def cmd_watch(args: argparse.Namespace) -> None:
    """Feed host events into the plugin until the stream ends."""
    directory = Path(args.directory)
    config = load_config(directory)

    async with OpencodeClient(args.url, directory=str(directory.resolve())) as client:
        plugin = setup_autosave(client, directory, config)
        console.print(f"[green]Watching {args.url}[/green] [dim](saving to {config.primary_root(directory)})[/dim]")
        try:
            async for event in client.events():
                await plugin.handle_event(event)
        except HostError as e:
            console.print(f"[red]Event stream ended:[/red] {e}")
        finally:
            plugin.close()
            await plugin.drain()


async def _register_tree(
    client: OpencodeClient,
    plugin: Any,
    info: dict[str, Any],
    seen: set[str],
) -> None:
    session_id = info.get("id")
    if not session_id or session_id in seen:
        return
    seen.add(session_id)
    await plugin.handle_event({"type": "session.created", "properties": {"info": info}})
    for child in await client.children(session_id):
        await _register_tree(client, plugin, child, seen)


async def cmd_export(args: argparse.Namespace) -> None:
    """Register a session (and its descendants) from the host and save it once."""
    directory = Path(args.directory)
    config = load_config(directory)

    async with OpencodeClient(args.url, directory=str(directory.resolve())) as client:
        plugin = setup_autosave(client, directory, config)
        if plugin.context is None:
            console.print("[red]Autosave could not be initialised[/red]")
            sys.exit(1)

        try:
            info = await client.session(args.session_id)
            await _register_tree(client, plugin, info, set())
        except HostError as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)

        ok = await plugin.context.orchestrator.flush(args.session_id)
        root = plugin.context.registry.root_of(args.session_id)
        if not ok or root is None or root.file_path is None:
            console.print(f"[yellow]Nothing saved for {args.session_id}[/yellow]")
            sys.exit(1)

        console.print(f"[green]Saved:[/green] {root.file_path}")
        mirror = plugin.context.storage.mirror_path(root.file_path)
        if mirror is not None:
            console.print(f"[dim]Mirrored to {mirror}[/dim]")


def cmd_config(args: argparse.Namespace) -> None:
    """Configuration management commands."""
    if args.config_command == "show":
        _config_show(Path(args.directory))
    elif args.config_command == "init":
        _config_init(Path(args.directory), args.force)
    else:
        console.print("[yellow]Usage: opencode-autosave config <show|init>[/yellow]")


def _config_show(directory: Path) -> None:
    path = directory / CONFIG_FILENAME
    if path.exists():
        console.print(f"[dim]Loaded from: {path}[/dim]\n")
    else:
        console.print("[dim]No config file found. Using defaults.[/dim]\n")

    config = load_config(directory)

    table = Table(title="Autosave Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in config.to_dict().items():
        table.add_row(key, "-" if value is None else str(value))
    table.add_row("primary root", str(config.primary_root(directory)))
    secondary = config.secondary_root(directory)
    table.add_row("secondary root", str(secondary) if secondary else "[dim]disabled[/dim]")
    console.print(table)


def _config_init(directory: Path, force: bool) -> None:
    output_path = directory / CONFIG_FILENAME

    if output_path.exists() and not force:
        console.print(f"[red]File already exists: {output_path}[/red]")
        sys.exit(1)

    output_path.write_text(AutosaveConfig().to_yaml(), encoding="utf-8")
    console.print(f"[green]Created config file: {output_path}[/green]")


if __name__ == "__main__":
    main()
