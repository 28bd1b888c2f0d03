import argparse
import logging
import sys
from datetime import tzinfo
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import sync
from .config import Config, Credentials
from .constants import APP_NAME, SHORT_SHA_LENGTH
from .git_wrapper import TransferError
from .report import ChangeRecord, format_time
from .snapshot import StateStore, parse_snapshot

logger = logging.getLogger(APP_NAME)
console = Console()


def _changes_table(changes: list[ChangeRecord], tz: tzinfo) -> Table:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Branch", style="cyan")
    table.add_column("Change")
    table.add_column("Committed", justify="right", style="dim")

    for change in changes:
        if change.is_new:
            kind = f"[green]new[/green] {change.short_new}"
        else:
            kind = f"[yellow]{change.short_old} → {change.short_new}[/yellow]"
        when = format_time(change.committed_at, tz) if change.time_known else "unknown"
        table.add_row(change.branch, kind, when)
    return table


def show_status(config: Config) -> None:
    """Displays the watched repository and the stored snapshot."""
    credentials = Credentials.from_env()
    store = StateStore(config.paths.state_file)
    snapshot = parse_snapshot(store.load())

    content = Text()
    content.append("Source:   ", style="bold")
    content.append(f"{config.source.remote_url()}\n")
    content.append("Mirror:   ", style="bold")
    content.append(f"{config.paths.mirror_dir}\n")
    content.append("State:    ", style="bold")
    content.append(f"{config.paths.state_file}\n")
    content.append("Notify:   ", style="bold")
    if credentials.can_notify:
        content.append("Enabled", style="green")
    else:
        content.append("Disabled (no bot token or chat id)", style="yellow")
    console.print(Panel(content, title="Mirror Status", expand=False))

    if not snapshot:
        console.print("[yellow]No snapshot recorded yet.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Branch", style="cyan")
    table.add_column("Commit", style="dim")
    for branch, sha in snapshot.items():
        table.add_row(branch, sha[:SHORT_SHA_LENGTH])
    console.print(table)


def check_updates(config: Config) -> bool:
    """Compares the remote with the stored snapshot without side effects.

    Nothing is mirrored, persisted or sent.

    Returns:
        bool: True if the remote differs from the stored snapshot.
    """
    credentials = Credentials.from_env()
    remote = sync.build_remote(config, credentials)
    github = sync.build_github(config, credentials)
    store = StateStore(config.paths.state_file)

    with console.status("[bold blue]Comparing remote branches...[/bold blue]"):
        detected = sync.detect_changes(remote, store, github)

    if not detected.changed:
        console.print("[bold green]Up to date.[/bold green] No changes detected.")
        return False

    changes = detected.changes
    if not changes:
        console.print(
            "[yellow]Changes detected, but no updated branch could be "
            "determined (a branch may have been deleted).[/yellow]"
        )
        return True

    tz = sync.get_timezone(config.report.timezone)
    console.print(_changes_table(changes, tz))
    return True


def show_config_reference() -> None:
    """Displays a formatted table of all available configuration options."""
    table = Table(title="Mirror Watch Configuration Schema", show_lines=True)
    table.add_column("Section", style="cyan", justify="right")
    table.add_column("Key", style="green")
    table.add_column("Type", style="dim")
    table.add_column("Default", style="yellow")
    table.add_column("Description")

    table.add_row("source", "owner", "str", '"cmliu"', "Owner of the watched repository.")
    table.add_row("", "name", "str", '"edgetunnel"', "Name of the watched repository.")
    table.add_row("", "host", "str", '"github.com"', "Host serving the repository.")
    table.add_row(
        "",
        "api_url",
        "str",
        "None",
        "Metadata API base. Derived from host (api.github.com or host/api/v3).",
    )

    table.add_row(
        "paths", "mirror_dir", "path", '"edgetunnel"', "Destination of the mirror clone."
    )
    table.add_row(
        "",
        "state_file",
        "path",
        '"last_commit.txt"',
        "Stores the reference listing of the last sync.",
    )
    table.add_row("", "log_file", "path", "None", "Optional rotating log file.")

    table.add_row(
        "report",
        "timezone",
        "str",
        '"Asia/Shanghai"',
        "Zone used for commit times in notifications.",
    )

    table.add_row(
        "limits",
        "list_timeout",
        "int | str",
        '"30s"',
        "Time allowed for listing remote branches.",
    )
    table.add_row(
        "", "clone_timeout", "int | str", '"2min"', "Time allowed for the mirror clone."
    )
    table.add_row(
        "", "http_timeout", "int | str", '"10s"', "Time allowed per HTTP request."
    )
    table.add_row(
        "",
        "max_log_size",
        "int | str",
        '"5mb"',
        "Max size for the log file before rotation (e.g., '5mb').",
    )

    console.print(table)
    console.print(
        "[dim]Secrets come from the environment: TELEGRAM_BOT_TOKEN, "
        "TELEGRAM_CHAT_ID, GH_TOKEN.[/dim]"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Mirror a remote repository and announce branch updates.",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Path to the config file (default: ./mirror-watch.toml)",
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("run", help="Check, mirror and notify (default)")
    subparsers.add_parser("check", help="Show pending branch changes without syncing")
    subparsers.add_parser("status", help="Show the stored snapshot")
    subparsers.add_parser("config", help="List configuration options")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the Mirror Watch CLI."""
    args = build_parser().parse_args(argv)

    if args.command == "config":
        show_config_reference()
        return

    if args.command in ("check", "status"):
        config = Config.load(args.config)
        if args.command == "status":
            show_status(config)
            return
        try:
            check_updates(config)
        except TransferError as e:
            console.print(f"[bold red]ERROR:[/bold red] {e}")
            sys.exit(1)
        return

    # Default action: a full run.
    sync.main(interactive=sys.stdout.isatty(), config_path=args.config)


if __name__ == "__main__":
    main()
