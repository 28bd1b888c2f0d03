import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import timezone, tzinfo
from logging.handlers import RotatingFileHandler
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from rich.console import Console

from .config import Config, Credentials
from .constants import APP_NAME
from .git_wrapper import GitRemote, TransferError
from .github import GitHubClient
from .notify import Notifier, get_notifier
from .report import ChangeRecord, diff_snapshots, render_failure, render_report
from .snapshot import StateStore, fetch_snapshot, parse_snapshot

logger = logging.getLogger(APP_NAME)
logger.setLevel(logging.INFO)

console = Console()

Mirror = Callable[[str], None]
"""Callable[[remote_url], None]: Refreshes the local copy, raising TransferError."""


@dataclass
class SyncResult:
    """Outcome of one run.

    Attributes:
        changed (bool): False when the remote matched the stored snapshot.
        changes (list[ChangeRecord]): Branch changes, oldest commit first.
        message (str): The notification text ("" when nothing changed).
        raw (str): The reference listing captured by this run.
    """

    changed: bool
    changes: list[ChangeRecord] = field(default_factory=list)
    message: str = ""
    raw: str = ""


def get_timezone(name: str) -> tzinfo:
    """Resolves a zone name, falling back to UTC when it is unknown."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        logger.warning(f"Unknown timezone '{name}' ({e}). Using UTC.")
        return timezone.utc


def build_remote(config: Config, credentials: Credentials) -> GitRemote:
    """Creates the remote wrapper, authenticated when a token is available."""
    url = config.source.remote_url(credentials.repo_access_token)
    return GitRemote(url, timeout=config.limits.list_timeout)


def build_github(config: Config, credentials: Credentials) -> GitHubClient:
    return GitHubClient(
        config.source.owner,
        config.source.name,
        token=credentials.repo_access_token,
        timeout=config.limits.http_timeout,
        host=config.source.host,
        api_url=config.source.api_base,
    )


def default_mirror(config: Config) -> Mirror:
    """Returns the mirror capability writing into `config.paths.mirror_dir`."""

    def mirror(remote_url: str) -> None:
        remote = GitRemote(remote_url, timeout=config.limits.clone_timeout)
        remote.clone_mirror(config.paths.mirror_dir)

    return mirror


def run_sync(
    config: Config,
    credentials: Credentials,
    *,
    remote: GitRemote | None = None,
    mirror: Mirror | None = None,
    store: StateStore | None = None,
    github: GitHubClient | None = None,
    notifier: Notifier | None = None,
) -> SyncResult:
    """Orchestrates one check-and-mirror pass.

    Steps:
    1. Lists the remote branches and loads the stored listing.
    2. Stops if both listings are identical.
    3. Diffs the snapshots and renders the report.
    4. Refreshes the mirror, persists the listing, sends the report.

    Collaborators default to the real implementations built from `config`.

    Args:
        config (Config): Loaded configuration.
        credentials (Credentials): Process credentials.

    Returns:
        SyncResult: What changed and the message that was sent.

    Raises:
        TransferError: If listing or mirroring fails. The stored listing is
                       left untouched in that case.
    """
    remote = remote or build_remote(config, credentials)
    mirror = mirror or default_mirror(config)
    store = store or StateStore(config.paths.state_file)
    github = github or build_github(config, credentials)
    notifier = notifier or get_notifier(credentials, config.limits.http_timeout)

    detected = detect_changes(remote, store, github)
    if not detected.changed:
        logger.info("No changes. Nothing to sync.")
        return detected

    logger.info("Changes detected. Syncing...")
    tz = get_timezone(config.report.timezone)
    message = render_report(detected.changes, config.source.name, tz)
    pushed_at = github.pushed_at()

    mirror(remote.url)
    store.save(detected.raw)

    notifier.send(message)
    logger.info(
        f"Synced {len(detected.changes)} changed branches. "
        f"Repository last pushed at {pushed_at.astimezone(tz):%Y-%m-%d %H:%M:%S}."
    )
    return replace(detected, message=message)


def detect_changes(
    remote: GitRemote, store: StateStore, github: GitHubClient
) -> SyncResult:
    """Compares the remote branches with the stored listing.

    Has no side effects beyond the remote listing and commit time lookups.

    Args:
        remote (GitRemote): The remote to list.
        store (StateStore): Holder of the previous listing.
        github (GitHubClient): Commit time and branch link provider.

    Returns:
        SyncResult: `changed` is False when both listings are identical;
        otherwise `changes` holds the diff. `message` is left empty.
    """
    logger.info("Checking for updates...")
    latest_text, current = fetch_snapshot(remote)
    last_text = store.load()

    logger.info(f"Previous snapshot: {'recorded' if last_text else 'none'}")
    logger.info(f"Latest snapshot: {len(current)} branches")

    if latest_text == last_text:
        return SyncResult(changed=False, raw=latest_text)

    previous = parse_snapshot(last_text) if last_text else {}
    changes = diff_snapshots(
        previous,
        current,
        resolve_time=github.commit_time,
        url_for=github.branch_url,
    )
    return SyncResult(changed=True, changes=changes, raw=latest_text)


def setup_logging(
    interactive: bool, log_file: Path | None = None, max_bytes: int = 5 * 1024 * 1024
) -> None:
    """Configures the logging subsystem.

    Args:
        interactive (bool): If True, logs to stdout, otherwise to stderr.
        log_file (Path | None): Adds a rotating file handler when given.
        max_bytes (int): Size at which the log file rotates.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    stream_handler = logging.StreamHandler(
        sys.stderr if not interactive else sys.stdout
    )
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_file:
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=5,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


def main(interactive: bool = False, config_path: Path | None = None) -> None:
    """Runs a single sync, exiting with status 1 if it fails.

    Args:
        interactive (bool, optional): Log to stdout and print a summary.
        config_path (Path | None, optional): Explicit config file.
    """
    credentials = Credentials.from_env()
    # Built before the config so that config and logging errors are reported too.
    notifier = get_notifier(credentials)

    try:
        config = Config.load(config_path)
        setup_logging(interactive, config.paths.log_file, config.limits.max_log_size)
        notifier = get_notifier(credentials, config.limits.http_timeout)
        result = run_sync(config, credentials, notifier=notifier)
    except Exception as e:
        if isinstance(e, TransferError):
            logger.error(f"SYNC FAILED: {e}")
        else:
            logger.exception("SYNC FAILED")
        notifier.send(render_failure(e))
        if interactive:
            console.print(f"[bold red]ERROR:[/bold red] {e}")
        sys.exit(1)

    if interactive:
        if result.changed:
            console.print(
                f"[bold green]SUCCESS:[/bold green] Mirrored "
                f"{len(result.changes)} changed branches."
            )
        else:
            console.print("[dim]No changes. Nothing to sync.[/dim]")
