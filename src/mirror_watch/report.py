import html
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo

from .constants import APP_NAME, EPOCH_SENTINEL, SHORT_SHA_LENGTH

logger = logging.getLogger(APP_NAME)

TimeResolver = Callable[[str, str], datetime]
"""Callable[[branch, sha], datetime]: Looks up when a commit was made."""

UrlBuilder = Callable[[str], str]
"""Callable[[branch], str]: Builds the view page URL of a branch."""


@dataclass(frozen=True)
class ChangeRecord:
    """A branch whose head differs between two snapshots.

    Attributes:
        branch (str): The branch name.
        old_commit (str | None): Previous head, None for a new branch.
        new_commit (str): Current head.
        committed_at (datetime): Commit time of `new_commit`, or the epoch
                                 sentinel when it could not be resolved.
        is_new (bool): True if the branch was absent from the previous snapshot.
        url (str): Link to the branch's view page.
    """

    branch: str
    old_commit: str | None
    new_commit: str
    committed_at: datetime
    is_new: bool
    url: str = ""

    @property
    def short_old(self) -> str:
        return self.old_commit[:SHORT_SHA_LENGTH] if self.old_commit else "none"

    @property
    def short_new(self) -> str:
        return self.new_commit[:SHORT_SHA_LENGTH]

    @property
    def time_known(self) -> bool:
        return self.committed_at != EPOCH_SENTINEL


def _resolve(resolve_time: TimeResolver | None, branch: str, sha: str) -> datetime:
    if resolve_time is None:
        return EPOCH_SENTINEL
    try:
        moment = resolve_time(branch, sha)
    except Exception as e:
        logger.warning(f"Could not resolve commit time for branch {branch}: {e}")
        return EPOCH_SENTINEL
    # Naive times are taken as UTC so they sort against the sentinel.
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def diff_snapshots(
    previous: Mapping[str, str],
    current: Mapping[str, str],
    resolve_time: TimeResolver | None = None,
    url_for: UrlBuilder | None = None,
) -> list[ChangeRecord]:
    """Lists the branches of `current` whose head moved since `previous`.

    Branches only present in `previous` are not reported. Neither mapping is
    modified. Each changed branch costs one `resolve_time` call; a failing
    lookup only affects that branch, which gets the epoch sentinel.

    Args:
        previous (Mapping[str, str]): Last recorded snapshot, empty if none.
        current (Mapping[str, str]): Freshly captured snapshot.
        resolve_time (TimeResolver | None): Commit time lookup.
        url_for (UrlBuilder | None): Branch view URL builder.

    Returns:
        list[ChangeRecord]: Changes ordered oldest commit first.
    """
    changes = []
    for branch, new_commit in current.items():
        old_commit = previous.get(branch)
        if old_commit == new_commit:
            continue
        changes.append(
            ChangeRecord(
                branch=branch,
                old_commit=old_commit,
                new_commit=new_commit,
                committed_at=_resolve(resolve_time, branch, new_commit),
                is_new=branch not in previous,
                url=url_for(branch) if url_for else "",
            )
        )

    changes.sort(key=lambda c: c.committed_at)
    return changes


def format_time(moment: datetime, tz: tzinfo) -> str:
    """Formats a commit time in the report's zone (e.g. '2025-01-31 18:05')."""
    return moment.astimezone(tz).strftime("%Y-%m-%d %H:%M")


def render_report(changes: list[ChangeRecord], repo_name: str, tz: tzinfo) -> str:
    """Builds the HTML notification announcing a sync.

    Args:
        changes (list[ChangeRecord]): Ordered output of `diff_snapshots`.
        repo_name (str): Repository name shown in the header.
        tz (tzinfo): Zone used for commit times.

    Returns:
        str: A message using the chat API's HTML subset.
    """
    message = f"✅ <b>{html.escape(repo_name)} repository updated</b>\n\n"

    if not changes:
        message += (
            "Changes were detected, but the updated branches "
            "could not be determined.\n\n"
        )
        return message

    message += "<b>Updated branches (oldest first):</b>\n"
    for change in changes:
        name = html.escape(change.branch)
        if change.is_new:
            message += f"🆕 <b>{name}</b> (new branch)\n"
        else:
            message += f"🔁 <b>{name}</b>\n"
            message += f"   {change.short_old} → {change.short_new}\n"

        when = format_time(change.committed_at, tz) if change.time_known else "unknown"
        message += f"   🕐 {when}\n"
        if change.url:
            message += (
                f'   🔗 <a href="{html.escape(change.url)}">View branch</a>\n'
            )
        message += "\n"

    return message


def render_failure(error: BaseException | str) -> str:
    """Builds the notification sent when a run aborts."""
    return f"❌ Sync failed: {html.escape(str(error))}"
