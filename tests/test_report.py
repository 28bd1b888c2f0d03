"""Tests for the snapshot diff and the notification report."""

import logging
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from mirror_watch.constants import EPOCH_SENTINEL
from mirror_watch.report import (
    ChangeRecord,
    diff_snapshots,
    render_failure,
    render_report,
)

SHANGHAI = ZoneInfo("Asia/Shanghai")


def _fixed_times(mapping: dict[str, datetime]):
    """Builds a resolver returning a preset commit time per branch."""

    def resolve(branch: str, sha: str) -> datetime:
        return mapping[branch]

    return resolve


def test_diff_updated_and_new_branches() -> None:
    """Verifies that a moved head and a new branch are both reported."""
    previous = {"main": "aaa1111"}
    current = {"main": "bbb2222", "dev": "ccc3333"}

    changes = diff_snapshots(previous, current)

    by_branch = {c.branch: c for c in changes}
    assert len(changes) == 2

    main = by_branch["main"]
    assert main.is_new is False
    assert main.old_commit == "aaa1111"
    assert main.new_commit == "bbb2222"

    dev = by_branch["dev"]
    assert dev.is_new is True
    assert dev.old_commit is None
    assert dev.new_commit == "ccc3333"


def test_diff_against_empty_previous_marks_everything_new() -> None:
    """Verifies that a first run reports every branch as new."""
    changes = diff_snapshots({}, {"main": "aaa1111"})

    assert len(changes) == 1
    assert changes[0].branch == "main"
    assert changes[0].is_new is True
    assert changes[0].old_commit is None


def test_diff_identical_snapshots_is_empty() -> None:
    """Verifies that unchanged heads produce no records."""
    snapshot = {"main": "aaa1111", "dev": "ccc3333"}
    assert diff_snapshots(snapshot, dict(snapshot)) == []


def test_diff_ignores_deleted_branches() -> None:
    """Verifies that branches missing from the current snapshot are not reported."""
    previous = {"main": "aaa1111", "old-feature": "ddd4444"}
    current = {"main": "aaa1111"}

    assert diff_snapshots(previous, current) == []


def test_diff_does_not_mutate_inputs() -> None:
    """Verifies that both snapshots are left untouched."""
    previous = {"main": "aaa1111"}
    current = {"main": "bbb2222", "dev": "ccc3333"}

    diff_snapshots(previous, current)

    assert previous == {"main": "aaa1111"}
    assert current == {"main": "bbb2222", "dev": "ccc3333"}


def test_diff_orders_by_commit_time() -> None:
    """Verifies that the oldest commit comes first and the newest last."""
    times = {
        "a": datetime(2025, 3, 1, tzinfo=timezone.utc),
        "b": datetime(2025, 1, 1, tzinfo=timezone.utc),
        "c": datetime(2025, 2, 1, tzinfo=timezone.utc),
    }
    current = {"a": "1" * 40, "b": "2" * 40, "c": "3" * 40}

    changes = diff_snapshots({}, current, resolve_time=_fixed_times(times))

    assert [c.branch for c in changes] == ["b", "c", "a"]


def test_diff_lookup_failure_uses_sentinel(caplog: pytest.LogCaptureFixture) -> None:
    """Verifies that one failing time lookup does not affect the other branch.

    Args:
        caplog (pytest.LogCaptureFixture): Pytest fixture for capturing logs.
    """
    caplog.set_level(logging.WARNING)
    good_time = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def resolve(branch: str, sha: str) -> datetime:
        if branch == "broken":
            raise RuntimeError("API rate limited")
        return good_time

    changes = diff_snapshots(
        {"main": "aaa1111"},
        {"main": "bbb2222", "broken": "eee5555"},
        resolve_time=resolve,
    )

    by_branch = {c.branch: c for c in changes}
    assert set(by_branch) == {"main", "broken"}
    assert by_branch["broken"].committed_at == EPOCH_SENTINEL
    assert by_branch["main"].committed_at == good_time
    # The sentinel sorts first.
    assert changes[0].branch == "broken"
    assert "Could not resolve commit time for branch broken" in caplog.text


def test_diff_naive_times_sort_with_sentinel() -> None:
    """Verifies that a naive resolver result is read as UTC and still sortable."""

    def resolve(branch: str, sha: str) -> datetime:
        if branch == "broken":
            raise RuntimeError("API rate limited")
        return datetime(2025, 1, 1, 8, 0)

    changes = diff_snapshots(
        {}, {"main": "aaa1111", "broken": "eee5555"}, resolve_time=resolve
    )

    assert [c.branch for c in changes] == ["broken", "main"]
    assert changes[1].committed_at == datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc)


def test_diff_builds_branch_urls() -> None:
    """Verifies that the URL builder is applied per branch."""
    changes = diff_snapshots(
        {}, {"main": "aaa1111"}, url_for=lambda b: f"https://example.com/tree/{b}"
    )
    assert changes[0].url == "https://example.com/tree/main"


def test_render_report_lists_branches() -> None:
    """Verifies the layout of updated and new branch blocks."""
    changes = [
        ChangeRecord(
            branch="main",
            old_commit="aaa1111" + "0" * 33,
            new_commit="bbb2222" + "0" * 33,
            committed_at=datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc),
            is_new=False,
            url="https://github.com/cmliu/edgetunnel/tree/main",
        ),
        ChangeRecord(
            branch="dev",
            old_commit=None,
            new_commit="ccc3333" + "0" * 33,
            committed_at=datetime(2025, 1, 2, 12, 30, tzinfo=timezone.utc),
            is_new=True,
            url="https://github.com/cmliu/edgetunnel/tree/dev",
        ),
    ]

    message = render_report(changes, "edgetunnel", SHANGHAI)

    assert message.startswith("✅ <b>edgetunnel repository updated</b>\n\n")
    assert "🔁 <b>main</b>\n   aaa1111 → bbb2222\n" in message
    assert "   🕐 2025-01-01 08:00\n" in message
    assert "🆕 <b>dev</b> (new branch)\n" in message
    assert "   🕐 2025-01-02 20:30\n" in message
    assert '<a href="https://github.com/cmliu/edgetunnel/tree/dev">' in message
    assert message.index("main") < message.index("dev")


def test_render_report_empty_changes() -> None:
    """Verifies the generic notice when no branch difference was isolated."""
    message = render_report([], "edgetunnel", SHANGHAI)

    assert "could not be determined" in message
    assert "🔁" not in message


def test_render_report_unknown_time_and_escaping() -> None:
    """Verifies that sentinel times and HTML-unsafe branch names render safely."""
    change = ChangeRecord(
        branch="fix/<script>",
        old_commit=None,
        new_commit="f" * 40,
        committed_at=EPOCH_SENTINEL,
        is_new=True,
    )

    message = render_report([change], "edgetunnel", SHANGHAI)

    assert "fix/&lt;script&gt;" in message
    assert "🕐 unknown" in message
    assert "View branch" not in message


def test_render_failure_escapes_error() -> None:
    """Verifies the failure notice."""
    assert render_failure(RuntimeError("a < b")) == "❌ Sync failed: a &lt; b"


def test_change_record_short_ids() -> None:
    """Verifies the abbreviated commit ids."""
    record = ChangeRecord("main", None, "abcdef0123456789", EPOCH_SENTINEL, True)
    assert record.short_new == "abcdef0"
    assert record.short_old == "none"
    assert record.time_known is False
