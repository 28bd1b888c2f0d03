"""Branch snapshots and the state file that carries them between runs."""

import contextlib
import logging
import os
from pathlib import Path

from .constants import APP_NAME, BRANCH_PREFIX
from .git_wrapper import GitRemote

logger = logging.getLogger(APP_NAME)

BranchSnapshot = dict[str, str]


def parse_snapshot(text: str) -> BranchSnapshot:
    """Decodes a raw `git ls-remote` listing into a branch -> commit mapping.

    Args:
        text (str): Lines of `<sha>\\t<ref>`. Blank lines are ignored.

    Returns:
        BranchSnapshot: Branch names (without `refs/heads/`) to commit ids,
                        in listing order.
    """
    snapshot: BranchSnapshot = {}
    for line in text.splitlines():
        if not line.strip():
            continue
        parts = line.split()
        if len(parts) < 2:
            logger.debug(f"Skipping malformed ref line: {line!r}")
            continue
        sha, ref = parts[0], parts[1]
        snapshot[ref.removeprefix(BRANCH_PREFIX)] = sha
    return snapshot


def fetch_snapshot(remote: GitRemote) -> tuple[str, BranchSnapshot]:
    """Captures the current branch heads of a remote.

    Failures propagate to the caller; nothing is retried.

    Args:
        remote (GitRemote): The remote to list.

    Returns:
        tuple[str, BranchSnapshot]: The raw listing (persisted verbatim) and
                                    its decoded mapping.
    """
    raw = remote.ls_remote()
    return raw, parse_snapshot(raw)


class StateStore:
    """The single persisted slot holding the previous raw listing."""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> str:
        """Returns the stored listing, or "" when nothing was recorded yet."""
        if not self.path.exists():
            return ""
        return self.path.read_text(encoding="utf-8").strip()

    def save(self, text: str) -> None:
        """Replaces the stored listing atomically.

        Args:
            text (str): The raw listing to persist.

        Raises:
            OSError: If the file cannot be written.
        """
        tmp_file = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            with open(tmp_file, "w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_file, self.path)
        except OSError:
            if tmp_file.exists():
                with contextlib.suppress(OSError):
                    tmp_file.unlink()
            raise
        logger.info(f"Snapshot saved to {self.path}.")
