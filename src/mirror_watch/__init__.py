"""Mirror Watch: scheduled mirroring of a remote repository's branches.

This package provides the command-line interface, the single-run sync
orchestrator, and the snapshot diff and report logic used to announce branch
updates to a chat channel.
"""

from . import (
    cli,
    config,
    constants,
    git_wrapper,
    github,
    notify,
    report,
    snapshot,
    sync,
)

__all__ = [
    "cli",
    "config",
    "constants",
    "git_wrapper",
    "github",
    "notify",
    "report",
    "snapshot",
    "sync",
]
