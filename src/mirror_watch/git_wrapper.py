import logging
import re
import shutil
import subprocess
from pathlib import Path

from .constants import APP_NAME, BRANCH_PREFIX

logger = logging.getLogger(APP_NAME)

_CREDENTIALS = re.compile(r"(https?://)[^/@\s]+@")


class TransferError(RuntimeError):
    """Raised when a git transfer (listing or cloning) fails."""


def mask_url(text: str) -> str:
    """Hides any userinfo embedded in URLs inside `text`.

    Args:
        text (str): A URL, command line or error message.

    Returns:
        str: The text with `user:token@` replaced by `***@`.
    """
    return _CREDENTIALS.sub(r"\1***@", text)


class GitRemote:
    """A wrapper around the Git command-line interface for a remote repository.

    Unlike a working-copy wrapper this never needs a local checkout: it lists
    references over the network and produces bare mirror clones.

    Attributes:
        url (str): The remote locator, possibly carrying an access token.
        timeout (int): Default timeout in seconds for network commands.
    """

    def __init__(self, url: str, timeout: int = 30):
        self.url = url
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"GitRemote({mask_url(self.url)!r})"

    def _run(
        self,
        args: list[str],
        capture: bool = True,
        timeout: int | None = None,
        cwd: Path | None = None,
    ) -> str:
        """Executes a Git command.

        Args:
            args (list[str]): Arguments passed to the git command.
            capture (bool, optional): Whether to capture and return stdout.
                                      Defaults to True.
            timeout (int | None, optional): Seconds before the command is
                                            killed. Defaults to `self.timeout`.
            cwd (Path | None, optional): Working directory for the command.

        Returns:
            str: The stripped stdout if capture is True, otherwise "".

        Raises:
            TransferError: If git exits non-zero, times out, or is missing.
        """
        try:
            res = subprocess.run(
                ["git", *args],
                cwd=cwd,
                capture_output=capture,
                text=True,
                check=True,
                timeout=timeout or self.timeout,
            )
            return res.stdout.strip() if capture else ""
        except subprocess.CalledProcessError as e:
            raise TransferError(f"Git error: {mask_url(str(e.stderr or e))}") from e
        except subprocess.TimeoutExpired as e:
            raise TransferError(
                f"Git timed out after {e.timeout}s: {mask_url(' '.join(args))}"
            ) from e
        except FileNotFoundError as e:
            raise TransferError("Git executable not found") from e

    def ls_remote(self, pattern: str = f"{BRANCH_PREFIX}*") -> str:
        """Lists the references advertised by the remote.

        Args:
            pattern (str): Reference glob to request (default: every branch).

        Returns:
            str: The raw `<sha>\\t<ref>` listing, one reference per line.
        """
        logger.info(f"Listing references of {mask_url(self.url)}...")
        return self._run(["ls-remote", self.url, pattern])

    def clone_mirror(self, dest: Path, timeout: int | None = None) -> None:
        """Replaces `dest` with a fresh bare mirror of the remote.

        Args:
            dest (Path): Target directory. Removed first if it exists.
            timeout (int | None, optional): Seconds allowed for the clone.

        Raises:
            TransferError: If the clone fails.
        """
        if dest.exists():
            logger.info(f"Removing existing mirror at {dest}...")
            shutil.rmtree(dest)

        logger.info(f"Cloning mirror into {dest}...")
        self._run(
            ["clone", "--mirror", self.url, str(dest)],
            capture=True,
            timeout=timeout,
        )
        logger.info(f"Mirror of {mask_url(self.url)} refreshed.")
