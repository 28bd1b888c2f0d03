import logging
from datetime import datetime, timezone
from urllib.parse import quote

import requests

from .constants import APP_NAME, DEFAULT_HOST, GITHUB_API

logger = logging.getLogger(APP_NAME)


def parse_timestamp(value: str) -> datetime:
    """Parses an API timestamp such as '2025-01-31T10:05:00Z' into an aware datetime."""
    moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


class GitHubClient:
    """Read-only access to repository and commit metadata.

    Attributes:
        owner (str): Repository owner.
        repo (str): Repository name.
        timeout (int): Seconds allowed per request.
        api_url (str): Base URL of the REST API. Must belong to `host`, since
                       the token is sent to it.
        headers (dict[str, str]): Sent with every request. The session's own
                                  headers are left alone.
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        token: str | None = None,
        timeout: int = 10,
        session: requests.Session | None = None,
        host: str = DEFAULT_HOST,
        api_url: str = GITHUB_API,
    ):
        self.owner = owner
        self.repo = repo
        self.host = host
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {"Accept": "application/vnd.github.v3+json"}
        if token:
            self.headers["Authorization"] = f"token {token}"

    def _get(self, path: str) -> dict:
        resp = self.session.get(
            f"{self.api_url}{path}", headers=self.headers, timeout=self.timeout
        )
        resp.raise_for_status()
        return resp.json()

    def branch_url(self, branch: str) -> str:
        """Returns the web page showing `branch`."""
        return (
            f"https://{self.host}/{self.owner}/{self.repo}/tree/"
            f"{quote(branch, safe='/')}"
        )

    def commit_time(self, branch: str, sha: str) -> datetime:
        """Looks up the committer date of a commit.

        Args:
            branch (str): Branch the commit heads (used for log context only).
            sha (str): The commit id.

        Returns:
            datetime: The commit time (timezone-aware).

        Raises:
            requests.RequestException: On network or HTTP errors.
            KeyError: If the response lacks the committer date.
        """
        data = self._get(f"/repos/{self.owner}/{self.repo}/commits/{sha}")
        moment = parse_timestamp(data["commit"]["committer"]["date"])
        logger.debug(f"Branch {branch} head {sha[:7]} committed at {moment}")
        return moment

    def pushed_at(self) -> datetime:
        """Returns when the repository last received a push.

        Falls back to the current time when the lookup fails.
        """
        try:
            data = self._get(f"/repos/{self.owner}/{self.repo}")
            return parse_timestamp(data["pushed_at"])
        except (requests.RequestException, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Could not fetch repository update time: {e}")
            return datetime.now(timezone.utc)
