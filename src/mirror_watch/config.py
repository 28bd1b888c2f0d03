import logging
import os
import re
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    CONFIG_FILE,
    DEFAULT_HOST,
    DEFAULT_MIRROR_DIR,
    DEFAULT_OWNER,
    DEFAULT_REPO,
    DEFAULT_STATE_FILE,
    DEFAULT_TIMEZONE,
    ENV_BOT_TOKEN,
    ENV_CHAT_ID,
    ENV_REPO_TOKEN,
    GITHUB_API,
)

logger = logging.getLogger(APP_NAME)


_SIZE_UNITS = {"k": 1024, "m": 1024**2, "g": 1024**3}
"""Binary multipliers, keyed by the first letter of the unit ('kb', 'MB'...)."""

_TIME_UNITS = {"s": 1, "sec": 1, "m": 60, "min": 60, "h": 3600, "hr": 3600}

_QUANTITY = re.compile(r"^(\d+(?:\.\d+)?)\s*([a-z]+)$")


def _parse_quantity(
    value: int | str, kind: str, unit_of: Callable[[str], int | None]
) -> int:
    """Splits '<number><unit>' and scales the number by the unit's multiplier.

    Args:
        value (int | str): Plain integers are returned unchanged.
        kind (str): Used in the error message ("size", "time").
        unit_of (Callable): Maps a unit suffix to its multiplier, None if
                            unknown.

    Raises:
        ValueError: If the number or the unit cannot be read.
    """
    if isinstance(value, int):
        return value
    match = _QUANTITY.match(str(value).strip().lower())
    multiplier = unit_of(match.group(2)) if match else None
    if multiplier is None:
        raise ValueError(f"Invalid {kind} format '{value}'")
    return int(float(match.group(1)) * multiplier)


def _size_unit(suffix: str) -> int | None:
    if suffix in ("b", "bytes"):
        return 1
    if len(suffix) <= 2 and suffix.rstrip("b") in _SIZE_UNITS:
        return _SIZE_UNITS[suffix[0]]
    return None


def _time_unit(suffix: str) -> int | None:
    if suffix not in _TIME_UNITS and suffix.endswith("s"):
        suffix = suffix[:-1]
    return _TIME_UNITS.get(suffix)


def parse_size(value: int | str) -> int:
    """Converts sizes such as '5mb', '512 KB' or '1.5g' to bytes."""
    return _parse_quantity(value, "size", _size_unit)


def parse_time(value: int | str) -> int:
    """Converts durations such as '30s', '2min' or '1.5 hrs' to seconds."""
    return _parse_quantity(value, "time", _time_unit)


@dataclass
class SourceConfig:
    """The watched repository.

    Attributes:
        owner (str): Account owning the repository.
        name (str): Repository name.
        host (str): Host serving the repository over HTTPS.
        api_url (str | None): Base URL of the metadata API. Derived from
                              `host` when unset.
    """

    owner: str = DEFAULT_OWNER
    name: str = DEFAULT_REPO
    host: str = DEFAULT_HOST
    api_url: str | None = None

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def api_base(self) -> str:
        """The metadata API for `host` (GitHub Enterprise layout off github.com)."""
        if self.api_url:
            return self.api_url.rstrip("/")
        if self.host == DEFAULT_HOST:
            return GITHUB_API
        return f"https://{self.host}/api/v3"

    def remote_url(self, token: str | None = None) -> str:
        """Builds the clone URL, embedding an access token when one is given.

        Args:
            token (str | None): Repository access token. Without it the
                                public, unauthenticated URL is returned.

        Returns:
            str: The HTTPS clone URL.
        """
        if token:
            return f"https://x-access-token:{token}@{self.host}/{self.slug}.git"
        return f"https://{self.host}/{self.slug}.git"


@dataclass
class PathsConfig:
    """Filesystem locations.

    Attributes:
        mirror_dir (Path): Destination of the bare mirror clone.
        state_file (Path): File holding the previous reference listing.
        log_file (Path | None): Optional rotating log file.
    """

    mirror_dir: Path = DEFAULT_MIRROR_DIR
    state_file: Path = DEFAULT_STATE_FILE
    log_file: Path | None = None


@dataclass
class ReportConfig:
    """Report rendering settings.

    Attributes:
        timezone (str): IANA zone name used to localize commit times.
    """

    timezone: str = DEFAULT_TIMEZONE


@dataclass
class LimitsConfig:
    """Timeouts and resource limits.

    Attributes:
        list_timeout (int): Seconds allowed for listing remote references.
        clone_timeout (int): Seconds allowed for the mirror clone.
        http_timeout (int): Seconds allowed for each HTTP request.
        max_log_size (int): Max bytes for the log file before rotation.
    """

    list_timeout: int = 30
    clone_timeout: int = 120
    http_timeout: int = 10
    max_log_size: int = 5 * 1024 * 1024


@dataclass(frozen=True)
class Credentials:
    """Secrets read from the process environment.

    Each value is optional. Without both notification values delivery is
    disabled; without a repository token the remote is accessed anonymously.
    """

    notify_token: str | None = None
    notify_recipient: str | None = None
    repo_access_token: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Credentials":
        env = os.environ if environ is None else environ
        return cls(
            notify_token=env.get(ENV_BOT_TOKEN) or None,
            notify_recipient=env.get(ENV_CHAT_ID) or None,
            repo_access_token=env.get(ENV_REPO_TOKEN) or None,
        )

    @property
    def can_notify(self) -> bool:
        return bool(self.notify_token and self.notify_recipient)


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        source (SourceConfig): The watched repository.
        paths (PathsConfig): Filesystem locations.
        report (ReportConfig): Report rendering settings.
        limits (LimitsConfig): Timeouts and limits.
    """

    source: SourceConfig = field(default_factory=SourceConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    report: ReportConfig = field(default_factory=ReportConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Loads configuration from defaults and an optional TOML file.

        Args:
            path (Path | None): Explicit config file. Defaults to
                                `mirror-watch.toml` in the working directory.

        Returns:
            Config: The merged configuration object.
        """
        instance = cls()
        target = path or CONFIG_FILE
        if target.exists():
            instance._merge_from_file(target)
        elif path is not None:
            logger.warning(f"Config file {path} not found. Using defaults.")
        return instance

    def _merge_from_file(self, path: Path) -> None:
        """Parses a TOML file and merges it into the current instance."""
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            if "source" in data:
                self.source = self._update_dataclass(
                    "source", self.source, data["source"]
                )
            if "paths" in data:
                self.paths = self._update_dataclass("paths", self.paths, data["paths"])
            if "report" in data:
                self.report = self._update_dataclass(
                    "report", self.report, data["report"]
                )
            if "limits" in data:
                self.limits = self._update_dataclass(
                    "limits", self.limits, data["limits"]
                )

        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
        except Exception as e:
            logger.warning(f"Failed to load config from {path}: {e}")

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: {', '.join(sorted(invalid_keys))}. Ignoring."
            )

        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                if k == "max_log_size":
                    filtered_updates[k] = parse_size(v)
                elif k.endswith("_timeout"):
                    filtered_updates[k] = parse_time(v)
                elif k in ["mirror_dir", "state_file", "log_file"]:
                    filtered_updates[k] = Path(v)
                else:
                    filtered_updates[k] = v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)
