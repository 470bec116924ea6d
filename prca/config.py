"""Configuration for the PR code analysis tool.

Every environment variable the tool consumes is declared here as a field
on :class:`PrcaConfig`.  Values can additionally come from a ``.prca.yml``
file in the repository; file values override the environment, and CLI
flags override both.

Usage
-----
::

    from prca.config import PrcaConfig

    cfg = PrcaConfig.from_env().merge_file(".prca.yml")
    cfg.validate(["github_token", "repository", "pr_number"])

Supported config file keys
--------------------------
message_limit : int
    Maximum number of findings posted to the pull request.
report_format : str
    ``sonarqube`` or ``sarif``.
new_issues_only : bool
    Only post SonarQube issues flagged as new.
dry_run : bool
    Read from GitHub but do not delete or create comments.
"""

from __future__ import annotations

import dataclasses
import math
import os
from dataclasses import dataclass

import yaml

from prca.github_utils import DEFAULT_API_URL, pr_number_from_ref
from prca.logging_config import setup_logging

logger = setup_logging(__name__)

DEFAULT_MESSAGE_LIMIT = 100

REPORT_FORMATS = ("sonarqube", "sarif")

ENV_NAMES = {
    "github_token": "GITHUB_TOKEN",
    "repository": "GITHUB_REPOSITORY",
    "pr_number": "PR_NUMBER",
    "api_url": "GITHUB_API_URL",
    "report_path": "PRCA_REPORT_PATH",
    "report_format": "PRCA_REPORT_FORMAT",
    "message_limit": "PRCA_MESSAGE_LIMIT",
    "new_issues_only": "PRCA_NEW_ISSUES_ONLY",
    "dry_run": "DRY_RUN",
    "base_dir": "GITHUB_WORKSPACE",
    "log_level": "LOG_LEVEL",
}


def parse_message_limit(raw: object, default: int = DEFAULT_MESSAGE_LIMIT) -> int:
    """Resolve a message limit, falling back to *default*.

    ``None``, booleans, NaN, infinities and anything that does not read as a
    number yield *default*.  Finite numbers are truncated towards zero and
    negative values clamp to 0.
    """
    if raw is None or isinstance(raw, bool):
        return default
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return default
    try:
        value = float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if not math.isfinite(value):
        return default
    return max(0, int(value))


def _parse_bool(raw: object, default: bool) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str) and raw.strip().lower() in ("true", "1", "yes", "false", "0", "no"):
        return raw.strip().lower() in ("true", "1", "yes")
    return default


def _parse_pr_number(raw: str, ref: str) -> int | None:
    if raw.strip().isdigit():
        return int(raw)
    return pr_number_from_ref(ref)


@dataclass(frozen=True)
class PrcaConfig:
    """Immutable snapshot of the tool's settings."""

    # -- GitHub ----------------------------------------------------------------
    github_token: str = ""
    repository: str = ""
    pr_number: int | None = None
    api_url: str = DEFAULT_API_URL

    # -- Report ----------------------------------------------------------------
    report_path: str | None = None
    report_format: str = "sonarqube"
    new_issues_only: bool = True

    # -- Posting ---------------------------------------------------------------
    message_limit: int = DEFAULT_MESSAGE_LIMIT
    dry_run: bool = False

    base_dir: str | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> PrcaConfig:
        """Build a config from the current environment variables."""
        return cls(
            github_token=os.environ.get("GITHUB_TOKEN", ""),
            repository=os.environ.get("GITHUB_REPOSITORY", ""),
            pr_number=_parse_pr_number(
                os.environ.get("PR_NUMBER", ""), os.environ.get("GITHUB_REF", ""),
            ),
            api_url=os.environ.get("GITHUB_API_URL", DEFAULT_API_URL) or DEFAULT_API_URL,
            report_path=os.environ.get("PRCA_REPORT_PATH") or None,
            report_format=os.environ.get("PRCA_REPORT_FORMAT", "sonarqube").lower(),
            message_limit=parse_message_limit(os.environ.get("PRCA_MESSAGE_LIMIT")),
            new_issues_only=_parse_bool(os.environ.get("PRCA_NEW_ISSUES_ONLY"), True),
            dry_run=_parse_bool(os.environ.get("DRY_RUN"), False),
            base_dir=os.environ.get("GITHUB_WORKSPACE") or None,
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
        )

    def merge_file(self, path: str) -> PrcaConfig:
        """Return a copy with the valid settings of the YAML file at *path* applied.

        A missing file leaves the config unchanged.  Invalid values are
        logged and ignored.
        """
        if not os.path.isfile(path):
            logger.debug("No config file at %s", path)
            return self

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            logger.warning("%s did not parse as a mapping; ignoring", path)
            return self

        overrides: dict = {}

        if "message_limit" in data:
            limit = parse_message_limit(data["message_limit"], default=-1)
            if limit < 0:
                logger.warning("invalid message_limit '%s' in %s; ignoring", data["message_limit"], path)
            else:
                overrides["message_limit"] = limit

        fmt = data.get("report_format")
        if fmt is not None:
            if str(fmt).lower() in REPORT_FORMATS:
                overrides["report_format"] = str(fmt).lower()
            else:
                logger.warning("invalid report_format '%s' in %s; ignoring", fmt, path)

        for key in ("new_issues_only", "dry_run"):
            if key in data:
                if isinstance(data[key], bool):
                    overrides[key] = data[key]
                else:
                    logger.warning("%s must be true or false in %s; ignoring", key, path)

        return dataclasses.replace(self, **overrides)

    def validate(self, required: list[str]) -> None:
        """Check that the named fields are set.

        Raises
        ------
        ValueError
            Listing every missing variable so the user can fix them all in
            one go rather than discovering them one by one.
        """
        missing = [name for name in required if not getattr(self, name, None)]
        if missing:
            env_names = [ENV_NAMES.get(name, name.upper()) for name in missing]
            raise ValueError(
                f"Missing required configuration: {', '.join(env_names)}. "
                "Set these environment variables or pass the matching CLI flags."
            )
        if self.report_format not in REPORT_FORMATS:
            raise ValueError(
                f"Unsupported report format '{self.report_format}'; "
                f"expected one of {', '.join(REPORT_FORMATS)}"
            )
