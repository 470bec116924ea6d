"""GitHub API and repository reference helpers."""

from __future__ import annotations

import re

DEFAULT_API_URL = "https://api.github.com"

_PR_REF_RE = re.compile(r"^refs/pull/(\d+)/")


def gh_headers(token: str = "") -> dict[str, str]:
    """Return standard GitHub API request headers.

    Parameters
    ----------
    token : str
        A GitHub token.  When empty the ``Authorization`` header is
        omitted (anonymous requests).
    """
    h: dict[str, str] = {
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
    }
    if token:
        h["Authorization"] = f"token {token}"
    return h


def normalize_repo_url(url: str) -> str:
    """Normalise a repository reference to a canonical HTTPS URL.

    Accepts ``owner/repo`` shorthand, full HTTPS URLs, and URLs with a
    trailing ``.git`` suffix.  Returns a URL without trailing slashes or
    ``.git``.
    """
    url = url.strip().rstrip("/")
    if url.endswith(".git"):
        url = url[:-4]
    if not url.startswith("http://") and not url.startswith("https://"):
        if re.match(r"^[\w.-]+/[\w.-]+$", url):
            url = f"https://github.com/{url}"
    return url


def parse_repo_url(url: str) -> tuple[str, str]:
    """Extract ``(owner, repo)`` from a GitHub URL or ``owner/repo`` shorthand."""
    url = normalize_repo_url(url)
    m = re.match(r"https://github\.com/([\w.-]+)/([\w.-]+)$", url)
    if not m:
        raise ValueError(f"Cannot parse repo URL: {url}")
    return m.group(1), m.group(2)


def pr_number_from_ref(ref: str) -> int | None:
    """Return the pull request number encoded in a ``refs/pull/<n>/...`` ref."""
    m = _PR_REF_RE.match(ref or "")
    if not m:
        return None
    return int(m.group(1))
