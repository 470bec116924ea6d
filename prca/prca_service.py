"""Pull request comment service backed by the GitHub REST API.

The orchestrator only sees the :class:`PrcaService` protocol: list the
changed files, delete the previously posted analysis comments, create new
ones.  :class:`GitHubPrcaService` implements it with review comments on a
pull request.  Comments it owns are recognised by :data:`ANALYSIS_MARKER`,
an invisible HTML comment at the top of every body it posts.

GitHub only accepts line comments on lines that appear in the diff.  A
finding on any other line of a changed file is posted as a file-level
comment that names the line in its body.

Blocking ``requests`` calls run in a worker thread so each operation can be
awaited.  Every non-2xx response raises :class:`requests.HTTPError`.
"""

from __future__ import annotations

import asyncio
import html
import re
from typing import Any, Protocol, Sequence

import requests

from prca.finding import Finding
from prca.github_utils import DEFAULT_API_URL, gh_headers, parse_repo_url
from prca.logging_config import setup_logging
from prca.paths import find_matching_path
from prca.retry_utils import request_with_retry

logger = setup_logging(__name__)

ANALYSIS_MARKER = "<!-- prca:code-analysis -->"
PER_PAGE = 100

_HUNK_RE = re.compile(r"^@@ -\d+(?:,\d+)? \+(\d+)(?:,\d+)? @@")


class PrcaService(Protocol):
    async def get_changed_files(self) -> list[str]:
        ...

    async def delete_existing_analysis_threads(self) -> None:
        ...

    async def create_threads(self, findings: Sequence[Finding]) -> None:
        ...


def commentable_lines(patch: str | None) -> set[int]:
    """New-side line numbers present in a file's unified diff *patch*.

    Added and context lines can carry a review comment; removed lines
    do not exist on the right-hand side.
    """
    lines: set[int] = set()
    current = 0
    in_hunk = False
    for text in (patch or "").split("\n"):
        m = _HUNK_RE.match(text)
        if m:
            current = int(m.group(1)) - 1
            in_hunk = True
        elif not in_hunk or text.startswith("-") or text.startswith("\\"):
            continue
        elif text.startswith("+") or text.startswith(" "):
            current += 1
            lines.add(current)
    return lines


def format_comment_body(finding: Finding, outside_diff: bool = False) -> str:
    """Render the markdown body of the review comment for *finding*.

    With *outside_diff* the line number is written into the body, since
    the comment is attached to the file rather than the line.
    """
    severity = finding.severity.upper() if finding.severity else "ISSUE"
    location = f" (line {finding.line})" if outside_diff and finding.line else ""
    lines = [ANALYSIS_MARKER, f"**{severity}**{location}: {html.escape(finding.message)}"]
    details = []
    if finding.rule:
        details.append(f"Rule: `{finding.rule}`")
    if finding.tool:
        details.append(f"Reported by {html.escape(finding.tool)}")
    if details:
        lines.append("")
        lines.append(" | ".join(details))
    return "\n".join(lines)


def is_analysis_comment(comment: dict[str, Any]) -> bool:
    return ANALYSIS_MARKER in (comment.get("body") or "")


class GitHubPrcaService:
    """Post findings as review comments on a GitHub pull request.

    Parameters
    ----------
    repository : str
        ``owner/repo`` or a GitHub URL.
    pr_number : int
        Pull request number.
    token : str
        Token with ``pull_requests: write`` permission.
    api_url : str
        REST API root, for GitHub Enterprise Server.
    dry_run : bool
        Read from GitHub but only log the deletes and creates.
    base_dir : str | None
        Directory relative report paths are resolved against when mapping a
        finding back to a changed file.
    """

    def __init__(
        self,
        repository: str,
        pr_number: int,
        token: str,
        api_url: str = DEFAULT_API_URL,
        dry_run: bool = False,
        timeout: int = 30,
        base_dir: str | None = None,
    ):
        self.owner, self.repo = parse_repo_url(repository)
        self.pr_number = pr_number
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.dry_run = dry_run
        self.timeout = timeout
        self.base_dir = base_dir
        self._changed_files: list[str] = []
        self._changed_files: list[str] = []
        self._diff_lines: dict[str, set[int]] = {}

    @property
    def _pulls_url(self) -> str:
        return f"{self.api_url}/repos/{self.owner}/{self.repo}/pulls"

    def _request(
        self,
        method: str,
        url: str,
        ok_statuses: tuple[int, ...] = (),
        **kwargs: Any,
    ) -> requests.Response:
        # POST is not idempotent: one attempt only
        if method == "POST":
            kwargs.setdefault("max_retries", 1)
        resp = request_with_retry(
            method, url, headers=gh_headers(self.token), timeout=self.timeout, **kwargs,
        )
        if resp.status_code not in ok_statuses:
            resp.raise_for_status()
        return resp

    def _paginate(self, url: str) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        page = 1
        while True:
            resp = self._request("GET", url, params={"per_page": PER_PAGE, "page": page})
            batch = resp.json()
            if not batch:
                break
            items.extend(batch)
            if len(batch) < PER_PAGE:
                break
            page += 1
        return items

    # -- blocking implementations ----------------------------------------------

    def _list_changed_files(self) -> list[str]:
        files = self._paginate(f"{self._pulls_url}/{self.pr_number}/files")
        self._changed_files = [f["filename"] for f in files]
        self._diff_lines = {f["filename"]: commentable_lines(f.get("patch")) for f in files}
        return list(self._changed_files)

    def _delete_analysis_comments(self) -> None:
        comments = self._paginate(f"{self._pulls_url}/{self.pr_number}/comments")
        owned = [c for c in comments if is_analysis_comment(c)]
        logger.debug(
            "%d existing analysis comments to delete", len(owned),
            extra={"repo": f"{self.owner}/{self.repo}", "pr_number": self.pr_number},
        )
        for comment in owned:
            if self.dry_run:
                logger.info("[dry-run] would delete comment %s", comment["id"])
                continue
            # 404: already gone, e.g. a retried DELETE that had succeeded
            self._request("DELETE", f"{self._pulls_url}/comments/{comment['id']}", ok_statuses=(404,))

    def _head_sha(self) -> str:
        resp = self._request("GET", f"{self._pulls_url}/{self.pr_number}")
        return resp.json()["head"]["sha"]

    def _comment_path(self, finding: Finding) -> str:
        match = find_matching_path(finding.file, self._changed_files, self.base_dir)
        if match is not None:
            return match
        return finding.file.replace("\\", "/").lstrip("/")

    def _build_payload(self, finding: Finding, commit_id: str) -> dict[str, Any]:
        path = self._comment_path(finding)
        in_diff = bool(finding.line) and finding.line in self._diff_lines.get(path, set())
        payload: dict[str, Any] = {
            "body": format_comment_body(finding, outside_diff=not in_diff),
            "commit_id": commit_id,
            "path": path,
        }
        if in_diff:
            payload["line"] = finding.line
            payload["side"] = "RIGHT"
        else:
            payload["subject_type"] = "file"
        return payload

    def _post_comments(self, findings: Sequence[Finding]) -> None:
        if not findings:
            return
        commit_id = self._head_sha()
        for finding in findings:
            payload = self._build_payload(finding, commit_id)
            if self.dry_run:
                logger.info(
                    "[dry-run] would comment on %s:%s", payload["path"], payload.get("line", ""),
                    extra={"file": payload["path"]},
                )
                continue
            self._request("POST", f"{self._pulls_url}/{self.pr_number}/comments", json=payload)

    # -- PrcaService -----------------------------------------------------------

    async def get_changed_files(self) -> list[str]:
        return await asyncio.to_thread(self._list_changed_files)

    async def delete_existing_analysis_threads(self) -> None:
        await asyncio.to_thread(self._delete_analysis_comments)

    async def create_threads(self, findings: Sequence[Finding]) -> None:
        await asyncio.to_thread(self._post_comments, list(findings))
