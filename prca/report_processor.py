"""Turn static-analysis report files into :class:`~prca.finding.Finding` lists.

Two formats are supported:

* **SonarQube issues report** (``sonar-report.json``) as written by the
  scanner's preview / issues-report mode: a top-level ``issues`` array plus
  a ``components`` table mapping component keys to file paths.
* **SARIF 2.1** as written by CodeQL, ESLint, Semgrep and most other
  analysers.

Processors are synchronous and raise on malformed input.  They preserve the
order of the report; ordering by priority is the orchestrator's job.
"""

from __future__ import annotations

import json
import os
import re
from typing import Any, Protocol
from urllib.parse import unquote, urlparse

from prca.finding import Finding, priority_for_severity
from prca.logging_config import setup_logging

logger = setup_logging(__name__)

REPORT_MAX_SIZE_BYTES = 500 * 1024 * 1024

# SARIF ``level`` -> priority, used when a rule has no security-severity.
SARIF_LEVEL_PRIORITY: dict[str, int] = {
    "error": 4,
    "warning": 3,
    "note": 2,
    "none": 1,
}

# CVSS v3 lower bounds (NVD / GitHub Advisory scale) -> priority.
SECURITY_SEVERITY_TIERS: list[tuple[float, int, str]] = [
    (9.0, 5, "critical"),
    (7.0, 4, "high"),
    (4.0, 3, "medium"),
    (0.1, 2, "low"),
]

_DRIVE_PATH_RE = re.compile(r"^/[A-Za-z]:/")


class ReportProcessor(Protocol):
    def fetch_findings(self, report_path: str) -> list[Finding]:
        ...


def _load_json(report_path: str) -> Any:
    file_size = os.path.getsize(report_path)
    if file_size > REPORT_MAX_SIZE_BYTES:
        logger.warning(
            "Report file is very large (%.0f MB)", file_size / 1024 / 1024,
            extra={"report_path": report_path},
        )
    with open(report_path, encoding="utf-8") as f:
        return json.load(f)


class SonarQubeReportProcessor:
    """Read issues from a SonarQube ``sonar-report.json``.

    Parameters
    ----------
    new_issues_only : bool
        Skip issues the server already knew about (``isNew: false``), so a
        pull request only shows what it introduced.
    """

    def __init__(self, new_issues_only: bool = True):
        self.new_issues_only = new_issues_only

    def fetch_findings(self, report_path: str) -> list[Finding]:
        report = _load_json(report_path)
        if not isinstance(report, dict):
            raise ValueError(
                f"{report_path}: report root must be a JSON object, got {type(report).__name__}"
            )
        issues = report.get("issues", [])
        if not isinstance(issues, list):
            raise ValueError(f"{report_path}: 'issues' must be a JSON array")

        paths_by_key: dict[str, str] = {}
        for i, component in enumerate(report.get("components", []) or []):
            if not isinstance(component, dict):
                raise ValueError(f"{report_path}: component {i} must be a JSON object")
            key = component.get("key")
            path = component.get("path")
            if key and path:
                paths_by_key[key] = path

        findings: list[Finding] = []
        skipped_old = 0
        for i, issue in enumerate(issues):
            if not isinstance(issue, dict):
                raise ValueError(f"{report_path}: issue {i} must be a JSON object")
            if self.new_issues_only and issue.get("isNew") is False:
                skipped_old += 1
                continue
            file_path = self._resolve_file(issue.get("component", ""), paths_by_key)
            if not file_path:
                logger.debug("Skipping issue without a file: %s", issue.get("key", ""))
                continue
            severity = issue.get("severity") or ""
            line = issue.get("line")
            findings.append(
                Finding(
                    file=file_path,
                    priority=priority_for_severity(severity),
                    message=issue.get("message", ""),
                    line=int(line) if line is not None else None,
                    rule=issue.get("rule", ""),
                    severity=severity.lower(),
                    tool="SonarQube",
                )
            )

        logger.debug(
            "%d issues read from report, %d skipped as not new",
            len(findings), skipped_old, extra={"report_path": report_path},
        )
        return findings

    @staticmethod
    def _resolve_file(component: str, paths_by_key: dict[str, str]) -> str:
        if component in paths_by_key:
            return paths_by_key[component]
        if ":" in component:
            return component.rsplit(":", 1)[1]
        return ""


def validate_sarif(sarif: Any, path: str) -> None:
    """Lightweight validation of a SARIF document's required top-level keys.

    Raises
    ------
    ValueError
        If a required key is missing or has an unexpected type.
    """
    if not isinstance(sarif, dict):
        raise ValueError(f"{path}: SARIF root must be a JSON object, got {type(sarif).__name__}")

    version = sarif.get("version")
    if version is None:
        raise ValueError(f"{path}: missing required 'version' field")
    if not str(version).startswith("2.1"):
        logger.warning("%s: unexpected SARIF version '%s' (expected 2.1.x)", path, version)

    runs = sarif.get("runs")
    if runs is None:
        raise ValueError(f"{path}: missing required 'runs' array")
    if not isinstance(runs, list):
        raise ValueError(f"{path}: 'runs' must be a JSON array, got {type(runs).__name__}")


def sarif_uri_to_path(uri: str) -> str:
    """Turn a SARIF ``artifactLocation.uri`` into a filesystem path.

    URIs are percent-encoded, so ``src/my%20file.ts`` names ``src/my file.ts``.
    ``file:///C:/agent/a.ts`` becomes ``C:/agent/a.ts`` and a UNC form
    ``file://server/share/a.ts`` keeps its host.  A bare ``C:/...`` path is
    not a URI with scheme ``c`` and is only unquoted.
    """
    parsed = urlparse(uri)
    if parsed.scheme.lower() != "file":
        if len(parsed.scheme) == 1 or not parsed.scheme:
            return unquote(uri)
        return uri
    path = unquote(parsed.path)
    if parsed.netloc and parsed.netloc.lower() != "localhost":
        return f"//{parsed.netloc}{path}"
    if _DRIVE_PATH_RE.match(path):
        return path[1:]
    return path


def classify_security_severity(score: float) -> tuple[int, str]:
    """Map a CVSS score to ``(priority, tier)``; ``(0, "")`` when unscored."""
    for lower, priority, tier in SECURITY_SEVERITY_TIERS:
        if score >= lower:
            return priority, tier
    return 0, ""


class SarifReportProcessor:
    """Read results from a SARIF 2.1 log.

    Priority comes from the rule's ``security-severity`` property when it is
    set, otherwise from the result ``level`` (``warning`` when absent).
    """

    def fetch_findings(self, report_path: str) -> list[Finding]:
        sarif = _load_json(report_path)
        validate_sarif(sarif, report_path)

        findings: list[Finding] = []
        for run in sarif["runs"]:
            tool = run.get("tool", {})
            driver = tool.get("driver", {})
            tool_name = driver.get("name", "")

            rules_by_id: dict[str, dict[str, Any]] = {}
            for rule in driver.get("rules", []):
                rules_by_id[rule["id"]] = rule
            for ext in tool.get("extensions", []):
                for rule in ext.get("rules", []):
                    rules_by_id[rule["id"]] = rule

            for result in run.get("results", []):
                locations = result.get("locations", [])
                if not locations:
                    continue
                phys = locations[0].get("physicalLocation", {})
                uri = phys.get("artifactLocation", {}).get("uri", "")
                if not uri:
                    continue
                uri = sarif_uri_to_path(uri)

                rule_id = result.get("ruleId", "")
                rule = rules_by_id.get(rule_id, {})
                level = result.get("level", "warning")
                priority, severity = self._rank(rule, level)
                line = phys.get("region", {}).get("startLine")

                findings.append(
                    Finding(
                        file=uri,
                        priority=priority,
                        message=result.get("message", {}).get("text", ""),
                        line=int(line) if line is not None else None,
                        rule=rule_id,
                        severity=severity,
                        tool=tool_name,
                    )
                )

        logger.debug("%d results read from SARIF", len(findings), extra={"report_path": report_path})
        return findings

    @staticmethod
    def _rank(rule: dict[str, Any], level: str) -> tuple[int, str]:
        raw = rule.get("properties", {}).get("security-severity")
        if raw is not None:
            try:
                priority, tier = classify_security_severity(float(raw))
            except (TypeError, ValueError):
                priority, tier = 0, ""
            if priority:
                return priority, tier
        return SARIF_LEVEL_PRIORITY.get(level, SARIF_LEVEL_PRIORITY["warning"]), level


def create_report_processor(fmt: str, new_issues_only: bool = True) -> ReportProcessor:
    """Return the processor for report format *fmt* (``sonarqube`` or ``sarif``)."""
    fmt = fmt.lower()
    if fmt == "sonarqube":
        return SonarQubeReportProcessor(new_issues_only=new_issues_only)
    if fmt == "sarif":
        return SarifReportProcessor()
    raise ValueError(f"Unsupported report format: {fmt}")
