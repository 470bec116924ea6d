"""Finding data model and the severity -> priority ordering rule.

A :class:`Finding` is one issue reported by a static-analysis tool.  Only
``file`` and ``priority`` drive selection; the remaining fields are carried
through untouched so the comment service can render them.
"""

from __future__ import annotations

from dataclasses import dataclass

# SonarQube severities, highest first.  Larger numbers sort first.
SEVERITY_PRIORITY: dict[str, int] = {
    "blocker": 5,
    "critical": 4,
    "major": 3,
    "minor": 2,
    "info": 1,
}

DEFAULT_PRIORITY = 1


def priority_for_severity(severity: str | None) -> int:
    """Map a severity label (case-insensitive) to its priority rank.

    Unknown or missing labels rank lowest.
    """
    if not severity:
        return DEFAULT_PRIORITY
    return SEVERITY_PRIORITY.get(severity.strip().lower(), DEFAULT_PRIORITY)


@dataclass(frozen=True)
class Finding:
    file: str
    priority: int
    message: str = ""
    line: int | None = None
    rule: str = ""
    severity: str = ""
    tool: str = ""


def descending_priority(finding: Finding) -> int:
    """Sort key placing the highest priority first.

    Used with :func:`sorted`, which is stable, so equal priorities keep
    the order the report processor produced them in.
    """
    return -finding.priority
