"""PRCA (Pull Request Code Analysis) orchestrator.

Reads the findings of an analysis report, keeps those that belong to files
changed in the pull request, orders them by priority, caps them, and then
replaces the analysis comments on the pull request: existing ones are
deleted first, the new selection is created afterwards.

The three remote calls run strictly one after another.  A failure in any
step propagates unchanged and stops the run, so a failed delete never
leads to a create.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from prca.config import DEFAULT_MESSAGE_LIMIT, parse_message_limit
from prca.finding import Finding, descending_priority
from prca.logging_config import setup_logging
from prca.paths import paths_equal
from prca.prca_service import PrcaService
from prca.report_processor import ReportProcessor

log = setup_logging(__name__)


class PrcaOrchestrator:
    def __init__(
        self,
        report_processor: ReportProcessor,
        prca_service: PrcaService,
        message_limit: object = None,
        logger: logging.Logger | None = None,
        base_dir: str | None = None,
    ):
        if report_processor is None:
            raise ValueError("report_processor is required")
        if prca_service is None:
            raise ValueError("prca_service is required")

        self.report_processor = report_processor
        self.prca_service = prca_service
        self.logger = logger or log
        self.base_dir = base_dir
        self._message_limit = parse_message_limit(message_limit, DEFAULT_MESSAGE_LIMIT)

    @property
    def message_limit(self) -> int:
        """Upper limit on the findings posted; the first n by priority are kept."""
        return self._message_limit

    async def post_issues_to_pull_request(self, report_path: str | None) -> None:
        """Fetch findings from the report, select them, and replace the PR comments."""
        self.logger.debug("Analysis report path: %s", report_path)
        if report_path is None:
            raise ValueError("Make sure a code analysis build step ran before this step.")

        all_findings = self.report_processor.fetch_findings(report_path)

        files_changed = await self.prca_service.get_changed_files()
        self.logger.debug("%d changed files in the PR.", len(files_changed))

        findings_to_post = self.filter_findings(files_changed, all_findings)

        await self.prca_service.delete_existing_analysis_threads()

        self.logger.debug("%d messages are to be posted.", len(findings_to_post))
        await self.prca_service.create_threads(findings_to_post)

    def filter_findings(
        self,
        files_changed: Iterable[str],
        all_findings: Sequence[Finding],
    ) -> list[Finding]:
        """Select the findings to post.

        Keeps findings on changed files, sorts them by descending priority
        (stable, so ties keep report order) and truncates to
        :attr:`message_limit`.
        """
        files_changed = list(files_changed)

        result = [
            finding for finding in all_findings
            if any(paths_equal(changed, finding.file, self.base_dir) for changed in files_changed)
        ]
        self.logger.debug(
            "%d messages are for files changed in this PR. %d messages are not.",
            len(result), len(all_findings) - len(result),
        )

        result = sorted(result, key=descending_priority)

        if len(result) > self._message_limit:
            self.logger.debug(
                "The number of messages posted is limited to %d. %d messages will not be posted.",
                self._message_limit, len(result) - self._message_limit,
            )
        return result[: self._message_limit]
