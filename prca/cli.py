"""Command-line entry point.

Builds the report processor and the GitHub comment service from
configuration, then runs one replace-comments pass for a pull request.

Settings are resolved in order: environment variables, then the optional
``.prca.yml`` file, then command-line flags.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import sys

from prca.config import REPORT_FORMATS, PrcaConfig, parse_message_limit
from prca.logging_config import setup_logging
from prca.orchestrator import PrcaOrchestrator
from prca.prca_service import GitHubPrcaService
from prca.report_processor import create_report_processor

logger = setup_logging(__name__)

PACKAGE_LOGGERS = (
    "prca.cli",
    "prca.config",
    "prca.orchestrator",
    "prca.prca_service",
    "prca.report_processor",
    "prca.retry_utils",
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prca",
        description="Post static-analysis findings as pull request review comments",
    )
    parser.add_argument("--report", default=None, help="Path to the analysis report")
    parser.add_argument(
        "--format", dest="report_format", choices=REPORT_FORMATS, default=None,
        help="Report format (default: sonarqube)",
    )
    parser.add_argument("--repo", default=None, help="Repository as owner/repo")
    parser.add_argument("--pr", type=int, default=None, help="Pull request number")
    parser.add_argument(
        "--message-limit", default=None,
        help="Maximum number of findings to post (default 100)",
    )
    parser.add_argument("--config", default=".prca.yml", help="Path to a YAML config file")
    parser.add_argument(
        "--include-existing", action="store_true",
        help="Also post SonarQube issues that are not new",
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Show what would be deleted and posted without changing the PR",
    )
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    return parser


def resolve_config(args: argparse.Namespace) -> PrcaConfig:
    cfg = PrcaConfig.from_env().merge_file(args.config)

    overrides: dict = {}
    if args.report is not None:
        overrides["report_path"] = args.report
    if args.report_format is not None:
        overrides["report_format"] = args.report_format
    if args.repo is not None:
        overrides["repository"] = args.repo
    if args.pr is not None:
        overrides["pr_number"] = args.pr
    if args.message_limit is not None:
        overrides["message_limit"] = parse_message_limit(args.message_limit, cfg.message_limit)
    if args.include_existing:
        overrides["new_issues_only"] = False
    if args.dry_run:
        overrides["dry_run"] = True
    if args.log_level is not None:
        overrides["log_level"] = args.log_level
    return dataclasses.replace(cfg, **overrides)


def run(cfg: PrcaConfig) -> None:
    cfg.validate(["github_token", "repository", "pr_number"])

    processor = create_report_processor(cfg.report_format, new_issues_only=cfg.new_issues_only)
    service = GitHubPrcaService(
        cfg.repository,
        cfg.pr_number,  # type: ignore[arg-type]
        cfg.github_token,
        api_url=cfg.api_url,
        dry_run=cfg.dry_run,
        base_dir=cfg.base_dir,
    )
    orchestrator = PrcaOrchestrator(
        processor, service, message_limit=cfg.message_limit, base_dir=cfg.base_dir,
    )
    asyncio.run(orchestrator.post_issues_to_pull_request(cfg.report_path))


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        cfg = resolve_config(args)
    except Exception:
        logger.exception("Could not load configuration")
        return 1

    for name in PACKAGE_LOGGERS:
        setup_logging(name, cfg.log_level)

    extra = {"repo": cfg.repository, "pr_number": cfg.pr_number, "report_path": cfg.report_path}
    try:
        run(cfg)
    except ValueError as exc:
        logger.error("%s", exc, extra=extra)
        return 1
    except Exception:
        logger.exception("Posting analysis comments failed", extra=extra)
        return 1

    logger.info("Analysis comments updated", extra=extra)
    return 0


if __name__ == "__main__":
    sys.exit(main())
