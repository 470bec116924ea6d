"""PRCA -- post static-analysis findings to pull requests as review comments.

Re-exports the public API so callers can write
``from prca import PrcaOrchestrator``.
"""

from prca.finding import SEVERITY_PRIORITY, Finding, priority_for_severity  # noqa: F401
from prca.orchestrator import PrcaOrchestrator  # noqa: F401
from prca.paths import find_matching_path, normalize_path, paths_equal  # noqa: F401
from prca.prca_service import (  # noqa: F401
    ANALYSIS_MARKER,
    GitHubPrcaService,
    PrcaService,
    commentable_lines,
    format_comment_body,
)
from prca.report_processor import (  # noqa: F401
    ReportProcessor,
    SarifReportProcessor,
    SonarQubeReportProcessor,
    create_report_processor,
    sarif_uri_to_path,
)

__version__ = "1.0.0"
