"""Publishing check runs: rendering, retries and the GitHub reporter."""

from __future__ import annotations

from .errors import ReportError
from .markdown import (
    ANNOTATION_BATCH_SIZE,
    batched,
    build_annotations,
    render_output,
    render_summary,
    render_title,
)
from .mock import RecordingReporter, ReportCall
from .protocol import CheckReporter
from .reporter import GitHubCheckReporter, RetryPolicy

__all__ = [
    "ANNOTATION_BATCH_SIZE",
    "CheckReporter",
    "GitHubCheckReporter",
    "RecordingReporter",
    "ReportCall",
    "ReportError",
    "RetryPolicy",
    "batched",
    "build_annotations",
    "render_output",
    "render_summary",
    "render_title",
]
