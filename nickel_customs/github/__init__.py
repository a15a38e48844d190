"""GitHub REST integration: check runs, trees and change sets."""

from __future__ import annotations

from .client import (
    ChangeSource,
    ChecksAPI,
    GitHubChecksClient,
    GitHubChecksConfig,
    PublisherDirectory,
)
from .errors import GitHubAPIError, GitHubConfigError, GitHubResponseShapeError
from .models import (
    ChangedFile,
    CheckRunAnnotation,
    CheckRunOutput,
    CheckRunRequest,
    CheckRunResponse,
)

__all__ = [
    "ChangeSource",
    "ChangedFile",
    "CheckRunAnnotation",
    "CheckRunOutput",
    "CheckRunRequest",
    "CheckRunResponse",
    "ChecksAPI",
    "GitHubAPIError",
    "GitHubChecksClient",
    "GitHubChecksConfig",
    "GitHubConfigError",
    "GitHubResponseShapeError",
    "PublisherDirectory",
]
