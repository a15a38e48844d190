"""GitHub API errors."""

from __future__ import annotations

_HTTP_SERVER_ERROR_THRESHOLD = 500
_HTTP_RATE_LIMITED = 429


class GitHubAPIError(RuntimeError):
    """Raised when a GitHub REST call fails.

    Attributes
    ----------
    status_code
        HTTP status of the response; ``None`` when no response arrived.
    retry_after
        Seconds GitHub asked us to wait, when it said so.
    rate_limited
        Whether the failure was a primary or secondary rate limit.

    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retry_after: float | None = None,
        rate_limited: bool = False,
    ) -> None:
        """Initialise with a message and the response details."""
        self.status_code = status_code
        self.retry_after = retry_after
        self.rate_limited = rate_limited
        super().__init__(message)

    @property
    def is_transient(self) -> bool:
        """Return whether retrying the call may succeed."""
        if self.rate_limited or self.status_code is None:
            return True
        return (
            self.status_code >= _HTTP_SERVER_ERROR_THRESHOLD
            or self.status_code == _HTTP_RATE_LIMITED
        )

    @classmethod
    def http_error(cls, status_code: int, detail: str = "") -> GitHubAPIError:
        """Return an error for non-2xx responses."""
        suffix = f": {detail}" if detail else ""
        return cls(f"GitHub HTTP {status_code}{suffix}", status_code=status_code)

    @classmethod
    def rate_limit(
        cls, status_code: int, retry_after: float | None = None
    ) -> GitHubAPIError:
        """Return an error for rate-limited responses."""
        message = "GitHub API rate limited"
        if retry_after is not None:
            message = f"{message}, retry after {retry_after:g}s"
        return cls(
            message,
            status_code=status_code,
            retry_after=retry_after,
            rate_limited=True,
        )

    @classmethod
    def timeout(cls) -> GitHubAPIError:
        """Return an error for requests that timed out."""
        return cls("GitHub API request timed out")

    @classmethod
    def network_error(cls, detail: str) -> GitHubAPIError:
        """Return an error for connection, DNS or TLS failures."""
        return cls(f"GitHub API network error: {detail}")


class GitHubResponseShapeError(RuntimeError):
    """Raised when a GitHub response lacks expected fields."""

    @classmethod
    def missing(cls, field: str) -> GitHubResponseShapeError:
        """Return an error for a missing or mistyped response field."""
        return cls(f"GitHub response missing expected field: {field}")


class GitHubConfigError(RuntimeError):
    """Raised when GitHub client configuration is invalid."""

    @classmethod
    def missing_token(cls) -> GitHubConfigError:
        """Return an error when no GitHub token is configured."""
        return cls("NICKEL_CUSTOMS_GITHUB_TOKEN is required for the GitHub API")

    @classmethod
    def empty_token(cls) -> GitHubConfigError:
        """Return an error when the provided token is empty."""
        return cls("GitHub token must be non-empty")

    @classmethod
    def bad_repository(cls, repository: str) -> GitHubConfigError:
        """Return an error for repository slugs not of the form owner/name."""
        return cls(f"repository must look like owner/name, got {repository!r}")
