"""GitHub REST client for check runs and change discovery."""

from __future__ import annotations

import dataclasses
import os
import typing as typ

import httpx
import msgspec

from nickel_customs.logging import get_logger, log_warning

from .errors import GitHubAPIError, GitHubConfigError, GitHubResponseShapeError
from .models import (
    ChangedFile,
    CheckRunRequest,
    CheckRunResponse,
    CompareResponse,
    TreeResponse,
)

logger = get_logger(__name__)

_HTTP_ERROR_STATUS_THRESHOLD = 400
_HTTP_FORBIDDEN = 403
_HTTP_NOT_FOUND = 404
_HTTP_RATE_LIMITED = 429
_PAGE_SIZE = 100
_MAX_PAGES = 30
_DEFAULT_API_URL = "https://api.github.com"


class ChecksAPI(typ.Protocol):
    """The subset of the GitHub API the bot depends on."""

    async def create_check_run(
        self, repository: str, request: CheckRunRequest
    ) -> int:
        """Create a check run and return its id."""
        ...

    async def update_check_run(
        self, repository: str, check_run_id: int, request: CheckRunRequest
    ) -> None:
        """Update an existing check run."""
        ...


class PublisherDirectory(typ.Protocol):
    """Who may publish packages from a repository."""

    async def is_collaborator(self, repository: str, login: str) -> bool:
        """Return whether ``login`` collaborates on ``repository``."""
        ...


class ChangeSource(typ.Protocol):
    """Where the service looks up trees and change sets."""

    async def list_tree_paths(self, repository: str, sha: str) -> list[str]:
        """Return every blob path in the tree of ``sha``."""
        ...

    async def list_pull_request_files(
        self, repository: str, number: int
    ) -> list[ChangedFile]:
        """Return the files changed by a pull request."""
        ...

    async def compare(self, repository: str, base: str, head: str) -> list[ChangedFile]:
        """Return the files changed between two commits."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class GitHubChecksConfig:
    """Configuration for the GitHub REST client."""

    token: str
    api_url: str = _DEFAULT_API_URL
    timeout_s: float = 20.0
    user_agent: str = "nickel-customs/0.1"

    @classmethod
    def from_env(cls) -> GitHubChecksConfig:
        """Build configuration from ``NICKEL_CUSTOMS_GITHUB_*`` variables."""
        token = os.environ.get("NICKEL_CUSTOMS_GITHUB_TOKEN", "").strip()
        if not token:
            raise GitHubConfigError.missing_token()
        api_url = os.environ.get("NICKEL_CUSTOMS_GITHUB_API_URL", "").strip()
        return cls(token=token, api_url=api_url or _DEFAULT_API_URL)


def _split_repository(repository: str) -> tuple[str, str]:
    owner, _, name = repository.partition("/")
    if not owner or not name or "/" in name:
        raise GitHubConfigError.bad_repository(repository)
    return owner, name


def _retry_after(response: httpx.Response) -> float | None:
    header = response.headers.get("Retry-After", "").strip()
    if header.isdigit():
        return float(header)
    return None


def _is_rate_limited(response: httpx.Response) -> bool:
    if response.status_code == _HTTP_RATE_LIMITED:
        return True
    return response.status_code == _HTTP_FORBIDDEN and (
        response.headers.get("x-ratelimit-remaining") == "0"
        or "Retry-After" in response.headers
    )


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return ""
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str):
            return message
    return ""


class GitHubChecksClient:
    """Talk to the GitHub REST API over httpx.

    Parameters
    ----------
    config
        Token, endpoint and timeouts.
    http_client
        Optional preconfigured client, used by tests; otherwise the instance
        creates and owns one.

    """

    def __init__(
        self,
        config: GitHubChecksConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client with configuration."""
        if not config.token.strip():
            raise GitHubConfigError.empty_token()
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout_s)
        self._headers = {
            "Authorization": f"Bearer {config.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": config.user_agent,
        }

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    def _url(self, repository: str, suffix: str) -> str:
        owner, name = _split_repository(repository)
        return f"{self._config.api_url.rstrip('/')}/repos/{owner}/{name}/{suffix}"

    async def _request(
        self,
        method: str,
        url: str,
        *,
        content: bytes | None = None,
        params: dict[str, str | int] | None = None,
    ) -> httpx.Response:
        headers = dict(self._headers)
        if content is not None:
            headers["Content-Type"] = "application/json"
        try:
            response = await self._client.request(
                method, url, content=content, params=params, headers=headers
            )
        except httpx.TimeoutException as exc:
            raise GitHubAPIError.timeout() from exc
        except httpx.RequestError as exc:
            raise GitHubAPIError.network_error(str(exc)) from exc

        if _is_rate_limited(response):
            raise GitHubAPIError.rate_limit(
                response.status_code, _retry_after(response)
            )
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise GitHubAPIError.http_error(
                response.status_code, _error_detail(response)
            )
        return response

    @staticmethod
    def _decode[T](response: httpx.Response, shape: type[T], field: str) -> T:
        try:
            return msgspec.json.decode(response.content, type=shape)
        except msgspec.DecodeError as exc:
            raise GitHubResponseShapeError.missing(field) from exc

    async def create_check_run(
        self, repository: str, request: CheckRunRequest
    ) -> int:
        """Create a check run and return its id.

        Raises
        ------
        GitHubAPIError
            If GitHub rejects the request or cannot be reached.
        GitHubResponseShapeError
            If the response carries no check run id.

        """
        response = await self._request(
            "POST",
            self._url(repository, "check-runs"),
            content=msgspec.json.encode(request),
        )
        return self._decode(response, CheckRunResponse, "check_run.id").id

    async def update_check_run(
        self, repository: str, check_run_id: int, request: CheckRunRequest
    ) -> None:
        """Update the check run ``check_run_id``."""
        await self._request(
            "PATCH",
            self._url(repository, f"check-runs/{check_run_id}"),
            content=msgspec.json.encode(request),
        )

    async def list_tree_paths(self, repository: str, sha: str) -> list[str]:
        """Return every blob path in the recursive tree of ``sha``."""
        response = await self._request(
            "GET",
            self._url(repository, f"git/trees/{sha}"),
            params={"recursive": 1},
        )
        tree = self._decode(response, TreeResponse, "tree")
        if tree.truncated:
            log_warning(
                logger,
                "Tree listing for %s@%s was truncated; packages may be missed",
                repository,
                sha,
            )
        return [entry.path for entry in tree.tree if entry.type == "blob"]

    async def list_pull_request_files(
        self, repository: str, number: int
    ) -> list[ChangedFile]:
        """Return the files changed by pull request ``number``, all pages."""
        files: list[ChangedFile] = []
        url = self._url(repository, f"pulls/{number}/files")
        for page in range(1, _MAX_PAGES + 1):
            response = await self._request(
                "GET", url, params={"per_page": _PAGE_SIZE, "page": page}
            )
            batch = self._decode(response, list[ChangedFile], "files")
            files.extend(batch)
            if len(batch) < _PAGE_SIZE:
                break
        return files

    async def compare(self, repository: str, base: str, head: str) -> list[ChangedFile]:
        """Return the files changed between ``base`` and ``head``."""
        response = await self._request(
            "GET", self._url(repository, f"compare/{base}...{head}")
        )
        return self._decode(response, CompareResponse, "files").files

    async def is_collaborator(self, repository: str, login: str) -> bool:
        """Return whether ``login`` is a collaborator on ``repository``.

        GitHub answers 204 for collaborators and 404 for everyone else; any
        other failure propagates as ``GitHubAPIError``.
        """
        try:
            await self._request("GET", self._url(repository, f"collaborators/{login}"))
        except GitHubAPIError as exc:
            if exc.status_code == _HTTP_NOT_FOUND:
                return False
            raise
        return True
