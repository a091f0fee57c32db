"""Thin async TeamCity REST adapter over httpx.

The adapter performs exactly one HTTP request per call and maps every
failure onto the ``teamcity_mcp.core.errors`` taxonomy. It does no retrying
of its own: callers wrap its coroutines in ``TransportInvoker.invoke``.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from teamcity_mcp.core.errors.teamcity import (
    ClientError,
    NotFoundError,
    RateLimitedError,
    ServerError,
    TeamCityAPIError,
    TeamCityTimeoutError,
    TransientNetworkError,
)

logger = logging.getLogger(__name__)

REST_PREFIX = "/app/rest"

PROJECT_FIELDS = "id,name,parentProjectId,archived,projects(project(id,name,archived))"

_SECRET_PATTERN = re.compile(
    r"(?i)(?:"
    r"(?:token|bearer|authorization|password|secret)"
    r"[\s:=]+"
    r")"
    r"['\"]?([^\s'\"]{8,})['\"]?",
)


@dataclass(frozen=True)
class CollectionResource:
    """A paginated TeamCity collection endpoint.

    ``key`` names the list inside the response envelope, e.g. ``project``
    in ``{"count": 2, "project": [...], "nextHref": "..."}``.
    """

    name: str
    path: str
    key: str
    default_fields: Optional[str] = None


COLLECTIONS: Dict[str, CollectionResource] = {
    "projects": CollectionResource(
        "projects",
        f"{REST_PREFIX}/projects",
        "project",
        "count,nextHref,prevHref,project(id,name,parentProjectId,archived,webUrl)",
    ),
    "builds": CollectionResource(
        "builds",
        f"{REST_PREFIX}/builds",
        "build",
        "count,nextHref,prevHref,build(id,number,status,state,branchName,buildTypeId,webUrl,startDate,finishDate)",
    ),
    "build_types": CollectionResource(
        "build_types",
        f"{REST_PREFIX}/buildTypes",
        "buildType",
        "count,nextHref,prevHref,buildType(id,name,projectId,projectName,paused,webUrl)",
    ),
    "agents": CollectionResource(
        "agents",
        f"{REST_PREFIX}/agents",
        "agent",
        "count,nextHref,prevHref,agent(id,name,connected,enabled,authorized,pool(id,name))",
    ),
    "queued_builds": CollectionResource(
        "queued_builds",
        f"{REST_PREFIX}/buildQueue",
        "build",
        "count,nextHref,prevHref,build(id,buildTypeId,state,branchName,queuedDate,webUrl)",
    ),
    "vcs_roots": CollectionResource(
        "vcs_roots",
        f"{REST_PREFIX}/vcs-roots",
        "vcs-root",
        "count,nextHref,prevHref,vcs-root(id,name,vcsName,project(id))",
    ),
}


def redact_secrets(text: str) -> str:
    """Replace bearer tokens and similar secrets with ``****``."""
    if not text:
        return text

    def _replace(match: "re.Match[str]") -> str:
        return match.group(0).replace(match.group(1), "****")

    return _SECRET_PATTERN.sub(_replace, text)


def parse_retry_after(response: httpx.Response) -> Optional[float]:
    """Parse a numeric ``Retry-After`` header; dates are not supported."""
    retry_after = response.headers.get("Retry-After")
    if retry_after:
        try:
            return float(retry_after)
        except ValueError:
            pass
    return None


def extract_error_message(response: httpx.Response) -> str:
    """Pull a short, redacted message out of an error response body."""
    try:
        data = response.json()
    except ValueError:
        text = response.text[:200] if response.text else f"HTTP {response.status_code}"
        return redact_secrets(text.strip())

    if isinstance(data, dict):
        msg = data.get("message") or data.get("error") or data.get("details")
        if msg:
            return redact_secrets(str(msg)[:200])
    return redact_secrets(response.text[:200])


def raise_for_response(response: httpx.Response, resource: Optional[str] = None) -> None:
    """Raise the taxonomy error matching a non-2xx response."""
    status = response.status_code
    if status < 400:
        return

    request_id = response.headers.get("X-Request-Id")
    if status == 429:
        raise RateLimitedError(retry_after=parse_retry_after(response), request_id=request_id)

    message = extract_error_message(response)
    if status == 404:
        raise NotFoundError(
            resource or "Resource",
            None if resource else str(response.request.url.path),
            details=message,
            request_id=request_id,
        )
    if status < 500:
        raise ClientError(
            f"TeamCity API error {status}: {message}",
            status_code=status,
            details=message,
            request_id=request_id,
        )
    raise ServerError(
        f"TeamCity API error {status}: {message}",
        status_code=status,
        retry_after=parse_retry_after(response),
        details=message,
        request_id=request_id,
    )


class TeamCityClient:
    """Async TeamCity REST client returning decoded JSON.

    Example:
        >>> async with TeamCityClient("https://tc.example.com", token) as client:
        ...     payload = await client.list_collection("projects", "count:100,start:0")
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        *,
        timeout_seconds: float = 30.0,
        verify_ssl: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout_seconds,
            verify=verify_ssl,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings, *, transport: Optional[httpx.AsyncBaseTransport] = None):
        """Build from a ``ConnectionSettings`` config section."""
        return cls(
            settings.base_url,
            settings.token,
            timeout_seconds=settings.timeout_seconds,
            verify_ssl=settings.verify_ssl,
            transport=transport,
        )

    async def __aenter__(self) -> "TeamCityClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_json(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        resource: Optional[str] = None,
    ) -> Any:
        """GET ``path`` and decode the JSON body.

        Raises:
            TeamCityTimeoutError: The request timed out
            TransientNetworkError: No response was received
            RateLimitedError, NotFoundError, ClientError, ServerError:
                Mapped from the HTTP status
        """
        clean_params = {k: v for k, v in (params or {}).items() if v not in (None, "")}
        logger.debug("GET %s params=%s", path, clean_params)
        try:
            response = await self._client.get(path, params=clean_params)
        except httpx.TimeoutException as exc:
            raise TeamCityTimeoutError(self.timeout_seconds, details=type(exc).__name__) from exc
        except httpx.TransportError as exc:
            raise TransientNetworkError(
                f"Network error: {redact_secrets(str(exc)) or type(exc).__name__}"
            ) from exc

        raise_for_response(response, resource)
        try:
            return response.json()
        except ValueError as exc:
            raise TeamCityAPIError(
                "TeamCity returned a non-JSON response",
                status_code=response.status_code,
                details=redact_secrets(response.text[:200]),
            ) from exc

    async def list_collection(
        self,
        resource: str,
        locator: Optional[str] = None,
        fields: Optional[str] = None,
    ) -> Any:
        """Fetch one page of a collection from ``COLLECTIONS``."""
        spec = COLLECTIONS.get(resource)
        if spec is None:
            raise ValueError(f"Unknown collection resource: {resource}")
        params = {"locator": locator, "fields": fields or spec.default_fields}
        return await self.get_json(spec.path, params, resource=spec.name)

    async def get_project(self, project_id: str, fields: Optional[str] = None) -> Any:
        """Fetch a single project with its parent id and direct children."""
        path = f"{REST_PREFIX}/projects/id:{quote(project_id, safe='')}"
        try:
            return await self.get_json(path, {"fields": fields or PROJECT_FIELDS})
        except NotFoundError as exc:
            raise NotFoundError(
                "Project",
                project_id,
                details=exc.details,
                request_id=exc.request_id,
            ) from exc
