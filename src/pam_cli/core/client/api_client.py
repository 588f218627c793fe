"""
Async HTTP client for the PAM Chief of Staff API.

PamApiClient exposes one typed coroutine per remote capability. All of them
go through the same httpx.AsyncClient, so one connection pool serves a whole
CLI invocation, interactive chat included. Nothing is retried: write
operations are delivered at most once and the caller decides what to do
with a failure.
"""

import json
from typing import Any, Dict, List, Mapping, Optional, Union
import logging

import httpx
from pydantic import BaseModel, ValidationError as PydanticValidationError

from ... import USER_AGENT
from ...config.settings import CliSecrets
from ..errors import DecodeError, RemoteError, RequestTimeoutError, TransportError, ValidationError
from .endpoints import Endpoint, ErrorPolicy, ResponseKind, get_endpoint
from .models import (
    ChatReply,
    ChatRequest,
    ClearMemoriesRequest,
    ContextFile,
    ContextStats,
    ContextStatus,
    HealthStatus,
    IndexMemoryRequest,
    InvokeSkillRequest,
    MemoryEntry,
    MemorySearchResult,
    MemoryStatus,
    Reflection,
    ReflectRequest,
    RefreshResult,
    SaveReflectionRequest,
    Skill,
    SkillInvocationResult,
    SkillLogEntry,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0

_TEXTUAL_CONTENT_TYPES = ("text/", "application/json", "application/problem+json", "application/xml")


def create_http_client(timeout: float = DEFAULT_TIMEOUT_SECONDS) -> httpx.AsyncClient:
    """Create the shared `httpx.AsyncClient` used for every PAM request.

    Redirects are not followed. A 3xx answer surfaces as a RemoteError so a
    write is never replayed against another location.

    Args:
        timeout: Per-request timeout in seconds

    Returns:
        Configured async client; the caller owns and closes it
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        follow_redirects=False,
    )


def _reject_constant(name: str) -> Any:
    # NaN and Infinity are not JSON; the request body could not carry them
    raise ValueError(f"{name} is not a valid JSON value")


def parse_skill_params(params: Union[str, Mapping[str, Any], None]) -> Dict[str, Any]:
    """Validate skill parameters before they are sent.

    Args:
        params: JSON object text, or an already-structured mapping

    Returns:
        Parameters as a dictionary

    Raises:
        ValidationError: If the parameters are not a well-formed JSON object
    """
    if params is None:
        return {}

    if isinstance(params, Mapping):
        data: Any = dict(params)
        try:
            json.dumps(data, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Skill params are not JSON-serializable: {e}", field="params") from e
    else:
        try:
            data = json.loads(params, parse_constant=_reject_constant)
        except ValueError as e:
            raise ValidationError(f"Invalid JSON params: {e}", field="params") from e

    if not isinstance(data, dict):
        raise ValidationError("Skill params must be a JSON object", field="params")
    return data


class PamApiClient:
    """
    Typed client for the PAM service bound to one base URL.

    The client never resolves configuration itself; it receives the resolved
    base URL (and, for chat, a fallback key) from the composition root.

    Usage:
        async with PamApiClient(config.api_url) as api:
            results = await api.search_memories("roadmap", limit=10)
    """

    def __init__(
        self,
        base_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        cli_api_key: Optional[str] = None,
    ):
        """Initialize the client.

        Args:
            base_url: PAM API base URL
            http_client: Shared client to use; one is created (and owned) if omitted
            timeout: Request timeout when creating the http client
            cli_api_key: Chat key used when PAM_CLI_API_KEY is not set
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._cli_api_key = cli_api_key
        self._owns_http = http_client is None
        self._http = http_client or create_http_client(timeout)

    async def __aenter__(self) -> "PamApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying http client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()

    # =========================================================================
    # Health
    # =========================================================================

    async def health_check(self) -> HealthStatus:
        """Probe the API; a non-2xx answer is reported, not raised."""
        return await self._call(get_endpoint("health"))

    async def detailed_health(self) -> Dict[str, Any]:
        """Detailed health including the database."""
        return await self._call(get_endpoint("health_detailed"))

    # =========================================================================
    # Memory
    # =========================================================================

    async def memory_status(self) -> MemoryStatus:
        return await self._call(get_endpoint("memory_status"))

    async def search_memories(
        self,
        query: str,
        limit: int = 10,
        user: Optional[str] = None,
    ) -> List[MemorySearchResult]:
        """Semantic search over PAM's memory.

        Args:
            query: Search text
            limit: Maximum number of results
            user: Restrict to one user's memories

        Returns:
            Matching memories, possibly empty
        """
        _require_positive(limit, "limit")
        params: Dict[str, Any] = {"query": query, "limit": limit}
        if user:
            params["user"] = user
        return await self._call(get_endpoint("memory_search"), params=params)

    async def index_memory(self, content: str, tags: Optional[List[str]] = None) -> str:
        """Index content into memory and return the new record's id."""
        body = IndexMemoryRequest(content=content, tags=list(tags or []))
        result = await self._call(get_endpoint("memory_index"), body=body)
        return result.id

    async def list_memories(self, limit: int = 20, user: Optional[str] = None) -> List[MemoryEntry]:
        _require_positive(limit, "limit")
        params: Dict[str, Any] = {"limit": limit}
        if user:
            params["user"] = user
        return await self._call(get_endpoint("memory_list"), params=params)

    async def clear_memories(self, user: str) -> int:
        """Delete all memories for a user and return how many were removed."""
        if not user:
            raise ValidationError("A user is required to clear memories", field="user")
        result = await self._call(get_endpoint("memory_clear"), body=ClearMemoriesRequest(user=user))
        return result.deleted_count

    # =========================================================================
    # Skills
    # =========================================================================

    async def list_skills(self) -> List[Skill]:
        result = await self._call(get_endpoint("skills"))
        return result.skills

    async def invoke_skill(
        self,
        skill_key: str,
        params: Union[str, Mapping[str, Any], None],
        user_email: str,
        session_id: str,
    ) -> SkillInvocationResult:
        """Invoke a skill.

        Params are validated before anything is sent.

        Args:
            skill_key: Skill to run, e.g. "jira-query"
            params: JSON object text or mapping
            user_email: User the invocation is audited under
            session_id: Session the invocation belongs to

        Returns:
            The skill's free-form result

        Raises:
            ValidationError: If skill_key is empty or params are malformed
        """
        if not skill_key:
            raise ValidationError("A skill key is required", field="skill_key")
        body = InvokeSkillRequest(
            skill_key=skill_key,
            params=parse_skill_params(params),
            user_email=user_email,
            session_id=session_id,
        )
        payload = await self._call(get_endpoint("skill_invoke"), body=body)
        return SkillInvocationResult(payload=payload)

    async def skill_log(self, skill: Optional[str] = None, limit: int = 20) -> List[SkillLogEntry]:
        _require_positive(limit, "limit")
        params: Dict[str, Any] = {"limit": limit}
        if skill:
            params["skill"] = skill
        return await self._call(get_endpoint("skill_log"), params=params)

    # =========================================================================
    # Context
    # =========================================================================

    async def context_status(self) -> ContextStatus:
        return await self._call(get_endpoint("context_debug"))

    async def refresh_context(self) -> RefreshResult:
        """Reload the context bundle from storage."""
        return await self._call(get_endpoint("context_refresh"))

    async def context_file(self, filename: str) -> str:
        """Raw content of one context file."""
        if not filename:
            raise ValidationError("A context file name is required", field="filename")
        return await self._call(get_endpoint("context_file"), path_params={"filename": filename})

    async def list_context_files(self) -> List[ContextFile]:
        status = await self.context_status()
        return status.files

    async def context_stats(self) -> ContextStats:
        return await self._call(get_endpoint("context_stats"))

    # =========================================================================
    # Chat and sessions
    # =========================================================================

    async def chat(self, user_email: str, session_id: str, message: str) -> ChatReply:
        """Send one chat turn.

        The CLI key is read from PAM_CLI_API_KEY at call time. When no key is
        available the header is sent empty and the service decides.
        """
        cli_api_key = CliSecrets().cli_api_key or self._cli_api_key or ""
        headers = {
            "X-User-Email": _header_value(user_email, "user_email"),
            "X-PAM-CLI-Key": _header_value(cli_api_key, "cli_api_key"),
        }
        body = ChatRequest(message=message, user=user_email, session_id=session_id)
        return await self._call(get_endpoint("chat"), body=body, headers=headers)

    async def latest_session(self, user_email: str) -> Optional[str]:
        """Most recent session id for a user, or None.

        A non-2xx answer means "no session" rather than an error.
        """
        result = await self._call(get_endpoint("sessions_latest"), params={"user": user_email})
        if result is None:
            return None
        return result.session_id or None

    async def today_sessions(self, user_email: str) -> List[str]:
        result = await self._call(get_endpoint("sessions_today"), params={"user": user_email})
        return result.sessions

    # =========================================================================
    # Reflection
    # =========================================================================

    async def generate_reflection(self, user_email: str, sessions: List[str]) -> Reflection:
        """Ask PAM to reflect on the given sessions, in the given order."""
        body = ReflectRequest(user_email=user_email, sessions=list(sessions))
        return await self._call(get_endpoint("reflect"), body=body)

    async def save_reflection(self, user_email: str, reflection: Reflection) -> str:
        """Persist a reflection and return its id."""
        body = SaveReflectionRequest(user_email=user_email, reflection=reflection)
        result = await self._call(get_endpoint("reflection_save"), body=body)
        return result.id

    # =========================================================================
    # Transport
    # =========================================================================

    async def _call(
        self,
        endpoint: Endpoint,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[BaseModel] = None,
        headers: Optional[Dict[str, str]] = None,
        path_params: Optional[Dict[str, str]] = None,
    ) -> Any:
        url = self.base_url + endpoint.url_path(**(path_params or {}))
        payload = body.model_dump(mode="json") if body is not None else None

        logger.debug(f"{endpoint.method} {url} params={params}")

        try:
            response = await self._http.request(
                endpoint.method,
                url,
                params=params,
                json=payload,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(
                f"{endpoint.name}: request timed out",
                timeout_seconds=self.timeout,
                original_error=e,
            ) from e
        except (httpx.RequestError, httpx.InvalidURL) as e:
            raise TransportError(f"{endpoint.name}: {e}", original_error=e) from e

        logger.debug(f"{endpoint.method} {url} -> {response.status_code}")
        return self._handle_response(endpoint, response)

    def _handle_response(self, endpoint: Endpoint, response: httpx.Response) -> Any:
        if not response.is_success:
            if endpoint.error_policy is ErrorPolicy.REPORT:
                return HealthStatus(healthy=False, status_code=response.status_code)
            if endpoint.error_policy is ErrorPolicy.NO_RESULT:
                return None
            raise RemoteError(
                f"{endpoint.name} failed",
                status=response.status_code,
                body=_textual_body(response),
                endpoint=endpoint.name,
            )

        if endpoint.response_kind is ResponseKind.STATUS:
            return HealthStatus(healthy=True, status_code=response.status_code)
        if endpoint.response_kind is ResponseKind.TEXT:
            return response.text

        try:
            return endpoint.validate_json(response.content)
        except PydanticValidationError as e:
            raise DecodeError(
                f"{endpoint.name}: response did not match the expected schema ({e.error_count()} errors)",
                endpoint=endpoint.name,
                original_error=e,
            ) from e


def _textual_body(response: httpx.Response) -> Optional[str]:
    content_type = response.headers.get("content-type", "")
    if content_type and not content_type.startswith(_TEXTUAL_CONTENT_TYPES):
        return None
    text = response.text
    return text or None


def _header_value(value: str, name: str) -> str:
    # HTTP header values are encoded as ASCII by httpx
    if not value.isascii() or "\r" in value or "\n" in value:
        raise ValidationError(f"{name} must be plain ASCII to be sent as a header", field=name)
    return value


def _require_positive(value: int, name: str) -> None:
    if value < 1:
        raise ValidationError(f"{name} must be a positive integer", field=name)
