"""
API client for the PAM Chief of Staff service.

This package provides the endpoint registry, the typed request/response
records and the async client that ties them together.
"""

from .api_client import (
    DEFAULT_TIMEOUT_SECONDS,
    PamApiClient,
    create_http_client,
    parse_skill_params,
)
from .endpoints import (
    API_PREFIX,
    ENDPOINTS,
    SERVICE_PREFIX,
    Endpoint,
    ErrorPolicy,
    ResponseKind,
    get_endpoint,
)
from .models import (
    UNKNOWN_ID,
    ChatReply,
    ContextFile,
    ContextStats,
    ContextStatus,
    HealthStatus,
    MemoryEntry,
    MemorySearchResult,
    MemoryStatus,
    Reflection,
    RefreshResult,
    Skill,
    SkillInvocationResult,
    SkillLogEntry,
    TableInfo,
)

__all__ = [
    # Client
    "DEFAULT_TIMEOUT_SECONDS",
    "PamApiClient",
    "create_http_client",
    "parse_skill_params",

    # Endpoints
    "API_PREFIX",
    "ENDPOINTS",
    "SERVICE_PREFIX",
    "Endpoint",
    "ErrorPolicy",
    "ResponseKind",
    "get_endpoint",

    # Records
    "UNKNOWN_ID",
    "ChatReply",
    "ContextFile",
    "ContextStats",
    "ContextStatus",
    "HealthStatus",
    "MemoryEntry",
    "MemorySearchResult",
    "MemoryStatus",
    "Reflection",
    "RefreshResult",
    "Skill",
    "SkillInvocationResult",
    "SkillLogEntry",
    "TableInfo",
]
