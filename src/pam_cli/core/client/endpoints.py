"""
Endpoint registry for the PAM API.

Each remote capability is described once by an Endpoint: HTTP method, path,
request/response schema and the policy applied to non-2xx answers.
"""

from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, List, Optional, Type
from urllib.parse import quote

from pydantic import BaseModel, TypeAdapter

from . import models

API_PREFIX = "/api"
SERVICE_PREFIX = "/api/chief-of-staff"


class ErrorPolicy(Enum):
    """How an endpoint treats a non-2xx status."""
    RAISE = "raise"        # RemoteError with status and body
    NO_RESULT = "none"     # an expected "nothing there" outcome
    REPORT = "report"      # the status itself is the result


class ResponseKind(Enum):
    JSON = "json"
    TEXT = "text"
    STATUS = "status"


@lru_cache(maxsize=None)
def _adapter(schema: Any) -> TypeAdapter:
    return TypeAdapter(schema)


@dataclass(frozen=True)
class Endpoint:
    """Immutable description of one remote capability."""
    name: str
    method: str
    path: str
    response_schema: Any = None
    request_schema: Optional[Type[BaseModel]] = None
    response_kind: ResponseKind = ResponseKind.JSON
    error_policy: ErrorPolicy = ErrorPolicy.RAISE

    def url_path(self, **path_params: str) -> str:
        """Fill the path template, percent-encoding each parameter."""
        if not path_params:
            return self.path
        return self.path.format(**{k: quote(str(v), safe="") for k, v in path_params.items()})

    def validate_json(self, raw: bytes) -> Any:
        """Decode a JSON body against the response schema.

        Raises:
            pydantic.ValidationError: If the body is not valid JSON or does
                not match the schema
        """
        return _adapter(self.response_schema).validate_json(raw)


def _get(name: str, path: str, schema: Any = None, **kwargs) -> Endpoint:
    return Endpoint(name=name, method="GET", path=path, response_schema=schema, **kwargs)


def _post(name: str, path: str, schema: Any = None, request: Optional[Type[BaseModel]] = None, **kwargs) -> Endpoint:
    return Endpoint(name=name, method="POST", path=path, response_schema=schema, request_schema=request, **kwargs)


_DEFINITIONS: List[Endpoint] = [
    # Health
    _get("health", f"{API_PREFIX}/health",
         response_kind=ResponseKind.STATUS, error_policy=ErrorPolicy.REPORT),
    _get("health_detailed", f"{API_PREFIX}/health/detailed", Dict[str, Any]),

    # Memory
    _get("memory_status", f"{SERVICE_PREFIX}/memory/status", models.MemoryStatus),
    _get("memory_search", f"{SERVICE_PREFIX}/memory/search", List[models.MemorySearchResult]),
    _post("memory_index", f"{SERVICE_PREFIX}/memory/index", models.IndexResult, models.IndexMemoryRequest),
    _get("memory_list", f"{SERVICE_PREFIX}/memory/list", List[models.MemoryEntry]),
    _post("memory_clear", f"{SERVICE_PREFIX}/memory/clear", models.ClearResult, models.ClearMemoriesRequest),

    # Skills
    _get("skills", f"{SERVICE_PREFIX}/skills", models.SkillList),
    _post("skill_invoke", f"{SERVICE_PREFIX}/skill", Dict[str, Any], models.InvokeSkillRequest),
    _get("skill_log", f"{SERVICE_PREFIX}/skill-log", List[models.SkillLogEntry]),

    # Context
    _get("context_debug", f"{SERVICE_PREFIX}/context-debug", models.ContextStatus),
    _post("context_refresh", f"{SERVICE_PREFIX}/context-refresh", models.RefreshResult),
    _get("context_file", f"{SERVICE_PREFIX}/context/{{filename}}", response_kind=ResponseKind.TEXT),
    _get("context_stats", f"{SERVICE_PREFIX}/context-stats", models.ContextStats),

    # Chat and sessions
    _post("chat", f"{SERVICE_PREFIX}/chat", models.ChatReply, models.ChatRequest),
    _get("sessions_latest", f"{SERVICE_PREFIX}/sessions/latest", models.LatestSession,
         error_policy=ErrorPolicy.NO_RESULT),
    _get("sessions_today", f"{SERVICE_PREFIX}/sessions/today", models.TodaySessions),

    # Reflection
    _post("reflect", f"{SERVICE_PREFIX}/reflect", models.Reflection, models.ReflectRequest),
    _post("reflection_save", f"{SERVICE_PREFIX}/reflection/save", models.SaveResult,
          models.SaveReflectionRequest),
]

ENDPOINTS: Dict[str, Endpoint] = {endpoint.name: endpoint for endpoint in _DEFINITIONS}


def get_endpoint(name: str) -> Endpoint:
    """Look up an endpoint by name.

    Raises:
        KeyError: If no endpoint has that name
    """
    try:
        return ENDPOINTS[name]
    except KeyError:
        raise KeyError(f"Unknown endpoint: {name}") from None
