"""
Request and response records for the PAM API.

Every response record is frozen and strict about required fields: a body
missing one of them fails to decode instead of producing zeroes or empty
lists that could pass for real data.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Returned when the service omits the identifier of a written record.
UNKNOWN_ID = "unknown"


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class _Request(BaseModel):
    model_config = ConfigDict(frozen=True)


# =============================================================================
# Health
# =============================================================================

class HealthStatus(_Record):
    """Outcome of the basic health probe."""
    healthy: bool
    status_code: int

    @property
    def label(self) -> str:
        return "Healthy" if self.healthy else f"Unhealthy ({self.status_code})"


# =============================================================================
# Memory
# =============================================================================

class TableInfo(_Record):
    name: str
    row_count: int


class MemoryStatus(_Record):
    total_memories: int
    total_sessions: int
    total_reflections: int
    tables: List[TableInfo]


class MemorySearchResult(_Record):
    title: str
    session_id: str
    content: str
    created_at: str
    relevance_score: float


class MemoryEntry(_Record):
    session_id: str
    preview: str
    created_at: datetime


class IndexResult(_Record):
    id: str = UNKNOWN_ID

    @field_validator("id", mode="before")
    @classmethod
    def _missing_id(cls, v: Any) -> Any:
        return UNKNOWN_ID if v is None else v


class ClearResult(_Record):
    deleted_count: int


class IndexMemoryRequest(_Request):
    content: str
    tags: List[str] = Field(default_factory=list)


class ClearMemoriesRequest(_Request):
    user: str


# =============================================================================
# Skills
# =============================================================================

class Skill(_Record):
    """A named capability exposed by PAM."""
    skill_key: str
    description: str
    risk_level: str
    enabled: bool
    usage_count: int


class SkillList(_Record):
    skills: List[Skill]


class SkillLogEntry(_Record):
    skill_key: str
    user_email: str
    success: bool
    duration_ms: int
    created_at: str


class SkillInvocationResult(_Record):
    """Free-form result of a skill invocation."""
    payload: Dict[str, Any]

    @property
    def content(self) -> Optional[str]:
        """Text output, when the skill produced one."""
        value = self.payload.get("content")
        return value if isinstance(value, str) else None


class InvokeSkillRequest(_Request):
    skill_key: str
    params: Dict[str, Any]
    user_email: str
    session_id: str


# =============================================================================
# Context
# =============================================================================

class ContextFile(_Record):
    name: str
    size_kb: float
    age_minutes: float


class ContextStatus(_Record):
    file_count: int
    total_size_kb: float
    estimated_tokens: int
    files: List[ContextFile]


class RefreshResult(_Record):
    files_loaded: int
    total_size_kb: float


class ContextStats(_Record):
    total_size_kb: float
    estimated_tokens: int
    realtime_kb: float
    realtime_pct: float
    projects_kb: float
    projects_pct: float
    team_kb: float
    team_pct: float
    activity_kb: float
    activity_pct: float
    team_members: List[str]


# =============================================================================
# Chat and sessions
# =============================================================================

class ChatRequest(_Request):
    message: str
    user: str
    session_id: str


class ChatReply(_Record):
    response: str
    session_id: str


class LatestSession(_Record):
    session_id: Optional[str] = None


class TodaySessions(_Record):
    sessions: List[str]


# =============================================================================
# Reflection
# =============================================================================

class Reflection(_Record):
    """Structured summary PAM generates from one or more sessions."""
    what_worked: List[str]
    what_failed: List[str]
    learnings: List[str]
    action_items: List[str]


class ReflectRequest(_Request):
    user_email: str
    sessions: List[str]


class SaveReflectionRequest(_Request):
    user_email: str
    reflection: Reflection


class SaveResult(_Record):
    id: str = UNKNOWN_ID

    @field_validator("id", mode="before")
    @classmethod
    def _missing_id(cls, v: Any) -> Any:
        return UNKNOWN_ID if v is None else v
