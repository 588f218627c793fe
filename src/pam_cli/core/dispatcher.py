"""
Command dispatcher for PAM CLI.

Maps each command variant to one call sequence against the resolved
configuration, the API client and the session manager. Single-call commands
let errors propagate to the caller. Multi-step workflows (deep health,
reflection) record per-step failures so an advisory failure does not hide a
result the user has already been given.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional
import logging

from ..config.resolver import ConfigResolver
from ..config.settings import PamConfig
from .client.api_client import PamApiClient, parse_skill_params
from .client.models import (
    ChatReply,
    Reflection,
    SkillInvocationResult,
)
from .commands import (
    COMMAND_TYPES,
    ChatCommand,
    Command,
    ConfigInitCommand,
    ConfigPathCommand,
    ConfigSetCommand,
    ConfigShowCommand,
    ConfigSourcesCommand,
    ContextListCommand,
    ContextRefreshCommand,
    ContextShowCommand,
    ContextStatsCommand,
    ContextStatusCommand,
    HealthCommand,
    MemoryClearCommand,
    MemoryIndexCommand,
    MemoryListCommand,
    MemorySearchCommand,
    MemoryStatusCommand,
    ReflectCommand,
    SkillInvokeCommand,
    SkillLogCommand,
    SkillsListCommand,
    SkillTestCommand,
)
from .errors import PamError
from .export import export_reflection
from .session import SessionManager, generate_session_id

logger = logging.getLogger(__name__)

# Used when neither --user nor a configured email is available.
ANONYMOUS_USER_EMAIL = "unknown@mergeworld.com"
SKILL_TEST_USER_EMAIL = "test@mergeworld.com"

DEFAULT_TEST_PARAMS: Dict[str, Dict[str, Any]] = {
    "jira-query": {"query": "What Jira projects exist?"},
    "github-commits": {"query": "Show recent commits"},
    "daily-ambition": {"query": "What did the team accomplish?"},
    "web-fetch": {"url": "https://www.mergeworld.com/about"},
    "pam-memory": {"query_type": "team_member", "search_term": "Stephen"},
    "freebusy": {"emails": ["mwood@mergeworld.com"], "date": "2026-01-30"},
    "jira-create": {"project_key": "AIGAR", "summary": "Test", "description": "Test issue"},
}

CONTEXT_FILE_ALIASES: Dict[str, str] = {
    "github": "github_ai_garage.md",
    "git": "github_ai_garage.md",
    "jira": "jira_summary.md",
    "daily": "daily_ambitions_summary.md",
    "ambition": "daily_ambitions_summary.md",
    "daily-ambition": "daily_ambitions_summary.md",
    "strategic": "strategic_context_30min.md",
    "tactical": "tactical_context_10min.md",
    "operational": "operational_context_5min.md",
    "database": "database_summary.md",
    "db": "database_summary.md",
}


def resolve_context_filename(name: str) -> str:
    """Map a friendly context name (e.g. "jira") to its file name."""
    return CONTEXT_FILE_ALIASES.get(name.lower(), name)


# =============================================================================
# Outcomes
# =============================================================================

@dataclass(frozen=True)
class UserIdentity:
    """The user a command acts for; is_fallback marks the anonymous identity."""
    email: str
    is_fallback: bool = False


@dataclass(frozen=True)
class StepFailure:
    step: str
    error: Exception


@dataclass
class HealthCheck:
    name: str
    ok: bool
    detail: str = ""
    error: Optional[Exception] = None


@dataclass
class HealthReport:
    api_url: str
    checks: List[HealthCheck] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return all(check.ok for check in self.checks)


@dataclass
class SkillTestOutcome:
    skill: str
    params: Dict[str, Any]
    result: SkillInvocationResult
    duration_ms: int


@dataclass
class SkillInvokeOutcome:
    skill: str
    identity: UserIdentity
    result: SkillInvocationResult


@dataclass
class ContextFileContent:
    name: str
    filename: str
    content: str


@dataclass
class ChatOutcome:
    identity: UserIdentity
    session_id: str
    resumed: bool
    reply: Optional[ChatReply] = None
    continue_requested: bool = False


@dataclass
class ReflectionOutcome:
    """Result of the reflection workflow.

    `error` is set when the workflow stopped before producing a reflection.
    `warnings` collects failures after generation (export, save); the
    reflection is still returned in that case.
    """
    identity: UserIdentity
    sessions: List[str] = field(default_factory=list)
    reflection: Optional[Reflection] = None
    export_path: Optional[Path] = None
    saved_id: Optional[str] = None
    error: Optional[StepFailure] = None
    warnings: List[StepFailure] = field(default_factory=list)


@dataclass
class ConfigUpdate:
    key: str
    value: str
    config: PamConfig


# =============================================================================
# Dispatcher
# =============================================================================

class CommandDispatcher:
    """
    Routes command variants to API client and session manager calls.

    The dispatcher holds the resolved configuration for the invocation and
    the single API client built by the composition root.
    """

    def __init__(
        self,
        config: PamConfig,
        api: PamApiClient,
        sessions: Optional[SessionManager] = None,
        resolver: Optional[ConfigResolver] = None,
        config_path: Optional[Path] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        """Initialize the dispatcher.

        Args:
            config: Resolved configuration snapshot
            api: Shared API client
            sessions: Session manager (one is created over `api` if omitted)
            resolver: Resolver used by config commands
            config_path: Explicit config file path given on the command line
            clock: Source of the current UTC time
        """
        self.config = config
        self.api = api
        self.sessions = sessions or SessionManager(api, clock=clock)
        self.resolver = resolver or ConfigResolver()
        self.config_path = config_path
        self._clock = clock

        self._handlers: Dict[type, Callable[[Any], Awaitable[Any]]] = {
            HealthCommand: self._health,
            MemoryStatusCommand: self._memory_status,
            MemorySearchCommand: self._memory_search,
            MemoryIndexCommand: self._memory_index,
            MemoryListCommand: self._memory_list,
            MemoryClearCommand: self._memory_clear,
            SkillsListCommand: self._skills_list,
            SkillTestCommand: self._skill_test,
            SkillInvokeCommand: self._skill_invoke,
            SkillLogCommand: self._skill_log,
            ContextStatusCommand: self._context_status,
            ContextRefreshCommand: self._context_refresh,
            ContextShowCommand: self._context_show,
            ContextListCommand: self._context_list,
            ContextStatsCommand: self._context_stats,
            ChatCommand: self._chat,
            ReflectCommand: self._reflect,
            ConfigShowCommand: self._config_show,
            ConfigSetCommand: self._config_set,
            ConfigInitCommand: self._config_init,
            ConfigPathCommand: self._config_path,
            ConfigSourcesCommand: self._config_sources,
        }
        missing = set(COMMAND_TYPES) - set(self._handlers)
        if missing:
            raise TypeError(f"No handler for: {', '.join(sorted(t.__name__ for t in missing))}")

    async def dispatch(self, command: Command) -> Any:
        """Run a command and return its typed outcome.

        Raises:
            TypeError: If the command is not a known variant
            PamError: If a single-call command fails
        """
        handler = self._handlers.get(type(command))
        if handler is None:
            raise TypeError(f"Unknown command: {command!r}")
        logger.debug(f"Dispatching {type(command).__name__}")
        return await handler(command)

    def resolve_user(self, explicit: Optional[str] = None) -> UserIdentity:
        """Pick the acting user: explicit flag > configured email > anonymous."""
        if explicit:
            return UserIdentity(explicit)
        if self.config.user_email:
            return UserIdentity(self.config.user_email)
        return UserIdentity(ANONYMOUS_USER_EMAIL, is_fallback=True)

    # Health

    async def _health(self, command: HealthCommand) -> HealthReport:
        report = HealthReport(api_url=self.config.api_url)
        if not command.deep:
            return report

        try:
            status = await self.api.health_check()
            report.checks.append(HealthCheck("API", status.healthy, status.label))
        except PamError as e:
            report.checks.append(HealthCheck("API", False, error=e))

        try:
            await self.api.detailed_health()
            report.checks.append(HealthCheck("Database", True, "Connected"))
        except PamError as e:
            report.checks.append(HealthCheck("Database", False, error=e))

        try:
            context = await self.api.context_status()
            report.checks.append(HealthCheck("Context", True, f"{context.file_count} files available"))
        except PamError as e:
            report.checks.append(HealthCheck("Context", False, error=e))

        return report

    # Memory

    async def _memory_status(self, command: MemoryStatusCommand):
        return await self.api.memory_status()

    async def _memory_search(self, command: MemorySearchCommand):
        return await self.api.search_memories(command.query, command.limit, command.user)

    async def _memory_index(self, command: MemoryIndexCommand) -> str:
        return await self.api.index_memory(command.content, list(command.tags))

    async def _memory_list(self, command: MemoryListCommand):
        return await self.api.list_memories(command.limit, command.user)

    async def _memory_clear(self, command: MemoryClearCommand) -> int:
        return await self.api.clear_memories(command.user)

    # Skills

    async def _skills_list(self, command: SkillsListCommand):
        return await self.api.list_skills()

    async def _skill_test(self, command: SkillTestCommand) -> SkillTestOutcome:
        params = command.params if command.params is not None else DEFAULT_TEST_PARAMS.get(command.skill, {})
        started = time.monotonic()
        result = await self.api.invoke_skill(
            command.skill,
            params,
            SKILL_TEST_USER_EMAIL,
            generate_session_id(self._clock()),
        )
        duration_ms = int((time.monotonic() - started) * 1000)
        return SkillTestOutcome(
            skill=command.skill,
            params=parse_skill_params(params),
            result=result,
            duration_ms=duration_ms,
        )

    async def _skill_invoke(self, command: SkillInvokeCommand) -> SkillInvokeOutcome:
        identity = self.resolve_user(command.user)
        result = await self.api.invoke_skill(
            command.skill,
            command.params,
            identity.email,
            generate_session_id(self._clock()),
        )
        return SkillInvokeOutcome(skill=command.skill, identity=identity, result=result)

    async def _skill_log(self, command: SkillLogCommand):
        return await self.api.skill_log(command.skill, command.limit)

    # Context

    async def _context_status(self, command: ContextStatusCommand):
        return await self.api.context_status()

    async def _context_refresh(self, command: ContextRefreshCommand):
        # The service always reloads; force only matters to the CLI wording
        return await self.api.refresh_context()

    async def _context_show(self, command: ContextShowCommand) -> ContextFileContent:
        filename = resolve_context_filename(command.name)
        content = await self.api.context_file(filename)
        return ContextFileContent(name=command.name, filename=filename, content=content)

    async def _context_list(self, command: ContextListCommand):
        return await self.api.list_context_files()

    async def _context_stats(self, command: ContextStatsCommand):
        return await self.api.context_stats()

    # Chat

    async def _chat(self, command: ChatCommand) -> ChatOutcome:
        identity = self.resolve_user(command.user)
        if command.continue_session:
            session_id = await self.sessions.continue_or_new(identity.email)
        else:
            session_id = self.sessions.new_session()

        outcome = ChatOutcome(
            identity=identity,
            session_id=session_id,
            resumed=self.sessions.resumed,
            continue_requested=command.continue_session,
        )
        if command.message is not None:
            outcome.reply = await self.send_chat(identity, command.message)
        return outcome

    async def send_chat(self, identity: UserIdentity, message: str) -> ChatReply:
        """Send one turn in the current session, starting one if needed."""
        session_id = self.sessions.current or self.sessions.new_session()
        return await self.api.chat(identity.email, session_id, message)

    async def reflect_on_current_session(self, identity: UserIdentity) -> Reflection:
        """Generate (but do not save) a reflection for the current chat session."""
        session_id = self.sessions.current or self.sessions.new_session()
        return await self.api.generate_reflection(identity.email, [session_id])

    # Reflection

    async def _reflect(self, command: ReflectCommand) -> ReflectionOutcome:
        identity = self.resolve_user(command.user)
        outcome = ReflectionOutcome(identity=identity)

        if command.session:
            outcome.sessions = [command.session]
        else:
            try:
                outcome.sessions = await self.api.today_sessions(identity.email)
            except PamError as e:
                outcome.error = StepFailure("sessions", e)
                return outcome

        if not outcome.sessions:
            return outcome

        try:
            outcome.reflection = await self.api.generate_reflection(identity.email, outcome.sessions)
        except PamError as e:
            outcome.error = StepFailure("generate", e)
            return outcome

        if command.export:
            try:
                outcome.export_path = export_reflection(outcome.reflection, command.export_dir, self._clock())
            except OSError as e:
                outcome.warnings.append(StepFailure("export", e))

        try:
            outcome.saved_id = await self.api.save_reflection(identity.email, outcome.reflection)
        except PamError as e:
            outcome.warnings.append(StepFailure("save", e))

        return outcome

    # Config

    async def _config_show(self, command: ConfigShowCommand) -> PamConfig:
        return self.config

    async def _config_set(self, command: ConfigSetCommand) -> ConfigUpdate:
        updated = self.resolver.set_field(command.key, command.value, self.config_path)
        return ConfigUpdate(key=command.key, value=command.value, config=updated)

    async def _config_init(self, command: ConfigInitCommand) -> Path:
        return self.resolver.init(command.force, self.config_path)

    async def _config_path(self, command: ConfigPathCommand) -> Path:
        if self.config_path is not None:
            return Path(self.config_path).expanduser()
        return self.resolver.default_config_path()

    async def _config_sources(self, command: ConfigSourcesCommand) -> List[Dict[str, Any]]:
        return self.resolver.describe_sources()
