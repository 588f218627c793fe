"""
Command variants understood by the dispatcher.

Each parsed CLI invocation becomes exactly one of these frozen records,
carrying only the fields that command needs.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union, get_args


# Health

@dataclass(frozen=True)
class HealthCommand:
    deep: bool = False


# Memory

@dataclass(frozen=True)
class MemoryStatusCommand:
    pass


@dataclass(frozen=True)
class MemorySearchCommand:
    query: str
    limit: int = 10
    user: Optional[str] = None


@dataclass(frozen=True)
class MemoryIndexCommand:
    content: str
    tags: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MemoryListCommand:
    limit: int = 20
    user: Optional[str] = None


@dataclass(frozen=True)
class MemoryClearCommand:
    user: str


# Skills

@dataclass(frozen=True)
class SkillsListCommand:
    pass


@dataclass(frozen=True)
class SkillTestCommand:
    skill: str
    params: Optional[str] = None


@dataclass(frozen=True)
class SkillInvokeCommand:
    skill: str
    params: str
    user: Optional[str] = None


@dataclass(frozen=True)
class SkillLogCommand:
    skill: Optional[str] = None
    limit: int = 20


# Context

@dataclass(frozen=True)
class ContextStatusCommand:
    pass


@dataclass(frozen=True)
class ContextRefreshCommand:
    force: bool = False


@dataclass(frozen=True)
class ContextShowCommand:
    name: str


@dataclass(frozen=True)
class ContextListCommand:
    pass


@dataclass(frozen=True)
class ContextStatsCommand:
    pass


# Chat and reflection

@dataclass(frozen=True)
class ChatCommand:
    """Send one message, or open a session for interactive chat when message is None."""
    message: Optional[str] = None
    user: Optional[str] = None
    continue_session: bool = False


@dataclass(frozen=True)
class ReflectCommand:
    session: Optional[str] = None
    user: Optional[str] = None
    export: bool = False
    export_dir: Optional[Path] = None


# Config

@dataclass(frozen=True)
class ConfigShowCommand:
    pass


@dataclass(frozen=True)
class ConfigSetCommand:
    key: str
    value: str


@dataclass(frozen=True)
class ConfigInitCommand:
    force: bool = False


@dataclass(frozen=True)
class ConfigPathCommand:
    pass


@dataclass(frozen=True)
class ConfigSourcesCommand:
    pass


Command = Union[
    HealthCommand,
    MemoryStatusCommand,
    MemorySearchCommand,
    MemoryIndexCommand,
    MemoryListCommand,
    MemoryClearCommand,
    SkillsListCommand,
    SkillTestCommand,
    SkillInvokeCommand,
    SkillLogCommand,
    ContextStatusCommand,
    ContextRefreshCommand,
    ContextShowCommand,
    ContextListCommand,
    ContextStatsCommand,
    ChatCommand,
    ReflectCommand,
    ConfigShowCommand,
    ConfigSetCommand,
    ConfigInitCommand,
    ConfigPathCommand,
    ConfigSourcesCommand,
]

COMMAND_TYPES = get_args(Command)
