"""
Hook engine models: entries, actions, run options and run reports.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Union

from pydantic import BaseModel, Field

from blackdot.core.hooks.points import HookPoint


class SourceKind(str, Enum):
    """Where an entry came from. Declaration order is precedence order."""

    FILE = "file"
    FUNCTION = "function"
    CONFIG = "config"


SOURCE_PRECEDENCE: dict[SourceKind, int] = {
    kind: rank for rank, kind in enumerate(SourceKind)
}


@dataclass(frozen=True)
class FileAction:
    """Run an executable file."""

    path: Path

    def describe(self) -> str:
        return str(self.path)


@dataclass(frozen=True)
class CallbackAction:
    """Call an in-process function (sync or async)."""

    callback: Callable[[dict], Any]

    def describe(self) -> str:
        return getattr(self.callback, "__qualname__", repr(self.callback))


@dataclass(frozen=True)
class CommandAction:
    """Run a shell command string."""

    command: str

    def describe(self) -> str:
        return self.command


HookAction = Union[FileAction, CallbackAction, CommandAction]


@dataclass(frozen=True)
class HookEntry:
    """One action bound to a hook point."""

    point: HookPoint
    name: str
    ordinal: int
    action: HookAction
    source: SourceKind
    enabled: bool = True
    fail_ok: bool = False
    feature: Optional[str] = None
    timeout: Optional[float] = None  # seconds, overrides the run default

    @property
    def sort_key(self) -> tuple[int, str]:
        return (self.ordinal, self.name)

    def to_dict(self) -> dict:
        """Serialize for API responses."""
        return {
            "point": self.point.value,
            "name": self.name,
            "ordinal": self.ordinal,
            "source": self.source.value,
            "action": self.action.describe(),
            "enabled": self.enabled,
            "fail_ok": self.fail_ok,
            "feature": self.feature,
            "timeout": self.timeout,
        }


class HookOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"
    TIMED_OUT = "timed_out"


@dataclass
class HookResult:
    """Outcome of a single entry within a run."""

    name: str
    outcome: HookOutcome
    source: SourceKind
    action: str
    duration: float = 0.0  # seconds
    output: str = ""
    fail_ok: bool = False
    returncode: Optional[int] = None

    @property
    def hard_failure(self) -> bool:
        """A failure that counts against the run.

        Timeouts always count; plain failures count unless fail_ok.
        """
        if self.outcome == HookOutcome.TIMED_OUT:
            return True
        return self.outcome == HookOutcome.FAILURE and not self.fail_ok

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "outcome": self.outcome.value,
            "source": self.source.value,
            "action": self.action,
            "duration": round(self.duration, 4),
            "output": self.output,
            "fail_ok": self.fail_ok,
            "returncode": self.returncode,
        }


@dataclass
class RunReport:
    """Result of running one hook point."""

    point: HookPoint
    results: list[HookResult] = field(default_factory=list)
    aborted: bool = False  # fail_fast stopped the run
    cancelled: bool = False  # an external cancel request stopped the run
    dry_run: bool = False
    started_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @property
    def hard_failures(self) -> list[HookResult]:
        return [r for r in self.results if r.hard_failure]

    @property
    def warnings(self) -> list[HookResult]:
        """Failures tolerated because the entry is fail_ok."""
        return [
            r for r in self.results
            if r.outcome == HookOutcome.FAILURE and r.fail_ok
        ]

    @property
    def ok(self) -> bool:
        return not self.hard_failures and not self.aborted and not self.cancelled

    def outcome_of(self, name: str) -> Optional[HookOutcome]:
        for result in self.results:
            if result.name == name:
                return result.outcome
        return None

    def to_dict(self) -> dict:
        return {
            "point": self.point.value,
            "results": [r.to_dict() for r in self.results],
            "aborted": self.aborted,
            "cancelled": self.cancelled,
            "dry_run": self.dry_run,
            "started_at": self.started_at,
            "ok": self.ok,
        }


@dataclass(frozen=True)
class RunOptions:
    """Fully resolved options for one run."""

    fail_fast: bool = False
    verbose: bool = False
    timeout: float = 30.0  # seconds
    dry_run: bool = False


@dataclass
class HookError:
    """Record of a hook execution error."""

    hook_name: str
    point: str
    error: str
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "hook_name": self.hook_name,
            "point": self.point,
            "error": self.error,
            "timestamp": self.timestamp,
        }


# --- Declarative hook document (hooks.json) ---


class HookSpec(BaseModel):
    """One entry of a hook point list in hooks.json."""

    name: str = Field(min_length=1)
    command: str = Field(min_length=1)
    enabled: bool = True
    fail_ok: bool = False
    priority: Optional[int] = Field(
        default=None,
        description="Execution ordinal; defaults to the entry's list position",
    )
    timeout: Optional[float] = Field(default=None, gt=0)
    feature: Optional[str] = Field(
        default=None,
        description="Owning feature; the entry is dropped while it is inactive",
    )

    model_config = {"extra": "ignore"}


class HookSettings(BaseModel):
    """Run defaults from the `settings` object of hooks.json."""

    fail_fast: Optional[bool] = None
    verbose: Optional[bool] = None
    timeout: Optional[float] = Field(default=None, gt=0)

    model_config = {"extra": "ignore"}
