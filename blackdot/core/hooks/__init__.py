"""
Lifecycle hook engine for blackdot.

Hooks come from executables in ~/.config/blackdot/hooks/<point>/,
in-process registrations, and ~/.config/blackdot/hooks.json.
"""

from blackdot.core.hooks.engine import HookEngine
from blackdot.core.hooks.executor import HookExecutor
from blackdot.core.hooks.models import (
    HookEntry,
    HookOutcome,
    HookResult,
    RunOptions,
    RunReport,
)
from blackdot.core.hooks.points import HookPoint, parse_point
from blackdot.core.hooks.registry import HookRegistry
from blackdot.core.hooks.sources import ConfigSource, FileSource, FunctionSource

__all__ = [
    "ConfigSource",
    "FileSource",
    "FunctionSource",
    "HookEngine",
    "HookEntry",
    "HookExecutor",
    "HookOutcome",
    "HookPoint",
    "HookRegistry",
    "HookResult",
    "RunOptions",
    "RunReport",
    "parse_point",
]
