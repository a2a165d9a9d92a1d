"""
Hook engine: wires the three sources, the registry and the executor.

Trigger callers (vault pull/push, setup wizard, doctor, shell bindings)
call `run(point)` and decide what to do with the report.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from blackdot.config import Settings
from blackdot.core.features.registry import FeatureRegistry
from blackdot.core.hooks.executor import HookExecutor
from blackdot.core.hooks.models import HookEntry, RunOptions, RunReport
from blackdot.core.hooks.points import HookPoint, parse_point
from blackdot.core.hooks.registry import HookRegistry
from blackdot.core.hooks.sources import ConfigSource, FileSource, FunctionSource

logger = logging.getLogger(__name__)


class HookEngine:
    """Entry point for listing, running and managing hooks."""

    def __init__(
        self,
        hooks_dir: Path,
        hooks_file: Path,
        features: Optional[FeatureRegistry] = None,
        enabled: bool = True,
        fail_fast: bool = False,
        verbose: bool = False,
        timeout: float = 30.0,
    ):
        self.enabled = enabled
        self.defaults = RunOptions(fail_fast=fail_fast, verbose=verbose, timeout=timeout)

        self.files = FileSource(hooks_dir)
        self.functions = FunctionSource()
        self.config = ConfigSource(hooks_file)
        self.features = features
        self.registry = HookRegistry([self.files, self.functions, self.config], features)
        self.executor = HookExecutor(self.registry)

    @classmethod
    def from_settings(
        cls, settings: Settings, features: Optional[FeatureRegistry] = None
    ) -> "HookEngine":
        return cls(
            hooks_dir=settings.hooks_path,
            hooks_file=settings.hooks_document_path,
            features=features,
            enabled=settings.hooks_enabled,
            fail_fast=settings.hooks_fail_fast,
            verbose=settings.hooks_verbose,
            timeout=settings.hooks_timeout,
        )

    # --- Listing ---

    @staticmethod
    def points() -> list[HookPoint]:
        return list(HookPoint)

    def list_hooks(self, point: "str | HookPoint") -> tuple[HookEntry, ...]:
        """Entries that a run of this point would execute, in order."""
        return self.registry.resolve(point)

    # --- Running ---

    def resolve_options(
        self,
        fail_fast: Optional[bool] = None,
        verbose: Optional[bool] = None,
        timeout: Optional[float] = None,
        dry_run: bool = False,
    ) -> RunOptions:
        """Explicit arguments > hooks.json settings > engine defaults."""
        if timeout is not None and timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")

        doc = self.config.settings()

        def pick(explicit, documented, default):
            if explicit is not None:
                return explicit
            if documented is not None:
                return documented
            return default

        return RunOptions(
            fail_fast=pick(fail_fast, doc.fail_fast, self.defaults.fail_fast),
            verbose=pick(verbose, doc.verbose, self.defaults.verbose),
            timeout=pick(timeout, doc.timeout, self.defaults.timeout),
            dry_run=dry_run,
        )

    async def run(
        self,
        point: "str | HookPoint",
        *,
        fail_fast: Optional[bool] = None,
        verbose: Optional[bool] = None,
        timeout: Optional[float] = None,
        dry_run: bool = False,
        context: Optional[Mapping[str, Any]] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> RunReport:
        """Run a hook point. Never raises for hook failures."""
        point = parse_point(point)
        if not self.enabled:
            logger.debug(f"Hooks disabled, not running {point.value}")
            return RunReport(point=point, dry_run=dry_run)

        options = self.resolve_options(fail_fast, verbose, timeout, dry_run)
        return await self.executor.run(point, options, context=context, cancel=cancel)

    async def test(self, point: "str | HookPoint") -> RunReport:
        """Dry run: report what would run, in order, without running it."""
        point = parse_point(point)
        options = self.resolve_options(dry_run=True)
        return await self.executor.run(point, options)

    def run_sync(self, point: "str | HookPoint", **kwargs: Any) -> RunReport:
        """Blocking wrapper for callers without an event loop.

        Returns once the run finishes, even when a timed-out sync callback
        is still running in its thread.
        """
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            return loop.run_until_complete(self.run(point, **kwargs))
        finally:
            try:
                loop.run_until_complete(loop.shutdown_asyncgens())
            finally:
                asyncio.set_event_loop(None)
                loop.close()

    # --- Management ---

    def register(
        self,
        point: "str | HookPoint",
        name: str,
        callback: Callable[[dict], Any],
        **kwargs: Any,
    ) -> HookEntry:
        return self.functions.register(point, name, callback, **kwargs)

    def unregister(self, point: "str | HookPoint", name: str) -> bool:
        return self.functions.unregister(point, name)

    def add_file_hook(
        self, point: "str | HookPoint", script: Path, name: Optional[str] = None
    ) -> Path:
        return self.files.add(parse_point(point), script, name)

    def remove_file_hook(self, point: "str | HookPoint", name: str) -> None:
        self.files.remove(parse_point(point), name)

    def get_recent_errors(self) -> list[dict]:
        return self.executor.get_recent_errors()

    def close(self) -> None:
        self.executor.close()

    def health_info(self) -> dict:
        """Return hook health info for the doctor and /health."""
        counts = {p.value: len(self.registry.resolve(p)) for p in HookPoint}
        return {
            "enabled": self.enabled,
            "hooks_count": sum(counts.values()),
            "points_registered": [p for p, n in counts.items() if n],
            "config_errors": self.config.errors(),
            "recent_errors_count": len(self.executor.get_recent_errors()),
        }
