"""
Hook executor: runs the resolved entries of a point in order.

Entries of one point never run concurrently; later hooks commonly rely on
the side effects of earlier ones. Independent points may be run from
different tasks or threads at the same time.

Each entry runs under a deadline. A timed-out or cancelled entry is
terminated, not abandoned: subprocesses get SIGTERM on their process
group, then SIGKILL after a grace period; async callbacks are cancelled.
Sync callbacks run in a thread pool owned by the executor. A thread cannot
be interrupted, so on timeout the pool is abandoned without waiting: the
caller gets its report at the deadline and later sync hooks use a fresh pool.

Execution failures never escape `run`; they are recorded in the report.
"""

import asyncio
import inspect
import logging
import os
import signal
import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from blackdot.core.hooks.models import (
    CallbackAction,
    FileAction,
    HookEntry,
    HookError,
    HookOutcome,
    HookResult,
    RunOptions,
    RunReport,
)
from blackdot.core.hooks.points import HookPoint, parse_point
from blackdot.core.hooks.registry import HookRegistry

logger = logging.getLogger(__name__)

# Maximum recent errors to keep in memory
MAX_RECENT_ERRORS = 50

# Seconds between SIGTERM and SIGKILL when stopping a hook process
KILL_GRACE = 2.0


class HookExecutor:
    """Runs hook points and reports per-entry outcomes."""

    def __init__(self, registry: HookRegistry, kill_grace: float = KILL_GRACE):
        self.registry = registry
        self.kill_grace = kill_grace
        self._recent_errors: deque[HookError] = deque(maxlen=MAX_RECENT_ERRORS)
        self._pool: Optional[ThreadPoolExecutor] = None
        self._pool_lock = threading.Lock()

    async def run(
        self,
        point: "str | HookPoint",
        options: Optional[RunOptions] = None,
        *,
        context: Optional[Mapping[str, Any]] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> RunReport:
        """Run every resolved entry of a point.

        Args:
            point: Hook point (InvalidHookPointError if unknown)
            options: fail_fast / verbose / timeout / dry_run
            context: Extra values handed to callbacks and exported to
                subprocesses as BLACKDOT_<KEY>
            cancel: Setting this event terminates the running entry and
                skips the rest
        """
        options = options or RunOptions()
        entries = self.registry.resolve(point)
        point = parse_point(point)
        report = RunReport(point=point, dry_run=options.dry_run)

        if options.dry_run:
            report.results = [_skipped(entry) for entry in entries]
            return report

        log = logger.info if options.verbose else logger.debug

        for index, entry in enumerate(entries):
            if cancel is not None and cancel.is_set():
                report.cancelled = True
                report.results.extend(_skipped(e, "cancelled") for e in entries[index:])
                break

            log(f"Running hook {point.value}/{entry.name} ({entry.source.value})")
            result, interrupted = await self._execute(entry, options, context or {}, cancel)
            report.results.append(result)
            log(
                f"Hook {point.value}/{entry.name}: {result.outcome.value} "
                f"in {result.duration:.2f}s"
            )
            if options.verbose and result.output:
                logger.info(f"[{entry.name}] {result.output.rstrip()}")

            if interrupted:
                logger.warning(f"Run of {point.value} cancelled during {entry.name}")
                report.cancelled = True
                report.results.extend(_skipped(e, "cancelled") for e in entries[index + 1:])
                break

            if result.hard_failure:
                self._record_error(entry, result)
                if options.fail_fast:
                    logger.warning(
                        f"Aborting {point.value}: {entry.name} {result.outcome.value}"
                    )
                    report.aborted = True
                    report.results.extend(_skipped(e) for e in entries[index + 1:])
                    break
            elif result.outcome == HookOutcome.FAILURE:
                logger.warning(f"Hook {entry.name} failed (fail_ok): {result.output.strip()}")

        return report

    async def _execute(
        self,
        entry: HookEntry,
        options: RunOptions,
        context: Mapping[str, Any],
        cancel: Optional[asyncio.Event],
    ) -> tuple[HookResult, bool]:
        """Run one entry. Returns its result and whether it was cancelled."""
        timeout = options.timeout if entry.timeout is None else entry.timeout
        result = HookResult(
            name=entry.name,
            outcome=HookOutcome.SUCCESS,
            source=entry.source,
            action=entry.action.describe(),
            fail_ok=entry.fail_ok,
        )

        started = time.monotonic()
        task = asyncio.ensure_future(self._invoke(entry, context))
        waiters: set[asyncio.Future] = {task}
        cancel_waiter = None
        if cancel is not None:
            cancel_waiter = asyncio.ensure_future(cancel.wait())
            waiters.add(cancel_waiter)

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            # Caller's task was cancelled; stop the entry before propagating
            await self._stop(task)
            if _is_sync_callback(entry):
                self._abandon_pool()
            raise
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

        if task not in done:
            await self._stop(task)
            result.duration = time.monotonic() - started
            if _is_sync_callback(entry):
                logger.warning(
                    f"Hook {entry.name} is still running in its thread; "
                    f"abandoning the hook thread pool"
                )
                self._abandon_pool()
            if cancel_waiter is not None and cancel_waiter in done:
                result.outcome = HookOutcome.SKIPPED
                result.output = "cancelled"
                return result, True

            logger.error(f"Hook {entry.name} timed out after {timeout}s")
            result.outcome = HookOutcome.TIMED_OUT
            result.output = f"timed out after {timeout}s"
            return result, False

        result.duration = time.monotonic() - started
        if task.cancelled():
            # Queued on a pool that another run abandoned
            result.outcome = HookOutcome.FAILURE
            result.output = "cancelled before it started"
            return result, False
        try:
            returncode, output = task.result()
        except Exception as e:
            logger.error(f"Hook {entry.name} failed: {e}")
            result.outcome = HookOutcome.FAILURE
            result.output = f"{type(e).__name__}: {e}"
            return result, False

        result.returncode = returncode
        result.output = output
        if returncode != 0:
            result.outcome = HookOutcome.FAILURE
        return result, False

    def _sync_pool(self) -> ThreadPoolExecutor:
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(thread_name_prefix="blackdot-hook")
            return self._pool

    def _abandon_pool(self) -> None:
        """Drop the current pool without waiting for its running threads."""
        with self._pool_lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=False, cancel_futures=True)

    def close(self) -> None:
        """Release the sync callback pool. Running hook threads are not awaited."""
        self._abandon_pool()

    async def _invoke(self, entry: HookEntry, context: Mapping[str, Any]) -> tuple[int, str]:
        """Perform an entry's action. Returns (exit status, captured output)."""
        action = entry.action
        if isinstance(action, CallbackAction):
            payload = {**context, "point": entry.point.value, "name": entry.name}
            return await _call(action.callback, payload, self._sync_pool())

        env = _environment(entry, context)
        if isinstance(action, FileAction):
            proc = await asyncio.create_subprocess_exec(
                str(action.path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                env=env,
                start_new_session=True,
            )
        else:
            proc = await asyncio.create_subprocess_shell(
                action.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                env=env,
                start_new_session=True,
            )

        try:
            stdout, _ = await proc.communicate()
        except asyncio.CancelledError:
            await self._terminate(proc)
            raise

        return proc.returncode, stdout.decode(errors="replace") if stdout else ""

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        """SIGTERM the hook's process group, SIGKILL if it lingers."""
        if proc.returncode is not None:
            return
        try:
            _signal_group(proc, force=False)
            try:
                await asyncio.wait_for(proc.wait(), timeout=self.kill_grace)
            except asyncio.TimeoutError:
                logger.warning(f"Hook process {proc.pid} ignored SIGTERM, killing")
                _signal_group(proc, force=True)
                await proc.wait()
        except ProcessLookupError:
            pass

    async def _stop(self, task: asyncio.Future) -> None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Hook raised while stopping: {e}")

    def _record_error(self, entry: HookEntry, result: HookResult) -> None:
        """Record a hook error for API reporting."""
        self._recent_errors.append(
            HookError(
                hook_name=entry.name,
                point=entry.point.value,
                error=result.output.strip() or result.outcome.value,
                timestamp=datetime.now(timezone.utc).isoformat(),
            )
        )

    def get_recent_errors(self) -> list[dict]:
        """Return recent hook errors for API."""
        return [e.to_dict() for e in self._recent_errors]


def _skipped(entry: HookEntry, output: str = "") -> HookResult:
    return HookResult(
        name=entry.name,
        outcome=HookOutcome.SKIPPED,
        source=entry.source,
        action=entry.action.describe(),
        output=output,
        fail_ok=entry.fail_ok,
    )


def _is_sync_callback(entry: HookEntry) -> bool:
    action = entry.action
    return isinstance(action, CallbackAction) and not inspect.iscoroutinefunction(
        action.callback
    )


async def _call(
    callback: Callable[[dict], Any], payload: dict, pool: ThreadPoolExecutor
) -> tuple[int, str]:
    """Call a hook callback; sync functions run on the given pool."""
    if inspect.iscoroutinefunction(callback):
        value = await callback(payload)
    else:
        loop = asyncio.get_running_loop()
        value = await loop.run_in_executor(pool, callback, payload)
        if inspect.isawaitable(value):
            value = await value

    # False or a non-zero int is a failure; a string is captured output
    if value is None or value is True:
        return 0, ""
    if value is False:
        return 1, ""
    if isinstance(value, int):
        return value, ""
    return 0, str(value)


def _environment(entry: HookEntry, context: Mapping[str, Any]) -> dict[str, str]:
    env = dict(os.environ)
    for key, value in context.items():
        env[f"BLACKDOT_{str(key).upper()}"] = str(value)
    env["BLACKDOT_HOOK_POINT"] = entry.point.value
    env["BLACKDOT_HOOK_NAME"] = entry.name
    return env


def _signal_group(proc: asyncio.subprocess.Process, force: bool) -> None:
    if os.name == "posix":
        os.killpg(proc.pid, signal.SIGKILL if force else signal.SIGTERM)
    elif force:
        proc.kill()
    else:
        proc.terminate()
