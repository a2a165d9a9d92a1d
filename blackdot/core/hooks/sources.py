"""
Hook sources: each produces the entries of one origin for a hook point.

- FileSource:     executables in <hooks_dir>/<point>/, ordered by numeric prefix
- FunctionSource: callbacks registered in-process
- ConfigSource:   shell commands declared in hooks.json

Sources are re-scanned on every call, so an entry is always as fresh as
its origin. Scan problems are logged and yield zero entries.
"""

import json
import logging
import os
import re
import shutil
import stat
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import TypeAdapter, ValidationError

from blackdot.core.hooks.models import (
    CallbackAction,
    CommandAction,
    FileAction,
    HookEntry,
    HookSettings,
    HookSpec,
    SourceKind,
)
from blackdot.core.hooks.points import HookPoint, parse_point
from blackdot.lib.errors import HookNotFoundError, InvalidHookNameError

logger = logging.getLogger(__name__)

# Ordinal for files without a numeric prefix
DEFAULT_FILE_ORDINAL = 50

_PREFIX_RE = re.compile(r"^(\d+)")
_EXEC_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


class HookSource(ABC):
    """A single origin of hook entries."""

    kind: SourceKind

    @abstractmethod
    def entries(self, point: HookPoint) -> list[HookEntry]:
        """Return this source's entries for a point, with ordinals set."""


# ---------------------------------------------------------------------------
# File-based hooks
# ---------------------------------------------------------------------------


def ordinal_from_name(filename: str) -> int:
    """Leading integer of a filename ("10-fix-perms.sh" -> 10)."""
    match = _PREFIX_RE.match(filename)
    if match:
        return int(match.group(1))
    return DEFAULT_FILE_ORDINAL


class FileSource(HookSource):
    """Executables placed under a point-named directory."""

    kind = SourceKind.FILE

    def __init__(self, hooks_dir: Path):
        self.hooks_dir = hooks_dir

    def point_dir(self, point: HookPoint) -> Path:
        return self.hooks_dir / point.value

    def entries(self, point: HookPoint) -> list[HookEntry]:
        directory = self.point_dir(point)
        if not directory.is_dir():
            return []

        try:
            children = sorted(directory.iterdir())
        except OSError as e:
            logger.warning(f"Cannot read hook directory {directory}: {e}")
            return []

        entries: list[HookEntry] = []
        for path in children:
            if path.name.startswith(".") or not path.is_file():
                continue
            if not os.access(path, os.X_OK):
                logger.warning(f"Skipping non-executable hook: {path}")
                continue

            entries.append(
                HookEntry(
                    point=point,
                    name=path.name,
                    ordinal=ordinal_from_name(path.name),
                    action=FileAction(path=path),
                    source=self.kind,
                )
            )
        return entries

    def add(self, point: HookPoint, script: Path, name: Optional[str] = None) -> Path:
        """Copy a script into the point directory and make it executable."""
        if not script.is_file():
            raise FileNotFoundError(f"Hook script not found: {script}")

        target = self._target(point, name or script.name)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(script, target)
        target.chmod(target.stat().st_mode | _EXEC_BITS)

        logger.info(f"Added hook {target.name} to {point.value}")
        return target

    def remove(self, point: HookPoint, name: str) -> None:
        target = self._target(point, name)
        if not target.is_file():
            raise HookNotFoundError(point.value, name)
        target.unlink()
        logger.info(f"Removed hook {name} from {point.value}")

    def _target(self, point: HookPoint, name: str) -> Path:
        """Path of a hook file, which must sit directly in the point directory."""
        separators = {"/", os.sep, os.altsep} - {None}
        if not name or name.startswith(".") or any(s in name for s in separators):
            raise InvalidHookNameError(name)
        return self.point_dir(point) / name


# ---------------------------------------------------------------------------
# In-process callbacks
# ---------------------------------------------------------------------------


class FunctionSource(HookSource):
    """Callbacks registered at runtime.

    Without an explicit ordinal, an entry's ordinal is its registration
    order within the point.
    """

    kind = SourceKind.FUNCTION

    def __init__(self):
        self._entries: dict[HookPoint, dict[str, HookEntry]] = {}
        self._registrations: dict[HookPoint, int] = {}
        self._lock = threading.Lock()

    def register(
        self,
        point: "str | HookPoint",
        name: str,
        callback: Callable[[dict], Any],
        ordinal: Optional[int] = None,
        fail_ok: bool = False,
        feature: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> HookEntry:
        """Register (or replace) a callback for a point under a name."""
        point = parse_point(point)
        if not callable(callback):
            raise TypeError(f"Hook callback for {name} is not callable")
        if timeout is not None and timeout <= 0:
            raise ValueError(f"Hook timeout for {name} must be positive, got {timeout}")

        with self._lock:
            order = self._registrations.get(point, 0)
            self._registrations[point] = order + 1

            entry = HookEntry(
                point=point,
                name=name,
                ordinal=order if ordinal is None else ordinal,
                action=CallbackAction(callback=callback),
                source=self.kind,
                fail_ok=fail_ok,
                feature=feature,
                timeout=timeout,
            )
            self._entries.setdefault(point, {})[name] = entry

        logger.debug(f"Registered function hook {name} for {point.value}")
        return entry

    def unregister(self, point: "str | HookPoint", name: str) -> bool:
        point = parse_point(point)
        with self._lock:
            return self._entries.get(point, {}).pop(name, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._registrations.clear()

    def entries(self, point: HookPoint) -> list[HookEntry]:
        with self._lock:
            return list(self._entries.get(point, {}).values())


# ---------------------------------------------------------------------------
# Declarative hooks.json
# ---------------------------------------------------------------------------

_SPEC_LIST = TypeAdapter(list[HookSpec])


@dataclass
class HookDocument:
    """Parsed hooks.json. Parse failures are kept per point in `errors`."""

    entries: dict[HookPoint, list[HookEntry]] = field(default_factory=dict)
    settings: HookSettings = field(default_factory=HookSettings)
    errors: dict[str, str] = field(default_factory=dict)


def parse_hook_document(raw: Any) -> HookDocument:
    """Build a HookDocument from decoded JSON, isolating failures per point."""
    doc = HookDocument()
    if not isinstance(raw, dict):
        doc.errors["<document>"] = "hook document is not an object"
        return doc

    settings = raw.get("settings")
    if settings is not None:
        try:
            doc.settings = HookSettings.model_validate(settings)
        except ValidationError as e:
            doc.errors["settings"] = _summarize(e)

    hooks = raw.get("hooks") or {}
    if not isinstance(hooks, dict):
        doc.errors["hooks"] = "`hooks` is not an object"
        return doc

    for key, items in hooks.items():
        try:
            point = parse_point(key)
        except ValueError as e:
            doc.errors[key] = str(e)
            continue

        try:
            specs = _SPEC_LIST.validate_python(items)
        except ValidationError as e:
            doc.errors[key] = _summarize(e)
            continue

        seen: set[str] = set()
        entries: list[HookEntry] = []
        for position, spec in enumerate(specs):
            if spec.name in seen:
                logger.warning(f"Duplicate config hook {spec.name} in {key}, keeping the first")
                continue
            seen.add(spec.name)
            entries.append(
                HookEntry(
                    point=point,
                    name=spec.name,
                    ordinal=position if spec.priority is None else spec.priority,
                    action=CommandAction(command=spec.command),
                    source=SourceKind.CONFIG,
                    enabled=spec.enabled,
                    fail_ok=spec.fail_ok,
                    feature=spec.feature,
                    timeout=spec.timeout,
                )
            )
        doc.entries[point] = entries

    return doc


def _summarize(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item["loc"])
        parts.append(f"{loc}: {item['msg']}" if loc else item["msg"])
    return "; ".join(parts)


class ConfigSource(HookSource):
    """Shell commands declared in a JSON document.

    Example:

        {
          "hooks": {
            "post_vault_pull": [
              {"name": "ssh-add", "command": "ssh-add -q", "fail_ok": true}
            ]
          },
          "settings": {"fail_fast": false, "verbose": false, "timeout": 30}
        }
    """

    kind = SourceKind.CONFIG

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> HookDocument:
        if not self.path.exists():
            return HookDocument()

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read hook document {self.path}: {e}")
            return HookDocument(errors={"<document>": str(e)})

        doc = parse_hook_document(raw)
        for key, message in doc.errors.items():
            logger.warning(f"Ignoring {key} in {self.path.name}: {message}")
        return doc

    def entries(self, point: HookPoint) -> list[HookEntry]:
        return self.load().entries.get(point, [])

    def settings(self) -> HookSettings:
        return self.load().settings

    def errors(self) -> dict[str, str]:
        return self.load().errors
