"""
Hook registry: merges all sources into one ordered execution list.
"""

import logging
from typing import Iterable, Optional

from blackdot.core.features.registry import FeatureRegistry
from blackdot.core.hooks.models import SOURCE_PRECEDENCE, HookEntry
from blackdot.core.hooks.points import HookPoint, parse_point
from blackdot.core.hooks.sources import HookSource

logger = logging.getLogger(__name__)


class HookRegistry:
    """Resolves the entries to run for a hook point.

    Resolution is recomputed on every call:
    1. collect entries from every source, highest precedence first
       (file > function > config)
    2. drop later entries whose name is already taken for the point
    3. drop entries disabled by config
    4. drop entries whose owning feature is not effectively active
    5. sort by (ordinal, name)
    """

    def __init__(
        self,
        sources: Iterable[HookSource],
        features: Optional[FeatureRegistry] = None,
    ):
        self.sources = sorted(sources, key=lambda s: SOURCE_PRECEDENCE[s.kind])
        self.features = features

    def collect(self, point: HookPoint) -> list[HookEntry]:
        """Entries after precedence override, before gating and sorting."""
        merged: list[HookEntry] = []
        taken: set[str] = set()

        for source in self.sources:
            try:
                listed = source.entries(point)
            except Exception as e:
                logger.error(
                    f"Hook source {source.kind.value} failed for {point.value}: {e}"
                )
                continue

            for entry in listed:
                if entry.name in taken:
                    logger.debug(
                        f"Hook {entry.name} from {entry.source.value} overridden "
                        f"for {point.value}"
                    )
                    continue
                taken.add(entry.name)
                merged.append(entry)

        return merged

    def resolve(self, point: "str | HookPoint") -> tuple[HookEntry, ...]:
        """Return the ordered, gated entries for a point.

        Raises InvalidHookPointError for names outside the vocabulary,
        before any source is queried.
        """
        point = parse_point(point)

        resolved = [
            entry for entry in self.collect(point)
            if entry.enabled and self._feature_active(entry)
        ]
        resolved.sort(key=lambda e: e.sort_key)
        return tuple(resolved)

    def _feature_active(self, entry: HookEntry) -> bool:
        if not entry.feature:
            return True
        if self.features is None:
            return True
        active = self.features.enabled(entry.feature)
        if not active:
            logger.debug(
                f"Hook {entry.name} gated off by feature {entry.feature}"
            )
        return active
