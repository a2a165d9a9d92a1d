"""
Feature registry: named capability toggles with parent gating.

A feature is effectively active only when its own flag and the flag of
every ancestor in its parent chain are set. Dangling parents are a
configuration error and make the child inactive, never a crash.

Reads happen from concurrent hook runs; writes (enable/disable/preset)
are rare. A single lock guards the enabled map.
"""

import logging
import threading
from typing import Iterable, Mapping, Optional

from blackdot.core.features.catalog import BUILTIN_FEATURES, BUILTIN_PRESETS
from blackdot.core.features.models import Feature, FeatureCategory, Preset
from blackdot.lib.errors import PresetNotFoundError, UnknownFeatureError

logger = logging.getLogger(__name__)


class FeatureRegistry:
    """In-memory table of feature name -> enabled flag."""

    def __init__(
        self,
        features: Iterable[Feature] = BUILTIN_FEATURES,
        presets: Iterable[Preset] = BUILTIN_PRESETS,
    ):
        self._features: dict[str, Feature] = {f.name: f for f in features}
        self._presets: dict[str, Preset] = {p.name: p for p in presets}
        self._enabled: dict[str, bool] = {
            name: f.category == FeatureCategory.CORE
            for name, f in self._features.items()
        }
        self._lock = threading.RLock()

        for feature in self._features.values():
            if feature.parent and feature.parent not in self._features:
                logger.warning(
                    f"Feature {feature.name} requires unknown parent "
                    f"{feature.parent}; it will never be active"
                )

    # --- Queries ---

    def get(self, name: str) -> Feature:
        try:
            return self._features[name]
        except KeyError:
            raise UnknownFeatureError(name) from None

    def list_features(self) -> list[Feature]:
        return list(self._features.values())

    def presets(self) -> list[Preset]:
        return list(self._presets.values())

    def is_locally_enabled(self, name: str) -> bool:
        """Return the feature's own flag, ignoring its parents."""
        with self._lock:
            if name not in self._enabled:
                raise UnknownFeatureError(name)
            return self._enabled[name]

    def enabled(self, name: str) -> bool:
        """Return whether the feature is effectively active.

        Walks the parent chain; an unknown or disabled ancestor (or an
        unknown feature) yields False.
        """
        with self._lock:
            seen: set[str] = set()
            current: Optional[str] = name
            while current is not None:
                if current in seen:
                    logger.warning(f"Feature parent cycle at {current}")
                    return False
                seen.add(current)
                if not self._enabled.get(current, False):
                    return False
                current = self._features[current].parent
            return True

    def snapshot(self) -> dict[str, bool]:
        """Copy of the local enabled flags."""
        with self._lock:
            return dict(self._enabled)

    # --- Mutations ---

    def enable(self, name: str) -> None:
        with self._lock:
            if name not in self._enabled:
                raise UnknownFeatureError(name)
            self._enabled[name] = True

    def disable(self, name: str) -> None:
        with self._lock:
            if name not in self._enabled:
                raise UnknownFeatureError(name)
            self._enabled[name] = False

    def reset(self) -> None:
        """Disable every feature."""
        with self._lock:
            for name in self._enabled:
                self._enabled[name] = False

    def apply_preset(self, name: str) -> None:
        """Disable everything, then enable exactly the preset's features.

        All-or-nothing: an unknown preset or an unknown feature inside it
        leaves the registry untouched.
        """
        preset = self._presets.get(name)
        if preset is None:
            raise PresetNotFoundError(name)

        with self._lock:
            for feature in preset.features:
                if feature not in self._features:
                    raise UnknownFeatureError(feature)

            self.reset()
            for feature in preset.features:
                self._enabled[feature] = True

        logger.info(f"Applied preset {name} ({len(preset.features)} features)")

    def load_state(self, state: Mapping[str, bool]) -> None:
        """Apply persisted flags. Unknown names are skipped with a warning."""
        with self._lock:
            for name, value in state.items():
                if name not in self._enabled:
                    logger.warning(f"Ignoring persisted state for unknown feature {name}")
                    continue
                self._enabled[name] = bool(value)
