"""
Feature registry and built-in feature catalog.
"""

from blackdot.core.features.catalog import all_presets, get_preset, preset_names
from blackdot.core.features.models import Feature, FeatureCategory, Preset
from blackdot.core.features.registry import FeatureRegistry

__all__ = [
    "Feature",
    "FeatureCategory",
    "FeatureRegistry",
    "Preset",
    "all_presets",
    "get_preset",
    "preset_names",
]
