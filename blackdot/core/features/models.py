"""
Feature and preset models.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class FeatureCategory(str, Enum):
    """Grouping used when listing features."""

    CORE = "core"
    OPTIONAL = "optional"
    INTEGRATION = "integration"


@dataclass(frozen=True)
class Feature:
    """A named capability toggle, optionally gated by a parent feature."""

    name: str
    description: str = ""
    category: FeatureCategory = FeatureCategory.OPTIONAL
    parent: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "parent": self.parent,
        }


@dataclass(frozen=True)
class Preset:
    """A named set of features enabled together."""

    name: str
    description: str
    features: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "features": list(self.features),
        }
