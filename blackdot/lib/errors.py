"""
Error types surfaced by the feature registry and hook engine.

Structural errors (unknown names, invalid hook points) are raised to the
caller. Hook execution failures are never raised; they are recorded in the
RunReport instead.
"""


class BlackdotError(Exception):
    """Base class for all blackdot errors."""


class UnknownFeatureError(BlackdotError, LookupError):
    """A feature name that is not registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"unknown feature: {name}")


class PresetNotFoundError(BlackdotError, LookupError):
    """A preset name that is not defined."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"unknown preset: {name}")


class InvalidHookPointError(BlackdotError, ValueError):
    """A hook point outside the known vocabulary."""

    def __init__(self, point: str):
        self.point = point
        super().__init__(f"invalid hook point: {point}")


class HookNotFoundError(BlackdotError, LookupError):
    """A file-based hook that does not exist in its point directory."""

    def __init__(self, point: str, name: str):
        self.point = point
        self.name = name
        super().__init__(f"hook not found: {point}/{name}")


class InvalidHookNameError(BlackdotError, ValueError):
    """A file hook name that would leave its point directory."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"invalid hook name: {name!r}")
