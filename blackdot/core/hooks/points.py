"""
Hook point vocabulary.

All lifecycle points at which blackdot runs hooks.
"""

from enum import Enum

from blackdot.lib.errors import InvalidHookPointError


class HookPoint(str, Enum):
    """Lifecycle points that can trigger hooks."""

    # Install / bootstrap lifecycle
    PRE_INSTALL = "pre_install"
    POST_INSTALL = "post_install"
    PRE_BOOTSTRAP = "pre_bootstrap"
    POST_BOOTSTRAP = "post_bootstrap"
    PRE_UPGRADE = "pre_upgrade"
    POST_UPGRADE = "post_upgrade"

    # Vault operations
    PRE_VAULT_PULL = "pre_vault_pull"
    POST_VAULT_PULL = "post_vault_pull"
    PRE_VAULT_PUSH = "pre_vault_push"
    POST_VAULT_PUSH = "post_vault_push"

    # Doctor
    PRE_DOCTOR = "pre_doctor"
    POST_DOCTOR = "post_doctor"
    DOCTOR_CHECK = "doctor_check"

    # Shell lifecycle
    SHELL_INIT = "shell_init"
    SHELL_EXIT = "shell_exit"
    DIRECTORY_CHANGE = "directory_change"

    # Setup wizard
    PRE_SETUP_PHASE = "pre_setup_phase"
    POST_SETUP_PHASE = "post_setup_phase"
    SETUP_COMPLETE = "setup_complete"

    # Templates
    PRE_TEMPLATE_RENDER = "pre_template_render"
    POST_TEMPLATE_RENDER = "post_template_render"

    # Encryption
    PRE_ENCRYPT = "pre_encrypt"
    POST_DECRYPT = "post_decrypt"


def parse_point(point: "str | HookPoint") -> HookPoint:
    """Coerce a string to a HookPoint, rejecting names outside the vocabulary."""
    if isinstance(point, HookPoint):
        return point
    try:
        return HookPoint(point)
    except ValueError:
        raise InvalidHookPointError(str(point)) from None
