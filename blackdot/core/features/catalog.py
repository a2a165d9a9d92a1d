"""
Built-in feature table and presets.

Child features list the parent they require; a child is inert unless its
parent is enabled too.
"""

from typing import Optional

from blackdot.core.features.models import Feature, FeatureCategory, Preset

CORE = FeatureCategory.CORE
OPTIONAL = FeatureCategory.OPTIONAL
INTEGRATION = FeatureCategory.INTEGRATION

BUILTIN_FEATURES: tuple[Feature, ...] = (
    # Core
    Feature("shell", "ZSH shell configuration and prompt", CORE),

    # Optional
    Feature("workspace_symlink", "Symlink /workspace to the workspace directory", OPTIONAL),
    Feature("claude_integration", "Claude Code integration and hooks", OPTIONAL),
    Feature("vault", "Multi-backend secret management", OPTIONAL),
    Feature("templates", "Machine-specific configuration templates", OPTIONAL),
    Feature("hooks", "Lifecycle hooks for custom behavior", OPTIONAL),
    Feature("config_layers", "Layered configuration resolution", OPTIONAL),
    Feature("modern_cli", "Modern CLI replacements (eza, bat, ripgrep, fzf)", OPTIONAL),
    Feature("aws_helpers", "AWS SSO profile helpers", OPTIONAL),
    Feature("cdk_tools", "AWS CDK aliases and helpers", OPTIONAL, parent="aws_helpers"),
    Feature("rust_tools", "Rust/Cargo aliases and helpers", OPTIONAL),
    Feature("go_tools", "Go aliases and helpers", OPTIONAL),
    Feature("python_tools", "Python/uv aliases and helpers", OPTIONAL),
    Feature("ssh_tools", "SSH config, key and tunnel helpers", OPTIONAL),
    Feature("docker_tools", "Docker container and compose helpers", OPTIONAL),
    Feature("nvm_integration", "Lazy-loaded NVM for Node.js", OPTIONAL),
    Feature("sdkman_integration", "Lazy-loaded SDKMAN for Java", OPTIONAL),
    Feature("git_hooks", "Git safety hooks (pre-commit, pre-push)", OPTIONAL),
    Feature("encryption", "Age encryption for sensitive files", OPTIONAL),
    Feature("macos_settings", "macOS system preferences", OPTIONAL),

    # Integration
    Feature("dotclaude", "dotclaude profile management", INTEGRATION, parent="claude_integration"),
    Feature("drift_check", "Detect drift between local files and vault", INTEGRATION, parent="vault"),
    Feature("backup_auto", "Automatic backups before destructive operations", INTEGRATION, parent="vault"),
    Feature("health_metrics", "Health check metrics collection", INTEGRATION),
)

_MINIMAL = ("shell", "config_layers")

_DEVELOPER = _MINIMAL + (
    "vault",
    "aws_helpers",
    "git_hooks",
    "modern_cli",
    "hooks",
    "ssh_tools",
    "python_tools",
    "docker_tools",
)

_CLAUDE = _MINIMAL + (
    "workspace_symlink",
    "claude_integration",
    "vault",
    "git_hooks",
    "hooks",
    "modern_cli",
)

BUILTIN_PRESETS: tuple[Preset, ...] = (
    Preset("minimal", "Shell config only (fastest startup)", _MINIMAL),
    Preset("developer", "Vault, AWS, Git hooks, modern CLI tools", _DEVELOPER),
    Preset("claude", "Claude Code integration + vault + git hooks", _CLAUDE),
    Preset("full", "All features enabled", tuple(f.name for f in BUILTIN_FEATURES)),
)

_PRESETS_BY_NAME = {p.name: p for p in BUILTIN_PRESETS}


def get_preset(name: str) -> Optional[Preset]:
    """Look up a built-in preset by name."""
    return _PRESETS_BY_NAME.get(name)


def all_presets() -> list[Preset]:
    """Return the built-in presets in display order."""
    return list(BUILTIN_PRESETS)


def preset_names() -> list[str]:
    return [p.name for p in BUILTIN_PRESETS]
