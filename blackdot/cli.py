"""
blackdot CLI.

Usage:
    blackdot hook points                   # List hook points
    blackdot hook list POINT               # Hooks a run would execute, in order
    blackdot hook run POINT [--fail-fast] [--verbose] [--timeout S] [--json]
    blackdot hook test POINT [--json]      # Dry run (nothing is executed)
    blackdot hook add POINT SCRIPT [--name NAME]
    blackdot hook remove POINT NAME
    blackdot hook errors                   # Problems in hooks.json
    blackdot features list                 # Features and their state
    blackdot features enable NAME
    blackdot features disable NAME
    blackdot features preset [NAME]        # List presets, or apply one
    blackdot config show                   # Show config.yaml
    blackdot config set KEY VALUE
    blackdot config get KEY
    blackdot doctor                        # Diagnostics + doctor hooks
    blackdot server                        # Run the management API server
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Optional

from blackdot.config import (
    CONFIG_KEYS,
    ENV_PREFIX,
    Settings,
    _load_yaml_config,
    get_config_path,
    load_feature_state,
    save_feature_state,
    save_yaml_config,
)
from blackdot.core.features.registry import FeatureRegistry
from blackdot.core.hooks.engine import HookEngine
from blackdot.core.hooks.models import HookOutcome, RunReport
from blackdot.core.hooks.points import HookPoint
from blackdot.lib.errors import BlackdotError
from blackdot.lib.logger import setup_logging


# --- Helpers ---


def _get_settings() -> Settings:
    """Fresh settings for each invocation (env may differ between calls)."""
    return Settings()


def _load_features(settings: Settings) -> FeatureRegistry:
    features = FeatureRegistry()
    features.load_state(load_feature_state(settings.config_dir))
    return features


def _build_engine(settings: Settings) -> HookEngine:
    return HookEngine.from_settings(settings, _load_features(settings))


_OUTCOME_ICONS = {
    HookOutcome.SUCCESS: "+",
    HookOutcome.FAILURE: "x",
    HookOutcome.SKIPPED: "-",
    HookOutcome.TIMED_OUT: "!",
}


def _print_report(report: RunReport, show_output: bool = False) -> None:
    title = f"{report.point.value}" + (" (dry run)" if report.dry_run else "")
    print(f"\n{title}")
    print("-" * 40)

    if not report.results:
        print("  (no hooks)")
        return

    for result in report.results:
        icon = _OUTCOME_ICONS[result.outcome]
        note = " (fail_ok)" if result.fail_ok and result.outcome == HookOutcome.FAILURE else ""
        print(
            f"  [{icon}] {result.name}: {result.outcome.value}{note} "
            f"[{result.source.value}] {result.duration:.2f}s"
        )
        if report.dry_run:
            print(f"      would run: {result.action}")
        elif show_output and result.output.strip():
            for line in result.output.rstrip().splitlines():
                print(f"      {line}")

    if report.aborted:
        print("\n  Aborted: fail_fast stopped the run")
    hard = len(report.hard_failures)
    warn = len(report.warnings)
    print(f"\n  {len(report.results)} hooks, {hard} failures, {warn} warnings")


def _emit(report: RunReport, args: argparse.Namespace, show_output: bool = False) -> None:
    if getattr(args, "json", False):
        print(json.dumps(report.to_dict(), indent=2))
    else:
        _print_report(report, show_output)


# --- Hook commands ---


def cmd_hook(args: argparse.Namespace) -> None:
    """Hook management: points, list, run, test, add, remove, errors."""
    action = getattr(args, "action", None)
    settings = _get_settings()

    if action == "points":
        _hook_points()
        return
    if action is None:
        print("Usage: blackdot hook {points|list|run|test|add|remove|errors}")
        return

    engine = _build_engine(settings)

    if action == "list":
        _hook_list(engine, args.point)
    elif action == "run":
        _hook_run(engine, args)
    elif action == "test":
        _emit(asyncio.run(engine.test(args.point)), args)
    elif action == "add":
        target = engine.add_file_hook(args.point, Path(args.script), args.name)
        print(f"Added {target}")
    elif action == "remove":
        engine.remove_file_hook(args.point, args.name)
        print(f"Removed {args.point}/{args.name}")
    elif action == "errors":
        _hook_errors(engine)


def _hook_points() -> None:
    for point in HookPoint:
        print(point.value)


def _hook_list(engine: HookEngine, point: str) -> None:
    entries = engine.list_hooks(point)
    print(f"\n{point}")
    print("-" * 40)
    if not entries:
        print("  (no hooks)")
        return
    for entry in entries:
        flags = []
        if entry.fail_ok:
            flags.append("fail_ok")
        if entry.feature:
            flags.append(f"feature={entry.feature}")
        suffix = f" ({', '.join(flags)})" if flags else ""
        print(f"  {entry.ordinal:>4}  {entry.name} [{entry.source.value}]{suffix}")


def _hook_run(engine: HookEngine, args: argparse.Namespace) -> None:
    if not engine.enabled:
        print(f"Hooks are disabled ({ENV_PREFIX}HOOKS_DISABLED)")
        return

    report = asyncio.run(
        engine.run(
            args.point,
            fail_fast=True if args.fail_fast else None,
            verbose=True if args.verbose else None,
            timeout=args.timeout,
        )
    )
    _emit(report, args, show_output=args.verbose)
    if report.hard_failures:
        sys.exit(1)


def _hook_errors(engine: HookEngine) -> None:
    """Report hooks.json problems.

    Execution errors live in the process that ran the hooks; see
    `GET /api/hooks/errors` on the management server.
    """
    doc_errors = engine.config.errors()
    if not doc_errors:
        print(f"No problems in {engine.config.path.name}")
        return
    for key, message in doc_errors.items():
        print(f"  {engine.config.path.name} [{key}]: {message}")


# --- Feature commands ---


def cmd_features(args: argparse.Namespace) -> None:
    """Feature management: list, enable, disable, preset."""
    action = getattr(args, "action", None)
    settings = _get_settings()
    features = _load_features(settings)

    if action == "list":
        _features_list(features)
    elif action in ("enable", "disable"):
        getattr(features, action)(args.name)
        save_feature_state(settings.config_dir, features.snapshot())
        print(f"{args.name}: {action}d")
        parent = features.get(args.name).parent
        if action == "enable" and not features.enabled(args.name) and parent:
            print(f"Note: {args.name} stays inactive until '{parent}' is enabled")
    elif action == "preset":
        if args.name:
            features.apply_preset(args.name)
            save_feature_state(settings.config_dir, features.snapshot())
            print(f"Applied preset: {args.name}")
        else:
            for preset in features.presets():
                print(f"  {preset.name:<10} {preset.description}")
    else:
        print("Usage: blackdot features {list|enable|disable|preset}")


def _features_list(features: FeatureRegistry) -> None:
    current = None
    for feature in features.list_features():
        if feature.category != current:
            current = feature.category
            print(f"\n{current.value.title()}")
            print("-" * 40)
        if features.enabled(feature.name):
            state = "on"
        elif features.is_locally_enabled(feature.name):
            state = "blocked"
        else:
            state = "off"
        requires = f" (requires {feature.parent})" if feature.parent else ""
        print(f"  [{state:^7}] {feature.name}: {feature.description}{requires}")


# --- Config commands ---


def cmd_config(args: argparse.Namespace) -> None:
    """Config management: show, set, get."""
    action = getattr(args, "action", None)

    if action == "show":
        _config_show()
    elif action == "set":
        _config_set(args.key, args.value)
    elif action == "get":
        _config_get(args.key)
    else:
        print("Usage: blackdot config {show|set|get}")


def _config_show() -> None:
    """Show config.yaml with env overrides noted."""
    config_dir = _get_settings().config_dir
    config = _load_yaml_config(config_dir)

    print(f"\nConfig: {get_config_path(config_dir)}")
    print("-" * 40)

    if not config:
        print("  (empty)")
        return

    for key, value in config.items():
        if key == "features":
            enabled = sorted(k for k, v in (value or {}).items() if v)
            print(f"  features: {', '.join(enabled) or '(none enabled)'}")
            continue
        env_key = f"{ENV_PREFIX}{key.upper()}"
        override = f" (overridden by env: {env_key})" if os.environ.get(env_key) else ""
        print(f"  {key}: {value}{override}")


def _config_set(key: str, value: str) -> None:
    """Set a config value."""
    if key not in CONFIG_KEYS:
        print(f"Unknown key: {key}")
        print(f"Valid keys: {', '.join(sorted(CONFIG_KEYS))}")
        sys.exit(1)

    config_dir = _get_settings().config_dir
    config = _load_yaml_config(config_dir)

    # Type conversion
    parsed: object = value
    if key in ("port",):
        try:
            parsed = int(value)
        except ValueError:
            print(f"Error: {key} must be an integer, got '{value}'")
            sys.exit(1)
    elif key == "hooks_timeout":
        try:
            parsed = float(value)
        except ValueError:
            print(f"Error: {key} must be a number, got '{value}'")
            sys.exit(1)
    elif key in ("hooks_disabled", "hooks_verbose", "hooks_fail_fast"):
        parsed = value.lower() in ("true", "1", "yes")

    config[key] = parsed
    save_yaml_config(config_dir, config)
    print(f"Set {key} = {parsed}")


def _config_get(key: str) -> None:
    """Get a single config value."""
    config_dir = _get_settings().config_dir
    config = _load_yaml_config(config_dir)

    # Check env override first
    env_val = os.environ.get(f"{ENV_PREFIX}{key.upper()}")
    if env_val:
        print(env_val)
        return

    if key in config:
        print(config[key])
    else:
        print(f"Key '{key}' not set in config.yaml")
        sys.exit(1)


# --- Doctor ---


def cmd_doctor(args: argparse.Namespace) -> None:
    """Run diagnostics, then the doctor hook points."""
    settings = _get_settings()
    engine = _build_engine(settings)
    results = []

    def check(name: str, fn):
        try:
            ok, detail = fn()
            status = "PASS" if ok else "WARN"
            results.append((status, name, detail))
        except Exception as e:
            results.append(("FAIL", name, str(e)))

    def check_config_dir():
        if not settings.config_dir.exists():
            return False, f"{settings.config_dir} does not exist"
        return True, str(settings.config_dir)

    check("Config dir", check_config_dir)

    def check_hook_document():
        path = settings.hooks_document_path
        if not path.exists():
            return True, f"{path.name} not present"
        errors = engine.config.errors()
        if errors:
            return False, "; ".join(f"{k}: {v}" for k, v in errors.items())
        return True, str(path)

    check("Hook document", check_hook_document)

    def check_hooks_enabled():
        if engine.enabled:
            return True, "enabled"
        return False, f"disabled via {ENV_PREFIX}HOOKS_DISABLED"

    check("Hooks", check_hooks_enabled)

    reports = [
        asyncio.run(engine.run(point))
        for point in (HookPoint.PRE_DOCTOR, HookPoint.DOCTOR_CHECK, HookPoint.POST_DOCTOR)
    ]
    for report in reports:
        for result in report.results:
            if result.outcome == HookOutcome.SUCCESS:
                results.append(("PASS", f"hook {result.name}", report.point.value))
            elif result.hard_failure:
                results.append(("FAIL", f"hook {result.name}", result.output.strip() or result.outcome.value))
            else:
                results.append(("WARN", f"hook {result.name}", result.output.strip() or result.outcome.value))

    # Print results
    print("\nblackdot doctor")
    print("=" * 40)

    for status, name, detail in results:
        icon = {"PASS": "+", "WARN": "!", "FAIL": "x"}[status]
        print(f"  [{icon}] {name}: {detail}")

    passes = sum(1 for s, _, _ in results if s == "PASS")
    warns = sum(1 for s, _, _ in results if s == "WARN")
    fails = sum(1 for s, _, _ in results if s == "FAIL")
    print(f"\n  {passes} passed, {warns} warnings, {fails} failures")

    if fails:
        sys.exit(1)


def cmd_server(args: argparse.Namespace) -> None:
    from blackdot.server import main as server_main

    server_main()


def _positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value}") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0: {value}")
    return number


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="blackdot",
        description="blackdot - feature flags and lifecycle hooks",
    )
    parser.add_argument("--json", action="store_true", help="Print run reports as JSON")
    subparsers = parser.add_subparsers(dest="command")

    # hook subcommand
    hook_parser = subparsers.add_parser("hook", help="Hook management")
    hook_sub = hook_parser.add_subparsers(dest="action")
    hook_sub.add_parser("points", help="List hook points")
    list_parser = hook_sub.add_parser("list", help="List hooks for a point")
    list_parser.add_argument("point", help="Hook point")
    run_parser = hook_sub.add_parser("run", help="Run hooks for a point")
    run_parser.add_argument("point", help="Hook point")
    run_parser.add_argument("--fail-fast", action="store_true", help="Stop at the first failure")
    run_parser.add_argument("--verbose", "-v", action="store_true", help="Show hook output")
    run_parser.add_argument("--timeout", type=_positive_float, default=None, help="Per-hook timeout (seconds)")
    test_parser = hook_sub.add_parser("test", help="Dry run hooks for a point")
    test_parser.add_argument("point", help="Hook point")
    for sub in (run_parser, test_parser):
        sub.add_argument(
            "--json", action="store_true", default=argparse.SUPPRESS,
            help="Print the run report as JSON",
        )
    add_parser = hook_sub.add_parser("add", help="Add a file-based hook")
    add_parser.add_argument("point", help="Hook point")
    add_parser.add_argument("script", help="Script to copy into the point directory")
    add_parser.add_argument("--name", default=None, help="File name (defaults to the script name)")
    remove_parser = hook_sub.add_parser("remove", help="Remove a file-based hook")
    remove_parser.add_argument("point", help="Hook point")
    remove_parser.add_argument("name", help="Hook file name")
    hook_sub.add_parser("errors", help="Show problems in hooks.json")

    # features subcommand
    features_parser = subparsers.add_parser("features", help="Feature management")
    features_sub = features_parser.add_subparsers(dest="action")
    features_sub.add_parser("list", help="List features")
    enable_parser = features_sub.add_parser("enable", help="Enable a feature")
    enable_parser.add_argument("name", help="Feature name")
    disable_parser = features_sub.add_parser("disable", help="Disable a feature")
    disable_parser.add_argument("name", help="Feature name")
    preset_parser = features_sub.add_parser("preset", help="List or apply presets")
    preset_parser.add_argument("name", nargs="?", help="Preset to apply")

    # config subcommand
    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_sub = config_parser.add_subparsers(dest="action")
    config_sub.add_parser("show", help="Show current config")
    config_set_parser = config_sub.add_parser("set", help="Set a config value")
    config_set_parser.add_argument("key", help="Config key")
    config_set_parser.add_argument("value", help="Config value")
    config_get_parser = config_sub.add_parser("get", help="Get a config value")
    config_get_parser.add_argument("key", help="Config key")

    # doctor / server
    subparsers.add_parser("doctor", help="Run diagnostics")
    subparsers.add_parser("server", help="Run the management API server")

    args = parser.parse_args(argv)
    setup_logging()

    try:
        if args.command == "hook":
            cmd_hook(args)
        elif args.command == "features":
            cmd_features(args)
        elif args.command == "config":
            cmd_config(args)
        elif args.command == "doctor":
            cmd_doctor(args)
        elif args.command == "server":
            cmd_server(args)
        else:
            parser.print_help()
    except (BlackdotError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
