"""
Tests for hook resolution: precedence, gating and ordering.
"""

import json

import pytest

from blackdot.core.features import Feature, FeatureRegistry
from blackdot.core.hooks.models import SourceKind
from blackdot.core.hooks.points import HookPoint
from blackdot.core.hooks.registry import HookRegistry
from blackdot.core.hooks.sources import ConfigSource, FileSource, FunctionSource, HookSource
from blackdot.lib.errors import InvalidHookPointError


@pytest.fixture
def sources(hooks_dir, hooks_file):
    return FileSource(hooks_dir), FunctionSource(), ConfigSource(hooks_file)


@pytest.fixture
def registry(sources, features):
    return HookRegistry(list(sources), features)


def write_config(path, hooks):
    path.write_text(json.dumps({"hooks": hooks}))


class TestOrdering:
    def test_files_sorted_by_prefix(self, registry, hooks_dir, make_script):
        point_dir = hooks_dir / "post_vault_pull"
        make_script(point_dir, "90-c.sh", "exit 0")
        make_script(point_dir, "b.sh", "exit 0")
        make_script(point_dir, "10-a.sh", "exit 0")

        names = [e.name for e in registry.resolve("post_vault_pull")]
        assert names == ["10-a.sh", "b.sh", "90-c.sh"]

    def test_ties_broken_by_name(self, registry, sources):
        functions = sources[1]
        functions.register("shell_init", "zeta", lambda ctx: None, ordinal=1)
        functions.register("shell_init", "alpha", lambda ctx: None, ordinal=1)

        names = [e.name for e in registry.resolve("shell_init")]
        assert names == ["alpha", "zeta"]

    def test_sources_interleave_by_ordinal(self, registry, sources, hooks_dir,
                                           hooks_file, make_script):
        make_script(hooks_dir / "shell_init", "20-file.sh", "exit 0")
        sources[1].register("shell_init", "fn", lambda ctx: None, ordinal=30)
        write_config(hooks_file, {"shell_init": [
            {"name": "cfg", "command": "true", "priority": 10},
        ]})

        names = [e.name for e in registry.resolve(HookPoint.SHELL_INIT)]
        assert names == ["cfg", "20-file.sh", "fn"]

    def test_resolve_is_deterministic(self, registry, hooks_dir, make_script):
        for name in ("30-x", "10-y", "20-z"):
            make_script(hooks_dir / "pre_install", name, "exit 0")
        assert registry.resolve("pre_install") == registry.resolve("pre_install")

    def test_returns_tuple(self, registry):
        assert registry.resolve("pre_install") == ()


class TestPrecedence:
    def test_file_overrides_config(self, registry, hooks_dir, hooks_file, make_script):
        make_script(hooks_dir / "post_install", "setup", "exit 0")
        write_config(hooks_file, {"post_install": [
            {"name": "setup", "command": "echo from-config"},
        ]})

        (entry,) = registry.resolve("post_install")
        assert entry.source == SourceKind.FILE

    def test_file_overrides_function(self, registry, sources, hooks_dir, make_script):
        make_script(hooks_dir / "post_install", "setup", "exit 0")
        sources[1].register("post_install", "setup", lambda ctx: None)

        (entry,) = registry.resolve("post_install")
        assert entry.source == SourceKind.FILE

    def test_function_overrides_config(self, registry, sources, hooks_file):
        sources[1].register("post_install", "setup", lambda ctx: None)
        write_config(hooks_file, {"post_install": [{"name": "setup", "command": "true"}]})

        (entry,) = registry.resolve("post_install")
        assert entry.source == SourceKind.FUNCTION

    def test_precedence_independent_of_source_order(self, sources, hooks_dir, make_script):
        files, functions, config = sources
        make_script(hooks_dir / "post_install", "setup", "exit 0")
        functions.register("post_install", "setup", lambda ctx: None)

        registry = HookRegistry([config, functions, files])
        (entry,) = registry.resolve("post_install")
        assert entry.source == SourceKind.FILE

    def test_names_unique_per_point(self, registry, sources, hooks_dir, hooks_file,
                                    make_script):
        make_script(hooks_dir / "shell_init", "greet", "exit 0")
        sources[1].register("shell_init", "greet", lambda ctx: None)
        write_config(hooks_file, {"shell_init": [{"name": "greet", "command": "true"}]})

        names = [e.name for e in registry.resolve("shell_init")]
        assert names == ["greet"]


class TestGating:
    def test_disabled_config_entry_dropped(self, registry, hooks_file):
        write_config(hooks_file, {"shell_init": [
            {"name": "off", "command": "true", "enabled": False},
            {"name": "on", "command": "true"},
        ]})
        assert [e.name for e in registry.resolve("shell_init")] == ["on"]

    def test_disabled_config_does_not_resurrect_lower_source(self, registry, sources,
                                                            hooks_file):
        # The config entry loses to the function entry, so the function wins
        sources[1].register("shell_init", "greet", lambda ctx: None)
        write_config(hooks_file, {"shell_init": [
            {"name": "greet", "command": "true", "enabled": False},
        ]})
        (entry,) = registry.resolve("shell_init")
        assert entry.source == SourceKind.FUNCTION

    def test_feature_gated_entry(self, registry, sources, features):
        sources[1].register("post_vault_pull", "sync", lambda ctx: None, feature="vault")

        assert registry.resolve("post_vault_pull") == ()
        features.enable("vault")
        assert [e.name for e in registry.resolve("post_vault_pull")] == ["sync"]

    def test_feature_gating_follows_parent(self, registry, sources, features):
        sources[1].register("post_vault_pull", "drift", lambda ctx: None,
                            feature="drift_check")
        features.enable("drift_check")
        assert registry.resolve("post_vault_pull") == ()

        features.enable("vault")
        assert len(registry.resolve("post_vault_pull")) == 1

    def test_no_feature_registry_means_ungated(self, sources):
        sources[1].register("shell_init", "x", lambda ctx: None, feature="vault")
        registry = HookRegistry(list(sources))
        assert len(registry.resolve("shell_init")) == 1

    def test_custom_feature_registry(self, sources):
        features = FeatureRegistry([Feature("mine")], [])
        sources[1].register("shell_init", "x", lambda ctx: None, feature="mine")
        registry = HookRegistry(list(sources), features)
        assert registry.resolve("shell_init") == ()


class TestErrors:
    def test_invalid_point(self, registry):
        with pytest.raises(InvalidHookPointError):
            registry.resolve("after_lunch")

    def test_failing_source_is_isolated(self, sources):
        class BrokenSource(HookSource):
            kind = SourceKind.CONFIG

            def entries(self, point):
                raise RuntimeError("boom")

        files, functions, _ = sources
        functions.register("shell_init", "ok", lambda ctx: None)
        registry = HookRegistry([files, functions, BrokenSource()])

        assert [e.name for e in registry.resolve("shell_init")] == ["ok"]
