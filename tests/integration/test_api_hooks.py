"""
Integration tests for the hooks, features and health API.
"""

import json
import stat

import pytest


def _script(directory, name, body):
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text("#!/bin/sh\n" + body + "\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return path


# ---------------------------------------------------------------------------
# Server basics
# ---------------------------------------------------------------------------


def test_root(test_client):
    response = test_client.get("/")
    assert response.status_code == 200
    assert response.json()["name"] == "blackdot"


def test_health(test_client):
    response = test_client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_health_detailed(test_client, hooks_dir):
    _script(hooks_dir / "shell_init", "10-greet", "echo hi")

    data = test_client.get("/api/health?detailed=true").json()

    assert data["hooks"]["enabled"] is True
    assert data["hooks"]["hooks_count"] == 1
    assert data["hooks"]["points_registered"] == ["shell_init"]


# ---------------------------------------------------------------------------
# Hooks
# ---------------------------------------------------------------------------


def test_list_points(test_client):
    data = test_client.get("/api/hooks/points").json()
    assert len(data["points"]) == 23
    assert "post_vault_pull" in data["points"]


def test_list_hooks_ordered(test_client, hooks_dir, hooks_file):
    _script(hooks_dir / "post_vault_pull", "90-last", "exit 0")
    _script(hooks_dir / "post_vault_pull", "10-first", "exit 0")
    hooks_file.write_text(json.dumps({"hooks": {"post_vault_pull": [
        {"name": "middle", "command": "true", "priority": 50},
    ]}}))

    data = test_client.get("/api/hooks/post_vault_pull").json()

    assert [h["name"] for h in data["hooks"]] == ["10-first", "middle", "90-last"]
    assert [h["source"] for h in data["hooks"]] == ["file", "config", "file"]


def test_invalid_point(test_client):
    response = test_client.get("/api/hooks/after_lunch")
    assert response.status_code == 400
    assert "invalid hook point" in response.json()["message"]


def test_run_point(test_client, hooks_dir):
    _script(hooks_dir / "post_install", "10-ctx", 'echo "profile=$BLACKDOT_PROFILE"')

    response = test_client.post(
        "/api/hooks/post_install/run", json={"context": {"profile": "work"}}
    )

    assert response.status_code == 200
    report = response.json()
    assert report["ok"] is True
    assert report["results"][0]["outcome"] == "success"
    assert "profile=work" in report["results"][0]["output"]


def test_run_without_body(test_client):
    response = test_client.post("/api/hooks/pre_install/run")
    assert response.status_code == 200
    assert response.json()["results"] == []


def test_run_fail_fast_and_errors(test_client, hooks_dir):
    _script(hooks_dir / "pre_vault_push", "10-bad", "echo nope; exit 1")
    _script(hooks_dir / "pre_vault_push", "20-next", "exit 0")

    report = test_client.post(
        "/api/hooks/pre_vault_push/run", json={"fail_fast": True}
    ).json()

    assert report["aborted"] is True
    assert [r["outcome"] for r in report["results"]] == ["failure", "skipped"]

    errors = test_client.get("/api/hooks/errors").json()["errors"]
    assert errors[-1]["hook_name"] == "10-bad"
    assert "nope" in errors[-1]["error"]


def test_run_rejects_bad_timeout(test_client):
    response = test_client.post("/api/hooks/shell_init/run", json={"timeout": 0})
    assert response.status_code == 422


def test_test_point_is_dry_run(test_client, hooks_dir, tmp_path):
    marker = tmp_path / "ran"
    _script(hooks_dir / "pre_install", "10-touch", f"touch {marker}")

    report = test_client.post("/api/hooks/pre_install/test").json()

    assert report["dry_run"] is True
    assert report["results"][0]["outcome"] == "skipped"
    assert not marker.exists()


# ---------------------------------------------------------------------------
# Features
# ---------------------------------------------------------------------------


def test_list_features(test_client):
    data = test_client.get("/api/features").json()
    by_name = {f["name"]: f for f in data["features"]}
    assert by_name["shell"]["active"] is True
    assert by_name["drift_check"]["parent"] == "vault"


def test_enable_child_before_parent(test_client):
    data = test_client.post("/api/features/drift_check/enable").json()
    assert data["enabled"] is True
    assert data["active"] is False

    test_client.post("/api/features/vault/enable")
    data = test_client.get("/api/features").json()
    by_name = {f["name"]: f for f in data["features"]}
    assert by_name["drift_check"]["active"] is True


def test_enable_unknown_feature(test_client):
    response = test_client.post("/api/features/nope/enable")
    assert response.status_code == 404
    assert response.json()["message"] == "unknown feature: nope"


def test_feature_state_persisted(test_client, config_dir):
    test_client.post("/api/features/vault/enable")

    from blackdot.config import load_feature_state

    assert load_feature_state(config_dir)["vault"] is True


def test_feature_gates_hook(test_client, hooks_file):
    hooks_file.write_text(json.dumps({"hooks": {"post_vault_pull": [
        {"name": "sync", "command": "true", "feature": "vault"},
    ]}}))

    assert test_client.get("/api/hooks/post_vault_pull").json()["hooks"] == []

    test_client.post("/api/features/vault/enable")
    hooks = test_client.get("/api/hooks/post_vault_pull").json()["hooks"]
    assert [h["name"] for h in hooks] == ["sync"]


def test_presets(test_client):
    data = test_client.get("/api/presets").json()
    assert [p["name"] for p in data["presets"]] == ["minimal", "developer", "claude", "full"]


def test_apply_preset(test_client):
    test_client.post("/api/features/rust_tools/enable")

    data = test_client.post("/api/presets/minimal/apply").json()

    assert data["preset"] == "minimal"
    assert data["features"]["shell"] is True
    assert data["features"]["rust_tools"] is False


@pytest.mark.parametrize("name", ["test", "nonexistent"])
def test_apply_unknown_preset(test_client, name):
    before = test_client.get("/api/features").json()

    response = test_client.post(f"/api/presets/{name}/apply")

    assert response.status_code == 404
    assert response.json()["message"] == f"unknown preset: {name}"
    assert test_client.get("/api/features").json() == before


# ---------------------------------------------------------------------------
# File hook management
# ---------------------------------------------------------------------------


def test_add_and_remove_file_hook(test_client, hooks_dir, tmp_path):
    script = tmp_path / "check.sh"
    script.write_text("#!/bin/sh\nexit 0\n")

    response = test_client.post(
        "/api/hooks/doctor_check/files", json={"script": str(script), "name": "20-check"}
    )
    assert response.status_code == 201
    assert (hooks_dir / "doctor_check" / "20-check").exists()

    hooks = test_client.get("/api/hooks/doctor_check").json()["hooks"]
    assert [h["name"] for h in hooks] == ["20-check"]

    response = test_client.delete("/api/hooks/doctor_check/files/20-check")
    assert response.status_code == 200
    assert not (hooks_dir / "doctor_check" / "20-check").exists()


def test_add_missing_script(test_client, tmp_path):
    response = test_client.post(
        "/api/hooks/doctor_check/files", json={"script": str(tmp_path / "nope.sh")}
    )
    assert response.status_code == 404


def test_remove_missing_file_hook(test_client):
    response = test_client.delete("/api/hooks/doctor_check/files/ghost")
    assert response.status_code == 404
    assert response.json()["message"] == "hook not found: doctor_check/ghost"


def test_add_file_hook_rejects_escaping_name(test_client, config_dir, tmp_path):
    script = tmp_path / "check.sh"
    script.write_text("#!/bin/sh\nexit 0\n")

    response = test_client.post(
        "/api/hooks/doctor_check/files",
        json={"script": str(script), "name": "../../escaped.sh"},
    )

    assert response.status_code == 400
    assert "invalid hook name" in response.json()["message"]
    assert not (config_dir / "escaped.sh").exists()


def test_remove_file_hook_rejects_hidden_name(test_client, hooks_dir):
    hidden = _script(hooks_dir / "doctor_check", ".keep", "exit 0")

    response = test_client.delete("/api/hooks/doctor_check/files/.keep")

    assert response.status_code == 400
    assert hidden.exists()


def test_remove_file_hook_rejects_encoded_traversal(test_client, config_dir):
    config = config_dir / "config.yaml"
    config.write_text("port: 3333\n")

    response = test_client.delete("/api/hooks/shell_init/files/..%2F..%2Fconfig.yaml")

    assert response.status_code in (400, 404)
    assert config.exists()
