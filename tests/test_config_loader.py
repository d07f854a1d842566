"""
Unit tests for configuration loader.

Tests multi-layer config merging, environment variable overrides,
caching, XDG directory handling and job config persistence.
"""

import json
import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from reposcm.core.behaviors import Jobs, Quiet
from reposcm.core.config import (
    RepoScmConfig,
    clear_cache,
    get_job_config_path,
    get_user_config_path,
    load_config,
    load_layered_env,
    load_raw_job_config,
    save_job_config,
)
from reposcm.core.config.loader import (
    apply_env_overrides,
    deep_merge,
    get_default_config,
    get_xdg_config_home,
    load_json_file,
)

# ==============================================================================
# Helper Functions Tests
# ==============================================================================


class TestDeepMerge:
    """Test the deep_merge helper function."""

    def test_nested_merge(self):
        """Test merging nested dicts."""
        base = {"a": 1, "b": {"x": 10, "y": 20}}
        override = {"b": {"y": 30, "z": 40}, "c": 3}
        assert deep_merge(base, override) == {"a": 1, "b": {"x": 10, "y": 30, "z": 40}, "c": 3}

    def test_lists_are_replaced(self):
        """Behavior lists from a higher layer replace, never extend."""
        base = {"scm": {"behaviors": [{"kind": "quiet"}]}}
        override = {"scm": {"behaviors": [{"kind": "trace"}]}}
        assert deep_merge(base, override)["scm"]["behaviors"] == [{"kind": "trace"}]

    def test_inputs_unchanged(self):
        """Test that the base dict is not modified."""
        base = {"a": {"b": 1}}
        deep_merge(base, {"a": {"c": 2}})
        assert base == {"a": {"b": 1}}


class TestLoadJsonFile:
    """Test JSON file loading."""

    def test_load_existing_file(self, tmp_path):
        """Test loading a valid JSON file."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"scm": {"jobs": 4}}))
        assert load_json_file(path) == {"scm": {"jobs": 4}}

    def test_load_nonexistent_file(self, tmp_path):
        """Test that a missing file returns None."""
        assert load_json_file(tmp_path / "missing.json") is None

    def test_load_invalid_json(self, tmp_path, caplog):
        """Test that invalid JSON returns None and logs a warning."""
        path = tmp_path / "bad.json"
        path.write_text("{ invalid json }")

        assert load_json_file(path) is None
        assert "Failed to parse config" in caplog.text

    def test_top_level_not_object(self, tmp_path, caplog):
        """Test that a JSON array is rejected."""
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")

        assert load_json_file(path) is None
        assert "not an object" in caplog.text


class TestApplyEnvOverrides:
    """Test environment variable overrides."""

    def test_tool_overrides(self, monkeypatch):
        """Test REPOSCM_REPO_EXECUTABLE and REPOSCM_GIT_EXECUTABLE."""
        monkeypatch.setenv("REPOSCM_REPO_EXECUTABLE", "/opt/repo/bin/repo")
        monkeypatch.setenv("REPOSCM_GIT_EXECUTABLE", "/usr/local/bin/git")

        result = apply_env_overrides({"tools": {"repo_executable": "repo"}})

        assert result["tools"] == {
            "repo_executable": "/opt/repo/bin/repo",
            "git_executable": "/usr/local/bin/git",
        }

    def test_scm_overrides_keep_other_fields(self, monkeypatch):
        """Test that an override only replaces its own key."""
        monkeypatch.setenv("REPOSCM_MANIFEST_URL", "https://env.example/manifest")
        monkeypatch.setenv("REPOSCM_IGNORE_PROJECTS", "platform/docs")

        result = apply_env_overrides({"scm": {"jobs": 4}})

        assert result["scm"] == {
            "jobs": 4,
            "manifest_repository_url": "https://env.example/manifest",
            "ignore_projects": "platform/docs",
        }

    def test_no_env_overrides(self):
        """Test that the config is unchanged when no env vars are set."""
        config = {"tools": {"repo_executable": "repo"}}
        assert apply_env_overrides(config) == config


class TestGetDefaultConfig:
    """Test default configuration values."""

    def test_default_config_structure(self):
        """Test that defaults cover tools and state."""
        defaults = get_default_config()
        assert defaults["tools"] == {"repo_executable": "repo", "git_executable": "git"}
        assert defaults["state"]["history_limit"] == 50


class TestXdgDirectories:
    """Test XDG directory handling."""

    def test_get_xdg_config_home_default(self, monkeypatch):
        """Test default XDG config home."""
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        assert get_xdg_config_home() == Path.home() / ".config"

    def test_get_user_config_path(self, monkeypatch, tmp_path):
        """Test user config path uses XDG_CONFIG_HOME."""
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        assert get_user_config_path() == tmp_path / "reposcm" / "config.json"

    def test_get_job_config_path(self, tmp_path):
        """Test the job config file name."""
        assert get_job_config_path(tmp_path) == tmp_path / ".reposcm.json"


# ==============================================================================
# Integration Tests - load_config()
# ==============================================================================


class TestLoadConfig:
    """Test the main load_config function."""

    def test_defaults_only(self, tmp_path):
        """Test loading with no config files."""
        config = load_config(tmp_path)

        assert isinstance(config, RepoScmConfig)
        assert config.tools.repo_executable == "repo"
        assert config.scm.manifest_repository_url is None
        assert config.scm.behaviors == []
        assert config.scm.quiet is False
        assert config.state.state_dir == ".reposcm"

    def test_job_config(self, job_dir):
        """Test that the job file is read."""
        config = load_config(job_dir)
        assert config.scm.manifest_repository_url == (
            "https://android.example.com/platform/manifest"
        )

    def test_job_overrides_user(self, job_dir, user_config_dir, write_job_config):
        """Test job config taking precedence over user config."""
        (user_config_dir / "config.json").write_text(
            json.dumps(
                {
                    "tools": {"repo_executable": "/user/repo"},
                    "scm": {"jobs": 2, "browser_url": "https://gitweb.example"},
                }
            )
        )
        write_job_config(job_dir, {"scm": {"jobs": 8, "behaviors": []}})

        config = load_config(job_dir)

        assert config.tools.repo_executable == "/user/repo"
        assert config.scm.jobs == 8
        assert config.scm.browser_url == "https://gitweb.example"

    def test_env_overrides_all(self, job_dir, monkeypatch):
        """Test env vars taking precedence over the job file."""
        monkeypatch.setenv("REPOSCM_MANIFEST_URL", "https://env.example/manifest")
        assert load_config(job_dir).scm.manifest_repository_url == "https://env.example/manifest"

    def test_behaviors_loaded_in_order(self, job_dir, write_job_config):
        """Test behaviors created from stored form and ordered by ordinal."""
        write_job_config(
            job_dir,
            {"scm": {"behaviors": [{"kind": "jobs", "jobs": 4}, {"kind": "quiet"}]}},
        )

        config = load_config(job_dir)

        assert config.scm.behaviors == [Quiet(), Jobs(jobs=4)]

    def test_caching(self, job_dir, write_job_config):
        """Test that configs are cached per job directory."""
        first = load_config(job_dir)
        write_job_config(job_dir, {"scm": {"jobs": 3, "behaviors": []}})

        assert load_config(job_dir) is first
        clear_cache()
        assert load_config(job_dir).scm.jobs == 3

    def test_no_cache(self, job_dir):
        """Test use_cache=False always reloads."""
        assert load_config(job_dir, use_cache=False) is not load_config(job_dir, use_cache=False)

    def test_invalid_json_ignored(self, job_dir):
        """Test that an unreadable job file falls back to defaults."""
        (job_dir / ".reposcm.json").write_text("{ nope")
        assert load_config(job_dir).scm.manifest_repository_url is None

    def test_validation_error(self, job_dir, write_job_config):
        """Test that invalid values raise ValidationError."""
        write_job_config(job_dir, {"scm": {"jobs": -1, "behaviors": []}})
        with pytest.raises(ValidationError):
            load_config(job_dir)

    def test_unknown_behavior_kind(self, job_dir, write_job_config):
        """Test that unknown behavior kinds fail validation."""
        write_job_config(job_dir, {"scm": {"behaviors": [{"kind": "teleport"}]}})
        with pytest.raises(ValidationError):
            load_config(job_dir)

    def test_repeated_behavior_kind(self, job_dir, write_job_config):
        """Test that a behavior kind configured twice fails validation."""
        write_job_config(
            job_dir,
            {
                "scm": {
                    "behaviors": [
                        {"kind": "manifest_branch", "manifest_branch": "a"},
                        {"kind": "manifest_branch", "manifest_branch": "b"},
                    ]
                }
            },
        )
        with pytest.raises(ValidationError, match="more than once"):
            load_config(job_dir)

    def test_serialization_round_trip(self, job_dir, write_job_config):
        """Test that dumped config loads back to an equal config."""
        write_job_config(
            job_dir,
            {
                "scm": {
                    "manifest_repository_url": "https://example.com/m",
                    "behaviors": [{"kind": "manifest_branch", "manifest_branch": "main"}],
                }
            },
        )
        config = load_config(job_dir)

        dumped = json.loads(config.model_dump_json())

        assert dumped["scm"]["behaviors"] == [
            {"kind": "manifest_branch", "manifest_branch": "main"}
        ]
        assert RepoScmConfig(**dumped).scm.behaviors == config.scm.behaviors


class TestJobConfigPersistence:
    """Test reading and writing the raw job file."""

    def test_load_raw_missing(self, tmp_path):
        """Test that a missing job file reads as empty."""
        assert load_raw_job_config(tmp_path) == {}

    def test_save_and_reload(self, job_dir):
        """Test that saving writes JSON and invalidates the cache."""
        load_config(job_dir)

        path = save_job_config({"scm": {"jobs": 6, "behaviors": []}}, job_dir)

        assert path == job_dir / ".reposcm.json"
        assert load_raw_job_config(job_dir) == {"scm": {"jobs": 6, "behaviors": []}}
        assert load_config(job_dir).scm.jobs == 6
        assert not (job_dir / ".reposcm.json.tmp").exists()


class TestLayeredEnv:
    """Test .env loading precedence."""

    def test_precedence(self, tmp_path, monkeypatch):
        """OS env > job .env > user .env."""
        for key in ("REPOSCM_T_USER", "REPOSCM_T_BOTH", "REPOSCM_T_OS"):
            monkeypatch.setenv(key, "")
            monkeypatch.delenv(key)
        monkeypatch.setenv("REPOSCM_T_OS", "os")

        user_env = tmp_path / "user.env"
        user_env.write_text("REPOSCM_T_USER=user\nREPOSCM_T_BOTH=user\nREPOSCM_T_OS=user\n")
        job_env = tmp_path / "job.env"
        job_env.write_text("REPOSCM_T_BOTH=job\nREPOSCM_T_OS=job\n")

        load_layered_env(user_env_paths=[user_env], job_env_paths=[job_env])

        assert os.environ["REPOSCM_T_USER"] == "user"
        assert os.environ["REPOSCM_T_BOTH"] == "job"
        assert os.environ["REPOSCM_T_OS"] == "os"

    def test_job_dir_files(self, job_dir, monkeypatch):
        """.env.local overrides .env; the applied variables are returned."""
        for key in ("REPOSCM_T_BRANCH", "REPOSCM_T_LOCAL"):
            monkeypatch.setenv(key, "")
            monkeypatch.delenv(key)
        (job_dir / ".env").write_text("REPOSCM_T_BRANCH=main\nREPOSCM_T_LOCAL=shared\n")
        (job_dir / ".env.local").write_text("REPOSCM_T_LOCAL=mine\n")

        applied = load_layered_env(job_dir=job_dir, user_env_paths=[])

        assert applied == {"REPOSCM_T_BRANCH": "main", "REPOSCM_T_LOCAL": "mine"}
        assert os.environ["REPOSCM_T_LOCAL"] == "mine"

    def test_missing_files(self, tmp_path):
        """Test that absent env files apply nothing."""
        assert load_layered_env(job_dir=tmp_path / "nowhere", user_env_paths=[]) == {}
