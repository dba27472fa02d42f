"""Tests for configuration loading and validation."""

from __future__ import annotations

import pytest

from moviechat.config.loader import ENV_SETTINGS, _deep_merge, load_config
from moviechat.config.schema import (
    AgentConfig,
    ChatConfig,
    MovieChatConfig,
    SeedConfig,
)
from moviechat.core.errors import ConfigError


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """No user, project or env config files visible."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("MOVIECHAT_CONFIG", raising=False)
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    for var in ENV_SETTINGS:
        monkeypatch.delenv(var, raising=False)
    return tmp_path


# ─── Schema Defaults ──────────────────────────────────────────


class TestSchemaDefaults:
    def test_top_level_defaults(self):
        cfg = MovieChatConfig()
        assert cfg.database.url == (
            "sqlite+aiosqlite:///~/.local/share/moviechat/moviechat.db"
        )
        assert cfg.provider.api_key_env == "OPENAI_API_KEY"
        assert cfg.agent.model == "gpt-4o"
        assert cfg.chat.max_action_rounds == 10
        assert cfg.chat.talk_timeout == 0.0
        assert cfg.seed.csv_dir == "Csvs"
        assert cfg.logging.level == "WARNING"

    def test_agent_rounds_must_be_positive(self):
        with pytest.raises(ValueError):
            AgentConfig(max_query_rounds=0)

    def test_unlimited_action_rounds_allowed(self):
        assert ChatConfig(max_action_rounds=0).max_action_rounds == 0

    def test_negative_ratings_limit_rejected(self):
        with pytest.raises(ValueError):
            SeedConfig(ratings_limit=-1)


# ─── Deep Merge ───────────────────────────────────────────────


class TestDeepMerge:
    def test_nested_merge(self):
        base = {"chat": {"max_action_rounds": 10, "default_user_id": 1}}
        result = _deep_merge(base, {"chat": {"max_action_rounds": 3}})
        assert result == {"chat": {"max_action_rounds": 3, "default_user_id": 1}}

    def test_base_unchanged(self):
        base = {"a": {"b": 1}}
        _deep_merge(base, {"a": {"b": 2}})
        assert base == {"a": {"b": 1}}


# ─── Loading ──────────────────────────────────────────────────


class TestLoadConfig:
    def test_defaults_when_no_files(self, isolated):
        cfg = load_config()
        assert cfg.agent.model == "gpt-4o"
        assert cfg.provider.api_key is None

    def test_explicit_path(self, isolated):
        toml_file = isolated / "custom.toml"
        toml_file.write_text(
            '[agent]\nmodel = "gpt-4o-mini"\n\n[chat]\nmax_action_rounds = 4\n'
        )
        cfg = load_config(path=toml_file)
        assert cfg.agent.model == "gpt-4o-mini"
        assert cfg.chat.max_action_rounds == 4
        assert cfg.agent.max_tokens == 4096

    def test_project_file_discovered(self, isolated):
        (isolated / "moviechat.toml").write_text("[chat]\ndefault_user_id = 42\n")
        assert load_config().chat.default_user_id == 42

    def test_user_file_overridden_by_project_file(self, isolated):
        user_dir = isolated / ".config" / "moviechat"
        user_dir.mkdir(parents=True)
        (user_dir / "config.toml").write_text(
            "[chat]\ndefault_user_id = 7\ntalk_timeout = 5.0\n"
        )
        (isolated / "moviechat.toml").write_text("[chat]\ndefault_user_id = 8\n")
        cfg = load_config()
        assert cfg.chat.default_user_id == 8
        assert cfg.chat.talk_timeout == 5.0

    def test_env_path(self, isolated, monkeypatch):
        toml_file = isolated / "env.toml"
        toml_file.write_text("[seed]\nratings_limit = 1000\n")
        monkeypatch.setenv("MOVIECHAT_CONFIG", str(toml_file))
        assert load_config().seed.ratings_limit == 1000

    def test_env_path_missing_raises(self, isolated, monkeypatch):
        monkeypatch.setenv("MOVIECHAT_CONFIG", str(isolated / "nope.toml"))
        with pytest.raises(ConfigError, match="non-existent"):
            load_config()

    def test_explicit_path_not_found(self, isolated):
        with pytest.raises(ConfigError, match="not found"):
            load_config(path=isolated / "missing.toml")

    def test_invalid_toml(self, isolated):
        bad = isolated / "bad.toml"
        bad.write_text("[chat\n")
        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(path=bad)

    def test_validation_failure(self, isolated):
        with pytest.raises(ConfigError, match="validation failed"):
            load_config(overrides={"chat": {"max_action_rounds": -1}})

    def test_overrides_beat_file(self, isolated):
        toml_file = isolated / "c.toml"
        toml_file.write_text("[agent]\ntemperature = 0.9\n")
        cfg = load_config(path=toml_file, overrides={"agent": {"temperature": 0.1}})
        assert cfg.agent.temperature == 0.1


class TestEnvSettings:
    def test_env_beats_files(self, isolated, monkeypatch):
        (isolated / "moviechat.toml").write_text('[agent]\nmodel = "gpt-4o-mini"\n')
        monkeypatch.setenv("MOVIECHAT_MODEL", "gpt-4.1")
        monkeypatch.setenv("MOVIECHAT_DATABASE_URL", "sqlite+aiosqlite://")
        cfg = load_config()
        assert cfg.agent.model == "gpt-4.1"
        assert cfg.database.url == "sqlite+aiosqlite://"

    def test_overrides_beat_env(self, isolated, monkeypatch):
        monkeypatch.setenv("MOVIECHAT_CSV_DIR", "/data/ml-latest")
        cfg = load_config(overrides={"seed": {"csv_dir": "Csvs-small"}})
        assert cfg.seed.csv_dir == "Csvs-small"

    def test_empty_value_ignored(self, isolated, monkeypatch):
        monkeypatch.setenv("MOVIECHAT_LOG_LEVEL", "")
        assert load_config().logging.level == "WARNING"


class TestApiKey:
    def test_resolved_from_env(self, isolated, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        assert load_config().provider.api_key == "sk-env"

    def test_explicit_key_kept(self, isolated, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        cfg = load_config(overrides={"provider": {"api_key": "sk-file"}})
        assert cfg.provider.api_key == "sk-file"

    def test_custom_env_var(self, isolated, monkeypatch):
        monkeypatch.setenv("MY_KEY", "sk-custom")
        cfg = load_config(overrides={"provider": {"api_key_env": "MY_KEY"}})
        assert cfg.provider.api_key == "sk-custom"
