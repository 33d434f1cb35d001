"""
Tests for settings resolution.
"""

import json

import pytest

from asc_client.config import (
    DEFAULT_TIMEOUT,
    Settings,
    find_config_path,
    load_config_file,
    load_settings,
    parse_bool,
    parse_duration,
    parse_int,
)
from asc_client.exceptions import ConfigError


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "key_id": "FILEKEY",
                "issuer_id": "file-issuer",
                "private_key_path": "/keys/AuthKey_FILEKEY.p8",
                "timeout": "45s",
                "max_retries": 5,
            }
        )
    )
    return path


class TestParsers:
    @pytest.mark.parametrize(
        "value,expected",
        [("45s", 45.0), ("1.5m", 90.0), ("500ms", 0.5), ("2h", 7200.0), ("12", 12.0), (30, 30.0)],
    )
    def test_parse_duration(self, value, expected):
        assert parse_duration(value) == expected

    @pytest.mark.parametrize("value", ["abc", "-5s", "0", "10d", True])
    def test_parse_duration_invalid(self, value):
        with pytest.raises(ConfigError):
            parse_duration(value, "timeout")

    @pytest.mark.parametrize(
        "value,expected",
        [("1", True), ("true", True), ("yes", True), ("0", False), ("off", False), ("", False)],
    )
    def test_parse_bool(self, value, expected):
        assert parse_bool(value) is expected

    def test_parse_int(self):
        assert parse_int(" 3 ", "max_retries") == 3
        with pytest.raises(ConfigError, match="max_retries"):
            parse_int("three", "max_retries")
        with pytest.raises(ConfigError, match="negative"):
            parse_int("-1", "max_retries")


class TestConfigFile:
    """Test config file discovery and parsing."""

    def test_env_path_wins(self, tmp_path, monkeypatch):
        target = tmp_path / "custom.json"
        monkeypatch.setenv("ASC_CONFIG_PATH", str(target))
        assert find_config_path(cwd=tmp_path) == target

    def test_walks_up_to_project_config(self, tmp_path, monkeypatch):
        monkeypatch.delenv("ASC_CONFIG_PATH", raising=False)
        project_config = tmp_path / ".asc" / "config.json"
        project_config.parent.mkdir()
        project_config.write_text("{}")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)

        assert find_config_path(cwd=nested, home=tmp_path / "home") == project_config.resolve()

    def test_falls_back_to_home(self, tmp_path, monkeypatch):
        monkeypatch.delenv("ASC_CONFIG_PATH", raising=False)
        work = tmp_path / "work"
        work.mkdir()
        home = tmp_path / "home"

        assert find_config_path(cwd=work, home=home) == home / ".asc" / "config.json"

    def test_missing_file_is_empty(self, tmp_path):
        assert load_config_file(tmp_path / "nope.json") == {}

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError, match="Failed to parse config"):
            load_config_file(path)

    def test_non_object(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("[1, 2]")
        with pytest.raises(ConfigError, match="expected a JSON object"):
            load_config_file(path)


class TestLoadSettings:
    """Test precedence: overrides > environment > file > defaults."""

    def test_defaults(self, tmp_path):
        settings = load_settings(environ={}, config_path=tmp_path / "none.json")
        assert settings == Settings()
        assert settings.timeout == DEFAULT_TIMEOUT
        assert not settings.has_credentials()

    def test_file_values(self, config_file):
        settings = load_settings(environ={}, config_path=config_file)
        assert settings.key_id == "FILEKEY"
        assert settings.private_key_path == "/keys/AuthKey_FILEKEY.p8"
        assert settings.timeout == 45.0
        assert settings.max_retries == 5
        assert settings.has_credentials()

    def test_env_overrides_file(self, config_file):
        environ = {
            "ASC_KEY_ID": "ENVKEY",
            "ASC_TIMEOUT": "10s",
            "ASC_TIMEOUT_SECONDS": "99",
            "ASC_DEBUG": "1",
        }
        settings = load_settings(environ=environ, config_path=config_file)
        assert settings.key_id == "ENVKEY"
        assert settings.issuer_id == "file-issuer"
        assert settings.timeout == 10.0
        assert settings.debug is True

    def test_timeout_seconds_fallback(self, tmp_path):
        settings = load_settings(
            environ={"ASC_TIMEOUT_SECONDS": "90"}, config_path=tmp_path / "none.json"
        )
        assert settings.timeout == 90.0

    def test_overrides_win(self, config_file):
        settings = load_settings(
            overrides={"timeout": 5.0, "key_id": None, "unknown": "x"},
            environ={"ASC_TIMEOUT": "10s"},
            config_path=config_file,
        )
        assert settings.timeout == 5.0
        assert settings.key_id == "FILEKEY"

    def test_inline_private_key(self, tmp_path):
        environ = {"ASC_KEY_ID": "K", "ASC_ISSUER_ID": "I", "ASC_PRIVATE_KEY": "-----BEGIN..."}
        settings = load_settings(environ=environ, config_path=tmp_path / "none.json")
        assert settings.has_credentials()

    def test_invalid_env_value(self, tmp_path):
        with pytest.raises(ConfigError, match="ASC_TOKEN_LIFETIME"):
            load_settings(
                environ={"ASC_TOKEN_LIFETIME": "soon"}, config_path=tmp_path / "none.json"
            )
