"""
Tests for SessionConfig validation and multi-configuration normalization.
"""

from dataclasses import FrozenInstanceError
from datetime import datetime, timezone

import pytest

from crumb.config import ConfigLoader
from crumb.sessions import ConfigurationError, SessionConfig, SessionOptions, normalize_configs


class TestSessionConfig:

    def test_defaults(self):
        config = SessionConfig(secret="s")
        assert config.name == "session"
        assert config.session_name == "session"
        assert config.overwrite is True
        assert config.httponly is True
        assert config.signed is True
        assert config.path == "/"
        assert config.max_age is None

    def test_signed_requires_keys(self):
        with pytest.raises(ConfigurationError) as exc_info:
            SessionConfig()
        assert exc_info.value.message == ".keys required."
        assert exc_info.value.code == "SESSION_CONFIG_INVALID"

    def test_unsigned_needs_no_keys(self):
        assert SessionConfig(signed=False).resolved_keys() == ()

    def test_secret_is_single_key(self):
        assert SessionConfig(secret="s").resolved_keys() == ("s",)

    def test_keys_win_over_secret(self):
        config = SessionConfig(keys=["a", "b"], secret="s")
        assert config.keys == ("a", "b")
        assert config.resolved_keys() == ("a", "b")

    def test_keys_as_string_rejected(self):
        with pytest.raises(ConfigurationError):
            SessionConfig(keys="abc")

    @pytest.mark.parametrize("name", ["", "has space", "semi;colon", "quote\""])
    def test_invalid_cookie_name(self, name):
        with pytest.raises(ConfigurationError):
            SessionConfig(name=name, secret="s")

    def test_empty_session_name(self):
        with pytest.raises(ConfigurationError):
            SessionConfig(session_name="", secret="s")

    @pytest.mark.parametrize("max_age", [-1, 1.5, "60", True])
    def test_invalid_max_age(self, max_age):
        with pytest.raises(ConfigurationError):
            SessionConfig(max_age=max_age, secret="s")

    def test_invalid_samesite(self):
        with pytest.raises(ConfigurationError):
            SessionConfig(samesite="sometimes", secret="s")

    def test_encrypted_requires_keys(self):
        with pytest.raises(ConfigurationError):
            SessionConfig(encrypted=True, signed=False)

    def test_frozen(self):
        config = SessionConfig(secret="s")
        with pytest.raises(FrozenInstanceError):
            config.name = "other"

    def test_options_are_fresh_copies(self):
        expires = datetime(2030, 1, 1, tzinfo=timezone.utc)
        config = SessionConfig(name="sid", secret="s", max_age=60, expires=expires, samesite="lax")
        first = config.options()
        second = config.options()
        assert isinstance(first, SessionOptions)
        assert first is not second
        first.max_age = 3600
        assert second.max_age == 60
        assert config.max_age == 60
        assert first.name == "sid"
        assert first.signed is True
        assert first.overwrite is True
        assert first.expires == expires


class TestFromOptions:

    def test_legacy_key_alias(self):
        config = SessionConfig.from_options({"key": "sid", "secret": "s"})
        assert config.name == "sid"

    def test_none_values_use_defaults(self):
        config = SessionConfig.from_options(secret="s", path=None)
        assert config.path == "/"

    def test_unknown_option(self):
        with pytest.raises(ConfigurationError):
            SessionConfig.from_options(secret="s", maxAge=10)


class TestFromConfig:

    def test_loads_section(self):
        loader = ConfigLoader.load(environ={
            "CRUMB_SESSIONS__DEFAULT__SECRET": "12345",
            "CRUMB_SESSIONS__DEFAULT__MAX_AGE": "3600",
            "CRUMB_SESSIONS__DEFAULT__HTTPONLY": "false",
        })
        config = SessionConfig.from_config(loader)
        assert config.secret == "12345"
        assert config.max_age == 3600
        assert config.httponly is False

    def test_comma_separated_keys(self):
        loader = ConfigLoader.load(environ={
            "CRUMB_SESSIONS__PREFS__KEYS": "new, old",
            "CRUMB_SESSIONS__PREFS__NAME": "prefs",
        })
        config = SessionConfig.from_config(loader, "sessions.prefs")
        assert config.keys == ("new", "old")
        assert config.name == "prefs"

    @pytest.mark.parametrize("secret", ["0123", "yes", "OFF", "10.10", "1e3", "[not json"])
    def test_secret_text_is_kept(self, secret):
        loader = ConfigLoader.load(environ={"CRUMB_SESSIONS__DEFAULT__SECRET": secret})
        config = SessionConfig.from_config(loader)
        assert config.secret == secret
        assert config.resolved_keys() == (secret,)

    def test_numeric_keys_and_name_are_kept(self):
        loader = ConfigLoader.load(environ={
            "CRUMB_SESSIONS__DEFAULT__KEYS": "1, 02",
            "CRUMB_SESSIONS__DEFAULT__NAME": "007",
            "CRUMB_SESSIONS__DEFAULT__MAX_AGE": "60",
        })
        config = SessionConfig.from_config(loader)
        assert config.keys == ("1", "02")
        assert config.name == "007"
        assert config.max_age == 60

    def test_single_numeric_key(self):
        loader = ConfigLoader.load(environ={"CRUMB_SESSIONS__DEFAULT__KEYS": "0123"})
        assert SessionConfig.from_config(loader).keys == ("0123",)

    def test_secret_from_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("CRUMB_SESSIONS__DEFAULT__SECRET=000.50\n")
        loader = ConfigLoader.load(env_file=str(env_file), environ={})
        assert SessionConfig.from_config(loader).secret == "000.50"

    def test_override_values_are_stringified(self):
        loader = ConfigLoader.load(
            environ={},
            overrides={"sessions": {"default": {"secret": 42, "keys": [1, "b"]}}},
        )
        config = SessionConfig.from_config(loader)
        assert config.secret == "42"
        assert config.keys == ("1", "b")

    def test_missing_section_needs_keys(self):
        loader = ConfigLoader.load(environ={})
        with pytest.raises(ConfigurationError):
            SessionConfig.from_config(loader, "sessions.missing")

    def test_non_mapping_section(self):
        loader = ConfigLoader.load(environ={"CRUMB_SESSIONS__DEFAULT": "on"})
        with pytest.raises(ConfigurationError):
            SessionConfig.from_config(loader)


class TestNormalizeConfigs:

    def test_no_configs_means_default_session(self):
        with pytest.raises(ConfigurationError):
            normalize_configs()

    def test_single_mapping(self):
        configs = normalize_configs({"secret": "s"})
        assert [c.name for c in configs] == ["session"]

    def test_nested_lists(self):
        configs = normalize_configs(
            [{"name": "a", "session_name": "a", "secret": "s"}],
            [[{"name": "b", "session_name": "b", "signed": False}]],
        )
        assert [c.name for c in configs] == ["a", "b"]

    def test_duplicate_cookie_name(self):
        with pytest.raises(ConfigurationError) as exc_info:
            normalize_configs(
                {"name": "a", "session_name": "one", "secret": "s"},
                {"name": "a", "session_name": "two", "secret": "s"},
            )
        assert "cookie name" in exc_info.value.message

    def test_duplicate_accessor_key(self):
        with pytest.raises(ConfigurationError) as exc_info:
            normalize_configs(
                {"name": "a", "secret": "s"},
                {"name": "b", "secret": "s"},
            )
        assert "accessor key" in exc_info.value.message

    def test_unsupported_item(self):
        with pytest.raises(ConfigurationError):
            normalize_configs(42)
