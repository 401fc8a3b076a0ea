# tests/test_settings.py
"""Test configuration loading and validation"""

import pytest
import yaml

from lyric_fetcher.config import settings as settings_module
from lyric_fetcher.config.settings import Settings, get_settings, reload_settings
from lyric_fetcher.lyrics.exceptions import ConfigError


class TestSettingsLoading:
    """Test the configuration sources"""

    def test_defaults(self, isolated_env):
        settings = Settings(load_env_file=False)

        assert settings.lyrics.provider_order == ["spotify", "lrclib", "netease"]
        assert settings.lyrics.search_order == ["spotify", "netease", "lrclib"]
        assert settings.lyrics.timeout == 8.0
        assert settings.lyrics.similarity_threshold == 0.75
        assert settings.lyrics.min_similarity_matches == 2
        assert settings.spotify.sp_dc == ""
        assert settings.validate() == []

    def test_user_config_file(self, isolated_env):
        config_dir = isolated_env / ".lyric-fetcher"
        config_dir.mkdir()
        (config_dir / "config.yaml").write_text(yaml.safe_dump({
            'lyrics': {'timeout': 3.5, 'provider_order': ['lrclib', 'netease'], 'bogus_key': 1},
            'netease': {'search_limit': 10},
            'unknown_section': {'x': 1},
        }))

        settings = Settings(load_env_file=False)

        assert settings.lyrics.timeout == 3.5
        assert settings.lyrics.provider_order == ['lrclib', 'netease']
        assert settings.netease.search_limit == 10
        assert not hasattr(settings.lyrics, 'bogus_key')

    def test_explicit_config_path(self, isolated_env):
        path = isolated_env / "custom.yaml"
        path.write_text("logging:\n  level: DEBUG\n")

        settings = Settings(config_path=str(path), load_env_file=False)
        assert settings.logging.level == "DEBUG"

    def test_broken_explicit_config(self, isolated_env):
        path = isolated_env / "broken.yaml"
        path.write_text("lyrics: [unclosed\n")

        with pytest.raises(ConfigError):
            Settings(config_path=str(path), load_env_file=False)

    def test_broken_default_config_ignored(self, isolated_env):
        (isolated_env / "config.yaml").write_text("- just\n- a list\n")

        settings = Settings(load_env_file=False)
        assert settings.lyrics.timeout == 8.0

    def test_environment_overrides_file(self, isolated_env, monkeypatch):
        (isolated_env / "config.yaml").write_text("lyrics:\n  timeout: 3\n")
        monkeypatch.setenv('SPOTIFY_SP_DC', 'cookie-from-env')
        monkeypatch.setenv('LYRIC_FETCHER_TIMEOUT', '12.5')
        monkeypatch.setenv('LYRIC_FETCHER_LOG_LEVEL', 'debug')

        settings = Settings(load_env_file=False)

        assert settings.spotify.sp_dc == 'cookie-from-env'
        assert settings.lyrics.timeout == 12.5
        assert settings.logging.level == 'DEBUG'

    def test_invalid_timeout_env(self, isolated_env, monkeypatch):
        monkeypatch.setenv('LYRIC_FETCHER_TIMEOUT', 'soon')

        with pytest.raises(ConfigError):
            Settings(load_env_file=False)

    def test_dotenv_file(self, isolated_env, monkeypatch):
        (isolated_env / ".env").write_text("SPOTIFY_SP_DC=cookie-from-dotenv\n")
        # load_dotenv writes to os.environ; register the variable so it is removed at teardown
        monkeypatch.setenv('SPOTIFY_SP_DC', '')
        monkeypatch.delenv('SPOTIFY_SP_DC')

        settings = Settings()
        assert settings.spotify.sp_dc == 'cookie-from-dotenv'


class TestSettingsValidation:
    """Test validate() and require_valid()"""

    def test_problems_reported(self, settings):
        settings.lyrics.provider_order = ["spotify", "genius", "spotify"]
        settings.lyrics.timeout = 0
        settings.lyrics.similarity_threshold = 1.5
        settings.logging.level = "LOUD"

        errors = settings.validate()

        assert "Unknown provider in lyrics.provider_order: genius" in errors
        assert "lyrics.provider_order contains duplicate providers" in errors
        assert any("timeout" in error for error in errors)
        assert any("similarity_threshold" in error for error in errors)
        assert "Invalid logging level: LOUD" in errors

    def test_require_valid(self, settings):
        settings.require_valid()

        settings.lyrics.search_order = []
        with pytest.raises(ConfigError) as exc_info:
            settings.require_valid()
        assert exc_info.value.details['errors'] == ["lyrics.search_order must name at least one provider"]


class TestSettingsPersistence:
    """Test save_config()"""

    def test_save_strips_cookie(self, settings, isolated_env):
        settings.lyrics.timeout = 4.0

        path = settings.save_config()

        assert path == isolated_env / ".lyric-fetcher" / "config.yaml"
        saved = yaml.safe_load(path.read_text())
        assert saved['spotify']['sp_dc'] == ""
        assert saved['lyrics']['timeout'] == 4.0
        assert settings.spotify.sp_dc == "test-cookie"

    def test_saved_config_round_trips(self, settings, isolated_env):
        settings.netease.search_limit = 7
        path = settings.save_config(str(isolated_env / "saved.yaml"))

        reloaded = Settings(config_path=str(path), load_env_file=False)
        assert reloaded.netease.search_limit == 7

    def test_str_hides_cookie(self, settings):
        text = str(settings)
        assert "test-cookie" not in text
        assert "Spotify cookie: set" in text


class TestGlobalSettings:
    """Test the shared settings instance"""

    def test_get_and_reload(self, isolated_env, monkeypatch):
        monkeypatch.setattr(settings_module, '_settings', None)

        first = get_settings()
        assert get_settings() is first

        reloaded = reload_settings()
        assert reloaded is not first
        assert get_settings() is reloaded
