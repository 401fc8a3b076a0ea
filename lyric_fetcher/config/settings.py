"""
Configuration management for lyric-fetcher

This module handles loading, validation, and management of library settings
from multiple sources including YAML files and environment variables. It
provides a centralized configuration object shared by the providers, the
fetch orchestrator and the logging setup.

The configuration is organized into logical sections using dataclasses:
- Lyrics pipeline settings (provider order, timeouts, similarity gate)
- Spotify endpoint and authentication settings
- LRCLIB and NetEase endpoint settings
- Network pacing
- Logging output

The Spotify sp_dc cookie is sensitive and is normally provided through the
environment (or a .env file) rather than a YAML file; save_config() never
writes it to disk.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import find_dotenv, load_dotenv

from ..lyrics.exceptions import ConfigError
from ..utils.logger import get_logger

logger = get_logger(__name__)

KNOWN_PROVIDERS = ('spotify', 'lrclib', 'netease')
VALID_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


@dataclass
class LyricsConfig:
    """
    Lyrics pipeline configuration

    Controls which providers are consulted and in which order, how long each
    network call may take and how strict the fuzzy matching is.
    """
    provider_order: list = field(default_factory=lambda: ["spotify", "lrclib", "netease"])
    search_order: list = field(default_factory=lambda: ["spotify", "netease", "lrclib"])
    timeout: float = 8.0
    similarity_threshold: float = 0.75
    min_similarity_matches: int = 2
    trailing_marker_margin_ms: int = 5000
    check_cache_first: bool = True


@dataclass
class SpotifyConfig:
    """
    Spotify web-player endpoints and authentication

    sp_dc is the web-player session cookie; without it no access token can
    be generated and the Spotify provider fails fast.
    """
    sp_dc: str = ""
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 15_6_1) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/18.6 Safari/605.1.15"
    )
    server_time_url: str = "https://open.spotify.com/api/server-time"
    token_url: str = "https://open.spotify.com/api/token"
    secret_url: str = "https://iloveyoulyricfever.github.io/myloveisasecret/mylove.json"
    lyrics_url: str = "https://spclient.wg.spotify.com/color-lyrics/v2/track"
    search_url: str = "https://api-partner.spotify.com/pathfinder/v2/query"
    search_query_hash: str = "d9f785900f0710b31c07818d617f4f7600c1e21217e80f5b043d1e78d74e6026"
    build_version: str = "web-player_2025-06-10_1749524883369_eef30f4"
    build_date: str = "2025-06-10"
    totp_version: int = 5
    track_id_length: int = 22


@dataclass
class LRCLibConfig:
    """LRCLIB endpoint settings"""
    base_url: str = "https://lrclib.net"
    user_agent: str = "Lyric Fever v3.2 (https://github.com/aviwad/LyricFever)"


@dataclass
class NetEaseConfig:
    """NetEase API proxy settings"""
    base_url: str = "https://neteasecloudmusicapi-ten-wine.vercel.app"
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_7_5) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/18.3 Safari/605.1.15"
    )
    search_limit: int = 5


@dataclass
class NetworkConfig:
    """
    Network pacing configuration

    Each provider paces its own requests to at most rate_limit requests per
    rate_limit_period seconds.
    """
    rate_limit: int = 5
    rate_limit_period: float = 1.0


@dataclass
class LoggingConfig:
    """
    Logging configuration and output settings

    Controls log level, optional rotating file output and console formatting.
    """
    level: str = "INFO"
    file: str = ""
    max_size: str = "10MB"
    backup_count: int = 3
    console_output: bool = True
    colored_output: bool = True


class Settings:
    """
    Main settings class that manages all configuration

    Sources, lowest to highest precedence:
    - Dataclass defaults
    - The first YAML file found (explicit path, ~/.lyric-fetcher/config.yaml, ./config.yaml)
    - Environment variables (optionally loaded from a .env file)
    """

    def __init__(self, config_path: Optional[str] = None, load_env_file: bool = True):
        """
        Initialize settings from config file and environment variables

        Args:
            config_path: Path to custom config file, if None uses default locations
            load_env_file: Whether to read a .env file into the environment first

        Raises:
            ConfigError: If an explicitly given config file cannot be parsed, or an
                         environment variable has an invalid value
        """
        self.config_path = config_path
        self.config_dir = Path.home() / ".lyric-fetcher"

        self.lyrics = LyricsConfig()
        self.spotify = SpotifyConfig()
        self.lrclib = LRCLibConfig()
        self.netease = NetEaseConfig()
        self.network = NetworkConfig()
        self.logging = LoggingConfig()

        if load_env_file:
            load_dotenv(find_dotenv(usecwd=True))

        self._load_config()
        self._load_environment_variables()

    def _sections(self) -> Dict[str, Any]:
        return {
            'lyrics': self.lyrics,
            'spotify': self.spotify,
            'lrclib': self.lrclib,
            'netease': self.netease,
            'network': self.network,
            'logging': self.logging,
        }

    def _load_config(self) -> None:
        """
        Load configuration from YAML file

        The first existing file wins. A broken file in a default location is
        skipped with a warning; a broken file passed explicitly is an error.
        """
        config_paths = [
            self.config_path,
            self.config_dir / "config.yaml",
            Path("config.yaml"),
        ]

        config_data = {}
        for path in config_paths:
            if not path or not Path(path).exists():
                continue
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    config_data = yaml.safe_load(f) or {}
                if not isinstance(config_data, dict):
                    raise ConfigError(f"Top level of {path} must be a mapping")
                logger.debug(f"Loaded configuration from {path}")
                break
            except (OSError, yaml.YAMLError, ConfigError) as e:
                if path == self.config_path:
                    raise ConfigError(
                        f"Failed to load config from {path}: {e}",
                        details={'path': str(path)}
                    ) from e
                logger.warning(f"Failed to load config from {path}: {e}")
                config_data = {}

        self._apply_config(config_data)

    def _apply_config(self, config_data: Dict[str, Any]) -> None:
        """
        Apply configuration data to dataclass instances

        Only keys that exist on the matching section dataclass are applied;
        unknown sections and keys are ignored.

        Args:
            config_data: Dictionary containing configuration sections
        """
        config_mapping = self._sections()

        for section_name, section_data in config_data.items():
            if section_name in config_mapping and isinstance(section_data, dict):
                config_obj = config_mapping[section_name]
                for key, value in section_data.items():
                    if hasattr(config_obj, key):
                        setattr(config_obj, key, value)
                    else:
                        logger.debug(f"Ignoring unknown config key {section_name}.{key}")

    def _load_environment_variables(self) -> None:
        """
        Load sensitive and deployment-specific values from environment variables

        Environment variables take precedence over file-based configuration.
        """
        cookie = os.getenv('SPOTIFY_SP_DC')
        if cookie:
            self.spotify.sp_dc = cookie

        timeout = os.getenv('LYRIC_FETCHER_TIMEOUT')
        if timeout:
            try:
                self.lyrics.timeout = float(timeout)
            except ValueError as e:
                raise ConfigError(
                    f"LYRIC_FETCHER_TIMEOUT must be a number, got {timeout!r}",
                    details={'LYRIC_FETCHER_TIMEOUT': timeout}
                ) from e

        level = os.getenv('LYRIC_FETCHER_LOG_LEVEL')
        if level:
            self.logging.level = level.upper()

    def get_config_directory(self) -> Path:
        """
        Get the expanded config directory path

        Returns:
            Path object for the configuration directory
        """
        return Path(self.config_dir).expanduser()

    def save_config(self, path: Optional[str] = None) -> Path:
        """
        Save current configuration to a YAML file

        The Spotify cookie is blanked out before writing.

        Args:
            path: Custom path to save config, defaults to the user config directory

        Returns:
            Path the configuration was written to

        Raises:
            ConfigError: If the configuration cannot be saved
        """
        target = Path(path) if path else self.get_config_directory() / "config.yaml"

        config_data = {
            name: self._dataclass_to_dict(section)
            for name, section in self._sections().items()
        }

        # Remove sensitive data from saved config
        config_data['spotify']['sp_dc'] = ""

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, 'w', encoding='utf-8') as f:
                yaml.safe_dump(config_data, f, default_flow_style=False, indent=2)
        except OSError as e:
            raise ConfigError(f"Failed to save config to {target}: {e}", details={'path': str(target)}) from e

        return target

    def _dataclass_to_dict(self, obj) -> Dict[str, Any]:
        """Convert a section dataclass to a plain dictionary for YAML output."""
        result = {}
        for section_field in fields(obj):
            value = getattr(obj, section_field.name)
            result[section_field.name] = list(value) if isinstance(value, (list, tuple)) else value
        return result

    def validate(self) -> List[str]:
        """
        Validate current configuration

        Returns:
            List of human-readable problems, empty when the configuration is valid
        """
        errors = []

        for order_name in ('provider_order', 'search_order'):
            order = getattr(self.lyrics, order_name)
            if not order:
                errors.append(f"lyrics.{order_name} must name at least one provider")
            for provider in order:
                if provider not in KNOWN_PROVIDERS:
                    errors.append(f"Unknown provider in lyrics.{order_name}: {provider}")
            if len(set(order)) != len(order):
                errors.append(f"lyrics.{order_name} contains duplicate providers")

        if self.lyrics.timeout <= 0:
            errors.append(f"lyrics.timeout must be greater than zero, got {self.lyrics.timeout}")

        if not 0.0 <= self.lyrics.similarity_threshold <= 1.0:
            errors.append(
                f"lyrics.similarity_threshold must be between 0 and 1, got {self.lyrics.similarity_threshold}"
            )

        if not 1 <= self.lyrics.min_similarity_matches <= 3:
            errors.append(
                f"lyrics.min_similarity_matches must be between 1 and 3, got {self.lyrics.min_similarity_matches}"
            )

        if self.lyrics.trailing_marker_margin_ms < 0:
            errors.append("lyrics.trailing_marker_margin_ms must not be negative")

        if self.network.rate_limit <= 0 or self.network.rate_limit_period <= 0:
            errors.append("network.rate_limit and network.rate_limit_period must be positive")

        if self.logging.level.upper() not in VALID_LOG_LEVELS:
            errors.append(f"Invalid logging level: {self.logging.level}")

        return errors

    def require_valid(self) -> None:
        """
        Raise if the configuration has problems

        Raises:
            ConfigError: With every validation problem listed in details['errors']
        """
        errors = self.validate()
        if errors:
            for error in errors:
                logger.error(f"Configuration error: {error}")
            raise ConfigError(
                f"Invalid configuration ({len(errors)} problem(s)): {errors[0]}",
                details={'errors': errors}
            )

    def __str__(self) -> str:
        """Concise summary of the key configuration values"""
        sections = [
            f"Providers: {', '.join(self.lyrics.provider_order)}",
            f"Timeout: {self.lyrics.timeout}s",
            f"Spotify cookie: {'set' if self.spotify.sp_dc else 'missing'}",
            f"Log level: {self.logging.level}",
        ]
        return f"Settings({', '.join(sections)})"


# Global settings instance, created on first use
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings instance

    Returns:
        The shared Settings instance, loaded on first call
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings(config_path: Optional[str] = None) -> Settings:
    """
    Reload settings from configuration files and the environment

    Args:
        config_path: Optional path to specific config file

    Returns:
        New global Settings instance
    """
    global _settings
    _settings = Settings(config_path)
    return _settings
