"""
Utilities for lyric-fetcher

Logging setup and small helpers shared by the providers: string similarity,
metadata trimming, HTML entity cleanup and one-time-code generation.
"""

from .logger import (
    get_logger,
    setup_logging,
    configure_from_settings,
    get_current_log_file,
    parse_size,
    LogContext,
)

from .helpers import (
    calculate_similarity,
    clean_field,
    derive_totp_secret,
    generate_hotp,
    is_supported_platform,
    secret_to_key,
    unescape_html_entities,
)

__all__ = [
    # Logger exports
    'get_logger',
    'setup_logging',
    'configure_from_settings',
    'get_current_log_file',
    'parse_size',
    'LogContext',

    # Helper exports
    'calculate_similarity',
    'clean_field',
    'derive_totp_secret',
    'generate_hotp',
    'is_supported_platform',
    'secret_to_key',
    'unescape_html_entities',
]
