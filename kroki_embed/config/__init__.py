"""Centralized configuration management for kroki-embed.

Example:
    >>> from kroki_embed.config import EmbedConfig, EnvVar, get_environment
    >>>
    >>> url = get_environment(EnvVar.KROKI_URL)  # 'https://kroki.io' unless set
    >>> config = EmbedConfig.from_environment(link="externalLink")

Environment Variable Categories:
    service: Kroki URL and request timeout
    output: Link mode, image format and CSS class
    insert: Preamble injected into diagram sources
    cache: localLink directory layout and reuse
"""

from .lib import (
    ConfigError,
    EmbedConfig,
    EnvConfig,
    EnvVar,
    InsertDirective,
    LinkMode,
    OutputFormat,
    get_environment,
    get_environment_info,
    get_kroki_url,
    list_environment_variables,
    parse_link_mode,
    parse_output_format,
)

__all__ = [
    # Vocabulary
    "ConfigError",
    "LinkMode",
    "OutputFormat",
    "parse_link_mode",
    "parse_output_format",
    # Environment
    "EnvConfig",
    "EnvVar",
    "get_environment",
    "get_environment_info",
    "get_kroki_url",
    "list_environment_variables",
    # Render configuration
    "EmbedConfig",
    "InsertDirective",
]
