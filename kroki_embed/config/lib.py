"""Centralized configuration management for kroki-embed.

Provides:
- The ``LinkMode`` and ``OutputFormat`` vocabularies
- A type-safe ``EnvVar`` enum with metadata (default, type, description)
- ``get_environment()`` with consistent resolution: override > environment > default
- ``EmbedConfig``, the immutable value object every render call works from

Example:
    >>> from kroki_embed.config import EmbedConfig, LinkMode
    >>>
    >>> config = EmbedConfig.from_environment()
    >>> per_call = config.replace(link=LinkMode.EXTERNAL_LINK, class_name="uml")
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, overload

from kroki_embed.core import KrokiEmbedError


class ConfigError(KrokiEmbedError, ValueError):
    """Invalid configuration value."""


# =============================================================================
# Vocabulary
# =============================================================================


class OutputFormat(Enum):
    """Image formats requested from the rendering service."""

    SVG = "svg"
    PNG = "png"

    @property
    def mime_type(self) -> str:
        """MIME type used for ``data:`` URIs."""
        return _MIME_TYPES[self]

    @property
    def extension(self) -> str:
        """File extension without the leading dot."""
        return self.value


_MIME_TYPES = {
    OutputFormat.SVG: "image/svg+xml",
    OutputFormat.PNG: "image/png",
}


class LinkMode(Enum):
    """How a rendered diagram is delivered into the final markup.

    Values are the exact strings accepted in configuration files and
    environment variables.
    """

    INLINE = "inline"
    INLINE_BASE64 = "inlineBase64"
    INLINE_URL_ENCODE = "inlineUrlEncode"
    LOCAL_LINK = "localLink"
    EXTERNAL_LINK = "externalLink"

    @property
    def needs_fetch(self) -> bool:
        """Whether this mode talks to the rendering service."""
        return self is not LinkMode.EXTERNAL_LINK


def _coerce_enum(enum_cls: type[Enum], value: Any, field_name: str) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ConfigError(
            f"Unknown {field_name} {value!r}; expected one of: {choices}"
        ) from None


def parse_link_mode(value: LinkMode | str) -> LinkMode:
    """Convert a configuration string to a ``LinkMode``.

    Raises:
        ConfigError: If the value is not a known mode.
    """
    return _coerce_enum(LinkMode, value, "link mode")


def parse_output_format(value: OutputFormat | str) -> OutputFormat:
    """Convert a configuration string to an ``OutputFormat``.

    Raises:
        ConfigError: If the value is not a supported format.
    """
    if isinstance(value, str):
        value = value.lower()
    return _coerce_enum(OutputFormat, value, "output format")


# =============================================================================
# Environment Variable Configuration
# =============================================================================


@dataclass(frozen=True)
class EnvConfig:
    """Metadata for an environment variable.

    Attributes:
        name: Environment variable name (e.g., "KROKI_URL").
        default: Default value if not set in environment.
        var_type: Python type for value conversion (str, int, float, bool).
        description: Human-readable description.
        category: Grouping category for documentation.
    """

    name: str
    default: Any
    var_type: type
    description: str = ""
    category: str = "general"


class EnvVar(Enum):
    """All environment variables used by kroki-embed.

    Categories:
        - service: Rendering service location and request settings
        - output: Markup generation
        - insert: Preamble injected into diagram sources
        - cache: Local file cache layout
    """

    # -------------------------------------------------------------------------
    # Service
    # -------------------------------------------------------------------------
    KROKI_URL = EnvConfig(
        name="KROKI_URL",
        default="https://kroki.io",
        var_type=str,
        description="Kroki rendering service base URL",
        category="service",
    )
    KROKI_TIMEOUT = EnvConfig(
        name="KROKI_TIMEOUT",
        default=30.0,
        var_type=float,
        description="Request timeout in seconds",
        category="service",
    )

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------
    KROKI_LINK_MODE = EnvConfig(
        name="KROKI_LINK_MODE",
        default=LinkMode.INLINE_BASE64.value,
        var_type=str,
        description=(
            "Delivery mode: inline, inlineBase64, inlineUrlEncode, "
            "localLink or externalLink"
        ),
        category="output",
    )
    KROKI_OUTPUT_FORMAT = EnvConfig(
        name="KROKI_OUTPUT_FORMAT",
        default=OutputFormat.SVG.value,
        var_type=str,
        description="Image format requested from Kroki (svg, png)",
        category="output",
    )
    KROKI_CLASS_NAME = EnvConfig(
        name="KROKI_CLASS_NAME",
        default="kroki",
        var_type=str,
        description="CSS class set on generated <img>/<svg> elements",
        category="output",
    )

    # -------------------------------------------------------------------------
    # Insert
    # -------------------------------------------------------------------------
    KROKI_INSERT_AFTER_LINE = EnvConfig(
        name="KROKI_INSERT_AFTER_LINE",
        default=0,
        var_type=int,
        description="Line number after which the preamble is inserted",
        category="insert",
    )
    KROKI_INSERT_CONTENT = EnvConfig(
        name="KROKI_INSERT_CONTENT",
        default="",
        var_type=str,
        description="Preamble text, e.g. '!theme sketchy-outline' (empty = none)",
        category="insert",
    )

    # -------------------------------------------------------------------------
    # Cache
    # -------------------------------------------------------------------------
    KROKI_PUBLIC_DIR = EnvConfig(
        name="KROKI_PUBLIC_DIR",
        default="public",
        var_type=str,
        description="Site root directory that localLink files are written under",
        category="cache",
    )
    KROKI_ASSET_PATH = EnvConfig(
        name="KROKI_ASSET_PATH",
        default="assert",
        var_type=str,
        description="Asset directory relative to the public directory",
        category="cache",
    )
    KROKI_REUSE_CACHE = EnvConfig(
        name="KROKI_REUSE_CACHE",
        default=True,
        var_type=bool,
        description="Skip the fetch when the localLink cache file already exists",
        category="cache",
    )


# =============================================================================
# Type Conversion Helpers
# =============================================================================


def _parse_bool(value: str) -> bool | None:
    """Parse string to boolean.

    Recognizes: true/false, 1/0, yes/no (case-insensitive).
    Returns None for unrecognized values.
    """
    normalized = value.lower().strip()
    if normalized in ("true", "1", "yes"):
        return True
    if normalized in ("false", "0", "no"):
        return False
    return None


def _convert_value(value: str | None, var_type: type, default: Any) -> Any:
    """Convert string value to target type.

    Args:
        value: Raw string value from environment (or None).
        var_type: Target Python type.
        default: Default value if conversion fails or value is None.

    Returns:
        Converted value or default.
    """
    if value is None:
        return default

    if var_type is str:
        return value

    if var_type is int:
        try:
            return int(value)
        except ValueError:
            return default

    if var_type is float:
        try:
            return float(value)
        except ValueError:
            return default

    if var_type is bool:
        result = _parse_bool(value)
        return result if result is not None else default

    return value


# =============================================================================
# Main Interface
# =============================================================================


@overload
def get_environment(env_var: EnvVar, override: int) -> int: ...
@overload
def get_environment(env_var: EnvVar, override: float) -> float: ...
@overload
def get_environment(env_var: EnvVar, override: str) -> str: ...
@overload
def get_environment(env_var: EnvVar, override: bool) -> bool: ...
@overload
def get_environment(env_var: EnvVar, override: None = None) -> Any: ...


def get_environment(env_var: EnvVar, override: Any = None) -> Any:
    """Get environment variable value with type conversion.

    Resolution priority:
        1. Explicit override parameter (highest)
        2. Environment variable value
        3. Default from EnvConfig (lowest)

    Args:
        env_var: Environment variable enum member.
        override: Optional override value (bypasses env lookup).

    Returns:
        Value converted to the appropriate type.

    Example:
        >>> get_environment(EnvVar.KROKI_URL)
        'https://kroki.io'
        >>> get_environment(EnvVar.KROKI_TIMEOUT, override=5.0)
        5.0
    """
    config: EnvConfig = env_var.value

    if override is not None:
        return override

    raw_value = os.environ.get(config.name)
    return _convert_value(raw_value, config.var_type, config.default)


def get_environment_info(env_var: EnvVar) -> EnvConfig:
    """Get metadata for an environment variable."""
    return env_var.value


def list_environment_variables(category: str | None = None) -> list[EnvVar]:
    """List all environment variables, optionally filtered by category.

    Args:
        category: Filter by category (service, output, insert, cache).
                 None returns all variables.

    Returns:
        List of EnvVar enum members.
    """
    if category is None:
        return list(EnvVar)

    return [var for var in EnvVar if var.value.category == category]


def get_kroki_url(override: str | None = None) -> str:
    """Get the Kroki service URL without a trailing slash.

    Resolution: override > KROKI_URL > https://kroki.io
    """
    return (override or get_environment(EnvVar.KROKI_URL)).rstrip("/")


# =============================================================================
# Render Configuration
# =============================================================================


@dataclass(frozen=True)
class InsertDirective:
    """Text injected into every diagram source before encoding.

    Attributes:
        after_line: Line number after which ``content`` is inserted
            (0 prefixes it to the source).
        content: Text to insert. Empty disables insertion.
    """

    after_line: int = 0
    content: str = ""

    def __post_init__(self) -> None:
        """Validate the line number."""
        if self.after_line < 0:
            raise ConfigError(
                f"Insert line must be non-negative, got {self.after_line}"
            )

    @property
    def enabled(self) -> bool:
        """Whether there is anything to insert."""
        return bool(self.content)


_INSERT_KEYS = {"insert_after_line": "after_line", "insert_content": "content"}


@dataclass(frozen=True)
class EmbedConfig:
    """Configuration for one render call.

    Instances are immutable: use ``replace()`` for per-call overrides.

    Attributes:
        server: Kroki base URL (http or https).
        link: How the image is delivered into the markup.
        output_format: Image format requested from Kroki.
        insert: Preamble inserted into the diagram source.
        class_name: CSS class on generated elements.
        public_dir: Site root that cached files live under.
        asset_path: Asset directory relative to ``public_dir``.
        timeout: Request timeout in seconds.
        reuse_cache: Serve an existing localLink file without fetching.
    """

    server: str = "https://kroki.io"
    link: LinkMode = LinkMode.INLINE_BASE64
    output_format: OutputFormat = OutputFormat.SVG
    insert: InsertDirective = field(default_factory=InsertDirective)
    class_name: str = "kroki"
    public_dir: str = "public"
    asset_path: str = "assert"
    timeout: float = 30.0
    reuse_cache: bool = True

    def __post_init__(self) -> None:
        """Coerce string values to enums and validate."""
        object.__setattr__(self, "link", parse_link_mode(self.link))
        object.__setattr__(
            self, "output_format", parse_output_format(self.output_format)
        )
        if not self.server.startswith(("http://", "https://")):
            raise ConfigError(
                f"Server URL must start with http:// or https://, got {self.server!r}"
            )
        object.__setattr__(self, "server", self.server.rstrip("/"))
        if self.timeout <= 0:
            raise ConfigError(f"Timeout must be positive, got {self.timeout}")

    def replace(self, **overrides: Any) -> EmbedConfig:
        """Return a copy with the given fields overridden.

        ``None`` values leave the field unchanged. The insert directive can be
        replaced whole (``insert=``) or per field (``insert_after_line=``,
        ``insert_content=``).

        Raises:
            ConfigError: On unknown field names or invalid values.
        """
        changes = {key: value for key, value in overrides.items() if value is not None}

        insert_changes = {
            _INSERT_KEYS[key]: changes.pop(key)
            for key in list(changes)
            if key in _INSERT_KEYS
        }
        if insert_changes:
            base_insert = changes.get("insert", self.insert)
            changes["insert"] = dataclasses.replace(base_insert, **insert_changes)

        known = {f.name for f in dataclasses.fields(self)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration field(s): {', '.join(unknown)}")

        if not changes:
            return self
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_environment(cls, **overrides: Any) -> EmbedConfig:
        """Build a config from environment variables, then apply overrides."""
        config = cls(
            server=get_kroki_url(),
            link=get_environment(EnvVar.KROKI_LINK_MODE),
            output_format=get_environment(EnvVar.KROKI_OUTPUT_FORMAT),
            insert=InsertDirective(
                after_line=get_environment(EnvVar.KROKI_INSERT_AFTER_LINE),
                content=get_environment(EnvVar.KROKI_INSERT_CONTENT),
            ),
            class_name=get_environment(EnvVar.KROKI_CLASS_NAME),
            public_dir=get_environment(EnvVar.KROKI_PUBLIC_DIR),
            asset_path=get_environment(EnvVar.KROKI_ASSET_PATH),
            timeout=get_environment(EnvVar.KROKI_TIMEOUT),
            reuse_cache=get_environment(EnvVar.KROKI_REUSE_CACHE),
        )
        return config.replace(**overrides)

    def as_dict(self) -> dict[str, Any]:
        """Plain-value view, e.g. for display."""
        return {
            "server": self.server,
            "link": self.link.value,
            "output_format": self.output_format.value,
            "insert_after_line": self.insert.after_line,
            "insert_content": self.insert.content,
            "class_name": self.class_name,
            "public_dir": self.public_dir,
            "asset_path": self.asset_path,
            "timeout": self.timeout,
            "reuse_cache": self.reuse_cache,
        }


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
