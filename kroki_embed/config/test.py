"""Tests for configuration management."""

import pytest

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


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every KROKI_* variable so defaults apply."""
    for var in EnvVar:
        monkeypatch.delenv(var.value.name, raising=False)
    return monkeypatch


# =============================================================================
# Tests for get_environment (main interface)
# =============================================================================


class TestGetEnvironment:
    """Tests for the unified get_environment interface."""

    @pytest.mark.unit
    def test_returns_default_when_not_set(self, clean_env):
        """Returns default value when env var is not set."""
        assert get_environment(EnvVar.KROKI_URL) == "https://kroki.io"
        assert get_environment(EnvVar.KROKI_LINK_MODE) == "inlineBase64"

    @pytest.mark.unit
    def test_override_takes_priority(self, monkeypatch):
        """Override parameter takes highest priority."""
        monkeypatch.setenv("KROKI_CLASS_NAME", "from-env")
        assert get_environment(EnvVar.KROKI_CLASS_NAME, override="uml") == "uml"

    @pytest.mark.unit
    def test_env_var_overrides_default(self, monkeypatch):
        """Environment variable overrides default value."""
        monkeypatch.setenv("KROKI_INSERT_AFTER_LINE", "3")
        result = get_environment(EnvVar.KROKI_INSERT_AFTER_LINE)
        assert result == 3
        assert isinstance(result, int)

    @pytest.mark.unit
    def test_float_type_conversion(self, monkeypatch):
        """Float type conversion from string."""
        monkeypatch.setenv("KROKI_TIMEOUT", "2.5")
        assert get_environment(EnvVar.KROKI_TIMEOUT) == 2.5

    @pytest.mark.unit
    def test_bool_type_conversion(self, monkeypatch):
        """Boolean type conversion for true and false spellings."""
        for value in ("false", "0", "no", "FALSE", "No"):
            monkeypatch.setenv("KROKI_REUSE_CACHE", value)
            assert get_environment(EnvVar.KROKI_REUSE_CACHE) is False
        for value in ("true", "1", "yes", "TRUE", "Yes"):
            monkeypatch.setenv("KROKI_REUSE_CACHE", value)
            assert get_environment(EnvVar.KROKI_REUSE_CACHE) is True

    @pytest.mark.unit
    def test_invalid_numbers_return_default(self, monkeypatch):
        """Unparseable numeric values fall back to the default."""
        monkeypatch.setenv("KROKI_INSERT_AFTER_LINE", "first")
        monkeypatch.setenv("KROKI_TIMEOUT", "soon")
        assert get_environment(EnvVar.KROKI_INSERT_AFTER_LINE) == 0
        assert get_environment(EnvVar.KROKI_TIMEOUT) == 30.0


class TestGetEnvironmentInfo:
    """Tests for environment variable metadata."""

    @pytest.mark.unit
    def test_returns_env_config(self):
        """Returns EnvConfig dataclass."""
        info = get_environment_info(EnvVar.KROKI_TIMEOUT)
        assert isinstance(info, EnvConfig)
        assert info.name == "KROKI_TIMEOUT"
        assert info.var_type is float
        assert info.category == "service"

    @pytest.mark.unit
    def test_description_present(self):
        """Description field is populated."""
        info = get_environment_info(EnvVar.KROKI_LINK_MODE)
        assert "localLink" in info.description


class TestListEnvironmentVariables:
    """Tests for listing environment variables."""

    @pytest.mark.unit
    def test_returns_all_variables(self):
        """Returns all EnvVar members when no category."""
        assert list_environment_variables() == list(EnvVar)

    @pytest.mark.unit
    def test_filter_by_category(self):
        """Filters by category correctly."""
        cache_vars = list_environment_variables("cache")
        assert EnvVar.KROKI_PUBLIC_DIR in cache_vars
        assert EnvVar.KROKI_ASSET_PATH in cache_vars
        assert EnvVar.KROKI_URL not in cache_vars


class TestGetKrokiUrl:
    """Tests for Kroki URL resolution."""

    @pytest.mark.unit
    def test_override_takes_priority(self, monkeypatch):
        """Override parameter takes highest priority."""
        monkeypatch.setenv("KROKI_URL", "http://other:8000")
        assert get_kroki_url(override="http://custom:9000") == "http://custom:9000"

    @pytest.mark.unit
    def test_env_var_used(self, monkeypatch):
        """KROKI_URL env var used when set; trailing slash dropped."""
        monkeypatch.setenv("KROKI_URL", "http://kroki.example.com/")
        assert get_kroki_url() == "http://kroki.example.com"

    @pytest.mark.unit
    def test_default_url(self, clean_env):
        """Public Kroki instance is the default."""
        assert get_kroki_url() == "https://kroki.io"


# =============================================================================
# Tests for vocabulary enums
# =============================================================================


class TestVocabulary:
    """Tests for LinkMode and OutputFormat parsing."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "value",
        ["inline", "inlineBase64", "inlineUrlEncode", "localLink", "externalLink"],
    )
    def test_link_modes_parse(self, value):
        """Every documented link mode string is accepted."""
        assert parse_link_mode(value).value == value

    @pytest.mark.unit
    def test_unknown_link_mode_rejected(self):
        """Unknown modes raise ConfigError listing the choices."""
        with pytest.raises(ConfigError, match="expected one of: inline"):
            parse_link_mode("embedded")

    @pytest.mark.unit
    def test_output_format_case_insensitive(self):
        """Output format parsing ignores case."""
        assert parse_output_format("PNG") is OutputFormat.PNG

    @pytest.mark.unit
    def test_unknown_output_format_rejected(self):
        """Formats other than svg/png are rejected."""
        with pytest.raises(ConfigError, match="Unknown output format"):
            parse_output_format("pdf")

    @pytest.mark.unit
    def test_mime_types(self):
        """MIME types used for data URIs."""
        assert OutputFormat.SVG.mime_type == "image/svg+xml"
        assert OutputFormat.PNG.mime_type == "image/png"

    @pytest.mark.unit
    def test_only_external_link_skips_fetch(self):
        """externalLink is the only mode without a network call."""
        assert [m for m in LinkMode if not m.needs_fetch] == [LinkMode.EXTERNAL_LINK]

    @pytest.mark.unit
    def test_config_error_is_value_error(self):
        """ConfigError can be caught as ValueError."""
        assert issubclass(ConfigError, ValueError)


# =============================================================================
# Tests for EmbedConfig
# =============================================================================


class TestEmbedConfig:
    """Tests for the render configuration value object."""

    @pytest.mark.unit
    def test_default_values(self):
        """Defaults match the documented configuration."""
        config = EmbedConfig()
        assert config.server == "https://kroki.io"
        assert config.link is LinkMode.INLINE_BASE64
        assert config.output_format is OutputFormat.SVG
        assert config.insert == InsertDirective(after_line=0, content="")
        assert config.class_name == "kroki"
        assert config.public_dir == "public"
        assert config.asset_path == "assert"

    @pytest.mark.unit
    def test_string_values_coerced(self):
        """String link/format values become enums."""
        config = EmbedConfig(link="localLink", output_format="png")
        assert config.link is LinkMode.LOCAL_LINK
        assert config.output_format is OutputFormat.PNG

    @pytest.mark.unit
    def test_unknown_link_rejected(self):
        """Unknown link mode fails at construction."""
        with pytest.raises(ConfigError):
            EmbedConfig(link="sideways")

    @pytest.mark.unit
    def test_server_scheme_required(self):
        """Server must be an http(s) URL."""
        with pytest.raises(ConfigError, match="http:// or https://"):
            EmbedConfig(server="kroki.io")

    @pytest.mark.unit
    def test_server_trailing_slash_stripped(self):
        """Trailing slash would otherwise double up in URLs."""
        assert EmbedConfig(server="http://localhost:8000/").server == (
            "http://localhost:8000"
        )

    @pytest.mark.unit
    def test_invalid_timeout(self):
        """Timeout must be positive."""
        with pytest.raises(ConfigError, match="Timeout must be positive"):
            EmbedConfig(timeout=0)

    @pytest.mark.unit
    def test_negative_insert_line_rejected(self):
        """Insert directive rejects negative lines."""
        with pytest.raises(ConfigError, match="non-negative"):
            InsertDirective(after_line=-1, content="x")

    @pytest.mark.unit
    def test_frozen(self):
        """Config objects cannot be mutated."""
        config = EmbedConfig()
        with pytest.raises(AttributeError):
            config.class_name = "other"  # type: ignore[misc]


class TestEmbedConfigReplace:
    """Tests for per-call overrides."""

    @pytest.mark.unit
    def test_replace_returns_new_object(self):
        """Overrides never mutate the base config."""
        base = EmbedConfig()
        updated = base.replace(class_name="uml", link="externalLink")
        assert updated.class_name == "uml"
        assert updated.link is LinkMode.EXTERNAL_LINK
        assert base.class_name == "kroki"
        assert base.link is LinkMode.INLINE_BASE64

    @pytest.mark.unit
    def test_none_values_ignored(self):
        """None means 'not overridden'."""
        base = EmbedConfig(class_name="uml")
        assert base.replace(class_name=None) is base

    @pytest.mark.unit
    def test_insert_field_overrides(self):
        """Insert fields can be overridden individually."""
        base = EmbedConfig(insert=InsertDirective(after_line=1, content="!theme a"))
        updated = base.replace(insert_content="!theme b")
        assert updated.insert == InsertDirective(after_line=1, content="!theme b")

    @pytest.mark.unit
    def test_insert_object_and_fields_combine(self):
        """Per-field insert overrides apply on top of a replaced directive."""
        updated = EmbedConfig().replace(
            insert=InsertDirective(after_line=2, content="x"),
            insert_after_line=3,
        )
        assert updated.insert == InsertDirective(after_line=3, content="x")

    @pytest.mark.unit
    def test_unknown_field_rejected(self):
        """Typos in override names are reported."""
        with pytest.raises(ConfigError, match="classname"):
            EmbedConfig().replace(classname="x")

    @pytest.mark.unit
    def test_invalid_override_rejected(self):
        """Overrides are validated like constructor arguments."""
        with pytest.raises(ConfigError):
            EmbedConfig().replace(link="bogus")


class TestEmbedConfigFromEnvironment:
    """Tests for building config from the environment."""

    @pytest.mark.unit
    def test_defaults(self, clean_env):
        """No variables set gives the dataclass defaults."""
        assert EmbedConfig.from_environment() == EmbedConfig()

    @pytest.mark.unit
    def test_reads_variables(self, clean_env):
        """Each field is read from its variable."""
        clean_env.setenv("KROKI_URL", "http://localhost:18000")
        clean_env.setenv("KROKI_LINK_MODE", "localLink")
        clean_env.setenv("KROKI_OUTPUT_FORMAT", "png")
        clean_env.setenv("KROKI_INSERT_AFTER_LINE", "1")
        clean_env.setenv("KROKI_INSERT_CONTENT", "!theme sketchy-outline")
        clean_env.setenv("KROKI_PUBLIC_DIR", "site")
        clean_env.setenv("KROKI_REUSE_CACHE", "no")

        config = EmbedConfig.from_environment()

        assert config.server == "http://localhost:18000"
        assert config.link is LinkMode.LOCAL_LINK
        assert config.output_format is OutputFormat.PNG
        assert config.insert == InsertDirective(1, "!theme sketchy-outline")
        assert config.public_dir == "site"
        assert config.reuse_cache is False

    @pytest.mark.unit
    def test_overrides_beat_environment(self, clean_env):
        """Keyword overrides win over environment values."""
        clean_env.setenv("KROKI_CLASS_NAME", "from-env")
        config = EmbedConfig.from_environment(class_name="explicit")
        assert config.class_name == "explicit"

    @pytest.mark.unit
    def test_bad_link_mode_in_environment(self, clean_env):
        """A bad KROKI_LINK_MODE surfaces as ConfigError."""
        clean_env.setenv("KROKI_LINK_MODE", "inline-base64")
        with pytest.raises(ConfigError):
            EmbedConfig.from_environment()

    @pytest.mark.unit
    def test_as_dict(self):
        """as_dict exposes plain values."""
        data = EmbedConfig().as_dict()
        assert data["link"] == "inlineBase64"
        assert data["output_format"] == "svg"
        assert data["insert_content"] == ""
