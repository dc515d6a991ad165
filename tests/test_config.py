"""Tests for configuration management.

Property tests cover the TOML round-trip and type validation; the example
tests cover defaults, file handling and the init template.
"""

from pathlib import Path

import hypothesis.strategies as st
import pytest
from hypothesis import given, settings

from simplebackup.config import (
    Configuration,
    ConfigurationError,
    LockConfig,
    LoggingConfig,
    UpdateConfig,
    ValidationError,
    DEFAULT_API_URL,
    create_default_config,
    default_configuration,
    format_config,
    parse_config,
    parse_config_string,
)


# Strategies for generating valid configuration values
valid_log_levels = st.sampled_from(["DEBUG", "INFO", "ERROR"])

# Plain path components: letters, digits and a few punctuation characters
valid_path_str = st.text(
    alphabet=st.characters(
        whitelist_categories=("L", "N"),
        whitelist_characters=" -_.\"\\",
    ),
    min_size=1,
    max_size=30,
).filter(lambda s: s.strip(" .") != "")


@st.composite
def update_configs(draw):
    """Generate valid UpdateConfig instances."""
    target = draw(st.one_of(st.none(), valid_path_str))
    return UpdateConfig(
        api_url="https://example.com/" + draw(valid_path_str),
        repository=draw(valid_path_str) + "/" + draw(valid_path_str),
        release_page_url="https://example.com/releases/",
        timeout_seconds=draw(st.integers(min_value=1, max_value=300)),
        update_target=None if target is None else Path("/tmp/app") / target,
    )


@st.composite
def lock_configs(draw):
    """Generate valid LockConfig instances."""
    return LockConfig(
        lock_directory=Path("/tmp/locks") / draw(valid_path_str),
        timeout_seconds=draw(st.integers(min_value=0, max_value=60)),
    )


@st.composite
def logging_configs(draw):
    """Generate valid LoggingConfig instances."""
    return LoggingConfig(
        level=draw(valid_log_levels),
        log_file=Path("/tmp") / draw(valid_path_str),
        error_log_file=Path("/tmp") / draw(valid_path_str),
        log_max_size_mb=draw(st.integers(min_value=1, max_value=100)),
        log_backup_count=draw(st.integers(min_value=0, max_value=20)),
    )


@st.composite
def configurations(draw):
    """Generate valid Configuration instances."""
    return Configuration(
        app_directory=Path("/tmp/projects") / draw(valid_path_str),
        updates=draw(update_configs()),
        lock=draw(lock_configs()),
        logging=draw(logging_configs()),
    )


class TestConfigurationRoundTrip:
    """
    Property: Configuration Round-Trip

    For any valid Configuration object, formatting it to TOML and then
    parsing the result produces an equivalent Configuration object.
    """

    @given(config=configurations())
    @settings(max_examples=100)
    def test_round_trip_preserves_configuration(self, config: Configuration):
        """For any valid Configuration object, parse(format(config)) == config."""
        parsed = parse_config_string(format_config(config))

        assert parsed == config


class TestConfigurationMissingKeyDetection:
    """Parsing without app_directory raises a ConfigurationError naming it."""

    @given(config=configurations())
    @settings(max_examples=100)
    def test_missing_app_directory_raises_error(self, config: Configuration):
        lines = [
            line for line in format_config(config).split("\n")
            if not line.startswith("app_directory =")
        ]

        with pytest.raises(ConfigurationError) as exc_info:
            parse_config_string("\n".join(lines))

        assert "app_directory" in str(exc_info.value)


class TestConfigurationTypeValidation:
    """
    Property: Configuration Type Validation

    For any TOML configuration with a value replaced by an incompatible type,
    the parser raises a ValidationError naming the key.
    """

    @staticmethod
    def _replace(toml_str: str, key: str, value: str) -> str:
        return "\n".join(
            f"{key} = {value}" if line.startswith(f"{key} =") else line
            for line in toml_str.split("\n")
        )

    @given(config=configurations())
    @settings(max_examples=100)
    def test_wrong_type_for_app_directory_raises_error(self, config: Configuration):
        toml_str = self._replace(format_config(config), "app_directory", "12345")

        with pytest.raises(ValidationError) as exc_info:
            parse_config_string(toml_str)

        assert "app_directory" in str(exc_info.value)
        assert "str" in str(exc_info.value)

    @given(config=configurations())
    @settings(max_examples=100)
    def test_wrong_type_for_log_level_raises_error(self, config: Configuration):
        toml_str = self._replace(format_config(config), "level", "[1, 2]")

        with pytest.raises(ValidationError) as exc_info:
            parse_config_string(toml_str)

        assert "logging.level" in str(exc_info.value)

    def test_bool_is_not_accepted_as_int(self):
        toml_str = '''[main]
app_directory = "/tmp/app"

[lock]
timeout_seconds = true
'''
        with pytest.raises(ValidationError) as exc_info:
            parse_config_string(toml_str)

        assert "lock.timeout_seconds" in str(exc_info.value)
        assert "bool" in str(exc_info.value)

    def test_section_must_be_table(self):
        toml_str = '''updates = "yes"

[main]
app_directory = "/tmp/app"
'''
        with pytest.raises(ValidationError) as exc_info:
            parse_config_string(toml_str)

        assert "updates" in str(exc_info.value)


class TestParseConfig:
    """Tests for parsing configuration text and files."""

    def test_minimal_config_uses_defaults(self):
        config = parse_config_string('[main]\napp_directory = "/tmp/app"\n')

        assert config.app_directory == Path("/tmp/app")
        assert config.sources_root == Path("/tmp")
        assert config.updates.api_url == DEFAULT_API_URL
        assert config.updates.update_target is None
        assert config.lock.timeout_seconds == 5
        assert config.logging.level == "INFO"

    def test_app_directory_at_root_table(self):
        config = parse_config_string('app_directory = "/srv/tools/backup"\n')

        assert config.app_directory == Path("/srv/tools/backup")

    def test_relative_app_directory_is_made_absolute(self, tmp_path, monkeypatch):
        (tmp_path / "app").mkdir()
        monkeypatch.chdir(tmp_path / "app")

        config = parse_config_string('[main]\napp_directory = "."\n')

        assert config.app_directory == (tmp_path / "app").resolve()
        assert config.app_directory.name == "app"
        assert config.sources_root == tmp_path.resolve()

    def test_parent_reference_is_normalized(self, tmp_path, monkeypatch):
        (tmp_path / "app").mkdir()
        monkeypatch.chdir(tmp_path / "app")

        config = parse_config_string('[main]\napp_directory = "../app"\n')

        assert config.app_directory == (tmp_path / "app").resolve()

    def test_home_is_expanded(self):
        config = parse_config_string(
            '[main]\napp_directory = "~/backups"\n\n[updates]\nupdate_target = "~/bin/app"\n'
        )

        assert config.app_directory == Path.home() / "backups"
        assert config.updates.update_target == Path.home() / "bin/app"

    def test_invalid_toml_raises_configuration_error(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_config_string("[main\napp_directory = ")

        assert "Invalid TOML" in str(exc_info.value)

    def test_missing_file_raises_configuration_error(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_config(tmp_path / "missing.toml")

        assert "not found" in str(exc_info.value)

    def test_reads_file(self, tmp_path):
        config_file = tmp_path / "config.toml"
        config_file.write_text(f'[main]\napp_directory = "{tmp_path}"\n')

        config = parse_config(config_file)

        assert config.app_directory == tmp_path

    def test_log_max_bytes(self):
        assert LoggingConfig(log_max_size_mb=2).log_max_bytes == 2 * 1024 * 1024


class TestDefaults:
    """Tests for default configuration and the init template."""

    def test_default_configuration_uses_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        config = default_configuration()

        assert config.app_directory == tmp_path.resolve()
        assert config.sources_root == tmp_path.resolve().parent

    def test_default_configuration_with_explicit_directory(self, tmp_path):
        config = default_configuration(tmp_path / "app")

        assert config.app_directory == (tmp_path / "app").resolve()

    def test_default_template_parses(self, tmp_path):
        config = parse_config_string(create_default_config(tmp_path))

        assert config.app_directory == tmp_path
        assert config.lock.lock_directory == Path.home() / ".cache/simplebackup/locks"
        assert config.logging.log_file == Path.home() / ".local/log/simplebackup.log"
        assert config.updates.update_target is None

    def test_default_template_escapes_path(self):
        template = create_default_config(Path('/tmp/odd"name'))

        config = parse_config_string(template)

        assert config.app_directory == Path('/tmp/odd"name')
