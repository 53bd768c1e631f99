"""
Tests for local configuration loading.
"""
import logging

import pytest

from field_validation.config_loader import CONFIG_ENV_VAR, ConfigLoader


@pytest.fixture
def clean_env(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)


class TestBundledConfig:
    """Test the config shipped inside the package."""

    def test_bundled_defaults(self, clean_env):
        """Test the values in the bundled local-config.yaml."""
        loader = ConfigLoader()

        assert loader.local_config_path.endswith("local-config.yaml")
        source = loader.get_schema_source_config()
        assert source["type"] == "directory"
        assert source["location"] == "../schemas"
        assert loader.get_schema_max_age() == 0
        assert loader.get_strict_unknown_schema() is False
        assert loader.get_batch_max_workers() == 1
        assert loader.get_log_level() == logging.INFO


class TestExplicitConfig:
    """Test config files passed by path or environment."""

    def test_explicit_path(self, tmp_path, clean_env):
        """Test loading a config file by path."""
        path = tmp_path / "local-config.yaml"
        path.write_text(
            "schema_source:\n  type: http\n  base_url: https://schemas.example.com\n"
            "registry:\n  max_age_seconds: 900\n"
            "validation:\n  strict_unknown_schema: true\n"
            "batch:\n  max_workers: 8\n"
            "logging:\n  level: debug\n"
        )

        loader = ConfigLoader(str(path))

        assert loader.config_dir == tmp_path.resolve()
        assert loader.get_schema_source_config()["base_url"] == "https://schemas.example.com"
        assert loader.get_schema_max_age() == 900
        assert loader.get_strict_unknown_schema() is True
        assert loader.get_batch_max_workers() == 8
        assert loader.get_log_level() == logging.DEBUG

    def test_file_uri(self, tmp_path, clean_env):
        """Test that file:// URIs are accepted."""
        path = tmp_path / "cfg.yaml"
        path.write_text("batch:\n  max_workers: 3\n")

        assert ConfigLoader(path.resolve().as_uri()).get_batch_max_workers() == 3

    def test_environment_variable(self, tmp_path, monkeypatch):
        """Test FIELD_VALIDATION_CONFIG."""
        path = tmp_path / "env.yaml"
        path.write_text("registry:\n  max_age_seconds: 42\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

        assert ConfigLoader().get_schema_max_age() == 42

    def test_missing_sections_use_defaults(self, tmp_path, clean_env):
        """Test that an empty file falls back to defaults."""
        path = tmp_path / "empty.yaml"
        path.write_text("")

        loader = ConfigLoader(str(path))

        assert loader.get_schema_source_config() == {"type": "directory", "location": "../schemas"}
        assert loader.get_batch_max_workers() == 1
        assert loader.get_log_level() == logging.INFO

    def test_bad_values(self, tmp_path, clean_env):
        """Test clamping of workers and unknown log levels."""
        path = tmp_path / "odd.yaml"
        path.write_text("batch:\n  max_workers: 0\nlogging:\n  level: CHATTY\n")

        loader = ConfigLoader(str(path))

        assert loader.get_batch_max_workers() == 1
        assert loader.get_log_level() == logging.INFO

    def test_non_mapping_rejected(self, tmp_path, clean_env):
        """Test that a YAML list is not a valid config."""
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ValueError):
            ConfigLoader(str(path))

    def test_missing_file(self, tmp_path, clean_env):
        """Test that a missing explicit file raises."""
        with pytest.raises(FileNotFoundError):
            ConfigLoader(str(tmp_path / "nope.yaml"))

    def test_unsupported_scheme(self, clean_env):
        """Test that remote config URIs are rejected."""
        with pytest.raises(ValueError):
            ConfigLoader("https://example.com/local-config.yaml")
