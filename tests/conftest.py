"""Shared fixtures: a service configured against a copy of the bundled schemas."""
import shutil
from pathlib import Path

import pytest
import yaml

from field_validation import ValidationService

SCHEMAS_DIR = Path(__file__).resolve().parent.parent / "schemas"


def write_config(path, schema_dir, **sections):
    config = {
        "schema_source": {"type": "directory", "location": str(schema_dir)},
        "registry": {"max_age_seconds": 0},
        "validation": {"strict_unknown_schema": False},
        "batch": {"max_workers": 1},
        "logging": {"level": "INFO"},
    }
    for name, values in sections.items():
        config[name].update(values)
    path.write_text(yaml.safe_dump(config))
    return path


@pytest.fixture
def schema_dir(tmp_path):
    """Writable copy of the repository's schemas/ directory."""
    target = tmp_path / "schemas"
    shutil.copytree(SCHEMAS_DIR, target)
    return target


@pytest.fixture
def config_file(tmp_path, schema_dir):
    return write_config(tmp_path / "local-config.yaml", schema_dir)


@pytest.fixture
def service(config_file):
    """Create a ValidationService instance for testing."""
    service = ValidationService(config_path=str(config_file))
    yield service
    service.close()
