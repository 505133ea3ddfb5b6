from pathlib import Path

import pytest

from handle_index.config import PATH_ENV, IndexConfig, load_config, resolve_config


def test_defaults():
    config = resolve_config(environ={})
    assert config == IndexConfig()
    assert config.path == "data/user-db"


def test_yaml_file_and_env_override(tmp_path: Path) -> None:
    config_file = tmp_path / "index.yaml"
    config_file.write_text("path: /srv/index\nsegments: 64\nsync_writes: true\n", encoding="utf-8")

    config = resolve_config(config_file, environ={})
    assert (config.path, config.segments, config.sync_writes) == ("/srv/index", 64, True)

    config = resolve_config(config_file, environ={PATH_ENV: "/tmp/other"})
    assert config.path == "/tmp/other"
    assert config.segments == 64


def test_empty_yaml_is_defaults(tmp_path: Path) -> None:
    config_file = tmp_path / "empty.yaml"
    config_file.write_text("", encoding="utf-8")
    assert load_config(config_file) == {}
    assert resolve_config(config_file, environ={}) == IndexConfig()


def test_missing_file() -> None:
    with pytest.raises(FileNotFoundError):
        load_config(Path("does_not_exist.yaml"))


def test_unknown_keys_rejected() -> None:
    with pytest.raises(ValueError, match="colour"):
        IndexConfig.from_mapping({"colour": "red"})


def test_with_overrides_ignores_none() -> None:
    config = IndexConfig().with_overrides(path=None, skip_errors=True)
    assert config.path == "data/user-db"
    assert config.skip_errors
