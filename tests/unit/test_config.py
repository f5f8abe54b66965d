"""
Tests for the config module.
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from inventory_py.config import (
    DEFAULT_PROBE_TIMEOUT,
    DEFAULT_TIMEOUT,
    CollectorOptions,
    ConfigurationError,
    InventoryConfig,
    OutputConfig,
    default_config_path,
)


def test_default_config_path() -> None:
    """default_config_path falls back to ~/.config/app-inventory/config.yaml."""
    env = {"HOME": str(Path.home())}
    with patch.dict(os.environ, env, clear=True):
        result = default_config_path()
        assert result == Path.home() / ".config" / "app-inventory" / "config.yaml"


def test_default_config_path_xdg() -> None:
    """default_config_path respects $XDG_CONFIG_HOME."""
    with patch.dict(os.environ, {"XDG_CONFIG_HOME": "/custom/config"}):
        result = default_config_path()
        assert result == Path("/custom/config/app-inventory/config.yaml")


def test_missing_file_returns_defaults(tmp_path: Path) -> None:
    """Loading a non-existent file returns the default config."""
    with patch.dict(os.environ, {"APP_INVENTORY_INCLUDE_ALL": "0"}):
        cfg = InventoryConfig.load(tmp_path / "nonexistent.yaml")
    assert cfg.sources == {}
    assert cfg.preset is None
    assert cfg.timeout == DEFAULT_TIMEOUT
    assert cfg.probe_timeout == DEFAULT_PROBE_TIMEOUT
    assert cfg.include_all_packages is False
    assert cfg.output == OutputConfig()


def test_empty_file_returns_defaults(tmp_path: Path) -> None:
    """An empty YAML file returns the default config."""
    p = tmp_path / "config.yaml"
    p.write_text("")
    cfg = InventoryConfig.from_file(p)
    assert cfg.sources == {}
    assert cfg.output.format == "tsv"


def test_full_config_parsing(tmp_path: Path) -> None:
    """A fully-populated config file is parsed correctly."""
    p = tmp_path / "config.yaml"
    p.write_text("""\
preset: desktop
sources:
  Docker: true
  snap: false
managers: [pacman, apt]
search: fire
orphans_only: true
include_all_packages: true
run_binaries: true
timeout: 30
timeouts:
  docker: 5
probe_timeout: 0.5
output:
  format: JSON
  path: ~/reports/apps.json
""")
    cfg = InventoryConfig.from_file(p)
    assert cfg.preset == "desktop"
    assert cfg.sources == {"docker": True, "snap": False}
    assert cfg.managers == ["pacman", "apt"]
    assert cfg.search == "fire"
    assert cfg.orphans_only is True
    assert cfg.include_all_packages is True
    assert cfg.run_binaries is True
    assert cfg.timeout == 30.0
    assert cfg.timeout_for("docker") == 5.0
    assert cfg.timeout_for("snap") == 30.0
    assert cfg.probe_timeout == 0.5
    assert cfg.output.format == "json"
    assert cfg.output.path == Path.home() / "reports" / "apps.json"


def test_invalid_entries_are_skipped(tmp_path: Path) -> None:
    """Individual bad entries are dropped, the rest of the file still loads."""
    p = tmp_path / "config.yaml"
    p.write_text("""\
sources:
  docker: "yes please"
  flatpak: false
timeouts:
  docker: soon
  snap: 10
managers: "pacman, apt"
""")
    cfg = InventoryConfig.from_file(p)
    assert cfg.sources == {"flatpak": False}
    assert cfg.timeouts == {"snap": 10.0}
    assert cfg.managers == ["pacman", "apt"]


def test_invalid_timeouts_fall_back_to_defaults(tmp_path: Path) -> None:
    p = tmp_path / "config.yaml"
    p.write_text("timeout: soon\nprobe_timeout: true\nsearch: vim\n")
    cfg = InventoryConfig.from_file(p)
    assert cfg.timeout == DEFAULT_TIMEOUT
    assert cfg.probe_timeout == DEFAULT_PROBE_TIMEOUT
    assert cfg.search == "vim"


def test_malformed_yaml_returns_defaults(tmp_path: Path) -> None:
    p = tmp_path / "config.yaml"
    p.write_text("sources: [unterminated\n")
    cfg = InventoryConfig.from_file(p)
    assert cfg.sources == {}


def test_env_enables_include_all() -> None:
    with patch.dict(os.environ, {"APP_INVENTORY_INCLUDE_ALL": "1"}):
        assert InventoryConfig.defaults().include_all_packages is True
        assert InventoryConfig.from_dict({}).include_all_packages is True
    with patch.dict(os.environ, {"APP_INVENTORY_INCLUDE_ALL": "0"}):
        assert InventoryConfig.defaults().include_all_packages is False


def test_merge_ignores_none_and_updates_output() -> None:
    cfg = InventoryConfig(search="old", timeout=10)
    merged = cfg.merge(search=None, timeout=20.0, output_format="CSV", output_path="/tmp/x")
    assert merged.search == "old"
    assert merged.timeout == 20.0
    assert merged.output == OutputConfig(format="csv", path=Path("/tmp/x"))
    assert cfg.timeout == 10


class TestResolvedPath:
    def test_tsv_without_path_is_not_saved(self) -> None:
        assert OutputConfig().resolved_path() is None

    def test_csv_and_json_default_to_home(self) -> None:
        assert OutputConfig("csv").resolved_path() == Path.home() / "installed-apps.csv"
        assert OutputConfig("json").resolved_path() == Path.home() / "installed-apps.json"

    def test_extension_is_replaced(self) -> None:
        out = OutputConfig("json", Path("/tmp/report.tsv"))
        assert out.resolved_path() == Path("/tmp/report.json")

    def test_unknown_extension_is_kept(self) -> None:
        out = OutputConfig("csv", Path("/tmp/report.txt"))
        assert out.resolved_path() == Path("/tmp/report.txt.csv")

    def test_tsv_path_is_used_as_is(self) -> None:
        out = OutputConfig("tsv", Path("/tmp/report.txt"))
        assert out.resolved_path() == Path("/tmp/report.txt")


class TestValidate:
    def test_defaults_are_valid(self) -> None:
        InventoryConfig().validate()

    def test_unknown_format(self) -> None:
        with pytest.raises(ConfigurationError, match="output format"):
            InventoryConfig(output=OutputConfig("xml")).validate()

    def test_non_positive_timeout(self) -> None:
        with pytest.raises(ConfigurationError):
            InventoryConfig(timeouts={"docker": 0}).validate()

    def test_non_positive_probe_timeout(self) -> None:
        with pytest.raises(ConfigurationError):
            InventoryConfig(probe_timeout=-1).validate()

    def test_unknown_manager(self) -> None:
        with pytest.raises(ConfigurationError, match="portage"):
            InventoryConfig(managers=["pacman", "portage"]).validate()

    def test_all_is_a_valid_manager(self) -> None:
        InventoryConfig(managers=["all"]).validate()


def test_collector_options_from_config() -> None:
    cfg = InventoryConfig(
        include_all_packages=True, timeout=15, managers=["apt"], probe_timeout=2
    )
    options = CollectorOptions.from_config(cfg, ("repo", "docker"))
    assert options.include_all_packages is True
    assert options.command_timeout == 15
    assert options.probe_timeout == 2
    assert options.managers == ("apt",)
    assert options.enabled_sources == ("repo", "docker")
    assert options.for_source(3).command_timeout == 3


def test_collector_options_all_managers() -> None:
    cfg = InventoryConfig(managers=["all", "apt"])
    assert CollectorOptions.from_config(cfg).managers is None


def test_time_left_is_capped_by_the_deadline() -> None:
    options = CollectorOptions(command_timeout=60)
    assert options.time_left() == 60
    with patch("inventory_py.config.time.monotonic", return_value=100.0):
        assert options.for_source(60, deadline=110.0).time_left() == 10.0
        assert options.for_source(5, deadline=110.0).time_left() == 5
        assert options.for_source(60, deadline=90.0).time_left() == 0.0
