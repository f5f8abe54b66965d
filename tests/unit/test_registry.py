"""
Tests for the collector registry.
"""

from unittest.mock import patch

import pytest

from inventory_py import platform
from inventory_py.config import CollectorOptions, ConfigurationError, InventoryConfig
from inventory_py.record import RawEntry
from inventory_py.registry import PRESETS, CollectorRegistry, SourceSelection, default_registry


@pytest.fixture(autouse=True)
def clear_cache() -> None:
    platform.reset_command_cache()


@pytest.fixture
def registry(make_collector) -> CollectorRegistry:
    return CollectorRegistry(
        [
            make_collector("repo", orphan_capable=True),
            make_collector("aur", orphan_capable=True),
            make_collector("flatpak", available=False),
            make_collector("appimage"),
            make_collector("local", default_enabled=False),
            make_collector("docker"),
            make_collector("ollama", aliases=("llms",)),
        ]
    )


def test_default_registry_order() -> None:
    assert default_registry().sources() == [
        "repo",
        "aur",
        "flatpak",
        "snap",
        "appimage",
        "local",
        "pip",
        "docker",
        "podman",
        "ollama",
        "nix",
        "cargo",
        "npm",
        "brew",
        "go",
        "pipx",
        "systemd",
    ]


def test_default_registry_aliases() -> None:
    registry = default_registry()
    assert registry.resolve("LLMs") == "ollama"
    assert registry.resolve(" homebrew ") == "brew"
    assert registry.resolve("linuxbrew") == "brew"
    assert registry.get("llms").source_id == "ollama"


def test_resolve_unknown_source(registry: CollectorRegistry) -> None:
    with pytest.raises(ConfigurationError, match="Unknown source 'bogus'"):
        registry.resolve("bogus")


def test_register_rejects_duplicates(registry: CollectorRegistry, make_collector) -> None:
    with pytest.raises(ValueError):
        registry.register(make_collector("docker"))
    with pytest.raises(ValueError):
        registry.register(make_collector("models", aliases=("llms",)))


def test_register_new_source(registry: CollectorRegistry, make_collector) -> None:
    registry.register(make_collector("guix"))
    assert "guix" in registry
    assert registry.sources()[-1] == "guix"
    assert len(registry) == 8


def test_enabled_sources_defaults(registry: CollectorRegistry) -> None:
    selection = registry.enabled_sources(InventoryConfig())
    assert selection == SourceSelection(
        enabled=("repo", "aur", "appimage", "docker", "ollama"),
        skipped=("flatpak",),
    )


def test_enabled_sources_mapping_overrides(registry: CollectorRegistry) -> None:
    config = InventoryConfig(sources={"local": True, "docker": False, "llms": False})
    selection = registry.enabled_sources(config)
    assert selection.enabled == ("repo", "aur", "appimage", "local")


def test_only_enables_exactly_the_named_sources(registry: CollectorRegistry) -> None:
    config = InventoryConfig(sources=registry.only(["docker", "flatpak"]))
    selection = registry.enabled_sources(config)
    assert selection.enabled == ("docker",)
    assert selection.skipped == ("flatpak",)


def test_only_rejects_unknown_names(registry: CollectorRegistry) -> None:
    with pytest.raises(ConfigurationError):
        registry.only(["docker", "nope"])


def test_unknown_source_in_config(registry: CollectorRegistry) -> None:
    with pytest.raises(ConfigurationError):
        registry.enabled_sources(InventoryConfig(sources={"nope": True}))


class TestPresets:
    def test_numbers_are_one_to_five(self) -> None:
        assert [p.number for p in PRESETS] == [1, 2, 3, 4, 5]

    @pytest.mark.parametrize("name", ["desktop", "2", "P2", " Desktop "])
    def test_find_by_name_or_number(self, registry: CollectorRegistry, name: str) -> None:
        assert registry.find_preset(name).name == "desktop"

    def test_unknown_preset(self, registry: CollectorRegistry) -> None:
        with pytest.raises(ConfigurationError):
            registry.find_preset("everything")

    def test_preset_filtered_to_available(self, registry: CollectorRegistry) -> None:
        selection = registry.preset_selection("desktop")
        assert selection.enabled == ("repo", "aur", "appimage")
        assert selection.skipped == ("flatpak",)

    def test_full_includes_default_off_sources(self, registry: CollectorRegistry) -> None:
        assert "local" in registry.preset_selection("full").enabled

    def test_no_repo_excludes_distro_sources(self, registry: CollectorRegistry) -> None:
        enabled = registry.preset_selection("no-repo").enabled
        assert "repo" not in enabled
        assert "aur" not in enabled
        assert "docker" in enabled

    def test_config_preset_then_mapping(self, registry: CollectorRegistry) -> None:
        config = InventoryConfig(preset="minimal", sources={"docker": True})
        assert registry.enabled_sources(config).enabled == ("repo", "docker")


def test_orphan_sources(registry: CollectorRegistry) -> None:
    selection = SourceSelection(enabled=("repo", "docker"))
    assert registry.orphan_sources(selection, CollectorOptions()) == ["repo"]


def test_default_registry_availability_follows_commands() -> None:
    with patch(
        "inventory_py.platform.command_exists", side_effect=lambda c: c in ("pacman", "docker")
    ):
        selection = default_registry().enabled_sources(InventoryConfig())
    assert selection.enabled == ("repo", "aur", "appimage", "docker", "ollama")
    assert "flatpak" in selection.skipped
    assert "local" not in selection.skipped


def test_repo_orphans_need_pacman() -> None:
    registry = default_registry()
    selection = SourceSelection(enabled=("repo",))
    with patch("inventory_py.platform.command_exists", side_effect=lambda c: c == "dpkg-query"):
        assert registry.orphan_sources(selection, CollectorOptions()) == []
    platform.reset_command_cache()
    with patch("inventory_py.platform.command_exists", side_effect=lambda c: c == "pacman"):
        assert registry.orphan_sources(selection, CollectorOptions()) == ["repo"]


def test_fake_entries_are_raw(make_collector) -> None:
    collector = make_collector("x", entries=[RawEntry("a", "T", "s")])
    assert collector.record_types == ("T",)
