"""Tests for configuration and logging setup."""

import logging

import pytest
import structlog
from pydantic import ValidationError

from py_regions.config import RegionGeneratorOptions, Settings
from py_regions.errors import ConfigurationError
from py_regions.utils import configure_logging


class TestRegionGeneratorOptions:
    """Test option validation and helpers."""

    def test_defaults(self):
        options = RegionGeneratorOptions()

        assert options.min_region_cells == 400
        assert options.max_region_cells == 3000
        assert options.sentinel_elevation == 420

    def test_max_below_min_rejected(self):
        with pytest.raises(ValidationError):
            RegionGeneratorOptions(min_region_cells=50, max_region_cells=10)

    def test_load_raises_configuration_error(self):
        with pytest.raises(ConfigurationError):
            RegionGeneratorOptions.load({"sample_spacing": 0})

    def test_load_valid_mapping(self):
        options = RegionGeneratorOptions.load({"grid_topology": "hex", "radius": 64})
        assert options.grid_topology.value == "hex"
        assert options.radius == 64

    def test_groups_must_be_known(self):
        with pytest.raises(ConfigurationError):
            RegionGeneratorOptions.load({
                "known_categories": ["plains"],
                "similar_category_groups": {"forest": "green"},
            })

    @pytest.mark.parametrize("category,expected", [
        ("ocean", True),
        ("DEEP_OCEAN", True),
        ("mangrove_swamp", True),
        ("stony_shore", False),
        ("plains", False),
        (None, False),
    ])
    def test_is_water(self, category, expected):
        assert RegionGeneratorOptions().is_water(category) is expected

    def test_category_group(self):
        options = RegionGeneratorOptions(
            similar_category_groups={"forest": "trees", "birch_forest": "trees"}
        )

        assert options.category_group("forest") == options.category_group("birch_forest")
        assert options.category_group("plains") == ("category", "plains")
        assert options.category_group("forest") != options.category_group("plains")

    def test_is_known(self):
        options = RegionGeneratorOptions(known_categories=["plains"])

        assert options.is_known("plains")
        assert options.is_known("unknown")
        assert not options.is_known("mystery")


class TestSettings:
    """Test environment-driven settings."""

    def test_nested_generator_override(self, monkeypatch):
        monkeypatch.setenv("REGIONS_GENERATOR__MIN_REGION_CELLS", "50")
        monkeypatch.setenv("REGIONS_LOG_LEVEL", "DEBUG")
        settings = Settings(_env_file=None)

        assert settings.generator.min_region_cells == 50
        assert settings.log_level == "DEBUG"

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("REGIONS_DATABASE_URL", raising=False)
        settings = Settings(_env_file=None)

        assert settings.database_url == "sqlite:///regions.db"
        assert settings.generator.sample_spacing == 8


class TestConfigureLogging:
    def test_console_format(self):
        configure_logging("DEBUG", "console")

        assert logging.getLogger().level == logging.DEBUG
        structlog.get_logger("py_regions.test").info("Logging configured", renderer="console")

    def test_json_format(self):
        configure_logging("warning", "json")
        assert logging.getLogger().level == logging.WARNING
