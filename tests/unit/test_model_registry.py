import pytest

from app.core.config import Settings
from app.core.config import settings
from app.core.exceptions import ConfigurationError
from app.services.model_registry import available_models
from app.services.model_registry import variant_configs


def test_variant_configs_cycle_models(monkeypatch):
    monkeypatch.setattr(settings, "variant_models", ["model-a", "model-b"])
    monkeypatch.setattr(settings, "variant_temperatures", [0.2, 0.7, 1.2])

    result = variant_configs(3)

    assert [c.model_id for c in result] == ["model-a", "model-b", "model-a"]
    assert [c.temperature for c in result] == [0.2, 0.7, 1.2]


def test_variant_configs_explicit_temperatures(monkeypatch):
    monkeypatch.setattr(settings, "variant_models", ["model-a"])
    assert [c.temperature for c in variant_configs(2, [1.5, 0.0])] == [1.5, 0.0]


def test_default_count_comes_from_settings(monkeypatch):
    monkeypatch.setattr(settings, "default_variant_count", 1)
    assert len(variant_configs()) == 1


@pytest.mark.parametrize("count", [0, 99])
def test_count_out_of_bounds(count):
    with pytest.raises(ConfigurationError):
        variant_configs(count)


def test_not_enough_temperatures(monkeypatch):
    monkeypatch.setattr(settings, "max_variants", 4)
    with pytest.raises(ConfigurationError):
        variant_configs(3, [0.5])


def test_temperature_out_of_range_is_rejected():
    with pytest.raises(ConfigurationError):
        variant_configs(1, [2.5])


def test_available_models_falls_back_to_default_model(monkeypatch):
    monkeypatch.setattr(settings, "variant_models", [])
    monkeypatch.setattr(settings, "model_id", "fallback-model")
    assert available_models() == ["fallback-model"]


# ---------------------------------------------------------------------------
# Settings parsing
# ---------------------------------------------------------------------------


def test_settings_parse_comma_separated_lists():
    cfg = Settings(variant_models="a, b", variant_temperatures="0.1,1.9", cors_allowed_origins="http://x, http://y")
    assert cfg.variant_models == ["a", "b"]
    assert cfg.variant_temperatures == [0.1, 1.9]
    assert cfg.cors_allowed_origins == ["http://x", "http://y"]


def test_settings_reject_out_of_range_temperature():
    with pytest.raises(ValueError):
        Settings(variant_temperatures="0.5,3.0")


def test_settings_defaults():
    cfg = Settings(_env_file=None)
    assert cfg.auto_select_winner is True
    assert cfg.empty_section_placeholder == "No content generated for this section."
    assert all(0.0 <= t <= 2.0 for t in cfg.variant_temperatures)
