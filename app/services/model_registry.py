"""Variant slot configuration drawn from settings.

Model identifiers are opaque; only temperatures are range-checked (by
``VariantConfig``).
"""

from pydantic import ValidationError

from app.core.config import settings
from app.core.exceptions import ConfigurationError
from app.models.document_models import VariantConfig


def available_models() -> list[str]:
    return list(settings.variant_models) or [settings.model_id]


def variant_configs(count: int | None = None, temperatures: list[float] | None = None) -> list[VariantConfig]:
    """Builds *count* variant slots.

    Slot ``i`` uses the ``i``-th configured model (cycling the list) and the
    ``i``-th temperature, from *temperatures* if given, else from settings.
    """
    count = settings.default_variant_count if count is None else count
    if not 1 <= count <= settings.max_variants:
        raise ConfigurationError(f"Variant count must be between 1 and {settings.max_variants}, got {count}.")

    temps = list(temperatures) if temperatures else list(settings.variant_temperatures)
    if len(temps) < count:
        raise ConfigurationError(f"{count} variants requested but only {len(temps)} temperatures configured.")

    models = available_models()
    try:
        return [VariantConfig(model_id=models[i % len(models)], temperature=temps[i]) for i in range(count)]
    except ValidationError as e:
        raise ConfigurationError(f"Invalid variant configuration: {e}") from e
