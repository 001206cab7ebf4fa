"""Site extractor registry and factory with lazy imports."""

from __future__ import annotations

import importlib

from youread.config import Settings
from youread.sites.base import SiteExtractor

_SITE_REGISTRY: dict[str, str] = {
    "manganato": "youread.sites.manganato.ManganatoSite",
}


def get_site(name: str, settings: Settings) -> SiteExtractor:
    """Instantiate a site extractor by name. Uses lazy imports."""
    if name not in _SITE_REGISTRY:
        available = ", ".join(sorted(_SITE_REGISTRY))
        raise ValueError(f"Unknown site '{name}'. Available: {available}")

    module_path, class_name = _SITE_REGISTRY[name].rsplit(".", 1)
    module = importlib.import_module(module_path)
    site_class = getattr(module, class_name)
    return site_class(settings)


def list_sites() -> list[str]:
    return sorted(_SITE_REGISTRY)
