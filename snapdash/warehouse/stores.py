"""Store master lookups."""

from __future__ import annotations

import os
import pathlib
from typing import Mapping, Sequence

import yaml

STORES_PATH = pathlib.Path(os.environ.get("STORES_PATH", pathlib.Path(__file__).with_name("stores.yml")))

# Warehouse brand codes reported under another brand.
BRAND_ALIASES = {"I": "M"}


def normalize_brand(brand: str) -> str:
    code = brand.strip().upper()
    return BRAND_ALIASES.get(code, code)


def brand_codes(brand: str) -> tuple[str, ...]:
    """Warehouse ``brd_cd`` values that make up a reporting brand."""
    normalized = normalize_brand(brand)
    aliases = sorted(code for code, target in BRAND_ALIASES.items() if target == normalized)
    return (normalized, *aliases)


class StoreDirectory:
    def __init__(self, stores: Mapping[str, Mapping[str, Sequence[str]]]) -> None:
        self._stores = {
            region.strip().upper(): {normalize_brand(brand): tuple(codes) for brand, codes in brands.items()}
            for region, brands in stores.items()
        }

    def shops(self, region: str, brand: str) -> tuple[str, ...]:
        return self._stores.get(region.strip().upper(), {}).get(normalize_brand(brand), ())

    def has_stores(self, region: str, brand: str) -> bool:
        return bool(self.shops(region, brand))


def load_stores(path: pathlib.Path = STORES_PATH) -> StoreDirectory:
    data = yaml.safe_load(path.read_text()) or {}
    return StoreDirectory(data)
