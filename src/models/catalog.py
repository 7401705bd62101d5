# src/models/catalog.py

"""Textual catalog snapshot and parsed catalog lines."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CatalogSnapshot:
    """Category-sectioned listing as uploaded by the shop.

    Headers and ``name, price`` lines are interleaved; a product line
    belongs to the nearest preceding header.
    """

    text: str
    label: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()


@dataclass(frozen=True)
class CatalogLine:
    """A product line of a snapshot with its parsed name and price."""

    name: str
    price: float
    raw: str
