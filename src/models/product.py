# src/models/product.py

"""Typed catalog product model and ranking candidate."""

from dataclasses import dataclass, field


@dataclass
class Product:
    """A single item of the shop's typed catalog."""

    id: str
    name: str
    price: float
    category: str = ""
    description: str = ""
    stock: int = 0
    specs: dict[str, str] = field(
        default_factory=lambda: dict[str, str]()
    )

    @property
    def in_stock(self) -> bool:
        """Stock of zero or below means the product is unavailable."""
        return self.stock > 0


@dataclass(frozen=True)
class MatchCandidate:
    """A product scored against one query; scores only rank within it."""

    product: Product
    score: int
