# src/storage/catalog_store.py

"""In-memory catalog store shared by all concurrently served users.

Holds two views of the shop's catalog:

* the typed product index (``Product`` by id, with precomputed search
  documents), used for ranked search and as a fallback listing;
* the textual snapshot uploaded by the shop, used for the
  generator-facing filter pipeline.

One :class:`~src.storage.rw_lock.ReadWriteLock` guards both.  Lookups
and searches share it; reloads and bulk upserts take it exclusively.
The store is constructed once and passed by handle to its readers.
"""

import logging
from collections.abc import Iterable

from src.models.catalog import CatalogSnapshot
from src.models.product import MatchCandidate, Product
from src.services.product_ranker import ProductRanker, SearchDocument
from src.storage.rw_lock import ReadWriteLock

logger = logging.getLogger("catalog_assistant.catalog_store")


class CatalogStore:
    """Lock-guarded typed product index plus textual snapshot."""

    def __init__(self, ranker: ProductRanker | None = None) -> None:
        self._lock = ReadWriteLock()
        self._ranker = ranker or ProductRanker()
        self._products: dict[str, Product] = {}
        self._documents: dict[str, SearchDocument] = {}
        self._snapshot: CatalogSnapshot | None = None

    # ── Writers ──────────────────────────────────────────

    def save_product(self, product: Product) -> None:
        """Insert or replace a single product."""
        self.save_many([product])

    def save_many(self, products: Iterable[Product]) -> int:
        """Bulk upsert; returns the number of products written."""
        prepared = [
            (p, SearchDocument.from_product(p)) for p in products
        ]
        with self._lock.write():
            for product, doc in prepared:
                self._products[product.id] = product
                self._documents[product.id] = doc
        logger.info("Upserted %d products", len(prepared))
        return len(prepared)

    def replace_catalog(self, products: Iterable[Product]) -> int:
        """Swap the whole typed index for *products*."""
        prepared = {
            p.id: (p, SearchDocument.from_product(p)) for p in products
        }
        with self._lock.write():
            self._products = {k: v[0] for k, v in prepared.items()}
            self._documents = {k: v[1] for k, v in prepared.items()}
        logger.info("Catalog replaced with %d products", len(prepared))
        return len(prepared)

    def set_text_snapshot(self, text: str, label: str = "") -> None:
        """Replace the textual snapshot."""
        snapshot = CatalogSnapshot(text=text, label=label)
        with self._lock.write():
            self._snapshot = snapshot
        logger.info(
            "Catalog snapshot '%s' stored (%d bytes)", label, len(text)
        )

    def clear(self) -> None:
        """Drop every product and the snapshot."""
        with self._lock.write():
            self._products = {}
            self._documents = {}
            self._snapshot = None
        logger.info("Catalog store cleared")

    # ── Readers ──────────────────────────────────────────

    def get_by_id(self, product_id: str) -> Product | None:
        """Return the product or ``None`` when the id is unknown."""
        with self._lock.read():
            return self._products.get(product_id)

    def get_all(self) -> list[Product]:
        """All products ordered by id."""
        with self._lock.read():
            return [
                self._products[k] for k in sorted(self._products)
            ]

    def get_available(self) -> list[Product]:
        """Products with positive stock, ordered by id."""
        return [p for p in self.get_all() if p.in_stock]

    def get_by_category(self, category: str) -> list[Product]:
        """Products whose category equals *category* (case-insensitive)."""
        wanted = category.strip().lower()
        return [
            p for p in self.get_all()
            if p.category.strip().lower() == wanted
        ]

    def get_text_snapshot(self) -> CatalogSnapshot | None:
        """Current snapshot, or ``None`` when nothing was uploaded."""
        with self._lock.read():
            snapshot = self._snapshot
        if snapshot is None or snapshot.is_empty:
            return None
        return snapshot

    def search_candidates(self, query: str) -> list[MatchCandidate]:
        """Ranked candidates with their scores."""
        with self._lock.read():
            documents = list(self._documents.values())
            return self._ranker.rank_documents(query, documents)

    def search(self, query: str) -> list[Product]:
        """Ranked products for *query*; empty when nothing matches."""
        return [c.product for c in self.search_candidates(query)]

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._products)
