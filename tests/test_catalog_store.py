# tests/test_catalog_store.py

"""Tests for the lock-guarded catalog store and chat history."""

import threading
import unittest

from src.models.conversation import HistoryTurn
from src.models.product import Product
from src.storage.catalog_store import CatalogStore
from src.storage.chat_history import ChatHistoryStore
from src.storage.rw_lock import ReadWriteLock


def _p(pid: str, name: str, category: str = "", stock: int = 1) -> Product:
    """Create a minimal Product for testing."""
    return Product(
        id=pid, name=name, price=50.0, category=category, stock=stock
    )


class TestCatalogStore(unittest.TestCase):
    """CatalogStore unit tests."""

    def setUp(self) -> None:
        self.store = CatalogStore()
        self.store.save_many([
            _p("b2", "Kingston A2000", "Storage"),
            _p("a1", "Samsung 970 EVO", "Storage"),
            _p("c3", "Logitech G102", "Mouse", stock=0),
        ])

    # ── Lookups ──────────────────────────────────────────

    def test_get_by_id(self) -> None:
        product = self.store.get_by_id("a1")
        assert product is not None
        self.assertEqual(product.name, "Samsung 970 EVO")
        self.assertIsNone(self.store.get_by_id("missing"))

    def test_get_all_ordered_by_id(self) -> None:
        self.assertEqual(
            [p.id for p in self.store.get_all()], ["a1", "b2", "c3"]
        )

    def test_get_available_skips_out_of_stock(self) -> None:
        self.assertEqual(
            [p.id for p in self.store.get_available()], ["a1", "b2"]
        )

    def test_get_by_category_case_insensitive(self) -> None:
        self.assertEqual(
            [p.id for p in self.store.get_by_category(" storage ")],
            ["a1", "b2"],
        )

    def test_len(self) -> None:
        self.assertEqual(len(self.store), 3)

    # ── Writers ──────────────────────────────────────────

    def test_save_product_replaces_same_id(self) -> None:
        self.store.save_product(_p("a1", "Samsung 990 PRO", "Storage"))
        product = self.store.get_by_id("a1")
        assert product is not None
        self.assertEqual(product.name, "Samsung 990 PRO")
        self.assertEqual(len(self.store), 3)

    def test_replace_catalog(self) -> None:
        count = self.store.replace_catalog([_p("z", "Only One")])
        self.assertEqual(count, 1)
        self.assertEqual([p.id for p in self.store.get_all()], ["z"])
        self.assertEqual(self.store.search("samsung"), [])

    def test_clear(self) -> None:
        self.store.set_text_snapshot("CPU\nIntel i5, 154$")
        self.store.clear()
        self.assertEqual(len(self.store), 0)
        self.assertIsNone(self.store.get_text_snapshot())

    # ── Snapshot ─────────────────────────────────────────

    def test_snapshot_round_trip(self) -> None:
        self.store.set_text_snapshot("CPU\nIntel i5, 154$", label="x.txt")
        snapshot = self.store.get_text_snapshot()
        assert snapshot is not None
        self.assertEqual(snapshot.label, "x.txt")
        self.assertIn("Intel i5", snapshot.text)

    def test_blank_snapshot_is_absent(self) -> None:
        self.store.set_text_snapshot("   \n")
        self.assertIsNone(self.store.get_text_snapshot())

    def test_no_snapshot(self) -> None:
        self.assertIsNone(CatalogStore().get_text_snapshot())

    # ── Search ───────────────────────────────────────────

    def test_search_ranks(self) -> None:
        results = self.store.search("samsung")
        self.assertEqual(results[0].id, "a1")

    def test_search_candidates_carry_scores(self) -> None:
        candidates = self.store.search_candidates("kingston")
        self.assertEqual(candidates[0].product.id, "b2")
        self.assertGreater(candidates[0].score, 0)

    def test_concurrent_reads_and_writes(self) -> None:
        """Searches running during reloads never raise."""
        errors: list[Exception] = []

        def reader() -> None:
            try:
                for _ in range(50):
                    self.store.search("samsung")
                    self.store.get_all()
            except Exception as exc:  # noqa: BLE001
                errors.append(exc)

        def writer() -> None:
            try:
                for i in range(20):
                    self.store.save_product(_p(f"n{i}", f"New {i}"))
            except Exception as exc:  # noqa: BLE001
                errors.append(exc)

        threads = [threading.Thread(target=reader) for _ in range(4)]
        threads.append(threading.Thread(target=writer))
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)
        self.assertEqual(errors, [])
        self.assertEqual(len(self.store), 23)


class TestChatHistoryStore(unittest.TestCase):
    """ChatHistoryStore unit tests."""

    def setUp(self) -> None:
        self.history = ChatHistoryStore(max_size=3)

    def test_turns_kept_in_order(self) -> None:
        for text in ("a", "b"):
            self.history.save_turn(1, HistoryTurn(text=text))
        self.assertEqual(
            [t.text for t in self.history.get_history(1)], ["a", "b"]
        )

    def test_oldest_dropped_beyond_cap(self) -> None:
        for text in ("a", "b", "c", "d", "e"):
            self.history.save_turn(1, HistoryTurn(text=text))
        self.assertEqual(
            [t.text for t in self.history.get_history(1)],
            ["c", "d", "e"],
        )

    def test_limit_returns_most_recent(self) -> None:
        for text in ("a", "b", "c"):
            self.history.save_turn(1, HistoryTurn(text=text))
        self.assertEqual(
            [t.text for t in self.history.get_history(1, limit=2)],
            ["b", "c"],
        )

    def test_users_isolated(self) -> None:
        self.history.save_turn(1, HistoryTurn(text="mine"))
        self.assertEqual(self.history.get_history(2), [])

    def test_returns_copy(self) -> None:
        self.history.save_turn(1, HistoryTurn(text="a"))
        turns = self.history.get_history(1)
        turns.clear()
        self.assertEqual(len(self.history.get_history(1)), 1)

    def test_clear_history(self) -> None:
        self.history.save_turn(1, HistoryTurn(text="a"))
        self.history.clear_history(1)
        self.assertEqual(self.history.get_history(1), [])
        # Clearing an unknown user is a no-op
        self.history.clear_history(99)


class TestReadWriteLock(unittest.TestCase):
    """ReadWriteLock unit tests."""

    def test_readers_share(self) -> None:
        """Two readers hold the lock at the same time."""
        lock = ReadWriteLock()
        barrier = threading.Barrier(2, timeout=5)
        failures: list[Exception] = []

        def reader() -> None:
            with lock.read():
                try:
                    barrier.wait()
                except threading.BrokenBarrierError as exc:
                    failures.append(exc)

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)
        self.assertEqual(failures, [])

    def test_writer_excludes_readers(self) -> None:
        lock = ReadWriteLock()
        events: list[str] = []
        writer_in = threading.Event()
        release = threading.Event()

        def writer() -> None:
            with lock.write():
                writer_in.set()
                release.wait(timeout=5)
                events.append("write-done")

        def reader() -> None:
            with lock.read():
                events.append("read")

        w = threading.Thread(target=writer)
        w.start()
        writer_in.wait(timeout=5)
        r = threading.Thread(target=reader)
        r.start()
        release.set()
        w.join(timeout=5)
        r.join(timeout=5)
        self.assertEqual(events, ["write-done", "read"])

    def test_lock_released_on_error(self) -> None:
        lock = ReadWriteLock()
        with self.assertRaises(ValueError):
            with lock.write():
                raise ValueError("boom")
        with lock.read():
            pass


if __name__ == "__main__":
    unittest.main()
