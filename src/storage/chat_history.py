# src/storage/chat_history.py

"""Bounded per-user chat history kept in process memory."""

import logging

from src.config.settings import Settings
from src.models.conversation import HistoryTurn
from src.storage.rw_lock import ReadWriteLock

logger = logging.getLogger("catalog_assistant.history")


class ChatHistoryStore:
    """Ordered turns per user, most recent last, trimmed to a max size.

    Readers receive copies, so they can iterate without holding the lock.
    """

    def __init__(self, max_size: int | None = None) -> None:
        self._lock = ReadWriteLock()
        self._turns: dict[int, list[HistoryTurn]] = {}
        self._max_size = max_size or Settings.MAX_HISTORY_SIZE

    def save_turn(self, user_id: int, turn: HistoryTurn) -> None:
        """Append *turn*, dropping the oldest turns beyond the cap."""
        with self._lock.write():
            turns = self._turns.setdefault(user_id, [])
            turns.append(turn)
            if len(turns) > self._max_size:
                del turns[: len(turns) - self._max_size]

    def get_history(
        self,
        user_id: int,
        limit: int = 0,
    ) -> list[HistoryTurn]:
        """Up to *limit* most recent turns (all when ``limit <= 0``)."""
        with self._lock.read():
            turns = self._turns.get(user_id, [])
            if limit > 0:
                turns = turns[-limit:]
            return list(turns)

    def clear_history(self, user_id: int) -> None:
        """Forget one user's conversation."""
        with self._lock.write():
            self._turns.pop(user_id, None)
        logger.info("History cleared for user %d", user_id)
