# app/services/search_history.py
import threading
import uuid

from app.core.config import get_settings


class RecentSearches:
    """
    Per-user list of the most recent distinct search strings,
    newest first.

    Kept in process memory only; losing it on restart is fine.
    """

    def __init__(self, limit: int = 5):
        self.limit = limit
        self._entries: dict[uuid.UUID, list[str]] = {}
        self._lock = threading.Lock()

    def record(self, user_id: uuid.UUID, query: str) -> list[str]:
        query = query.strip()
        with self._lock:
            current = self._entries.get(user_id, [])
            if not query:
                return list(current)
            updated = [query] + [q for q in current if q != query]
            self._entries[user_id] = updated[: self.limit]
            return list(self._entries[user_id])

    def get(self, user_id: uuid.UUID) -> list[str]:
        with self._lock:
            return list(self._entries.get(user_id, []))

    def clear(self, user_id: uuid.UUID) -> None:
        with self._lock:
            self._entries.pop(user_id, None)


# Shared by the catalog search endpoints and logout.
recent_searches = RecentSearches(limit=get_settings().RECENT_SEARCH_LIMIT)
