"""Session-scoped cache of user profiles."""
import logging
import time
from typing import Callable, Dict, Optional, Tuple

from bookshelf.models import Profile
from bookshelf.store import DocumentStore

logger = logging.getLogger(__name__)


class ProfileCache:
    """
    Profiles fetched during one session, each kept for ttl seconds.

    Owned by whoever owns the session; pass it around explicitly and call
    invalidate() on sign-out or after editing a profile.
    """

    def __init__(self, store: DocumentStore, ttl: float = 900, clock: Callable[[], float] = time.monotonic):
        self.store = store
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[str, Tuple[Profile, float]] = {}

    async def get(self, uid: str) -> Optional[Profile]:
        """Cached profile if still fresh, otherwise load it."""
        entry = self._entries.get(uid)
        if entry is not None:
            profile, fetched_at = entry
            if self.clock() - fetched_at < self.ttl:
                return profile
        return await self.refresh(uid)

    async def refresh(self, uid: str) -> Optional[Profile]:
        """Reload from the store. Missing profiles are not cached."""
        profile = await self.store.get_profile(uid)
        if profile is None:
            self._entries.pop(uid, None)
            logger.info(f"No profile for {uid}")
            return None
        self._entries[uid] = (profile, self.clock())
        return profile

    def invalidate(self, uid: Optional[str] = None):
        """Forget one profile, or every profile when uid is None."""
        if uid is None:
            self._entries.clear()
        else:
            self._entries.pop(uid, None)

    def __contains__(self, uid: str) -> bool:
        return uid in self._entries
