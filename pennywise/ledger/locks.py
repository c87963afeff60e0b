"""Per-user mutual exclusion for compound ledger writes."""

import asyncio


class UserLockRegistry:
    """
    Hands out one asyncio.Lock per user.

    Two requests for the same user cannot interleave the halves of a
    compound write; different users never block each other.

    Locks are never pruned: the registry keeps one entry per user id
    for the life of the process.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, user_id: str) -> asyncio.Lock:
        key = user_id.strip().lower()
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]
