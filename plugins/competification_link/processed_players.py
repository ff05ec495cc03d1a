"""
Processed player cache for the Competification Link plugin

Tracks which Steam/EOS identifier pairs have already been sent to the
API during the current session. Keys are kept in insertion order so the
size cap can drop the oldest entries first.
"""

from typing import Dict, Iterable, List


DEFAULT_MAX_SIZE = 500


class ProcessedPlayerCache:
    """
    Insertion-ordered set of processed player keys.

    Only mutated from event handlers running on the asyncio loop, which
    never interleave mid-mutation.
    """

    def __init__(self, max_size: int = DEFAULT_MAX_SIZE):
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self.max_size = max_size
        self._keys: Dict[str, None] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def add(self, key: str):
        """Mark a key processed; re-adding keeps its original position"""
        self._keys.setdefault(key, None)

    def retain_only(self, current_keys: Iterable[str]) -> int:
        """
        Evict every key not present in current_keys.

        Returns:
            Number of keys removed
        """
        current = set(current_keys)
        stale = [key for key in self._keys if key not in current]
        for key in stale:
            del self._keys[key]
        return len(stale)

    def enforce_cap(self) -> int:
        """
        Truncate to the most recently added max_size keys.

        Returns:
            Number of keys removed
        """
        overflow = len(self._keys) - self.max_size
        if overflow <= 0:
            return 0
        for key in list(self._keys)[:overflow]:
            del self._keys[key]
        return overflow

    def snapshot(self) -> List[str]:
        """Keys in insertion order, oldest first"""
        return list(self._keys)
