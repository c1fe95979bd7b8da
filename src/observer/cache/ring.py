"""Consistent hash ring for key ownership.

Each peer is placed on the ring at `replicas` virtual positions. A key is
owned by the peer at the first position at or after the key's hash, wrapping
around to the start of the ring.
"""

from __future__ import annotations

import bisect
import logging
import zlib
from collections.abc import Callable

logger = logging.getLogger(__name__)

DEFAULT_REPLICAS = 50


def crc32(data: bytes) -> int:
    return zlib.crc32(data) & 0xFFFFFFFF


class HashRing:
    """Deterministic key -> peer mapping.

    The same peers and replica count always produce the same ownership,
    independent of process or insertion order.
    """

    def __init__(
        self,
        replicas: int = DEFAULT_REPLICAS,
        hash_fn: Callable[[bytes], int] = crc32,
    ):
        if replicas < 1:
            raise ValueError("replicas must be at least 1")
        self.replicas = replicas
        self.hash_fn = hash_fn
        self._positions: list[int] = []
        self._owners: dict[int, str] = {}

    def add(self, *peers: str) -> None:
        """Place peers on the ring."""
        for peer in peers:
            for i in range(self.replicas):
                position = self.hash_fn(f"{i}{peer}".encode())
                # On collision the lexically smallest peer owns the position
                current = self._owners.get(position)
                if current is None:
                    self._positions.append(position)
                    self._owners[position] = peer
                elif peer < current:
                    self._owners[position] = peer
        self._positions.sort()
        logger.debug(
            "Hash ring has %d positions for %d peers",
            len(self._positions),
            len(self.peers()),
        )

    def is_empty(self) -> bool:
        return not self._positions

    def peers(self) -> list[str]:
        return sorted(set(self._owners.values()))

    def owner(self, key: str) -> str:
        """Return the peer that owns key."""
        if not self._positions:
            raise ValueError("hash ring is empty")
        h = self.hash_fn(key.encode())
        idx = bisect.bisect_left(self._positions, h)
        if idx == len(self._positions):
            idx = 0
        return self._owners[self._positions[idx]]
