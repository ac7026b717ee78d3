"""
Reusable pixel accumulators.

A long exposure is rendered as many short subframes, each needing its own
width×height float buffer. Allocating those afresh every subframe dominates
the cost, so buffers are recycled:
- BufferPool: arena of arrays for one (width, height) with a free list of slot indices
- PooledBuffer: handle owning one slot until released (also a context manager)
- BufferPoolManager: one pool per dimension pair; managers never share buffers
"""
from __future__ import annotations

import itertools
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, Tuple

import numpy as np

from core.errors import check_dimensions

logger = logging.getLogger(__name__)

_manager_ids = itertools.count(1)


@dataclass(frozen=True)
class PoolStatistics:
    created: int        # arrays ever allocated
    reused: int         # acquisitions served from the free list
    pooled: int         # arrays currently idle in free lists
    outstanding: int    # arrays currently handed out


class BufferPool:
    """Arena of identically shaped buffers with an index-based free list."""

    def __init__(self, width: int, height: int, dtype=np.float64):
        check_dimensions(width, height)
        self.width = int(width)
        self.height = int(height)
        self.dtype = dtype
        self._arena: List[np.ndarray] = []
        self._free: List[int] = []
        self._in_use: set = set()
        self.created = 0
        self.reused = 0

    def __len__(self) -> int:
        return len(self._arena)

    @property
    def free_count(self) -> int:
        return len(self._free)

    @property
    def in_use_count(self) -> int:
        return len(self._in_use)

    def acquire(self) -> Tuple[int, np.ndarray]:
        """
        Take a zeroed buffer out of the pool.

        Returns:
            (slot index, array of shape (height, width))
        """
        if self._free:
            slot = self._free.pop()
            data = self._arena[slot]
            data.fill(0.0)
            self.reused += 1
        else:
            data = np.zeros((self.height, self.width), dtype=self.dtype)
            self._arena.append(data)
            slot = len(self._arena) - 1
            self.created += 1
        self._in_use.add(slot)
        return slot, data

    def release(self, slot: int) -> None:
        if slot not in self._in_use:
            raise ValueError(f"Slot {slot} of pool {self.width}x{self.height} is not in use")
        self._in_use.remove(slot)
        self._free.append(slot)


class PooledBuffer:
    """
    Exclusive handle on one pool slot.

    The array stays valid until release(); release happens at most once, so
    wrapping the handle in a `with` block releases it on every exit path.
    """

    __slots__ = ("_pool", "_manager_id", "slot", "data", "released")

    def __init__(self, pool: BufferPool, manager_id: int, slot: int, data: np.ndarray):
        self._pool = pool
        self._manager_id = manager_id
        self.slot = slot
        self.data = data
        self.released = False

    @property
    def width(self) -> int:
        return self._pool.width

    @property
    def height(self) -> int:
        return self._pool.height

    @property
    def manager_id(self) -> int:
        return self._manager_id

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        self._pool.release(self.slot)

    def __enter__(self) -> "PooledBuffer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "released" if self.released else "held"
        return f"PooledBuffer({self.width}x{self.height}, slot={self.slot}, {state})"


class BufferPoolManager:
    """Pools keyed by (width, height), private to this manager instance."""

    def __init__(self):
        self.id = next(_manager_ids)
        self._pools: Dict[Tuple[int, int], BufferPool] = {}

    def get_pool(self, width: int, height: int) -> BufferPool:
        check_dimensions(width, height)
        key = (int(width), int(height))
        pool = self._pools.get(key)
        if pool is None:
            pool = BufferPool(*key)
            self._pools[key] = pool
            logger.debug(f"Manager {self.id}: new buffer pool {key[0]}x{key[1]}")
        return pool

    def acquire(self, width: int, height: int) -> PooledBuffer:
        pool = self.get_pool(width, height)
        slot, data = pool.acquire()
        return PooledBuffer(pool, self.id, slot, data)

    def release(self, buffer: PooledBuffer) -> None:
        if buffer.manager_id != self.id:
            raise ValueError(
                f"Buffer belongs to manager {buffer.manager_id}, not manager {self.id}")
        buffer.release()

    @contextmanager
    def pooled(self, width: int, height: int) -> Iterator[np.ndarray]:
        """Scoped acquisition: yields the array and always releases it."""
        handle = self.acquire(width, height)
        try:
            yield handle.data
        finally:
            handle.release()

    def clear_all(self) -> None:
        """Forget every pool owned by this manager."""
        n = sum(len(p) for p in self._pools.values())
        self._pools.clear()
        logger.debug(f"Manager {self.id}: cleared {n} pooled buffers")

    def pools(self) -> Dict[Tuple[int, int], BufferPool]:
        return dict(self._pools)

    def statistics(self) -> PoolStatistics:
        pools = self._pools.values()
        return PoolStatistics(
            created=sum(p.created for p in pools),
            reused=sum(p.reused for p in pools),
            pooled=sum(p.free_count for p in pools),
            outstanding=sum(p.in_use_count for p in pools),
        )
