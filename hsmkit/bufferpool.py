"""A thread-safe pool of reusable, zeroed byte buffers grouped by size."""

from __future__ import annotations

import threading
from bisect import bisect_left
from collections import deque
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_RING_SIZE = 32
DEFAULT_BUCKET_SIZES = (64, 128, 256, 512, 1024, 2048, 4096)


@dataclass
class _Bucket:
    ring: deque = field(default_factory=deque)
    spare: list = field(default_factory=list)


class BufferPool:
    """Hands out bytearrays of a requested length and takes them back for reuse.

    Each size bucket keeps a bounded ring of returned buffers and an
    unbounded spare list; requests larger than the largest bucket get a
    fresh buffer that is never pooled.  Returned buffers are zeroed.
    """

    def __init__(self, ring_size: int = DEFAULT_RING_SIZE) -> None:
        self._sizes = list(DEFAULT_BUCKET_SIZES)
        self._ring_size = ring_size
        self._buckets = {size: _Bucket() for size in self._sizes}
        self._lock = threading.Lock()

    def _bucket_size_for(self, size: int) -> Optional[int]:
        index = bisect_left(self._sizes, size)
        return self._sizes[index] if index < len(self._sizes) else None

    def get(self, size: int) -> bytearray:
        """Return a zero-filled buffer of exactly size bytes."""
        if size < 0:
            raise ValueError(f"buffer size must not be negative, got {size}")
        bucket_size = self._bucket_size_for(size)
        if bucket_size is None:
            return bytearray(size)
        bucket = self._buckets[bucket_size]
        with self._lock:
            if bucket.ring:
                buf = bucket.ring.popleft()
            elif bucket.spare:
                buf = bucket.spare.pop()
            else:
                buf = bytearray()
        buf.extend(bytes(size - len(buf)))
        return buf

    def put(self, buf: Optional[bytearray]) -> None:
        """Zero a buffer and keep it for reuse; oversized buffers are dropped."""
        if buf is None:
            return
        if not isinstance(buf, bytearray):
            raise TypeError("only bytearray buffers can be returned to the pool")
        bucket_size = self._bucket_size_for(len(buf))
        if bucket_size is None:
            return
        buf[:] = bytes(len(buf))
        del buf[:]
        bucket = self._buckets[bucket_size]
        with self._lock:
            if len(bucket.ring) < self._ring_size:
                bucket.ring.append(buf)
            else:
                bucket.spare.append(buf)

    def prewarm(self, count: int) -> None:
        """Preallocate count spare buffers in every bucket."""
        with self._lock:
            for bucket in self._buckets.values():
                bucket.spare.extend(bytearray() for _ in range(count))

    def trim(self) -> None:
        """Release every buffer the pool is holding."""
        with self._lock:
            for bucket in self._buckets.values():
                bucket.ring.clear()
                bucket.spare.clear()

    def bucket_sizes(self) -> list[int]:
        """Return a copy of the bucket sizes, in increasing order."""
        return list(self._sizes)