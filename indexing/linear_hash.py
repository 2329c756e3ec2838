"""
MiniIndex Linear Hash Map
=========================
In-memory hash map using Linear Hashing: the bucket array grows one
chain at a time instead of doubling all at once.

Addressing:
  - mod1: bucket count of the current generation
  - mod2 = 2 * mod1: bucket count once the generation completes
  - split_pointer: next chain scheduled to be split

  home(key) = hash(key) % mod1, or hash(key) % mod2 when that index
  is below split_pointer (its chain was already split this generation).

Buckets hold up to SLOTS pairs and chain to an overflow bucket when full.
Whenever an insert has to append an overflow bucket, the chain at
split_pointer is split: its pairs are redistributed between index
split_pointer and split_pointer + mod1 using mod2. When split_pointer
reaches mod1 the generation ends (mod1 := mod2, mod2 *= 2, pointer := 0).

Keys are matched by equality, never by hash value alone.
Concurrency: single-writer, no locking. Delete: not supported.
"""

import logging
from collections.abc import Mapping
from typing import Any, Iterator, List, Optional, Tuple

from indexing.types import TypeSpec, check, resolve_type, validate

logger = logging.getLogger(__name__)

# ─── Constants ──────────────────────────────────────────────────────────────

SLOTS = 4
DEFAULT_INITIAL_SIZE = 4


# ─── Bucket ─────────────────────────────────────────────────────────────────

class Bucket:
    """Fixed-capacity slot array with a link to one overflow bucket."""
    __slots__ = ('capacity', 'keys', 'values', 'next')

    def __init__(self, capacity: int):
        self.capacity = capacity
        self.keys: List[Any] = []
        self.values: List[Any] = []
        self.next: Optional['Bucket'] = None

    @property
    def key_count(self) -> int:
        return len(self.keys)

    @property
    def is_full(self) -> bool:
        return len(self.keys) >= self.capacity

    def find(self, key: Any) -> int:
        """Slot index holding an equal key, or -1."""
        for i, k in enumerate(self.keys):
            if k == key:
                return i
        return -1

    def append(self, key: Any, value: Any) -> None:
        if self.is_full:
            raise RuntimeError("Bucket is full")
        self.keys.append(key)
        self.values.append(value)


# ─── Linear Hash Map ───────────────────────────────────────────────────────

class LinearHashMap(Mapping):
    """
    Unordered key -> value map over a linear hashing table.

    Usage:
        m = LinearHashMap(int, int, 11)
        m.put(15, 225)
        m.get(15)        # 225
        m.get(2)         # None
    """

    def __init__(self, key_type: TypeSpec = None, value_type: TypeSpec = None,
                 initial_size: int = DEFAULT_INITIAL_SIZE, slots: int = SLOTS):
        if initial_size < 1:
            raise ValueError(f"initial_size must be >= 1, got {initial_size}")
        if slots < 1:
            raise ValueError(f"slots must be >= 1, got {slots}")
        self._key_type = resolve_type(key_type)
        self._value_type = resolve_type(value_type)
        self._slots = slots
        self._mod1 = initial_size
        self._mod2 = 2 * initial_size
        self._split = 0
        # Chain heads, created lazily. Length is always mod1 + split.
        self._table: List[Optional[Bucket]] = [None] * initial_size
        self._count = 0
        self._access_count = 0

    # ─── Properties ─────────────────────────────────────────────────

    @property
    def mod1(self) -> int:
        return self._mod1

    @property
    def mod2(self) -> int:
        return self._mod2

    @property
    def split_pointer(self) -> int:
        return self._split

    @property
    def bucket_count(self) -> int:
        """Number of addressable chains (mod1 + split_pointer)."""
        return len(self._table)

    @property
    def capacity(self) -> int:
        """Slots across home buckets: SLOTS * (mod1 + split_pointer)."""
        return self._slots * (self._mod1 + self._split)

    @property
    def access_count(self) -> int:
        """Buckets visited by get/put since creation or last reset."""
        return self._access_count

    def reset_access_count(self) -> None:
        self._access_count = 0

    # ─── Lookup ─────────────────────────────────────────────────────

    def get(self, key: Any, default: Any = None) -> Any:
        """Return the value stored for key, or default (None) if absent."""
        check(key, self._key_type, "key")
        bucket, slot = self._locate(key)
        if bucket is None:
            return default
        return bucket.values[slot]

    def __getitem__(self, key: Any) -> Any:
        check(key, self._key_type, "key")
        bucket, slot = self._locate(key)
        if bucket is None:
            raise KeyError(key)
        return bucket.values[slot]

    def __contains__(self, key: Any) -> bool:
        if not validate(key, self._key_type):
            return False
        bucket, _ = self._locate(key)
        return bucket is not None

    def _locate(self, key: Any) -> Tuple[Optional[Bucket], int]:
        """Walk the key's home chain. Returns (bucket, slot) or (None, -1)."""
        bucket = self._table[self._home_index(key)]
        while bucket is not None:
            self._access_count += 1
            slot = bucket.find(key)
            if slot >= 0:
                return bucket, slot
            bucket = bucket.next
        return None, -1

    def _home_index(self, key: Any) -> int:
        h = hash(key)
        i = h % self._mod1
        if i < self._split:
            i = h % self._mod2
        return i

    # ─── Insert ─────────────────────────────────────────────────────

    def put(self, key: Any, value: Any) -> Any:
        """
        Insert or overwrite a key/value pair.
        Returns the previous value for an existing key, else None.
        Appending an overflow bucket triggers one split.
        """
        check(key, self._key_type, "key")
        check(value, self._value_type, "value")

        index = self._home_index(key)
        bucket = self._table[index]
        if bucket is None:
            bucket = Bucket(self._slots)
            self._table[index] = bucket

        while True:
            self._access_count += 1
            slot = bucket.find(key)
            if slot >= 0:
                previous = bucket.values[slot]
                bucket.values[slot] = value
                return previous
            if bucket.next is None:
                break
            bucket = bucket.next

        overflowed = bucket.is_full
        if overflowed:
            bucket.next = Bucket(self._slots)
            bucket = bucket.next
        bucket.append(key, value)
        self._count += 1

        if overflowed:
            self._split_next()
        return None

    def _split_next(self) -> None:
        """Split the chain at split_pointer into itself and index + mod1."""
        index = self._split
        new_index = index + self._mod1
        chain = self._table[index]

        self._table.append(None)
        self._table[index] = None

        moved = 0
        while chain is not None:
            for k, v in zip(chain.keys, chain.values):
                target = hash(k) % self._mod2
                self._append_to_chain(target, k, v)
                if target == new_index:
                    moved += 1
            chain = chain.next

        logger.debug("split bucket %d -> %d (%d pairs moved)", index, new_index, moved)

        self._split += 1
        if self._split == self._mod1:
            self._mod1 = self._mod2
            self._mod2 = 2 * self._mod1
            self._split = 0
            logger.debug("generation complete: mod1=%d mod2=%d", self._mod1, self._mod2)

    def _append_to_chain(self, index: int, key: Any, value: Any) -> None:
        """Append a pair at the end of a chain without triggering a split."""
        bucket = self._table[index]
        if bucket is None:
            self._table[index] = bucket = Bucket(self._slots)
        while bucket.is_full:
            if bucket.next is None:
                bucket.next = Bucket(self._slots)
            bucket = bucket.next
        bucket.append(key, value)

    # ─── Size / Iteration ───────────────────────────────────────────

    def size(self) -> int:
        """Number of stored pairs. See `capacity` for slot capacity."""
        return self._count

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> Iterator[Any]:
        for _, bucket in self._chains():
            yield from bucket.keys

    def entries(self) -> List[Tuple[Any, Any]]:
        """All (key, value) pairs, in bucket order (no ordering guarantee)."""
        pairs = []
        for _, bucket in self._chains():
            pairs.extend(zip(bucket.keys, bucket.values))
        return pairs

    def _chains(self) -> Iterator[Tuple[int, Bucket]]:
        """Yield (chain index, bucket) for every bucket in every chain."""
        for i, head in enumerate(self._table):
            bucket = head
            while bucket is not None:
                yield i, bucket
                bucket = bucket.next

    # ─── Debug / Verification ───────────────────────────────────────

    def dump(self) -> str:
        """Human-readable rendering of every chain."""
        lines = [
            "Hash Table (Linear Hashing)",
            f"mod1={self._mod1} mod2={self._mod2} split={self._split}",
            "-------------------------------------------",
        ]
        for i, head in enumerate(self._table):
            cells = []
            bucket = head
            while bucket is not None:
                cells.append(" | ".join(
                    f"key={k}, value={v}" for k, v in zip(bucket.keys, bucket.values)))
                bucket = bucket.next
            lines.append(f"**** BUCKET {i} **** " + " -> ".join(f"[{c}]" for c in cells))
        lines.append("-------------------------------------------")
        return "\n".join(lines)

    def verify_structure(self) -> List[str]:
        """
        Verify addressing invariants.
        Returns list of issues found (empty = healthy).
        """
        issues: List[str] = []
        if len(self._table) != self._mod1 + self._split:
            issues.append(f"Table has {len(self._table)} chains, "
                          f"expected {self._mod1 + self._split}")
        if self._mod2 != 2 * self._mod1:
            issues.append(f"mod2={self._mod2} is not 2 * mod1={self._mod1}")
        if not 0 <= self._split < self._mod1:
            issues.append(f"split pointer {self._split} outside [0, {self._mod1})")

        seen = 0
        for i, head in enumerate(self._table):
            bucket = head
            chain_keys: List[Any] = []
            while bucket is not None:
                if bucket.key_count > bucket.capacity:
                    issues.append(f"Bucket {i}: {bucket.key_count} keys over capacity")
                for k in bucket.keys:
                    home = self._home_index(k)
                    if home != i:
                        issues.append(f"Key {k!r} stored in chain {i}, home is {home}")
                    if k in chain_keys:
                        issues.append(f"Key {k!r} duplicated in chain {i}")
                    chain_keys.append(k)
                bucket = bucket.next
            seen += len(chain_keys)

        if seen != self._count:
            issues.append(f"Counted {seen} pairs, size() reports {self._count}")
        return issues
