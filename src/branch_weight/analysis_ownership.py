from __future__ import annotations

import threading
from typing import Iterator, Mapping


class OwnerEntry:
    __slots__ = ("size", "branches")

    def __init__(self, size: int) -> None:
        self.size = size
        self.branches: set[str] = set()


class OwnershipMap:
    """
    Object id -> (size, names of the branches whose exclusive set holds it).

    Writers lock one shard at a time, so branches finishing together only contend
    when their ids hash to the same shard. The merge is a set union per id, which
    makes the result independent of the order branches arrive in.
    """

    def __init__(self, shards: int = 64) -> None:
        if shards < 1:
            raise ValueError("shards must be >= 1")
        self._shards: list[dict[str, OwnerEntry]] = [{} for _ in range(shards)]
        self._locks = [threading.Lock() for _ in range(shards)]
        self._contributors: set[str] = set()
        self._meta_lock = threading.Lock()
        self._frozen = False

    def _index(self, oid: str) -> int:
        return hash(oid) % len(self._shards)

    def add(self, branch: str, objects: Mapping[str, int]) -> None:
        with self._meta_lock:
            if self._frozen:
                raise RuntimeError("ownership map is frozen")
            if branch in self._contributors:
                raise ValueError(f"branch {branch!r} already contributed its objects")
            self._contributors.add(branch)

        buckets: list[list[tuple[str, int]]] = [[] for _ in self._shards]
        for oid, size in objects.items():
            buckets[self._index(oid)].append((oid, size))

        for i, bucket in enumerate(buckets):
            if not bucket:
                continue
            shard = self._shards[i]
            with self._locks[i]:
                for oid, size in bucket:
                    entry = shard.get(oid)
                    if entry is None:
                        entry = OwnerEntry(size)
                        shard[oid] = entry
                    entry.branches.add(branch)

    def freeze(self) -> None:
        with self._meta_lock:
            self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def contributors(self) -> frozenset[str]:
        return frozenset(self._contributors)

    def count(self, oid: str) -> int:
        entry = self._shards[self._index(oid)].get(oid)
        return len(entry.branches) if entry is not None else 0

    def branches(self, oid: str) -> frozenset[str]:
        entry = self._shards[self._index(oid)].get(oid)
        return frozenset(entry.branches) if entry is not None else frozenset()

    def size(self, oid: str) -> int:
        entry = self._shards[self._index(oid)].get(oid)
        return entry.size if entry is not None else 0

    def __contains__(self, oid: object) -> bool:
        return isinstance(oid, str) and oid in self._shards[self._index(oid)]

    def __len__(self) -> int:
        return sum(len(s) for s in self._shards)

    def items(self) -> Iterator[tuple[str, OwnerEntry]]:
        for shard in self._shards:
            yield from shard.items()

    def distinct_size(self) -> int:
        return sum(entry.size for _, entry in self.items())
