"""Run-scoped memory of host identifiers already emitted."""

from __future__ import annotations


class HostDedupCache:
    def __init__(self) -> None:
        self._seen: set[str] = set()

    def seen(self, host_id: str) -> bool:
        return host_id in self._seen

    def mark_seen(self, host_id: str) -> None:
        self._seen.add(host_id)

    def __len__(self) -> int:
        return len(self._seen)
