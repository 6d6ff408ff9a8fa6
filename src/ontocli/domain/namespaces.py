"""Bounded namespace registry.

Each ontology owns exactly one registry. The capacity is fixed at
construction; declaring one prefix too many is a hard parse error.
"""

from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional, Tuple

from ontocli.domain.errors import NamespaceCapacityError

DEFAULT_NAMESPACE_CAPACITY = 32


class NamespaceRegistry:
    """Prefix to base-IRI table with a fixed maximum size."""

    def __init__(self, capacity: int = DEFAULT_NAMESPACE_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("namespace capacity must be at least 1")
        self.capacity = capacity
        self._entries: Dict[str, str] = {}
        self._frozen = False

    def declare(self, prefix: str, iri: str, line: Optional[int] = None) -> None:
        """Bind ``prefix`` to ``iri``. Re-binding an existing prefix is free."""
        if self._frozen:
            raise RuntimeError("namespace registry is frozen")
        if prefix not in self._entries and len(self._entries) >= self.capacity:
            raise NamespaceCapacityError(prefix, self.capacity, line)
        self._entries[prefix] = iri

    def resolve(self, prefix: str) -> Optional[str]:
        return self._entries.get(prefix)

    def expand(self, prefixed_name: str) -> Optional[str]:
        prefix, sep, local = prefixed_name.partition(":")
        if not sep:
            return None
        base = self._entries.get(prefix)
        return None if base is None else base + local

    def compact(self, iri: str) -> Optional[str]:
        """Shortest prefixed form of ``iri``; ties break on prefix name."""
        best: Optional[Tuple[int, str, str]] = None
        for prefix, base in self._entries.items():
            if iri.startswith(base) and len(iri) > len(base):
                candidate = (-len(base), prefix, iri[len(base):])
                if best is None or candidate < best:
                    best = candidate
        return None if best is None else f"{best[1]}:{best[2]}"

    def freeze(self) -> "NamespaceRegistry":
        self._frozen = True
        return self

    def as_mapping(self) -> Mapping[str, str]:
        """Read-only view, sorted by prefix."""
        return MappingProxyType(dict(sorted(self._entries.items())))

    def __contains__(self, prefix: object) -> bool:
        return prefix in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._entries))

    def __len__(self) -> int:
        return len(self._entries)
