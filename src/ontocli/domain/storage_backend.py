"""Storage backend interface.

The ontology container owns exactly one backend, supplied at
construction. Backends expose read access only; the triples they hold
are fixed when the backend is built.
"""

from abc import ABC, abstractmethod
from typing import Callable, Iterable, List, Sequence

from ontocli.domain.rdf_terms import Subject, Triple, TriplePattern


class StorageBackend(ABC):
    """Read-only triple storage consumed by the ontology and the query executor."""

    @abstractmethod
    def load_triples(self) -> Sequence[Triple]:
        """Return every stored triple in a stable order."""

    @abstractmethod
    def query(self, pattern: TriplePattern) -> List[Triple]:
        """Return the triples matching ``pattern`` in a stable order."""

    @abstractmethod
    def __len__(self) -> int:
        """Number of stored triples."""

    def subjects(self) -> List[Subject]:
        """Distinct subjects in order of first appearance."""
        seen = {}
        for triple in self.load_triples():
            seen.setdefault(triple.subject, None)
        return list(seen)


BackendFactory = Callable[[Iterable[Triple]], StorageBackend]
