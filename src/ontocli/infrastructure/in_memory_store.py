"""Default in-memory storage backend.

Triples live in an append-only list that is filled once at
construction; subject, predicate and object indexes map each term to
positions in that list so probes return results in insertion order.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Sequence, Tuple

from ontocli.domain.rdf_terms import Term, Triple, TriplePattern
from ontocli.domain.storage_backend import StorageBackend

logger = logging.getLogger(__name__)


class InMemoryTripleStore(StorageBackend):
    """Indexed list of triples."""

    def __init__(self, triples: Iterable[Triple] = ()) -> None:
        stored: List[Triple] = []
        self._by_subject: Dict[Term, List[int]] = defaultdict(list)
        self._by_predicate: Dict[Term, List[int]] = defaultdict(list)
        self._by_object: Dict[Term, List[int]] = defaultdict(list)
        seen = set()
        for triple in triples:
            if triple in seen:
                continue
            seen.add(triple)
            position = len(stored)
            stored.append(triple)
            self._by_subject[triple.subject].append(position)
            self._by_predicate[triple.predicate].append(position)
            self._by_object[triple.object].append(position)
        # Plain dicts: probing an unknown term must not insert it.
        self._by_subject = dict(self._by_subject)
        self._by_predicate = dict(self._by_predicate)
        self._by_object = dict(self._by_object)
        self._frozen_triples: Tuple[Triple, ...] = tuple(stored)
        logger.debug(f"In-memory store built with {len(self._frozen_triples)} triples")

    def load_triples(self) -> Sequence[Triple]:
        return self._frozen_triples

    def query(self, pattern: TriplePattern) -> List[Triple]:
        candidates = None
        for term, index in (
            (pattern.subject, self._by_subject),
            (pattern.predicate, self._by_predicate),
            (pattern.object, self._by_object),
        ):
            if term is None:
                continue
            positions = index.get(term)
            if not positions:
                return []
            # Probe with the most selective bound position.
            if candidates is None or len(positions) < len(candidates):
                candidates = positions

        if candidates is None:
            return list(self._frozen_triples)

        return [
            self._frozen_triples[i]
            for i in candidates
            if pattern.matches(self._frozen_triples[i])
        ]

    def __len__(self) -> int:
        return len(self._frozen_triples)
