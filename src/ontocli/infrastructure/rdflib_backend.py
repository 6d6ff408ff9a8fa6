"""rdflib storage backend.

This backend keeps the ontology's triples in an ``rdflib.Graph``. It maps
the generic StorageBackend interface onto rdflib's triple matching and
sorts every result, because rdflib's stores give no ordering guarantee.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from rdflib import BNode, Graph, URIRef
from rdflib import Literal as RdflibLiteral
from rdflib.term import Identifier

from ontocli.domain.rdf_terms import BlankNode, IRI, Literal, Term, Triple, TriplePattern
from ontocli.domain.storage_backend import StorageBackend
from ontocli.domain.vocabulary import XSD

logger = logging.getLogger(__name__)


def to_rdflib(term: Optional[Term]) -> Optional[Identifier]:
    """Convert a domain term to its rdflib counterpart (``None`` passes through)."""
    if term is None:
        return None
    if isinstance(term, IRI):
        return URIRef(term.value)
    if isinstance(term, BlankNode):
        return BNode(term.label)
    if term.language:
        return RdflibLiteral(term.lexical, lang=term.language, normalize=False)
    if term.datatype:
        return RdflibLiteral(term.lexical, datatype=URIRef(term.datatype), normalize=False)
    return RdflibLiteral(term.lexical, normalize=False)


def from_rdflib(node: Identifier) -> Term:
    """Convert an rdflib node back to a domain term."""
    if isinstance(node, URIRef):
        return IRI(str(node))
    if isinstance(node, BNode):
        return BlankNode(str(node))
    if isinstance(node, RdflibLiteral):
        datatype = str(node.datatype) if node.datatype and not node.language else None
        return Literal(
            str(node),
            datatype=None if datatype == XSD.STRING else datatype,
            language=node.language,
        )
    raise TypeError(f"Unsupported rdflib node type: {type(node).__name__}")


class RdflibTripleStore(StorageBackend):
    """rdflib implementation of the storage backend."""

    def __init__(self, triples: Iterable[Triple] = (), graph: Optional[Graph] = None) -> None:
        """Initialize the rdflib backend.

        Args:
            triples: Triples to load into the graph
            graph: Existing graph whose triples are copied in; later changes
                to it are not seen by this store
        """
        self._graph = Graph()
        if graph is not None:
            for match in graph.triples((None, None, None)):
                self._graph.add(match)
        for triple in triples:
            self._graph.add((
                to_rdflib(triple.subject),
                to_rdflib(triple.predicate),
                to_rdflib(triple.object),
            ))
        self._snapshot: Tuple[Triple, ...] = tuple(
            sorted(self._convert(self._graph.triples((None, None, None))), key=Triple.sort_key)
        )
        logger.debug(f"rdflib store built with {len(self._snapshot)} triples")

    @staticmethod
    def _convert(matches) -> List[Triple]:
        return [
            Triple(from_rdflib(s), from_rdflib(p), from_rdflib(o))
            for s, p, o in matches
        ]

    def load_triples(self) -> Sequence[Triple]:
        return self._snapshot

    def query(self, pattern: TriplePattern) -> List[Triple]:
        matches = self._graph.triples((
            to_rdflib(pattern.subject),
            to_rdflib(pattern.predicate),
            to_rdflib(pattern.object),
        ))
        return sorted(self._convert(matches), key=Triple.sort_key)

    def __len__(self) -> int:
        return len(self._snapshot)
