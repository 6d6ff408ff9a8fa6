"""Serialize domain triples as Turtle or N-Triples through rdflib."""

import logging
from typing import Iterable, Mapping

from rdflib import Graph, Namespace

from ontocli.domain.errors import ExportError
from ontocli.domain.rdf_terms import Triple
from ontocli.infrastructure.rdflib_backend import to_rdflib

logger = logging.getLogger(__name__)

FORMAT_ALIASES = {
    "turtle": "turtle",
    "ttl": "turtle",
    "nt": "nt",
    "ntriples": "nt",
    "n-triples": "nt",
}


def normalize_format(name: str) -> str:
    try:
        return FORMAT_ALIASES[name.strip().lower()]
    except KeyError:
        raise ExportError(
            f"Unsupported document format '{name}' (supported: turtle, nt)",
            identifier=name,
            details={"format": name, "supported": sorted(set(FORMAT_ALIASES.values()))},
        ) from None


def build_graph(triples: Iterable[Triple], namespaces: Mapping[str, str]) -> Graph:
    graph = Graph(bind_namespaces="core")
    for prefix, iri in sorted(namespaces.items()):
        graph.bind(prefix, Namespace(iri), override=True)
    for triple in triples:
        graph.add((to_rdflib(triple.subject), to_rdflib(triple.predicate), to_rdflib(triple.object)))
    return graph


def serialize_triples(triples: Iterable[Triple], namespaces: Mapping[str, str], format: str = "turtle") -> str:
    """Render ``triples`` as a document.

    N-Triples lines are sorted so the output does not depend on rdflib's
    internal ordering.
    """
    rdf_format = normalize_format(format)
    graph = build_graph(triples, namespaces)
    document = graph.serialize(format=rdf_format)
    if rdf_format == "nt":
        lines = sorted(line for line in document.splitlines() if line.strip())
        document = "\n".join(lines) + ("\n" if lines else "")
    logger.debug(f"Serialized {len(graph)} triples as {rdf_format}")
    return document
