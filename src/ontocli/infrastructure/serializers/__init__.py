"""Ontology document and query result serializers (rdflib)."""

from .ontology_serializer import normalize_format, serialize_triples
from .result_serializer import RESULT_FORMATS, results_to_json_dict, serialize_results

__all__ = [
    "RESULT_FORMATS",
    "normalize_format",
    "results_to_json_dict",
    "serialize_results",
    "serialize_triples",
]
