"""Pipeline tools: generate_cli, query_ontology, export_to_ontology."""

from .turtle_tools import OntologyQueryTool, export_to_ontology, generate_cli, query_ontology

__all__ = ["OntologyQueryTool", "export_to_ontology", "generate_cli", "query_ontology"]
