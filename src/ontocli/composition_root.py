# src/ontocli/composition_root.py

import logging
from typing import Callable, Dict, Iterable, Optional

from ontocli.application.services.code_generator import CodeGenerator, FeatureFlags
from ontocli.application.services.ontology_exporter import ExportOptions, OntologyExporter
from ontocli.application.services.ontology_validator import OntologyValidator
from ontocli.application.services.query_executor import QueryExecutor
from ontocli.config.pipeline_config import PipelineConfig, StorageBackendType, get_pipeline_config
from ontocli.domain.ontology import Ontology, ValidatedOntology
from ontocli.domain.rdf_terms import Triple
from ontocli.domain.storage_backend import BackendFactory, StorageBackend
from ontocli.infrastructure.in_memory_store import InMemoryTripleStore
from ontocli.infrastructure.parsers.turtle_parser import TurtleParser
from ontocli.infrastructure.rdflib_backend import RdflibTripleStore
from ontocli.infrastructure.source_loader import load_source

logger = logging.getLogger(__name__)


# --- Storage Backend Factories ---

def create_memory_backend(triples: Iterable[Triple]) -> StorageBackend:
    """Creates the indexed in-process store."""
    return InMemoryTripleStore(triples)


def create_rdflib_backend(triples: Iterable[Triple]) -> StorageBackend:
    """Creates an rdflib.Graph-backed store."""
    return RdflibTripleStore(triples)


# Backend Registry
# Maps a storage backend type to its factory function.
BACKEND_REGISTRY: Dict[StorageBackendType, Callable[[Iterable[Triple]], StorageBackend]] = {
    StorageBackendType.MEMORY: create_memory_backend,
    StorageBackendType.RDFLIB: create_rdflib_backend,
}


def get_backend_factory(backend: Optional[str] = None, config: Optional[PipelineConfig] = None) -> BackendFactory:
    """Resolve a backend factory by name, falling back to the configured backend."""
    config = config or get_pipeline_config()
    backend_type = StorageBackendType(backend) if backend else config.storage.backend
    return BACKEND_REGISTRY[backend_type]


# --- Pipeline Factories ---

def create_parser(config: Optional[PipelineConfig] = None) -> TurtleParser:
    config = config or get_pipeline_config()
    return TurtleParser(
        namespace_capacity=config.parser.namespace_capacity,
        base_iri=config.parser.base_iri,
    )


def create_query_executor(
    timeout_seconds: Optional[float] = None, config: Optional[PipelineConfig] = None
) -> QueryExecutor:
    config = config or get_pipeline_config()
    if timeout_seconds is None:
        timeout_seconds = config.query.timeout_seconds
    return QueryExecutor(timeout_seconds=timeout_seconds)


def create_code_generator(
    cli_name: Optional[str] = None,
    version: Optional[str] = None,
    config: Optional[PipelineConfig] = None,
) -> CodeGenerator:
    config = config or get_pipeline_config()
    return CodeGenerator(
        cli_name=cli_name or config.generator.cli_name,
        version=version or config.generator.version,
    )


def configured_flags(config: Optional[PipelineConfig] = None) -> FeatureFlags:
    """Feature flags named in the generator config."""
    config = config or get_pipeline_config()
    return FeatureFlags.from_names(config.generator.flags)


def create_validator() -> OntologyValidator:
    return OntologyValidator()


def configured_result_format(config: Optional[PipelineConfig] = None) -> str:
    """Result serialization used when a query names none."""
    config = config or get_pipeline_config()
    return config.query.default_format


def create_exporter() -> OntologyExporter:
    return OntologyExporter()


def configured_export_options(
    base_iri: Optional[str] = None,
    prefix: Optional[str] = None,
    format: Optional[str] = None,
    config: Optional[PipelineConfig] = None,
) -> ExportOptions:
    config = config or get_pipeline_config()
    return ExportOptions(
        base_iri=base_iri or config.export.base_iri,
        prefix=prefix or config.export.prefix,
        format=format or config.export.format,
    )


# --- Ontology Bootstrap ---

def parse_ontology(
    text: str,
    backend: Optional[str] = None,
    config: Optional[PipelineConfig] = None,
) -> Ontology:
    """Parses Turtle text into an unvalidated Ontology on the selected backend."""
    document = create_parser(config).parse(text)
    return Ontology.from_document(document, get_backend_factory(backend, config), create_validator())


def validate_ontology(ontology: Ontology) -> ValidatedOntology:
    return ontology.validate(create_validator())


def load_ontology(
    content: Optional[str] = None,
    path: Optional[str] = None,
    url: Optional[str] = None,
    backend: Optional[str] = None,
    config: Optional[PipelineConfig] = None,
) -> Ontology:
    """Loads a source (content / path / url) and parses it."""
    text = load_source(content=content, path=path, url=url)
    return parse_ontology(text, backend=backend, config=config)


def load_validated(
    content: Optional[str] = None,
    path: Optional[str] = None,
    url: Optional[str] = None,
    backend: Optional[str] = None,
    config: Optional[PipelineConfig] = None,
) -> ValidatedOntology:
    """Loads, parses and validates a source in one step."""
    ontology = load_ontology(content=content, path=path, url=url, backend=backend, config=config)
    validated = validate_ontology(ontology)
    logger.info(
        f"Ontology ready: {validated.triple_count} triples, "
        f"{len(validated.command_index)} command(s)"
    )
    return validated
