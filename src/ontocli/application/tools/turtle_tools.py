"""
Turtle pipeline tools.

Three operations over the parse → validate → (query | generate) pipeline,
plus the reverse direction from a CLI definition to an ontology:

    generate_cli(GenerateCliRequest)        -> GenerateCliResponse
    query_ontology(QueryOntologyRequest)    -> QueryOntologyResponse
    export_to_ontology(ExportRequest)       -> ExportResponse

Every failure surfaces as an OntologyPipelineError subtype; nothing is
retried and no stage substitutes a default for a failed result.
"""

import logging
from typing import Optional, Union

from ontocli import composition_root
from ontocli.application.services.code_generator import FeatureFlags
from ontocli.application.services.query_executor import QueryExecutor, QueryResults
from ontocli.application.tools.tool_models import (
    CommandSummaryModel,
    ExportRequest,
    ExportResponse,
    GenerateCliRequest,
    GenerateCliResponse,
    OntologySource,
    QueryOntologyRequest,
    QueryOntologyResponse,
    ResultFormat,
)
from ontocli.domain.errors import GeneratorError
from ontocli.domain.ontology import Ontology, ValidatedOntology
from ontocli.infrastructure.serializers.result_serializer import results_to_json_dict, serialize_results

logger = logging.getLogger(__name__)


def _load(source: OntologySource) -> Ontology:
    return composition_root.load_ontology(content=source.content, path=source.path, url=source.url)


def _flags(names) -> FeatureFlags:
    if not names:
        return composition_root.configured_flags()
    try:
        return FeatureFlags.from_names(names)
    except ValueError as e:
        raise GeneratorError(str(e), details={"flags": list(names)}) from e


# ========================================
# generate_cli
# ========================================

def generate_cli(request: GenerateCliRequest) -> GenerateCliResponse:
    """Parse, validate and render the source into a typer module."""
    ontology = _load(request.source)
    validated = ontology.validate()
    options = request.options

    generator = composition_root.create_code_generator(cli_name=options.cli_name, version=options.version)
    generated = generator.generate(validated, _flags(options.flags))

    metadata = generated.metadata()
    metadata["output"] = options.output.value
    metadata["warnings"] = [finding.to_dict() for finding in validated.report.warnings]

    return GenerateCliResponse(
        code=generated.code,
        commands=[CommandSummaryModel(**summary.to_dict()) for summary in generated.commands],
        metadata=metadata,
    )


# ========================================
# query_ontology
# ========================================

class OntologyQueryTool:
    """Query tool bound to one loaded ontology (either state)."""

    def __init__(self, ontology: Union[Ontology, ValidatedOntology], executor: Optional[QueryExecutor] = None):
        self.ontology = ontology
        self.executor = executor or composition_root.create_query_executor()

    def run(self, query: str) -> QueryResults:
        return self.executor.execute(self.ontology, query)

    def query_ontology(
        self, query: str, format: Optional[Union[ResultFormat, str]] = None
    ) -> QueryOntologyResponse:
        result_format = ResultFormat(format or composition_root.configured_result_format())
        results = self.run(query)
        if result_format is ResultFormat.JSON:
            rendered = results_to_json_dict(results)
        else:
            rendered = serialize_results(results, result_format.value)
        return QueryOntologyResponse(
            results=rendered,
            execution_time=results.elapsed_seconds,
            result_count=len(results),
            variables=list(results.variables),
        )


def query_ontology(request: QueryOntologyRequest) -> QueryOntologyResponse:
    """Load the source and run one query against it."""
    executor = composition_root.create_query_executor(timeout_seconds=request.timeout_seconds)
    tool = OntologyQueryTool(_load(request.source), executor)
    return tool.query_ontology(request.query, request.format)


# ========================================
# export_to_ontology
# ========================================

def export_to_ontology(request: ExportRequest) -> ExportResponse:
    """Render a CLI definition as a Turtle or N-Triples ontology."""
    opts = request.options
    options = composition_root.configured_export_options(
        base_iri=opts.base_iri,
        prefix=opts.prefix,
        format=opts.format.value if opts.format else None,
    )
    exported = composition_root.create_exporter().export(request.cli_definition, options)
    return ExportResponse(
        document=exported.document,
        triple_count=exported.triple_count,
        namespaces=exported.namespaces,
        format=exported.format,
    )
