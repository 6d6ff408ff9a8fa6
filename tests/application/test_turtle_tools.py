"""Tests for the generate_cli, query_ontology and export_to_ontology tools."""

import httpx
import pytest
from pydantic import ValidationError

from ontocli.application.services.query_executor import QueryExecutor
from ontocli.application.tools import OntologyQueryTool, export_to_ontology, generate_cli, query_ontology
from ontocli.application.tools.tool_models import (
    ExportRequest,
    GenerateCliRequest,
    GenerateOptions,
    OntologySource,
    QueryOntologyRequest,
)
from ontocli.domain.errors import (
    GeneratorError,
    OntologyValidationError,
    QueryTimeoutError,
    SourceLoadError,
    TurtleSyntaxError,
    UnknownVariableError,
)
from ontocli.infrastructure import source_loader

NOUNS_QUERY = "SELECT ?name WHERE { ?n a cnv:Noun ; cnv:name ?name } ORDER BY ?name"


class TestToolModels:
    def test_source_requires_exactly_one_field(self):
        with pytest.raises(ValidationError):
            OntologySource()
        with pytest.raises(ValidationError):
            OntologySource(content="x", path="y")
        assert OntologySource(path="acme.ttl").path == "acme.ttl"

    def test_flags_accept_a_comma_separated_string(self):
        assert GenerateOptions(flags="async_handlers, doc_blocks").flags == ["async_handlers", "doc_blocks"]

    def test_query_timeout_must_be_positive(self, user_order_ttl):
        with pytest.raises(ValidationError):
            QueryOntologyRequest(source={"content": user_order_ttl}, query=NOUNS_QUERY, timeout_seconds=0)


class TestGenerateCli:
    def test_generates_code_and_summaries(self, user_order_ttl):
        response = generate_cli(GenerateCliRequest(
            source={"content": user_order_ttl},
            options={"cli_name": "acme", "version": "3.0.0", "flags": ["doc_blocks"]},
        ))
        compile(response.code, "acme_cli.py", "exec")
        assert [(c.noun, c.verb) for c in response.commands] == [
            ("order", "create"),
            ("user", "create"),
            ("user", "list"),
        ]
        assert response.commands[1].arguments == ["email", "admin"]
        assert response.metadata["cli_name"] == "acme"
        assert response.metadata["version"] == "3.0.0"
        assert response.metadata["flags"] == ["doc_blocks"]
        assert response.metadata["output"] == "single"
        assert response.metadata["command_count"] == 3

    def test_reads_sources_from_disk(self, ontology_file):
        response = generate_cli(GenerateCliRequest(source={"path": str(ontology_file)}))
        assert response.metadata["cli_name"] == "cli"
        assert len(response.commands) == 3

    def test_warnings_are_reported_in_metadata(self, prefixes):
        response = generate_cli(GenerateCliRequest(source={"content": prefixes + """
ex:c a cnv:Command ; cnv:hasNoun "n" ; cnv:hasVerb "v" ; cnv:handler "pkg:c" .
"""}))
        assert [w["rule"] for w in response.metadata["warnings"]] == ["missing_help"]

    def test_empty_flags_fall_back_to_configured_flags(self, user_order_ttl, default_pipeline_config):
        default_pipeline_config.generator.flags = ["man_pages"]
        response = generate_cli(GenerateCliRequest(source={"content": user_order_ttl}))
        assert response.metadata["flags"] == ["man_pages"]
        assert "MANPAGE" in response.code

    def test_unknown_flag(self, user_order_ttl):
        with pytest.raises(GeneratorError) as exc:
            generate_cli(GenerateCliRequest(source={"content": user_order_ttl}, options={"flags": "telemetry"}))
        assert exc.value.details["flags"] == ["telemetry"]

    def test_parse_errors_propagate(self):
        with pytest.raises(TurtleSyntaxError):
            generate_cli(GenerateCliRequest(source={"content": "<urn:a> <urn:b> ."}))

    def test_validation_errors_propagate(self, prefixes):
        with pytest.raises(OntologyValidationError):
            generate_cli(GenerateCliRequest(source={"content": prefixes + "ex:c a cnv:Command ."}))

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceLoadError):
            generate_cli(GenerateCliRequest(source={"path": str(tmp_path / "missing.ttl")}))

    def test_url_source(self, user_order_ttl, monkeypatch):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text=user_order_ttl))
        real_fetch = source_loader.fetch_url

        def fetch(url, timeout=source_loader.DEFAULT_FETCH_TIMEOUT, client=None):
            with httpx.Client(transport=transport) as mocked:
                return real_fetch(url, timeout=timeout, client=mocked)

        monkeypatch.setattr(source_loader, "fetch_url", fetch)
        response = generate_cli(GenerateCliRequest(source={"url": "https://example.org/acme.ttl"}))
        assert len(response.commands) == 3


class TestQueryOntology:
    def test_json_results(self, user_order_ttl):
        response = query_ontology(QueryOntologyRequest(source={"content": user_order_ttl}, query=NOUNS_QUERY))
        assert response.result_count == 2
        assert response.variables == ["name"]
        values = [b["name"]["value"] for b in response.results["results"]["bindings"]]
        assert values == ["order", "user"]
        assert response.execution_time >= 0

    @pytest.mark.parametrize("format, marker", [
        ("csv", "name"),
        ("xml", "sparql"),
        ("turtle", "ResultSet"),
    ])
    def test_text_formats(self, user_order_ttl, format, marker):
        response = query_ontology(QueryOntologyRequest(
            source={"content": user_order_ttl}, query=NOUNS_QUERY, format=format
        ))
        assert isinstance(response.results, str)
        assert marker in response.results

    def test_queries_do_not_require_a_valid_ontology(self, prefixes):
        # Validation would fail: the command has no handler.
        text = prefixes + 'ex:c a cnv:Command ; cnv:hasNoun "n" .'
        response = query_ontology(QueryOntologyRequest(
            source={"content": text}, query="SELECT ?c WHERE { ?c cnv:hasNoun ?n }"
        ))
        assert response.result_count == 1

    def test_query_errors_propagate(self, user_order_ttl):
        with pytest.raises(UnknownVariableError):
            query_ontology(QueryOntologyRequest(
                source={"content": user_order_ttl}, query="SELECT ?missing WHERE { ?s ?p ?o }"
            ))


class TestOntologyQueryTool:
    def test_reuses_one_loaded_ontology(self, validated_ontology):
        tool = OntologyQueryTool(validated_ontology)
        first = tool.query_ontology(NOUNS_QUERY)
        second = tool.query_ontology(NOUNS_QUERY, "csv")
        assert first.result_count == second.result_count == 2
        assert len(tool.run(NOUNS_QUERY)) == 2

    def test_configured_default_format(self, validated_ontology, default_pipeline_config):
        default_pipeline_config.query.default_format = "csv"
        tool = OntologyQueryTool(validated_ontology)
        assert tool.query_ontology(NOUNS_QUERY).results.splitlines()[:3] == ["name", "order", "user"]
        assert isinstance(tool.query_ontology(NOUNS_QUERY, "json").results, dict)

    def test_configured_timeout(self, validated_ontology, default_pipeline_config):
        default_pipeline_config.query.timeout_seconds = 7.5
        assert OntologyQueryTool(validated_ontology).executor.timeout_seconds == 7.5

    def test_timeout(self, validated_ontology):
        ticks = iter(range(1000))
        tool = OntologyQueryTool(validated_ontology, QueryExecutor(timeout_seconds=0.5, clock=lambda: next(ticks)))
        with pytest.raises(QueryTimeoutError):
            tool.query_ontology(NOUNS_QUERY)


class TestExportToOntology:
    def test_exports_a_definition(self):
        response = export_to_ontology(ExportRequest(cli_definition={
            "name": "acme",
            "commands": [{"noun": "user", "verb": "list", "handlers": ["acme.users:list_users"]}],
        }))
        assert response.format.value == "turtle"
        assert response.namespaces["cli"] == "https://example.org/cli#"
        assert response.triple_count == 8
        assert "acme.users:list_users" in response.document

    def test_options_override_configuration(self, default_pipeline_config):
        default_pipeline_config.export.prefix = "configured"
        response = export_to_ontology(ExportRequest(
            cli_definition={"commands": [{"noun": "user", "verb": "list", "handlers": "pkg:a"}]},
            options={"base_iri": "https://acme.test/ns/", "format": "nt"},
        ))
        assert response.format.value == "nt"
        assert response.namespaces["configured"] == "https://acme.test/ns/"
        assert "<https://acme.test/ns/command/user/list>" in response.document
