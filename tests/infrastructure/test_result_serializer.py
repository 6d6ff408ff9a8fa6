"""Tests for query result serialization."""

import json

import pytest
from rdflib import Graph

from ontocli.application.services.query_executor import QueryResults
from ontocli.domain.errors import QueryError
from ontocli.domain.rdf_terms import BlankNode, IRI, Literal
from ontocli.domain.vocabulary import XSD
from ontocli.infrastructure.serializers import results_to_json_dict, serialize_results


@pytest.fixture
def results():
    return QueryResults(
        variables=("command", "help", "position"),
        rows=(
            {"command": IRI("urn:user-create"), "help": Literal("Create a user.", language="en"), "position": Literal("0", XSD.INTEGER)},
            {"command": BlankNode("genid1")},
        ),
    )


class TestJsonResults:
    def test_head_and_bindings(self, results):
        data = results_to_json_dict(results)
        assert data["head"]["vars"] == ["command", "help", "position"]
        first, second = data["results"]["bindings"]
        assert first["command"] == {"type": "uri", "value": "urn:user-create"}
        assert first["help"] == {"type": "literal", "value": "Create a user.", "xml:lang": "en"}
        assert first["position"]["datatype"] == XSD.INTEGER
        # Unbound variables are omitted from the row.
        assert second == {"command": {"type": "bnode", "value": "genid1"}}

    def test_serialized_json_parses_back(self, results):
        assert json.loads(serialize_results(results, "json")) == results_to_json_dict(results)


class TestRdflibFormats:
    def test_csv_header_and_rows(self, results):
        lines = serialize_results(results, "csv").splitlines()
        assert lines[0] == "command,help,position"
        assert lines[1].startswith("urn:user-create,Create a user.,0")
        assert len(lines) == 3

    def test_xml(self, results):
        document = serialize_results(results, "xml")
        assert "sparql" in document
        assert "urn:user-create" in document

    def test_turtle_result_set_graph(self, results):
        graph = Graph().parse(data=serialize_results(results, "turtle"), format="turtle")
        query = (
            "PREFIX rs: <http://www.w3.org/2001/sw/DataAccess/tests/result-set#> "
            "SELECT (COUNT(?s) AS ?n) WHERE { ?set rs:solution ?s }"
        )
        assert int(next(iter(graph.query(query)))[0]) == 2

    def test_format_name_is_case_insensitive(self, results):
        assert serialize_results(results, " CSV ").startswith("command,")

    def test_unknown_format(self, results):
        with pytest.raises(QueryError) as exc:
            serialize_results(results, "yaml")
        assert exc.value.details["supported"] == ["json", "xml", "csv", "turtle"]
