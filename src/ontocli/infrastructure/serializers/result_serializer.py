"""Query result serializers.

json:   SPARQL 1.1 Query Results JSON
xml:    SPARQL Query Results XML (rdflib)
csv:    SPARQL 1.1 Query Results CSV (rdflib)
turtle: W3C result-set vocabulary graph (rdflib)
"""

import json
from typing import Any, Dict, Optional

from rdflib import BNode, Graph, Literal as RdflibLiteral, Namespace, RDF as RDF_NS, Variable
from rdflib.query import Result

from ontocli.domain.errors import QueryError
from ontocli.domain.rdf_terms import BlankNode, IRI, Term
from ontocli.infrastructure.rdflib_backend import to_rdflib

RESULT_SET = Namespace("http://www.w3.org/2001/sw/DataAccess/tests/result-set#")

RESULT_FORMATS = ("json", "xml", "csv", "turtle")


def _json_term(term: Term) -> Dict[str, str]:
    if isinstance(term, IRI):
        return {"type": "uri", "value": term.value}
    if isinstance(term, BlankNode):
        return {"type": "bnode", "value": term.label}
    data = {"type": "literal", "value": term.lexical}
    if term.language:
        data["xml:lang"] = term.language
    elif term.datatype:
        data["datatype"] = term.datatype
    return data


def results_to_json_dict(results) -> Dict[str, Any]:
    return {
        "head": {"vars": list(results.variables)},
        "results": {
            "bindings": [
                {var: _json_term(term) for var, term in row.items()}
                for row in results.rows
            ]
        },
    }


def _rdflib_result(results) -> Result:
    result = Result("SELECT")
    result.vars = [Variable(v) for v in results.variables]
    result.bindings = [
        {Variable(var): to_rdflib(term) for var, term in row.items()}
        for row in results.rows
    ]
    return result


def _result_set_graph(results) -> Graph:
    graph = Graph()
    graph.bind("rs", RESULT_SET)
    result_set = BNode("resultset")
    graph.add((result_set, RDF_NS.type, RESULT_SET.ResultSet))
    for variable in results.variables:
        graph.add((result_set, RESULT_SET.resultVariable, RdflibLiteral(variable)))
    for index, row in enumerate(results.rows, start=1):
        solution = BNode(f"solution{index}")
        graph.add((result_set, RESULT_SET.solution, solution))
        graph.add((solution, RESULT_SET["index"], RdflibLiteral(index)))
        for variable in results.variables:
            if variable not in row:
                continue
            binding = BNode(f"solution{index}_{variable}")
            graph.add((solution, RESULT_SET.binding, binding))
            graph.add((binding, RESULT_SET.variable, RdflibLiteral(variable)))
            graph.add((binding, RESULT_SET.value, to_rdflib(row[variable])))
    return graph


def serialize_results(results, format: str = "json", indent: Optional[int] = 2) -> str:
    """Render QueryResults in one of RESULT_FORMATS."""
    name = format.strip().lower()
    if name == "json":
        return json.dumps(results_to_json_dict(results), indent=indent, ensure_ascii=False)
    if name in ("xml", "csv"):
        payload = _rdflib_result(results).serialize(format=name)
        return payload.decode("utf-8") if isinstance(payload, bytes) else payload
    if name in ("turtle", "ttl"):
        return _result_set_graph(results).serialize(format="turtle")
    raise QueryError(
        f"Unsupported result format '{format}' (supported: {', '.join(RESULT_FORMATS)})",
        identifier=format,
        details={"format": format, "supported": list(RESULT_FORMATS)},
    )
