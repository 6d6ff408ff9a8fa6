"""Tests for the Turtle parser."""

import pytest

from ontocli.domain.errors import (
    DuplicateDefinitionError,
    InvalidIriError,
    NamespaceCapacityError,
    ParseError,
    TurtleSyntaxError,
    UndefinedPrefixError,
)
from ontocli.domain.rdf_terms import BlankNode, IRI, Literal, RDF_TYPE, Triple
from ontocli.domain.vocabulary import CNV, RDF, XSD
from ontocli.infrastructure.parsers.turtle_parser import TurtleParser

EX = "https://example.org/acme#"


def _parse(text, **kwargs):
    return TurtleParser(**kwargs).parse(text)


class TestTurtleGrammar:
    """Statements, directives and term forms."""

    def test_prefixed_statement_with_predicate_and_object_lists(self):
        """';' and ',' expand into separate triples in document order."""
        document = _parse(
            "@prefix ex: <https://example.org/acme#> .\n"
            "ex:a ex:p ex:b , ex:c ; ex:q \"x\" .\n"
        )
        assert list(document.triples) == [
            Triple(IRI(EX + "a"), IRI(EX + "p"), IRI(EX + "b")),
            Triple(IRI(EX + "a"), IRI(EX + "p"), IRI(EX + "c")),
            Triple(IRI(EX + "a"), IRI(EX + "q"), Literal("x")),
        ]
        assert document.triple_count == 3
        assert document.namespaces.resolve("ex") == EX

    def test_sparql_style_directives_without_trailing_dot(self):
        document = _parse(
            "PREFIX ex: <https://example.org/acme#>\n"
            "BASE <https://example.org/base/>\n"
            "ex:a ex:p <relative> .\n"
        )
        assert document.triples[0].object == IRI("https://example.org/base/relative")
        assert document.base_iri == "https://example.org/base/"

    def test_a_keyword_means_rdf_type(self):
        document = _parse("@prefix cnv: <https://cnv.dev/ontology#> .\n<urn:x> a cnv:Command .")
        assert document.triples[0].predicate == RDF_TYPE
        assert document.triples[0].object == IRI(CNV.COMMAND)

    def test_empty_prefix(self):
        document = _parse("@prefix : <https://example.org/acme#> .\n:a :p :b .")
        assert document.triples[0].subject == IRI(EX + "a")

    def test_literal_forms(self):
        """Quote styles, escapes, language tags, datatypes and shorthand numbers."""
        document = _parse(
            '@prefix ex: <https://example.org/acme#> .\n'
            '@prefix xsd: <http://www.w3.org/2001/XMLSchema#> .\n'
            'ex:a ex:s \'single\' ;\n'
            '     ex:l """long\nline""" ;\n'
            '     ex:e "tab\\tquote\\"u\\u00e9" ;\n'
            '     ex:g "hallo"@DE ;\n'
            '     ex:d "5"^^xsd:integer ;\n'
            '     ex:i -7 ;\n'
            '     ex:m 1.5 ;\n'
            '     ex:x 1e3 ;\n'
            '     ex:b false .\n'
        )
        objects = [t.object for t in document.triples]
        assert objects == [
            Literal("single"),
            Literal("long\nline"),
            Literal('tab\tquote"ué'),
            Literal("hallo", language="de"),
            Literal("5", XSD.INTEGER),
            Literal("-7", XSD.INTEGER),
            Literal("1.5", XSD.DECIMAL),
            Literal("1e3", XSD.DOUBLE),
            Literal("false", XSD.BOOLEAN),
        ]

    def test_blank_nodes(self):
        document = _parse(
            "@prefix ex: <https://example.org/acme#> .\n"
            "_:arg ex:name \"x\" .\n"
            "ex:c ex:hasArgument [ ex:name \"y\" ] .\n"
        )
        assert document.triples[0].subject == BlankNode("uarg")
        anonymous = document.triples[2].object
        assert isinstance(anonymous, BlankNode)
        assert Triple(anonymous, IRI(EX + "name"), Literal("y")) in document.triples

    @pytest.mark.parametrize("label", ["genid1", "g1", "u1"])
    def test_written_labels_do_not_collide_with_anonymous_nodes(self, label):
        document = _parse(
            "@prefix cnv: <https://cnv.dev/ontology#> .\n"
            "<urn:c> cnv:hasArgument [ cnv:name \"email\" ] , ( <urn:x> ) .\n"
            f"_:{label} cnv:name \"other\" .\n"
        )
        names = {t.subject: t.object for t in document.triples if t.predicate == IRI(CNV.NAME)}
        assert len(names) == 2
        assert sorted(n.lexical for n in names.values()) == ["email", "other"]

    def test_same_written_label_is_one_node(self):
        document = _parse(
            "@prefix ex: <https://example.org/acme#> .\n"
            "ex:c ex:hasArgument _:a .\n"
            "_:a ex:name \"x\" .\n"
        )
        assert document.triples[0].object == document.triples[1].subject

    def test_collection_expands_to_first_rest_chain(self):
        document = _parse("@prefix ex: <https://example.org/acme#> .\nex:a ex:items ( 1 2 ) .")
        firsts = [t.object for t in document.triples if t.predicate == IRI(RDF.FIRST)]
        rests = [t.object for t in document.triples if t.predicate == IRI(RDF.REST)]
        assert firsts == [Literal("1", XSD.INTEGER), Literal("2", XSD.INTEGER)]
        assert rests[-1] == IRI(RDF.NIL)

    def test_comments_and_bom_are_ignored(self):
        document = _parse("\ufeff# header\n<urn:a> <urn:p> <urn:b> . # trailing\n")
        assert document.triple_count == 1

    def test_identical_triples_are_deduplicated(self):
        document = _parse("<urn:a> <urn:p> <urn:b> .\n<urn:a> <urn:p> <urn:b> .")
        assert document.triple_count == 1

    def test_ntriples_subset(self):
        document = _parse(
            '<urn:a> <urn:p> "x"@en .\n'
            '<urn:a> <urn:q> "2"^^<http://www.w3.org/2001/XMLSchema#integer> .\n'
        )
        assert document.triples[1].object == Literal("2", XSD.INTEGER)

    def test_document_size_is_reported(self):
        text = "<urn:a> <urn:p> <urn:b> ."
        assert _parse(text).document_size == len(text)


class TestTurtleErrors:
    """Failure modes carry structured positions."""

    def test_syntax_error_reports_line_and_column(self):
        text = "<urn:a> <urn:p> <urn:b> .\n<urn:a> <urn:p> .\n"
        with pytest.raises(TurtleSyntaxError) as exc:
            _parse(text)
        assert exc.value.line == 2
        assert exc.value.column == 17
        assert exc.value.to_dict()["stage"] == "parse"

    def test_error_on_line_42_of_a_long_document(self):
        """Error locality does not depend on document length."""
        lines = [f"<urn:s{i}> <urn:p> <urn:o{i}> ." for i in range(41)]
        lines.append("<urn:broken> <urn:p> .")
        lines.extend(f"<urn:t{i}> <urn:p> <urn:o{i}> ." for i in range(200))
        with pytest.raises(TurtleSyntaxError) as exc:
            _parse("\n".join(lines))
        assert exc.value.line == 42
        assert exc.value.details["line"] == 42

    def test_line_numbers_count_newlines_inside_long_strings(self):
        text = '<urn:a> <urn:p> """one\ntwo\nthree""" .\n<urn:a> ;'
        with pytest.raises(TurtleSyntaxError) as exc:
            _parse(text)
        assert exc.value.line == 4

    def test_undefined_prefix(self):
        with pytest.raises(UndefinedPrefixError) as exc:
            _parse("@prefix ex: <https://example.org/acme#> .\nex:a nope:p ex:b .")
        assert exc.value.prefix == "nope"
        assert exc.value.line == 2

    def test_prefix_used_before_declaration(self):
        with pytest.raises(UndefinedPrefixError):
            _parse("ex:a ex:p ex:b .\n@prefix ex: <https://example.org/acme#> .")

    def test_relative_iri_without_base(self):
        with pytest.raises(InvalidIriError) as exc:
            _parse("<relative> <urn:p> <urn:o> .")
        assert exc.value.reason.startswith("relative IRI")

    def test_illegal_iri_character(self):
        with pytest.raises(InvalidIriError):
            _parse("<urn:a b> <urn:p> <urn:o> .")

    def test_conflicting_functional_value(self):
        text = (
            "@prefix cnv: <https://cnv.dev/ontology#> .\n"
            '<urn:arg> cnv:name "first" .\n'
            '<urn:arg> cnv:name "second" .\n'
        )
        with pytest.raises(DuplicateDefinitionError) as exc:
            _parse(text)
        assert exc.value.identifier == "urn:arg"
        assert exc.value.predicate == CNV.NAME
        assert exc.value.details["line"] == 3

    def test_conflict_is_reported_on_the_line_of_the_object(self):
        text = (
            "@prefix cnv: <https://cnv.dev/ontology#> .\n"
            '<urn:arg> cnv:name "first" .\n'
            '<urn:arg> cnv:name "second"\n'
            ".\n"
        )
        with pytest.raises(DuplicateDefinitionError) as exc:
            _parse(text)
        assert exc.value.details["line"] == 3

    def test_conflict_in_object_list_is_reported_on_its_line(self):
        text = (
            "@prefix cnv: <https://cnv.dev/ontology#> .\n"
            '<urn:arg> cnv:name "first" ,\n'
            '    "second"\n'
            "    .\n"
        )
        with pytest.raises(DuplicateDefinitionError) as exc:
            _parse(text)
        assert exc.value.details["line"] == 3

    def test_repeated_functional_value_is_not_a_conflict(self):
        text = (
            "@prefix cnv: <https://cnv.dev/ontology#> .\n"
            '<urn:arg> cnv:name "same" .\n'
            '<urn:arg> cnv:name "same" .\n'
        )
        assert _parse(text).triple_count == 1

    def test_namespace_capacity(self):
        text = "".join(f"@prefix p{i}: <urn:ns{i}#> .\n" for i in range(3))
        with pytest.raises(NamespaceCapacityError) as exc:
            _parse(text, namespace_capacity=2)
        assert exc.value.details["capacity"] == 2
        assert exc.value.details["line"] == 3

    def test_redeclaring_a_prefix_does_not_consume_capacity(self):
        text = "@prefix p: <urn:one#> .\n@prefix p: <urn:two#> .\np:a p:b p:c ."
        document = _parse(text, namespace_capacity=1)
        assert document.triples[0].subject == IRI("urn:two#a")

    def test_each_parse_owns_its_registry(self):
        parser = TurtleParser()
        first = parser.parse("@prefix ex: <urn:ex#> .\nex:a ex:b ex:c .")
        parser.parse("@prefix other: <urn:other#> .\nother:a other:b other:c .")
        assert "other" not in first.namespaces
        with pytest.raises(ParseError):
            parser.parse("ex:a ex:b ex:c .")

    @pytest.mark.parametrize("text", [
        "<urn:a> <urn:p> \"unterminated .",
        "<urn:a> <urn:p> <urn:o>",
        "<urn:a> <urn:p> [ <urn:q> <urn:r> .",
        "\"literal\" <urn:p> <urn:o> .",
        "<urn:a> <urn:p> ^ <urn:o> .",
    ])
    def test_malformed_documents_raise_syntax_errors(self, text):
        with pytest.raises(TurtleSyntaxError):
            _parse(text)
