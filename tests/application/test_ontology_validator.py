"""Tests for the validation transition and Command Index construction."""

import inspect

import pytest

from ontocli.application.services.ontology_validator import OntologyValidator
from ontocli.domain import ontology as ontology_module
from ontocli.domain.errors import OntologyValidationError
from ontocli.domain.ontology import Ontology, ValidatedOntology
from ontocli.domain.validation_models import Severity, ValidationRule
from ontocli.infrastructure.in_memory_store import InMemoryTripleStore
from ontocli.infrastructure.parsers.turtle_parser import TurtleParser
from ontocli.infrastructure.rdflib_backend import RdflibTripleStore


COMMAND = """
ex:{name} a cnv:Command ;
    cnv:hasNoun "{noun}" ;
    cnv:hasVerb "{verb}" ;
    cnv:handler "pkg:{name}" ;
    cnv:help "Help for {name}." .
"""


def _command(name, noun, verb):
    return COMMAND.format(name=name, noun=noun, verb=verb)


class TestValidTransition:
    """A well-formed ontology becomes a ValidatedOntology."""

    def test_validate_returns_validated_state(self, user_order_ontology):
        validated = user_order_ontology.validate()
        assert isinstance(validated, ValidatedOntology)
        assert validated.is_validated
        assert not user_order_ontology.is_validated
        assert validated.report.is_valid
        assert validated.report.findings == ()
        assert validated.triple_count == user_order_ontology.triple_count
        assert validated.namespaces["cnv"] == "https://cnv.dev/ontology#"

    def test_validator_is_injected(self, user_order_ttl):
        document = TurtleParser().parse(user_order_ttl)
        ontology = Ontology.from_document(document, InMemoryTripleStore)
        with pytest.raises(RuntimeError):
            ontology.validate()
        validated = ontology.validate(OntologyValidator())
        assert len(validated.command_index) == 3

    def test_domain_layer_does_not_import_services(self):
        source = inspect.getsource(ontology_module)
        assert "ontocli.application" not in source

    def test_command_index_keys(self, validated_ontology):
        assert validated_ontology.command_index.keys() == (
            ("order", "create"),
            ("user", "create"),
            ("user", "list"),
        )

    def test_descriptor_contents(self, validated_ontology):
        command = validated_ontology.command_index.lookup("user", "create")
        assert command.handler == "acme.users:create"
        assert command.handlers == ("acme.users:create",)
        assert command.capabilities == ("write",)
        assert command.help == "Create a user."
        assert command.iri == "https://example.org/acme#user-create"
        assert [a.name for a in command.arguments] == ["email", "admin"]

        email = command.argument("email")
        assert email.required is True
        assert email.position == 0
        assert email.validators == ("email",)
        assert email.help == "Email address"

        admin = command.argument("admin")
        assert admin.type_tag == "boolean"
        assert admin.default == "false"
        assert admin.required is False

    def test_xsd_datatype_normalizes_to_type_tag(self, validated_ontology):
        limit = validated_ontology.command_index.lookup("user", "list").argument("limit")
        assert limit.type_tag == "integer"
        assert limit.default == "20"

    def test_help_precedence(self, validated_ontology, make_ontology, prefixes):
        index = validated_ontology.command_index
        assert index.lookup("user", "list").help == "List users."        # rdfs:comment
        assert index.lookup("order", "create").help == "Create an order."  # rdfs:label

        ontology = make_ontology(prefixes + """
ex:c a cnv:Command ; cnv:hasNoun "n" ; cnv:hasVerb "v" ; cnv:handler "pkg:c" ;
    rdfs:label "label" ; rdfs:comment "comment" ; cnv:help "help" .
""")
        assert ontology.validate().command_index.lookup("n", "v").help == "help"

    def test_literal_nouns_and_blank_node_arguments(self, make_ontology, prefixes):
        ontology = make_ontology(prefixes + """
ex:c a cnv:Command ;
    cnv:hasNoun "file" ;
    cnv:hasVerb "copy" ;
    cnv:handler "pkg:copy" ;
    cnv:help "Copy a file." ;
    cnv:hasArgument [ cnv:name "target" ; cnv:datatype "path" ; cnv:position 1 ] ,
                    [ cnv:name "source" ; cnv:datatype "path" ; cnv:position 0 ] .
""")
        command = ontology.validate().command_index.lookup("file", "copy")
        assert [a.name for a in command.arguments] == ["source", "target"]

    def test_validation_is_idempotent(self, user_order_ontology):
        first = user_order_ontology.validate()
        second = user_order_ontology.validate()
        assert first.command_index == second.command_index
        assert first.report == second.report

    def test_statement_order_does_not_change_the_index(self, user_order_ttl, reordered_ttl, make_ontology):
        first = make_ontology(user_order_ttl).validate()
        second = make_ontology(reordered_ttl).validate()
        assert first.command_index == second.command_index
        assert first.command_index.to_dict() == second.command_index.to_dict()

    def test_rdflib_backend_builds_the_same_index(self, user_order_ttl, make_ontology):
        memory = make_ontology(user_order_ttl).validate()
        rdflib_backed = make_ontology(user_order_ttl, RdflibTripleStore).validate()
        assert isinstance(rdflib_backed.backend, RdflibTripleStore)
        assert memory.command_index == rdflib_backed.command_index


class TestValidationErrors:
    """Error findings block the transition; collection is exhaustive."""

    def _errors(self, ontology):
        with pytest.raises(OntologyValidationError) as exc:
            ontology.validate()
        return exc.value.report

    def test_dangling_reference(self, make_ontology, prefixes):
        report = self._errors(make_ontology(prefixes + """
ex:c a cnv:Command ; cnv:hasNoun ex:ghost ; cnv:hasVerb "v" ; cnv:handler "pkg:c" ; cnv:help "h" .
"""))
        findings = report.by_rule(ValidationRule.REFERENTIAL)
        assert len(findings) == 1
        assert findings[0].identifier == "https://example.org/acme#c"
        assert findings[0].details["target"] == "https://example.org/acme#ghost"

    def test_written_label_never_reaches_an_anonymous_argument(self, make_ontology, prefixes):
        report = self._errors(make_ontology(prefixes + """
ex:c a cnv:Command ; cnv:hasNoun "user" ; cnv:hasVerb "create" ; cnv:handler "pkg:c" ; cnv:help "h" ;
    cnv:hasArgument [ a cnv:Argument ; cnv:name "email" ] .
ex:d a cnv:Command ; cnv:hasNoun "user" ; cnv:hasVerb "delete" ; cnv:handler "pkg:d" ; cnv:help "h" ;
    cnv:hasArgument _:genid1 , _:g1 .
"""))
        findings = report.by_rule(ValidationRule.REFERENTIAL)
        assert len(findings) == 2
        assert {f.identifier for f in findings} == {"https://example.org/acme#d"}

    def test_missing_handler_noun_and_verb(self, make_ontology, prefixes):
        report = self._errors(make_ontology(prefixes + """
ex:c a cnv:Command ; cnv:help "h" .
"""))
        messages = [f.message for f in report.by_rule(ValidationRule.CARDINALITY)]
        assert "command has no noun" in messages
        assert "command has no verb" in messages
        assert "command has no handler binding" in messages

    def test_noun_resource_without_name(self, make_ontology, prefixes):
        report = self._errors(make_ontology(prefixes + """
ex:n a cnv:Noun .
ex:c a cnv:Command ; cnv:hasNoun ex:n ; cnv:hasVerb "v" ; cnv:handler "pkg:c" ; cnv:help "h" .
"""))
        findings = report.by_rule(ValidationRule.CARDINALITY)
        assert findings[0].identifier == "https://example.org/acme#n"

    def test_argument_shape_errors(self, make_ontology, prefixes):
        report = self._errors(make_ontology(prefixes + """
ex:c a cnv:Command ; cnv:hasNoun "n" ; cnv:hasVerb "v" ; cnv:handler "pkg:c" ; cnv:help "h" ;
    cnv:hasArgument ex:a1 , ex:a2 , ex:a3 .
ex:a1 cnv:datatype "string" .
ex:a2 cnv:name "x" ; cnv:required "maybe" .
ex:a3 cnv:name "y" ; cnv:position "first" .
"""))
        by_identifier = {f.identifier: f.message for f in report.by_rule(ValidationRule.CARDINALITY)}
        assert by_identifier["https://example.org/acme#a1"] == "argument has no name"
        assert "must be a boolean" in by_identifier["https://example.org/acme#a2"]
        assert "must be an integer" in by_identifier["https://example.org/acme#a3"]

    def test_duplicate_noun_verb_pair(self, make_ontology, prefixes):
        report = self._errors(make_ontology(
            prefixes + _command("a", "user", "create") + _command("b", "user", "create")
        ))
        findings = report.by_rule(ValidationRule.DUPLICATE_COMMAND)
        assert len(findings) == 1
        assert findings[0].identifier == "user create"
        assert findings[0].details["commands"] == [
            "https://example.org/acme#a",
            "https://example.org/acme#b",
        ]

    def test_all_rules_report_before_failing(self, make_ontology, prefixes):
        report = self._errors(make_ontology(
            prefixes
            + _command("a", "user", "create")
            + _command("b", "user", "create")
            + """
ex:c a cnv:Command ; cnv:hasNoun "order" ; cnv:hasVerb "list" ; cnv:help "h" ;
    cnv:hasArgument ex:missing .
"""
        ))
        rules = {f.rule for f in report.errors}
        assert rules == {
            ValidationRule.REFERENTIAL,
            ValidationRule.CARDINALITY,
            ValidationRule.DUPLICATE_COMMAND,
        }
        assert not report.is_valid
        assert report.command_count == 3

    def test_error_carries_structured_report(self, make_ontology, prefixes):
        ontology = make_ontology(prefixes + "ex:c a cnv:Command .")
        with pytest.raises(OntologyValidationError) as exc:
            ontology.validate()
        data = exc.value.to_dict()
        assert data["stage"] == "validate"
        assert data["code"] == "validation_failed"
        assert data["details"]["error_count"] == len(exc.value.report.errors)


class TestValidationWarnings:
    """Warnings never block the transition."""

    def test_warning_rules(self, make_ontology, prefixes):
        ontology = make_ontology(prefixes + """
ex:unused a cnv:Verb ; cnv:name "unused" .
ex:c a cnv:Command ;
    cnv:hasNoun "n" ;
    cnv:hasVerb "v" ;
    cnv:handler "pkg:second" , "pkg:first" ;
    cnv:hasArgument ex:untyped , ex:colour , ex:both .
ex:untyped cnv:name "untyped" .
ex:colour cnv:name "colour" ; cnv:datatype "color" .
ex:both cnv:name "both" ; cnv:datatype "string" ; cnv:required true ; cnv:default "x" .
""")
        validated = ontology.validate()
        report = validated.report
        assert report.is_valid
        assert all(f.severity is Severity.WARNING for f in report.findings)
        rules = [f.rule for f in report.findings]
        for rule in (
            ValidationRule.MISSING_HELP,
            ValidationRule.DEFAULT_DATATYPE,
            ValidationRule.UNKNOWN_TYPE_TAG,
            ValidationRule.MULTIPLE_HANDLERS,
            ValidationRule.UNUSED_RESOURCE,
            ValidationRule.REQUIRED_WITH_DEFAULT,
        ):
            assert rule in rules

        command = validated.command_index.lookup("n", "v")
        assert command.handler == "pkg:first"
        assert command.handlers == ("pkg:first", "pkg:second")
        assert command.argument("untyped").type_tag == "string"
        assert command.argument("colour").type_tag == "color"
        assert "1 command(s)" in report.summary()
