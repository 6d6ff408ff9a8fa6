"""Shared fixtures: small command ontologies and pipeline helpers."""

import os

import pytest

from ontocli.application.services.ontology_validator import OntologyValidator
from ontocli.config import pipeline_config
from ontocli.config.pipeline_config import PipelineConfig
from ontocli.domain.ontology import Ontology
from ontocli.infrastructure.in_memory_store import InMemoryTripleStore
from ontocli.infrastructure.parsers.turtle_parser import TurtleParser


PREFIXES = """\
@prefix cnv: <https://cnv.dev/ontology#> .
@prefix ex: <https://example.org/acme#> .
@prefix rdfs: <http://www.w3.org/2000/01/rdf-schema#> .
@prefix xsd: <http://www.w3.org/2001/XMLSchema#> .
"""

NOUNS_AND_VERBS = """
ex:user a cnv:Noun ; cnv:name "user" .
ex:order a cnv:Noun ; cnv:name "order" .
ex:create a cnv:Verb ; cnv:name "create" .
ex:list a cnv:Verb ; cnv:name "list" .
"""

USER_CREATE = """
ex:user-create a cnv:Command ;
    cnv:hasNoun ex:user ;
    cnv:hasVerb ex:create ;
    cnv:handler "acme.users:create" ;
    cnv:capability "write" ;
    cnv:help "Create a user." ;
    cnv:hasArgument ex:user-create-email , ex:user-create-admin .

ex:user-create-email a cnv:Argument ;
    cnv:name "email" ;
    cnv:datatype "string" ;
    cnv:required true ;
    cnv:position 0 ;
    cnv:validator "email" ;
    cnv:help "Email address" .

ex:user-create-admin a cnv:Argument ;
    cnv:name "admin" ;
    cnv:datatype "boolean" ;
    cnv:default "false" .
"""

USER_LIST = """
ex:user-list a cnv:Command ;
    cnv:hasNoun ex:user ;
    cnv:hasVerb ex:list ;
    cnv:handler "acme.users:list_users" ;
    rdfs:comment "List users." ;
    cnv:hasArgument ex:user-list-limit .

ex:user-list-limit a cnv:Argument ;
    cnv:name "limit" ;
    cnv:datatype xsd:integer ;
    cnv:default "20" .
"""

ORDER_CREATE = """
ex:order-create a cnv:Command ;
    cnv:hasNoun ex:order ;
    cnv:hasVerb ex:create ;
    cnv:handler "acme.orders:create" ;
    rdfs:label "Create an order." ;
    cnv:hasArgument ex:order-create-sku , ex:order-create-quantity .

ex:order-create-sku a cnv:Argument ;
    cnv:name "sku" ;
    cnv:datatype "string" ;
    cnv:required true ;
    cnv:position 0 .

ex:order-create-quantity a cnv:Argument ;
    cnv:name "quantity" ;
    cnv:datatype "integer" ;
    cnv:default "1" .
"""

USER_ORDER_TTL = PREFIXES + NOUNS_AND_VERBS + USER_CREATE + USER_LIST + ORDER_CREATE

# Same statements, blocks in a different order.
USER_ORDER_TTL_REORDERED = PREFIXES + ORDER_CREATE + USER_LIST + NOUNS_AND_VERBS + USER_CREATE


def build_ontology(text: str, backend_factory=InMemoryTripleStore) -> Ontology:
    document = TurtleParser().parse(text)
    return Ontology.from_document(document, backend_factory, OntologyValidator())


@pytest.fixture
def user_order_ttl():
    """Three commands: user create, user list, order create."""
    return USER_ORDER_TTL


@pytest.fixture
def user_order_ontology():
    """Unvalidated ontology for the three-command document."""
    return build_ontology(USER_ORDER_TTL)


@pytest.fixture
def validated_ontology(user_order_ontology):
    """Validated ontology for the three-command document."""
    return user_order_ontology.validate()


@pytest.fixture
def ontology_file(tmp_path):
    """The three-command document written to disk."""
    path = tmp_path / "acme.ttl"
    path.write_text(USER_ORDER_TTL, encoding="utf-8")
    return path


@pytest.fixture
def reordered_ttl():
    """The three-command document with its statement blocks shuffled."""
    return USER_ORDER_TTL_REORDERED


@pytest.fixture
def make_ontology():
    """Parse Turtle text into an unvalidated ontology."""
    return build_ontology


@pytest.fixture
def prefixes():
    """Prefix block shared by the inline test documents."""
    return PREFIXES


@pytest.fixture(autouse=True)
def default_pipeline_config(monkeypatch):
    """Every test starts from the built-in configuration, whatever the environment holds."""
    for name in list(os.environ):
        if name.startswith("ONTOCLI_"):
            monkeypatch.delenv(name)
    config = PipelineConfig()
    monkeypatch.setattr(pipeline_config, "_config", config)
    return config
