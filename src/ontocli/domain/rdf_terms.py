"""RDF term and triple models.

Terms are immutable and hashable so they can be used directly as index
keys. Every term renders to its N-Triples form, which doubles as the
stable sort key wherever output order must not depend on storage order.
"""

from dataclasses import dataclass
from typing import Optional, Union

from ontocli.domain.vocabulary import RDF, XSD


def _escape_literal(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )


@dataclass(frozen=True)
class IRI:
    """An absolute IRI."""
    value: str

    def n3(self) -> str:
        return f"<{self.value}>"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class BlankNode:
    """A blank node, identified by a document-scoped label."""
    label: str

    def n3(self) -> str:
        return f"_:{self.label}"

    def __str__(self) -> str:
        return f"_:{self.label}"


@dataclass(frozen=True)
class Literal:
    """A literal with an optional datatype or language tag."""
    lexical: str
    datatype: Optional[str] = None
    language: Optional[str] = None

    def n3(self) -> str:
        text = f'"{_escape_literal(self.lexical)}"'
        if self.language:
            return f"{text}@{self.language}"
        if self.datatype and self.datatype != XSD.STRING:
            return f"{text}^^<{self.datatype}>"
        return text

    def __str__(self) -> str:
        return self.lexical


Term = Union[IRI, BlankNode, Literal]
Subject = Union[IRI, BlankNode]


def term_sort_key(term: Term) -> str:
    """Stable ordering key shared by every emission point."""
    return term.n3()


def is_resource(term: Term) -> bool:
    return isinstance(term, (IRI, BlankNode))


@dataclass(frozen=True)
class Triple:
    """A single (subject, predicate, object) statement."""
    subject: Subject
    predicate: IRI
    object: Term

    def n3(self) -> str:
        return f"{self.subject.n3()} {self.predicate.n3()} {self.object.n3()} ."

    def sort_key(self) -> tuple:
        return (self.subject.n3(), self.predicate.n3(), self.object.n3())


@dataclass(frozen=True)
class TriplePattern:
    """Index probe over a storage backend. ``None`` matches anything."""
    subject: Optional[Subject] = None
    predicate: Optional[IRI] = None
    object: Optional[Term] = None

    def matches(self, triple: Triple) -> bool:
        return (
            (self.subject is None or self.subject == triple.subject)
            and (self.predicate is None or self.predicate == triple.predicate)
            and (self.object is None or self.object == triple.object)
        )


RDF_TYPE = IRI(RDF.TYPE)
