"""Turtle document parser.

Turns Turtle (and therefore N-Triples) source text into triples while
populating the document's own namespace registry. Every failure carries
the 1-based line and column of the offending token.

Usage:
    parser = TurtleParser(namespace_capacity=32)
    document = parser.parse(text)
    document.triples      # tuple of Triple, document order, de-duplicated
    document.namespaces   # NamespaceRegistry (frozen)
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Tuple
from urllib.parse import urljoin

from ontocli.domain.errors import (
    DuplicateDefinitionError,
    InvalidIriError,
    TurtleSyntaxError,
    UndefinedPrefixError,
)
from ontocli.domain.namespaces import DEFAULT_NAMESPACE_CAPACITY, NamespaceRegistry
from ontocli.domain.rdf_terms import BlankNode, IRI, Literal, RDF_TYPE, Subject, Term, Triple
from ontocli.domain.vocabulary import FUNCTIONAL_PREDICATES, RDF, XSD

logger = logging.getLogger(__name__)


# ========================================
# Lexer
# ========================================

_PNAME_RE = re.compile(r"((?:[^\W\d_][\w\-.]*)?):((?:[\w\-:%]|\.(?=[\w\-:%]))*)")
_WORD_RE = re.compile(r"[A-Za-z][A-Za-z0-9_\-]*")
_BNODE_RE = re.compile(r"_:([\w](?:[\w\-.]*[\w\-])?)")
_LANGTAG_RE = re.compile(r"@([A-Za-z]+(?:-[A-Za-z0-9]+)*)")
_DOUBLE_RE = re.compile(r"[+-]?(?:\d+\.\d*[eE][+-]?\d+|\.\d+[eE][+-]?\d+|\d+[eE][+-]?\d+)")
_DECIMAL_RE = re.compile(r"[+-]?\d*\.\d+")
_INTEGER_RE = re.compile(r"[+-]?\d+")
_SCHEME_RE = re.compile(r"[A-Za-z][A-Za-z0-9+.\-]*:")

_PUNCTUATION = ".;,[]()"
_STRING_ESCAPES = {
    "t": "\t", "b": "\b", "n": "\n", "r": "\r", "f": "\f",
    '"': '"', "'": "'", "\\": "\\",
}
_ILLEGAL_IRI_CHARS = frozenset(' <>"{}|^`\\')


@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    line: int
    column: int
    local: str = ""


class _Lexer:
    """Splits a document into tokens, tracking line and column."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.index = 0
        self.line = 1
        self.line_start = 0

    def _column(self, index: int) -> int:
        return index - self.line_start + 1

    def _error(self, message: str, index: int) -> TurtleSyntaxError:
        return TurtleSyntaxError(message, self.line, self._column(index))

    def _consume(self, end: int) -> None:
        """Advance to ``end``, keeping line bookkeeping for embedded newlines."""
        segment = self.text[self.index:end]
        newlines = segment.count("\n")
        if newlines:
            self.line += newlines
            self.line_start = self.index + segment.rindex("\n") + 1
        self.index = end

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        text = self.text
        while True:
            self._skip_whitespace_and_comments()
            if self.index >= len(text):
                tokens.append(Token("EOF", "", self.line, self._column(self.index)))
                return tokens

            start = self.index
            line, column = self.line, self._column(start)
            ch = text[start]

            if ch == "<":
                end = start + 1
                while end < len(text) and text[end] not in ">\n":
                    end += 1
                if end >= len(text) or text[end] != ">":
                    raise self._error("unterminated IRI reference", start)
                tokens.append(Token("IRI", text[start + 1:end], line, column))
                self._consume(end + 1)
            elif ch in "\"'":
                value, end = self._read_string(start)
                tokens.append(Token("STRING", value, line, column))
                self._consume(end)
            elif ch == "@":
                match = _LANGTAG_RE.match(text, start)
                if not match:
                    raise self._error("expected language tag or directive after '@'", start)
                word = match.group(1)
                kind = "DIRECTIVE" if word in ("prefix", "base") else "LANGTAG"
                tokens.append(Token(kind, word, line, column))
                self._consume(match.end())
            elif ch == "_" and text.startswith("_:", start):
                match = _BNODE_RE.match(text, start)
                if not match:
                    raise self._error("malformed blank node label", start)
                tokens.append(Token("BNODE", match.group(1), line, column))
                self._consume(match.end())
            elif ch == "^":
                if not text.startswith("^^", start):
                    raise self._error("expected '^^' before datatype", start)
                tokens.append(Token("PUNCT", "^^", line, column))
                self._consume(start + 2)
            elif ch in _PUNCTUATION:
                tokens.append(Token("PUNCT", ch, line, column))
                self._consume(start + 1)
            elif ch.isdigit() or ch in "+-":
                for kind, pattern in (
                    ("DOUBLE", _DOUBLE_RE),
                    ("DECIMAL", _DECIMAL_RE),
                    ("INTEGER", _INTEGER_RE),
                ):
                    match = pattern.match(text, start)
                    if match:
                        tokens.append(Token(kind, match.group(0), line, column))
                        self._consume(match.end())
                        break
                else:
                    raise self._error(f"unexpected character {ch!r}", start)
            else:
                match = _PNAME_RE.match(text, start)
                if match:
                    tokens.append(Token("PNAME", match.group(1), line, column, match.group(2)))
                    self._consume(match.end())
                    continue
                match = _WORD_RE.match(text, start)
                if match:
                    tokens.append(Token("WORD", match.group(0), line, column))
                    self._consume(match.end())
                    continue
                raise self._error(f"unexpected character {ch!r}", start)

    def _skip_whitespace_and_comments(self) -> None:
        text = self.text
        while self.index < len(text):
            ch = text[self.index]
            if ch == "\n":
                self.index += 1
                self.line += 1
                self.line_start = self.index
            elif ch in " \t\r\ufeff":
                self.index += 1
            elif ch == "#":
                end = text.find("\n", self.index)
                self.index = len(text) if end == -1 else end
            else:
                return

    def _read_string(self, start: int) -> Tuple[str, int]:
        text = self.text
        quote = text[start]
        long_form = text.startswith(quote * 3, start)
        delimiter = quote * 3 if long_form else quote
        position = start + len(delimiter)
        chars: List[str] = []
        while True:
            if position >= len(text):
                raise self._error("unterminated string literal", start)
            if text.startswith(delimiter, position):
                return "".join(chars), position + len(delimiter)
            ch = text[position]
            if ch == "\n" and not long_form:
                raise self._error("line break inside short string literal", start)
            if ch == "\\":
                escaped, position = self._read_escape(position)
                chars.append(escaped)
                continue
            chars.append(ch)
            position += 1

    def _read_escape(self, position: int) -> Tuple[str, int]:
        text = self.text
        code = text[position + 1:position + 2]
        if code in _STRING_ESCAPES:
            return _STRING_ESCAPES[code], position + 2
        if code in ("u", "U"):
            width = 4 if code == "u" else 8
            digits = text[position + 2:position + 2 + width]
            if len(digits) == width and all(c in "0123456789abcdefABCDEF" for c in digits):
                return chr(int(digits, 16)), position + 2 + width
        raise self._error(f"invalid escape sequence '\\{code}'", position)


# ========================================
# Parser
# ========================================

@dataclass(frozen=True)
class ParsedDocument:
    """Result of parsing one document."""
    triples: Tuple[Triple, ...]
    namespaces: NamespaceRegistry
    base_iri: Optional[str]
    document_size: int

    @property
    def triple_count(self) -> int:
        return len(self.triples)


class _DocumentParser:
    """Recursive-descent parser over a token list. One instance per document."""

    def __init__(
        self,
        tokens: List[Token],
        namespaces: NamespaceRegistry,
        base_iri: Optional[str],
        functional_predicates: FrozenSet[str],
    ) -> None:
        self.tokens = tokens
        self.position = 0
        self.namespaces = namespaces
        self.base_iri = base_iri
        self.functional_predicates = functional_predicates
        self.triples: List[Triple] = []
        self._seen = set()
        self._functional_values: Dict[Tuple[Subject, IRI], Term] = {}
        self._anonymous_count = 0

    # --- token helpers ---

    def peek(self) -> Token:
        return self.tokens[self.position]

    def advance(self) -> Token:
        token = self.tokens[self.position]
        if token.kind != "EOF":
            self.position += 1
        return token

    def at_punct(self, value: str) -> bool:
        token = self.peek()
        return token.kind == "PUNCT" and token.value == value

    def expect_punct(self, value: str, context: str) -> Token:
        token = self.peek()
        if not self.at_punct(value):
            raise self.unexpected(token, f"expected '{value}' {context}")
        return self.advance()

    @staticmethod
    def unexpected(token: Token, message: str) -> TurtleSyntaxError:
        found = "end of input" if token.kind == "EOF" else repr(token.value or token.kind)
        return TurtleSyntaxError(f"{message}, found {found}", token.line, token.column)

    # --- grammar ---

    def parse(self) -> List[Triple]:
        while self.peek().kind != "EOF":
            self.statement()
        return self.triples

    def statement(self) -> None:
        token = self.peek()
        if token.kind == "DIRECTIVE":
            self.advance()
            if token.value == "prefix":
                self.prefix_declaration(token)
            else:
                self.base_declaration()
            self.expect_punct(".", "after directive")
        elif token.kind == "WORD" and token.value.lower() in ("prefix", "base"):
            self.advance()
            if token.value.lower() == "prefix":
                self.prefix_declaration(token)
            else:
                self.base_declaration()
        else:
            self.triples_statement()
            self.expect_punct(".", "at end of statement")

    def prefix_declaration(self, directive: Token) -> None:
        token = self.advance()
        if token.kind != "PNAME" or token.local:
            raise self.unexpected(token, "expected prefix name such as 'ex:'")
        iri_token = self.advance()
        if iri_token.kind != "IRI":
            raise self.unexpected(iri_token, "expected <IRI> in prefix declaration")
        namespace = self.resolve_iri(iri_token)
        self.namespaces.declare(token.value, namespace, directive.line)
        logger.debug(f"Declared prefix {token.value}: <{namespace}>")

    def base_declaration(self) -> None:
        token = self.advance()
        if token.kind != "IRI":
            raise self.unexpected(token, "expected <IRI> in base declaration")
        self.base_iri = self.resolve_iri(token)

    def triples_statement(self) -> None:
        if self.at_punct("["):
            subject = self.blank_node_property_list()
            if self.at_punct("."):
                return
        else:
            subject = self.subject()
        self.predicate_object_list(subject)

    def subject(self) -> Subject:
        token = self.peek()
        if token.kind in ("IRI", "PNAME"):
            return self.iri()
        if token.kind == "BNODE":
            self.advance()
            return self.labelled_blank_node(token.value)
        if self.at_punct("("):
            return self.collection()
        raise self.unexpected(token, "expected subject")

    def predicate_object_list(self, subject: Subject) -> None:
        self.object_list(subject, self.verb())
        while self.at_punct(";"):
            while self.at_punct(";"):
                self.advance()
            if self.at_punct(".") or self.at_punct("]") or self.peek().kind == "EOF":
                return
            self.object_list(subject, self.verb())

    def verb(self) -> IRI:
        token = self.peek()
        if token.kind == "WORD" and token.value == "a":
            self.advance()
            return RDF_TYPE
        if token.kind in ("IRI", "PNAME"):
            return self.iri()
        raise self.unexpected(token, "expected predicate")

    def object_list(self, subject: Subject, predicate: IRI) -> None:
        start = self.peek()
        self.emit(subject, predicate, self.object(), start)
        while self.at_punct(","):
            self.advance()
            start = self.peek()
            self.emit(subject, predicate, self.object(), start)

    def object(self) -> Term:
        token = self.peek()
        if token.kind in ("IRI", "PNAME"):
            return self.iri()
        if token.kind == "BNODE":
            self.advance()
            return self.labelled_blank_node(token.value)
        if self.at_punct("["):
            return self.blank_node_property_list()
        if self.at_punct("("):
            return self.collection()
        if token.kind == "STRING":
            return self.literal()
        if token.kind == "INTEGER":
            self.advance()
            return Literal(token.value, XSD.INTEGER)
        if token.kind == "DECIMAL":
            self.advance()
            return Literal(token.value, XSD.DECIMAL)
        if token.kind == "DOUBLE":
            self.advance()
            return Literal(token.value, XSD.DOUBLE)
        if token.kind == "WORD" and token.value in ("true", "false"):
            self.advance()
            return Literal(token.value, XSD.BOOLEAN)
        raise self.unexpected(token, "expected object")

    def literal(self) -> Literal:
        value = self.advance().value
        if self.peek().kind == "LANGTAG":
            return Literal(value, language=self.advance().value.lower())
        if self.at_punct("^^"):
            self.advance()
            datatype = self.iri().value
            return Literal(value, None if datatype == XSD.STRING else datatype)
        return Literal(value)

    def blank_node_property_list(self) -> BlankNode:
        self.expect_punct("[", "to open blank node")
        node = self.new_blank_node()
        if not self.at_punct("]"):
            self.predicate_object_list(node)
        self.expect_punct("]", "to close blank node property list")
        return node

    def collection(self) -> Subject:
        self.expect_punct("(", "to open collection")
        items: List[Term] = []
        while not self.at_punct(")"):
            if self.peek().kind == "EOF":
                raise self.unexpected(self.peek(), "expected ')' to close collection")
            items.append(self.object())
        closing = self.advance()
        if not items:
            return IRI(RDF.NIL)
        head = self.new_blank_node()
        node = head
        for index, item in enumerate(items):
            self.emit(node, IRI(RDF.FIRST), item, closing)
            rest: Subject = IRI(RDF.NIL) if index == len(items) - 1 else self.new_blank_node()
            self.emit(node, IRI(RDF.REST), rest, closing)
            node = rest
        return head

    # Written labels and generated nodes live in disjoint label spaces.
    @staticmethod
    def labelled_blank_node(label: str) -> BlankNode:
        return BlankNode(f"u{label}")

    def new_blank_node(self) -> BlankNode:
        self._anonymous_count += 1
        return BlankNode(f"g{self._anonymous_count}")

    # --- identifiers ---

    def iri(self) -> IRI:
        token = self.advance()
        if token.kind == "IRI":
            return IRI(self.resolve_iri(token))
        if token.kind == "PNAME":
            namespace = self.namespaces.resolve(token.value)
            if namespace is None:
                raise UndefinedPrefixError(token.value, token.line, token.column)
            return IRI(namespace + token.local)
        raise self.unexpected(token, "expected IRI or prefixed name")

    def resolve_iri(self, token: Token) -> str:
        raw = token.value
        bad = next((c for c in raw if c in _ILLEGAL_IRI_CHARS or ord(c) < 0x20), None)
        if bad is not None:
            raise InvalidIriError(raw, f"illegal character {bad!r}", token.line)
        if _SCHEME_RE.match(raw):
            return raw
        if self.base_iri is None:
            raise InvalidIriError(raw, "relative IRI used with no base declared", token.line)
        return urljoin(self.base_iri, raw)

    # --- output ---

    def emit(self, subject: Subject, predicate: IRI, obj: Term, token: Token) -> None:
        if predicate.value in self.functional_predicates:
            key = (subject, predicate)
            existing = self._functional_values.get(key)
            if existing is not None and existing != obj:
                raise DuplicateDefinitionError(
                    str(subject), predicate.value, existing.n3(), obj.n3(), token.line
                )
            self._functional_values[key] = obj
        triple = Triple(subject, predicate, obj)
        if triple in self._seen:
            return
        self._seen.add(triple)
        self.triples.append(triple)


class TurtleParser:
    """Parses Turtle text into a ParsedDocument.

    The parser itself is stateless between calls: each ``parse`` builds a
    fresh namespace registry, so concurrent parses never share prefixes.
    """

    def __init__(
        self,
        namespace_capacity: int = DEFAULT_NAMESPACE_CAPACITY,
        base_iri: Optional[str] = None,
        functional_predicates: FrozenSet[str] = FUNCTIONAL_PREDICATES,
    ) -> None:
        self.namespace_capacity = namespace_capacity
        self.base_iri = base_iri
        self.functional_predicates = functional_predicates

    def parse(self, text: str) -> ParsedDocument:
        """Parse ``text``.

        Raises:
            TurtleSyntaxError: grammar violation (with line and column)
            UndefinedPrefixError: prefix used before declaration
            InvalidIriError: malformed or unresolvable IRI
            DuplicateDefinitionError: conflicting functional property values
            NamespaceCapacityError: too many prefix declarations
        """
        namespaces = NamespaceRegistry(self.namespace_capacity)
        tokens = _Lexer(text).tokenize()
        parser = _DocumentParser(tokens, namespaces, self.base_iri, self.functional_predicates)
        triples = parser.parse()
        logger.info(
            f"Parsed {len(triples)} triples with {len(namespaces)} namespace(s) "
            f"from {len(text)} characters"
        )
        return ParsedDocument(
            triples=tuple(triples),
            namespaces=namespaces.freeze(),
            base_iri=parser.base_iri,
            document_size=len(text),
        )
