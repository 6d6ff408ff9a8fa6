"""Parser for the bounded graph-query language.

Supported form:

    PREFIX cnv: <https://cnv.dev/ontology#>
    SELECT DISTINCT ?noun ?verb
    WHERE {
        ?cmd a cnv:Command ;
             cnv:hasNoun ?n ;
             cnv:hasVerb ?v .
        ?n cnv:name ?noun .
        ?v cnv:name ?verb .
        OPTIONAL { ?cmd cnv:help ?help }
        FILTER (regex(?verb, "^cre", "i") && ?noun != "order")
    }
    ORDER BY DESC(?noun) LIMIT 10 OFFSET 0

Variables referenced by SELECT, FILTER or ORDER BY must appear in at
least one triple pattern.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import urljoin

from ontocli.domain.errors import QuerySyntaxError, UnknownVariableError
from ontocli.domain.rdf_terms import IRI, Literal, RDF_TYPE, Term
from ontocli.domain.vocabulary import XSD

# ========================================
# Query model
# ========================================


@dataclass(frozen=True)
class Variable:
    name: str

    def __str__(self) -> str:
        return f"?{self.name}"


PatternTerm = Union[Variable, Term]


@dataclass(frozen=True)
class QueryPattern:
    """Triple pattern whose positions may be variables."""
    subject: PatternTerm
    predicate: PatternTerm
    object: PatternTerm

    def variables(self) -> List[str]:
        return [t.name for t in (self.subject, self.predicate, self.object) if isinstance(t, Variable)]


@dataclass(frozen=True)
class VariableExpression:
    name: str


@dataclass(frozen=True)
class ConstantExpression:
    value: Term


@dataclass(frozen=True)
class UnaryExpression:
    operator: str
    operand: "Expression"


@dataclass(frozen=True)
class BinaryExpression:
    operator: str
    left: "Expression"
    right: "Expression"


@dataclass(frozen=True)
class FunctionCall:
    name: str
    arguments: Tuple["Expression", ...]


Expression = Union[
    VariableExpression, ConstantExpression, UnaryExpression, BinaryExpression, FunctionCall
]


@dataclass(frozen=True)
class OptionalGroup:
    """Left-joined group; its filters act as the join condition."""
    patterns: Tuple[QueryPattern, ...]
    filters: Tuple[Expression, ...] = ()


@dataclass(frozen=True)
class OrderCondition:
    variable: str
    descending: bool = False


@dataclass(frozen=True)
class SelectQuery:
    projection: Tuple[str, ...]
    distinct: bool
    patterns: Tuple[QueryPattern, ...]
    optionals: Tuple[OptionalGroup, ...] = ()
    filters: Tuple[Expression, ...] = ()
    order_by: Tuple[OrderCondition, ...] = ()
    limit: Optional[int] = None
    offset: int = 0
    prefixes: Mapping[str, str] = field(default_factory=dict)


FUNCTION_ARITY = {
    "regex": (2, 3),
    "contains": (2, 2),
    "strstarts": (2, 2),
    "strends": (2, 2),
    "lcase": (1, 1),
    "ucase": (1, 1),
    "str": (1, 1),
    "bound": (1, 1),
}

REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}


def expression_variables(expression: Expression) -> List[str]:
    """Variables referenced by ``expression``, in reading order."""
    if isinstance(expression, VariableExpression):
        return [expression.name]
    if isinstance(expression, UnaryExpression):
        return expression_variables(expression.operand)
    if isinstance(expression, BinaryExpression):
        return expression_variables(expression.left) + expression_variables(expression.right)
    if isinstance(expression, FunctionCall):
        found: List[str] = []
        for argument in expression.arguments:
            found.extend(expression_variables(argument))
        return found
    return []


# ========================================
# Lexer
# ========================================

_TOKEN_SPEC = [
    ("WS", r"\s+"),
    ("COMMENT", r"#[^\n]*"),
    ("VAR", r"[?$][A-Za-z_][\w]*"),
    ("IRI", r"<[^<>\"{}|^`\\\s?$=][^<>\"{}|^`\\\s]*>|<>"),
    ("STRING", r'"""(?:[^"\\]|\\.|"(?!""))*"""|\'\'\'(?:[^\'\\]|\\.|\'(?!\'\'))*\'\'\'|"(?:[^"\\\n]|\\.)*"|\'(?:[^\'\\\n]|\\.)*\''),
    ("LANGTAG", r"@[A-Za-z]+(?:-[A-Za-z0-9]+)*"),
    ("NUMBER", r"[+-]?(?:\d+\.\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?|\d+(?:[eE][+-]?\d+)?)"),
    ("PNAME", r"(?:[A-Za-z][\w\-.]*)?:(?:[\w\-]|\.(?=[\w\-]))*"),
    ("BNODE", r"_:\w+"),
    ("OP", r"\^\^|&&|\|\||!=|<=|>=|[=<>!]"),
    ("WORD", r"[A-Za-z_][\w]*"),
    ("PUNCT", r"[{}().;,*]"),
]
_TOKEN_RE = re.compile("|".join(f"(?P<{name}>{pattern})" for name, pattern in _TOKEN_SPEC))
_ESCAPE_RE = re.compile(r"\\(u[0-9A-Fa-f]{4}|U[0-9A-Fa-f]{8}|.)")
_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "b": "\b", "f": "\f", '"': '"', "'": "'", "\\": "\\"}


@dataclass(frozen=True)
class QueryToken:
    kind: str
    value: str
    position: int

    @property
    def upper(self) -> str:
        return self.value.upper()


def _unescape(body: str, position: int) -> str:
    def replace(match):
        code = match.group(1)
        if code[0] in "uU" and len(code) > 1:
            return chr(int(code[1:], 16))
        if code in _ESCAPES:
            return _ESCAPES[code]
        raise QuerySyntaxError(f"invalid escape sequence '\\{code}'", position)

    return _ESCAPE_RE.sub(replace, body)


def tokenize(text: str) -> List[QueryToken]:
    tokens: List[QueryToken] = []
    position = 0
    while position < len(text):
        match = _TOKEN_RE.match(text, position)
        if not match:
            raise QuerySyntaxError(f"unexpected character {text[position]!r}", position, text[position])
        kind = match.lastgroup
        if kind not in ("WS", "COMMENT"):
            tokens.append(QueryToken(kind, match.group(0), position))
        position = match.end()
    tokens.append(QueryToken("EOF", "", len(text)))
    return tokens


# ========================================
# Parser
# ========================================

class QueryParser:
    """Recursive-descent parser producing a SelectQuery.

    ``namespaces`` are the prefixes visible to every query (normally the
    ontology's own); PREFIX declarations in the query extend them.
    """

    def __init__(self, namespaces: Optional[Mapping[str, str]] = None, base_iri: Optional[str] = None):
        self.namespaces = dict(namespaces or {})
        self.base_iri = base_iri

    def parse(self, text: str) -> SelectQuery:
        return _QueryParserRun(tokenize(text), dict(self.namespaces), self.base_iri).parse()


class _QueryParserRun:
    def __init__(self, tokens: Sequence[QueryToken], prefixes: Dict[str, str], base_iri: Optional[str]):
        self.tokens = tokens
        self.index = 0
        self.prefixes = prefixes
        self.declared: Dict[str, str] = {}
        self.base_iri = base_iri

    # --- token helpers ---

    def peek(self) -> QueryToken:
        return self.tokens[self.index]

    def advance(self) -> QueryToken:
        token = self.tokens[self.index]
        if token.kind != "EOF":
            self.index += 1
        return token

    def at(self, kind: str, value: Optional[str] = None) -> bool:
        token = self.peek()
        if token.kind != kind:
            return False
        return value is None or token.value == value

    def at_keyword(self, keyword: str) -> bool:
        token = self.peek()
        return token.kind == "WORD" and token.upper == keyword

    def expect(self, kind: str, value: Optional[str] = None, context: str = "") -> QueryToken:
        if not self.at(kind, value):
            raise self.unexpected(f"expected {value or kind.lower()}{context}")
        return self.advance()

    def expect_keyword(self, keyword: str) -> QueryToken:
        if not self.at_keyword(keyword):
            raise self.unexpected(f"expected {keyword}")
        return self.advance()

    def unexpected(self, message: str) -> QuerySyntaxError:
        token = self.peek()
        found = "end of query" if token.kind == "EOF" else repr(token.value)
        return QuerySyntaxError(f"{message}, found {found}", token.position, token.value or None)

    # --- query ---

    def parse(self) -> SelectQuery:
        self.prologue()
        self.expect_keyword("SELECT")
        distinct = False
        if self.at_keyword("DISTINCT"):
            self.advance()
            distinct = True

        select_all = False
        selected: List[Tuple[str, int]] = []
        if self.at("PUNCT", "*"):
            self.advance()
            select_all = True
        else:
            while self.at("VAR"):
                token = self.advance()
                selected.append((token.value[1:], token.position))
            if not selected:
                raise self.unexpected("expected '*' or at least one variable after SELECT")

        if self.at_keyword("WHERE"):
            self.advance()
        patterns, optionals, filters = self.group(allow_optional=True)

        order_by = self.order_clause()
        limit, offset = self.slice_clause()
        if not self.at("EOF"):
            raise self.unexpected("unexpected trailing input")

        pattern_vars = self.pattern_variables(patterns, optionals)
        if select_all:
            projection = tuple(pattern_vars)
        else:
            projection = tuple(dict.fromkeys(name for name, _ in selected))
            self.check_known(projection, pattern_vars, "SELECT")
        for expression in filters:
            self.check_known(expression_variables(expression), pattern_vars, "FILTER")
        for group in optionals:
            for expression in group.filters:
                self.check_known(expression_variables(expression), pattern_vars, "FILTER")
        self.check_known([c.variable for c in order_by], pattern_vars, "ORDER BY")

        return SelectQuery(
            projection=projection,
            distinct=distinct,
            patterns=tuple(patterns),
            optionals=tuple(optionals),
            filters=tuple(filters),
            order_by=tuple(order_by),
            limit=limit,
            offset=offset,
            prefixes=dict(self.declared),
        )

    def prologue(self) -> None:
        while True:
            if self.at_keyword("PREFIX"):
                self.advance()
                token = self.expect("PNAME", context=" after PREFIX")
                prefix, _, local = token.value.partition(":")
                if local:
                    raise QuerySyntaxError("prefix name must end with ':'", token.position, token.value)
                iri = self.resolve(self.expect("IRI", context=" in PREFIX declaration"))
                self.prefixes[prefix] = iri
                self.declared[prefix] = iri
            elif self.at_keyword("BASE"):
                self.advance()
                self.base_iri = self.resolve(self.expect("IRI", context=" after BASE"))
            else:
                return

    @staticmethod
    def pattern_variables(
        patterns: Sequence[QueryPattern], optionals: Sequence[OptionalGroup]
    ) -> List[str]:
        names: Dict[str, None] = {}
        for pattern in patterns:
            for name in pattern.variables():
                names.setdefault(name, None)
        for group in optionals:
            for pattern in group.patterns:
                for name in pattern.variables():
                    names.setdefault(name, None)
        return list(names)

    @staticmethod
    def check_known(names: Sequence[str], known: Sequence[str], clause: str) -> None:
        for name in names:
            if name not in known:
                raise UnknownVariableError(name, clause)

    # --- WHERE group ---

    def group(self, allow_optional: bool):
        self.expect("PUNCT", "{", " to open group")
        patterns: List[QueryPattern] = []
        optionals: List[OptionalGroup] = []
        filters: List[Expression] = []
        while not self.at("PUNCT", "}"):
            if self.at("EOF"):
                raise self.unexpected("expected '}' to close group")
            if self.at_keyword("OPTIONAL"):
                if not allow_optional:
                    raise self.unexpected("nested OPTIONAL is not supported")
                self.advance()
                inner, _, inner_filters = self.group(allow_optional=False)
                if not inner:
                    raise self.unexpected("OPTIONAL group needs at least one triple pattern")
                optionals.append(OptionalGroup(tuple(inner), tuple(inner_filters)))
            elif self.at_keyword("FILTER"):
                self.advance()
                filters.append(self.filter_constraint())
            else:
                self.triples_block(patterns)
                if self.at("PUNCT", "."):
                    self.advance()
                    continue
                if not self.at("PUNCT", "}") and not self.at_keyword("OPTIONAL") and not self.at_keyword("FILTER"):
                    raise self.unexpected("expected '.' or '}' after triple pattern")
            if self.at("PUNCT", "."):
                self.advance()
        self.advance()
        return patterns, optionals, filters

    def triples_block(self, patterns: List[QueryPattern]) -> None:
        subject = self.pattern_term("subject")
        if isinstance(subject, Literal):
            raise QuerySyntaxError("a literal cannot be a subject", self.tokens[self.index - 1].position)
        while True:
            predicate = self.verb()
            while True:
                patterns.append(QueryPattern(subject, predicate, self.pattern_term("object")))
                if not self.at("PUNCT", ","):
                    break
                self.advance()
            if not self.at("PUNCT", ";"):
                return
            while self.at("PUNCT", ";"):
                self.advance()
            if self.at("PUNCT", ".") or self.at("PUNCT", "}"):
                return

    def verb(self) -> PatternTerm:
        if self.at("WORD", "a"):
            self.advance()
            return RDF_TYPE
        term = self.pattern_term("predicate")
        if isinstance(term, Literal):
            raise QuerySyntaxError("a literal cannot be a predicate", self.tokens[self.index - 1].position)
        return term

    def pattern_term(self, role: str) -> PatternTerm:
        token = self.peek()
        if token.kind == "VAR":
            self.advance()
            return Variable(token.value[1:])
        if token.kind == "BNODE":
            raise QuerySyntaxError(
                "blank nodes are not supported in query patterns; use a variable",
                token.position,
                token.value,
            )
        term = self.constant(allow_iri=True)
        if term is None:
            raise self.unexpected(f"expected {role}")
        return term

    def constant(self, allow_iri: bool) -> Optional[Term]:
        token = self.peek()
        if token.kind in ("IRI", "PNAME") and allow_iri:
            return self.iri()
        if token.kind == "STRING":
            self.advance()
            lexical = _unescape(_strip_quotes(token.value), token.position)
            if self.at("LANGTAG"):
                return Literal(lexical, language=self.advance().value[1:].lower())
            if self.at("OP", "^^"):
                self.advance()
                datatype = self.iri().value
                return Literal(lexical, None if datatype == XSD.STRING else datatype)
            return Literal(lexical)
        if token.kind == "NUMBER":
            self.advance()
            value = token.value
            if "e" in value.lower():
                return Literal(value, XSD.DOUBLE)
            if "." in value:
                return Literal(value, XSD.DECIMAL)
            return Literal(value, XSD.INTEGER)
        if token.kind == "WORD" and token.value in ("true", "false"):
            self.advance()
            return Literal(token.value, XSD.BOOLEAN)
        return None

    def iri(self) -> IRI:
        if not (self.at("IRI") or self.at("PNAME")):
            raise self.unexpected("expected IRI or prefixed name")
        token = self.advance()
        if token.kind == "IRI":
            return IRI(self.resolve(token))
        if token.kind == "PNAME":
            prefix, _, local = token.value.partition(":")
            namespace = self.prefixes.get(prefix)
            if namespace is None:
                raise QuerySyntaxError(f"undeclared prefix '{prefix}:'", token.position, token.value)
            return IRI(namespace + local)

    def resolve(self, token: QueryToken) -> str:
        raw = token.value[1:-1]
        if re.match(r"[A-Za-z][A-Za-z0-9+.\-]*:", raw):
            return raw
        if self.base_iri is None:
            raise QuerySyntaxError(f"relative IRI <{raw}> with no BASE", token.position, token.value)
        return urljoin(self.base_iri, raw)

    # --- FILTER expressions ---

    def filter_constraint(self) -> Expression:
        if self.at("PUNCT", "("):
            self.advance()
            expression = self.expression()
            self.expect("PUNCT", ")", " to close FILTER")
            return expression
        if self.at("WORD") and self.peek().value.lower() in FUNCTION_ARITY:
            return self.function_call()
        raise self.unexpected("expected '(' or a function call after FILTER")

    def expression(self) -> Expression:
        left = self.conjunction()
        while self.at("OP", "||"):
            self.advance()
            left = BinaryExpression("||", left, self.conjunction())
        return left

    def conjunction(self) -> Expression:
        left = self.relational()
        while self.at("OP", "&&"):
            self.advance()
            left = BinaryExpression("&&", left, self.relational())
        return left

    def relational(self) -> Expression:
        left = self.unary()
        token = self.peek()
        if token.kind == "OP" and token.value in ("=", "!=", "<", ">", "<=", ">="):
            self.advance()
            return BinaryExpression(token.value, left, self.unary())
        return left

    def unary(self) -> Expression:
        if self.at("OP", "!"):
            self.advance()
            return UnaryExpression("!", self.unary())
        return self.primary()

    def primary(self) -> Expression:
        token = self.peek()
        if self.at("PUNCT", "("):
            self.advance()
            expression = self.expression()
            self.expect("PUNCT", ")", " to close parenthesis")
            return expression
        if token.kind == "VAR":
            self.advance()
            return VariableExpression(token.value[1:])
        if token.kind == "WORD" and token.value.lower() in FUNCTION_ARITY:
            return self.function_call()
        constant = self.constant(allow_iri=True)
        if constant is None:
            raise self.unexpected("expected expression")
        return ConstantExpression(constant)

    def function_call(self) -> FunctionCall:
        token = self.advance()
        name = token.value.lower()
        self.expect("PUNCT", "(", f" after {name}")
        arguments: List[Expression] = []
        if not self.at("PUNCT", ")"):
            arguments.append(self.expression())
            while self.at("PUNCT", ","):
                self.advance()
                arguments.append(self.expression())
        self.expect("PUNCT", ")", f" to close {name}(...)")

        low, high = FUNCTION_ARITY[name]
        if not low <= len(arguments) <= high:
            raise QuerySyntaxError(
                f"{name}() takes {low}{'' if low == high else f' to {high}'} argument(s), "
                f"got {len(arguments)}",
                token.position,
                token.value,
            )
        if name == "bound" and not isinstance(arguments[0], VariableExpression):
            raise QuerySyntaxError("bound() takes a variable", token.position, token.value)
        if name == "regex":
            self.check_regex(arguments, token)
        return FunctionCall(name, tuple(arguments))

    @staticmethod
    def check_regex(arguments: Sequence[Expression], token: QueryToken) -> None:
        pattern = arguments[1]
        flags = arguments[2] if len(arguments) > 2 else None
        if isinstance(flags, ConstantExpression):
            unknown = set(str(flags.value)) - set(REGEX_FLAGS)
            if unknown:
                raise QuerySyntaxError(
                    f"unsupported regex flag(s) {''.join(sorted(unknown))!r}", token.position, token.value
                )
        if isinstance(pattern, ConstantExpression):
            try:
                re.compile(str(pattern.value))
            except re.error as e:
                raise QuerySyntaxError(f"invalid regular expression: {e}", token.position, token.value)

    # --- solution modifiers ---

    def order_clause(self) -> List[OrderCondition]:
        if not self.at_keyword("ORDER"):
            return []
        self.advance()
        self.expect_keyword("BY")
        conditions: List[OrderCondition] = []
        while True:
            if self.at_keyword("ASC") or self.at_keyword("DESC"):
                descending = self.advance().upper == "DESC"
                self.expect("PUNCT", "(", " after ASC/DESC")
                variable = self.expect("VAR", context=" in ORDER BY")
                self.expect("PUNCT", ")", " to close ORDER BY condition")
                conditions.append(OrderCondition(variable.value[1:], descending))
            elif self.at("VAR"):
                conditions.append(OrderCondition(self.advance().value[1:]))
            else:
                break
        if not conditions:
            raise self.unexpected("expected at least one ORDER BY condition")
        return conditions

    def slice_clause(self) -> Tuple[Optional[int], int]:
        limit: Optional[int] = None
        offset = 0
        while self.at_keyword("LIMIT") or self.at_keyword("OFFSET"):
            keyword = self.advance().upper
            token = self.expect("NUMBER", context=f" after {keyword}")
            if not token.value.isdigit():
                raise QuerySyntaxError(
                    f"{keyword} takes a non-negative integer", token.position, token.value
                )
            if keyword == "LIMIT":
                limit = int(token.value)
            else:
                offset = int(token.value)
        return limit, offset


def _strip_quotes(raw: str) -> str:
    if raw[:3] in ('"""', "'''"):
        return raw[3:-3]
    return raw[1:-1]
