"""Graph-query execution over an ontology's storage backend.

Each triple pattern becomes one index probe with the variables bound so
far substituted in; bindings are extended pattern by pattern in the
order the patterns were written. OPTIONAL groups are left-joined after
the required patterns, FILTERs run as a final pass, then ordering,
projection, DISTINCT and slicing.
"""

import logging
import re
import time
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from ontocli.domain.errors import QueryTimeoutError
from ontocli.domain.rdf_terms import BlankNode, IRI, Literal, Term, TriplePattern, term_sort_key
from ontocli.domain.vocabulary import XSD
from ontocli.application.services.query_parser import (
    REGEX_FLAGS,
    BinaryExpression,
    ConstantExpression,
    Expression,
    FunctionCall,
    OptionalGroup,
    QueryParser,
    QueryPattern,
    SelectQuery,
    UnaryExpression,
    Variable,
    VariableExpression,
)

logger = logging.getLogger(__name__)

DEFAULT_QUERY_TIMEOUT = 30.0

Binding = Dict[str, Term]
Clock = Callable[[], float]

_NUMERIC_TYPES = (XSD.INTEGER, XSD.DECIMAL, XSD.DOUBLE)


@dataclass(frozen=True)
class QueryResults:
    """Ordered variable-binding rows of one query execution.

    Re-run the query to iterate again from a fresh state; the rows hold
    no reference back to the store.
    """

    variables: Tuple[str, ...]
    rows: Tuple[Mapping[str, Term], ...]
    elapsed_seconds: float = 0.0

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[Mapping[str, Term]]:
        return iter(self.rows)

    def column(self, variable: str) -> List[Optional[Term]]:
        return [row.get(variable) for row in self.rows]

    def as_tuples(self) -> List[Tuple[Optional[str], ...]]:
        """Rows as tuples of plain strings in projection order (None when unbound)."""
        return [
            tuple(None if row.get(v) is None else str(row[v]) for v in self.variables)
            for row in self.rows
        ]


class _Deadline:
    def __init__(self, timeout_seconds: Optional[float], clock: Clock):
        self.timeout_seconds = timeout_seconds
        self.clock = clock
        self.started = clock()

    def elapsed(self) -> float:
        return self.clock() - self.started

    def check(self) -> None:
        if self.timeout_seconds is None:
            return
        elapsed = self.elapsed()
        if elapsed > self.timeout_seconds:
            raise QueryTimeoutError(self.timeout_seconds, elapsed)


class _EvaluationError(Exception):
    """A FILTER expression has no value for a row; the row is dropped."""


class QueryExecutor:
    """Evaluates SELECT queries against a validated or unvalidated ontology."""

    def __init__(
        self,
        timeout_seconds: Optional[float] = DEFAULT_QUERY_TIMEOUT,
        clock: Clock = time.monotonic,
    ):
        self.timeout_seconds = timeout_seconds
        self.clock = clock

    def execute(self, ontology, query_text: str) -> QueryResults:
        """Parse and run ``query_text``.

        Raises:
            QuerySyntaxError: malformed query text
            UnknownVariableError: SELECT/FILTER/ORDER BY variable bound by no pattern
            QueryTimeoutError: execution exceeded ``timeout_seconds``
        """
        deadline = _Deadline(self.timeout_seconds, self.clock)
        parsed = QueryParser(ontology.namespaces, getattr(ontology, "base_iri", None)).parse(query_text)
        results = self.run(ontology.backend, parsed, deadline)
        logger.info(
            f"Query returned {len(results)} row(s) over {len(parsed.patterns)} pattern(s) "
            f"in {results.elapsed_seconds:.4f}s"
        )
        return results

    def run(self, backend, parsed: SelectQuery, deadline: Optional[_Deadline] = None) -> QueryResults:
        deadline = deadline or _Deadline(self.timeout_seconds, self.clock)

        bindings: List[Binding] = [{}]
        for pattern in parsed.patterns:
            bindings = self._join(backend, bindings, pattern, deadline)
            logger.debug(f"{len(bindings)} binding(s) after pattern {pattern}")
            if not bindings:
                break

        for group in parsed.optionals:
            bindings = self._left_join(backend, bindings, group, deadline)

        for expression in parsed.filters:
            kept = []
            for binding in bindings:
                deadline.check()
                if _passes(expression, binding):
                    kept.append(binding)
            bindings = kept

        for condition in reversed(parsed.order_by):
            bindings.sort(
                key=lambda b, v=condition.variable: _order_key(b.get(v)),
                reverse=condition.descending,
            )

        rows = [{v: b[v] for v in parsed.projection if v in b} for b in bindings]
        if parsed.distinct:
            seen = set()
            unique = []
            for row in rows:
                key = tuple(row.get(v) for v in parsed.projection)
                if key not in seen:
                    seen.add(key)
                    unique.append(row)
            rows = unique

        end = None if parsed.limit is None else parsed.offset + parsed.limit
        rows = rows[parsed.offset:end]
        deadline.check()
        return QueryResults(
            variables=parsed.projection,
            rows=tuple(MappingProxyType(row) for row in rows),
            elapsed_seconds=deadline.elapsed(),
        )

    def _join(
        self, backend, bindings: List[Binding], pattern: QueryPattern, deadline: _Deadline
    ) -> List[Binding]:
        extended: List[Binding] = []
        for binding in bindings:
            deadline.check()
            probe = TriplePattern(
                _substitute(pattern.subject, binding),
                _substitute(pattern.predicate, binding),
                _substitute(pattern.object, binding),
            )
            for triple in backend.query(probe):
                deadline.check()
                candidate = _extend(binding, pattern, (triple.subject, triple.predicate, triple.object))
                if candidate is not None:
                    extended.append(candidate)
        return extended

    def _left_join(
        self, backend, bindings: List[Binding], group: OptionalGroup, deadline: _Deadline
    ) -> List[Binding]:
        joined: List[Binding] = []
        for binding in bindings:
            matches = [binding]
            for pattern in group.patterns:
                matches = self._join(backend, matches, pattern, deadline)
                if not matches:
                    break
            matches = [m for m in matches if all(_passes(f, m) for f in group.filters)]
            joined.extend(matches or [binding])
        return joined


def query(ontology, query_text: str, timeout_seconds: Optional[float] = None) -> QueryResults:
    """Run ``query_text`` with the configured time budget unless one is given."""
    if timeout_seconds is None:
        from ontocli.config import get_pipeline_config

        timeout_seconds = get_pipeline_config().query.timeout_seconds
    return QueryExecutor(timeout_seconds=timeout_seconds).execute(ontology, query_text)


# ========================================
# Binding helpers
# ========================================

def _substitute(term, binding: Binding) -> Optional[Term]:
    if isinstance(term, Variable):
        return binding.get(term.name)
    return term


def _extend(binding: Binding, pattern: QueryPattern, values: Sequence[Term]) -> Optional[Binding]:
    result = dict(binding)
    for slot, value in zip((pattern.subject, pattern.predicate, pattern.object), values):
        if not isinstance(slot, Variable):
            continue
        current = result.get(slot.name)
        if current is None:
            result[slot.name] = value
        elif current != value:
            # Same variable twice in one pattern bound to different terms.
            return None
    return result


def _order_key(term: Optional[Term]) -> tuple:
    """Unbound < blank nodes < IRIs < literals; numbers compare numerically."""
    if term is None:
        return (0,)
    if isinstance(term, BlankNode):
        return (1, term.label)
    if isinstance(term, IRI):
        return (2, term.value)
    if term.datatype in _NUMERIC_TYPES:
        try:
            return (3, float(term.lexical), term.lexical)
        except ValueError:
            pass
    return (4, term.lexical, term_sort_key(term))


# ========================================
# FILTER evaluation
# ========================================

Value = Union[Term, bool, None]


def _passes(expression: Expression, binding: Binding) -> bool:
    try:
        return _effective_boolean(_evaluate(expression, binding))
    except _EvaluationError:
        return False


def _evaluate(expression: Expression, binding: Binding) -> Value:
    if isinstance(expression, VariableExpression):
        value = binding.get(expression.name)
        if value is None:
            raise _EvaluationError(f"?{expression.name} is unbound")
        return value
    if isinstance(expression, ConstantExpression):
        return expression.value
    if isinstance(expression, UnaryExpression):
        return not _effective_boolean(_evaluate(expression.operand, binding))
    if isinstance(expression, BinaryExpression):
        return _evaluate_binary(expression, binding)
    if isinstance(expression, FunctionCall):
        return _call(expression, binding)
    raise TypeError(f"Unsupported expression node: {type(expression).__name__}")


def _evaluate_binary(expression: BinaryExpression, binding: Binding) -> bool:
    operator = expression.operator
    if operator == "||":
        try:
            left_value = _effective_boolean(_evaluate(expression.left, binding))
        except _EvaluationError:
            # An error on one side is absorbed when the other side is true.
            if _effective_boolean(_evaluate(expression.right, binding)):
                return True
            raise
        return left_value or _effective_boolean(_evaluate(expression.right, binding))
    if operator == "&&":
        return (
            _effective_boolean(_evaluate(expression.left, binding))
            and _effective_boolean(_evaluate(expression.right, binding))
        )

    left = _evaluate(expression.left, binding)
    right = _evaluate(expression.right, binding)
    if operator == "=":
        return _equals(left, right)
    if operator == "!=":
        return not _equals(left, right)

    a, b = _native(left), _native(right)
    if _category(a) != _category(b) or isinstance(a, (IRI, BlankNode)):
        raise _EvaluationError(f"cannot order {left!r} and {right!r}")
    if operator == "<":
        return a < b
    if operator == ">":
        return a > b
    if operator == "<=":
        return a <= b
    if operator == ">=":
        return a >= b
    raise _EvaluationError(f"unknown operator {operator}")


def _call(call: FunctionCall, binding: Binding) -> Value:
    name = call.name
    if name == "bound":
        return binding.get(call.arguments[0].name) is not None

    args = [_evaluate(argument, binding) for argument in call.arguments]
    if name == "str":
        value = args[0]
        if isinstance(value, bool):
            return Literal("true" if value else "false")
        if isinstance(value, BlankNode):
            raise _EvaluationError("str() of a blank node")
        return Literal(str(value))
    if name == "lcase":
        return _with_text(args[0], _string(args[0]).lower())
    if name == "ucase":
        return _with_text(args[0], _string(args[0]).upper())
    if name == "contains":
        return _string(args[1]) in _string(args[0])
    if name == "strstarts":
        return _string(args[0]).startswith(_string(args[1]))
    if name == "strends":
        return _string(args[0]).endswith(_string(args[1]))
    if name == "regex":
        flags = _string(args[2]) if len(args) > 2 else ""
        try:
            return _compiled(_string(args[1]), flags).search(_string(args[0])) is not None
        except re.error as e:
            raise _EvaluationError(f"invalid regular expression: {e}")
    raise _EvaluationError(f"unknown function {name}")


@lru_cache(maxsize=128)
def _compiled(pattern: str, flags: str) -> "re.Pattern":
    value = 0
    for flag in flags:
        if flag not in REGEX_FLAGS:
            raise _EvaluationError(f"unsupported regex flag {flag!r}")
        value |= REGEX_FLAGS[flag]
    return re.compile(pattern, value)


def _string(value: Value) -> str:
    if isinstance(value, Literal) and value.datatype in (None, XSD.STRING):
        return value.lexical
    raise _EvaluationError(f"expected a string literal, found {value!r}")


def _with_text(original: Value, text: str) -> Literal:
    language = original.language if isinstance(original, Literal) else None
    return Literal(text, language=language)


def _native(value: Value):
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, Literal):
        if value.datatype in _NUMERIC_TYPES:
            try:
                return int(value.lexical) if value.datatype == XSD.INTEGER else float(value.lexical)
            except ValueError:
                raise _EvaluationError(f"ill-typed numeric literal {value.lexical!r}")
        if value.datatype == XSD.BOOLEAN:
            return value.lexical in ("true", "1")
        return value.lexical
    return value


def _category(native) -> str:
    if isinstance(native, bool):
        return "boolean"
    if isinstance(native, (int, float)):
        return "number"
    if isinstance(native, str):
        return "string"
    return "resource"


def _equals(left: Value, right: Value) -> bool:
    if isinstance(left, Literal) and isinstance(right, Literal):
        a, b = _native(left), _native(right)
        if _category(a) == _category(b) == "number" or _category(a) == _category(b) == "boolean":
            return a == b
        return left == right
    if isinstance(left, bool) or isinstance(right, bool):
        return _native(left) == _native(right)
    return left == right


def _effective_boolean(value: Value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, Literal):
        return bool(_native(value))
    raise _EvaluationError(f"no boolean value for {value!r}")
