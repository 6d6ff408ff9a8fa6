"""Error taxonomy for the ontology pipeline.

Every error names the stage that failed, the offending identifier
(document position, ontology IRI or command name) and a structured
``details`` mapping, so callers never have to parse message strings.
"""

from typing import Any, Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ontocli.domain.validation_models import ValidationReport


class OntologyPipelineError(Exception):
    """Base class for all pipeline failures."""

    stage = "pipeline"
    code = "pipeline_error"

    def __init__(
        self,
        message: str,
        identifier: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.identifier = identifier
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "code": self.code,
            "identifier": self.identifier,
            "message": self.message,
            "details": self.details,
        }


# ========================================
# Source loading
# ========================================

class SourceLoadError(OntologyPipelineError):
    """The ontology document could not be read."""
    stage = "load"
    code = "source_unavailable"


# ========================================
# Parsing
# ========================================

class ParseError(OntologyPipelineError):
    stage = "parse"
    code = "parse_error"


class TurtleSyntaxError(ParseError):
    code = "syntax_error"

    def __init__(self, message: str, line: int, column: int) -> None:
        super().__init__(
            f"line {line}, column {column}: {message}",
            identifier=f"{line}:{column}",
            details={"line": line, "column": column, "reason": message},
        )
        self.line = line
        self.column = column


class UndefinedPrefixError(ParseError):
    code = "undefined_prefix"

    def __init__(self, prefix: str, line: int, column: int = 0) -> None:
        super().__init__(
            f"line {line}: prefix '{prefix}:' used before it was declared",
            identifier=prefix,
            details={"prefix": prefix, "line": line, "column": column},
        )
        self.prefix = prefix
        self.line = line


class InvalidIriError(ParseError):
    code = "invalid_iri"

    def __init__(self, identifier: str, reason: str, line: Optional[int] = None) -> None:
        where = f"line {line}: " if line is not None else ""
        super().__init__(
            f"{where}invalid IRI '{identifier}': {reason}",
            identifier=identifier,
            details={"reason": reason, "line": line},
        )
        self.reason = reason
        self.line = line


class DuplicateDefinitionError(ParseError):
    code = "duplicate_definition"

    def __init__(
        self,
        identifier: str,
        predicate: str,
        existing: str,
        conflicting: str,
        line: Optional[int] = None,
    ) -> None:
        super().__init__(
            f"'{identifier}' assigns conflicting values to <{predicate}>: "
            f"{existing} vs {conflicting}",
            identifier=identifier,
            details={
                "predicate": predicate,
                "existing": existing,
                "conflicting": conflicting,
                "line": line,
            },
        )
        self.predicate = predicate


class NamespaceCapacityError(ParseError):
    code = "namespace_capacity_exceeded"

    def __init__(self, prefix: str, capacity: int, line: Optional[int] = None) -> None:
        super().__init__(
            f"cannot declare prefix '{prefix}:': namespace registry is limited to {capacity} entries",
            identifier=prefix,
            details={"capacity": capacity, "line": line},
        )
        self.capacity = capacity
        self.line = line


# ========================================
# Validation
# ========================================

class OntologyValidationError(OntologyPipelineError):
    """Raised by ``Ontology.validate()`` when any error finding is collected."""
    stage = "validate"
    code = "validation_failed"

    def __init__(self, report: "ValidationReport") -> None:
        errors = report.errors
        first = errors[0] if errors else None
        super().__init__(
            f"ontology validation failed with {len(errors)} error(s)"
            + (f"; first: {first.message}" if first else ""),
            identifier=first.identifier if first else None,
            details=report.to_dict(),
        )
        self.report = report


# ========================================
# Query
# ========================================

class QueryError(OntologyPipelineError):
    stage = "query"
    code = "query_error"


class QuerySyntaxError(QueryError):
    code = "syntax_error"

    def __init__(self, message: str, position: int, token: Optional[str] = None) -> None:
        super().__init__(
            f"position {position}: {message}",
            identifier=token,
            details={"position": position, "token": token, "reason": message},
        )
        self.position = position


class UnknownVariableError(QueryError):
    code = "unknown_variable"

    def __init__(self, variable: str, clause: str) -> None:
        super().__init__(
            f"variable ?{variable} in {clause} is not bound by any pattern",
            identifier=f"?{variable}",
            details={"variable": variable, "clause": clause},
        )
        self.variable = variable
        self.clause = clause


class QueryTimeoutError(QueryError):
    code = "timeout"

    def __init__(self, timeout_seconds: float, elapsed_seconds: float) -> None:
        super().__init__(
            f"query exceeded its time budget of {timeout_seconds}s",
            details={
                "timeout_seconds": timeout_seconds,
                "elapsed_seconds": round(elapsed_seconds, 6),
            },
        )
        self.timeout_seconds = timeout_seconds


# ========================================
# Generation
# ========================================

class GeneratorError(OntologyPipelineError):
    stage = "generate"
    code = "generator_error"
    internal = False

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["internal"] = self.internal
        return data


class MissingPropertyError(GeneratorError):
    """A validated descriptor lacks a property validation guarantees.

    This signals a defect in the pipeline, not a problem with user input.
    """
    code = "missing_property"
    internal = True

    def __init__(self, command: str, property_name: str) -> None:
        super().__init__(
            f"internal invariant violated: command '{command}' reached the generator "
            f"without required property '{property_name}'",
            identifier=command,
            details={"command": command, "property": property_name},
        )
        self.property_name = property_name


class InvalidStructureError(GeneratorError):
    code = "invalid_structure"

    def __init__(self, command: str, reason: str) -> None:
        super().__init__(
            f"command '{command}': {reason}",
            identifier=command,
            details={"command": command, "reason": reason},
        )


class TypeMismatchError(GeneratorError):
    code = "type_mismatch"

    def __init__(self, entity: str, expected: str, found: str) -> None:
        super().__init__(
            f"'{entity}': expected {expected}, found '{found}'",
            identifier=entity,
            details={"entity": entity, "expected": expected, "found": found},
        )


class SynthesisError(GeneratorError):
    code = "synthesis_error"

    def __init__(self, message: str, template: Optional[str] = None) -> None:
        super().__init__(message, identifier=template, details={"template": template})


# ========================================
# Export
# ========================================

class ExportError(OntologyPipelineError):
    stage = "export"
    code = "export_error"
