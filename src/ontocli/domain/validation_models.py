"""Ontology Validation Models.

Defines the findings collected while an ontology moves from the
unvalidated to the validated state:
- Referential integrity (targets of command references exist)
- Cardinality (required command and argument properties)
- Duplicate commands (unique noun/verb pairs)
- Advisory checks (help text, datatypes, handler count, unused resources)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple


class Severity(str, Enum):
    """Finding severity. Errors block validation, warnings do not."""
    ERROR = "error"
    WARNING = "warning"


class ValidationRule(str, Enum):
    """Rule that produced a finding."""
    REFERENTIAL = "referential"
    CARDINALITY = "cardinality"
    DUPLICATE_COMMAND = "duplicate_command"
    MISSING_HELP = "missing_help"
    DEFAULT_DATATYPE = "default_datatype"
    UNKNOWN_TYPE_TAG = "unknown_type_tag"
    MULTIPLE_HANDLERS = "multiple_handlers"
    UNUSED_RESOURCE = "unused_resource"
    REQUIRED_WITH_DEFAULT = "required_with_default"


@dataclass(frozen=True)
class Finding:
    """A single validation finding."""
    rule: ValidationRule
    severity: Severity
    identifier: str                  # Offending subject IRI, blank node or command name
    message: str
    details: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule": self.rule.value,
            "severity": self.severity.value,
            "identifier": self.identifier,
            "message": self.message,
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class ValidationReport:
    """Every finding of one validation run, in rule order."""

    findings: Tuple[Finding, ...] = ()
    command_count: int = 0

    @property
    def errors(self) -> List[Finding]:
        return [f for f in self.findings if f.severity is Severity.ERROR]

    @property
    def warnings(self) -> List[Finding]:
        return [f for f in self.findings if f.severity is Severity.WARNING]

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def by_rule(self, rule: ValidationRule) -> List[Finding]:
        return [f for f in self.findings if f.rule is rule]

    def summary(self) -> str:
        status = "valid" if self.is_valid else "invalid"
        return (
            f"{status}: {len(self.errors)} error(s), {len(self.warnings)} warning(s), "
            f"{self.command_count} command(s)"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "command_count": self.command_count,
            "error_count": len(self.errors),
            "warning_count": len(self.warnings),
            "errors": [f.to_dict() for f in self.errors],
            "warnings": [f.to_dict() for f in self.warnings],
        }
