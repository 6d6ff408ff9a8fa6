"""Validation engine for the unvalidated → validated ontology transition."""

import logging
from collections import defaultdict
from typing import Any, Dict, List, NamedTuple, Optional, Set, Tuple

from ontocli.domain.command_models import ArgumentDescriptor, CommandDescriptor, CommandIndex
from ontocli.domain.errors import OntologyValidationError
from ontocli.domain.ontology import Ontology, OntologyValidatorBase, ValidatedOntology
from ontocli.domain.rdf_terms import (
    IRI,
    Literal,
    RDF_TYPE,
    Subject,
    Term,
    TriplePattern,
    is_resource,
    term_sort_key,
)
from ontocli.domain.storage_backend import StorageBackend
from ontocli.domain.validation_models import (
    Finding,
    Severity,
    ValidationReport,
    ValidationRule,
)
from ontocli.domain.vocabulary import (
    CNV,
    HELP_PREDICATES,
    KNOWN_TYPE_TAGS,
    REFERENCE_PREDICATES,
    XSD,
    normalize_type_tag,
)

logger = logging.getLogger(__name__)

_BOOLEAN_LEXICALS = {"true": True, "false": False, "1": True, "0": False}


class _OntologyView:
    """Read helpers over a backend, shared by all rules of one run."""

    def __init__(self, backend: StorageBackend) -> None:
        self.backend = backend
        self.declared: Set[Subject] = set(backend.subjects())
        self.commands: List[Subject] = sorted(
            (t.subject for t in backend.query(TriplePattern(None, RDF_TYPE, IRI(CNV.COMMAND)))),
            key=term_sort_key,
        )

    def values(self, subject: Term, predicate: str) -> List[Term]:
        if not is_resource(subject):
            return []
        matches = self.backend.query(TriplePattern(subject, IRI(predicate), None))
        return sorted((t.object for t in matches), key=term_sort_key)

    def value(self, subject: Term, predicate: str) -> Optional[Term]:
        found = self.values(subject, predicate)
        return found[0] if found else None

    def instances(self, class_iri: str) -> List[Subject]:
        matches = self.backend.query(TriplePattern(None, RDF_TYPE, IRI(class_iri)))
        return sorted((t.subject for t in matches), key=term_sort_key)

    def name_of(self, term: Optional[Term]) -> Optional[str]:
        """Name carried by a noun/verb reference: a literal, or a resource's cnv:name."""
        if term is None:
            return None
        if isinstance(term, Literal):
            return term.lexical
        name = self.value(term, CNV.NAME)
        return name.lexical if isinstance(name, Literal) else None

    def help_text(self, subject: Term) -> Optional[str]:
        for predicate in HELP_PREDICATES:
            literals = [v for v in self.values(subject, predicate) if isinstance(v, Literal)]
            if literals:
                # Untagged or English text first, then lexical order.
                literals.sort(key=lambda v: (v.language not in (None, "en"), v.lexical))
                return literals[0].lexical
        return None

    def arguments(self, command: Subject) -> List[Term]:
        return self.values(command, CNV.HAS_ARGUMENT)


class _Issue(NamedTuple):
    identifier: str
    message: str
    details: Dict[str, Any]


def _issue(identifier: str, message: str, **details: Any) -> _Issue:
    return _Issue(identifier, message, details)


def _label(term: Term) -> str:
    return str(term)


class OntologyValidator(OntologyValidatorBase):
    """Runs every validation rule, then builds the Command Index.

    Rules run in a fixed order and collection is exhaustive: every rule
    sees the whole ontology even when an earlier rule reported errors.
    """

    def __init__(self, known_type_tags: frozenset = KNOWN_TYPE_TAGS):
        self.known_type_tags = known_type_tags
        self._validation_rules = self._initialize_validation_rules()

    def _initialize_validation_rules(self) -> List[Dict[str, Any]]:
        """Initialize validation rules in execution order."""
        return [
            {
                "name": ValidationRule.REFERENTIAL,
                "validator": self._validate_references,
                "severity": Severity.ERROR,
            },
            {
                "name": ValidationRule.CARDINALITY,
                "validator": self._validate_cardinality,
                "severity": Severity.ERROR,
            },
            {
                "name": ValidationRule.DUPLICATE_COMMAND,
                "validator": self._validate_unique_commands,
                "severity": Severity.ERROR,
            },
            {
                "name": ValidationRule.MISSING_HELP,
                "validator": self._validate_help_text,
                "severity": Severity.WARNING,
            },
            {
                "name": ValidationRule.DEFAULT_DATATYPE,
                "validator": self._validate_datatype_declared,
                "severity": Severity.WARNING,
            },
            {
                "name": ValidationRule.UNKNOWN_TYPE_TAG,
                "validator": self._validate_type_tags,
                "severity": Severity.WARNING,
            },
            {
                "name": ValidationRule.MULTIPLE_HANDLERS,
                "validator": self._validate_handler_count,
                "severity": Severity.WARNING,
            },
            {
                "name": ValidationRule.UNUSED_RESOURCE,
                "validator": self._validate_resources_used,
                "severity": Severity.WARNING,
            },
            {
                "name": ValidationRule.REQUIRED_WITH_DEFAULT,
                "validator": self._validate_required_defaults,
                "severity": Severity.WARNING,
            },
        ]

    def validate(self, ontology: Ontology) -> ValidatedOntology:
        """Validate ``ontology`` and return its validated form.

        Raises:
            OntologyValidationError: if any error-level finding was collected
        """
        view = _OntologyView(ontology.backend)
        findings: List[Finding] = []
        for rule in self._validation_rules:
            issues = rule["validator"](view)
            logger.debug(f"Rule '{rule['name'].value}' produced {len(issues)} finding(s)")
            findings.extend(
                Finding(rule["name"], rule["severity"], issue.identifier, issue.message, issue.details)
                for issue in issues
            )

        report = ValidationReport(findings=tuple(findings), command_count=len(view.commands))
        if not report.is_valid:
            logger.info(f"Ontology validation failed ({report.summary()})")
            raise OntologyValidationError(report)

        index = CommandIndex(tuple(self._build_descriptor(view, c) for c in view.commands))
        logger.info(f"Ontology validated ({report.summary()})")
        return ValidatedOntology(
            command_index=index,
            report=report,
            namespaces=ontology.namespaces,
            backend=ontology.backend,
            triple_count=ontology.triple_count,
            base_iri=ontology.base_iri,
        )

    # ========================================
    # Error rules
    # ========================================

    def _validate_references(self, view: _OntologyView) -> List[_Issue]:
        """Targets of hasNoun/hasVerb/hasArgument must be declared subjects."""
        findings = []
        for predicate in REFERENCE_PREDICATES:
            matches = view.backend.query(TriplePattern(None, IRI(predicate), None))
            for triple in sorted(matches, key=lambda t: t.sort_key()):
                target = triple.object
                if is_resource(target) and target not in view.declared:
                    findings.append(_issue(
                        _label(triple.subject),
                        f"<{predicate}> references undeclared subject {target.n3()}",
                        predicate=predicate,
                        target=_label(target),
                    ))
        return findings

    def _validate_cardinality(self, view: _OntologyView) -> List[_Issue]:
        """Every command has a noun, a verb, a handler; arguments are well formed."""
        findings = []
        for command in view.commands:
            identifier = _label(command)
            for predicate, part in ((CNV.HAS_NOUN, "noun"), (CNV.HAS_VERB, "verb")):
                targets = view.values(command, predicate)
                if not targets:
                    findings.append(_issue(
                        identifier,
                        f"command has no {part}", property=predicate,
                    ))
                elif len(targets) > 1:
                    findings.append(_issue(
                        identifier,
                        f"command has {len(targets)} {part}s, expected exactly one",
                        property=predicate,
                    ))
                elif (
                    is_resource(targets[0])
                    and targets[0] in view.declared
                    and view.name_of(targets[0]) is None
                ):
                    findings.append(_issue(
                        _label(targets[0]),
                        f"{part} resource has no <{CNV.NAME}>", property=CNV.NAME,
                        command=identifier,
                    ))

            if not view.values(command, CNV.HANDLER):
                findings.append(_issue(
                    identifier,
                    "command has no handler binding", property=CNV.HANDLER,
                ))

            findings.extend(self._validate_arguments(view, command))
        return findings

    def _validate_arguments(self, view: _OntologyView, command: Subject) -> List[_Issue]:
        findings = []
        seen_names: Dict[str, Term] = {}
        for argument in view.arguments(command):
            if not is_resource(argument):
                findings.append(_issue(
                    _label(command),
                    f"argument {argument.n3()} must be an IRI or blank node",
                    property=CNV.HAS_ARGUMENT,
                ))
                continue
            if argument not in view.declared:
                continue

            identifier = _label(argument)
            name = view.value(argument, CNV.NAME)
            if not isinstance(name, Literal) or not name.lexical.strip():
                findings.append(_issue(
                    identifier,
                    "argument has no name", property=CNV.NAME, command=_label(command),
                ))
            elif name.lexical in seen_names:
                findings.append(_issue(
                    _label(command),
                    f"argument '{name.lexical}' is declared more than once",
                    property=CNV.NAME, argument=name.lexical,
                ))
            else:
                seen_names[name.lexical] = argument

            required = view.value(argument, CNV.REQUIRED)
            if required is not None and _as_boolean(required) is None:
                findings.append(_issue(
                    identifier,
                    f"<{CNV.REQUIRED}> must be a boolean, found {required.n3()}",
                    property=CNV.REQUIRED,
                ))

            position = view.value(argument, CNV.POSITION)
            if position is not None and _as_integer(position) is None:
                findings.append(_issue(
                    identifier,
                    f"<{CNV.POSITION}> must be an integer, found {position.n3()}",
                    property=CNV.POSITION,
                ))
        return findings

    def _validate_unique_commands(self, view: _OntologyView) -> List[_Issue]:
        """No two commands may share a (noun, verb) pair."""
        by_key: Dict[Tuple[str, str], List[str]] = defaultdict(list)
        for command in view.commands:
            noun = view.name_of(view.value(command, CNV.HAS_NOUN))
            verb = view.name_of(view.value(command, CNV.HAS_VERB))
            if noun is not None and verb is not None:
                by_key[(noun, verb)].append(_label(command))

        findings = []
        for (noun, verb), commands in sorted(by_key.items()):
            if len(commands) > 1:
                findings.append(_issue(
                    f"{noun} {verb}",
                    f"{len(commands)} commands share noun '{noun}' and verb '{verb}'",
                    noun=noun, verb=verb, commands=sorted(commands),
                ))
        return findings

    # ========================================
    # Warning rules
    # ========================================

    def _validate_help_text(self, view: _OntologyView) -> List[_Issue]:
        return [
            _issue(
                _label(command),
                "command has no help text (cnv:help, rdfs:comment or rdfs:label)",
            )
            for command in view.commands
            if view.help_text(command) is None
        ]

    def _validate_datatype_declared(self, view: _OntologyView) -> List[_Issue]:
        findings = []
        for argument in self._all_arguments(view):
            if view.value(argument, CNV.DATATYPE) is None:
                findings.append(_issue(
                    _label(argument),
                    "argument declares no datatype; defaulting to 'string'",
                ))
        return findings

    def _validate_type_tags(self, view: _OntologyView) -> List[_Issue]:
        findings = []
        for argument in self._all_arguments(view):
            datatype = view.value(argument, CNV.DATATYPE)
            if datatype is None:
                continue
            tag = _type_tag(datatype)
            if tag not in self.known_type_tags:
                findings.append(_issue(
                    _label(argument),
                    f"unknown type tag '{tag}'", type_tag=tag,
                ))
        return findings

    def _validate_handler_count(self, view: _OntologyView) -> List[_Issue]:
        findings = []
        for command in view.commands:
            handlers = view.values(command, CNV.HANDLER)
            if len(handlers) > 1:
                bindings = [_label(h) for h in handlers]
                findings.append(_issue(
                    _label(command),
                    f"command has {len(handlers)} handler bindings; '{bindings[0]}' is primary",
                    handlers=bindings,
                ))
        return findings

    def _validate_resources_used(self, view: _OntologyView) -> List[_Issue]:
        findings = []
        for class_iri, predicate, kind in (
            (CNV.NOUN, CNV.HAS_NOUN, "noun"),
            (CNV.VERB, CNV.HAS_VERB, "verb"),
        ):
            for resource in view.instances(class_iri):
                if not view.backend.query(TriplePattern(None, IRI(predicate), resource)):
                    findings.append(_issue(
                        _label(resource),
                        f"{kind} is not used by any command",
                    ))
        return findings

    def _validate_required_defaults(self, view: _OntologyView) -> List[_Issue]:
        findings = []
        for argument in self._all_arguments(view):
            required = view.value(argument, CNV.REQUIRED)
            if (
                required is not None
                and _as_boolean(required)
                and view.value(argument, CNV.DEFAULT) is not None
            ):
                findings.append(_issue(
                    _label(argument),
                    "required argument also declares a default; the default is never used",
                ))
        return findings

    # ========================================
    # Command Index
    # ========================================

    def _build_descriptor(self, view: _OntologyView, command: Subject) -> CommandDescriptor:
        handlers = tuple(sorted(_label(h) for h in view.values(command, CNV.HANDLER)))
        arguments = sorted(
            (self._build_argument(view, a) for a in view.arguments(command)),
            key=ArgumentDescriptor.sort_key,
        )
        return CommandDescriptor(
            noun=view.name_of(view.value(command, CNV.HAS_NOUN)),
            verb=view.name_of(view.value(command, CNV.HAS_VERB)),
            arguments=tuple(arguments),
            capabilities=tuple(sorted(_label(c) for c in view.values(command, CNV.CAPABILITY))),
            help=view.help_text(command),
            handler=handlers[0] if handlers else None,
            handlers=handlers,
            iri=_label(command),
        )

    def _build_argument(self, view: _OntologyView, argument: Term) -> ArgumentDescriptor:
        datatype = view.value(argument, CNV.DATATYPE)
        required = view.value(argument, CNV.REQUIRED)
        default = view.value(argument, CNV.DEFAULT)
        position = view.value(argument, CNV.POSITION)
        return ArgumentDescriptor(
            name=view.value(argument, CNV.NAME).lexical,
            type_tag=_type_tag(datatype) if datatype is not None else "string",
            required=bool(required is not None and _as_boolean(required)),
            default=_label(default) if default is not None else None,
            validators=tuple(sorted(_label(v) for v in view.values(argument, CNV.VALIDATOR))),
            help=view.help_text(argument),
            position=_as_integer(position) if position is not None else None,
        )

    @staticmethod
    def _all_arguments(view: _OntologyView) -> List[Term]:
        seen: Dict[Term, None] = {}
        for command in view.commands:
            for argument in view.arguments(command):
                if is_resource(argument) and argument in view.declared:
                    seen.setdefault(argument, None)
        return list(seen)


def _type_tag(datatype: Term) -> str:
    return normalize_type_tag(str(datatype))


def _as_boolean(term: Term) -> Optional[bool]:
    if not isinstance(term, Literal) or term.datatype not in (None, XSD.BOOLEAN):
        return None
    return _BOOLEAN_LEXICALS.get(term.lexical.strip().lower())


def _as_integer(term: Term) -> Optional[int]:
    if not isinstance(term, Literal) or term.datatype not in (None, XSD.INTEGER):
        return None
    try:
        return int(term.lexical)
    except ValueError:
        return None
