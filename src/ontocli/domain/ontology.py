"""Ontology container and its two states.

An ``Ontology`` is freshly parsed: raw triple queries are allowed but
there is no Command Index. ``Ontology.validate()`` is the only way to
obtain a ``ValidatedOntology``, the terminal state consumed by the code
generator. The rules themselves live in the application layer and are
handed to the ontology by whoever builds it.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Mapping, Optional, TYPE_CHECKING

from ontocli.domain.command_models import CommandIndex
from ontocli.domain.namespaces import NamespaceRegistry
from ontocli.domain.rdf_terms import Triple, TriplePattern
from ontocli.domain.storage_backend import BackendFactory, StorageBackend
from ontocli.domain.validation_models import ValidationReport

if TYPE_CHECKING:
    from ontocli.infrastructure.parsers.turtle_parser import ParsedDocument

logger = logging.getLogger(__name__)


class OntologyValidatorBase(ABC):
    """Validation rules that turn an ``Ontology`` into a ``ValidatedOntology``."""

    @abstractmethod
    def validate(self, ontology: "Ontology") -> "ValidatedOntology":
        """Validate ``ontology`` or raise ``OntologyValidationError``."""


class Ontology:
    """Unvalidated ontology: backend plus its own namespace registry."""

    is_validated = False

    def __init__(
        self,
        backend: StorageBackend,
        namespaces: NamespaceRegistry,
        base_iri: Optional[str] = None,
        validator: Optional[OntologyValidatorBase] = None,
    ) -> None:
        self._backend = backend
        self._registry = namespaces
        self._validator = validator
        self.base_iri = base_iri

    @classmethod
    def from_document(
        cls,
        document: "ParsedDocument",
        backend_factory: BackendFactory,
        validator: Optional[OntologyValidatorBase] = None,
    ) -> "Ontology":
        """Load a parsed document into a backend built by ``backend_factory``."""
        backend = backend_factory(document.triples)
        logger.debug(f"Loaded {len(backend)} triples into {type(backend).__name__}")
        return cls(backend, document.namespaces, document.base_iri, validator)

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    @property
    def namespaces(self) -> Mapping[str, str]:
        return self._registry.as_mapping()

    @property
    def triple_count(self) -> int:
        return len(self._backend)

    def match(self, pattern: TriplePattern) -> List[Triple]:
        return self._backend.query(pattern)

    def validate(self, validator: Optional[OntologyValidatorBase] = None) -> "ValidatedOntology":
        """Run every validation rule and build the Command Index.

        Args:
            validator: Rules to apply instead of the ones given at construction

        Raises:
            OntologyValidationError: if any error-level finding was collected
            RuntimeError: if no validator was supplied either way
        """
        validator = validator or self._validator
        if validator is None:
            raise RuntimeError("Ontology has no validator; build it through the composition root")
        return validator.validate(self)

    def __repr__(self) -> str:
        return f"Ontology(triples={self.triple_count}, namespaces={len(self._registry)})"


@dataclass(frozen=True)
class ValidatedOntology:
    """Validated ontology. Immutable; safe to share between threads."""

    command_index: CommandIndex
    report: ValidationReport
    namespaces: Mapping[str, str]
    backend: StorageBackend
    triple_count: int
    base_iri: Optional[str] = None

    is_validated = True

    def match(self, pattern: TriplePattern) -> List[Triple]:
        return self.backend.query(pattern)
