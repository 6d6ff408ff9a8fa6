"""
Pydantic request/response models for the three pipeline tools.

generate_cli, query_ontology and export_to_ontology take and return these
models, so the same operations can be driven from Python, from the
command line, or from any JSON-speaking caller.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from ontocli.domain.cli_definition import CliDefinition


# ========================================
# Enums
# ========================================

class OutputMode(str, Enum):
    """Layout of the generated code."""
    SINGLE = "single"


class ResultFormat(str, Enum):
    """Query result serialization."""
    JSON = "json"
    XML = "xml"
    CSV = "csv"
    TURTLE = "turtle"


class DocumentFormat(str, Enum):
    """Exported ontology serialization."""
    TURTLE = "turtle"
    NTRIPLES = "nt"


# ========================================
# Shared Models
# ========================================

class OntologySource(BaseModel):
    """Where the Turtle document comes from. Exactly one field is set."""
    content: Optional[str] = Field(None, description="Inline Turtle text")
    path: Optional[str] = Field(None, description="Local file path")
    url: Optional[str] = Field(None, description="http(s) URL fetched once")

    @model_validator(mode="after")
    def exactly_one(self) -> "OntologySource":
        given = [v for v in (self.content, self.path, self.url) if v is not None]
        if len(given) != 1:
            raise ValueError("exactly one of content, path or url must be set")
        return self


class CommandSummaryModel(BaseModel):
    """One generated command."""
    noun: str
    verb: str
    handler_function: str = Field(..., description="Name of the generated handler stub")
    binding: str = Field(..., description="Handler binding declared in the ontology")
    arguments: List[str] = Field(default_factory=list, description="Argument names in signature order")
    help: Optional[str] = None


# ========================================
# generate_cli
# ========================================

class GenerateOptions(BaseModel):
    """Code generation options."""
    flags: List[str] = Field(default_factory=list, description="Feature flag names, e.g. async_handlers")
    cli_name: Optional[str] = Field(None, description="Program name; configured default when unset")
    version: Optional[str] = Field(None, description="Program version; configured default when unset")
    output: OutputMode = Field(OutputMode.SINGLE, description="Output layout")

    @field_validator("flags", mode="before")
    @classmethod
    def split_flags(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v


class GenerateCliRequest(BaseModel):
    source: OntologySource
    options: GenerateOptions = Field(default_factory=GenerateOptions)


class GenerateCliResponse(BaseModel):
    code: str = Field(..., description="Generated Python module")
    commands: List[CommandSummaryModel] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


# ========================================
# query_ontology
# ========================================

class QueryOntologyRequest(BaseModel):
    source: OntologySource
    query: str = Field(..., description="SELECT query")
    format: Optional[ResultFormat] = Field(None, description="Result serialization; the configured default when omitted")
    timeout_seconds: Optional[float] = Field(None, gt=0, description="Overrides the configured timeout")


class QueryOntologyResponse(BaseModel):
    results: Union[Dict[str, Any], str] = Field(..., description="SPARQL JSON object, or serialized text")
    execution_time: float = Field(..., ge=0, description="Seconds spent executing the query")
    result_count: int = Field(..., ge=0)
    variables: List[str] = Field(default_factory=list)


# ========================================
# export_to_ontology
# ========================================

class ExportRequestOptions(BaseModel):
    base_iri: Optional[str] = Field(None, description="Namespace for minted IRIs; must end with '#' or '/'")
    prefix: Optional[str] = Field(None, description="Prefix bound to base_iri")
    format: Optional[DocumentFormat] = Field(None, description="turtle or nt")


class ExportRequest(BaseModel):
    cli_definition: CliDefinition
    options: ExportRequestOptions = Field(default_factory=ExportRequestOptions)


class ExportResponse(BaseModel):
    document: str
    triple_count: int = Field(..., ge=0)
    namespaces: Dict[str, str] = Field(default_factory=dict)
    format: DocumentFormat = DocumentFormat.TURTLE
