"""Command-line interface for the ontology → CLI pipeline."""

import json
import logging
import os
from pathlib import Path
from typing import List, Optional

import typer
from dotenv import load_dotenv

from ontocli import composition_root
from ontocli.application.tools.tool_models import (
    ExportRequest,
    ExportRequestOptions,
    GenerateCliRequest,
    GenerateOptions,
    OntologySource,
    ResultFormat,
)
from ontocli.application.tools.turtle_tools import OntologyQueryTool, export_to_ontology, generate_cli
from ontocli.application.services.ontology_exporter import definition_from_app
from ontocli.config import reload_config
from ontocli.domain.cli_definition import CliDefinition
from ontocli.domain.errors import OntologyPipelineError
from ontocli.infrastructure.source_loader import read_path

# --- Environment Loading ---
load_dotenv()

logger = logging.getLogger(__name__)


# --- Typer App ---
app = typer.Typer(
    help="Turn Turtle ontologies of noun-verb commands into typer CLIs, and back.",
    add_completion=False,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
    config: Optional[str] = typer.Option(None, "--config", help="Path to an ontocli.yaml file"),
):
    """Configure logging and, optionally, the configuration file."""
    level = "DEBUG" if verbose else os.getenv("ONTOCLI_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if config:
        if not Path(config).exists():
            _fail_message(f"Config file not found: {config}")
        reload_config(config)


def _fail(error: OntologyPipelineError) -> None:
    """Print the structured error and exit with status 1."""
    typer.echo(json.dumps(error.to_dict(), indent=2, default=str), err=True)
    raise typer.Exit(code=1)


def _fail_message(message: str) -> None:
    typer.echo(json.dumps({"stage": "cli", "code": "usage_error", "message": message}, indent=2), err=True)
    raise typer.Exit(code=1)


def _write(text: str, output: Optional[Path]) -> None:
    if output is None:
        typer.echo(text, nl=not text.endswith("\n"))
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    typer.echo(f"Wrote {output}", err=True)


# --- CLI Commands ---


@app.command()
def generate(
    source: Path = typer.Argument(..., help="Turtle ontology file"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the module here instead of stdout"),
    cli_name: Optional[str] = typer.Option(None, "--name", help="Program name of the generated CLI"),
    version: Optional[str] = typer.Option(None, "--version", help="Version of the generated CLI"),
    feature: List[str] = typer.Option([], "--feature", "-f", help="Feature flag (repeatable)"),
    show_metadata: bool = typer.Option(False, "--metadata", help="Print generation metadata as JSON to stderr"),
):
    """Generate a typer command-line module from an ontology."""
    request = GenerateCliRequest(
        source=OntologySource(path=str(source)),
        options=GenerateOptions(flags=feature, cli_name=cli_name, version=version),
    )
    try:
        response = generate_cli(request)
    except OntologyPipelineError as e:
        _fail(e)
    _write(response.code, output)
    if show_metadata:
        typer.echo(json.dumps(response.metadata, indent=2), err=True)


@app.command()
def query(
    source: Path = typer.Argument(..., help="Turtle ontology file"),
    query_text: Optional[str] = typer.Argument(None, help="SELECT query; read from --file when omitted"),
    query_file: Optional[Path] = typer.Option(None, "--file", help="File holding the query"),
    result_format: Optional[ResultFormat] = typer.Option(
        None, "--format", help="Result serialization (default from config)"
    ),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Query time budget in seconds"),
    validated: bool = typer.Option(False, "--validated", help="Validate the ontology before querying"),
):
    """Run a SELECT query against an ontology."""
    if query_text is None and query_file is None:
        _fail_message("Provide a query argument or --file")
    try:
        text = query_text if query_text is not None else read_path(str(query_file))
        ontology = composition_root.load_ontology(path=str(source))
        if validated:
            ontology = ontology.validate()
        tool = OntologyQueryTool(ontology, composition_root.create_query_executor(timeout_seconds=timeout))
        response = tool.query_ontology(text, result_format)
    except OntologyPipelineError as e:
        _fail(e)

    if isinstance(response.results, str):
        typer.echo(response.results, nl=not response.results.endswith("\n"))
    else:
        typer.echo(json.dumps(response.results, indent=2, ensure_ascii=False))
    logger.info(f"{response.result_count} row(s) in {response.execution_time:.4f}s")


@app.command()
def validate(
    source: Path = typer.Argument(..., help="Turtle ontology file"),
    backend: Optional[str] = typer.Option(None, "--backend", help="Storage backend: memory or rdflib"),
):
    """Validate an ontology and print its report."""
    try:
        ontology = composition_root.load_ontology(path=str(source), backend=backend)
        validated_ontology = ontology.validate()
    except OntologyPipelineError as e:
        _fail(e)
    except ValueError as e:
        _fail_message(str(e))

    report = validated_ontology.report
    typer.echo(json.dumps(report.to_dict(), indent=2))
    typer.echo(report.summary(), err=True)


@app.command()
def export(
    definition: Optional[Path] = typer.Argument(None, help="CLI definition as JSON or YAML"),
    app_ref: Optional[str] = typer.Option(None, "--app", help="typer/click app as module:attribute"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the document here instead of stdout"),
    base_iri: Optional[str] = typer.Option(None, "--base-iri", help="Namespace for minted IRIs"),
    prefix: Optional[str] = typer.Option(None, "--prefix", help="Prefix bound to the base IRI"),
    document_format: Optional[str] = typer.Option(None, "--format", help="turtle or nt"),
):
    """Export a CLI definition (file or live typer app) as an ontology."""
    if (definition is None) == (app_ref is None):
        _fail_message("Provide exactly one of a definition file or --app")
    try:
        if app_ref is not None:
            cli_definition = definition_from_app(_import_app(app_ref))
        else:
            cli_definition = CliDefinition.from_source(read_path(str(definition)))
        response = export_to_ontology(ExportRequest(
            cli_definition=cli_definition,
            options=ExportRequestOptions(base_iri=base_iri, prefix=prefix, format=document_format),
        ))
    except OntologyPipelineError as e:
        _fail(e)
    except ValueError as e:
        _fail_message(str(e))
    _write(response.document, output)


def _import_app(reference: str):
    import importlib

    module_name, sep, attribute = reference.partition(":")
    if not sep:
        _fail_message(f"Expected module:attribute, got '{reference}'")
    try:
        module = importlib.import_module(module_name)
        return getattr(module, attribute)
    except (ImportError, AttributeError) as e:
        _fail_message(f"Cannot load '{reference}': {e}")


if __name__ == "__main__":
    app()
