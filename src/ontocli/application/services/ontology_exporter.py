"""Ontology exporter: CLI definition → Turtle / N-Triples document.

Every resource gets a named IRI under the export base, so the document
round-trips through the parser without depending on blank-node labels.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from ontocli.domain.cli_definition import ArgumentDefinition, CliDefinition, CommandDefinition
from ontocli.domain.errors import ExportError
from ontocli.domain.rdf_terms import IRI, Literal, RDF_TYPE, Triple
from ontocli.domain.vocabulary import CNV, XSD, DEFAULT_PREFIXES
from ontocli.infrastructure.serializers.ontology_serializer import normalize_format, serialize_triples

logger = logging.getLogger(__name__)

DEFAULT_BASE_IRI = "https://example.org/cli#"

# click ParamType.name → type tag
CLICK_TYPE_TAGS = {
    "text": "string",
    "string": "string",
    "choice": "string",
    "uuid": "string",
    "integer": "integer",
    "integer range": "integer",
    "float": "float",
    "float range": "float",
    "boolean": "boolean",
    "path": "path",
    "filename": "path",
    "file": "path",
}


@dataclass(frozen=True)
class ExportOptions:
    base_iri: str = DEFAULT_BASE_IRI
    prefix: str = "cli"
    format: str = "turtle"


@dataclass(frozen=True)
class ExportedDocument:
    document: str
    triple_count: int
    format: str
    namespaces: Dict[str, str] = field(default_factory=dict)


def _segment(name: str) -> str:
    return quote(name, safe="")


class OntologyExporter:
    """Turns a CliDefinition into an ontology document."""

    def export(self, definition: CliDefinition, options: Optional[ExportOptions] = None) -> ExportedDocument:
        """Export ``definition``.

        Raises:
            ExportError: invalid options, or a definition the vocabulary cannot express
        """
        options = options or ExportOptions()
        rdf_format = normalize_format(options.format)
        if not options.base_iri.endswith(("#", "/")):
            raise ExportError(
                f"Base IRI must end with '#' or '/': {options.base_iri}",
                identifier=options.base_iri,
                details={"base_iri": options.base_iri},
            )
        if not options.prefix.isidentifier():
            raise ExportError(
                f"Invalid namespace prefix '{options.prefix}'",
                identifier=options.prefix,
                details={"prefix": options.prefix},
            )

        triples = self.build_triples(definition, options.base_iri)
        namespaces = dict(DEFAULT_PREFIXES)
        namespaces[options.prefix] = options.base_iri
        document = serialize_triples(triples, namespaces, rdf_format)
        logger.info(
            f"Exported {len(definition.commands)} command(s) as {len(triples)} triples ({rdf_format})"
        )
        return ExportedDocument(
            document=document,
            triple_count=len(triples),
            format=rdf_format,
            namespaces=dict(sorted(namespaces.items())),
        )

    def build_triples(self, definition: CliDefinition, base_iri: str) -> List[Triple]:
        triples: List[Triple] = []
        seen_keys = set()
        nouns: Dict[str, IRI] = {}
        verbs: Dict[str, IRI] = {}

        for command in sorted(definition.commands, key=lambda c: (c.noun, c.verb)):
            key = (command.noun, command.verb)
            if key in seen_keys:
                raise ExportError(
                    f"Duplicate command '{command.noun} {command.verb}'",
                    identifier=f"{command.noun} {command.verb}",
                    details={"noun": command.noun, "verb": command.verb},
                )
            seen_keys.add(key)
            if not command.handlers:
                raise ExportError(
                    f"Command '{command.noun} {command.verb}' has no handler binding",
                    identifier=f"{command.noun} {command.verb}",
                    details={"noun": command.noun, "verb": command.verb},
                )

            if command.noun not in nouns:
                nouns[command.noun] = IRI(f"{base_iri}noun/{_segment(command.noun)}")
                triples.extend(self._named_resource(nouns[command.noun], CNV.NOUN, command.noun))
            if command.verb not in verbs:
                verbs[command.verb] = IRI(f"{base_iri}verb/{_segment(command.verb)}")
                triples.extend(self._named_resource(verbs[command.verb], CNV.VERB, command.verb))

            triples.extend(self._command_triples(command, base_iri, nouns[command.noun], verbs[command.verb]))
        return triples

    @staticmethod
    def _named_resource(subject: IRI, class_iri: str, name: str) -> List[Triple]:
        return [
            Triple(subject, RDF_TYPE, IRI(class_iri)),
            Triple(subject, IRI(CNV.NAME), Literal(name)),
        ]

    def _command_triples(
        self, command: CommandDefinition, base_iri: str, noun: IRI, verb: IRI
    ) -> List[Triple]:
        subject = IRI(f"{base_iri}command/{_segment(command.noun)}/{_segment(command.verb)}")
        triples = [
            Triple(subject, RDF_TYPE, IRI(CNV.COMMAND)),
            Triple(subject, IRI(CNV.HAS_NOUN), noun),
            Triple(subject, IRI(CNV.HAS_VERB), verb),
        ]
        for handler in sorted(set(command.handlers)):
            triples.append(Triple(subject, IRI(CNV.HANDLER), Literal(handler)))
        for capability in sorted(set(command.capabilities)):
            triples.append(Triple(subject, IRI(CNV.CAPABILITY), Literal(capability)))
        if command.help:
            triples.append(Triple(subject, IRI(CNV.HELP), Literal(command.help)))

        names = set()
        for argument in sorted(command.arguments, key=lambda a: a.name):
            if argument.name in names:
                raise ExportError(
                    f"Command '{command.noun} {command.verb}' declares argument '{argument.name}' twice",
                    identifier=f"{command.noun} {command.verb}",
                    details={"argument": argument.name},
                )
            names.add(argument.name)
            argument_iri = IRI(f"{subject.value}/{_segment(argument.name)}")
            triples.append(Triple(subject, IRI(CNV.HAS_ARGUMENT), argument_iri))
            triples.extend(self._argument_triples(argument_iri, argument))
        return triples

    @staticmethod
    def _argument_triples(subject: IRI, argument: ArgumentDefinition) -> List[Triple]:
        triples = [
            Triple(subject, RDF_TYPE, IRI(CNV.ARGUMENT)),
            Triple(subject, IRI(CNV.NAME), Literal(argument.name)),
            Triple(subject, IRI(CNV.DATATYPE), Literal(argument.type)),
            Triple(subject, IRI(CNV.REQUIRED), Literal("true" if argument.required else "false", XSD.BOOLEAN)),
        ]
        if argument.default is not None:
            triples.append(Triple(subject, IRI(CNV.DEFAULT), Literal(argument.default)))
        if argument.position is not None:
            triples.append(Triple(subject, IRI(CNV.POSITION), Literal(str(argument.position), XSD.INTEGER)))
        for validator in sorted(set(argument.validators)):
            triples.append(Triple(subject, IRI(CNV.VALIDATOR), Literal(validator)))
        if argument.help:
            triples.append(Triple(subject, IRI(CNV.HELP), Literal(argument.help)))
        return triples


# ========================================
# typer / click introspection
# ========================================

def definition_from_app(app: Any, name: Optional[str] = None, version: Optional[str] = None) -> CliDefinition:
    """Read a CliDefinition from a typer application or a click group.

    Sub-groups become nouns and their commands become verbs. Commands
    attached directly to the root, and groups nested deeper than one
    level, have no noun-verb shape and are skipped with a warning.
    """
    import click
    import typer

    if isinstance(app, typer.Typer):
        root = typer.main.get_command(app)
    elif isinstance(app, click.Command):
        root = app
    else:
        raise ExportError(
            f"Expected a typer.Typer or click command, got {type(app).__name__}",
            details={"type": type(app).__name__},
        )
    if not isinstance(root, click.Group):
        raise ExportError(
            "Application has no command groups to export",
            identifier=root.name,
            details={"command": root.name},
        )

    context = click.Context(root, info_name=name or root.name)
    commands: List[CommandDefinition] = []
    for noun in sorted(root.list_commands(context)):
        group = root.get_command(context, noun)
        if not isinstance(group, click.Group):
            logger.warning(f"Skipping top-level command '{noun}': it has no verb")
            continue
        group_context = click.Context(group, info_name=noun, parent=context)
        for verb in sorted(group.list_commands(group_context)):
            command = group.get_command(group_context, verb)
            if isinstance(command, click.Group):
                logger.warning(f"Skipping nested group '{noun} {verb}'")
                continue
            commands.append(_command_definition(noun, verb, command))

    logger.info(f"Read {len(commands)} command(s) from {type(app).__name__} '{root.name}'")
    return CliDefinition(
        name=name or root.name or "cli",
        version=version,
        description=_first_paragraph(root.help),
        commands=commands,
    )


def _command_definition(noun: str, verb: str, command: Any) -> CommandDefinition:
    import click

    arguments: List[ArgumentDefinition] = []
    position = 0
    for param in command.params:
        if not param.expose_value or getattr(param, "hidden", False):
            continue
        is_argument = isinstance(param, click.Argument)
        default = param.default
        if callable(default) or (param.required and is_argument):
            default = None
        arguments.append(ArgumentDefinition(
            name=param.name,
            type=_type_tag(param),
            required=bool(param.required),
            default=None if param.required else _lexical(default),
            help=getattr(param, "help", None) or None,
            position=position if is_argument else None,
        ))
        if is_argument:
            position += 1

    return CommandDefinition(
        noun=noun,
        verb=verb,
        help=_first_paragraph(command.help),
        handlers=[_binding(command.callback)] if command.callback else [],
        arguments=arguments,
    )


def _type_tag(param: Any) -> str:
    if getattr(param, "is_flag", False) and getattr(param, "is_bool_flag", True):
        return "boolean"
    type_name = getattr(param.type, "name", "text").lower()
    return CLICK_TYPE_TAGS.get(type_name, type_name)


def _lexical(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return None if not value else ",".join(str(v) for v in value)
    return str(value)


def _binding(callback: Any) -> str:
    target = getattr(callback, "__wrapped__", callback)
    module = getattr(target, "__module__", None) or "__main__"
    return f"{module}:{getattr(target, '__qualname__', getattr(target, '__name__', 'handler'))}"


def _first_paragraph(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    return " ".join(text.strip().split("\n\n")[0].split()) or None


def export_index(index, options: Optional[ExportOptions] = None, name: str = "cli") -> ExportedDocument:
    """Export a Command Index (round-trip helper)."""
    return OntologyExporter().export(CliDefinition.from_command_index(index, name=name), options)


