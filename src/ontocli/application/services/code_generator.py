"""Code generator: validated ontology → typer command-line module.

Usage:
    generator = CodeGenerator(cli_name="acme", version="1.2.0")
    generated = generator.generate(validated, FeatureFlags.ASYNC_HANDLERS | FeatureFlags.DOC_BLOCKS)
    Path("acme_cli.py").write_text(generated.code)

Output is a pure function of the Command Index and the flags: every
emission point iterates in (noun, verb) order and nothing time- or
environment-dependent reaches the templates.
"""

import enum
import hashlib
import keyword
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from jinja2 import TemplateError

from ontocli.application.services.cli_templates import TEMPLATES, create_environment
from ontocli.domain.command_models import ArgumentDescriptor, CommandDescriptor
from ontocli.domain.errors import (
    InvalidStructureError,
    MissingPropertyError,
    SynthesisError,
    TypeMismatchError,
)
from ontocli.domain.ontology import ValidatedOntology
from ontocli.domain.vocabulary import normalize_type_tag

logger = logging.getLogger(__name__)


class FeatureFlags(enum.Flag):
    """Optional capabilities of the generated module."""
    NONE = 0
    ASYNC_HANDLERS = enum.auto()
    COMPLETIONS = enum.auto()
    MAN_PAGES = enum.auto()
    COLORED_HELP = enum.auto()
    DOC_BLOCKS = enum.auto()

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "FeatureFlags":
        """Combine flags given by name (case-insensitive, '-' or '_')."""
        flags = cls.NONE
        for name in names:
            key = name.strip().upper().replace("-", "_")
            if not key:
                continue
            try:
                flags |= cls[key]
            except KeyError:
                known = ", ".join(m.name.lower() for m in cls.members())
                raise ValueError(f"Unknown feature flag '{name}' (known: {known})") from None
        return flags

    @classmethod
    def members(cls) -> List["FeatureFlags"]:
        return [m for m in cls if m.value]

    def names(self) -> List[str]:
        return [m.name.lower() for m in type(self).members() if m in self]


# Type tag → annotation used in the generated module.
PYTHON_TYPES = {
    "string": "str",
    "str": "str",
    "text": "str",
    "integer": "int",
    "int": "int",
    "float": "float",
    "decimal": "float",
    "double": "float",
    "number": "float",
    "boolean": "bool",
    "bool": "bool",
    "path": "Path",
    "file": "Path",
}

# Module-level names the generated command functions read at call time.
RESERVED_PARAMETER_NAMES = frozenset({"asyncio", "typer", "arguments"})

_BOOLEAN_DEFAULTS = {"true": True, "1": True, "yes": True, "false": False, "0": False, "no": False}


@dataclass(frozen=True)
class CommandSummary:
    noun: str
    verb: str
    handler_function: str
    binding: str
    arguments: Tuple[str, ...]
    help: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "noun": self.noun,
            "verb": self.verb,
            "handler_function": self.handler_function,
            "binding": self.binding,
            "arguments": list(self.arguments),
            "help": self.help,
        }


@dataclass(frozen=True)
class GeneratedCode:
    code: str
    commands: Tuple[CommandSummary, ...]
    noun_count: int
    command_count: int
    flags: FeatureFlags
    cli_name: str
    version: str
    sha256: str = field(default="")

    def metadata(self) -> Dict[str, Any]:
        return {
            "cli_name": self.cli_name,
            "version": self.version,
            "flags": self.flags.names(),
            "noun_count": self.noun_count,
            "command_count": self.command_count,
            "sha256": self.sha256,
            "line_count": self.code.count("\n"),
        }


def to_identifier(name: str) -> str:
    """Normalize a noun, verb or argument name into a Python identifier."""
    return re.sub(r"[\s\-]+", "_", name.strip()).lower()


def _doc_text(text: str) -> str:
    """Single-line text safe to place inside a triple-quoted docstring."""
    collapsed = " ".join(text.split())
    return collapsed.replace("\\", "\\\\").replace('"', '\\"')


def _class_name(*parts: str) -> str:
    words = [w for part in parts for w in part.split("_") if w]
    return "".join(w[:1].upper() + w[1:] for w in words) + "Args"


class CodeGenerator:
    """Renders a ValidatedOntology into a typer command-line module."""

    def __init__(self, cli_name: str = "cli", version: str = "0.1.0", help_text: Optional[str] = None):
        self.cli_name = cli_name
        self.version = version
        self.help_text = help_text or f"{cli_name} command-line interface."
        self.env = create_environment()

    def generate(self, ontology: ValidatedOntology, flags: FeatureFlags = FeatureFlags.NONE) -> GeneratedCode:
        """Generate the module source.

        Raises:
            TypeError: if ``ontology`` has not been validated
            MissingPropertyError: internal invariant violation
            InvalidStructureError: a name cannot become a Python identifier, or names collide
            TypeMismatchError: unknown type tag or unconvertible default
            SynthesisError: template rendering or compilation failed
        """
        if not isinstance(ontology, ValidatedOntology):
            raise TypeError(
                f"CodeGenerator.generate requires a ValidatedOntology, got {type(ontology).__name__}; "
                "call validate() first"
            )
        if not isinstance(flags, FeatureFlags):
            raise TypeError(f"flags must be FeatureFlags, got {type(flags).__name__}")

        descriptors = sorted(ontology.command_index, key=lambda c: c.key)
        try:
            commands = self._build_contexts(descriptors, flags)
        except MissingPropertyError as e:
            logger.error(f"Internal invariant violated during generation: {e.message}")
            raise

        nouns = self._noun_contexts(commands)
        uses_path = any("Path" in f["annotation"] for c in commands for f in c["fields"])
        uses_optional = any("Optional[" in f["annotation"] for c in commands for f in c["fields"])
        base = {
            "cli_name": self.cli_name,
            "cli_name_doc": _doc_text(self.cli_name),
            "version": self.version,
            "help": self.help_text,
            "help_doc": _doc_text(self.help_text),
            "command_count": len(commands),
            "async_handlers": FeatureFlags.ASYNC_HANDLERS in flags,
            "completions": FeatureFlags.COMPLETIONS in flags,
            "colored_help": FeatureFlags.COLORED_HELP in flags,
            "doc_blocks": FeatureFlags.DOC_BLOCKS in flags,
            "uses_path": uses_path,
            "uses_optional": uses_optional,
        }

        parts = [self._render("module_header", base)]
        for command in commands:
            parts.append(self._render("argument_holder", base, command=command))
            parts.append(self._render("handler_stub", base, command=command))
        parts.append(self._render("dispatch_table", base, commands=commands))
        parts.append(self._render("root_app", base))
        for noun in nouns:
            parts.append(self._render("noun_app", base, noun=noun))
            for command in noun["commands"]:
                parts.append(self._render("command_wiring", base, command=command, noun_app=noun["app_name"]))
        if FeatureFlags.MAN_PAGES in flags:
            parts.append(self._render("manpage", base, manpage=self._manpage(commands)))
        parts.append(self._render("module_footer", base))

        code = "".join(parts)
        try:
            compile(code, f"<generated {self.cli_name}>", "exec")
        except SyntaxError as e:
            raise SynthesisError(f"generated module does not compile: {e.msg} (line {e.lineno})")

        summaries = tuple(
            CommandSummary(
                noun=c["noun"],
                verb=c["verb"],
                handler_function=c["handler_name"],
                binding=c["binding"],
                arguments=tuple(p["ident"] for p in c["params"]),
                help=c["help"],
            )
            for c in commands
        )
        generated = GeneratedCode(
            code=code,
            commands=summaries,
            noun_count=len(nouns),
            command_count=len(commands),
            flags=flags,
            cli_name=self.cli_name,
            version=self.version,
            sha256=hashlib.sha256(code.encode("utf-8")).hexdigest(),
        )
        logger.info(
            f"Generated {generated.command_count} command(s) across {generated.noun_count} noun(s) "
            f"with flags {flags.names() or ['none']}"
        )
        return generated

    def _render(self, name: str, base: Dict[str, Any], **context: Any) -> str:
        try:
            return self.env.from_string(TEMPLATES[name]).render(**base, **context)
        except TemplateError as e:
            raise SynthesisError(f"template '{name}' failed to render: {e}", template=name)

    # ========================================
    # Contexts
    # ========================================

    def _build_contexts(self, descriptors: List[CommandDescriptor], flags: FeatureFlags) -> List[Dict[str, Any]]:
        contexts: List[Dict[str, Any]] = []
        handler_names: Dict[str, str] = {}
        class_names: Dict[str, str] = {}
        noun_idents: Dict[str, str] = {}

        for descriptor in descriptors:
            name = descriptor.qualified_name
            for prop in ("noun", "verb", "handler"):
                if not getattr(descriptor, prop):
                    raise MissingPropertyError(descriptor.iri or name, prop)

            noun_ident = self._identifier(descriptor.noun, name, "noun")
            verb_ident = self._identifier(descriptor.verb, name, "verb")
            if noun_idents.setdefault(noun_ident, descriptor.noun) != descriptor.noun:
                raise InvalidStructureError(
                    name,
                    f"noun '{descriptor.noun}' and noun '{noun_idents[noun_ident]}' both "
                    f"normalize to '{noun_ident}'",
                )
            if FeatureFlags.MAN_PAGES in flags and descriptor.noun == "manpage":
                raise InvalidStructureError(name, "noun 'manpage' collides with the generated manpage command")

            handler_name = f"handle_{noun_ident}_{verb_ident}"
            class_name = _class_name(noun_ident, verb_ident)
            for registry, generated_name in ((handler_names, handler_name), (class_names, class_name)):
                other = registry.setdefault(generated_name, name)
                if other != name:
                    raise InvalidStructureError(
                        name, f"generated name '{generated_name}' collides with command '{other}'"
                    )

            params = self._parameters(descriptor)
            help_text = descriptor.help or f"{descriptor.verb.capitalize()} {descriptor.noun}."
            contexts.append({
                "noun": descriptor.noun,
                "verb": descriptor.verb,
                "noun_ident": noun_ident,
                "doc_name": _doc_text(name),
                "class_name": class_name,
                "handler_name": handler_name,
                "function_name": f"cmd_{noun_ident}_{verb_ident}",
                "binding": descriptor.handler,
                "binding_doc": _doc_text(descriptor.handler),
                "help": help_text,
                "docstring": _doc_text(help_text),
                "capabilities": list(descriptor.capabilities),
                "params": params,
                "fields": self._fields(params),
            })
        return contexts

    def _noun_contexts(self, commands: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        nouns: Dict[str, Dict[str, Any]] = {}
        for command in commands:
            noun = nouns.setdefault(command["noun"], {
                "name": command["noun"],
                "app_name": f"app_{command['noun_ident']}",
                "help": f"Commands for {command['noun']}.",
                "commands": [],
            })
            noun["commands"].append(command)
        return [nouns[key] for key in sorted(nouns)]

    def _parameters(self, descriptor: CommandDescriptor) -> List[Dict[str, Any]]:
        params: List[Dict[str, Any]] = []
        seen: Dict[str, str] = {}
        for argument in sorted(descriptor.arguments, key=ArgumentDescriptor.sort_key):
            ident = self._identifier(argument.name, descriptor.qualified_name, "argument")
            if ident in RESERVED_PARAMETER_NAMES:
                raise InvalidStructureError(
                    descriptor.qualified_name, f"argument name '{argument.name}' is reserved"
                )
            if seen.setdefault(ident, argument.name) != argument.name:
                raise InvalidStructureError(
                    descriptor.qualified_name,
                    f"arguments '{seen[ident]}' and '{argument.name}' both normalize to '{ident}'",
                )
            params.append(self._parameter(descriptor, argument, ident))
        return params

    def _parameter(self, descriptor: CommandDescriptor, argument: ArgumentDescriptor, ident: str) -> Dict[str, Any]:
        entity = f"{descriptor.qualified_name}: {argument.name}"
        tag = normalize_type_tag(argument.type_tag)
        python_type = PYTHON_TYPES.get(tag)
        if python_type is None:
            raise TypeMismatchError(entity, f"one of {', '.join(sorted(PYTHON_TYPES))}", argument.type_tag)

        default = None
        if argument.default is not None and not argument.required:
            default = self._default_expression(entity, python_type, argument.default)
        elif python_type == "bool" and not argument.required:
            default = "False"

        if argument.required:
            annotation, value = python_type, "..."
        elif default is not None:
            annotation, value = python_type, default
        else:
            annotation, value = f"Optional[{python_type}]", "None"

        help_text = argument.help or f"{argument.name} ({tag})"
        if argument.validators:
            help_text += f" [validators: {', '.join(argument.validators)}]"

        if argument.position is not None:
            declaration = f"typer.Argument({value}, help={help_text!r})"
        else:
            option = "--" + ident.replace("_", "-")
            if python_type == "bool":
                option = f"{option}/--no-{option[2:]}"
            declaration = f"typer.Option({value}, {option!r}, help={help_text!r})"

        return {
            "ident": ident,
            "annotation": annotation,
            "declaration": declaration,
            "required": argument.required,
            "default": None if argument.required else value,
            "doc": _doc_text(help_text),
        }

    @staticmethod
    def _fields(params: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Dataclass fields: required first (no default), then the rest, stable within each group."""
        required = [{"ident": p["ident"], "annotation": p["annotation"], "default": None} for p in params if p["required"]]
        optional = [
            {"ident": p["ident"], "annotation": p["annotation"], "default": p["default"]}
            for p in params
            if not p["required"]
        ]
        return required + optional

    @staticmethod
    def _default_expression(entity: str, python_type: str, raw: str) -> str:
        try:
            if python_type == "int":
                return repr(int(raw))
            if python_type == "float":
                return repr(float(raw))
            if python_type == "bool":
                return repr(_BOOLEAN_DEFAULTS[raw.strip().lower()])
        except (ValueError, KeyError):
            raise TypeMismatchError(entity, f"a {python_type} default", raw)
        if python_type == "Path":
            return f"Path({raw!r})"
        return repr(raw)

    @staticmethod
    def _identifier(name: str, command: str, role: str) -> str:
        ident = to_identifier(name)
        if not ident.isidentifier() or keyword.iskeyword(ident):
            raise InvalidStructureError(
                command, f"{role} name '{name}' cannot be used as a Python identifier ('{ident}')"
            )
        return ident

    def _manpage(self, commands: List[Dict[str, Any]]) -> str:
        """Roff scaffolding for section 1."""
        name = self.cli_name.upper()
        lines = [
            f'.TH {name} 1 "" "{self.cli_name} {self.version}" "User Commands"',
            ".SH NAME",
            f"{self.cli_name} \\- {_roff(self.help_text)}",
            ".SH SYNOPSIS",
            f".B {self.cli_name}",
            "\\fINOUN\\fR \\fIVERB\\fR [\\fIOPTIONS\\fR]",
            ".SH COMMANDS",
        ]
        for command in commands:
            lines.append(".TP")
            lines.append(f".B {command['noun']} {command['verb']}")
            lines.append(_roff(command["help"]))
            for param in command["params"]:
                lines.append(f".RS\n.B {param['ident']}\n{_roff(param['doc'])}\n.RE")
        return "\n".join(lines) + "\n"


def _roff(text: str) -> str:
    escaped = " ".join(text.split()).replace("\\", "\\e")
    return "\\&" + escaped if escaped[:1] in (".", "'") else escaped
