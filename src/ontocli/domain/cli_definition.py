"""CLI definition models.

A CliDefinition is the input of the ontology exporter: a plain,
serializable description of nouns, verbs and arguments. It can come from
JSON/YAML, from a Command Index, or from an existing typer/click
application.
"""

import json
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

from ontocli.domain.command_models import ArgumentDescriptor, CommandDescriptor, CommandIndex


class ArgumentDefinition(BaseModel):
    """One argument of a command."""
    name: str = Field(..., description="Argument name")
    type: str = Field("string", description="Type tag (string, integer, float, boolean, path)")
    required: bool = Field(False, description="Whether the argument must be supplied")
    default: Optional[str] = Field(None, description="Default value in lexical form")
    validators: List[str] = Field(default_factory=list, description="Validator tags")
    help: Optional[str] = Field(None, description="Help text")
    position: Optional[int] = Field(None, description="Ordering hint; positional arguments carry one")

    @field_validator("default", mode="before")
    @classmethod
    def lexical_default(cls, v: Any) -> Optional[str]:
        """Store defaults in lexical form, booleans as true/false."""
        if v is None:
            return None
        if isinstance(v, bool):
            return "true" if v else "false"
        return str(v)

    @classmethod
    def from_descriptor(cls, argument: ArgumentDescriptor) -> "ArgumentDefinition":
        return cls(
            name=argument.name,
            type=argument.type_tag,
            required=argument.required,
            default=argument.default,
            validators=list(argument.validators),
            help=argument.help,
            position=argument.position,
        )


class CommandDefinition(BaseModel):
    """A noun-verb command."""
    noun: str = Field(..., description="Noun (command group)")
    verb: str = Field(..., description="Verb (action)")
    help: Optional[str] = Field(None, description="Help text")
    handlers: List[str] = Field(default_factory=list, description="Handler bindings, primary first")
    capabilities: List[str] = Field(default_factory=list, description="Capability tags")
    arguments: List[ArgumentDefinition] = Field(default_factory=list)

    @field_validator("handlers", mode="before")
    @classmethod
    def single_handler(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [v]
        return v

    @classmethod
    def from_descriptor(cls, command: CommandDescriptor) -> "CommandDefinition":
        return cls(
            noun=command.noun,
            verb=command.verb,
            help=command.help,
            handlers=list(command.handlers),
            capabilities=list(command.capabilities),
            arguments=[ArgumentDefinition.from_descriptor(a) for a in command.arguments],
        )


class CliDefinition(BaseModel):
    """Complete definition of a noun-verb command-line program."""
    name: str = Field("cli", description="Program name")
    version: Optional[str] = Field(None, description="Program version")
    description: Optional[str] = Field(None, description="Program description")
    commands: List[CommandDefinition] = Field(default_factory=list)

    model_config = {
        "json_schema_extra": {
            "example": {
                "name": "acme",
                "version": "1.0.0",
                "commands": [
                    {
                        "noun": "user",
                        "verb": "create",
                        "help": "Create a user",
                        "handlers": ["acme.users:create"],
                        "arguments": [
                            {"name": "email", "type": "string", "required": True, "position": 0},
                            {"name": "admin", "type": "boolean", "default": False},
                        ],
                    }
                ],
            }
        }
    }

    @classmethod
    def from_mapping(cls, data: Union[Dict[str, Any], List[Any]]) -> "CliDefinition":
        """Accept either the full form or a bare list of commands."""
        if isinstance(data, list):
            data = {"commands": data}
        return cls.model_validate(data)

    @classmethod
    def from_json(cls, text: str) -> "CliDefinition":
        return cls.from_mapping(json.loads(text))

    @classmethod
    def from_yaml(cls, text: str) -> "CliDefinition":
        return cls.from_mapping(yaml.safe_load(text) or {})

    @classmethod
    def from_command_index(
        cls, index: CommandIndex, name: str = "cli", version: Optional[str] = None
    ) -> "CliDefinition":
        return cls(
            name=name,
            version=version,
            commands=[CommandDefinition.from_descriptor(c) for c in index],
        )

    @classmethod
    def from_source(cls, source: Union[str, Dict[str, Any], List[Any]]) -> "CliDefinition":
        """Build from a mapping, or from JSON/YAML text."""
        if isinstance(source, (dict, list)):
            return cls.from_mapping(source)
        stripped = source.lstrip()
        if stripped.startswith(("{", "[")):
            return cls.from_json(source)
        return cls.from_yaml(source)
